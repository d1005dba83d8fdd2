"""
Identity resolution exceptions.
"""

from core.exceptions import PermissionDeniedError


class AuthError(PermissionDeniedError):
    """
    Raised when a patient identity cannot be resolved.

    Covers a missing identity (no session and no guest email) and a guest
    submission that collides with a registered account.
    """

    default_error_code = "AUTH_ERROR"
