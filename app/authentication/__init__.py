"""
Authentication application.

Patient identity for the intake pipeline: email-based users, guest
identities for unauthenticated submissions, and patient profiles.

Usage:
    from authentication.models import User, Profile
    from authentication.services import IdentityService
"""
