"""
Safety telemetry.

Events are structured log records on the ``intakes.telemetry`` logger so
any log shipper can collect them for offline analysis of gate
effectiveness. Emitting an event never raises into the caller.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from intakes.eligibility.safety_gate import SafetyEvaluation

logger = logging.getLogger("intakes.telemetry")


def track_safety_outcome(evaluation: SafetyEvaluation) -> None:
    """Record the result of every safety evaluation, ALLOW included."""
    logger.info(
        "safety_outcome",
        extra={
            "event": "safety_outcome",
            "service_slug": evaluation.service_slug,
            "outcome": str(evaluation.outcome),
            "risk_tier": str(evaluation.risk_tier),
            "triggered_rules": list(evaluation.triggered_rules),
            "evaluated_at": evaluation.evaluated_at.isoformat(),
            "duration_ms": evaluation.duration_ms,
        },
    )


def track_safety_block(
    evaluation: SafetyEvaluation,
    category: str,
    subtype: str,
    stage: str = "submission",
) -> None:
    """Record that a non-ALLOW verdict stopped a submission or retry."""
    logger.warning(
        "safety_block",
        extra={
            "event": "safety_block",
            "stage": stage,
            "service_slug": evaluation.service_slug,
            "category": category,
            "subtype": subtype,
            "outcome": str(evaluation.outcome),
            "risk_tier": str(evaluation.risk_tier),
            "triggered_rules": list(evaluation.triggered_rules),
        },
    )
