"""
Eligibility/safety gate.

Evaluates submitted answers against declarative safety rules and returns
a verdict. Evaluation is pure apart from the telemetry event emitted for
every call, including ALLOW.

Outcomes, worst first:
    DECLINE > REQUIRES_CALL > REQUEST_MORE_INFO > ALLOW

Usage:
    from intakes.eligibility import SafetyGate

    evaluation = SafetyGate.evaluate("med-cert-sick", answers)
    if not evaluation.is_allowed:
        show(evaluation.reason)

Related files:
    - rules.py: Default rule set keyed by service slug
    - intakes/telemetry.py: Outcome and block events
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from django.db import models
from django.utils import timezone

from intakes import telemetry

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)


class SafetyOutcome(models.TextChoices):
    ALLOW = "ALLOW", "Allow"
    REQUEST_MORE_INFO = "REQUEST_MORE_INFO", "Request More Info"
    REQUIRES_CALL = "REQUIRES_CALL", "Requires Call"
    DECLINE = "DECLINE", "Decline"


class RiskTier(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    CRITICAL = "critical", "Critical"


OUTCOME_PRIORITY = {
    SafetyOutcome.ALLOW: 1,
    SafetyOutcome.REQUEST_MORE_INFO: 2,
    SafetyOutcome.REQUIRES_CALL: 3,
    SafetyOutcome.DECLINE: 4,
}

RISK_TIER_PRIORITY = {
    RiskTier.LOW: 1,
    RiskTier.MEDIUM: 2,
    RiskTier.HIGH: 3,
    RiskTier.CRITICAL: 4,
}


# =============================================================================
# Rule Types
# =============================================================================


@dataclass(frozen=True)
class RuleCondition:
    """
    One test against an answer value.

    Attributes:
        field_id: Answer field identifier
        operator: Comparison operator (see OPERATORS)
        value: Operand for the comparison
        derived: Compute the value instead of reading it directly.
            "duration_days" reads ``(start_field, end_field)`` from
            ``derived_from``; "age" reads a date-of-birth field.
        derived_from: Source field identifiers for derived values
    """

    field_id: str
    operator: str
    value: Any = None
    derived: str | None = None
    derived_from: tuple[str, ...] = ()


@dataclass(frozen=True)
class SafetyRule:
    """
    Declarative safety rule.

    ``services`` lists the slugs the rule applies to; ``("*",)`` applies
    to every service.
    """

    id: str
    name: str
    outcome: str
    risk_tier: str
    patient_message: str
    conditions: tuple[RuleCondition, ...]
    services: tuple[str, ...] = ("*",)
    condition_logic: str = "AND"
    priority: int = 0
    additional_info_required: tuple[str, ...] = ()
    is_active: bool = True

    def applies_to(self, service_slug: str) -> bool:
        return self.is_active and ("*" in self.services or service_slug in self.services)


@dataclass
class SafetyEvaluation:
    """Verdict for one submission."""

    outcome: str
    risk_tier: str
    reason: str = ""
    triggered_rules: list[str] = field(default_factory=list)
    additional_info_required: list[str] = field(default_factory=list)
    service_slug: str = ""
    evaluated_at: datetime = field(default_factory=timezone.now)
    duration_ms: float = 0.0

    @property
    def is_allowed(self) -> bool:
        return self.outcome == SafetyOutcome.ALLOW

    @property
    def requires_call(self) -> bool:
        return self.outcome == SafetyOutcome.REQUIRES_CALL


# =============================================================================
# Derived Values & Operators
# =============================================================================


def _parse_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        if value.lower() == "today":
            return timezone.localdate()
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def _derive(condition: RuleCondition, answers: Mapping[str, Any]) -> Any:
    if condition.derived == "duration_days":
        if len(condition.derived_from) == 1:
            value = answers.get(condition.derived_from[0])
            if isinstance(value, list):
                return len(value)
            return None
        start_id, end_id = condition.derived_from[:2]
        start = _parse_date(answers.get(start_id))
        end = _parse_date(answers.get(end_id) or "today")
        if start is None or end is None:
            return None
        return (end - start).days

    if condition.derived == "days_since":
        start = _parse_date(answers.get(condition.derived_from[0]))
        if start is None:
            return None
        return (timezone.localdate() - start).days

    if condition.derived == "age":
        born = _parse_date(answers.get(condition.derived_from[0]))
        if born is None:
            return None
        today = timezone.localdate()
        return today.year - born.year - ((today.month, today.day) < (born.month, born.day))

    raise ValueError(f"Unknown derived value '{condition.derived}'")


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, list):
        return expected in actual
    if isinstance(actual, str):
        return str(expected).lower() in actual.lower()
    return False


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else [value]


OPERATORS = {
    "equals": lambda a, b: a == b,
    "not_equals": lambda a, b: a != b,
    "contains": _contains,
    "not_contains": lambda a, b: not _contains(a, b),
    "includes_any": lambda a, b: any(item in _as_list(a) for item in b),
    "includes_all": lambda a, b: all(item in _as_list(a) for item in b),
    "gt": lambda a, b: a is not None and a > b,
    "gte": lambda a, b: a is not None and a >= b,
    "lt": lambda a, b: a is not None and a < b,
    "lte": lambda a, b: a is not None and a <= b,
    "is_empty": lambda a, b: _is_empty(a),
    "is_not_empty": lambda a, b: not _is_empty(a),
    "matches_pattern": lambda a, b: isinstance(a, str) and re.search(b, a, re.IGNORECASE) is not None,
}


def evaluate_condition(condition: RuleCondition, answers: Mapping[str, Any]) -> bool:
    """
    Evaluate one condition.

    Age operators are sugar for a derived ``age`` compared with lt/gt.
    A malformed condition is logged and treated as not triggered.
    """
    operator = condition.operator
    try:
        if operator in ("age_under", "age_over"):
            condition = RuleCondition(
                field_id=condition.field_id,
                operator="lt" if operator == "age_under" else "gt",
                value=condition.value,
                derived="age",
                derived_from=condition.derived_from or (condition.field_id,),
            )
            operator = condition.operator

        if condition.derived:
            actual = _derive(condition, answers)
        else:
            actual = answers.get(condition.field_id)

        return bool(OPERATORS[operator](actual, condition.value))
    except (KeyError, TypeError, ValueError, re.error):
        logger.warning(
            "Malformed safety condition skipped",
            extra={"field_id": condition.field_id, "operator": condition.operator},
            exc_info=True,
        )
        return False


def evaluate_rule(rule: SafetyRule, answers: Mapping[str, Any]) -> bool:
    results = (evaluate_condition(c, answers) for c in rule.conditions)
    if rule.condition_logic == "OR":
        return any(results)
    return all(results)


# =============================================================================
# Safety Gate
# =============================================================================


class SafetyGate:
    """
    Rule evaluator consumed by the checkout orchestrator.

    The rule set defaults to ``intakes.eligibility.rules.DEFAULT_RULES``
    and can be swapped with ``set_rules()`` (tests, alternative rule
    packs).
    """

    _rules: tuple[SafetyRule, ...] | None = None

    @classmethod
    def get_rules(cls) -> tuple[SafetyRule, ...]:
        if cls._rules is None:
            from intakes.eligibility.rules import DEFAULT_RULES

            cls._rules = tuple(DEFAULT_RULES)
        return cls._rules

    @classmethod
    def set_rules(cls, rules: Iterable[SafetyRule] | None) -> None:
        """Replace the rule set. Pass None to restore the defaults."""
        cls._rules = tuple(rules) if rules is not None else None

    @classmethod
    def evaluate(cls, service_slug: str, answers: Mapping[str, Any]) -> SafetyEvaluation:
        """
        Evaluate answers for a service.

        Every triggered rule contributes. The worst outcome and the worst
        risk tier win; the reason is the message of the highest-priority
        rule that produced the winning outcome.
        """
        started = time.monotonic()
        rules = sorted(
            (rule for rule in cls.get_rules() if rule.applies_to(service_slug)),
            key=lambda rule: rule.priority,
            reverse=True,
        )

        evaluation = SafetyEvaluation(
            outcome=SafetyOutcome.ALLOW,
            risk_tier=RiskTier.LOW,
            service_slug=service_slug,
        )
        additional: list[str] = []

        for rule in rules:
            if not evaluate_rule(rule, answers):
                continue

            evaluation.triggered_rules.append(rule.id)
            for field_id in rule.additional_info_required:
                if field_id not in additional:
                    additional.append(field_id)

            if OUTCOME_PRIORITY[rule.outcome] > OUTCOME_PRIORITY[evaluation.outcome]:
                evaluation.outcome = rule.outcome
                evaluation.reason = rule.patient_message
            if RISK_TIER_PRIORITY[rule.risk_tier] > RISK_TIER_PRIORITY[evaluation.risk_tier]:
                evaluation.risk_tier = rule.risk_tier

        evaluation.additional_info_required = additional
        evaluation.duration_ms = round((time.monotonic() - started) * 1000, 2)

        telemetry.track_safety_outcome(evaluation)
        return evaluation
