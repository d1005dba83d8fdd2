"""
Tests for the safety gate.

Covers the default rule set per service, verdict aggregation when several
rules fire, the condition operators, and telemetry emission.
"""

import pytest
from freezegun import freeze_time

from intakes.eligibility import (
    RiskTier,
    RuleCondition,
    SafetyGate,
    SafetyOutcome,
    SafetyRule,
)
from intakes.eligibility.rules import EMERGENCY_MESSAGE
from intakes.eligibility.safety_gate import evaluate_condition


def rule(id, outcome, priority=0, risk_tier=RiskTier.LOW, message="", conditions=None, **kwargs):
    return SafetyRule(
        id=id,
        name=id,
        outcome=outcome,
        risk_tier=risk_tier,
        patient_message=message or f"{id} message",
        priority=priority,
        conditions=conditions or (RuleCondition("flag", "equals", True),),
        **kwargs,
    )


# =============================================================================
# Default Rules
# =============================================================================


@freeze_time("2026-03-10")
class TestDefaultRules:
    """The shipped rule set, evaluated per service slug."""

    def test_clean_certificate_is_allowed(self):
        evaluation = SafetyGate.evaluate(
            "med-cert-sick",
            {"start_date": "2026-03-10", "end_date": "2026-03-11", "symptoms": ["cold_flu"]},
        )

        assert evaluation.is_allowed
        assert evaluation.triggered_rules == []
        assert evaluation.risk_tier == RiskTier.LOW

    def test_emergency_symptoms_decline_every_service(self):
        for slug in ("med-cert-sick", "common-scripts", "gp-consult"):
            evaluation = SafetyGate.evaluate(slug, {"emergency_symptoms": ["chest_pain"]})

            assert evaluation.outcome == SafetyOutcome.DECLINE
            assert evaluation.risk_tier == RiskTier.CRITICAL
            assert evaluation.reason == EMERGENCY_MESSAGE

    def test_backdated_four_days_requires_call(self):
        evaluation = SafetyGate.evaluate(
            "med-cert-sick", {"start_date": "2026-03-06", "end_date": "2026-03-10"}
        )

        assert evaluation.requires_call
        assert evaluation.triggered_rules == ["med_cert_backdated_over_3_days"]

    def test_backdated_over_a_week_declines_with_decline_message(self):
        evaluation = SafetyGate.evaluate(
            "med-cert-sick", {"start_date": "2026-03-01", "end_date": "2026-03-02"}
        )

        assert evaluation.outcome == SafetyOutcome.DECLINE
        assert "more than 7 days ago" in evaluation.reason
        assert "med_cert_backdated_over_3_days" in evaluation.triggered_rules
        assert evaluation.risk_tier == RiskTier.HIGH

    def test_long_certificate_requires_call(self):
        evaluation = SafetyGate.evaluate(
            "med-cert-carer", {"start_date": "2026-03-10", "end_date": "2026-03-20"}
        )

        assert evaluation.requires_call
        assert evaluation.triggered_rules == ["med_cert_long_duration"]

    def test_certificate_rules_do_not_apply_to_scripts(self):
        evaluation = SafetyGate.evaluate(
            "common-scripts",
            {"start_date": "2026-01-01", "medication": "Atorvastatin", "last_prescribed_by": "gp"},
        )

        assert evaluation.is_allowed

    def test_script_for_minor_requires_call(self):
        evaluation = SafetyGate.evaluate(
            "common-scripts", {"medication": "Ventolin", "date_of_birth": "2010-05-01"}
        )

        assert evaluation.requires_call
        assert evaluation.risk_tier == RiskTier.HIGH

    def test_script_without_prescriber_requires_call(self):
        evaluation = SafetyGate.evaluate(
            "common-scripts", {"medication": "Ventolin", "last_prescribed_by": "none"}
        )

        assert evaluation.triggered_rules == ["script_no_prior_prescriber"]

    def test_short_consult_reason_requests_more_info(self):
        evaluation = SafetyGate.evaluate("gp-consult", {"consult_reason": "sick"})

        assert evaluation.outcome == SafetyOutcome.REQUEST_MORE_INFO
        assert evaluation.additional_info_required == ["consult_reason"]


# =============================================================================
# Aggregation
# =============================================================================


class TestAggregation:
    """Worst outcome and worst tier win; reason follows the winning rule."""

    def test_worst_outcome_wins_regardless_of_priority(self):
        SafetyGate.set_rules(
            [
                rule("call", SafetyOutcome.REQUIRES_CALL, priority=900),
                rule("decline", SafetyOutcome.DECLINE, priority=10),
            ]
        )

        evaluation = SafetyGate.evaluate("any", {"flag": True})

        assert evaluation.outcome == SafetyOutcome.DECLINE
        assert evaluation.reason == "decline message"
        assert evaluation.triggered_rules == ["call", "decline"]

    def test_highest_priority_message_kept_for_equal_outcomes(self):
        SafetyGate.set_rules(
            [
                rule("low", SafetyOutcome.REQUIRES_CALL, priority=1),
                rule("high", SafetyOutcome.REQUIRES_CALL, priority=50),
            ]
        )

        evaluation = SafetyGate.evaluate("any", {"flag": True})

        assert evaluation.reason == "high message"

    def test_risk_tier_taken_independently_of_outcome(self):
        SafetyGate.set_rules(
            [
                rule("decline", SafetyOutcome.DECLINE, risk_tier=RiskTier.MEDIUM),
                rule("info", SafetyOutcome.REQUEST_MORE_INFO, risk_tier=RiskTier.CRITICAL),
            ]
        )

        evaluation = SafetyGate.evaluate("any", {"flag": True})

        assert evaluation.outcome == SafetyOutcome.DECLINE
        assert evaluation.risk_tier == RiskTier.CRITICAL

    def test_inactive_and_out_of_scope_rules_ignored(self):
        SafetyGate.set_rules(
            [
                rule("off", SafetyOutcome.DECLINE, is_active=False),
                rule("other", SafetyOutcome.DECLINE, services=("gp-consult",)),
            ]
        )

        assert SafetyGate.evaluate("med-cert-sick", {"flag": True}).is_allowed

    def test_or_logic(self):
        SafetyGate.set_rules(
            [
                rule(
                    "either",
                    SafetyOutcome.REQUIRES_CALL,
                    condition_logic="OR",
                    conditions=(
                        RuleCondition("a", "equals", 1),
                        RuleCondition("b", "equals", 2),
                    ),
                )
            ]
        )

        assert SafetyGate.evaluate("any", {"b": 2}).requires_call
        assert SafetyGate.evaluate("any", {"a": 0, "b": 0}).is_allowed

    def test_emits_outcome_telemetry_for_allow(self, mocker):
        track = mocker.patch("intakes.eligibility.safety_gate.telemetry.track_safety_outcome")
        SafetyGate.set_rules([])

        evaluation = SafetyGate.evaluate("med-cert-sick", {})

        track.assert_called_once_with(evaluation)


# =============================================================================
# Operators
# =============================================================================


class TestConditions:
    @pytest.mark.parametrize(
        "operator,actual,value,expected",
        [
            ("equals", "gp", "gp", True),
            ("not_equals", "gp", "none", True),
            ("contains", "Severe Headache", "headache", True),
            ("not_contains", ["a"], "b", True),
            ("includes_all", ["a", "b"], ["a", "b"], True),
            ("includes_any", "a", ["a"], True),
            ("gt", None, 1, False),
            ("lte", 3, 3, True),
            ("is_empty", [], None, True),
            ("is_not_empty", "x", None, True),
            ("matches_pattern", "ABC-123", r"^abc-\d+$", True),
        ],
    )
    def test_operator(self, operator, actual, value, expected):
        condition = RuleCondition("field", operator, value)

        assert evaluate_condition(condition, {"field": actual}) is expected

    @freeze_time("2026-03-10")
    def test_age_over(self):
        condition = RuleCondition("date_of_birth", "age_over", 64)

        assert evaluate_condition(condition, {"date_of_birth": "1950-01-01"})
        assert not evaluate_condition(condition, {"date_of_birth": "1990-01-01"})

    @freeze_time("2026-03-10")
    def test_open_ended_duration_counts_to_today(self):
        condition = RuleCondition(
            "end_date", "gte", 5, derived="duration_days", derived_from=("start_date", "end_date")
        )

        assert evaluate_condition(condition, {"start_date": "2026-03-01"})

    def test_list_duration_counts_items(self):
        condition = RuleCondition(
            "days", "gt", 2, derived="duration_days", derived_from=("days",)
        )

        assert evaluate_condition(condition, {"days": ["mon", "tue", "wed"]})

    def test_unknown_operator_is_not_triggered(self):
        assert evaluate_condition(RuleCondition("field", "bogus", 1), {"field": 1}) is False

    def test_bad_pattern_is_not_triggered(self):
        condition = RuleCondition("field", "matches_pattern", "([")

        assert evaluate_condition(condition, {"field": "x"}) is False

    def test_unparseable_date_is_not_triggered(self):
        condition = RuleCondition(
            "start_date", "gt", 3, derived="days_since", derived_from=("start_date",)
        )

        assert evaluate_condition(condition, {"start_date": "yesterday-ish"}) is False
