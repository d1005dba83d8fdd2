"""
Default safety rule set.

Rules are keyed to service slugs from the catalog. Clinical owners maintain
this list; the gate only enforces whatever verdict it produces.
"""

from intakes.eligibility.safety_gate import (
    RiskTier,
    RuleCondition,
    SafetyOutcome,
    SafetyRule,
)

MED_CERT_SERVICES = ("med-cert-sick", "med-cert-carer")
SCRIPT_SERVICES = ("common-scripts",)
CONSULT_SERVICES = ("gp-consult",)

EMERGENCY_SYMPTOMS = [
    "chest_pain",
    "difficulty_breathing",
    "severe_bleeding",
    "stroke_symptoms",
    "loss_of_consciousness",
    "suicidal_thoughts",
]

EMERGENCY_MESSAGE = (
    "Your symptoms may need urgent care. Please call 000 or go to your "
    "nearest emergency department."
)


DEFAULT_RULES = (
    # Emergency symptoms stop every service
    SafetyRule(
        id="emergency_symptoms",
        name="Emergency symptoms reported",
        outcome=SafetyOutcome.DECLINE,
        risk_tier=RiskTier.CRITICAL,
        patient_message=EMERGENCY_MESSAGE,
        priority=1000,
        conditions=(
            RuleCondition("emergency_symptoms", "includes_any", EMERGENCY_SYMPTOMS),
        ),
    ),
    # Medical certificates
    SafetyRule(
        id="med_cert_backdated_over_7_days",
        name="Certificate backdated more than 7 days",
        outcome=SafetyOutcome.DECLINE,
        risk_tier=RiskTier.HIGH,
        patient_message=(
            "We can't issue certificates starting more than 7 days ago. "
            "Please see your regular GP."
        ),
        services=MED_CERT_SERVICES,
        priority=500,
        conditions=(
            RuleCondition(
                "start_date", "gt", 7, derived="days_since", derived_from=("start_date",)
            ),
        ),
    ),
    SafetyRule(
        id="med_cert_backdated_over_3_days",
        name="Certificate backdated more than 3 days",
        outcome=SafetyOutcome.REQUIRES_CALL,
        risk_tier=RiskTier.MEDIUM,
        patient_message=(
            "Certificates starting more than 3 days ago need a quick phone "
            "consultation. Please contact us to proceed."
        ),
        services=MED_CERT_SERVICES,
        priority=400,
        conditions=(
            RuleCondition(
                "start_date", "gt", 3, derived="days_since", derived_from=("start_date",)
            ),
        ),
    ),
    SafetyRule(
        id="med_cert_long_duration",
        name="Certificate longer than one week",
        outcome=SafetyOutcome.REQUIRES_CALL,
        risk_tier=RiskTier.MEDIUM,
        patient_message=(
            "Certificates longer than a week need a phone consultation. "
            "Please contact us to proceed."
        ),
        services=MED_CERT_SERVICES,
        priority=300,
        conditions=(
            RuleCondition(
                "end_date",
                "gte",
                7,
                derived="duration_days",
                derived_from=("start_date", "end_date"),
            ),
        ),
    ),
    # Prescriptions
    SafetyRule(
        id="script_no_prior_prescriber",
        name="Repeat script without a prior prescriber",
        outcome=SafetyOutcome.REQUIRES_CALL,
        risk_tier=RiskTier.MEDIUM,
        patient_message=(
            "This request requires a phone consultation. Please contact us to proceed."
        ),
        services=SCRIPT_SERVICES,
        priority=200,
        conditions=(RuleCondition("last_prescribed_by", "equals", "none"),),
    ),
    SafetyRule(
        id="script_patient_under_18",
        name="Prescription for a minor",
        outcome=SafetyOutcome.REQUIRES_CALL,
        risk_tier=RiskTier.HIGH,
        patient_message=(
            "Prescriptions for patients under 18 need a phone consultation. "
            "Please contact us to proceed."
        ),
        services=SCRIPT_SERVICES,
        priority=250,
        conditions=(RuleCondition("date_of_birth", "age_under", 18),),
    ),
    # Consults
    SafetyRule(
        id="consult_reason_too_short",
        name="Consult reason missing detail",
        outcome=SafetyOutcome.REQUEST_MORE_INFO,
        risk_tier=RiskTier.LOW,
        patient_message=(
            "Additional information is required. Please go back and complete all questions."
        ),
        services=CONSULT_SERVICES,
        priority=100,
        additional_info_required=("consult_reason",),
        conditions=(RuleCondition("consult_reason", "matches_pattern", r"^\s*\S{0,9}\s*$"),),
    ),
)
