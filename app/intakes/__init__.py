"""
Intakes application.

Clinical request intake: questionnaire validation, safety screening,
fraud scoring, the service catalog and kill switches, and reviewer
decisions.

Usage:
    from intakes.models import Intake
    from intakes.eligibility import SafetyGate
    from intakes.services import IntakeDecisionService
"""
