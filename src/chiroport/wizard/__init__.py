"""Intake wizard: flows, reducer, validation and submission."""

from chiroport.wizard.engine import WizardState, initial_state, transition
from chiroport.wizard.flows import IntakeCategory, Step, VisitCategory
from chiroport.wizard.session import WizardSession

__all__ = [
    "IntakeCategory",
    "Step",
    "VisitCategory",
    "WizardSession",
    "WizardState",
    "initial_state",
    "transition",
]
