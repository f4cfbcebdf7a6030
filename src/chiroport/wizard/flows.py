"""Per-location wizard flows and their declarative transition table.

A location's intake category selects one ``FlowDefinition`` (its ordered
steps and initial step). Forward movement is looked up in ``TRANSITIONS``
keyed by ``(category, current step, trigger)``; a missing key means the
answer given so far does not move the wizard.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Final


class Step(str, Enum):
    CATEGORY = "category"
    QUESTION = "question"
    JOIN = "join"
    NONMEMBER = "nonmember"
    MASSAGE_OPTIONS = "massage_options"
    DETAILS = "details"
    SUCCESS = "success"


class IntakeCategory(str, Enum):
    STANDARD = "standard"
    OFFERS_MASSAGE = "offers_massage"


class VisitCategory(str, Enum):
    PRIORITY_PASS = "priority_pass"
    CHIROPRACTOR = "chiropractor"
    MASSAGE = "massage"


class Trigger(str, Enum):
    MEMBER_YES = "member_yes"
    MEMBER_NO = "member_no"
    SPINAL_DECISION = "spinal_decision"
    TREATMENT_SELECTED = "treatment_selected"
    PRIORITY_PASS = "priority_pass"
    CHIROPRACTOR = "chiropractor"
    MASSAGE = "massage"


@dataclass(frozen=True)
class FlowDefinition:
    initial_step: Step
    steps: tuple[Step, ...]

    def __contains__(self, step: object) -> bool:
        return step in self.steps


FLOWS: Final[Mapping[IntakeCategory, FlowDefinition]] = {
    IntakeCategory.STANDARD: FlowDefinition(
        initial_step=Step.QUESTION,
        steps=(Step.QUESTION, Step.JOIN, Step.NONMEMBER, Step.DETAILS, Step.SUCCESS),
    ),
    IntakeCategory.OFFERS_MASSAGE: FlowDefinition(
        initial_step=Step.CATEGORY,
        steps=(Step.CATEGORY, Step.JOIN, Step.MASSAGE_OPTIONS, Step.DETAILS, Step.SUCCESS),
    ),
}

TRANSITIONS: Final[Mapping[tuple[IntakeCategory, Step, Trigger], Step]] = {
    (IntakeCategory.STANDARD, Step.QUESTION, Trigger.MEMBER_YES): Step.JOIN,
    (IntakeCategory.STANDARD, Step.QUESTION, Trigger.MEMBER_NO): Step.DETAILS,
    (IntakeCategory.STANDARD, Step.JOIN, Trigger.SPINAL_DECISION): Step.DETAILS,
    (IntakeCategory.STANDARD, Step.NONMEMBER, Trigger.TREATMENT_SELECTED): Step.DETAILS,
    (IntakeCategory.OFFERS_MASSAGE, Step.CATEGORY, Trigger.PRIORITY_PASS): Step.JOIN,
    (IntakeCategory.OFFERS_MASSAGE, Step.CATEGORY, Trigger.CHIROPRACTOR): Step.DETAILS,
    (IntakeCategory.OFFERS_MASSAGE, Step.CATEGORY, Trigger.MASSAGE): Step.MASSAGE_OPTIONS,
    (IntakeCategory.OFFERS_MASSAGE, Step.JOIN, Trigger.SPINAL_DECISION): Step.DETAILS,
    (IntakeCategory.OFFERS_MASSAGE, Step.MASSAGE_OPTIONS, Trigger.TREATMENT_SELECTED): Step.DETAILS,
}

# Steps whose purpose is choosing a treatment; passing through one makes
# a selection mandatory before the details step.
TREATMENT_SELECTION_STEPS: Final[frozenset[Step]] = frozenset({Step.NONMEMBER, Step.MASSAGE_OPTIONS})


def get_flow(category: IntakeCategory) -> FlowDefinition:
    return FLOWS[IntakeCategory(category)]


def next_step(category: IntakeCategory, step: Step, trigger: Trigger) -> Step | None:
    """Return the step a trigger leads to, or None when none is defined."""
    return TRANSITIONS.get((IntakeCategory(category), step, trigger))
