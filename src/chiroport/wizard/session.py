"""Stateful dispatcher wrapping the wizard reducer for one visitor."""

from __future__ import annotations

import logging
from dataclasses import replace

from chiroport.wizard.engine import (
    AttemptSubmit,
    NavigateTo,
    SubmissionFailed,
    SubmissionStarted,
    SubmissionSucceeded,
    WizardState,
    initial_state,
    transition,
)
from chiroport.wizard.flows import IntakeCategory, Step, Trigger, VisitCategory, next_step
from chiroport.wizard.submission import (
    CUSTOMER_PAYING,
    DEFAULT_ERROR_MESSAGE,
    QueueSubmissionClient,
    build_submission,
    customer_type,
)
from chiroport.wizard.validation import missing_flow_requirement, validate_details

logger = logging.getLogger(__name__)

_CATEGORY_TRIGGERS = {
    VisitCategory.PRIORITY_PASS: Trigger.PRIORITY_PASS,
    VisitCategory.CHIROPRACTOR: Trigger.CHIROPRACTOR,
    VisitCategory.MASSAGE: Trigger.MASSAGE,
}


def pending_trigger(state: WizardState) -> Trigger | None:
    """Return the trigger the current step's answers produce, if any."""
    step = state.current_step
    if step is Step.QUESTION and state.is_member is not None:
        return Trigger.MEMBER_YES if state.is_member else Trigger.MEMBER_NO
    if step is Step.CATEGORY and state.visit_category is not None:
        return _CATEGORY_TRIGGERS[state.visit_category]
    if step is Step.JOIN and state.spinal_adjustment is not None:
        return Trigger.SPINAL_DECISION
    if step in (Step.NONMEMBER, Step.MASSAGE_OPTIONS) and state.selected_treatment is not None:
        return Trigger.TREATMENT_SELECTED
    return None


class WizardSession:
    """One visitor's wizard: current state plus validation and submission."""

    def __init__(
        self,
        intake_category: IntakeCategory | str = IntakeCategory.STANDARD,
        *,
        require_email: bool = True,
        require_birthday: bool = False,
        require_discomfort: bool = False,
    ) -> None:
        self._state = initial_state(intake_category)
        self.require_email = require_email
        self.require_birthday = require_birthday
        self.require_discomfort = require_discomfort

    @property
    def state(self) -> WizardState:
        return self._state

    def dispatch(self, event: object) -> WizardState:
        self._state = transition(self._state, event)
        return self._state

    def advance(self) -> WizardState:
        """Move forward along the transition table using the answers given."""
        trigger = pending_trigger(self._state)
        if trigger is None:
            return self._state
        target = next_step(self._state.intake_category, self._state.current_step, trigger)
        if target is None:
            return self._state
        return self.dispatch(NavigateTo(target))

    def field_errors(self) -> dict[str, list[str]]:
        return validate_details(
            self._state.details,
            require_email=self.require_email,
            require_birthday=self.require_birthday,
            require_discomfort=self.require_discomfort,
        )

    def missing_requirement(self) -> str | None:
        return missing_flow_requirement(self._state)

    async def submit(self, client: QueueSubmissionClient, location_id: str) -> bool:
        """Validate and submit; returns True once the visitor is in the queue.

        Calls made while a submission is already in flight are ignored so a
        double click cannot create two queue entries.
        """
        if self._state.is_submitting or self._state.is_complete:
            return False

        self.dispatch(AttemptSubmit())
        if self.field_errors() or self.missing_requirement():
            return False

        payload = build_submission(self._state, location_id)
        self.dispatch(SubmissionStarted())
        try:
            outcome = await client.submit(payload)
        except Exception:
            logger.exception("Queue submission client raised")
            self.dispatch(SubmissionFailed(DEFAULT_ERROR_MESSAGE))
            return False

        if not outcome.ok or outcome.entry is None:
            self.dispatch(SubmissionFailed(outcome.error or DEFAULT_ERROR_MESSAGE))
            return False

        entry = outcome.entry
        if customer_type(self._state) != CUSTOMER_PAYING:
            entry = replace(entry, position=None)
        self.dispatch(SubmissionSucceeded(entry))
        logger.info("Visitor joined queue entry %s", entry.queue_entry_id)
        return True
