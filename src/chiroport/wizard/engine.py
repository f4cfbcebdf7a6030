"""Pure reducer for the intake wizard.

``transition(state, event)`` never mutates its input; every event returns a
new ``WizardState`` (or the same instance when the event does not apply).
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Final

from chiroport.wizard.catalog import UNDECIDED_TREATMENT, Treatment
from chiroport.wizard.flows import (
    TREATMENT_SELECTION_STEPS,
    IntakeCategory,
    Step,
    VisitCategory,
    get_flow,
)

DETAIL_TEXT_FIELDS: Final[frozenset[str]] = frozenset(
    {"name", "phone", "email", "birthday", "additional_info"}
)


@dataclass(frozen=True)
class IntakeDetails:
    name: str = ""
    phone: str = ""
    email: str = ""
    birthday: str = ""
    discomfort: tuple[str, ...] = ()
    additional_info: str = ""
    consent: bool = False


@dataclass(frozen=True)
class QueueEntry:
    """Confirmation of a created queue entry."""

    queue_entry_id: str
    public_token: str = ""
    position: int | None = None
    estimated_wait_minutes: int | None = None
    already_in_queue: bool = False


@dataclass(frozen=True)
class WizardState:
    intake_category: IntakeCategory
    current_step: Step
    history: tuple[Step, ...] = ()
    is_member: bool | None = None
    spinal_adjustment: bool | None = None
    selected_treatment: Treatment | None = None
    visit_category: VisitCategory | None = None
    details: IntakeDetails = field(default_factory=IntakeDetails)
    submit_attempted: bool = False
    is_submitting: bool = False
    submission_error: str | None = None
    submission_result: QueueEntry | None = None

    @property
    def is_complete(self) -> bool:
        return self.current_step is Step.SUCCESS


# Events


@dataclass(frozen=True)
class NavigateTo:
    step: Step


@dataclass(frozen=True)
class GoBack:
    pass


@dataclass(frozen=True)
class SetMembership:
    is_member: bool


@dataclass(frozen=True)
class SetSpinalAdjustment:
    wants_adjustment: bool


@dataclass(frozen=True)
class DeselectSpinalAdjustment:
    pass


@dataclass(frozen=True)
class SelectTreatment:
    treatment: Treatment


@dataclass(frozen=True)
class ClearSelectedTreatment:
    pass


@dataclass(frozen=True)
class SelectVisitCategory:
    category: VisitCategory


@dataclass(frozen=True)
class UpdateDetailField:
    field: str
    value: str | bool


@dataclass(frozen=True)
class UpdateDiscomfort:
    values: Sequence[str]


@dataclass(frozen=True)
class AttemptSubmit:
    pass


@dataclass(frozen=True)
class SubmissionStarted:
    pass


@dataclass(frozen=True)
class SubmissionSucceeded:
    entry: QueueEntry


@dataclass(frozen=True)
class SubmissionFailed:
    error: str


@dataclass(frozen=True)
class Reset:
    pass


def initial_state(category: IntakeCategory | str) -> WizardState:
    """Return the fresh state for a location's intake category."""
    category = IntakeCategory(category)
    return WizardState(intake_category=category, current_step=get_flow(category).initial_step)


def _clear_answers(state: WizardState) -> WizardState:
    return replace(
        state,
        visit_category=None,
        is_member=None,
        spinal_adjustment=None,
        selected_treatment=None,
    )


def _requires_treatment(state: WizardState) -> bool:
    path = {*state.history, state.current_step}
    return bool(path & TREATMENT_SELECTION_STEPS)


def _navigate(state: WizardState, event: NavigateTo) -> WizardState:
    target = Step(event.step)
    flow = get_flow(state.intake_category)
    if target not in flow or target is Step.SUCCESS:
        return state
    if target is state.current_step:
        return state
    if target is Step.DETAILS and state.selected_treatment is None and _requires_treatment(state):
        return state

    if target in state.history:
        history = state.history[: state.history.index(target)]
    else:
        history = (*state.history, state.current_step)

    next_state = replace(state, current_step=target, history=history, submit_attempted=False)
    if target is Step.CATEGORY:
        next_state = _clear_answers(next_state)
    return next_state


def _go_back(state: WizardState, _: GoBack) -> WizardState:
    if state.history:
        previous, history = state.history[-1], state.history[:-1]
    else:
        previous, history = get_flow(state.intake_category).initial_step, ()

    next_state = replace(state, current_step=previous, history=history, submit_attempted=False)
    if previous is Step.CATEGORY:
        next_state = _clear_answers(next_state)
    return next_state


def _set_membership(state: WizardState, event: SetMembership) -> WizardState:
    if event.is_member:
        return replace(state, is_member=True)
    return replace(state, is_member=False, spinal_adjustment=None)


def _set_spinal(state: WizardState, event: SetSpinalAdjustment) -> WizardState:
    return replace(state, spinal_adjustment=event.wants_adjustment)


def _deselect_spinal(state: WizardState, _: DeselectSpinalAdjustment) -> WizardState:
    return replace(state, spinal_adjustment=None)


def _select_treatment(state: WizardState, event: SelectTreatment) -> WizardState:
    return replace(state, selected_treatment=event.treatment)


def _clear_treatment(state: WizardState, _: ClearSelectedTreatment) -> WizardState:
    return replace(state, selected_treatment=None)


def _select_visit_category(state: WizardState, event: SelectVisitCategory) -> WizardState:
    category = VisitCategory(event.category)
    treatment = UNDECIDED_TREATMENT if category is VisitCategory.CHIROPRACTOR else None
    return replace(
        state,
        visit_category=category,
        is_member=category is VisitCategory.PRIORITY_PASS,
        spinal_adjustment=None,
        selected_treatment=treatment,
    )


def _update_field(state: WizardState, event: UpdateDetailField) -> WizardState:
    if event.field == "consent":
        details = replace(state.details, consent=bool(event.value))
    elif event.field in DETAIL_TEXT_FIELDS:
        details = replace(state.details, **{event.field: str(event.value)})
    else:
        raise ValueError(f"Unknown detail field: {event.field!r}")
    return replace(state, details=details)


def _update_discomfort(state: WizardState, event: UpdateDiscomfort) -> WizardState:
    values = tuple(dict.fromkeys(event.values))
    return replace(state, details=replace(state.details, discomfort=values))


def _attempt_submit(state: WizardState, _: AttemptSubmit) -> WizardState:
    if state.is_submitting:
        return state
    return replace(state, submit_attempted=True)


def _submission_started(state: WizardState, _: SubmissionStarted) -> WizardState:
    if state.is_submitting:
        return state
    return replace(state, is_submitting=True, submission_error=None)


def _submission_succeeded(state: WizardState, event: SubmissionSucceeded) -> WizardState:
    return replace(
        state,
        current_step=Step.SUCCESS,
        history=(*state.history, state.current_step),
        is_submitting=False,
        submission_result=event.entry,
        submission_error=None,
    )


def _submission_failed(state: WizardState, event: SubmissionFailed) -> WizardState:
    return replace(
        state,
        is_submitting=False,
        submission_error=event.error,
        submission_result=None,
    )


def _reset(state: WizardState, _: Reset) -> WizardState:
    return initial_state(state.intake_category)


_HANDLERS: Final[dict[type, Callable[[WizardState, Any], WizardState]]] = {
    NavigateTo: _navigate,
    GoBack: _go_back,
    SetMembership: _set_membership,
    SetSpinalAdjustment: _set_spinal,
    DeselectSpinalAdjustment: _deselect_spinal,
    SelectTreatment: _select_treatment,
    ClearSelectedTreatment: _clear_treatment,
    SelectVisitCategory: _select_visit_category,
    UpdateDetailField: _update_field,
    UpdateDiscomfort: _update_discomfort,
    AttemptSubmit: _attempt_submit,
    SubmissionStarted: _submission_started,
    SubmissionSucceeded: _submission_succeeded,
    SubmissionFailed: _submission_failed,
    Reset: _reset,
}


def transition(state: WizardState, event: object) -> WizardState:
    """Apply ``event`` to ``state`` and return the resulting state."""
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"Unsupported wizard event: {type(event).__name__}")
    if state.is_complete and not isinstance(event, Reset):
        return state
    return handler(state, event)
