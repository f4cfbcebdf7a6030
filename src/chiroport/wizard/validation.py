"""Details-step validation and flow requirement checks."""

from __future__ import annotations

import re
from dataclasses import asdict
from datetime import date
from typing import Final

from pydantic import BaseModel, EmailStr, TypeAdapter, ValidationError, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

from chiroport.wizard.engine import IntakeDetails, WizardState
from chiroport.wizard.flows import IntakeCategory, VisitCategory

NAME_REQUIRED: Final[str] = "Name is required"
PHONE_REQUIRED: Final[str] = "Phone is required"
PHONE_INVALID: Final[str] = "Invalid phone number"
EMAIL_INVALID: Final[str] = "Invalid email"
BIRTHDAY_REQUIRED: Final[str] = "Birthday is required"
BIRTHDAY_INVALID: Final[str] = "Invalid date format (MM/DD/YYYY)"
DISCOMFORT_REQUIRED: Final[str] = "Please select at least one option"
CONSENT_REQUIRED: Final[str] = "You must consent to treatment to proceed"

MIN_BIRTH_YEAR: Final[int] = 1900
_BIRTHDAY_PATTERN = re.compile(r"^(0[1-9]|1[0-2])/(0[1-9]|[12]\d|3[01])/\d{4}$")
_INTERNATIONAL_PHONE = re.compile(r"^\+\d{7,15}$")
_EMAIL_ADAPTER: TypeAdapter[str] = TypeAdapter(EmailStr)


def _fail(message: str) -> PydanticCustomError:
    return PydanticCustomError("details", message)


def is_valid_phone(phone: str) -> bool:
    """Accept 10-digit US numbers or ``+`` followed by 7-15 digits."""
    if not phone:
        return False
    if phone.startswith("+"):
        return bool(_INTERNATIONAL_PHONE.match(re.sub(r"[^\d+]", "", phone)))
    return len(re.sub(r"\D", "", phone)) == 10


def is_valid_birthday(birthday: str, *, today: date | None = None) -> bool:
    """Return True for a real ``MM/DD/YYYY`` date between 1900 and this year."""
    if not _BIRTHDAY_PATTERN.match(birthday):
        return False
    month, day, year = (int(part) for part in birthday.split("/"))
    try:
        date(year, month, day)
    except ValueError:
        return False
    current_year = (today or date.today()).year
    return MIN_BIRTH_YEAR <= year <= current_year


class DetailsForm(BaseModel):
    """Details-step fields. Optional requirements come from validation context."""

    name: str = ""
    phone: str = ""
    email: str = ""
    birthday: str = ""
    discomfort: list[str] = []
    additional_info: str = ""
    consent: bool = False

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not value.strip():
            raise _fail(NAME_REQUIRED)
        return value

    @field_validator("phone")
    @classmethod
    def _check_phone(cls, value: str) -> str:
        if not value:
            raise _fail(PHONE_REQUIRED)
        if not is_valid_phone(value):
            raise _fail(PHONE_INVALID)
        return value

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str, info: ValidationInfo) -> str:
        required = (info.context or {}).get("require_email", True)
        if not value and not required:
            return value
        try:
            _EMAIL_ADAPTER.validate_python(value)
        except ValidationError:
            raise _fail(EMAIL_INVALID) from None
        return value

    @field_validator("birthday")
    @classmethod
    def _check_birthday(cls, value: str, info: ValidationInfo) -> str:
        if not (info.context or {}).get("require_birthday", False):
            return value
        if not value:
            raise _fail(BIRTHDAY_REQUIRED)
        if not is_valid_birthday(value):
            raise _fail(BIRTHDAY_INVALID)
        return value

    @field_validator("discomfort")
    @classmethod
    def _check_discomfort(cls, value: list[str], info: ValidationInfo) -> list[str]:
        if (info.context or {}).get("require_discomfort", False) and not value:
            raise _fail(DISCOMFORT_REQUIRED)
        return value

    @field_validator("consent")
    @classmethod
    def _check_consent(cls, value: bool) -> bool:
        if value is not True:
            raise _fail(CONSENT_REQUIRED)
        return value


def validate_details(
    details: IntakeDetails,
    *,
    require_email: bool = True,
    require_birthday: bool = False,
    require_discomfort: bool = False,
) -> dict[str, list[str]]:
    """Return field name -> error messages; empty when the details are valid."""
    payload = asdict(details)
    payload["discomfort"] = list(details.discomfort)
    try:
        DetailsForm.model_validate(
            payload,
            context={
                "require_email": require_email,
                "require_birthday": require_birthday,
                "require_discomfort": require_discomfort,
            },
        )
    except ValidationError as exc:
        errors: dict[str, list[str]] = {}
        for error in exc.errors():
            field_name = str(error["loc"][0]) if error["loc"] else "__root__"
            errors.setdefault(field_name, []).append(error["msg"])
        return errors
    return {}


def missing_flow_requirement(state: WizardState) -> str | None:
    """Return a message describing the unanswered question blocking submission."""
    if state.intake_category is IntakeCategory.OFFERS_MASSAGE:
        if state.visit_category is None:
            return "Select a category before joining the queue."
        if state.visit_category is VisitCategory.PRIORITY_PASS and state.spinal_adjustment is None:
            return "Answer the add-on question before joining the queue."
        if state.visit_category is VisitCategory.MASSAGE and state.selected_treatment is None:
            return "Select a massage option before joining the queue."
        return None

    if state.is_member is None:
        return "Answer the membership question before joining the queue."
    if state.is_member and state.spinal_adjustment is None:
        return "Answer the add-on question before joining the queue."
    return None
