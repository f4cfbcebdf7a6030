"""Intake submission schemas accepted by ``POST /api/waitwhile/submit``."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class TreatmentSelection(BaseModel):
    """Treatment chosen in the wizard, as displayed to the customer."""

    title: str
    price: str = ""
    time: str = ""
    description: str = ""


class IntakeSubmission(BaseModel):
    """Finished wizard payload forwarded to the queueing provider."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    email: EmailStr | None = None
    birthday: str | None = None
    discomfort: list[str] = Field(default_factory=list)
    additional_info: str | None = None
    consent: bool
    selected_treatment: TreatmentSelection | None = None
    spinal_adjustment: bool | None = None
    location_id: str = Field(..., min_length=1)
    service_label: str | None = None

    @field_validator("email", "birthday", "additional_info", "service_label", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("consent")
    @classmethod
    def _require_consent(cls, value: bool) -> bool:
        if value is not True:
            raise ValueError("Consent to treatment is required")
        return value
