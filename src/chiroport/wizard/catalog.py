"""Static service catalogs offered by the intake wizard."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True)
class Treatment:
    title: str
    price: str = ""
    time: str = ""
    description: str = ""


TREATMENTS: Final[tuple[Treatment, ...]] = (
    Treatment("Body on the Go", "$69", "10 min", "Full spinal and neck adjustment"),
    Treatment(
        "Total Wellness",
        "$99",
        "20 min",
        "Our signature service: trigger point muscle therapy, full-body stretch, "
        "and complete spinal & neck adjustments",
    ),
    Treatment(
        "Sciatica & Lower Back Targeted Therapy",
        "$119",
        "20 min",
        "Focused spinal adjustments and muscle work to relieve sciatica and lower back discomfort",
    ),
    Treatment(
        "Neck & Upper Back Targeted Therapy",
        "$119",
        "20 min",
        "Focused spinal adjustments and muscle work to relieve neck and upper back discomfort",
    ),
    Treatment(
        "Trigger Point Muscle Therapy & Stretch",
        "$89",
        "20 min",
        "Relieve postural muscle tightness from travel, enhance blood flow, "
        "and calm your nervous system",
    ),
    Treatment(
        "Chiro Massage",
        "$79",
        "20 min",
        "Thai-inspired massage blending trigger-point muscle therapy, dynamic stretching, "
        "and mechanical massagers",
    ),
    Treatment(
        "Chiro Massage Mini",
        "$39",
        "10 min",
        "Thai-inspired massage blending trigger-point muscle therapy and mechanical massagers",
    ),
    Treatment(
        "Undecided",
        description="Not sure which therapy is right? Discuss your needs with our chiropractor "
        "to choose the best treatment",
    ),
)

UNDECIDED_TREATMENT: Final[Treatment] = TREATMENTS[-1]

MASSAGE_OPTIONS: Final[tuple[Treatment, ...]] = (
    Treatment("15 Minutes", "$55"),
    Treatment("20 Minutes", "$65"),
    Treatment("30 Minutes", "$85"),
)

DISCOMFORT_OPTIONS: Final[tuple[str, ...]] = (
    "Neck Tension or Stiffness",
    "Headache",
    "Upper Back Tightness",
    "Lower Back Tightness",
    "Sciatica",
    "General Soreness",
    "No discomfort",
)


def find_treatment(title: str) -> Treatment | None:
    """Look up a treatment or massage option by its display title."""
    for treatment in (*TREATMENTS, *MASSAGE_OPTIONS):
        if treatment.title == title:
            return treatment
    return None
