"""Pydantic schemas for request and response payloads."""

from .intake import IntakeSubmission, TreatmentSelection
from .queue import QueueSubmissionOut, VisitStatusOut

__all__ = [
    "IntakeSubmission",
    "TreatmentSelection",
    "QueueSubmissionOut",
    "VisitStatusOut",
]
