"""Response schemas for queue submission and visit lookups."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QueueSubmissionOut(_CamelModel):
    """Normalized result of joining the queue."""

    success: bool = True
    queue_entry_id: str
    public_token: str
    queue_id: str
    status: str
    created_at: str
    queue_position: int | None = None
    estimated_wait_time: int | None = None
    already_in_queue: bool | None = None


class VisitStatusOut(_CamelModel):
    """Public view of a visit held by the queueing provider."""

    id: str
    status: str | None = None
    queue_position: int | None = None
    estimated_wait_time: int | None = None
    wait_time: int | None = None
    service_name: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
