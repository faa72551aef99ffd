"""Dispatcher introspection models."""

from pydantic import BaseModel, Field


class QueueStats(BaseModel):
    """Point-in-time view of the dispatch queue."""

    running: bool = Field(..., description="Whether the dispatcher accepts notifications")
    queued: int = Field(..., ge=0, description="Notifications waiting for a worker")
    capacity: int = Field(..., ge=0, description="Maximum queued notifications")
    in_flight: int = Field(default=0, ge=0, description="Queued plus currently processing")
    workers: int = Field(default=0, ge=0, description="Active worker tasks")


class SweepResult(BaseModel):
    """Outcome of one retry scheduler pass."""

    found: int = Field(default=0, ge=0, description="Due notifications returned by the store")
    enqueued: int = Field(default=0, ge=0, description="Notifications resubmitted")
    skipped: int = Field(default=0, ge=0, description="Notifications left for a later sweep")
