from pydantic import Field

from app.api.schemas.common import CamelModel


class SweepDeadlinesRequest(CamelModel):
    booking_id: str


class DeadlineCheckReport(CamelModel):
    booking_id: str
    status: str | None = None
    checks_performed: list[str] = Field(default_factory=list)
    actions_taken: list[str] = Field(default_factory=list)
    notifications_sent: list[str] = Field(default_factory=list)


class SweepAllResponse(CamelModel):
    evaluated: int
    results: list[DeadlineCheckReport]


class DispatchOutboxResponse(CamelModel):
    worker_id: str
    processed: int = 0
    retried: int = 0
    failed: int = 0
