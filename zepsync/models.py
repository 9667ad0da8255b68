"""Shared pydantic models: the contract between the client, the engine and main.py."""

from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator


class TimeEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    ticket_id: str  # the ticket this entry was fetched for
    employee_id: str
    date: str  # YYYY-MM-DD
    start_time: str | None = None
    end_time: str | None = None
    duration_hours: float = Field(default=0.0, ge=0)
    description: str = ""
    project: str | None = None
    activity: str | None = None
    billable: bool = False


class TicketDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    planned_hours: float = Field(default=0.0, ge=0)
    description: str | None = None
    status: str | None = None


class TicketSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    ticket_id: str
    planned_hours: float = 0.0
    actual_hours: float = 0.0
    entry_count: int = 0
    details: TicketDetails | None = None


class TicketFailure(BaseModel):
    """A ticket that was skipped during aggregation."""

    model_config = ConfigDict(frozen=True)

    ticket_id: str
    error: str  # error class name
    message: str


class DateRange(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_date: str = Field(alias="from")
    to_date: str = Field(alias="to")


class TimeEntrySummary(BaseModel):
    """Result of one aggregation run. Only total_hours is written back to the work item."""

    model_config = ConfigDict(frozen=True)

    total_entries: int
    total_hours: float
    total_planned_hours: float = 0.0
    ticket_summaries: list[TicketSummary] = []
    ticket_ids: list[str]
    date_range: DateRange
    failures: list[TicketFailure] = []


class TimeEntryFilter(BaseModel):
    model_config = ConfigDict(frozen=True)

    date_from: date | None = None
    date_to: date | None = None
    employee_id: str | None = None
    ticket_id: str | None = None  # substring match, applied before fetching

    def matches_ticket(self, ticket_id: str) -> bool:
        if not self.ticket_id:
            return True
        return self.ticket_id.lower() in ticket_id.lower()

    def query_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.date_from:
            params["date_from"] = self.date_from.isoformat()
        if self.date_to:
            params["date_to"] = self.date_to.isoformat()
        if self.employee_id:
            params["employee_id"] = self.employee_id
        return params


class Credentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_key: SecretStr | None = None
    base_url: str | None = None
    use_proxy: bool = False
    proxy_url: str | None = None

    @field_validator("base_url", "proxy_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip().rstrip("/") or None


class ProcessStatus(BaseModel):
    """Progress report emitted by the integration workflow."""

    model_config = ConfigDict(frozen=True)

    step: Literal["reading", "fetching", "updating", "complete", "error"]
    message: str
    progress: float | None = None
    total_steps: int | None = None


class FieldValidation(BaseModel):
    model_config = ConfigDict(frozen=True)

    ticket_id_field: bool
    duration_field: bool
