"""Shared test fixtures."""

import pytest

from zepsync.models import Credentials, DateRange, TicketDetails, TicketSummary, TimeEntry, TimeEntrySummary

BASE_URL = "https://www.zep-online.de/zepinstance"
PROXY_URL = "https://relay.example.com/api/zep"


def _make_entry(ticket_id: str = "8136", duration: float = 1.5, date: str = "2024-03-04", **kwargs) -> TimeEntry:
    defaults = {
        "id": f"{ticket_id}-{date}-{duration}",
        "ticket_id": ticket_id,
        "employee_id": "jdoe",
        "date": date,
        "start_time": "09:00:00",
        "end_time": "10:30:00",
        "duration_hours": duration,
    }
    defaults.update(kwargs)
    return TimeEntry(**defaults)


@pytest.fixture
def direct_credentials() -> Credentials:
    return Credentials(api_key="zep_secret_key_123", base_url=BASE_URL)  # type: ignore[arg-type]


@pytest.fixture
def proxy_credentials() -> Credentials:
    return Credentials(base_url=BASE_URL, use_proxy=True, proxy_url=PROXY_URL)


@pytest.fixture
def sample_entry() -> TimeEntry:
    return _make_entry()


@pytest.fixture
def sample_details() -> TicketDetails:
    return TicketDetails(id="8136", title="Customer portal login", planned_hours=16.0, status="open")


@pytest.fixture
def sample_summary(sample_details: TicketDetails) -> TimeEntrySummary:
    return TimeEntrySummary(
        total_entries=2,
        total_hours=2.5,
        total_planned_hours=16.0,
        ticket_summaries=[
            TicketSummary(
                ticket_id="8136",
                planned_hours=16.0,
                actual_hours=2.5,
                entry_count=2,
                details=sample_details,
            )
        ],
        ticket_ids=["8136"],
        date_range=DateRange(from_date="2024-03-04", to_date="2024-03-05"),
    )


@pytest.fixture
def make_entry():
    return _make_entry
