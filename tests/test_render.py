"""Tests for duration formatting and table rendering in main.py."""

import pytest
from rich.console import Console

from zepsync.main import format_duration, render_entries, render_summary
from zepsync.models import DateRange, TicketDetails, TicketSummary, TimeEntrySummary


def _render(table) -> str:
    console = Console(width=160, record=True)
    with console.capture() as capture:
        console.print(table)
    return capture.get()


class TestFormatDuration:
    @pytest.mark.parametrize(
        "hours, expected",
        [
            (0, "0h"),
            (0.75, "45m"),
            (1.0, "1h"),
            (2.5, "2h 30m"),
            (20.75, "20h 45m"),
            (0.001, "0h"),
        ],
    )
    def test_formats(self, hours: float, expected: str) -> None:
        assert format_duration(hours) == expected


class TestRenderSummary:
    def test_includes_tickets_and_total(self) -> None:
        summary = TimeEntrySummary(
            total_entries=3,
            total_hours=5.5,
            total_planned_hours=4.5,
            ticket_ids=["8136", "8403"],
            ticket_summaries=[
                TicketSummary(
                    ticket_id="8136",
                    planned_hours=4.5,
                    actual_hours=2.5,
                    entry_count=2,
                    details=TicketDetails(id="8136", title="Checkout flow", planned_hours=4.5),
                ),
                TicketSummary(ticket_id="8403", actual_hours=3.0, entry_count=1),
            ],
            date_range=DateRange(from_date="2024-03-01", to_date="2024-03-09"),
        )
        out = _render(render_summary(summary))

        assert "Checkout flow" in out
        assert "2h 30m" in out
        assert "5h 30m" in out
        assert "2024-03-01" in out

    def test_includes_total_row(self, sample_summary) -> None:
        out = _render(render_summary(sample_summary))
        assert "Total" in out


class TestRenderEntries:
    def test_sorted_by_date(self, make_entry) -> None:
        entries = [
            make_entry("8136", 1.0, "2024-03-09"),
            make_entry("8136", 0.5, "2024-03-01", start_time="09:00", end_time="09:30"),
        ]
        out = _render(render_entries(entries))

        assert "2 time entries" in out
        assert out.index("2024-03-01") < out.index("2024-03-09")
        assert "09:00" in out
