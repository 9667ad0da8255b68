"""Aggregation of ZEP time entries across the tickets linked to a work item."""

import logging
import threading
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from zepsync.client import ZepClient
from zepsync.errors import AggregationCancelled, NoDataError, UnknownError, ZepSyncError
from zepsync.models import (
    DateRange,
    TicketDetails,
    TicketFailure,
    TicketSummary,
    TimeEntry,
    TimeEntryFilter,
    TimeEntrySummary,
)

logger = logging.getLogger(__name__)


def round_hours(value: Decimal | float) -> float:
    """Round half-up to 2 decimals."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _exact_sum(hours: list[float]) -> Decimal:
    # str() keeps 0.1 as 0.1 instead of its binary expansion
    return sum((Decimal(str(h)) for h in hours), Decimal(0))


def total_hours(entries: list[TimeEntry]) -> float:
    return round_hours(_exact_sum([e.duration_hours for e in entries]))


def date_range(entries: list[TimeEntry]) -> DateRange:
    """Min and max entry date; today/today when there are no entries."""
    dates = [e.date for e in entries if e.date]
    if not dates:
        today = date.today().isoformat()
        return DateRange(from_date=today, to_date=today)
    return DateRange(from_date=min(dates), to_date=max(dates))


def summarize_tickets(
    ticket_ids: list[str],
    entries: list[TimeEntry],
    details: list[TicketDetails],
) -> list[TicketSummary]:
    """Per-ticket rollup: one summary per ticket id in input order, zero-valued
    when the ticket has no entries."""
    by_ticket: dict[str, list[TimeEntry]] = {}
    for entry in entries:
        by_ticket.setdefault(entry.ticket_id, []).append(entry)

    details_by_id = {d.id: d for d in details}
    summaries = []
    seen: set[str] = set()
    for ticket_id in ticket_ids:
        if ticket_id in seen:
            continue
        seen.add(ticket_id)
        ticket_entries = by_ticket.get(ticket_id, [])
        ticket = details_by_id.get(ticket_id)
        summaries.append(
            TicketSummary(
                ticket_id=ticket_id,
                planned_hours=ticket.planned_hours if ticket else 0.0,
                actual_hours=total_hours(ticket_entries),
                entry_count=len(ticket_entries),
                details=ticket,
            )
        )
    return summaries


class Aggregator:
    def __init__(self, client: ZepClient) -> None:
        self._client = client

    @staticmethod
    def select(ticket_ids: list[str], filter: TimeEntryFilter | None = None) -> list[str]:
        """Ticket ids that pass the filter's ticket substring, in input order."""
        return [t for t in ticket_ids if filter is None or filter.matches_ticket(t)]

    def collect(
        self,
        ticket_ids: list[str],
        filter: TimeEntryFilter | None = None,
        cancel: threading.Event | None = None,
    ) -> tuple[list[TimeEntry], list[TicketFailure]]:
        """Fetch entries ticket by ticket, skipping tickets whose errors are not fatal."""
        entries: list[TimeEntry] = []
        failures: list[TicketFailure] = []
        selected = self.select(ticket_ids, filter)
        if len(selected) < len(ticket_ids):
            logger.info("Ticket filter excluded %d of %d tickets", len(ticket_ids) - len(selected), len(ticket_ids))

        for index, ticket_id in enumerate(selected, start=1):
            if cancel is not None and cancel.is_set():
                raise AggregationCancelled(f"Aggregation cancelled after {index - 1} of {len(selected)} tickets")
            logger.debug("Fetching time entries for ticket %s (%d/%d)", ticket_id, index, len(selected))
            try:
                entries.extend(self._client.fetch_entries_for_ticket(ticket_id, filter))
            except ZepSyncError as exc:
                if exc.fatal:
                    raise
                logger.warning("Skipping ticket %s: %s", ticket_id, exc.message)
                failures.append(TicketFailure(ticket_id=ticket_id, error=type(exc).__name__, message=exc.message))
            except Exception as exc:
                raise UnknownError(f"Unexpected error: {exc}") from exc
        return entries, failures

    def aggregate(
        self,
        ticket_ids: list[str],
        filter: TimeEntryFilter | None = None,
        *,
        with_details: bool = False,
        cancel: threading.Event | None = None,
    ) -> TimeEntrySummary:
        entries, failures = self.collect(ticket_ids, filter, cancel)
        if not entries:
            raise NoDataError(ticket_ids)

        ticket_summaries: list[TicketSummary] = []
        if with_details:
            selected = self.select(ticket_ids, filter)
            details = self._client.fetch_many_ticket_details(selected)
            ticket_summaries = summarize_tickets(selected, entries, details)

        summary = TimeEntrySummary(
            total_entries=len(entries),
            total_hours=total_hours(entries),
            total_planned_hours=round_hours(_exact_sum([s.planned_hours for s in ticket_summaries])),
            ticket_summaries=ticket_summaries,
            ticket_ids=list(ticket_ids),
            date_range=date_range(entries),
            failures=failures,
        )
        logger.info(
            "Summary: %sh actual / %sh planned across %d entries",
            summary.total_hours,
            summary.total_planned_hours,
            summary.total_entries,
        )
        return summary
