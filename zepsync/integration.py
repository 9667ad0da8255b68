"""End-to-end workflow: read ticket ids, aggregate ZEP time, write the total back."""

import logging
import threading
from collections.abc import Callable

from zepsync.bridge import FieldBridge
from zepsync.client import ZepClient
from zepsync.engine import Aggregator
from zepsync.errors import ZepSyncError
from zepsync.models import ProcessStatus, TimeEntry, TimeEntryFilter, TimeEntrySummary

logger = logging.getLogger(__name__)

TOTAL_STEPS = 4

StatusCallback = Callable[[ProcessStatus], None]


def run_integration(
    bridge: FieldBridge,
    client: ZepClient,
    *,
    filter: TimeEntryFilter | None = None,
    with_details: bool = False,
    write: bool = True,
    cancel: threading.Event | None = None,
    on_status: StatusCallback | None = None,
) -> TimeEntrySummary:
    """Run one integration pass. With write=False nothing is written back (dry run)."""

    def report(step: str, message: str, progress: float | None = None) -> None:
        logger.debug("[%s] %s", step, message)
        if on_status:
            on_status(ProcessStatus(step=step, message=message, progress=progress, total_steps=TOTAL_STEPS))  # type: ignore[arg-type]

    try:
        report("reading", "Reading ZEP ticket ids from work item...", 1)
        ticket_ids = bridge.read_ticket_ids()

        report("fetching", f"Fetching time entries for {len(ticket_ids)} ZEP tickets...", 2)
        summary = Aggregator(client).aggregate(ticket_ids, filter, with_details=with_details, cancel=cancel)

        if write:
            report("updating", f"Writing {summary.total_hours}h to {bridge.duration_field}...", 3)
            bridge.write_duration(summary.total_hours)
        else:
            report("updating", "Dry run: work item not updated", 3)
    except ZepSyncError as exc:
        report("error", exc.message)
        raise

    report(
        "complete",
        f"Successfully processed {summary.total_hours} hours from {summary.total_entries} time entries",
        TOTAL_STEPS,
    )
    return summary


def preview_time_entries(
    bridge: FieldBridge,
    client: ZepClient,
    filter: TimeEntryFilter | None = None,
) -> list[TimeEntry]:
    """Fetch the entries a sync would use, without writing anything or requiring any data."""
    ticket_ids = bridge.read_ticket_ids()
    entries, _ = Aggregator(client).collect(ticket_ids, filter)
    return entries
