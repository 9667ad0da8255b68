"""Reads ticket ids from, and writes durations to, work-item fields."""

import logging
from typing import Any

from zepsync.errors import FieldError, ZepSyncError
from zepsync.models import FieldValidation
from zepsync.workitems.base import FieldService

logger = logging.getLogger(__name__)


def parse_ticket_ids(value: Any) -> list[str]:
    """Split a comma-separated field value: "8136, 8403 ,, 8501" → ["8136", "8403", "8501"]."""
    if value is None:
        return []
    return [part.strip() for part in str(value).split(",") if part.strip()]


class FieldBridge:
    def __init__(self, service: FieldService, ticket_id_field: str, duration_field: str) -> None:
        self._service = service
        self.ticket_id_field = ticket_id_field
        self.duration_field = duration_field

    def read_ticket_ids(self) -> list[str]:
        try:
            value = self._service.get_field(self.ticket_id_field)
        except ZepSyncError:
            raise
        except Exception as exc:
            raise FieldError(self.ticket_id_field, "read", str(exc)) from exc

        if not value:
            raise FieldError(self.ticket_id_field, "read", "no ZEP ticket ids found")
        ticket_ids = parse_ticket_ids(value)
        if not ticket_ids:
            raise FieldError(self.ticket_id_field, "read", "field is empty or contains no valid ticket ids")
        logger.info("Found ZEP ticket ids: %s", ", ".join(ticket_ids))
        return ticket_ids

    def write_duration(self, total_hours: float) -> None:
        try:
            self._service.set_field(self.duration_field, total_hours)
        except ZepSyncError:
            raise
        except Exception as exc:
            raise FieldError(
                self.duration_field,
                "write",
                f"{exc}. Ensure the field exists and you have permission",
            ) from exc
        logger.info("Updated %s to %s hours", self.duration_field, total_hours)

    def validate_fields_present(self) -> FieldValidation:
        """Best-effort existence check; never raises."""
        try:
            fields = self._service.get_all_fields()
        except Exception as exc:
            logger.warning("Field validation failed: %s", exc)
            return FieldValidation(ticket_id_field=False, duration_field=False)
        return FieldValidation(
            ticket_id_field=self.ticket_id_field in fields,
            duration_field=self.duration_field in fields,
        )
