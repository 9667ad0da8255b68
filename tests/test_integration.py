"""Tests for the read → aggregate → write workflow."""

from unittest.mock import MagicMock

import pytest

from zepsync.bridge import FieldBridge
from zepsync.errors import ConnectivityError, FieldError, NoDataError
from zepsync.integration import preview_time_entries, run_integration
from zepsync.models import ProcessStatus


def _bridge(ticket_value: str | None = "8136, 8403") -> tuple[FieldBridge, MagicMock]:
    service = MagicMock()
    service.get_field.return_value = ticket_value
    return FieldBridge(service, "Custom.ZEPNummer", "CUSTOM.IST"), service


def _client(entries_by_ticket: dict) -> MagicMock:
    client = MagicMock()

    def fetch(ticket_id, filter=None):
        result = entries_by_ticket.get(ticket_id, [])
        if isinstance(result, Exception):
            raise result
        return result

    client.fetch_entries_for_ticket.side_effect = fetch
    client.fetch_many_ticket_details.return_value = []
    return client


class TestRunIntegration:
    def test_writes_total_hours(self, make_entry) -> None:
        bridge, service = _bridge()
        client = _client({"8136": [make_entry("8136", 12.5)], "8403": [make_entry("8403", 8.25)]})

        summary = run_integration(bridge, client)

        assert summary.total_hours == 20.75
        service.set_field.assert_called_once_with("CUSTOM.IST", 20.75)

    def test_dry_run_does_not_write(self, make_entry) -> None:
        bridge, service = _bridge()
        client = _client({"8136": [make_entry("8136", 1.0)]})

        summary = run_integration(bridge, client, write=False)

        assert summary.total_hours == 1.0
        service.set_field.assert_not_called()

    def test_reports_status_steps(self, make_entry) -> None:
        bridge, _ = _bridge()
        client = _client({"8136": [make_entry("8136", 1.0)]})
        statuses: list[ProcessStatus] = []

        run_integration(bridge, client, on_status=statuses.append)

        assert [s.step for s in statuses] == ["reading", "fetching", "updating", "complete"]
        assert statuses[-1].progress == statuses[-1].total_steps

    def test_field_error_stops_before_fetch(self) -> None:
        bridge, _ = _bridge(ticket_value=None)
        client = _client({})
        statuses: list[ProcessStatus] = []

        with pytest.raises(FieldError):
            run_integration(bridge, client, on_status=statuses.append)

        client.fetch_entries_for_ticket.assert_not_called()
        assert statuses[-1].step == "error"

    def test_no_data_does_not_write(self) -> None:
        bridge, service = _bridge()
        with pytest.raises(NoDataError):
            run_integration(bridge, _client({}))
        service.set_field.assert_not_called()

    def test_connectivity_error_propagates(self, make_entry) -> None:
        bridge, service = _bridge()
        client = _client({"8136": ConnectivityError("blocked"), "8403": [make_entry("8403")]})
        with pytest.raises(ConnectivityError):
            run_integration(bridge, client)
        service.set_field.assert_not_called()

    def test_write_failure_surfaces(self, make_entry) -> None:
        bridge, service = _bridge()
        service.set_field.side_effect = RuntimeError("read-only field")
        with pytest.raises(FieldError):
            run_integration(bridge, _client({"8136": [make_entry("8136")]}))


class TestPreview:
    def test_returns_entries_without_writing(self, make_entry) -> None:
        bridge, service = _bridge()
        client = _client({"8136": [make_entry("8136")], "8403": [make_entry("8403"), make_entry("8403", 2.0)]})

        entries = preview_time_entries(bridge, client)

        assert len(entries) == 3
        service.set_field.assert_not_called()

    def test_empty_is_not_an_error(self) -> None:
        bridge, _ = _bridge()
        assert preview_time_entries(bridge, _client({})) == []
