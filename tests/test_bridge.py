"""Tests for FieldBridge."""

from unittest.mock import MagicMock

import pytest

from zepsync.bridge import FieldBridge, parse_ticket_ids
from zepsync.errors import AuthError, FieldError

TICKET_FIELD = "Custom.ZEPNummer"
DURATION_FIELD = "CUSTOM.IST"


def _bridge(service: MagicMock) -> FieldBridge:
    return FieldBridge(service, TICKET_FIELD, DURATION_FIELD)


def _service(value=None) -> MagicMock:
    service = MagicMock()
    service.get_field.return_value = value
    return service


class TestParseTicketIds:
    def test_trims_and_drops_empty_segments(self) -> None:
        assert parse_ticket_ids("8136, 8403 ,, 8501") == ["8136", "8403", "8501"]

    def test_single_id(self) -> None:
        assert parse_ticket_ids("8136") == ["8136"]

    def test_numeric_value(self) -> None:
        assert parse_ticket_ids(8136) == ["8136"]

    def test_none(self) -> None:
        assert parse_ticket_ids(None) == []

    def test_only_commas(self) -> None:
        assert parse_ticket_ids(" , ,") == []


class TestReadTicketIds:
    def test_reads_configured_field(self) -> None:
        service = _service("8136, 8403 ,, 8501")
        assert _bridge(service).read_ticket_ids() == ["8136", "8403", "8501"]
        service.get_field.assert_called_once_with(TICKET_FIELD)

    @pytest.mark.parametrize("value", [None, "", " , ,"])
    def test_empty_field_is_field_error(self, value) -> None:
        with pytest.raises(FieldError) as exc_info:
            _bridge(_service(value)).read_ticket_ids()
        assert exc_info.value.field_name == TICKET_FIELD
        assert exc_info.value.operation == "read"

    def test_service_failure_is_field_error(self) -> None:
        service = MagicMock()
        service.get_field.side_effect = RuntimeError("boom")
        with pytest.raises(FieldError, match="boom"):
            _bridge(service).read_ticket_ids()

    def test_classified_errors_pass_through(self) -> None:
        service = MagicMock()
        service.get_field.side_effect = AuthError("bad PAT")
        with pytest.raises(AuthError):
            _bridge(service).read_ticket_ids()


class TestWriteDuration:
    def test_writes_configured_field(self) -> None:
        service = _service()
        _bridge(service).write_duration(20.75)
        service.set_field.assert_called_once_with(DURATION_FIELD, 20.75)

    def test_failure_is_field_error(self) -> None:
        service = MagicMock()
        service.set_field.side_effect = RuntimeError("field does not exist")
        with pytest.raises(FieldError) as exc_info:
            _bridge(service).write_duration(1.0)
        assert exc_info.value.operation == "write"
        assert "permission" in exc_info.value.message


class TestValidateFieldsPresent:
    def test_both_present(self) -> None:
        service = MagicMock()
        service.get_all_fields.return_value = {TICKET_FIELD: "8136", DURATION_FIELD: 0, "System.Title": "x"}
        result = _bridge(service).validate_fields_present()
        assert result.ticket_id_field is True
        assert result.duration_field is True

    def test_missing_duration_field(self) -> None:
        service = MagicMock()
        service.get_all_fields.return_value = {TICKET_FIELD: "8136"}
        result = _bridge(service).validate_fields_present()
        assert result.ticket_id_field is True
        assert result.duration_field is False

    def test_never_raises(self) -> None:
        service = MagicMock()
        service.get_all_fields.side_effect = RuntimeError("offline")
        result = _bridge(service).validate_fields_present()
        assert (result.ticket_id_field, result.duration_field) == (False, False)
