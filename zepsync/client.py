"""ZEP REST API client: attendances and ticket metadata."""

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

import httpx

from zepsync.errors import (
    ApiError,
    AuthError,
    ConfigError,
    ConnectivityError,
    NotFoundError,
    PermissionDeniedError,
    UnknownError,
    ZepSyncError,
)
from zepsync.log import mask_secret
from zepsync.models import Credentials, TicketDetails, TimeEntry, TimeEntryFilter

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
BASE_URL_HEADER = "X-ZEP-Base-URL"
DEFAULT_TIMEOUT = 30.0
DEFAULT_PAGE_SIZE = 100

_TIME_FORMATS = ("%H:%M:%S", "%H:%M")


def calculate_duration(start_time: str | None, end_time: str | None) -> float:
    """Hours between two time-of-day strings, rounded to 2 decimals.

    Only used for API variants that omit ``duration``. Returns 0 when either
    time is missing or unparseable, or when end precedes start.
    """
    if not start_time or not end_time:
        return 0.0
    start = _parse_time(start_time)
    end = _parse_time(end_time)
    if start is None or end is None or end < start:
        return 0.0
    hours = Decimal((end - start).total_seconds()) / Decimal(3600)
    return float(hours.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _parse_time(value: str) -> datetime | None:
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt)
        except ValueError:
            continue
    return None


def _to_float(value: object) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _to_str(value: object) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


class ZepClient:
    def __init__(
        self,
        credentials: Credentials,
        timeout: float = DEFAULT_TIMEOUT,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        if credentials.use_proxy:
            if not credentials.proxy_url:
                raise ConfigError("Proxy mode is enabled but no proxy URL is configured. Run: zepsync login")
        elif not credentials.api_key or not credentials.base_url:
            raise ConfigError(
                "ZEP API credentials are incomplete. Please configure API key and base URL (run: zepsync login)."
            )
        self._credentials = credentials
        self._timeout = timeout
        self._page_size = page_size
        self._headers = self._build_headers()

        logger.debug(
            "ZEP client configured: base_url=%s use_proxy=%s proxy_url=%s api_key=%s",
            credentials.base_url or "NOT SET",
            credentials.use_proxy,
            credentials.proxy_url or "NOT SET",
            mask_secret(credentials.api_key.get_secret_value() if credentials.api_key else None),
        )

    @property
    def config(self) -> Credentials:
        return self._credentials

    def _build_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._credentials.use_proxy:
            # The relay injects the bearer token server-side.
            if self._credentials.base_url:
                headers[BASE_URL_HEADER] = self._credentials.base_url
        else:
            headers["Authorization"] = f"Bearer {self._credentials.api_key.get_secret_value()}"  # type: ignore[union-attr]
        return headers

    def _url(self, endpoint: str) -> str:
        if self._credentials.use_proxy:
            return f"{self._credentials.proxy_url}{endpoint}"
        return f"{self._credentials.base_url}{API_PREFIX}{endpoint}"

    def _connectivity_message(self) -> str:
        if self._credentials.use_proxy:
            return (
                f"Cannot connect to proxy server at {self._credentials.proxy_url}.\n"
                f"1. Check that the proxy server is running: {self.health_url}\n"
                "2. Verify the proxy allows requests from your origin (CORS policy)\n"
                "3. Check network connectivity to the proxy server"
            )
        return (
            f"Cannot connect to ZEP API at {self._credentials.base_url}.\n"
            "1. Enable proxy mode (zepsync login) to route requests through a CORS relay\n"
            "2. Ask your ZEP administrator to allow your origin in the server's CORS policy\n"
            "3. Check network connectivity to the ZEP server"
        )

    def _get(self, endpoint: str, params: dict | None = None) -> dict | list:
        url = self._url(endpoint)
        logger.debug("GET %s params=%s", url, params)
        try:
            response = httpx.get(url, headers=self._headers, params=params or {}, timeout=self._timeout)
        except httpx.TimeoutException as exc:
            raise ConnectivityError(
                f"Request timed out after {self._timeout:g}s. {self._connectivity_message()}", reason="timeout"
            ) from exc
        except httpx.TransportError as exc:
            raise ConnectivityError(self._connectivity_message(), reason="unreachable") from exc

        logger.debug("Response status: %s", response.status_code)
        if response.status_code == 401:
            raise AuthError("Invalid API key. Please check your ZEP credentials.")
        if response.status_code == 403:
            raise PermissionDeniedError("Access forbidden. Check your API permissions.")
        if response.status_code == 404:
            raise NotFoundError(f"Resource not found: {endpoint}. Check the base URL.")
        if not response.is_success:
            raise ApiError(
                f"ZEP API error ({response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise UnknownError(f"ZEP API returned a non-JSON response for {endpoint}") from exc

    # -- attendances --------------------------------------------------------

    def _entry_from_item(self, item: dict, ticket_id: str) -> TimeEntry:
        start_time = _to_str(item.get("from", item.get("start_time")))
        end_time = _to_str(item.get("to", item.get("end_time")))
        duration = _to_float(item.get("duration"))
        if duration is None:
            duration = calculate_duration(start_time, end_time)
        if duration < 0:
            logger.warning("Negative duration %s on entry %s, treating as 0", duration, item.get("id"))
            duration = 0.0
        return TimeEntry(
            id=_to_str(item.get("id")) or "",
            ticket_id=ticket_id,
            employee_id=_to_str(item.get("employee_id", item.get("employeeId"))) or "",
            date=(_to_str(item.get("date")) or "")[:10],
            start_time=start_time,
            end_time=end_time,
            duration_hours=duration,
            description=_to_str(item.get("note")) or _to_str(item.get("description")) or "",
            project=_to_str(item.get("project_id")) or ticket_id,
            activity=_to_str(item.get("activity_id")),
            billable=bool(item.get("billable") or False),
        )

    @staticmethod
    def _page_items(payload: dict | list) -> list[dict]:
        if isinstance(payload, list):
            return payload
        if not isinstance(payload, dict):
            raise TypeError(f"expected an object or a list, got {type(payload).__name__}")
        items = payload.get("data", payload.get("items"))
        return items if isinstance(items, list) else []

    @staticmethod
    def _last_page(payload: dict | list) -> int | None:
        meta = payload.get("meta") if isinstance(payload, dict) else None
        if not isinstance(meta, dict) or meta.get("last_page") is None:
            return None
        return int(meta["last_page"])

    def fetch_entries_for_ticket(self, ticket_id: str, filter: TimeEntryFilter | None = None) -> list[TimeEntry]:
        """Fetch every attendance recorded on a ticket, walking all pages.

        The page counter is ours; the server's ``current_page`` is not trusted
        to advance, so at most ``last_page`` requests are made.
        """
        entries: list[TimeEntry] = []
        page = 1
        while True:
            params = {"ticket_id": ticket_id, "limit": str(self._page_size), "page": str(page)}
            if filter:
                params.update(filter.query_params())
            payload = self._get("/attendances", params=params)
            try:
                entries.extend(self._entry_from_item(item, ticket_id) for item in self._page_items(payload))
                last_page = self._last_page(payload)
            except (AttributeError, TypeError, ValueError) as exc:
                # ValueError also covers pydantic's ValidationError
                raise UnknownError(f"Unexpected response from ZEP API for ticket {ticket_id}: {exc}") from exc

            if last_page is None or page >= last_page:
                break
            page += 1

        logger.info("Found %d time entries for ticket %s", len(entries), ticket_id)
        return entries

    # -- tickets ------------------------------------------------------------

    @staticmethod
    def fallback_ticket(ticket_id: str, reason: str) -> TicketDetails:
        return TicketDetails(
            id=ticket_id,
            title=f"Ticket {ticket_id}",
            planned_hours=0.0,
            description=f"Ticket details unavailable: {reason}",
        )

    def fetch_ticket_details(self, ticket_id: str) -> TicketDetails:
        """Fetch planned hours and title. Never raises: failures yield a fallback record."""
        try:
            payload = self._get(f"/tickets/{ticket_id}")
        except ZepSyncError as exc:
            logger.warning("Could not fetch details for ticket %s: %s", ticket_id, exc.message)
            return self.fallback_ticket(ticket_id, exc.message)

        node = payload.get("data", payload) if isinstance(payload, dict) else {}
        if not isinstance(node, dict):
            node = {}
        planned = _to_float(node.get("planned_hours"))
        try:
            return TicketDetails(
                id=_to_str(node.get("id")) or ticket_id,
                title=_to_str(node.get("title")) or _to_str(node.get("name")) or f"Ticket {ticket_id}",
                planned_hours=max(planned or 0.0, 0.0),
                description=_to_str(node.get("description")),
                status=_to_str(node.get("status")),
            )
        except ValueError as exc:
            logger.warning("Unexpected details payload for ticket %s: %s", ticket_id, exc)
            return self.fallback_ticket(ticket_id, "unexpected response")

    def fetch_many_ticket_details(self, ticket_ids: list[str]) -> list[TicketDetails]:
        return [self.fetch_ticket_details(ticket_id) for ticket_id in ticket_ids]

    # -- diagnostics --------------------------------------------------------

    def test_connection(self) -> bool:
        """Issue a minimal attendances request; raises the classified error on failure."""
        self._get("/attendances", params={"limit": "1"})
        return True

    @property
    def health_url(self) -> str | None:
        if not self._credentials.proxy_url:
            return None
        # The relay serves /health at its origin, next to the /api/zep prefix.
        url = httpx.URL(self._credentials.proxy_url)
        return f"{url.scheme}://{url.netloc.decode('ascii')}/health"

    def check_proxy_health(self) -> dict:
        """Call the relay's /health endpoint."""
        if not self._credentials.use_proxy or not self.health_url:
            raise ConfigError("Proxy mode is not enabled; there is no relay to check.")
        try:
            response = httpx.get(self.health_url, headers={"Accept": "application/json"}, timeout=self._timeout)
        except httpx.TimeoutException as exc:
            raise ConnectivityError(self._connectivity_message(), reason="timeout") from exc
        except httpx.TransportError as exc:
            raise ConnectivityError(self._connectivity_message(), reason="unreachable") from exc
        if not response.is_success:
            raise ApiError(
                f"Proxy health check failed ({response.status_code})",
                status_code=response.status_code,
                body=response.text,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise UnknownError("Proxy health endpoint returned a non-JSON response") from exc
