"""Error taxonomy.

Every error decides once, at classification time, whether it is fatal for an
aggregation run. Fatal errors abort the whole run; the others only cost the
ticket that raised them.
"""


class ZepSyncError(Exception):
    fatal = True

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigError(ZepSyncError):
    """Missing credentials, base URL or field configuration."""


class ConnectivityError(ZepSyncError):
    """Network unreachable, blocked by CORS, or timed out."""

    def __init__(self, message: str, reason: str = "unreachable") -> None:
        super().__init__(message)
        self.reason = reason  # "unreachable" | "timeout"


class AuthError(ZepSyncError):
    def __init__(self, message: str, status_code: int | None = 401) -> None:
        super().__init__(message)
        self.status_code = status_code


class PermissionDeniedError(AuthError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=403)


class NotFoundError(ZepSyncError):
    fatal = False

    def __init__(self, message: str, status_code: int = 404) -> None:
        super().__init__(message)
        self.status_code = status_code


class ApiError(ZepSyncError):
    """Non-2xx response other than 401/403/404."""

    fatal = False

    def __init__(self, message: str, status_code: int, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class NoDataError(ZepSyncError):
    def __init__(self, ticket_ids: list[str]) -> None:
        listed = ", ".join(ticket_ids) if ticket_ids else "(none)"
        super().__init__(f"No time entries found for ZEP tickets: {listed}")
        self.ticket_ids = list(ticket_ids)


class UnknownError(ZepSyncError):
    """Anything the client could not classify."""


class FieldError(ZepSyncError):
    def __init__(self, field_name: str, operation: str, detail: str | None = None) -> None:
        message = f"Failed to {operation} field: {field_name}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.field_name = field_name
        self.operation = operation  # "read" | "write"


class AggregationCancelled(ZepSyncError):
    def __init__(self, message: str = "Aggregation cancelled") -> None:
        super().__init__(message)
