"""zepsync CLI: all commands."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

import tomlkit
import typer
from rich import print as rprint
from rich.markup import escape
from rich.table import Table

from zepsync.bridge import FieldBridge, parse_ticket_ids
from zepsync.client import ZepClient
from zepsync.credentials import CredentialService, LayeredStore, SettingsStore, TomlFileStore
from zepsync.engine import Aggregator, total_hours
from zepsync.errors import ZepSyncError
from zepsync.integration import preview_time_entries, run_integration
from zepsync.log import configure_logging
from zepsync.models import Credentials, ProcessStatus, TimeEntry, TimeEntryFilter, TimeEntrySummary
from zepsync.settings import CONFIG_PATH, ZepSyncSettings, _list_profiles, get_settings
from zepsync.workitems.azure import AzureDevOpsFieldService

app = typer.Typer(help="zepsync: ZEP time tracking → Azure DevOps work items", no_args_is_help=True)

ProfileOpt = Annotated[
    str | None,
    typer.Option("--profile", "-p", help="Profile name from ~/.config/zepsync/config.toml"),
]
DateFromOpt = Annotated[
    datetime | None,
    typer.Option("--from", formats=["%Y-%m-%d"], help="Only entries on or after this date"),
]
DateToOpt = Annotated[
    datetime | None,
    typer.Option("--to", formats=["%Y-%m-%d"], help="Only entries on or before this date"),
]
EmployeeOpt = Annotated[str | None, typer.Option("--employee", "-e", help="Only entries of this ZEP employee")]
TicketOpt = Annotated[str | None, typer.Option("--ticket", "-t", help="Only tickets whose id contains this text")]


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def _settings(profile: str | None) -> ZepSyncSettings:
    settings = get_settings(profile=profile)
    # --verbose has already set DEBUG and wins over the profile's log_level
    if settings.log_level and logging.getLogger("zepsync").level != logging.DEBUG:
        configure_logging(settings.log_level)
    return settings


def get_credential_service(settings: ZepSyncSettings) -> CredentialService:
    return CredentialService(LayeredStore(TomlFileStore(), SettingsStore(settings)))


def get_client(settings: ZepSyncSettings) -> ZepClient:
    # Credentials are read once per run.
    credentials = get_credential_service(settings).get_credentials()
    return ZepClient(credentials, timeout=settings.timeout, page_size=settings.page_size)


def get_bridge(settings: ZepSyncSettings, work_item_id: int) -> FieldBridge:
    service = AzureDevOpsFieldService(settings, work_item_id)
    return FieldBridge(service, settings.ticket_field, settings.duration_field)


def _build_filter(
    date_from: datetime | None,
    date_to: datetime | None,
    employee: str | None,
    ticket: str | None,
) -> TimeEntryFilter | None:
    if not any((date_from, date_to, employee, ticket)):
        return None
    return TimeEntryFilter(
        date_from=date_from.date() if date_from else None,
        date_to=date_to.date() if date_to else None,
        employee_id=employee,
        ticket_id=ticket,
    )


@contextmanager
def _cli_errors() -> Iterator[None]:
    try:
        yield
    except ZepSyncError as exc:
        rprint(f"[red]{escape(exc.message)}[/red]")
        raise typer.Exit(1) from exc


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def format_duration(hours: float) -> str:
    """2.5 → "2h 30m", 0.75 → "45m", 0 → "0h"."""
    minutes_total = int((Decimal(str(hours)) * 60).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if minutes_total == 0:
        return "0h"
    if minutes_total < 60:
        return f"{minutes_total}m"
    whole, minutes = divmod(minutes_total, 60)
    return f"{whole}h" if minutes == 0 else f"{whole}h {minutes}m"


def render_summary(summary: TimeEntrySummary) -> Table:
    table = Table(title=f"ZEP time for tickets {', '.join(summary.ticket_ids)}")
    table.add_column("Ticket", style="cyan")
    table.add_column("Title")
    table.add_column("Entries", justify="right")
    table.add_column("Actual", justify="right")
    table.add_column("Planned", justify="right")

    for ts in summary.ticket_summaries:
        title = ts.details.title if ts.details else "—"
        planned = format_duration(ts.planned_hours) if ts.planned_hours else "—"
        table.add_row(ts.ticket_id, title, str(ts.entry_count), format_duration(ts.actual_hours), planned)

    planned_total = format_duration(summary.total_planned_hours) if summary.total_planned_hours else "—"
    table.add_row(
        "[bold]Total[/bold]",
        f"{summary.date_range.from_date} → {summary.date_range.to_date}",
        str(summary.total_entries),
        f"[bold]{format_duration(summary.total_hours)}[/bold] ({summary.total_hours}h)",
        planned_total,
    )
    return table


def render_entries(entries: list[TimeEntry]) -> Table:
    table = Table(title=f"{len(entries)} time entries")
    table.add_column("Date")
    table.add_column("Ticket", style="cyan")
    table.add_column("Employee")
    table.add_column("From–To", style="dim")
    table.add_column("Duration", justify="right")
    table.add_column("Billable")
    table.add_column("Note")

    for e in sorted(entries, key=lambda e: (e.date, e.start_time or "")):
        span = f"{e.start_time or '?'}–{e.end_time or '?'}" if e.start_time or e.end_time else "—"
        table.add_row(
            e.date,
            e.ticket_id,
            e.employee_id or "—",
            span,
            format_duration(e.duration_hours),
            "yes" if e.billable else "no",
            e.description,
        )
    return table


def _print_status(status: ProcessStatus) -> None:
    # errors are reported by _cli_errors
    if status.step != "error":
        rprint(f"[dim]{escape(status.message)}[/dim]")


def _print_failures(summary: TimeEntrySummary) -> None:
    for failure in summary.failures:
        rprint(f"[yellow]Skipped ticket {failure.ticket_id}:[/yellow] {escape(failure.message)}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    configure_logging(logging.DEBUG if verbose else logging.WARNING)


@app.command("sync")
def sync(
    work_item_id: Annotated[int, typer.Argument(help="Azure DevOps work item ID")],
    profile: ProfileOpt = None,
    details: Annotated[bool, typer.Option("--details", help="Fetch planned hours per ticket")] = False,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Do not write the total back")] = False,
    date_from: DateFromOpt = None,
    date_to: DateToOpt = None,
    employee: EmployeeOpt = None,
    ticket: TicketOpt = None,
) -> None:
    """Aggregate ZEP time for a work item and write the total to its duration field."""
    with _cli_errors():
        settings = _settings(profile)
        bridge = get_bridge(settings, work_item_id)
        client = get_client(settings)
        summary = run_integration(
            bridge,
            client,
            filter=_build_filter(date_from, date_to, employee, ticket),
            with_details=details,
            write=not dry_run,
            on_status=_print_status,
        )

    _print_failures(summary)
    rprint(render_summary(summary))
    if dry_run:
        rprint(f"[yellow]Dry run:[/yellow] {bridge.duration_field} would be set to {summary.total_hours}")
    else:
        rprint(f"[green]✓[/green] {bridge.duration_field} = {summary.total_hours} on work item {work_item_id}")


@app.command("preview")
def preview(
    work_item_id: Annotated[int, typer.Argument(help="Azure DevOps work item ID")],
    profile: ProfileOpt = None,
    date_from: DateFromOpt = None,
    date_to: DateToOpt = None,
    employee: EmployeeOpt = None,
    ticket: TicketOpt = None,
) -> None:
    """List the time entries a sync would count, without writing anything."""
    with _cli_errors():
        settings = _settings(profile)
        entries = preview_time_entries(
            get_bridge(settings, work_item_id),
            get_client(settings),
            _build_filter(date_from, date_to, employee, ticket),
        )

    if not entries:
        rprint("[yellow]No time entries found.[/yellow]")
        return
    rprint(render_entries(entries))
    rprint(f"Total: [bold]{format_duration(total_hours(entries))}[/bold] ({total_hours(entries)}h)")


@app.command("summary")
def summary_cmd(
    ticket_ids: Annotated[list[str], typer.Argument(help="ZEP ticket IDs (e.g. 8136 8403 or 8136,8403)")],
    profile: ProfileOpt = None,
    details: Annotated[bool, typer.Option("--details/--no-details", help="Fetch planned hours per ticket")] = True,
    date_from: DateFromOpt = None,
    date_to: DateToOpt = None,
    employee: EmployeeOpt = None,
    ticket: TicketOpt = None,
) -> None:
    """Aggregate ZEP time for tickets given on the command line."""
    ids = parse_ticket_ids(",".join(ticket_ids))
    with _cli_errors():
        settings = _settings(profile)
        summary = Aggregator(get_client(settings)).aggregate(
            ids,
            _build_filter(date_from, date_to, employee, ticket),
            with_details=details,
        )

    _print_failures(summary)
    rprint(render_summary(summary))


@app.command("validate-fields")
def validate_fields(
    work_item_id: Annotated[int, typer.Argument(help="Azure DevOps work item ID")],
    profile: ProfileOpt = None,
) -> None:
    """Check that the ticket-id and duration fields exist on a work item."""
    with _cli_errors():
        settings = _settings(profile)
        bridge = get_bridge(settings, work_item_id)
    result = bridge.validate_fields_present()

    for name, present in ((bridge.ticket_id_field, result.ticket_id_field), (bridge.duration_field, result.duration_field)):
        mark = "[green]✓[/green]" if present else "[red]✗[/red]"
        rprint(f"{mark} {name}")

    if not (result.ticket_id_field and result.duration_field):
        raise typer.Exit(1)


@app.command("test-connection")
def test_connection(profile: ProfileOpt = None) -> None:
    """Verify the ZEP API (or relay) accepts the configured credentials."""
    with _cli_errors():
        client = get_client(_settings(profile))
        client.test_connection()
    mode = "via proxy" if client.config.use_proxy else "direct"
    rprint(f"[green]✓[/green] API connection verified ({mode})")


@app.command("proxy-health")
def proxy_health(profile: ProfileOpt = None) -> None:
    """Query the CORS relay's /health endpoint."""
    with _cli_errors():
        client = get_client(_settings(profile))
        health = client.check_proxy_health()
    rprint(f"[green]✓[/green] {client.health_url}: {escape(str(health.get('status', 'unknown')))}")


@app.command("login")
def login(profile: ProfileOpt = None) -> None:
    """Store ZEP API credentials."""
    rprint("[bold]ZEP API credentials[/bold]")
    base_url = typer.prompt("ZEP base URL (e.g. https://www.zep-online.de/zepinstance)").strip()
    use_proxy = typer.confirm("Route requests through a CORS relay?", default=False)
    proxy_url = None
    if use_proxy:
        proxy_url = typer.prompt("Proxy URL (e.g. https://relay.example.com/api/zep)").strip()
        api_key = typer.prompt("API key (blank if the relay holds it)", default="", hide_input=True).strip()
    else:
        api_key = typer.prompt("API key", hide_input=True).strip()

    credentials = Credentials(
        api_key=api_key or None,
        base_url=base_url or None,
        use_proxy=use_proxy,
        proxy_url=proxy_url or None,
    )

    with _cli_errors():
        settings = _settings(profile)
        get_credential_service(settings).save_credentials(credentials)
    rprint("[green]✓[/green] Credentials saved")

    if typer.confirm("Test the connection now?", default=True):
        try:
            ZepClient(credentials, timeout=settings.timeout).test_connection()
            rprint("[green]✓[/green] Connected.")
        except ZepSyncError as exc:
            rprint(f"[yellow]Warning:[/yellow] {escape(exc.message)}")


@app.command("logout")
def logout(profile: ProfileOpt = None) -> None:
    """Remove stored ZEP API credentials."""
    with _cli_errors():
        get_credential_service(_settings(profile)).clear_credentials()
    rprint("[green]✓[/green] Stored credentials removed")


@app.command("set-default")
def set_default(
    profile: Annotated[str, typer.Argument(help="Profile name to set as default")],
) -> None:
    """Set the default profile in ~/.config/zepsync/config.toml."""
    if not CONFIG_PATH.exists():
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        doc = tomlkit.document()
        doc.add("default_profile", profile)
        CONFIG_PATH.write_text(tomlkit.dumps(doc))
        rprint(f'[green]✓[/green] Default profile set to "{profile}" in {CONFIG_PATH}')
        return

    doc = tomlkit.load(CONFIG_PATH.open())
    profiles = _list_profiles(doc)
    if profile not in profiles:
        rprint(f"[red]Profile '{profile}' not found in {CONFIG_PATH}. Available: {profiles or '(none)'}[/red]")
        raise typer.Exit(1)

    doc["default_profile"] = profile
    CONFIG_PATH.write_text(tomlkit.dumps(doc))
    rprint(f'[green]✓[/green] Default profile set to "{profile}" in {CONFIG_PATH}')


@app.command("config-show")
def config_show(profile: ProfileOpt = None) -> None:
    """Show resolved configuration (masks credentials)."""
    settings = _settings(profile)
    credential_service = get_credential_service(settings)
    credentials = credential_service.get_credentials()
    info = credential_service.storage_info()

    def mask(val: str | None) -> str:
        if val is None:
            return "[dim](not set)[/dim]"
        if len(val) <= 5:
            return "***"
        return f"...{val[-5:]}"

    def show(val: str | None) -> str:
        return val or "[dim](not set)[/dim]"

    table = Table(title="zepsync Configuration")
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("default_profile", show(settings.default_profile))
    table.add_row("api_key", mask(credentials.api_key.get_secret_value() if credentials.api_key else None))
    table.add_row("base_url", show(credentials.base_url))
    table.add_row("use_proxy", str(credentials.use_proxy))
    table.add_row("proxy_url", show(credentials.proxy_url))
    table.add_row("credentials_complete", str(credential_service.has_stored_credentials()))
    table.add_row("credentials_updated", show(info["last_updated"]))
    table.add_row("azure_org_url", show(settings.azure_org_url))
    table.add_row("azure_pat", mask(settings.azure_pat.get_secret_value() if settings.azure_pat else None))
    table.add_row("ticket_field", settings.ticket_field)
    table.add_row("duration_field", settings.duration_field)
    table.add_row("timeout", f"{settings.timeout:g}s")

    rprint(table)
