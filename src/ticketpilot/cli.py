"""CLI entry point for ticketpilot."""

from __future__ import annotations

import os
import sys
import threading
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import click

from ticketpilot.config import ConfigurationError, default_home, load_config, save_config
from ticketpilot.git_manager import GitManagerError
from ticketpilot.logging import setup_logging
from ticketpilot.orchestrator import (
    AlreadyRunningError,
    Cancelled,
    Completed,
    NoTickets,
    Processing,
    Started,
    TicketCompleted,
    TicketFailed,
)
from ticketpilot.service import build_components
from ticketpilot.tickets import TicketStatus, TicketStoreError, parse_markdown_tickets

if TYPE_CHECKING:
    from ticketpilot.config import PilotConfig
    from ticketpilot.orchestrator import AutopilotRun, ProgressEvent
    from ticketpilot.service import Components
    from ticketpilot.tickets import Ticket

# Errors reported as a one-line message and exit code 1
USER_ERRORS = (TicketStoreError, ConfigurationError, GitManagerError, AlreadyRunningError)


class CLIContext:
    """Lazily loaded configuration and components shared by commands."""

    def __init__(self, config_path: Path | None, verbose: bool) -> None:
        self.config_path = config_path
        self.verbose = verbose
        self._config: PilotConfig | None = None
        self._components: Components | None = None

    @property
    def config(self) -> PilotConfig:
        if self._config is None:
            self._config = load_config(self.config_path)
            log_dir = os.environ.get("TICKETPILOT_LOG_DIR", default_home() / "logs")
            level = "DEBUG" if self.verbose or self._config.debug else None
            setup_logging(log_dir=log_dir, level=level, console=self.verbose)
        return self._config

    @property
    def components(self) -> Components:
        if self._components is None:
            self._components = build_components(self.config, working_repo_path=Path.cwd())
        return self._components

    def close(self) -> None:
        if self._components is not None:
            self._components.close()
            self._components = None


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _format_ticket(ticket: Ticket) -> str:
    first_line = next(iter(ticket.description.splitlines()), "")
    return f"{ticket.id:<20} {ticket.status:<10} {first_line[:60]}"


def _show_ticket(ticket: Ticket) -> None:
    click.echo(f"Ticket:      {ticket.id}")
    click.echo(f"Status:      {ticket.status}")
    click.echo(f"Created:     {ticket.created_at:%Y-%m-%d %H:%M:%S}")
    if ticket.started_at:
        click.echo(f"Started:     {ticket.started_at:%Y-%m-%d %H:%M:%S}")
    if ticket.stopped_at:
        click.echo(f"Stopped:     {ticket.stopped_at:%Y-%m-%d %H:%M:%S}")
    if ticket.closed_at:
        click.echo(f"Closed:      {ticket.closed_at:%Y-%m-%d %H:%M:%S}")
    if ticket.branch:
        click.echo(f"Branch:      {ticket.branch}")
    if ticket.error:
        click.echo(f"Error:       {ticket.error}")
    click.echo("")
    click.echo(ticket.description)


def _print_progress(event: ProgressEvent) -> None:
    match event:
        case NoTickets():
            click.echo("No pending tickets.")
        case Started(total=total, tickets=tickets):
            click.echo(f"Autopilot: {total} pending ticket(s): {', '.join(t.id for t in tickets)}")
        case Processing(current=current, total=total, ticket=ticket):
            click.echo(f"[{current}/{total}] Resolving {ticket.id}...")
        case TicketCompleted(current=current, total=total, ticket=ticket, duration_ms=ms):
            click.echo(f"[{current}/{total}] {ticket.id} resolved in {ms / 1000:.1f}s")
        case TicketFailed(current=current, total=total, ticket=ticket, error=error):
            click.echo(f"[{current}/{total}] {ticket.id} failed: {error}", err=True)
        case Cancelled(remaining=remaining):
            click.echo(f"Autopilot stopped; {remaining} ticket(s) left pending.")
        case Completed(result=result):
            click.echo(
                f"Done: {len(result.completed)} resolved, {len(result.failed)} failed "
                f"in {result.total_duration_ms / 1000:.1f}s"
            )


@click.group()
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to config.yaml (default: ~/.ticketpilot/config.yaml)",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.version_option(package_name="ticketpilot")
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """ticketpilot - resolve tickets in isolated git worktrees."""
    cli_context = CLIContext(config_path, verbose)
    ctx.obj = cli_context
    ctx.call_on_close(cli_context.close)


pass_cli = click.make_pass_decorator(CLIContext)


@main.command()
@click.argument("ticket_id")
@click.argument("description")
@pass_cli
def create(cli: CLIContext, ticket_id: str, description: str) -> None:
    """Create a pending ticket."""
    try:
        ticket = cli.components.service.create_ticket(ticket_id, description)
    except (ValueError, *USER_ERRORS) as e:
        _fail(str(e))
    click.echo(f"Ticket created: {ticket.id}")


@main.command(name="list")
@click.option(
    "--status",
    "status",
    type=click.Choice([s.value for s in TicketStatus]),
    default=None,
    help="Only show tickets in this status",
)
@pass_cli
def list_tickets(cli: CLIContext, status: str | None) -> None:
    """List tickets in creation order."""
    try:
        tickets = cli.components.service.list_tickets(TicketStatus(status) if status else None)
    except USER_ERRORS as e:
        _fail(str(e))
    if not tickets:
        click.echo("No tickets.")
        return
    for ticket in tickets:
        click.echo(_format_ticket(ticket))


@main.command()
@click.argument("ticket_id")
@pass_cli
def show(cli: CLIContext, ticket_id: str) -> None:
    """Show a ticket's details."""
    try:
        _show_ticket(cli.components.service.get_ticket(ticket_id))
    except USER_ERRORS as e:
        _fail(str(e))


@main.command()
@click.argument("ticket_id")
@click.argument("description")
@pass_cli
def edit(cli: CLIContext, ticket_id: str, description: str) -> None:
    """Replace a ticket's description."""
    try:
        ticket = cli.components.service.update_description(ticket_id, description)
    except USER_ERRORS as e:
        _fail(str(e))
    click.echo(f"Ticket updated: {ticket.id}")


@main.command()
@click.argument("ticket_id")
@click.option("--no-resolve", is_flag=True, help="Only provision the worktree")
@pass_cli
def start(cli: CLIContext, ticket_id: str, no_resolve: bool) -> None:
    """Start a ticket and resolve it with the code agent."""
    try:
        result = cli.components.service.start_ticket(ticket_id, resolve=not no_resolve)
    except USER_ERRORS as e:
        _fail(str(e))

    if result is None:
        click.echo(f"Started working on ticket: {ticket_id}")
        return
    if result.success:
        click.echo(f"Ticket {result.ticket_id} resolved in {result.duration_ms / 1000:.1f}s")
        click.echo(f"  Commit:      {result.commit_message}")
        click.echo(f"  Test branch: {result.test_branch}")
        click.echo(f"  Worktree:    {result.worktree_path}")
    else:
        _fail(f"Resolution of {result.ticket_id} failed: {result.error}")


@main.command()
@click.argument("ticket_id")
@click.option("--no-commit", is_flag=True, help="Leave pending changes uncommitted")
@pass_cli
def stop(cli: CLIContext, ticket_id: str, no_commit: bool) -> None:
    """Stop work on a ticket."""
    try:
        ticket = cli.components.service.stop_ticket(ticket_id, commit=not no_commit)
    except USER_ERRORS as e:
        _fail(str(e))
    click.echo(f"Stopped working on ticket: {ticket.id}")


@main.command()
@click.argument("ticket_id")
@pass_cli
def close(cli: CLIContext, ticket_id: str) -> None:
    """Close a ticket."""
    try:
        ticket = cli.components.service.close_ticket(ticket_id)
    except USER_ERRORS as e:
        _fail(str(e))
    click.echo(f"Ticket closed: {ticket.id}")


@main.command()
@click.argument("ticket_id")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
@pass_cli
def delete(cli: CLIContext, ticket_id: str, yes: bool) -> None:
    """Delete a ticket with its worktree and branches."""
    try:
        ticket = cli.components.service.get_ticket(ticket_id)
        if not yes and not click.confirm(f"Delete ticket {ticket.id}?", default=False):
            click.echo("Deletion cancelled")
            return
        report = cli.components.service.delete_ticket(ticket.id)
    except USER_ERRORS as e:
        _fail(str(e))

    for warning in report.warnings:
        click.echo(f"  Warning: {warning}", err=True)
    click.echo(f"Ticket deleted: {ticket.id}")


@main.command(name="import")
@click.argument("filename", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@pass_cli
def import_tickets(cli: CLIContext, filename: Path) -> None:
    """Import tickets from a Markdown file.

    Each ticket is a "## TICKET-ID" heading followed by a "**Description:**" line.
    """
    entries = parse_markdown_tickets(filename.read_text(encoding="utf-8"))
    if not entries:
        click.echo("No tickets found in file")
        return

    created = cli.components.service.import_tickets(entries)
    created_ids = {t.id for t in created}
    for ticket_id, _ in entries:
        marker = "imported" if ticket_id in created_ids else "already exists, skipped"
        click.echo(f"  {ticket_id} - {marker}")
    click.echo(f"Import complete: {len(created)} created, {len(entries) - len(created)} skipped")


@main.command()
@pass_cli
def autopilot(cli: CLIContext) -> None:
    """Resolve every pending ticket, oldest first. Ctrl-C stops after the current ticket."""
    try:
        session = cli.components.orchestrator.start(on_progress=_print_progress)
    except USER_ERRORS as e:
        _fail(str(e))

    outcome: dict[str, AutopilotRun] = {}

    def run() -> None:
        outcome["run"] = session.run()

    thread = threading.Thread(target=run, name="ticketpilot-autopilot", daemon=True)
    thread.start()
    try:
        while thread.is_alive():
            thread.join(0.5)
    except KeyboardInterrupt:
        click.echo("\nStopping after the current ticket...")
        session.request_stop()
        thread.join()

    result = outcome.get("run")
    if result is None or result.failed:
        sys.exit(1)


@main.group()
def config() -> None:
    """Show or change configuration."""
    pass


@config.command(name="show")
@pass_cli
def config_show(cli: CLIContext) -> None:
    """Print the effective configuration."""
    try:
        values = cli.config.to_dict()
    except ConfigurationError as e:
        _fail(str(e))
    for key, value in values.items():
        if isinstance(value, str) and "\n" in value:
            value = value.splitlines()[0] + " ..."
        click.echo(f"{key}: {value}")


@config.command(name="set")
@click.argument("key")
@click.argument("value", required=False, default="")
@pass_cli
def config_set(cli: CLIContext, key: str, value: str) -> None:
    """Set a configuration key. An empty value resets prompts and defaults."""
    try:
        cli.config.set_value(key, value)
        path = save_config(cli.config, cli.config_path)
    except ConfigurationError as e:
        _fail(str(e))
    click.echo(f"Saved {key} to {path}")


@main.command()
@click.option("--host", default="127.0.0.1", help="Interface to bind")
@click.option("--port", default=3000, type=int, help="Port to listen on")
@pass_cli
def serve(cli: CLIContext, host: str, port: int) -> None:
    """Run the REST API and event stream."""
    import uvicorn  # noqa: PLC0415

    from ticketpilot.api import create_app  # noqa: PLC0415

    try:
        app = create_app(
            config=cli.config, config_path=cli.config_path, working_repo_path=Path.cwd()
        )
    except ConfigurationError as e:
        _fail(str(e))
    click.echo(f"Serving on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
