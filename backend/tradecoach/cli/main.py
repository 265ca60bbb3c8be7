"""
TradeCoach - CLI Application
"""
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box

from tradecoach.config import settings
from tradecoach.core.enums import EventKind
from tradecoach.core.exceptions import ConfigurationError
from tradecoach.core.models import CoachEvent, CommandResult
from tradecoach.logger import logger, logger_manager

# Create Typer app
app = typer.Typer(
    name="tradecoach",
    help="Screenshot-driven trading coach",
    add_completion=False,
)

console = Console()

EVENT_STYLES = {
    EventKind.SESSION_TRANSITION: "bold cyan",
    EventKind.ADVICE_EMITTED: "green",
    EventKind.CAPTURE_ERROR: "red",
    EventKind.INFERENCE_ERROR: "yellow",
}


def _print_result(result: CommandResult) -> None:
    if result.success:
        details = ", ".join(f"{k}={v}" for k, v in result.to_dict().items() if k != "success")
        console.print(f"[green]✓[/green] {details or 'OK'}")
    else:
        console.print(f"[red]✗[/red] {result.error}")
        raise typer.Exit(code=1)


def _print_event(event: CoachEvent) -> None:
    style = EVENT_STYLES.get(event.kind, "white")
    title = f"{event.kind.value} {event.ticker or ''}".strip()
    console.print(Panel(event.message, title=title, border_style=style, box=box.ROUNDED))


def _build_manager(**kwargs):
    from tradecoach.managers.coach_manager import create_coach_manager

    try:
        return create_coach_manager(**kwargs)
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] Configuration error: {e}")
        raise typer.Exit(code=1)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-v", help="Show version and exit")
):
    """
    TradeCoach CLI

    Watches the screenshot folder, detects the ticker on screen and coaches you on it.
    """
    if version:
        console.print(f"[cyan]{settings.APP_NAME}[/cyan] v{settings.APP_VERSION}")
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(Panel.fit(
            f"[bold cyan]{settings.APP_NAME}[/bold cyan]\n"
            f"[dim]Version {settings.APP_VERSION}[/dim]\n\n"
            f"[yellow]Use --help to see available commands[/yellow]",
            box=box.ROUNDED,
            border_style="cyan"
        ))


@app.command()
def run(
    user: str = typer.Option(..., "--user", "-u", help="User ID to coach"),
):
    """
    Start coaching: poll screenshots and print advice until interrupted
    """
    from tradecoach.integrations.event_sink import QueueEventSink
    from tradecoach.models.database import close_db

    sink = QueueEventSink()
    manager = _build_manager(sink=sink)
    _print_result(manager.set_active_user(user))

    session = manager.state.active_session
    if session is not None:
        manager.start_dialogue_loop(session.id)
        manager.start_batch_scheduler(session.id)

    manager.start()
    console.print(
        f"[green]Watching[/green] {settings.CAPTURE.folder} "
        f"[dim](warm-up {settings.COACH.warmup_seconds:.0f}s, Ctrl+C to stop)[/dim]"
    )
    logger.info(f"CLI coaching run started for {user}")

    try:
        while True:
            event = sink.get(timeout=1.0)
            if event is not None:
                _print_event(event)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopping...[/yellow]")
    finally:
        manager.shutdown()
        close_db()


@app.command()
def detect(
    user: str = typer.Option(..., "--user", "-u", help="User ID"),
):
    """
    Detect the ticker in the latest screenshot and make it the active session
    """
    from tradecoach.integrations.webhook import WebhookNotificationSender

    manager = _build_manager(
        sender=WebhookNotificationSender(settings.WEBHOOK, background=False),
        auto_start_loops=False,
        start_threads=False,
    )
    manager.set_active_user(user)
    _print_result(manager.detect_ticker_from_latest_artifact())


@app.command("end-session")
def end_session(
    user: str = typer.Option(..., "--user", "-u", help="User ID"),
):
    """
    End the user's active session
    """
    manager = _build_manager(require_api_key=False, auto_start_loops=False, start_threads=False)
    manager.set_active_user(user)
    _print_result(manager.end_active_session())


@app.command("init-db")
def init_db():
    """
    Initialize the database (create tables)
    """
    from tradecoach.models.database import init_db as initialize_database

    console.print("[yellow]Initializing database...[/yellow]")
    try:
        initialize_database()
        console.print("[green]✓[/green] Database initialized successfully")
    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}")
        logger.error(f"Database initialization failed: {e}")
        raise typer.Exit(code=1)


@app.command()
def status():
    """
    Show effective configuration
    """
    table = Table(title="TradeCoach Configuration", box=box.ROUNDED)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Application", f"{settings.APP_NAME} v{settings.APP_VERSION}")
    table.add_row("Capture folder", settings.CAPTURE.folder)
    table.add_row("Database", settings.DATABASE.url)
    table.add_row("Claude model", settings.CLAUDE.model)
    table.add_row("Claude API key", "set" if settings.CLAUDE.api_key else "[red]missing[/red]")
    table.add_row("Webhook", settings.WEBHOOK.url or "[dim]disabled[/dim]")
    table.add_row("Log level", settings.LOGGER.default_level)
    table.add_row("Polling / warm-up", f"{settings.COACH.polling_interval_seconds}s / {settings.COACH.warmup_seconds}s")
    table.add_row("Dialogue interval", f"{settings.COACH.dialogue_interval_seconds}s")
    table.add_row("Batch interval", f"{settings.COACH.batch_interval_seconds}s")
    table.add_row("User cooldown", f"{settings.COACH.user_message_cooldown_seconds}s")

    console.print(table)
    logger.debug("Status command executed")


@app.command("log-level")
def log_level(
    level: Optional[str] = typer.Argument(None, help="New level (TRACE, DEBUG, INFO, SUCCESS, WARNING, ERROR, CRITICAL)"),
):
    """
    Show or change the log file level for this process
    """
    if level is None:
        console.print(f"Current log level: [cyan]{logger_manager.get_level()}[/cyan]")
        return
    try:
        new_level = logger_manager.set_level(level)
    except ValueError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] Log level set to [cyan]{new_level}[/cyan]")


if __name__ == "__main__":
    app()
