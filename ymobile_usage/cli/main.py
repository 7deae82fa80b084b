"""
CLI interface for Y!mobile Usage.

Provides command-line access to login, usage fetching and widget settings.
"""

import asyncio
import os
import sys
from datetime import datetime
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ymobile_usage.app import UsageApp, build_app
from ymobile_usage.config.loader import CONFIG_ENV_VAR, load_settings
from ymobile_usage.log import mask_secret, setup_logging
from ymobile_usage.storage.models import Credentials, UsageSnapshot, WidgetConfig

app = typer.Typer()
console = Console()

EXIT_CODE_OK = 0
EXIT_CODE_FAIL = 1


def get_app() -> UsageApp:
    """Load settings from YMOBILE_USAGE_CONFIG (or defaults) and wire the app."""
    settings = load_settings(os.environ.get(CONFIG_ENV_VAR))
    logger = setup_logging(settings.logging.level, settings.logging.file)
    return build_app(settings, logger=logger)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """Y!mobile Usage CLI."""
    if ctx.invoked_subcommand is None:
        console.print("Y!mobile Usage - Use --help to see available commands")


@app.command()
def start():
    """Process start hook: re-register the widget refresh if it is enabled."""
    usage_app = get_app()
    state = asyncio.run(usage_app.startup())
    console.print(f"Widget scheduler {state.value}")


@app.command()
def login(
    identifier: str = typer.Option(..., "--phone", "-p", prompt="Phone number", help="Y!mobile phone number"),
    password: str = typer.Option(..., "--password", prompt=True, hide_input=True, help="My Y!mobile password"),
):
    """Store portal credentials (encrypted)."""
    usage_app = get_app()
    try:
        credentials = Credentials(identifier=identifier, secret=password)

        async def _save():
            await usage_app.credentials.save(credentials)
            await usage_app.cache.clear()

        asyncio.run(_save())
        console.print(f"[green]✓[/] Credentials saved for {mask_secret(identifier)}")
        sys.exit(EXIT_CODE_OK)
    except ValueError as e:
        console.print(f"[red]Invalid credentials:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def logout():
    """Delete stored credentials and the cached usage."""
    usage_app = get_app()

    async def _delete():
        await usage_app.credentials.delete()
        await usage_app.cache.clear()

    asyncio.run(_delete())
    console.print("[green]✓[/] Credentials removed")


@app.command()
def fetch(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Ignore the cache and fetch from the portal"
    )
):
    """Show current data usage, from cache when it is still fresh."""
    usage_app = get_app()
    result = asyncio.run(usage_app.get_data(force_refresh=force))

    if not result.success or result.snapshot is None:
        console.print(f"[red]Error:[/] {result.error}")
        sys.exit(EXIT_CODE_FAIL)

    _display_snapshot(result.snapshot, from_cache=result.from_cache)
    sys.exit(EXIT_CODE_OK)


@app.command()
def status():
    """Show credential, cache and widget state."""
    usage_app = get_app()

    async def _collect():
        return (
            await usage_app.credentials.has_credentials(),
            await usage_app.cache.peek(),
            await usage_app.config_store.get(),
            await usage_app.publisher.get_last_update_time(),
        )

    has_credentials, cached, config, last_update = asyncio.run(_collect())

    table = Table(title="Y!mobile Usage Status")
    table.add_column("Item")
    table.add_column("Value")
    table.add_row("Credentials", "saved" if has_credentials else "[yellow]not saved[/]")
    if cached is None:
        table.add_row("Cache", "empty")
    else:
        age = cached.age(datetime.now())
        fresh = cached.is_valid(datetime.now(), usage_app.cache.ttl)
        label = "fresh" if fresh else "expired"
        table.add_row("Cache", f"{label}, stored {int(age.total_seconds() // 60)} min ago")
    table.add_row("Widget", "enabled" if config.enabled else "disabled")
    table.add_row("Update interval", f"{config.update_interval_minutes} min")
    table.add_row("Mini widget", "shown" if config.show_mini_widget else "hidden")
    table.add_row("Main widget", "shown" if config.show_main_widget else "hidden")
    table.add_row("Last widget update", last_update.strftime("%Y/%m/%d %H:%M:%S") if last_update else "never")
    console.print(table)


@app.command("widget-config")
def widget_config(
    enabled: Optional[bool] = typer.Option(None, "--enable/--disable", help="Turn background refresh on or off"),
    interval: Optional[int] = typer.Option(None, "--interval", "-i", min=1, help="Refresh interval in minutes"),
    mini: Optional[bool] = typer.Option(None, "--mini/--no-mini", help="Show the mini widget"),
    main_widget: Optional[bool] = typer.Option(None, "--main/--no-main", help="Show the main widget"),
):
    """Change widget settings and apply them to the scheduler."""
    usage_app = get_app()

    async def _apply():
        current = await usage_app.config_store.get()
        if current.enabled:
            await usage_app.scheduler.restore(refresh=False)
        updated = WidgetConfig(
            enabled=current.enabled if enabled is None else enabled,
            update_interval_minutes=current.update_interval_minutes if interval is None else interval,
            show_mini_widget=current.show_mini_widget if mini is None else mini,
            show_main_widget=current.show_main_widget if main_widget is None else main_widget,
        )
        stored = await usage_app.scheduler.apply_config(updated)
        return stored, usage_app.scheduler.state

    stored, state = asyncio.run(_apply())
    console.print(
        f"[green]✓[/] Widget {'enabled' if stored.enabled else 'disabled'}, "
        f"every {stored.update_interval_minutes} min (scheduler {state.value})"
    )


@app.command("widget-refresh")
def widget_refresh():
    """Fetch fresh usage now and publish it to the widget."""
    usage_app = get_app()
    if asyncio.run(usage_app.scheduler.refresh_now()):
        console.print("[green]✓[/] Widget updated")
        sys.exit(EXIT_CODE_OK)
    console.print("[yellow]Widget was not updated[/] (see log for details)")
    sys.exit(EXIT_CODE_FAIL)


@app.command("widget-reset")
def widget_reset():
    """Stop scheduled refreshes and clear widget settings and data."""
    usage_app = get_app()

    async def _reset():
        await usage_app.bridge.cancel_scheduled_update()
        await usage_app.config_store.reset()

    asyncio.run(_reset())
    console.print("[green]✓[/] Widget configuration reset")


def _display_snapshot(snapshot: UsageSnapshot, from_cache: bool = False):
    """Display usage figures as a table."""
    source = "cache" if from_cache else "portal"
    table = Table(title="Data Usage")
    table.add_column("Item")
    table.add_column("GB", justify="right")
    table.add_row("Remaining", f"{snapshot.remaining_gb}")
    table.add_row("Used", f"{snapshot.used_gb}")
    table.add_row("Total", f"{snapshot.total_gb}")
    table.add_row("Basic", f"{snapshot.basic_gb}")
    table.add_row("Carryover", f"{snapshot.carryover_gb}")
    table.add_row("Paid", f"{snapshot.paid_gb}")
    console.print(table)
    console.print(f"Used: [bold]{snapshot.percentage}%[/]")
    console.print(f"Updated {snapshot.display_timestamp} (from {source})")


if __name__ == "__main__":
    app()
