"""LiveSync CLI — watch a user's live dashboard, publish test changes.

Usage:
    livesync watch 42                                   # Live dashboard for user 42
    livesync publish anomalies insert --row '{"id": 1, "user_id": 42, "severity_level": "high"}'
    livesync publish notifications update --row '{"id": 3, "user_id": 42, "read": true}' --old '{"read": false}'
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import logging
import sys
from typing import Any, Optional

import click
import redis.asyncio as aioredis
import structlog

from livesync import __version__
from livesync.config import settings
from livesync.effects.toasts import ToastKind
from livesync.events.types import DELETE, OPERATIONS
from livesync.realtime.binding import StatusWatcher
from livesync.realtime.connection import ConnectionState
from livesync.realtime.manager import RealtimeManager
from livesync.realtime.redis_transport import RedisTransport, publish_change
from livesync.schemas.change import ChangeEvent
from livesync.snapshot.client import SnapshotClient
from livesync.state.activity import ActivityFeedReducer
from livesync.state.dashboard import DashboardReducer
from livesync.state.notifications import NotificationsReducer

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _configure_logging(level: str) -> None:
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(numeric))


def _parse_json_option(value: Optional[str], name: str) -> Optional[dict[str, Any]]:
    if value is None:
        return None
    try:
        data = json.loads(value)
    except json.JSONDecodeError as e:
        click.secho(f"Error: {name} is not valid JSON: {e}", fg="red", err=True)
        sys.exit(1)
    if not isinstance(data, dict):
        click.secho(f"Error: {name} must be a JSON object", fg="red", err=True)
        sys.exit(1)
    return data


def _toast_color(kind: ToastKind) -> str:
    """Map toast kinds to click colors."""
    colors = {
        ToastKind.ERROR: "red",
        ToastKind.WARNING: "yellow",
        ToastKind.INFO: "blue",
        ToastKind.SUCCESS: "green",
    }
    return colors.get(kind, "white")


class ConsolePresenter:
    """Presenter that prints toasts to the terminal."""

    def show_toast(self, kind: ToastKind, text: str) -> None:
        click.secho(f"[{kind.value.upper():7}] {text}", fg=_toast_color(kind), bold=True)


def _print_dashboard(dashboard: DashboardReducer) -> None:
    if dashboard.loading:
        return
    stats = dashboard.stats or {}
    click.echo(
        f"  anomalies={stats.get('total_anomalies', '—')}  "
        f"high={stats.get('high_severity', '—')}  "
        f"recent={len(dashboard.recent)}  "
        f"updated={dashboard.last_update:%H:%M:%S}"
    )


def _print_notifications(notifications: NotificationsReducer) -> None:
    click.echo(f"  notifications={len(notifications.items)}  unread={notifications.unread_count}")


def _print_activity(activity: ActivityFeedReducer) -> None:
    newest = activity.items.newest
    if newest:
        click.echo(f"  activity: {newest.get('title', '—')}")


def _print_status(connected: bool) -> None:
    if connected:
        click.secho("● connected", fg="green")
    else:
        click.secho("○ disconnected", fg="red")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="livesync")
def main():
    """LiveSync — realtime dashboard state from the change stream."""
    _configure_logging(settings.log_level)


# ---------------------------------------------------------------------------
# livesync watch
# ---------------------------------------------------------------------------


@main.command()
@click.argument("user_id")
def watch(user_id: str):
    """Follow USER_ID's dashboard, notifications and activity until Ctrl-C."""
    try:
        _run(_watch_impl(user_id))
    except KeyboardInterrupt:
        click.echo("Stopped.")


async def _watch_impl(user_id: str):
    connection = ConnectionState()
    transport = RedisTransport(
        settings.redis_url,
        connection,
        prefix=settings.channel_prefix,
        initial_delay=settings.reconnect_initial_delay,
        max_delay=settings.reconnect_max_delay,
    )
    manager = RealtimeManager(transport, connection)
    status = StatusWatcher(connection, on_change=_print_status)
    status.start()
    presenter = ConsolePresenter()

    async with SnapshotClient(settings.api_url, settings.api_token, settings.request_timeout) as snapshots:
        dashboard = DashboardReducer(
            manager,
            snapshots,
            presenter,
            capacity=settings.recent_anomalies_capacity,
            on_change=_print_dashboard,
        )
        notifications = NotificationsReducer(
            manager, snapshots, presenter, on_change=_print_notifications
        )
        activity = ActivityFeedReducer(
            manager, capacity=settings.activity_feed_capacity, on_change=_print_activity
        )

        click.echo(f"Watching user {user_id} (redis={settings.redis_url}, api={settings.api_url})")
        await transport.start()
        try:
            activity.activate(user_id)
            await asyncio.gather(dashboard.activate(user_id), notifications.activate(user_id))
            await asyncio.Event().wait()
        finally:
            dashboard.deactivate()
            notifications.deactivate()
            activity.deactivate()
            manager.unsubscribe_all()
            await transport.stop()
            status.stop()


# ---------------------------------------------------------------------------
# livesync publish
# ---------------------------------------------------------------------------


@main.command()
@click.argument("table")
@click.argument("operation", type=click.Choice(OPERATIONS, case_sensitive=False))
@click.option("--row", "row_json", required=True, help="Row as a JSON object")
@click.option("--old", "old_json", default=None, help="Previous row as a JSON object")
def publish(table: str, operation: str, row_json: str, old_json: Optional[str]):
    """Publish one OPERATION change on TABLE to the change stream."""
    row = _parse_json_option(row_json, "--row")
    old = _parse_json_option(old_json, "--old")
    operation = operation.upper()

    if operation == DELETE:
        event = ChangeEvent(table=table, operation=operation, previous=old or row)
    else:
        event = ChangeEvent(table=table, operation=operation, current=row, previous=old)
    _run(_publish_impl(event))


async def _publish_impl(event: ChangeEvent):
    client = aioredis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
    try:
        receivers = await publish_change(client, event, settings.channel_prefix)
    finally:
        await client.aclose()
    click.secho(
        f"Published {event.operation} on {event.table} ({receivers} receivers)",
        fg="green",
    )


if __name__ == "__main__":
    main()
