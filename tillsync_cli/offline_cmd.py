"""Offline mode CLI commands."""
import asyncio
import sys
from datetime import datetime, timezone

import click

from tillsync.config import TillConfig
from tillsync.offline.service import OfflineService, create_service
from .output import print_error, print_json, print_success, print_warning, table


def open_service() -> OfflineService:
    """Build the service from the environment, failing loudly on bad config."""
    config = TillConfig.from_env()
    errors = config.validate()
    if errors:
        for error in errors:
            print_error(error)
        sys.exit(2)
    return create_service(config)


async def _with_service(service: OfflineService, fn):
    await service.start(auto_sync=False)
    try:
        return await fn(service)
    finally:
        await service.stop()


@click.group()
def offline():
    """Offline queue commands."""
    pass


@offline.command()
def status():
    """Show connectivity and pending sales."""
    try:
        async def run(service):
            return service.status()
        print_json(asyncio.run(_with_service(open_service(), run)))
    except Exception as e:
        print_error(f"Status check failed: {e}")
        sys.exit(1)


@offline.command('queue')
@click.option('--limit', '-n', default=10, help='Number of pending sales to show')
def show_queue(limit: int):
    """List pending sales, oldest first."""
    try:
        async def run(service):
            return service.queue.list(), service.processor.ledger

        actions, ledger = asyncio.run(_with_service(open_service(), run))

        if not actions:
            click.echo("Queue is empty")
            return

        click.echo(f"Showing {min(limit, len(actions))} of {len(actions)} pending actions:\n")

        rows = []
        for queued in actions[:limit]:
            header = getattr(queued.action, "header", None)
            entry = ledger.get(queued.id) or {}
            queued_at = datetime.fromtimestamp(queued.timestamp / 1000, tz=timezone.utc)
            rows.append([
                queued.id[:8],
                queued.type,
                header.total_amount if header else "-",
                queued_at.strftime("%Y-%m-%d %H:%M:%S"),
                entry.get("attempts", 0),
                entry.get("last_error", ""),
            ])
        table(["id", "type", "total", "queued_at", "attempts", "last_error"], rows)

    except Exception as e:
        print_error(f"Queue list failed: {e}")
        sys.exit(1)


@offline.command('sync')
@click.option('--force', is_flag=True, help='Attempt sync even if offline')
def do_sync(force: bool):
    """Push pending sales to the remote store."""
    try:
        async def run(service):
            if not service.is_online and not force:
                return None
            return await service.sync_now()

        report = asyncio.run(_with_service(open_service(), run))

        if report is None:
            print_error("Not connected. Use --force to attempt anyway.")
            sys.exit(1)

        if report.synced_count:
            print_success(f"{report.synced_count} transaction(s) synced")
        if report.failed:
            print_warning(f"{len(report.failed)} still pending")
        if report.stalled:
            print_warning(f"{len(report.stalled)} stalled after repeated failures")
        print_json(report.to_dict())

    except Exception as e:
        print_error(f"Sync failed: {e}")
        sys.exit(1)


@offline.command()
def connected():
    """Check if the remote store is reachable."""
    try:
        async def run(service):
            return service.is_online

        is_online = asyncio.run(_with_service(open_service(), run))
        print_json({
            "connected": is_online,
            "status": "online" if is_online else "offline",
        })
    except Exception as e:
        print_error(f"Connection check failed: {e}")
        sys.exit(1)


@offline.command()
@click.argument('state', type=click.Choice(['on', 'off']))
def override(state: str):
    """Force offline mode on or off."""
    try:
        async def run(service):
            await service.monitor.set_manual_override(state == 'on')
            return service.status()

        print_json(asyncio.run(_with_service(open_service(), run)))
    except Exception as e:
        print_error(f"Override failed: {e}")
        sys.exit(1)
