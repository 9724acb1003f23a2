"""Offline queue CLI commands."""
import asyncio

import click

from ukulima.config import OfflineConfig
from ukulima.core.receipt import StopRule
from ukulima.offline import OfflineManager
from ukulima.offline.storage import StorageError
from .output import _truncate, print_error, print_json, print_success, table


def _manager(online: bool = False) -> OfflineManager:
    return OfflineManager.from_config(OfflineConfig.from_env(), online=online)


@click.group()
def offline():
    """Offline queue commands."""
    pass


@offline.command()
def status():
    """Show queue, dead-letter and connectivity status."""
    try:
        manager = _manager()
        result = manager.network_status()
        result["connected"] = manager.remote.is_reachable()
        result["storage_bytes"] = manager.storage_usage()
        print_json(result)
    except (StopRule, StorageError) as e:
        print_error(f"Status check failed: {e}")


@offline.command('queue')
@click.option('--limit', '-n', default=10, help='Number of actions to show')
def show_queue(limit: int):
    """List pending actions in FIFO order."""
    try:
        manager = _manager()
        actions = manager.queue.peek(limit)

        if not actions:
            click.echo("Queue is empty")
            return

        click.echo(f"Showing {len(actions)} of {len(manager.queue)} pending actions:\n")
        table(
            ["id", "kind", "enqueued_at", "retries"],
            [[a.id, a.kind.value, a.enqueued_at, str(a.retry_count)] for a in actions],
        )
    except (StopRule, StorageError) as e:
        print_error(f"Queue list failed: {e}")


@offline.command('dead-letters')
@click.option('--json', 'as_json', is_flag=True, help='Print full records as JSON')
def dead_letters(as_json: bool):
    """List actions that gave up retrying."""
    try:
        letters = _manager().queue.dead_letters()

        if not letters:
            click.echo("No dead letters")
            return

        if as_json:
            print_json([d.to_dict() for d in letters])
            return

        table(
            ["id", "kind", "failed_at", "retries", "terminal", "error"],
            [
                [d.id, d.action.kind.value, d.failed_at, str(d.action.retry_count),
                 "yes" if d.terminal else "no", _truncate(d.error, 40)]
                for d in letters
            ],
        )
    except (StopRule, StorageError) as e:
        print_error(f"Dead-letter list failed: {e}")


@offline.command()
@click.argument('dead_letter_id')
def resubmit(dead_letter_id: str):
    """Queue a dead-lettered action again as a fresh action."""
    try:
        action = _manager().queue.resubmit(dead_letter_id)
        print_success(f"Queued as {action.id}")
    except (StopRule, StorageError) as e:
        print_error(f"Resubmit failed: {e}")


@offline.command('sync')
@click.option('--force', is_flag=True, help='Skip the reachability probe')
def do_sync(force: bool):
    """Replay pending actions against the API."""
    try:
        manager = _manager()

        async def _run() -> dict:
            if force:
                await manager.monitor.set_online(True)
            elif not await manager.check_connectivity():
                return {"status": "offline", "remaining": len(manager.queue)}
            return manager.network_status()

        result = asyncio.run(_run())

        if result.get("status") == "offline":
            print_error("Not connected. Use --force to attempt anyway.")
        else:
            print_success(f"Sync pass complete, {result['pending_count']} actions remaining")
        print_json(result)
    except (StopRule, StorageError) as e:
        print_error(f"Sync failed: {e}")


@offline.command()
def sweep():
    """Remove expired mirror entries."""
    try:
        removed = _manager().start_session()
        print_success(f"Removed {removed} expired entries")
    except (StopRule, StorageError) as e:
        print_error(f"Sweep failed: {e}")


@offline.command()
def connected():
    """Check if the API host is reachable."""
    try:
        is_connected = _manager().remote.is_reachable()
        print_json({
            "connected": is_connected,
            "status": "online" if is_connected else "offline",
        })
    except (StopRule, StorageError) as e:
        print_error(f"Connection check failed: {e}")


@offline.command('clear-dead-letters')
def clear_dead_letters():
    """Discard all dead letters."""
    try:
        manager = _manager()
        count = len(manager.queue.dead_letters())
        if count == 0:
            click.echo("No dead letters")
            return

        if click.confirm(f"Discard {count} dead letters?"):
            manager.queue.clear_dead_letters()
            print_success("Dead letters cleared")
    except (StopRule, StorageError) as e:
        print_error(f"Clear failed: {e}")
