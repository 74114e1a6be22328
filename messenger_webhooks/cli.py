"""
Messenger Webhooks CLI.

Usage:
  messenger-webhooks migrate
  messenger-webhooks migrate --source WebhookData --reports Migrations
  messenger-webhooks stats
  messenger-webhooks serve --host 0.0.0.0 --port 8000
"""

import asyncio

import click

from messenger_webhooks.config import get_settings
from messenger_webhooks.db.client import close_db, init_db
from messenger_webhooks.kernel.log_config import configure_logging
from messenger_webhooks.migration import MigrationImporter
from messenger_webhooks.storage import EventStore


@click.group()
def cli():
    """Messenger Webhooks CLI."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)


@cli.command()
@click.option("--source", default=None, help="Directory of JSON envelopes (default: WEBHOOK_STORAGE_DIR)")
@click.option("--reports", default=None, help="Directory for migration reports (default: MIGRATION_REPORTS_DIR)")
def migrate(source, reports):
    """Import archived webhook JSON files into the database."""
    settings = get_settings()
    importer = MigrationImporter(
        source_dir=source or settings.webhook_storage_dir,
        reports_dir=reports or settings.migration_reports_dir,
        store=EventStore(),
    )

    async def _migrate():
        await init_db()
        try:
            return await importer.import_all()
        finally:
            await close_db()

    result = asyncio.run(_migrate())

    click.echo("\nMigration completed:")
    click.echo(f"  Successful: {len(result.succeeded)}")
    click.echo(f"  Failed: {len(result.failed)}")
    click.echo(f"  Skipped: {len(result.skipped)}")
    click.echo(f"  Total: {result.total}")
    click.echo(f"\nReports written to: {importer.reports_dir}")

    if result.failed:
        raise SystemExit(1)


@cli.command()
def stats():
    """Show database statistics."""

    async def _stats():
        await init_db()
        try:
            return await EventStore().get_stats()
        finally:
            await close_db()

    data = asyncio.run(_stats())

    click.echo("\nDatabase Statistics:")
    click.echo(f"  Webhook events: {data['total_webhook_events']}")
    click.echo(f"  Messages: {data['total_messages']}")
    click.echo(f"  Unresponded messages: {data['unresponded_messages']}")

    if data["message_kinds"]:
        click.echo("\nMessages by kind:")
        for row in data["message_kinds"]:
            click.echo(f"  {row['kind']}: {row['count']}")

    if data["recent_events"]:
        click.echo("\nRecent events:")
        for event in data["recent_events"]:
            click.echo(
                f"  #{event['id']} {event['event_type']} "
                f"{event['received_at']:%Y-%m-%d %H:%M:%S} "
                f"({event['message_count']} messages)"
            )


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=8000, type=int, help="Bind port")
@click.option("--reload/--no-reload", default=False, help="Reload on code changes")
def serve(host, port, reload):
    """Run the webhook API server."""
    import uvicorn

    uvicorn.run("messenger_webhooks.api.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    cli()
