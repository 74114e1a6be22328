"""Fixtures for HTTP-level tests: the real app wired to temporary storage."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from messenger_webhooks.config import MetaConfig


@pytest.fixture
def meta_config():
    return MetaConfig(verify_token="integration_verify_token", app_secret="integration_app_secret")


@pytest.fixture
def app(db, meta_config, storage_dir, reports_dir):
    from messenger_webhooks.api.main import app
    from messenger_webhooks.api.routes import migration
    from messenger_webhooks.migration import MigrationImporter
    from messenger_webhooks.storage import EventStore, WebhookFileLog
    from messenger_webhooks.webhooks import router as webhook_routes
    from messenger_webhooks.webhooks.handler import MessengerWebhookHandler

    app.dependency_overrides[webhook_routes.get_meta_config] = lambda: meta_config
    app.dependency_overrides[webhook_routes.get_webhook_handler] = lambda: MessengerWebhookHandler(
        file_log=WebhookFileLog(storage_dir),
        store=EventStore(),
    )
    app.dependency_overrides[migration.get_migration_importer] = lambda: MigrationImporter(
        source_dir=storage_dir,
        reports_dir=reports_dir,
        store=EventStore(),
    )
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app):
    # Lifespan is not run by ASGITransport; the db fixture initialises the database.
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
