"""
Test Configuration and Fixtures

Shared fixtures for the whole suite: a throwaway SQLite database per test,
temporary storage directories and a few canonical Messenger payloads.
"""

import os

import pytest
import pytest_asyncio

# Set test environment variables before importing the app.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_webhooks.db")
os.environ.setdefault("META_VERIFY_TOKEN", "test_verify_token")
os.environ.setdefault("META_APP_SECRET", "test_app_secret")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_FORMAT", "text")


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (HTTP app + SQLite)")


def pytest_collection_modifyitems(config, items):
    """
    Auto-assign tier markers so we can run:
    - pytest -m unit
    - pytest -m integration

    Convention:
    - tests/integration/** => integration
    - everything else      => unit
    """
    for item in items:
        path = str(getattr(item, "fspath", ""))
        if item.get_closest_marker("integration") or item.get_closest_marker("unit"):
            continue
        if "/tests/integration/" in path:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# =============================================================================
# SETTINGS / DATABASE
# =============================================================================


@pytest.fixture
def clear_settings_cache():
    """Clear the settings cache around a test so env changes take effect."""
    from messenger_webhooks.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def db(tmp_path):
    """Fresh file-backed SQLite database, torn down after the test."""
    from messenger_webhooks.db.client import close_db, init_db

    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    yield
    await close_db()


@pytest.fixture
def store(db):
    from messenger_webhooks.storage import EventStore

    return EventStore()


@pytest.fixture
def storage_dir(tmp_path):
    return tmp_path / "WebhookData"


@pytest.fixture
def reports_dir(tmp_path):
    return tmp_path / "Migrations"


# =============================================================================
# PAYLOADS
# =============================================================================


@pytest.fixture
def text_message_payload():
    """A user text message, as delivered by Meta."""
    return {
        "object": "page",
        "entry": [
            {
                "id": "P1",
                "time": 1700000000000,
                "messaging": [
                    {
                        "sender": {"id": "U1"},
                        "recipient": {"id": "P1"},
                        "timestamp": 1700000000000,
                        "message": {"mid": "m1", "text": "hello"},
                    }
                ],
            }
        ],
    }


@pytest.fixture
def echo_message_payload():
    """A page reply echoed back to the webhook."""
    return {
        "object": "page",
        "entry": [
            {
                "id": "P1",
                "time": 1700000001000,
                "messaging": [
                    {
                        "sender": {"id": "P1"},
                        "recipient": {"id": "U1"},
                        "timestamp": 1700000001000,
                        "message": {"mid": "m2", "text": "hi back", "is_echo": True, "app_id": 999},
                    }
                ],
            }
        ],
    }


@pytest.fixture
def field_change_payload():
    return {
        "object": "page",
        "entry": [
            {
                "id": "P1",
                "time": 1700000000000,
                "changes": [{"field": "about", "value": "New about text"}],
            }
        ],
    }
