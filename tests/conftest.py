"""
Pytest configuration and shared fixtures for divine-nostr tests.

Provides:
- Mock fixtures for asyncpg, Pool, and EventCache
- Mock collaborators for NostrClient (protocol client, relay manager, cache)
- Sample events and filters
"""

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from nostr_sdk import Keys, NostrSdkError

from divine_nostr.core.event_cache import EventCache
from divine_nostr.core.pool import DatabaseConfig, Pool, PoolConfig
from divine_nostr.models import CountResponse
from fixtures.events import PUBKEY


pytest_plugins = ["fixtures.events"]


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Database Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_connection() -> MagicMock:
    """Create a mock asyncpg connection."""
    conn = MagicMock()
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchrow = AsyncMock(return_value=None)
    conn.fetchval = AsyncMock(return_value=0)
    conn.execute = AsyncMock(return_value="INSERT 0 1")

    mock_transaction = MagicMock()
    mock_transaction.__aenter__ = AsyncMock(return_value=conn)
    mock_transaction.__aexit__ = AsyncMock(return_value=None)
    conn.transaction = MagicMock(return_value=mock_transaction)

    return conn


@pytest.fixture
def mock_asyncpg_pool(mock_connection: MagicMock) -> MagicMock:
    """Create a mock asyncpg pool."""
    pool = MagicMock()
    pool.close = AsyncMock()

    mock_acquire = MagicMock()
    mock_acquire.__aenter__ = AsyncMock(return_value=mock_connection)
    mock_acquire.__aexit__ = AsyncMock(return_value=None)
    pool.acquire = MagicMock(return_value=mock_acquire)

    return pool


@pytest.fixture
def pool_config() -> PoolConfig:
    return PoolConfig(
        database=DatabaseConfig(
            host="localhost",
            port=5432,
            database="test_db",
            user="test_user",
            password="test_password",  # pragma: allowlist secret
        )
    )


@pytest.fixture
def mock_pool(
    mock_asyncpg_pool: MagicMock, mock_connection: MagicMock, pool_config: PoolConfig
) -> Pool:
    """Create a connected Pool with mocked internals."""
    pool = Pool(config=pool_config)
    pool._pool = mock_asyncpg_pool
    pool._is_connected = True

    # Store mock connection for easy access in tests
    pool._mock_connection = mock_connection  # type: ignore[attr-defined]

    return pool


@pytest.fixture
def event_cache(mock_pool: Pool) -> EventCache:
    """Create an EventCache over the mocked pool."""
    return EventCache(pool=mock_pool)


# ============================================================================
# NostrClient Collaborator Fixtures
# ============================================================================


@pytest.fixture
def mock_nostr() -> MagicMock:
    """Protocol client double with every coroutine mocked."""
    nostr = MagicMock()
    nostr.public_key = PUBKEY
    nostr.sign_event = AsyncMock(return_value=None)
    nostr.send_event = AsyncMock(side_effect=lambda event, **_: event)
    nostr.query_events = AsyncMock(return_value=[])
    nostr.count_events = AsyncMock(return_value=CountResponse(count=0))
    nostr.subscribe = AsyncMock(return_value="sub-id")
    nostr.unsubscribe = AsyncMock()
    nostr.send_like = AsyncMock(return_value=None)
    nostr.send_repost = AsyncMock(return_value=None)
    nostr.delete_event = AsyncMock(return_value=None)
    nostr.delete_events = AsyncMock(return_value=None)
    nostr.send_contact_list = AsyncMock(return_value=None)
    nostr.close = AsyncMock()
    return nostr


@pytest.fixture
def mock_relay_manager() -> MagicMock:
    """Relay manager double reporting one connected relay."""
    manager = MagicMock()
    manager.connected_relays = ["wss://relay.divine.video"]
    manager.configured_relays = ["wss://relay.divine.video"]
    manager.current_statuses = {}
    manager.is_initialized = True
    manager.initialize = AsyncMock()
    manager.retry_disconnected_relays = AsyncMock()
    manager.force_reconnect_all = AsyncMock()
    manager.add_relay = AsyncMock(return_value=True)
    manager.remove_relay = AsyncMock(return_value=True)
    manager.dispose = AsyncMock()
    return manager


@pytest.fixture
def mock_cache() -> MagicMock:
    """Event store double with empty reads."""
    cache = MagicMock()
    cache.upsert_event = AsyncMock(return_value=True)
    cache.upsert_events_batch = AsyncMock(return_value=0)
    cache.delete_events_by_ids = AsyncMock(return_value=1)
    cache.get_events_by_filter = AsyncMock(return_value=[])
    cache.get_event_by_id = AsyncMock(return_value=None)
    cache.get_profile_by_pubkey = AsyncMock(return_value=None)
    return cache


@pytest.fixture
def sdk_error() -> NostrSdkError:
    """A real ``NostrSdkError`` raised by the SDK itself."""
    try:
        Keys.parse("not-a-key")
    except NostrSdkError as e:
        return e
    raise AssertionError("Keys.parse accepted an invalid key")
