"""
Unit tests for client.relay_manager module.

Tests:
- URL normalization and the blocked host list
- initialize(): ordering, deduplication, blocked relays, stored lists
- add_relay() / remove_relay() with persistence
- Reconnection (retry, force, single relay) and pool status sync
- status_stream() snapshots and dispose()
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from nostr_sdk import RelayStatus

from divine_nostr.client.configs import RelaysConfig
from divine_nostr.client.relay_manager import (
    RelayManager,
    is_blocked_relay,
    normalize_relay_url,
)
from divine_nostr.models import RelayState


DEFAULT = "wss://relay.divine.video"
DAMUS = "wss://relay.damus.io"
NOS = "wss://nos.lol"
BLOCKED = "wss://index.coracle.social"


@pytest.fixture(autouse=True)
def plain_relay_urls():
    """Pass relay URLs to the SDK double as plain strings."""
    with patch("divine_nostr.client.relay_manager.RelayUrl") as relay_url:
        relay_url.parse.side_effect = lambda url: url
        yield relay_url


@pytest.fixture
def sdk_client() -> MagicMock:
    """nostr_sdk.Client double.

    A relay is connected once ``connect_relay`` ran for it and until
    ``remove_relay``. ``client.online[url]`` overrides that for one relay.
    """
    client = MagicMock()
    client.online = {}
    client.connected = set()
    client.add_relay = AsyncMock(return_value=True)
    client.connect_relay = AsyncMock(side_effect=client.connected.add)
    client.remove_relay = AsyncMock(side_effect=client.connected.discard)

    def relay(url):
        handle = MagicMock()
        handle.is_connected.side_effect = lambda: client.online.get(url, url in client.connected)
        handle.status.return_value = MagicMock(name="RelayStatus.DISCONNECTED")
        return handle

    client.relay = AsyncMock(side_effect=relay)
    return client


@pytest.fixture
def storage() -> MagicMock:
    storage = MagicMock()
    storage.load_relays = AsyncMock(return_value=[])
    storage.save_relays = AsyncMock()
    return storage


@pytest.fixture
def config() -> RelaysConfig:
    return RelaysConfig(relays=[DAMUS], poll_interval=3600.0, connect_timeout=0.2)


@pytest.fixture
async def manager(sdk_client, config, storage):
    manager = RelayManager(sdk_client, config, storage)
    yield manager
    await manager.dispose()


# ============================================================================
# URL helpers
# ============================================================================


class TestNormalizeRelayUrl:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("relay.damus.io", DAMUS),
            ("  wss://relay.damus.io/ ", DAMUS),
            ("ws://localhost:7777", "ws://localhost:7777"),
            ("wss://relay.example.com/path", "wss://relay.example.com/path"),
        ],
    )
    def test_normalized(self, raw, expected):
        assert normalize_relay_url(raw) == expected

    @pytest.mark.parametrize("raw", ["", "   ", "wss://", "wss:///"])
    def test_invalid(self, raw):
        assert normalize_relay_url(raw) is None


class TestIsBlockedRelay:
    def test_blocked(self):
        assert is_blocked_relay(BLOCKED)
        assert is_blocked_relay("wss://index.coracle.social/path")

    def test_allowed(self):
        assert not is_blocked_relay(DAMUS)


# ============================================================================
# Initialization
# ============================================================================


class TestInitialize:
    async def test_default_relay_first(self, manager):
        await manager.initialize()
        assert manager.configured_relays == [DEFAULT, DAMUS]
        assert manager.connected_relays == [DEFAULT, DAMUS]
        assert manager.is_initialized

    async def test_statuses(self, manager):
        await manager.initialize()
        default_status = manager.get_relay_status(DEFAULT)
        assert default_status.is_default
        assert default_status.state is RelayState.CONNECTED
        assert not manager.get_relay_status(DAMUS).is_default

    async def test_dedupes_and_normalizes(self, sdk_client, storage):
        config = RelaysConfig(
            relays=["relay.damus.io", DAMUS + "/", DEFAULT, "nos.lol"], poll_interval=3600.0
        )
        manager = RelayManager(sdk_client, config, storage)
        await manager.initialize()
        assert manager.configured_relays == [DEFAULT, DAMUS, NOS]
        await manager.dispose()

    async def test_blocked_config_relay_dropped_without_save(self, sdk_client, storage):
        config = RelaysConfig(relays=[BLOCKED, DAMUS], poll_interval=3600.0)
        manager = RelayManager(sdk_client, config, storage)
        await manager.initialize()
        assert BLOCKED not in manager.configured_relays
        storage.save_relays.assert_not_awaited()
        await manager.dispose()

    async def test_stored_relays_take_precedence(self, manager, storage):
        storage.load_relays.return_value = [NOS]
        await manager.initialize()
        assert manager.configured_relays == [DEFAULT, NOS]

    async def test_blocked_stored_relay_saved_back(self, manager, storage):
        storage.load_relays.return_value = [NOS, BLOCKED]
        await manager.initialize()
        storage.save_relays.assert_awaited_once_with([NOS])

    async def test_invalid_urls_skipped(self, manager, storage):
        storage.load_relays.return_value = ["wss://", NOS]
        await manager.initialize()
        assert manager.configured_relays == [DEFAULT, NOS]

    async def test_without_storage(self, sdk_client, config):
        manager = RelayManager(sdk_client, config)
        await manager.initialize()
        assert manager.configured_relay_count == 2
        await manager.dispose()

    async def test_idempotent(self, manager, sdk_client):
        await manager.initialize()
        await manager.initialize()
        assert sdk_client.add_relay.await_count == 2

    async def test_connection_error_recorded(self, manager, sdk_client, sdk_error):
        sdk_client.add_relay.side_effect = lambda url: _raise(sdk_error) if url == DAMUS else True

        await manager.initialize()

        status = manager.get_relay_status(DAMUS)
        assert status.state is RelayState.ERROR
        assert status.error_count == 1
        assert status.error_message == "Connection failed"
        assert manager.connected_relays == [DEFAULT]
        assert manager.is_initialized

    async def test_handshake_timeout(self, manager, sdk_client):
        sdk_client.online[DAMUS] = False
        await manager.initialize()
        assert manager.get_relay_status(DAMUS).state is RelayState.ERROR
        assert manager.has_connected_relay


def _raise(error):
    raise error


async def _next(stream):
    return await anext(stream)


# ============================================================================
# Relay management
# ============================================================================


class TestAddRelay:
    async def test_adds_and_persists(self, manager, storage):
        await manager.initialize()
        assert await manager.add_relay("nos.lol") is True
        assert manager.configured_relays == [DEFAULT, DAMUS, NOS]
        assert manager.is_relay_connected(NOS)
        storage.save_relays.assert_awaited_with([DEFAULT, DAMUS, NOS])

    async def test_invalid(self, manager, sdk_client):
        assert await manager.add_relay("wss://") is False
        sdk_client.add_relay.assert_not_awaited()

    async def test_blocked(self, manager):
        assert await manager.add_relay("index.coracle.social") is False
        assert not manager.is_relay_configured(BLOCKED)

    async def test_duplicate(self, manager, storage):
        await manager.initialize()
        assert await manager.add_relay("wss://relay.damus.io/") is False
        storage.save_relays.assert_not_awaited()

    async def test_failed_connection_keeps_relay(self, manager, sdk_client, storage, sdk_error):
        await manager.initialize()
        sdk_client.add_relay.side_effect = sdk_error

        assert await manager.add_relay(NOS) is False

        assert manager.is_relay_configured(NOS)
        status = manager.get_relay_status(NOS)
        assert status.state is RelayState.ERROR
        assert status.error_message == "Failed to connect"
        storage.save_relays.assert_awaited()


class TestRemoveRelay:
    async def test_removes(self, manager, sdk_client, storage):
        await manager.initialize()
        assert await manager.remove_relay("relay.damus.io") is True
        assert manager.configured_relays == [DEFAULT]
        assert manager.get_relay_status(DAMUS) is None
        sdk_client.remove_relay.assert_awaited_once_with(DAMUS)
        storage.save_relays.assert_awaited_with([DEFAULT])

    async def test_unknown(self, manager, sdk_client):
        await manager.initialize()
        assert await manager.remove_relay(NOS) is False
        sdk_client.remove_relay.assert_not_awaited()

    async def test_sdk_error_ignored(self, manager, sdk_client, sdk_error):
        await manager.initialize()
        sdk_client.remove_relay.side_effect = sdk_error
        assert await manager.remove_relay(DAMUS) is True


class TestLookups:
    async def test_lookups_normalize(self, manager):
        await manager.initialize()
        assert manager.is_relay_configured("relay.damus.io/")
        assert manager.is_relay_connected("relay.damus.io")
        assert manager.get_relay_status("nos.lol") is None
        assert not manager.is_relay_connected("wss://")

    async def test_current_statuses_is_copy(self, manager):
        await manager.initialize()
        statuses = manager.current_statuses
        statuses.clear()
        assert len(manager.current_statuses) == 2

    def test_repr(self, manager):
        assert repr(manager) == "RelayManager(configured=0, connected=0, initialized=False)"


# ============================================================================
# Reconnection
# ============================================================================


class TestReconnection:
    async def test_retry_only_disconnected(self, manager, sdk_client, sdk_error):
        sdk_client.add_relay.side_effect = lambda url: _raise(sdk_error) if url == DAMUS else True
        await manager.initialize()
        sdk_client.add_relay.reset_mock(side_effect=True)
        sdk_client.add_relay.return_value = True

        await manager.retry_disconnected_relays()

        sdk_client.add_relay.assert_awaited_once_with(DAMUS)
        status = manager.get_relay_status(DAMUS)
        assert status.state is RelayState.CONNECTED
        assert status.error_count == 0

    async def test_retry_failure_increments_errors(self, manager, sdk_client, sdk_error):
        sdk_client.add_relay.side_effect = lambda url: _raise(sdk_error) if url == DAMUS else True
        await manager.initialize()

        await manager.retry_disconnected_relays()

        status = manager.get_relay_status(DAMUS)
        assert status.error_count == 2
        assert status.error_message == "Reconnection failed"

    async def test_retry_noop_when_all_connected(self, manager, sdk_client):
        await manager.initialize()
        sdk_client.add_relay.reset_mock()
        await manager.retry_disconnected_relays()
        sdk_client.add_relay.assert_not_awaited()

    async def test_force_reconnect_all(self, manager, sdk_client):
        await manager.initialize()
        sdk_client.add_relay.reset_mock()

        await manager.force_reconnect_all()

        assert sdk_client.remove_relay.await_count == 2
        assert sdk_client.add_relay.await_count == 2
        assert manager.connected_relays == [DEFAULT, DAMUS]

    async def test_reconnect_relay(self, manager, sdk_client):
        await manager.initialize()
        assert await manager.reconnect_relay(DAMUS) is True
        sdk_client.remove_relay.assert_awaited_once_with(DAMUS)
        assert await manager.reconnect_relay(NOS) is False


class TestSyncFromPool:
    async def test_silent_disconnect_detected(self, manager, sdk_client):
        await manager.initialize()
        sdk_client.online[DAMUS] = False

        assert await manager._sync_from_pool() is True
        assert manager.get_relay_status(DAMUS).state is RelayState.DISCONNECTED
        assert await manager._sync_from_pool() is False

    async def test_connecting_state(self, manager, sdk_client):
        await manager.initialize()
        sdk_client.online[DAMUS] = False
        sdk_client.relay.side_effect = None
        handle = MagicMock()
        handle.is_connected.return_value = False
        handle.status.return_value = RelayStatus.CONNECTING
        sdk_client.relay.return_value = handle

        await manager._sync_from_pool()

        assert manager.get_relay_status(DAMUS).state is RelayState.CONNECTING

    async def test_error_kept_when_still_down(self, manager, sdk_client, sdk_error):
        sdk_client.add_relay.side_effect = lambda url: _raise(sdk_error) if url == DAMUS else True
        await manager.initialize()
        sdk_client.relay.side_effect = lambda url: _raise(sdk_error)

        await manager._sync_from_pool()

        assert manager.get_relay_status(DAMUS).state is RelayState.ERROR

    async def test_recovery_resets_errors(self, manager, sdk_client, sdk_error):
        sdk_client.add_relay.side_effect = lambda url: _raise(sdk_error) if url == DAMUS else True
        await manager.initialize()
        sdk_client.online[DAMUS] = True

        assert await manager._sync_from_pool() is True

        status = manager.get_relay_status(DAMUS)
        assert status.state is RelayState.CONNECTED
        assert status.error_count == 0

    async def test_poll_loop_updates_statuses(self, sdk_client, storage):
        manager = RelayManager(
            sdk_client, RelaysConfig(poll_interval=0.1, connect_timeout=0.2), storage
        )
        await manager.initialize()
        sdk_client.online[DEFAULT] = False

        for _ in range(50):
            if not manager.is_relay_connected(DEFAULT):
                break
            await asyncio.sleep(0.05)

        assert manager.get_relay_status(DEFAULT).state is RelayState.DISCONNECTED
        await manager.dispose()


# ============================================================================
# Status stream and disposal
# ============================================================================


class TestStatusStream:
    async def test_snapshots_follow_changes(self, manager):
        await manager.initialize()
        stream = manager.status_stream()
        first = asyncio.create_task(_next(stream))
        await asyncio.sleep(0)

        await manager.add_relay(NOS)

        connecting = await first
        assert connecting[NOS].state is RelayState.CONNECTING
        connected = await anext(stream)
        assert connected[NOS].state is RelayState.CONNECTED
        await stream.aclose()

    async def test_every_listener_notified(self, manager):
        streams = [manager.status_stream(), manager.status_stream()]
        pending = [asyncio.create_task(_next(s)) for s in streams]
        await asyncio.sleep(0)

        await manager.initialize()

        snapshots = await asyncio.gather(*pending)
        assert all(set(s) == {DEFAULT, DAMUS} for s in snapshots)
        for stream in streams:
            await stream.aclose()

    async def test_dispose_ends_stream(self, manager):
        stream = manager.status_stream()
        pending = asyncio.create_task(_next(stream))
        await asyncio.sleep(0)

        await manager.dispose()

        with pytest.raises(StopAsyncIteration):
            await pending

    async def test_stream_after_dispose_is_empty(self, manager):
        await manager.dispose()
        assert [s async for s in manager.status_stream()] == []


class TestDispose:
    async def test_stops_polling(self, manager):
        await manager.initialize()
        task = manager._poll_task

        await manager.dispose()

        assert task.cancelled()
        assert manager._poll_task is None
        assert not manager.is_initialized

    async def test_idempotent(self, manager):
        await manager.dispose()
        await manager.dispose()
