"""Relay list management and connection status tracking.

[RelayManager][divine_nostr.client.relay_manager.RelayManager] owns the
relay pool of a shared ``nostr_sdk.Client``: which relays are configured,
their [RelayConnectionStatus][divine_nostr.models.RelayConnectionStatus],
reconnection, and persistence of the list through a
[RelayStorage][divine_nostr.client.relay_storage.RelayStorage].

Status changes are published as full snapshots to every
[status_stream()][divine_nostr.client.relay_manager.RelayManager.status_stream]
listener. A background task polls the SDK pool every ``poll_interval``
seconds so silent disconnects show up in the snapshots.

Examples:
    ```python
    manager = RelayManager(client, RelaysConfig(), YamlRelayStorage("relays.yaml"))
    await manager.initialize()
    await manager.add_relay("relay.damus.io")  # normalized to wss://relay.damus.io
    manager.connected_relays
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from nostr_sdk import NostrSdkError, RelayStatus, RelayUrl

from divine_nostr.core.logger import Logger
from divine_nostr.models import RelayConnectionStatus, RelayState

from .configs import RelaysConfig


if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping

    from nostr_sdk import Client

    from .relay_storage import RelayStorage


BLOCKED_HOSTS: frozenset[str] = frozenset({"index.coracle.social"})

_CONNECT_POLL_SECONDS = 0.1


def normalize_relay_url(url: str) -> str | None:
    """Normalize a user-supplied relay URL.

    Trims whitespace, adds ``wss://`` when no websocket scheme is present
    and strips one trailing slash.

    Returns:
        The normalized URL, or ``None`` if it has no host.
    """
    normalized = url.strip()
    if not normalized.startswith(("wss://", "ws://")):
        normalized = f"wss://{normalized}"
    normalized = normalized.removesuffix("/")
    try:
        host = urlsplit(normalized).hostname
    except ValueError:
        return None
    return normalized if host else None


def is_blocked_relay(url: str) -> bool:
    try:
        return urlsplit(url).hostname in BLOCKED_HOSTS
    except ValueError:
        return False


class RelayManager:
    """Configured relays and their connection status.

    Args:
        client: Shared SDK client whose relay pool is managed.
        config: Default relay, initial relays and polling settings.
        storage: Optional persistence for the relay list.
    """

    def __init__(
        self,
        client: Client,
        config: RelaysConfig | None = None,
        storage: RelayStorage | None = None,
    ) -> None:
        self._client = client
        self._config = config or RelaysConfig()
        self._storage = storage
        self._logger = Logger("relay_manager")
        self._configured: list[str] = []
        self._statuses: dict[str, RelayConnectionStatus] = {}
        self._listeners: list[asyncio.Queue[dict[str, RelayConnectionStatus] | None]] = []
        self._poll_task: asyncio.Task[None] | None = None
        self._initialized = False
        self._disposed = False

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def config(self) -> RelaysConfig:
        return self._config

    @property
    def default_relay(self) -> str | None:
        return normalize_relay_url(self._config.default_relay)

    @property
    def configured_relays(self) -> list[str]:
        return list(self._configured)

    @property
    def configured_relay_count(self) -> int:
        return len(self._configured)

    @property
    def connected_relays(self) -> list[str]:
        return [
            url
            for url in self._configured
            if (status := self._statuses.get(url)) is not None and status.is_connected
        ]

    @property
    def connected_relay_count(self) -> int:
        return len(self.connected_relays)

    @property
    def has_connected_relay(self) -> bool:
        return self.connected_relay_count > 0

    @property
    def current_statuses(self) -> Mapping[str, RelayConnectionStatus]:
        return dict(self._statuses)

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """Load, filter and connect the relay list, then start status polling.

        Stored relays take precedence over ``config.relays``. Blocked hosts
        are dropped and, if any were stored, the filtered list is saved
        back. The default relay is always present and always first.
        Calling this again after success is a no-op.
        """
        if self._initialized:
            self._logger.debug("relay_manager_already_initialized")
            return

        stored = await self._storage.load_relays() if self._storage is not None else []
        blocked = 0
        for url in stored or self._config.relays:
            normalized = normalize_relay_url(url)
            if normalized is None:
                self._logger.warning("relay_url_invalid", url=url)
                continue
            if is_blocked_relay(normalized):
                blocked += 1
                continue
            if normalized not in self._configured:
                self._configured.append(normalized)

        if blocked:
            self._logger.info("blocked_relays_filtered", count=blocked)
            if stored:
                await self._save()

        default = self.default_relay
        if default is not None:
            if default in self._configured:
                self._configured.remove(default)
            self._configured.insert(0, default)

        for url in self._configured:
            self._statuses[url] = RelayConnectionStatus.connecting(url, is_default=url == default)
        self._notify()

        results = await asyncio.gather(*(self._connect(url) for url in self._configured))
        for url, ok in zip(self._configured, results, strict=True):
            self._mark(url, ok, "Connection failed")

        self._poll_task = asyncio.create_task(self._poll_loop(), name="relay-status-poll")
        self._initialized = True
        self._notify()
        self._logger.info(
            "relay_manager_initialized",
            configured=self.configured_relay_count,
            connected=self.connected_relay_count,
        )

    async def dispose(self) -> None:
        """Stop polling and end every status stream."""
        if self._poll_task is not None:
            self._poll_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._poll_task
            self._poll_task = None
        self._disposed = True
        for queue in self._listeners:
            queue.put_nowait(None)
        self._listeners.clear()
        self._initialized = False
        self._logger.debug("relay_manager_disposed")

    # -------------------------------------------------------------------------
    # Relay Management
    # -------------------------------------------------------------------------

    async def add_relay(self, url: str) -> bool:
        """Add, connect and persist a relay.

        Returns:
            ``True`` if the relay connected. ``False`` for an invalid,
            blocked or already configured URL, or a failed connection (the
            relay stays configured with an ``ERROR`` status).
        """
        normalized = normalize_relay_url(url)
        if normalized is None:
            self._logger.warning("relay_url_invalid", url=url)
            return False
        if is_blocked_relay(normalized):
            self._logger.info("relay_blocked", url=normalized)
            return False
        if normalized in self._configured:
            self._logger.debug("relay_already_configured", url=normalized)
            return False

        self._configured.append(normalized)
        self._statuses[normalized] = RelayConnectionStatus.connecting(normalized)
        self._notify()

        ok = await self._connect(normalized)
        self._mark(normalized, ok, "Failed to connect")
        self._notify()
        await self._save()
        self._logger.info("relay_added", url=normalized, connected=ok)
        return ok

    async def remove_relay(self, url: str) -> bool:
        """Disconnect and forget a relay. ``False`` if it was not configured."""
        normalized = normalize_relay_url(url)
        if normalized is None or normalized not in self._configured:
            return False

        await self._disconnect(normalized)
        self._configured.remove(normalized)
        self._statuses.pop(normalized, None)
        await self._save()
        self._notify()
        self._logger.info("relay_removed", url=normalized)
        return True

    def is_relay_configured(self, url: str) -> bool:
        normalized = normalize_relay_url(url)
        return normalized is not None and normalized in self._configured

    def is_relay_connected(self, url: str) -> bool:
        status = self.get_relay_status(url)
        return status is not None and status.is_connected

    def get_relay_status(self, url: str) -> RelayConnectionStatus | None:
        normalized = normalize_relay_url(url)
        return self._statuses.get(normalized) if normalized is not None else None

    # -------------------------------------------------------------------------
    # Reconnection
    # -------------------------------------------------------------------------

    async def retry_disconnected_relays(self) -> None:
        """Reconnect every configured relay that is not currently connected."""
        await self._sync_from_pool()
        pending = [
            url
            for url in self._configured
            if (status := self._statuses.get(url)) is not None and not status.is_connected
        ]
        if not pending:
            return

        self._logger.info("relays_retrying", count=len(pending))
        for url in pending:
            self._set(url, self._statuses[url].replace(state=RelayState.CONNECTING))
        self._notify()

        for url in pending:
            self._mark(url, await self._connect(url), "Reconnection failed")
        self._notify()

    async def force_reconnect_all(self) -> None:
        """Drop and reconnect every configured relay."""
        urls = list(self._configured)
        self._logger.info("relays_force_reconnecting", count=len(urls))
        for url in urls:
            await self._disconnect(url)
            self._set(url, self._statuses[url].replace(state=RelayState.CONNECTING))
        self._notify()

        for url in urls:
            self._mark(url, await self._connect(url), "Force reconnection failed")
        self._notify()

    async def reconnect_relay(self, url: str) -> bool:
        """Drop and reconnect one configured relay."""
        normalized = normalize_relay_url(url)
        if normalized is None or normalized not in self._configured:
            return False

        self._set(normalized, self._statuses[normalized].replace(state=RelayState.CONNECTING))
        self._notify()
        await self._disconnect(normalized)
        ok = await self._connect(normalized)
        self._mark(normalized, ok, "Reconnection failed")
        self._notify()
        return ok

    # -------------------------------------------------------------------------
    # Status Stream
    # -------------------------------------------------------------------------

    async def status_stream(self) -> AsyncIterator[dict[str, RelayConnectionStatus]]:
        """Yield a snapshot of every relay status after each change.

        Each listener gets its own queue; iteration ends on
        [dispose()][divine_nostr.client.relay_manager.RelayManager.dispose].
        """
        if self._disposed:
            return
        queue: asyncio.Queue[dict[str, RelayConnectionStatus] | None] = asyncio.Queue()
        self._listeners.append(queue)
        try:
            while (snapshot := await queue.get()) is not None:
                yield snapshot
        finally:
            if queue in self._listeners:
                self._listeners.remove(queue)

    # -------------------------------------------------------------------------
    # Private Methods
    # -------------------------------------------------------------------------

    def _notify(self) -> None:
        snapshot = dict(self._statuses)
        for queue in self._listeners:
            queue.put_nowait(snapshot)

    def _set(self, url: str, status: RelayConnectionStatus) -> None:
        if url in self._statuses:
            self._statuses[url] = status

    def _mark(self, url: str, ok: bool, error_message: str) -> None:
        current = self._statuses.get(url)
        if current is None:
            return
        self._set(url, current.with_success() if ok else current.with_error(error_message))

    async def _save(self) -> None:
        if self._storage is None:
            return
        await self._storage.save_relays(list(self._configured))
        self._logger.debug("relays_saved", count=len(self._configured))

    async def _connect(self, url: str) -> bool:
        """Add *url* to the SDK pool, connect and wait for the handshake."""
        try:
            relay_url = RelayUrl.parse(url)
            await self._client.add_relay(relay_url)
            await self._client.connect_relay(relay_url)
            relay = await self._client.relay(relay_url)
            async with asyncio.timeout(self._config.connect_timeout):
                while not relay.is_connected():
                    await asyncio.sleep(_CONNECT_POLL_SECONDS)
        except (NostrSdkError, TimeoutError, OSError) as e:
            self._logger.warning("relay_connect_failed", url=url, error=str(e) or type(e).__name__)
            return False
        self._logger.debug("relay_connected", url=url)
        return True

    async def _disconnect(self, url: str) -> None:
        try:
            await self._client.remove_relay(RelayUrl.parse(url))
        except NostrSdkError as e:
            self._logger.debug("relay_remove_failed", url=url, error=str(e))

    async def _probe(self, url: str) -> RelayState:
        try:
            relay = await self._client.relay(RelayUrl.parse(url))
        except NostrSdkError:
            return RelayState.DISCONNECTED
        if relay.is_connected():
            return RelayState.CONNECTED
        if relay.status() in (RelayStatus.PENDING, RelayStatus.CONNECTING):
            return RelayState.CONNECTING
        return RelayState.DISCONNECTED

    async def _sync_from_pool(self) -> bool:
        """Refresh statuses from the SDK pool. Returns whether anything changed."""
        changed = False
        for url in list(self._configured):
            current = self._statuses.get(url)
            if current is None:
                continue
            state = await self._probe(url)
            if current.is_connected and state == RelayState.CONNECTED:
                continue
            if state == current.state or (
                current.state == RelayState.ERROR and state == RelayState.DISCONNECTED
            ):
                continue
            if state == RelayState.CONNECTED:
                self._set(url, current.with_success())
            else:
                self._set(url, current.replace(state=state))
            changed = True
        return changed

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.poll_interval)
            try:
                if await self._sync_from_pool():
                    self._notify()
            except Exception as e:  # Intentionally broad: polling must outlive one bad cycle
                self._logger.error("relay_status_poll_failed", error=str(e))

    def __repr__(self) -> str:
        return (
            f"RelayManager(configured={self.configured_relay_count}, "
            f"connected={self.connected_relay_count}, initialized={self._initialized})"
        )
