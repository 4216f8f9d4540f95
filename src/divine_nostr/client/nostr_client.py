"""High-level Nostr client with relay management and local caching.

[NostrClient][divine_nostr.client.nostr_client.NostrClient] is the single
entry point applications talk to. It composes three collaborators, each
behind a narrow interface from
[protocols][divine_nostr.client.protocols]:

* a [NostrProtocol][divine_nostr.client.protocols.NostrProtocol] that signs,
  sends, queries and subscribes;
* a [RelayConnections][divine_nostr.client.protocols.RelayConnections] that
  knows which relays are connected and can reconnect them;
* an optional [EventStore][divine_nostr.client.protocols.EventStore] used as
  a local cache.

Caching rules:

* Publishing writes regular events to the cache before sending. If no
  relay is reachable even after a reconnection attempt, that write is
  rolled back. Replaceable and addressable kinds are never written
  optimistically.
* Reads by id or pubkey are served from the cache when possible. Misses
  go to the relays and the result is cached before it is returned.
* Single-filter queries merge the cache with the relay result. Queries
  with several filters always go to the relays only.
* Subscription events are delivered first and cached in the background.
  A failed cache write never affects delivery.

Examples:
    ```python
    config = NostrClientConfig.from_yaml("config/client.yaml")
    async with NostrClient.from_config(config) as client:
        note = Event.create(pubkey=client.public_key, kind=EventKind.TEXT_NOTE, content="gm")
        sent = await client.publish_event(note)
    ```
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

from divine_nostr.core.event_cache import EventCache
from divine_nostr.core.exceptions import CountNotSupportedError
from divine_nostr.core.logger import Logger
from divine_nostr.core.pool import Pool
from divine_nostr.models import (
    CountResponse,
    CountSource,
    EventKind,
    Filter,
    is_replaceable_kind,
)
from divine_nostr.nips import (
    build_generic_repost,
    build_http_auth_event,
    encode_authorization_header,
)
from divine_nostr.utils.protocol import SdkNostr, create_client

from .configs import ClientTimeoutsConfig, NostrClientConfig
from .relay_manager import RelayManager
from .relay_storage import YamlRelayStorage
from .subscription import Subscription


if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Mapping, Sequence
    from types import TracebackType

    from divine_nostr.models import ContactList, Event, RelayConnectionStatus

    from .protocols import EventStore, NostrProtocol, RelayConnections


class NostrClient:
    """Nostr client facade.

    Args:
        nostr: Protocol client used for every relay operation.
        relay_manager: Connectivity source for the publish path and the
            relay pass-through methods.
        cache: Optional local event store.
        timeouts: Default timeouts for queries and counts.
        managed_cache: Event cache whose connection lifecycle this client
            owns (opened on ``initialize``, closed on ``dispose``). Set by
            [from_config()][divine_nostr.client.nostr_client.NostrClient.from_config].

    Note:
        ``None`` results mean "did not succeed". Failures on the primary
        send, query and subscribe paths propagate; failures of the
        opportunistic cache writes are logged and swallowed.
    """

    def __init__(
        self,
        nostr: NostrProtocol,
        relay_manager: RelayConnections,
        cache: EventStore | None = None,
        *,
        timeouts: ClientTimeoutsConfig | None = None,
        managed_cache: EventCache | None = None,
    ) -> None:
        self._nostr = nostr
        self._relay_manager = relay_manager
        self._cache = cache
        self._timeouts = timeouts or ClientTimeoutsConfig()
        self._managed_cache = managed_cache
        self._logger = Logger("nostr_client")
        self._subscriptions: dict[str, Subscription] = {}
        self._cache_tasks: set[asyncio.Task[None]] = set()
        self._disposed = False

    @classmethod
    def from_config(cls, config: NostrClientConfig) -> NostrClient:
        """Wire an SDK client, relay manager and optional cache from *config*."""
        keys = config.keys.keys
        sdk_client = create_client(keys)
        storage = (
            YamlRelayStorage(Path(config.relays.storage_path).expanduser())
            if config.relays.storage_path
            else None
        )
        cache = (
            EventCache(pool=Pool(config=config.pool), config=config.cache)
            if config.cache is not None
            else None
        )
        return cls(
            SdkNostr(sdk_client, keys, timeout=config.timeouts.query),
            RelayManager(sdk_client, config.relays, storage),
            cache,
            timeouts=config.timeouts,
            managed_cache=cache,
        )

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def public_key(self) -> str:
        return self._nostr.public_key

    @property
    def has_keys(self) -> bool:
        return bool(self.public_key)

    @property
    def is_initialized(self) -> bool:
        return self._relay_manager.is_initialized

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def cache(self) -> EventStore | None:
        return self._cache

    @property
    def active_subscription_ids(self) -> list[str]:
        return list(self._subscriptions)

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    async def publish_event(
        self,
        event: Event,
        *,
        target_relays: Sequence[str] | None = None,
    ) -> Event | None:
        """Publish *event*, caching it optimistically.

        Returns:
            The event as sent, or ``None`` if it was not sent. When no
            relay is reachable after a reconnection attempt, the optimistic
            cache entry is deleted again, also when the reconnection attempt
            itself raises. A send rejected by connected relays leaves the
            cache untouched.
        """
        self._logger.debug("publish_started", event_id=event.id, kind=event.kind)

        cached = False
        if self._cache is not None and not is_replaceable_kind(event.kind):
            await self._cache.upsert_event(event)
            cached = True

        if not self._relay_manager.connected_relays:
            self._logger.info("publish_reconnecting", event_id=event.id)
            try:
                await self._relay_manager.retry_disconnected_relays()
            except Exception:
                if cached:
                    await self._rollback(event)
                raise

            if not self._relay_manager.connected_relays:
                if cached:
                    await self._rollback(event)
                else:
                    self._logger.warning("publish_failed", event_id=event.id, reason="no_relays")
                return None

        sent = await self._nostr.send_event(event, target_relays=target_relays)
        if sent is None:
            self._logger.warning("publish_failed", event_id=event.id, reason="send_rejected")
        else:
            self._logger.info("publish_sent", event_id=sent.id, kind=sent.kind)
        return sent

    async def _rollback(self, event: Event) -> None:
        if self._cache is not None:
            await self._cache.delete_events_by_ids([event.id])
            self._logger.warning("publish_rolled_back", event_id=event.id)

    # -------------------------------------------------------------------------
    # Cache-first Reads
    # -------------------------------------------------------------------------

    async def query_events(
        self,
        filters: Sequence[Filter],
        *,
        subscription_id: str | None = None,
        temp_relays: Sequence[str] | None = None,
        use_cache: bool = True,
    ) -> list[Event]:
        """Query relays, merging with the cache for single-filter queries.

        The cache is consulted only for exactly one filter. Relays are
        always queried and their result is written to the cache. Every relay
        event is kept in a merged result. Cache-only events fill it up to the
        filter ``limit``, and the whole list is sorted newest first.
        """
        cached: list[Event] = []
        if self._cache is not None and use_cache and len(filters) == 1:
            try:
                cached = await self._cache.get_events_by_filter(filters[0])
            except Exception as e:  # Intentionally broad: cache read degrades to a miss
                self._logger.warning("cache_read_failed", operation="query_events", error=str(e))

        events = await self._nostr.query_events(
            filters,
            subscription_id=subscription_id,
            temp_relays=temp_relays,
            timeout=self._timeouts.query,
        )

        if self._cache is not None and events:
            try:
                await self._cache.upsert_events_batch(events)
            except Exception as e:  # Intentionally broad: cache writes are best-effort
                self._logger.warning("cache_write_failed", operation="query_events", error=str(e))

        if not cached:
            return events

        relay_ids = {e.id for e in events}
        cache_only = sorted(
            (e for e in cached if e.id not in relay_ids), key=lambda e: (-e.created_at, e.id)
        )
        limit = filters[0].limit
        if limit is not None:
            cache_only = cache_only[: max(limit - len(events), 0)]
        result = sorted([*events, *cache_only], key=lambda e: (-e.created_at, e.id))
        self._logger.debug(
            "query_merged", cached=len(cached), relays=len(events), returned=len(result)
        )
        return result

    async def fetch_event_by_id(self, event_id: str, relay_url: str | None = None) -> Event | None:
        """Return the event with *event_id*, from the cache if possible."""
        if self._cache is not None:
            hit = await self._read_cache(self._cache.get_event_by_id, event_id)
            if hit is not None:
                return hit

        events = await self._nostr.query_events(
            [Filter(ids=[event_id], limit=1)],
            temp_relays=[relay_url] if relay_url else None,
            timeout=self._timeouts.query,
        )
        return await self._store_first(events)

    async def fetch_profile(self, pubkey: str) -> Event | None:
        """Return the newest kind 0 metadata event of *pubkey*."""
        if self._cache is not None:
            hit = await self._read_cache(self._cache.get_profile_by_pubkey, pubkey)
            if hit is not None:
                return hit

        events = await self._nostr.query_events(
            [Filter(authors=[pubkey], kinds=[EventKind.METADATA], limit=1)],
            timeout=self._timeouts.query,
        )
        return await self._store_first(events)

    async def _read_cache(
        self, lookup: Callable[[str], Awaitable[Event | None]], key: str
    ) -> Event | None:
        try:
            return await lookup(key)
        except Exception as e:  # Intentionally broad: cache read degrades to a miss
            self._logger.warning("cache_read_failed", key=key, error=str(e))
            return None

    async def _store_first(self, events: list[Event]) -> Event | None:
        if not events:
            return None
        event = events[0]
        if self._cache is not None:
            try:
                await self._cache.upsert_event(event)
            except Exception as e:  # Intentionally broad: cache writes are best-effort
                self._logger.warning("cache_write_failed", event_id=event.id, error=str(e))
        return event

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    async def subscribe(
        self,
        filters: Sequence[Filter],
        *,
        subscription_id: str | None = None,
        temp_relays: Sequence[str] | None = None,
        target_relays: Sequence[str] | None = None,
    ) -> Subscription:
        """Open a live subscription.

        Events are pushed to the returned
        [Subscription][divine_nostr.client.subscription.Subscription]
        before they are cached. The subscription is tracked under the id
        the protocol client returns.
        """
        subscription = Subscription(subscription_id or "", tuple(filters), self.unsubscribe)

        def on_event(event: Event) -> None:
            subscription.push(event)
            if self._cache is not None:
                self._schedule_cache_write(event)

        sub_id = await self._nostr.subscribe(
            filters,
            on_event,
            subscription_id=subscription_id,
            temp_relays=temp_relays,
            target_relays=target_relays,
            on_eose=subscription.mark_eose,
        )
        subscription.id = sub_id

        previous = self._subscriptions.pop(sub_id, None)
        if previous is not None:
            previous.finish()
        self._subscriptions[sub_id] = subscription
        self._logger.debug("subscription_started", subscription=sub_id, filters=len(filters))
        return subscription

    async def unsubscribe(self, subscription_id: str) -> None:
        """Close one subscription. Unknown or already closed ids are ignored."""
        subscription = self._subscriptions.pop(subscription_id, None)
        if subscription is None:
            return
        await self._nostr.unsubscribe(subscription_id)
        subscription.finish()
        self._logger.debug("subscription_closed", subscription=subscription_id)

    async def close_all_subscriptions(self) -> None:
        for subscription_id in list(self._subscriptions):
            await self.unsubscribe(subscription_id)

    async def search_videos(
        self,
        query: str,
        *,
        since: int | None = None,
        until: int | None = None,
        limit: int | None = None,
    ) -> Subscription:
        """Subscribe to NIP-50 search results for video events (kind 34236)."""
        return await self.subscribe(
            [Filter(kinds=[EventKind.VIDEO], search=query, since=since, until=until, limit=limit)]
        )

    async def search_users(self, query: str, *, limit: int | None = None) -> Subscription:
        """Subscribe to NIP-50 search results for profile metadata (kind 0)."""
        return await self.subscribe([Filter(kinds=[EventKind.METADATA], search=query, limit=limit)])

    def _schedule_cache_write(self, event: Event) -> None:
        task = asyncio.get_running_loop().create_task(self._cache_event(event))
        self._cache_tasks.add(task)
        task.add_done_callback(self._cache_tasks.discard)

    async def _cache_event(self, event: Event) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.upsert_event(event)
        except Exception as e:  # Intentionally broad: delivery already happened
            self._logger.warning("cache_write_failed", event_id=event.id, error=str(e))

    # -------------------------------------------------------------------------
    # Count
    # -------------------------------------------------------------------------

    async def count_events(
        self,
        filters: Sequence[Filter],
        *,
        subscription_id: str | None = None,
        temp_relays: Sequence[str] | None = None,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> CountResponse:
        """Count matching events with NIP-45, counting fetched events as a fallback.

        Raises:
            Exception: Anything other than
                [CountNotSupportedError][divine_nostr.core.exceptions.CountNotSupportedError]
                raised by the relay COUNT request.
        """
        try:
            return await self._nostr.count_events(
                filters,
                subscription_id=subscription_id,
                temp_relays=temp_relays,
                timeout=timeout if timeout is not None else self._timeouts.count,
            )
        except CountNotSupportedError:
            self._logger.debug("count_fallback", filters=len(filters))

        events = await self.query_events(
            filters,
            subscription_id=subscription_id,
            temp_relays=temp_relays,
            use_cache=False,
        )
        return CountResponse(count=len(events), approximate=False, source=CountSource.CLIENT_SIDE)

    # -------------------------------------------------------------------------
    # Relays
    # -------------------------------------------------------------------------

    @property
    def connected_relays(self) -> list[str]:
        return self._relay_manager.connected_relays

    @property
    def connected_relay_count(self) -> int:
        return len(self._relay_manager.connected_relays)

    @property
    def configured_relays(self) -> list[str]:
        return self._relay_manager.configured_relays

    @property
    def configured_relay_count(self) -> int:
        return len(self._relay_manager.configured_relays)

    @property
    def relay_statuses(self) -> Mapping[str, RelayConnectionStatus]:
        return self._relay_manager.current_statuses

    def relay_status_stream(self) -> AsyncIterator[dict[str, RelayConnectionStatus]]:
        return self._relay_manager.status_stream()

    async def add_relay(self, url: str) -> bool:
        return await self._relay_manager.add_relay(url)

    async def add_relays(self, urls: Sequence[str]) -> int:
        """Add every URL in turn and return how many were added."""
        added = 0
        for url in urls:
            if await self._relay_manager.add_relay(url):
                added += 1
        return added

    async def remove_relay(self, url: str) -> bool:
        return await self._relay_manager.remove_relay(url)

    async def retry_disconnected_relays(self) -> None:
        await self._relay_manager.retry_disconnected_relays()

    async def force_reconnect_all(self) -> None:
        await self._relay_manager.force_reconnect_all()

    # -------------------------------------------------------------------------
    # Signing and Social Actions
    # -------------------------------------------------------------------------

    async def sign_event(self, event: Event) -> Event | None:
        return await self._nostr.sign_event(event)

    async def send_like(
        self,
        event_id: str,
        *,
        content: str = "+",
        author_pubkey: str | None = None,
        temp_relays: Sequence[str] | None = None,
        target_relays: Sequence[str] | None = None,
    ) -> Event | None:
        return await self._nostr.send_like(
            event_id,
            content=content,
            author_pubkey=author_pubkey,
            temp_relays=temp_relays,
            target_relays=target_relays,
        )

    async def send_repost(
        self,
        event_id: str,
        *,
        relay_url: str | None = None,
        content: str = "",
        author_pubkey: str | None = None,
        temp_relays: Sequence[str] | None = None,
        target_relays: Sequence[str] | None = None,
    ) -> Event | None:
        return await self._nostr.send_repost(
            event_id,
            relay_url=relay_url,
            content=content,
            author_pubkey=author_pubkey,
            temp_relays=temp_relays,
            target_relays=target_relays,
        )

    async def send_generic_repost(
        self,
        *,
        addressable_id: str,
        target_kind: int,
        author_pubkey: str,
        content: str = "",
        temp_relays: Sequence[str] | None = None,
        target_relays: Sequence[str] | None = None,
    ) -> Event | None:
        """Repost an addressable event (kind 16) such as a video."""
        if not self.has_keys:
            self._logger.warning("send_generic_repost_skipped", reason="no_keys")
            return None
        event = build_generic_repost(
            self.public_key,
            addressable_id=addressable_id,
            target_kind=target_kind,
            author_pubkey=author_pubkey,
            content=content,
        )
        return await self._nostr.send_event(
            event, target_relays=target_relays, temp_relays=temp_relays
        )

    async def delete_event(
        self,
        event_id: str,
        *,
        reason: str = "",
        temp_relays: Sequence[str] | None = None,
        target_relays: Sequence[str] | None = None,
    ) -> Event | None:
        return await self._nostr.delete_event(
            event_id, reason=reason, temp_relays=temp_relays, target_relays=target_relays
        )

    async def delete_events(
        self,
        event_ids: Sequence[str],
        *,
        reason: str = "",
        temp_relays: Sequence[str] | None = None,
        target_relays: Sequence[str] | None = None,
    ) -> Event | None:
        return await self._nostr.delete_events(
            event_ids, reason=reason, temp_relays=temp_relays, target_relays=target_relays
        )

    async def send_contact_list(
        self,
        contacts: ContactList,
        *,
        content: str = "",
        temp_relays: Sequence[str] | None = None,
        target_relays: Sequence[str] | None = None,
    ) -> Event | None:
        return await self._nostr.send_contact_list(
            contacts, content=content, temp_relays=temp_relays, target_relays=target_relays
        )

    async def create_nip98_auth_header(
        self,
        url: str,
        method: str,
        payload: str | None = None,
    ) -> str | None:
        """Build a NIP-98 ``Authorization`` header value for an HTTP request.

        Returns:
            ``"Nostr <base64>"``, or ``None`` when the event could not be signed.
        """
        if not self.has_keys:
            self._logger.warning("nip98_skipped", reason="no_keys")
            return None
        event = build_http_auth_event(self.public_key, url, method, payload=payload)
        signed = await self._nostr.sign_event(event)
        if signed is None or not signed.is_signed:
            self._logger.warning("nip98_sign_failed", url=url)
            return None
        return encode_authorization_header(signed)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """Open the managed cache (if any) and connect the relays."""
        if self._managed_cache is not None:
            await self._managed_cache.initialize()
        await self._relay_manager.initialize()
        self._logger.info(
            "client_initialized",
            relays=len(self._relay_manager.connected_relays),
            cache=self._cache is not None,
        )

    async def dispose(self) -> None:
        """Close subscriptions, the protocol client, relays and the managed cache.

        Safe to call more than once.
        """
        if self._disposed:
            return
        self._disposed = True
        await self.close_all_subscriptions()
        if self._cache_tasks:
            await asyncio.gather(*self._cache_tasks)
        await self._nostr.close()
        await self._relay_manager.dispose()
        if self._managed_cache is not None:
            await self._managed_cache.close()
        self._logger.info("client_disposed")

    async def __aenter__(self) -> NostrClient:
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.dispose()

    def __repr__(self) -> str:
        return (
            f"NostrClient(public_key={self.public_key[:8]!r}, "
            f"subscriptions={len(self._subscriptions)}, disposed={self._disposed})"
        )
