"""Nostr protocol client over ``nostr_sdk.Client``.

[SdkNostr][divine_nostr.utils.protocol.SdkNostr] is the production
implementation of the
[NostrProtocol][divine_nostr.client.protocols.NostrProtocol] interface. It
signs, sends, queries, and subscribes through a shared ``nostr_sdk.Client``
and converts between the package models and SDK types through their NIP-01
JSON form.

Subscription notifications from every relay arrive on one
``handle_notifications`` loop, started with the first subscription. A
``HandleNotification`` subclass routes each event and EOSE message to the
callbacks registered for its subscription id.

Note:
    The Python bindings of nostr-sdk expose no NIP-45 COUNT request, so
    [count_events()][divine_nostr.utils.protocol.SdkNostr.count_events]
    always raises
    [CountNotSupportedError][divine_nostr.core.exceptions.CountNotSupportedError]
    and the client falls back to counting fetched events.

Examples:
    ```python
    client = create_client(keys)
    nostr = SdkNostr(client, keys)
    sent = await nostr.send_event(Event.create(pubkey=nostr.public_key, kind=1, content="gm"))
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING

from nostr_sdk import (
    Client,
    ClientBuilder,
    HandleNotification,
    NostrSdkError,
    NostrSigner,
    RelayUrl,
    UnsignedEvent,
)
from nostr_sdk import Event as NostrEvent
from nostr_sdk import Filter as NostrFilter

from divine_nostr.core.exceptions import CountNotSupportedError
from divine_nostr.models import ContactList, CountResponse, Event, Filter
from divine_nostr.nips import (
    build_contact_list,
    build_deletion,
    build_reaction,
    build_repost,
)


if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from nostr_sdk import Keys, RelayMessage


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def create_client(keys: Keys | None = None) -> Client:
    """Create a ``nostr_sdk.Client``, signing with *keys* when given."""
    builder = ClientBuilder()
    if keys is not None:
        builder = builder.signer(NostrSigner.keys(keys))
    return builder.build()


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------


def to_sdk_event(event: Event) -> NostrEvent:
    return NostrEvent.from_json(event.to_json())


def from_sdk_event(sdk_event: NostrEvent) -> Event:
    return Event.from_json(sdk_event.as_json())


def to_sdk_filter(event_filter: Filter) -> NostrFilter:
    return NostrFilter.from_json(json.dumps(event_filter.to_dict()))


# ---------------------------------------------------------------------------
# Subscription routing
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class _Route:
    """Callbacks and SDK-level ids behind one logical subscription."""

    on_event: Callable[[Event], None]
    on_eose: Callable[[], None] | None
    sdk_ids: list[str]
    pending_eose: set[str] = field(default_factory=set)


class _NotificationRouter(HandleNotification):
    """Dispatch relay notifications to per-subscription callbacks."""

    def __init__(self, owner: SdkNostr) -> None:
        super().__init__()
        self._owner = owner

    async def handle(self, relay_url: RelayUrl, subscription_id: str, event: NostrEvent) -> None:
        self._owner._dispatch_event(subscription_id, event)

    async def handle_msg(self, relay_url: RelayUrl, msg: RelayMessage) -> None:
        message = msg.as_enum()
        if message.is_end_of_stored_events():
            self._owner._dispatch_eose(message.subscription_id)


# ---------------------------------------------------------------------------
# SdkNostr
# ---------------------------------------------------------------------------


class SdkNostr:
    """Protocol client backed by ``nostr_sdk``.

    Args:
        client: Shared SDK client. The
            [RelayManager][divine_nostr.client.relay_manager.RelayManager]
            manages its relay pool.
        keys: Signing keys, or ``None`` for a read-only client.
        timeout: Default timeout in seconds for one-shot queries.
    """

    def __init__(
        self,
        client: Client,
        keys: Keys | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,  # noqa: ASYNC109
    ) -> None:
        self._client = client
        self._keys = keys
        self._timeout = timeout
        self._routes: dict[str, _Route] = {}
        self._sdk_to_route: dict[str, str] = {}
        self._notification_task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def client(self) -> Client:
        return self._client

    @property
    def public_key(self) -> str:
        """Hex public key of the signer, or ``""`` without keys."""
        return self._keys.public_key().to_hex() if self._keys is not None else ""

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _ensure_relays(self, urls: Sequence[str]) -> list[RelayUrl]:
        """Add and connect *urls* to the pool, returning the usable ones."""
        ready: list[RelayUrl] = []
        for url in urls:
            try:
                relay_url = RelayUrl.parse(url)
                await self._client.add_relay(relay_url)
                await self._client.connect_relay(relay_url)
            except NostrSdkError as e:
                logger.warning("temp_relay_unavailable relay=%s error=%s", url, e)
                continue
            ready.append(relay_url)
        return ready

    def _dispatch_event(self, sdk_id: str, sdk_event: NostrEvent) -> None:
        route_id = self._sdk_to_route.get(sdk_id)
        route = self._routes.get(route_id) if route_id is not None else None
        if route is None:
            return
        try:
            event = from_sdk_event(sdk_event)
        except (TypeError, ValueError) as e:
            logger.warning("subscription_event_invalid subscription=%s error=%s", route_id, e)
            return
        try:
            route.on_event(event)
        except Exception:  # Callback boundary: one bad consumer must not stop notifications
            logger.exception("subscription_callback_failed subscription=%s", route_id)

    def _dispatch_eose(self, sdk_id: str) -> None:
        route_id = self._sdk_to_route.get(sdk_id)
        route = self._routes.get(route_id) if route_id is not None else None
        if route is None or sdk_id not in route.pending_eose:
            return
        route.pending_eose.discard(sdk_id)
        if not route.pending_eose and route.on_eose is not None:
            route.on_eose()

    def _ensure_notification_loop(self) -> None:
        if self._notification_task is None or self._notification_task.done():
            router = _NotificationRouter(self)
            self._notification_task = asyncio.create_task(
                self._client.handle_notifications(router), name="nostr-notifications"
            )

    # -------------------------------------------------------------------------
    # Signing
    # -------------------------------------------------------------------------

    async def sign_event(self, event: Event) -> Event | None:
        """Sign *event* with the configured keys.

        Returns:
            The signed event, *event* itself if it is already signed, or
            ``None`` when there are no keys or the event belongs to
            another author.
        """
        if event.is_signed:
            return event
        if self._keys is None:
            logger.debug("sign_skipped reason=no_keys event_id=%s", event.id)
            return None
        if event.pubkey != self.public_key:
            logger.warning("sign_skipped reason=foreign_pubkey event_id=%s", event.id)
            return None
        unsigned = UnsignedEvent.from_json(event.to_json())
        return from_sdk_event(unsigned.sign_with_keys(self._keys))

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    async def send_event(
        self,
        event: Event,
        *,
        target_relays: Sequence[str] | None = None,
        temp_relays: Sequence[str] | None = None,
    ) -> Event | None:
        """Sign (if needed) and send *event*.

        Returns:
            The signed event when at least one relay accepted it, else ``None``.
        """
        signed = await self.sign_event(event)
        if signed is None:
            logger.warning("send_failed reason=unsigned event_id=%s", event.id)
            return None

        try:
            if temp_relays:
                await self._ensure_relays(temp_relays)
            sdk_event = to_sdk_event(signed)
            if target_relays:
                urls = await self._ensure_relays(target_relays)
                if not urls:
                    logger.warning("send_failed reason=no_target_relays event_id=%s", signed.id)
                    return None
                output = await self._client.send_event_to(urls, sdk_event)
            else:
                output = await self._client.send_event(sdk_event)
        except (NostrSdkError, OSError, TimeoutError) as e:
            logger.warning("send_failed event_id=%s error=%s", signed.id, e)
            return None

        if not output.success:
            logger.warning(
                "send_rejected event_id=%s failed=%s", signed.id, len(output.failed)
            )
            return None
        logger.debug("send_accepted event_id=%s relays=%s", signed.id, len(output.success))
        return signed

    async def _send_built(
        self,
        event: Event | None,
        target_relays: Sequence[str] | None,
        temp_relays: Sequence[str] | None,
    ) -> Event | None:
        if event is None:
            return None
        return await self.send_event(event, target_relays=target_relays, temp_relays=temp_relays)

    def _author(self, operation: str) -> str | None:
        pubkey = self.public_key
        if not pubkey:
            logger.warning("%s_skipped reason=no_keys", operation)
            return None
        return pubkey

    async def send_like(
        self,
        event_id: str,
        *,
        content: str = "+",
        author_pubkey: str | None = None,
        temp_relays: Sequence[str] | None = None,
        target_relays: Sequence[str] | None = None,
    ) -> Event | None:
        pubkey = self._author("send_like")
        event = (
            build_reaction(pubkey, event_id, content=content, author_pubkey=author_pubkey)
            if pubkey
            else None
        )
        return await self._send_built(event, target_relays, temp_relays)

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
        pubkey = self._author("send_repost")
        event = (
            build_repost(
                pubkey,
                event_id,
                relay_url=relay_url,
                content=content,
                author_pubkey=author_pubkey,
            )
            if pubkey
            else None
        )
        return await self._send_built(event, target_relays, temp_relays)

    async def delete_events(
        self,
        event_ids: Sequence[str],
        *,
        reason: str = "",
        temp_relays: Sequence[str] | None = None,
        target_relays: Sequence[str] | None = None,
    ) -> Event | None:
        pubkey = self._author("delete_events")
        event = build_deletion(pubkey, list(event_ids), reason=reason) if pubkey else None
        return await self._send_built(event, target_relays, temp_relays)

    async def delete_event(
        self,
        event_id: str,
        *,
        reason: str = "",
        temp_relays: Sequence[str] | None = None,
        target_relays: Sequence[str] | None = None,
    ) -> Event | None:
        return await self.delete_events(
            [event_id], reason=reason, temp_relays=temp_relays, target_relays=target_relays
        )

    async def send_contact_list(
        self,
        contacts: ContactList,
        *,
        content: str = "",
        temp_relays: Sequence[str] | None = None,
        target_relays: Sequence[str] | None = None,
    ) -> Event | None:
        pubkey = self._author("send_contact_list")
        event = build_contact_list(pubkey, contacts, content=content) if pubkey else None
        return await self._send_built(event, target_relays, temp_relays)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def query_events(
        self,
        filters: Sequence[Filter],
        *,
        subscription_id: str | None = None,
        temp_relays: Sequence[str] | None = None,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> list[Event]:
        """Fetch stored events for every filter and merge them by id, newest first.

        ``subscription_id`` only labels log lines; the SDK assigns its own
        ids to one-shot fetches.
        """
        wait = timedelta(seconds=timeout if timeout is not None else self._timeout)
        urls = await self._ensure_relays(temp_relays) if temp_relays else None

        merged: dict[str, Event] = {}
        for event_filter in filters:
            sdk_filter = to_sdk_filter(event_filter)
            if urls:
                events = await self._client.fetch_events_from(urls, sdk_filter, wait)
            else:
                events = await self._client.fetch_events(sdk_filter, wait)
            for sdk_event in events.to_vec():
                try:
                    if not sdk_event.verify():
                        continue
                    event = from_sdk_event(sdk_event)
                except (TypeError, ValueError):
                    continue
                merged.setdefault(event.id, event)

        result = sorted(merged.values(), key=lambda e: (-e.created_at, e.id))
        logger.debug(
            "query_completed subscription=%s filters=%s events=%s",
            subscription_id,
            len(filters),
            len(result),
        )
        return result

    async def count_events(
        self,
        filters: Sequence[Filter],
        *,
        subscription_id: str | None = None,
        temp_relays: Sequence[str] | None = None,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> CountResponse:
        raise CountNotSupportedError("nostr-sdk Python bindings do not expose NIP-45 COUNT")

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    async def subscribe(
        self,
        filters: Sequence[Filter],
        on_event: Callable[[Event], None],
        *,
        subscription_id: str | None = None,
        temp_relays: Sequence[str] | None = None,
        target_relays: Sequence[str] | None = None,
        on_eose: Callable[[], None] | None = None,
    ) -> str:
        """Open a live subscription and return its id.

        One SDK subscription is opened per filter. ``on_eose`` fires once
        every one of them has reported end of stored events.
        """
        if not filters:
            raise ValueError("subscribe requires at least one filter")

        route_id = subscription_id or uuid.uuid4().hex[:16]
        if route_id in self._routes:
            await self.unsubscribe(route_id)

        if temp_relays:
            await self._ensure_relays(temp_relays)
        urls = await self._ensure_relays(target_relays) if target_relays else None

        route = _Route(on_event=on_event, on_eose=on_eose, sdk_ids=[])
        self._routes[route_id] = route
        self._ensure_notification_loop()

        for i, event_filter in enumerate(filters):
            sdk_id = route_id if len(filters) == 1 else f"{route_id}:{i}"
            self._sdk_to_route[sdk_id] = route_id
            route.sdk_ids.append(sdk_id)
            route.pending_eose.add(sdk_id)
            sdk_filter = to_sdk_filter(event_filter)
            if urls:
                await self._client.subscribe_with_id_to(urls, sdk_id, sdk_filter, None)
            else:
                await self._client.subscribe_with_id(sdk_id, sdk_filter, None)

        logger.debug("subscription_opened subscription=%s filters=%s", route_id, len(filters))
        return route_id

    async def unsubscribe(self, subscription_id: str) -> None:
        route = self._routes.pop(subscription_id, None)
        if route is None:
            return
        for sdk_id in route.sdk_ids:
            self._sdk_to_route.pop(sdk_id, None)
            await self._client.unsubscribe(sdk_id)
        logger.debug("subscription_closed subscription=%s", subscription_id)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Close every subscription, stop notifications, and shut the SDK client down."""
        if self._closed:
            return
        self._closed = True
        for route_id in list(self._routes):
            await self.unsubscribe(route_id)
        if self._notification_task is not None:
            self._notification_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._notification_task
            self._notification_task = None
        # nostr-sdk Rust FFI can raise arbitrary exception types during shutdown.
        with contextlib.suppress(Exception):
            await self._client.shutdown()
        logger.debug("protocol_client_closed")
