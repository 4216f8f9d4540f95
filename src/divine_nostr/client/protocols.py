"""Narrow interfaces consumed by [NostrClient][divine_nostr.client.nostr_client.NostrClient].

The client never depends on concrete classes. Each collaborator is a
structural ``typing.Protocol`` so tests can substitute plain
``AsyncMock``/``MagicMock`` fakes:

* [NostrProtocol][divine_nostr.client.protocols.NostrProtocol]: sign, send,
  query, count and subscribe. Implemented by
  [SdkNostr][divine_nostr.utils.protocol.SdkNostr].
* [RelayConnections][divine_nostr.client.protocols.RelayConnections]: report
  and alter relay connectivity. Implemented by
  [RelayManager][divine_nostr.client.relay_manager.RelayManager].
* [EventStore][divine_nostr.client.protocols.EventStore]: the local cache.
  Implemented by [EventCache][divine_nostr.core.event_cache.EventCache].
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol


if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Mapping, Sequence

    from divine_nostr.models import ContactList, CountResponse, Event, Filter, RelayConnectionStatus


class NostrProtocol(Protocol):
    """Signing, publishing, querying and subscribing against relays."""

    @property
    def public_key(self) -> str: ...

    async def sign_event(self, event: Event) -> Event | None:
        """Return the signed event, or ``None`` when signing is not possible."""
        ...

    async def send_event(
        self,
        event: Event,
        *,
        target_relays: Sequence[str] | None = None,
        temp_relays: Sequence[str] | None = None,
    ) -> Event | None:
        """Return the sent event, or ``None`` when no relay accepted it."""
        ...

    async def query_events(
        self,
        filters: Sequence[Filter],
        *,
        subscription_id: str | None = None,
        temp_relays: Sequence[str] | None = None,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> list[Event]: ...

    async def count_events(
        self,
        filters: Sequence[Filter],
        *,
        subscription_id: str | None = None,
        temp_relays: Sequence[str] | None = None,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> CountResponse:
        """Relay-native COUNT.

        Raises:
            CountNotSupportedError: When the relay layer cannot count.
        """
        ...

    async def subscribe(
        self,
        filters: Sequence[Filter],
        on_event: Callable[[Event], None],
        *,
        subscription_id: str | None = None,
        temp_relays: Sequence[str] | None = None,
        target_relays: Sequence[str] | None = None,
        on_eose: Callable[[], None] | None = None,
    ) -> str: ...

    async def unsubscribe(self, subscription_id: str) -> None: ...

    async def send_like(
        self,
        event_id: str,
        *,
        content: str = "+",
        author_pubkey: str | None = None,
        temp_relays: Sequence[str] | None = None,
        target_relays: Sequence[str] | None = None,
    ) -> Event | None: ...

    async def send_repost(
        self,
        event_id: str,
        *,
        relay_url: str | None = None,
        content: str = "",
        author_pubkey: str | None = None,
        temp_relays: Sequence[str] | None = None,
        target_relays: Sequence[str] | None = None,
    ) -> Event | None: ...

    async def delete_event(
        self,
        event_id: str,
        *,
        reason: str = "",
        temp_relays: Sequence[str] | None = None,
        target_relays: Sequence[str] | None = None,
    ) -> Event | None: ...

    async def delete_events(
        self,
        event_ids: Sequence[str],
        *,
        reason: str = "",
        temp_relays: Sequence[str] | None = None,
        target_relays: Sequence[str] | None = None,
    ) -> Event | None: ...

    async def send_contact_list(
        self,
        contacts: ContactList,
        *,
        content: str = "",
        temp_relays: Sequence[str] | None = None,
        target_relays: Sequence[str] | None = None,
    ) -> Event | None: ...

    async def close(self) -> None: ...


class RelayConnections(Protocol):
    """Relay connectivity as seen by the client."""

    @property
    def connected_relays(self) -> list[str]: ...

    @property
    def configured_relays(self) -> list[str]: ...

    @property
    def current_statuses(self) -> Mapping[str, RelayConnectionStatus]: ...

    @property
    def is_initialized(self) -> bool: ...

    async def initialize(self) -> None: ...

    async def retry_disconnected_relays(self) -> None: ...

    async def force_reconnect_all(self) -> None: ...

    async def add_relay(self, url: str) -> bool: ...

    async def remove_relay(self, url: str) -> bool: ...

    def status_stream(self) -> AsyncIterator[dict[str, RelayConnectionStatus]]: ...

    async def dispose(self) -> None: ...


class EventStore(Protocol):
    """Row-level operations of the local event cache."""

    async def upsert_event(self, event: Event) -> bool: ...

    async def upsert_events_batch(self, events: Sequence[Event]) -> int: ...

    async def delete_events_by_ids(self, event_ids: Sequence[str]) -> int: ...

    async def get_events_by_filter(self, event_filter: Filter) -> list[Event]: ...

    async def get_event_by_id(self, event_id: str) -> Event | None: ...

    async def get_profile_by_pubkey(self, pubkey: str) -> Event | None: ...
