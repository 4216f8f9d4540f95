"""Live subscription handle returned by
[NostrClient.subscribe()][divine_nostr.client.nostr_client.NostrClient.subscribe].

A [Subscription][divine_nostr.client.subscription.Subscription] is an async
iterator over an ``asyncio.Queue``. The protocol callback feeds it through
[push()][divine_nostr.client.subscription.Subscription.push] and iteration
ends once the subscription is finished.

Examples:
    ```python
    sub = await client.subscribe([Filter(kinds=[1], limit=10)])
    async for event in sub:
        print(event.content)
        if sub.eose.is_set():
            await sub.close()
    ```
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from divine_nostr.models import Event, Filter


_DONE: Any = object()


class Subscription:
    """Async iterator over the events of one subscription.

    Attributes:
        id: Subscription id registered with the protocol client.
        filters: Filters the subscription was opened with.
        eose: Set once every relay reported end of stored events.
    """

    def __init__(
        self,
        subscription_id: str,
        filters: tuple[Filter, ...],
        on_close: Callable[[str], Awaitable[None]] | None = None,
    ) -> None:
        self.id = subscription_id
        self.filters = filters
        self.eose = asyncio.Event()
        self._queue: asyncio.Queue[Event] = asyncio.Queue()
        self._on_close = on_close
        self._finished = False

    @property
    def is_closed(self) -> bool:
        return self._finished

    def push(self, event: Event) -> None:
        """Enqueue *event* for the consumer. Ignored after the subscription finished."""
        if not self._finished:
            self._queue.put_nowait(event)

    def mark_eose(self) -> None:
        self.eose.set()

    def finish(self) -> None:
        """End iteration after the already queued events are consumed."""
        if self._finished:
            return
        self._finished = True
        self._queue.put_nowait(_DONE)

    async def close(self) -> None:
        """Unsubscribe from the relays and end iteration."""
        if self._on_close is not None:
            await self._on_close(self.id)
        self.finish()

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> Event:
        item = await self._queue.get()
        if item is _DONE:
            # Keep the sentinel for any further __anext__ calls
            self._queue.put_nowait(_DONE)
            raise StopAsyncIteration
        return item

    def __repr__(self) -> str:
        return f"Subscription(id={self.id!r}, filters={len(self.filters)}, closed={self._finished})"
