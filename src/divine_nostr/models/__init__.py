"""Pure frozen dataclasses with zero I/O for Nostr events, filters, and relay status.

The models layer is the foundation of the package. It has **no dependencies**
on any other divine_nostr package, only the Python standard library. Every
model uses ``@dataclass(frozen=True, slots=True)`` and validates in
``__post_init__`` so invalid instances never escape the constructor.

Attributes:
    Event: Immutable Nostr event with NIP-01 id computation, JSON wire form,
        and BYTEA-friendly database parameters.
    Filter: NIP-01 filter with JSON serialization and local matching.
    CountResponse: COUNT result tagged with its
        [CountSource][divine_nostr.models.constants.CountSource].
    RelayConnectionStatus: Per-relay connection snapshot.
    Contact, ContactList: NIP-02 follow list entries.
    EventKind: Well-known event kinds.

See Also:
    [divine_nostr.models.constants][]: Replaceable-kind classification.
"""

from .constants import (
    CountSource,
    EventKind,
    RelayState,
    is_addressable_kind,
    is_replaceable_kind,
)
from .contact import Contact, ContactList
from .count import CountResponse
from .event import Event, EventDbParams, compute_event_id
from .filter import Filter
from .relay_status import RelayConnectionStatus


__all__ = [
    "Contact",
    "ContactList",
    "CountResponse",
    "CountSource",
    "Event",
    "EventDbParams",
    "EventKind",
    "Filter",
    "RelayConnectionStatus",
    "RelayState",
    "compute_event_id",
    "is_addressable_kind",
    "is_replaceable_kind",
]
