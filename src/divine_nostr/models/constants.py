"""Shared constants for the models layer.

Defines the event kind enumeration, the replaceable-kind classification
rules, and the small string enums used by count and relay status models.
Placing them here avoids circular dependencies between the models and
client layers.

See Also:
    [Event][divine_nostr.models.event.Event]: Uses
        [is_replaceable_kind][divine_nostr.models.constants.is_replaceable_kind]
        to decide whether an event may be optimistically cached.
    [NostrClient][divine_nostr.client.nostr_client.NostrClient]: Consumes
        [EventKind][divine_nostr.models.constants.EventKind] for search and
        repost helpers.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum


class EventKind(IntEnum):
    """Well-known Nostr event kinds used by the client.

    Attributes:
        METADATA: Kind 0, user profile metadata (NIP-01). Replaceable.
        TEXT_NOTE: Kind 1, short text note (NIP-01).
        CONTACT_LIST: Kind 3, follow list (NIP-02). Replaceable.
        EVENT_DELETION: Kind 5, deletion request (NIP-09).
        REPOST: Kind 6, repost of a kind 1 note (NIP-18).
        REACTION: Kind 7, reaction / like (NIP-25).
        GENERIC_REPOST: Kind 16, repost of any other kind (NIP-18).
        HTTP_AUTH: Kind 27235, HTTP authentication event (NIP-98).
        VIDEO: Kind 34236, addressable short-form vertical video (NIP-71).
    """

    METADATA = 0
    TEXT_NOTE = 1
    CONTACT_LIST = 3
    EVENT_DELETION = 5
    REPOST = 6
    REACTION = 7
    GENERIC_REPOST = 16
    HTTP_AUTH = 27235
    VIDEO = 34236


REPLACEABLE_RANGE = range(10_000, 20_000)
EPHEMERAL_RANGE = range(20_000, 30_000)
ADDRESSABLE_RANGE = range(30_000, 40_000)


def is_replaceable_kind(kind: int) -> bool:
    """Return True for kinds where only the latest event per author is current.

    Covers kinds 0 and 3, the ``10000..19999`` replaceable range, and the
    ``30000..39999`` addressable range (latest per ``(pubkey, kind, d)``).
    Every other kind, ephemeral ones included, is regular.
    """
    return (
        kind in (EventKind.METADATA, EventKind.CONTACT_LIST)
        or kind in REPLACEABLE_RANGE
        or kind in ADDRESSABLE_RANGE
    )


def is_addressable_kind(kind: int) -> bool:
    """Return True for kinds addressed by ``(pubkey, kind, d-tag)``."""
    return kind in ADDRESSABLE_RANGE


class CountSource(StrEnum):
    """Where a [CountResponse][divine_nostr.models.count.CountResponse] came from.

    Attributes:
        WEBSOCKET: Relay-native NIP-45 COUNT response.
        CLIENT_SIDE: Length of a fetched event list (COUNT fallback).
    """

    WEBSOCKET = "websocket"
    CLIENT_SIDE = "client_side"


class RelayState(StrEnum):
    """Connection state of a single relay endpoint."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    AUTHENTICATED = "authenticated"
    ERROR = "error"
