"""
Immutable Nostr event with wire and database serialization.

The [Event][divine_nostr.models.event.Event] dataclass is the single event
representation shared by every layer: the SDK adapter converts to and from
``nostr_sdk.Event`` through the NIP-01 JSON form, and the event cache maps
it to database rows via
[to_db_params()][divine_nostr.models.event.Event.to_db_params] and
[from_db_params()][divine_nostr.models.event.Event.from_db_params].

See Also:
    [Filter][divine_nostr.models.filter.Filter]: Query descriptor matched
        against events.
    [EventCache][divine_nostr.core.event_cache.EventCache]: Persists events
        through this model.
"""

from __future__ import annotations

import hashlib
import json
import time
from dataclasses import dataclass
from typing import Any, NamedTuple

from ._validation import (
    normalize_tags,
    validate_hex64,
    validate_kind,
    validate_signature,
    validate_str_no_null,
    validate_timestamp,
)
from .constants import is_addressable_kind, is_replaceable_kind


class EventDbParams(NamedTuple):
    """Positional parameters for the ``nostr_event`` cache table.

    Attributes:
        id: Event ID as 32-byte binary.
        pubkey: Author public key as 32-byte binary.
        created_at: Unix timestamp of event creation.
        kind: Integer event kind.
        tags: JSON-encoded array of tag arrays.
        content: Raw event content string.
        sig: Schnorr signature as 64-byte binary, ``None`` when unsigned.
        d_tag: Identifier of addressable events, ``None`` for other kinds.
    """

    id: bytes
    pubkey: bytes
    created_at: int
    kind: int
    tags: str
    content: str
    sig: bytes | None
    d_tag: str | None


def compute_event_id(
    pubkey: str,
    created_at: int,
    kind: int,
    tags: tuple[tuple[str, ...], ...] | list[list[str]],
    content: str,
) -> str:
    """Compute the NIP-01 event id (sha256 of the canonical serialization)."""
    serialized = json.dumps(
        [0, pubkey, created_at, kind, [list(t) for t in tags], content],
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class Event:
    """Immutable Nostr event.

    Validation is performed eagerly at construction time:

    * ``id`` and ``pubkey`` must be 64 lowercase hex characters.
    * ``sig`` is 128 lowercase hex characters, or ``None`` before signing.
    * ``kind`` is in ``0..65535`` and ``created_at`` is a non-negative int.
    * Content and tag values must not contain null bytes, which
      PostgreSQL TEXT columns reject.

    Tags are normalized to a tuple of tuples so the instance is hashable
    and deeply immutable.

    Examples:
        ```python
        event = Event.create(pubkey=pk, kind=1, content="gm")
        event.is_signed        # False
        event.is_replaceable   # False
        Event.from_json(event.to_json()) == event  # True
        ```
    """

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: tuple[tuple[str, ...], ...]
    content: str
    sig: str | None = None

    def __post_init__(self) -> None:
        validate_hex64(self.id, "id")
        validate_hex64(self.pubkey, "pubkey")
        validate_timestamp(self.created_at, "created_at")
        validate_kind(self.kind)
        validate_str_no_null(self.content, "content")
        validate_signature(self.sig)
        object.__setattr__(self, "tags", normalize_tags(self.tags))

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        *,
        pubkey: str,
        kind: int,
        content: str = "",
        tags: list[list[str]] | tuple[tuple[str, ...], ...] = (),
        created_at: int | None = None,
    ) -> Event:
        """Build an unsigned event with its NIP-01 id computed locally.

        Args:
            pubkey: Author public key (hex).
            kind: Event kind.
            content: Event content.
            tags: Ordered list of tags.
            created_at: Unix timestamp. Defaults to the current time.
        """
        ts = int(time.time()) if created_at is None else created_at
        normalized = normalize_tags(list(tags))
        return cls(
            id=compute_event_id(pubkey, ts, kind, normalized, content),
            pubkey=pubkey,
            created_at=ts,
            kind=kind,
            tags=normalized,
            content=content,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        """Build an event from its NIP-01 JSON object form."""
        return cls(
            id=data["id"],
            pubkey=data["pubkey"],
            created_at=data["created_at"],
            kind=data["kind"],
            tags=data.get("tags", []),
            content=data.get("content", ""),
            sig=data.get("sig") or None,
        )

    @classmethod
    def from_json(cls, raw: str) -> Event:
        return cls.from_dict(json.loads(raw))

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return the NIP-01 JSON object form (``sig`` omitted when unsigned)."""
        data: dict[str, Any] = {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
        }
        if self.sig is not None:
            data["sig"] = self.sig
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    def to_db_params(self) -> EventDbParams:
        """Return positional parameters for the cache table insert."""
        return EventDbParams(
            id=bytes.fromhex(self.id),
            pubkey=bytes.fromhex(self.pubkey),
            created_at=self.created_at,
            kind=self.kind,
            tags=json.dumps([list(tag) for tag in self.tags]),
            content=self.content,
            sig=bytes.fromhex(self.sig) if self.sig is not None else None,
            d_tag=self.d_tag if is_addressable_kind(self.kind) else None,
        )

    @classmethod
    def from_db_params(cls, params: EventDbParams) -> Event:
        """Reconstruct an event from a cache row.

        ``tags`` may arrive either as a JSON string or already decoded by
        the connection's JSONB codec.
        """
        tags = params.tags
        if isinstance(tags, str):
            tags = json.loads(tags)
        return cls(
            id=params.id.hex(),
            pubkey=params.pubkey.hex(),
            created_at=params.created_at,
            kind=params.kind,
            tags=tags,
            content=params.content,
            sig=params.sig.hex() if params.sig is not None else None,
        )

    # -------------------------------------------------------------------------
    # Derived properties
    # -------------------------------------------------------------------------

    @property
    def is_signed(self) -> bool:
        return self.sig is not None

    @property
    def is_replaceable(self) -> bool:
        """Whether a later event from the same author supersedes this one."""
        return is_replaceable_kind(self.kind)

    @property
    def d_tag(self) -> str:
        """Value of the first ``d`` tag, or an empty string."""
        for tag in self.tags:
            if len(tag) >= 2 and tag[0] == "d":  # noqa: PLR2004
                return tag[1]
        return ""

    def tag_values(self, name: str) -> list[str]:
        """Return the first value of every tag named *name*, in order."""
        return [tag[1] for tag in self.tags if len(tag) >= 2 and tag[0] == name]  # noqa: PLR2004

    def with_signature(self, event_id: str, sig: str) -> Event:
        """Return a copy carrying *event_id* and *sig* from a signer."""
        return Event(
            id=event_id,
            pubkey=self.pubkey,
            created_at=self.created_at,
            kind=self.kind,
            tags=self.tags,
            content=self.content,
            sig=sig,
        )
