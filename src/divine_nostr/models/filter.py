"""
NIP-01 subscription / query filter.

A [Filter][divine_nostr.models.filter.Filter] is used for relay
subscriptions, relay queries, and local cache lookups. Its
[to_dict()][divine_nostr.models.filter.Filter.to_dict] output is the exact
JSON object sent in ``REQ`` and ``COUNT`` messages.

See Also:
    [EventCache.get_events_by_filter()][divine_nostr.core.event_cache.EventCache.get_events_by_filter]:
        Translates a filter into parameterized SQL.
    [SdkNostr][divine_nostr.utils.protocol.SdkNostr]: Converts filters into
        ``nostr_sdk.Filter`` through the JSON form.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from ._validation import validate_kind, validate_str_no_null, validate_timestamp


if TYPE_CHECKING:
    from .event import Event


def _as_tuple(values: Iterable[Any] | None) -> tuple[Any, ...]:
    if values is None:
        return ()
    if isinstance(values, (str, bytes)):
        raise TypeError("filter fields must be sequences, not strings")
    return tuple(values)


@dataclass(frozen=True, slots=True)
class Filter:
    """Immutable NIP-01 filter.

    Empty sequences and ``None`` mean "no constraint". Tag constraints are
    keyed by the single-letter tag name without the ``#`` prefix
    (``tags={"e": ["<id>"]}`` serializes as ``"#e": ["<id>"]``).

    Examples:
        ```python
        Filter(kinds=[1], authors=[pk], limit=20).to_dict()
        # {"authors": [pk], "kinds": [1], "limit": 20}
        ```
    """

    ids: tuple[str, ...] = ()
    authors: tuple[str, ...] = ()
    kinds: tuple[int, ...] = ()
    tags: Mapping[str, tuple[str, ...]] = field(default_factory=dict, hash=False)
    since: int | None = None
    until: int | None = None
    limit: int | None = None
    search: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "ids", _as_tuple(self.ids))
        object.__setattr__(self, "authors", _as_tuple(self.authors))
        object.__setattr__(self, "kinds", _as_tuple(self.kinds))
        for kind in self.kinds:
            validate_kind(kind)
        for name in ("since", "until", "limit"):
            value = getattr(self, name)
            if value is not None:
                validate_timestamp(value, name)
        if self.search is not None:
            validate_str_no_null(self.search, "search")

        frozen: dict[str, tuple[str, ...]] = {}
        for key, values in dict(self.tags).items():
            name = key.removeprefix("#")
            if len(name) != 1:
                raise ValueError(f"tag filter keys must be a single letter, got {key!r}")
            frozen[name] = _as_tuple(values)
        object.__setattr__(self, "tags", MappingProxyType(frozen))

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return the NIP-01 JSON object, omitting unconstrained fields."""
        data: dict[str, Any] = {}
        if self.ids:
            data["ids"] = list(self.ids)
        if self.authors:
            data["authors"] = list(self.authors)
        if self.kinds:
            data["kinds"] = list(self.kinds)
        for name, values in self.tags.items():
            data[f"#{name}"] = list(values)
        if self.since is not None:
            data["since"] = self.since
        if self.until is not None:
            data["until"] = self.until
        if self.limit is not None:
            data["limit"] = self.limit
        if self.search is not None:
            data["search"] = self.search
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Filter:
        """Parse a NIP-01 JSON filter object."""
        return cls(
            ids=data.get("ids", ()),
            authors=data.get("authors", ()),
            kinds=data.get("kinds", ()),
            tags={k[1:]: v for k, v in data.items() if k.startswith("#")},
            since=data.get("since"),
            until=data.get("until"),
            limit=data.get("limit"),
            search=data.get("search"),
        )

    # -------------------------------------------------------------------------
    # Matching
    # -------------------------------------------------------------------------

    def matches(self, event: Event) -> bool:
        """Return True if *event* satisfies every constraint of this filter.

        ``limit`` is ignored (it bounds result sets, not single events).
        ``search`` is evaluated as a case-insensitive substring of the
        content; relays may apply richer NIP-50 semantics.
        """
        if self.ids and event.id not in self.ids:
            return False
        if self.authors and event.pubkey not in self.authors:
            return False
        if self.kinds and event.kind not in self.kinds:
            return False
        if self.since is not None and event.created_at < self.since:
            return False
        if self.until is not None and event.created_at > self.until:
            return False
        for name, values in self.tags.items():
            if not set(event.tag_values(name)) & set(values):
                return False
        return not (self.search and self.search.lower() not in event.content.lower())
