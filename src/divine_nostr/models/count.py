"""Result of a NIP-45 COUNT request or its client-side fallback."""

from __future__ import annotations

from dataclasses import dataclass

from ._validation import validate_instance, validate_timestamp
from .constants import CountSource


@dataclass(frozen=True, slots=True)
class CountResponse:
    """Number of events matching a set of filters.

    Attributes:
        count: Matching event count.
        approximate: True when the relay reported an estimate (NIP-45).
        source: Whether the count came from the relay or from counting a
            fetched event list locally.
    """

    count: int
    approximate: bool = False
    source: CountSource = CountSource.WEBSOCKET

    def __post_init__(self) -> None:
        validate_timestamp(self.count, "count")
        validate_instance(self.approximate, bool, "approximate")
        object.__setattr__(self, "source", CountSource(self.source))
