"""
Connection status snapshot for a single relay.

Produced by [RelayManager][divine_nostr.client.relay_manager.RelayManager]
and published on its status stream. Instances are immutable: every state
transition creates a new snapshot through
[replace()][divine_nostr.models.relay_status.RelayConnectionStatus.replace].
"""

from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass
from typing import Any

from ._validation import validate_str_not_empty, validate_timestamp
from .constants import RelayState


@dataclass(frozen=True, slots=True)
class RelayConnectionStatus:
    """Immutable relay connection status.

    Attributes:
        url: Normalized relay URL.
        state: Current [RelayState][divine_nostr.models.constants.RelayState].
        is_default: Whether this is the always-present default relay.
        error_count: Consecutive errors since the last successful connection.
        error_message: Last error message, if any.
        last_connected_at: Unix timestamp of the last successful connection.
        last_error_at: Unix timestamp of the last error.
    """

    url: str
    state: RelayState = RelayState.DISCONNECTED
    is_default: bool = False
    error_count: int = 0
    error_message: str | None = None
    last_connected_at: int | None = None
    last_error_at: int | None = None

    def __post_init__(self) -> None:
        validate_str_not_empty(self.url, "url")
        validate_timestamp(self.error_count, "error_count")
        object.__setattr__(self, "state", RelayState(self.state))

    @property
    def is_connected(self) -> bool:
        return self.state in (RelayState.CONNECTED, RelayState.AUTHENTICATED)

    def replace(self, **changes: Any) -> RelayConnectionStatus:
        return dataclasses.replace(self, **changes)

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def disconnected(cls, url: str, *, is_default: bool = False) -> RelayConnectionStatus:
        return cls(url=url, state=RelayState.DISCONNECTED, is_default=is_default)

    @classmethod
    def connecting(cls, url: str, *, is_default: bool = False) -> RelayConnectionStatus:
        return cls(url=url, state=RelayState.CONNECTING, is_default=is_default)

    @classmethod
    def connected(cls, url: str, *, is_default: bool = False) -> RelayConnectionStatus:
        return cls(
            url=url,
            state=RelayState.CONNECTED,
            is_default=is_default,
            last_connected_at=int(time.time()),
        )

    def with_error(self, message: str) -> RelayConnectionStatus:
        """Return an ``ERROR`` snapshot with the error count incremented."""
        return self.replace(
            state=RelayState.ERROR,
            error_count=self.error_count + 1,
            error_message=message,
            last_error_at=int(time.time()),
        )

    def with_success(self) -> RelayConnectionStatus:
        """Return a ``CONNECTED`` snapshot with the error count reset."""
        return self.replace(
            state=RelayState.CONNECTED,
            error_count=0,
            error_message=None,
            last_connected_at=int(time.time()),
        )
