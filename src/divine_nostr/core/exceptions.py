"""divine_nostr exception hierarchy.

Typed exceptions for every error category the client can classify.
Anything the client cannot classify (SDK or driver failures with no
better meaning) propagates unwrapped.

Exception hierarchy:

```text
DivineNostrError (base, never raised directly)
├── ConfigurationError       config validation, missing keys, bad YAML
├── CacheError               local event cache failures
│   ├── ConnectionPoolError  transient: pool exhausted, network blip
│   └── QueryError           permanent: bad SQL, constraint violation
├── ConnectivityError        relay unreachable, network failures
│   └── RelayTimeoutError    connection or response timed out
├── ProtocolError            relay protocol / NIP failures
│   └── CountNotSupportedError  relay or SDK cannot answer NIP-45 COUNT
└── PublishingError          event broadcast failures
```

See Also:
    [NostrClient.count_events()][divine_nostr.client.nostr_client.NostrClient.count_events]:
        Catches [CountNotSupportedError][divine_nostr.core.exceptions.CountNotSupportedError]
        and falls back to a client-side count.
    [Pool][divine_nostr.core.pool.Pool]: Raises
        [ConnectionPoolError][divine_nostr.core.exceptions.ConnectionPoolError].
"""

from __future__ import annotations


class DivineNostrError(Exception):
    """Base exception for all divine_nostr errors."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(DivineNostrError):
    """Invalid or missing configuration (YAML, env vars, CLI flags)."""


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class CacheError(DivineNostrError):
    """Base for local event cache errors."""


class ConnectionPoolError(CacheError, ConnectionError):
    """Transient database error: pool exhausted, connection refused, network blip.

    Also a ``ConnectionError`` so callers treating the cache as a network
    dependency can catch it generically. Callers may retry after a backoff.
    """


class QueryError(CacheError):
    """Permanent database error. Callers should NOT retry."""


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class ConnectivityError(DivineNostrError):
    """Base for relay/network connectivity errors."""


class RelayTimeoutError(ConnectivityError):
    """Connection or response timed out."""


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ProtocolError(DivineNostrError):
    """Relay protocol or NIP compliance failure."""


class CountNotSupportedError(ProtocolError):
    """NIP-45 COUNT is not available on the relay or protocol client.

    This is the one capability signal the client recovers from: it
    triggers a client-side count instead of propagating.
    """


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------


class PublishingError(DivineNostrError):
    """Failed to sign or broadcast a Nostr event."""
