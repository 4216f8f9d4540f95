"""Core layer: local event cache, connection pool, logging, errors, YAML.

Depends only on ``divine_nostr.models`` and is depended upon by
``divine_nostr.client``.

Attributes:
    Pool: Async PostgreSQL connection pool with retry/backoff.
        See [Pool][divine_nostr.core.pool.Pool].
    EventCache: Event store facade over the pool implementing upserts,
        rollback deletes, and cache-first lookups.
        See [EventCache][divine_nostr.core.event_cache.EventCache].
    Logger: Structured logger supporting key=value and JSON output modes.
    load_yaml: Safe YAML loading with ``yaml.safe_load()``.

Examples:
    ```python
    from divine_nostr.core import EventCache

    async with EventCache.from_yaml("config/cache.yaml") as cache:
        await cache.upsert_event(event)
    ```
"""

from .event_cache import (
    BatchConfig,
    EventCache,
    EventCacheConfig,
    EventCacheTimeoutsConfig,
)
from .exceptions import (
    CacheError,
    ConfigurationError,
    ConnectionPoolError,
    ConnectivityError,
    CountNotSupportedError,
    DivineNostrError,
    ProtocolError,
    PublishingError,
    QueryError,
    RelayTimeoutError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .pool import (
    DatabaseConfig,
    Pool,
    PoolConfig,
    PoolLimitsConfig,
    PoolRetryConfig,
    PoolTimeoutsConfig,
    ServerSettingsConfig,
)
from .yaml import dump_yaml, load_yaml


__all__ = [
    "BatchConfig",
    "CacheError",
    "ConfigurationError",
    "ConnectionPoolError",
    "ConnectivityError",
    "CountNotSupportedError",
    "DatabaseConfig",
    "DivineNostrError",
    "EventCache",
    "EventCacheConfig",
    "EventCacheTimeoutsConfig",
    "Logger",
    "Pool",
    "PoolConfig",
    "PoolLimitsConfig",
    "PoolRetryConfig",
    "PoolTimeoutsConfig",
    "ProtocolError",
    "PublishingError",
    "QueryError",
    "RelayTimeoutError",
    "ServerSettingsConfig",
    "StructuredFormatter",
    "dump_yaml",
    "format_kv_pairs",
    "load_yaml",
]
