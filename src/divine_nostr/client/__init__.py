"""Client layer: the application-facing Nostr client and its relay manager.

Attributes:
    NostrClient: Facade adding optimistic caching with rollback,
        cache-first reads, auto-caching subscriptions and a COUNT
        fallback on top of the protocol client.
    RelayManager: Relay list, connection status and reconnection.
    Subscription: Async iterator returned by ``NostrClient.subscribe``.
    NostrClientConfig: Pydantic configuration loaded from YAML.
    NostrProtocol, RelayConnections, EventStore: Narrow interfaces the
        client depends on.
"""

from .configs import DEFAULT_RELAY, ClientTimeoutsConfig, NostrClientConfig, RelaysConfig
from .nostr_client import NostrClient
from .protocols import EventStore, NostrProtocol, RelayConnections
from .relay_manager import BLOCKED_HOSTS, RelayManager, is_blocked_relay, normalize_relay_url
from .relay_storage import RelayStorage, YamlRelayStorage
from .subscription import Subscription


__all__ = [
    "BLOCKED_HOSTS",
    "DEFAULT_RELAY",
    "ClientTimeoutsConfig",
    "EventStore",
    "NostrClient",
    "NostrClientConfig",
    "NostrProtocol",
    "RelayConnections",
    "RelayManager",
    "RelayStorage",
    "RelaysConfig",
    "Subscription",
    "YamlRelayStorage",
    "is_blocked_relay",
    "normalize_relay_url",
]
