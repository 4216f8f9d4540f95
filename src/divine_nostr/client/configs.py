"""Configuration models for [NostrClient][divine_nostr.client.nostr_client.NostrClient].

Every section has defaults, so a partial YAML file only overrides what it
names. Keys are never read from the file: ``keys.keys_env`` names the
environment variable that holds the private key.

See Also:
    [NostrClient.from_config()][divine_nostr.client.nostr_client.NostrClient.from_config]:
        Builds the client and its collaborators from a
        [NostrClientConfig][divine_nostr.client.configs.NostrClientConfig].

Examples:
    ```yaml
    relays:
      default_relay: wss://relay.divine.video
      relays:
        - wss://relay.damus.io
      storage_path: ~/.config/divine-nostr/relays.yaml
    timeouts:
      query: 10.0
    keys:
      keys_env: NOSTR_PRIVATE_KEY
    cache:
      default_query_limit: 200
    pool:
      database:
        host: localhost
    ```
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from divine_nostr.core.event_cache import EventCacheConfig
from divine_nostr.core.pool import PoolConfig
from divine_nostr.core.yaml import load_yaml
from divine_nostr.utils.keys import KeysConfig


DEFAULT_RELAY = "wss://relay.divine.video"


class RelaysConfig(BaseModel):
    """Relay list and connection housekeeping.

    Attributes:
        default_relay: Always-present relay, placed first in the list.
        relays: Extra relays connected on initialization when no stored
            list exists.
        poll_interval: Seconds between status polls of the relay pool.
        connect_timeout: Seconds to wait for a single relay connection.
        storage_path: YAML file persisting the relay list, if any.
    """

    default_relay: str = Field(default=DEFAULT_RELAY, min_length=1)
    relays: list[str] = Field(default_factory=list)
    poll_interval: float = Field(default=5.0, ge=0.1, le=3600.0)
    connect_timeout: float = Field(default=10.0, ge=0.1, le=120.0)
    storage_path: str | None = None


class ClientTimeoutsConfig(BaseModel):
    """Timeouts in seconds for one-shot relay requests."""

    query: float = Field(default=10.0, ge=0.1, le=300.0)
    count: float = Field(default=10.0, ge=0.1, le=300.0)


class NostrClientConfig(BaseModel):
    """Top-level client configuration.

    ``cache`` enables the local PostgreSQL event cache when present.
    ``pool`` configures its connection pool; when omitted the pool
    defaults apply, including the ``CACHE_DB_PASSWORD`` password variable.
    """

    relays: RelaysConfig = Field(default_factory=RelaysConfig)
    timeouts: ClientTimeoutsConfig = Field(default_factory=ClientTimeoutsConfig)
    keys: KeysConfig = Field(default_factory=KeysConfig)
    cache: EventCacheConfig | None = None
    pool: PoolConfig | None = None

    @classmethod
    def from_yaml(cls, config_path: str) -> NostrClientConfig:
        return cls.from_dict(load_yaml(config_path))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NostrClientConfig:
        return cls(**data)
