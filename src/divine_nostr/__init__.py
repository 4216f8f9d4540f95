r"""divine-nostr -- Nostr client library with relay management and a local event cache.

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
               client          NostrClient, RelayManager, CLI
             /   |   \
          core  nips  utils    Cache and infrastructure, event builders, SDK adapter
             \   |   /
              models           Pure frozen dataclasses (zero I/O)
```

Attributes:
    models: Pure frozen dataclasses. Zero I/O, depends only on stdlib.
    core: Connection pool, event cache, exceptions, logging, YAML.
    nips: Builders for reactions, reposts, deletions, contact lists and
        NIP-98 HTTP auth events.
    utils: Key loading and the ``nostr_sdk`` protocol client.
    client: The application-facing client and relay manager.

Note:
    Top-level imports (``from divine_nostr import NostrClient``) use lazy
    loading and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("divine-nostr")

__all__ = [
    "CountResponse",
    "Event",
    "EventCache",
    "EventKind",
    "Filter",
    "Logger",
    "NostrClient",
    "NostrClientConfig",
    "Pool",
    "RelayConnectionStatus",
    "RelayManager",
    "Subscription",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "CountResponse": ("divine_nostr.models", "CountResponse"),
    "Event": ("divine_nostr.models", "Event"),
    "EventKind": ("divine_nostr.models", "EventKind"),
    "Filter": ("divine_nostr.models", "Filter"),
    "RelayConnectionStatus": ("divine_nostr.models", "RelayConnectionStatus"),
    "EventCache": ("divine_nostr.core", "EventCache"),
    "Logger": ("divine_nostr.core", "Logger"),
    "Pool": ("divine_nostr.core", "Pool"),
    "NostrClient": ("divine_nostr.client", "NostrClient"),
    "NostrClientConfig": ("divine_nostr.client", "NostrClientConfig"),
    "RelayManager": ("divine_nostr.client", "RelayManager"),
    "Subscription": ("divine_nostr.client", "Subscription"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value
        return value
    raise AttributeError(f"module 'divine_nostr' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
