"""Persistence of the user's relay list.

[RelayManager][divine_nostr.client.relay_manager.RelayManager] loads the
list on initialization and saves it after every change.
[YamlRelayStorage][divine_nostr.client.relay_storage.YamlRelayStorage]
keeps it in a YAML file under a ``relays`` key.

Examples:
    ```yaml
    relays:
      - wss://relay.divine.video
      - wss://relay.damus.io
    ```
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from divine_nostr.core.exceptions import ConfigurationError
from divine_nostr.core.yaml import dump_yaml, load_yaml


class RelayStorage(Protocol):
    async def load_relays(self) -> list[str]: ...

    async def save_relays(self, relays: list[str]) -> None: ...


class YamlRelayStorage:
    """Relay list stored in a YAML file.

    A missing file reads as an empty list. The file and its parent
    directories are created on the first save.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def load_relays(self) -> list[str]:
        """Return the stored relay URLs.

        Raises:
            ConfigurationError: If the file is malformed or ``relays`` is not
                a list of strings.
        """
        if not self._path.exists():
            return []
        relays = load_yaml(self._path).get("relays") or []
        if not isinstance(relays, list) or not all(isinstance(r, str) for r in relays):
            raise ConfigurationError(f"'relays' in {self._path} must be a list of URLs")
        return relays

    async def save_relays(self, relays: list[str]) -> None:
        dump_yaml(self._path, {"relays": list(relays)})

    def __repr__(self) -> str:
        return f"YamlRelayStorage(path={str(self._path)!r})"
