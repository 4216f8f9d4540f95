"""Nostr key loading from environment variables.

Supports both nsec1 (bech32) and hex-encoded private keys. A client without
keys is read-only: it can query and subscribe but cannot sign.

Warning:
    Private keys must **never** be stored in configuration files, source
    code, or logs. Always pass them through the environment.

Examples:
    ```python
    import os

    os.environ["NOSTR_PRIVATE_KEY"] = "nsec1..."  # pragma: allowlist secret
    keys = load_keys_from_env("NOSTR_PRIVATE_KEY")
    keys.public_key().to_hex()
    ```
"""

from __future__ import annotations

import os
from typing import Any

from nostr_sdk import Keys
from pydantic import BaseModel, Field, model_validator


ENV_PRIVATE_KEY = "NOSTR_PRIVATE_KEY"  # pragma: allowlist secret


def load_keys_from_env(env_var: str = ENV_PRIVATE_KEY, *, required: bool = True) -> Keys | None:
    """Load Nostr keys from an environment variable.

    Args:
        env_var: Name of the environment variable holding the private key.
        required: If False, return ``None`` when the variable is unset
            instead of raising.

    Returns:
        A ``nostr_sdk.Keys`` instance, or ``None`` for an optional unset key.

    Raises:
        ValueError: If the variable is required but unset or empty.
        nostr_sdk.NostrSdkError: If the key value is malformed.
    """
    value = os.getenv(env_var)
    if not value:
        if not required:
            return None
        raise ValueError(
            f"{env_var} environment variable is required. Generate one with: openssl rand -hex 32"
        )
    return Keys.parse(value)


class KeysConfig(BaseModel):
    """Pydantic model that loads Nostr keys from the environment during validation.

    Attributes:
        keys_env: Environment variable name for the private key.
        required: Whether a missing key is an error (False = read-only client).
        keys: Loaded ``nostr_sdk.Keys`` instance, or ``None``.

    Warning:
        ``keys`` holds a live private key. Never serialize this model.
    """

    model_config = {"arbitrary_types_allowed": True}

    keys_env: str = Field(
        default=ENV_PRIVATE_KEY,
        min_length=1,
        description="Environment variable name for private key",
    )
    required: bool = Field(default=False, description="Fail when the key is not set")
    keys: Keys | None = Field(default=None, description="Keys loaded from keys_env")

    @model_validator(mode="before")
    @classmethod
    def _load_keys_from_env(cls, data: Any) -> Any:
        """Auto-populate the ``keys`` field from the environment variable."""
        if isinstance(data, dict) and "keys" not in data:
            data = dict(data)
            data["keys"] = load_keys_from_env(
                data.get("keys_env", ENV_PRIVATE_KEY),
                required=data.get("required", False),
            )
        return data

    @property
    def public_key(self) -> str:
        """Hex public key, or an empty string for a read-only configuration."""
        return self.keys.public_key().to_hex() if self.keys is not None else ""
