"""Unit tests for client.relay_storage module."""

import pytest

from divine_nostr.client.relay_storage import YamlRelayStorage
from divine_nostr.core.exceptions import ConfigurationError


class TestYamlRelayStorage:
    async def test_missing_file_is_empty(self, tmp_path):
        assert await YamlRelayStorage(tmp_path / "relays.yaml").load_relays() == []

    async def test_round_trip(self, tmp_path):
        storage = YamlRelayStorage(tmp_path / "state" / "relays.yaml")
        relays = ["wss://relay.divine.video", "wss://relay.damus.io"]

        await storage.save_relays(relays)

        assert storage.path.exists()
        assert await storage.load_relays() == relays

    async def test_empty_key(self, tmp_path):
        path = tmp_path / "relays.yaml"
        path.write_text("relays:\n")
        assert await YamlRelayStorage(path).load_relays() == []

    async def test_not_a_list(self, tmp_path):
        path = tmp_path / "relays.yaml"
        path.write_text("relays: wss://relay.divine.video\n")
        with pytest.raises(ConfigurationError, match="must be a list"):
            await YamlRelayStorage(path).load_relays()

    async def test_non_string_entries(self, tmp_path):
        path = tmp_path / "relays.yaml"
        path.write_text("relays:\n  - 42\n")
        with pytest.raises(ConfigurationError):
            await YamlRelayStorage(path).load_relays()

    def test_repr(self, tmp_path):
        assert "relays.yaml" in repr(YamlRelayStorage(tmp_path / "relays.yaml"))
