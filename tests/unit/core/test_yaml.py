"""
Unit tests for core.yaml module.

Tests:
- load_yaml() with mappings, lists and nested structures
- Empty files, missing files, invalid syntax and non-mapping documents
- dump_yaml() writing and parent directory creation
"""

from pathlib import Path

import pytest

from divine_nostr.core.exceptions import ConfigurationError
from divine_nostr.core.yaml import dump_yaml, load_yaml


class TestLoadYaml:
    """load_yaml() with valid documents."""

    def test_simple_key_value(self, tmp_path: Path):
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text("name: test\ncount: 42\n")
        assert load_yaml(str(yaml_file)) == {"name": "test", "count": 42}

    def test_accepts_path_objects(self, tmp_path: Path):
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text("key: value\n")
        assert load_yaml(yaml_file) == {"key": "value"}

    def test_nested_and_lists(self, tmp_path: Path):
        """Loads the shape of a client config file."""
        yaml_file = tmp_path / "client.yaml"
        yaml_file.write_text(
            """
relays:
  default_relay: wss://relay.divine.video
  relays:
    - wss://relay1.example.com
    - wss://relay2.example.com
  poll_interval: 2.5
timeouts:
  query: 5
"""
        )
        result = load_yaml(yaml_file)
        assert result["relays"]["relays"] == ["wss://relay1.example.com", "wss://relay2.example.com"]
        assert result["relays"]["poll_interval"] == 2.5
        assert result["timeouts"]["query"] == 5

    def test_empty_file_returns_empty_dict(self, tmp_path: Path):
        yaml_file = tmp_path / "empty.yaml"
        yaml_file.write_text("")
        assert load_yaml(yaml_file) == {}

    def test_comments_only_returns_empty_dict(self, tmp_path: Path):
        yaml_file = tmp_path / "comments.yaml"
        yaml_file.write_text("# nothing here\n")
        assert load_yaml(yaml_file) == {}


class TestLoadYamlErrors:
    """load_yaml() failure modes."""

    def test_file_not_found(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_yaml(tmp_path / "missing.yaml")

    def test_invalid_syntax(self, tmp_path: Path):
        yaml_file = tmp_path / "bad.yaml"
        yaml_file.write_text("key: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_yaml(yaml_file)

    def test_top_level_list_rejected(self, tmp_path: Path):
        yaml_file = tmp_path / "list.yaml"
        yaml_file.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="must be a mapping, got list"):
            load_yaml(yaml_file)

    def test_python_tags_rejected(self, tmp_path: Path):
        """safe_load refuses arbitrary object construction."""
        yaml_file = tmp_path / "unsafe.yaml"
        yaml_file.write_text("x: !!python/object/apply:os.system ['echo hi']\n")
        with pytest.raises(ConfigurationError):
            load_yaml(yaml_file)


class TestDumpYaml:
    def test_round_trip(self, tmp_path: Path):
        path = tmp_path / "relays.yaml"
        dump_yaml(path, {"relays": ["wss://a.example", "wss://b.example"]})
        assert load_yaml(path) == {"relays": ["wss://a.example", "wss://b.example"]}

    def test_creates_parent_directories(self, tmp_path: Path):
        path = tmp_path / "nested" / "dir" / "relays.yaml"
        dump_yaml(path, {"relays": []})
        assert path.exists()

    def test_preserves_key_order(self, tmp_path: Path):
        path = tmp_path / "ordered.yaml"
        dump_yaml(path, {"zeta": 1, "alpha": 2})
        assert path.read_text().index("zeta") < path.read_text().index("alpha")
