"""
Unit tests for models.event module.

Tests:
- NIP-01 id computation and Event.create()
- Construction-time validation (hex fields, kind range, null bytes, tags)
- JSON round trip and unsigned serialization
- Database parameter mapping (BYTEA fields, d_tag for addressable kinds)
- Derived properties (is_signed, is_replaceable, d_tag, tag_values)
"""

import hashlib
import json

import pytest

from divine_nostr.models import Event, EventDbParams, EventKind, compute_event_id
from fixtures.events import PUBKEY, SIG, make_event


class TestComputeEventId:
    """NIP-01 canonical serialization."""

    def test_matches_manual_sha256(self):
        serialized = json.dumps(
            [0, PUBKEY, 1_700_000_000, 1, [["t", "nostr"]], "hi"], separators=(",", ":")
        )
        expected = hashlib.sha256(serialized.encode()).hexdigest()
        assert compute_event_id(PUBKEY, 1_700_000_000, 1, [["t", "nostr"]], "hi") == expected

    def test_non_ascii_content_is_not_escaped(self):
        serialized = json.dumps(
            [0, PUBKEY, 1, 1, [], "héllo 🌍"], separators=(",", ":"), ensure_ascii=False
        )
        expected = hashlib.sha256(serialized.encode("utf-8")).hexdigest()
        assert compute_event_id(PUBKEY, 1, 1, [], "héllo 🌍") == expected

    def test_tuple_and_list_tags_agree(self):
        assert compute_event_id(PUBKEY, 1, 1, (("e", "x"),), "") == compute_event_id(
            PUBKEY, 1, 1, [["e", "x"]], ""
        )


class TestCreate:
    """Event.create() factory."""

    def test_computes_id(self):
        event = Event.create(pubkey=PUBKEY, kind=1, content="gm", created_at=10)
        assert event.id == compute_event_id(PUBKEY, 10, 1, [], "gm")
        assert event.sig is None

    def test_defaults_created_at_to_now(self, monkeypatch):
        monkeypatch.setattr("divine_nostr.models.event.time.time", lambda: 1234.9)
        event = Event.create(pubkey=PUBKEY, kind=1)
        assert event.created_at == 1234

    def test_tags_normalized_to_tuples(self):
        event = make_event(tags=[["e", "abc"], ["p", PUBKEY]])
        assert event.tags == (("e", "abc"), ("p", PUBKEY))
        hash(event)


class TestValidation:
    """Construction-time validation."""

    @pytest.mark.parametrize("bad", ["", "A" * 64, "a" * 63, "g" * 64])
    def test_invalid_pubkey(self, bad):
        with pytest.raises(ValueError, match="pubkey"):
            Event.create(pubkey=bad, kind=1)

    def test_invalid_id(self):
        with pytest.raises(ValueError, match="id"):
            Event(id="xyz", pubkey=PUBKEY, created_at=1, kind=1, tags=(), content="")

    @pytest.mark.parametrize("kind", [-1, 65536])
    def test_kind_out_of_range(self, kind):
        with pytest.raises(ValueError):
            Event.create(pubkey=PUBKEY, kind=kind)

    def test_negative_created_at(self):
        with pytest.raises(ValueError, match="created_at"):
            Event.create(pubkey=PUBKEY, kind=1, created_at=-5)

    def test_null_byte_in_content(self):
        with pytest.raises(ValueError, match="null"):
            Event.create(pubkey=PUBKEY, kind=1, content="a\x00b")

    def test_bad_signature_length(self):
        event = make_event()
        with pytest.raises(ValueError, match="sig"):
            event.with_signature(event.id, "ab")

    def test_tags_must_be_lists(self):
        with pytest.raises(TypeError):
            Event.create(pubkey=PUBKEY, kind=1, tags=["not-a-list"])

    def test_frozen(self):
        event = make_event()
        with pytest.raises(AttributeError):
            event.content = "changed"  # type: ignore[misc]


class TestSerialization:
    """NIP-01 JSON form."""

    def test_round_trip_signed(self):
        event = make_event(tags=[["t", "cats"]], signed=True)
        assert Event.from_json(event.to_json()) == event

    def test_unsigned_omits_sig(self):
        data = make_event().to_dict()
        assert "sig" not in data
        assert data["tags"] == []

    def test_compact_json(self):
        assert " " not in make_event(content="x").to_json()

    def test_empty_sig_reads_as_unsigned(self):
        data = make_event().to_dict()
        data["sig"] = ""
        assert Event.from_dict(data).sig is None


class TestDbParams:
    """Cache row mapping."""

    def test_bytea_fields(self):
        event = make_event(signed=True)
        params = event.to_db_params()
        assert params.id == bytes.fromhex(event.id)
        assert params.pubkey == bytes.fromhex(PUBKEY)
        assert params.sig == bytes.fromhex(SIG)
        assert json.loads(params.tags) == []

    def test_unsigned_sig_is_none(self):
        assert make_event().to_db_params().sig is None

    def test_d_tag_only_for_addressable(self):
        video = make_event(EventKind.VIDEO, tags=[["d", "clip-1"]])
        note = make_event(tags=[["d", "ignored"]])
        assert video.to_db_params().d_tag == "clip-1"
        assert note.to_db_params().d_tag is None

    def test_from_db_params_with_json_string(self):
        event = make_event(tags=[["e", "x"]], signed=True)
        assert Event.from_db_params(event.to_db_params()) == event

    def test_from_db_params_with_decoded_tags(self):
        event = make_event(tags=[["e", "x"]])
        params = event.to_db_params()._replace(tags=[["e", "x"]])
        assert isinstance(params, EventDbParams)
        assert Event.from_db_params(params) == event


class TestProperties:
    """Derived properties."""

    def test_is_signed(self):
        assert not make_event().is_signed
        assert make_event(signed=True).is_signed

    @pytest.mark.parametrize(
        ("kind", "expected"),
        [(0, True), (1, False), (3, True), (7, False), (10002, True), (34236, True)],
    )
    def test_is_replaceable(self, kind, expected):
        assert make_event(kind).is_replaceable is expected

    def test_d_tag(self):
        assert make_event(tags=[["d", "x"], ["d", "y"]]).d_tag == "x"
        assert make_event().d_tag == ""

    def test_tag_values(self):
        event = make_event(tags=[["e", "1"], ["p", PUBKEY], ["e", "2"], ["e"]])
        assert event.tag_values("e") == ["1", "2"]

    def test_with_signature_keeps_payload(self):
        event = make_event(content="x")
        signed = event.with_signature(event.id, SIG)
        assert signed.content == "x"
        assert signed.sig == SIG
