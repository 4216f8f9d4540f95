"""
Unit tests for nips.event_builders module.

Tests:
- build_reaction: e/p/k tags and custom content
- build_repost: kind 6 with relay hint
- build_generic_repost: kind 16 tag order
- build_deletion: one e tag per id, empty list rejected
- build_contact_list: p tags from a ContactList
"""

import pytest

from divine_nostr.models import Contact, ContactList, EventKind
from divine_nostr.nips.event_builders import (
    build_contact_list,
    build_deletion,
    build_generic_repost,
    build_reaction,
    build_repost,
)
from fixtures.events import OTHER_PUBKEY, PUBKEY


TARGET_ID = "d" * 64


class TestBuildReaction:
    def test_like(self) -> None:
        event = build_reaction(PUBKEY, TARGET_ID)
        assert event.kind == EventKind.REACTION
        assert event.content == "+"
        assert event.tags == (("e", TARGET_ID),)
        assert not event.is_signed

    def test_full_tags(self) -> None:
        event = build_reaction(
            PUBKEY, TARGET_ID, content="🔥", author_pubkey=OTHER_PUBKEY, target_kind=34236
        )
        assert event.content == "🔥"
        assert event.tags == (("e", TARGET_ID), ("p", OTHER_PUBKEY), ("k", "34236"))

    def test_kind_zero_target_tagged(self) -> None:
        assert ("k", "0") in build_reaction(PUBKEY, TARGET_ID, target_kind=0).tags


class TestBuildRepost:
    def test_defaults(self) -> None:
        event = build_repost(PUBKEY, TARGET_ID)
        assert event.kind == EventKind.REPOST
        assert event.tags == (("e", TARGET_ID, ""),)

    def test_relay_and_author(self) -> None:
        event = build_repost(
            PUBKEY, TARGET_ID, relay_url="wss://relay.divine.video", author_pubkey=OTHER_PUBKEY
        )
        assert event.tags == (("e", TARGET_ID, "wss://relay.divine.video"), ("p", OTHER_PUBKEY))


class TestBuildGenericRepost:
    def test_tag_order(self) -> None:
        coordinate = f"34236:{OTHER_PUBKEY}:vid-1"
        event = build_generic_repost(
            PUBKEY, addressable_id=coordinate, target_kind=34236, author_pubkey=OTHER_PUBKEY
        )
        assert event.kind == EventKind.GENERIC_REPOST
        assert event.tags == (("k", "34236"), ("a", coordinate), ("p", OTHER_PUBKEY))
        assert event.content == ""
        assert event.pubkey == PUBKEY


class TestBuildDeletion:
    def test_one_tag_per_id(self) -> None:
        ids = ["1" * 64, "2" * 64]
        event = build_deletion(PUBKEY, ids, reason="oops")
        assert event.kind == EventKind.EVENT_DELETION
        assert event.tag_values("e") == ids
        assert event.content == "oops"

    def test_empty_rejected(self) -> None:
        with pytest.raises(ValueError, match="at least one"):
            build_deletion(PUBKEY, [])


class TestBuildContactList:
    def test_tags(self) -> None:
        contacts = ContactList((Contact(OTHER_PUBKEY, "wss://r.example", "bob"),))
        event = build_contact_list(PUBKEY, contacts)
        assert event.kind == EventKind.CONTACT_LIST
        assert event.tags == (("p", OTHER_PUBKEY, "wss://r.example", "bob"),)
        assert event.is_replaceable

    def test_empty_list(self) -> None:
        assert build_contact_list(PUBKEY, ContactList()).tags == ()
