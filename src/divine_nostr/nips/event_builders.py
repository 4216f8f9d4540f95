"""Unsigned event builders for the NIPs the client publishes.

Each builder returns an unsigned [Event][divine_nostr.models.event.Event]
whose id is already computed. Signing is left to the protocol client's
signer.

See Also:
    [SdkNostr][divine_nostr.utils.protocol.SdkNostr]: Signs and sends the
        events built here.
    [NostrClient.send_generic_repost()][divine_nostr.client.nostr_client.NostrClient.send_generic_repost]:
        Builds its kind 16 event through
        [build_generic_repost][divine_nostr.nips.event_builders.build_generic_repost].
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from divine_nostr.models import Event, EventKind


if TYPE_CHECKING:
    from divine_nostr.models import ContactList


# =============================================================================
# Kind 7 (NIP-25)
# =============================================================================


def build_reaction(
    pubkey: str,
    event_id: str,
    *,
    content: str = "+",
    author_pubkey: str | None = None,
    target_kind: int | None = None,
) -> Event:
    """Build a Kind 7 reaction. ``"+"`` is a like."""
    tags = [["e", event_id]]
    if author_pubkey:
        tags.append(["p", author_pubkey])
    if target_kind is not None:
        tags.append(["k", str(target_kind)])
    return Event.create(pubkey=pubkey, kind=EventKind.REACTION, content=content, tags=tags)


# =============================================================================
# Kind 6 / 16 (NIP-18)
# =============================================================================


def build_repost(
    pubkey: str,
    event_id: str,
    *,
    relay_url: str | None = None,
    content: str = "",
    author_pubkey: str | None = None,
) -> Event:
    """Build a Kind 6 repost of a text note."""
    tags = [["e", event_id, relay_url or ""]]
    if author_pubkey:
        tags.append(["p", author_pubkey])
    return Event.create(pubkey=pubkey, kind=EventKind.REPOST, content=content, tags=tags)


def build_generic_repost(
    pubkey: str,
    *,
    addressable_id: str,
    target_kind: int,
    author_pubkey: str,
    content: str = "",
) -> Event:
    """Build a Kind 16 generic repost of an addressable event.

    Tags are emitted in the order ``k``, ``a``, ``p``.

    Args:
        pubkey: Reposting author.
        addressable_id: ``<kind>:<pubkey>:<d-tag>`` coordinate of the target.
        target_kind: Kind of the reposted event.
        author_pubkey: Author of the reposted event.
        content: Optional content, usually empty.
    """
    tags = [
        ["k", str(target_kind)],
        ["a", addressable_id],
        ["p", author_pubkey],
    ]
    return Event.create(pubkey=pubkey, kind=EventKind.GENERIC_REPOST, content=content, tags=tags)


# =============================================================================
# Kind 5 (NIP-09)
# =============================================================================


def build_deletion(pubkey: str, event_ids: list[str], *, reason: str = "") -> Event:
    """Build a Kind 5 deletion request for one or more events."""
    if not event_ids:
        raise ValueError("build_deletion requires at least one event id")
    tags = [["e", event_id] for event_id in event_ids]
    return Event.create(pubkey=pubkey, kind=EventKind.EVENT_DELETION, content=reason, tags=tags)


# =============================================================================
# Kind 3 (NIP-02)
# =============================================================================


def build_contact_list(pubkey: str, contacts: ContactList, *, content: str = "") -> Event:
    """Build a Kind 3 follow list from a [ContactList][divine_nostr.models.contact.ContactList]."""
    return Event.create(
        pubkey=pubkey, kind=EventKind.CONTACT_LIST, content=content, tags=contacts.to_tags()
    )
