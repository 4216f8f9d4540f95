"""NIP event builders: reactions, reposts, deletions, follow lists, HTTP auth.

Pure construction helpers with no I/O. Builders return unsigned
[Event][divine_nostr.models.event.Event] instances for the protocol
client to sign.
"""

from .event_builders import (
    build_contact_list,
    build_deletion,
    build_generic_repost,
    build_reaction,
    build_repost,
)
from .nip98 import build_http_auth_event, encode_authorization_header, payload_hash


__all__ = [
    "build_contact_list",
    "build_deletion",
    "build_generic_repost",
    "build_http_auth_event",
    "build_reaction",
    "build_repost",
    "encode_authorization_header",
    "payload_hash",
]
