"""NIP-98 HTTP authentication events and ``Authorization`` header encoding.

The client builds an unsigned Kind 27235 event with
[build_http_auth_event][divine_nostr.nips.nip98.build_http_auth_event], has
the protocol client sign it, then turns the signed event into a header
value with [encode_authorization_header][divine_nostr.nips.nip98.encode_authorization_header].

Examples:
    ```python
    unsigned = build_http_auth_event(pk, "https://api.example.com/claim", "post", payload="{}")
    signed = await nostr.sign_event(unsigned)
    headers = {"Authorization": encode_authorization_header(signed)}
    ```
"""

from __future__ import annotations

import base64
import hashlib

from divine_nostr.models import Event, EventKind


AUTH_SCHEME = "Nostr"


def payload_hash(payload: str) -> str:
    """Return the hex SHA-256 digest of the UTF-8 encoded request body."""
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def build_http_auth_event(
    pubkey: str,
    url: str,
    method: str,
    *,
    payload: str | None = None,
    created_at: int | None = None,
) -> Event:
    """Build an unsigned Kind 27235 event for *url* and *method*.

    Tags are ``u``, ``method`` (upper-cased), then ``payload`` when a
    request body is given.
    """
    tags = [["u", url], ["method", method.upper()]]
    if payload is not None:
        tags.append(["payload", payload_hash(payload)])
    return Event.create(
        pubkey=pubkey,
        kind=EventKind.HTTP_AUTH,
        content="",
        tags=tags,
        created_at=created_at,
    )


def encode_authorization_header(event: Event) -> str:
    """Return ``"Nostr <base64(json(event))>"`` for a signed event.

    Raises:
        ValueError: If *event* is not signed.
    """
    if not event.is_signed:
        raise ValueError("NIP-98 authorization requires a signed event")
    encoded = base64.b64encode(event.to_json().encode("utf-8")).decode("ascii")
    return f"{AUTH_SCHEME} {encoded}"
