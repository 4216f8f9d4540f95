"""Nostr key management and the nostr-sdk backed protocol client.

Attributes:
    keys: Nostr key loading from environment variables (nsec1 bech32 or hex)
        with Pydantic validation. Keys are optional: without them the
        client is read-only.
    protocol: [SdkNostr][divine_nostr.utils.protocol.SdkNostr], the
        ``nostr_sdk.Client`` adapter that signs, sends, queries, and routes
        subscription notifications.

Note:
    The utils layer imports ``divine_nostr.models`` and ``divine_nostr.nips``.
    From ``divine_nostr.core`` it only uses the exception hierarchy, and it
    never imports ``divine_nostr.client``.

Examples:
    ```python
    from divine_nostr.utils.keys import KeysConfig
    from divine_nostr.utils.protocol import SdkNostr, create_client
    ```
"""
