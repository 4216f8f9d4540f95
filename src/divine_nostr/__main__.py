"""CLI entry point for divine-nostr.

Runs one client operation against the configured relays and prints the
result as JSON on stdout. Private keys come from the environment variable
named by ``keys.keys_env`` (``NOSTR_PRIVATE_KEY`` by default).

Examples:
    ```bash
    python -m divine_nostr query --kind 1 --limit 5
    python -m divine_nostr count --kind 34236 --author <hex>
    python -m divine_nostr publish-note "gm"
    python -m divine_nostr auth-header https://divine.video/api/upload --method POST
    python -m divine_nostr --config config/client.yaml --log-level DEBUG query --search cats
    ```
"""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from nostr_sdk import NostrSdkError

from divine_nostr.client import NostrClient, NostrClientConfig
from divine_nostr.core.exceptions import DivineNostrError
from divine_nostr.core.logger import Logger, StructuredFormatter
from divine_nostr.core.yaml import load_yaml
from divine_nostr.models import Event, EventKind, Filter


DEFAULT_CONFIG = Path("config") / "client.yaml"

logger = Logger("cli")


# =============================================================================
# Commands
# =============================================================================


def build_filter(args: argparse.Namespace) -> Filter:
    """Build a [Filter][divine_nostr.models.Filter] from the shared filter options."""
    return Filter(
        ids=args.ids or (),
        authors=args.authors or (),
        kinds=args.kinds or (),
        since=args.since,
        until=args.until,
        limit=args.limit,
        search=args.search,
    )


async def run_query(client: NostrClient, args: argparse.Namespace) -> int:
    events = await client.query_events(
        [build_filter(args)],
        temp_relays=args.relays or None,
        use_cache=not args.no_cache,
    )
    for event in events:
        print(event.to_json())
    logger.info("query_completed", events=len(events))
    return 0


async def run_count(client: NostrClient, args: argparse.Namespace) -> int:
    response = await client.count_events([build_filter(args)], temp_relays=args.relays or None)
    print(
        json.dumps(
            {
                "count": response.count,
                "approximate": response.approximate,
                "source": str(response.source),
            }
        )
    )
    return 0


async def run_publish_note(client: NostrClient, args: argparse.Namespace) -> int:
    if not client.has_keys:
        logger.error("publish_requires_keys")
        return 1
    note = Event.create(pubkey=client.public_key, kind=EventKind.TEXT_NOTE, content=args.content)
    sent = await client.publish_event(note)
    if sent is None:
        logger.error("publish_failed", event_id=note.id)
        return 1
    print(sent.to_json())
    return 0


async def run_auth_header(client: NostrClient, args: argparse.Namespace) -> int:
    header = await client.create_nip98_auth_header(args.url, args.method, args.payload)
    if header is None:
        logger.error("auth_header_failed", url=args.url)
        return 1
    print(header)
    return 0


COMMANDS: dict[str, Callable[[NostrClient, argparse.Namespace], Awaitable[int]]] = {
    "query": run_query,
    "count": run_count,
    "publish-note": run_publish_note,
    "auth-header": run_auth_header,
}


# =============================================================================
# Argument Parsing
# =============================================================================


def _add_filter_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--id", dest="ids", action="append", help="Event id (repeatable)")
    parser.add_argument(
        "--author", dest="authors", action="append", help="Author hex pubkey (repeatable)"
    )
    parser.add_argument("--kind", dest="kinds", type=int, action="append", help="Kind (repeatable)")
    parser.add_argument("--since", type=int, help="Lower created_at bound (unix seconds)")
    parser.add_argument("--until", type=int, help="Upper created_at bound (unix seconds)")
    parser.add_argument("--limit", type=int, help="Maximum number of events")
    parser.add_argument("--search", help="NIP-50 search string")
    parser.add_argument(
        "--relay", dest="relays", action="append", help="Extra relay for this request (repeatable)"
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="divine-nostr",
        description="divine-nostr command line client",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Client config path (default: {DEFAULT_CONFIG})",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Log level (default: WARNING)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    query = commands.add_parser("query", help="Query events and print them as JSON lines")
    _add_filter_arguments(query)
    query.add_argument("--no-cache", action="store_true", help="Skip the local cache lookup")

    count = commands.add_parser("count", help="Count matching events")
    _add_filter_arguments(count)

    publish = commands.add_parser("publish-note", help="Publish a kind 1 text note")
    publish.add_argument("content", help="Note content")

    auth = commands.add_parser("auth-header", help="Print a NIP-98 Authorization header")
    auth.add_argument("url", help="Absolute request URL")
    auth.add_argument("--method", default="GET", help="HTTP method (default: GET)")
    auth.add_argument("--payload", help="Request body to hash into the payload tag")

    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Install a ``StructuredFormatter`` on a stderr root handler."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def _load_yaml_dict(path: Path) -> dict[str, Any]:
    """Load a YAML file as a dict, returning ``{}`` if the file does not exist."""
    if not path.exists():
        logger.debug("config_not_found", path=str(path))
        return {}
    return load_yaml(path)


# =============================================================================
# Entry Points
# =============================================================================


async def main(argv: list[str] | None = None) -> int:
    """Parse args, build the client from config, and run one command."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = NostrClientConfig.from_dict(_load_yaml_dict(args.config))
    except (DivineNostrError, NostrSdkError, ValueError) as e:
        logger.error("config_invalid", path=str(args.config), error=str(e))
        return 1

    client = NostrClient.from_config(config)
    try:
        async with client:
            return await COMMANDS[args.command](client, args)
    except ConnectionError as e:
        logger.error("connection_failed", error=str(e))
        return 1
    except Exception as e:  # Intentionally broad: CLI error boundary
        logger.error(f"{args.command}_failed", error=str(e))
        return 1


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
