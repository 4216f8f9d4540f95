"""
Local event cache backed by PostgreSQL.

[EventCache][divine_nostr.core.event_cache.EventCache] stores Nostr events in
a single ``nostr_event`` table and answers the row-level operations the
client needs: single and batch upserts, deletion by id, filter lookups, and
the id / profile point reads used by cache-first fetches.

Replaceable kinds keep only the newest event per ``(pubkey, kind)``, and
addressable kinds per ``(pubkey, kind, d)``, following NIP-01 (on equal
``created_at`` the lowest id wins). Regular events are insert-only and
duplicates are ignored.

Uses composition with [Pool][divine_nostr.core.pool.Pool] for connection
management and implements an async context manager for pool lifecycle.

Examples:
    ```python
    cache = EventCache.from_yaml("config/cache.yaml")

    async with cache:
        await cache.upsert_event(event)
        events = await cache.get_events_by_filter(Filter(kinds=[1], limit=20))
    ```
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, field_validator

from divine_nostr.models import Event, EventDbParams, Filter

from .logger import Logger
from .pool import Pool, PoolConfig
from .yaml import load_yaml


if TYPE_CHECKING:
    from collections.abc import Sequence

    import asyncpg


_MIN_TIMEOUT_SECONDS = 0.1


# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS nostr_event (
        id BYTEA PRIMARY KEY,
        pubkey BYTEA NOT NULL,
        created_at BIGINT NOT NULL,
        kind INTEGER NOT NULL,
        tags JSONB NOT NULL,
        content TEXT NOT NULL,
        sig BYTEA,
        d_tag TEXT,
        cached_at BIGINT NOT NULL DEFAULT EXTRACT(EPOCH FROM NOW())::BIGINT
    )
    """,
    "CREATE INDEX IF NOT EXISTS nostr_event_pubkey_kind_idx"
    " ON nostr_event (pubkey, kind, created_at DESC)",
    "CREATE INDEX IF NOT EXISTS nostr_event_kind_created_at_idx"
    " ON nostr_event (kind, created_at DESC)",
    "CREATE INDEX IF NOT EXISTS nostr_event_created_at_idx ON nostr_event (created_at DESC)",
)

_SELECT_COLUMNS = "id, pubkey, created_at, kind, tags, content, sig"

_INSERT_EVENT = """
INSERT INTO nostr_event (id, pubkey, created_at, kind, tags, content, sig, d_tag)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
ON CONFLICT (id) DO NOTHING
"""

_INSERT_EVENTS_BATCH = """
WITH inserted AS (
    INSERT INTO nostr_event (id, pubkey, created_at, kind, tags, content, sig, d_tag)
    SELECT id, pubkey, created_at, kind, tags::jsonb, content, sig, d_tag
    FROM unnest(
        $1::bytea[], $2::bytea[], $3::bigint[], $4::integer[],
        $5::text[], $6::text[], $7::bytea[], $8::text[]
    ) AS t(id, pubkey, created_at, kind, tags, content, sig, d_tag)
    ON CONFLICT (id) DO NOTHING
    RETURNING 1
)
SELECT count(*) FROM inserted
"""

_NEWER_REPLACEABLE_EXISTS = """
SELECT EXISTS (
    SELECT 1 FROM nostr_event
    WHERE pubkey = $1 AND kind = $2 AND d_tag IS NOT DISTINCT FROM $3
      AND (created_at > $4 OR (created_at = $4 AND id <= $5))
)
"""

_DELETE_SUPERSEDED = """
DELETE FROM nostr_event
WHERE pubkey = $1 AND kind = $2 AND d_tag IS NOT DISTINCT FROM $3
"""

_DELETE_BY_IDS = "DELETE FROM nostr_event WHERE id = ANY($1::bytea[])"

_SELECT_BY_ID = f"SELECT {_SELECT_COLUMNS} FROM nostr_event WHERE id = $1"  # noqa: S608

_SELECT_PROFILE = f"""
SELECT {_SELECT_COLUMNS} FROM nostr_event
WHERE pubkey = $1 AND kind = 0
ORDER BY created_at DESC, id ASC
LIMIT 1
"""  # noqa: S608


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_filter_query(event_filter: Filter, default_limit: int) -> tuple[str, list[Any]]:
    """Translate a [Filter][divine_nostr.models.filter.Filter] into parameterized SQL.

    All values are bound as parameters; only placeholder numbers are
    interpolated into the query text.

    Args:
        event_filter: Filter to translate.
        default_limit: Row limit used when the filter has none.

    Returns:
        ``(query, args)`` ready for ``Pool.fetch(query, *args)``.
    """
    conditions: list[str] = []
    args: list[Any] = []

    def bind(value: Any) -> str:
        args.append(value)
        return f"${len(args)}"

    if event_filter.ids:
        conditions.append(f"id = ANY({bind([bytes.fromhex(i) for i in event_filter.ids])}::bytea[])")
    if event_filter.authors:
        authors = [bytes.fromhex(a) for a in event_filter.authors]
        conditions.append(f"pubkey = ANY({bind(authors)}::bytea[])")
    if event_filter.kinds:
        conditions.append(f"kind = ANY({bind(list(event_filter.kinds))}::integer[])")
    if event_filter.since is not None:
        conditions.append(f"created_at >= {bind(event_filter.since)}")
    if event_filter.until is not None:
        conditions.append(f"created_at <= {bind(event_filter.until)}")
    for name, values in event_filter.tags.items():
        name_param = bind(name)
        values_param = bind(list(values))
        conditions.append(
            "EXISTS (SELECT 1 FROM jsonb_array_elements(tags) AS t(tag)"
            f" WHERE t.tag->>0 = {name_param} AND t.tag->>1 = ANY({values_param}::text[]))"
        )
    if event_filter.search:
        conditions.append(f"content ILIKE {bind('%' + _escape_like(event_filter.search) + '%')}")

    where = f" WHERE {' AND '.join(conditions)}" if conditions else ""
    limit = event_filter.limit if event_filter.limit is not None else default_limit
    query = (
        f"SELECT {_SELECT_COLUMNS} FROM nostr_event{where}"  # noqa: S608
        f" ORDER BY created_at DESC, id ASC LIMIT {bind(limit)}"
    )
    return query, args


def _parse_row_count(status: str) -> int:
    """Extract the row count from a command tag such as ``"DELETE 3"``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


# ---------------------------------------------------------------------------
# Configuration Models
# ---------------------------------------------------------------------------


class BatchConfig(BaseModel):
    """Maximum number of events per batch upsert."""

    max_size: int = Field(default=1000, ge=1, le=100_000, description="Maximum events per batch")


class EventCacheTimeoutsConfig(BaseModel):
    """Timeouts for cache operations in seconds (``None`` = no limit)."""

    query: float | None = Field(default=30.0, description="Read timeout (seconds, None=infinite)")
    batch: float | None = Field(default=60.0, description="Write timeout (seconds, None=infinite)")

    @field_validator("query", "batch", mode="after")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:
        if v is not None and v < _MIN_TIMEOUT_SECONDS:
            raise ValueError(
                f"Timeout must be None (infinite) or >= {_MIN_TIMEOUT_SECONDS} seconds"
            )
        return v


class EventCacheConfig(BaseModel):
    """Aggregate configuration for the event cache."""

    batch: BatchConfig = Field(default_factory=BatchConfig)
    timeouts: EventCacheTimeoutsConfig = Field(default_factory=EventCacheTimeoutsConfig)
    default_query_limit: int = Field(
        default=500, ge=1, le=10_000, description="Row limit for filters without a limit"
    )
    create_schema: bool = Field(
        default=True, description="Create the nostr_event table on initialize()"
    )


# ---------------------------------------------------------------------------
# EventCache Class
# ---------------------------------------------------------------------------


class EventCache:
    """PostgreSQL event store used for optimistic writes and cache-first reads.

    Implements the
    [EventStore][divine_nostr.client.protocols.EventStore] protocol consumed
    by [NostrClient][divine_nostr.client.nostr_client.NostrClient].
    """

    def __init__(
        self,
        pool: Pool | None = None,
        config: EventCacheConfig | None = None,
    ) -> None:
        self._pool = pool or Pool()
        self._config = config or EventCacheConfig()
        self._logger = Logger("event_cache")

    @property
    def config(self) -> EventCacheConfig:
        return self._config

    @property
    def pool(self) -> Pool:
        return self._pool

    @classmethod
    def from_yaml(cls, config_path: str) -> EventCache:
        return cls.from_dict(load_yaml(config_path))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> EventCache:
        """Build from a mapping with an optional ``pool`` key plus cache settings."""
        pool = Pool.from_dict(config_dict["pool"]) if "pool" in config_dict else None
        cache_dict = {k: v for k, v in config_dict.items() if k != "pool"}
        config = EventCacheConfig(**cache_dict) if cache_dict else None
        return cls(pool=pool, config=config)

    @property
    def pool_config(self) -> PoolConfig:
        return self._pool.config

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """Connect the pool and, if configured, create the schema."""
        await self._pool.connect()
        if self._config.create_schema:
            await self.create_schema()

    async def create_schema(self) -> None:
        """Create the ``nostr_event`` table and indexes (idempotent)."""
        async with self._pool.transaction() as conn:
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement)
        self._logger.debug("schema_ready")

    async def close(self) -> None:
        await self._pool.close()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _validate_batch_size(self, batch: Sequence[Any], operation: str) -> None:
        if len(batch) > self._config.batch.max_size:
            max_size = self._config.batch.max_size
            raise ValueError(f"{operation} batch size ({len(batch)}) exceeds maximum ({max_size})")

    @staticmethod
    def _transpose_to_columns(params: Sequence[tuple[Any, ...]]) -> tuple[list[Any], ...]:
        """Turn row tuples into column lists for ``unnest`` array parameters."""
        if not params:
            return ()
        return tuple(list(col) for col in zip(*params, strict=True))

    def _row_to_event(self, row: asyncpg.Record) -> Event | None:
        try:
            return Event.from_db_params(
                EventDbParams(
                    id=row["id"],
                    pubkey=row["pubkey"],
                    created_at=row["created_at"],
                    kind=row["kind"],
                    tags=row["tags"],
                    content=row["content"],
                    sig=row["sig"],
                    d_tag=None,
                )
            )
        except (TypeError, ValueError) as e:
            self._logger.warning("cached_row_invalid", error=str(e))
            return None

    async def _upsert_replaceable(
        self, conn: asyncpg.Connection[asyncpg.Record], params: EventDbParams
    ) -> bool:
        """Store a replaceable event unless a newer one is cached for its address."""
        timeout = self._config.timeouts.batch
        newer_exists = await conn.fetchval(
            _NEWER_REPLACEABLE_EXISTS,
            params.pubkey,
            params.kind,
            params.d_tag,
            params.created_at,
            params.id,
            timeout=timeout,
        )
        if newer_exists:
            return False
        await conn.execute(
            _DELETE_SUPERSEDED, params.pubkey, params.kind, params.d_tag, timeout=timeout
        )
        await conn.execute(_INSERT_EVENT, *params, timeout=timeout)
        return True

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    async def upsert_event(self, event: Event) -> bool:
        """Insert or replace a single event.

        Returns:
            True if the event is now stored, False if it was a duplicate or
            superseded by a newer replaceable event.
        """
        params = event.to_db_params()
        async with self._pool.transaction() as conn:
            if event.is_replaceable:
                stored = await self._upsert_replaceable(conn, params)
            else:
                status = await conn.execute(
                    _INSERT_EVENT, *params, timeout=self._config.timeouts.batch
                )
                stored = _parse_row_count(status) > 0

        self._logger.debug("event_upserted", event_id=event.id, kind=event.kind, stored=stored)
        return stored

    async def upsert_events_batch(self, events: Sequence[Event]) -> int:
        """Insert or replace a batch of events in one transaction.

        Regular events are bulk-inserted with a single ``unnest`` statement.
        Replaceable events are applied oldest first so the newest survives.

        Returns:
            Number of events stored.

        Raises:
            ValueError: If the batch exceeds ``batch.max_size``.
        """
        if not events:
            return 0
        self._validate_batch_size(events, "upsert_events_batch")

        unique = list({e.id: e for e in events}.values())
        regular = [e.to_db_params() for e in unique if not e.is_replaceable]
        replaceable = sorted(
            (e for e in unique if e.is_replaceable), key=lambda e: (e.created_at, e.id)
        )

        stored = 0
        async with self._pool.transaction() as conn:
            if regular:
                columns = self._transpose_to_columns(regular)
                stored += (
                    await conn.fetchval(
                        _INSERT_EVENTS_BATCH, *columns, timeout=self._config.timeouts.batch
                    )
                    or 0
                )
            for event in replaceable:
                if await self._upsert_replaceable(conn, event.to_db_params()):
                    stored += 1

        self._logger.debug("events_upserted", count=stored, attempted=len(events))
        return stored

    async def delete_events_by_ids(self, event_ids: Sequence[str]) -> int:
        """Delete the events with the given hex ids. Returns the number removed."""
        if not event_ids:
            return 0
        ids = [bytes.fromhex(i) for i in event_ids]
        status = await self._pool.execute(_DELETE_BY_IDS, ids, timeout=self._config.timeouts.batch)
        deleted = _parse_row_count(status)
        self._logger.debug("events_deleted", count=deleted, requested=len(ids))
        return deleted

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    async def get_events_by_filter(self, event_filter: Filter) -> list[Event]:
        """Return cached events matching *event_filter*, newest first."""
        query, args = build_filter_query(event_filter, self._config.default_query_limit)
        rows = await self._pool.fetch(query, *args, timeout=self._config.timeouts.query)
        return [e for e in (self._row_to_event(r) for r in rows) if e is not None]

    async def get_event_by_id(self, event_id: str) -> Event | None:
        row = await self._pool.fetchrow(
            _SELECT_BY_ID, bytes.fromhex(event_id), timeout=self._config.timeouts.query
        )
        return self._row_to_event(row) if row is not None else None

    async def get_profile_by_pubkey(self, pubkey: str) -> Event | None:
        """Return the newest cached kind-0 metadata event for *pubkey*."""
        row = await self._pool.fetchrow(
            _SELECT_PROFILE, bytes.fromhex(pubkey), timeout=self._config.timeouts.query
        )
        return self._row_to_event(row) if row is not None else None

    # -------------------------------------------------------------------------
    # Context Manager
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> EventCache:
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any | None,
    ) -> None:
        await self.close()

    def __repr__(self) -> str:
        db = self._pool.config.database
        return f"EventCache(host={db.host}, database={db.database})"
