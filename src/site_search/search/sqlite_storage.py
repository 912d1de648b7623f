"""SQLite-backed persistence for the index, the suggestion snapshot and analytics.

One database file holds three independent areas, each owned by exactly one
component:

- ``index_entries`` + ``index_fts`` (FTS5): the Search Index Store
- ``suggestions``: the current suggestion snapshot
- ``analytics_events``: append-only query log

Connections are thread-local. Every ``sqlite3.Error`` is surfaced as
``StorageUnavailableError`` so callers never see driver exceptions.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
import logging
from pathlib import Path
import sqlite3
import threading
from typing import Any
from uuid import uuid4

import orjson

from site_search.domain.errors import StorageUnavailableError
from site_search.domain.model import AnalyticsEvent, IndexEntry, SuggestionTerm, ensure_utc
from site_search.domain.search import QueryTerm, ScoredResult
from site_search.search.query_builder import Predicate, SelectBuilder
from site_search.search.scoring import TextMatchScorer
from site_search.search.sqlite_pragmas import apply_connection_pragmas, apply_maintenance_pragmas


logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"
_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS index_entries (
        content_id INTEGER PRIMARY KEY,
        content_type TEXT NOT NULL,
        title TEXT NOT NULL,
        body TEXT NOT NULL,
        excerpt TEXT NOT NULL DEFAULT '',
        url TEXT NOT NULL DEFAULT '',
        categories TEXT NOT NULL DEFAULT '[]',
        tags TEXT NOT NULL DEFAULT '[]',
        relevance_score REAL NOT NULL DEFAULT 1.0,
        boost_factor REAL NOT NULL DEFAULT 1.0,
        indexed_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_entries_type ON index_entries(content_type)",
    "CREATE INDEX IF NOT EXISTS idx_entries_relevance ON index_entries(relevance_score)",
    "CREATE VIRTUAL TABLE IF NOT EXISTS index_fts USING fts5(title, body, excerpt, tokenize='unicode61 remove_diacritics 2')",
    """
    CREATE TABLE IF NOT EXISTS suggestions (
        position INTEGER PRIMARY KEY,
        term TEXT NOT NULL,
        frequency INTEGER NOT NULL,
        source_type TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS analytics_events (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        query TEXT NOT NULL,
        result_count INTEGER NOT NULL DEFAULT 0,
        client_ip TEXT NOT NULL DEFAULT '',
        user_agent TEXT NOT NULL DEFAULT '',
        referrer TEXT NOT NULL DEFAULT '',
        occurred_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_events_query ON analytics_events(query)",
    "CREATE INDEX IF NOT EXISTS idx_events_occurred ON analytics_events(occurred_at)",
    "CREATE INDEX IF NOT EXISTS idx_events_results ON analytics_events(result_count)",
)

_ENTRY_COLUMNS = (
    "content_id",
    "content_type",
    "title",
    "body",
    "excerpt",
    "url",
    "categories",
    "tags",
    "relevance_score",
    "boost_factor",
    "indexed_at",
)


def to_db_timestamp(value: datetime) -> str:
    return ensure_utc(value).strftime(_TIMESTAMP_FORMAT)


def from_db_timestamp(value: str) -> datetime:
    return datetime.strptime(value, _TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate driver errors into ``StorageUnavailableError``."""
    try:
        yield
    except sqlite3.Error as exc:
        raise StorageUnavailableError(f"{operation} failed: {exc}") from exc


class SQLiteConnectionPool:
    """Thread-safe connection pool with thread-local connections.

    ``:memory:`` databases are opened as a named shared-cache database so all
    threads see the same data; an anchor connection keeps it alive.
    """

    def __init__(self, db_path: str | Path, scorer: TextMatchScorer | None = None) -> None:
        self.db_path = str(db_path)
        self.scorer = scorer or TextMatchScorer()
        self._local = threading.local()
        self._lock = threading.Lock()
        self._connections: list[sqlite3.Connection] = []
        self._uri = False
        self._anchor: sqlite3.Connection | None = None
        if self.db_path == MEMORY_PATH:
            self.db_path = f"file:site_search_{uuid4().hex}?mode=memory&cache=shared"
            self._uri = True
            self._anchor = self._create_connection()
        else:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """Get a thread-local connection."""
        if getattr(self._local, "connection", None) is None:
            self._local.connection = self._create_connection()
        yield self._local.connection

    def _create_connection(self) -> sqlite3.Connection:
        """Create connection with performance settings and the scoring function."""
        conn = sqlite3.connect(
            self.db_path,
            check_same_thread=False,
            isolation_level=None,
            uri=self._uri,
        )
        conn.row_factory = sqlite3.Row
        apply_connection_pragmas(conn, wal=not self._uri)
        conn.create_function("text_match_score", 4, self.scorer, deterministic=True)
        with self._lock:
            self._connections.append(conn)
        return conn

    def close_all(self) -> None:
        """Close every connection opened by this pool."""
        with self._lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            try:
                conn.close()
            except sqlite3.Error:
                pass  # Ignore errors during cleanup
        self._local = threading.local()
        self._anchor = None


class SqliteDatabase:
    """Schema owner and transaction helper shared by the stores."""

    def __init__(self, db_path: str | Path, scorer: TextMatchScorer | None = None) -> None:
        with storage_errors("opening database"):
            self.pool = SQLiteConnectionPool(db_path, scorer)
            with self.pool.get_connection() as conn:
                for statement in _SCHEMA:
                    conn.execute(statement)

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        with self.pool.get_connection() as conn:
            yield conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run statements in one IMMEDIATE transaction, rolling back on error."""
        with self.pool.get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def optimize(self) -> None:
        with storage_errors("optimizing database"), self.connection() as conn:
            apply_maintenance_pragmas(conn)

    def close(self) -> None:
        self.pool.close_all()


def _entry_from_row(row: sqlite3.Row) -> IndexEntry:
    return IndexEntry(
        content_id=row["content_id"],
        content_type=row["content_type"],
        title=row["title"],
        body=row["body"],
        excerpt=row["excerpt"],
        url=row["url"],
        categories=tuple(orjson.loads(row["categories"])),
        tags=tuple(orjson.loads(row["tags"])),
        relevance_score=row["relevance_score"],
        boost_factor=row["boost_factor"],
        indexed_at=from_db_timestamp(row["indexed_at"]),
    )


def _identity(text: str) -> str:
    return text


class SqliteIndexStore:
    """The Search Index Store: exact key upsert/delete plus ranked lookup."""

    def __init__(self, database: SqliteDatabase, text_normalizer: Callable[[str], str] | None = None) -> None:
        self.database = database
        self._normalize = text_normalizer or _identity

    def upsert(self, entry: IndexEntry) -> IndexEntry:
        """Insert or replace the entry for ``entry.content_id``.

        An existing ``boost_factor`` is preserved; ``entry.boost_factor``
        only applies to new rows. Returns the entry as stored.
        """
        values = (
            entry.content_id,
            entry.content_type,
            entry.title,
            entry.body,
            entry.excerpt,
            entry.url,
            orjson.dumps(list(entry.categories)).decode("utf-8"),
            orjson.dumps(list(entry.tags)).decode("utf-8"),
            entry.relevance_score,
            entry.boost_factor,
            to_db_timestamp(entry.indexed_at),
        )
        with storage_errors(f"indexing content {entry.content_id}"), self.database.transaction() as conn:
            conn.execute(
                f"""
                INSERT INTO index_entries ({", ".join(_ENTRY_COLUMNS)})
                VALUES ({", ".join("?" for _ in _ENTRY_COLUMNS)})
                ON CONFLICT(content_id) DO UPDATE SET
                    content_type = excluded.content_type,
                    title = excluded.title,
                    body = excluded.body,
                    excerpt = excluded.excerpt,
                    url = excluded.url,
                    categories = excluded.categories,
                    tags = excluded.tags,
                    relevance_score = excluded.relevance_score,
                    indexed_at = excluded.indexed_at
                """,
                values,
            )
            conn.execute("DELETE FROM index_fts WHERE rowid = ?", (entry.content_id,))
            conn.execute(
                "INSERT INTO index_fts (rowid, title, body, excerpt) VALUES (?, ?, ?, ?)",
                (
                    entry.content_id,
                    self._normalize(entry.title),
                    self._normalize(entry.body),
                    self._normalize(entry.excerpt),
                ),
            )
            row = conn.execute(
                f"SELECT {', '.join(_ENTRY_COLUMNS)} FROM index_entries WHERE content_id = ?",
                (entry.content_id,),
            ).fetchone()
        return _entry_from_row(row)

    def get(self, content_id: int) -> IndexEntry | None:
        with storage_errors(f"loading entry {content_id}"), self.database.connection() as conn:
            row = conn.execute(
                f"SELECT {', '.join(_ENTRY_COLUMNS)} FROM index_entries WHERE content_id = ?",
                (content_id,),
            ).fetchone()
        return _entry_from_row(row) if row else None

    def delete(self, content_id: int) -> bool:
        """Delete the entry; returns False when there was nothing to delete."""
        with storage_errors(f"removing entry {content_id}"), self.database.transaction() as conn:
            cursor = conn.execute("DELETE FROM index_entries WHERE content_id = ?", (content_id,))
            conn.execute("DELETE FROM index_fts WHERE rowid = ?", (content_id,))
        return cursor.rowcount > 0

    def set_boost(self, content_id: int, boost_factor: float) -> bool:
        with storage_errors(f"boosting entry {content_id}"), self.database.transaction() as conn:
            cursor = conn.execute(
                "UPDATE index_entries SET boost_factor = ? WHERE content_id = ?",
                (boost_factor, content_id),
            )
        return cursor.rowcount > 0

    def _ranked_select(self, match_expression: str, content_types: Sequence[str]) -> SelectBuilder:
        builder = SelectBuilder("index_fts").join("index_entries", "index_entries.content_id = index_fts.rowid")
        builder.where(Predicate("index_fts MATCH ?", (match_expression,)))
        builder.where(Predicate.in_("index_entries.content_type", list(content_types)))
        return builder

    def search(
        self,
        match_expression: str,
        query_text: str,
        content_types: Sequence[str],
        *,
        limit: int,
        offset: int = 0,
    ) -> list[ScoredResult]:
        """Ranked full-text lookup ordered by final score, newest first on ties."""
        score_sql = "text_match_score(?, index_fts.title, index_fts.body, index_fts.excerpt)"
        builder = self._ranked_select(match_expression, content_types)
        builder.columns(
            (
                "index_entries.content_id",
                "index_entries.content_type",
                "index_entries.title",
                "index_entries.url",
                "index_entries.relevance_score",
                "index_entries.boost_factor",
            )
        )
        builder.column(score_sql, query_text, alias="text_score")
        builder.column(
            f"{score_sql} * index_entries.relevance_score * index_entries.boost_factor",
            query_text,
            alias="final_score",
        )
        builder.order_by("final_score DESC", "index_entries.indexed_at DESC", "index_entries.content_id ASC")
        builder.limit(limit, offset)
        sql, params = builder.build()

        with storage_errors("searching index"), self.database.connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [
            ScoredResult(
                content_id=row["content_id"],
                content_type=row["content_type"],
                title=row["title"],
                url=row["url"],
                text_score=row["text_score"],
                relevance_score=row["relevance_score"],
                boost_factor=row["boost_factor"],
                final_score=row["final_score"],
            )
            for row in rows
        ]

    def count(self, match_expression: str, content_types: Sequence[str]) -> int:
        builder = self._ranked_select(match_expression, content_types).column("COUNT(*)", alias="total")
        sql, params = builder.build()
        with storage_errors("counting search results"), self.database.connection() as conn:
            row = conn.execute(sql, params).fetchone()
        return int(row["total"] or 0)

    def has_pattern_match(self, word: str, columns: Sequence[str] = ("title", "body")) -> bool:
        """Return True when any entry contains ``word`` in one of ``columns``."""
        builder = SelectBuilder("index_entries").column("1").where(Predicate.like_any(columns, word)).limit(1)
        sql, params = builder.build()
        with storage_errors("probing index"), self.database.connection() as conn:
            return conn.execute(sql, params).fetchone() is not None

    def pattern_search(
        self,
        terms: Sequence[QueryTerm],
        *,
        limit: int,
        columns: Sequence[str] = ("title", "body"),
    ) -> list[ScoredResult]:
        """Weighted pattern search: every term must match, boosted terms multiply the score.

        A repeated term is matched once but multiplies the score per occurrence.
        """
        if not terms:
            return []
        builder = SelectBuilder("index_entries").columns(
            ("content_id", "content_type", "title", "url", "relevance_score", "boost_factor")
        )
        score_sql = "relevance_score * boost_factor"
        score_params: list[Any] = []
        term_boost = 1.0
        seen: set[str] = set()
        for term in terms:
            matched = Predicate.like_any(columns, term.word)
            if term.word not in seen:
                seen.add(term.word)
                builder.where(matched)
            if term.boost > 1.0:
                score_sql += f" * CASE WHEN {matched.sql} THEN ? ELSE 1 END"
                score_params.extend(matched.params)
                score_params.append(term.boost)
                term_boost *= term.boost
        builder.column(score_sql, *score_params, alias="final_score")
        builder.order_by("final_score DESC", "indexed_at DESC", "content_id ASC")
        builder.limit(limit)
        sql, params = builder.build()

        with storage_errors("pattern search"), self.database.connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [
            ScoredResult(
                content_id=row["content_id"],
                content_type=row["content_type"],
                title=row["title"],
                url=row["url"],
                text_score=term_boost,
                relevance_score=row["relevance_score"],
                boost_factor=row["boost_factor"],
                final_score=row["final_score"],
            )
            for row in rows
        ]

    def counts_by_type(self) -> dict[str, int]:
        with storage_errors("reading index stats"), self.database.connection() as conn:
            rows = conn.execute(
                "SELECT content_type, COUNT(*) AS total FROM index_entries GROUP BY content_type"
            ).fetchall()
        return {row["content_type"]: int(row["total"]) for row in rows}

    def last_indexed_at(self) -> datetime | None:
        with storage_errors("reading index stats"), self.database.connection() as conn:
            row = conn.execute("SELECT MAX(indexed_at) AS latest FROM index_entries").fetchone()
        return from_db_timestamp(row["latest"]) if row and row["latest"] else None


class SqliteSuggestionStore:
    """Persists the suggestion snapshot; replacement happens in one transaction."""

    def __init__(self, database: SqliteDatabase) -> None:
        self.database = database

    def replace(self, terms: Sequence[SuggestionTerm]) -> None:
        rows = [(position, term.term, term.frequency, term.source_type) for position, term in enumerate(terms)]
        with storage_errors("replacing suggestion snapshot"), self.database.transaction() as conn:
            conn.execute("DELETE FROM suggestions")
            conn.executemany(
                "INSERT INTO suggestions (position, term, frequency, source_type) VALUES (?, ?, ?, ?)",
                rows,
            )

    def load(self) -> tuple[SuggestionTerm, ...]:
        with storage_errors("loading suggestion snapshot"), self.database.connection() as conn:
            rows = conn.execute("SELECT term, frequency, source_type FROM suggestions ORDER BY position").fetchall()
        return tuple(
            SuggestionTerm(term=row["term"], frequency=row["frequency"], source_type=row["source_type"])
            for row in rows
        )


class SqliteAnalyticsStore:
    """Append-only event log and the aggregate queries behind the dashboard."""

    def __init__(self, database: SqliteDatabase) -> None:
        self.database = database

    def insert(self, event: AnalyticsEvent) -> None:
        with storage_errors("recording search"), self.database.connection() as conn:
            conn.execute(
                """
                INSERT INTO analytics_events (query, result_count, client_ip, user_agent, referrer, occurred_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    event.query,
                    event.result_count,
                    event.client_ip,
                    event.user_agent,
                    event.referrer,
                    to_db_timestamp(event.occurred_at),
                ),
            )

    def _fetch(self, sql: str, params: tuple[Any, ...]) -> list[sqlite3.Row]:
        with storage_errors("aggregating analytics"), self.database.connection() as conn:
            return conn.execute(sql, params).fetchall()

    def popular(self, since: datetime, limit: int) -> list[sqlite3.Row]:
        return self._fetch(
            """
            SELECT query, COUNT(*) AS search_count, AVG(result_count) AS avg_results
            FROM analytics_events
            WHERE occurred_at >= ?
            GROUP BY query
            ORDER BY search_count DESC, query ASC
            LIMIT ?
            """,
            (to_db_timestamp(since), limit),
        )

    def zero_results(self, since: datetime, limit: int) -> list[sqlite3.Row]:
        return self._fetch(
            """
            SELECT query, COUNT(*) AS search_count
            FROM analytics_events
            WHERE occurred_at >= ? AND result_count = 0
            GROUP BY query
            ORDER BY search_count DESC, query ASC
            LIMIT ?
            """,
            (to_db_timestamp(since), limit),
        )

    def distinct_zero_result_queries(self, since: datetime) -> int:
        rows = self._fetch(
            "SELECT COUNT(DISTINCT query) AS total FROM analytics_events WHERE occurred_at >= ? AND result_count = 0",
            (to_db_timestamp(since),),
        )
        return int(rows[0]["total"] or 0)

    def daily_volume(self, since: datetime) -> list[sqlite3.Row]:
        return self._fetch(
            """
            SELECT date(occurred_at) AS day, COUNT(*) AS search_count
            FROM analytics_events
            WHERE occurred_at >= ?
            GROUP BY date(occurred_at)
            ORDER BY day ASC
            """,
            (to_db_timestamp(since),),
        )

    def totals(self, since: datetime) -> tuple[int, float]:
        rows = self._fetch(
            "SELECT COUNT(*) AS total, AVG(result_count) AS avg_results FROM analytics_events WHERE occurred_at >= ?",
            (to_db_timestamp(since),),
        )
        row = rows[0]
        return int(row["total"] or 0), float(row["avg_results"] or 0.0)
