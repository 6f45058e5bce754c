"""SQLite suggestion store implementation."""

import random
import sqlite3
import threading
import time
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

import structlog

from frictionary.store.errors import (
    StoreConnectionError,
    SuggestionNotFoundError,
)
from frictionary.store.metrics import StoreMetrics, TransactionContext
from frictionary.store.migrations import CURRENT_VERSION, MigrationManager
from frictionary.store.models import Suggestion, UpsertSummary, VoteTally


logger = structlog.get_logger()


def to_db_time(value: datetime) -> str:
    """Serialize a timestamp so that string order matches time order.

    Naive datetimes are taken to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


class SuggestionStore:
    """SQLite store for votable suggestions.

    Provides idempotent upserts, atomic vote increments, top-by-score and
    randomized sampling queries, and pruning of outdated unpopular entries.
    Uses WAL mode and schema migrations. The connection is shared between
    worker threads and serialized by a lock.
    """

    def __init__(
        self,
        db_path: Path | str,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the suggestion store.

        Args:
            db_path: Path to SQLite database file, or ``:memory:``.
            rng: Random source for sampling keys and probes.
        """
        self._db_path = Path(db_path) if isinstance(db_path, str) else db_path
        self._rng = rng or random.Random()  # noqa: S311
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._metrics = StoreMetrics.get_instance()
        self._log = logger.bind(component="store", db_path=str(self._db_path))

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    @property
    def is_connected(self) -> bool:
        """Check if connected to database."""
        return self._conn is not None

    def connect(self) -> None:
        """Open connection to database and apply migrations.

        Creates the database file and parent directories if they don't exist.

        Raises:
            StoreConnectionError: If the database cannot be opened.
            MigrationError: If the schema cannot be brought up to date.
        """
        if self._conn is not None:
            return

        in_memory = str(self._db_path) == ":memory:"
        self._log.info("connecting_to_database")

        try:
            if not in_memory:
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            if not in_memory:
                conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
        except (OSError, sqlite3.Error) as e:
            self._log.error("database_connect_failed", error=str(e))
            raise StoreConnectionError(f"Cannot open {self._db_path}: {e}") from e

        migration_mgr = MigrationManager(conn)
        old_version = migration_mgr.get_current_version()
        try:
            applied = migration_mgr.apply_migrations()
        except Exception:
            conn.close()
            raise
        self._conn = conn

        self._log.info(
            "database_connected",
            old_version=old_version,
            new_version=CURRENT_VERSION,
            migrations_applied=applied,
        )

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                self._log.info("database_closed")

    def __enter__(self) -> "SuggestionStore":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure database is connected.

        Returns:
            The database connection.

        Raises:
            StoreConnectionError: If not connected.
        """
        if self._conn is None:
            raise StoreConnectionError("Database not connected. Call connect() first.")
        return self._conn

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[TransactionContext]:
        """Context manager for transactions with timing and logging.

        Args:
            operation: Name of the operation for logging.

        Yields:
            Transaction context with timing information.
        """
        with self._lock:
            conn = self._ensure_connected()
            tx_id = str(uuid.uuid4())[:8]
            start_ns = time.perf_counter_ns()
            ctx = TransactionContext(
                tx_id=tx_id, start_time_ns=start_ns, operation=operation
            )

            try:
                yield ctx
                conn.commit()
            except Exception:
                conn.rollback()
                self._log.error(
                    "transaction_failed",
                    tx_id=tx_id,
                    op=operation,
                    duration_ms=round(
                        (time.perf_counter_ns() - start_ns) / 1_000_000, 2
                    ),
                )
                raise

            duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
            self._metrics.record_tx_duration(duration_ms)
            self._log.debug(
                "transaction_complete",
                tx_id=tx_id,
                op=operation,
                affected_rows=ctx.affected_rows,
                duration_ms=round(duration_ms, 2),
            )

    # ===== Writes =====

    def upsert_many(self, suggestions: Iterable[Suggestion]) -> UpsertSummary:
        """Merge-write suggestions by identity key.

        New fields overwrite stored ones; the vote tally and sampling key of
        an existing row are preserved. Re-running with the same input leaves
        tallies and sampling keys untouched.

        Args:
            suggestions: Suggestions to write.

        Returns:
            Counts of inserted and updated rows.
        """
        inserted = 0
        updated = 0

        with self._transaction("upsert_many") as ctx:
            conn = self._ensure_connected()

            for suggestion in suggestions:
                cursor = conn.execute(
                    """
                    UPDATE suggestions
                    SET site = ?, title = ?, excerpt = ?, ref = ?, fetch_time = ?
                    WHERE id = ?
                    """,
                    (
                        suggestion.site,
                        suggestion.title,
                        suggestion.excerpt,
                        suggestion.ref,
                        to_db_time(suggestion.fetch_time),
                        suggestion.id,
                    ),
                )

                if cursor.rowcount:
                    updated += 1
                    self._metrics.record_update()
                    continue

                conn.execute(
                    """
                    INSERT INTO suggestions (
                        id, site, title, excerpt, ref, fetch_time,
                        votes_positive, votes_negative, votes_total, sampling_key
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        suggestion.id,
                        suggestion.site,
                        suggestion.title,
                        suggestion.excerpt,
                        suggestion.ref,
                        to_db_time(suggestion.fetch_time),
                        suggestion.votes.positive,
                        suggestion.votes.negative,
                        suggestion.votes.total,
                        self._rng.random(),
                    ),
                )
                inserted += 1
                self._metrics.record_insert()

            ctx.add_affected_rows(inserted + updated)

        self._log.info("suggestions_saved", inserted=inserted, updated=updated)
        return UpsertSummary(inserted=inserted, updated=updated)

    def record_vote(self, suggestion_id: str, sign: int) -> Suggestion:
        """Apply one vote to a stored suggestion.

        Args:
            suggestion_id: Identity key of the suggestion.
            sign: +1 or -1.

        Returns:
            The suggestion with its updated tally.

        Raises:
            ValueError: If sign is not +1 or -1.
            SuggestionNotFoundError: If no suggestion has that key.
        """
        if sign not in (1, -1):
            msg = f"Invalid vote sign: {sign}"
            raise ValueError(msg)

        with self._transaction("record_vote") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                """
                UPDATE suggestions SET
                    votes_positive = votes_positive + ?,
                    votes_negative = votes_negative + ?,
                    votes_total = votes_total + ?
                WHERE id = ?
                """,
                (
                    1 if sign > 0 else 0,
                    1 if sign < 0 else 0,
                    sign,
                    suggestion_id,
                ),
            )
            affected = cursor.rowcount
            ctx.add_affected_rows(affected)

        if affected == 0:
            self._metrics.record_vote_not_found()
            raise SuggestionNotFoundError(suggestion_id)

        self._metrics.record_vote()
        self._log.info("vote_recorded", suggestion_id=suggestion_id, sign=sign)

        stored = self.get(suggestion_id)
        if stored is None:
            raise SuggestionNotFoundError(suggestion_id)
        return stored

    def prune_outdated(self, cutoff: datetime) -> int:
        """Delete outdated suggestions that nobody liked.

        Removes every suggestion fetched before ``cutoff`` whose vote total is
        zero or negative. Net-positive suggestions are kept regardless of age.

        Args:
            cutoff: Suggestions fetched strictly before this time are outdated.

        Returns:
            Number of suggestions removed.
        """
        with self._transaction("prune_outdated") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                "DELETE FROM suggestions WHERE fetch_time < ? AND votes_total <= 0",
                (to_db_time(cutoff),),
            )
            pruned = cursor.rowcount
            ctx.add_affected_rows(pruned)

        self._metrics.record_pruned(pruned)
        self._log.info("suggestions_pruned", count=pruned, cutoff=cutoff.isoformat())
        return pruned

    # ===== Reads =====

    def get(self, suggestion_id: str) -> Suggestion | None:
        """Get a suggestion by identity key.

        Args:
            suggestion_id: Identity key to look up.

        Returns:
            The suggestion, or None if not found.
        """
        with self._lock:
            conn = self._ensure_connected()
            row = conn.execute(
                "SELECT * FROM suggestions WHERE id = ?",
                (suggestion_id,),
            ).fetchone()

        return self._row_to_suggestion(row) if row is not None else None

    def count(self, site: str | None = None) -> int:
        """Count stored suggestions, optionally for one site."""
        with self._lock:
            conn = self._ensure_connected()
            if site is None:
                row = conn.execute("SELECT COUNT(*) FROM suggestions").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) FROM suggestions WHERE site = ?", (site,)
                ).fetchone()
        return int(row[0])

    def top_by_score(self, site: str, limit: int) -> list[Suggestion]:
        """Get the best-voted suggestions of a site.

        Only suggestions that received at least one vote are ranked. Ties on
        the vote total are broken by identity key.

        Args:
            site: Site identifier.
            limit: Maximum number of suggestions.

        Returns:
            Suggestions ordered by descending vote total.
        """
        with self._lock:
            conn = self._ensure_connected()
            rows = conn.execute(
                """
                SELECT * FROM suggestions
                WHERE site = ? AND votes_positive + votes_negative > 0
                ORDER BY votes_total DESC, id ASC
                LIMIT ?
                """,
                (site, limit),
            ).fetchall()

        result = [self._row_to_suggestion(row) for row in rows]
        self._log.debug("fetched_top", site=site, limit=limit, count=len(result))
        return result

    def random_sample(self, site: str, limit: int) -> list[Suggestion]:
        """Get a randomized selection of a site's suggestions.

        The probe starts at a random sampling key and walks the key order in
        a random direction, wrapping around the end of the key range. A
        result shorter than ``limit`` therefore holds every row of the site.

        Args:
            site: Site identifier.
            limit: Maximum number of suggestions.

        Returns:
            Up to ``limit`` distinct suggestions of the site, in walk order.
        """
        if limit <= 0:
            return []

        pivot = self._rng.random()
        descending = self._rng.random() > 0.5

        # Two disjoint legs: pivot to the end of the range, then the rest.
        if descending:
            legs = [("sampling_key <= ?", "DESC"), ("sampling_key > ?", "DESC")]
        else:
            legs = [("sampling_key >= ?", "ASC"), ("sampling_key < ?", "ASC")]

        rows: list[sqlite3.Row] = []
        with self._lock:
            conn = self._ensure_connected()
            for condition, direction in legs:
                remaining = limit - len(rows)
                if remaining <= 0:
                    break
                rows.extend(
                    conn.execute(
                        f"SELECT * FROM suggestions WHERE site = ? AND {condition}"  # noqa: S608
                        f" ORDER BY sampling_key {direction} LIMIT ?",
                        (site, pivot, remaining),
                    ).fetchall()
                )

        result = [self._row_to_suggestion(row) for row in rows]
        self._log.debug("fetched_random", site=site, limit=limit, count=len(result))
        return result

    def _row_to_suggestion(self, row: sqlite3.Row) -> Suggestion:
        """Convert a database row to a Suggestion.

        Args:
            row: Database row.

        Returns:
            Suggestion instance.
        """
        return Suggestion(
            site=row["site"],
            title=row["title"],
            excerpt=row["excerpt"],
            ref=row["ref"],
            fetch_time=datetime.fromisoformat(row["fetch_time"]),
            votes=VoteTally(
                positive=row["votes_positive"],
                negative=row["votes_negative"],
                total=row["votes_total"],
            ),
            sampling_key=row["sampling_key"],
        )

    def get_schema_version(self) -> int:
        """Get current schema version."""
        with self._lock:
            conn = self._ensure_connected()
            return MigrationManager(conn).get_current_version()
