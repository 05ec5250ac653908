"""SQLite-backed embedding store for customer records.

Two tables joined on customer_id:
    customers(customer_id, full_name, email, content)
    embeddings(customer_id, vector)   -- vector is a JSON array
"""

import json
import sqlite3
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

from customer_rag.ingestion.documents import build_descriptive_text
from customer_rag.models import CustomerRecord, EmbeddingEntry
from customer_rag.utils.logging import get_logger
from customer_rag.utils.metrics import get_metrics

from .embeddings import EmbeddingService
from .similarity import DimensionMismatch

logger = get_logger(__name__)
metrics = get_metrics()

DEFAULT_BATCH_SIZE = 5
IN_MEMORY = ":memory:"

SCHEMA = """
CREATE TABLE IF NOT EXISTS customers (
    customer_id TEXT PRIMARY KEY,
    full_name TEXT NOT NULL,
    email TEXT,
    content TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS embeddings (
    customer_id TEXT PRIMARY KEY,
    vector TEXT NOT NULL,
    FOREIGN KEY (customer_id) REFERENCES customers(customer_id) ON DELETE CASCADE
);
"""

UPSERT_CUSTOMER = """
INSERT INTO customers (customer_id, full_name, email, content)
VALUES (?, ?, ?, ?)
ON CONFLICT(customer_id) DO UPDATE SET
    full_name = excluded.full_name,
    email = excluded.email,
    content = excluded.content
"""

UPSERT_EMBEDDING = """
INSERT INTO embeddings (customer_id, vector)
VALUES (?, ?)
ON CONFLICT(customer_id) DO UPDATE SET vector = excluded.vector
"""

SELECT_ENTRIES = """
SELECT c.customer_id, c.content, e.vector
FROM customers c
JOIN embeddings e ON c.customer_id = e.customer_id
ORDER BY c.rowid
"""


class EmbeddingStoreError(Exception):
    """The persistence layer failed to read or write."""


@dataclass
class PopulationReport:
    """Outcome of one populate() run."""

    total: int = 0
    stored: int = 0
    failed_ids: List[str] = field(default_factory=list)
    skipped: bool = False
    duration: float = 0.0

    @property
    def partial_failure(self) -> bool:
        return bool(self.failed_ids)


class EmbeddingStore:
    """Durable customer_id -> (vector, descriptive text) mapping.

    Built once by populate(), then read-only apart from upsert(). The vector
    dimension is fixed by the first vector written.
    """

    def __init__(
        self,
        db_path: Union[str, Path],
        embedding_service: EmbeddingService,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        """Open (or create) the store.

        Args:
            db_path: SQLite file path, or ":memory:" for an in-process store.
            embedding_service: Provider used to embed descriptive text.
            batch_size: Records embedded concurrently per batch.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.db_path = str(db_path)
        self.embedding_service = embedding_service
        self.batch_size = batch_size
        self._lock = threading.RLock()
        self._populate_lock = threading.Lock()
        self._entries: Optional[List[EmbeddingEntry]] = None
        self._conn = self._connect()

    def _connect(self) -> sqlite3.Connection:
        try:
            if self.db_path != IN_MEMORY:
                Path(self.db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            if self.db_path != IN_MEMORY:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA foreign_keys = ON")
            conn.executescript(SCHEMA)
            conn.commit()
        except sqlite3.Error as e:
            logger.exception("Failed to open embedding store at {}: {}", self.db_path, e)
            raise EmbeddingStoreError(f"Cannot open embedding store: {e}") from e
        logger.info("EmbeddingStore initialized: path={}", self.db_path)
        return conn

    # --- Reads ---

    def count(self) -> int:
        """Number of stored entries (customers that have a vector)."""
        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT COUNT(*) FROM customers c JOIN embeddings e ON c.customer_id = e.customer_id"
                ).fetchone()
            except sqlite3.Error as e:
                raise EmbeddingStoreError(f"count failed: {e}") from e
        return int(row[0])

    def get_all(self) -> List[EmbeddingEntry]:
        """Return every stored entry in insertion order.

        Rows are decoded once and served from memory until the next write.
        """
        with self._lock:
            if self._entries is None:
                self._entries = self._load_entries()
            return list(self._entries)

    def _load_entries(self) -> List[EmbeddingEntry]:
        try:
            rows = self._conn.execute(SELECT_ENTRIES).fetchall()
        except sqlite3.Error as e:
            raise EmbeddingStoreError(f"get_all failed: {e}") from e
        entries: List[EmbeddingEntry] = []
        for customer_id, content, raw_vector in rows:
            try:
                vector = tuple(float(x) for x in json.loads(raw_vector))
            except (TypeError, ValueError) as e:
                logger.error("Unreadable vector for {}: {}", customer_id, e)
                continue
            entries.append(EmbeddingEntry(customer_id=customer_id, vector=vector, text=content))
        return entries

    def get(self, customer_id: str) -> Optional[EmbeddingEntry]:
        for entry in self.get_all():
            if entry.customer_id == customer_id:
                return entry
        return None

    @property
    def dimension(self) -> Optional[int]:
        """Vector dimension shared by all entries, or None when empty."""
        entries = self.get_all()
        return entries[0].dimension if entries else None

    def get_stats(self) -> dict[str, Any]:
        try:
            return {
                "count": self.count(),
                "dimension": self.dimension,
                "path": self.db_path,
            }
        except EmbeddingStoreError as e:
            logger.warning("get_stats failed: {}", e)
            return {"count": 0, "dimension": None, "path": self.db_path, "error": str(e)}

    # --- Writes ---

    def _write(self, rows: Sequence[Tuple[CustomerRecord, str, Sequence[float]]]) -> None:
        """Write rows in a single transaction: all of them or none."""
        customers = [(r.customer_id, r.full_name, r.email, text) for r, text, _ in rows]
        vectors = [(r.customer_id, json.dumps(list(vec))) for r, _, vec in rows]
        with self._lock:
            try:
                with self._conn:
                    self._conn.executemany(UPSERT_CUSTOMER, customers)
                    self._conn.executemany(UPSERT_EMBEDDING, vectors)
            except sqlite3.Error as e:
                logger.exception("Embedding store write failed: {}", e)
                raise EmbeddingStoreError(f"write failed: {e}") from e
            finally:
                self._entries = None

    def populate(self, records: Iterable[CustomerRecord]) -> PopulationReport:
        """Embed and persist every record unless the store already has entries.

        Records are embedded in batches of batch_size: concurrently within a
        batch, one batch after another. A record whose embedding fails is
        logged and left out; it does not fail its batch and is not retried.
        All successful rows are committed together at the end.

        Returns:
            PopulationReport; failed_ids lists the records left out.
        """
        records = list(records)
        t0 = time.perf_counter()
        with self._populate_lock:
            existing = self.count()
            if existing > 0:
                logger.info("Using existing customer embeddings ({} records)", existing)
                return PopulationReport(total=len(records), stored=existing, skipped=True)

            logger.info("Creating embeddings for {} customers", len(records))
            documents = [(record, build_descriptive_text(record)) for record in records]
            rows: List[Tuple[CustomerRecord, str, List[float]]] = []
            failed: List[str] = []
            dimension: Optional[int] = None
            total_batches = (len(documents) + self.batch_size - 1) // self.batch_size

            with ThreadPoolExecutor(max_workers=self.batch_size, thread_name_prefix="embed") as executor:
                for start in range(0, len(documents), self.batch_size):
                    batch = documents[start : start + self.batch_size]
                    logger.info("Processing batch {}/{}", start // self.batch_size + 1, total_batches)
                    futures = [
                        (record, text, executor.submit(self.embedding_service.embed_text, text))
                        for record, text in batch
                    ]
                    for record, text, future in futures:
                        try:
                            vector = future.result()
                        except Exception as e:
                            logger.error("Error embedding customer {}: {}", record.customer_id, e)
                            failed.append(record.customer_id)
                            continue
                        if dimension is None:
                            dimension = len(vector)
                        elif len(vector) != dimension:
                            logger.error(
                                "Dropping embedding for {}: dimension {} != {}",
                                record.customer_id,
                                len(vector),
                                dimension,
                            )
                            failed.append(record.customer_id)
                            continue
                        rows.append((record, text, vector))

            if rows:
                self._write(rows)

        report = PopulationReport(
            total=len(records),
            stored=len(rows),
            failed_ids=failed,
            duration=time.perf_counter() - t0,
        )
        metrics.record_population(report.duration, report.stored, len(failed))
        if report.partial_failure:
            logger.warning(
                "Partial population: {} of {} customers failed to embed",
                len(failed),
                len(records),
            )
        logger.info("Stored {} customer embeddings in {:.2f}s", report.stored, report.duration)
        return report

    def upsert(self, record: CustomerRecord) -> EmbeddingEntry:
        """Re-embed one record and replace (or insert) its entry.

        Raises:
            ProviderError: If the embedding call fails.
            DimensionMismatch: If the new vector does not match the stored dimension.
            EmbeddingStoreError: If the write fails.
        """
        text = build_descriptive_text(record)
        vector = self.embedding_service.embed_text(text, use_cache=False)
        with self._lock:
            others = [e for e in self.get_all() if e.customer_id != record.customer_id]
            if others and others[0].dimension != len(vector):
                raise DimensionMismatch(others[0].dimension, len(vector), record.customer_id)
            self._write([(record, text, vector)])
        logger.info("Added/updated customer {} in embedding store", record.customer_id)
        return EmbeddingEntry(customer_id=record.customer_id, vector=tuple(vector), text=text)

    def clear(self) -> None:
        """Delete every entry (forces a full re-population on next populate())."""
        with self._lock:
            try:
                with self._conn:
                    self._conn.execute("DELETE FROM embeddings")
                    self._conn.execute("DELETE FROM customers")
            except sqlite3.Error as e:
                raise EmbeddingStoreError(f"clear failed: {e}") from e
            finally:
                self._entries = None
        logger.info("Embedding store cleared")

    def close(self) -> None:
        with self._lock:
            self._conn.close()
