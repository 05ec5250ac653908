"""Tests for the SQLite embedding store."""

import itertools
import sqlite3
import threading
import time

import pytest

from customer_rag.ingestion.documents import build_descriptive_text
from customer_rag.retrieval.embeddings import ProviderError
from customer_rag.retrieval.similarity import DimensionMismatch
from customer_rag.retrieval.vector_store import EmbeddingStore, EmbeddingStoreError
from customer_rag.utils.metrics import get_metrics
from tests.factories import hashed_embedding


@pytest.mark.unit
class TestPopulate:
    """populate(): batching, idempotence, partial failure."""

    def test_populates_every_record(self, memory_store, collection):
        report = memory_store.populate(collection)
        assert report.stored == len(collection)
        assert not report.partial_failure
        assert memory_store.count() == len(collection)
        assert memory_store.dimension == 32

    def test_entries_keep_collection_order_and_text(self, memory_store, collection):
        memory_store.populate(collection)
        entries = memory_store.get_all()
        assert [e.customer_id for e in entries] == [r.customer_id for r in collection]
        first = collection.records[0]
        assert entries[0].text == build_descriptive_text(first)
        assert list(entries[0].vector) == hashed_embedding(build_descriptive_text(first))

    def test_populate_is_idempotent(self, memory_store, collection, mock_embedding_service):
        memory_store.populate(collection)
        calls = mock_embedding_service.embed_text.call_count
        report = memory_store.populate(collection)
        assert report.skipped
        assert memory_store.count() == len(collection)
        assert mock_embedding_service.embed_text.call_count == calls

    def test_partial_failure_is_reported(self, memory_store, collection, mock_embedding_service):
        """A failing record is left out; the others are stored."""

        def flaky(text, use_cache=True):
            if "CUST-100042" in text:
                raise ProviderError("boom")
            return hashed_embedding(text)

        mock_embedding_service.embed_text.side_effect = flaky
        report = memory_store.populate(collection)
        assert report.partial_failure
        assert report.failed_ids == ["CUST-100042"]
        assert memory_store.count() == len(collection) - 1
        assert memory_store.get("CUST-100042") is None
        assert get_metrics().get_metrics_summary()["total_embedding_failures"] == 1

    def test_inconsistent_dimension_dropped(self, memory_store, collection, mock_embedding_service):
        def odd(text, use_cache=True):
            if "CUST-100004" in text:
                return [1.0, 2.0]
            return hashed_embedding(text)

        mock_embedding_service.embed_text.side_effect = odd
        report = memory_store.populate(collection)
        assert "CUST-100004" in report.failed_ids
        assert {e.dimension for e in memory_store.get_all()} == {32}

    def test_all_failures_store_nothing(self, memory_store, collection, mock_embedding_service):
        mock_embedding_service.embed_text.side_effect = ProviderError("offline")
        report = memory_store.populate(collection)
        assert report.stored == 0
        assert len(report.failed_ids) == len(collection)
        assert memory_store.count() == 0

    def test_concurrent_within_batch_sequential_across(self, collection, mock_embedding_service):
        """batch_size embeds in flight at once; batch k+1 starts after batch k finishes."""
        batch_size = 3
        position = {r.customer_id: i for i, r in enumerate(collection)}
        lock = threading.Lock()
        tick = itertools.count()
        started, finished = {}, {}
        in_flight = 0
        peak = 0

        def slow_embed(text, use_cache=True):
            nonlocal in_flight, peak
            customer_id = text.splitlines()[0].split(": ", 1)[1]
            with lock:
                in_flight += 1
                peak = max(peak, in_flight)
                started[customer_id] = next(tick)
            time.sleep(0.1)
            with lock:
                in_flight -= 1
                finished[customer_id] = next(tick)
            return hashed_embedding(text)

        mock_embedding_service.embed_text.side_effect = slow_embed
        store = EmbeddingStore(":memory:", mock_embedding_service, batch_size=batch_size)
        try:
            report = store.populate(collection)
        finally:
            store.close()

        assert report.stored == len(collection)
        assert peak == batch_size > 1
        batches = {}
        for customer_id, i in position.items():
            batches.setdefault(i // batch_size, []).append(customer_id)
        for k in range(1, len(batches)):
            previous_done = max(finished[c] for c in batches[k - 1])
            assert all(started[c] > previous_done for c in batches[k])

    def test_invalid_batch_size(self, mock_embedding_service):
        with pytest.raises(ValueError):
            EmbeddingStore(":memory:", mock_embedding_service, batch_size=0)


@pytest.mark.unit
class TestUpsert:
    """upsert(): single-record replace."""

    def test_upsert_inserts_new_record(self, memory_store, make_customer):
        record = make_customer(77, "New", "Person", products=["Credit Card"])
        entry = memory_store.upsert(record)
        assert entry.customer_id == "CUST-100077"
        assert memory_store.count() == 1
        assert memory_store.get("CUST-100077").text == build_descriptive_text(record)

    def test_upsert_replaces_existing_and_keeps_order(self, memory_store, collection, make_customer):
        memory_store.populate(collection)
        updated = make_customer(42, "Jane", "Doe", products=["Savings Account"], notes="Moved to Denver")
        memory_store.upsert(updated)
        assert memory_store.count() == len(collection)
        assert "Moved to Denver" in memory_store.get("CUST-100042").text
        assert [e.customer_id for e in memory_store.get_all()] == [r.customer_id for r in collection]

    def test_upsert_bypasses_cache(self, memory_store, make_customer, mock_embedding_service):
        memory_store.upsert(make_customer(1, "A", "B"))
        assert mock_embedding_service.embed_text.call_args.kwargs == {"use_cache": False}

    def test_upsert_provider_error_propagates(self, memory_store, make_customer, mock_embedding_service):
        mock_embedding_service.embed_text.side_effect = ProviderError("down")
        with pytest.raises(ProviderError):
            memory_store.upsert(make_customer(1, "A", "B"))
        assert memory_store.count() == 0

    def test_upsert_dimension_mismatch(self, memory_store, collection, make_customer, mock_embedding_service):
        memory_store.populate(collection)
        mock_embedding_service.embed_text.side_effect = lambda text, use_cache=True: [1.0, 0.0]
        with pytest.raises(DimensionMismatch):
            memory_store.upsert(make_customer(42, "Jane", "Doe"))
        assert memory_store.get("CUST-100042").dimension == 32


@pytest.mark.unit
class TestPersistence:
    """File-backed store behavior."""

    def test_entries_survive_reopen(self, tmp_path, collection, mock_embedding_service):
        db_path = tmp_path / "vectors" / "customers.db"
        store = EmbeddingStore(db_path, mock_embedding_service)
        store.populate(collection)
        store.close()

        reopened = EmbeddingStore(db_path, mock_embedding_service)
        try:
            assert reopened.count() == len(collection)
            report = reopened.populate(collection)
            assert report.skipped
        finally:
            reopened.close()

    def test_schema_has_two_tables(self, tmp_path, mock_embedding_service):
        db_path = tmp_path / "schema.db"
        EmbeddingStore(db_path, mock_embedding_service).close()
        conn = sqlite3.connect(db_path)
        try:
            tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        finally:
            conn.close()
        assert {"customers", "embeddings"} <= tables

    def test_corrupt_vector_skipped(self, tmp_path, collection, mock_embedding_service):
        db_path = tmp_path / "corrupt.db"
        store = EmbeddingStore(db_path, mock_embedding_service)
        store.populate(collection)
        store.close()
        conn = sqlite3.connect(db_path)
        with conn:
            conn.execute("UPDATE embeddings SET vector = 'not-json' WHERE customer_id = 'CUST-100001'")
        conn.close()

        reopened = EmbeddingStore(db_path, mock_embedding_service)
        try:
            ids = [e.customer_id for e in reopened.get_all()]
            assert "CUST-100001" not in ids
            assert len(ids) == len(collection) - 1
        finally:
            reopened.close()

    def test_clear_empties_store(self, memory_store, collection):
        memory_store.populate(collection)
        memory_store.clear()
        assert memory_store.count() == 0
        assert memory_store.get_all() == []
        assert memory_store.dimension is None

    def test_closed_store_raises_store_error(self, mock_embedding_service):
        store = EmbeddingStore(":memory:", mock_embedding_service)
        store.close()
        with pytest.raises(EmbeddingStoreError):
            store.count()

    def test_stats(self, memory_store, collection):
        memory_store.populate(collection)
        stats = memory_store.get_stats()
        assert stats["count"] == len(collection)
        assert stats["dimension"] == 32
        assert stats["path"] == ":memory:"
