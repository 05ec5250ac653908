"""Pytest configuration and shared fixtures."""

from typing import Any, Callable, Dict, List
from unittest.mock import MagicMock

import pytest

from customer_rag.ingestion.loader import CustomerCollection, parse_customers
from customer_rag.models import CustomerRecord
from customer_rag.retrieval.embeddings import EmbeddingService
from customer_rag.utils.metrics import get_metrics
from tests.factories import SAMPLE_CUSTOMERS, customer_dict, hashed_embedding

# --- Record fixtures ---


@pytest.fixture
def customer_payloads() -> List[Dict[str, Any]]:
    """Raw customer dicts (fresh copy per test)."""
    return [dict(c) for c in SAMPLE_CUSTOMERS]


@pytest.fixture
def collection(customer_payloads) -> CustomerCollection:
    """Seven customers holding 2, 4, 0, 5, 1, 3 and 6 products; CUST-100042 is Jane Doe."""
    return parse_customers(customer_payloads)


@pytest.fixture
def make_customer() -> Callable[..., CustomerRecord]:
    """Factory building a validated CustomerRecord."""

    def _make(index: int = 99, first_name: str = "Test", last_name: str = "User", products=(), **kwargs):
        return CustomerRecord.model_validate(customer_dict(index, first_name, last_name, list(products), **kwargs))

    return _make


# --- Embedding fixtures ---


@pytest.fixture
def mock_embedding_service():
    """Mock EmbeddingService returning deterministic hashed vectors."""
    svc = MagicMock(spec=EmbeddingService)
    svc.provider = "ollama"
    svc.model_name = "nomic-embed-text"
    svc.embed_text.side_effect = lambda text, use_cache=True: hashed_embedding(text)
    return svc


@pytest.fixture
def memory_store(mock_embedding_service):
    """In-memory EmbeddingStore, closed after the test."""
    from customer_rag.retrieval.vector_store import EmbeddingStore

    store = EmbeddingStore(":memory:", mock_embedding_service, batch_size=2)
    yield store
    store.close()


# --- Metrics isolation ---


@pytest.fixture(autouse=True)
def reset_metrics():
    """Zero the global metrics collector around every test."""
    get_metrics().reset()
    yield
    get_metrics().reset()
