"""Retrieval orchestration: shortcuts, structured filters, vector search, lexical fallback."""

import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from customer_rag.ingestion.loader import CustomerCollection
from customer_rag.models import CustomerRecord, ScoredCandidate
from customer_rag.utils.logging import get_logger
from customer_rag.utils.metrics import get_metrics

from .classifier import DEFAULT_LIMIT, QueryClassifier, QueryIntent
from .embeddings import EmbeddingService, ProviderError
from .lexical import LexicalRanker
from .similarity import DimensionMismatch, rank_by_similarity
from .vector_store import EmbeddingStore, EmbeddingStoreError

logger = get_logger(__name__)
metrics = get_metrics()

PATH_EMPTY = "empty"
PATH_IDENTIFIER = "identifier"
PATH_NAME = "name"
PATH_STRUCTURED = "structured"
PATH_VECTOR = "vector"
PATH_LEXICAL = "lexical"


@dataclass(frozen=True)
class RankingOutcome:
    """Result of one ranking attempt: candidates on success, a reason on failure."""

    ok: bool
    ranker: str
    candidates: Tuple[ScoredCandidate, ...] = ()
    error: Optional[str] = None

    @classmethod
    def success(cls, ranker: str, candidates: List[ScoredCandidate]) -> "RankingOutcome":
        return cls(ok=True, ranker=ranker, candidates=tuple(candidates))

    @classmethod
    def failure(cls, ranker: str, error: str) -> "RankingOutcome":
        return cls(ok=False, ranker=ranker, error=error)


@dataclass
class RetrievalResult:
    """Ordered records for one query plus how they were found.

    scores[i] belongs to records[i]; shortcut and structured paths carry no
    score (None).
    """

    records: List[CustomerRecord] = field(default_factory=list)
    scores: List[Optional[float]] = field(default_factory=list)
    path: str = PATH_EMPTY
    comprehensive: bool = False
    limit: int = DEFAULT_LIMIT
    fallback_reason: Optional[str] = None

    @property
    def customer_ids(self) -> List[str]:
        return [r.customer_id for r in self.records]


class CustomerRetriever:
    """Turns a free-text query into a ranked, bounded list of customer records.

    Precedence: identifier shortcut, name shortcut, structured product-count
    filter (comprehensive queries only), vector similarity, lexical fallback.
    The retriever never re-sorts what a ranker returns and never mutates a
    record.
    """

    def __init__(
        self,
        collection: CustomerCollection,
        store: Optional[EmbeddingStore] = None,
        embedding_service: Optional[EmbeddingService] = None,
        classifier: Optional[QueryClassifier] = None,
        lexical: Optional[LexicalRanker] = None,
    ) -> None:
        """Initialize the retriever.

        Args:
            collection: The loaded customer collection.
            store: Embedding store for vector search. None disables vector search.
            embedding_service: Provider used to embed queries. Defaults to store.embedding_service.
            classifier: Query classifier. Defaults to one built over collection.
            lexical: Lexical ranker. Defaults to one built over collection.
        """
        self.collection = collection
        self.store = store
        if embedding_service is None and store is not None:
            embedding_service = store.embedding_service
        self.embedding_service = embedding_service
        self.classifier = classifier or QueryClassifier(collection)
        self.lexical = lexical or LexicalRanker(collection)
        logger.info(
            "CustomerRetriever initialized: customers={}, vector_search={}",
            len(collection),
            store is not None,
        )

    def retrieve(self, query: str, default_limit: int = DEFAULT_LIMIT) -> List[CustomerRecord]:
        """Return the ordered records for query."""
        return self.retrieve_detailed(query, default_limit=default_limit).records

    def retrieve_detailed(self, query: str, default_limit: int = DEFAULT_LIMIT) -> RetrievalResult:
        """Run the full retrieval flow and report which path produced the result."""
        t0 = time.perf_counter()
        result = self._resolve(query, default_limit)
        elapsed = time.perf_counter() - t0
        logger.info(
            "retrieve: path={}, comprehensive={}, {} customers in {:.3f}s (query='{}')",
            result.path,
            result.comprehensive,
            len(result.records),
            elapsed,
            query[:50],
        )
        metrics.record_retrieval(path=result.path, duration=elapsed, records_returned=len(result.records))
        return result

    def _resolve(self, query: str, default_limit: int) -> RetrievalResult:
        if not query or not query.strip():
            return RetrievalResult(limit=default_limit)

        intent = self.classifier.classify(query, default_limit=default_limit)

        # Shortcuts win over everything, including comprehensive phrasing
        record = self.classifier.find_by_identifier(query)
        if record is not None:
            return self._unscored([record], PATH_IDENTIFIER, intent)

        by_name = self.classifier.find_by_name(query, intent.limit)
        if by_name:
            return self._unscored(by_name, PATH_NAME, intent)

        if intent.comprehensive:
            logger.info("Comprehensive search (rule={}) over {} customers", intent.matched_rule, len(self.collection))
            structured = self.classifier.structured_filter(query, intent)
            if structured is not None:
                return self._unscored(structured, PATH_STRUCTURED, intent)

        outcome = self._vector_search(query, intent.limit)
        fallback_reason = None
        if not outcome.ok:
            logger.warning("Vector search unavailable ({}); falling back to lexical search", outcome.error)
            fallback_reason = outcome.error
            outcome = self._lexical_search(query, intent.limit)

        return RetrievalResult(
            records=[c.record for c in outcome.candidates],
            scores=[c.score for c in outcome.candidates],
            path=outcome.ranker,
            comprehensive=intent.comprehensive,
            limit=intent.limit,
            fallback_reason=fallback_reason,
        )

    def _unscored(self, records: List[CustomerRecord], path: str, intent: QueryIntent) -> RetrievalResult:
        return RetrievalResult(
            records=list(records),
            scores=[None] * len(records),
            path=path,
            comprehensive=intent.comprehensive,
            limit=intent.limit,
        )

    def _vector_search(self, query: str, limit: int) -> RankingOutcome:
        """Embed the query and rank stored vectors by cosine similarity."""
        if self.store is None or self.embedding_service is None:
            return RankingOutcome.failure(PATH_VECTOR, "vector search not configured")
        try:
            entries = self.store.get_all()
            if not entries:
                return RankingOutcome.failure(PATH_VECTOR, "embedding store is empty")
            query_vector = self.embedding_service.embed_text(query, use_cache=False)
            ranked = rank_by_similarity(query_vector, entries, limit)
        except ProviderError as e:
            metrics.record_embedding_failure()
            return RankingOutcome.failure(PATH_VECTOR, f"provider error: {e}")
        except DimensionMismatch as e:
            return RankingOutcome.failure(PATH_VECTOR, f"dimension mismatch: {e}")
        except EmbeddingStoreError as e:
            return RankingOutcome.failure(PATH_VECTOR, f"store error: {e}")
        except Exception as e:
            logger.exception("Unexpected vector search failure: {}", e)
            return RankingOutcome.failure(PATH_VECTOR, f"unexpected error: {e}")

        candidates: List[ScoredCandidate] = []
        for customer_id, score in ranked:
            record = self.collection.get(customer_id)
            if record is None:
                logger.warning("Stored embedding for unknown customer {} ignored", customer_id)
                continue
            candidates.append(ScoredCandidate(record=record, score=score))
        return RankingOutcome.success(PATH_VECTOR, candidates)

    def _lexical_search(self, query: str, limit: int) -> RankingOutcome:
        return RankingOutcome.success(PATH_LEXICAL, self.lexical.rank(query, limit))
