"""Embedding, storage, ranking and query classification for customer retrieval."""

from .classifier import QueryClassifier, QueryIntent
from .embeddings import EmbeddingService, ProviderError
from .lexical import LexicalRanker
from .retriever import CustomerRetriever, RankingOutcome, RetrievalResult
from .similarity import DimensionMismatch, cosine_similarity, rank_by_similarity
from .vector_store import EmbeddingStore, EmbeddingStoreError, PopulationReport

__all__ = [
    "cosine_similarity",
    "CustomerRetriever",
    "DimensionMismatch",
    "EmbeddingService",
    "EmbeddingStore",
    "EmbeddingStoreError",
    "LexicalRanker",
    "PopulationReport",
    "ProviderError",
    "QueryClassifier",
    "QueryIntent",
    "RankingOutcome",
    "rank_by_similarity",
    "RetrievalResult",
]
