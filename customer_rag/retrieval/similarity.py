"""Cosine similarity ranking of a query vector against stored embeddings."""

import math
from typing import Iterable, List, Sequence, Tuple

from customer_rag.models import EmbeddingEntry


class DimensionMismatch(ValueError):
    """Two vectors that must share a dimension do not."""

    def __init__(self, expected: int, actual: int, customer_id: str = "") -> None:
        self.expected = expected
        self.actual = actual
        self.customer_id = customer_id
        where = f" for {customer_id}" if customer_id else ""
        super().__init__(f"Vector dimension mismatch{where}: expected {expected}, got {actual}")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return dot(a, b) / (|a| * |b|), or 0.0 when either norm is zero.

    Raises:
        DimensionMismatch: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise DimensionMismatch(len(a), len(b))
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0 or norm_b == 0:
        return 0.0
    score = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    # Clamp floating-point drift so sim(a, a) never exceeds 1
    return max(-1.0, min(1.0, score))


def rank_by_similarity(
    query_vector: Sequence[float],
    entries: Iterable[EmbeddingEntry],
    limit: int,
) -> List[Tuple[str, float]]:
    """Score every entry against the query and return the best limit ids.

    Entries with similarity <= 0 are dropped. Sorting is stable, so equal
    scores keep store order. A single mismatched entry aborts the ranking.

    Returns:
        [(customer_id, similarity), ...] in descending similarity.

    Raises:
        DimensionMismatch: If any stored vector differs in length from the query.
    """
    if limit <= 0:
        return []
    scored: List[Tuple[str, float]] = []
    for entry in entries:
        if len(entry.vector) != len(query_vector):
            raise DimensionMismatch(len(query_vector), len(entry.vector), entry.customer_id)
        similarity = cosine_similarity(query_vector, entry.vector)
        if similarity > 0:
            scored.append((entry.customer_id, similarity))
    scored.sort(key=lambda item: item[1], reverse=True)
    return scored[:limit]
