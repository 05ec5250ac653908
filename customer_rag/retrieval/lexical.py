"""Dependency-free lexical ranking, used when vector search is unavailable."""

from typing import Iterable, List

from customer_rag.ingestion.documents import build_search_text
from customer_rag.models import CustomerRecord, ScoredCandidate

EXACT_MATCH_SCORE = 10
TERM_MATCH_SCORE = 2
MIN_TERM_LENGTH = 3


def query_terms(query: str) -> List[str]:
    """Distinct lower-cased whitespace terms longer than two characters, in query order."""
    terms = [t for t in query.lower().split() if len(t) >= MIN_TERM_LENGTH]
    return list(dict.fromkeys(terms))


def score_text(query: str, text: str) -> int:
    """Score text against query.

    +10 when the whole lower-cased query appears in text, +2 for each
    distinct query term (len > 2) that appears anywhere in text.
    text is expected to be lower-cased already.
    """
    query_lower = query.lower()
    score = 0
    if query_lower and query_lower in text:
        score += EXACT_MATCH_SCORE
    for term in query_terms(query_lower):
        if term in text:
            score += TERM_MATCH_SCORE
    return score


class LexicalRanker:
    """Term-overlap ranker over a fixed set of records.

    Search text is computed once per record. rank() never raises.
    """

    def __init__(self, records: Iterable[CustomerRecord]) -> None:
        self._documents = [(record, build_search_text(record)) for record in records]

    def __len__(self) -> int:
        return len(self._documents)

    def rank(self, query: str, limit: int) -> List[ScoredCandidate]:
        """Return up to limit records with a positive score, best first.

        Ties keep collection order.
        """
        if not query or not query.strip() or limit <= 0:
            return []
        scored = []
        for record, text in self._documents:
            score = score_text(query, text)
            if score > 0:
                scored.append(ScoredCandidate(record=record, score=float(score)))
        scored.sort(key=lambda c: c.score, reverse=True)
        return scored[:limit]
