"""Tests for cosine similarity ranking and the lexical fallback ranker."""

import math
import random

import pytest

from customer_rag.ingestion.documents import build_search_text
from customer_rag.models import EmbeddingEntry
from customer_rag.retrieval.lexical import EXACT_MATCH_SCORE, TERM_MATCH_SCORE, LexicalRanker, query_terms, score_text
from customer_rag.retrieval.similarity import DimensionMismatch, cosine_similarity, rank_by_similarity


def _entry(customer_id: str, vector) -> EmbeddingEntry:
    return EmbeddingEntry(customer_id=customer_id, vector=tuple(vector), text="")


@pytest.mark.unit
class TestCosineSimilarity:
    """cosine_similarity properties."""

    def test_symmetric_and_bounded(self):
        rng = random.Random(1234)
        for _ in range(200):
            dim = rng.randint(1, 12)
            a = [rng.uniform(-5, 5) for _ in range(dim)]
            b = [rng.uniform(-5, 5) for _ in range(dim)]
            s_ab = cosine_similarity(a, b)
            assert s_ab == pytest.approx(cosine_similarity(b, a))
            assert -1.0 <= s_ab <= 1.0

    def test_self_similarity_is_one(self):
        rng = random.Random(99)
        for _ in range(50):
            a = [rng.uniform(-3, 3) for _ in range(rng.randint(1, 20))]
            if not any(a):
                continue
            assert cosine_similarity(a, a) == pytest.approx(1.0)

    def test_known_values(self):
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
        assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)
        assert cosine_similarity([1, 1], [1, 0]) == pytest.approx(1 / math.sqrt(2))

    def test_zero_vector_scores_zero(self):
        assert cosine_similarity([0, 0, 0], [1, 2, 3]) == 0.0

    def test_length_mismatch_raises(self):
        with pytest.raises(DimensionMismatch):
            cosine_similarity([1, 2], [1, 2, 3])


@pytest.mark.unit
class TestRankBySimilarity:
    """rank_by_similarity ordering, limits and filtering."""

    def test_orders_by_descending_similarity(self):
        entries = [_entry("A", [1, 0]), _entry("B", [1, 1]), _entry("C", [0.9, 0.1])]
        ranked = rank_by_similarity([1, 0], entries, limit=3)
        assert [cid for cid, _ in ranked] == ["A", "C", "B"]

    def test_never_exceeds_limit_and_drops_non_positive(self):
        rng = random.Random(7)
        entries = [_entry(f"C{i}", [rng.uniform(-1, 1) for _ in range(4)]) for i in range(40)]
        query = [rng.uniform(-1, 1) for _ in range(4)]
        for limit in (0, 1, 3, 10, 100):
            ranked = rank_by_similarity(query, entries, limit)
            assert len(ranked) <= limit
            assert all(score > 0 for _, score in ranked)

    def test_orthogonal_and_opposite_excluded(self):
        entries = [_entry("ortho", [0, 1]), _entry("opposite", [-1, 0]), _entry("same", [2, 0])]
        assert rank_by_similarity([1, 0], entries, limit=5) == [("same", pytest.approx(1.0))]

    def test_ties_keep_store_order(self):
        entries = [_entry("first", [1, 0]), _entry("second", [2, 0]), _entry("third", [3, 0])]
        ranked = rank_by_similarity([1, 0], entries, limit=3)
        assert [cid for cid, _ in ranked] == ["first", "second", "third"]

    def test_mismatched_entry_aborts(self):
        entries = [_entry("ok", [1, 0]), _entry("bad", [1, 0, 0])]
        with pytest.raises(DimensionMismatch) as exc:
            rank_by_similarity([1, 0], entries, limit=2)
        assert exc.value.customer_id == "bad"


@pytest.mark.unit
class TestLexicalScoring:
    """query_terms / score_text."""

    def test_query_terms_filters_short_and_duplicates(self):
        assert query_terms("Is an email EMAIL of me") == ["email"]
        assert query_terms("savings account savings") == ["savings", "account"]

    def test_exact_phrase_bonus(self):
        text = "notes: prefers email communication"
        assert score_text("email communication", text) == EXACT_MATCH_SCORE + 2 * TERM_MATCH_SCORE

    def test_terms_counted_once(self):
        assert score_text("loan loan loan", "home loan") == TERM_MATCH_SCORE

    def test_monotonic_in_matched_terms(self):
        """Adding more of the query's terms to a text never lowers the score."""
        query = "frequent traveler savings chicago"
        texts = [
            "nothing relevant",
            "frequent",
            "frequent traveler",
            "frequent traveler savings",
            "frequent traveler savings chicago",
        ]
        scores = [score_text(query, t) for t in texts]
        assert scores == sorted(scores)
        assert scores[0] == 0


@pytest.mark.unit
class TestLexicalRanker:
    """LexicalRanker over the sample collection."""

    def test_ranks_by_term_overlap(self, collection):
        ranker = LexicalRanker(collection)
        results = ranker.rank("investment opportunities", limit=3)
        assert results[0].record.customer_id == "CUST-100042"
        assert results[0].score == EXACT_MATCH_SCORE + 2 * TERM_MATCH_SCORE

    def test_limit_and_positive_scores(self, collection):
        ranker = LexicalRanker(collection)
        for limit in (0, 1, 2, 50):
            results = ranker.rank("savings account credit card", limit)
            assert len(results) <= limit
            assert all(c.score > 0 for c in results)

    def test_no_match_returns_empty(self, collection):
        assert LexicalRanker(collection).rank("zzzqqq", limit=3) == []

    def test_empty_query_returns_empty(self, collection):
        ranker = LexicalRanker(collection)
        assert ranker.rank("", limit=3) == []
        assert ranker.rank("   ", limit=3) == []

    def test_ties_keep_collection_order(self, collection):
        """Every customer lives on 'Main St'; equal scores keep source order."""
        results = LexicalRanker(collection).rank("main", limit=10)
        assert [c.record.customer_id for c in results] == [r.customer_id for r in collection]

    def test_scores_against_descriptive_text(self, collection):
        ranker = LexicalRanker(collection)
        record = collection.get("CUST-100001")
        assert score_text("new york", build_search_text(record)) > 0
        assert ranker.rank("new york", limit=1)[0].record is record
