"""Query intent classification: search breadth and shortcut lookups.

Everything here is a pure function of the loaded collection and the query
text. The matching rules live in module-level pattern tables so they can be
replaced without touching the retriever.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Sequence, Tuple

from customer_rag.ingestion.loader import CustomerCollection
from customer_rag.models import CustomerRecord
from customer_rag.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_LIMIT = 3
DEFAULT_TOP_N = 5
DEFAULT_ID_PREFIX = "CUST"

# Any match makes a query comprehensive (whole-collection scan).
COMPREHENSIVE_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("all_customers", re.compile(r"\b(?:all|every)\s+(?:of\s+(?:the|our)\s+)?customers?\b", re.I)),
    ("how_many", re.compile(r"\bhow\s+many\s+customers?\b", re.I)),
    ("count", re.compile(r"\bcount(?:s|ing)?\b", re.I)),
    ("number_of", re.compile(r"\bnumber\s+of\s+customers?\b", re.I)),
    ("customers_with", re.compile(r"\bcustomers?\s+(?:with|having|who\s+have|more\s+than)\b", re.I)),
    ("which_customers", re.compile(r"\b(?:which|find)\s+(?:all\s+)?customers?\b", re.I)),
    ("whole_database", re.compile(r"\b(?:whole|entire|complete|full)\s+database\b", re.I)),
    ("top_n_customers", re.compile(r"\b(?:list\s+)?top\s+\d+\s+customers?\b", re.I)),
    ("most_products", re.compile(r"\bmost\s+products?\b", re.I)),
)

# Structured product-count sub-intents (comprehensive mode only)
TOP_N_PATTERN = re.compile(
    r"top\s+(\d+)\s+customers?|(\d+)\s+customers?\s+with\s+(?:the\s+)?(?:most|highest|greatest)",
    re.I,
)
MORE_THAN_PATTERN = re.compile(r"more\s+than\s+(\d+)", re.I)
LIST_N_PATTERN = re.compile(r"\b(?:top|list)\s+(\d+)\b", re.I)
PRODUCT_KEYWORD = "product"


def identifier_pattern(prefix: str = DEFAULT_ID_PREFIX) -> Pattern[str]:
    """Pattern for 'PREFIX-NNNNN' or 'PREFIX-NNNNNN' anywhere in a query."""
    return re.compile(rf"\b{re.escape(prefix)}-\d{{5,6}}(?!\d)", re.I)


@dataclass(frozen=True)
class QueryIntent:
    """Breadth decision for one query."""

    comprehensive: bool
    limit: int
    mentions_products: bool
    matched_rule: Optional[str] = None


def _first_match(query: str, patterns: Sequence[Tuple[str, Pattern[str]]]) -> Optional[str]:
    for name, pattern in patterns:
        if pattern.search(query):
            return name
    return None


class QueryClassifier:
    """Decides retrieval breadth and detects identifier, name and product-count intents."""

    def __init__(
        self,
        collection: CustomerCollection,
        id_prefix: str = DEFAULT_ID_PREFIX,
        comprehensive_patterns: Sequence[Tuple[str, Pattern[str]]] = COMPREHENSIVE_PATTERNS,
    ) -> None:
        self.collection = collection
        self.id_prefix = id_prefix
        self._id_pattern = identifier_pattern(id_prefix)
        self._comprehensive_patterns = tuple(comprehensive_patterns)
        self._names = [(record.full_name.lower(), record) for record in collection]

    def is_comprehensive(self, query: str) -> bool:
        return _first_match(query, self._comprehensive_patterns) is not None

    def classify(self, query: str, default_limit: int = DEFAULT_LIMIT) -> QueryIntent:
        """Classify breadth.

        Comprehensive queries get a limit equal to the collection size (never
        below default_limit); everything else uses default_limit.
        """
        rule = _first_match(query, self._comprehensive_patterns)
        comprehensive = rule is not None
        limit = max(len(self.collection), default_limit) if comprehensive else default_limit
        return QueryIntent(
            comprehensive=comprehensive,
            limit=limit,
            mentions_products=PRODUCT_KEYWORD in query.lower(),
            matched_rule=rule,
        )

    def find_by_identifier(self, query: str) -> Optional[CustomerRecord]:
        """Return the record named by an identifier in the query, if it exists."""
        match = self._id_pattern.search(query)
        if match is None:
            return None
        customer_id = match.group(0).upper()
        record = self.collection.get(customer_id)
        if record is None:
            logger.info("Identifier {} in query not found in collection", customer_id)
            return None
        logger.info("Found exact match for customer ID {} ({} products)", customer_id, record.product_count)
        return record

    def find_by_name(self, query: str, limit: int) -> List[CustomerRecord]:
        """Return every record whose full name occurs in the query, truncated to limit."""
        query_lower = query.lower()
        matches = [record for name, record in self._names if name in query_lower]
        if matches:
            logger.info("Found {} customers by name match", len(matches))
        return matches[:limit]

    def structured_filter(self, query: str, intent: QueryIntent) -> Optional[List[CustomerRecord]]:
        """Answer product-count questions directly from the collection.

        Only applies to comprehensive queries that mention products; returns
        None when the query is not a product-count question.
        """
        if not intent.comprehensive or not intent.mentions_products:
            return None

        # sorted() is stable: equal counts keep collection order
        by_count = sorted(self.collection, key=lambda r: r.product_count, reverse=True)

        top_match = TOP_N_PATTERN.search(query)
        if top_match:
            top_n = int(top_match.group(1) or top_match.group(2) or DEFAULT_TOP_N)
            logger.info("Query asks for top {} customers by product count", top_n)
            return by_count[:top_n]

        more_than = MORE_THAN_PATTERN.search(query)
        if more_than:
            threshold = int(more_than.group(1))
            filtered = [r for r in by_count if r.product_count > threshold]
            logger.info(
                "Found {} customers with more than {} products (0: {}, 1-3: {}, 4+: {})",
                len(filtered),
                threshold,
                sum(1 for r in by_count if r.product_count == 0),
                sum(1 for r in by_count if 0 < r.product_count <= 3),
                sum(1 for r in by_count if r.product_count > 3),
            )
            list_n = LIST_N_PATTERN.search(query)
            if list_n:
                return filtered[: int(list_n.group(1))]
            return filtered[: intent.limit]

        logger.info("General product query: returning customers by product count")
        return by_count[: intent.limit]
