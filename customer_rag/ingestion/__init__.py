"""Record source: loading, text representations, and synthetic data."""

from .documents import build_descriptive_text, build_search_text
from .loader import CustomerCollection, RecordSourceError, load_customers, parse_customers

__all__ = [
    "build_descriptive_text",
    "build_search_text",
    "CustomerCollection",
    "load_customers",
    "parse_customers",
    "RecordSourceError",
]
