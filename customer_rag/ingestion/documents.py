"""Text representations of customer records for embedding and lexical search."""

from typing import Any

from customer_rag.models import CustomerRecord

MISSING = "N/A"


def _or_missing(value: Any) -> str:
    if value is None:
        return MISSING
    text = str(value).strip()
    return text if text else MISSING


def build_descriptive_text(record: CustomerRecord) -> str:
    """Build the text that represents a customer in the embedding store.

    One labelled field per line. Missing or empty fields render as "N/A"
    so every record has the same shape.
    """
    products = ", ".join(record.product_types)
    lines = [
        f"Customer ID: {record.customer_id}",
        f"Name: {_or_missing(record.full_name)}",
        f"Email: {_or_missing(record.email)}",
        f"Phone: {_or_missing(record.phone_number)}",
        f"Address: {_or_missing(record.address.format())}",
        f"Products: {_or_missing(products)}",
        f"Customer Rating: {_or_missing(record.customer_rating)}",
        f"Join Date: {_or_missing(record.join_date)}",
        f"Notes: {_or_missing(record.notes)}",
    ]
    return "\n".join(lines)


def build_search_text(record: CustomerRecord) -> str:
    """Lower-cased descriptive text used by the lexical ranker."""
    return build_descriptive_text(record).lower()
