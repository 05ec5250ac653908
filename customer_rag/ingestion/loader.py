"""Load the customer collection from a JSON file."""

import json
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from pydantic import ValidationError

from customer_rag.models import CustomerRecord
from customer_rag.utils.logging import get_logger

logger = get_logger(__name__)


class RecordSourceError(Exception):
    """The customer source file exists but cannot be read as a JSON array."""


class CustomerCollection:
    """Immutable, ordered collection of customer records.

    Lookups by identifier are case-insensitive. Source order is preserved and
    is the tie-break order for every ranking built on top of the collection.
    """

    def __init__(self, records: Iterable[CustomerRecord] = ()) -> None:
        kept: list[CustomerRecord] = []
        by_id: dict[str, CustomerRecord] = {}
        for record in records:
            key = record.customer_id.upper()
            if key in by_id:
                logger.warning("Duplicate customer id {} ignored", record.customer_id)
                continue
            by_id[key] = record
            kept.append(record)
        self._records: tuple[CustomerRecord, ...] = tuple(kept)
        self._by_id = by_id

    @property
    def records(self) -> tuple[CustomerRecord, ...]:
        return self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[CustomerRecord]:
        return iter(self._records)

    def __contains__(self, customer_id: object) -> bool:
        return isinstance(customer_id, str) and customer_id.upper() in self._by_id

    def get(self, customer_id: str) -> Optional[CustomerRecord]:
        """Return the record with this identifier, or None."""
        return self._by_id.get(customer_id.strip().upper())


def parse_customers(payload: list) -> CustomerCollection:
    """Validate raw customer dicts. Invalid entries are logged and skipped."""
    records: list[CustomerRecord] = []
    for i, item in enumerate(payload):
        try:
            records.append(CustomerRecord.model_validate(item))
        except ValidationError as e:
            logger.warning("Skipping invalid customer entry at index {}: {} error(s)", i, e.error_count())
    return CustomerCollection(records)


def load_customers(path: Union[str, Path]) -> CustomerCollection:
    """Load and validate customers from a JSON array file.

    A missing file yields an empty collection so the service can still start.

    Raises:
        RecordSourceError: If the file is unreadable or not a JSON array.
    """
    file_path = Path(path)
    if not file_path.exists():
        logger.warning("Customer file not found at {}; starting with an empty collection", file_path)
        return CustomerCollection()

    try:
        with open(file_path, encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise RecordSourceError(f"Cannot read customer file {file_path}: {e}") from e

    if not isinstance(payload, list):
        raise RecordSourceError(f"Customer file {file_path} must contain a JSON array")

    collection = parse_customers(payload)
    logger.info("Loaded {} customers from {}", len(collection), file_path)
    return collection
