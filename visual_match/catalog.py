"""
Catalog entries and the store interface the search engine reads from.

The matcher only looks at a product's name, description and category;
every other field is carried along untouched so callers get their own
records back.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

AVAILABLE = "available"

_KNOWN_KEYS = {
    "id", "name", "description", "category", "price",
    "imageUrl", "image_url", "isAvailable", "is_available",
    "updatedAt", "updated_at",
}


# eq=False keeps identity comparison: two products with the same text are
# still different catalog entries.
@dataclass(frozen=True, eq=False)
class CatalogEntry:
    name: str
    description: str
    category: Optional[str] = None
    id: Optional[str] = None
    price: Optional[str] = None
    image_url: Optional[str] = None
    is_available: str = AVAILABLE
    updated_at: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def product_text(self) -> str:
        """Lowercase name, description and category joined by spaces."""
        return " ".join([self.name, self.description, self.category or ""]).lower()

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "CatalogEntry":
        """
        Build an entry from a product record.

        Accepts both camelCase and snake_case keys. Unknown keys are
        kept in ``extra``.
        """
        category = record.get("category")
        if not isinstance(category, str) or not category.strip():
            category = None

        def pick(*keys):
            for key in keys:
                if record.get(key) is not None:
                    return record[key]
            return None

        raw_id = record.get("id")
        return cls(
            name=str(record.get("name") or ""),
            description=str(record.get("description") or ""),
            category=category,
            id=str(raw_id) if raw_id is not None else None,
            price=pick("price"),
            image_url=pick("imageUrl", "image_url"),
            is_available=pick("isAvailable", "is_available") or AVAILABLE,
            updated_at=pick("updatedAt", "updated_at"),
            extra={k: v for k, v in record.items() if k not in _KNOWN_KEYS},
        )


class CatalogStore(Protocol):
    """Anything that can list the products currently open for search."""

    def get_available_products(self) -> List[CatalogEntry]:
        ...


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 update timestamp into an aware datetime.

    A trailing ``Z`` is read as UTC and naive values are assumed to be
    UTC. Returns None for missing or unparseable values.
    """
    if isinstance(value, datetime):
        stamp = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            stamp = datetime.fromisoformat(text)
        except ValueError:
            logger.warning(f"Ignoring unparseable updated_at timestamp: {value!r}")
            return None
    else:
        return None

    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return stamp


class InMemoryCatalogStore:
    """
    Catalog held in memory.

    Returns available products, most recently updated first. Products
    without a parseable update timestamp come after the rest in insertion
    order.
    """

    def __init__(self, entries: Optional[List[CatalogEntry]] = None):
        self.entries = list(entries or [])

    def add(self, entry: CatalogEntry) -> None:
        self.entries.append(entry)

    def get_available_products(self) -> List[CatalogEntry]:
        available = [e for e in self.entries if e.is_available == AVAILABLE]
        dated = []
        undated = []
        for entry in available:
            stamp = parse_timestamp(entry.updated_at)
            if stamp is None:
                undated.append(entry)
            else:
                dated.append((stamp, entry))
        dated.sort(key=lambda pair: pair[0], reverse=True)
        return [entry for _, entry in dated] + undated


def load_catalog(path: str) -> List[CatalogEntry]:
    """
    Load catalog entries from a JSON array of product records.

    Raises:
        ValueError: If the file does not hold a JSON array.
    """
    with open(path, 'r', encoding='utf-8') as f:
        records = json.load(f)

    if not isinstance(records, list):
        raise ValueError(f"Catalog file must contain a JSON array: {path}")

    entries = []
    for i, record in enumerate(records):
        if not isinstance(record, dict):
            logger.warning(f"Skipping catalog record {i}: not an object")
            continue
        entries.append(CatalogEntry.from_record(record))

    logger.info(f"Loaded {len(entries)} catalog entries from {path}")
    return entries
