"""
Reverse image search over the product catalog.

Orchestrates the two-step pipeline for one uploaded photo:
    1. Attribute extraction through the vision model
    2. Multi-signal scoring and ranking of the available catalog

Each call is independent. The engine keeps no per-request state, so a
single instance can serve concurrent searches.
"""

import logging
from typing import List, Optional

from .catalog import CatalogEntry, CatalogStore
from .extractor import AttributeExtractor
from .matcher import ProductMatcher
from .preprocessing import decode_base64_image

logger = logging.getLogger(__name__)


class ImageSearchEngine:
    """
    Finds catalog products that look like an uploaded image.

    ExtractionError from the extractor propagates unchanged; callers
    should present it as "search temporarily unavailable". An empty
    result means the search ran and nothing matched.
    """

    def __init__(self,
                 extractor: AttributeExtractor,
                 store: CatalogStore,
                 matcher: Optional[ProductMatcher] = None):
        self.extractor = extractor
        self.store = store
        self.matcher = matcher or ProductMatcher()

    @classmethod
    def from_env(cls, store: CatalogStore) -> "ImageSearchEngine":
        """Build an engine whose extractor and matcher read environment config."""
        return cls(AttributeExtractor(), store, ProductMatcher())

    def search_by_image(self, image_bytes: bytes) -> List[CatalogEntry]:
        """
        Search the available catalog for products matching an image.

        Args:
            image_bytes: Raw uploaded image.

        Returns:
            Up to MAX_RESULTS catalog entries, best match first.

        Raises:
            ExtractionError: If the image could not be analyzed.
        """
        products = self.store.get_available_products()
        if not products:
            logger.info("No products available in catalog")
            return []

        logger.info(f"Analyzing image against {len(products)} products")
        attributes = self.extractor.extract(image_bytes)

        matches = self.matcher.match(attributes, products)
        logger.info(f"Found {len(matches)} matching products")
        return matches

    def search_by_base64(self, payload: str) -> List[CatalogEntry]:
        """
        Same as search_by_image for a base64 string or data URL.

        Raises:
            ValueError: If the payload is not valid base64.
            ExtractionError: If the image could not be analyzed.
        """
        return self.search_by_image(decode_base64_image(payload))
