"""
visual_match — Reverse image-to-product matching for a storefront assistant.

Asks a vision model to describe an uploaded photo as structured
attributes, then scores every available catalog product with weighted
keyword signals plus fuzzy text similarity and returns a short ranked
list.

Modules:
    engine         Main ImageSearchEngine class
    extractor      Vision-model attribute extraction
    attributes     VisualAttributes + response parsing
    preprocessing  Image payload decoding and downscaling
    scoring        Multi-signal relevance scoring
    matcher        Candidate filtering and ranking
    catalog        Catalog entries and stores
"""

from .attributes import VisualAttributes
from .catalog import CatalogEntry, CatalogStore, InMemoryCatalogStore, load_catalog
from .engine import ImageSearchEngine
from .extractor import AttributeExtractor, ExtractionError
from .matcher import ProductMatcher, ScoredCandidate

__version__ = "1.0.0"

__all__ = [
    "AttributeExtractor",
    "CatalogEntry",
    "CatalogStore",
    "ExtractionError",
    "ImageSearchEngine",
    "InMemoryCatalogStore",
    "ProductMatcher",
    "ScoredCandidate",
    "VisualAttributes",
    "load_catalog",
]
