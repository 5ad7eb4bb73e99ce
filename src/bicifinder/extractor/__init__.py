"""
Record extraction for the bicycle registry.

- ``locators``: ordered, first-match-wins field recovery over DOM or JSON fragments
- ``normalizer``: canonical ``Bicycle`` construction with alias coalescing
- ``listing_parser``: card discovery and pagination markers on listing pages
- ``api_parser``: response shapes and paging metadata of the REST endpoints
"""

from .api_parser import extract_items
from .listing_parser import detect_continuation, find_cards, parse_listing
from .locators import Css, Key, Label, Locator, absolutize_url, extract_image, first_match
from .normalizer import RecordNormalizer

__all__ = [
    "Css",
    "Key",
    "Label",
    "Locator",
    "RecordNormalizer",
    "absolutize_url",
    "detect_continuation",
    "extract_image",
    "extract_items",
    "find_cards",
    "first_match",
    "parse_listing",
]
