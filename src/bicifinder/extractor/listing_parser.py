"""
Listing page parsing: card discovery, pagination markers and record extraction.

Used for both server-rendered HTML and DOM snapshots captured from the
headless browser.
"""

from __future__ import annotations

from typing import List, Sequence

import structlog
from selectolax.parser import HTMLParser, Node

from ..config.config import CARD_SELECTORS
from ..models import Continuation, PageResult
from .locators import clean_text
from .normalizer import RecordNormalizer

logger = structlog.get_logger(__name__)

NEXT_PAGE_SELECTORS = (
    "a.next:not(.disabled)",
    'a[rel="next"]',
    "li.next:not(.disabled) a",
    ".pagination .next:not(.disabled) a",
)

LAST_PAGE_SELECTORS = (
    "a.next.disabled",
    "li.next.disabled",
)

NEXT_LINK_TEXTS = ("siguiente", "›", "»", "next")

TABLE_ROW_SELECTORS = ("table tbody tr", ".table tbody tr")


def _is_disabled(node: Node) -> bool:
    current: Node | None = node
    # The disabled marker sits on the link or on its list item.
    for _ in range(3):
        if current is None:
            return False
        classes = (current.attributes.get("class") or "").split()
        if "disabled" in classes or current.attributes.get("aria-disabled") == "true":
            return True
        current = current.parent
    return False


def detect_continuation(tree: HTMLParser) -> Continuation:
    """Read the pagination control of a listing page."""
    for selector in NEXT_PAGE_SELECTORS:
        if any(not _is_disabled(node) for node in tree.css(selector)):
            logger.debug("Found next page indicator", selector=selector)
            return Continuation.MORE

    disabled_next = False
    for link in tree.css("a"):
        text = clean_text(link.text(deep=True)).casefold()
        if text not in NEXT_LINK_TEXTS:
            continue
        if _is_disabled(link):
            disabled_next = True
            continue
        logger.debug("Found next page link by text", text=text)
        return Continuation.MORE

    for selector in LAST_PAGE_SELECTORS:
        if tree.css_first(selector) is not None:
            logger.debug("Detected last page", selector=selector)
            return Continuation.NO_MORE

    for node in tree.css(".pagination .disabled"):
        if clean_text(node.text(deep=True)).casefold() in NEXT_LINK_TEXTS:
            return Continuation.NO_MORE

    return Continuation.NO_MORE if disabled_next else Continuation.UNKNOWN


def find_cards(tree: HTMLParser, selectors: Sequence[str] = CARD_SELECTORS) -> List[Node]:
    """Return the record cards of a listing, trying selectors in order."""
    for selector in selectors:
        cards = tree.css(selector)
        if cards:
            logger.debug("Found cards", selector=selector, count=len(cards))
            return cards

    for selector in TABLE_ROW_SELECTORS:
        rows = tree.css(selector)
        if rows:
            logger.debug("Falling back to table rows", selector=selector, count=len(rows))
            return rows
    return []


def parse_listing(html: str, normalizer: RecordNormalizer) -> PageResult:
    """Extract records and the continuation signal from a listing page."""
    if not html or not html.strip():
        return PageResult.empty()

    tree = HTMLParser(html)
    continuation = detect_continuation(tree)
    cards = find_cards(tree)
    records = normalizer.normalize_many(cards)

    logger.debug("Parsed listing page", cards=len(cards), records=len(records), continuation=continuation.value)
    return PageResult(records=records, continuation=continuation)
