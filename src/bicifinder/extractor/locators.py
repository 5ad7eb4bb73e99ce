"""
Heuristic field recovery from semi-structured fragments.

A fragment is either a DOM subtree (selectolax ``Node``) or a loosely typed
mapping decoded from JSON. Fields are located with an ordered list of locators;
the first one that yields a non-empty value wins. Missing fields never raise,
they degrade to an empty string.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from selectolax.parser import Node

# Attributes tried for image sources, primary first then lazy-load variants.
IMAGE_SOURCE_ATTRIBUTES = ("src", "data-src", "data-lazy-src", "data-original")

_INLINE_LABEL_TAGS = ("strong", "b", "label")
_NON_ELEMENT_TAGS = ("-text", "-comment", "_comment")


@dataclass(frozen=True, slots=True)
class Css:
    """CSS selector evaluated inside a DOM fragment.

    When ``attribute`` is set, the attribute value is returned instead of the
    element text.
    """

    selector: str
    attribute: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Label:
    """Value introduced by a visible label, e.g. ``<dt>Marca</dt><dd>Trek</dd>``."""

    text: str


@dataclass(frozen=True, slots=True)
class Key:
    """Key looked up in a mapping fragment."""

    name: str


Locator = Union[Css, Label, Key]
Fragment = Union[Node, Mapping[str, Any]]


def clean_text(value: Optional[str]) -> str:
    if not value:
        return ""
    return " ".join(value.split())


def _coerce(value: Any) -> str:
    """Turn a JSON value into display text; nested objects yield their label."""
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return clean_text(value)
    if isinstance(value, Mapping):
        for key in ("nombre", "name", "label", "descripcion", "valor", "value"):
            text = _coerce(value.get(key))
            if text:
                return text
    return ""


def _next_element(node: Node) -> Optional[Node]:
    sibling = node.next
    while sibling is not None and sibling.tag in _NON_ELEMENT_TAGS:
        sibling = sibling.next
    return sibling


def _label_matches(node: Node, label: str) -> bool:
    return label.casefold() in clean_text(node.text(deep=True)).casefold()


def _find_by_label(fragment: Node, label: str) -> str:
    for tag, value_tag in (("dt", "dd"), ("th", "td")):
        for term in fragment.css(tag):
            if not _label_matches(term, label):
                continue
            sibling = _next_element(term)
            if sibling is not None and sibling.tag == value_tag:
                text = clean_text(sibling.text(deep=True))
                if text:
                    return text

    # Inline labels such as "<p><strong>Marca:</strong> Trek</p>"
    for tag in _INLINE_LABEL_TAGS:
        for term in fragment.css(tag):
            term_text = clean_text(term.text(deep=True))
            if not term_text or label.casefold() not in term_text.casefold():
                continue
            parent = term.parent
            if parent is None:
                continue
            parent_text = clean_text(parent.text(deep=True))
            remainder = parent_text.replace(term_text, "", 1).strip(" :-–")
            if remainder:
                return remainder
    return ""


def _locate_css(fragment: Node, locator: Css) -> str:
    node = fragment.css_first(locator.selector)
    if node is None:
        return ""
    if locator.attribute:
        return clean_text(node.attributes.get(locator.attribute))
    return clean_text(node.text(deep=True))


def locate(fragment: Fragment, locator: Locator) -> str:
    """Evaluate a single locator; incompatible fragment/locator pairs yield ``""``."""
    if isinstance(locator, Key):
        if isinstance(fragment, Mapping):
            return _coerce(fragment.get(locator.name))
        return ""
    if isinstance(fragment, Mapping):
        return ""
    if isinstance(locator, Css):
        return _locate_css(fragment, locator)
    if isinstance(locator, Label):
        return _find_by_label(fragment, locator.text)
    raise TypeError(f"Unsupported locator: {locator!r}")


def first_match(fragment: Fragment, locators: Iterable[Locator]) -> str:
    """Return the first non-empty value produced by ``locators``, or ``""``."""
    for locator in locators:
        value = locate(fragment, locator)
        if value:
            return value
    return ""


def absolutize_url(url: str, origin: str) -> str:
    """Rewrite root-relative and protocol-relative URLs against ``origin``."""
    if not url:
        return url
    if url.startswith("//"):
        scheme = origin.split(":", 1)[0] if "://" in origin else "https"
        return f"{scheme}:{url}"
    if url.startswith("/"):
        return origin.rstrip("/") + url
    return url


def _image_source(node: Node) -> str:
    for attribute in IMAGE_SOURCE_ATTRIBUTES:
        value = clean_text(node.attributes.get(attribute))
        if value and not value.startswith("data:"):
            return value
    return ""


def extract_image(fragment: Fragment, locators: Sequence[Locator], origin: str) -> str:
    """Locate an image URL, falling back to lazy-load attributes, absolutized."""
    for locator in locators:
        if isinstance(locator, Css) and not isinstance(fragment, Mapping):
            node = fragment.css_first(locator.selector)
            if node is None:
                continue
            src = clean_text(node.attributes.get(locator.attribute)) if locator.attribute else _image_source(node)
        else:
            src = locate(fragment, locator)
        if src:
            return absolutize_url(src, origin)
    return ""
