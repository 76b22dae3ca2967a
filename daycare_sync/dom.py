"""Small DOM query layer over BeautifulSoup used by the report parsers.

Parsers only talk to this module: load a document, find elements by
predicate, walk siblings until a stop condition, and read normalized text.
"""

import re
from collections.abc import Callable, Iterator

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import Comment

Predicate = Callable[[Tag], bool]

_WHITESPACE = re.compile(r"\s+")

# Curly quotes show up in hand-edited templates
_QUOTE_MAP = str.maketrans({"’": "'", "‘": "'"})


def load(html: str) -> BeautifulSoup:
    """Parse an HTML string into a document tree."""
    return BeautifulSoup(html or "", "lxml")


def clean_text(text: str) -> str:
    """Collapse whitespace (including non-breaking spaces) and strip."""
    return _WHITESPACE.sub(" ", text.replace("\xa0", " ")).strip()


def text_of(node: Tag | NavigableString | None) -> str:
    """Normalized visible text of a node, or an empty string for None."""
    if node is None:
        return ""
    if isinstance(node, NavigableString):
        return "" if isinstance(node, Comment) else clean_text(str(node))
    return clean_text(node.get_text(" "))


def heading_text(node: Tag) -> str:
    """Text of a node upper-cased for comparison with section titles."""
    return text_of(node).translate(_QUOTE_MAP).upper()


def find_first(root: Tag, predicate: Predicate) -> Tag | None:
    """First descendant element of root, in document order, matching predicate."""
    for node in root.find_all(True):
        if predicate(node):
            return node
    return None


def find_all(root: Tag, predicate: Predicate) -> list[Tag]:
    """All descendant elements of root, in document order, matching predicate."""
    return [node for node in root.find_all(True) if predicate(node)]


def iter_siblings(node: Tag) -> Iterator[Tag | NavigableString]:
    """Following siblings of node that carry content (skips blank text and comments)."""
    for sibling in node.next_siblings:
        if isinstance(sibling, Tag):
            yield sibling
        elif isinstance(sibling, NavigableString) and text_of(sibling):
            yield sibling


def collect_siblings_until(node: Tag, stop: Predicate) -> list[Tag | NavigableString]:
    """Following siblings of node up to (not including) the first one matching stop.

    Bare text siblings are collected but never tested against stop.
    """
    collected: list[Tag | NavigableString] = []
    for sibling in iter_siblings(node):
        if isinstance(sibling, Tag) and stop(sibling):
            break
        collected.append(sibling)
    return collected


def own_text(node: Tag) -> str:
    """Normalized text of node's direct text children only."""
    return clean_text(" ".join(
        str(s) for s in node.find_all(string=True, recursive=False)
        if not isinstance(s, Comment)
    ))


def contains_text(marker: str) -> Predicate:
    """Predicate: node's own text contains marker (case-insensitive).

    Matching on own text picks the innermost element holding the marker
    rather than every ancestor of it.
    """
    needle = marker.upper()
    return lambda node: needle in own_text(node).translate(_QUOTE_MAP).upper()


def text_equals(*titles: str) -> Predicate:
    """Predicate: node's full normalized text is one of titles (case-insensitive)."""
    wanted = {t.upper() for t in titles}
    return lambda node: heading_text(node) in wanted


def matches_selector(selector: str) -> Predicate:
    """Predicate: node matches a CSS selector."""
    return lambda node: node.css.match(selector)


def contains_match(predicate: Predicate) -> Predicate:
    """Predicate: node or any of its descendants matches predicate."""
    return lambda node: predicate(node) or find_first(node, predicate) is not None


def any_of(*predicates: Predicate) -> Predicate:
    return lambda node: any(p(node) for p in predicates)


def table_rows(table: Tag) -> list[Tag]:
    """Rows belonging directly to table, not to tables nested inside it."""
    return [row for row in table.find_all("tr") if row.find_parent("table") is table]
