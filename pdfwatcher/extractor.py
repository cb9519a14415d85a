"""Document list extraction for PDFWatcher.

The remote page lists documents as loose runs of nodes inside a content
container::

    2023-10-25 <b>Grafik</b> <a href="/grafik.pdf">Pobierz</a>

The scanner works on a flat token sequence so that it can be fed from a
parsed page or from hand-built tokens in tests.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Union
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from .models import Record

logger = logging.getLogger(__name__)

DEFAULT_SELECTOR = "div#tresc"
DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")

TYPE_TAG = "b"
LINK_TAG = "a"


@dataclass(frozen=True)
class TextToken:
    """A text node."""

    text: str


@dataclass(frozen=True)
class ElementToken:
    """An element node, reduced to what the scanner needs."""

    tag: str
    text: str
    href: Optional[str] = None


Token = Union[TextToken, ElementToken]


def tokens_from_children(container: Tag) -> list[Token]:
    """Convert the direct children of a parsed element into tokens.

    Comments, doctypes and other non-text strings are not nodes of interest
    and are dropped here.
    """
    tokens: list[Token] = []
    for child in container.children:
        if isinstance(child, Tag):
            tokens.append(
                ElementToken(
                    tag=child.name.lower(),
                    text=child.get_text(),
                    href=child.get("href"),
                )
            )
        elif isinstance(child, NavigableString) and not isinstance(
            child, PreformattedString
        ):
            tokens.append(TextToken(text=str(child)))
    return tokens


def meaningful_tokens(tokens: Iterable[Token]) -> list[Token]:
    """Keep elements and non-blank text tokens, in order."""
    return [
        token
        for token in tokens
        if isinstance(token, ElementToken) or token.text.strip()
    ]


def extract(
    container: Union[Tag, Iterable[Token], None],
    base_url: Optional[str] = None,
) -> list[Record]:
    """Extract document records from a content container.

    Matches the three-token run DATE, <b>TYPE</b>, <a href>TITLE</a> left to
    right over the meaningful tokens. A matched run is consumed whole; a date
    that does not start a run is skipped on its own.

    Args:
        container: Parsed container element, a token sequence, or None
        base_url: URL used to resolve relative hrefs

    Returns:
        Records in document order (empty if the container is missing)
    """
    if container is None:
        logger.warning("Document container not found")
        return []

    if isinstance(container, Tag):
        tokens = meaningful_tokens(tokens_from_children(container))
    else:
        tokens = meaningful_tokens(container)

    records = []
    i = 0
    while i < len(tokens):
        record = _match_at(tokens, i, base_url)
        if record is not None:
            records.append(record)
            i += 3
        else:
            i += 1

    return records


def _match_at(
    tokens: list[Token], i: int, base_url: Optional[str]
) -> Optional[Record]:
    """Try to match a DATE TYPE LINK run starting at index i."""
    current = tokens[i]
    if not isinstance(current, TextToken):
        return None

    match = DATE_PATTERN.search(current.text)
    if not match:
        return None

    if i + 2 >= len(tokens):
        return None

    type_token = tokens[i + 1]
    link_token = tokens[i + 2]

    if not isinstance(type_token, ElementToken) or type_token.tag != TYPE_TAG:
        return None
    if not isinstance(link_token, ElementToken) or link_token.tag != LINK_TAG:
        return None

    href = (link_token.href or "").strip()
    if not href:
        return None

    doc_type = type_token.text.strip()
    title = link_token.text.strip()
    if not doc_type or not title:
        return None

    url = urljoin(base_url, href) if base_url else href

    return Record(date=match.group(0), type=doc_type, title=title, url=url)


def parse_documents(
    html: Union[str, bytes],
    base_url: Optional[str] = None,
    selector: str = DEFAULT_SELECTOR,
) -> list[Record]:
    """Parse a page and extract records from its content container."""
    soup = BeautifulSoup(html, "html.parser")
    return extract(soup.select_one(selector), base_url=base_url)


def fetch_documents(
    url: str,
    auth: Optional[tuple[str, str]] = None,
    timeout: int = 60,
    selector: str = DEFAULT_SELECTOR,
) -> list[Record]:
    """Load the remote page and extract its document records.

    Args:
        url: URL of the page listing the documents
        auth: Optional (username, password) for HTTP basic auth
        timeout: Request timeout in seconds
        selector: CSS selector of the content container

    Returns:
        List of Record objects found on the page

    Raises:
        ScrapeError: If the page cannot be fetched
    """
    with requests.Session() as session:
        if auth:
            session.auth = auth
        try:
            response = session.get(url, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ScrapeError(f"Failed to fetch page: {e}") from e

        return parse_documents(response.content, base_url=response.url, selector=selector)


class ScrapeError(Exception):
    """Raised when the remote page cannot be fetched."""

    pass
