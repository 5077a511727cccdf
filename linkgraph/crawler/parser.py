"""
HTML document parser: extracts language, title and raw anchors.
"""

import re
import logging
from typing import List, NamedTuple, Optional
from dataclasses import dataclass, field
from bs4 import BeautifulSoup


class Anchor(NamedTuple):
    """A raw ``<a>`` element as found in the page."""
    text: str
    href: Optional[str]


@dataclass
class ParsedDocument:
    """Container for the parts of a page the crawler keeps."""
    language: str = ''
    title: str = ''
    base_href: str = ''
    anchors: List[Anchor] = field(default_factory=list)


class ContentParser:
    """
    Parses HTML content into a ParsedDocument.

    Anchors are returned in document order without any filtering; an anchor
    without an ``href`` attribute is reported with ``href=None``.
    """

    def __init__(self, features: str = 'lxml'):
        self.features = features
        self.logger = logging.getLogger(__name__)
        self.whitespace_pattern = re.compile(r'\s+')

    def parse(self, html_content: str) -> ParsedDocument:
        soup = BeautifulSoup(html_content, self.features)

        for script in soup(["script", "style", "noscript"]):
            script.decompose()

        document = ParsedDocument(
            language=self._extract_language(soup),
            title=self._extract_title(soup),
            base_href=self._extract_base_href(soup),
            anchors=self._extract_anchors(soup),
        )

        self.logger.debug(f"Parsed document '{document.title}': {len(document.anchors)} anchors")
        return document

    def _extract_title(self, soup: BeautifulSoup) -> str:
        title_tag = soup.find('title')
        if title_tag:
            return self._clean_text(title_tag.get_text())
        return ''

    def _extract_language(self, soup: BeautifulSoup) -> str:
        html_tag = soup.find('html')
        if html_tag:
            return (html_tag.get('lang') or html_tag.get('xml:lang') or '').strip()
        return ''

    def _extract_base_href(self, soup: BeautifulSoup) -> str:
        base_tag = soup.find('base', href=True)
        return base_tag['href'].strip() if base_tag else ''

    def _extract_anchors(self, soup: BeautifulSoup) -> List[Anchor]:
        return [
            Anchor(self._clean_text(link.get_text()), link.get('href'))
            for link in soup.find_all('a')
        ]

    def _clean_text(self, text: str) -> str:
        if not text:
            return ""
        return self.whitespace_pattern.sub(' ', text.strip())


_default_parser = ContentParser()


def extract_document(html_content: str) -> ParsedDocument:
    """Parse HTML with the default lxml-backed parser."""
    return _default_parser.parse(html_content)
