"""
Link extraction pipeline: turns a page's raw anchors into absolute, in-scope
links keyed by their canonical target.
"""

import re
import logging
from typing import Iterable, List, NamedTuple, Optional, Pattern, Tuple
from urllib.parse import urljoin, urlsplit
from dataclasses import dataclass, field

from .canonical import MalformedURL, canonicalize, reverse_domain
from .parser import Anchor


class Link(NamedTuple):
    """An outbound link that survived filtering."""
    target_key: str
    href: str
    text: str


@dataclass(frozen=True)
class DenyRule:
    """
    One entry of the link deny-list.

    ``target`` selects what the pattern is matched against: the raw ``href``
    as written in the page, the resolved absolute ``url``, or that URL's
    ``path``. Patterns are case-insensitive.
    """
    name: str
    pattern: str
    target: str
    reason: str
    regex: Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.target not in ('href', 'url', 'path'):
            raise ValueError(f"Unknown deny rule target: {self.target}")
        object.__setattr__(self, 'regex', re.compile(self.pattern, re.IGNORECASE))

    def matches(self, href: str, url: str, path: str) -> bool:
        subject = {'href': href, 'url': url, 'path': path}[self.target]
        return self.regex.search(subject) is not None


WIKI_NAMESPACES = (
    'help', 'template', 'special', 'user', 'file', 'image', 'media',
    'category', 'talk', 'wikipedia', 'portal', 'module', 'draft',
    'mediawiki', 'timedtext', 'book', 'project',
)

RESOURCE_EXTENSIONS = (
    'jpg', 'jpeg', 'png', 'gif', 'bmp', 'svg', 'webp', 'ico', 'tif', 'tiff',
    'pdf', 'doc', 'docx', 'xls', 'xlsx', 'ppt', 'pptx', 'odt',
    'zip', 'rar', 'tar', 'gz', 'bz2', '7z', 'exe', 'dmg', 'iso',
    'mp3', 'ogg', 'oga', 'ogv', 'wav', 'mp4', 'webm', 'avi', 'mov', 'wmv', 'flv',
    'css', 'js', 'json', 'xml', 'rss', 'woff', 'woff2', 'ttf', 'eot',
)

DENY_RULES_VERSION = 1

DENY_RULES: Tuple[DenyRule, ...] = (
    DenyRule('fragment', r'^#', 'href', 'fragment-only link'),
    DenyRule('mailto', r'^mailto:', 'href', 'mail link'),
    DenyRule('tel', r'^tel:', 'href', 'phone link'),
    DenyRule('javascript', r'^javascript:', 'href', 'script link'),
    DenyRule('non-http', r'^(?!https?://)', 'url', 'non-HTTP scheme'),
    DenyRule(
        'wiki-namespace',
        r'^/wiki/(%s)(_talk)?:' % '|'.join(WIKI_NAMESPACES),
        'path',
        'wiki administrative namespace'
    ),
    DenyRule('wiki-talk', r'^/wiki/[^/]*_talk:', 'path', 'wiki talk namespace'),
    DenyRule('wiki-script', r'^/w/', 'path', 'wiki script endpoint'),
    DenyRule(
        'resource',
        r'\.(%s)$' % '|'.join(RESOURCE_EXTENSIONS),
        'path',
        'non-page resource'
    ),
)


def in_scope(url: str, scope_reverse_domain: str) -> bool:
    """
    Check that a URL's reversed host starts with the scope's reversed host.

    This is a plain prefix comparison on the reversed domain string, so a
    look-alike such as ``en.wikipedia.org`` vs ``english.wikipedia.org``
    is accepted.
    """
    return reverse_domain(url).startswith(scope_reverse_domain)


class LinkFilter:
    """Turns raw ``(text, href)`` anchors into in-scope absolute links."""

    def __init__(self, scope_root: Optional[str] = None, store_sub_pages: bool = True,
                 rules: Iterable[DenyRule] = DENY_RULES):
        self.store_sub_pages = store_sub_pages
        self.rules = tuple(rules)
        self.rules_version = f"v{DENY_RULES_VERSION}" if rules is DENY_RULES else 'custom'
        self.scope_reverse_domain = reverse_domain(scope_root) if scope_root else None
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"Link filter using deny rules {self.rules_version} "
                         f"({len(self.rules)} rules), scope {self.scope_reverse_domain or 'unrestricted'}")

    def denied_by(self, href: str, url: str) -> Optional[DenyRule]:
        """Return the first deny rule matching a link, if any."""
        path = urlsplit(url).path
        for rule in self.rules:
            if rule.matches(href, url, path):
                return rule
        return None

    def filter(self, base_url: str, anchors: Iterable[Anchor]) -> List[Link]:
        """
        Run the filter pipeline over a page's anchors.

        Repeated targets are kept: two anchors pointing at the same page
        yield two links.
        """
        links = []
        dropped = 0

        for anchor in anchors:
            text = (anchor.text or '').strip()
            href = (anchor.href or '').strip()
            if not text or not href:
                dropped += 1
                continue

            try:
                absolute_url = urljoin(base_url, href)
            except ValueError:
                dropped += 1
                continue

            rule = self.denied_by(href, absolute_url)
            if rule is not None:
                dropped += 1
                continue

            try:
                if self.scope_reverse_domain is not None and \
                        not in_scope(absolute_url, self.scope_reverse_domain):
                    dropped += 1
                    continue

                target_key = canonicalize(absolute_url, self.store_sub_pages)
            except MalformedURL:
                dropped += 1
                continue

            links.append(Link(target_key, absolute_url, text))

        self.logger.debug(f"Link filter kept {len(links)} links, dropped {dropped} from {base_url}")
        return links
