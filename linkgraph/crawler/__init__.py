"""
Crawler core components.
"""

from .canonical import MalformedURL, canonicalize, reverse_domain
from .blacklist import Blacklist
from .fetcher import WebFetcher, FetchResult, FetchOutcome
from .link_filter import LinkFilter, Link, DenyRule, DENY_RULES
from .parser import ContentParser, ParsedDocument, Anchor, extract_document
from .url_frontier import URLFrontier, QueueEntry

__all__ = [
    'MalformedURL', 'canonicalize', 'reverse_domain',
    'Blacklist',
    'WebFetcher', 'FetchResult', 'FetchOutcome',
    'LinkFilter', 'Link', 'DenyRule', 'DENY_RULES',
    'ContentParser', 'ParsedDocument', 'Anchor', 'extract_document',
    'URLFrontier', 'QueueEntry',
]
