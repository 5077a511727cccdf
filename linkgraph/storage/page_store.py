"""
Page store: page metadata, the backlink graph and frontier enqueueing on top
of the remote store.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from .store_client import Cell, StoreClient


META_FAMILY = 'meta'
BACKLINK_FAMILY = 'backlinks'
DOCUMENT_FAMILY = 'document'
QUEUE_FAMILY = 'entry'

TITLE_COLUMN = f'{META_FAMILY}:title'
LANGUAGE_COLUMN = f'{META_FAMILY}:language'
DOCUMENT_COLUMN = f'{DOCUMENT_FAMILY}:html'
QUEUE_URL_COLUMN = f'{QUEUE_FAMILY}:url'

# Written at logical time 0 so these cells stay authoritative and are not
# shadowed by natural-time writes to other columns of the same row.
AUTHORITATIVE_TIMESTAMP = 0

DEFAULT_WRITE_BATCH_SIZE = 5000


@dataclass
class PageRecord:
    """Metadata for one crawled page, keyed by its canonical key."""
    key: str
    language: str
    title: str
    document: Optional[str] = None


class PageStore:
    """
    Page records and backlinks in the main table, new frontier entries in the
    queue table.

    A page's outbound links are stored as backlinks on the *target* rows, one
    ``backlinks:<source key>`` cell each holding the anchor text, so many
    source pages write independently into the same target row.
    """

    def __init__(self, client: StoreClient, main_table: str, queue_table: str,
                 write_batch_size: int = DEFAULT_WRITE_BATCH_SIZE,
                 store_full_document: bool = False):
        self.client = client
        self.main_table = main_table
        self.queue_table = queue_table
        self.write_batch_size = write_batch_size
        self.store_full_document = store_full_document
        self.logger = logging.getLogger(__name__)

    async def provision(self):
        """Create tables and column families; raises StoreUnavailable on failure."""
        families = {
            self.main_table: [(META_FAMILY, 'meta'), (BACKLINK_FAMILY, 'links')],
            self.queue_table: [(QUEUE_FAMILY, 'queue')],
        }
        if self.store_full_document:
            families[self.main_table].append((DOCUMENT_FAMILY, 'document'))

        for table, table_families in families.items():
            created = await self.client.create_table(table)
            self.logger.info(f"Table {table} {'created' if created else 'already exists'}")
            for family, locality_group in table_families:
                created = await self.client.create_column_family(table, family, locality_group)
                if created:
                    self.logger.info(f"Column family {table}/{family} created in group {locality_group}")

    async def page_exists(self, key: str) -> bool:
        """A page is known once its title column has been written."""
        result = await self.client.lookup(self.main_table, key, [TITLE_COLUMN])
        return any(row.latest(TITLE_COLUMN) is not None for row in result.rows)

    async def write_page(self, record: PageRecord, links: Sequence) -> int:
        """
        Write a page's metadata and one backlink cell per outbound link.

        ``links`` are filter results carrying ``target_key`` and ``text``;
        repeated targets produce repeated cells. Returns the number of
        backlink cells written.
        """
        cells = [
            Cell(record.key, LANGUAGE_COLUMN, record.language, AUTHORITATIVE_TIMESTAMP),
            Cell(record.key, TITLE_COLUMN, record.title, AUTHORITATIVE_TIMESTAMP),
        ]
        if self.store_full_document and record.document is not None:
            cells.append(Cell(record.key, DOCUMENT_COLUMN, record.document, AUTHORITATIVE_TIMESTAMP))

        backlink_column = f'{BACKLINK_FAMILY}:{record.key}'
        cells.extend(Cell(link.target_key, backlink_column, link.text) for link in links)

        requests = await self._write_chunked(self.main_table, cells)
        self.logger.debug(f"Wrote {len(cells)} cells for {record.key} in {requests} requests")
        return len(links)

    async def enqueue(self, urls: Iterable[str]) -> int:
        """Add one queue entry per URL, each under a fresh unique id."""
        cells = [Cell(uuid.uuid4().hex, QUEUE_URL_COLUMN, url) for url in urls]
        await self._write_chunked(self.queue_table, cells)
        return len(cells)

    async def _write_chunked(self, table: str, cells: List[Cell]) -> int:
        requests = 0
        for start in range(0, len(cells), self.write_batch_size):
            await self.client.write(table, cells[start:start + self.write_batch_size])
            requests += 1
        return requests
