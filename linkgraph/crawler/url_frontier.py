"""
URL frontier backed by the store's queue table.
"""

import logging
from dataclasses import dataclass
from typing import List

from ..storage.page_store import QUEUE_URL_COLUMN
from ..storage.store_client import StoreClient, StoreUnavailable


@dataclass(frozen=True)
class QueueEntry:
    """A pending URL. The id is only a unique row key and carries no order."""
    id: str
    url: str


class URLFrontier:
    """
    Pops batches of pending URLs and removes finished entries.

    Batches come back in whatever order the store's scan returns, which is
    roughly arrival order at best.
    """

    def __init__(self, client: StoreClient, queue_table: str):
        self.client = client
        self.queue_table = queue_table
        self.logger = logging.getLogger(__name__)

    async def pop_batch(self, size: int) -> List[QueueEntry]:
        """
        Read up to ``size`` pending entries.

        Entries stay in the queue until ``remove_entry`` is called. Rows with
        no URL value are removed on sight.
        """
        result = await self.client.scan(self.queue_table, prefix='', limit=size,
                                        columns=[QUEUE_URL_COLUMN])
        entries = []
        for row in result.rows:
            url = row.latest(QUEUE_URL_COLUMN)
            if not url:
                self.logger.warning(f"Queue row {row.key} has no URL, removing it")
                await self.remove_entry(row.key)
                continue
            entries.append(QueueEntry(id=row.key, url=url))

        self.logger.debug(f"Popped {len(entries)} entries from {self.queue_table}")
        return entries

    async def remove_entry(self, entry_id: str) -> bool:
        """
        Delete a queue entry. Deleting an already removed entry is harmless.

        Store failures are logged, not raised; returns False in that case.
        """
        try:
            await self.client.delete_row(self.queue_table, entry_id)
        except StoreUnavailable as e:
            self.logger.error(f"Failed to remove queue entry {entry_id}: {e}")
            return False
        return True
