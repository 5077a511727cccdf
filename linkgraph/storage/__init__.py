"""
Storage layer: the remote store client and the page store built on it.
"""

from .store_client import StoreClient, StoreUnavailable, Cell, StoreRow, RowsResult
from .page_store import PageStore, PageRecord

__all__ = [
    'StoreClient', 'StoreUnavailable', 'Cell', 'StoreRow', 'RowsResult',
    'PageStore', 'PageRecord',
]
