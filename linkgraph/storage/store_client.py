"""
HTTP client for the remote key/column/timestamp store.

Every endpoint returns an explicit result type; any transport failure,
unexpected status or malformed response body raises StoreUnavailable.
"""

import asyncio
import base64
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import aiohttp
from aiohttp import ClientError, ClientSession, ClientTimeout


class StoreUnavailable(Exception):
    """The store could not be reached or answered with an error."""

    def __init__(self, message: str, status: Optional[int] = None, body: str = ''):
        super().__init__(message)
        self.status = status
        self.body = body


@dataclass
class Cell:
    """One value to write: a row, a ``family:qualifier`` column and a typed value."""
    row: str
    column: str
    value: Any
    timestamp: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        # bool must be checked before int
        if isinstance(self.value, bool):
            value_type, value = 'boolean', self.value
        elif isinstance(self.value, int):
            value_type, value = 'integer', self.value
        elif isinstance(self.value, float):
            value_type, value = 'float', self.value
        elif isinstance(self.value, (bytes, bytearray)):
            value_type, value = 'byte', base64.b64encode(bytes(self.value)).decode('ascii')
        elif isinstance(self.value, str):
            value_type, value = 'string', self.value
        else:
            raise TypeError(f"Unsupported cell value type: {type(self.value).__name__}")

        data = {'row': self.row, 'column': self.column, 'type': value_type, 'value': value}
        if self.timestamp is not None:
            data['timestamp'] = self.timestamp
        return data


@dataclass
class CellVersion:
    timestamp: int
    value: Any


@dataclass
class StoreRow:
    """A row returned by a lookup or scan."""
    key: str
    columns: Dict[str, List[CellVersion]] = field(default_factory=dict)

    def latest(self, column: str) -> Optional[Any]:
        """Most recent value of a column, or None when the column is absent."""
        versions = self.columns.get(column)
        if not versions:
            return None
        return max(versions, key=lambda version: version.timestamp).value


@dataclass
class RowsResult:
    """Rows returned by a lookup or scan; empty when nothing matched."""
    rows: List[StoreRow] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.rows

    @classmethod
    def from_response(cls, payload: Any) -> 'RowsResult':
        try:
            raw_rows = payload['result']['rows'] or []
            rows = []
            for raw_row in raw_rows:
                columns = {
                    column: [CellVersion(int(v.get('timestamp', 0)), v.get('value')) for v in versions]
                    for column, versions in (raw_row.get('columns') or {}).items()
                }
                rows.append(StoreRow(key=raw_row['row'], columns=columns))
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise StoreUnavailable(f"Malformed rows response: {e}") from e
        return cls(rows=rows)


class StoreClient:
    """Thin async wrapper over the store's ``/v1/table`` HTTP API."""

    def __init__(self, endpoint: str, request_timeout: float = 30.0,
                 session: Optional[ClientSession] = None):
        self.endpoint = endpoint.rstrip('/')
        self.request_timeout = request_timeout
        self.session = session
        self._owns_session = session is None
        self.logger = logging.getLogger(__name__)

    async def start(self):
        if self.session is None:
            self.session = aiohttp.ClientSession(timeout=ClientTimeout(total=self.request_timeout))
            self._owns_session = True
            self.logger.info(f"Store client connected to {self.endpoint}")

    async def close(self):
        if self.session and self._owns_session:
            await self.session.close()
            self.logger.info("Store client closed")
        self.session = None

    def _url(self, table: str, path: str = '') -> str:
        return f"{self.endpoint}/v1/table/{table}{path}"

    async def _request(self, method: str, url: str, **kwargs) -> Tuple[int, str]:
        try:
            async with self.session.request(method, url, **kwargs) as response:
                return response.status, await response.text()
        except (ClientError, asyncio.TimeoutError) as e:
            raise StoreUnavailable(f"{method} {url} failed: {e}") from e

    def _check(self, method: str, url: str, status: int, body: str):
        if not 200 <= status < 300:
            raise StoreUnavailable(f"{method} {url} returned {status}", status=status, body=body)

    def _decode(self, url: str, body: str) -> Any:
        try:
            return json.loads(body)
        except ValueError as e:
            raise StoreUnavailable(f"Invalid JSON from {url}: {e}", body=body) from e

    async def create_table(self, table: str) -> bool:
        """Create a table. Returns False when it already exists."""
        url = self._url(table)
        status, body = await self._request('PUT', url)
        if status == 409:
            return False
        self._check('PUT', url, status, body)
        return True

    async def create_column_family(self, table: str, family: str, locality_group: str) -> bool:
        """Create a column family in a locality group. Returns False when already provisioned."""
        url = self._url(table, '/column-family')
        status, body = await self._request(
            'POST', url, json={'name': family, 'locality_group': locality_group}
        )
        if status == 409:
            return False
        self._check('POST', url, status, body)
        return True

    async def lookup(self, table: str, row: str, columns: Iterable[str]) -> RowsResult:
        """Point lookup of selected columns of one row."""
        url = self._url(table, '/rows')
        status, body = await self._request(
            'POST', url, json={'rows': [{'row': row, 'columns': list(columns)}]}
        )
        self._check('POST', url, status, body)
        return RowsResult.from_response(self._decode(url, body))

    async def scan(self, table: str, prefix: str = '', limit: int = 100,
                   columns: Iterable[str] = ()) -> RowsResult:
        """Prefix scan returning at most ``limit`` rows in store order."""
        url = self._url(table, '/scan')
        status, body = await self._request(
            'POST', url, json={'prefix': prefix, 'limit': limit, 'columns': list(columns)}
        )
        self._check('POST', url, status, body)
        return RowsResult.from_response(self._decode(url, body))

    async def delete_row(self, table: str, row: str):
        url = self._url(table, '/row')
        status, body = await self._request('DELETE', url, params={'row': row})
        self._check('DELETE', url, status, body)

    async def write(self, table: str, cells: List[Cell]):
        """Upsert a batch of cells in a single request."""
        url = self._url(table, '/write')
        status, body = await self._request(
            'POST', url, json={'cells': [cell.to_dict() for cell in cells]}
        )
        self._check('POST', url, status, body)
