import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from inkbook.listcore.types import Page  # noqa: E402


def make_rows(start: int, count: int, prefix: str = "r") -> List[Dict[str, Any]]:
    return [{"id": f"{prefix}{i}", "name": f"row {i}"} for i in range(start, start + count)]


class FakeSource:
    """In-memory fetch/mutate collaborator with scriptable failures."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None) -> None:
        self.rows = list(rows or [])
        self.fetch_calls: List[tuple] = []
        self.fail_fetch: Optional[Exception] = None
        self.fail_mutation: Optional[Exception] = None
        self.mutation_gate: Optional[asyncio.Event] = None
        self.fetch_gate: Optional[asyncio.Event] = None
        self.created: List[Dict[str, Any]] = []
        self._next_id = 1000

    async def fetch_page(self, query, cursor, page_size):
        self.fetch_calls.append((query, cursor, page_size))
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        if self.fail_fetch is not None:
            raise self.fail_fetch
        start = int(cursor) if cursor is not None else 0
        chunk = self.rows[start:start + page_size]
        end = start + len(chunk)
        more = end < len(self.rows)
        return Page(cursor=cursor, next_cursor=str(end) if more else None, rows=chunk, has_more=more)

    async def _gate(self):
        if self.mutation_gate is not None:
            await self.mutation_gate.wait()
        if self.fail_mutation is not None:
            raise self.fail_mutation

    async def create_row(self, payload):
        await self._gate()
        self._next_id += 1
        row = dict(payload, id=f"srv-{self._next_id}")
        self.created.append(row)
        return row

    async def update_row(self, row_id, payload):
        await self._gate()
        return dict(payload, id=row_id, server=True)

    async def delete_row(self, row_id):
        await self._gate()


@pytest.fixture
def source():
    return FakeSource(make_rows(1, 45))


@pytest.fixture
def make_source():
    def _make(count: int = 45) -> FakeSource:
        return FakeSource(make_rows(1, count))

    return _make


@pytest.fixture
def rows_factory():
    return make_rows
