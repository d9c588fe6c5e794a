"""
In-memory key-value store for LinkTrail.

Responsibilities:
    - Keep rows sorted by key so scans match a real wide-column store
    - Apply server-side family/qualifier filters on scans
    - Provide conditional put and atomic counter increments on existing rows

Design:
    - A single lock guards every operation, so the store is safe to share
      between concurrent requests (FastAPI runs sync routes in a thread pool).
    - Keys are kept in a sorted list next to the dict; inserts use bisect.
    - Reads return copies; callers never hold references into the store.

LLM Prompt Example:
    "Explain how this in-memory store can be swapped for Bigtable or a
     PostgreSQL cell table without changing the repository, by adhering to
     a narrow BaseKeyValueStore interface."
"""

import bisect
import threading
from typing import Dict, Iterable, Iterator, List, Optional

from .base import BaseKeyValueStore, Cell, Row


class MemoryKeyValueStore(BaseKeyValueStore):
    def __init__(self):
        """
        Initialize an empty table.

        Internal schema:
            self._rows = {row_key: {family: {qualifier: value}}}
            self._keys = sorted list of row keys
        """
        self._rows: Dict[str, Dict[str, Dict[str, str]]] = {}
        self._keys: List[str] = []
        self._lock = threading.Lock()

    # ---- Internal helpers (call with the lock held) ----------------------

    def _apply(self, row_key: str, cells: Iterable[Cell]) -> None:
        row = self._rows.get(row_key)
        if row is None:
            row = {}
            self._rows[row_key] = row
            bisect.insort(self._keys, row_key)
        for family, qualifier, value in cells:
            row.setdefault(family, {})[qualifier] = str(value)

    @staticmethod
    def _copy(row_key: str, cells: Dict[str, Dict[str, str]]) -> Row:
        return Row(key=row_key, cells={fam: dict(cols) for fam, cols in cells.items()})

    # ---- Contract methods -------------------------------------------------

    def read_row(self, row_key: str) -> Optional[Row]:
        with self._lock:
            cells = self._rows.get(row_key)
            return self._copy(row_key, cells) if cells else None

    def mutate_row(self, row_key: str, cells: Iterable[Cell]) -> None:
        cells = list(cells)
        if not cells:
            return
        with self._lock:
            self._apply(row_key, cells)

    def check_and_mutate_row(self, row_key: str, cells: Iterable[Cell]) -> bool:
        cells = list(cells)
        with self._lock:
            if row_key in self._rows:
                return False
            self._apply(row_key, cells)
            return True

    def increment(
        self,
        row_key: str,
        family: str,
        qualifier: str,
        amount: int = 1,
        extra_cells: Iterable[Cell] = (),
    ) -> Optional[int]:
        extra_cells = list(extra_cells)
        with self._lock:
            row = self._rows.get(row_key)
            if row is None:
                return None
            value = int(row.get(family, {}).get(qualifier, "0")) + amount
            self._apply(row_key, [Cell(family, qualifier, str(value))] + extra_cells)
            return value

    def read_rows(
        self,
        prefix: Optional[str] = None,
        family: Optional[str] = None,
        qualifier: Optional[str] = None,
    ) -> Iterator[Row]:
        # Snapshot under the lock, filter outside it.
        with self._lock:
            if prefix:
                start = bisect.bisect_left(self._keys, prefix)
                keys = []
                for key in self._keys[start:]:
                    if not key.startswith(prefix):
                        break
                    keys.append(key)
            else:
                keys = list(self._keys)
            snapshot = [self._copy(key, self._rows[key]) for key in keys]

        for row in snapshot:
            if family is not None or qualifier is not None:
                filtered: Dict[str, Dict[str, str]] = {}
                for fam, cols in row.cells.items():
                    if family is not None and fam != family:
                        continue
                    kept = {q: v for q, v in cols.items() if qualifier is None or q == qualifier}
                    if kept:
                        filtered[fam] = kept
                if not filtered:
                    continue
                row = Row(key=row.key, cells=filtered)
            yield row

    def delete_row(self, row_key: str) -> None:
        with self._lock:
            if self._rows.pop(row_key, None) is not None:
                index = bisect.bisect_left(self._keys, row_key)
                del self._keys[index]

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)
