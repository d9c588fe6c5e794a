"""
Base key-value store interface for LinkTrail.

Purpose:
    Define a small, stable contract for a sorted, column-family wide-column
    store (the shape of Bigtable/HBase) that multiple backends (in-memory,
    PostgreSQL) can implement without changes to the repository or services.

Data shape:
    row_key -> family -> qualifier -> value

    Values are UTF-8 strings. Counters are stored as decimal strings so rows
    written by older clients stay readable.

Testing & Coverage:
    Abstract methods are not executed directly in tests and are marked
    `# pragma: no cover`.

LLM Prompt Example:
    "Show how a narrow cell-level store interface lets a repository own its
    row-key scheme while the physical backend stays swappable."
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, NamedTuple, Optional


class Cell(NamedTuple):
    """A single (family, qualifier, value) write."""
    family: str
    qualifier: str
    value: str


@dataclass
class Row:
    """A row as returned by reads and scans."""

    key: str
    cells: Dict[str, Dict[str, str]] = field(default_factory=dict)

    def get(self, family: str, qualifier: str) -> Optional[str]:
        return self.cells.get(family, {}).get(qualifier)

    def has(self, family: str, qualifier: str) -> bool:
        return qualifier in self.cells.get(family, {})


class BaseKeyValueStore(ABC):
    """Abstract base class for wide-column store backends."""

    @abstractmethod  # pragma: no cover
    def read_row(self, row_key: str) -> Optional[Row]:
        """
        Point read.

        Returns:
            Optional[Row]: The row, or None if it has no cells.
        """
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def mutate_row(self, row_key: str, cells: Iterable[Cell]) -> None:
        """
        Upsert cells of one row. All cells of a call are applied atomically.

        LLM Prompt Example:
            "Explain per-row mutation atomicity and why it is enough for
            single-entity writes but not for cross-row invariants."
        """
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def check_and_mutate_row(self, row_key: str, cells: Iterable[Cell]) -> bool:
        """
        Conditional put: apply `cells` only if the row does not exist.

        Returns:
            bool: True if the row was created, False if it already existed.
        """
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def increment(
        self,
        row_key: str,
        family: str,
        qualifier: str,
        amount: int = 1,
        extra_cells: Iterable[Cell] = (),
    ) -> Optional[int]:
        """
        Atomically add `amount` to a decimal counter cell of an existing row.

        A missing cell counts as 0. A missing row is left missing: nothing is
        written and None is returned. `extra_cells` are written in the same
        atomic step as the counter.

        Returns:
            Optional[int]: The value after the increment, or None if the row does not exist.
        """
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def read_rows(
        self,
        prefix: Optional[str] = None,
        family: Optional[str] = None,
        qualifier: Optional[str] = None,
    ) -> Iterator[Row]:
        """
        Scan rows in ascending key order.

        Args:
            prefix: Only rows whose key starts with this string.
            family: Server-side filter; only cells of this family are returned.
            qualifier: Server-side filter on the column qualifier.

        Rows left with no cells after filtering are omitted.
        """
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def delete_row(self, row_key: str) -> None:
        """Delete a row unconditionally. Deleting a missing row is a no-op."""
        raise NotImplementedError
