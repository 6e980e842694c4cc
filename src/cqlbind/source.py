"""
Row sources consumed by Iterx.

The scanner only needs column names and a way to pull rows one at a time;
ResultSetRowSource adapts a cassandra-driver ResultSet to that contract.
"""
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

__all__ = ['RowSource', 'ResultSetRowSource', 'SequenceRowSource']


@runtime_checkable
class RowSource(Protocol):
    """Column names plus a row cursor."""

    @property
    def columns(self) -> list[str]: ...

    def next_row(self) -> Sequence[Any] | None: ...

    def close(self) -> None: ...


def _row_values(row: Any, columns: list[str]) -> Sequence[Any]:
    if isinstance(row, Mapping):
        return [row[c] for c in columns]
    return row


class ResultSetRowSource:
    """Adapts a cassandra-driver ResultSet (or any iterable of rows).

    Rows may be tuples, named tuples or dicts, matching the driver's
    row factories. Paging is driven by iterating the result set.
    """

    def __init__(self, result: Any, columns: Sequence[str] | None = None) -> None:
        self.result = result
        if columns is None:
            columns = getattr(result, 'column_names', None) or []
        self._columns = list(columns)
        self._rows: Iterator[Any] | None = iter(result) if result is not None else iter(())

    @property
    def columns(self) -> list[str]:
        return self._columns

    def next_row(self) -> Sequence[Any] | None:
        if self._rows is None:
            return None
        row = next(self._rows, None)
        if row is None:
            self._rows = None
            return None
        return _row_values(row, self._columns)

    def close(self) -> None:
        self._rows = None


class SequenceRowSource(ResultSetRowSource):
    """Row source over in-memory rows with explicit column names.
    """

    def __init__(self, columns: Sequence[str], rows: Iterable[Sequence[Any]]) -> None:
        super().__init__(list(rows), columns)
