"""
Row scanning.

Iterx pulls rows from a RowSource and writes them into destinations:

- scalar types receive the single column value,
- dataclasses are populated field by field through the mapper,
- types implementing unmarshal_cql, and UDT-marked dataclasses, decode the
  single column value themselves.

The destination is classified and the columns resolved once, on the first
row, and the resolution is reused for the rest of the iterator's life.
Failures while scanning are recorded and raised from close().
"""
import enum
import logging
import threading
from collections.abc import Callable, Iterator, MutableMapping, Sequence
from dataclasses import fields
from typing import Any

from cqlbind.exceptions import NotFoundError, ResolutionError, ShapeError
from cqlbind.loaders import iterdict_data_loader
from cqlbind.mapper import FieldInfo, Mapper, default_mapper, set_by_traversal
from cqlbind.reflect import is_struct, is_udt, is_unmarshaler, new_instance
from cqlbind.reflect import set_attribute
from cqlbind.source import RowSource
from cqlbind.udt import decode_value, needs_decode, udt_unwrap

logger = logging.getLogger(__name__)

__all__ = [
    'APPLIED_COLUMN',
    'DestKind',
    'Iterx',
    'classify_destination',
    'struct_only_error',
    'default_unsafe',
    'set_default_unsafe',
]

APPLIED_COLUMN = '[applied]'


class DestKind(enum.Enum):
    SCALAR = 'scalar'
    STRUCT = 'struct'
    CUSTOM = 'custom'


def classify_destination(cls: type, mapper: Mapper | None = None) -> DestKind:
    """Decide how rows are written into cls.

    Types decoding themselves (unmarshal_cql or UDT) are CUSTOM; non-dataclass
    types and dataclasses without a single mapped field are SCALAR.
    """
    if is_unmarshaler(cls) or is_udt(cls):
        return DestKind.CUSTOM
    if not is_struct(cls):
        return DestKind.SCALAR
    if not (mapper or default_mapper()).field_map(cls):
        return DestKind.SCALAR
    return DestKind.STRUCT


def struct_only_error(cls: type, mapper: Mapper | None = None) -> ShapeError:
    """Explain why cls cannot be used with struct_scan.
    """
    name = cls.__name__
    if not is_struct(cls):
        return ShapeError(f'expected a struct but got {name}')
    if is_unmarshaler(cls):
        return ShapeError(
            f'struct_scan expects a struct dest but the provided struct type {name} implements unmarshal_cql')
    if is_udt(cls):
        return ShapeError(
            f'struct_scan expects a struct dest but the provided struct type {name} is a UDT')
    return ShapeError(f'expected a struct, but struct {name} has no mapped fields')


_default_lock = threading.Lock()
_default_unsafe = False


def default_unsafe() -> bool:
    """Whether new iterators skip unmapped columns instead of failing."""
    return _default_unsafe


def set_default_unsafe(unsafe: bool) -> bool:
    """Set the process-wide unsafe default and return the previous value.

    Only iterators created afterwards are affected.
    """
    global _default_unsafe
    with _default_lock:
        previous, _default_unsafe = _default_unsafe, bool(unsafe)
    return previous


def _dest_parts(dest: Any) -> tuple[type, Any]:
    """Split a destination into (type, instance to fill or None)."""
    if isinstance(dest, type):
        return dest, None
    if is_struct(dest) or is_unmarshaler(dest):
        return type(dest), dest
    return type(dest), None


class Iterx:
    """Scanning iterator over a RowSource.

    Single owner: the resolution cache and scratch buffer are never shared
    between iterators. Reusing one iterator with different destination
    types is rejected.

    Basic Usage:
        >>> from cqlbind.source import SequenceRowSource
        >>> it = Iterx(SequenceRowSource(['n'], [(1,), (2,)]))
        >>> it.select(int)
        [1, 2]
    """

    def __init__(self, source: RowSource, mapper: Mapper | None = None,
                 unsafe: bool | None = None) -> None:
        self.source = source
        self.mapper = mapper or default_mapper()
        self._unsafe = default_unsafe() if unsafe is None else bool(unsafe)
        self.applied = False
        self.num_rows = 0
        self._columns: list[str] | None = None
        self._offset = 0
        self._dest_type: type | None = None
        self._kind: DestKind | None = None
        self._fields: list[FieldInfo | None] = []
        self._decode: list[bool] = []
        self._values: list[Any] = []
        self._err: BaseException | None = None
        self._closed = False

    def __repr__(self) -> str:
        state = 'closed' if self._closed else ('scanning' if self.num_rows else 'not-started')
        return f'Iterx({state}, rows={self.num_rows}, unsafe={self._unsafe})'

    def __enter__(self) -> 'Iterx':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None:
            self.close()
        else:
            self._release()

    def unsafe(self) -> 'Iterx':
        """Skip result columns without a destination field instead of failing.
        """
        self._unsafe = True
        return self

    @property
    def is_unsafe(self) -> bool:
        return self._unsafe

    @property
    def err(self) -> BaseException | None:
        """First recorded failure, without raising it."""
        return self._err

    @property
    def columns(self) -> list[str]:
        """Result column names, the applied sentinel excluded."""
        if self._columns is None:
            columns = list(self.source.columns)
            if columns and columns[0] == APPLIED_COLUMN:
                self._offset = 1
                columns = columns[1:]
            self._columns = columns
        return self._columns

    def _record(self, exc: BaseException) -> bool:
        if self._err is None:
            logger.debug(f'Recording scan error: {exc}')
            self._err = exc
        return False

    def _next(self) -> Sequence[Any] | None:
        if self._err is not None or self._closed:
            return None
        try:
            columns = self.columns
            row = self.source.next_row()
        except Exception as exc:
            self._record(exc)
            return None
        if row is None:
            return None
        self.num_rows += 1
        if self._offset:
            self.applied = bool(row[0])
        if len(row) - self._offset != len(columns):
            self._record(ShapeError(
                f'row has {len(row) - self._offset} values but result has {len(columns)} columns'))
            return None
        return row

    def _prepare(self, cls: type) -> bool:
        if self._dest_type is not None:
            if cls is not self._dest_type:
                return self._record(ShapeError(
                    f'iterator is bound to {self._dest_type.__name__}, cannot scan into {cls.__name__}'))
            return True

        try:
            kind = classify_destination(cls, self.mapper)
            columns = self.columns
            if kind is DestKind.STRUCT:
                self._resolve(cls, columns)
            elif len(columns) != 1:
                return self._record(ShapeError(
                    f'scannable dest type {cls.__name__} with >1 columns ({len(columns)}) in result'
                    if columns else f'scannable dest type {cls.__name__} with no columns in result'))
        except Exception as exc:
            return self._record(exc)

        self._dest_type, self._kind = cls, kind
        return True

    def _resolve(self, cls: type, columns: list[str]) -> None:
        tm = self.mapper.type_map(cls)
        resolved: list[FieldInfo | None] = []
        for name in columns:
            info = tm.names.get(name)
            if info is None:
                if not self._unsafe:
                    raise ResolutionError(f'missing destination name {name!r} in {cls.__name__}', name)
                logger.debug(f'Skipping unmapped column {name!r} for {cls.__name__}')
            resolved.append(info)
        self._fields = resolved
        self._decode = [info is not None and needs_decode(info.annotation) for info in resolved]
        self._values = [None] * len(columns)

    def _fill(self, obj: Any, row: Sequence[Any]) -> bool:
        values = self._values
        offset = self._offset
        try:
            for i, info in enumerate(self._fields):
                values[i] = row[i + offset]
                if info is None:
                    continue
                if self._decode[i]:
                    values[i] = decode_value(values[i], info.annotation, self.mapper, self._unsafe)
                set_by_traversal(obj, info, values[i])
        except Exception as exc:
            return self._record(exc)
        finally:
            values[:] = [None] * len(values)
        return True

    def _convert(self, cls: type, target: Any, value: Any) -> Any:
        if self._kind is not DestKind.CUSTOM:
            return value
        if is_unmarshaler(cls):
            obj = target if target is not None else new_instance(cls)
            obj.unmarshal_cql(value)
            return obj
        obj = udt_unwrap(value, cls, self.mapper, self._unsafe)
        if target is None or obj is None:
            return obj
        for f in fields(cls):
            set_attribute(target, f.name, getattr(obj, f.name))
        return target

    def _scan_any(self, cls: type, target: Any) -> tuple[bool, Any]:
        row = self._next()
        if row is None or not self._prepare(cls):
            return False, None

        if self._kind is DestKind.STRUCT:
            obj = target if target is not None else new_instance(cls)
            return (True, obj) if self._fill(obj, row) else (False, None)

        try:
            return True, self._convert(cls, target, row[self._offset])
        except Exception as exc:
            return self._record(exc), None

    def iter_as(self, cls: type) -> Iterator[Any]:
        """Yield every remaining row scanned into a new cls value.
        """
        while True:
            ok, value = self._scan_any(cls, None)
            if not ok:
                return
            yield value

    def get(self, dest: Any) -> Any:
        """Scan the first row into dest and close the iterator.

        Args:
            dest: Dataclass instance (filled in place), dataclass type (a new
                instance is built) or scannable type (the column value)

        Returns
            The populated destination

        Raises
            NotFoundError: If the result has no rows
        """
        cls, target = _dest_parts(dest)
        _, value = self._scan_any(cls, target)
        self.close()
        if self.num_rows == 0:
            raise NotFoundError()
        return value

    def select(self, dest: type, into: list | None = None) -> list[Any]:
        """Scan all rows and close the iterator.

        Zero rows yield an empty list and leave into untouched; otherwise the
        scanned values are appended to into as well.
        """
        cls, _ = _dest_parts(dest)
        rows = list(self.iter_as(cls))
        self.close()
        if into is not None and rows:
            into.extend(rows)
        return rows

    def struct_scan(self, dest: Any) -> bool:
        """Scan the next row into the dataclass instance dest.

        Returns
            False when exhausted or after a failure (see err / close)
        """
        cls, target = _dest_parts(dest)
        row = self._next()
        if row is None:
            return False
        if self._dest_type is None and classify_destination(cls, self.mapper) is not DestKind.STRUCT:
            return self._record(struct_only_error(cls, self.mapper))
        if not self._prepare(cls):
            return False
        if target is None:
            return self._record(ShapeError(f'struct_scan needs a {cls.__name__} instance, not the type'))
        return self._fill(target, row)

    def scan(self) -> list[Any] | None:
        """Next row as a list of column values, or None when exhausted."""
        row = self._next()
        if row is None:
            return None
        return list(row[self._offset:])

    def map_scan(self, mapping: MutableMapping[str, Any]) -> bool:
        """Write the next row into mapping as {column: value}.
        """
        row = self._next()
        if row is None:
            return False
        mapping.update(zip(self.columns, row[self._offset:]))
        return True

    def select_records(self, loader: Callable[..., Any] | None = None, **kwargs: Any) -> Any:
        """Read all rows as column mappings and hand them to a data loader.

        Args:
            loader: Called as loader(rows, columns, **kwargs); defaults to
                iterdict_data_loader

        Returns
            Whatever the loader builds
        """
        loader = loader or iterdict_data_loader
        rows = []
        while True:
            record: dict[str, Any] = {}
            if not self.map_scan(record):
                break
            rows.append(record)
        self.close()
        return loader(rows, list(self.columns), **kwargs)

    def _release(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.source.close()
        except Exception as exc:
            self._record(exc)

    def close(self) -> None:
        """Release the row source and raise the first recorded failure.

        Safe to call repeatedly; the same failure is raised every time.
        """
        self._release()
        if self._err is not None:
            raise self._err
