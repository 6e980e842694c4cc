"""
Argument binding.

Turns a named argument source into the positional value list matching a
compiled name list. Dataclass instances are resolved through the mapper,
string-keyed mappings by direct lookup. Order of the returned list is the
order of the names, duplicates included.
"""
import logging
import threading
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from cassandra.query import UNSET_VALUE

from cqlbind.exceptions import ResolutionError, ShapeError
from cqlbind.mapper import Mapper, default_mapper, get_by_traversal
from cqlbind.reflect import is_marshaler, is_struct

logger = logging.getLogger(__name__)

__all__ = [
    'Transformer',
    'bind_struct_args',
    'bind_map_args',
    'unset_none',
    'unset_empty',
    'default_bind_transformer',
    'set_default_bind_transformer',
]

Transformer = Callable[[str, Any], Any]

_EMPTY_TYPES = (str, bytes, bytearray, list, tuple, set, frozenset, dict)


def unset_none(name: str, value: Any) -> Any:
    """Bind None as UNSET_VALUE so the column is left untouched.
    """
    return UNSET_VALUE if value is None else value


def unset_empty(name: str, value: Any) -> Any:
    """Bind None and empty strings or collections as UNSET_VALUE.

    Zero and False are values, not empties.
    """
    if value is None:
        return UNSET_VALUE
    if isinstance(value, _EMPTY_TYPES) and len(value) == 0:
        return UNSET_VALUE
    return value


def _finalize(name: str, value: Any, transformer: Transformer | None) -> Any:
    if is_marshaler(value):
        value = value.marshal_cql()
    if transformer is not None:
        value = transformer(name, value)
    return value


def _missing(name: str, *sources: Any) -> ResolutionError:
    shown = ' and '.join(f'{type(s).__name__}' for s in sources if s is not None)
    return ResolutionError(f'could not find name {name!r} in {shown}', name)


def bind_struct_args(names: Sequence[str], arg: Any,
                     fallback: Mapping[str, Any] | None = None,
                     mapper: Mapper | None = None,
                     transformer: Transformer | None = None) -> list[Any]:
    """Bind a dataclass instance to a name list.

    Args:
        names: Compiled parameter names
        arg: Dataclass instance holding the values
        fallback: Mapping consulted for names the dataclass does not map
        mapper: Mapper resolving names, the default mapper when omitted
        transformer: Called as transformer(name, value) for every value

    Returns
        Positional values in name order

    Raises
        ShapeError: If arg is not a dataclass instance
        ResolutionError: If a name is found neither on arg nor in fallback
    """
    if isinstance(arg, Mapping) or not is_struct(arg) or isinstance(arg, type):
        raise ShapeError(f'expected a dataclass instance but got {type(arg).__name__}')

    mapper = mapper or default_mapper()
    tm = mapper.type_map(arg)
    values: list[Any] = []
    for name in names:
        traversal = tm.traversal(name)
        if traversal:
            value = get_by_traversal(arg, traversal)
        elif fallback is not None and name in fallback:
            value = fallback[name]
        else:
            raise _missing(name, arg, fallback)
        values.append(_finalize(name, value, transformer))
    return values


def bind_map_args(names: Sequence[str], values: Mapping[str, Any],
                  transformer: Transformer | None = None) -> list[Any]:
    """Bind a string-keyed mapping to a name list.

    Raises
        ResolutionError: If a name is not a key of values
    """
    out: list[Any] = []
    for name in names:
        if name not in values:
            raise _missing(name, values)
        out.append(_finalize(name, values[name], transformer))
    return out


_default_lock = threading.Lock()
_default_transformer: Transformer | None = None


def default_bind_transformer() -> Transformer | None:
    """Process-wide transformer applied when none is injected."""
    return _default_transformer


def set_default_bind_transformer(transformer: Transformer | None) -> Transformer | None:
    """Replace the process-wide bind transformer and return the previous one.
    """
    global _default_transformer
    with _default_lock:
        previous = _default_transformer
        _default_transformer = transformer
    logger.debug(f'Default bind transformer set to {transformer!r}')
    return previous
