"""
Name to field mapping for dataclasses.

A Mapper resolves column and parameter names to field traversals, the
attribute path leading from an instance to the (possibly embedded or
nested) field holding the value. Tables are built once per type and cached
for the lifetime of the mapper.

Field names come from the ``db`` metadata tag when present, otherwise from
the mapper's name function (snake case by default)::

    @dataclass
    class Person:
        first_name: str
        last_name: str = field(metadata={'db': 'surname'})
        secret: str = field(default='', metadata={'db': '-'})
        audit: Audit = field(default=None, metadata={'embed': True})
"""
import logging
import threading
from collections import deque
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, fields
from types import MappingProxyType
from typing import Any

from cqlbind.cache import TypeCache
from cqlbind.exceptions import ShapeError
from cqlbind.reflect import is_struct, is_udt, is_unmarshaler, new_instance
from cqlbind.reflect import set_attribute, type_hints, unwrap_optional

logger = logging.getLogger(__name__)

__all__ = [
    'FieldInfo',
    'TypeMap',
    'Mapper',
    'snake_case',
    'get_by_traversal',
    'set_by_traversal',
    'default_mapper',
    'set_default_mapper',
]

EMBED_KEY = 'embed'
SKIP_TAG = '-'


def snake_case(s: str) -> str:
    """Convert camel case to snake case.

    >>> snake_case('FirstName')
    'first_name'
    >>> snake_case('HTTPServer')
    'http_server'
    >>> snake_case('already_snake')
    'already_snake'
    """
    out = []
    n = len(s)
    for i, c in enumerate(s):
        if c.isupper():
            if i > 0 and s[i - 1] != '_' and (
                    s[i - 1].islower() or (i + 1 < n and s[i + 1].islower())):
                out.append('_')
            c = c.lower()
        out.append(c)
    return ''.join(out)


@dataclass(frozen=True, slots=True)
class FieldInfo:
    """Resolved location of a named field.

    traversal holds attribute names from the root instance to the field,
    types the declared class at each step, annotation the field's declared
    annotation (Optional unwrapped by consumers).
    """
    name: str
    traversal: tuple[str, ...]
    types: tuple[Any, ...]
    annotation: Any


@dataclass(frozen=True)
class TypeMap:
    """Immutable name → FieldInfo table for one type."""
    type: type
    names: Mapping[str, FieldInfo]

    def traversal(self, name: str) -> tuple[str, ...]:
        """Traversal for name, or () when the name is not mapped."""
        info = self.names.get(name)
        return info.traversal if info is not None else ()


class Mapper:
    """Builds and caches TypeMaps.

    Configuration is read-only; use a new Mapper for a different tag or
    naming convention.
    """

    __slots__ = ('_tag_name', '_name_func', '_cache')

    def __init__(self, tag_name: str = 'db',
                 name_func: Callable[[str], str] = snake_case) -> None:
        self._tag_name = tag_name
        self._name_func = name_func
        self._cache = TypeCache(f'type_map[{tag_name}]')

    def __repr__(self) -> str:
        return f'Mapper(tag_name={self._tag_name!r}, name_func={self._name_func.__name__})'

    @property
    def tag_name(self) -> str:
        return self._tag_name

    @property
    def name_func(self) -> Callable[[str], str]:
        return self._name_func

    @property
    def cached_types(self) -> int:
        """Number of types with a published TypeMap."""
        return len(self._cache)

    def is_cached(self, cls: type) -> bool:
        return cls in self._cache

    def clear(self) -> None:
        """Drop all cached TypeMaps.
        """
        self._cache.clear()

    def type_map(self, cls: Any) -> TypeMap:
        """Return the TypeMap for a dataclass type or instance.

        Raises
            ShapeError: If cls is not a dataclass
        """
        if not isinstance(cls, type):
            cls = type(cls)
        if not is_struct(cls):
            raise ShapeError(f'expected a dataclass but got {cls.__name__}')
        return self._cache.get_or_build(cls, self._build)

    def field_map(self, obj: Any) -> Mapping[str, FieldInfo]:
        """Name → FieldInfo for the type of obj."""
        return self.type_map(obj).names

    def traversals_by_name(self, cls: Any, names: Sequence[str]) -> list[tuple[str, ...]]:
        """Resolve names in order; unresolved names yield an empty traversal.
        """
        tm = self.type_map(cls)
        return [tm.traversal(name) for name in names]

    def traversals_by_name_func(self, cls: Any, names: Sequence[str],
                                fn: Callable[[int, tuple[str, ...]], None]) -> None:
        """Call fn(index, traversal) for each name in order.

        Exceptions raised by fn stop the iteration and propagate.
        """
        tm = self.type_map(cls)
        for i, name in enumerate(names):
            fn(i, tm.traversal(name))

    def _field_name(self, f: Any) -> str | None:
        tag = f.metadata.get(self._tag_name)
        if tag == SKIP_TAG:
            return None
        return tag or self._name_func(f.name)

    def _build(self, cls: type) -> TypeMap:
        names: dict[str, FieldInfo] = {}
        queue = deque([(cls, (), (), '')])
        while queue:
            owner, path, owner_types, prefix = queue.popleft()
            hints = type_hints(owner)
            for f in fields(owner):
                name = self._field_name(f)
                if name is None:
                    continue
                annotation = hints.get(f.name, f.type)
                base = unwrap_optional(annotation)
                traversal = path + (f.name,)
                step_types = owner_types + (base,)
                descend = (isinstance(base, type) and is_struct(base)
                           and not is_udt(base) and not is_unmarshaler(base)
                           and base not in owner_types and base is not cls)

                if f.metadata.get(EMBED_KEY) and descend:
                    queue.append((base, traversal, step_types, prefix))
                    continue

                full_name = f'{prefix}{name}'
                # breadth-first: shallower fields win
                names.setdefault(full_name, FieldInfo(full_name, traversal, step_types, annotation))
                if descend:
                    queue.append((base, traversal, step_types, f'{full_name}.'))

        logger.debug(f'Mapped {len(names)} names for {cls.__name__}')
        return TypeMap(cls, MappingProxyType(names))


def get_by_traversal(obj: Any, traversal: Sequence[str]) -> Any:
    """Read the value at traversal; a missing intermediate yields None.
    """
    for attr in traversal:
        if obj is None:
            return None
        obj = getattr(obj, attr)
    return obj


def set_by_traversal(obj: Any, info: FieldInfo, value: Any) -> None:
    """Write value at info.traversal, allocating missing intermediates.
    """
    *parents, leaf = info.traversal
    for attr, step_type in zip(parents, info.types):
        child = getattr(obj, attr, None)
        if child is None:
            child = new_instance(step_type)
            set_attribute(obj, attr, child)
        obj = child
    set_attribute(obj, leaf, value)


_default_lock = threading.Lock()
_default_mapper = Mapper()


def default_mapper() -> Mapper:
    """Process-wide mapper used when none is injected.
    """
    return _default_mapper


def set_default_mapper(mapper: Mapper) -> Mapper:
    """Replace the process-wide default mapper and return the previous one.

    Only sessions, queries and iterators created afterwards pick up the new
    mapper; existing ones keep the mapper they captured.
    """
    global _default_mapper
    with _default_lock:
        previous = _default_mapper
        if previous.cached_types:
            logger.warning(
                f'Replacing default mapper with {previous.cached_types} cached types; '
                'objects created earlier keep using the previous mapper')
        _default_mapper = mapper
    return previous
