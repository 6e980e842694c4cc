"""
User Defined Type codec.

UDT-marked dataclasses are (de)serialized attribute by attribute. Before
values cross the serialization boundary they are wrapped in UDTValue,
which exposes the dataclass fields under their mapped names::

    args → udt_wrap_args → [UDTValue(address), [UDTValue(a1), UDTValue(a2)], 42]

The wrapping pass inspects containers on every call; callers that know no
UDTs are present can skip it (see Queryx.bind_struct wrap_udt).
"""
import logging
from collections.abc import Mapping, Sequence
from typing import Any, get_args, get_origin

from cqlbind.exceptions import ResolutionError, ShapeError
from cqlbind.mapper import FieldInfo, Mapper, default_mapper, get_by_traversal
from cqlbind.mapper import set_by_traversal
from cqlbind.reflect import UDT, is_udt, is_unmarshaler, new_instance
from cqlbind.reflect import unwrap_optional

logger = logging.getLogger(__name__)

__all__ = [
    'UDT',
    'UDTValue',
    'is_udt',
    'udt_wrap',
    'udt_wrap_args',
    'udt_unwrap',
    'decode_value',
    'needs_decode',
]

DEFAULT_PROTOCOL_VERSION = 4


class UDTValue:
    """Wrapper exposing a UDT dataclass instance by mapped attribute name.

    Attribute access resolves through the mapper, so the driver's UDT
    serializer (which reads fields with getattr) consumes the wrapper
    directly. marshal_udt / unmarshal_udt do the same through an explicit
    driver type (any class with to_binary / from_binary, such as the
    cassandra.cqltypes classes).

    Unmapped attribute names raise ResolutionError unless the wrapper is
    unsafe, in which case they read as None (null).
    """

    __slots__ = ('_value', '_unsafe', '_fields', '_protocol_version')

    def __init__(self, value: Any, mapper: Mapper | None = None, unsafe: bool = False,
                 protocol_version: int = DEFAULT_PROTOCOL_VERSION) -> None:
        self._value = value
        self._unsafe = unsafe
        self._protocol_version = protocol_version
        self._fields = (mapper or default_mapper()).field_map(value)

    def __repr__(self) -> str:
        return f'UDTValue({self._value!r})'

    def __getattr__(self, name: str) -> Any:
        if name.startswith('_'):
            raise AttributeError(name)
        info = self._resolve(name)
        if info is None:
            return None
        return get_by_traversal(self._value, info.traversal)

    def _resolve(self, name: str) -> FieldInfo | None:
        info = self._fields.get(name)
        if info is None:
            if not self._unsafe:
                raise ResolutionError(f'missing name {name!r} in {type(self._value).__name__}', name)
            logger.debug(f'Skipping unmapped UDT attribute {name!r} in {type(self._value).__name__}')
        return info

    @property
    def protocol_version(self) -> int:
        return self._protocol_version

    def unwrap(self) -> Any:
        """The wrapped dataclass instance."""
        return self._value

    def marshal_udt(self, name: str, type_info: Any,
                    protocol_version: int | None = None) -> bytes | None:
        """Serialize one attribute with the driver type type_info.

        Returns
            The serialized attribute, None (null) for an unmapped name of an
            unsafe wrapper or a None attribute value

        Raises
            ResolutionError: If name is not mapped and the wrapper is not unsafe
        """
        info = self._resolve(name)
        if info is None:
            return None
        value = get_by_traversal(self._value, info.traversal)
        if value is None:
            return None
        return type_info.to_binary(value, protocol_version or self._protocol_version)

    def unmarshal_udt(self, name: str, type_info: Any, data: bytes | None,
                      protocol_version: int | None = None) -> None:
        """Deserialize one attribute into the resolved field.

        Raises
            ResolutionError: If name is not mapped and the wrapper is not unsafe
        """
        info = self._resolve(name)
        if info is None:
            return
        value = type_info.from_binary(data, protocol_version or self._protocol_version)
        set_by_traversal(self._value, info, value)


def udt_wrap(value: Any, mapper: Mapper | None = None, unsafe: bool = False,
             protocol_version: int = DEFAULT_PROTOCOL_VERSION) -> Any:
    """Wrap UDT values, recursing through containers.

    Lists, tuples and sets recurse per element; dicts only when every key is
    a string. Values with nothing to wrap are returned unmodified (the same
    object).
    """
    if isinstance(value, UDT):
        return UDTValue(value, mapper, unsafe, protocol_version)

    if isinstance(value, (list, tuple, set, frozenset)):
        if not value:
            return value
        wrapped = [udt_wrap(v, mapper, unsafe, protocol_version) for v in value]
        if all(w is v for w, v in zip(wrapped, value)):
            return value
        if isinstance(value, list):
            return wrapped
        if isinstance(value, (set, frozenset)):
            return type(value)(wrapped)
        return tuple(wrapped)

    if isinstance(value, dict):
        if not value or not all(isinstance(k, str) for k in value):
            return value
        wrapped = {k: udt_wrap(v, mapper, unsafe, protocol_version) for k, v in value.items()}
        if all(wrapped[k] is v for k, v in value.items()):
            return value
        return wrapped

    return value


def udt_wrap_args(args: Sequence[Any], mapper: Mapper | None = None,
                  unsafe: bool = False, protocol_version: int = DEFAULT_PROTOCOL_VERSION) -> list[Any]:
    """Apply udt_wrap to every bound argument.
    """
    return [udt_wrap(v, mapper, unsafe, protocol_version) for v in args]


def _udt_items(value: Any) -> list[tuple[str, Any]]:
    if isinstance(value, Mapping):
        return list(value.items())
    if isinstance(value, tuple) and hasattr(value, '_fields'):
        return list(zip(value._fields, value))
    if hasattr(value, '__dict__'):
        return [(k, v) for k, v in vars(value).items() if not k.startswith('_')]
    raise ShapeError(f'cannot read UDT attributes from {type(value).__name__}')


def udt_unwrap(value: Any, cls: type, mapper: Mapper | None = None,
               unsafe: bool = False) -> Any:
    """Build a cls instance from the driver representation of a UDT value.

    The driver hands UDT columns back as named tuples (or registered
    classes); every attribute is set on a zero-valued cls instance through
    the mapper.
    """
    if value is None or isinstance(value, cls):
        return value

    mapper = mapper or default_mapper()
    names = mapper.field_map(cls)
    obj = new_instance(cls)
    for name, item in _udt_items(value):
        info = names.get(name)
        if info is None:
            if unsafe:
                continue
            raise ResolutionError(f'missing name {name!r} in {cls.__name__}', name)
        set_by_traversal(obj, info, decode_value(item, info.annotation, mapper, unsafe))
    return obj


def needs_decode(annotation: Any) -> bool:
    """Check whether values of this annotation need decode_value.
    """
    base = unwrap_optional(annotation)
    if isinstance(base, type) and get_origin(base) is None:
        return is_udt(base) or is_unmarshaler(base)
    return any(needs_decode(arg) for arg in get_args(base) if arg is not Ellipsis)


def decode_value(value: Any, annotation: Any, mapper: Mapper | None = None,
                 unsafe: bool = False) -> Any:
    """Convert a scanned column value to the declared field annotation.

    UDT types are rebuilt with udt_unwrap, types implementing unmarshal_cql
    are populated through it; list, set, tuple and dict annotations recurse
    into their elements. Anything else is returned unchanged.
    """
    if value is None:
        return None

    base = unwrap_optional(annotation)
    if isinstance(base, type) and get_origin(base) is None:
        if isinstance(value, base):
            return value
        if is_udt(base):
            return udt_unwrap(value, base, mapper, unsafe)
        if is_unmarshaler(base):
            obj = new_instance(base)
            obj.unmarshal_cql(value)
            return obj
        return value

    origin, args = get_origin(base), get_args(base)
    if not args or not needs_decode(base):
        return value
    if origin is dict or (isinstance(origin, type) and issubclass(origin, Mapping)):
        return {k: decode_value(v, args[-1], mapper, unsafe) for k, v in value.items()}
    if origin is tuple and not (len(args) == 2 and args[1] is Ellipsis):
        return tuple(decode_value(v, a, mapper, unsafe) for v, a in zip(value, args))
    items = [decode_value(v, args[0], mapper, unsafe) for v in value]
    if origin in {set, frozenset, tuple}:
        return origin(items)
    return items
