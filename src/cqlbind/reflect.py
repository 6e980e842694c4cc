"""Low-level reflection helpers with no internal dependencies.

Capability checks (struct, UDT, custom codec), annotation unwrapping and
zero-value construction shared by the mapper, binder, scanner and UDT
codec.
"""
import types
from dataclasses import MISSING, fields, is_dataclass
from functools import lru_cache
from typing import Any, Protocol, Union, get_args, get_origin, get_type_hints
from typing import runtime_checkable

__all__ = [
    'UDT',
    'Marshaler',
    'Unmarshaler',
    'is_struct',
    'is_udt',
    'is_marshaler',
    'is_unmarshaler',
    'unwrap_optional',
    'type_hints',
    'new_instance',
    'set_attribute',
]


class UDT:
    """Marker base class for dataclasses marshalled as User Defined Types.

    A dataclass inheriting from UDT is bound and scanned attribute by
    attribute rather than as one opaque value::

        @dataclass
        class Address(UDT):
            street: str = ''
            number: int = 0
    """

    __slots__ = ()


@runtime_checkable
class Marshaler(Protocol):
    """Value that converts itself to its bound representation."""

    def marshal_cql(self) -> Any: ...


@runtime_checkable
class Unmarshaler(Protocol):
    """Value that populates itself from a whole column value."""

    def unmarshal_cql(self, value: Any) -> None: ...


def _as_type(obj: Any) -> Any:
    return obj if isinstance(obj, type) else type(obj)


def is_struct(obj: Any) -> bool:
    """Check whether obj is a dataclass type or instance.
    """
    return is_dataclass(_as_type(obj))


def is_udt(obj: Any) -> bool:
    """Check whether obj is a UDT-marked type or instance.
    """
    t = _as_type(obj)
    return isinstance(t, type) and issubclass(t, UDT)


def is_marshaler(obj: Any) -> bool:
    """Check whether obj is a value implementing the Marshaler protocol.

    Types themselves are not marshalers; only their instances bind.
    """
    return not isinstance(obj, type) and isinstance(obj, Marshaler)


def is_unmarshaler(obj: Any) -> bool:
    t = _as_type(obj)
    return isinstance(t, type) and get_origin(t) is None and issubclass(t, Unmarshaler)


def unwrap_optional(annotation: Any) -> Any:
    """Return X for Optional[X] / X | None annotations, else the annotation.
    """
    origin = get_origin(annotation)
    if origin not in {Union, types.UnionType}:
        return annotation

    all_args = get_args(annotation)
    args = [arg for arg in all_args if arg is not type(None)]
    if len(args) == 1 and len(all_args) == 2:
        return args[0]
    return annotation


@lru_cache(maxsize=None)
def type_hints(cls: type) -> dict[str, Any]:
    """Resolved annotations for a dataclass, falling back to field.type.
    """
    try:
        return dict(get_type_hints(cls))
    except (NameError, TypeError):
        return {f.name: f.type for f in fields(cls)}


def set_attribute(obj: Any, name: str, value: Any) -> None:
    """Set an attribute, bypassing frozen dataclass guards.
    """
    params = getattr(type(obj), '__dataclass_params__', None)
    if params is not None and params.frozen:
        object.__setattr__(obj, name, value)
    else:
        setattr(obj, name, value)


def new_instance(cls: type) -> Any:
    """Build a zero-valued instance of cls.

    Dataclass fields take their declared default or default_factory, and
    None when they have neither; __init__ and __post_init__ are not run.
    Other types are called without arguments.
    """
    if not is_dataclass(cls):
        return cls()

    obj = object.__new__(cls)
    for f in fields(cls):
        if f.default is not MISSING:
            value = f.default
        elif f.default_factory is not MISSING:
            value = f.default_factory()
        else:
            value = None
        object.__setattr__(obj, f.name, value)
    return obj
