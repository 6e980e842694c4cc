"""
Session configuration.

SessionOptions captures everything a session hands down to its queries and
iterators. Fields left unset snapshot the process-wide defaults at
construction time, so later default changes never reach existing sessions.
"""
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields, replace
from typing import Any

from cqlbind.binder import Transformer, default_bind_transformer
from cqlbind.binder import set_default_bind_transformer
from cqlbind.iterx import default_unsafe, set_default_unsafe
from cqlbind.loaders import iterdict_data_loader
from cqlbind.mapper import Mapper, default_mapper, set_default_mapper

__all__ = [
    'SessionOptions',
    'get_defaults',
    'set_default_mapper',
    'set_default_bind_transformer',
    'set_default_unsafe',
]


def get_defaults() -> dict[str, Any]:
    """Current process-wide defaults, keyed by SessionOptions field name.
    """
    return {
        'mapper': default_mapper(),
        'bind_transformer': default_bind_transformer(),
        'unsafe': default_unsafe(),
    }


@dataclass
class SessionOptions:
    """Options

    - mapper: Mapper resolving field names (default: process-wide mapper)
    - bind_transformer: transformer(name, value) applied to bound values
    - unsafe: skip unmapped result columns instead of failing
    - wrap_udt: wrap UDT arguments on bind (default: True)
    - protocol_version: native protocol version for UDT codecs (default: 4)
    - data_loader: builds select_records results (default: list of dicts)
    """
    mapper: Mapper | None = None
    bind_transformer: Transformer | None = None
    unsafe: bool | None = None
    wrap_udt: bool = True
    protocol_version: int = 4
    data_loader: Callable[..., Any] | None = None

    def __post_init__(self):
        defaults = get_defaults()
        if self.mapper is None:
            self.mapper = defaults['mapper']
        if self.bind_transformer is None:
            self.bind_transformer = defaults['bind_transformer']
        if self.unsafe is None:
            self.unsafe = defaults['unsafe']
        if self.data_loader is None:
            self.data_loader = iterdict_data_loader
        if self.protocol_version < 1:
            raise ValueError(f'protocol_version must be positive, got {self.protocol_version}')

    @classmethod
    def create(cls, options: 'SessionOptions | Mapping[str, Any] | None' = None,
               **kwargs: Any) -> 'SessionOptions':
        """Build options from an instance, a mapping and/or keyword overrides.

        Raises
            TypeError: On unknown option names
        """
        if isinstance(options, SessionOptions):
            return replace(options, **kwargs) if kwargs else options

        known = {f.name for f in fields(cls)}
        params = {**dict(options or {}), **kwargs}
        unknown = set(params) - known
        if unknown:
            raise TypeError(f'unknown session options: {sorted(unknown)}')
        return cls(**params)
