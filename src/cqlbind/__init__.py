"""
Data binding for Cassandra / ScyllaDB with cassandra-driver.

Named queries, dataclass argument binding, row scanning into dataclasses
and attribute-wise User Defined Type handling:

- Module functions: compile_named_query(text), bind_struct_args(names, obj)
- Session methods: session.named_query(text).bind_struct(obj).exec()
"""
__version__ = '0.1.0'

from cqlbind.batchx import Batch
from cqlbind.binder import bind_map_args, bind_struct_args, unset_empty
from cqlbind.binder import unset_none
from cqlbind.exceptions import CompileError, CqlBindError, NotFoundError
from cqlbind.exceptions import ResolutionError, ShapeError, TransportError
from cqlbind.iterx import DestKind, Iterx, classify_destination
from cqlbind.loaders import iterdict_data_loader, pandas_data_loader
from cqlbind.loaders import pandas_pyarrow_data_loader
from cqlbind.mapper import FieldInfo, Mapper, TypeMap, default_mapper
from cqlbind.mapper import snake_case
from cqlbind.named import compile_named_query
from cqlbind.options import SessionOptions, get_defaults, set_default_bind_transformer
from cqlbind.options import set_default_mapper, set_default_unsafe
from cqlbind.queryx import Queryx
from cqlbind.reflect import UDT, is_udt, new_instance
from cqlbind.session import Session
from cqlbind.source import ResultSetRowSource, RowSource, SequenceRowSource
from cqlbind.udt import UDTValue, udt_unwrap, udt_wrap, udt_wrap_args

__all__ = [
    'Batch',
    'CompileError',
    'CqlBindError',
    'DestKind',
    'FieldInfo',
    'Iterx',
    'Mapper',
    'NotFoundError',
    'Queryx',
    'ResolutionError',
    'ResultSetRowSource',
    'RowSource',
    'SequenceRowSource',
    'Session',
    'SessionOptions',
    'ShapeError',
    'TransportError',
    'TypeMap',
    'UDT',
    'UDTValue',
    'bind_map_args',
    'bind_struct_args',
    'classify_destination',
    'compile_named_query',
    'default_mapper',
    'get_defaults',
    'is_udt',
    'iterdict_data_loader',
    'new_instance',
    'pandas_data_loader',
    'pandas_pyarrow_data_loader',
    'set_default_bind_transformer',
    'set_default_mapper',
    'set_default_unsafe',
    'snake_case',
    'udt_unwrap',
    'udt_wrap',
    'udt_wrap_args',
    'unset_empty',
    'unset_none',
]
