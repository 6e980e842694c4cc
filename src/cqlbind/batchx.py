"""
Batches of bound queries.

Batch wraps a cassandra-driver BatchStatement; each bind call adds the
query's prepared statement with positional values resolved from its name
list. Execute with Session.execute_batch or Session.execute_batch_cas.
"""
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from cassandra.query import BatchStatement, BatchType

from cqlbind.binder import bind_map_args, bind_struct_args
from cqlbind.exceptions import ShapeError
from cqlbind.udt import udt_wrap_args

if TYPE_CHECKING:
    from cqlbind.queryx import Queryx
    from cqlbind.session import Session

logger = logging.getLogger(__name__)

__all__ = ['Batch']


class Batch:
    """Batch operation bound to a session.
    """

    def __init__(self, session: 'Session', batch_type: BatchType = BatchType.LOGGED) -> None:
        self.session = session
        self.statement = BatchStatement(batch_type=batch_type)
        self.size = 0

    def __repr__(self) -> str:
        return f'Batch({self.statement.batch_type}, size={self.size})'

    def __len__(self) -> int:
        return self.size

    def _add(self, qry: 'Queryx', values: list[Any]) -> None:
        options = self.session.options
        if options.wrap_udt:
            values = udt_wrap_args(values, options.mapper, options.unsafe, options.protocol_version)
        self.statement.add(self.session.prepare(qry.stmt), values)
        self.size += 1
        logger.debug(f'Added statement {self.size} to batch: {qry.stmt}')

    def bind(self, qry: 'Queryx', *args: Any) -> 'Batch':
        """Add qry with positional values.

        Raises
            ShapeError: If the number of values differs from the number of names
        """
        if len(args) != len(qry.names):
            raise ShapeError(f'query requires {len(qry.names)} arguments, but {len(args)} provided')
        self._add(qry, list(args))
        return self

    def bind_struct(self, qry: 'Queryx', arg: Any) -> 'Batch':
        """Add qry with values from a dataclass instance."""
        options = self.session.options
        self._add(qry, bind_struct_args(qry.names, arg, None, options.mapper, options.bind_transformer))
        return self

    def bind_struct_map(self, qry: 'Queryx', arg: Any, m: Mapping[str, Any]) -> 'Batch':
        """Add qry with values from a dataclass instance, falling back to m."""
        options = self.session.options
        self._add(qry, bind_struct_args(qry.names, arg, m, options.mapper, options.bind_transformer))
        return self

    def bind_map(self, qry: 'Queryx', m: Mapping[str, Any]) -> 'Batch':
        """Add qry with values from a string-keyed mapping."""
        self._add(qry, bind_map_args(qry.names, m, self.session.options.bind_transformer))
        return self
