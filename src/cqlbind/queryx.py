"""
Queries with named parameter binding.

A Queryx pairs a positional statement with its compiled name list and
binds values to it before execution::

    q = session.named_query('INSERT INTO person (first_name, last_name) VALUES (:first_name, :last_name)')
    q.bind_struct(person).exec()

Bind errors raise immediately. Execution goes through the owning session.
"""
import logging
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from cqlbind.binder import bind_map_args, bind_struct_args
from cqlbind.exceptions import CqlBindError, ShapeError
from cqlbind.iterx import Iterx
from cqlbind.named import compile_named_query
from cqlbind.options import SessionOptions
from cqlbind.reflect import is_struct
from cqlbind.udt import udt_wrap_args

if TYPE_CHECKING:
    from cqlbind.session import Session

logger = logging.getLogger(__name__)

__all__ = ['Queryx', 'query', 'named_query']


class Queryx:
    """Statement plus name list, bound values and session.

    Args:
        stmt: Statement with positional ``?`` markers
        names: Parameter names in marker order
        session: Session executing the statement
        options: SessionOptions, mapping or None for the defaults
    """

    def __init__(self, stmt: str, names: Sequence[str], session: 'Session | None' = None,
                 options: SessionOptions | Mapping[str, Any] | None = None) -> None:
        self.stmt = stmt
        self.names = list(names)
        self.session = session
        if options is None and session is not None:
            options = session.options
        self.options = SessionOptions.create(options)
        self._values: list[Any] | None = None

    def __repr__(self) -> str:
        return f'Queryx({self.stmt!r}, names={self.names})'

    @property
    def mapper(self):
        return self.options.mapper

    @property
    def values(self) -> list[Any] | None:
        """Bound positional values, None until a bind call."""
        return self._values

    def _bound(self, values: list[Any], wrap_udt: bool | None) -> 'Queryx':
        wrap = self.options.wrap_udt if wrap_udt is None else wrap_udt
        if wrap:
            values = udt_wrap_args(values, self.options.mapper, self.options.unsafe,
                                   self.options.protocol_version)
        self._values = values
        return self

    def bind(self, *args: Any, wrap_udt: bool | None = None) -> 'Queryx':
        """Bind positional values.

        Raises
            ShapeError: If the number of values differs from the number of names
        """
        if len(args) != len(self.names):
            raise ShapeError(f'query requires {len(self.names)} arguments, but {len(args)} provided')
        return self._bound(list(args), wrap_udt)

    def bind_struct(self, arg: Any, wrap_udt: bool | None = None) -> 'Queryx':
        """Bind values from a dataclass instance through the mapper.
        """
        return self._bound(bind_struct_args(
            self.names, arg, None, self.options.mapper, self.options.bind_transformer), wrap_udt)

    def bind_struct_map(self, arg: Any, m: Mapping[str, Any],
                        wrap_udt: bool | None = None) -> 'Queryx':
        """Bind values from a dataclass instance, falling back to m for names it lacks.
        """
        return self._bound(bind_struct_args(
            self.names, arg, m, self.options.mapper, self.options.bind_transformer), wrap_udt)

    def bind_map(self, m: Mapping[str, Any], wrap_udt: bool | None = None) -> 'Queryx':
        """Bind values from a string-keyed mapping.
        """
        return self._bound(bind_map_args(self.names, m, self.options.bind_transformer), wrap_udt)

    def _execute(self):
        if self.session is None:
            raise CqlBindError(f'query is not attached to a session: {self.stmt}')
        values = self._values
        if values is None:
            if self.names:
                raise ShapeError(f'query requires {len(self.names)} arguments, but 0 provided')
            values = []
        return self.session.execute(self.stmt, values)

    def iter(self) -> Iterx:
        """Execute and return an iterator over the result.
        """
        return Iterx(self._execute(), self.options.mapper, self.options.unsafe)

    def exec(self) -> None:
        """Execute, discarding any rows."""
        self.iter().close()

    def exec_cas(self, dest: Any = None) -> bool:
        """Execute a lightweight transaction.

        When the transaction is not applied the current row is scanned into
        dest (a dataclass instance), if given.

        Returns
            Whether the transaction was applied
        """
        it = self.iter()
        if dest is None:
            it.map_scan({})
        elif is_struct(dest) and not isinstance(dest, type):
            it.struct_scan(dest)
        else:
            it.close()
            raise ShapeError(f'exec_cas expects a dataclass instance but got {type(dest).__name__}')
        it.close()
        return it.applied

    def get(self, dest: Any) -> Any:
        """Execute and scan the first row, see Iterx.get."""
        return self.iter().get(dest)

    def select(self, dest: type, into: list | None = None) -> list[Any]:
        """Execute and scan all rows, see Iterx.select."""
        return self.iter().select(dest, into)

    def select_records(self, loader: Callable[..., Any] | None = None, **kwargs: Any) -> Any:
        """Execute and load all rows with loader (the session data loader by default).
        """
        return self.iter().select_records(loader or self.options.data_loader, **kwargs)


def query(stmt: str, names: Sequence[str], session: 'Session | None' = None,
          options: SessionOptions | Mapping[str, Any] | None = None) -> Queryx:
    """Wrap a positional statement and its names in a Queryx.
    """
    return Queryx(stmt, names, session, options)


def named_query(text: str, session: 'Session | None' = None,
                options: SessionOptions | Mapping[str, Any] | None = None) -> Queryx:
    """Compile a named statement and wrap it in a Queryx.

    Raises
        CompileError: If the statement is not a valid named query
    """
    stmt, names = compile_named_query(text)
    return Queryx(stmt, names, session, options)
