"""
Session wrapper around a cassandra-driver session.

Adds named query compilation, argument binding and row scanning on top of
the driver session; connection handling, retries, paging and consistency
stay with the driver.

Basic Usage:
    >>> from cassandra.cluster import Cluster  # doctest: +SKIP
    >>> session = Session(Cluster(['127.0.0.1']).connect('ks'))  # doctest: +SKIP
    >>> session.named_query('SELECT * FROM person WHERE id=:id').bind_map({'id': 1}).get(Person)  # doctest: +SKIP
"""
import logging
import time
from collections.abc import Mapping, Sequence
from functools import wraps
from typing import Any

from cassandra.query import BatchType

from cqlbind.batchx import Batch
from cqlbind.cache import TypeCache
from cqlbind.exceptions import ShapeError
from cqlbind.iterx import Iterx
from cqlbind.options import SessionOptions
from cqlbind.queryx import Queryx, named_query
from cqlbind.reflect import is_struct
from cqlbind.source import ResultSetRowSource

logger = logging.getLogger(__name__)

__all__ = ['Session', 'dumpcql']


def dumpcql(func):
    """Decorator for logging CQL statements and parameters."""
    @wraps(func)
    def wrapper(self, statement: Any, *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'CQL:\n{statement}\nargs: {args}')
        try:
            return func(self, statement, *args, **kwargs)
        except Exception:
            logger.error(f'Error with statement:\nCQL:\n{statement}\nargs: {args}')
            raise
        finally:
            elapsed = time.time() - start
            self.addcall(elapsed)
            logger.debug(f'Statement time: {elapsed:.4f}s')
    return wrapper


class Session:
    """Binding session over a cassandra-driver Session.

    Args:
        driver_session: Connected cassandra-driver session (anything with
            prepare, execute and shutdown)
        options: SessionOptions, mapping or None; keyword arguments override
        prepared_cache_size: Maximum number of cached prepared statements
    """

    def __init__(self, driver_session: Any,
                 options: SessionOptions | Mapping[str, Any] | None = None,
                 prepared_cache_size: float = 1000, **kwargs: Any) -> None:
        self.driver = driver_session
        self.options = SessionOptions.create(options, **kwargs)
        self.calls = 0
        self.time = 0.0
        self._prepared = TypeCache('prepared', maxsize=prepared_cache_size)
        self._closed = False

    def __repr__(self) -> str:
        return f'Session(calls={self.calls}, closed={self._closed})'

    def __enter__(self) -> 'Session':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def mapper(self):
        return self.options.mapper

    def addcall(self, elapsed: float) -> None:
        """Track statement execution time and count."""
        self.time += elapsed
        self.calls += 1

    def prepare(self, stmt: str) -> Any:
        """Prepared statement for stmt, prepared once per statement text.

        The driver round trip runs outside the cache lock, so first-time
        prepares of different statements proceed concurrently.
        """
        prepared = self._prepared.get(stmt)
        if prepared is not None:
            return prepared
        logger.debug(f'Preparing statement: {stmt}')
        return self._prepared.setdefault(stmt, self.driver.prepare(stmt))

    @dumpcql
    def execute(self, stmt: str, values: Sequence[Any] | None = None) -> ResultSetRowSource:
        """Execute stmt with positional values and return its rows.

        Statements without values run unprepared.
        """
        if values:
            result = self.driver.execute(self.prepare(stmt), list(values))
        else:
            result = self.driver.execute(stmt)
        return ResultSetRowSource(result)

    def query(self, stmt: str, names: Sequence[str]) -> Queryx:
        """Queryx for a positional statement and its parameter names.
        """
        return Queryx(stmt, names, self, self.options)

    def named_query(self, text: str) -> Queryx:
        """Compile a ``:name`` statement into a Queryx.

        Raises
            CompileError: If the statement is not a valid named query
        """
        return named_query(text, self, self.options)

    def exec_stmt(self, stmt: str) -> None:
        """Execute a statement without parameters."""
        Queryx(stmt, [], self, self.options).exec()

    def batch(self, batch_type: BatchType = BatchType.LOGGED) -> Batch:
        """Start a batch executed by this session."""
        return Batch(self, batch_type)

    @dumpcql
    def _execute_batch(self, batch: Batch) -> ResultSetRowSource:
        return ResultSetRowSource(self.driver.execute(batch.statement))

    def execute_batch(self, batch: Batch) -> None:
        """Execute a batch, discarding any rows."""
        Iterx(self._execute_batch(batch), self.options.mapper, self.options.unsafe).close()

    def execute_batch_cas(self, batch: Batch, dest: Any = None) -> tuple[bool, Iterx]:
        """Execute a conditional batch.

        The first row is scanned into dest (a dataclass instance) when given;
        the returned iterator holds the remaining rows and must be closed.

        Returns
            Tuple of (applied, iterator)
        """
        it = Iterx(self._execute_batch(batch), self.options.mapper, self.options.unsafe)
        if dest is None:
            it.map_scan({})
        elif is_struct(dest) and not isinstance(dest, type):
            it.struct_scan(dest)
        else:
            it.close()
            raise ShapeError(f'execute_batch_cas expects a dataclass instance but got {type(dest).__name__}')
        return it.applied, it

    def close(self) -> None:
        """Shut down the driver session and log statement statistics.
        """
        if self._closed:
            return
        self._closed = True
        logger.debug(f'Session closed after {self.calls} statements in {self.time:.4f}s')
        self.driver.shutdown()
