"""
Table maintenance helpers.
"""
import logging
from collections.abc import Callable
from typing import Any

from cqlbind.queryx import Queryx
from cqlbind.session import Session

logger = logging.getLogger(__name__)

__all__ = ['rewrite_table']


def rewrite_table(session: Session, select: str, insert: str | Queryx,
                  transform: Callable[[dict[str, Any]], None] | None = None,
                  options: Callable[[Queryx], Any] | None = None) -> int:
    """Copy every row returned by select into insert.

    Rows are read as {column: value} mappings and bound by name, so the
    insert statement's names must match the selected columns (after
    transform). A row left empty by transform is skipped.

    Args:
        session: Session running both statements
        select: Statement returning the source rows
        insert: Named insert statement text or a prepared Queryx
        transform: Called with each row mapping, may modify it in place
        options: Called once with the insert Queryx before the first row

    Returns
        Number of rows written
    """
    if not isinstance(insert, Queryx):
        insert = session.named_query(insert)
    if options is not None:
        options(insert)

    written = 0
    row: dict[str, Any] = {}
    with session.query(select, []).iter() as it:
        while it.map_scan(row):
            if transform is not None:
                transform(row)
            if row:
                insert.bind_map(row).exec()
                written += 1
            row = {}
    logger.debug(f'Rewrote {written} rows into: {insert.stmt}')
    return written
