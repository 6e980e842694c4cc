"""
Named query compilation.

Translates statements using ``:name`` placeholders into statements using
the positional ``?`` marker plus the ordered list of names:

    SELECT * FROM t WHERE a=:x AND b=:y  →  SELECT * FROM t WHERE a=? AND b=?
                                            ['x', 'y']

Use ``::`` for a literal colon, i.e. in map or UDT literals.
"""
import logging

from cqlbind.exceptions import CompileError

logger = logging.getLogger(__name__)

__all__ = ['compile_named_query', 'is_bind_char']

_COLON = ord(':')
_MARKER = ord('?')
_EXTRA_BIND_CHARS = frozenset(b'_.')


def is_bind_char(b: int) -> bool:
    """Check whether a byte may appear in a bind parameter name.
    """
    return (
        ord('a') <= b <= ord('z')
        or ord('A') <= b <= ord('Z')
        or ord('0') <= b <= ord('9')
        or b in _EXTRA_BIND_CHARS
    )


def compile_named_query(qs: str | bytes) -> tuple[str, list[str]]:
    """Compile a named query into a positional query and a list of names.

    Args:
        qs: Statement text with ``:name`` placeholders

    Returns
        Tuple of (statement, names) where names preserves first-to-last
        occurrence order, duplicates included

    Raises
        CompileError: If there are no colons at all, or a colon appears where
            a name cannot start or continue
    """
    data = qs.encode() if isinstance(qs, str) else bytes(qs)
    if data.count(_COLON) == 0:
        raise CompileError('expected a named query')

    names: list[str] = []
    rebound = bytearray()
    name = bytearray()
    in_name = False
    start = 0
    last = len(data) - 1

    for i, b in enumerate(data):
        if b == _COLON:
            # second colon of a '::' escape
            if in_name and i == start + 1:
                rebound.append(_COLON)
                in_name = False
                continue
            if in_name:
                raise CompileError(
                    f'unexpected `:` while reading named param at {i}', offset=i)
            in_name = True
            start = i
            name.clear()
            if i == last:
                raise CompileError(f'missing param name after `:` at {i}', offset=i)
        elif in_name and is_bind_char(b):
            name.append(b)
            if i == last:
                names.append(name.decode())
                rebound.append(_MARKER)
        elif in_name:
            in_name = False
            if not name:
                raise CompileError(f'missing param name after `:` at {start}', offset=start)
            names.append(name.decode())
            rebound.append(_MARKER)
            rebound.append(b)
        else:
            rebound.append(b)

    stmt = rebound.decode()
    logger.debug(f'Compiled named query with {len(names)} params: {stmt}')
    return stmt, names
