"""
Binding, scanning and compile error classes.
"""
import cassandra


class CqlBindError(Exception):
    """Base class for all cqlbind errors.
    """


class CompileError(CqlBindError):
    """Malformed named query.

    The ``offset`` attribute holds the byte offset of the offending
    character, or None when the whole input is rejected.
    """

    def __init__(self, message: str, offset: int | None = None) -> None:
        super().__init__(message)
        self.offset = offset


class ResolutionError(CqlBindError):
    """Name or field could not be resolved on a struct or map source.
    """

    def __init__(self, message: str, name: str | None = None) -> None:
        super().__init__(message)
        self.name = name


class ShapeError(CqlBindError):
    """Destination type is structurally incompatible with the row.
    """


class NotFoundError(CqlBindError, LookupError):
    """Single-row fetch yielded zero rows.
    """

    def __init__(self, message: str = 'not found') -> None:
        super().__init__(message)


# Errors raised by the driver are never wrapped; catch them with this group.
TransportError = (
    cassandra.DriverException,
    cassandra.RequestExecutionException,
    cassandra.RequestValidationException,
    )
