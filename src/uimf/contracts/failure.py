"""Centralized error taxonomy for the UIMF write path.

Every failure raised by the writer derives from :class:`UimfError` so callers
can handle container problems uniformly. Errors carry a ``context`` dict
(frame number, scan number, parameter key, ...) to make failures diagnosable
without re-running the write.

Key distinction:
- SchemaMissing: caller must create the schema first (not retried)
- UnknownKey: a key no catalog knows about (fatal)
- ValueOutOfRange / InvalidArgument / InvalidOperation: bad input, rejected
- TransientStorageError: storage corruption/lock signal, retry is up to the caller
"""


class UimfError(Exception):
    """Base class for all errors raised by the UIMF writer."""

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.context = context

    def __str__(self):
        message = str(self.args[0]) if self.args else ""
        if not self.context:
            return message
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{message} ({details})"


class SchemaMissing(UimfError):
    """A required table is absent; call ``create_tables()`` first."""
    pass


class UnknownKey(UimfError, KeyError):
    """Parameter key that no version of the catalog has registered."""

    __str__ = UimfError.__str__


class ValueOutOfRange(UimfError, ValueError):
    """Value exceeds the declared capacity (e.g. more bins than ``Bins + 1``)."""
    pass


class InvalidOperation(UimfError):
    """Operation not valid for this container (e.g. wrong binning mode)."""
    pass


class InvalidArgument(UimfError, ValueError):
    """Malformed input (zero intensity in a sparse map, unconvertible value, ...)."""
    pass


class TransientStorageError(UimfError):
    """Storage-layer corruption or lock signal recognized by message pattern."""
    pass
