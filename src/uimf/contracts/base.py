"""Base contract enforcement utilities.

``require()`` is the single enforcement mechanism for input and schema
contracts. ``storage_guard()`` wraps calls into SQLite so that every storage
failure is logged once, with context, and then propagated.
"""

import logging
import sqlite3
from contextlib import contextmanager
from typing import Type

from uimf.contracts.failure import UimfError, InvalidArgument, TransientStorageError

logger = logging.getLogger(__name__)

# Message fragments SQLite uses for corruption and lock conditions
TRANSIENT_ERROR_PATTERNS = (
    "disk image is malformed",
    "database is locked",
    "database table is locked",
)


def require(condition: bool, message: str,
            error: Type[UimfError] = InvalidArgument, **context) -> None:
    """Enforce a write-path contract.

    Parameters
    ----------
    condition : bool
        The invariant that must be true.
    message : str
        Error message explaining the violation.
    error : type, optional
        Exception class to raise (default: InvalidArgument).
    **context
        Diagnostic context attached to the exception (frame_num, key, ...).

    Raises
    ------
    UimfError
        Subclass given by ``error`` if condition is False.

    Examples
    --------
    >>> require(frame_num >= 1, "Frame numbers start at 1", frame_num=frame_num)
    """
    if not condition:
        raise error(message, **context)


def is_transient_storage_error(exc: BaseException) -> bool:
    """Return True if the exception message matches a known corruption/lock pattern."""
    text = str(exc).lower()
    return any(pattern in text for pattern in TRANSIENT_ERROR_PATTERNS)


@contextmanager
def storage_guard(operation: str, **context):
    """Translate SQLite failures raised inside the block.

    Transient corruption/lock signals are logged distinctly and re-raised as
    :class:`TransientStorageError`. Other SQLite errors are logged with
    context and re-raised unchanged. Writer errors (``UimfError``) pass through.

    Parameters
    ----------
    operation : str
        Name of the calling operation (used in the log line).
    **context
        Diagnostic context (frame_num, scan_num, key, ...).
    """
    try:
        yield
    except UimfError:
        raise
    except sqlite3.Error as exc:
        if is_transient_storage_error(exc):
            logger.error("Encountered transient storage error in %s: %s", operation, exc)
            raise TransientStorageError(
                f"Storage error in {operation}: {exc}", **context
            ) from exc
        logger.error("Storage error in %s (%s): %s", operation, context, exc)
        raise
