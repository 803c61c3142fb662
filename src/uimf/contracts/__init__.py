"""Write-path contracts: error taxonomy and fail-fast enforcement.

Contracts fail immediately and loudly when a caller violates an invariant of
the container (missing schema, bins beyond capacity, zero entries in a sparse
map). Storage failures are logged with context and propagated, never retried.
"""

from uimf.contracts.failure import (
    UimfError,
    SchemaMissing,
    UnknownKey,
    ValueOutOfRange,
    InvalidOperation,
    InvalidArgument,
    TransientStorageError,
)
from uimf.contracts.base import require, storage_guard, is_transient_storage_error

__all__ = [
    "UimfError",
    "SchemaMissing",
    "UnknownKey",
    "ValueOutOfRange",
    "InvalidOperation",
    "InvalidArgument",
    "TransientStorageError",
    "require",
    "storage_guard",
    "is_transient_storage_error",
]
