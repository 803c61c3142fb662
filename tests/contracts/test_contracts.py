"""Tests for write-path contracts.

These tests verify that contract violations fail fast with the right error
class and that storage failures are translated and logged.
"""

import sqlite3

import pytest

pytestmark = pytest.mark.unit

from uimf.contracts import (
    InvalidArgument,
    SchemaMissing,
    TransientStorageError,
    UimfError,
    UnknownKey,
    ValueOutOfRange,
    is_transient_storage_error,
    require,
    storage_guard,
)


class TestRequire:
    """require() raises the requested error with context."""

    def test_passes_when_condition_holds(self):
        require(True, "never raised")

    def test_default_error_is_invalid_argument(self):
        with pytest.raises(InvalidArgument) as exc_info:
            require(False, "Frame numbers start at 1", frame_num=0)
        assert exc_info.value.context == {"frame_num": 0}
        assert str(exc_info.value) == "Frame numbers start at 1 (frame_num=0)"

    def test_custom_error_class(self):
        with pytest.raises(SchemaMissing):
            require(False, "no table", error=SchemaMissing)


class TestErrorTaxonomy:
    """Errors can be caught by their builtin counterparts too."""

    def test_unknown_key_is_key_error(self):
        assert issubclass(UnknownKey, KeyError)
        assert str(UnknownKey("missing", key=3)) == "missing (key=3)"

    def test_value_errors(self):
        assert issubclass(ValueOutOfRange, ValueError)
        assert issubclass(InvalidArgument, ValueError)
        assert str(InvalidArgument("bad bin", bin=4)) == "bad bin (bin=4)"

    def test_message_without_context(self):
        assert str(UimfError("plain")) == "plain"


class TestStorageGuard:
    """SQLite failures inside storage_guard()."""

    def test_transient_errors_translated(self):
        with pytest.raises(TransientStorageError) as exc_info:
            with storage_guard("insert_scan", frame_num=3):
                raise sqlite3.OperationalError("database is locked")
        assert exc_info.value.context == {"frame_num": 3}
        assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)

    def test_other_errors_reraised_and_logged(self, caplog):
        with pytest.raises(sqlite3.IntegrityError):
            with storage_guard("insert_frame", frame_num=1):
                raise sqlite3.IntegrityError("UNIQUE constraint failed")
        assert "insert_frame" in caplog.text

    def test_writer_errors_pass_through(self):
        with pytest.raises(ValueOutOfRange):
            with storage_guard("insert_scan"):
                raise ValueOutOfRange("too many bins")

    def test_transient_patterns(self):
        assert is_transient_storage_error(sqlite3.DatabaseError("Database disk image is malformed"))
        assert not is_transient_storage_error(sqlite3.OperationalError("no such table: X"))
