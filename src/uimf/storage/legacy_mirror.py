"""Dual-write of parameters into the legacy fixed-column tables.

The modern store talks to a :class:`ParamMirror`. When mirroring is off it
holds a :class:`NullMirror`; when on, a :class:`LegacyMirror` that keeps
``Global_Parameters`` and ``Frame_Parameters`` in step with every modern
write and performs the one-time migrations between the two layouts.
"""

import logging
import sqlite3
import time
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Mapping

from uimf.contracts import SchemaMissing, require, storage_guard
from uimf.params import (
    FrameParamKeyType,
    GlobalParamKeyType,
    ParamValue,
)
from uimf.storage import schema
from uimf.storage.legacy_mapping import (
    legacy_frame_column,
    legacy_frame_defaults,
    legacy_global_column,
    legacy_global_defaults,
    lazy_column_definition,
    to_legacy_column_value,
)
from uimf.storage.session import WriterSession

if TYPE_CHECKING:
    from uimf.storage.param_store import ParamStore
    from uimf.storage.reader import UimfParamReader
    from uimf.storage.transaction import TransactionCoordinator

logger = logging.getLogger(__name__)

# Seconds between progress messages during migrations
PROGRESS_INTERVAL_SECONDS = 5.0


class LegacyState(Enum):
    NO_LEGACY_TABLES = "no_legacy_tables"
    LEGACY_ONLY = "legacy_only"
    BOTH_PRESENT_UNSYNCED = "both_present_unsynced"
    BOTH_PRESENT_SYNCED = "both_present_synced"


class ParamMirror:
    """Receives every modern parameter mutation."""

    enabled = False

    def on_global_param(self, key: GlobalParamKeyType, value: ParamValue) -> None:
        pass

    def on_frame_param(self, frame_num: int, key: FrameParamKeyType, value: ParamValue) -> None:
        pass

    def on_frame_inserted(self, frame_num: int, values: Mapping[FrameParamKeyType, ParamValue]) -> None:
        pass

    def on_param_backfilled(self, key: FrameParamKeyType, value: ParamValue,
                            frame_nums: Iterable[int]) -> None:
        pass

    def on_frames_deleted(self, frame_nums: Iterable[int]) -> None:
        pass

    def on_frame_scans_cleared(self, frame_nums: Iterable[int]) -> None:
        pass

    def on_frames_renumbered(self, old_to_new: Mapping[int, int]) -> None:
        pass


class NullMirror(ParamMirror):
    """Mirror used when legacy tables are not maintained."""


class LegacyMirror(ParamMirror):
    """Keeps the legacy fixed-column tables in step with the EAV tables.

    Parameters
    ----------
    conn : sqlite3.Connection
        Writer connection.
    session : WriterSession
        Supplies the legacy frame-number cache, the global-row flag and the
        legacy column cache.
    """

    enabled = True

    def __init__(self, conn: sqlite3.Connection, session: WriterSession):
        self._conn = conn
        self._session = session

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def state(self) -> LegacyState:
        if not schema.has_legacy_tables(self._conn):
            return LegacyState.NO_LEGACY_TABLES
        if not schema.has_modern_tables(self._conn):
            return LegacyState.LEGACY_ONLY

        cursor = self._conn.execute(
            f"SELECT COUNT(DISTINCT FrameNum) FROM {schema.FRAME_PARAMS_TABLE} "
            f"WHERE FrameNum NOT IN (SELECT FrameNum FROM {schema.LEGACY_FRAME_PARAMETERS_TABLE})"
        )
        frames_missing = cursor.fetchone()[0]
        global_rows = self._conn.execute(
            f"SELECT COUNT(*) FROM {schema.GLOBAL_PARAMS_TABLE}").fetchone()[0]
        legacy_global_rows = self._conn.execute(
            f"SELECT COUNT(*) FROM {schema.LEGACY_GLOBAL_PARAMETERS_TABLE}").fetchone()[0]

        if frames_missing == 0 and (global_rows == 0 or legacy_global_rows > 0):
            return LegacyState.BOTH_PRESENT_SYNCED
        return LegacyState.BOTH_PRESENT_UNSYNCED

    def create_tables(self) -> bool:
        with storage_guard("create_legacy_tables"):
            return schema.create_legacy_tables(self._conn)

    def cache_frame_nums(self) -> None:
        """Load the frame numbers already present in the legacy frame table."""
        if not schema.table_exists(self._conn, schema.LEGACY_FRAME_PARAMETERS_TABLE):
            return
        with storage_guard("cache_legacy_frame_nums"):
            cursor = self._conn.execute(
                f"SELECT FrameNum FROM {schema.LEGACY_FRAME_PARAMETERS_TABLE} ORDER BY FrameNum")
            self._session.legacy_frame_nums.update(row[0] for row in cursor.fetchall())

    def _require_tables(self) -> None:
        require(
            schema.has_legacy_tables(self._conn),
            "Legacy parameter tables do not exist; create tables before writing parameters",
            error=SchemaMissing,
        )

    # ------------------------------------------------------------------
    # Row and column materialisation
    # ------------------------------------------------------------------

    def ensure_global_row(self) -> None:
        """Insert the single legacy global row with defaults if it is missing."""
        if self._session.legacy_global_row_present:
            return
        count = self._conn.execute(
            f"SELECT COUNT(*) FROM {schema.LEGACY_GLOBAL_PARAMETERS_TABLE}").fetchone()[0]
        if count < 1:
            defaults = legacy_global_defaults()
            defaults["NumFrames"] = self._session.global_params.num_frames
            self._insert_row(schema.LEGACY_GLOBAL_PARAMETERS_TABLE, defaults)
        self._session.legacy_global_row_present = True

    def ensure_frame_row(self, frame_num: int) -> bool:
        """Materialise the legacy row for ``frame_num`` with catalog defaults.

        Returns
        -------
        bool
            True if a row was inserted.
        """
        if frame_num in self._session.legacy_frame_nums:
            return False

        count = self._conn.execute(
            f"SELECT COUNT(*) FROM {schema.LEGACY_FRAME_PARAMETERS_TABLE} WHERE FrameNum = ?",
            (frame_num,),
        ).fetchone()[0]

        inserted = False
        if count < 1:
            row = {"FrameNum": frame_num}
            for column, value in legacy_frame_defaults().items():
                self.ensure_column(column)
                row[column] = value
            self._insert_row(schema.LEGACY_FRAME_PARAMETERS_TABLE, row)
            inserted = True

        self._session.legacy_frame_nums.add(frame_num)
        return inserted

    def ensure_column(self, column: str) -> bool:
        """Make sure the legacy frame table has ``column``; True if it was added."""
        columns = self._session.legacy_columns
        if columns is None:
            columns = {c.lower() for c in schema.table_columns(
                self._conn, schema.LEGACY_FRAME_PARAMETERS_TABLE)}
            self._session.legacy_columns = columns

        if column.lower() in columns:
            return False

        sql_type, default = lazy_column_definition(column)
        table = schema.LEGACY_FRAME_PARAMETERS_TABLE
        self._conn.execute(f"ALTER TABLE {table} ADD {column} {sql_type}")
        if default is not None:
            self._conn.execute(f"UPDATE {table} SET {column} = ? WHERE {column} IS NULL", (default,))
        columns.add(column.lower())
        logger.info("Added column %s to legacy table %s", column, table)
        return True

    def _insert_row(self, table: str, row: Mapping[str, object]) -> None:
        columns = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)
        self._conn.execute(f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
                           tuple(row.values()))

    # ------------------------------------------------------------------
    # Dual-write
    # ------------------------------------------------------------------

    def on_global_param(self, key: GlobalParamKeyType, value: ParamValue) -> None:
        self._require_tables()
        self.ensure_global_row()

        column = legacy_global_column(key)
        if column is None:
            logger.warning("Skipping unsupported key type, %s", key.name)
            return
        self._conn.execute(
            f"UPDATE {schema.LEGACY_GLOBAL_PARAMETERS_TABLE} SET {column} = ?",
            (to_legacy_column_value(column, value),),
        )

    def on_frame_param(self, frame_num: int, key: FrameParamKeyType, value: ParamValue) -> None:
        self.on_frame_inserted(frame_num, {key: value})

    def on_frame_inserted(self, frame_num: int, values: Mapping[FrameParamKeyType, ParamValue]) -> None:
        self._require_tables()
        self.ensure_frame_row(frame_num)

        assignments = {}
        for key, value in values.items():
            column = legacy_frame_column(key)
            if column is None:
                logger.warning("Skipping unsupported key type, %s", FrameParamKeyType(key).name)
                continue
            self.ensure_column(column)
            assignments[column] = to_legacy_column_value(column, value)

        if not assignments:
            return
        set_clause = ", ".join(f"{column} = ?" for column in assignments)
        self._conn.execute(
            f"UPDATE {schema.LEGACY_FRAME_PARAMETERS_TABLE} SET {set_clause} WHERE FrameNum = ?",
            (*assignments.values(), frame_num),
        )

    def on_param_backfilled(self, key: FrameParamKeyType, value: ParamValue,
                            frame_nums: Iterable[int]) -> None:
        for frame_num in frame_nums:
            self.on_frame_inserted(frame_num, {key: value})

    def on_frames_deleted(self, frame_nums: Iterable[int]) -> None:
        frame_nums = list(frame_nums)
        if not frame_nums or not schema.table_exists(self._conn, schema.LEGACY_FRAME_PARAMETERS_TABLE):
            return
        placeholders = ", ".join("?" for _ in frame_nums)
        self._conn.execute(
            f"DELETE FROM {schema.LEGACY_FRAME_PARAMETERS_TABLE} WHERE FrameNum IN ({placeholders})",
            frame_nums,
        )
        self._session.legacy_frame_nums.difference_update(frame_nums)

    def on_frame_scans_cleared(self, frame_nums: Iterable[int]) -> None:
        frame_nums = list(frame_nums)
        if not frame_nums or not schema.table_exists(self._conn, schema.LEGACY_FRAME_PARAMETERS_TABLE):
            return
        placeholders = ", ".join("?" for _ in frame_nums)
        self._conn.execute(
            f"UPDATE {schema.LEGACY_FRAME_PARAMETERS_TABLE} SET Scans = 0 "
            f"WHERE FrameNum IN ({placeholders})",
            frame_nums,
        )

    def on_frames_renumbered(self, old_to_new: Mapping[int, int]) -> None:
        if not schema.table_exists(self._conn, schema.LEGACY_FRAME_PARAMETERS_TABLE):
            return
        for old, new in sorted(old_to_new.items()):
            self._conn.execute(
                f"UPDATE {schema.LEGACY_FRAME_PARAMETERS_TABLE} SET FrameNum = ? WHERE FrameNum = ?",
                (new, old),
            )
        self._session.legacy_frame_nums.clear()
        self.cache_frame_nums()

    # ------------------------------------------------------------------
    # One-time migrations
    # ------------------------------------------------------------------

    def migrate_legacy_to_modern(self, store: "ParamStore", reader: "UimfParamReader",
                                 coordinator: "TransactionCoordinator") -> bool:
        """Create and fill the EAV tables from the legacy tables.

        Global parameters are converted first, then frames. Mirroring is
        suspended for the duration so values are not written back. Each step
        is skipped if its modern table already exists. One durable
        commit follows the conversion.

        Returns
        -------
        bool
            True if anything was converted.
        """
        converted = False

        if (not schema.table_exists(self._conn, schema.GLOBAL_PARAMS_TABLE)
                and schema.table_exists(self._conn, schema.LEGACY_GLOBAL_PARAMETERS_TABLE)):
            with storage_guard("migrate_legacy_global_params"):
                cached = reader.get_global_params()
                schema.create_global_params_table(self._conn)
                with store.mirroring_suspended():
                    store.insert_global({key: value for key, value in cached.items()})
            logger.info("Converted %d legacy global parameters", len(cached))
            converted = True

        if (not schema.table_exists(self._conn, schema.FRAME_PARAMS_TABLE)
                and schema.table_exists(self._conn, schema.LEGACY_FRAME_PARAMETERS_TABLE)):
            self._migrate_legacy_frames(store, reader)
            converted = True

        if converted:
            coordinator.flush(force=True)
        return converted

    def _migrate_legacy_frames(self, store: "ParamStore", reader: "UimfParamReader") -> None:
        logger.info("Creating the %s table using the legacy frame parameters",
                    schema.FRAME_PARAMS_TABLE)
        current_task = "Caching existing parameters"
        frames_processed = 0
        last_update = time.monotonic()

        try:
            frame_list = reader.get_master_frame_list()
            cached = {}
            for frame_num in frame_list:
                cached[frame_num] = reader.get_frame_params(frame_num)
                frames_processed += 1
                if time.monotonic() - last_update >= PROGRESS_INTERVAL_SECONDS:
                    logger.info(" ... caching frame parameters, %d / %d",
                                frames_processed, len(frame_list))
                    last_update = time.monotonic()

            current_task = "Creating Frame_Params table"
            schema.create_frame_params_tables(self._conn)

            current_task = "Storing parameters in Frame_Params"
            frames_processed = 0
            with store.mirroring_suspended():
                for frame_num, frame_params in cached.items():
                    store.insert_frame(frame_num, dict(frame_params.items()))
                    frames_processed += 1
                    if time.monotonic() - last_update >= PROGRESS_INTERVAL_SECONDS:
                        logger.info(" ... storing frame parameters, %d / %d",
                                    frames_processed, len(cached))
                        last_update = time.monotonic()
        except (sqlite3.Error, ValueError) as e:
            logger.error("Failed creating %s from legacy table (task '%s', processed %d frames): %s",
                         schema.FRAME_PARAMS_TABLE, current_task, frames_processed, e)
            raise

        logger.info("Conversion complete (%d frames)", len(cached))

    def migrate_modern_to_legacy(self, reader: "UimfParamReader",
                                 coordinator: "TransactionCoordinator") -> bool:
        """Create the legacy tables and back-fill them from the EAV tables.

        Does nothing if the legacy tables already exist or there is no
        ``Frame_Params`` table to copy from.
        """
        if schema.has_legacy_tables(self._conn):
            return False
        if not schema.table_exists(self._conn, schema.FRAME_PARAMS_TABLE):
            return False

        logger.info("Caching global and frame parameters")
        global_params = reader.get_global_params()
        frames = {frame_num: reader.get_frame_params(frame_num)
                  for frame_num in reader.get_master_frame_list()}

        with storage_guard("migrate_modern_to_legacy"):
            self.create_tables()
            self._session.legacy_columns = None
            self._session.legacy_global_row_present = False
            self._session.legacy_frame_nums.clear()

            logger.info("Adding the %s table", schema.LEGACY_GLOBAL_PARAMETERS_TABLE)
            self.ensure_global_row()
            for key, value in global_params.items():
                self.on_global_param(key, value)

            logger.info("Adding the %s table", schema.LEGACY_FRAME_PARAMETERS_TABLE)
            for frame_num, frame_params in frames.items():
                self.on_frame_inserted(frame_num, dict(frame_params.items()))

        coordinator.flush(force=True)
        return True
