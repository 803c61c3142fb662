"""Writer session over one UIMF container.

``UimfWriter`` wires the parameter store, the legacy mirror, the scan writer
and the transaction coordinator to a single SQLite connection, and adds the
container-level maintenance operations (frame deletion and renumbering,
calibration updates, global statistics, log entries).

A transaction is opened as soon as the writer is constructed and committed on
:meth:`UimfWriter.close`; in between, writes are committed in batches every
``transaction.flush_interval`` seconds.

Examples
--------
>>> with UimfWriter("run.uimf", config) as writer:
...     writer.create_tables()
...     writer.insert_global({GlobalParamKeyType.BINS: 148000})
...     writer.insert_frame(1, {FrameParamKeyType.SCANS: 360})
...     writer.insert_scan(1, 0, intensities, bin_width=0.25)
"""

import logging
import math
import sqlite3
import time
from pathlib import Path
from typing import Callable, Iterable, List, Mapping, Optional, Protocol, Tuple, Union

from uimf.codec import IntensityConverter, RlzeWidth, get_compressor
from uimf.contracts import InvalidArgument, SchemaMissing, require, storage_guard
from uimf.params import (
    FRAME_PARAM_CATALOG,
    FrameParamKeyType,
    FrameParams,
    GlobalParamKeyType,
    GlobalParams,
    ParamDataType,
    ParamValue,
)
from uimf.schemas import InternalConfig, resolve_config
from uimf.storage import schema
from uimf.storage.legacy_mirror import LegacyMirror, LegacyState
from uimf.storage.param_store import ParamStore
from uimf.storage.reader import UimfParamReader
from uimf.storage.scan_writer import BinIntensityPairs, ScanWriter
from uimf.storage.session import WriterSession
from uimf.storage.transaction import TransactionCoordinator

logger = logging.getLogger(__name__)

# Relative drop below which an existing PrescanTOFPulses value is kept
PRESCAN_TOF_PULSES_TOLERANCE = 0.05


class BinCentricIndexBuilder(Protocol):
    """Builds the ``Bin_Intensities`` table from the scan-centric data."""

    def build_bin_centric_index(self, conn: sqlite3.Connection, working_dir: str) -> None:
        ...


class UimfWriter:
    """Open a container for writing.

    Parameters
    ----------
    path : str or Path
        Container file; created if it does not exist. Call
        :meth:`create_tables` after opening a new file.
    config : InternalConfig, optional
        Resolved configuration (built-in defaults when omitted).
    clock, sleep : callable, optional
        Passed to the :class:`TransactionCoordinator` (injectable for tests).

    Raises
    ------
    InvalidArgument
        If ``path`` is empty.
    sqlite3.Error
        If the file cannot be opened or migrated. The connection is closed.
    """

    def __init__(self, path: Union[str, Path], config: Optional[InternalConfig] = None,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        require(path is not None and str(path).strip() != "", "UIMF file path cannot be empty")

        self.config = config or resolve_config()
        self.path = str(path)
        self.create_legacy_tables = self.config.writer.create_legacy_tables

        self._conn = sqlite3.connect(self.path, isolation_level=None)
        self.session = WriterSession(path=self.path)
        self.coordinator = TransactionCoordinator(
            self._conn, self.session,
            flush_interval=self.config.transaction.flush_interval,
            settle_delay=self.config.transaction.settle_delay,
            clock=clock, sleep=sleep,
        )
        self.converter = IntensityConverter(RlzeWidth(self.config.codec.width),
                                            get_compressor(self.config.codec.compressor))
        self.reader = UimfParamReader(self._conn)
        self.store = ParamStore(self._conn, self.session, self.coordinator)
        self.scan_writer = ScanWriter(self._conn, self.store, self.coordinator, self.converter)
        self.legacy = LegacyMirror(self._conn, self.session)

        try:
            self._open()
        except Exception as e:
            logger.error("Failed to open UIMF file %s: %s", self.path, e)
            self._conn.close()
            self.session.teardown()
            raise

    def _open(self) -> None:
        self.coordinator.start()

        if schema.has_legacy_tables(self._conn):
            self.create_legacy_tables = True
            self.store.mirror = self.legacy

        self.legacy.migrate_legacy_to_modern(self.store, self.reader, self.coordinator)
        self.store.refresh_global_params()
        self.legacy.cache_frame_nums()

        with storage_guard("version_info", path=self.path):
            schema.create_version_info_table(self._conn)
            self.add_version_info(self.config.software.name, self.config.software.version)

        logger.info("Opened %s for writing (legacy tables: %s)", self.path,
                    self.legacy.state().value)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    @property
    def closed(self) -> bool:
        return self.session.closed

    def _require_open(self) -> None:
        require(not self.session.closed, "The writer has been closed", path=self.path)

    def flush(self, force: bool = True) -> bool:
        """Commit pending writes (immediately unless ``force`` is False)."""
        self._require_open()
        return self.coordinator.flush(force=force)

    def close(self) -> None:
        """Commit the open transaction and release the connection."""
        if self.session.closed:
            return
        try:
            self.coordinator.close()
        finally:
            self._conn.close()
            self.session.teardown()
        logger.debug("Closed %s", self.path)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def create_tables(self, data_type: Optional[str] = None) -> None:
        """Create the container tables that do not exist yet.

        Parameters
        ----------
        data_type : str, optional
            BPI column type of ``Frame_Scans``: double, float, short or int
            (default from ``writer.scan_data_type``).
        """
        self._require_open()
        data_type = data_type or self.config.writer.scan_data_type

        with storage_guard("create_tables", path=self.path):
            schema.create_global_params_table(self._conn)
            schema.create_frame_params_tables(self._conn)
            schema.create_frame_scans_table(self._conn, data_type)
            if schema.create_version_info_table(self._conn):
                self.add_version_info(self.config.software.name, self.config.software.version)

        if self.create_legacy_tables:
            # Existing EAV content is copied into newly created legacy tables
            self.add_legacy_parameter_tables()

        self.coordinator.flush(force=True)

    def add_version_info(self, software_name: str, software_version: str) -> None:
        """Append a row to ``Version_Info`` for the calling software."""
        self._conn.execute(
            f"INSERT INTO {schema.VERSION_INFO_TABLE} "
            "(File_Version, Calling_Assembly_Name, Calling_Assembly_Version) VALUES (?, ?, ?)",
            (schema.FILE_FORMAT_VERSION, software_name, str(software_version)),
        )

    def add_legacy_parameter_tables(self) -> bool:
        """Create and back-fill ``Global_Parameters`` / ``Frame_Parameters``.

        Does nothing if the legacy tables already exist.
        """
        self._require_open()
        added = self.legacy.migrate_modern_to_legacy(self.reader, self.coordinator)
        if schema.has_legacy_tables(self._conn):
            self.create_legacy_tables = True
            self.store.mirror = self.legacy
        return added

    def legacy_state(self) -> LegacyState:
        return self.legacy.state()

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    @property
    def global_params(self) -> GlobalParams:
        return self.store.global_params

    def frame_params(self, frame_num: int) -> FrameParams:
        return self.store.frame_params(frame_num)

    def add_update_global_param(self, key: GlobalParamKeyType, value) -> ParamValue:
        self._require_open()
        return self.store.add_update_global_param(key, value)

    def insert_global(self, values: Mapping[GlobalParamKeyType, object]) -> None:
        self._require_open()
        self.store.insert_global(values)

    def add_update_frame_param(self, frame_num: int, key: FrameParamKeyType, value) -> ParamValue:
        self._require_open()
        return self.store.add_update_frame_param(frame_num, key, value)

    def insert_frame(self, frame_num: int, values: Mapping[FrameParamKeyType, object]) -> FrameParams:
        self._require_open()
        return self.store.insert_frame(frame_num, values)

    def assure_all_frames_have_param(self, key: FrameParamKeyType, value,
                                     frame_range: Optional[Tuple[int, int]] = None) -> int:
        self._require_open()
        return self.store.assure_all_frames_have_param(key, value, frame_range)

    def validate_key(self, key: FrameParamKeyType) -> None:
        self.store.validate_key(key)

    # ------------------------------------------------------------------
    # Scans
    # ------------------------------------------------------------------

    def insert_scan(self, frame_num: int, scan_num: int, intensities, bin_width: float,
                    frame_params: Optional[FrameParams] = None) -> int:
        self._require_open()
        return self.scan_writer.insert_scan(frame_num, scan_num, intensities, bin_width, frame_params)

    def insert_scan_sparse(self, frame_num: int, scan_num: int, bin_intensities: BinIntensityPairs,
                           bin_width: float, frame_params: Optional[FrameParams] = None) -> int:
        self._require_open()
        return self.scan_writer.insert_scan_sparse(frame_num, scan_num, bin_intensities,
                                                   bin_width, frame_params)

    # ------------------------------------------------------------------
    # Frame maintenance
    # ------------------------------------------------------------------

    def _decrement_frame_count(self, frames_removed: int = 1) -> None:
        if frames_removed < 1:
            return
        row = self._conn.execute(
            f"SELECT ParamValue FROM {schema.GLOBAL_PARAMS_TABLE} WHERE ParamID = ?",
            (int(GlobalParamKeyType.NUM_FRAMES),),
        ).fetchone()

        num_frames = 0
        if row is not None:
            try:
                num_frames = max(ParamValue.from_text(ParamDataType.INT, row[0]).as_int()
                                 - frames_removed, 0)
            except InvalidArgument:
                logger.warning("Stored NumFrames %r is not an integer; resetting to 0", row[0])
        self.store.add_update_global_param(GlobalParamKeyType.NUM_FRAMES, num_frames)

    def delete_frame(self, frame_num: int, update_global: bool = False) -> None:
        """Delete one frame's scans and parameters.

        Parameters
        ----------
        frame_num : int
            Frame to delete.
        update_global : bool
            Decrement ``NumFrames`` (floored at 0).
        """
        self._require_open()
        with storage_guard("delete_frame", frame_num=frame_num):
            self._conn.execute(f"DELETE FROM {schema.FRAME_SCANS_TABLE} WHERE FrameNum = ?",
                               (frame_num,))
            self._conn.execute(f"DELETE FROM {schema.FRAME_PARAMS_TABLE} WHERE FrameNum = ?",
                               (frame_num,))
            self.store.mirror.on_frames_deleted([frame_num])
            if update_global:
                self._decrement_frame_count()

        self.session.forget_frames([frame_num])
        self.coordinator.flush()

    def delete_frames(self, frame_nums: Iterable[int], update_global: bool = False) -> None:
        """Delete several frames, including their legacy rows, and commit."""
        self._require_open()
        frame_nums = sorted(set(frame_nums))
        if not frame_nums:
            return

        placeholders = ", ".join("?" for _ in frame_nums)
        with storage_guard("delete_frames", frame_count=len(frame_nums)):
            self._conn.execute(
                f"DELETE FROM {schema.FRAME_SCANS_TABLE} WHERE FrameNum IN ({placeholders})", frame_nums)
            self._conn.execute(
                f"DELETE FROM {schema.FRAME_PARAMS_TABLE} WHERE FrameNum IN ({placeholders})", frame_nums)
            self.store.mirror.on_frames_deleted(frame_nums)
            if update_global:
                self._decrement_frame_count(len(frame_nums))

        self.session.forget_frames(frame_nums)
        self.coordinator.flush(force=True)

    def delete_frame_scans(self, frame_num: int, update_scan_count: bool = False) -> None:
        """Delete all scans of one frame, optionally setting its ``Scans`` to 0."""
        self._require_open()
        with storage_guard("delete_frame_scans", frame_num=frame_num):
            self._conn.execute(f"DELETE FROM {schema.FRAME_SCANS_TABLE} WHERE FrameNum = ?",
                               (frame_num,))
            if update_scan_count:
                self._conn.execute(
                    f"UPDATE {schema.FRAME_PARAMS_TABLE} SET ParamValue = '0' "
                    "WHERE FrameNum = ? AND ParamID = ?",
                    (frame_num, int(FrameParamKeyType.SCANS)),
                )
                self.store.mirror.on_frame_scans_cleared([frame_num])

        self.session.frame_params.pop(frame_num, None)
        self.coordinator.flush()

    def delete_all_frame_scans(self, frame_type: int, update_scan_count: bool = False,
                               shrink: bool = False) -> None:
        """Delete the scans of every frame of ``frame_type``.

        The transaction is committed afterwards; with ``shrink`` the file is
        vacuumed before the next batch opens.
        """
        self._require_open()
        frames_of_type = (
            f"SELECT DISTINCT FrameNum FROM {schema.FRAME_PARAMS_TABLE} "
            "WHERE ParamID = ? AND ParamValue = ?"
        )
        type_args = (int(FrameParamKeyType.FRAME_TYPE), str(int(frame_type)))

        with storage_guard("delete_all_frame_scans", frame_type=frame_type):
            frame_nums = [row[0] for row in self._conn.execute(frames_of_type, type_args)]
            self._conn.execute(
                f"DELETE FROM {schema.FRAME_SCANS_TABLE} WHERE FrameNum IN ({frames_of_type})",
                type_args,
            )
            if update_scan_count:
                self._conn.execute(
                    f"UPDATE {schema.FRAME_PARAMS_TABLE} SET ParamValue = '0' "
                    f"WHERE ParamID = ? AND FrameNum IN ({frames_of_type})",
                    (int(FrameParamKeyType.SCANS), *type_args),
                )
                self.store.mirror.on_frame_scans_cleared(frame_nums)

        self.session.frame_params.clear()
        with self.coordinator.outside_transaction() as conn:
            if shrink:
                with storage_guard("vacuum", path=self.path):
                    conn.execute("VACUUM")
        logger.info("Deleted scans of %d frames of type %s", len(frame_nums), frame_type)

    def renumber_frames(self) -> int:
        """Renumber frames to 1..n in ascending order, closing any gaps.

        Returns
        -------
        int
            Number of frames whose number changed.
        """
        self._require_open()
        frame_nums = self.store.frame_numbers()
        old_to_new = {old: new for new, old in enumerate(frame_nums, start=1) if old != new}
        if not old_to_new:
            return 0

        with storage_guard("renumber_frames", frame_count=len(old_to_new)):
            # Ascending order never collides because every frame moves down
            for old, new in sorted(old_to_new.items()):
                self._conn.execute(
                    f"UPDATE {schema.FRAME_PARAMS_TABLE} SET FrameNum = ? WHERE FrameNum = ?", (new, old))
                if schema.table_exists(self._conn, schema.FRAME_SCANS_TABLE):
                    self._conn.execute(
                        f"UPDATE {schema.FRAME_SCANS_TABLE} SET FrameNum = ? WHERE FrameNum = ?", (new, old))
            self.store.mirror.on_frames_renumbered(old_to_new)

            for shift, first, last in _shift_groups(old_to_new):
                self.post_log_entry(
                    "Normal",
                    f"Decremented frame number by {shift} for frames {first} through {last}",
                    "ShiftFramesInBatch",
                )

        self.session.frame_params.clear()
        self.coordinator.flush(force=True)
        logger.info("Renumbered %d frames", len(old_to_new))
        return len(old_to_new)

    # ------------------------------------------------------------------
    # Frame parameter helpers
    # ------------------------------------------------------------------

    def update_calibration_coefficients(self, frame_num: int, slope: float, intercept: float,
                                        is_auto_calibrating: bool = False) -> None:
        self._require_open()
        self.store.add_update_frame_param(frame_num, FrameParamKeyType.CALIBRATION_SLOPE, slope)
        self.store.add_update_frame_param(frame_num, FrameParamKeyType.CALIBRATION_INTERCEPT, intercept)
        if is_auto_calibrating:
            self.store.add_update_frame_param(frame_num, FrameParamKeyType.CALIBRATION_DONE, 1)

    def update_all_calibration_coefficients(self, slope: float, intercept: float,
                                            is_auto_calibrating: bool = False,
                                            manually_calibrating: bool = False) -> None:
        """Set slope and intercept on every frame.

        ``CalibrationDone`` becomes 1 when auto-calibrating and -1 when
        calibrated manually; it is left alone otherwise.
        """
        self._require_open()
        calibration_done = None
        if is_auto_calibrating:
            calibration_done = 1
        elif manually_calibrating:
            calibration_done = -1

        slope_text = ParamValue.coerce(ParamDataType.DOUBLE, slope).to_text()
        intercept_text = ParamValue.coerce(ParamDataType.DOUBLE, intercept).to_text()

        with storage_guard("update_all_calibration_coefficients"):
            if schema.table_exists(self._conn, schema.LEGACY_FRAME_PARAMETERS_TABLE):
                sql = (f"UPDATE {schema.LEGACY_FRAME_PARAMETERS_TABLE} "
                       "SET CalibrationSlope = ?, CalibrationIntercept = ?")
                args = [float(slope), float(intercept)]
                if calibration_done is not None:
                    self.legacy.ensure_column("CalibrationDone")
                    sql += ", CalibrationDone = ?"
                    args.append(calibration_done)
                self._conn.execute(sql, args)

            if not schema.table_exists(self._conn, schema.FRAME_PARAMS_TABLE):
                return

            updates = [(FrameParamKeyType.CALIBRATION_SLOPE, slope_text),
                       (FrameParamKeyType.CALIBRATION_INTERCEPT, intercept_text)]
            if calibration_done is not None:
                updates.append((FrameParamKeyType.CALIBRATION_DONE, str(calibration_done)))

            for key, text in updates:
                self._conn.execute(
                    f"UPDATE {schema.FRAME_PARAMS_TABLE} SET ParamValue = ? WHERE ParamID = ?",
                    (text, int(key)),
                )
                self.store.assure_all_frames_have_param(key, text)

        self.session.frame_params.clear()
        self.coordinator.flush()

    def update_frame_scan_count(self, frame_num: int, num_scans: int) -> None:
        self.add_update_frame_param(frame_num, FrameParamKeyType.SCANS, num_scans)

    def update_frame_type(self, start_frame: int, end_frame: int) -> None:
        """Set frame types to 1 for every fourth frame and 2 otherwise."""
        for frame_num in range(start_frame, end_frame + 1):
            frame_type = 1 if frame_num % 4 == 0 else 2
            self.add_update_frame_param(frame_num, FrameParamKeyType.FRAME_TYPE, frame_type)

    def update_frame_parameter_by_name(self, frame_num: int, name: str, value) -> ParamValue:
        """Add or update a frame parameter given its name, e.g. ``"CalibrationSlope"``.

        Raises
        ------
        UnknownKey
            If no frame parameter has that name.
        """
        key = FRAME_PARAM_CATALOG.get_by_name(name)
        return self.add_update_frame_param(frame_num, key, value)

    # ------------------------------------------------------------------
    # Global statistics
    # ------------------------------------------------------------------

    def update_global_stats(self) -> None:
        """Refresh ``NumFrames`` and ``PrescanTOFPulses`` from the stored data.

        ``NumFrames`` becomes the number of distinct frames. ``PrescanTOFPulses``
        tracks the largest scan number, rounded up to the next multiple of 10
        (up to 100 scans) or to two significant digits; an existing larger value
        is kept unless it is more than 5% off.

        Raises
        ------
        SchemaMissing
            If ``Frame_Params`` does not exist.
        """
        self._require_open()
        require(schema.table_exists(self._conn, schema.FRAME_PARAMS_TABLE),
                "UIMF file does not have table Frame_Params; use create_tables to add tables",
                error=SchemaMissing)

        frame_count = self.store.distinct_frame_count()
        self.store.add_update_global_param(GlobalParamKeyType.NUM_FRAMES, frame_count)

        if not schema.table_exists(self._conn, schema.FRAME_SCANS_TABLE):
            return
        max_scan = self._conn.execute(
            f"SELECT MAX(ScanNum) FROM {schema.FRAME_SCANS_TABLE}").fetchone()[0]
        if max_scan is None or max_scan < 1:
            return

        existing = self.store.global_params.get(GlobalParamKeyType.PRESCAN_TOF_PULSES)
        existing = existing.as_int() if existing is not None else 0
        if existing > 0 and existing > max_scan:
            update = (existing - frame_count) / float(existing) > PRESCAN_TOF_PULSES_TOLERANCE
        else:
            update = True

        if update:
            self.store.add_update_global_param(GlobalParamKeyType.PRESCAN_TOF_PULSES,
                                               round_up_scan_count(max_scan))

    # ------------------------------------------------------------------
    # Auxiliary tables
    # ------------------------------------------------------------------

    def post_log_entry(self, entry_type: str = "Normal", message: str = "",
                       posted_by: str = "") -> None:
        """Append a row to ``Log_Entries``, creating the table if needed."""
        self._require_open()
        with storage_guard("post_log_entry"):
            schema.create_log_entries_table(self._conn)
            self._conn.execute(
                f"INSERT INTO {schema.LOG_ENTRIES_TABLE} (Posting_Time, Posted_By, Type, Message) "
                "VALUES (datetime('now'), ?, ?, ?)",
                (posted_by or "", entry_type or "Normal", message or ""),
            )

    def write_file_to_table(self, table_name: str, payload: bytes) -> None:
        """Store ``payload`` as the only row of ``table_name`` (``FileText BLOB``)."""
        self._require_open()
        require(table_name.isascii() and table_name.isidentifier(), "Invalid table name", table_name=table_name)
        with storage_guard("write_file_to_table", table_name=table_name):
            if schema.table_exists(self._conn, table_name):
                self._conn.execute(f"DELETE FROM {table_name}")
            else:
                self._conn.execute(f"CREATE TABLE {table_name} (FileText BLOB)")
            self._conn.execute(f"INSERT INTO {table_name} VALUES (?)", (sqlite3.Binary(payload),))

    def create_bin_centric_tables(self, builder: BinCentricIndexBuilder, working_dir: str = "") -> bool:
        """Build ``Bin_Intensities`` with ``builder`` unless it already exists."""
        self._require_open()
        if schema.table_exists(self._conn, schema.BIN_INTENSITIES_TABLE):
            logger.debug("%s already exists; skipping", schema.BIN_INTENSITIES_TABLE)
            return False
        self.coordinator.flush(force=True)
        builder.build_bin_centric_index(self._conn, working_dir)
        return True

    def remove_bin_centric_tables(self) -> bool:
        """Drop ``Bin_Intensities``; updates to scans leave it stale."""
        self._require_open()
        if not schema.table_exists(self._conn, schema.BIN_INTENSITIES_TABLE):
            return False
        with storage_guard("remove_bin_centric_tables"):
            self._conn.execute(f"DROP TABLE {schema.BIN_INTENSITIES_TABLE}")
        self.coordinator.flush()
        return True


def round_up_scan_count(max_scan: int) -> int:
    """Round a scan count up to a multiple of 10, or to two significant digits above 100.

    >>> round_up_scan_count(47), round_up_scan_count(360), round_up_scan_count(1234)
    (50, 360, 1300)
    """
    if max_scan <= 100:
        divisor = 10
    else:
        divisor = 10 ** (int(math.ceil(math.log10(max_scan))) - 2)
    return int(math.ceil(max_scan / float(divisor)) * divisor)


def _shift_groups(old_to_new: Mapping[int, int]) -> List[Tuple[int, int, int]]:
    """(shift, first old frame, last old frame) for runs sharing the same shift."""
    groups = []
    for old, new in sorted(old_to_new.items()):
        shift = old - new
        if groups and groups[-1][0] == shift:
            groups[-1][2] = old
        else:
            groups.append([shift, old, old])
    return [tuple(g) for g in groups]
