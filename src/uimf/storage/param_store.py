"""Entity-attribute-value store for global and frame parameters.

SQLite has no merge statement usable across the versions this format must
support, so every write is an ``UPDATE`` followed by an ``INSERT`` when no row
matched. At most one row exists per global key and per (frame, key).
"""

import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterable, List, Mapping, Optional, Tuple

from uimf.contracts import SchemaMissing, UnknownKey, require, storage_guard
from uimf.params import (
    FRAME_PARAM_CATALOG,
    GLOBAL_PARAM_CATALOG,
    FrameParamKeyType,
    FrameParams,
    GlobalParamKeyType,
    GlobalParams,
    ParamCatalog,
    ParamValue,
)
from uimf.storage import schema
from uimf.storage.legacy_mirror import NullMirror, ParamMirror
from uimf.storage.reader import UimfParamReader
from uimf.storage.session import WriterSession
from uimf.storage.transaction import TransactionCoordinator

logger = logging.getLogger(__name__)


class ParamStore:
    """Maintains ``Global_Params``, ``Frame_Param_Keys`` and ``Frame_Params``.

    Parameters
    ----------
    conn : sqlite3.Connection
        Writer connection.
    session : WriterSession
        Owns the key cache and parameter caches.
    coordinator : TransactionCoordinator
        Flush policy applied before each mutation.
    mirror : ParamMirror, optional
        Receives every successful write (default: no mirroring).
    """

    def __init__(self, conn: sqlite3.Connection, session: WriterSession,
                 coordinator: TransactionCoordinator, mirror: Optional[ParamMirror] = None):
        self._conn = conn
        self._session = session
        self._coordinator = coordinator
        self._mirror = mirror or NullMirror()
        self._reader = UimfParamReader(conn)

    @property
    def mirror(self) -> ParamMirror:
        return self._mirror

    @mirror.setter
    def mirror(self, mirror: ParamMirror) -> None:
        self._mirror = mirror or NullMirror()

    @contextmanager
    def mirroring_suspended(self):
        """Temporarily route writes to a no-op mirror."""
        saved = self._mirror
        self._mirror = NullMirror()
        try:
            yield
        finally:
            self._mirror = saved

    # ------------------------------------------------------------------
    # Global parameters
    # ------------------------------------------------------------------

    @property
    def global_params(self) -> GlobalParams:
        return self._session.global_params

    def refresh_global_params(self) -> GlobalParams:
        """Reload the global parameter cache from the container."""
        self._session.global_params = self._reader.get_global_params()
        return self._session.global_params

    def add_update_global_param(self, key: GlobalParamKeyType, value) -> ParamValue:
        """Add or update one global parameter.

        Parameters
        ----------
        key : GlobalParamKeyType
            Parameter key.
        value : int, float, str, datetime or ParamValue
            Converted to the key's declared data type.

        Returns
        -------
        ParamValue
            The stored value.

        Raises
        ------
        SchemaMissing
            If ``Global_Params`` does not exist.
        InvalidArgument
            If the value is not convertible to the declared type.
        """
        self._coordinator.flush()

        key = _global_key(key)
        require(schema.table_exists(self._conn, schema.GLOBAL_PARAMS_TABLE),
                "The Global_Params table does not exist; call create_tables first",
                error=SchemaMissing, key=key.name)

        param_def = GLOBAL_PARAM_CATALOG.get(key)
        tagged = ParamValue.coerce(param_def.data_type, value)
        text = tagged.to_text()

        with storage_guard("add_update_global_param", key=key.name):
            cursor = self._conn.execute(
                f"UPDATE {schema.GLOBAL_PARAMS_TABLE} SET ParamValue = ? WHERE ParamID = ?",
                (text, int(key)),
            )
            if cursor.rowcount == 0:
                self._conn.execute(
                    f"INSERT INTO {schema.GLOBAL_PARAMS_TABLE} "
                    "(ParamID, ParamName, ParamValue, ParamDataType, ParamDescription) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (int(key), param_def.name, text, param_def.data_type.value, param_def.description),
                )
            self._mirror.on_global_param(key, tagged)

        self._session.global_params.set(key, tagged)
        return tagged

    def insert_global(self, values: Mapping[GlobalParamKeyType, object]) -> None:
        for key, value in values.items():
            self.add_update_global_param(key, value)

    # ------------------------------------------------------------------
    # Frame parameter keys
    # ------------------------------------------------------------------

    def validate_key(self, key: FrameParamKeyType) -> None:
        """Make sure ``Frame_Param_Keys`` has an entry for ``key``."""
        self.validate_keys([key])

    def validate_keys(self, keys: Iterable[FrameParamKeyType]) -> None:
        """Register any keys missing from ``Frame_Param_Keys``.

        The catalog table is only read when at least one key is unknown to
        the session's key cache.
        """
        keys = [_frame_key(k) for k in keys]
        known = self._session.frame_param_keys
        if all(int(k) in known for k in keys):
            return

        require(schema.table_exists(self._conn, schema.FRAME_PARAM_KEYS_TABLE),
                "The Frame_Param_Keys table does not exist; call create_tables first",
                error=SchemaMissing)

        with storage_guard("validate_frame_param_keys"):
            known.clear()
            known.update(ParamCatalog.registered_keys(self._conn))
            for key in keys:
                if int(key) not in known:
                    FRAME_PARAM_CATALOG.register(self._conn, key)
                    known.add(int(key))

    # ------------------------------------------------------------------
    # Frame parameters
    # ------------------------------------------------------------------

    def _require_frame_table(self, **context) -> None:
        require(schema.table_exists(self._conn, schema.FRAME_PARAMS_TABLE),
                "The Frame_Params table does not exist; call create_tables first",
                error=SchemaMissing, **context)

    def _upsert_frame_value(self, frame_num: int, key: FrameParamKeyType, text: str) -> None:
        cursor = self._conn.execute(
            f"UPDATE {schema.FRAME_PARAMS_TABLE} SET ParamValue = ? WHERE FrameNum = ? AND ParamID = ?",
            (text, frame_num, int(key)),
        )
        if cursor.rowcount == 0:
            self._conn.execute(
                f"INSERT INTO {schema.FRAME_PARAMS_TABLE} (FrameNum, ParamID, ParamValue) VALUES (?, ?, ?)",
                (frame_num, int(key), text),
            )

    def add_update_frame_param(self, frame_num: int, key: FrameParamKeyType, value) -> ParamValue:
        """Add or update one parameter of one frame.

        Raises
        ------
        InvalidArgument
            If ``frame_num`` < 1 or the value is not convertible.
        SchemaMissing
            If ``Frame_Params`` does not exist.
        """
        self._coordinator.flush()

        key = _frame_key(key)
        require(frame_num >= 1, "Frame numbers start at 1", frame_num=frame_num)
        self._require_frame_table(frame_num=frame_num, key=key.name)
        self.validate_key(key)

        tagged = ParamValue.coerce(FRAME_PARAM_CATALOG.get(key).data_type, value)

        with storage_guard("add_update_frame_param", frame_num=frame_num, key=key.name):
            self._upsert_frame_value(frame_num, key, tagged.to_text())
            self._mirror.on_frame_param(frame_num, key, tagged)

        cached = self._session.frame_params.get(frame_num)
        if cached is not None:
            cached.set(key, tagged)
        return tagged

    def insert_frame(self, frame_num: int, values: Mapping[FrameParamKeyType, object]) -> FrameParams:
        """Store all parameters of a frame.

        Existing entries for the same (frame, key) are overwritten.
        """
        # Commit the previous frame if the flush interval has passed
        self._coordinator.flush()

        require(frame_num >= 1, "Frame numbers start at 1", frame_num=frame_num)
        self._require_frame_table(frame_num=frame_num)

        frame_params = FrameParams(frame_num, values)
        self.validate_keys(frame_params.keys())

        with storage_guard("insert_frame", frame_num=frame_num):
            for key, tagged in frame_params.items():
                self._upsert_frame_value(frame_num, key, tagged.to_text())
            self._mirror.on_frame_inserted(frame_num, dict(frame_params.items()))

        self._session.frame_params.pop(frame_num, None)
        return frame_params

    def assure_all_frames_have_param(self, key: FrameParamKeyType, value,
                                     frame_range: Optional[Tuple[int, int]] = None) -> int:
        """Add ``value`` for every frame that does not have ``key`` yet.

        Parameters
        ----------
        key : FrameParamKeyType
            Parameter to fill in.
        value : object
            Default value, converted to the key's declared type.
        frame_range : (int, int), optional
            Inclusive (start, end) frame bounds; ignored when end <= 0.

        Returns
        -------
        int
            Number of rows added.
        """
        self._coordinator.flush()

        key = _frame_key(key)
        self._require_frame_table(key=key.name)
        self.validate_key(key)
        tagged = ParamValue.coerce(FRAME_PARAM_CATALOG.get(key).data_type, value)

        missing_sql = (
            f"FROM {schema.FRAME_PARAMS_TABLE} "
            f"WHERE FrameNum NOT IN (SELECT FrameNum FROM {schema.FRAME_PARAMS_TABLE} WHERE ParamID = ?)"
        )
        params: List = [int(key)]
        if frame_range is not None and frame_range[1] > 0:
            missing_sql += " AND FrameNum >= ? AND FrameNum <= ?"
            params.extend([frame_range[0], frame_range[1]])

        with storage_guard("assure_all_frames_have_param", key=key.name):
            frame_nums = []
            if self._mirror.enabled:
                frame_nums = [row[0] for row in self._conn.execute(
                    f"SELECT DISTINCT FrameNum {missing_sql}", params).fetchall()]

            cursor = self._conn.execute(
                f"INSERT INTO {schema.FRAME_PARAMS_TABLE} (FrameNum, ParamID, ParamValue) "
                f"SELECT DISTINCT FrameNum, ?, ? {missing_sql}",
                [int(key), tagged.to_text(), *params],
            )
            rows_added = cursor.rowcount
            if frame_nums:
                self._mirror.on_param_backfilled(key, tagged, frame_nums)

        if rows_added > 0:
            self._session.frame_params.clear()
            logger.debug("Added %s to %d frames", key.name, rows_added)
        return rows_added

    def frame_params(self, frame_num: int) -> FrameParams:
        """Cached parameters of ``frame_num`` (empty aggregate if it has none)."""
        cached = self._session.frame_params.get(frame_num)
        if cached is None:
            cached = self._reader.get_frame_params(frame_num) or FrameParams(frame_num)
            self._session.frame_params[frame_num] = cached
        return cached

    def distinct_frame_count(self) -> int:
        self._require_frame_table()
        return self._conn.execute(
            f"SELECT COUNT(DISTINCT FrameNum) FROM {schema.FRAME_PARAMS_TABLE}").fetchone()[0]

    def frame_numbers(self) -> List[int]:
        self._require_frame_table()
        cursor = self._conn.execute(
            f"SELECT DISTINCT FrameNum FROM {schema.FRAME_PARAMS_TABLE} ORDER BY FrameNum")
        return [row[0] for row in cursor.fetchall()]


def _global_key(key) -> GlobalParamKeyType:
    try:
        key = GlobalParamKeyType(key)
    except ValueError:
        raise UnknownKey(f"Unknown global parameter key {key!r}", key=key) from None
    require(key != GlobalParamKeyType.UNKNOWN, "Cannot store the UNKNOWN global key")
    return key


def _frame_key(key) -> FrameParamKeyType:
    try:
        key = FrameParamKeyType(key)
    except ValueError:
        raise UnknownKey(f"Unknown frame parameter key {key!r}", key=key) from None
    require(key != FrameParamKeyType.UNKNOWN, "Cannot store the UNKNOWN frame key")
    return key
