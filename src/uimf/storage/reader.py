"""Read-side access to stored parameters and scans.

Used by the legacy migrations and by tests. Parameters come from the EAV
tables when they exist and from the legacy fixed-column tables otherwise.
This is not a query engine.
"""

import logging
import sqlite3
from typing import Dict, Optional

import numpy as np
import pandas as pd

from uimf.codec import IntensityConverter
from uimf.contracts import InvalidArgument, SchemaMissing, require
from uimf.params import (
    FRAME_PARAM_CATALOG,
    GLOBAL_PARAM_CATALOG,
    FrameParamKeyType,
    FrameParams,
    FrameType,
    GlobalParamKeyType,
    GlobalParams,
    ParamValue,
)
from uimf.storage import schema
from uimf.storage.legacy_mapping import (
    LEGACY_FRAME_COLUMNS,
    LEGACY_GLOBAL_COLUMNS,
    from_legacy_column_value,
)

logger = logging.getLogger(__name__)

_FRAME_KEY_IDS = {int(k) for k in FrameParamKeyType if k != FrameParamKeyType.UNKNOWN}
_GLOBAL_KEY_IDS = {int(k) for k in GlobalParamKeyType if k != GlobalParamKeyType.UNKNOWN}


class UimfParamReader:
    """Reads parameters and scans through an existing connection.

    Parameters
    ----------
    conn : sqlite3.Connection
        Connection to the container (may be the writer's own connection, in
        which case uncommitted writes are visible).
    """

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    # ------------------------------------------------------------------
    # Global parameters
    # ------------------------------------------------------------------

    def get_global_params(self) -> GlobalParams:
        if schema.table_exists(self._conn, schema.GLOBAL_PARAMS_TABLE):
            return self._read_global_params()
        if schema.table_exists(self._conn, schema.LEGACY_GLOBAL_PARAMETERS_TABLE):
            return self._read_legacy_global_params()
        return GlobalParams()

    def _read_global_params(self) -> GlobalParams:
        params = GlobalParams()
        cursor = self._conn.execute(
            f"SELECT ParamID, ParamValue FROM {schema.GLOBAL_PARAMS_TABLE}")
        for param_id, text in cursor.fetchall():
            if param_id not in _GLOBAL_KEY_IDS:
                logger.debug("Ignoring unrecognized global ParamID %s", param_id)
                continue
            key = GlobalParamKeyType(param_id)
            data_type = GLOBAL_PARAM_CATALOG.get(key).data_type
            params.set(key, ParamValue.from_text(data_type, text))
        return params

    def _read_legacy_global_params(self) -> GlobalParams:
        params = GlobalParams()
        cursor = self._conn.execute(f"SELECT * FROM {schema.LEGACY_GLOBAL_PARAMETERS_TABLE}")
        row = cursor.fetchone()
        if row is None:
            return params
        names = [d[0] for d in cursor.description]
        for column, raw in zip(names, row):
            key = _lookup_column(LEGACY_GLOBAL_COLUMNS, column)
            if key is None:
                continue
            self._set_legacy_value(params, key, column, raw, GLOBAL_PARAM_CATALOG)
        return params

    # ------------------------------------------------------------------
    # Frame parameters
    # ------------------------------------------------------------------

    def get_master_frame_list(self) -> Dict[int, FrameType]:
        """Frame number -> frame type for every frame, ordered by frame number."""
        if schema.table_exists(self._conn, schema.FRAME_PARAMS_TABLE):
            frames = {row[0]: FrameType.MS1 for row in self._conn.execute(
                f"SELECT DISTINCT FrameNum FROM {schema.FRAME_PARAMS_TABLE} ORDER BY FrameNum")}
            cursor = self._conn.execute(
                f"SELECT FrameNum, ParamValue FROM {schema.FRAME_PARAMS_TABLE} WHERE ParamID = ?",
                (int(FrameParamKeyType.FRAME_TYPE),),
            )
            for frame_num, text in cursor.fetchall():
                frames[frame_num] = _frame_type(text)
            return frames

        if schema.table_exists(self._conn, schema.LEGACY_FRAME_PARAMETERS_TABLE):
            cursor = self._conn.execute(
                f"SELECT FrameNum, FrameType FROM {schema.LEGACY_FRAME_PARAMETERS_TABLE} ORDER BY FrameNum")
            return {frame_num: _frame_type(raw) for frame_num, raw in cursor.fetchall()}

        return {}

    def get_frame_params(self, frame_num: int) -> Optional[FrameParams]:
        """Parameters of one frame, or None if the frame has no entries."""
        if schema.table_exists(self._conn, schema.FRAME_PARAMS_TABLE):
            return self._read_frame_params(frame_num)
        if schema.table_exists(self._conn, schema.LEGACY_FRAME_PARAMETERS_TABLE):
            return self._read_legacy_frame_params(frame_num)
        return None

    def _read_frame_params(self, frame_num: int) -> Optional[FrameParams]:
        cursor = self._conn.execute(
            f"SELECT ParamID, ParamValue FROM {schema.FRAME_PARAMS_TABLE} WHERE FrameNum = ?",
            (frame_num,),
        )
        rows = cursor.fetchall()
        if not rows:
            return None
        params = FrameParams(frame_num)
        for param_id, text in rows:
            if param_id not in _FRAME_KEY_IDS:
                logger.debug("Ignoring unrecognized frame ParamID %s", param_id)
                continue
            key = FrameParamKeyType(param_id)
            data_type = FRAME_PARAM_CATALOG.get(key).data_type
            params.set(key, ParamValue.from_text(data_type, text))
        return params

    def _read_legacy_frame_params(self, frame_num: int) -> Optional[FrameParams]:
        cursor = self._conn.execute(
            f"SELECT * FROM {schema.LEGACY_FRAME_PARAMETERS_TABLE} WHERE FrameNum = ?",
            (frame_num,),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        names = [d[0] for d in cursor.description]
        params = FrameParams(frame_num)
        for column, raw in zip(names, row):
            key = _lookup_column(LEGACY_FRAME_COLUMNS, column)
            if key is None:
                continue
            self._set_legacy_value(params, key, column, raw, FRAME_PARAM_CATALOG)
        return params

    @staticmethod
    def _set_legacy_value(params, key, column, raw, catalog) -> None:
        value = from_legacy_column_value(column, raw)
        if value is None:
            return
        data_type = catalog.get(key).data_type
        try:
            params.set(key, ParamValue.coerce(data_type, value))
        except InvalidArgument as e:
            logger.warning("Skipping legacy column %s with unconvertible value %r: %s",
                           column, raw, e)

    # ------------------------------------------------------------------
    # Scans
    # ------------------------------------------------------------------

    def get_frame_scans(self, frame_num: int) -> pd.DataFrame:
        """Scan rows (without blobs) of one frame as a DataFrame."""
        require(schema.table_exists(self._conn, schema.FRAME_SCANS_TABLE),
                f"Table {schema.FRAME_SCANS_TABLE} does not exist", error=SchemaMissing)
        query = (f"SELECT FrameNum, ScanNum, NonZeroCount, BPI, BPI_MZ, TIC "
                 f"FROM {schema.FRAME_SCANS_TABLE} WHERE FrameNum = ? ORDER BY ScanNum")
        return pd.read_sql_query(query, self._conn, params=(frame_num,))

    def get_spectrum(self, frame_num: int, scan_num: int,
                     converter: IntensityConverter = None) -> np.ndarray:
        """Decoded intensities of one scan, sized to the global bin count.

        An all-zero array is returned for scans that were never stored.
        """
        converter = converter or IntensityConverter()
        bins = self.get_global_params().bins
        row = self._conn.execute(
            f"SELECT Intensities FROM {schema.FRAME_SCANS_TABLE} WHERE FrameNum = ? AND ScanNum = ?",
            (frame_num, scan_num),
        ).fetchone()
        if row is None or row[0] is None:
            return np.zeros(bins, dtype=np.int64)
        return converter.from_blob(row[0], bins)


def _lookup_column(mapping, column: str):
    if column in mapping:
        return mapping[column]
    lower = column.lower()
    for name, key in mapping.items():
        if name.lower() == lower:
            return key
    return None


def _frame_type(raw) -> FrameType:
    try:
        value = int(float(raw))
    except (TypeError, ValueError):
        return FrameType.MS1
    # 0 marked MS1 frames in older files
    if value == 0:
        return FrameType.MS1
    try:
        return FrameType(value)
    except ValueError:
        logger.warning("Unrecognized frame type %s; treating as MS1", raw)
        return FrameType.MS1
