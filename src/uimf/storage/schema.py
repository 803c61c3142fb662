"""Table names, column layouts and DDL for the container.

Column layouts are kept as ``(name, sql_type)`` lists so that the same
definitions drive ``CREATE TABLE`` statements and the lazy addition of
columns to legacy tables written by older software.
"""

import logging
import sqlite3
from typing import List, Sequence, Tuple

from uimf.contracts import InvalidArgument, require

logger = logging.getLogger(__name__)

GLOBAL_PARAMS_TABLE = "Global_Params"
FRAME_PARAM_KEYS_TABLE = "Frame_Param_Keys"
FRAME_PARAMS_TABLE = "Frame_Params"
FRAME_SCANS_TABLE = "Frame_Scans"
VERSION_INFO_TABLE = "Version_Info"
LOG_ENTRIES_TABLE = "Log_Entries"
BIN_INTENSITIES_TABLE = "Bin_Intensities"

LEGACY_GLOBAL_PARAMETERS_TABLE = "Global_Parameters"
LEGACY_FRAME_PARAMETERS_TABLE = "Frame_Parameters"

FRAME_PARAMS_VIEW = "V_Frame_Params"

# Major.minor version of the file layout written to Version_Info
FILE_FORMAT_VERSION = "3.7"

Fields = List[Tuple[str, str]]

GLOBAL_PARAMS_FIELDS: Fields = [
    ("ParamID", "INTEGER NOT NULL"),
    ("ParamName", "TEXT NOT NULL"),
    ("ParamValue", "TEXT"),
    ("ParamDataType", "TEXT NOT NULL"),
    ("ParamDescription", "TEXT NULL"),
]

FRAME_PARAM_KEYS_FIELDS: Fields = [
    ("ParamID", "INTEGER NOT NULL"),
    ("ParamName", "TEXT NOT NULL"),
    ("ParamDataType", "TEXT NOT NULL"),
    ("ParamDescription", "TEXT NULL"),
]

FRAME_PARAMS_FIELDS: Fields = [
    ("FrameNum", "INTEGER NOT NULL"),
    ("ParamID", "INTEGER NOT NULL"),
    ("ParamValue", "TEXT"),
]

VERSION_INFO_FIELDS: Fields = [
    ("Version_ID", "INTEGER PRIMARY KEY AUTOINCREMENT"),
    ("File_Version", "TEXT NOT NULL"),
    ("Calling_Assembly_Name", "TEXT"),
    ("Calling_Assembly_Version", "TEXT"),
    ("Entered", "TEXT DEFAULT CURRENT_TIMESTAMP"),
]

LOG_ENTRIES_FIELDS: Fields = [
    ("Entry_ID", "INTEGER PRIMARY KEY"),
    ("Posted_By", "STRING"),
    ("Posting_Time", "STRING"),
    ("Type", "STRING"),
    ("Message", "STRING"),
]

LEGACY_GLOBAL_PARAMETERS_FIELDS: Fields = [
    ("DateStarted", "STRING"),
    ("NumFrames", "INT(4)"),
    ("TimeOffset", "INT(4)"),
    ("BinWidth", "DOUBLE"),
    ("Bins", "INT(4)"),
    ("TOFCorrectionTime", "FLOAT"),
    ("FrameDataBlobVersion", "FLOAT"),
    ("ScanDataBlobVersion", "FLOAT"),
    ("TOFIntensityType", "STRING"),
    ("DatasetType", "STRING"),
    ("Prescan_TOFPulses", "INT(4)"),
    ("Prescan_Accumulations", "INT(4)"),
    ("Prescan_TICThreshold", "INT(4)"),
    ("Prescan_Continuous", "BOOL"),
    ("Prescan_Profile", "STRING"),
    ("Instrument_name", "STRING"),
]

LEGACY_FRAME_PARAMETERS_FIELDS: Fields = [
    ("FrameNum", "INT(4) PRIMARY KEY"),
    ("StartTime", "DOUBLE"),
    ("Duration", "DOUBLE"),
    ("Accumulations", "INT(2)"),
    ("FrameType", "SHORT"),
    ("Scans", "INT(4)"),
    ("IMFProfile", "STRING"),
    ("TOFLosses", "DOUBLE"),
    ("AverageTOFLength", "DOUBLE"),
    ("CalibrationSlope", "DOUBLE"),
    ("CalibrationIntercept", "DOUBLE"),
    ("a2", "DOUBLE"),
    ("b2", "DOUBLE"),
    ("c2", "DOUBLE"),
    ("d2", "DOUBLE"),
    ("e2", "DOUBLE"),
    ("f2", "DOUBLE"),
    ("Temperature", "DOUBLE"),
    ("voltHVRack1", "DOUBLE"),
    ("voltHVRack2", "DOUBLE"),
    ("voltHVRack3", "DOUBLE"),
    ("voltHVRack4", "DOUBLE"),
    ("voltCapInlet", "DOUBLE"),
    ("voltEntranceHPFIn", "DOUBLE"),
    ("voltEntranceHPFOut", "DOUBLE"),
    ("voltEntranceCondLmt", "DOUBLE"),
    ("voltTrapOut", "DOUBLE"),
    ("voltTrapIn", "DOUBLE"),
    ("voltJetDist", "DOUBLE"),
    ("voltQuad1", "DOUBLE"),
    ("voltCond1", "DOUBLE"),
    ("voltQuad2", "DOUBLE"),
    ("voltCond2", "DOUBLE"),
    ("voltIMSOut", "DOUBLE"),
    ("voltExitHPFIn", "DOUBLE"),
    ("voltExitHPFOut", "DOUBLE"),
    ("voltExitCondLmt", "DOUBLE"),
    ("PressureFront", "DOUBLE"),
    ("PressureBack", "DOUBLE"),
    ("MPBitOrder", "INT(1)"),
    ("FragmentationProfile", "BLOB"),
    ("HighPressureFunnelPressure", "DOUBLE"),
    ("IonFunnelTrapPressure", "DOUBLE"),
    ("RearIonFunnelPressure", "DOUBLE"),
    ("QuadrupolePressure", "DOUBLE"),
    ("ESIVoltage", "DOUBLE"),
    ("FloatVoltage", "DOUBLE"),
    ("CalibrationDone", "INTEGER"),
    ("Decoded", "INTEGER"),
]

# Frame_Scans intensity data types accepted by create_tables
SCAN_DATA_TYPES = ("double", "float", "short", "int")


def get_frame_scans_fields(data_type: str = "int") -> Fields:
    """Frame_Scans layout; ``data_type`` sets the declared BPI column type."""
    data_type = data_type.lower()
    require(data_type in SCAN_DATA_TYPES,
            f"Unsupported scan intensity data type '{data_type}'",
            error=InvalidArgument, allowed=SCAN_DATA_TYPES)
    return [
        ("FrameNum", "INTEGER NOT NULL"),
        ("ScanNum", "SMALLINT NOT NULL"),
        ("NonZeroCount", "INTEGER NOT NULL"),
        ("BPI", f"{data_type.upper()} NOT NULL"),
        ("BPI_MZ", "DOUBLE NOT NULL"),
        ("TIC", "INTEGER NOT NULL"),
        ("Intensities", "BLOB"),
    ]


def get_create_table_sql(table_name: str, fields: Sequence[Tuple[str, str]]) -> str:
    """Build a ``CREATE TABLE`` statement from ``(name, sql_type)`` pairs."""
    columns = ", ".join(f"{name} {sql_type}" for name, sql_type in fields)
    return f"CREATE TABLE {table_name} ( {columns} );"


def table_exists(conn: sqlite3.Connection, table_name: str) -> bool:
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type IN ('table', 'view') AND name = ?",
        (table_name,),
    )
    return cursor.fetchone() is not None


def table_columns(conn: sqlite3.Connection, table_name: str) -> List[str]:
    """Column names of ``table_name`` in declaration order (empty if absent)."""
    cursor = conn.execute(f"PRAGMA table_info({table_name})")
    return [row[1] for row in cursor.fetchall()]


def table_has_column(conn: sqlite3.Connection, table_name: str, column_name: str) -> bool:
    lower = column_name.lower()
    return any(col.lower() == lower for col in table_columns(conn, table_name))


def has_modern_tables(conn: sqlite3.Connection) -> bool:
    return table_exists(conn, GLOBAL_PARAMS_TABLE) and table_exists(conn, FRAME_PARAMS_TABLE)


def has_legacy_tables(conn: sqlite3.Connection) -> bool:
    return (table_exists(conn, LEGACY_GLOBAL_PARAMETERS_TABLE)
            and table_exists(conn, LEGACY_FRAME_PARAMETERS_TABLE))


# ----------------------------------------------------------------------
# DDL
# ----------------------------------------------------------------------

def create_global_params_table(conn: sqlite3.Connection) -> bool:
    """Create ``Global_Params`` and its unique index. Returns False if present."""
    if table_exists(conn, GLOBAL_PARAMS_TABLE):
        return False
    conn.execute(get_create_table_sql(GLOBAL_PARAMS_TABLE, GLOBAL_PARAMS_FIELDS))
    conn.execute(f"CREATE UNIQUE INDEX pk_index_GlobalParams on {GLOBAL_PARAMS_TABLE}(ParamID);")
    logger.debug("Created table %s", GLOBAL_PARAMS_TABLE)
    return True


def create_frame_params_tables(conn: sqlite3.Connection) -> bool:
    """Create ``Frame_Param_Keys``, ``Frame_Params``, their indices and the view."""
    if table_exists(conn, FRAME_PARAMS_TABLE) and table_exists(conn, FRAME_PARAM_KEYS_TABLE):
        return False

    conn.execute(get_create_table_sql(FRAME_PARAM_KEYS_TABLE, FRAME_PARAM_KEYS_FIELDS))
    conn.execute(get_create_table_sql(FRAME_PARAMS_TABLE, FRAME_PARAMS_FIELDS))
    conn.execute(f"CREATE UNIQUE INDEX pk_index_FrameParamKeys on {FRAME_PARAM_KEYS_TABLE}(ParamID);")
    conn.execute(f"CREATE UNIQUE INDEX pk_index_FrameParams on {FRAME_PARAMS_TABLE}(FrameNum, ParamID);")
    # Lookups by ParamID (assure-all, bulk calibration updates)
    conn.execute(f"CREATE INDEX ix_index_FrameParams_By_ParamID on {FRAME_PARAMS_TABLE}(ParamID, FrameNum);")
    conn.execute(
        f"CREATE VIEW {FRAME_PARAMS_VIEW} AS "
        "SELECT FP.FrameNum, FPK.ParamName, FP.ParamID, FP.ParamValue, "
        "FPK.ParamDescription, FPK.ParamDataType "
        f"FROM {FRAME_PARAMS_TABLE} FP INNER JOIN {FRAME_PARAM_KEYS_TABLE} FPK "
        "ON FP.ParamID = FPK.ParamID"
    )
    logger.debug("Created tables %s and %s", FRAME_PARAM_KEYS_TABLE, FRAME_PARAMS_TABLE)
    return True


def create_frame_scans_table(conn: sqlite3.Connection, data_type: str = "int") -> bool:
    if table_exists(conn, FRAME_SCANS_TABLE):
        return False
    conn.execute(get_create_table_sql(FRAME_SCANS_TABLE, get_frame_scans_fields(data_type)))
    conn.execute(f"CREATE UNIQUE INDEX pk_index_FrameScans on {FRAME_SCANS_TABLE}(FrameNum, ScanNum);")
    logger.debug("Created table %s (BPI type %s)", FRAME_SCANS_TABLE, data_type)
    return True


def create_version_info_table(conn: sqlite3.Connection) -> bool:
    if table_exists(conn, VERSION_INFO_TABLE):
        return False
    conn.execute(get_create_table_sql(VERSION_INFO_TABLE, VERSION_INFO_FIELDS))
    conn.execute(f"CREATE UNIQUE INDEX pk_index_VersionInfo on {VERSION_INFO_TABLE}(Version_ID);")
    return True


def create_legacy_tables(conn: sqlite3.Connection) -> bool:
    """Create ``Global_Parameters`` and ``Frame_Parameters`` where missing."""
    created = False
    if not table_exists(conn, LEGACY_GLOBAL_PARAMETERS_TABLE):
        conn.execute(get_create_table_sql(LEGACY_GLOBAL_PARAMETERS_TABLE,
                                          LEGACY_GLOBAL_PARAMETERS_FIELDS))
        created = True
    if not table_exists(conn, LEGACY_FRAME_PARAMETERS_TABLE):
        conn.execute(get_create_table_sql(LEGACY_FRAME_PARAMETERS_TABLE,
                                          LEGACY_FRAME_PARAMETERS_FIELDS))
        created = True
    if created:
        logger.debug("Created legacy parameter tables")
    return created


def create_log_entries_table(conn: sqlite3.Connection) -> bool:
    if table_exists(conn, LOG_ENTRIES_TABLE):
        return False
    conn.execute(get_create_table_sql(LOG_ENTRIES_TABLE, LOG_ENTRIES_FIELDS))
    return True
