"""Fixed mapping between legacy fixed-column tables and parameter keys.

Keys without an entry here have no legacy column; the mirror skips them.
"""

import base64
import binascii
from typing import Dict, Optional

from uimf.params import (
    FRAME_PARAM_CATALOG,
    GLOBAL_PARAM_CATALOG,
    FrameParamKeyType,
    GlobalParamKeyType,
    ParamDataType,
    ParamValue,
)
from uimf.storage.schema import LEGACY_FRAME_PARAMETERS_FIELDS

F = FrameParamKeyType
G = GlobalParamKeyType

LEGACY_GLOBAL_COLUMNS: Dict[str, GlobalParamKeyType] = {
    "DateStarted": G.DATE_STARTED,
    "NumFrames": G.NUM_FRAMES,
    "TimeOffset": G.TIME_OFFSET,
    "BinWidth": G.BIN_WIDTH,
    "Bins": G.BINS,
    "TOFCorrectionTime": G.TOF_CORRECTION_TIME,
    "TOFIntensityType": G.TOF_INTENSITY_TYPE,
    "DatasetType": G.DATASET_TYPE,
    "Prescan_TOFPulses": G.PRESCAN_TOF_PULSES,
    "Prescan_Accumulations": G.PRESCAN_ACCUMULATIONS,
    "Prescan_TICThreshold": G.PRESCAN_TIC_THRESHOLD,
    "Prescan_Continuous": G.PRESCAN_CONTINUOUS,
    "Prescan_Profile": G.PRESCAN_PROFILE,
    "Instrument_name": G.INSTRUMENT_NAME,
}

# Legacy global columns with no modern counterpart
LEGACY_GLOBAL_UNMAPPED_DEFAULTS = {
    "FrameDataBlobVersion": 0.0,
    "ScanDataBlobVersion": 0.0,
}

LEGACY_FRAME_COLUMNS: Dict[str, FrameParamKeyType] = {
    "StartTime": F.START_TIME_MINUTES,
    "Duration": F.DURATION_SECONDS,
    "Accumulations": F.ACCUMULATIONS,
    "FrameType": F.FRAME_TYPE,
    "Scans": F.SCANS,
    "IMFProfile": F.MULTIPLEXING_ENCODING_SEQUENCE,
    "TOFLosses": F.TOF_LOSSES,
    "AverageTOFLength": F.AVERAGE_TOF_LENGTH,
    "CalibrationSlope": F.CALIBRATION_SLOPE,
    "CalibrationIntercept": F.CALIBRATION_INTERCEPT,
    "a2": F.MASS_CALIBRATION_COEFFICIENT_A2,
    "b2": F.MASS_CALIBRATION_COEFFICIENT_B2,
    "c2": F.MASS_CALIBRATION_COEFFICIENT_C2,
    "d2": F.MASS_CALIBRATION_COEFFICIENT_D2,
    "e2": F.MASS_CALIBRATION_COEFFICIENT_E2,
    "f2": F.MASS_CALIBRATION_COEFFICIENT_F2,
    "Temperature": F.AMBIENT_TEMPERATURE,
    "voltHVRack1": F.VOLT_HV_RACK1,
    "voltHVRack2": F.VOLT_HV_RACK2,
    "voltHVRack3": F.VOLT_HV_RACK3,
    "voltHVRack4": F.VOLT_HV_RACK4,
    "voltCapInlet": F.VOLT_CAP_INLET,
    "voltEntranceHPFIn": F.VOLT_ENTRANCE_HPF_IN,
    "voltEntranceHPFOut": F.VOLT_ENTRANCE_HPF_OUT,
    "voltEntranceCondLmt": F.VOLT_ENTRANCE_COND_LMT,
    "voltTrapOut": F.VOLT_TRAP_OUT,
    "voltTrapIn": F.VOLT_TRAP_IN,
    "voltJetDist": F.VOLT_JET_DIST,
    "voltQuad1": F.VOLT_QUAD1,
    "voltCond1": F.VOLT_COND1,
    "voltQuad2": F.VOLT_QUAD2,
    "voltCond2": F.VOLT_COND2,
    "voltIMSOut": F.VOLT_IMS_OUT,
    "voltExitHPFIn": F.VOLT_EXIT_HPF_IN,
    "voltExitHPFOut": F.VOLT_EXIT_HPF_OUT,
    "voltExitCondLmt": F.VOLT_EXIT_COND_LMT,
    "PressureFront": F.PRESSURE_FRONT,
    "PressureBack": F.PRESSURE_BACK,
    "MPBitOrder": F.MP_BIT_ORDER,
    "FragmentationProfile": F.FRAGMENTATION_PROFILE,
    "HighPressureFunnelPressure": F.HIGH_PRESSURE_FUNNEL_PRESSURE,
    "IonFunnelTrapPressure": F.ION_FUNNEL_TRAP_PRESSURE,
    "RearIonFunnelPressure": F.REAR_ION_FUNNEL_PRESSURE,
    "QuadrupolePressure": F.QUADRUPOLE_PRESSURE,
    "ESIVoltage": F.ESI_VOLTAGE,
    "FloatVoltage": F.FLOAT_VOLTAGE,
    "CalibrationDone": F.CALIBRATION_DONE,
    "Decoded": F.DECODED,
}

GLOBAL_KEY_TO_COLUMN = {key: column for column, key in LEGACY_GLOBAL_COLUMNS.items()}
FRAME_KEY_TO_COLUMN = {key: column for column, key in LEGACY_FRAME_COLUMNS.items()}

_FRAME_COLUMN_TYPES = dict(LEGACY_FRAME_PARAMETERS_FIELDS)

# Columns added after the first legacy release, created on demand
LAZY_FRAME_COLUMNS = {
    "Decoded": ("INT", 0),
    "voltEntranceHPFIn": ("DOUBLE", 0),
    "voltEntranceHPFOut": ("DOUBLE", 0),
    "voltExitHPFIn": ("DOUBLE", 0),
    "voltExitHPFOut": ("DOUBLE", 0),
}

# Columns holding blobs in the legacy table and base-64 text in the EAV table
_BLOB_COLUMNS = {"FragmentationProfile"}


def legacy_global_column(key: GlobalParamKeyType) -> Optional[str]:
    return GLOBAL_KEY_TO_COLUMN.get(key)


def legacy_frame_column(key: FrameParamKeyType) -> Optional[str]:
    return FRAME_KEY_TO_COLUMN.get(key)


def lazy_column_definition(column: str):
    """``(sql_type, default)`` used when ``column`` must be added to an old table."""
    if column in LAZY_FRAME_COLUMNS:
        return LAZY_FRAME_COLUMNS[column]
    sql_type = _FRAME_COLUMN_TYPES.get(column, "DOUBLE").split()[0]
    key = LEGACY_FRAME_COLUMNS[column]
    default = FRAME_PARAM_CATALOG.default_value(key)
    if column in _BLOB_COLUMNS:
        return sql_type, None
    return sql_type, default


def to_legacy_column_value(column: str, value: ParamValue):
    """Value written to a legacy column for a modern ``ParamValue``."""
    if column in _BLOB_COLUMNS:
        text = value.as_str()
        if not text:
            return b""
        try:
            return base64.b64decode(text, validate=True)
        except binascii.Error:
            # Not base-64; keep the raw text bytes
            return text.encode("utf-8")
    return value.to_legacy()


def from_legacy_column_value(column: str, raw):
    """Modern raw value for a legacy column value; None means 'no value'."""
    if raw is None:
        return None
    if column in _BLOB_COLUMNS:
        if isinstance(raw, (bytes, bytearray, memoryview)):
            return base64.b64encode(bytes(raw)).decode("ascii") if len(raw) else None
        return str(raw) or None
    if isinstance(raw, str) and not raw.strip():
        return None
    return raw


def legacy_frame_defaults() -> Dict[str, object]:
    """Catalog defaults for every mapped legacy frame column."""
    defaults = {}
    for column, key in LEGACY_FRAME_COLUMNS.items():
        param_def = FRAME_PARAM_CATALOG.get(key)
        value = ParamValue.coerce(param_def.data_type, param_def.default)
        defaults[column] = to_legacy_column_value(column, value)
    return defaults


def legacy_global_defaults() -> Dict[str, object]:
    """Catalog defaults for the legacy global row.

    DateTime columns start out empty since there is no meaningful default date.
    """
    defaults = dict(LEGACY_GLOBAL_UNMAPPED_DEFAULTS)
    for column, key in LEGACY_GLOBAL_COLUMNS.items():
        param_def = GLOBAL_PARAM_CATALOG.get(key)
        if param_def.data_type == ParamDataType.DATETIME:
            defaults[column] = ""
        else:
            defaults[column] = ParamValue.coerce(param_def.data_type, param_def.default).to_legacy()
    return defaults
