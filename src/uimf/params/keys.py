"""Closed parameter-key enumerations.

Integer values are the ``ParamID`` values persisted in ``Global_Params``,
``Frame_Param_Keys`` and ``Frame_Params``. They must never be renumbered;
new keys are appended.
"""

from enum import Enum, IntEnum


class ParamDataType(str, Enum):
    """Declared data type of a parameter.

    Values are the type names stored in the ``ParamDataType`` columns, kept
    identical to the names written by earlier acquisition software.
    """
    INT = "System.Int32"
    DOUBLE = "System.Double"
    STRING = "System.String"
    DATETIME = "System.DateTime"

    @classmethod
    def from_type_name(cls, name: str) -> "ParamDataType":
        """Resolve a persisted type name (tolerates short forms like 'int')."""
        short_names = {
            "int": cls.INT, "int32": cls.INT, "system.int32": cls.INT,
            "integer": cls.INT, "system.int16": cls.INT, "system.int64": cls.INT,
            "double": cls.DOUBLE, "float": cls.DOUBLE, "system.double": cls.DOUBLE,
            "system.single": cls.DOUBLE, "real": cls.DOUBLE,
            "string": cls.STRING, "text": cls.STRING, "system.string": cls.STRING,
            "datetime": cls.DATETIME, "system.datetime": cls.DATETIME,
        }
        try:
            return short_names[name.strip().lower()]
        except KeyError:
            raise ValueError(f"Unrecognized parameter data type: {name}") from None


class FrameType(IntEnum):
    """Frame type values stored under ``FrameParamKeyType.FRAME_TYPE``."""
    MS1 = 1
    MS2 = 2
    CALIBRATION = 3
    PRESCAN = 4


class InstrumentClass(IntEnum):
    """Values stored under ``GlobalParamKeyType.INSTRUMENT_CLASS``."""
    TOF_BASED = 0
    PPM_BIN_BASED = 1


class GlobalParamKeyType(IntEnum):
    """Container-wide (acquisition) parameter keys."""
    UNKNOWN = 0
    INSTRUMENT_NAME = 1
    DATE_STARTED = 2
    NUM_FRAMES = 3
    TIME_OFFSET = 4
    BIN_WIDTH = 5
    BINS = 6
    TOF_CORRECTION_TIME = 7
    TOF_INTENSITY_TYPE = 8
    DATASET_TYPE = 9
    PRESCAN_TOF_PULSES = 10
    PRESCAN_ACCUMULATIONS = 11
    PRESCAN_TIC_THRESHOLD = 12
    PRESCAN_CONTINUOUS = 13
    PRESCAN_PROFILE = 14
    INSTRUMENT_CLASS = 15
    PPM_BIN_BASED_START_MZ = 16
    PPM_BIN_BASED_END_MZ = 17
    DRIFT_TUBE_LENGTH = 18
    DRIFT_GAS = 19


class FrameParamKeyType(IntEnum):
    """Per-frame acquisition parameter keys."""
    UNKNOWN = 0
    START_TIME_MINUTES = 1
    DURATION_SECONDS = 2
    ACCUMULATIONS = 3
    FRAME_TYPE = 4
    DECODED = 5
    CALIBRATION_DONE = 6
    SCANS = 7
    MULTIPLEXING_ENCODING_SEQUENCE = 8
    MP_BIT_ORDER = 9
    TOF_LOSSES = 10
    AVERAGE_TOF_LENGTH = 11
    CALIBRATION_SLOPE = 12
    CALIBRATION_INTERCEPT = 13
    MASS_CALIBRATION_COEFFICIENT_A2 = 14
    MASS_CALIBRATION_COEFFICIENT_B2 = 15
    MASS_CALIBRATION_COEFFICIENT_C2 = 16
    MASS_CALIBRATION_COEFFICIENT_D2 = 17
    MASS_CALIBRATION_COEFFICIENT_E2 = 18
    MASS_CALIBRATION_COEFFICIENT_F2 = 19
    AMBIENT_TEMPERATURE = 20
    VOLT_HV_RACK1 = 21
    VOLT_HV_RACK2 = 22
    VOLT_HV_RACK3 = 23
    VOLT_HV_RACK4 = 24
    VOLT_CAP_INLET = 25
    VOLT_ENTRANCE_HPF_IN = 26
    VOLT_ENTRANCE_HPF_OUT = 27
    VOLT_ENTRANCE_COND_LMT = 28
    VOLT_TRAP_OUT = 29
    VOLT_TRAP_IN = 30
    VOLT_JET_DIST = 31
    VOLT_QUAD1 = 32
    VOLT_COND1 = 33
    VOLT_QUAD2 = 34
    VOLT_COND2 = 35
    VOLT_IMS_OUT = 36
    VOLT_EXIT_HPF_IN = 37
    VOLT_EXIT_HPF_OUT = 38
    VOLT_EXIT_COND_LMT = 39
    PRESSURE_FRONT = 40
    PRESSURE_BACK = 41
    HIGH_PRESSURE_FUNNEL_PRESSURE = 42
    ION_FUNNEL_TRAP_PRESSURE = 43
    REAR_ION_FUNNEL_PRESSURE = 44
    QUADRUPOLE_PRESSURE = 45
    ESI_VOLTAGE = 46
    FLOAT_VOLTAGE = 47
    FRAGMENTATION_PROFILE = 48
    EXPERIMENT_ID = 49
    PRESSURE_UNITS = 50


MASS_CALIBRATION_KEYS = (
    FrameParamKeyType.MASS_CALIBRATION_COEFFICIENT_A2,
    FrameParamKeyType.MASS_CALIBRATION_COEFFICIENT_B2,
    FrameParamKeyType.MASS_CALIBRATION_COEFFICIENT_C2,
    FrameParamKeyType.MASS_CALIBRATION_COEFFICIENT_D2,
    FrameParamKeyType.MASS_CALIBRATION_COEFFICIENT_E2,
    FrameParamKeyType.MASS_CALIBRATION_COEFFICIENT_F2,
)
