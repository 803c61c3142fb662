"""Static parameter catalog.

Maps every key of :class:`FrameParamKeyType` and :class:`GlobalParamKeyType`
to its name, declared data type, description and default value. The frame
catalog is also persisted in table ``Frame_Param_Keys`` so that keys added by
newer software are back-registered into older containers before any value
row references them.
"""

import logging
import sqlite3
from dataclasses import dataclass
from typing import Dict, Generic, Iterable, Set, TypeVar, Union

from uimf.contracts import UnknownKey
from uimf.params.keys import (
    FrameParamKeyType,
    GlobalParamKeyType,
    ParamDataType,
)

logger = logging.getLogger(__name__)

FRAME_PARAM_KEYS_TABLE = "Frame_Param_Keys"

K = TypeVar("K", FrameParamKeyType, GlobalParamKeyType)

_I = ParamDataType.INT
_D = ParamDataType.DOUBLE
_S = ParamDataType.STRING
_T = ParamDataType.DATETIME


@dataclass(frozen=True)
class ParamKeyDef(Generic[K]):
    """Immutable definition of one parameter key."""

    key: K
    name: str
    data_type: ParamDataType
    description: str
    default: Union[int, float, str]


class ParamCatalog(Generic[K]):
    """Registry of parameter definitions indexed by key."""

    def __init__(self, definitions: Iterable[ParamKeyDef]):
        self._defs: Dict[K, ParamKeyDef] = {}
        self._by_name: Dict[str, K] = {}
        for param_def in definitions:
            self._defs[param_def.key] = param_def
            self._by_name[param_def.name.lower()] = param_def.key

    def __contains__(self, key) -> bool:
        return key in self._defs

    def __iter__(self):
        return iter(self._defs.values())

    def __len__(self):
        return len(self._defs)

    def get(self, key: K) -> ParamKeyDef:
        """Return the definition for ``key``.

        Raises
        ------
        UnknownKey
            If no definition exists (should not happen for enum members).
        """
        try:
            return self._defs[key]
        except KeyError:
            raise UnknownKey(f"Parameter key {key!r} is not in the catalog", key=key) from None

    def get_by_name(self, name: str) -> K:
        """Resolve a parameter name (case-insensitive) to its key."""
        try:
            return self._by_name[name.strip().lower()]
        except KeyError:
            raise UnknownKey(f"Unrecognized parameter name {name}", name=name) from None

    def default_value(self, key: K):
        return self.get(key).default

    # ------------------------------------------------------------------
    # Persisted key table (frame catalog only)
    # ------------------------------------------------------------------

    @staticmethod
    def registered_keys(conn: sqlite3.Connection) -> Set[int]:
        """ParamIDs already present in ``Frame_Param_Keys``."""
        cursor = conn.execute(f"SELECT ParamID FROM {FRAME_PARAM_KEYS_TABLE}")
        return {row[0] for row in cursor.fetchall()}

    def register(self, conn: sqlite3.Connection, key: K) -> bool:
        """Insert the definition of ``key`` into ``Frame_Param_Keys`` if absent.

        Returns
        -------
        bool
            True if a row was added.
        """
        param_def = self.get(key)
        cursor = conn.execute(
            f"""
            INSERT INTO {FRAME_PARAM_KEYS_TABLE} (ParamID, ParamName, ParamDataType, ParamDescription)
            SELECT ?, ?, ?, ?
            WHERE NOT EXISTS (SELECT 1 FROM {FRAME_PARAM_KEYS_TABLE} WHERE ParamID = ?)
            """,
            (int(key), param_def.name, param_def.data_type.value, param_def.description, int(key)),
        )
        if cursor.rowcount > 0:
            logger.debug("Registered frame parameter key %s", param_def.name)
            return True
        return False


FRAME_PARAM_DEFS = [
    ParamKeyDef(FrameParamKeyType.START_TIME_MINUTES, "StartTime", _D,
                "Start time of frame, in minutes", 0.0),
    ParamKeyDef(FrameParamKeyType.DURATION_SECONDS, "Duration", _D,
                "Duration of frame, in seconds", 0.0),
    ParamKeyDef(FrameParamKeyType.ACCUMULATIONS, "Accumulations", _I,
                "Number of collected and summed acquisitions in a frame", 0),
    ParamKeyDef(FrameParamKeyType.FRAME_TYPE, "FrameType", _I,
                "Frame Type: 1=MS (Regular); 2=MS/MS (Frag); 3=Calibration; 4=Prescan", 1),
    ParamKeyDef(FrameParamKeyType.DECODED, "Decoded", _I,
                "Tracks whether frame has been decoded: 0=No; 1=Yes", 0),
    ParamKeyDef(FrameParamKeyType.CALIBRATION_DONE, "CalibrationDone", _I,
                "Tracks whether frame has been calibrated: 0=No; 1=Yes; -1=Manual", 0),
    ParamKeyDef(FrameParamKeyType.SCANS, "Scans", _I,
                "Number of TOF scans in a frame", 0),
    ParamKeyDef(FrameParamKeyType.MULTIPLEXING_ENCODING_SEQUENCE, "MultiplexingEncodingSequence", _S,
                "The name of the sequence used to encode the data when acquiring multiplexed data", ""),
    ParamKeyDef(FrameParamKeyType.MP_BIT_ORDER, "MPBitOrder", _I,
                "Multiplexing bit order; determines size of the bit sequence", 0),
    ParamKeyDef(FrameParamKeyType.TOF_LOSSES, "TOFLosses", _D,
                "Number of TOF Losses (lost/skipped scans due to I/O processing)", 0.0),
    ParamKeyDef(FrameParamKeyType.AVERAGE_TOF_LENGTH, "AverageTOFLength", _D,
                "Average time between TOF trigger pulses, in nanoseconds", 0.0),
    ParamKeyDef(FrameParamKeyType.CALIBRATION_SLOPE, "CalibrationSlope", _D,
                "Calibration slope, k0", 0.0),
    ParamKeyDef(FrameParamKeyType.CALIBRATION_INTERCEPT, "CalibrationIntercept", _D,
                "Calibration intercept, t0", 0.0),
    ParamKeyDef(FrameParamKeyType.MASS_CALIBRATION_COEFFICIENT_A2, "MassCalibrationCoefficienta2", _D,
                "a2 parameter for residual mass error correction", 0.0),
    ParamKeyDef(FrameParamKeyType.MASS_CALIBRATION_COEFFICIENT_B2, "MassCalibrationCoefficientb2", _D,
                "b2 parameter for residual mass error correction", 0.0),
    ParamKeyDef(FrameParamKeyType.MASS_CALIBRATION_COEFFICIENT_C2, "MassCalibrationCoefficientc2", _D,
                "c2 parameter for residual mass error correction", 0.0),
    ParamKeyDef(FrameParamKeyType.MASS_CALIBRATION_COEFFICIENT_D2, "MassCalibrationCoefficientd2", _D,
                "d2 parameter for residual mass error correction", 0.0),
    ParamKeyDef(FrameParamKeyType.MASS_CALIBRATION_COEFFICIENT_E2, "MassCalibrationCoefficiente2", _D,
                "e2 parameter for residual mass error correction", 0.0),
    ParamKeyDef(FrameParamKeyType.MASS_CALIBRATION_COEFFICIENT_F2, "MassCalibrationCoefficientf2", _D,
                "f2 parameter for residual mass error correction", 0.0),
    ParamKeyDef(FrameParamKeyType.AMBIENT_TEMPERATURE, "AmbientTemperature", _D,
                "Ambient temperature, in Celsius", 0.0),
    ParamKeyDef(FrameParamKeyType.VOLT_HV_RACK1, "voltHVRack1", _D, "Voltage setting in the IMS system", 0.0),
    ParamKeyDef(FrameParamKeyType.VOLT_HV_RACK2, "voltHVRack2", _D, "Voltage setting in the IMS system", 0.0),
    ParamKeyDef(FrameParamKeyType.VOLT_HV_RACK3, "voltHVRack3", _D, "Voltage setting in the IMS system", 0.0),
    ParamKeyDef(FrameParamKeyType.VOLT_HV_RACK4, "voltHVRack4", _D, "Voltage setting in the IMS system", 0.0),
    ParamKeyDef(FrameParamKeyType.VOLT_CAP_INLET, "voltCapInlet", _D, "Capillary Inlet Voltage", 0.0),
    ParamKeyDef(FrameParamKeyType.VOLT_ENTRANCE_HPF_IN, "voltEntranceHPFIn", _D,
                "HPF In Voltage (high pressure funnel)", 0.0),
    ParamKeyDef(FrameParamKeyType.VOLT_ENTRANCE_HPF_OUT, "voltEntranceHPFOut", _D,
                "HPF Out Voltage (high pressure funnel)", 0.0),
    ParamKeyDef(FrameParamKeyType.VOLT_ENTRANCE_COND_LMT, "voltEntranceCondLmt", _D,
                "Cond Limit Voltage", 0.0),
    ParamKeyDef(FrameParamKeyType.VOLT_TRAP_OUT, "voltTrapOut", _D, "Trap Out Voltage", 0.0),
    ParamKeyDef(FrameParamKeyType.VOLT_TRAP_IN, "voltTrapIn", _D, "Trap In Voltage", 0.0),
    ParamKeyDef(FrameParamKeyType.VOLT_JET_DIST, "voltJetDist", _D, "Jet Disruptor Voltage", 0.0),
    ParamKeyDef(FrameParamKeyType.VOLT_QUAD1, "voltQuad1", _D, "Fragmentation Quadrupole 1 Voltage", 0.0),
    ParamKeyDef(FrameParamKeyType.VOLT_COND1, "voltCond1", _D, "Fragmentation Conductance 1 Voltage", 0.0),
    ParamKeyDef(FrameParamKeyType.VOLT_QUAD2, "voltQuad2", _D, "Fragmentation Quadrupole 2 Voltage", 0.0),
    ParamKeyDef(FrameParamKeyType.VOLT_COND2, "voltCond2", _D, "Fragmentation Conductance 2 Voltage", 0.0),
    ParamKeyDef(FrameParamKeyType.VOLT_IMS_OUT, "voltIMSOut", _D, "IMS Out Voltage", 0.0),
    ParamKeyDef(FrameParamKeyType.VOLT_EXIT_HPF_IN, "voltExitHPFIn", _D,
                "HPF In Voltage (rear ion funnel)", 0.0),
    ParamKeyDef(FrameParamKeyType.VOLT_EXIT_HPF_OUT, "voltExitHPFOut", _D,
                "HPF Out Voltage (rear ion funnel)", 0.0),
    ParamKeyDef(FrameParamKeyType.VOLT_EXIT_COND_LMT, "voltExitCondLmt", _D, "Cond Limit Voltage", 0.0),
    ParamKeyDef(FrameParamKeyType.PRESSURE_FRONT, "PressureFront", _D,
                "Pressure at front of Drift Tube", 0.0),
    ParamKeyDef(FrameParamKeyType.PRESSURE_BACK, "PressureBack", _D,
                "Pressure at back of Drift Tube", 0.0),
    ParamKeyDef(FrameParamKeyType.HIGH_PRESSURE_FUNNEL_PRESSURE, "HighPressureFunnelPressure", _D,
                "High pressure funnel pressure", 0.0),
    ParamKeyDef(FrameParamKeyType.ION_FUNNEL_TRAP_PRESSURE, "IonFunnelTrapPressure", _D,
                "Ion funnel trap pressure", 0.0),
    ParamKeyDef(FrameParamKeyType.REAR_ION_FUNNEL_PRESSURE, "RearIonFunnelPressure", _D,
                "Rear ion funnel pressure", 0.0),
    ParamKeyDef(FrameParamKeyType.QUADRUPOLE_PRESSURE, "QuadrupolePressure", _D,
                "Quadrupole pressure", 0.0),
    ParamKeyDef(FrameParamKeyType.ESI_VOLTAGE, "ESIVoltage", _D, "ESI Voltage", 0.0),
    ParamKeyDef(FrameParamKeyType.FLOAT_VOLTAGE, "FloatVoltage", _D, "Float Voltage", 0.0),
    ParamKeyDef(FrameParamKeyType.FRAGMENTATION_PROFILE, "FragmentationProfile", _S,
                "Voltage profile used in fragmentation (base-64 encoded array of doubles)", ""),
    ParamKeyDef(FrameParamKeyType.EXPERIMENT_ID, "ExperimentID", _S,
                "Identifier of the experiment this frame belongs to", ""),
    ParamKeyDef(FrameParamKeyType.PRESSURE_UNITS, "PressureUnits", _I,
                "Pressure units: 0=MilliTorr; 1=Torr", 1),
]

GLOBAL_PARAM_DEFS = [
    ParamKeyDef(GlobalParamKeyType.INSTRUMENT_NAME, "InstrumentName", _S, "Instrument name", ""),
    ParamKeyDef(GlobalParamKeyType.DATE_STARTED, "DateStarted", _T,
                "Date Experiment was acquired", ""),
    ParamKeyDef(GlobalParamKeyType.NUM_FRAMES, "NumFrames", _I, "Number of frames in dataset", 0),
    ParamKeyDef(GlobalParamKeyType.TIME_OFFSET, "TimeOffset", _I,
                "Time offset from 0 (in nanoseconds)", 0),
    ParamKeyDef(GlobalParamKeyType.BIN_WIDTH, "BinWidth", _D,
                "Width of TOF bins (in ns)", 0.0),
    ParamKeyDef(GlobalParamKeyType.BINS, "Bins", _I,
                "Total number of TOF bins in frame", 0),
    ParamKeyDef(GlobalParamKeyType.TOF_CORRECTION_TIME, "TOFCorrectionTime", _D,
                "TOF correction time, in nanoseconds", 0.0),
    ParamKeyDef(GlobalParamKeyType.TOF_INTENSITY_TYPE, "TOFIntensityType", _S,
                "Data type of intensity in each TOF record (ADC is int, TDC is short, FOLDED is float)", "int"),
    ParamKeyDef(GlobalParamKeyType.DATASET_TYPE, "DatasetType", _S,
                "Type of dataset (HMS/HMSn/HMS-HMSn)", ""),
    ParamKeyDef(GlobalParamKeyType.PRESCAN_TOF_PULSES, "PrescanTOFPulses", _I,
                "Prescan TOF pulses; tracks the maximum scan number in any frame", 0),
    ParamKeyDef(GlobalParamKeyType.PRESCAN_ACCUMULATIONS, "PrescanAccumulations", _I,
                "Prescan Accumulations", 0),
    ParamKeyDef(GlobalParamKeyType.PRESCAN_TIC_THRESHOLD, "PrescanTICThreshold", _I,
                "Prescan TIC threshold", 0),
    ParamKeyDef(GlobalParamKeyType.PRESCAN_CONTINUOUS, "PrescanContinuous", _I,
                "Prescan Continuous flag (0 is false, 1 is true)", 0),
    ParamKeyDef(GlobalParamKeyType.PRESCAN_PROFILE, "PrescanProfile", _S,
                "Profile used when PrescanContinuous is 1", ""),
    ParamKeyDef(GlobalParamKeyType.INSTRUMENT_CLASS, "InstrumentClass", _I,
                "Instrument class (0 for TOF, 1 for ppm bin-based)", 0),
    ParamKeyDef(GlobalParamKeyType.PPM_BIN_BASED_START_MZ, "PpmBinBasedStartMz", _D,
                "Starting m/z value for ppm bin-based mode", 0.0),
    ParamKeyDef(GlobalParamKeyType.PPM_BIN_BASED_END_MZ, "PpmBinBasedEndMz", _D,
                "Ending m/z value for ppm bin-based mode", 0.0),
    ParamKeyDef(GlobalParamKeyType.DRIFT_TUBE_LENGTH, "DriftTubeLength", _D,
                "IMS Drift tube length in centimeters", 0.0),
    ParamKeyDef(GlobalParamKeyType.DRIFT_GAS, "DriftGas", _S,
                "Type of drift gas (N2, He, etc.)", ""),
]

FRAME_PARAM_CATALOG: ParamCatalog[FrameParamKeyType] = ParamCatalog(FRAME_PARAM_DEFS)
GLOBAL_PARAM_CATALOG: ParamCatalog[GlobalParamKeyType] = ParamCatalog(GLOBAL_PARAM_DEFS)
