"""Per-frame parameter aggregate and the bin to m/z calibration function."""

import logging
import math
from typing import Dict, Iterator, Mapping, Optional, Tuple

from uimf.params.catalog import FRAME_PARAM_CATALOG
from uimf.params.keys import MASS_CALIBRATION_KEYS, FrameParamKeyType, FrameType
from uimf.params.values import ParamValue

logger = logging.getLogger(__name__)


class FrameParams:
    """All parameter entries sharing one frame number.

    Derived attributes (frame type, calibration slope/intercept, scan count,
    mass calibration coefficients) are recomputed whenever one of the keys
    they depend on is set.

    Parameters
    ----------
    frame_num : int
        Frame number (1-based).
    values : mapping, optional
        Initial key -> value entries; raw values are coerced to the declared type.
    """

    def __init__(self, frame_num: int, values: Optional[Mapping] = None):
        self.frame_num = frame_num
        self._values: Dict[FrameParamKeyType, ParamValue] = {}

        self.frame_type = FrameType.MS1
        self.calibration_slope = 0.0
        self.calibration_intercept = 0.0
        self.scans = 0
        self.mass_calibration_coefficients: Tuple[float, ...] = (0.0,) * 6

        for key, value in (values or {}).items():
            self.set(key, value)

    def __contains__(self, key) -> bool:
        return key in self._values

    def __getitem__(self, key: FrameParamKeyType) -> ParamValue:
        return self._values[key]

    def __iter__(self) -> Iterator[FrameParamKeyType]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def items(self):
        return self._values.items()

    def keys(self):
        return self._values.keys()

    def get(self, key: FrameParamKeyType, default=None) -> Optional[ParamValue]:
        return self._values.get(key, default)

    def get_value(self, key: FrameParamKeyType, default=None):
        """Raw value for ``key``, or ``default`` (catalog default when omitted)."""
        if key in self._values:
            return self._values[key].value
        if default is None:
            return FRAME_PARAM_CATALOG.default_value(key)
        return default

    def set(self, key: FrameParamKeyType, value) -> ParamValue:
        key = FrameParamKeyType(key)
        param_def = FRAME_PARAM_CATALOG.get(key)
        tagged = ParamValue.coerce(param_def.data_type, value)
        self._values[key] = tagged
        self._update_derived(key)
        return tagged

    @property
    def has_mass_calibration(self) -> bool:
        return any(c != 0 for c in self.mass_calibration_coefficients)

    def _update_derived(self, key: FrameParamKeyType) -> None:
        if key == FrameParamKeyType.FRAME_TYPE:
            raw = self._values[key].as_int()
            # Older files stored MS1 frames as 0
            if raw == 0:
                self.frame_type = FrameType.MS1
            elif raw in FrameType._value2member_map_:
                self.frame_type = FrameType(raw)
            else:
                logger.warning("Frame %d has unrecognized frame type %d; treating as MS1",
                               self.frame_num, raw)
                self.frame_type = FrameType.MS1
        elif key == FrameParamKeyType.CALIBRATION_SLOPE:
            self.calibration_slope = self._values[key].as_float()
        elif key == FrameParamKeyType.CALIBRATION_INTERCEPT:
            self.calibration_intercept = self._values[key].as_float()
        elif key == FrameParamKeyType.SCANS:
            self.scans = self._values[key].as_int()
        elif key in MASS_CALIBRATION_KEYS:
            self.mass_calibration_coefficients = tuple(
                self._values[k].as_float() if k in self._values else 0.0
                for k in MASS_CALIBRATION_KEYS
            )

    def __repr__(self):
        return f"FrameParams(frame_num={self.frame_num}, entries={len(self._values)})"


def convert_bin_to_mz(bin_index: float, bin_width: float, frame_params: FrameParams,
                      tof_correction_time: float) -> float:
    """Convert a TOF bin to m/z using the frame's calibration.

    Parameters
    ----------
    bin_index : float
        TOF bin number.
    bin_width : float
        Bin width in nanoseconds.
    frame_params : FrameParams
        Frame supplying slope, intercept and residual coefficients.
    tof_correction_time : float
        Global TOF correction time, in nanoseconds.

    Returns
    -------
    float
        m/z value, or 0 when the frame has no calibration slope.
    """
    slope = frame_params.calibration_slope
    if slope == 0 or math.isnan(slope):
        return 0.0

    t = bin_index * bin_width / 1000.0
    term = slope * (t - tof_correction_time / 1000.0 - frame_params.calibration_intercept)
    mz = term * term

    if frame_params.has_mass_calibration:
        a2, b2, c2, d2, e2, f2 = frame_params.mass_calibration_coefficients
        mz += (a2 * t + b2 * t ** 3 + c2 * t ** 5 + d2 * t ** 7
               + e2 * t ** 9 + f2 * t ** 11)

    return mz
