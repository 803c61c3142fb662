"""Parameter catalog, tagged values and parameter aggregates."""

from uimf.params.keys import (
    ParamDataType,
    FrameType,
    InstrumentClass,
    GlobalParamKeyType,
    FrameParamKeyType,
    MASS_CALIBRATION_KEYS,
)
from uimf.params.values import ParamValue, NAN_TOKEN, DATE_FORMAT, standardize_date
from uimf.params.catalog import (
    ParamKeyDef,
    ParamCatalog,
    FRAME_PARAM_CATALOG,
    GLOBAL_PARAM_CATALOG,
)
from uimf.params.frame_params import FrameParams, convert_bin_to_mz
from uimf.params.global_params import GlobalParams

__all__ = [
    "ParamDataType",
    "FrameType",
    "InstrumentClass",
    "GlobalParamKeyType",
    "FrameParamKeyType",
    "MASS_CALIBRATION_KEYS",
    "ParamValue",
    "NAN_TOKEN",
    "DATE_FORMAT",
    "standardize_date",
    "ParamKeyDef",
    "ParamCatalog",
    "FRAME_PARAM_CATALOG",
    "GLOBAL_PARAM_CATALOG",
    "FrameParams",
    "convert_bin_to_mz",
    "GlobalParams",
]
