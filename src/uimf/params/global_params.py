"""Container-wide parameter aggregate."""

from typing import Dict, Iterator, Mapping, Optional

from uimf.params.catalog import GLOBAL_PARAM_CATALOG
from uimf.params.keys import GlobalParamKeyType, InstrumentClass
from uimf.params.values import ParamValue


class GlobalParams:
    """In-memory view of the ``Global_Params`` table.

    Exactly one value exists per key. Typed accessors fall back to the
    catalog default when a key has never been written.
    """

    def __init__(self, values: Optional[Mapping] = None):
        self._values: Dict[GlobalParamKeyType, ParamValue] = {}
        for key, value in (values or {}).items():
            self.set(key, value)

    def __contains__(self, key) -> bool:
        return key in self._values

    def __getitem__(self, key: GlobalParamKeyType) -> ParamValue:
        return self._values[key]

    def __iter__(self) -> Iterator[GlobalParamKeyType]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def items(self):
        return self._values.items()

    def get(self, key: GlobalParamKeyType, default=None) -> Optional[ParamValue]:
        return self._values.get(key, default)

    def get_value(self, key: GlobalParamKeyType, default=None):
        if key in self._values:
            return self._values[key].value
        if default is None:
            return GLOBAL_PARAM_CATALOG.default_value(key)
        return default

    def set(self, key: GlobalParamKeyType, value) -> ParamValue:
        key = GlobalParamKeyType(key)
        param_def = GLOBAL_PARAM_CATALOG.get(key)
        tagged = ParamValue.coerce(param_def.data_type, value)
        self._values[key] = tagged
        return tagged

    def _as_int(self, key: GlobalParamKeyType) -> int:
        return self._values[key].as_int() if key in self._values else int(
            GLOBAL_PARAM_CATALOG.default_value(key))

    def _as_float(self, key: GlobalParamKeyType) -> float:
        return self._values[key].as_float() if key in self._values else float(
            GLOBAL_PARAM_CATALOG.default_value(key))

    @property
    def bins(self) -> int:
        return self._as_int(GlobalParamKeyType.BINS)

    @property
    def num_frames(self) -> int:
        return self._as_int(GlobalParamKeyType.NUM_FRAMES)

    @property
    def bin_width(self) -> float:
        return self._as_float(GlobalParamKeyType.BIN_WIDTH)

    @property
    def tof_correction_time(self) -> float:
        return self._as_float(GlobalParamKeyType.TOF_CORRECTION_TIME)

    @property
    def instrument_class(self) -> InstrumentClass:
        return InstrumentClass(self._as_int(GlobalParamKeyType.INSTRUMENT_CLASS))

    @property
    def is_ppm_bin_based(self) -> bool:
        return self.instrument_class == InstrumentClass.PPM_BIN_BASED

    def __repr__(self):
        return f"GlobalParams(entries={len(self._values)})"
