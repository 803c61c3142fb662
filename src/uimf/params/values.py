"""Tagged parameter values.

Parameter values are stored as text in the EAV tables. ``ParamValue`` pairs a
value with its declared :class:`ParamDataType` and provides total conversions
between Python values, EAV text and typed legacy columns.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Union

from uimf.contracts import InvalidArgument
from uimf.params.keys import ParamDataType

NAN_TOKEN = "NaN"

# Date format written for DateTime parameters
DATE_FORMAT = "%Y-%m-%d %I:%M:%S %p"

_DATE_PARSE_FORMATS = (
    DATE_FORMAT,
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S.%f",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M:%S",
    "%Y-%m-%d",
)

RawValue = Union[int, float, str, datetime]


def standardize_date(value: datetime) -> str:
    """Format a datetime the way DateTime parameters are persisted."""
    return value.strftime(DATE_FORMAT)


def _parse_date(text: str) -> datetime:
    text = text.strip()
    for fmt in _DATE_PARSE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return datetime.fromisoformat(text)


def _to_int(raw: Any) -> int:
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        if not raw.is_integer():
            raise ValueError(f"{raw} is not integral")
        return int(raw)
    if isinstance(raw, str):
        text = raw.strip()
        try:
            return int(text)
        except ValueError:
            return _to_int(float(text))
    if hasattr(raw, "__int__") and not isinstance(raw, datetime):
        # numpy integer scalars
        return int(raw)
    raise ValueError(f"Cannot convert {type(raw).__name__} to int")


def _to_float(raw: Any) -> float:
    if isinstance(raw, datetime):
        raise ValueError("Cannot convert datetime to double")
    if isinstance(raw, str):
        text = raw.strip()
        if text.lower() == "nan":
            return math.nan
        return float(text)
    return float(raw)


def _to_datetime(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, str):
        return _parse_date(raw)
    raise ValueError(f"Cannot convert {type(raw).__name__} to datetime")


def _to_str(raw: Any) -> str:
    if isinstance(raw, datetime):
        return standardize_date(raw)
    if isinstance(raw, float) and math.isnan(raw):
        return NAN_TOKEN
    return str(raw)


_CONVERTERS = {
    ParamDataType.INT: _to_int,
    ParamDataType.DOUBLE: _to_float,
    ParamDataType.STRING: _to_str,
    ParamDataType.DATETIME: _to_datetime,
}


@dataclass(frozen=True)
class ParamValue:
    """A parameter value tagged with its declared data type."""

    data_type: ParamDataType
    value: RawValue

    @classmethod
    def coerce(cls, data_type: ParamDataType, raw: Any) -> "ParamValue":
        """Convert ``raw`` to ``data_type``.

        Raises
        ------
        InvalidArgument
            If the value cannot be represented in the declared type.
        """
        if isinstance(raw, ParamValue):
            raw = raw.value
        if raw is None:
            raise InvalidArgument("Parameter values cannot be None", data_type=data_type.name)
        try:
            return cls(data_type, _CONVERTERS[data_type](raw))
        except (TypeError, ValueError, OverflowError) as exc:
            raise InvalidArgument(
                f"Value {raw!r} is not convertible to {data_type.name}: {exc}",
                data_type=data_type.name,
            ) from exc

    @classmethod
    def from_text(cls, data_type: ParamDataType, text: Any) -> "ParamValue":
        """Parse a value read back from an EAV ``ParamValue`` column."""
        if text is None:
            text = ""
        if data_type == ParamDataType.STRING:
            return cls(data_type, str(text))
        if isinstance(text, str) and not text.strip():
            return cls(data_type, _EMPTY_VALUES[data_type])
        return cls.coerce(data_type, text)

    @property
    def is_nan(self) -> bool:
        return isinstance(self.value, float) and math.isnan(self.value)

    def to_text(self) -> str:
        """Serialize for an EAV ``ParamValue`` column (NaN becomes ``"NaN"``)."""
        if self.data_type == ParamDataType.DOUBLE:
            if self.is_nan:
                return NAN_TOKEN
            value = float(self.value)
            if value.is_integer() and abs(value) < 1e16:
                return str(int(value))
            return repr(value)
        if self.data_type == ParamDataType.DATETIME:
            return standardize_date(self.value)
        return str(self.value)

    def to_legacy(self) -> Union[int, float, str]:
        """Value for a typed column in the legacy fixed-column tables."""
        if self.is_nan:
            return NAN_TOKEN
        if self.data_type == ParamDataType.DATETIME:
            return standardize_date(self.value)
        return self.value

    def as_int(self) -> int:
        if self.data_type == ParamDataType.INT:
            return self.value
        if self.data_type == ParamDataType.DOUBLE:
            return 0 if self.is_nan else int(self.value)
        if self.data_type == ParamDataType.STRING:
            return _to_int(self.value)
        if self.data_type == ParamDataType.DATETIME:
            raise InvalidArgument("DateTime parameters cannot be read as int")
        raise AssertionError(self.data_type)

    def as_float(self) -> float:
        if self.data_type in (ParamDataType.INT, ParamDataType.DOUBLE):
            return float(self.value)
        if self.data_type == ParamDataType.STRING:
            return _to_float(self.value)
        if self.data_type == ParamDataType.DATETIME:
            raise InvalidArgument("DateTime parameters cannot be read as double")
        raise AssertionError(self.data_type)

    def as_str(self) -> str:
        return self.to_text()

    def as_datetime(self) -> datetime:
        if self.data_type == ParamDataType.DATETIME:
            return self.value
        if self.data_type == ParamDataType.STRING:
            return _parse_date(self.value)
        raise InvalidArgument(f"{self.data_type.name} parameters cannot be read as datetime")


_EMPTY_VALUES = {
    ParamDataType.INT: 0,
    ParamDataType.DOUBLE: 0.0,
    ParamDataType.STRING: "",
    ParamDataType.DATETIME: datetime(1, 1, 1),
}
