"""Run-length zero encoding (RLZE) of sparse intensity arrays.

An encoded spectrum is a sequence of signed integers. A negative entry
``-n`` skips ``n`` bins (implicit zeros); a positive entry is the
intensity at the current bin and advances the cursor by one. Zero runs
longer than the element type can represent are split greedily into chunks
of ``abs(iinfo.min)``, emitted back to back with no filler between them.
A zero run that reaches the end of the array is emitted only as far as its
full chunks; the decoder zero-fills the tail.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, List, Mapping, Tuple, Union

import numpy as np

from uimf.contracts import InvalidArgument, ValueOutOfRange, require

logger = logging.getLogger(__name__)


class RlzeWidth(str, Enum):
    """Element type of an encoded sequence."""
    WIDE = "int32"
    NARROW = "int16"

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(self.value)

    @property
    def max_run(self) -> int:
        """Longest zero run a single negative entry can hold."""
        return -int(np.iinfo(self.dtype).min)

    @property
    def max_value(self) -> int:
        return int(np.iinfo(self.dtype).max)


@dataclass(frozen=True)
class EncodedSpectrum:
    """RLZE output together with the statistics gathered while encoding.

    Attributes
    ----------
    values : np.ndarray
        Encoded sequence, dtype given by the width.
    non_zero_count : int
        Number of bins with a non-zero intensity.
    tic : int
        Total ion current (sum of intensities), as an unbounded Python int.
    bpi : int
        Base peak intensity (largest single intensity).
    bpi_index : int
        Bin of the first occurrence of ``bpi``; 0 for an empty spectrum.
    """

    values: np.ndarray
    non_zero_count: int
    tic: int
    bpi: int
    bpi_index: int


def _emit_run(out: List[int], run: int, max_run: int) -> None:
    full, remainder = divmod(run, max_run)
    out.extend([-max_run] * full)
    if remainder:
        out.append(-remainder)


def _encode_points(points: Iterable[Tuple[int, int]], width: RlzeWidth,
                   total_bins: int = None) -> EncodedSpectrum:
    """Encode ascending (bin, intensity) pairs with no zero intensities."""
    max_run = width.max_run
    max_value = width.max_value

    out: List[int] = []
    cursor = 0
    non_zero_count = 0
    tic = 0
    bpi = 0
    bpi_index = 0

    for bin_index, intensity in points:
        if intensity > max_value:
            raise ValueOutOfRange(
                f"Intensity {intensity} exceeds the {width.value} range",
                bin=bin_index, max_value=max_value,
            )
        _emit_run(out, bin_index - cursor, max_run)
        out.append(intensity)
        cursor = bin_index + 1

        non_zero_count += 1
        tic += intensity
        if intensity > bpi:
            bpi = intensity
            bpi_index = bin_index

    if total_bins is not None:
        # Only full chunks of a trailing run are written
        full = (total_bins - cursor) // max_run
        out.extend([-max_run] * full)

    return EncodedSpectrum(
        values=np.asarray(out, dtype=width.dtype),
        non_zero_count=non_zero_count,
        tic=tic,
        bpi=bpi,
        bpi_index=bpi_index,
    )


def encode_with_stats(intensities, width: RlzeWidth = RlzeWidth.WIDE) -> EncodedSpectrum:
    """Encode a dense intensity array and compute its summary statistics.

    Parameters
    ----------
    intensities : array-like
        One intensity per bin; values must lie in ``[0, width.max_value]``.
    width : RlzeWidth
        Output element type.

    Returns
    -------
    EncodedSpectrum

    Raises
    ------
    InvalidArgument
        If the input is not one-dimensional or holds negative or
        non-integral values.
    ValueOutOfRange
        If an intensity does not fit the output element type.
    """
    width = RlzeWidth(width)
    arr = np.asarray(intensities)
    require(arr.ndim == 1, "Intensity array must be one-dimensional", ndim=arr.ndim)

    nonzero = np.flatnonzero(arr)
    values = arr[nonzero]
    if values.size and values.min() < 0:
        raise InvalidArgument("Intensities cannot be negative",
                              bin=int(nonzero[np.argmin(values)]))
    if np.issubdtype(values.dtype, np.floating):
        fractional = np.flatnonzero(values != np.floor(values))
        if fractional.size:
            raise InvalidArgument("Intensities must be whole numbers",
                                  bin=int(nonzero[fractional[0]]))

    points = zip(nonzero.tolist(), values.astype(np.int64).tolist())
    return _encode_points(points, width, total_bins=arr.size)


def encode(intensities, width: RlzeWidth = RlzeWidth.WIDE) -> np.ndarray:
    """Encode a dense intensity array; see :func:`encode_with_stats`."""
    return encode_with_stats(intensities, width).values


def encode_sparse(bin_intensities: Union[Mapping[int, int], Iterable[Tuple[int, int]]],
                  width: RlzeWidth = RlzeWidth.WIDE) -> EncodedSpectrum:
    """Encode a sparse spectrum given as non-zero (bin, intensity) pairs.

    No trailing run is written since the total bin count is not known here.

    Raises
    ------
    InvalidArgument
        For zero, negative or non-integral intensities, negative bins, or
        duplicate bins.
    """
    width = RlzeWidth(width)
    pairs = bin_intensities.items() if isinstance(bin_intensities, Mapping) else bin_intensities
    points = sorted((int(b), i) for b, i in pairs)

    previous = -1
    for bin_index, intensity in points:
        require(bin_index >= 0, "Bin numbers cannot be negative", bin=bin_index)
        require(bin_index != previous, "Duplicate bin in sparse spectrum", bin=bin_index)
        require(float(intensity).is_integer(), "Intensities must be whole numbers",
                bin=bin_index, intensity=intensity)
        require(intensity > 0,
                "Sparse spectra must only contain non-zero intensities",
                bin=bin_index, intensity=intensity)
        previous = bin_index

    points = [(b, int(i)) for b, i in points]
    return _encode_points(points, width)


def decode_points(encoded, skip_zero_entries: bool = True) -> Iterator[Tuple[int, int]]:
    """Yield (bin, intensity) for every non-zero entry of an encoded sequence.

    Parameters
    ----------
    encoded : array-like of int
        RLZE sequence.
    skip_zero_entries : bool
        Ignore zero-valued entries without moving the cursor. Spectra written
        by older acquisition software contain a spurious ``0`` after each
        full-magnitude chunk; skipping it keeps those files readable.
    """
    cursor = 0
    for entry in np.asarray(encoded).tolist():
        if entry < 0:
            cursor -= entry
        elif entry == 0 and skip_zero_entries:
            continue
        else:
            yield cursor, entry
            cursor += 1


def decode(encoded, bin_count: int, strict: bool = True,
           skip_zero_entries: bool = True) -> np.ndarray:
    """Expand an encoded sequence into a dense array of ``bin_count`` bins.

    Raises
    ------
    ValueOutOfRange
        If a value would land at or beyond ``bin_count`` and ``strict`` is True.
        With ``strict=False`` decoding stops at that point and logs a warning.
    """
    require(bin_count >= 0, "Bin count cannot be negative", bin_count=bin_count)
    result = np.zeros(bin_count, dtype=np.int64)

    for bin_index, intensity in decode_points(encoded, skip_zero_entries):
        if bin_index >= bin_count:
            if strict:
                raise ValueOutOfRange(
                    "Encoded spectrum extends past the bin count",
                    bin=bin_index, bin_count=bin_count,
                )
            logger.warning("Index out of bounds while decoding spectrum: %d >= %d",
                           bin_index, bin_count)
            break
        result[bin_index] = intensity

    return result
