"""Glue between the RLZE codec, byte packing and the byte compressor."""

from typing import Iterable, Mapping, Tuple, Union

import numpy as np

from uimf.codec.compressor import ByteCompressor, Lz4Compressor
from uimf.codec.rlze import (
    EncodedSpectrum,
    RlzeWidth,
    decode,
    encode_sparse,
    encode_with_stats,
)


class IntensityConverter:
    """Turn intensity arrays into ``Frame_Scans.Intensities`` blobs and back.

    Encoded sequences are packed little-endian at the converter's width and
    then passed through the compressor.

    Parameters
    ----------
    width : RlzeWidth
        Element type of the encoded sequence.
    compressor : ByteCompressor, optional
        Defaults to :class:`Lz4Compressor`.
    """

    def __init__(self, width: RlzeWidth = RlzeWidth.WIDE, compressor: ByteCompressor = None):
        self.width = RlzeWidth(width)
        self.compressor = compressor or Lz4Compressor()
        self._packed_dtype = self.width.dtype.newbyteorder("<")

    def encode(self, intensities) -> Tuple[bytes, EncodedSpectrum]:
        spectrum = encode_with_stats(intensities, self.width)
        return self.to_blob(spectrum.values), spectrum

    def encode_sparse(self, bin_intensities: Union[Mapping[int, int], Iterable[Tuple[int, int]]]
                      ) -> Tuple[bytes, EncodedSpectrum]:
        spectrum = encode_sparse(bin_intensities, self.width)
        return self.to_blob(spectrum.values), spectrum

    def to_blob(self, encoded) -> bytes:
        packed = np.asarray(encoded, dtype=self._packed_dtype).tobytes()
        return self.compressor.compress(packed)

    def from_blob(self, blob: bytes, bin_count: int, strict: bool = True) -> np.ndarray:
        encoded = np.frombuffer(self.compressor.decompress(blob), dtype=self._packed_dtype)
        return decode(encoded, bin_count, strict=strict)
