"""Spectrum codec: RLZE encoding, byte compression and blob packing."""

from uimf.codec.rlze import (
    RlzeWidth,
    EncodedSpectrum,
    encode,
    encode_with_stats,
    encode_sparse,
    decode,
    decode_points,
)
from uimf.codec.compressor import (
    ByteCompressor,
    Lz4Compressor,
    NullCompressor,
    get_compressor,
)
from uimf.codec.intensity import IntensityConverter

__all__ = [
    "RlzeWidth",
    "EncodedSpectrum",
    "encode",
    "encode_with_stats",
    "encode_sparse",
    "decode",
    "decode_points",
    "ByteCompressor",
    "Lz4Compressor",
    "NullCompressor",
    "get_compressor",
    "IntensityConverter",
]
