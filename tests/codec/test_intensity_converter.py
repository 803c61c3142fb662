"""Tests for blob packing and byte compression of encoded spectra."""

import lz4.block
import numpy as np
import pytest

pytestmark = pytest.mark.unit

from uimf.codec import (
    IntensityConverter,
    Lz4Compressor,
    NullCompressor,
    RlzeWidth,
    get_compressor,
)
from uimf.contracts import InvalidArgument


class TestCompressors:
    """Compressor lookup and behavior."""

    def test_get_compressor_by_name(self):
        assert isinstance(get_compressor("lz4"), Lz4Compressor)
        assert isinstance(get_compressor("LZ4"), Lz4Compressor)
        assert isinstance(get_compressor("none"), NullCompressor)

    def test_unknown_compressor(self):
        with pytest.raises(InvalidArgument):
            get_compressor("zstd")

    def test_lz4_stores_uncompressed_size(self):
        """Blobs are readable by any LZ4 block decoder that expects a size prefix."""
        payload = bytes(range(64)) * 4
        blob = Lz4Compressor().compress(payload)
        assert lz4.block.decompress(blob) == payload

    def test_null_compressor_is_identity(self):
        assert NullCompressor().compress(b"\x01\x02") == b"\x01\x02"


class TestIntensityConverter:
    """Dense and sparse spectra to blobs and back."""

    def test_uncompressed_blob_is_little_endian_int32(self):
        converter = IntensityConverter(RlzeWidth.WIDE, NullCompressor())
        blob, spectrum = converter.encode([0, 0, 5])
        assert blob == np.array([-2, 5], dtype="<i4").tobytes()
        assert spectrum.non_zero_count == 1

    def test_narrow_blob_uses_two_bytes_per_entry(self):
        converter = IntensityConverter(RlzeWidth.NARROW, NullCompressor())
        blob, _ = converter.encode([0, 0, 5])
        assert len(blob) == 4

    def test_lz4_round_trip(self):
        converter = IntensityConverter()
        original = np.zeros(500, dtype=np.int64)
        original[[3, 100, 499]] = [12, 7, 1]
        blob, _ = converter.encode(original)
        np.testing.assert_array_equal(converter.from_blob(blob, original.size), original)

    def test_sparse_blob_decodes_to_dense(self):
        converter = IntensityConverter(RlzeWidth.NARROW)
        blob, spectrum = converter.encode_sparse({40000: 3, 2: 9})
        decoded = converter.from_blob(blob, 40010)
        assert decoded[2] == 9
        assert decoded[40000] == 3
        assert decoded.sum() == 12
        assert spectrum.bpi_index == 2
