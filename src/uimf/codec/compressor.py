"""Byte-level compressors applied to packed RLZE sequences."""

import logging

import lz4.block

from uimf.contracts import InvalidArgument

logger = logging.getLogger(__name__)


class ByteCompressor:
    """Interface: ``compress(bytes) -> bytes`` and its inverse."""

    name = "base"

    def compress(self, data: bytes) -> bytes:
        raise NotImplementedError

    def decompress(self, data: bytes) -> bytes:
        raise NotImplementedError


class Lz4Compressor(ByteCompressor):
    """LZ4 block compression with the uncompressed size stored up front."""

    name = "lz4"

    def compress(self, data: bytes) -> bytes:
        return lz4.block.compress(bytes(data), store_size=True)

    def decompress(self, data: bytes) -> bytes:
        return lz4.block.decompress(bytes(data))


class NullCompressor(ByteCompressor):
    name = "none"

    def compress(self, data: bytes) -> bytes:
        return bytes(data)

    def decompress(self, data: bytes) -> bytes:
        return bytes(data)


_COMPRESSORS = {
    Lz4Compressor.name: Lz4Compressor,
    NullCompressor.name: NullCompressor,
}


def get_compressor(name: str = "lz4") -> ByteCompressor:
    """Create a compressor by name ('lz4' or 'none')."""
    try:
        return _COMPRESSORS[name.lower()]()
    except KeyError:
        raise InvalidArgument(f"Unknown compressor: {name}",
                              available=sorted(_COMPRESSORS)) from None
