"""`uimf` - write path for UIMF ion-mobility data containers.

Subpackages:
- params: Parameter catalog, typed values, frame and global aggregates
- codec: RLZE intensity encoding and blob compression
- storage: Tables, parameter store, legacy mirror, scan writer, writer session
- schemas: Configuration layers
"""

__version__ = "0.1.0"
