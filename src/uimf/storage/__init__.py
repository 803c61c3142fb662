"""Container storage: schema, transactions, parameter store, legacy mirror and scans."""

from uimf.storage.session import WriterSession
from uimf.storage.transaction import TransactionCoordinator
from uimf.storage.legacy_mirror import LegacyMirror, LegacyState, NullMirror, ParamMirror
from uimf.storage.reader import UimfParamReader
from uimf.storage.param_store import ParamStore
from uimf.storage.scan_writer import ScanWriter
from uimf.storage.writer import BinCentricIndexBuilder, UimfWriter, round_up_scan_count

__all__ = [
    "WriterSession",
    "TransactionCoordinator",
    "ParamMirror",
    "NullMirror",
    "LegacyMirror",
    "LegacyState",
    "UimfParamReader",
    "ParamStore",
    "ScanWriter",
    "UimfWriter",
    "BinCentricIndexBuilder",
    "round_up_scan_count",
]
