"""End-to-end insertion of one scan into ``Frame_Scans``."""

import logging
import sqlite3
from typing import Iterable, Mapping, Optional, Tuple, Union

import numpy as np

from uimf.codec import EncodedSpectrum, IntensityConverter
from uimf.contracts import (
    InvalidArgument,
    InvalidOperation,
    SchemaMissing,
    ValueOutOfRange,
    require,
    storage_guard,
)
from uimf.params import FrameParams, convert_bin_to_mz
from uimf.storage import schema
from uimf.storage.param_store import ParamStore
from uimf.storage.transaction import TransactionCoordinator

logger = logging.getLogger(__name__)

BinIntensityPairs = Union[Mapping[int, int], Iterable[Tuple[int, int]]]


class ScanWriter:
    """Encodes spectra and writes scan rows.

    Parameters
    ----------
    conn : sqlite3.Connection
        Writer connection.
    store : ParamStore
        Source of global parameters (bin count, instrument class) and frame
        calibration.
    coordinator : TransactionCoordinator
        Flush policy applied before each insert.
    converter : IntensityConverter
        RLZE width and byte compressor used for the blob.
    """

    def __init__(self, conn: sqlite3.Connection, store: ParamStore,
                 coordinator: TransactionCoordinator, converter: IntensityConverter):
        self._conn = conn
        self._store = store
        self._coordinator = coordinator
        self.converter = converter

    def _check_tof_based(self, frame_num: int, scan_num: int) -> None:
        if self._store.global_params.is_ppm_bin_based:
            raise InvalidOperation(
                "Cannot insert TOF-binned scans when the instrument class is ppm bin-based",
                frame_num=frame_num, scan_num=scan_num,
            )

    def _check_bin_capacity(self, size: int, frame_num: int, scan_num: int) -> None:
        # One extra bin is tolerated; older readers pad spectra by one value
        bins = self._store.global_params.bins
        if size > bins + 1:
            raise ValueOutOfRange(
                f"Intensity list for frame {frame_num}, scan {scan_num} has more entries "
                f"than the number of bins defined in the global parameters ({bins})",
                frame_num=frame_num, scan_num=scan_num, size=size, bins=bins,
            )

    def insert_scan(self, frame_num: int, scan_num: int, intensities,
                    bin_width: float, frame_params: Optional[FrameParams] = None) -> int:
        """Encode a dense intensity array and store it.

        Parameters
        ----------
        frame_num : int
            Frame number (>= 1).
        scan_num : int
            Scan number (>= 0).
        intensities : array-like of int
            One intensity per bin.
        bin_width : float
            Bin width in nanoseconds, used for the base peak m/z.
        frame_params : FrameParams, optional
            Calibration source; loaded from the store when omitted.

        Returns
        -------
        int
            Number of non-zero bins. No row is written when this is 0.

        Raises
        ------
        InvalidOperation
            If the container is ppm bin-based.
        ValueOutOfRange
            If the array is longer than ``Bins + 1``; nothing is written.
        """
        self._coordinator.flush()

        require(frame_num >= 1, "Frame numbers start at 1", frame_num=frame_num)
        require(scan_num >= 0, "Scan numbers cannot be negative", scan_num=scan_num)
        self._check_tof_based(frame_num, scan_num)

        arr = np.asarray(intensities)
        self._check_bin_capacity(arr.size, frame_num, scan_num)

        blob, spectrum = self.converter.encode(arr)
        return self._store_scan(frame_num, scan_num, blob, spectrum, bin_width, frame_params)

    def insert_scan_sparse(self, frame_num: int, scan_num: int,
                           bin_intensities: BinIntensityPairs, bin_width: float,
                           frame_params: Optional[FrameParams] = None) -> int:
        """Store a scan given as non-zero (bin, intensity) pairs.

        Raises
        ------
        InvalidArgument
            If any intensity is zero (zeros break implicit-position decoding).
        InvalidOperation
            If the container is ppm bin-based.
        ValueOutOfRange
            If the largest bin exceeds ``Bins + 1``.
        """
        self._coordinator.flush()

        require(frame_num >= 1, "Frame numbers start at 1", frame_num=frame_num)
        require(scan_num >= 0, "Scan numbers cannot be negative", scan_num=scan_num)
        require(bin_intensities is not None, "Bin to intensity map cannot be None")
        self._check_tof_based(frame_num, scan_num)

        pairs = list(bin_intensities.items() if isinstance(bin_intensities, Mapping)
                     else bin_intensities)
        if not pairs:
            return 0

        zero_bins = [b for b, intensity in pairs if intensity == 0]
        if zero_bins:
            raise InvalidArgument("Intensity value of 0 found in bin to intensity map",
                                  frame_num=frame_num, scan_num=scan_num, bin=zero_bins[0])

        max_bin = max(b for b, _ in pairs)
        if max_bin > self._store.global_params.bins + 1:
            raise ValueOutOfRange(
                f"Bin {max_bin} for frame {frame_num}, scan {scan_num} is beyond the number "
                f"of bins defined in the global parameters ({self._store.global_params.bins})",
                frame_num=frame_num, scan_num=scan_num, bin=max_bin,
            )

        blob, spectrum = self.converter.encode_sparse(pairs)
        return self._store_scan(frame_num, scan_num, blob, spectrum, bin_width, frame_params)

    def _store_scan(self, frame_num: int, scan_num: int, blob: bytes, spectrum: EncodedSpectrum,
                    bin_width: float, frame_params: Optional[FrameParams]) -> int:
        if spectrum.non_zero_count <= 0:
            return 0

        require(schema.table_exists(self._conn, schema.FRAME_SCANS_TABLE),
                "The Frame_Scans table does not exist; call create_tables first",
                error=SchemaMissing, frame_num=frame_num, scan_num=scan_num)

        if frame_params is None:
            frame_params = self._store.frame_params(frame_num)
        bpi_mz = convert_bin_to_mz(spectrum.bpi_index, bin_width, frame_params,
                                   self._store.global_params.tof_correction_time)

        with storage_guard("insert_scan", frame_num=frame_num, scan_num=scan_num):
            self._conn.execute(
                f"INSERT INTO {schema.FRAME_SCANS_TABLE} "
                "(FrameNum, ScanNum, NonZeroCount, BPI, BPI_MZ, TIC, Intensities) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (frame_num, scan_num, spectrum.non_zero_count, spectrum.bpi, bpi_mz,
                 spectrum.tic, sqlite3.Binary(blob)),
            )
        return spectrum.non_zero_count
