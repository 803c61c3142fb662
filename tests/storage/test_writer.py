"""Tests for the writer facade and the container maintenance operations."""

import sqlite3

import numpy as np
import pytest

pytestmark = pytest.mark.unit

from uimf.contracts import InvalidArgument, SchemaMissing, UnknownKey
from uimf.params import FrameParamKeyType, FrameType, GlobalParamKeyType
from uimf.storage import UimfWriter, round_up_scan_count, schema
from uimf.storage.schema import FILE_FORMAT_VERSION


def _count(conn, sql, *args):
    return conn.execute(sql, args).fetchone()[0]


def _add_scans(writer, frame_num, scan_nums):
    for scan_num in scan_nums:
        writer.insert_scan_sparse(frame_num, scan_num, {scan_num + 1: 10}, bin_width=1.0)


class TestLifecycle:
    """Opening, flushing and closing."""

    def test_empty_path_rejected(self, writer_config):
        with pytest.raises(InvalidArgument):
            UimfWriter("", writer_config)

    def test_version_info_written_on_open(self, writer):
        rows = writer.connection.execute(
            "SELECT File_Version, Calling_Assembly_Name FROM Version_Info").fetchall()
        assert rows == [(FILE_FORMAT_VERSION, "uimf-tool")]

    def test_version_info_row_added_per_session(self, open_writer, container_path):
        open_writer(container_path).close()
        writer = open_writer(container_path)
        assert _count(writer.connection, "SELECT COUNT(*) FROM Version_Info") == 2

    def test_create_tables(self, writer):
        conn = writer.connection
        for table in ("Global_Params", "Frame_Param_Keys", "Frame_Params", "Frame_Scans",
                      "Version_Info"):
            assert schema.table_exists(conn, table)
        assert not schema.has_legacy_tables(conn)

    def test_close_commits(self, writer, container_path):
        writer.add_update_global_param(GlobalParamKeyType.BINS, 321)
        writer.close()
        assert writer.closed

        conn = sqlite3.connect(str(container_path))
        assert _count(conn, "SELECT ParamValue FROM Global_Params WHERE ParamID = 6") == "321"
        conn.close()

    def test_close_is_idempotent(self, writer):
        writer.close()
        writer.close()

    def test_closed_writer_rejects_writes(self, writer):
        writer.close()
        with pytest.raises(InvalidArgument):
            writer.insert_frame(1, {FrameParamKeyType.SCANS: 1})

    def test_context_manager(self, writer_config, container_path):
        with UimfWriter(container_path, writer_config, sleep=lambda s: None) as w:
            w.create_tables()
        assert w.closed

    def test_flush_makes_data_visible(self, writer, container_path):
        writer.add_update_global_param(GlobalParamKeyType.BINS, 5)
        assert writer.flush() is True

        other = sqlite3.connect(str(container_path))
        assert other.execute("SELECT COUNT(*) FROM Global_Params").fetchall() == [(1,)]
        other.close()

    def test_batches_committed_after_interval(self, writer, fake_clock):
        commits = writer.session.commit_count
        writer.insert_frame(1, {FrameParamKeyType.SCANS: 1})
        assert writer.session.commit_count == commits

        fake_clock.advance(6)
        writer.insert_frame(2, {FrameParamKeyType.SCANS: 1})
        assert writer.session.commit_count == commits + 1

    def test_global_param_and_scan_writes_are_batched(self, writer, fake_clock):
        commits = writer.session.commit_count
        writer.add_update_global_param(GlobalParamKeyType.BINS, 10)
        assert writer.session.commit_count == commits

        fake_clock.advance(10)
        writer.add_update_global_param(GlobalParamKeyType.BINS, 20)
        assert writer.session.commit_count == commits + 1

        fake_clock.advance(10)
        writer.insert_scan_sparse(1, 0, {2: 5}, bin_width=1.0)
        assert writer.session.commit_count == commits + 2


class TestFrameDeletion:
    """Deleting frames and scans."""

    def test_delete_frame(self, populated_writer):
        _add_scans(populated_writer, 2, [0, 1])
        populated_writer.delete_frame(2, update_global=True)

        conn = populated_writer.connection
        assert _count(conn, "SELECT COUNT(*) FROM Frame_Params WHERE FrameNum = 2") == 0
        assert _count(conn, "SELECT COUNT(*) FROM Frame_Scans WHERE FrameNum = 2") == 0
        assert populated_writer.global_params.num_frames == 2

    def test_frame_count_floor_is_zero(self, populated_writer):
        populated_writer.add_update_global_param(GlobalParamKeyType.NUM_FRAMES, 1)
        populated_writer.delete_frames([1, 2, 3], update_global=True)
        assert populated_writer.global_params.num_frames == 0

    def test_delete_frames_keeps_count_without_flag(self, populated_writer):
        populated_writer.delete_frames([1, 3])
        assert populated_writer.store.frame_numbers() == [2]
        assert populated_writer.global_params.num_frames == 3

    def test_delete_frame_removes_legacy_row(self, populated_writer):
        populated_writer.add_legacy_parameter_tables()
        populated_writer.delete_frame(1)
        assert _count(populated_writer.connection,
                      "SELECT COUNT(*) FROM Frame_Parameters WHERE FrameNum = 1") == 0

    def test_delete_frame_scans(self, populated_writer):
        _add_scans(populated_writer, 1, [0, 1, 2])
        populated_writer.delete_frame_scans(1, update_scan_count=True)

        assert _count(populated_writer.connection,
                      "SELECT COUNT(*) FROM Frame_Scans WHERE FrameNum = 1") == 0
        assert populated_writer.frame_params(1).scans == 0
        assert populated_writer.frame_params(2).scans == 10

    def test_delete_all_frame_scans_by_type(self, populated_writer):
        populated_writer.add_update_frame_param(2, FrameParamKeyType.FRAME_TYPE, 2)
        for frame_num in (1, 2, 3):
            _add_scans(populated_writer, frame_num, [0, 1])

        populated_writer.delete_all_frame_scans(FrameType.MS1, update_scan_count=True, shrink=True)

        conn = populated_writer.connection
        remaining = conn.execute("SELECT DISTINCT FrameNum FROM Frame_Scans").fetchall()
        assert remaining == [(2,)]
        assert populated_writer.frame_params(1).scans == 0
        assert populated_writer.frame_params(2).scans == 10
        assert conn.in_transaction


class TestRenumberFrames:
    """Closing gaps in frame numbering."""

    def test_renumber(self, populated_writer):
        populated_writer.insert_frame(7, {FrameParamKeyType.SCANS: 4})
        _add_scans(populated_writer, 7, [0])
        populated_writer.delete_frame(2)

        changed = populated_writer.renumber_frames()

        assert changed == 2
        assert populated_writer.store.frame_numbers() == [1, 2, 3]
        assert populated_writer.frame_params(3).scans == 4
        assert _count(populated_writer.connection,
                      "SELECT FrameNum FROM Frame_Scans WHERE ScanNum = 0") == 3

    def test_shifts_logged(self, populated_writer):
        populated_writer.insert_frame(4, {FrameParamKeyType.SCANS: 1})
        populated_writer.insert_frame(9, {FrameParamKeyType.SCANS: 1})
        populated_writer.delete_frames([2])

        populated_writer.renumber_frames()

        messages = [row[0] for row in populated_writer.connection.execute(
            "SELECT Message FROM Log_Entries WHERE Posted_By = 'ShiftFramesInBatch' ORDER BY Entry_ID")]
        assert messages == [
            "Decremented frame number by 1 for frames 3 through 4",
            "Decremented frame number by 5 for frames 9 through 9",
        ]

    def test_contiguous_frames_unchanged(self, populated_writer):
        assert populated_writer.renumber_frames() == 0
        assert not schema.table_exists(populated_writer.connection, "Log_Entries")

    def test_legacy_rows_renumbered(self, populated_writer):
        populated_writer.add_legacy_parameter_tables()
        populated_writer.delete_frame(1)
        populated_writer.renumber_frames()

        rows = populated_writer.connection.execute(
            "SELECT FrameNum FROM Frame_Parameters ORDER BY FrameNum").fetchall()
        assert rows == [(1,), (2,)]


class TestCalibration:
    """Calibration coefficient updates."""

    def test_single_frame(self, populated_writer):
        populated_writer.update_calibration_coefficients(2, 0.35, 0.02, is_auto_calibrating=True)
        fp = populated_writer.frame_params(2)
        assert fp.calibration_slope == 0.35
        assert fp.calibration_intercept == 0.02
        assert fp.get_value(FrameParamKeyType.CALIBRATION_DONE) == 1

    def test_all_frames_auto(self, populated_writer):
        populated_writer.update_all_calibration_coefficients(0.4, 0.01, is_auto_calibrating=True)
        for frame_num in (1, 2, 3):
            fp = populated_writer.frame_params(frame_num)
            assert fp.calibration_slope == 0.4
            assert fp.calibration_intercept == 0.01
            assert fp.get_value(FrameParamKeyType.CALIBRATION_DONE) == 1

    def test_all_frames_manual_updates_legacy(self, populated_writer):
        populated_writer.add_legacy_parameter_tables()
        populated_writer.update_all_calibration_coefficients(0.4, 0.01, manually_calibrating=True)

        rows = populated_writer.connection.execute(
            "SELECT DISTINCT CalibrationSlope, CalibrationDone FROM Frame_Parameters").fetchall()
        assert rows == [(0.4, -1)]
        assert populated_writer.frame_params(3).get_value(FrameParamKeyType.CALIBRATION_DONE) == -1

    def test_calibration_done_untouched_without_flags(self, populated_writer):
        populated_writer.update_all_calibration_coefficients(0.4, 0.01)
        assert FrameParamKeyType.CALIBRATION_DONE not in populated_writer.frame_params(1)


class TestFrameParameterHelpers:
    """Convenience updates of frame parameters."""

    def test_update_frame_type(self, populated_writer):
        populated_writer.update_frame_type(1, 4)
        types = [populated_writer.frame_params(n).frame_type for n in (1, 2, 3, 4)]
        assert types == [FrameType.MS2, FrameType.MS2, FrameType.MS2, FrameType.MS1]

    def test_update_scan_count(self, populated_writer):
        populated_writer.update_frame_scan_count(1, 42)
        assert populated_writer.frame_params(1).scans == 42

    def test_update_by_name(self, populated_writer):
        populated_writer.update_frame_parameter_by_name(1, "calibrationslope", 1.5)
        assert populated_writer.frame_params(1).calibration_slope == 1.5

    def test_update_by_unknown_name(self, populated_writer):
        with pytest.raises(UnknownKey):
            populated_writer.update_frame_parameter_by_name(1, "Voltage9000", 1.0)


class TestGlobalStats:
    """NumFrames and PrescanTOFPulses refresh."""

    @pytest.mark.parametrize("max_scan,expected", [
        (1, 10), (47, 50), (100, 100), (101, 110), (360, 360), (1234, 1300),
    ])
    def test_round_up_scan_count(self, max_scan, expected):
        assert round_up_scan_count(max_scan) == expected

    def test_update_global_stats(self, populated_writer):
        populated_writer.add_update_global_param(GlobalParamKeyType.NUM_FRAMES, 99)
        _add_scans(populated_writer, 1, [0, 46])

        populated_writer.update_global_stats()

        gp = populated_writer.global_params
        assert gp.num_frames == 3
        assert gp.get_value(GlobalParamKeyType.PRESCAN_TOF_PULSES) == 50

    def test_large_existing_value_replaced(self, populated_writer):
        populated_writer.add_update_global_param(GlobalParamKeyType.PRESCAN_TOF_PULSES, 1000)
        _add_scans(populated_writer, 1, [46])

        populated_writer.update_global_stats()
        assert populated_writer.global_params.get_value(GlobalParamKeyType.PRESCAN_TOF_PULSES) == 50

    def test_close_existing_value_kept(self, writer):
        writer.add_update_global_param(GlobalParamKeyType.BINS, 100)
        for frame_num in range(1, 21):
            writer.insert_frame(frame_num, {FrameParamKeyType.SCANS: 6})
        writer.add_update_global_param(GlobalParamKeyType.PRESCAN_TOF_PULSES, 20)
        _add_scans(writer, 1, [5])

        writer.update_global_stats()
        assert writer.global_params.get_value(GlobalParamKeyType.PRESCAN_TOF_PULSES) == 20

    def test_no_scans_leaves_prescan_alone(self, populated_writer):
        populated_writer.update_global_stats()
        assert GlobalParamKeyType.PRESCAN_TOF_PULSES not in populated_writer.global_params

    def test_requires_frame_params_table(self, open_writer, container_path):
        writer = open_writer(container_path)
        with pytest.raises(SchemaMissing):
            writer.update_global_stats()


class TestAuxiliaryTables:
    """Log entries, stored files and the bin-centric table."""

    def test_post_log_entry(self, writer):
        writer.post_log_entry("Error", "Detector saturated", "Acquisition")
        row = writer.connection.execute(
            "SELECT Posted_By, Type, Message, Posting_Time FROM Log_Entries").fetchone()
        assert row[:3] == ("Acquisition", "Error", "Detector saturated")
        assert row[3]

    def test_write_file_to_table_replaces_content(self, writer):
        writer.write_file_to_table("Instrument_Settings", b"first")
        writer.write_file_to_table("Instrument_Settings", b"second")
        rows = writer.connection.execute("SELECT FileText FROM Instrument_Settings").fetchall()
        assert rows == [(b"second",)]

    def test_write_file_to_table_rejects_bad_name(self, writer):
        with pytest.raises(InvalidArgument):
            writer.write_file_to_table("Settings; DROP TABLE Frame_Params", b"x")

    def test_bin_centric_tables(self, populated_writer):
        class FakeBuilder:
            def __init__(self):
                self.calls = []

            def build_bin_centric_index(self, conn, working_dir):
                self.calls.append(working_dir)
                conn.execute("CREATE TABLE Bin_Intensities (MZ_BIN INTEGER, INTENSITIES BLOB)")

        builder = FakeBuilder()
        assert populated_writer.create_bin_centric_tables(builder, "/tmp/work") is True
        assert populated_writer.create_bin_centric_tables(builder) is False
        assert builder.calls == ["/tmp/work"]

        assert populated_writer.remove_bin_centric_tables() is True
        assert populated_writer.remove_bin_centric_tables() is False


class TestRoundTrip:
    """Data written in one session is readable in the next."""

    def test_reopen_reads_scans(self, open_writer, container_path):
        first = open_writer(container_path)
        first.create_tables()
        first.add_update_global_param(GlobalParamKeyType.BINS, 50)
        first.insert_frame(1, {FrameParamKeyType.SCANS: 1})
        intensities = np.zeros(50, dtype=np.int32)
        intensities[[3, 4]] = [100, 200]
        first.insert_scan(1, 0, intensities, 1.0)
        first.close()

        second = open_writer(container_path)
        scans = second.reader.get_frame_scans(1)
        assert scans["TIC"].tolist() == [300]
        np.testing.assert_array_equal(second.reader.get_spectrum(1, 0, second.converter), intensities)
