"""Tests for the global and frame parameter store."""

import math

import pytest

pytestmark = pytest.mark.unit

from uimf.contracts import InvalidArgument, SchemaMissing, UnknownKey
from uimf.params import FrameParamKeyType, FrameType, GlobalParamKeyType


def _rows(conn, sql, *args):
    return conn.execute(sql, args).fetchall()


class TestGlobalParams:
    """Global_Params maintenance."""

    def test_insert_writes_metadata(self, writer):
        writer.add_update_global_param(GlobalParamKeyType.BINS, 148000)

        rows = _rows(writer.connection,
                     "SELECT ParamName, ParamValue, ParamDataType FROM Global_Params WHERE ParamID = 6")
        assert rows == [("Bins", "148000", "System.Int32")]

    def test_update_keeps_single_row(self, writer):
        writer.add_update_global_param(GlobalParamKeyType.BIN_WIDTH, 0.5)
        writer.add_update_global_param(GlobalParamKeyType.BIN_WIDTH, 0.25)

        rows = _rows(writer.connection, "SELECT ParamValue FROM Global_Params WHERE ParamID = 5")
        assert rows == [("0.25",)]
        assert writer.global_params.bin_width == 0.25

    def test_unconvertible_value_rejected(self, writer):
        with pytest.raises(InvalidArgument):
            writer.add_update_global_param(GlobalParamKeyType.BINS, "lots")

    def test_unknown_key_rejected(self, writer):
        with pytest.raises(UnknownKey):
            writer.add_update_global_param(999, 1)

    def test_requires_table(self, open_writer, container_path):
        bare = open_writer(container_path)
        with pytest.raises(SchemaMissing):
            bare.add_update_global_param(GlobalParamKeyType.BINS, 10)

    def test_cache_reloaded_on_reopen(self, open_writer, container_path):
        first = open_writer(container_path)
        first.create_tables()
        first.insert_global({GlobalParamKeyType.BINS: 400, GlobalParamKeyType.INSTRUMENT_NAME: "QTOF"})
        first.close()

        second = open_writer(container_path)
        assert second.global_params.bins == 400
        assert second.global_params.get_value(GlobalParamKeyType.INSTRUMENT_NAME) == "QTOF"


class TestFrameParams:
    """Frame_Params and Frame_Param_Keys maintenance."""

    def test_insert_frame_registers_keys(self, writer):
        writer.insert_frame(1, {FrameParamKeyType.SCANS: 360, FrameParamKeyType.FRAME_TYPE: 2})

        keys = _rows(writer.connection, "SELECT ParamID FROM Frame_Param_Keys ORDER BY ParamID")
        assert keys == [(4,), (7,)]
        view = _rows(writer.connection,
                     "SELECT ParamName, ParamValue FROM V_Frame_Params WHERE FrameNum = 1 "
                     "ORDER BY ParamID")
        assert view == [("FrameType", "2"), ("Scans", "360")]

    def test_insert_frame_overwrites_existing_entries(self, writer):
        writer.insert_frame(1, {FrameParamKeyType.SCANS: 360})
        writer.insert_frame(1, {FrameParamKeyType.SCANS: 400})

        rows = _rows(writer.connection, "SELECT ParamValue FROM Frame_Params WHERE FrameNum = 1")
        assert rows == [("400",)]

    def test_add_update_frame_param_refreshes_cache(self, writer):
        writer.insert_frame(2, {FrameParamKeyType.FRAME_TYPE: 1})
        assert writer.frame_params(2).frame_type == FrameType.MS1

        writer.add_update_frame_param(2, FrameParamKeyType.FRAME_TYPE, 2)
        assert writer.frame_params(2).frame_type == FrameType.MS2

    def test_frame_number_must_be_positive(self, writer):
        with pytest.raises(InvalidArgument):
            writer.add_update_frame_param(0, FrameParamKeyType.SCANS, 1)
        with pytest.raises(InvalidArgument):
            writer.insert_frame(0, {FrameParamKeyType.SCANS: 1})

    def test_unknown_frame_key(self, writer):
        with pytest.raises(UnknownKey):
            writer.add_update_frame_param(1, 1234, 1)

    def test_validate_key_registers_definition(self, writer):
        writer.validate_key(FrameParamKeyType.AMBIENT_TEMPERATURE)
        rows = _rows(writer.connection, "SELECT ParamName FROM Frame_Param_Keys WHERE ParamID = 20")
        assert len(rows) == 1

    def test_frame_without_entries_reads_as_defaults(self, writer):
        fp = writer.frame_params(77)
        assert len(fp) == 0
        assert fp.frame_type == FrameType.MS1


class TestAssureAllFramesHaveParam:
    """Back-filling a key into frames that lack it."""

    def test_fills_only_missing_frames(self, populated_writer):
        populated_writer.add_update_frame_param(2, FrameParamKeyType.DECODED, 1)

        added = populated_writer.assure_all_frames_have_param(FrameParamKeyType.DECODED, 0)
        assert added == 2

        rows = _rows(populated_writer.connection,
                     "SELECT FrameNum, ParamValue FROM Frame_Params WHERE ParamID = 5 ORDER BY FrameNum")
        assert rows == [(1, "0"), (2, "1"), (3, "0")]

    def test_second_call_adds_nothing(self, populated_writer):
        populated_writer.assure_all_frames_have_param(FrameParamKeyType.DECODED, 0)
        assert populated_writer.assure_all_frames_have_param(FrameParamKeyType.DECODED, 0) == 0

    def test_frame_range(self, populated_writer):
        added = populated_writer.assure_all_frames_have_param(
            FrameParamKeyType.AMBIENT_TEMPERATURE, 21.5, frame_range=(2, 3))
        assert added == 2
        assert FrameParamKeyType.AMBIENT_TEMPERATURE not in populated_writer.frame_params(1)
        assert populated_writer.frame_params(3).get_value(FrameParamKeyType.AMBIENT_TEMPERATURE) == 21.5

    def test_frame_range_with_zero_end_covers_all(self, populated_writer):
        added = populated_writer.assure_all_frames_have_param(
            FrameParamKeyType.DECODED, 0, frame_range=(2, 0))
        assert added == 3


class TestNaNValues:
    """NaN doubles are stored as the literal "NaN", never as NULL."""

    def test_nan_written_to_eav_and_legacy_tables(self, populated_writer):
        populated_writer.add_legacy_parameter_tables()
        populated_writer.add_update_frame_param(2, FrameParamKeyType.CALIBRATION_SLOPE, math.nan)
        populated_writer.add_update_global_param(GlobalParamKeyType.TOF_CORRECTION_TIME, math.nan)

        conn = populated_writer.connection
        assert _rows(conn, "SELECT ParamValue FROM Frame_Params WHERE FrameNum = 2 AND ParamID = ?",
                     int(FrameParamKeyType.CALIBRATION_SLOPE)) == [("NaN",)]
        assert _rows(conn, "SELECT ParamValue FROM Global_Params WHERE ParamID = ?",
                     int(GlobalParamKeyType.TOF_CORRECTION_TIME)) == [("NaN",)]
        assert _rows(conn, "SELECT CalibrationSlope FROM Frame_Parameters WHERE FrameNum = 2") == \
            [("NaN",)]
        assert _rows(conn, "SELECT TOFCorrectionTime FROM Global_Parameters") == [("NaN",)]

    def test_nan_read_back_as_nan(self, populated_writer):
        populated_writer.add_update_frame_param(1, FrameParamKeyType.CALIBRATION_SLOPE, math.nan)
        populated_writer.session.frame_params.clear()
        assert math.isnan(populated_writer.frame_params(1).get_value(FrameParamKeyType.CALIBRATION_SLOPE))
