"""Tests for the uimf-tool command-line entry point."""

import logging
import sqlite3

import pytest

pytestmark = pytest.mark.unit

from uimf.cli import main, run_writer, setup_logging
from uimf.cli.run_writer import build_config, load_user_config_dict
from uimf.params import FrameParamKeyType, GlobalParamKeyType
from uimf.storage import LegacyState, schema


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def user_config_file(temp_dir):
    path = temp_dir / "user_config.py"
    path.write_text('CONFIG = {"FLUSH_INTERVAL": 2, "COMPRESSOR": "none", "OLD_KEY": 1}\n')
    return path


@pytest.fixture
def gapped_container(open_writer, container_path):
    """Container with frames 1, 3 and 4 and one scan per frame."""
    writer = open_writer(container_path)
    writer.create_tables()
    writer.add_update_global_param(GlobalParamKeyType.BINS, 20)
    for frame_num in (1, 3, 4):
        writer.insert_frame(frame_num, {FrameParamKeyType.SCANS: 1})
        writer.insert_scan_sparse(frame_num, 0, {2: 5}, bin_width=1.0)
    writer.close()
    return container_path


class TestConfigLoading:
    """User config files and CLI overrides."""

    def test_load_user_config_dict(self, user_config_file):
        assert load_user_config_dict(str(user_config_file))["COMPRESSOR"] == "none"

    def test_missing_config_file(self, temp_dir):
        with pytest.raises(FileNotFoundError):
            load_user_config_dict(str(temp_dir / "absent.py"))

    def test_config_file_without_dict(self, temp_dir):
        path = temp_dir / "empty_config.py"
        path.write_text("VALUE = 1\n")
        with pytest.raises(ValueError):
            load_user_config_dict(str(path))

    def test_build_config_precedence(self, user_config_file):
        config = build_config(str(user_config_file), {"flush_interval": 9.0, "compressor": None})
        assert config.transaction.flush_interval == 9.0
        assert config.codec.compressor == "none"

    def test_setup_logging_level(self, temp_dir):
        log_path = temp_dir / "uimf.log"
        setup_logging("DEBUG", str(log_path))
        assert logging.getLogger().level == logging.DEBUG
        logging.getLogger("uimf.test").debug("hello")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "hello" in log_path.read_text()


class TestRunWriter:
    """Maintenance steps applied to a container."""

    def test_new_container(self, container_path, internal_config):
        summary = run_writer(str(container_path), internal_config, create=True)
        assert summary["steps"] == []
        assert summary["legacy_state"] == LegacyState.NO_LEGACY_TABLES.value

        conn = sqlite3.connect(str(container_path))
        assert schema.has_modern_tables(conn)
        conn.close()

    def test_missing_container_not_created(self, container_path, internal_config):
        with pytest.raises(FileNotFoundError):
            run_writer(str(container_path), internal_config)
        assert not container_path.exists()

    def test_all_steps(self, gapped_container, internal_config):
        summary = run_writer(str(gapped_container), internal_config, add_legacy_tables=True,
                             renumber_frames=True, update_global_stats=True)

        assert summary["steps"] == ["add_legacy_tables", "renumber_frames (2 changed)",
                                    "update_global_stats"]
        assert summary["num_frames"] == 3
        assert summary["legacy_state"] == LegacyState.BOTH_PRESENT_SYNCED.value

        conn = sqlite3.connect(str(gapped_container))
        frames = conn.execute("SELECT DISTINCT FrameNum FROM Frame_Scans ORDER BY FrameNum").fetchall()
        assert frames == [(1,), (2,), (3,)]
        conn.close()


class TestMain:
    """Argument parsing and the printed summary."""

    def test_main(self, gapped_container, capsys):
        assert main([str(gapped_container), "--update-global-stats", "--flush-interval", "0"]) == 0
        out = capsys.readouterr().out
        assert "Frames: 3" in out
        assert "update_global_stats" in out

    def test_create_flag(self, container_path, capsys):
        assert main([str(container_path), "--create", "--flush-interval", "0"]) == 0
        assert container_path.is_file()
        assert "Frames: 0" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert "uimf-tool" in capsys.readouterr().out

    def test_invalid_compressor(self, container_path):
        with pytest.raises(SystemExit):
            main([str(container_path), "--compressor", "zstd"])
