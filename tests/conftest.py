"""Root-level pytest fixtures for the uimf test suite.

Provides shared configuration fixtures following the Pydantic-based config
layers, plus writer fixtures over temporary containers. Tests build configs
through these fixtures instead of raw dicts.
"""

import shutil
import tempfile
from pathlib import Path

import pytest

from uimf.params import FrameParamKeyType, GlobalParamKeyType
from uimf.schemas import UserConfig, WriterParamConfig, resolve_config
from uimf.storage import UimfWriter


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def param_config():
    """Expert configuration with all defaults."""
    return WriterParamConfig()


@pytest.fixture
def internal_config(param_config):
    """Fully validated runtime configuration (no overrides)."""
    return resolve_config(param_config, None, None)


@pytest.fixture
def make_config(param_config):
    """Factory fixture for creating custom test configs.

    Returns a callable that accepts UserConfig-compatible kwargs.

    Examples
    --------
    >>> def test_uncompressed(make_config):
    ...     config = make_config(COMPRESSOR="none")
    ...     assert config.codec.compressor == "none"
    """
    def _make(**user_overrides):
        if user_overrides:
            user = UserConfig(**user_overrides)
            return resolve_config(param_config, user, None)
        return resolve_config(param_config, None, None)

    return _make


@pytest.fixture
def writer_config(make_config):
    """Config used by writer fixtures: no settle pause between batches."""
    return make_config(SETTLE_DELAY=0)


# =============================================================================
# Clock
# =============================================================================

class FakeClock:
    """Manually advanced monotonic clock; also records sleep calls."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)


@pytest.fixture
def fake_clock():
    return FakeClock()


# =============================================================================
# Directory / Container Fixtures
# =============================================================================

@pytest.fixture
def temp_dir():
    """Temporary directory that is cleaned up after test."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def container_path(temp_dir):
    """Path of a not yet existing container file."""
    return temp_dir / "test.uimf"


@pytest.fixture
def open_writer(writer_config, fake_clock, temp_dir):
    """Factory opening writers on the fake clock; all are closed before ``temp_dir`` is removed."""
    writers = []

    def _open(path, config=None):
        writer = UimfWriter(path, config or writer_config,
                            clock=fake_clock, sleep=fake_clock.sleep)
        writers.append(writer)
        return writer

    yield _open
    for writer in writers:
        writer.close()


@pytest.fixture
def writer(open_writer, container_path):
    """Writer on a new container with all tables created."""
    w = open_writer(container_path)
    w.create_tables()
    return w


@pytest.fixture
def populated_writer(writer):
    """Writer with typical global parameters and three MS1 frames."""
    writer.insert_global({
        GlobalParamKeyType.INSTRUMENT_NAME: "IMS08",
        GlobalParamKeyType.BINS: 100,
        GlobalParamKeyType.BIN_WIDTH: 1.0,
        GlobalParamKeyType.TOF_CORRECTION_TIME: 0.0,
        GlobalParamKeyType.NUM_FRAMES: 3,
    })
    for frame_num in (1, 2, 3):
        writer.insert_frame(frame_num, {
            FrameParamKeyType.FRAME_TYPE: 1,
            FrameParamKeyType.SCANS: 10,
            FrameParamKeyType.START_TIME_MINUTES: frame_num * 0.5,
        })
    return writer
