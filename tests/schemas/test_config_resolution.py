"""Test config resolution and validation with Pydantic."""

import pytest
from pydantic import ValidationError

from uimf.schemas import CLIConfig, InternalConfig, UserConfig, WriterParamConfig
from uimf.schemas.resolve import deep_merge, resolve_config

pytestmark = pytest.mark.unit


class TestConfigResolution:
    """Test resolve_config() precedence and merging."""

    def test_resolve_config_all_defaults(self):
        """Resolving with no user/CLI overrides uses all WriterParamConfig defaults."""
        config = resolve_config(WriterParamConfig(), None, None)

        assert isinstance(config, InternalConfig)
        assert config.writer.create_legacy_tables is False
        assert config.writer.scan_data_type == "int"
        assert config.transaction.flush_interval == 5.0
        assert config.transaction.settle_delay == 0.1
        assert config.codec.width == "int32"
        assert config.codec.compressor == "lz4"
        assert config.logging.level == "INFO"

    def test_no_arguments_uses_defaults(self):
        assert resolve_config() == resolve_config(WriterParamConfig(), None, None)

    def test_user_config_overrides_param_config(self):
        user = UserConfig(FLUSH_INTERVAL=1, COMPRESSOR="NONE")
        config = resolve_config(WriterParamConfig(), user, None)

        assert config.transaction.flush_interval == 1.0
        assert config.codec.compressor == "none"
        # Untouched sections keep defaults
        assert config.transaction.settle_delay == 0.1

    def test_cli_overrides_user(self):
        user = UserConfig(FLUSH_INTERVAL=1, LOG_LEVEL="warning")
        cli = CLIConfig(flush_interval=2.5, log_level="DEBUG")
        config = resolve_config(WriterParamConfig(), user, cli)

        assert config.transaction.flush_interval == 2.5
        assert config.logging.level == "DEBUG"

    def test_cli_does_not_mutate_user(self):
        user = UserConfig.model_validate({"COMPRESSOR": "lz4"})
        resolve_config(WriterParamConfig(), user, CLIConfig(compressor="none"))
        assert user.compressor == "lz4"

    def test_dict_inputs_accepted(self):
        config = resolve_config({}, {"RLZE_WIDTH": "INT16"}, {"legacy_tables": True})
        assert config.codec.width == "int16"
        assert config.writer.create_legacy_tables is True

    def test_nested_user_sections(self):
        user = UserConfig(transaction={"settle_delay": 0}, codec={"width": "int16"})
        config = resolve_config(WriterParamConfig(), user, None)

        assert config.transaction.settle_delay == 0.0
        assert config.codec.width == "int16"

    def test_software_identity(self):
        user = UserConfig(SOFTWARE_NAME="AcqTool", SOFTWARE_VERSION="2.1")
        config = resolve_config(WriterParamConfig(), user, None)
        assert config.software.name == "AcqTool"
        assert config.software.version == "2.1"

    def test_deep_merge(self):
        merged = deep_merge({"a": 1, "b": {"c": 2, "d": 3}}, {"b": {"d": 4}}, {"e": 5})
        assert merged == {"a": 1, "b": {"c": 2, "d": 4}, "e": 5}


class TestValidation:
    """Invalid values are rejected at resolution time."""

    def test_negative_flush_interval(self):
        with pytest.raises(ValidationError):
            resolve_config(WriterParamConfig(), UserConfig(FLUSH_INTERVAL=-1), None)

    def test_unknown_compressor(self):
        with pytest.raises(ValidationError):
            resolve_config(WriterParamConfig(), UserConfig(COMPRESSOR="zstd"), None)

    def test_unknown_scan_data_type(self):
        with pytest.raises(ValidationError):
            resolve_config(WriterParamConfig(), UserConfig(SCAN_DATA_TYPE="decimal"), None)

    def test_param_config_rejects_extra_fields(self):
        with pytest.raises(ValidationError):
            WriterParamConfig(writer={"unknown": 1})

    def test_cli_config_rejects_extra_fields(self):
        with pytest.raises(ValidationError):
            CLIConfig(instrument="IMS02")

    def test_internal_config_is_frozen(self, internal_config):
        with pytest.raises(ValidationError):
            internal_config.logging = internal_config.logging

    def test_param_compressor_normalized(self):
        assert WriterParamConfig(codec={"compressor": " LZ4 "}).codec.compressor == "lz4"


class TestUserConfigNormalization:
    """User config files are forgiving."""

    def test_uppercase_keys_are_handled(self):
        user = UserConfig.model_validate({
            "FLUSH_INTERVAL": 3,
            "SCAN_DATA_TYPE": "Double",
            "CREATE_LEGACY_TABLES": True,
        })

        assert isinstance(user.flush_interval, float) and user.flush_interval == 3.0
        assert user.scan_data_type == "double"
        assert user.create_legacy_tables is True

    def test_field_names_also_accepted(self):
        user = UserConfig.model_validate({"flush_interval": 2})
        assert user.flush_interval == 2.0

    def test_unknown_keys_are_ignored(self):
        user = UserConfig.model_validate({"COMPRESSOR": "none", "UNKNOWN_LEGACY": 12345})
        assert user.compressor == "none"
        assert not hasattr(user, "UNKNOWN_LEGACY")

    def test_empty_user_config_has_no_overrides(self):
        assert UserConfig().to_internal_overrides() == {}

    def test_make_config_fixture(self, make_config):
        config = make_config(COMPRESSOR="none", SETTLE_DELAY=0)
        assert config.codec.compressor == "none"
        assert config.transaction.settle_delay == 0.0
