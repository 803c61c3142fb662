"""WriterParamConfig: Expert defaults for the container writer.

ALL writer settings must have defaults here. Runtime code never reads from
WriterParamConfig directly; it only receives InternalConfig.
"""

from typing import Literal
from pydantic import Field, field_validator
from uimf.schemas.base import UimfBaseModel


# =============================================================================
# Nested Configuration Models
# =============================================================================

class WriterConfig(UimfBaseModel):
    """Container layout settings."""
    create_legacy_tables: bool = False
    scan_data_type: Literal["double", "float", "short", "int"] = "int"


class TransactionConfig(UimfBaseModel):
    """Batching of writes into transactions."""
    flush_interval: float = Field(5.0, ge=0, description="Minimum seconds between commits")
    settle_delay: float = Field(0.1, ge=0, description="Pause after a commit, in seconds")

    @field_validator("flush_interval", "settle_delay", mode="before")
    @classmethod
    def coerce_to_float(cls, v):
        """Allow int or float for durations."""
        return float(v)


class CodecConfig(UimfBaseModel):
    """Intensity blob encoding."""
    width: Literal["int32", "int16"] = "int32"
    compressor: Literal["lz4", "none"] = "lz4"

    @field_validator("compressor", mode="before")
    @classmethod
    def normalize_compressor(cls, v):
        """Normalize compressor names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v


class SoftwareConfig(UimfBaseModel):
    """Calling software recorded in Version_Info."""
    name: str = "uimf-tool"
    version: str = "0.1.0"


class LoggingConfig(UimfBaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


# =============================================================================
# Main WriterParamConfig
# =============================================================================

class WriterParamConfig(UimfBaseModel):
    """Complete expert configuration with all defaults.

    Usage
    -----
    This config is NOT used directly by runtime code. It serves as the
    base layer in config resolution:

        internal_cfg = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    writer: WriterConfig = Field(default_factory=WriterConfig)
    transaction: TransactionConfig = Field(default_factory=TransactionConfig)
    codec: CodecConfig = Field(default_factory=CodecConfig)
    software: SoftwareConfig = Field(default_factory=SoftwareConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
