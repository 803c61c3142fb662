"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully validated,
normalized, and contains no optional fields.
"""

from typing import Literal
from pydantic import ConfigDict, Field
from uimf.schemas.base import UimfBaseModel


class InternalWriterConfig(UimfBaseModel):
    """Runtime container layout settings."""
    create_legacy_tables: bool
    scan_data_type: Literal["double", "float", "short", "int"]


class InternalTransactionConfig(UimfBaseModel):
    """Runtime batching settings."""
    flush_interval: float = Field(ge=0)
    settle_delay: float = Field(ge=0)


class InternalCodecConfig(UimfBaseModel):
    """Runtime codec settings."""
    width: Literal["int32", "int16"]
    compressor: Literal["lz4", "none"]


class InternalSoftwareConfig(UimfBaseModel):
    """Calling software recorded in Version_Info."""
    name: str
    version: str


class InternalLoggingConfig(UimfBaseModel):
    """Runtime logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class InternalConfig(UimfBaseModel):
    """Authoritative runtime configuration.

    Runtime modules receive InternalConfig and access fields directly:

        coordinator = TransactionCoordinator(
            conn, session, flush_interval=config.transaction.flush_interval)
    """

    writer: InternalWriterConfig
    transaction: InternalTransactionConfig
    codec: InternalCodecConfig
    software: InternalSoftwareConfig
    logging: InternalLoggingConfig

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
    )
