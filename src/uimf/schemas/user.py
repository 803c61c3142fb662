"""UserConfig: Forgiving, minimal user-facing configuration.

Accepts upper-case aliases (FLUSH_INTERVAL -> flush_interval, ...) and
ignores unknown keys so that old config files keep loading.
"""

from typing import Optional
from pydantic import Field, field_validator
from uimf.schemas.base import UimfBaseModel


class UserWriterConfig(UimfBaseModel):
    """User-facing writer config."""
    create_legacy_tables: Optional[bool] = None
    scan_data_type: Optional[str] = None


class UserTransactionConfig(UimfBaseModel):
    """User-facing transaction config."""
    flush_interval: Optional[float] = None
    settle_delay: Optional[float] = None


class UserCodecConfig(UimfBaseModel):
    """User-facing codec config."""
    width: Optional[str] = None
    compressor: Optional[str] = None


class UserConfig(UimfBaseModel):
    """User-facing configuration schema.

    Users only specify what they want to override from WriterParamConfig.

    Usage
    -----
        user_cfg = UserConfig(FLUSH_INTERVAL=2, COMPRESSOR="none")
        internal = resolve_config(param_cfg, user_cfg)
    """

    create_legacy_tables: Optional[bool] = Field(None, alias="CREATE_LEGACY_TABLES")
    scan_data_type: Optional[str] = Field(None, alias="SCAN_DATA_TYPE")
    flush_interval: Optional[float] = Field(None, alias="FLUSH_INTERVAL")
    settle_delay: Optional[float] = Field(None, alias="SETTLE_DELAY")
    width: Optional[str] = Field(None, alias="RLZE_WIDTH")
    compressor: Optional[str] = Field(None, alias="COMPRESSOR")
    software_name: Optional[str] = Field(None, alias="SOFTWARE_NAME")
    software_version: Optional[str] = Field(None, alias="SOFTWARE_VERSION")
    log_level: Optional[str] = Field(None, alias="LOG_LEVEL")

    # Nested overrides (advanced users)
    writer: Optional[UserWriterConfig] = None
    transaction: Optional[UserTransactionConfig] = None
    codec: Optional[UserCodecConfig] = None

    model_config = UimfBaseModel.model_config.copy()
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("flush_interval", "settle_delay", mode="before")
    @classmethod
    def coerce_numeric_fields(cls, v):
        """Accept int or float for durations."""
        if v is not None:
            return float(v)
        return v

    @field_validator("scan_data_type", "compressor", "width", mode="before")
    @classmethod
    def normalize_names(cls, v):
        """Normalize names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper().strip()
        return v

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        writer = {}
        if self.create_legacy_tables is not None:
            writer["create_legacy_tables"] = self.create_legacy_tables
        if self.scan_data_type is not None:
            writer["scan_data_type"] = self.scan_data_type
        if self.writer is not None:
            writer.update(self.writer.model_dump(exclude_none=True))
        if writer:
            overrides["writer"] = writer

        transaction = {}
        if self.flush_interval is not None:
            transaction["flush_interval"] = self.flush_interval
        if self.settle_delay is not None:
            transaction["settle_delay"] = self.settle_delay
        if self.transaction is not None:
            transaction.update(self.transaction.model_dump(exclude_none=True))
        if transaction:
            overrides["transaction"] = transaction

        codec = {}
        if self.width is not None:
            codec["width"] = self.width
        if self.compressor is not None:
            codec["compressor"] = self.compressor
        if self.codec is not None:
            codec.update(self.codec.model_dump(exclude_none=True))
        if codec:
            overrides["codec"] = codec

        software = {}
        if self.software_name is not None:
            software["name"] = self.software_name
        if self.software_version is not None:
            software["version"] = self.software_version
        if software:
            overrides["software"] = software

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
