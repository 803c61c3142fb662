"""CLIConfig: Command-line operational overrides.

This schema handles command-line arguments parsed by argparse.
"""

from typing import Literal, Optional
from uimf.schemas.base import UimfBaseModel


class CLIConfig(UimfBaseModel):
    """Command-line configuration overrides.

    Highest priority in config resolution.
    """

    legacy_tables: Optional[bool] = None
    compressor: Optional[Literal["lz4", "none"]] = None
    flush_interval: Optional[float] = None
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = None

    def to_internal_overrides(self) -> dict:
        """Convert CLI config to internal config structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.legacy_tables is not None:
            overrides["writer"] = {"create_legacy_tables": self.legacy_tables}

        if self.compressor is not None:
            overrides["codec"] = {"compressor": self.compressor}

        if self.flush_interval is not None:
            overrides["transaction"] = {"flush_interval": float(self.flush_interval)}

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
