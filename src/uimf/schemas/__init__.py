"""Configuration schemas: expert defaults < user < CLI, resolved to InternalConfig."""

from uimf.schemas.cli import CLIConfig
from uimf.schemas.internal import InternalConfig
from uimf.schemas.param import WriterParamConfig
from uimf.schemas.resolve import deep_merge, resolve_config
from uimf.schemas.user import UserConfig

__all__ = [
    "resolve_config",
    "deep_merge",
    "InternalConfig",
    "WriterParamConfig",
    "UserConfig",
    "CLIConfig",
]
