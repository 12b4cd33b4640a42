"""
Configuration module for blobverify.

Components:
- loader: read JSON/YAML server config files, expand ["_env", ...] values
- translator: document -> LowLevelConfig
- models: LowLevelConfig / StorageConfig
- settings: runtime tunables from the environment
"""

from .loader import expand_env, load_file
from .models import LowLevelConfig, StorageConfig
from .settings import VerifySettings
from .translator import parse_low_level_config

__all__ = [
    "expand_env",
    "load_file",
    "LowLevelConfig",
    "StorageConfig",
    "VerifySettings",
    "parse_low_level_config",
]
