"""
Server config file loading.

Reads a JSON (default) or YAML (.yaml/.yml) server configuration and expands
environment references of the form:

    ["_env", "${BLOB_ROOT}/packed"]
    ["_env", "${BLOB_ROOT}/packed", "/srv/blobs/packed"]

The second form supplies a default used when a referenced variable is unset.
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from ..errors import ConfigError

logger = logging.getLogger(__name__)

ENV_MARKER = "_env"
YAML_SUFFIXES = (".yaml", ".yml")

_ENV_VAR = re.compile(r"\$\{(\w+)\}")


def _expand_env_string(template: str, environ: Mapping[str, str], default: Optional[Any]) -> Any:
    missing = [name for name in _ENV_VAR.findall(template) if name not in environ]
    if missing:
        if default is not None:
            return default
        raise ConfigError(f"environment variable {missing[0]} referenced by {template!r} is not set")
    return _ENV_VAR.sub(lambda m: environ[m.group(1)], template)


def expand_env(value: Any, environ: Optional[Mapping[str, str]] = None) -> Any:
    """
    Return a copy of ``value`` with every ``["_env", ...]`` expression expanded.

    Args:
        value: Parsed configuration document (or any part of it).
        environ: Variables to use. Defaults to os.environ.

    Raises:
        ConfigError: Malformed expression, or unset variable without default.
    """
    if environ is None:
        environ = os.environ

    if isinstance(value, dict):
        return {k: expand_env(v, environ) for k, v in value.items()}
    if isinstance(value, list):
        if value and value[0] == ENV_MARKER:
            if len(value) not in (2, 3) or not isinstance(value[1], str):
                raise ConfigError(f'expected ["_env", "${{VAR}}"] or ["_env", "${{VAR}}", default], got {value!r}')
            default = value[2] if len(value) == 3 else None
            return _expand_env_string(value[1], environ, default)
        return [expand_env(v, environ) for v in value]
    return value


def load_file(path: str, environ: Optional[Mapping[str, str]] = None) -> Any:
    """
    Load and env-expand a server configuration file.

    Args:
        path: Path to a .json, .yaml or .yml file.
        environ: Variables for ["_env", ...] expansion. Defaults to os.environ.

    Returns:
        The parsed document.

    Raises:
        ConfigError: File unreadable, unparsable, or with bad env references.
    """
    config_path = Path(path).expanduser()
    try:
        with open(config_path, encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise ConfigError(f"could not read config file {str(config_path)!r}: {e}") from e
    except UnicodeDecodeError as e:
        raise ConfigError(f"could not decode config file {str(config_path)!r} as UTF-8: {e}") from e

    try:
        if config_path.suffix.lower() in YAML_SUFFIXES:
            doc = yaml.safe_load(text)
        else:
            doc = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"could not parse config file {str(config_path)!r}: {e}") from e

    logger.info(f"Loaded config from {config_path}")
    return expand_env(doc, environ)
