"""
Low-level config translation.

parse_low_level_config converts an arbitrary JSON-like document into a
LowLevelConfig that is guaranteed to have the fields blobverify needs, in the
spirit of "parse, don't validate":
https://lexi-lambda.github.io/blog/2019/11/05/parse-don-t-validate/

Rules:
- "prefixes" is required and must be an object.
- Other top-level keys are dropped.
- Prefix keys starting with "_" are comments and are skipped unvalidated.
- Entries with a "storage-<type>" handler must be exactly
  {"handler": ..., "handlerArgs": {...}}.
- Entries with any other handler are not storage and are dropped after their
  handler name is checked to be a string.
"""

import copy
import json
import logging
from typing import Any, Dict, List

from pydantic import ValidationError

from ..errors import ConfigError
from .models import (
    COMMENT_PREFIX,
    STORAGE_HANDLER_PREFIX,
    HandlerEntry,
    LowLevelConfig,
    StorageConfig,
    StorageHandlerEntry,
)

logger = logging.getLogger(__name__)


def _describe_errors(e: ValidationError) -> str:
    """Turn a pydantic ValidationError into 'unknown key "x"'-style messages."""
    messages: List[str] = []
    for err in e.errors():
        key = ".".join(str(part) for part in err["loc"])
        if err["type"] == "extra_forbidden":
            messages.append(f'unknown key "{key}"')
        elif err["type"] == "missing":
            messages.append(f'missing required key "{key}"')
        else:
            messages.append(f'key "{key}": {err["msg"]}')
    return "; ".join(sorted(messages))


def _type_name(value: Any) -> str:
    if isinstance(value, list):
        return "array"
    if isinstance(value, str):
        return "string"
    if value is None:
        return "null"
    return type(value).__name__


def _parse_entry(prefix: str, entry: Any):
    """
    Parse one prefixes entry.

    Returns:
        StorageConfig for storage handlers, None for other handlers.

    Raises:
        ConfigError: Naming the prefix and the offending key.
    """
    where = f"In prefixes[{json.dumps(prefix)}]"
    if not isinstance(entry, dict):
        raise ConfigError(f"{where}: expected an object, got {_type_name(entry)}")

    try:
        handler = HandlerEntry.model_validate(entry).handler
    except ValidationError as e:
        raise ConfigError(f"{where}: {_describe_errors(e)}") from e

    if not handler.startswith(STORAGE_HANDLER_PREFIX):
        logger.debug(f"Ignoring non-storage handler {handler!r} at {prefix}")
        return None

    storage_type = handler[len(STORAGE_HANDLER_PREFIX):]
    if not storage_type:
        raise ConfigError(f'{where}: handler "{handler}" names no storage type')

    try:
        parsed = StorageHandlerEntry.model_validate(entry)
    except ValidationError as e:
        raise ConfigError(f"{where}: {_describe_errors(e)}") from e

    return StorageConfig(handler_type=storage_type, handler_args=parsed.handler_args)


def parse_low_level_config(doc: Any) -> LowLevelConfig:
    """
    Translate a low-level server configuration document.

    Args:
        doc: Parsed JSON/YAML document. It is not modified.

    Returns:
        LowLevelConfig with one StorageConfig per storage prefix.

    Raises:
        ConfigError: If the document has an unexpected shape. The message
            names the offending prefix and key.
    """
    if not isinstance(doc, dict):
        raise ConfigError(f"expected the configuration to be an object, got {_type_name(doc)}")
    if "prefixes" not in doc:
        raise ConfigError(
            'missing required key "prefixes" '
            "(high-level configurations must be expanded to the low-level form first)"
        )
    prefixes = doc["prefixes"]
    if not isinstance(prefixes, dict):
        raise ConfigError(f'key "prefixes": expected an object, got {_type_name(prefixes)}')

    # Work on a copy; handlerArgs end up in the result and must not alias the input.
    prefixes = copy.deepcopy(prefixes)
    dropped = sorted(k for k in doc if k != "prefixes")
    if dropped:
        logger.debug(f"Ignoring top-level keys: {dropped}")

    bad_keys = [k for k in prefixes if not isinstance(k, str)]
    if bad_keys:
        raise ConfigError(f'In the "prefixes" map: keys must be strings, got {bad_keys!r}')

    result: Dict[str, StorageConfig] = {}
    for prefix in sorted(prefixes):
        if prefix.startswith(COMMENT_PREFIX):
            continue
        storage = _parse_entry(prefix, prefixes[prefix])
        if storage is not None:
            result[prefix] = storage

    logger.debug(f"Translated {len(result)} storage prefixes: {sorted(result)}")
    return LowLevelConfig(prefixes=result)
