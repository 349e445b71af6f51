"""
Stable identifier for the active Monika configuration.
"""
import hashlib
import json
from typing import Any, Mapping, Union

from pydantic import BaseModel

from monika_history.config import MonikaConfig


def canonical_json(value: Any) -> str:
    """JSON with sorted keys and no whitespace; unknown types are stringified."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def md5_hash(value: Any) -> str:
    """MD5 hex digest of the canonical JSON encoding of value."""
    return hashlib.md5(canonical_json(value).encode("utf-8")).hexdigest()


def fingerprint(config: Union[BaseModel, Mapping[str, Any]]) -> str:
    """
    Identify a configuration for the collector.

    An explicit ``version`` wins and is returned unchanged. Otherwise the
    whole configuration is hashed, so two configs that differ only in key
    order produce the same fingerprint. A plain mapping is read as a
    MonikaConfig first, so it hashes the same as the loaded model.

    Args:
        config: MonikaConfig (or any pydantic model) or a plain mapping

    Returns:
        The operator's version string or an MD5 hex digest

    Raises:
        pydantic.ValidationError: If a mapping is not a valid Monika config
    """
    if isinstance(config, BaseModel):
        data = config.model_dump(mode="json")
    else:
        data = MonikaConfig.model_validate(dict(config)).model_dump(mode="json")

    version = data.get("version")
    if isinstance(version, str) and version:
        return version

    return md5_hash(data)
