"""
Query configuration loader.

Reads a YAML (or JSON, by suffix) document into a validated `QueryConfig`.
Every validation problem surfaces as `ConfigError` so callers only deal with
one exception type at load time.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from querybench.domain.errors import ConfigError
from querybench.domain.models import QueryConfig
from querybench.utils.logging import get_logger

log = get_logger(__name__)


def parse_query_config(payload: Any) -> QueryConfig:
    """Validate an already-decoded configuration mapping."""
    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise ConfigError("query configuration root must be a mapping")
    try:
        return QueryConfig.model_validate(dict(payload))
    except ValidationError as exc:
        raise ConfigError(f"invalid query configuration: {exc}") from exc


def load_query_config(path: Path | str) -> QueryConfig:
    """
    Load a query configuration file.

    Parameters
    ----------
    path : Path | str
        ``.yaml``/``.yml`` files are parsed with PyYAML, anything else as JSON.

    Raises
    ------
    ConfigError
        If the file is missing, unparsable or fails validation.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"query configuration file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as handle:
        try:
            if config_path.suffix.lower() in {".yaml", ".yml"}:
                payload = yaml.safe_load(handle)
            else:
                payload = json.load(handle)
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ConfigError(f"cannot parse {config_path}: {exc}") from exc

    config = parse_query_config(payload)
    log.info(
        "Query configuration loaded",
        extra={"path": str(config_path), "queries": len(config.queries)},
    )
    return config


__all__ = ["load_query_config", "parse_query_config"]
