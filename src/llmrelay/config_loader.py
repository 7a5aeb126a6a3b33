# src/llmrelay/config_loader.py

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict
import yaml

from llmrelay.core.errors import ConfigurationError

KNOWN_PROVIDERS = ("openai", "gemini")
KNOWN_LOG_ENVS = ("development", "production", "test")


def _require(d: Dict[str, Any], dotted: str, typ: type) -> Any:
    cur: Any = d
    for k in dotted.split("."):
        if not isinstance(cur, dict) or k not in cur:
            raise ConfigurationError(f"Missing config key: {dotted}")
        cur = cur[k]
    if typ is bool and not isinstance(cur, bool):
        raise ConfigurationError(f"'{dotted}' must be a boolean")
    if typ is str and not isinstance(cur, str):
        raise ConfigurationError(f"'{dotted}' must be a string")
    if typ is dict and not isinstance(cur, dict):
        raise ConfigurationError(f"'{dotted}' must be a mapping")
    return cur


def _optional_section(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    section = raw.get(key)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"'{key}' must be a mapping")
    return section


def load_config(path: Path) -> Dict[str, Any]:
    if not path or not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Config is not valid YAML: {path}: {e}") from e
    if not isinstance(raw, dict) or not raw:
        raise ConfigurationError(f"Config is empty or invalid YAML: {path}")

    # Validate required keys (no defaults here)
    _require(raw, "provider.name", str)
    _require(raw, "provider.model", str)

    # Normalise enumerations
    name = str(raw["provider"]["name"]).lower()
    if name not in KNOWN_PROVIDERS:
        raise ConfigurationError(f"Unknown provider.name '{name}' (expected one of {list(KNOWN_PROVIDERS)}).")
    raw["provider"]["name"] = name

    # Optional sections: shape checks only; RetryPolicy / ResilientClient validate values
    raw["retry"] = _optional_section(raw, "retry")
    raw["client"] = _optional_section(raw, "client")
    raw["providers"] = _optional_section(raw, "providers")
    logging_cfg = _optional_section(raw, "logging")
    env = str(logging_cfg.get("env", "development")).lower()
    if env not in KNOWN_LOG_ENVS:
        raise ConfigurationError(f"Unknown logging.env '{env}' (expected one of {list(KNOWN_LOG_ENVS)}).")
    logging_cfg["env"] = env
    raw["logging"] = logging_cfg

    return raw
