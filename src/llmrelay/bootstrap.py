from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv

from .config_loader import load_config
from .logging_config import configure_logging
from .providers.registry import create_client
from .resilience.policy import RetryPolicy
from .core.errors import ConfigurationError

# provider -> (credential field, config key naming its env var, default env var)
_CREDENTIAL_ENV = {
    "openai": ("api_key", "api_key_env", "OPENAI_API_KEY"),
    "gemini": ("project", "project_env", "GOOGLE_CLOUD_PROJECT"),
}


def resolve_credentials(provider_name: str, provider_cfg: Dict[str, Any]) -> Dict[str, Any]:
    """
    Read the provider's credential fields from the environment variables the config names.
    Plain lookup only; an empty result surfaces as ConfigurationError from the backend.
    """
    field, env_key, default_env = _CREDENTIAL_ENV[provider_name]
    credentials: Dict[str, Any] = {}
    value = os.getenv(str(provider_cfg.get(env_key) or default_env))
    if value:
        credentials[field] = value.strip()
    if provider_name == "openai" and provider_cfg.get("base_url"):
        credentials["base_url"] = provider_cfg["base_url"]
    if provider_name == "gemini" and provider_cfg.get("location"):
        credentials["location"] = provider_cfg["location"]
    return credentials


def build_client(cfg: Dict[str, Any], provider_name: Optional[str] = None, log: Optional[Any] = None):
    """
    Build a ResilientClient for `provider_name` (default: cfg provider.name).
    Returns None for an unknown name, like create_client.
    """
    name = (provider_name or cfg["provider"]["name"]).lower()
    if name not in _CREDENTIAL_ENV:
        return None
    provider_cfg = (cfg.get("providers") or {}).get(name, {}) or {}
    options = {k: v for k, v in provider_cfg.items() if not k.endswith("_env")}
    if name == cfg["provider"]["name"]:
        options["model"] = cfg["provider"]["model"]

    client_cfg = cfg.get("client") or {}
    client_options = {}
    if "language" in client_cfg:
        client_options["language"] = str(client_cfg["language"]).lower()
    if "stream_pacing_ms" in client_cfg:
        client_options["stream_pacing_ms"] = int(client_cfg["stream_pacing_ms"])

    return create_client(
        name,
        resolve_credentials(name, provider_cfg),
        policy=RetryPolicy.from_config(cfg.get("retry")),
        options=options,
        client_options=client_options,
        log=log,
    )


def build_app(config_path: Path, *, setup_logging: bool = True) -> Dict[str, Any]:
    """
    Composition root: load .env and YAML, configure logging, build the resilient client.
    Returns: dict with cfg and client.
    """
    load_dotenv()
    cfg = load_config(config_path)

    if setup_logging:
        log_cfg = cfg["logging"]
        configure_logging(level=log_cfg.get("level", "INFO"), env=log_cfg.get("env"))

    client = build_client(cfg)
    if client is None:
        # load_config already validated the name
        raise ConfigurationError(f"Unsupported provider '{cfg['provider']['name']}'")

    return {"cfg": cfg, "client": client}
