# tests/unit/test_config_loader.py

from __future__ import annotations
import sys
from pathlib import Path
import pytest
from textwrap import dedent

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from llmrelay.config_loader import load_config  # type: ignore
from llmrelay.core.errors import ConfigurationError


def write_yaml(p: Path, text: str) -> Path:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(dedent(text).lstrip("\n").rstrip() + "\n", encoding="utf-8")
    return p


def test_load_config_ok(tmp_path: Path):
    cfg = write_yaml(
        tmp_path / "config" / "default.yaml",
        """
        provider: { name: GEMINI, model: gemini-2.0-flash }
        retry: { max_retries: 2 }
        logging: { level: DEBUG, env: Production }
        """,
    )
    data = load_config(cfg)
    assert data["provider"]["name"] == "gemini"   # normalised
    assert data["retry"] == {"max_retries": 2}
    assert data["logging"] == {"level": "DEBUG", "env": "production"}
    # absent optional sections become empty mappings
    assert data["client"] == {} and data["providers"] == {}


def test_logging_env_defaults_to_development(tmp_path: Path):
    cfg = write_yaml(tmp_path / "c.yaml", "provider: { name: openai, model: gpt-4.1 }")
    assert load_config(cfg)["logging"]["env"] == "development"


def test_shipped_default_config_loads():
    root = Path(__file__).resolve().parents[2]
    data = load_config(root / "config" / "default.yaml")
    assert data["provider"]["name"] == "openai"
    assert data["client"]["language"] == "pt"


def test_load_config_missing_key(tmp_path: Path):
    cfg = write_yaml(tmp_path / "c.yaml", "provider: { name: openai }   # missing model")
    with pytest.raises(ConfigurationError, match="provider.model"):
        load_config(cfg)


def test_load_config_type_error(tmp_path: Path):
    cfg = write_yaml(tmp_path / "c.yaml", "provider: { name: openai, model: 4 }   # wrong type")
    with pytest.raises(ConfigurationError):
        load_config(cfg)


def test_unknown_provider_rejected(tmp_path: Path):
    cfg = write_yaml(tmp_path / "c.yaml", "provider: { name: claude, model: x }")
    with pytest.raises(ConfigurationError, match="Unknown provider.name"):
        load_config(cfg)


def test_section_must_be_mapping(tmp_path: Path):
    cfg = write_yaml(
        tmp_path / "c.yaml",
        """
        provider: { name: openai, model: gpt-4.1 }
        retry: [1, 2]
        """,
    )
    with pytest.raises(ConfigurationError, match="'retry' must be a mapping"):
        load_config(cfg)


def test_unknown_logging_env_rejected(tmp_path: Path):
    cfg = write_yaml(
        tmp_path / "c.yaml",
        """
        provider: { name: openai, model: gpt-4.1 }
        logging: { env: staging }
        """,
    )
    with pytest.raises(ConfigurationError):
        load_config(cfg)


def test_empty_and_invalid_yaml(tmp_path: Path):
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(empty)

    broken = tmp_path / "broken.yaml"
    broken.write_text("provider: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(broken)


def test_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")
