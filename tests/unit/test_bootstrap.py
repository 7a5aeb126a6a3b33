# tests/unit/test_bootstrap.py

from __future__ import annotations
import sys
from pathlib import Path
from types import SimpleNamespace as NS
import pytest

# Ensure "src" is importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

import llmrelay.providers.gemini_adapter as ga  # type: ignore
import llmrelay.providers.openai_adapter as oa  # type: ignore
from llmrelay.bootstrap import build_app, build_client, resolve_credentials
from llmrelay.config_loader import load_config
from llmrelay.core.errors import ConfigurationError
from llmrelay.resilience.resilient_client import ResilientClient


class _Dummy:
    def __init__(self, **kwargs):
        self.kwargs = kwargs


CONFIG = """
provider:
  name: openai
  model: gpt-test
retry:
  max_retries: 5
  initial_delay_ms: 10
client:
  language: EN
  stream_pacing_ms: 0
providers:
  openai:
    api_key_env: RELAY_TEST_OPENAI_KEY
    transcription_language: en
  gemini:
    project_env: RELAY_TEST_GCP_PROJECT
    location: europe-west4
    model: gemini-test
logging:
  level: WARNING
  env: test
"""


@pytest.fixture
def cfg_path(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.setattr(oa, "AsyncOpenAI", _Dummy, raising=True)
    monkeypatch.setattr(ga, "genai", NS(Client=_Dummy), raising=True)
    p = tmp_path / "config" / "default.yaml"
    p.parent.mkdir(parents=True)
    p.write_text(CONFIG, encoding="utf-8")
    return p


def test_build_app_openai(cfg_path: Path, monkeypatch):
    monkeypatch.setenv("RELAY_TEST_OPENAI_KEY", " sk-test \n")

    ctx = build_app(cfg_path, setup_logging=False)

    client = ctx["client"]
    assert isinstance(client, ResilientClient)
    assert client.provider == "openai"
    assert client.language == "en"
    assert client.stream_pacing_ms == 0
    assert client.policy.max_retries == 5
    assert client.policy.initial_delay_ms == 10
    assert client.backend.model == "gpt-test"
    assert client.backend.transcription_language == "en"
    assert client.backend.client.kwargs == {"api_key": "sk-test"}
    assert ctx["cfg"]["provider"]["name"] == "openai"


def test_build_app_missing_key_is_configuration_error(cfg_path: Path, monkeypatch):
    monkeypatch.delenv("RELAY_TEST_OPENAI_KEY", raising=False)
    with pytest.raises(ConfigurationError):
        build_app(cfg_path, setup_logging=False)


def test_build_client_for_other_provider(cfg_path: Path, monkeypatch):
    monkeypatch.setenv("RELAY_TEST_GCP_PROJECT", "proj-9")
    cfg = load_config(cfg_path)

    client = build_client(cfg, "Gemini")
    assert client.provider == "gemini"
    # model comes from providers.gemini, not provider.model
    assert client.backend.model == "gemini-test"
    assert client.backend.client.kwargs == {"vertexai": True, "project": "proj-9", "location": "europe-west4"}


def test_build_client_unknown_name(cfg_path: Path):
    assert build_client(load_config(cfg_path), "claude") is None


def test_resolve_credentials_default_env(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-default")
    assert resolve_credentials("openai", {"base_url": "http://proxy"}) == {
        "api_key": "sk-default",
        "base_url": "http://proxy",
    }
    monkeypatch.delenv("GOOGLE_CLOUD_PROJECT", raising=False)
    assert resolve_credentials("gemini", {}) == {}
