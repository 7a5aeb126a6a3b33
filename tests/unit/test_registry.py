# tests/unit/test_registry.py

from __future__ import annotations
import sys
from pathlib import Path
from types import SimpleNamespace as NS
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

import llmrelay.providers.gemini_adapter as ga  # type: ignore
import llmrelay.providers.openai_adapter as oa  # type: ignore
from llmrelay.core.errors import ConfigurationError
from llmrelay.providers.registry import ProviderRegistry, create_client
from llmrelay.resilience.policy import RetryPolicy
from llmrelay.resilience.resilient_client import ResilientClient


class _Dummy:
    def __init__(self, **kwargs):
        self.kwargs = kwargs


def test_registry_register_and_get():
    @ProviderRegistry.register("Dummy")
    class DummyBackend:
        name = "dummy"

        @classmethod
        def create(cls, *, credentials, options):
            return cls()

    # Case-insensitive lookup
    assert ProviderRegistry.get("dummy") is DummyBackend
    assert ProviderRegistry.get("DUMMY") is DummyBackend
    assert "dummy" in ProviderRegistry.names()


def test_registry_unknown_raises():
    with pytest.raises(KeyError):
        ProviderRegistry.get("does-not-exist")


def test_builtin_backends_registered():
    ProviderRegistry.ensure_imports()
    assert ProviderRegistry.get("openai") is oa.OpenAIAdapter
    assert ProviderRegistry.get("gemini") is ga.GeminiAdapter


@pytest.mark.parametrize("name", [None, "", "claude", "does-not-exist"])
def test_create_client_unknown_name_returns_none(name):
    assert create_client(name, {"api_key": "sk"}) is None


def test_create_client_openai(monkeypatch):
    monkeypatch.setattr(oa, "AsyncOpenAI", _Dummy, raising=True)
    policy = RetryPolicy(max_retries=1)
    client = create_client("OpenAI", {"api_key": "sk"}, policy=policy, options={"model": "m"},
                           client_options={"language": "en"})
    assert isinstance(client, ResilientClient)
    assert client.provider == "openai"
    assert client.policy is policy
    assert client.backend.model == "m"


def test_create_client_gemini(monkeypatch):
    monkeypatch.setattr(ga, "genai", NS(Client=_Dummy), raising=True)
    client = create_client("gemini", {"project": "p"})
    assert client.provider == "gemini"
    assert client.backend.client.kwargs["project"] == "p"


def test_create_client_missing_credentials_raise(monkeypatch):
    monkeypatch.setattr(oa, "AsyncOpenAI", _Dummy, raising=True)
    monkeypatch.setattr(ga, "genai", NS(Client=_Dummy), raising=True)
    with pytest.raises(ConfigurationError):
        create_client("openai", {})
    with pytest.raises(ConfigurationError):
        create_client("gemini", None)
