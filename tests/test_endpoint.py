import pytest

from invoice_pipeline.model_inference import (
    Backend,
    BackendSettings,
    LlmSettings,
    ResolvedEndpoint,
    health_url,
    resolve_endpoint,
)
from invoice_pipeline.utils.exceptions import (
    ConfigurationError,
    MissingCredentialError,
    UnsupportedBackendError,
)


def make_settings(backend):
    return LlmSettings(
        backend=backend,
        ollama=BackendSettings("http://localhost:11434/v1", "qwen3:8b"),
        cliproxy=BackendSettings("http://localhost:8317/v1", "gemini-2.5-flash"),
        remote=BackendSettings("https://api.example.com/v1", "gpt-4o-mini"),
    )


def test_ollama_uses_placeholder_key():
    endpoint = resolve_endpoint(make_settings(Backend.OLLAMA), environ={})

    assert endpoint.base_url == "http://localhost:11434/v1"
    assert endpoint.model == "qwen3:8b"
    assert endpoint.api_key == "ollama"
    assert endpoint.requires_health_check


def test_cliproxy_uses_placeholder_key():
    endpoint = resolve_endpoint(make_settings(Backend.CLIPROXY), environ={})

    assert endpoint.api_key == "cliproxy"
    assert endpoint.model == "gemini-2.5-flash"
    assert not endpoint.requires_health_check


def test_remote_reads_key_from_environment():
    endpoint = resolve_endpoint(make_settings(Backend.REMOTE), environ={"LLM_API_KEY": "sk-test"})

    assert endpoint.api_key == "sk-test"
    assert endpoint.completions_url == "https://api.example.com/v1/chat/completions"


def test_remote_without_key_fails_at_resolution():
    with pytest.raises(MissingCredentialError) as exc_info:
        resolve_endpoint(make_settings(Backend.REMOTE), environ={})

    assert "LLM_API_KEY" in str(exc_info.value)
    assert isinstance(exc_info.value, ConfigurationError)


def test_heuristics_cannot_be_resolved():
    with pytest.raises(UnsupportedBackendError):
        resolve_endpoint(make_settings(Backend.HEURISTICS), environ={})


def test_heuristics_endpoint_cannot_be_constructed():
    with pytest.raises(UnsupportedBackendError):
        ResolvedEndpoint(Backend.HEURISTICS, "http://localhost", "none", "")


def test_health_url_strips_v1():
    assert health_url("http://localhost:11434/v1") == "http://localhost:11434"
    assert health_url("http://localhost:11434/v1/") == "http://localhost:11434"
    assert health_url("http://localhost:11434") == "http://localhost:11434"


def test_backend_parse():
    assert Backend.parse("OLLAMA") is Backend.OLLAMA
    assert Backend.parse(Backend.REMOTE) is Backend.REMOTE
    with pytest.raises(UnsupportedBackendError):
        Backend.parse("gpt")


def test_settings_from_packaged_config():
    settings = LlmSettings.from_config()

    assert settings.backend is Backend.OLLAMA
    assert settings.ollama.model == "qwen3:8b"
    assert settings.request_timeout == 60
    assert settings.health_timeout == 3
    assert settings.max_input_chars == 12000


def test_settings_backend_override():
    assert LlmSettings.from_config("heuristics").backend is Backend.HEURISTICS
