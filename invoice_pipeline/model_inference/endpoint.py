"""
Model Endpoint Resolution Module.

Maps the configured backend onto a concrete OpenAI-compatible endpoint.
Resolution happens once per batch; a missing credential is reported here,
before any document is touched.

Backends:
    ollama      Local Ollama server, placeholder key, health-checked.
    cliproxy    Local CLIProxyAPI (OAuth upstream), placeholder key.
    remote      Hosted API; key read from the ``llm.api_key_env`` variable.
    heuristics  Sentinel for "no model"; cannot be resolved.

Author: ML Engineering Team
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Union

from config import get_config
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.exceptions import (
    MissingCredentialError,
    UnsupportedBackendError,
)

# Initialize module logger
logger = get_logger(__name__)


class Backend(str, Enum):
    """Closed set of extraction backends."""

    OLLAMA = "ollama"
    CLIPROXY = "cliproxy"
    REMOTE = "remote"
    HEURISTICS = "heuristics"

    @classmethod
    def parse(cls, value: Union[str, 'Backend']) -> 'Backend':
        """
        Parse a backend name (case-insensitive).

        Raises:
            UnsupportedBackendError: If the name is unknown.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(b.value for b in cls)
            raise UnsupportedBackendError(str(value), f"expected one of: {choices}")


@dataclass(frozen=True)
class BackendSettings:
    """Connection settings of one backend section."""
    base_url: str
    model: str


@dataclass(frozen=True)
class LlmSettings:
    """
    The ``llm`` configuration section.

    Attributes:
        backend: Active backend.
        ollama: Settings for the local Ollama server.
        cliproxy: Settings for the local CLIProxyAPI server.
        remote: Settings for the hosted API.
        api_key_env: Environment variable holding the remote API key.
        request_timeout: Completion request timeout in seconds.
        health_timeout: Health check timeout in seconds.
        max_input_chars: Document text is truncated to this many characters.
    """
    backend: Backend
    ollama: BackendSettings
    cliproxy: BackendSettings
    remote: BackendSettings
    api_key_env: str = "LLM_API_KEY"
    request_timeout: float = 60.0
    health_timeout: float = 3.0
    max_input_chars: int = 12000

    @classmethod
    def from_config(cls, backend: Optional[Union[str, Backend]] = None) -> 'LlmSettings':
        """
        Build settings from the loaded configuration.

        Args:
            backend: Overrides ``llm.backend`` (e.g. from the CLI).

        Returns:
            LlmSettings instance.
        """
        def section(name: str, default_url: str, default_model: str) -> BackendSettings:
            return BackendSettings(
                base_url=get_config(f"llm.{name}.base_url", default_url),
                model=get_config(f"llm.{name}.model", default_model),
            )

        return cls(
            backend=Backend.parse(backend or get_config("llm.backend", "ollama")),
            ollama=section("ollama", "http://localhost:11434/v1", "qwen3:8b"),
            cliproxy=section("cliproxy", "http://localhost:8317/v1", "gemini-2.5-flash"),
            remote=section("remote", "https://api.openai.com/v1", "gpt-4o-mini"),
            api_key_env=get_config("llm.api_key_env", "LLM_API_KEY"),
            request_timeout=float(get_config("llm.request_timeout", 60)),
            health_timeout=float(get_config("llm.health_timeout", 3)),
            max_input_chars=int(get_config("llm.max_input_chars", 12000)),
        )


def health_url(base_url: str) -> str:
    """
    Root URL of a server whose API lives under ``/v1``.

    Example:
        >>> health_url("http://localhost:11434/v1")
        'http://localhost:11434'
    """
    url = base_url.rstrip("/")
    if url.endswith("/v1"):
        url = url[:-len("/v1")]
    return url or base_url


@dataclass(frozen=True)
class ResolvedEndpoint:
    """
    A concrete model endpoint. Never persisted.

    Only model-calling backends can be represented; constructing one for
    ``heuristics`` raises UnsupportedBackendError.
    """
    backend: Backend
    base_url: str
    model: str
    api_key: str

    def __post_init__(self) -> None:
        if self.backend is Backend.HEURISTICS:
            raise UnsupportedBackendError(self.backend.value, "heuristics backend does not call a model")

    @property
    def completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"

    @property
    def health_url(self) -> str:
        return health_url(self.base_url)

    @property
    def requires_health_check(self) -> bool:
        return self.backend is Backend.OLLAMA

    def __repr__(self) -> str:
        return (
            f"ResolvedEndpoint(backend={self.backend.value}, "
            f"base_url='{self.base_url}', model='{self.model}')"
        )


# Placeholder credentials; these transports ignore the key
_PLACEHOLDER_KEYS = {
    Backend.OLLAMA: "ollama",
    Backend.CLIPROXY: "cliproxy",
}

_BACKEND_LABELS = {
    Backend.OLLAMA: "Ollama (local)",
    Backend.CLIPROXY: "CLIProxyAPI",
    Backend.REMOTE: "remote API",
}


def resolve_endpoint(
    settings: LlmSettings,
    environ: Optional[Mapping[str, str]] = None
) -> ResolvedEndpoint:
    """
    Resolve the active backend to an endpoint.

    Args:
        settings: The ``llm`` settings.
        environ: Environment to read the API key from (default os.environ).

    Returns:
        ResolvedEndpoint for the active backend.

    Raises:
        UnsupportedBackendError: If the backend is ``heuristics``.
        MissingCredentialError: If ``remote`` is selected without an API key.
    """
    backend = settings.backend
    environ = os.environ if environ is None else environ

    if backend is Backend.HEURISTICS:
        raise UnsupportedBackendError(backend.value, "heuristics backend selected, model extraction not needed")

    if backend is Backend.OLLAMA:
        section = settings.ollama
        api_key = _PLACEHOLDER_KEYS[backend]
    elif backend is Backend.CLIPROXY:
        section = settings.cliproxy
        api_key = _PLACEHOLDER_KEYS[backend]
    else:
        section = settings.remote
        api_key = environ.get(settings.api_key_env, "")
        if not api_key:
            raise MissingCredentialError(settings.api_key_env)

    logger.info(f"Using {_BACKEND_LABELS[backend]} backend: url={section.base_url} model={section.model}")

    return ResolvedEndpoint(
        backend=backend,
        base_url=section.base_url,
        model=section.model,
        api_key=api_key,
    )
