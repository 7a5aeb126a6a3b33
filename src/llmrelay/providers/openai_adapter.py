# src/llmrelay/providers/openai_adapter.py
from __future__ import annotations
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from openai import AsyncOpenAI

from llmrelay.providers.registry import ProviderRegistry
from llmrelay.core.errors import ConfigurationError, ProviderError, ProviderPermanentError, ProviderTransientError
from llmrelay.core.normalizer import normalize_message
from llmrelay.resilience.classifier import ErrorClassifier, error_status
from llmrelay.streaming.delta import normalize_delta_stream
from llmrelay.streaming.events import StreamEvent

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4.1"


def _classify_openai_exception(exc: Exception) -> ProviderError:
    """
    Convert OpenAI/client exceptions into neutral provider errors.
    Avoid hard dependency on specific SDK exception classes by inspecting name/attributes/message.
    The prefix keeps the retry decision readable from the message alone.
    """
    if isinstance(exc, ProviderError):
        return exc
    status = error_status(exc)
    msg = str(exc)
    kind = type(exc).__name__

    if kind == "RateLimitError":
        return ProviderTransientError(f"Rate limit exceeded: {msg}", status)
    if kind == "APITimeoutError":
        return ProviderTransientError(f"Request timeout: {msg}", status)
    if kind == "APIConnectionError":
        return ProviderTransientError(f"Connection failed, service unavailable: {msg}", status)
    if kind == "AuthenticationError":
        return ProviderPermanentError(f"Authentication error: {msg}", status)
    if kind in ("BadRequestError", "UnprocessableEntityError", "NotFoundError", "PermissionDeniedError"):
        return ProviderPermanentError(f"Invalid request: {msg}", status)

    if status is not None:
        if status == 429 or 500 <= status <= 599:
            return ProviderTransientError(f"OpenAI API error: {msg}", status)
        return ProviderPermanentError(f"OpenAI API error: {msg}", status)

    lower = msg.lower()
    if any(k in lower for k in ("rate limit", "temporarily unavailable", "timeout", "timed out")):
        return ProviderTransientError(f"OpenAI error: {msg}")
    return ProviderPermanentError(f"Unexpected error: {msg}")


@ProviderRegistry.register("openai")
class OpenAIAdapter:
    """
    Thin backend over the async OpenAI SDK:
    - chat completions (single-shot and streamed) and Whisper transcription
    - maps SDK errors to ProviderTransientError / ProviderPermanentError, status preserved
    - no retries here; ResilientClient wraps every primitive
    """

    name = "openai"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_MODEL,
        timeout: Optional[float] = None,
        base_url: Optional[str] = None,
        organization: Optional[str] = None,
        transcription_model: str = "whisper-1",
        transcription_language: Optional[str] = "pt",
        classifier: Optional[ErrorClassifier] = None,
    ):
        if not api_key:
            raise ConfigurationError("OpenAIAdapter requires a valid configuration with an API token.")
        self.model = model
        client_kwargs: Dict[str, Any] = {"api_key": api_key}
        if base_url:
            client_kwargs["base_url"] = base_url
        if organization:
            client_kwargs["organization"] = organization
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        self.client = AsyncOpenAI(**client_kwargs)

        self.transcription_model = transcription_model
        self.transcription_language = transcription_language
        self.classifier = classifier or ErrorClassifier()

    @classmethod
    def create(cls, *, credentials: Dict[str, Any], options: Optional[Dict[str, Any]] = None) -> "OpenAIAdapter":
        credentials = credentials or {}
        options = options or {}
        api_key = credentials.get("api_key")
        if not api_key:
            raise ConfigurationError("No API key for 'openai'")
        return cls(
            api_key=api_key,
            model=options.get("model") or DEFAULT_MODEL,
            timeout=options.get("timeout"),
            base_url=credentials.get("base_url") or options.get("base_url"),
            organization=credentials.get("organization"),
            transcription_model=options.get("transcription_model") or "whisper-1",
            transcription_language=options.get("transcription_language", "pt"),
        )

    def _build_args(
        self, messages: List[Dict[str, Any]], tools: Optional[List[Dict[str, Any]]], model: Optional[str], *, stream: bool
    ) -> Dict[str, Any]:
        args: Dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
        }
        if tools:
            args["tools"] = tools
        if stream:
            args["stream"] = True
        return args

    async def complete(self, messages, tools=None, model=None) -> Dict[str, Any]:
        try:
            resp = await self.client.chat.completions.create(**self._build_args(messages, tools, model, stream=False))
            message = resp.choices[0].message
        except Exception as e:
            err = _classify_openai_exception(e)
            logger.error(f"OpenAI completion failed: {err}")
            raise err from e
        return normalize_message(message)

    async def open_stream(self, messages, tools=None, model=None) -> AsyncIterator[StreamEvent]:
        try:
            stream = await self.client.chat.completions.create(**self._build_args(messages, tools, model, stream=True))
        except Exception as e:
            err = _classify_openai_exception(e)
            logger.error(f"Error initializing stream: {err}")
            raise err from e
        return normalize_delta_stream(stream, self.classifier)

    async def transcribe(self, file_path: str) -> str:
        kwargs: Dict[str, Any] = {"model": self.transcription_model}
        if self.transcription_language:
            kwargs["language"] = self.transcription_language
        try:
            with open(file_path, "rb") as audio_file:
                transcription = await self.client.audio.transcriptions.create(file=audio_file, **kwargs)
        except Exception as e:
            err = _classify_openai_exception(e)
            logger.error(f"Whisper transcription error: {err}")
            raise err from e

        text = getattr(transcription, "text", None)
        if not text:
            logger.warning("Failed to transcribe audio content")
            raise ProviderPermanentError("Failed to transcribe audio content")
        logger.info("Audio transcribed successfully")
        return text
