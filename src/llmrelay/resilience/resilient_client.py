from __future__ import annotations
import asyncio
import datetime as dt
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from llmrelay.core.errors import ConfigurationError, SerializationError
from llmrelay.core.normalizer import normalize_message
from llmrelay.core.ports import Logger, Message, ProviderBackend
from llmrelay.streaming.events import ContentFragment, Finish, StreamEvent
from .classifier import ErrorClassifier, error_message, error_status
from .policy import RetryPolicy
from .retry import RetryExecutor

logger = logging.getLogger(__name__)

# Apology variants per language
APOLOGIES: Dict[str, Dict[str, str]] = {
    "pt": {
        "overloaded": (
            "Desculpe, estou temporariamente sobrecarregado devido ao alto volume de requisições. "
            "Por favor, tente novamente em alguns instantes. Agradeço sua paciência! 🙏"
        ),
        "technical": (
            "Desculpe, encontrei um problema técnico e não consegui processar sua solicitação no momento. "
            "Por favor, tente novamente em alguns instantes. Se o problema persistir, entre em contato com o suporte. 🔧"
        ),
        "long_message": (
            "\n\nObs: Percebi que sua mensagem é bastante detalhada. Quando eu voltar a funcionar, "
            "ficarei feliz em ajudar com sua solicitação completa."
        ),
        "audio": (
            "Desculpe, não foi possível processar o áudio no momento. "
            "Tente novamente em alguns instantes."
        ),
    },
    "en": {
        "overloaded": (
            "Sorry, I'm temporarily overloaded due to a high volume of requests. "
            "Please try again in a few moments. Thanks for your patience! 🙏"
        ),
        "technical": (
            "Sorry, I ran into a technical problem and couldn't process your request right now. "
            "Please try again in a few moments. If the problem persists, contact support. 🔧"
        ),
        "long_message": (
            "\n\nNote: I noticed your message is quite detailed. Once I'm back up, "
            "I'll be happy to help with your full request."
        ),
        "audio": "Sorry, the audio couldn't be processed right now. Please try again in a few moments.",
    },
}

LONG_MESSAGE_CHARS = 100

# Never absorbed into a degraded response
_PASSTHROUGH_ERRORS = (ConfigurationError, SerializationError)


class ResilientClient:
    """
    The send/stream/stt surface over one provider backend.

    With retry enabled every call returns a well-formed result: a message, an event
    stream ending in Finish, or a transcription dict. Operational failures show up only
    in '_error_metadata' / 'error_details' and the logs. With retry disabled the raw
    failure propagates.
    """

    def __init__(
        self,
        backend: ProviderBackend,
        policy: Optional[RetryPolicy] = None,
        *,
        classifier: Optional[ErrorClassifier] = None,
        executor: Optional[RetryExecutor] = None,
        language: str = "pt",
        stream_pacing_ms: int = 50,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        log: Optional[Logger] = None,
    ):
        if language not in APOLOGIES:
            raise ConfigurationError(f"Unsupported language '{language}'. Expected one of {sorted(APOLOGIES)}.")
        self.backend = backend
        self.policy = policy or RetryPolicy()
        self.classifier = classifier or getattr(backend, "classifier", None) or ErrorClassifier()
        self.log = log or logger
        self._sleep = sleep or asyncio.sleep
        self.executor = executor or RetryExecutor(
            self.policy, self.classifier, sleep=self._sleep, log=self.log
        )
        self.language = language
        self.stream_pacing_ms = stream_pacing_ms

    @property
    def provider(self) -> str:
        return getattr(self.backend, "name", type(self.backend).__name__)

    # ----- surfaces -----

    async def send(
        self,
        messages: List[Message],
        tools: Optional[List[Dict[str, Any]]] = None,
        model: Optional[str] = None,
    ) -> Message:
        try:
            result = await self.executor.execute(
                lambda: self.backend.complete(messages, tools, model), f"{self.provider} send"
            )
        except _PASSTHROUGH_ERRORS:
            raise
        except Exception as e:
            self.log.error(f"{self.provider} send failed after retries: {e}")
            if not self.policy.enabled:
                raise
            return self._error_response(e, messages)
        return normalize_message(result)

    async def stream(
        self,
        messages: List[Message],
        tools: Optional[List[Dict[str, Any]]] = None,
        model: Optional[str] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Only stream initialization is retried; later failures arrive as events."""
        try:
            return await self.executor.execute(
                lambda: self.backend.open_stream(messages, tools, model), f"{self.provider} stream"
            )
        except _PASSTHROUGH_ERRORS:
            raise
        except Exception as e:
            self.log.error(f"{self.provider} stream failed after retries: {e}")
            if not self.policy.enabled:
                raise
            return self._error_stream(e, messages)

    async def stt(self, file_path: str) -> Dict[str, Any]:
        try:
            text = await self.executor.execute(
                lambda: self.backend.transcribe(file_path), f"{self.provider} stt"
            )
        except _PASSTHROUGH_ERRORS:
            raise
        except Exception as e:
            self.log.error(f"{self.provider} stt failed after retries: {e}")
            if not self.policy.enabled:
                raise
            return {
                "text": APOLOGIES[self.language]["audio"],
                "error_details": {
                    "message": error_message(e),
                    "status": error_status(e),
                    "retryable": self.classifier.is_retryable_extended(e),
                },
            }
        return {"text": text}

    # ----- degraded responses -----

    def _apology(self, error: Exception, messages: List[Message]) -> str:
        texts = APOLOGIES[self.language]
        text = texts["overloaded"] if self.classifier.is_retryable_extended(error) else texts["technical"]
        last = messages[-1] if messages else None
        if isinstance(last, dict) and last.get("role") == "user":
            content = last.get("content")
            if isinstance(content, str) and len(content) > LONG_MESSAGE_CHARS:
                text += texts["long_message"]
        return text

    def _error_metadata(self, error: Exception) -> Dict[str, Any]:
        return {
            "original_error": error_message(error),
            "provider": self.provider,
            "status": error_status(error),
            "retryable": self.classifier.is_retryable_extended(error),
            "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(),
            "retry_count": self.policy.max_retries,
        }

    def _error_response(self, error: Exception, messages: List[Message]) -> Message:
        response = {
            "role": "assistant",
            "content": self._apology(error, messages),
            "_error_metadata": self._error_metadata(error),
        }
        try:
            return normalize_message(response)
        except SerializationError as se:
            self.log.warning(f"Serialization failed for error response: {se}")
            return response

    def _error_stream(self, error: Exception, messages: List[Message]) -> AsyncIterator[StreamEvent]:
        text = self._apology(error, messages)
        metadata = self._error_metadata(error)
        pacing = self.stream_pacing_ms / 1000
        sleep = self._sleep

        async def gen() -> AsyncIterator[StreamEvent]:
            words = text.split(" ")
            last = len(words) - 1
            for i, word in enumerate(words):
                yield ContentFragment(word + ("" if i == last else " "))
                if pacing > 0:
                    await sleep(pacing)
            yield Finish(reason="stop", final_content=text, final_tool_calls=None, error_metadata=metadata)

        return gen()
