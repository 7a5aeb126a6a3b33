# src/llmrelay/providers/gemini_adapter.py
from __future__ import annotations
import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from google import genai

from llmrelay.providers.registry import ProviderRegistry
from llmrelay.providers.gemini_converters import convert_messages, convert_tools
from llmrelay.core.errors import ConfigurationError, ProviderError, ProviderPermanentError, ProviderTransientError
from llmrelay.core.normalizer import normalize_message, read_field
from llmrelay.resilience.classifier import ErrorClassifier, error_status
from llmrelay.streaming.candidates import args_json, default_call_id, normalize_candidate_stream
from llmrelay.streaming.events import StreamEvent

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_LOCATION = "us-central1"

VERTEX_RETRY_PATTERNS = (
    "vertex ai quota exceeded",
    "gemini rate limit",
    "resource exhausted",
    "resource_exhausted",
)


def _classify_gemini_exception(exc: Exception, classifier: ErrorClassifier) -> ProviderError:
    """google.genai APIError carries an int `code` and a string `status`; keep the int."""
    if isinstance(exc, ProviderError):
        return exc
    status = error_status(exc)
    msg = str(exc)
    if classifier.is_retryable_extended(exc):
        return ProviderTransientError(msg, status)
    return ProviderPermanentError(msg, status)


async def _resume(first: Any, chunks: AsyncIterator[Any]) -> AsyncIterator[Any]:
    if first is None:
        return
    yield first
    async for chunk in chunks:
        yield chunk


@ProviderRegistry.register("gemini")
class GeminiAdapter:
    """
    Gemini on Vertex AI through the google-genai SDK (async surface `client.aio`).
    Streams arrive as whole parts per chunk; tool-call ids are synthesized.
    """

    name = "gemini"

    def __init__(
        self,
        project: str,
        *,
        location: str = DEFAULT_LOCATION,
        model: str = DEFAULT_MODEL,
        classifier: Optional[ErrorClassifier] = None,
        call_id: Callable[[str], str] = default_call_id,
    ):
        if not project:
            raise ConfigurationError("GeminiAdapter requires a valid configuration with a project ID.")
        self.project = project
        self.location = location
        self.model = model
        self.client = genai.Client(vertexai=True, project=project, location=location)
        self.classifier = classifier or ErrorClassifier()
        self.classifier.add_patterns(VERTEX_RETRY_PATTERNS)
        self.call_id = call_id

    @classmethod
    def create(cls, *, credentials: Dict[str, Any], options: Optional[Dict[str, Any]] = None) -> "GeminiAdapter":
        credentials = credentials or {}
        options = options or {}
        project = credentials.get("project")
        if not project:
            raise ConfigurationError("No project ID for 'gemini'")
        return cls(
            project=project,
            location=credentials.get("location") or options.get("location") or DEFAULT_LOCATION,
            model=options.get("model") or DEFAULT_MODEL,
        )

    def _build_request(self, messages, tools, model) -> Dict[str, Any]:
        contents, system_instruction = convert_messages(messages)
        config: Dict[str, Any] = {}
        converted = convert_tools(tools)
        if converted:
            config["tools"] = converted
            config["automatic_function_calling"] = {"disable": True}
        if system_instruction:
            config["system_instruction"] = system_instruction
        request: Dict[str, Any] = {"model": model or self.model, "contents": contents}
        if config:
            request["config"] = config
        return request

    def _parse_response(self, response: Any) -> Dict[str, Any]:
        candidates = read_field(response, "candidates", [])
        parts = read_field(read_field(candidates[0], "content"), "parts", []) if candidates else []

        content = ""
        tool_calls: List[Dict[str, Any]] = []
        for part in parts:
            text = read_field(part, "text")
            if text:
                content += text
            fc = read_field(part, "function_call")
            if fc:
                name = str(read_field(fc, "name", ""))
                tool_calls.append({
                    "id": read_field(fc, "id") or self.call_id(name),
                    "type": "function",
                    "function": {"name": name, "arguments": args_json(read_field(fc, "args"))},
                })

        result: Dict[str, Any] = {"role": "assistant", "content": content}
        if tool_calls:
            result["tool_calls"] = tool_calls
        return result

    async def complete(self, messages, tools=None, model=None) -> Dict[str, Any]:
        request = self._build_request(messages, tools, model)
        try:
            response = await self.client.aio.models.generate_content(**request)
        except Exception as e:
            err = _classify_gemini_exception(e, self.classifier)
            logger.error(f"Gemini completion failed: {err}")
            raise err from e
        return normalize_message(self._parse_response(response))

    async def open_stream(self, messages, tools=None, model=None) -> AsyncIterator[StreamEvent]:
        """
        The SDK stream is lazy: the request goes out on the first __anext__.
        Pull the first chunk here so a failed request counts as a failed attempt.
        """
        request = self._build_request(messages, tools, model)
        try:
            stream = await self.client.aio.models.generate_content_stream(**request)
            chunks = stream.__aiter__()
            try:
                first = await chunks.__anext__()
            except StopAsyncIteration:
                first = None
        except Exception as e:
            err = _classify_gemini_exception(e, self.classifier)
            logger.error(f"Error initializing stream: {err}")
            raise err from e
        return normalize_candidate_stream(_resume(first, chunks), self.classifier, call_id=self.call_id)

    async def transcribe(self, file_path: str) -> str:
        raise ProviderPermanentError("STT not implemented for gemini")
