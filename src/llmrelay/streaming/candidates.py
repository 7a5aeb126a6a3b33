from __future__ import annotations
import copy
import logging
import uuid
from typing import Any, AsyncIterable, AsyncIterator, Callable, Dict, Optional

from llmrelay.core.errors import SerializationError
from llmrelay.core.normalizer import encode_arguments, read_field
from llmrelay.resilience.classifier import ErrorClassifier, error_status
from .events import ContentFragment, Finish, StreamError, StreamEvent, ToolCallFragment, snapshot_tool_calls

logger = logging.getLogger(__name__)


def default_call_id(name: str) -> str:
    # This wire shape has no native correlation id
    return f"{name}_{uuid.uuid4().hex[:12]}"


def finish_reason_name(reason: Any) -> str:
    """SDK enums report by name ('STOP'); strings pass through."""
    name = getattr(reason, "name", None)
    return str(name) if name else str(reason)


def args_json(args: Any) -> str:
    """Native args mapping (or JSON string) -> JSON string; invalid strings raise SerializationError."""
    try:
        return encode_arguments(args or None)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Invalid tool call format: {e}") from e


async def normalize_candidate_stream(
    chunks: AsyncIterable[Any],
    classifier: Optional[ErrorClassifier] = None,
    *,
    call_id: Callable[[str], str] = default_call_id,
) -> AsyncIterator[StreamEvent]:
    """
    Candidate/part shape (Gemini). Each chunk carries whole parts: text or a complete
    functionCall. Function calls get a synthesized id and overwrite their table entry.
    The stream ends at the first candidate carrying a finish reason.
    """
    classifier = classifier or ErrorClassifier()
    tool_calls: Dict[str, Dict[str, Any]] = {}
    content = ""
    finished = False

    try:
        async for chunk in chunks:
            try:
                candidates = read_field(chunk, "candidates", [])
                if not candidates:
                    continue
                candidate = candidates[0]
                parts = read_field(read_field(candidate, "content"), "parts", [])

                for part in parts:
                    text = read_field(part, "text")
                    if text:
                        content += text
                        yield ContentFragment(text)

                    fc = read_field(part, "function_call") or read_field(part, "functionCall")
                    if fc:
                        name = str(read_field(fc, "name", ""))
                        tc_id = call_id(name)
                        tool_calls[tc_id] = {
                            "id": tc_id,
                            "type": "function",
                            "function": {"name": name, "arguments": args_json(read_field(fc, "args"))},
                        }
                        yield ToolCallFragment(copy.deepcopy(tool_calls[tc_id]))

                reason = read_field(candidate, "finish_reason") or read_field(candidate, "finishReason")
                if reason:
                    finished = True
                    yield Finish(
                        reason=finish_reason_name(reason),
                        final_content=content,
                        final_tool_calls=snapshot_tool_calls(tool_calls),
                    )
                    break
            except Exception as e:
                logger.error(f"Error processing stream chunk: {e}")
                yield StreamError(
                    message="Chunk processing error",
                    details=str(e),
                    status=error_status(e),
                    retryable=classifier.is_retryable_extended(e),
                )
    except Exception as e:
        logger.error(f"Error in stream iteration: {e}")
        yield StreamError(
            message="Stream iteration error",
            details=str(e),
            status=error_status(e),
            retryable=classifier.is_retryable_extended(e),
        )
        return

    if not finished:
        yield StreamError(message="Stream ended without a finish reason", retryable=True)
