from __future__ import annotations
import copy
import logging
from typing import Any, AsyncIterable, AsyncIterator, Dict, Optional

from llmrelay.core.normalizer import read_field
from llmrelay.resilience.classifier import ErrorClassifier, error_status
from .events import ContentFragment, Finish, StreamError, StreamEvent, ToolCallFragment, snapshot_tool_calls

logger = logging.getLogger(__name__)


async def normalize_delta_stream(
    chunks: AsyncIterable[Any],
    classifier: Optional[ErrorClassifier] = None,
) -> AsyncIterator[StreamEvent]:
    """
    Delta-accumulation shape (OpenAI chat completions).

    Tool-call fragments are keyed by the most recently seen non-null id; a fragment
    without an id extends the entry opened before it, or opens "call_<index>" when
    no id has been seen yet. Names are set, arguments are
    concatenated. Every update is emitted so consumers see progressive state.
    """
    classifier = classifier or ErrorClassifier()
    tool_calls: Dict[str, Dict[str, Any]] = {}
    content = ""
    current_id: Optional[str] = None
    finished = False

    try:
        async for chunk in chunks:
            if finished:
                continue
            try:
                choices = read_field(chunk, "choices", [])
                if not choices:
                    continue
                choice = choices[0]
                delta = read_field(choice, "delta")

                for fragment in read_field(delta, "tool_calls", []):
                    frag_id = read_field(fragment, "id")
                    if frag_id:
                        current_id = str(frag_id)
                    elif current_id is None:
                        # No id seen yet: key by the fragment's position
                        current_id = f"call_{read_field(fragment, 'index', 0)}"
                    if current_id not in tool_calls:
                        tool_calls[current_id] = {
                            "id": current_id,
                            "type": "function",
                            "function": {"name": "", "arguments": ""},
                        }
                    entry = tool_calls[current_id]
                    fn = read_field(fragment, "function")
                    name = read_field(fn, "name")
                    if name:
                        entry["function"]["name"] = name
                    arguments = read_field(fn, "arguments")
                    if arguments:
                        entry["function"]["arguments"] += arguments
                    yield ToolCallFragment(copy.deepcopy(entry))

                text = read_field(delta, "content")
                if text:
                    content += text
                    yield ContentFragment(text)

                reason = read_field(choice, "finish_reason")
                if reason:
                    finished = True
                    yield Finish(
                        reason=str(reason),
                        final_content=content,
                        final_tool_calls=snapshot_tool_calls(tool_calls),
                    )
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
