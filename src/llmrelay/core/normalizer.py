from __future__ import annotations
import json
from collections.abc import Mapping
from typing import Any, Dict, List

from .errors import SerializationError


def read_field(obj: Any, name: str, default: Any = None) -> Any:
    """
    Read `name` from a mapping key or an attribute.
    SDK objects and plain dicts (tests, JSON payloads) both flow through here.
    """
    if obj is None:
        return default
    if isinstance(obj, Mapping):
        value = obj.get(name, default)
    else:
        value = getattr(obj, name, default)
    return default if value is None else value


def encode_arguments(arguments: Any) -> str:
    """Return tool-call arguments as a valid JSON string."""
    if arguments is None or arguments == "":
        return "{}"
    if isinstance(arguments, str):
        json.loads(arguments)  # ValueError bubbles to the caller
        return arguments
    if isinstance(arguments, Mapping):
        arguments = dict(arguments)
    return json.dumps(arguments)


def _as_mapping(raw: Any) -> Mapping:
    if isinstance(raw, Mapping):
        return raw
    dump = getattr(raw, "model_dump", None)
    if callable(dump):
        dumped = dump(exclude_none=True)
        if isinstance(dumped, Mapping):
            return dumped
    raise SerializationError(f"Unable to serialize message: unsupported message type {type(raw).__name__}")


def normalize_tool_call(tool_call: Any) -> Dict[str, Any]:
    try:
        fn = read_field(tool_call, "function", {})
        return {
            "id": str(read_field(tool_call, "id", "")),
            "type": str(read_field(tool_call, "type", "function")),
            "function": {
                "name": str(read_field(fn, "name", "")),
                "arguments": encode_arguments(read_field(fn, "arguments")),
            },
        }
    except (TypeError, ValueError, AttributeError) as e:
        raise SerializationError(f"Invalid tool call format: {e}") from e


def normalize_message(raw: Any) -> Dict[str, Any]:
    """
    Map a provider-native single message onto the canonical chat shape:
    {'role', 'content', 'tool_calls'?, 'tool_call_id'?}.
    Arrays of messages are rejected; content is always a string afterwards.
    """
    if isinstance(raw, (list, tuple, str, bytes)) or raw is None:
        raise SerializationError(
            f"Unable to serialize message: unsupported message type {type(raw).__name__}"
        )
    msg = _as_mapping(raw)

    content = msg.get("content")
    result: Dict[str, Any] = {
        "role": str(msg.get("role") or "assistant"),
        "content": "" if content is None else str(content),
    }

    tool_calls = msg.get("tool_calls")
    if tool_calls:
        if not isinstance(tool_calls, (list, tuple)):
            raise SerializationError("Invalid tool call format: 'tool_calls' must be a list")
        mapped: List[Dict[str, Any]] = [normalize_tool_call(tc) for tc in tool_calls]
        result["tool_calls"] = mapped

    if msg.get("tool_call_id"):
        result["tool_call_id"] = str(msg["tool_call_id"])

    # Degraded responses keep their diagnostics
    if "_error_metadata" in msg:
        result["_error_metadata"] = msg["_error_metadata"]

    return result
