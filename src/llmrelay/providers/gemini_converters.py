from __future__ import annotations
import json
from typing import Any, Dict, List, Optional, Tuple

from llmrelay.core.errors import SerializationError


def convert_tools(tools: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """OpenAI-style tool specs -> one Gemini tool holding all function declarations."""
    if not tools:
        return []
    declarations = []
    for tool in tools:
        fn = tool.get("function") or {}
        decl: Dict[str, Any] = {"name": fn.get("name", "")}
        if fn.get("description"):
            decl["description"] = fn["description"]
        if fn.get("parameters"):
            decl["parameters"] = fn["parameters"]
        declarations.append(decl)
    return [{"function_declarations": declarations}]


def _parse_args(arguments: Any) -> Dict[str, Any]:
    if isinstance(arguments, dict):
        return arguments
    if not arguments:
        return {}
    try:
        return json.loads(arguments)
    except ValueError as e:
        raise SerializationError(f"Invalid tool call format: {e}") from e


def convert_messages(messages: List[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], Optional[str]]:
    """
    OpenAI-style chat history -> (Gemini contents, system instruction).
    System messages are lifted into the instruction; tool results become
    function_response parts named after the call they answer.
    """
    contents: List[Dict[str, Any]] = []
    system_parts: List[str] = []
    call_names: Dict[str, str] = {}

    for msg in messages:
        role = str(msg.get("role", "user")).lower()
        content = msg.get("content")

        if role == "system":
            if content:
                system_parts.append(str(content))
            continue

        parts: List[Dict[str, Any]] = []
        if role == "tool":
            name = call_names.get(str(msg.get("tool_call_id")), msg.get("name") or "tool")
            parts.append({"function_response": {"name": name, "response": {"content": content}}})
            contents.append({"role": "user", "parts": parts})
            continue

        if content:
            parts.append({"text": str(content)})
        for tc in msg.get("tool_calls") or []:
            fn = tc.get("function") or {}
            call_names[str(tc.get("id"))] = fn.get("name", "")
            parts.append({"function_call": {"name": fn.get("name", ""), "args": _parse_args(fn.get("arguments"))}})

        if parts:
            contents.append({"role": "model" if role == "assistant" else "user", "parts": parts})

    return contents, ("\n\n".join(system_parts) or None)
