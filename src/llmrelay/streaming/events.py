from __future__ import annotations
import copy
import json
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, Dict, List, Optional, Union


@dataclass(frozen=True)
class ContentFragment:
    text: str
    type = "content"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "content": self.text}


@dataclass(frozen=True)
class ToolCallFragment:
    """Progressive state of one tool call; a snapshot, not a live reference."""
    tool_call: Dict[str, Any]
    type = "tool_call"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "tool_call": copy.deepcopy(self.tool_call)}


@dataclass(frozen=True)
class Finish:
    reason: Optional[str]
    final_content: str
    final_tool_calls: Optional[List[Dict[str, Any]]] = None
    error_metadata: Optional[Dict[str, Any]] = None
    type = "finish"

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "type": self.type,
            "finish_reason": self.reason,
            "final_content": self.final_content,
            "final_tool_calls": copy.deepcopy(self.final_tool_calls),
        }
        if self.error_metadata is not None:
            out["_error_metadata"] = dict(self.error_metadata)
        return out


@dataclass(frozen=True)
class StreamError:
    message: str
    details: str = ""
    status: Optional[int] = None
    retryable: bool = False
    type = "error"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "error": self.message,
            "details": self.details,
            "status": self.status,
            "retryable": self.retryable,
        }


StreamEvent = Union[ContentFragment, ToolCallFragment, Finish, StreamError]

TERMINAL_EVENTS = (Finish, StreamError)


def snapshot_tool_calls(table: Dict[str, Dict[str, Any]]) -> Optional[List[Dict[str, Any]]]:
    """Values of an open tool-call table in insertion order, or None when empty."""
    if not table:
        return None
    return [copy.deepcopy(tc) for tc in table.values()]


async def sse_frames(events: AsyncIterable[StreamEvent]) -> AsyncIterator[str]:
    """Server-Sent-Events framing: one 'data: <json>' frame per event."""
    async for event in events:
        yield f"data: {json.dumps(event.to_dict(), ensure_ascii=False)}\n\n"
