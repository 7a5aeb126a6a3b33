from __future__ import annotations
from typing import Protocol, AsyncIterator, List, Dict, Any, Optional

Message = Dict[str, Any]


class Logger(Protocol):
    """Anything with the stdlib logger's level methods; tests pass recorders."""

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def info(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def error(self, msg: str, *args: Any, **kwargs: Any) -> None: ...


class ProviderBackend(Protocol):
    """
    Raw primitives one backend supplies. No retries, no degraded responses:
    failures surface as ProviderError with the transport's status attached.
    """

    # Registry name, reported in error metadata
    name: str

    async def complete(
        self, messages: List[Message], tools: Optional[List[Dict[str, Any]]], model: Optional[str]
    ) -> Message:
        """Single-shot completion. Returns a provider message (normalized by the caller)."""
        ...

    async def open_stream(
        self, messages: List[Message], tools: Optional[List[Dict[str, Any]]], model: Optional[str]
    ) -> AsyncIterator[Any]:
        """
        Start a streaming completion and return its normalized event iterator.
        Raising here counts as a failed attempt; errors after this point become events.
        """
        ...

    async def transcribe(self, file_path: str) -> str:
        """Speech-to-text for the audio file at file_path."""
        ...
