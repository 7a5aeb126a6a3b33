from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, FastAPI, File, Form, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from llmrelay.bootstrap import build_client
from llmrelay.config_loader import load_config
from llmrelay.core.errors import ConfigurationError, SerializationError
from llmrelay.logging_config import configure_logging
from llmrelay.streaming.events import sse_frames

logger = logging.getLogger(__name__)


class MessageRequest(BaseModel):
    messages: List[Dict[str, Any]]
    tools: List[Dict[str, Any]] = Field(default_factory=list)
    llm_name: Optional[str] = None
    llm_model: Optional[str] = None


def _error(status: int, error: str, details: str) -> JSONResponse:
    return JSONResponse({"error": error, "details": details}, status_code=status)


def create_app(config_path: Path, *, setup_logging: bool = True) -> FastAPI:
    """
    Thin HTTP surface: request parsing, SSE framing and upload lifecycle only.
    All retry/degradation behaviour lives in the ResilientClient.
    """
    cfg = load_config(Path(config_path))
    if setup_logging:
        configure_logging(level=cfg["logging"].get("level", "INFO"), env=cfg["logging"].get("env"))

    app = FastAPI()
    app.state.cfg = cfg
    app.state.clients = {}

    def _client_for(llm_name: Optional[str]):
        name = (llm_name or cfg["provider"]["name"]).lower()
        if name not in app.state.clients:
            client = build_client(cfg, name)
            if client is None:
                return None
            app.state.clients[name] = client
        return app.state.clients[name]

    @app.exception_handler(ConfigurationError)
    async def _config_error(_request, exc: ConfigurationError):
        logger.error(f"Configuration error: {exc}")
        return _error(500, "Configuration error", str(exc))

    @app.exception_handler(SerializationError)
    async def _serialization_error(_request, exc: SerializationError):
        logger.error(f"Serialization error: {exc}")
        return _error(400, "Invalid message format", str(exc))

    router = APIRouter(prefix="/agent")

    @router.post("/message")
    async def message(req: MessageRequest):
        client = _client_for(req.llm_name)
        if client is None:
            return _error(400, "Invalid LLM name", f'LLM "{req.llm_name}" is not supported')
        response = await client.send(req.messages, req.tools or None, req.llm_model)
        return JSONResponse(response)

    @router.post("/message/stream")
    async def message_stream(req: MessageRequest):
        client = _client_for(req.llm_name)
        if client is None:
            return _error(400, "Invalid LLM name", f'LLM "{req.llm_name}" is not supported')
        events = await client.stream(req.messages, req.tools or None, req.llm_model)
        return StreamingResponse(sse_frames(events), media_type="text/event-stream")

    @router.post("/audio_message")
    async def audio_message(audio: Optional[UploadFile] = File(None), llm_name: Optional[str] = Form(None)):
        if audio is None:
            return _error(400, "Missing file", "No audio file uploaded")
        client = _client_for(llm_name)
        if client is None:
            return _error(400, "Invalid LLM name", f'LLM "{llm_name}" is not supported')

        suffix = Path(audio.filename or "").suffix
        fd, tmp_path = tempfile.mkstemp(suffix=suffix)
        try:
            with os.fdopen(fd, "wb") as out:
                shutil.copyfileobj(audio.file, out)
            transcription = await client.stt(tmp_path)
        finally:
            os.unlink(tmp_path)
        return JSONResponse({"transcription": transcription})

    app.include_router(router)
    return app


def run(
    *,
    config: Path,
    host: str = "127.0.0.1",
    port: int = 8000,
    reload: bool = False,
) -> None:
    import uvicorn

    app = create_app(config)
    uvicorn.run(app, host=host, port=port, reload=reload)
