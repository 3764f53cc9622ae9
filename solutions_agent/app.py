from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .agent import SolutionsAgent
from .config import Settings, load_settings
from .errors import ConfigurationError
from .models import (
    ChatFailure,
    ChatRequest,
    ChatResult,
    ClearResponse,
    HistoryResponse,
    InternetSearchResult,
    StatsResponse,
)

BASE_DIR = Path(__file__).resolve().parent
VERSION = "1.0.0"

ENV_PATH = BASE_DIR.parent / ".env"


def load_environment(env_path: Path = ENV_PATH) -> None:
    # Must run before anything reads the environment, LOG_LEVEL included.
    if env_path.exists():
        load_dotenv(env_path, override=True)


def configure_logging() -> int:
    """Purpose: Apply LOG_LEVEL to the root handler and the solutions_hub loggers.
    Inputs/Outputs: No inputs; returns the resolved logging level.
    Side Effects / State: Installs a basicConfig handler when none exists.
    Failure Modes: Unknown level names fall back to INFO.
    If Removed: Engine logs use interpreter defaults and LOG_LEVEL is ignored.
    Testing Notes: Load a temp .env with LOG_LEVEL=DEBUG first, then call this.
    """
    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
    logging.getLogger("solutions_hub").setLevel(level)
    return level


load_environment()
configure_logging()
logger = logging.getLogger("solutions_hub.app")


def _validated_message(request: ChatRequest, settings: Settings) -> str:
    message = request.message.strip()
    if not message:
        raise HTTPException(status_code=400, detail="Message is required and must be a non-empty string")
    if len(message) > settings.max_message_length:
        raise HTTPException(
            status_code=400,
            detail=f"Message is too long. Maximum {settings.max_message_length} characters allowed.",
        )
    return message


def create_app(agent: Optional[SolutionsAgent] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Purpose: Build the FastAPI app exposing the engine's function surface.
    Inputs/Outputs: Optional prebuilt agent and settings; returns a FastAPI app.
    Side Effects / State: Builds the agent from environment settings when not given.
    Dependencies: SolutionsAgent, load_settings.
    Failure Modes: Unknown CATALOG_BACKEND or a missing MONGODB_URI raise
        ConfigurationError at startup; a missing GEMINI_API_KEY surfaces per request as 503.
    If Removed: The engine has no HTTP surface.
    Testing Notes: Pass an agent wired with fakes and use fastapi.testclient.TestClient.
    """
    settings = settings or load_settings()
    agent = agent or SolutionsAgent.from_settings(settings)

    app = FastAPI(title="Solutions Hub Agent", version=VERSION)
    app.state.agent = agent
    app.state.settings = settings

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
        logger.error("path=%s status=unconfigured detail=%s", request.url.path, exc)
        return JSONResponse(status_code=503, content={"success": False, "error": str(exc)})

    @app.post("/api/chat/message", response_model=ChatResult)
    async def send_message(request: ChatRequest):
        """Run the recommendation pipeline for one message."""
        message = _validated_message(request, settings)
        result = await agent.process_message(message, request.session_id)
        if isinstance(result, ChatFailure):
            return JSONResponse(status_code=500, content=result.model_dump())
        return result

    @app.post("/api/chat/internet-search", response_model=InternetSearchResult)
    async def internet_search(request: ChatRequest):
        """Broader, non-catalog recommendations; only on explicit user request."""
        message = _validated_message(request, settings)
        result = await agent.handle_internet_search_request(message, request.session_id)
        if isinstance(result, ChatFailure):
            return JSONResponse(status_code=500, content=result.model_dump())
        return result

    @app.get("/api/chat/history/{session_id}", response_model=HistoryResponse)
    def get_history(session_id: str) -> HistoryResponse:
        history = agent.get_history(session_id)
        return HistoryResponse(session_id=session_id, history=history, message_count=len(history))

    @app.delete("/api/chat/history/{session_id}", response_model=ClearResponse)
    def clear_history(session_id: str) -> ClearResponse:
        return agent.clear_history(session_id)

    @app.get("/api/chat/stats", response_model=StatsResponse)
    def get_stats() -> StatsResponse:
        return agent.get_stats()

    @app.get("/api/chat/health")
    def health() -> JSONResponse:
        """Report configuration state without calling the model."""
        configured = settings.is_configured
        payload = {
            "status": "healthy" if configured else "unavailable",
            "ai_agent": "operational" if configured else "not_configured",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": VERSION,
        }
        return JSONResponse(status_code=200 if configured else 503, content=payload)

    return app
