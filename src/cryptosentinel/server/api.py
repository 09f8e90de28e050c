"""
FastAPI application for the research bot.

Endpoints mirror the conversation flow: analyze a query, answer the trading
prompt, ask follow-ups, reset. Each ``session_id`` owns one ``ResearchBot``
held in an injected ``SessionStore``.
"""

from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from .. import __version__
from ..agents import (
    InMemorySessionStore,
    LiteLLMClient,
    ReportSynthesizer,
    ResearchBot,
    SessionStore,
    TokenAggregator,
)
from ..agents.prompts import ANALYST_SYSTEM_PROMPT
from ..agents.synthesizer import market_summary
from ..config import SentinelConfig, load_config
from ..exceptions import SessionNotFoundError

NO_ACTIVE_SESSION = "No active analysis session"


# Request Models
class AnalyzeRequest(BaseModel):
    query: Optional[str] = None
    session_id: Optional[str] = None


class TradingDecisionRequest(BaseModel):
    decision: Optional[str] = None
    session_id: Optional[str] = None


class FollowupRequest(BaseModel):
    question: Optional[str] = None
    session_id: Optional[str] = None


class ResetRequest(BaseModel):
    session_id: Optional[str] = None


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


def build_bot_factory(config: SentinelConfig) -> tuple:
    """Create the shared aggregator and a factory producing per-session bots.

    Returns:
        ``(factory, aggregator)``; the aggregator owns the HTTP client to close
    """
    llm_client = LiteLLMClient.from_config(config.llm, system_prompt=ANALYST_SYSTEM_PROMPT)
    aggregator = TokenAggregator.from_config(config, llm_client=llm_client)
    synthesizer = ReportSynthesizer(llm_client)

    def factory() -> ResearchBot:
        return ResearchBot(aggregator, synthesizer, llm_client)

    return factory, aggregator


def create_app(
    config: Optional[SentinelConfig] = None,
    session_store: Optional[SessionStore] = None,
    bot_factory: Optional[Callable[[], Any]] = None,
) -> FastAPI:
    """Build the API application.

    Args:
        config: Loaded configuration (``load_config()`` when None)
        session_store: Session backend (in-memory when None)
        bot_factory: Callable returning a new bot; when None the lifespan
            hook wires real toolkits from ``config``
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        aggregator = None
        if app.state.bot_factory is None:
            app_config = config or load_config()
            app.state.bot_factory, aggregator = build_bot_factory(app_config)
            missing = app_config.validate_api_keys()
            if missing:
                logger.warning(f"Running without: {', '.join(missing)}")
        logger.info("CryptoSentinel API started")

        yield

        if aggregator is not None:
            await aggregator.aclose()
        logger.info("CryptoSentinel API stopped")

    app = FastAPI(
        title="CryptoSentinel API",
        description="Solana token research: aggregated on-chain, market and social analysis",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.sessions = session_store or InMemorySessionStore()
    app.state.bot_factory = bot_factory

    cors_origins = config.web_server.cors_origins if config else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check() -> Dict[str, Any]:
        return {"status": "healthy", "version": __version__}

    @app.post("/api/analyze")
    async def analyze(request: AnalyzeRequest):
        if not request.query or not request.session_id:
            return _bad_request("Query and session_id are required")

        bot = app.state.sessions.get_or_create(request.session_id, app.state.bot_factory)
        result = await bot.process_initial_query(request.query)

        if isinstance(result.get("token_info"), dict):
            summary = market_summary(result["token_info"])
        else:
            summary = {}
            if bot.state is not None and isinstance(bot.state.on_chain.data, dict):
                summary = bot.state.on_chain.data.get("market_data") or {}

        return {"result": result, "market_summary": summary, "has_trading_prompt": True}

    @app.post("/api/trading-decision")
    async def trading_decision(request: TradingDecisionRequest):
        if not request.decision or not request.session_id:
            return _bad_request("Decision and session_id are required")

        try:
            bot = app.state.sessions.require(request.session_id)
        except SessionNotFoundError:
            return _bad_request(NO_ACTIVE_SESSION)
        if bot.state is None:
            return _bad_request(NO_ACTIVE_SESSION)

        result = await bot.process_trading_decision(request.decision)
        app.state.sessions.delete(request.session_id)
        return {"result": result}

    @app.post("/api/followup")
    async def followup(request: FollowupRequest):
        if not request.question or not request.session_id:
            return _bad_request("Question and session_id are required")

        try:
            bot = app.state.sessions.require(request.session_id)
        except SessionNotFoundError:
            return _bad_request(NO_ACTIVE_SESSION)
        if bot.state is None:
            return _bad_request(NO_ACTIVE_SESSION)

        return {"result": await bot.process_followup(request.question)}

    @app.post("/api/reset")
    async def reset(request: ResetRequest):
        if not request.session_id:
            return _bad_request("Session ID is required")

        app.state.sessions.delete(request.session_id)
        return {"status": "success", "message": "Session reset successfully"}

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"error": str(exc)})

    return app
