"""
FastAPI application entry point for the plakait runtime.

Responsibilities:
- configure logging
- construct shared singletons (SessionStore, LLMClient, ResilientCompletion,
  ConversationAgent)
- run the session expiry sweeper for the lifetime of the app
- include the game routes, behind environment-specific CORS
"""

from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from configs.logging_config import setup_logging
from configs.settings import settings
from core.api.openai_client import LLMClient
from core.completion.resilient_completion import ResilientCompletion
from runtime.agents.conversation_agent import ConversationAgent
from runtime.store.session_store import SessionStore
from . import session_routes


def create_app(conversation_agent: ConversationAgent) -> FastAPI:
    """Build the app around an already-wired ConversationAgent."""
    session_store = conversation_agent.session_store

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        session_store.start_sweeper(
            interval=settings.sweep_interval,
            max_age=timedelta(seconds=settings.session_max_age),
        )
        try:
            yield
        finally:
            await session_store.stop_sweeper()

    app = FastAPI(title="plakait", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

    # Initialize the router module with our shared objects, then include it.
    session_routes.init_routes(conversation_agent=conversation_agent)
    app.include_router(session_routes.router)
    return app


# ---------------------------------------------------------------------------
# Shared singletons
# ---------------------------------------------------------------------------

setup_logging(settings.environment)

# Session storage: in-memory only, lives as long as the process.
session_store = SessionStore()

# Completion stack: one raw request per call, wrapped in the retry loop.
llm_client = LLMClient()
completion = ResilientCompletion(llm_client)

# Main conversation agent used by the game routes.
conversation_agent = ConversationAgent(
    session_store=session_store,
    completion=completion,
)

app = create_app(conversation_agent)
