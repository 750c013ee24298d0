"""HTTP routes for interacting with the plakait runtime.

Exposes endpoints like:

- GET  /                 -> number of live games (plain text)
- GET  /healthz          -> liveness check
- POST /game             -> takes (scenario), returns a new gameId and
                            the persona's opening message
- POST /chat/{game_id}   -> takes (name, content), returns the visible
                            transcript after the persona's reply
- GET  /history/{game_id} -> returns the visible transcript

Errors never leak internal detail to the client: unknown games are a 404,
everything else is logged server-side and answered with a generic 500.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException
from fastapi.responses import PlainTextResponse

from exceptions.exceptions import SessionNotFoundException
from ..models.api_models import ChatRequest, StartGameRequest, StartGameResponse
from ..models.session_models import Turn
from ..agents.conversation_agent import ConversationAgent


logger = logging.getLogger(__name__)

# Router for all game-related endpoints
router = APIRouter()

GENERIC_ERROR_DETAIL = "Internal Server Error"
NOT_FOUND_DETAIL = "Game not found"


# Module-level reference, to be initialized by the server.
_CONVERSATION_AGENT: Optional[ConversationAgent] = None


def init_routes(conversation_agent: ConversationAgent) -> None:
    """Initialize module-level references used by the route handlers."""
    global _CONVERSATION_AGENT
    _CONVERSATION_AGENT = conversation_agent


def _require_conversation_agent() -> ConversationAgent:
    if _CONVERSATION_AGENT is None:
        raise HTTPException(
            status_code=500,
            detail="ConversationAgent is not configured on the server.",
        )
    return _CONVERSATION_AGENT


@router.get("/", response_class=PlainTextResponse)
async def get_root() -> str:
    """Return the current number of live games."""
    agent = _require_conversation_agent()
    game_count = await agent.session_count()
    logger.debug("[GAME] root check - game count: %d", game_count)
    return str(game_count)


@router.post("/game", response_model=StartGameResponse, response_model_by_alias=True)
async def post_game(request: StartGameRequest) -> StartGameResponse:
    """Start a new game for a scenario and return the opening transcript."""
    agent = _require_conversation_agent()
    try:
        game_id, messages = await agent.start_game(request.scenario)
    except Exception:
        logger.exception("[GAME] failed to start %s game", request.scenario.value)
        raise HTTPException(status_code=500, detail=GENERIC_ERROR_DETAIL)

    logger.debug("[GAME] post game: %s - %s", request.scenario.value, game_id)
    return StartGameResponse(game_id=UUID(game_id), messages=messages)


@router.post("/chat/{game_id}", response_model=List[Turn], response_model_by_alias=True)
async def post_chat(game_id: UUID, request: ChatRequest) -> List[Turn]:
    """Submit one message to a game and return the updated transcript."""
    agent = _require_conversation_agent()
    try:
        return await agent.handle_user_message(
            session_id=str(game_id),
            name=request.name,
            content=request.content,
        )
    except SessionNotFoundException:
        logger.warning("[GAME] HTTP 404 for chat on unknown game_id=%s", game_id)
        raise HTTPException(status_code=404, detail=NOT_FOUND_DETAIL)
    except Exception:
        # Full diagnostics stay in the server log.
        logger.exception(
            "[GAME] chat failed for game_id=%s name=%r content=%r",
            game_id,
            request.name,
            request.content,
        )
        raise HTTPException(status_code=500, detail=GENERIC_ERROR_DETAIL)


@router.get("/history/{game_id}", response_model=List[Turn], response_model_by_alias=True)
async def get_history(game_id: UUID) -> List[Turn]:
    """Return the visible transcript of a game."""
    agent = _require_conversation_agent()
    logger.debug("[GAME] get history: %s", game_id)
    try:
        return await agent.get_history(str(game_id))
    except SessionNotFoundException:
        logger.warning("[GAME] HTTP 404 for history on unknown game_id=%s", game_id)
        raise HTTPException(status_code=404, detail=NOT_FOUND_DETAIL)


# --------------------------------------------------------
# Endpoint: GET /healthz
# --------------------------------------------------------
@router.get("/healthz")
def health_check():
    """
    Simple health check endpoint for uptime monitoring.
    """
    return {"status": "ok"}
