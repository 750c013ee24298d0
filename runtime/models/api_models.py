"""
HTTP request/response models for the plakait runtime API, plus the
structured reply shape the model is asked to produce.
"""

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from configs.scenarios import Scenario
from .session_models import Turn


class StartGameRequest(BaseModel):
    scenario: Scenario


class StartGameResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    game_id: UUID = Field(alias="gameId")
    messages: List[Turn]


class ChatRequest(BaseModel):
    name: str
    content: str


class BotReply(BaseModel):
    """
    JSON object the model must emit for every turn:

        {"name": ..., "expression": ..., "dialogue": ..., "endMessage": ...}

    All fields are nullable; unknown keys are ignored.
    """
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    expression: Optional[str] = None
    dialogue: Optional[str] = None
    end_message: Optional[str] = Field(default=None, alias="endMessage")
