"""
Session-related models for the plakait runtime.

These describe:
- Turn entries, a tagged variant of UserTurn / BotTurn
- MessageHistory, the append-only log of turns for one session
- a minimal Session object
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from configs.scenarios import Scenario


# Speaker shown to the model when a user turn carries no name (the seed turn).
DEFAULT_SPEAKER = "Admin"


class UserTurn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["User"] = "User"
    speaker_name: Optional[str] = Field(default=None, alias="name")
    text: str = Field(alias="content")


class BotTurn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["Bot"] = "Bot"
    persona_name: str = Field(alias="name")
    expression: Optional[str] = None
    text: Optional[str] = Field(default=None, alias="content")
    end_message: Optional[str] = Field(default=None, alias="endMessage")

    @property
    def is_final(self) -> bool:
        """True once the model has narrated an ending for the game."""
        return bool(self.end_message)


Turn = Annotated[Union[UserTurn, BotTurn], Field(discriminator="type")]


class MessageHistory(BaseModel):
    """Ordered, append-only log of turns.

    Index 0 is the seed turn carrying the scenario prompt; it is sent to the
    model but never shown to callers.
    """

    turns: List[Turn] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.turns)

    def append(self, turn: Turn) -> None:
        self.turns.append(turn)

    def visible_slice(self) -> List[Turn]:
        return list(self.turns[1:])

    def snapshot(self) -> "MessageHistory":
        return MessageHistory(turns=list(self.turns))

    def to_wire_sequence(self) -> List[Dict[str, str]]:
        """Map every turn to the provider's role/content message shape.

        Bot turns are replayed as the exact JSON object the model is asked
        to produce, so it keeps answering in that shape.
        """
        wire: List[Dict[str, str]] = []
        for turn in self.turns:
            match turn:
                case UserTurn(speaker_name=speaker, text=text):
                    wire.append(
                        {
                            "role": "user",
                            "content": f"{speaker or DEFAULT_SPEAKER}: {text}",
                        }
                    )
                case BotTurn():
                    content = json.dumps(
                        {
                            "name": turn.persona_name,
                            "expression": turn.expression,
                            "dialogue": turn.text,
                            "endMessage": turn.end_message,
                        },
                        ensure_ascii=False,
                    )
                    wire.append({"role": "assistant", "content": content})
                case _:
                    raise TypeError(f"Unknown turn variant: {turn!r}")
        return wire


class Session(BaseModel):
    session_id: str
    scenario: Scenario
    history: MessageHistory
    created_at: datetime

    @property
    def is_finished(self) -> bool:
        """True if any bot turn carried an end message.

        Informational only; further turns are still accepted.
        """
        return any(
            turn.type == "Bot" and turn.is_final for turn in self.history.turns
        )
