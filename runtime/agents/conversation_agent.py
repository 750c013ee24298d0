"""ConversationAgent implementation.

Responsible for:
- starting a game: creating the session and fetching the persona's
  opening line
- advancing a game by one turn: appending the user's message, asking the
  model for the persona's reply, appending that reply
- returning the transcript callers are allowed to see

Every turn runs with the session's exclusive lock held, including the
outbound completion call, so two turns on the same session never
interleave.
"""

import asyncio
import logging
from typing import Any, Coroutine, List, Set, Tuple

from configs.scenarios import Scenario, get_scenario_data
from core.completion.resilient_completion import ResilientCompletion
from exceptions.exceptions import InvalidTurnTypeException
from ..models.api_models import BotReply
from ..models.session_models import BotTurn, Session, Turn, UserTurn
from ..store.session_store import SessionStore


logger = logging.getLogger(__name__)


class ConversationAgent:
    """Conversation logic for plakait.

    Parameters
    ----------
    session_store:
        Store owning every Session and its locks.
    completion:
        Retry-and-repair layer used to obtain structured persona replies.
    """

    def __init__(self, session_store: SessionStore, completion: ResilientCompletion):
        self.session_store = session_store
        self.completion = completion
        # Strong references to in-flight turns; asyncio only keeps weak ones.
        self._turn_tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Public API used by the HTTP routes / CLI
    # ------------------------------------------------------------------

    async def start_game(self, scenario: Scenario) -> Tuple[str, List[Turn]]:
        """Create a session and return its id with the persona's opening turn.

        If the opening completion fails the session still exists, holding
        only its seed turn, and the error propagates. Like a regular turn,
        the opening runs shielded from caller cancellation.
        """
        session = await self.session_store.create(scenario)
        session_id = session.session_id

        visible = await self._run_shielded(self._locked_opening(session_id))

        logger.debug("[AGENT] started %s game %s", scenario.value, session_id)
        return session_id, visible

    async def handle_user_message(
        self, session_id: str, name: str, content: str
    ) -> List[Turn]:
        """Submit one user message to an existing session.

        The locked turn runs as its own task and is shielded, so a caller
        that goes away mid-turn does not abort the completion; the turn is
        still recorded.
        """
        incoming = UserTurn(speaker_name=name, text=content)
        logger.debug("[AGENT] %s - %s: %s", session_id, name, content)
        return await self._run_shielded(self._locked_turn(session_id, incoming))

    async def get_history(self, session_id: str) -> List[Turn]:
        history = await self.session_store.get_readonly(session_id)
        return history.visible_slice()

    async def session_count(self) -> int:
        return await self.session_store.count()

    # ------------------------------------------------------------------
    # Turn handling
    # ------------------------------------------------------------------

    async def advance_turn(self, session: Session, incoming: Turn) -> List[Turn]:
        """Run one full turn on a session whose lock the caller holds.

        The user turn is appended before the completion is requested and is
        kept even if the completion fails.
        """
        match incoming:
            case UserTurn():
                session.history.append(incoming)
            case _:
                raise InvalidTurnTypeException(incoming)

        await self._append_bot_reply(session)
        return session.history.visible_slice()

    async def _run_shielded(self, coro: Coroutine[Any, Any, List[Turn]]) -> List[Turn]:
        task = asyncio.ensure_future(coro)
        self._turn_tasks.add(task)
        task.add_done_callback(self._turn_done)
        return await asyncio.shield(task)

    def _turn_done(self, task: asyncio.Task) -> None:
        self._turn_tasks.discard(task)
        # Retrieve the outcome so turns whose caller left don't warn on GC.
        if not task.cancelled() and task.exception() is not None:
            logger.debug("[AGENT] turn task failed: %r", task.exception())

    async def _locked_opening(self, session_id: str) -> List[Turn]:
        async with self.session_store.get_for_mutation(session_id) as session:
            await self._append_bot_reply(session)
            return session.history.visible_slice()

    async def _locked_turn(self, session_id: str, incoming: Turn) -> List[Turn]:
        async with self.session_store.get_for_mutation(session_id) as session:
            return await self.advance_turn(session, incoming)

    async def _append_bot_reply(self, session: Session) -> BotTurn:
        # The persona name comes from configuration, not from the model.
        bot_name = get_scenario_data(session.scenario).bot_name
        wire_messages = session.history.to_wire_sequence()

        reply = await self.completion.complete_as(wire_messages, BotReply)

        bot_turn = BotTurn(
            persona_name=bot_name,
            expression=reply.expression,
            text=reply.dialogue,
            end_message=reply.end_message,
        )
        session.history.append(bot_turn)

        logger.debug("[AGENT] %s reply: %r", session.session_id, reply.dialogue)
        if bot_turn.is_final:
            logger.info(
                "[AGENT] session %s reached an ending: %r",
                session.session_id,
                bot_turn.end_message,
            )
        return bot_turn
