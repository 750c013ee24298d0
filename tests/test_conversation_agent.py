"""
Tests for ConversationAgent: turn flow, failure semantics and concurrency.
"""

import asyncio
import json

import pytest

from conftest import ScriptedLLMClient, reply_json
from configs.scenarios import Scenario
from core.completion.resilient_completion import ResilientCompletion
from exceptions.exceptions import (
    ExhaustedRetriesException,
    InvalidTurnTypeException,
    SessionNotFoundException,
)
from runtime.agents.conversation_agent import ConversationAgent
from runtime.models.session_models import BotTurn, UserTurn


def _echo(wire_messages):
    """Reply with the text of the last user message, so order is visible."""
    last = wire_messages[-1]["content"]
    return reply_json(dialogue=f"echo {last}")


def _agent(store, llm, attempts=3) -> ConversationAgent:
    completion = ResilientCompletion(
        llm, max_attempts=attempts, backoff_base=0, max_elapsed=60
    )
    return ConversationAgent(session_store=store, completion=completion)


class TestStartGame:
    async def test_returns_opening_bot_turn(self, agent, llm):
        session_id, visible = await agent.start_game(Scenario.CAR_SALE)

        assert len(visible) == 1
        opening = visible[0]
        assert isinstance(opening, BotTurn)
        assert opening.persona_name == "Nick"
        assert opening.text == "Hello there!"

        # The opening request carries the seed only.
        assert len(llm.calls) == 1
        assert llm.calls[0][0]["role"] == "user"
        assert llm.calls[0][0]["content"].startswith("Admin: ")

    async def test_failed_opening_keeps_seed_only_session(self, store):
        llm = ScriptedLLMClient(default="never json")
        agent = _agent(store, llm)

        with pytest.raises(ExhaustedRetriesException):
            await agent.start_game(Scenario.BAD_MIL)

        assert await store.count() == 1

    async def test_disconnecting_caller_does_not_abort_opening(self, store):
        llm = ScriptedLLMClient()
        llm.gate = asyncio.Event()
        agent = _agent(store, llm)

        request = asyncio.create_task(agent.start_game(Scenario.CAR_SALE))
        await llm.started.wait()

        request.cancel()
        with pytest.raises(asyncio.CancelledError):
            await request

        llm.gate.set()
        await asyncio.gather(*agent._turn_tasks)

        assert llm.in_flight == 0
        assert await store.count() == 1
        (session_id,) = list(store._slots)
        visible = await agent.get_history(session_id)
        assert len(visible) == 1
        assert isinstance(visible[0], BotTurn)


class TestAdvanceTurn:
    async def test_car_sale_scenario(self, agent, llm):
        session_id, _ = await agent.start_game(Scenario.CAR_SALE)
        llm.default = reply_json(dialogue="Looking for a car?", name="Someone Else")

        visible = await agent.handle_user_message(session_id, "John", "Hi")

        last = visible[-1]
        assert isinstance(last, BotTurn)
        assert last.persona_name == "Nick"
        assert last.text == "Looking for a car?"
        assert isinstance(visible[-2], UserTurn)
        assert visible[-2].speaker_name == "John"

    async def test_history_grows_by_two_per_turn(self, agent, store):
        session_id, _ = await agent.start_game(Scenario.CAR_SALE)

        for i in range(3):
            before = len(await store.get_readonly(session_id))
            await agent.handle_user_message(session_id, "John", f"msg {i}")
            after = len(await store.get_readonly(session_id))
            assert after - before == 2

    async def test_entire_history_is_sent(self, agent, llm):
        session_id, _ = await agent.start_game(Scenario.CAR_SALE)
        await agent.handle_user_message(session_id, "John", "Hi")
        await agent.handle_user_message(session_id, "John", "Price?")

        sent = llm.calls[-1]
        assert [m["role"] for m in sent] == [
            "user",
            "assistant",
            "user",
            "assistant",
            "user",
        ]
        assert sent[-1]["content"] == "John: Price?"
        assert json.loads(sent[1]["content"])["name"] == "Nick"

    async def test_failed_completion_keeps_user_turn_only(self, store):
        llm = ScriptedLLMClient([reply_json("Welcome")], default="garbage")
        agent = _agent(store, llm, attempts=2)
        session_id, _ = await agent.start_game(Scenario.CAR_SALE)
        before = len(await store.get_readonly(session_id))

        with pytest.raises(ExhaustedRetriesException):
            await agent.handle_user_message(session_id, "John", "Hi")

        history = await store.get_readonly(session_id)
        assert len(history) == before + 1
        assert isinstance(history.turns[-1], UserTurn)
        assert history.turns[-1].text == "Hi"

    async def test_rejects_bot_turn_as_input(self, agent, store, llm):
        session_id, _ = await agent.start_game(Scenario.CAR_SALE)
        calls_before = len(llm.calls)

        with pytest.raises(InvalidTurnTypeException):
            async with store.get_for_mutation(session_id) as session:
                await agent.advance_turn(session, BotTurn(persona_name="Nick", text="x"))

        assert len(await store.get_readonly(session_id)) == 2
        assert len(llm.calls) == calls_before

    async def test_unknown_session(self, agent):
        with pytest.raises(SessionNotFoundException):
            await agent.handle_user_message("missing", "John", "Hi")
        with pytest.raises(SessionNotFoundException):
            await agent.get_history("missing")

    async def test_turns_still_accepted_after_end_message(self, agent, llm):
        session_id, _ = await agent.start_game(Scenario.CAR_SALE)
        llm.default = reply_json(dialogue="Deal!", end_message="John bought the car.")
        visible = await agent.handle_user_message(session_id, "John", "I'll take it")
        assert visible[-1].end_message == "John bought the car."

        llm.default = reply_json(dialogue="Anything else?")
        visible = await agent.handle_user_message(session_id, "John", "Thanks")
        assert visible[-1].text == "Anything else?"

    async def test_history_matches_last_turn_result(self, agent):
        session_id, _ = await agent.start_game(Scenario.TOILET_RUN)
        visible = await agent.handle_user_message(session_id, "Tom", "Please!")

        assert await agent.get_history(session_id) == visible
        assert visible[0].persona_name == "Jared"


class TestConcurrency:
    async def test_same_session_turns_never_interleave(self, store):
        llm = ScriptedLLMClient(default=_echo, delay=0.01)
        agent = _agent(store, llm)
        session_id, _ = await agent.start_game(Scenario.CAR_SALE)

        await asyncio.gather(
            agent.handle_user_message(session_id, "John", "A"),
            agent.handle_user_message(session_id, "John", "B"),
        )

        turns = (await store.get_readonly(session_id)).visible_slice()
        assert len(turns) == 5
        kinds = [type(t).__name__ for t in turns]
        assert kinds == ["BotTurn", "UserTurn", "BotTurn", "UserTurn", "BotTurn"]
        first, second = turns[1].text, turns[3].text
        assert {first, second} == {"A", "B"}
        assert turns[2].text == f"echo John: {first}"
        assert turns[4].text == f"echo John: {second}"
        assert llm.max_in_flight == 1

    async def test_different_sessions_run_in_parallel(self, store):
        llm = ScriptedLLMClient(delay=0.02)
        agent = _agent(store, llm)
        first, _ = await agent.start_game(Scenario.CAR_SALE)
        second, _ = await agent.start_game(Scenario.BAD_MIL)

        await asyncio.gather(
            agent.handle_user_message(first, "John", "Hi"),
            agent.handle_user_message(second, "Jane", "Hi"),
        )

        assert llm.max_in_flight == 2

    async def test_disconnecting_caller_does_not_abort_turn(self, store):
        llm = ScriptedLLMClient()
        agent = _agent(store, llm)
        session_id, _ = await agent.start_game(Scenario.CAR_SALE)

        llm.started.clear()
        llm.gate = asyncio.Event()
        request = asyncio.create_task(
            agent.handle_user_message(session_id, "John", "Hi")
        )
        await llm.started.wait()

        request.cancel()
        with pytest.raises(asyncio.CancelledError):
            await request

        llm.gate.set()
        # Queues behind the still-running turn on the session lock.
        visible = await agent.get_history(session_id)
        assert len(visible) == 3
        assert isinstance(visible[-1], BotTurn)
