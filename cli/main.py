#!/usr/bin/env python3
"""
plakait CLI

Commands:

1) serve
   - Run the HTTP server (runtime.api.server:app) with uvicorn.
     Host and port default to the environment's values
     (dev: 127.0.0.1:7878, prod: 0.0.0.0:3000).

2) scenarios
   - List the available scenario ids and their persona names.

3) play
   - Play a scenario in the terminal, through the same ConversationAgent
     the server uses. Type "quit" (or send EOF) to stop.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import List

# Ensure project root is on sys.path when running as a script
ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from configs.logging_config import setup_logging
from configs.scenarios import PROMPT_DATA, Scenario
from configs.settings import settings


QUIT_WORDS = ("quit", "exit")


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


def cmd_serve(host: str, port: int, reload: bool) -> None:
    """Start the HTTP server."""
    import uvicorn

    uvicorn.run("runtime.api.server:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# scenarios
# ---------------------------------------------------------------------------


def cmd_scenarios() -> None:
    for scenario, data in PROMPT_DATA.items():
        print(f"{scenario.value:<12} {data.bot_name}")


# ---------------------------------------------------------------------------
# play
# ---------------------------------------------------------------------------


def _print_turns(turns: List) -> None:
    for turn in turns:
        match turn.type:
            case "User":
                print(f"{turn.speaker_name}: {turn.text}")
            case "Bot":
                face = f" {turn.expression}" if turn.expression else ""
                print(f"{turn.persona_name}{face}: {turn.text or ''}")
                if turn.end_message:
                    print(f"\n*** {turn.end_message} ***")


async def _play(scenario: Scenario, name: str) -> None:
    from core.api.openai_client import LLMClient
    from core.completion.resilient_completion import ResilientCompletion
    from runtime.agents.conversation_agent import ConversationAgent
    from runtime.store.session_store import SessionStore

    agent = ConversationAgent(
        session_store=SessionStore(),
        completion=ResilientCompletion(LLMClient()),
    )

    session_id, opening = await agent.start_game(scenario)
    _print_turns(opening)

    while True:
        try:
            line = await asyncio.to_thread(input, f"{name}> ")
        except EOFError:
            break
        line = line.strip()
        if not line:
            continue
        if line.lower() in QUIT_WORDS:
            break

        history = await agent.handle_user_message(session_id, name, line)
        # Only the persona's answer is new; the user's line is already on screen.
        _print_turns(history[-1:])


def cmd_play(scenario: Scenario, name: str) -> None:
    asyncio.run(_play(scenario, name))


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="plakait CLI")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: DEBUG in dev, INFO in prod)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # serve
    p_serve = subparsers.add_parser("serve", help="Run the HTTP server")
    p_serve.add_argument("--host", default=settings.host)
    p_serve.add_argument("--port", type=int, default=settings.port)
    p_serve.add_argument(
        "--reload", action="store_true", help="Reload on code changes (dev only)"
    )

    # scenarios
    subparsers.add_parser("scenarios", help="List available scenarios")

    # play
    p_play = subparsers.add_parser("play", help="Play a scenario in the terminal")
    p_play.add_argument(
        "scenario",
        type=Scenario,
        choices=list(Scenario),
        metavar="scenario",
        help="Scenario id, one of: " + ", ".join(s.value for s in Scenario),
    )
    p_play.add_argument("--name", default="John", help="Your speaker name")

    return parser


def main(argv: List[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    command: str = args.command

    if command == "serve":
        if args.log_level:
            # Picked up by setup_logging when the server module is imported.
            os.environ["PLAKAIT_LOG_LEVEL"] = args.log_level
        cmd_serve(host=args.host, port=args.port, reload=args.reload)
    elif command == "scenarios":
        cmd_scenarios()
    elif command == "play":
        setup_logging(settings.environment, level=args.log_level or "WARNING")
        cmd_play(scenario=args.scenario, name=args.name)
    else:
        parser.error(f"Unknown command: {command}")


if __name__ == "__main__":
    main()
