"""
core.completion.resilient_completion

Retry-and-repair layer between the conversation engine and the raw LLM
transport.

The endpoint is unreliable in two independent ways:

- transport failures (connection errors, 5xx, timeouts, broken envelopes)
- 200 OK replies whose content is not the JSON object we asked for
  (prose around the object, truncated JSON, Markdown code fences)

Both are treated the same: the attempt is logged and the next one is made,
under a single attempt budget and a cap on total elapsed time.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from configs.settings import settings
from core.api.openai_client import LLMClient, WireMessage
from exceptions.exceptions import (
    DecodeException,
    ExhaustedRetriesException,
    TransportException,
)


logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


# -------------------------------------------------------------------
# Internal helpers
# -------------------------------------------------------------------


def _extract_json_from_text(text: str) -> str:
    """
    Normalize model text output into a raw JSON string.

    Removes Markdown ```json / ``` fences wherever they appear and trims any
    prose outside the outermost {...} block.
    """
    text = text.replace("```json", "").replace("```", "").strip()

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start : end + 1]

    return text


def _first_choice_content(response: Any) -> Optional[str]:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return None
    message = getattr(choices[0], "message", None)
    return getattr(message, "content", None)


# -------------------------------------------------------------------
# Public class
# -------------------------------------------------------------------


class ResilientCompletion:
    """Bounded retry loop around `LLMClient.complete` with typed parsing.

    Parameters
    ----------
    llm_client:
        Anything exposing `async complete(wire_messages)`.
    max_attempts:
        Default attempt budget per call (RETRY_COUNT unless configured).
    backoff_base, backoff_max:
        Exponential backoff between failed attempts, in seconds. The delay
        before attempt n+1 is min(backoff_base * 2**(n-1), backoff_max).
    max_elapsed:
        Upper bound on total time spent in one call, in seconds. No new
        attempt is started once it would be exceeded.
    sleep:
        Coroutine used to wait between attempts (`asyncio.sleep`).
    """

    def __init__(
        self,
        llm_client: LLMClient,
        *,
        max_attempts: Optional[int] = None,
        backoff_base: Optional[float] = None,
        backoff_max: Optional[float] = None,
        max_elapsed: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.llm_client = llm_client
        self.max_attempts = max_attempts if max_attempts is not None else settings.retry_count
        self.backoff_base = backoff_base if backoff_base is not None else settings.backoff_base
        self.backoff_max = backoff_max if backoff_max is not None else settings.backoff_max
        self.max_elapsed = max_elapsed if max_elapsed is not None else settings.max_elapsed
        self._sleep = sleep

    def _backoff_delay(self, attempt: int) -> float:
        return min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_max)

    async def complete_as(
        self,
        wire_messages: List[WireMessage],
        model_type: Type[T],
        max_attempts: Optional[int] = None,
    ) -> T:
        """
        Request a completion and parse its content into `model_type`.

        Returns on the first attempt whose content validates. Raises
        ExhaustedRetriesException once the attempt budget or the elapsed-time
        cap runs out.
        """
        budget = max_attempts if max_attempts is not None else self.max_attempts
        if budget < 1:
            raise ValueError("max_attempts must be at least 1")

        started = time.monotonic()
        last_error: Optional[BaseException] = None
        last_content: Optional[str] = None
        attempt = 0

        while attempt < budget:
            attempt += 1

            try:
                response = await self.llm_client.complete(wire_messages)
            except (TransportException, DecodeException) as e:
                last_error = e
                logger.warning(
                    "[COMPLETION] attempt %d/%d failed: %s", attempt, budget, e
                )
            else:
                content = _first_choice_content(response)
                last_content = content
                logger.debug("[COMPLETION] attempt %d content: %r", attempt, content)

                if content is None:
                    last_error = DecodeException("Completion carried no message content.")
                    logger.warning(
                        "[COMPLETION] attempt %d/%d returned no content", attempt, budget
                    )
                else:
                    try:
                        return model_type.model_validate_json(
                            _extract_json_from_text(content)
                        )
                    except ValidationError as e:
                        last_error = e
                        logger.warning(
                            "[COMPLETION] attempt %d/%d unparseable content %r: %s",
                            attempt,
                            budget,
                            content,
                            e,
                        )

            if attempt >= budget:
                break

            delay = self._backoff_delay(attempt)
            if time.monotonic() - started + delay > self.max_elapsed:
                logger.warning(
                    "[COMPLETION] giving up after %d attempt(s): %.1fs elapsed limit reached",
                    attempt,
                    self.max_elapsed,
                )
                break
            if delay > 0:
                await self._sleep(delay)

        logger.error(
            "[COMPLETION] no usable reply after %d attempt(s); last error=%r last content=%r",
            attempt,
            last_error,
            last_content,
        )
        raise ExhaustedRetriesException(attempt, last_error, last_content)
