"""
core.api.openai_client

Thin wrapper around the OpenAI Chat Completions API for plakait.

Used by:
  - core/completion/resilient_completion.py

One call to `LLMClient.complete` is exactly one request to the provider.
The SDK's built-in retries are disabled; retrying is the caller's job.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from openai import APIError, APIResponseValidationError, AsyncOpenAI, OpenAIError
from openai.types.chat import ChatCompletion

from configs.settings import settings
from exceptions.exceptions import DecodeException, TransportException


logger = logging.getLogger(__name__)

WireMessage = Dict[str, str]

# Constrains the model to emit a single JSON object as its message content.
JSON_OBJECT_FORMAT = {"type": "json_object"}


# -------------------------------------------------------------------
# Client factory
# -------------------------------------------------------------------


def build_openai_client() -> AsyncOpenAI:
    """Create the shared async client from central settings."""
    return AsyncOpenAI(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        timeout=settings.request_timeout,
        max_retries=0,
    )


# -------------------------------------------------------------------
# Public client
# -------------------------------------------------------------------


class LLMClient:
    """Issues single chat-completion requests with a fixed request policy.

    Parameters
    ----------
    client:
        An `AsyncOpenAI` instance. Built from settings when omitted.
    model, max_tokens, temperature:
        Request policy; default to the values in `configs.settings`.
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        *,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> None:
        self._client = client if client is not None else build_openai_client()
        self.model = model or settings.openai_model
        self.max_tokens = max_tokens if max_tokens is not None else settings.max_tokens
        self.temperature = (
            temperature if temperature is not None else settings.temperature
        )

    async def complete(self, wire_messages: List[WireMessage]) -> ChatCompletion:
        """
        Send one completion request and return the provider envelope.

        Raises
        ------
        TransportException
            Connection failure, timeout or non-success status.
        DecodeException
            The body is not a valid provider envelope.
        """
        try:
            completion = await self._client.chat.completions.create(
                model=self.model,
                messages=wire_messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                response_format=JSON_OBJECT_FORMAT,
            )
        except APIResponseValidationError as e:
            raise DecodeException(f"Malformed response envelope: {e}") from e
        except APIError as e:
            raise TransportException(f"Completion request failed: {e}") from e
        except OpenAIError as e:
            raise TransportException(f"OpenAI client error: {e}") from e

        if not getattr(completion, "choices", None):
            raise DecodeException("Empty response from OpenAI API.")

        logger.debug(
            "completion id=%s finish_reason=%s",
            getattr(completion, "id", None),
            completion.choices[0].finish_reason,
        )
        return completion
