"""
Custom exceptions for the plakait conversation engine.

These exceptions are intentionally simple and descriptive.
They are used across:

  - core/api/          (LLM transport)
  - core/completion/   (retry loop)
  - runtime/           (session store, conversation agent, HTTP routes)

Placing them at the project root (exceptions/) avoids circular imports and
keeps exception types consistent across modules.
"""

from typing import Optional


class PlakaitException(Exception):
    """Base class for every error raised by the engine."""


class SessionNotFoundException(PlakaitException):
    """
    Raised when a session id is unknown to the SessionStore, either because
    it was never created or because the expiry sweep removed it.

    Surfaced to HTTP callers as a 404; never retried.
    """

    def __init__(self, session_id):
        self.session_id = session_id
        super().__init__(f"Game not found: {session_id}")


class InvalidTurnTypeException(PlakaitException):
    """
    Raised when something other than a user turn is submitted for completion.

    Only the engine constructs turns, so this indicates a defect rather than
    bad client input.
    """

    def __init__(self, turn):
        self.turn = turn
        super().__init__(f"Invalid message type: {type(turn).__name__}")


class TransportException(PlakaitException):
    """
    Raised when the completion endpoint could not be reached or answered
    with a non-success status.
    """


class DecodeException(PlakaitException):
    """
    Raised when the completion endpoint answered but the body is not a
    usable provider envelope (e.g. invalid JSON, no choices).
    """


class ExhaustedRetriesException(PlakaitException):
    """
    Raised when every completion attempt failed to produce a parseable reply.

    Carries the last error and the last raw model content for server-side
    logging. Neither is meant to reach the client.
    """

    def __init__(
        self,
        attempts: int,
        last_error: Optional[BaseException] = None,
        last_content: Optional[str] = None,
    ):
        self.attempts = attempts
        self.last_error = last_error
        self.last_content = last_content
        msg = f"Failed to get valid response from OpenAI after {attempts} attempt(s)"
        if last_error is not None:
            msg += f"\nLast error: {last_error!r}"
        if last_content is not None:
            msg += f"\nLast content: {last_content!r}"
        super().__init__(msg)
