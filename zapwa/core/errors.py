"""
Domain errors. Raised by services, mapped to HTTP responses in the app factory.

Failures inside a chat turn that the model can recover from (bad tool
arguments, unknown products, missing order details) are NOT exceptions.
They travel back to the model as tool-result text.
"""


class ZapError(Exception):
    """Base class for errors that cross the service boundary."""

    status_code = 500
    public_message = "Something went wrong. Please try again."

    def __init__(self, message: str = ""):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class NotFoundError(ZapError):
    status_code = 404
    public_message = "Resource not found."


class ConflictError(ZapError):
    status_code = 400
    public_message = "The request conflicts with the current state."


class SessionPersistenceError(ZapError):
    """The chat session row could not be written. Treated as an outage."""

    status_code = 500
    public_message = "Failed to create a new chat session. Please try again."


class LLMProviderError(ZapError):
    """The language-model call failed or timed out. Fatal for the turn."""

    status_code = 502
    public_message = "The AI service is temporarily unavailable. Please try again in a moment."


class TurnInProgressError(ZapError):
    """Another message for the same session still holds the turn lock."""

    status_code = 409
    public_message = "A previous message is still being processed. Please try again shortly."
