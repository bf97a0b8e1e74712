"""Exceptions raised by the chat client core."""

from typing import Any, Optional

from . import messages


class ChatError(Exception):
    """Base class for chat client errors.

    ``user_message`` is safe to show in the UI; ``str(exc)`` may carry
    diagnostic detail.
    """

    default_message = "Chat error"

    def __init__(self, detail: Optional[str] = None, user_message: Optional[str] = None):
        self.detail = detail or self.default_message
        self.user_message = user_message or self.default_message
        super().__init__(self.detail)


class InvalidInput(ChatError):
    default_message = messages.MENTION_PREFIX_REQUIRED


class EmptyMessage(ChatError):
    default_message = messages.COMPOSER_EMPTY_MESSAGE


class SessionStateError(ChatError):
    default_message = messages.SESSION_NOT_ACTIVE


class SubscriptionFailed(ChatError):
    default_message = messages.SESSION_SUBSCRIBE_FAILED

    def __init__(self, conversation_id: str, detail: Optional[str] = None, user_message: Optional[str] = None):
        self.conversation_id = conversation_id
        super().__init__(detail, user_message)


class SendFailed(ChatError):
    default_message = messages.SEND_FAILED


class MalformedPayload(ChatError):
    default_message = messages.PAYLOAD_MALFORMED

    def __init__(self, detail: Optional[str] = None, payload: Any = None):
        self.payload = payload
        super().__init__(detail)


class TransportError(ChatError):
    """Raised by transports when the channel refuses or fails a call."""

    default_message = messages.TRANSPORT_NOT_CONNECTED


class CredentialsError(ChatError):
    default_message = messages.CREDENTIALS_MISSING
