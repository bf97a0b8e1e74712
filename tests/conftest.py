"""
Shared fixtures for chat client tests
"""

from datetime import datetime, timezone
from typing import List, Optional

import pytest

from teamchat.chat.models import Message, OutgoingMessage, Participant
from teamchat.chat.transport import EventListener, TransportEvent


def make_message(message_id: str, created_at: float, author_id: str = "u1", text: str = "hi") -> Message:
    """Build a message whose created_at is an epoch offset in seconds"""
    return Message(
        id=message_id,
        author_id=author_id,
        author_display_name=f"User {author_id}",
        text=text,
        created_at=datetime.fromtimestamp(created_at, tz=timezone.utc),
    )


class ScriptedTransport:
    """Transport double: records calls and lets tests fire events by hand"""

    def __init__(self):
        self.listeners: List[tuple] = []
        self.unsubscribed: List[tuple] = []
        self.sent: List[OutgoingMessage] = []
        self.subscribe_error: Optional[Exception] = None
        self.send_error: Optional[Exception] = None

    async def subscribe(self, conversation_id: str, participant_id: str, listener: EventListener) -> None:
        if self.subscribe_error is not None:
            raise self.subscribe_error
        self.listeners.append((conversation_id, participant_id, listener))

    async def unsubscribe(self, conversation_id: str, listener: EventListener) -> None:
        self.unsubscribed.append((conversation_id, listener))

    async def send_message(self, outgoing: OutgoingMessage) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(outgoing)

    def fire(self, event: TransportEvent, index: int = -1) -> None:
        """Deliver an event to the listener registered at ``index``"""
        _, _, listener = self.listeners[index]
        listener(event)


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def participants() -> List[Participant]:
    return [
        Participant(id="1", display_name="Sarah Johnson"),
        Participant(id="2", display_name="Mike Chen"),
        Participant(id="3", display_name="Bob"),
        Participant(id="4", display_name="Bobby"),
    ]
