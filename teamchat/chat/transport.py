"""Publish/subscribe transport contract and an in-process implementation."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Tuple, Union

from teamchat.core.errors import TransportError

from .models import Message, OutgoingMessage, Participant


logger = logging.getLogger("teamchat.chat.transport")


@dataclass(frozen=True)
class BackfillReceived:
    """Initial history, delivered once per subscribe."""

    conversation_id: str
    messages: Tuple[Message, ...]


@dataclass(frozen=True)
class MessagePushed:
    conversation_id: str
    message: Message


@dataclass(frozen=True)
class MentionNotice:
    """Advisory 'you were mentioned' notice; not part of the stream."""

    conversation_id: str
    text: str


@dataclass(frozen=True)
class SubscribeFailed:
    conversation_id: str
    reason: str = ""


TransportEvent = Union[BackfillReceived, MessagePushed, MentionNotice, SubscribeFailed]
EventListener = Callable[[TransportEvent], None]


class Transport(Protocol):
    """Channel keyed by conversation id.

    Events for one subscription are handed to ``listener`` in the order the
    transport observed them, backfill first.
    """

    async def subscribe(self, conversation_id: str, participant_id: str, listener: EventListener) -> None:
        ...

    async def unsubscribe(self, conversation_id: str, listener: EventListener) -> None:
        ...

    async def send_message(self, outgoing: OutgoingMessage) -> None:
        ...


class ChannelHub:
    """In-process message backend keeping history and fanning out events.

    Deliveries are scheduled on the running loop rather than called inline,
    so a subscriber never sees an event from inside its own subscribe call.
    """

    def __init__(self):
        # conversation_id -> [(participant_id, listener), ...]
        self.active_listeners: Dict[str, List[Tuple[str, EventListener]]] = {}
        # conversation_id -> messages in publish order
        self.history: Dict[str, List[Message]] = {}
        self.participants: Dict[str, Participant] = {}

    def register_participants(self, participants: Iterable[Participant]) -> None:
        for participant in participants:
            self.participants[participant.id] = participant

    def connect(self, conversation_id: str, participant_id: str, listener: EventListener) -> None:
        """Register a listener and queue its backfill."""
        self.active_listeners.setdefault(conversation_id, []).append((participant_id, listener))
        backlog = tuple(self.history.get(conversation_id, ()))
        self._deliver(listener, BackfillReceived(conversation_id=conversation_id, messages=backlog))

        logger.info(
            "Listener connected: conversation_id=%s, participant_id=%s, total_listeners=%d",
            conversation_id,
            participant_id,
            len(self.active_listeners[conversation_id]),
        )

    def disconnect(self, conversation_id: str, listener: EventListener) -> None:
        entries = self.active_listeners.get(conversation_id)
        if not entries:
            return

        remaining = [(pid, fn) for pid, fn in entries if fn is not listener]
        if remaining:
            self.active_listeners[conversation_id] = remaining
        else:
            del self.active_listeners[conversation_id]

        logger.info("Listener disconnected: conversation_id=%s", conversation_id)

    def publish(self, outgoing: OutgoingMessage) -> Message:
        """Store a message, push it to the conversation and notify mentions."""
        author = self.participants.get(outgoing.author_id)
        message = Message(
            id=uuid.uuid4().hex,
            author_id=outgoing.author_id,
            author_display_name=author.display_name if author else outgoing.author_id,
            text=outgoing.text,
            created_at=datetime.now(timezone.utc),
            mentions=frozenset(outgoing.mentions),
        )
        self.history.setdefault(outgoing.conversation_id, []).append(message)

        self.broadcast_to_conversation(
            outgoing.conversation_id,
            MessagePushed(conversation_id=outgoing.conversation_id, message=message),
        )

        for participant_id in sorted(message.mentions):
            self.send_to_participant(
                outgoing.conversation_id,
                participant_id,
                MentionNotice(
                    conversation_id=outgoing.conversation_id,
                    text=f"{message.author_display_name} mentioned you",
                ),
            )
        return message

    def broadcast_to_conversation(self, conversation_id: str, event: TransportEvent) -> int:
        """
        Push an event to every listener of a conversation.

        Returns:
            Number of listeners the event was scheduled for
        """
        entries = list(self.active_listeners.get(conversation_id, ()))
        for _, listener in entries:
            self._deliver(listener, event)
        return len(entries)

    def send_to_participant(self, conversation_id: str, participant_id: str, event: TransportEvent) -> int:
        entries = [fn for pid, fn in self.active_listeners.get(conversation_id, ()) if pid == participant_id]
        for listener in entries:
            self._deliver(listener, event)
        return len(entries)

    def get_conversation_listener_count(self, conversation_id: str) -> int:
        return len(self.active_listeners.get(conversation_id, ()))

    def _deliver(self, listener: EventListener, event: TransportEvent) -> None:
        asyncio.get_running_loop().call_soon(self._invoke, listener, event)

    @staticmethod
    def _invoke(listener: EventListener, event: TransportEvent) -> None:
        try:
            listener(event)
        except Exception as e:
            logger.error(
                "Listener failed handling %s for conversation %s: %s",
                type(event).__name__,
                event.conversation_id,
                e,
                exc_info=True,
            )


class InMemoryTransport:
    """Transport bound to a ChannelHub in the same process."""

    def __init__(self, hub: Optional[ChannelHub] = None):
        self.hub = hub or ChannelHub()
        self.closed = False

    async def subscribe(self, conversation_id: str, participant_id: str, listener: EventListener) -> None:
        self._ensure_open()
        self.hub.connect(conversation_id, participant_id, listener)

    async def unsubscribe(self, conversation_id: str, listener: EventListener) -> None:
        self.hub.disconnect(conversation_id, listener)

    async def send_message(self, outgoing: OutgoingMessage) -> None:
        self._ensure_open()
        self.hub.publish(outgoing)

    async def close(self) -> None:
        self.closed = True

    def _ensure_open(self) -> None:
        if self.closed:
            raise TransportError("In-memory transport is closed")
