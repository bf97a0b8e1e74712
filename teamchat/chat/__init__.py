"""Mention-aware chat composer and real-time message stream."""

from .models import ConversationHandle, DraftMessage, Message, OutgoingMessage, Participant, SessionState
from .mentions import MentionIndex, split_mentions
from .composer import MessageComposer
from .stream import MessageStream
from .directory import ParticipantDirectory, StaticParticipantDirectory
from .transport import (
    BackfillReceived,
    ChannelHub,
    InMemoryTransport,
    MentionNotice,
    MessagePushed,
    SubscribeFailed,
    Transport,
)
from .sessions import ChatSession

__all__ = [
    "ConversationHandle",
    "DraftMessage",
    "Message",
    "OutgoingMessage",
    "Participant",
    "SessionState",
    "MentionIndex",
    "split_mentions",
    "MessageComposer",
    "MessageStream",
    "ParticipantDirectory",
    "StaticParticipantDirectory",
    "BackfillReceived",
    "ChannelHub",
    "InMemoryTransport",
    "MentionNotice",
    "MessagePushed",
    "SubscribeFailed",
    "Transport",
    "ChatSession",
]
