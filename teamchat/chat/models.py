"""Chat entities shared by the composer, stream and session."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import FrozenSet


@dataclass(frozen=True)
class Participant:
    """Addressable member of a conversation."""

    id: str
    display_name: str


@dataclass(frozen=True)
class Message:
    """Backend-assigned chat message. Never mutated after validation."""

    id: str
    author_id: str
    author_display_name: str
    text: str
    created_at: datetime
    mentions: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class DraftMessage:
    """Composer text plus the participant ids it mentions."""

    text: str
    resolved_mentions: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class OutgoingMessage:
    """What a session hands to the transport on send."""

    conversation_id: str
    text: str
    author_id: str
    mentions: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class ConversationHandle:
    """Identifies one subscription; a fresh token is minted per open()."""

    conversation_id: str
    token: str = field(default_factory=lambda: uuid.uuid4().hex)


class SessionState(str, Enum):
    IDLE = "idle"
    SUBSCRIBING = "subscribing"
    ACTIVE = "active"
    CLOSING = "closing"
