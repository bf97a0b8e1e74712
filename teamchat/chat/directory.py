"""Participant directory contract."""

from typing import Dict, Iterable, List, Optional, Protocol

from .models import Participant


class ParticipantDirectory(Protocol):
    async def list_participants(self, conversation_id: str) -> List[Participant]:
        ...


class StaticParticipantDirectory:
    """Directory backed by fixed lists, one per conversation."""

    def __init__(
        self,
        by_conversation: Optional[Dict[str, Iterable[Participant]]] = None,
        default: Optional[Iterable[Participant]] = None,
    ):
        self.by_conversation = {key: list(value) for key, value in (by_conversation or {}).items()}
        self.default = list(default or [])

    async def list_participants(self, conversation_id: str) -> List[Participant]:
        return list(self.by_conversation.get(conversation_id, self.default))
