"""Ordered, id-deduplicated message log for one conversation."""

import bisect
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Tuple

from .models import Message


logger = logging.getLogger("teamchat.chat.stream")


class MessageStream:
    """
    Messages ordered by ``created_at`` ascending, ties kept in arrival order.

    Ids are authoritative: once an id is stored its entry is never replaced
    by a later push.
    """

    def __init__(self):
        self._messages: List[Message] = []
        # created_at of each entry in _messages, kept in step for bisect
        self._keys: List[datetime] = []
        self._by_id: Dict[str, Message] = {}

    def load_backfill(self, messages: Iterable[Message]) -> None:
        """Replace the whole log with a backfill batch."""
        latest: Dict[str, Message] = {}
        for message in messages:
            # Last occurrence of a duplicated id wins, at its own position
            latest.pop(message.id, None)
            latest[message.id] = message

        ordered = sorted(latest.values(), key=lambda m: m.created_at)
        self._messages = ordered
        self._keys = [m.created_at for m in ordered]
        self._by_id = dict(latest)

        logger.debug("Backfill loaded: messages=%d", len(ordered))

    def append(self, message: Message) -> bool:
        """
        Insert a pushed message in sorted position.

        Returns:
            False when a message with the same id is already stored.
        """
        if message.id in self._by_id:
            logger.debug("Duplicate message ignored: message_id=%s", message.id)
            return False

        index = bisect.bisect_right(self._keys, message.created_at)
        self._messages.insert(index, message)
        self._keys.insert(index, message.created_at)
        self._by_id[message.id] = message
        return True

    def current_view(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def get(self, message_id: str) -> Message | None:
        return self._by_id.get(message_id)

    def clear(self) -> None:
        self._messages = []
        self._keys = []
        self._by_id = {}

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._by_id
