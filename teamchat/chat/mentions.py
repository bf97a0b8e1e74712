"""Participant lookup for @-mention autocomplete."""

import logging
import re
from typing import Iterable, List, Optional, Tuple

from teamchat.core.errors import InvalidInput

from .models import Participant


logger = logging.getLogger("teamchat.chat.mentions")

# Highlighting only: a mention renders as the trigger plus one word
MENTION_HIGHLIGHT_PATTERN = re.compile(r"(@\w+)")


class MentionIndex:
    """Addressable participants of one conversation.

    Search results keep the order the directory returned the participants
    in; they are not ranked.
    """

    def __init__(self, participants: Optional[Iterable[Participant]] = None):
        self._participants: Tuple[Participant, ...] = tuple(participants or ())

    @property
    def participants(self) -> Tuple[Participant, ...]:
        return self._participants

    def replace(self, participants: Iterable[Participant]) -> None:
        """Swap in a refreshed participant list."""
        self._participants = tuple(participants)
        logger.debug("Mention index refreshed: participants=%d", len(self._participants))

    def search(self, prefix: Optional[str]) -> List[Participant]:
        """
        Case-insensitive substring match against display names.

        An empty prefix returns everyone; a missing one is an error.
        """
        if prefix is None:
            raise InvalidInput("search() requires a prefix")
        needle = prefix.casefold()
        if not needle:
            return list(self._participants)
        return [p for p in self._participants if needle in p.display_name.casefold()]

    def __len__(self) -> int:
        return len(self._participants)


def split_mentions(text: str) -> List[Tuple[str, bool]]:
    """Split message text into ``(segment, is_mention)`` pairs for rendering."""
    return [
        (part, part.startswith("@"))
        for part in MENTION_HIGHLIGHT_PATTERN.split(text)
        if part
    ]
