"""Draft buffer with @-mention trigger detection."""

import logging
from typing import List, Optional

from teamchat.core.config import settings
from teamchat.core.errors import EmptyMessage

from .mentions import MentionIndex
from .models import DraftMessage, Participant


logger = logging.getLogger("teamchat.chat.composer")


class MessageComposer:
    """Owns the draft text until it is submitted.

    The caret is assumed to sit at the end of the text. A trigger is active
    when the last trigger character in the buffer has no whitespace between
    it and the end; the text after it is the search prefix.
    """

    def __init__(self, mention_index: MentionIndex, trigger: Optional[str] = None):
        self.mention_index = mention_index
        self.trigger = trigger or settings.MENTION_TRIGGER
        self.buffer_text: str = ""
        self.trigger_active: bool = False
        self.trigger_start: Optional[int] = None

    @property
    def active_prefix(self) -> Optional[str]:
        """Text typed after the active trigger, or None."""
        if not self.trigger_active or self.trigger_start is None:
            return None
        return self.buffer_text[self.trigger_start + len(self.trigger):]

    def on_text_changed(self, new_text: str) -> None:
        self.buffer_text = new_text
        self._reset_trigger()

        start = new_text.rfind(self.trigger)
        if start == -1:
            return
        after = new_text[start + len(self.trigger):]
        if any(ch.isspace() for ch in after):
            return
        self.trigger_active = True
        self.trigger_start = start

    def suggestions(self) -> List[Participant]:
        """Participants matching the active prefix; empty when no trigger."""
        prefix = self.active_prefix
        if prefix is None:
            return []
        return self.mention_index.search(prefix)

    def on_mention_selected(self, participant: Participant) -> None:
        # Selecting without an active trigger is a caller bug, not an error
        if not self.trigger_active or self.trigger_start is None:
            logger.debug("Mention selected with no active trigger: participant_id=%s", participant.id)
            return
        self.buffer_text = (
            self.buffer_text[: self.trigger_start] + self.trigger + participant.display_name + " "
        )
        self._reset_trigger()

    def finalize(self) -> DraftMessage:
        """Build the draft to send. The buffer is left untouched."""
        if not self.buffer_text.strip():
            raise EmptyMessage("Cannot finalize a blank message")

        # Plain substring match on the rendered name, so "@Bob" also
        # resolves inside "@Bobby"
        resolved = frozenset(
            p.id
            for p in self.mention_index.participants
            if self.trigger + p.display_name in self.buffer_text
        )
        return DraftMessage(text=self.buffer_text, resolved_mentions=resolved)

    def clear(self) -> None:
        self.buffer_text = ""
        self._reset_trigger()

    def _reset_trigger(self) -> None:
        self.trigger_active = False
        self.trigger_start = None
