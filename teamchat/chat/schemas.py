"""Pydantic schemas validating transport and backend payloads.

Wire payloads use camelCase keys. Everything crossing the boundary is
validated here and converted into the entities in ``models``; anything that
does not validate raises ``MalformedPayload``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, List, Type, TypeVar

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from teamchat.core.errors import MalformedPayload

from .models import Message, OutgoingMessage, Participant


def _coerce_id(value: Any) -> Any:
    # Backends hand out numeric ids as well as strings
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


IdStr = Annotated[str, BeforeValidator(_coerce_id), Field(min_length=1)]

CONVERSATION_ID_ALIASES = AliasChoices("conversationId", "conversation_id", "projectId")


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class ParticipantSchema(WireModel):
    """Project member as returned by the directory."""
    id: IdStr
    display_name: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("displayName", "display_name", "fullName", "name"),
    )

    def to_entity(self) -> Participant:
        return Participant(id=self.id, display_name=self.display_name)


class MessageSchema(WireModel):
    """Chat message as delivered in a backfill or a push event."""
    id: IdStr
    author_id: IdStr = Field(..., validation_alias=AliasChoices("authorId", "author_id"))
    author_display_name: str = Field(
        default="",
        validation_alias=AliasChoices("authorDisplayName", "authorName", "author_display_name", "author"),
    )
    text: str = Field(..., validation_alias=AliasChoices("text", "content"))
    created_at: datetime = Field(..., validation_alias=AliasChoices("createdAt", "created_at", "timestamp"))
    mentions: List[IdStr] = Field(default_factory=list)

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Mixing naive and aware datetimes would break ordering
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_entity(self) -> Message:
        return Message(
            id=self.id,
            author_id=self.author_id,
            author_display_name=self.author_display_name,
            text=self.text,
            created_at=self.created_at,
            mentions=frozenset(self.mentions),
        )


class BackfillPayload(WireModel):
    conversation_id: IdStr = Field(..., validation_alias=CONVERSATION_ID_ALIASES)
    messages: List[MessageSchema] = Field(default_factory=list)


class MessagePushedPayload(WireModel):
    conversation_id: IdStr = Field(..., validation_alias=CONVERSATION_ID_ALIASES)
    message: MessageSchema


class MentionNoticePayload(WireModel):
    conversation_id: IdStr = Field(..., validation_alias=CONVERSATION_ID_ALIASES)
    text: str = Field(..., validation_alias=AliasChoices("text", "message"))


class SubscribeFailedPayload(WireModel):
    conversation_id: IdStr = Field(..., validation_alias=CONVERSATION_ID_ALIASES)
    reason: str = Field(default="", validation_alias=AliasChoices("reason", "message", "error"))


class AckPayload(WireModel):
    """Acknowledgement returned by the server for emitted calls."""
    ok: bool = Field(default=True, validation_alias=AliasChoices("ok", "success", "result"))
    message: str = ""


SchemaT = TypeVar("SchemaT", bound=BaseModel)


def validate_payload(schema: Type[SchemaT], payload: Any) -> SchemaT:
    try:
        return schema.model_validate(payload)
    except ValidationError as exc:
        raise MalformedPayload(
            f"{schema.__name__} validation failed: {exc.error_count()} error(s)",
            payload=payload,
        ) from exc


def parse_message(payload: Any) -> Message:
    return validate_payload(MessageSchema, payload).to_entity()


def parse_participants(payload: Any) -> List[Participant]:
    if not isinstance(payload, list):
        raise MalformedPayload("Participant list expected", payload=payload)
    return [validate_payload(ParticipantSchema, item).to_entity() for item in payload]


def outgoing_to_wire(outgoing: OutgoingMessage) -> dict[str, Any]:
    return {
        "conversationId": outgoing.conversation_id,
        "text": outgoing.text,
        "authorId": outgoing.author_id,
        "mentions": sorted(outgoing.mentions),
    }
