"""
Tests for payload validation at the transport boundary
"""

from datetime import datetime, timezone

import pytest

from teamchat.chat.models import OutgoingMessage, Participant
from teamchat.chat.schemas import (
    AckPayload,
    BackfillPayload,
    outgoing_to_wire,
    parse_message,
    parse_participants,
    validate_payload,
)
from teamchat.core.errors import MalformedPayload


class TestMessageSchema:
    """Test message payload parsing"""

    def test_camel_case_payload(self):
        message = parse_message(
            {
                "id": "m1",
                "authorId": "u1",
                "authorDisplayName": "Sarah Johnson",
                "text": "@Mike Chen standup?",
                "createdAt": "2025-03-01T10:35:00Z",
                "mentions": ["u2"],
            }
        )

        assert message.id == "m1"
        assert message.author_display_name == "Sarah Johnson"
        assert message.created_at == datetime(2025, 3, 1, 10, 35, tzinfo=timezone.utc)
        assert message.mentions == frozenset({"u2"})

    def test_numeric_ids_and_epoch_timestamp(self):
        message = parse_message({"id": 7, "authorId": 3, "content": "hi", "createdAt": 1.5, "mentions": [1, 2]})

        assert message.id == "7"
        assert message.author_id == "3"
        assert message.text == "hi"
        assert message.mentions == frozenset({"1", "2"})
        assert message.created_at.tzinfo is not None

    def test_naive_timestamp_is_treated_as_utc(self):
        message = parse_message({"id": "m", "authorId": "u", "text": "x", "createdAt": "2025-03-01T10:00:00"})
        assert message.created_at.tzinfo == timezone.utc

    @pytest.mark.parametrize(
        "payload",
        [
            {"authorId": "u", "text": "x", "createdAt": 1},
            {"id": "m", "text": "x", "createdAt": 1},
            {"id": "m", "authorId": "u", "createdAt": 1},
            {"id": "m", "authorId": "u", "text": "x"},
            {"id": "m", "authorId": "u", "text": "x", "createdAt": "yesterday"},
            {"id": "", "authorId": "u", "text": "x", "createdAt": 1},
            "not a dict",
            None,
        ],
    )
    def test_incomplete_payload_is_malformed(self, payload):
        with pytest.raises(MalformedPayload) as exc_info:
            parse_message(payload)
        assert exc_info.value.payload == payload


class TestEnvelopes:
    """Test event envelopes and helpers"""

    def test_backfill_payload(self):
        parsed = validate_payload(
            BackfillPayload,
            {"conversationId": 42, "messages": [{"id": "a", "authorId": "u", "text": "x", "createdAt": 1}]},
        )
        assert parsed.conversation_id == "42"
        assert [m.to_entity().id for m in parsed.messages] == ["a"]

    def test_backfill_with_one_bad_message_is_rejected_whole(self):
        with pytest.raises(MalformedPayload):
            validate_payload(
                BackfillPayload,
                {"conversationId": "p1", "messages": [{"id": "a", "authorId": "u", "text": "x", "createdAt": 1}, {}]},
            )

    def test_ack_defaults_to_ok(self):
        assert validate_payload(AckPayload, {}).ok is True
        assert validate_payload(AckPayload, {"success": False, "message": "nope"}).ok is False

    def test_participants_accept_name_aliases(self):
        people = parse_participants([{"id": 1, "displayName": "Bob"}, {"id": "2", "name": "Bobby"}])
        assert people == [Participant(id="1", display_name="Bob"), Participant(id="2", display_name="Bobby")]

    def test_participants_require_list(self):
        with pytest.raises(MalformedPayload):
            parse_participants({"id": "1", "displayName": "Bob"})

    def test_outgoing_to_wire(self):
        wire = outgoing_to_wire(
            OutgoingMessage(conversation_id="p1", text="@Bob hi", author_id="u1", mentions=frozenset({"b", "a"}))
        )
        assert wire == {"conversationId": "p1", "text": "@Bob hi", "authorId": "u1", "mentions": ["a", "b"]}
