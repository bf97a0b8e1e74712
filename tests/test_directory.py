"""
Tests for the HTTP participant directory
"""

import httpx
import pytest
from jose import jwt

from teamchat.chat.directory import StaticParticipantDirectory
from teamchat.chat.models import Participant
from teamchat.core.errors import MalformedPayload, TransportError
from teamchat.core.security import TokenCredentialProvider
from teamchat.services.directory import HttpParticipantDirectory, unwrap_envelope


TOKEN = jwt.encode({"sub": "u1"}, "test-secret", algorithm="HS256")


def make_directory(handler) -> HttpParticipantDirectory:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpParticipantDirectory(
        TokenCredentialProvider.from_token(TOKEN),
        base_url="http://api.test/api/",
        client=client,
    )


class TestHttpParticipantDirectory:
    """Test member fetching and response handling"""

    @pytest.mark.asyncio
    async def test_fetches_members_with_bearer_token(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"data": [{"id": 1, "displayName": "Sarah Johnson"}]})

        directory = make_directory(handler)
        people = await directory.list_participants("p1")

        assert seen["url"] == "http://api.test/api/projects/p1/members"
        assert seen["auth"] == f"Bearer {TOKEN}"
        assert people == [Participant(id="1", display_name="Sarah Johnson")]

    @pytest.mark.asyncio
    async def test_accepts_bare_list_and_members_key(self):
        bare = make_directory(lambda request: httpx.Response(200, json=[{"id": "2", "name": "Mike Chen"}]))
        nested = make_directory(
            lambda request: httpx.Response(200, json={"data": {"members": [{"id": "3", "fullName": "Bob"}]}})
        )

        assert [p.display_name for p in await bare.list_participants("p1")] == ["Mike Chen"]
        assert [p.display_name for p in await nested.list_participants("p1")] == ["Bob"]

    @pytest.mark.asyncio
    async def test_error_status_raises_transport_error(self):
        directory = make_directory(lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(TransportError) as exc_info:
            await directory.list_participants("p1")
        assert "500" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_network_error_raises_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransportError):
            await make_directory(handler).list_participants("p1")

    @pytest.mark.asyncio
    async def test_non_json_body_is_malformed(self):
        directory = make_directory(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(MalformedPayload):
            await directory.list_participants("p1")

    @pytest.mark.asyncio
    async def test_invalid_member_is_malformed(self):
        directory = make_directory(lambda request: httpx.Response(200, json=[{"id": "1"}]))
        with pytest.raises(MalformedPayload):
            await directory.list_participants("p1")


def test_unwrap_envelope():
    assert unwrap_envelope({"data": [1]}) == [1]
    assert unwrap_envelope({"data": None, "members": []}) == {"data": None, "members": []}
    assert unwrap_envelope([1]) == [1]


@pytest.mark.asyncio
async def test_static_directory_falls_back_to_default():
    bob = Participant(id="3", display_name="Bob")
    directory = StaticParticipantDirectory({"p1": [bob]}, default=[])

    assert await directory.list_participants("p1") == [bob]
    assert await directory.list_participants("p2") == []


def test_explicit_zero_timeout_is_kept():
    directory = HttpParticipantDirectory(TokenCredentialProvider.from_token(TOKEN), timeout=0)
    assert directory.timeout == 0
