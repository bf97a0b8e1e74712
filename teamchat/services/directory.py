"""Project member directory served by the REST backend."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx

from teamchat.chat.models import Participant
from teamchat.chat.schemas import parse_participants
from teamchat.core import messages
from teamchat.core.config import settings
from teamchat.core.errors import MalformedPayload, TransportError
from teamchat.core.security import TokenCredentialProvider


logger = logging.getLogger("teamchat.services.directory")


def unwrap_envelope(parsed: Any) -> Any:
    """The backend wraps most responses as ``{"data": ...}``; some are bare."""
    if isinstance(parsed, dict) and "data" in parsed and parsed["data"] is not None:
        return parsed["data"]
    return parsed


class HttpParticipantDirectory:
    """Fetches ``GET /projects/{id}/members`` with the caller's bearer token."""

    def __init__(
        self,
        credentials: TokenCredentialProvider,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.credentials = credentials
        self.base_url = (base_url or settings.API_BASE_URL).strip().rstrip("/")
        self._client = client
        self._owns_client = client is None
        self.timeout = settings.HTTP_TIMEOUT_SECONDS if timeout is None else timeout

    async def list_participants(self, conversation_id: str) -> List[Participant]:
        url = f"{self.base_url}/projects/{conversation_id}/members"
        headers = {"Content-Type": "application/json", **self.credentials.authorization_header()}

        try:
            response = await self._get_client().get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise TransportError(
                f"Directory request failed: {exc}", user_message=messages.DIRECTORY_UNAVAILABLE
            ) from exc

        if not response.is_success:
            raise TransportError(
                f"Directory HTTP {response.status_code}: {response.text[:200]}",
                user_message=messages.DIRECTORY_UNAVAILABLE,
            )

        try:
            parsed = response.json()
        except ValueError as exc:
            raise MalformedPayload("Directory response is not JSON", payload=response.text[:200]) from exc

        data = unwrap_envelope(parsed)
        if isinstance(data, dict) and "members" in data:
            data = data["members"]

        participants = parse_participants(data)
        logger.info(
            "Participants loaded: conversation_id=%s, count=%d",
            conversation_id,
            len(participants),
        )
        return participants

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client
