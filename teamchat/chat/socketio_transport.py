"""Socket.IO transport for the project chat backend."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type

import socketio
from socketio import exceptions as sio_exceptions

from teamchat.core import messages
from teamchat.core.config import settings
from teamchat.core.errors import MalformedPayload, TransportError
from teamchat.core.security import TokenCredentialProvider

from .models import OutgoingMessage
from .schemas import (
    AckPayload,
    BackfillPayload,
    MentionNoticePayload,
    MessagePushedPayload,
    SubscribeFailedPayload,
    WireModel,
    outgoing_to_wire,
    validate_payload,
)
from .transport import (
    BackfillReceived,
    EventListener,
    MentionNotice,
    MessagePushed,
    SubscribeFailed,
    TransportEvent,
)


logger = logging.getLogger("teamchat.chat.socketio")

# Outbound
EVENT_SUBSCRIBE = "chat:subscribe"
EVENT_UNSUBSCRIBE = "chat:unsubscribe"
EVENT_SEND = "chat:send"
# Inbound
EVENT_BACKFILL = "chat:backfill"
EVENT_MESSAGE = "chat:message"
EVENT_MENTION = "chat:mention"
EVENT_SUBSCRIBE_ERROR = "chat:subscribe_error"

ACK_TIMEOUT_SECONDS = 10


class SocketIOTransport:
    """
    Transport over a python-socketio ``AsyncClient``.

    Subscribe and send are acknowledged calls; backfill, pushes and mention
    notices arrive as server events and are validated before they reach any
    listener. After a reconnect every live subscription is re-issued, which
    makes the server send a fresh backfill.
    """

    def __init__(
        self,
        credentials: Optional[TokenCredentialProvider] = None,
        url: Optional[str] = None,
        socketio_path: Optional[str] = None,
        client: Optional[socketio.AsyncClient] = None,
        ack_timeout: float = ACK_TIMEOUT_SECONDS,
    ):
        self.credentials = credentials
        self.url = (url or settings.CHAT_SERVER_URL).strip().rstrip("/")
        self.socketio_path = (socketio_path or settings.SOCKETIO_PATH).strip().lstrip("/")
        self.ack_timeout = ack_timeout
        self._client = client
        # conversation_id -> listeners, in registration order
        self._listeners: Dict[str, List[EventListener]] = {}
        # conversation_id -> participant id used to subscribe
        self._subscriptions: Dict[str, str] = {}
        self._has_connected = False
        if client is not None:
            self._register_handlers(client)

    @property
    def connected(self) -> bool:
        return self._client is not None and self._client.connected

    # ---- connection --------------------------------------------------------

    async def connect(self) -> None:
        if self.connected:
            return
        if self._client is None:
            self._client = socketio.AsyncClient(
                reconnection=True,
                reconnection_attempts=settings.SOCKET_RECONNECT_ATTEMPTS,
                logger=False,
                engineio_logger=False,
            )
            self._register_handlers(self._client)

        auth = {"token": self.credentials.get_token()} if self.credentials else None
        try:
            await self._client.connect(
                self.url,
                transports=["websocket"],
                socketio_path=self.socketio_path,
                auth=auth,
                wait_timeout=max(1, int(self.ack_timeout)),
            )
        except sio_exceptions.ConnectionError as exc:
            raise TransportError(f"Could not connect to {self.url}: {exc}") from exc

    async def close(self) -> None:
        self._listeners.clear()
        self._subscriptions.clear()
        if self._client is not None and self._client.connected:
            await self._client.disconnect()

    # ---- Transport ---------------------------------------------------------

    async def subscribe(self, conversation_id: str, participant_id: str, listener: EventListener) -> None:
        # Register first: the backfill may arrive before the ack
        self._listeners.setdefault(conversation_id, []).append(listener)
        try:
            await self._call(EVENT_SUBSCRIBE, {"conversationId": conversation_id, "participantId": participant_id})
        except Exception:
            self._remove_listener(conversation_id, listener)
            raise
        self._subscriptions[conversation_id] = participant_id
        logger.info("Subscribed: conversation_id=%s, participant_id=%s", conversation_id, participant_id)

    async def unsubscribe(self, conversation_id: str, listener: EventListener) -> None:
        self._remove_listener(conversation_id, listener)
        if conversation_id in self._listeners:
            return
        self._subscriptions.pop(conversation_id, None)
        if self.connected:
            await self._client.emit(EVENT_UNSUBSCRIBE, {"conversationId": conversation_id})
        logger.info("Unsubscribed: conversation_id=%s", conversation_id)

    async def send_message(self, outgoing: OutgoingMessage) -> None:
        await self._call(EVENT_SEND, outgoing_to_wire(outgoing))

    # ---- inbound -----------------------------------------------------------

    def _register_handlers(self, client: socketio.AsyncClient) -> None:
        client.on("connect", self._on_connect)
        client.on("disconnect", self._on_disconnect)
        client.on(EVENT_BACKFILL, self._on_backfill)
        client.on(EVENT_MESSAGE, self._on_message)
        client.on(EVENT_MENTION, self._on_mention)
        client.on(EVENT_SUBSCRIBE_ERROR, self._on_subscribe_error)

    async def _on_connect(self) -> None:
        logger.info("Chat socket connected: url=%s", self.url)
        if self._has_connected:
            await self._resubscribe_all()
        self._has_connected = True

    async def _on_disconnect(self, *args: Any) -> None:
        logger.warning("Chat socket disconnected: url=%s", self.url)

    async def _on_backfill(self, payload: Any) -> None:
        parsed = self._parse(BackfillPayload, payload)
        if parsed is None:
            return
        self._dispatch(
            BackfillReceived(
                conversation_id=parsed.conversation_id,
                messages=tuple(m.to_entity() for m in parsed.messages),
            )
        )

    async def _on_message(self, payload: Any) -> None:
        parsed = self._parse(MessagePushedPayload, payload)
        if parsed is None:
            return
        self._dispatch(MessagePushed(conversation_id=parsed.conversation_id, message=parsed.message.to_entity()))

    async def _on_mention(self, payload: Any) -> None:
        parsed = self._parse(MentionNoticePayload, payload)
        if parsed is None:
            return
        self._dispatch(MentionNotice(conversation_id=parsed.conversation_id, text=parsed.text))

    async def _on_subscribe_error(self, payload: Any) -> None:
        parsed = self._parse(SubscribeFailedPayload, payload)
        if parsed is None:
            return
        self._dispatch(SubscribeFailed(conversation_id=parsed.conversation_id, reason=parsed.reason))

    # ---- helpers -----------------------------------------------------------

    def _dispatch(self, event: TransportEvent) -> None:
        listeners = list(self._listeners.get(event.conversation_id, ()))
        if not listeners:
            logger.debug("No listener for %s: conversation_id=%s", type(event).__name__, event.conversation_id)
        for listener in listeners:
            listener(event)

    @staticmethod
    def _parse(schema: Type[WireModel], payload: Any) -> Optional[WireModel]:
        # A bad frame from the server must not take the socket down
        try:
            return validate_payload(schema, payload)
        except MalformedPayload as e:
            logger.warning("Dropping malformed %s: %s", schema.__name__, e)
            return None

    async def _call(self, event: str, payload: Dict[str, Any]) -> AckPayload:
        if not self.connected:
            raise TransportError(f"Cannot emit {event}: socket not connected")
        try:
            raw = await self._client.call(event, payload, timeout=self.ack_timeout)
        except sio_exceptions.TimeoutError as exc:
            raise TransportError(f"No acknowledgement for {event}") from exc
        except sio_exceptions.SocketIOError as exc:
            raise TransportError(f"{event} failed: {exc}") from exc

        ack = validate_payload(AckPayload, raw) if isinstance(raw, dict) else AckPayload()
        if not ack.ok:
            raise TransportError(
                f"{event} rejected: {ack.message or 'unknown error'}",
                user_message=messages.TRANSPORT_REJECTED,
            )
        return ack

    async def _resubscribe_all(self) -> None:
        for conversation_id, participant_id in list(self._subscriptions.items()):
            try:
                await self._call(
                    EVENT_SUBSCRIBE, {"conversationId": conversation_id, "participantId": participant_id}
                )
            except TransportError as e:
                logger.error("Resubscribe failed for conversation %s: %s", conversation_id, e)
                self._dispatch(SubscribeFailed(conversation_id=conversation_id, reason=str(e)))

    def _remove_listener(self, conversation_id: str, listener: EventListener) -> None:
        listeners = self._listeners.get(conversation_id)
        if not listeners:
            return
        remaining = [fn for fn in listeners if fn is not listener]
        if remaining:
            self._listeners[conversation_id] = remaining
        else:
            del self._listeners[conversation_id]
