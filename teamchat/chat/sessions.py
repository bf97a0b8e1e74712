"""Chat session lifecycle: one conversation subscription at a time."""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Callable, Iterable, List, Optional, Set, Tuple

from teamchat.core import messages
from teamchat.core.config import settings
from teamchat.core.errors import (
    ChatError,
    InvalidInput,
    SendFailed,
    SessionStateError,
    SubscriptionFailed,
)

from .composer import MessageComposer
from .directory import ParticipantDirectory
from .mentions import MentionIndex
from .models import ConversationHandle, DraftMessage, Message, OutgoingMessage, Participant, SessionState
from .stream import MessageStream
from .transport import (
    BackfillReceived,
    EventListener,
    MentionNotice,
    MessagePushed,
    SubscribeFailed,
    Transport,
    TransportEvent,
)


logger = logging.getLogger("teamchat.chat.sessions")

ChangeCallback = Callable[[Tuple[Message, ...]], None]
NoticeCallback = Callable[[str, str], None]
ErrorCallback = Callable[[ChatError], None]


class _Activation:
    """Outcome of one open(): set once the backfill lands or the attempt ends."""

    def __init__(self):
        self.done = asyncio.Event()
        self.error: Optional[SubscriptionFailed] = None

    def succeed(self) -> None:
        self.done.set()

    def fail(self, error: SubscriptionFailed) -> None:
        if not self.done.is_set():
            self.error = error
            self.done.set()


class ChatSession:
    """
    Composes mention index, composer and message stream with a transport.

    States run Idle -> Subscribing -> Active -> Closing -> Idle. Every
    subscription gets a fresh ConversationHandle; transport events are bound
    to the handle they were registered for and dropped once that handle is no
    longer the active one.

    All methods are meant to run on one event loop. Event handlers never
    await, so each one completes before the next event is processed.
    """

    def __init__(
        self,
        transport: Transport,
        participant_id: str,
        directory: Optional[ParticipantDirectory] = None,
        participants: Optional[Iterable[Participant]] = None,
        on_change: Optional[ChangeCallback] = None,
        on_mention_notice: Optional[NoticeCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        subscribe_timeout: Optional[float] = None,
        send_timeout: Optional[float] = None,
    ):
        self.transport = transport
        self.participant_id = participant_id
        self.directory = directory
        self.on_change = on_change
        self.on_mention_notice = on_mention_notice
        self.on_error = on_error
        if subscribe_timeout is None:
            subscribe_timeout = settings.SUBSCRIBE_TIMEOUT_SECONDS
        if send_timeout is None:
            send_timeout = settings.SEND_TIMEOUT_SECONDS
        self.subscribe_timeout = subscribe_timeout
        self.send_timeout = send_timeout

        self.mention_index = MentionIndex(participants)
        self.composer = MessageComposer(self.mention_index)
        self.stream = MessageStream()

        self.state = SessionState.IDLE
        self.handle: Optional[ConversationHandle] = None
        self._listener: Optional[EventListener] = None
        # Pushes that beat the backfill, in arrival order
        self._pending: List[Message] = []
        self._activation: Optional[_Activation] = None
        self._cleanup_tasks: Set["asyncio.Task[None]"] = set()

    # ---- lifecycle ---------------------------------------------------------

    async def open(self, conversation_id: str) -> ConversationHandle:
        """Subscribe to a conversation, closing the current one first.

        Returns once the transport accepted the subscription; the session
        is then Subscribing until the backfill arrives.

        Raises:
            SubscriptionFailed: the transport refused or timed out, or the
                session was closed or reopened before this call finished.
        """
        if not conversation_id:
            raise InvalidInput("open() requires a conversation id", user_message=messages.SESSION_CONVERSATION_REQUIRED)

        if self.state is not SessionState.IDLE:
            await self.close()

        handle = ConversationHandle(conversation_id=conversation_id)
        listener = functools.partial(self._on_event, handle)
        self.handle = handle
        self._listener = listener
        self._pending = []
        self._activation = _Activation()
        self.state = SessionState.SUBSCRIBING

        logger.info("Opening conversation: conversation_id=%s, token=%s", conversation_id, handle.token)

        await self._refresh_participants(handle)
        if not self._is_current(handle):
            logger.info("Open superseded while loading participants: conversation_id=%s", conversation_id)
            raise SubscriptionFailed(conversation_id, "Conversation closed before it was subscribed")

        try:
            await asyncio.wait_for(
                self.transport.subscribe(conversation_id, self.participant_id, listener),
                timeout=self.subscribe_timeout,
            )
        except asyncio.TimeoutError as exc:
            error = SubscriptionFailed(
                conversation_id,
                f"Subscribe timed out after {self.subscribe_timeout}s",
                user_message=messages.SESSION_SUBSCRIBE_TIMEOUT,
            )
            await self._abandon(handle, listener, error)
            raise error from exc
        except Exception as exc:
            error = SubscriptionFailed(conversation_id, f"Subscribe failed: {exc}")
            await self._abandon(handle, listener, error)
            raise error from exc

        if not self._is_current(handle):
            # Closed, reopened or rejected while the subscribe call was in flight
            try:
                await self.transport.unsubscribe(conversation_id, listener)
            except Exception as e:
                logger.debug("Cleanup unsubscribe failed for conversation %s: %s", conversation_id, e)
            raise SubscriptionFailed(conversation_id, "Conversation closed before it became active")
        return handle

    async def wait_until_active(self, timeout: Optional[float] = None) -> None:
        """Wait for the backfill of the current open().

        Raises:
            SubscriptionFailed: the subscription failed, was closed, or no
                backfill arrived in time.
        """
        activation = self._activation
        if self.state is SessionState.ACTIVE:
            return
        if activation is None or self.handle is None:
            raise SessionStateError("No conversation is being opened")

        conversation_id = self.handle.conversation_id
        try:
            if timeout is None:
                timeout = self.subscribe_timeout
            await asyncio.wait_for(activation.done.wait(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise SubscriptionFailed(
                conversation_id,
                "Backfill not received in time",
                user_message=messages.SESSION_SUBSCRIBE_TIMEOUT,
            ) from exc
        if activation.error is not None:
            raise activation.error

    async def close(self) -> None:
        """Leave the current conversation. Safe to call in any state."""
        handle, listener = self.handle, self._listener
        if handle is None:
            self.state = SessionState.IDLE
            return

        self.state = SessionState.CLOSING
        # Detach synchronously so nothing from the old handle applies after this
        self._detach(SubscriptionFailed(handle.conversation_id, "Conversation closed before it became active"))
        self.composer.clear()
        self._notify_change()

        try:
            if listener is not None:
                await self.transport.unsubscribe(handle.conversation_id, listener)
        except Exception as e:
            logger.warning("Unsubscribe failed for conversation %s: %s", handle.conversation_id, e)
        finally:
            if self.handle is None and self.state is SessionState.CLOSING:
                self.state = SessionState.IDLE

        logger.info("Conversation closed: conversation_id=%s", handle.conversation_id)

    # ---- sending -----------------------------------------------------------

    async def send_message(self, draft: DraftMessage) -> None:
        """Hand a draft to the transport.

        Returns when the transport accepted it; the stored message arrives
        later as a push event.
        """
        if self.state is not SessionState.ACTIVE or self.handle is None:
            raise SessionStateError(f"Cannot send while {self.state.value}")

        outgoing = OutgoingMessage(
            conversation_id=self.handle.conversation_id,
            text=draft.text,
            author_id=self.participant_id,
            mentions=draft.resolved_mentions,
        )
        try:
            await asyncio.wait_for(self.transport.send_message(outgoing), timeout=self.send_timeout)
        except asyncio.TimeoutError as exc:
            raise SendFailed(
                f"Send timed out after {self.send_timeout}s", user_message=messages.SEND_TIMEOUT
            ) from exc
        except Exception as exc:
            raise SendFailed(f"Send failed: {exc}") from exc

        logger.info(
            "Message sent: conversation_id=%s, mentions=%d",
            outgoing.conversation_id,
            len(outgoing.mentions),
        )

    async def submit(self) -> DraftMessage:
        """Finalize the composer, send it, and clear the buffer on success."""
        draft = self.composer.finalize()
        await self.send_message(draft)
        self.composer.clear()
        return draft

    # ---- views -------------------------------------------------------------

    def current_view(self) -> Tuple[Message, ...]:
        return self.stream.current_view()

    def participant_count(self) -> int:
        """Distinct authors in the current view."""
        return len({m.author_id for m in self.stream.current_view()})

    # ---- transport events --------------------------------------------------

    def _on_event(self, handle: ConversationHandle, event: TransportEvent) -> None:
        if not self._is_current(handle) or event.conversation_id != handle.conversation_id:
            logger.debug(
                "Stale %s dropped: conversation_id=%s, token=%s",
                type(event).__name__,
                event.conversation_id,
                handle.token,
            )
            return

        if isinstance(event, BackfillReceived):
            self._apply_backfill(event)
        elif isinstance(event, MessagePushed):
            self._apply_push(event)
        elif isinstance(event, MentionNotice):
            if self.on_mention_notice is not None:
                self.on_mention_notice(event.conversation_id, event.text)
        elif isinstance(event, SubscribeFailed):
            self._apply_subscribe_failure(event)
        else:
            logger.warning("Unknown transport event ignored: %r", event)

    def _apply_backfill(self, event: BackfillReceived) -> None:
        if self.state is SessionState.ACTIVE:
            logger.info("Backfill re-sync: conversation_id=%s", event.conversation_id)

        self.stream.load_backfill(event.messages)
        pending, self._pending = self._pending, []
        for message in pending:
            self.stream.append(message)
        self.state = SessionState.ACTIVE
        if self._activation is not None:
            self._activation.succeed()

        logger.info(
            "Conversation active: conversation_id=%s, messages=%d, replayed=%d",
            event.conversation_id,
            len(self.stream),
            len(pending),
        )
        self._notify_change()

    def _apply_push(self, event: MessagePushed) -> None:
        if self.state is SessionState.SUBSCRIBING:
            self._pending.append(event.message)
            return
        if self.stream.append(event.message):
            self._notify_change()

    def _apply_subscribe_failure(self, event: SubscribeFailed) -> None:
        # Arrives while Subscribing, or while Active when a resubscribe fails
        if self.state not in (SessionState.SUBSCRIBING, SessionState.ACTIVE):
            logger.warning("Subscribe failure ignored in state %s", self.state.value)
            return
        was_active = self.state is SessionState.ACTIVE
        listener = self._listener
        error = SubscriptionFailed(event.conversation_id, event.reason or "Subscribe rejected by server")
        logger.warning("Subscribe failed: conversation_id=%s, reason=%s", event.conversation_id, event.reason)
        self._detach(error)
        self.state = SessionState.IDLE
        if listener is not None:
            self._schedule_unsubscribe(event.conversation_id, listener)
        if was_active:
            self._notify_change()
        if self.on_error is not None:
            self.on_error(error)

    # ---- helpers -----------------------------------------------------------

    def _is_current(self, handle: ConversationHandle) -> bool:
        return self.handle is not None and self.handle.token == handle.token

    def _detach(self, error: SubscriptionFailed) -> None:
        if self._activation is not None:
            self._activation.fail(error)
        self.handle = None
        self._listener = None
        self._pending = []
        self._activation = None
        self.stream.clear()

    async def _abandon(self, handle: ConversationHandle, listener: EventListener, error: SubscriptionFailed) -> None:
        logger.warning("Subscribe failed: conversation_id=%s, detail=%s", handle.conversation_id, error.detail)
        if self._is_current(handle):
            self._detach(error)
            self.state = SessionState.IDLE
        try:
            await self.transport.unsubscribe(handle.conversation_id, listener)
        except Exception as e:
            logger.debug("Cleanup unsubscribe failed for conversation %s: %s", handle.conversation_id, e)

    def _schedule_unsubscribe(self, conversation_id: str, listener: EventListener) -> None:
        # Event handlers never await; release the transport side in a task
        task = asyncio.get_running_loop().create_task(self.transport.unsubscribe(conversation_id, listener))
        self._cleanup_tasks.add(task)
        task.add_done_callback(functools.partial(self._on_cleanup_done, conversation_id))

    def _on_cleanup_done(self, conversation_id: str, task: "asyncio.Task[None]") -> None:
        self._cleanup_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Unsubscribe failed for conversation %s: %s", conversation_id, exc)

    async def _refresh_participants(self, handle: ConversationHandle) -> None:
        if self.directory is None:
            return
        try:
            participants = await self.directory.list_participants(handle.conversation_id)
        except Exception as e:
            # Chat still works without autocomplete
            logger.warning("Participant directory failed for conversation %s: %s", handle.conversation_id, e)
            participants = []
        if self._is_current(handle):
            self.mention_index.replace(participants)

    def _notify_change(self) -> None:
        if self.on_change is not None:
            self.on_change(self.stream.current_view())
