import asyncio
import logging
import sys
from typing import List, Optional, Tuple

from teamchat.chat import ChatSession, Message, split_mentions
from teamchat.chat.socketio_transport import SocketIOTransport
from teamchat.core import messages
from teamchat.core.config import settings
from teamchat.core.errors import ChatError
from teamchat.core.logging import configure_logging
from teamchat.core.security import TokenCredentialProvider
from teamchat.services.directory import HttpParticipantDirectory


logger = logging.getLogger("teamchat.main")


def create_session(access_token: Optional[str] = None) -> Tuple[ChatSession, SocketIOTransport, HttpParticipantDirectory]:
    configure_logging()

    credentials = TokenCredentialProvider.from_token(access_token or settings.ACCESS_TOKEN or "")
    transport = SocketIOTransport(credentials=credentials)
    directory = HttpParticipantDirectory(credentials=credentials)
    session = ChatSession(
        transport=transport,
        participant_id=credentials.participant_id,
        directory=directory,
        on_change=_render,
        on_mention_notice=lambda conversation_id, text: print(f"** {text}"),
        on_error=lambda exc: print(f"!! {exc.user_message}"),
    )
    return session, transport, directory


def _render(view: Tuple[Message, ...]) -> None:
    if not view:
        return
    message = view[-1]
    body = "".join(f"[{part}]" if is_mention else part for part, is_mention in split_mentions(message.text))
    print(f"{message.created_at:%H:%M} {message.author_display_name}: {body}")


async def run(conversation_id: str) -> None:
    session, transport, directory = create_session()
    loop = asyncio.get_running_loop()
    try:
        await transport.connect()
        await session.open(conversation_id)
        await session.wait_until_active()
        print(f"{session.participant_count()} participants. {messages.COMPOSER_PLACEHOLDER} (Ctrl-D to quit)")

        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            session.composer.on_text_changed(line.rstrip("\n"))
            if session.composer.trigger_active:
                names = ", ".join(p.display_name for p in session.composer.suggestions())
                print(f"   mention: {names or 'no match'}")
                continue
            try:
                await session.submit()
            except ChatError as e:
                print(f"!! {e.user_message}")
    finally:
        await session.close()
        await transport.close()
        await directory.aclose()


def main(argv: List[str]) -> int:
    if len(argv) != 2:
        print("usage: python main.py <project-id>")
        return 2
    try:
        asyncio.run(run(argv[1]))
    except ChatError as e:
        print(f"!! {e.user_message}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
