"""
Terminal chat with the shopping assistant.

    shopassist-chat                 # REST turns
    shopassist-chat --realtime      # over the session websocket
    shopassist-chat --session ID    # resume an existing conversation

Inside the loop: /voice records up to 10 s (Enter stops early), /quit exits.
"""

from __future__ import annotations
import argparse
import asyncio
import contextlib
from dataclasses import replace
from typing import Optional

from .config import load_config
from .context import ClientContext
from .controller import AssistantSession
from .errors import ShopAssistError
from .models import Message, Notice, Role
from .services.assistant_api import AssistantApi
from .services.realtime import RealtimeChannel
from .services.transport import TransportClient
from .services.voice import MAX_RECORDING_SECONDS, VoiceCapture
from .utils.log import configure_logging


def _print_message(msg: Message) -> None:
    if msg.role is Role.ASSISTANT:
        print(f"assistant> {msg.text}")


def _print_notice(notice: Notice) -> None:
    print(f"[!] {notice.text}")


class _LineReader:
    """Stdin lines read off-loop. A read that is still pending is reused, never doubled."""

    def __init__(self) -> None:
        self._pending: Optional[asyncio.Future] = None

    def pending(self) -> asyncio.Future:
        if self._pending is None:
            self._pending = asyncio.ensure_future(asyncio.to_thread(input))
        return self._pending

    async def readline(self, prompt: str = "") -> str:
        if prompt:
            print(prompt, end="", flush=True)
        task = self.pending()
        try:
            return await task
        finally:
            self._pending = None


async def _record(capture: VoiceCapture, reader: _LineReader):
    await capture.start()
    print(f"Recording... press Enter to stop (max {int(MAX_RECORDING_SECONDS)} s).")
    enter = reader.pending()
    finished = asyncio.ensure_future(capture.wait())
    await asyncio.wait({enter, finished}, return_when=asyncio.FIRST_COMPLETED)
    if capture.is_recording:
        capture.stop()
        await reader.readline()
    else:
        # the unanswered read becomes the next chat line
        print("Time limit reached.")
    return await finished


async def run_chat(args: argparse.Namespace) -> int:
    config = load_config()
    if args.api_url:
        config = replace(config, api_base_url=args.api_url.rstrip("/"))
    configure_logging(args.log_level or config.log_level)

    context = ClientContext.from_config(config)
    api = AssistantApi(TransportClient(context))
    session = AssistantSession(
        api, context.sessions, notifier=_print_notice, on_message=_print_message
    )
    if args.session:
        loaded = await session.resume(args.session)
        print(f"Resumed {session.session_id} ({loaded} messages).")
    print(f"Session {session.session_id}. /voice to speak, /quit to exit.")

    follower = None
    if args.realtime:
        session.channel = RealtimeChannel(context, session.session_id)
        await session.channel.connect()
        follower = asyncio.create_task(session.follow_realtime())

    capture = VoiceCapture()
    reader = _LineReader()
    try:
        while True:
            line = (await reader.readline("you> ")).strip()
            if not line:
                continue
            if line in ("/quit", "/exit"):
                break
            before = session.suggestions
            try:
                if line == "/voice":
                    recording = await _record(capture, reader)
                    await session.send_voice(recording)
                elif args.realtime:
                    await session.send_realtime(line)
                else:
                    await session.send_text(line)
            except ShopAssistError as e:
                print(f"[!] {e}")
                continue
            if session.suggestions == before:
                continue
            for product in session.suggestions:
                print(f"  • {product.name} - ${product.price:.2f} ({product.condition})")
    finally:
        if session.channel is not None:
            await session.channel.disconnect()
        if follower is not None:
            follower.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await follower
    return 0


def main() -> int:
    p = argparse.ArgumentParser(prog="shopassist-chat")
    p.add_argument("--api-url", default=None, help="storefront API base URL")
    p.add_argument("--session", default=None, help="resume this session id")
    p.add_argument("--realtime", action="store_true", help="chat over the websocket")
    p.add_argument("--log-level", default=None)
    args = p.parse_args()
    try:
        return asyncio.run(run_chat(args))
    except (KeyboardInterrupt, EOFError):
        return 0
    except ShopAssistError as e:
        print(f"error: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
