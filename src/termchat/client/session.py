from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from termchat.core.errors import SessionBusyError
from termchat.core.models import CompletedResponse, TerminalLLM, TerminalMessage

from .chat_providers import ChatProvider


class TerminalSession:
    """
    Conversation state of one terminal. At most one generation is in flight;
    sessions share nothing, so several can stream concurrently.
    """

    def __init__(
        self,
        provider: ChatProvider,
        llm: TerminalLLM,
        system_prompt: str,
        welcome: Optional[str] = None,
    ):
        self.provider = provider
        self.llm = llm
        self.system_prompt = system_prompt
        self._messages: List[TerminalMessage] = []
        self._in_flight = False
        if welcome:
            self._messages.append(TerminalMessage(content=welcome, sender="system", welcome=True))

    @property
    def id(self) -> str:
        return self.llm.id

    @property
    def busy(self) -> bool:
        return self._in_flight

    @property
    def messages(self) -> List[TerminalMessage]:
        return list(self._messages)

    async def run_turn_stream(self, user_text: str) -> AsyncIterator[str]:
        """
        Yield reply fragments. The assistant message is recorded when the
        stream ends; if it was closed or failed after some text, the partial
        text is kept with complete=False.

        A caller that stops iterating early must aclose() the generator, or use
        turn(), otherwise the session stays busy until it is garbage-collected.
        """
        if self._in_flight:
            raise SessionBusyError(f"Terminal '{self.id}' already has a response in progress")
        if not user_text.strip():
            raise ValueError("Empty message")

        self._in_flight = True
        try:
            history = list(self._messages)
            self._messages.append(TerminalMessage(content=user_text, sender="user"))
            stream = self.provider.stream_completion(user_text, history, self.system_prompt, self.llm)
            completed = False
            try:
                async for piece in stream:
                    yield piece
                completed = True
            finally:
                await stream.aclose()
                if completed or stream.content:
                    self._messages.append(
                        TerminalMessage(content=stream.content, sender="system", complete=completed)
                    )
        finally:
            self._in_flight = False

    @asynccontextmanager
    async def turn(self, user_text: str) -> AsyncIterator[AsyncIterator[str]]:
        """run_turn_stream() that is always closed on exit, even after a break."""
        gen = self.run_turn_stream(user_text)
        try:
            yield gen
        finally:
            await gen.aclose()

    async def run_turn(self, user_text: str) -> CompletedResponse:
        parts: List[str] = []
        async for piece in self.run_turn_stream(user_text):
            parts.append(piece)
        return CompletedResponse(content="".join(parts))
