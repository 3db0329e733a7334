# src/termchat/client/chat_providers.py
from __future__ import annotations
import inspect
import logging
from typing import Any, Callable, Dict, Iterable, List, Type

from termchat.core.errors import UnsupportedProviderError
from termchat.core.models import CompletedResponse, TerminalLLM, TerminalMessage, Turn

from .relay_client import CompletionStream, RelayClient

logger = logging.getLogger(__name__)

OnToken = Callable[[str], Any]
OnComplete = Callable[[CompletedResponse], Any]
OnError = Callable[[Exception], Any]


def build_turns(prompt: str, history: Iterable[TerminalMessage], system_prompt: str) -> List[Turn]:
    """
    [system] + history without the UI's welcome message + [user prompt].
    """
    turns = [Turn(role="system", content=system_prompt)]
    turns.extend(m.to_turn() for m in history if not m.welcome)
    turns.append(Turn(role="user", content=prompt))
    return turns


async def _call(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class ChatProvider:
    """
    Caller-side contract shared by every provider variant. Variants differ
    only in the tag put on the outbound request.
    """
    provider_tag: str = ""

    def __init__(self, relay: RelayClient):
        self.relay = relay

    def stream_completion(
        self,
        prompt: str,
        history: Iterable[TerminalMessage],
        system_prompt: str,
        llm: TerminalLLM,
    ) -> CompletionStream:
        turns = build_turns(prompt, history, system_prompt)
        return self.relay.stream(llm.id, turns, llm.generation_config(self.provider_tag))

    async def generate_completion(
        self,
        prompt: str,
        history: Iterable[TerminalMessage],
        system_prompt: str,
        llm: TerminalLLM,
        on_token: OnToken,
        on_complete: OnComplete,
        on_error: OnError,
    ) -> None:
        """
        Callback form of stream_completion: zero or more on_token calls, then
        exactly one of on_complete / on_error.
        """
        stream = None
        try:
            stream = self.stream_completion(prompt, history, system_prompt, llm)
            async for token in stream:
                await _call(on_token, token)
            response = stream.response
            if response is None:
                raise RuntimeError("Stream ended without a response")
        except Exception as exc:
            if stream is not None:
                await stream.aclose()
            logger.warning("terminal=%s generation failed: %s", llm.id, exc)
            await _call(on_error, exc)
            return
        await _call(on_complete, response)


class OpenAIChatProvider(ChatProvider):
    provider_tag = "openai"


class AnthropicChatProvider(ChatProvider):
    provider_tag = "anthropic"


CHAT_PROVIDERS: Dict[str, Type[ChatProvider]] = {
    OpenAIChatProvider.provider_tag: OpenAIChatProvider,
    AnthropicChatProvider.provider_tag: AnthropicChatProvider,
}


def get_chat_provider(provider: str, relay: RelayClient) -> ChatProvider:
    try:
        klass = CHAT_PROVIDERS[str(provider).lower()]
    except KeyError:
        raise UnsupportedProviderError(provider) from None
    return klass(relay)


async def generate_llm_response(
    relay: RelayClient,
    prompt: str,
    history: Iterable[TerminalMessage],
    system_prompt: str,
    llm: TerminalLLM,
    on_token: OnToken,
    on_complete: OnComplete,
    on_error: OnError,
) -> None:
    provider = get_chat_provider(llm.provider, relay)
    await provider.generate_completion(prompt, history, system_prompt, llm, on_token, on_complete, on_error)
