from __future__ import annotations
import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from .bootstrap import build_app
from .client.chat_providers import get_chat_provider
from .client.relay_client import DEFAULT_BASE_URL, RelayClient
from .client.session import TerminalSession
from .core.errors import RelayError, UnsupportedProviderError
from .core.models import DEFAULT_MAX_TOKENS, DEFAULT_PROVIDER, DEFAULT_TEMPERATURE, TerminalLLM

app = typer.Typer(add_completion=False, help="Multi-terminal LLM chat relay.")
console = Console()

DEFAULT_CONFIG = Path("config/default.yaml")
_FALLBACK_PROMPT = "You are a helpful AI assistant responding to user queries in a terminal interface."


def _system_prompt(path: Optional[Path]) -> str:
    path = path or Path(__file__).parent / "prompts" / "system.txt"
    return path.read_text(encoding="utf-8").strip() if path.exists() else _FALLBACK_PROMPT


@app.command()
def serve(
    config: Path = typer.Option(DEFAULT_CONFIG, help="YAML config file."),
    host: Optional[str] = typer.Option(None, help="Override server.host."),
    port: Optional[int] = typer.Option(None, help="Override server.port."),
):
    """Run the relay over HTTP."""
    from .web.app import run

    run(config=config, host=host, port=port)


@app.command()
def providers(config: Path = typer.Option(DEFAULT_CONFIG, help="YAML config file.")):
    """Show which providers have a credential configured."""
    ctx = build_app(config)
    relay = ctx["relay"]
    for name, available in relay.available_providers().items():
        marker = "[green]available[/green]" if available else "[red]not configured[/red]"
        default = " (default)" if name == relay.default_provider else ""
        console.print(f"{name}{default}: {marker}")


@app.command()
def chat(
    url: str = typer.Option(DEFAULT_BASE_URL, help="Base URL of a running relay."),
    provider: str = typer.Option(DEFAULT_PROVIDER, help="openai or anthropic."),
    model: Optional[str] = typer.Option(None, help="Model id; the relay default when omitted."),
    terminal_id: str = typer.Option("cli", help="Terminal id used in the relay path."),
    temperature: float = typer.Option(DEFAULT_TEMPERATURE, min=0.0, max=1.0),
    max_tokens: int = typer.Option(DEFAULT_MAX_TOKENS, min=1),
    system_prompt: Optional[Path] = typer.Option(None, help="File holding the system prompt."),
    welcome: Optional[str] = typer.Option(None, help="Greeting shown first; never sent upstream."),
):
    """Interactive terminal talking to a running relay."""
    llm = TerminalLLM(id=terminal_id, provider=provider, model=model, temperature=temperature, max_tokens=max_tokens)
    asyncio.run(_chat_loop(url, llm, _system_prompt(system_prompt), welcome))


async def _chat_loop(url: str, llm: TerminalLLM, system_prompt: str, welcome: Optional[str]) -> None:
    async with RelayClient(url) as relay:
        try:
            provider = get_chat_provider(llm.provider, relay)
        except UnsupportedProviderError as e:
            console.print(str(e), markup=False, style="red")
            raise typer.Exit(code=2)

        session = TerminalSession(provider, llm, system_prompt, welcome=welcome)
        if welcome:
            console.print(welcome)
        console.print("termchat. Type /help for commands. Ctrl+C to quit.")

        while True:
            try:
                user_input = (await asyncio.to_thread(input, f"{llm.id}> ")).strip()
            except (EOFError, KeyboardInterrupt):
                console.print("\nBye.")
                return

            if user_input in ("/exit", "/quit"):
                console.print("Bye.")
                return
            if user_input == "/help":
                console.print("Commands: /help, /id, /providers, /exit, /quit")
                continue
            if user_input == "/id":
                console.print(session.id)
                continue
            if user_input == "/providers":
                try:
                    info = await relay.providers()
                except RelayError as e:
                    console.print(f"[error] {e}", markup=False, style="red")
                    continue
                for name, available in info.get("providers", {}).items():
                    console.print(f"{name}: {'available' if available else 'not configured'}")
                continue
            if not user_input:
                continue

            # Normal turn
            try:
                async with session.turn(user_input) as reply:
                    async for piece in reply:
                        console.print(piece, end="", markup=False, highlight=False)
                console.print("")
            except RelayError as e:
                console.print(f"\n[error] {e}", markup=False, style="red")
