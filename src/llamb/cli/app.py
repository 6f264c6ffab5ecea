"""Main CLI application using Typer."""
import asyncio
import logging
import os
import signal
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..conversation import Conversation
from ..errors import LlambError, ProviderUnreachableError
from ..files import read_input_file, save_response
from ..llm import Provider, ResponseArtifact, create_llm_provider
from ..log_config import setup_logging
from ..streaming import CancellationToken
from .providers import get_engine, get_session_store, resolve_provider

logger = logging.getLogger(__name__)

# Load environment variables
load_dotenv()

# Create Typer app
app = typer.Typer(
    name="llamb",
    help="Ask LLMs questions from the terminal, with streaming answers and per-terminal history",
    no_args_is_help=True,
    add_completion=True,
)
session_app = typer.Typer(help="Manage the conversation of the current terminal")
app.add_typer(session_app, name="session")

# Answer text goes to stdout, everything else to stderr
console = Console()
err_console = Console(stderr=True)

EXIT_WORDS = ("exit", "quit", "q")


@app.callback()
def configure(
    log_level: str = typer.Option(
        os.getenv("LLAMB_LOG_LEVEL", "warning"),
        "--log-level",
        "-l",
        help="Log level (debug, info, warning, error)"
    ),
):
    """Configure logging for all commands."""
    setup_logging(log_level, console=err_console)


@contextmanager
def _cancel_on_interrupt(token: CancellationToken) -> Iterator[None]:
    """Route Ctrl-C to ``token`` while a request is in flight."""
    loop = asyncio.get_running_loop()
    installed = False
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
        installed = True
    except NotImplementedError:
        logger.debug("Signal handlers not supported on this platform")
    try:
        yield
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


def _print_chunk(text: str) -> None:
    console.print(text, end="", markup=False, highlight=False, soft_wrap=True)


def _print_unreachable(error: ProviderUnreachableError) -> None:
    err_console.print(f"[red]{error}[/red]")
    err_console.print(f"[dim]Try another provider with: {error.hint}[/dim]")


def _report(artifact: ResponseArtifact, stream: bool, output: Path | None, overwrite: bool) -> None:
    if not stream:
        console.print(artifact.text, markup=False, highlight=False)
    else:
        console.print()

    if artifact.cancelled:
        err_console.print("[yellow]Request cancelled[/yellow]")
        return

    if output is not None:
        path = save_response(artifact, output, overwrite=overwrite)
        kind = f"{artifact.detected_language or 'code'} code" if artifact.is_pure_code_block else "response"
        err_console.print(f"[green]Saved {kind} to {path}[/green]")


async def _ask_once(
    conversation: Conversation,
    question: str,
    provider: Provider,
    *,
    file_content: str | None = None,
    use_history: bool = True,
    stream: bool = True,
    output: Path | None = None,
    overwrite: bool = False,
) -> ResponseArtifact:
    token = CancellationToken()
    with _cancel_on_interrupt(token):
        artifact = await conversation.ask(
            question,
            provider,
            on_chunk=_print_chunk if stream else None,
            cancel_token=token,
            file_content=file_content,
            use_history=use_history,
            file_output=output is not None,
            stream=stream,
        )
    _report(artifact, stream, output, overwrite)
    return artifact


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question to ask"),
    file: Path | None = typer.Option(
        None,
        "--file",
        "-f",
        help="Attach the content of a file to the question"
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Save the answer to a file (code blocks are unwrapped)"
    ),
    overwrite: bool = typer.Option(
        False,
        "--overwrite",
        help="Overwrite the output file instead of choosing a new name"
    ),
    no_history: bool = typer.Option(
        False,
        "--no-history",
        help="Do not send or record conversation history"
    ),
    no_stream: bool = typer.Option(
        False,
        "--no-stream",
        help="Wait for the full answer instead of streaming it"
    ),
    provider_name: str | None = typer.Option(None, "--provider", "-p", help="Provider name"),
    model: str | None = typer.Option(None, "--model", "-m", help="Model to use"),
    base_url: str | None = typer.Option(None, "--base-url", "-u", help="Provider base URL"),
):
    """Ask a single question."""
    async def _ask():
        try:
            provider = resolve_provider(provider_name, base_url, model)
            file_content = read_input_file(file) if file else None
            conversation = Conversation(get_engine(err_console), get_session_store(not no_history))

            await _ask_once(
                conversation,
                question,
                provider,
                file_content=file_content,
                use_history=not no_history,
                stream=not no_stream,
                output=output,
                overwrite=overwrite,
            )

        except ProviderUnreachableError as e:
            _print_unreachable(e)
            raise typer.Exit(code=1)
        except (LlambError, OSError, ValueError) as e:
            err_console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)

    asyncio.run(_ask())


@app.command()
def chat(
    no_history: bool = typer.Option(
        False,
        "--no-history",
        help="Do not send or record conversation history"
    ),
    provider_name: str | None = typer.Option(None, "--provider", "-p", help="Provider name"),
    model: str | None = typer.Option(None, "--model", "-m", help="Model to use"),
    base_url: str | None = typer.Option(None, "--base-url", "-u", help="Provider base URL"),
):
    """Start an interactive conversation."""
    async def _chat():
        try:
            provider = resolve_provider(provider_name, base_url, model)
            conversation = Conversation(get_engine(err_console), get_session_store(not no_history))
        except LlambError as e:
            err_console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)

        console.print(f"[bold cyan]llamb chat[/bold cyan] [dim]({provider.name} / {provider.model})[/dim]")
        console.print("[dim]Type 'exit', 'quit', or 'q' to leave. Ctrl-C cancels a running answer.\n[/dim]")

        while True:
            try:
                user_input = console.input("[bold yellow]You:[/bold yellow] ")
            except (KeyboardInterrupt, EOFError):
                console.print("\n[dim]Goodbye![/dim]")
                break

            if not user_input.strip():
                continue

            if user_input.strip().lower() in EXIT_WORDS:
                console.print("[dim]Goodbye![/dim]")
                break

            try:
                await _ask_once(conversation, user_input, provider, use_history=not no_history)
            except ProviderUnreachableError as e:
                _print_unreachable(e)
            except LlambError as e:
                err_console.print(f"[red]Error: {e}[/red]")
            console.print()

    asyncio.run(_chat())


@app.command()
def models(
    provider_name: str | None = typer.Option(None, "--provider", "-p", help="Provider name"),
    base_url: str | None = typer.Option(None, "--base-url", "-u", help="Provider base URL"),
):
    """List the models offered by a provider."""
    async def _models():
        try:
            provider = resolve_provider(provider_name, base_url)
            async with create_llm_provider(provider) as transport:
                model_ids = await transport.list_models()
        except LlambError as e:
            err_console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        except Exception as e:
            err_console.print(f"[red]Error: could not list models from {base_url or 'provider'}: {e}[/red]")
            raise typer.Exit(code=1)

        table = Table(title=f"Models from {provider.name}")
        table.add_column("Model", style="cyan")
        for model_id in sorted(model_ids):
            table.add_row(model_id)
        console.print(table)

    asyncio.run(_models())


@session_app.command("new")
def session_new():
    """Start a new conversation for this terminal."""
    try:
        session = get_session_store().new_session()
    except LlambError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]Started new session {session.id}[/green]")


@session_app.command("clear")
def session_clear():
    """Clear the history of the current conversation."""
    try:
        get_session_store().clear_session()
    except LlambError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)
    console.print("[green]Session history cleared[/green]")


@session_app.command("list")
def session_list():
    """List stored conversations, newest first."""
    store = get_session_store()
    current_id = store.current_session().id

    table = Table(title=f"Sessions in {store.backend_type} store")
    table.add_column("Session", style="cyan")
    table.add_column("Last update")
    for session_id, updated in store.list_sessions():
        marker = " [green](current)[/green]" if session_id == current_id else ""
        table.add_row(f"{session_id}{marker}", updated.astimezone().strftime("%Y-%m-%d %H:%M:%S"))
    console.print(table)


@session_app.command("show")
def session_show():
    """Show the current conversation."""
    store = get_session_store()
    session = store.current_session()

    console.print(f"[bold cyan]Session:[/bold cyan] {session.id}")
    console.print(f"[dim]Terminal: {store.terminal_id}[/dim]\n")

    if not session.messages:
        console.print("[dim]No messages yet[/dim]")
        return

    for message in session.messages:
        style = "yellow" if message.role == "user" else "green"
        console.print(Panel(message.content, title=message.role, title_align="left", border_style=style))


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
