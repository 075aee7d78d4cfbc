"""CLI entry point for the protoclient tool.

This module is the composition root of the application.  It is the only
place that imports concrete implementations (ProtonetClient,
ProtonetTokenAuth).  All other layers depend solely on abstractions.
"""

import asyncio
import json
import logging
import mimetypes
import sys
from dataclasses import asdict
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable

# Ensure UTF-8 output on Windows where stdout may default to cp1252.
# reconfigure() is a no-op when encoding is already utf-8.
if hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
if hasattr(sys.stderr, "reconfigure"):
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from protoclient.auth import credentials as creds_store
from protoclient.core.exceptions import (
    AuthenticationRequiredError,
    ProtoclientError,
)
from protoclient.providers.protonet.auth import ProtonetTokenAuth
from protoclient.providers.protonet.client import ProtonetClient
from protoclient.services.chat_service import ChatService

app = typer.Typer()
auth_app = typer.Typer(help="Manage the Protonet session.")
chats_app = typer.Typer(help="Read and post private chat messages.")

app.add_typer(auth_app, name="auth")
app.add_typer(chats_app, name="chats")

console = Console(legacy_windows=False)
err_console = Console(stderr=True, legacy_windows=False)

_USER_AGENT = "protoclient/0.1"


# ---------------------------------------------------------------------------
# Output format
# ---------------------------------------------------------------------------


class OutputFormat(str, Enum):
    """Supported output formats for listing commands."""

    table = "table"
    json = "json"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log HTTP traffic to stderr."
    ),
):
    """Command-line client for Protonet private chats."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=err_console, show_path=False)],
        )


def _get_client(url: str) -> ProtonetClient:
    """Build a ProtonetClient for ``url``.

    Args:
        url: The server root URL.

    Returns:
        A :class:`~protoclient.providers.protonet.client.ProtonetClient`.
    """
    client = ProtonetClient(url, user_agent=_USER_AGENT)
    client.authentication_failed.connect(
        lambda: console.print(
            "[yellow]Session rejected by the server.[/yellow] "
            "Run [bold]protoclient auth login[/bold] to sign in again."
        )
    )
    return client


async def _open_service(
    client: ProtonetClient, auth: ProtonetTokenAuth
) -> ChatService:
    """Log ``client`` in with the remembered token and wrap it in a service.

    Raises:
        AuthenticationRequiredError: If no token is configured or the
            server rejected it.
    """
    if not await client.login_with_token(auth.get_token()):
        raise AuthenticationRequiredError(
            "The saved token was rejected. "
            "Run 'protoclient auth login' to sign in again."
        )
    return ChatService(client)


def _require_url(auth: ProtonetTokenAuth) -> str:
    url = auth.get_url()
    if not url:
        console.print(
            "[red]No server URL configured.[/red] "
            "Set PROTONET_URL or run [bold]protoclient auth login --url ...[/bold]."
        )
        raise typer.Exit(1)
    return url


def _run(action: Callable[[ChatService], Awaitable[Any]]) -> Any:
    """Open an authenticated session, run ``action`` and close the client.

    Library errors are reported on the console and turned into exit code 1.
    """
    auth = ProtonetTokenAuth()
    url = _require_url(auth)

    async def _session() -> Any:
        async with _get_client(url) as client:
            service = await _open_service(client, auth)
            return await action(service)

    try:
        return asyncio.run(_session())
    except ProtoclientError as e:
        console.print(f"[red]Error:[/red] {e}", highlight=False)
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# auth commands
# ---------------------------------------------------------------------------


@auth_app.command()
def login(
    url: str | None = typer.Option(
        None, "--url", help="Server root URL. Defaults to PROTONET_URL."
    ),
):
    """Sign in with a username and password and save the token locally."""
    url = url or _require_url(ProtonetTokenAuth())
    username = typer.prompt("Username")
    password = typer.prompt("Password", hide_input=True)

    async def _login() -> tuple[bool, str | None, str | None]:
        async with _get_client(url) as client:
            ok = await client.login_with_password(username, password)
            name = client.user.name if ok and client.user else None
            return ok, client.token, name

    try:
        ok, token, name = asyncio.run(_login())
    except ProtoclientError as e:
        console.print(f"[red]Login failed:[/red] {e}", highlight=False)
        raise typer.Exit(1)

    if not ok or not token:
        console.print("[red]Login rejected.[/red] Check your username and password.")
        raise typer.Exit(1)

    creds_store.save(url, token)
    console.print(f"[green]✓ Logged in as[/green] [bold]{name}[/bold]")
    console.print(f"[dim]Token saved to: {creds_store.credentials_path()}[/dim]")


@auth_app.command()
def status():
    """Show where the token comes from and validate it with the server."""
    auth = ProtonetTokenAuth()
    if not auth.is_authenticated():
        console.print("[yellow]No token configured.[/yellow]")
        console.print("Run [bold]protoclient auth login[/bold] to sign in.")
        raise typer.Exit(1)

    console.print(f"[green]✓ Token[/green]  {auth.credential_source()}")
    console.print("[dim]Validating with the server...[/dim]")

    async def _me(service: ChatService):
        return await service.provider.get_me()

    profile = _run(_me)
    if profile is None:
        raise typer.Exit(1)
    console.print(
        f"[green]✓ Active session for[/green] [bold]{profile.name}[/bold] "
        f"(id {profile.id})"
    )


@auth_app.command()
def logout():
    """Remove the locally saved token."""
    if creds_store.clear():
        console.print("[green]✓ Saved token removed.[/green]")
    else:
        console.print("[yellow]No saved token found.[/yellow]")


# ---------------------------------------------------------------------------
# chats commands
# ---------------------------------------------------------------------------


@chats_app.command(name="list")
def list_chats(
    output: OutputFormat = typer.Option(
        OutputFormat.table, "--output", "-o", help="Output format."
    ),
):
    """List your private chats."""
    data = _run(lambda service: service.get_chats())

    if output == OutputFormat.json:
        print(json.dumps([asdict(c) for c in data], indent=2))
        return

    table = Table(title="Private chats", show_lines=False)
    table.add_column("#", justify="right", style="dim", width=4)
    table.add_column("ID", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Updated", justify="right")
    for i, chat in enumerate(data, 1):
        table.add_row(
            str(i), str(chat.id), chat.title or "—", chat.updated_at or "—"
        )
    console.print(table)
    console.print(
        f"[dim]Total: {len(data)} chats — "
        "use [bold]chats messages <#>[/bold] to read one[/]"
    )


@chats_app.command()
def messages(
    chat: str = typer.Argument(..., help="Chat # from 'chats list', id, or URL."),
    output: OutputFormat = typer.Option(
        OutputFormat.table, "--output", "-o", help="Output format."
    ),
):
    """Show the messages of a chat."""
    data = _run(lambda service: service.get_messages_for(chat))
    if data is None:
        console.print(
            f"[red]Error:[/red] No chat matching [bold]{chat!r}[/bold].",
            highlight=False,
        )
        raise typer.Exit(1)

    if output == OutputFormat.json:
        print(json.dumps([asdict(m) for m in data], indent=2))
        return

    table = Table(title=f"Messages — chat {chat}", show_lines=False)
    table.add_column("Date", style="dim")
    table.add_column("User", justify="right")
    table.add_column("Message")
    table.add_column("Files", justify="right")
    for m in data:
        table.add_row(
            m.created_at or "—",
            str(m.user_id) if m.user_id is not None else "—",
            m.message,
            str(len(m.files)) if m.files else "",
        )
    console.print(table)
    console.print(f"[dim]Total: {len(data)} messages[/]")


async def _post_to(service: ChatService, chat: str, post):
    target = await service.find_chat(chat)
    if target is None or not target.meeps_url:
        return None, False
    return await post(target.meeps_url), True


@chats_app.command()
def post(
    chat: str = typer.Argument(..., help="Chat # from 'chats list', id, or URL."),
    text: str = typer.Argument(..., help="Message text."),
):
    """Post a text message to a chat."""
    created, found = _run(
        lambda service: _post_to(
            service, chat, lambda url: service.provider.create_message(url, text)
        )
    )
    _report_post(chat, created, found)


@chats_app.command()
def upload(
    chat: str = typer.Argument(..., help="Chat # from 'chats list', id, or URL."),
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
):
    """Post a file to a chat."""
    content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"

    async def _upload(service: ChatService):
        with path.open("rb") as fh:
            return await _post_to(
                service,
                chat,
                lambda url: service.provider.create_file_message(
                    url, fh, content_type=content_type
                ),
            )

    created, found = _run(_upload)
    _report_post(chat, created, found)


def _report_post(chat: str, created, found: bool) -> None:
    if not found:
        console.print(
            f"[red]Error:[/red] No chat matching [bold]{chat!r}[/bold].",
            highlight=False,
        )
        raise typer.Exit(1)
    if created is None:
        raise typer.Exit(1)
    console.print(f"[green]✓ Posted message {created.id}[/green]")


# ---------------------------------------------------------------------------
# download
# ---------------------------------------------------------------------------


@app.command()
def download(
    url: str = typer.Argument(..., help="Resource URL, e.g. a file attachment."),
    dest: Path = typer.Argument(..., help="Where to write the file."),
):
    """Download a resource to a local file."""

    async def _download(service: ChatService) -> int:
        stream = await service.provider.open_download_stream(url)
        size = 0
        fh = None
        try:
            async for chunk in stream:
                if not chunk:
                    continue
                # Opened on the first chunk so an empty stream leaves no file.
                if fh is None:
                    fh = dest.open("wb")
                fh.write(chunk)
                size += len(chunk)
        finally:
            if fh is not None:
                fh.close()
            await stream.aclose()
        return size

    size = _run(_download)
    if size == 0:
        console.print(
            "[yellow]Nothing downloaded.[/yellow] "
            "The resource is empty or not accessible with this session."
        )
        raise typer.Exit(1)
    console.print(f"[green]✓ Saved {size} bytes to[/green] {dest}")
