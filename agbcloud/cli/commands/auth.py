"""Authentication commands for the AgbCloud CLI."""

from __future__ import annotations

import typer
from rich.console import Console

from agbcloud.auth.constants import AUTH_TIMEOUT_SECONDS, DEFAULT_CALLBACK_PORT
from agbcloud.auth.flow import get_auth_status, run_login_flow, run_logout
from agbcloud.client import AgbCloudClient

console = Console()


def _show_auth_url(url: str, port: str) -> None:
    console.print(f"Waiting for callback on http://localhost:{port}/callback")
    console.print("\n[bold]Opening browser for authentication...[/bold]")
    console.print(f"If it doesn't open, visit:\n  {url}\n")


def login(
    port: str = typer.Option(DEFAULT_CALLBACK_PORT, "--port", help="Preferred local callback port"),
    timeout: int = typer.Option(AUTH_TIMEOUT_SECONDS, "--timeout", help="Seconds to wait for the browser login"),
) -> None:
    """Log in to AgbCloud through your browser."""
    console.print("[bold]Starting AgbCloud authentication...[/bold]")

    with AgbCloudClient() as client:
        result = run_login_flow(
            client,
            default_port=port,
            callback_timeout=timeout,
            on_auth_url=_show_auth_url,
        )

    if not result.success:
        console.print(f"\n[red]Authentication failed: {result.error}[/red]")
        raise typer.Exit(1)

    if result.warning:
        console.print(f"\n[yellow]Warning: {result.warning}[/yellow]")
        console.print("[green]You are logged in, but will need to log in again next time.[/green]")
        return

    console.print("\n[green]You are now logged in to AgbCloud![/green]")


def logout() -> None:
    """Invalidate the server session and clear local tokens."""
    with AgbCloudClient() as client:
        try:
            result = run_logout(client)
        except OSError as e:
            console.print(f"[red]Failed to clear local authentication data: {e}[/red]")
            raise typer.Exit(1)

    if result.warning:
        console.print(f"[yellow]Warning: {result.warning}[/yellow]")
    elif result.server_invalidated:
        console.print("Server session invalidated.")

    if result.had_session:
        console.print("[green]Successfully logged out from AgbCloud.[/green]")
    else:
        console.print("[green]Successfully logged out from AgbCloud (local session cleared).[/green]")


def status() -> None:
    """Show current authentication status."""
    auth_status = get_auth_status()

    if not auth_status.authenticated:
        console.print("[yellow]Not authenticated.[/yellow]")
        console.print("Run [bold]agbcloud login[/bold] to authenticate.")
        console.print(f"  Config: {auth_status.config_path}")
        raise typer.Exit(1)

    console.print("[green]Authenticated[/green]")
    console.print(f"  Login Token: {auth_status.masked_login_token}")
    console.print(f"  Session ID: {auth_status.session_id}")
    if auth_status.expires_at is not None:
        console.print(f"  Expires: {auth_status.expires_at.astimezone().strftime('%Y-%m-%d %H:%M:%S %Z')}")
    console.print(f"  Config: {auth_status.config_path}")
