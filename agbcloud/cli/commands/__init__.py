"""CLI command modules."""

from __future__ import annotations

from typing import Any

import typer
from rich.console import Console

from agbcloud.exceptions import AuthenticationError

_console = Console()


def get_authenticated_client() -> Any:
    """Get an AgbCloudClient with fresh tokens, or exit with an error message."""
    from agbcloud.auth.flow import refresh_tokens_if_needed
    from agbcloud.client import AgbCloudClient

    client = AgbCloudClient()
    try:
        refresh_tokens_if_needed(client)
    except AuthenticationError as e:
        client.close()
        _console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except OSError as e:
        client.close()
        _console.print(f"[red]Failed to save refreshed tokens: {e}[/red]")
        raise typer.Exit(1)

    return client
