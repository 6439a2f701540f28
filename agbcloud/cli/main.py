"""Main entry point for the AgbCloud CLI."""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from .commands import auth, image

app = typer.Typer(
    name="agbcloud",
    help="AgbCloud CLI - Log in and manage your custom images",
    no_args_is_help=True,
)

app.command("login")(auth.login)
app.command("logout")(auth.logout)
app.command("status")(auth.status)
app.add_typer(image.app, name="image")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_time=False, show_path=False)],
        force=True,
    )
    if not verbose:
        # httpx logs every request at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)


def _version_callback(value: bool) -> None:
    """Handle --version and exit early."""
    if value:
        from agbcloud import __version__

        typer.echo(f"agbcloud {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the CLI version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging."),
) -> None:
    """AgbCloud CLI root callback."""
    _ = version
    _configure_logging(verbose)


@app.command()
def version() -> None:
    """Show the CLI version."""
    from agbcloud import __version__

    typer.echo(f"agbcloud {__version__}")


if __name__ == "__main__":
    app()
