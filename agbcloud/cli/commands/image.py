"""Image commands for the AgbCloud CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import httpx
import typer
from rich.console import Console
from rich.table import Table

from agbcloud.cli.commands import get_authenticated_client
from agbcloud.cli.formatting import format_resources, format_timestamp, truncate
from agbcloud.exceptions import AgbCloudError
from agbcloud.images import (
    SUPPORTED_RESOURCE_COMBINATIONS,
    activate_image,
    create_image,
    deactivate_image,
    format_image_status,
    validate_cpu_memory,
)
from agbcloud.polling import StatusSnapshot

app = typer.Typer(help="Create and manage custom images", no_args_is_help=True)
console = Console()


def _print_supported_combinations() -> None:
    console.print("Supported combinations:")
    for cpu, memory in SUPPORTED_RESOURCE_COMBINATIONS.items():
        console.print(f"  {cpu}c{memory}g: --cpu {cpu} --memory {memory}")


def _show_task_status(snapshot: StatusSnapshot[Dict[str, Any]]) -> None:
    message = snapshot.payload.get("taskMsg")
    if message:
        console.print(f"Status: {snapshot.status} - {message}")
    else:
        console.print(f"Status: {snapshot.status}")


def _show_image_status(snapshot: StatusSnapshot[Dict[str, Any]]) -> None:
    console.print(f"Status: {format_image_status(snapshot.status)}")


@app.command()
def create(
    image_name: str = typer.Argument(help="Name for the new image"),
    dockerfile: Path = typer.Option(..., "--dockerfile", "-f", help="Path to the Dockerfile"),
    source_image_id: str = typer.Option(..., "--imageId", "-i", help="Source image ID"),
) -> None:
    """Create a custom image from a Dockerfile."""
    client = get_authenticated_client()

    try:
        console.print(f"[bold]Creating image {image_name}...[/bold]")
        result = create_image(client, image_name, dockerfile, source_image_id, on_status=_show_task_status)
    except (AgbCloudError, httpx.HTTPError, OSError) as e:
        console.print(f"[red]Image creation failed: {e}[/red]")
        raise typer.Exit(1)
    finally:
        client.close()

    if result.succeeded:
        if result.image_id:
            console.print(f"[green]Image created successfully! Image ID: {result.image_id}[/green]")
        else:
            console.print("[green]Image created successfully![/green]")
        return

    console.print(f"  Task ID: {result.task_id}")
    if result.timed_out:
        console.print("[yellow]Timed out waiting for image creation; it may still be in progress.[/yellow]")
    else:
        console.print(f"[red]Image creation failed: {result.message or result.status}[/red]")
    raise typer.Exit(1)


@app.command()
def activate(
    image_id: str = typer.Argument(help="The image ID"),
    cpu: int = typer.Option(0, "--cpu", "-c", help="CPU cores"),
    memory: int = typer.Option(0, "--memory", "-m", help="Memory in GB"),
) -> None:
    """Activate an image.

    Supported sizes are 2c4g, 4c8g and 8c16g. Without --cpu/--memory the
    server default is used.
    """
    try:
        validate_cpu_memory(cpu, memory)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        _print_supported_combinations()
        raise typer.Exit(1)

    client = get_authenticated_client()

    try:
        result = activate_image(client, image_id, cpu=cpu, memory=memory, on_status=_show_image_status)
    except (AgbCloudError, httpx.HTTPError) as e:
        console.print(f"[red]Image activation failed: {e}[/red]")
        raise typer.Exit(1)
    finally:
        client.close()

    if result.succeeded:
        if not result.mutated and result.initial_status == result.status:
            console.print(f"[green]Image {image_id} is already activated.[/green]")
        else:
            console.print(f"[green]Image activated successfully! Image ID: {image_id}[/green]")
        return

    console.print(f"  Image ID: {image_id}")
    if result.timed_out:
        console.print("[yellow]Timed out waiting for image activation; it may still be in progress.[/yellow]")
    else:
        console.print(f"[red]Image activation failed with status: {format_image_status(result.status or '')}[/red]")
    raise typer.Exit(1)


@app.command()
def deactivate(
    image_id: str = typer.Argument(help="The image ID"),
) -> None:
    """Deactivate a running image."""
    client = get_authenticated_client()

    try:
        result = deactivate_image(client, image_id, on_status=_show_image_status)
    except (AgbCloudError, httpx.HTTPError) as e:
        console.print(f"[red]Image deactivation failed: {e}[/red]")
        raise typer.Exit(1)
    finally:
        client.close()

    if result.succeeded:
        console.print(f"[green]Image deactivated successfully! Image ID: {image_id}[/green]")
        return

    console.print(f"  Image ID: {image_id}")
    if result.timed_out:
        console.print("[yellow]Timed out waiting for image deactivation; it may still be in progress.[/yellow]")
    else:
        console.print(f"[red]Image deactivation failed with status: {format_image_status(result.status or '')}[/red]")
    raise typer.Exit(1)


@app.command("list")
def list_images(
    image_type: str = typer.Option("User", "--type", "-t", help="User (custom images) or System (base images)"),
    page: int = typer.Option(1, "--page", "-p", help="Page number"),
    size: int = typer.Option(10, "--size", "-s", help="Page size"),
) -> None:
    """List images."""
    client = get_authenticated_client()

    try:
        result = client.images.list(image_type, page=page, page_size=size)
    except (AgbCloudError, httpx.HTTPError) as e:
        console.print(f"[red]Failed to list images: {e}[/red]")
        raise typer.Exit(1)
    finally:
        client.close()

    images = result.get("imageList") or []
    total = result.get("total", len(images))
    console.print(f"Found {total} images (Page {result.get('page', page)}, Size {result.get('pageSize', size)})")

    if not images:
        console.print("[yellow]No images found.[/yellow]")
        return

    table = Table(title=f"{image_type} Images")
    table.add_column("IMAGE ID", style="cyan", no_wrap=True)
    table.add_column("IMAGE NAME")
    table.add_column("STATUS", style="green")
    table.add_column("TYPE")
    table.add_column("CPU/MEMORY")
    table.add_column("UPDATED AT")

    for image in images:
        table.add_row(
            truncate(image.get("imageId") or "", 25),
            truncate(image.get("imageName") or "", 25),
            format_image_status(image.get("status") or ""),
            truncate(image.get("type") or "", 15),
            format_resources(image.get("cpu"), image.get("memory")),
            format_timestamp(image.get("updateTime")),
        )

    console.print(table)
