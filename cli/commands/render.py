"""Render Commands - start, watch and inspect render jobs"""

import asyncio
import json
from pathlib import Path
from typing import Any

import typer
import yaml
from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn

from ..client.endpoints import StudioJobsClient, StudioJobsError, create_async_client
from ..poller import PollerState, RenderJobPoller
from ..utils.config_manager import config
from ..utils.formatting import (
    create_render_job_table,
    format_status,
    print_error,
    print_info,
    print_success,
)

console = Console()
app = typer.Typer(name="render", help="Render job commands")


def load_storyboard(path: Path) -> dict[str, Any]:
    """Read a storyboard from a JSON or YAML file"""
    text = path.read_text(encoding="utf-8")
    data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError("Storyboard file must contain a mapping")
    return data


@app.command("start")
def start_render(
    session_id: str = typer.Argument(..., help="Content session the render belongs to"),
    storyboard: Path = typer.Option(
        ..., "--storyboard", "-s", exists=True, dir_okay=False, help="Storyboard file"
    ),
    watch: bool = typer.Option(False, "--watch", "-w", help="Follow progress"),
    simulate: bool | None = typer.Option(
        None, "--simulate/--no-simulate", help="Drive the job with the simulator"
    ),
    interval: float | None = typer.Option(
        None, "--interval", "-i", min=0.1, help="Seconds between polls"
    ),
):
    """🎬 Start a render job"""
    try:
        board = load_storyboard(storyboard)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print_error(f"Could not read storyboard: {e}")
        raise typer.Exit(1) from None

    if simulate is None:
        simulate = bool(config.get("render.simulate", False))
    poll_interval = interval or float(config.get("render.poll_interval", 2.0))

    if watch:
        job = asyncio.run(_watch_render(session_id, board, simulate, poll_interval))
        console.print(create_render_job_table(job or {}))
        if not job or job.get("status") != "succeeded":
            raise typer.Exit(1)
        return

    try:
        with StudioJobsClient() as client:
            created = client.create_render_job(session_id, board)
            print_success(f"Render job created: {created['job_id']}")
            if simulate:
                print_info("Running simulator...")
                console.print(create_render_job_table(
                    client.simulate_render_job(created["job_id"])
                ))
            else:
                console.print(create_render_job_table(created))
    except StudioJobsError as e:
        print_error(f"Failed to start render: {e}")
        raise typer.Exit(1) from None


async def _watch_render(
    session_id: str, board: dict[str, Any], simulate: bool, interval: float
) -> dict[str, Any] | None:
    payload = {"session_id": session_id, "storyboard": board}

    with Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=console,
    ) as progress:
        task_id = progress.add_task("starting", total=100)

        def on_change(poller: RenderJobPoller) -> None:
            job = poller.job or {}
            progress.update(
                task_id,
                completed=job.get("progress") or 0,
                description=f"{poller.state.value} ({job.get('status', '-')})",
            )

        async with create_async_client() as client:
            poller = RenderJobPoller(
                client, interval=interval, simulate=simulate, on_change=on_change
            )
            try:
                await poller.start(payload)
            except StudioJobsError as e:
                print_error(f"Failed to start render: {e}")
                return None
            job = await poller.wait()

    if poller.state == PollerState.ERROR:
        print_error(f"Polling stopped: {poller.error}")
    return job


@app.command("get")
def get_render(job_id: str = typer.Argument(..., help="Render job id")):
    """🔍 Show a render job"""
    try:
        with StudioJobsClient() as client:
            job = client.get_render_job(job_id)
    except StudioJobsError as e:
        print_error(f"Failed to fetch render job: {e}")
        raise typer.Exit(1) from None

    console.print(create_render_job_table(job))
    console.print(f"Status: {format_status(job.get('status'))}")
