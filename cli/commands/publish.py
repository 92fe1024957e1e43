"""Publish Commands - trigger scheduled publishing passes"""

import typer
from rich.console import Console

from ..client.endpoints import StudioJobsClient, StudioJobsError
from ..utils.formatting import create_publish_result_panel, print_error, print_warning

console = Console()
app = typer.Typer(name="publish", help="Scheduled publishing commands")


@app.command("run")
def run_publish(
    dry: bool = typer.Option(False, "--dry", help="Only count due entries"),
):
    """🗓 Run one scheduled publish pass"""
    try:
        with StudioJobsClient() as client:
            if not client.cron_secret:
                print_warning("No cron secret configured (config set cron.secret ...)")
            result = client.run_publish(dry=dry)
    except StudioJobsError as e:
        print_error(f"Publish run failed: {e}")
        raise typer.Exit(1) from None

    console.print(create_publish_result_panel(result))
    if result.get("failed"):
        raise typer.Exit(2)


@app.command("run-one")
def run_publish_one(
    entry_id: str = typer.Argument(..., help="Publish schedule entry id"),
):
    """🔁 Re-queue one schedule entry and run a pass"""
    try:
        with StudioJobsClient() as client:
            result = client.run_publish_one(entry_id)
    except StudioJobsError as e:
        print_error(f"Publish re-run failed: {e}")
        raise typer.Exit(1) from None

    console.print(create_publish_result_panel(result))
    if result.get("failed"):
        raise typer.Exit(2)
