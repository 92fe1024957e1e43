"""Studio Jobs CLI - Main Entry Point"""

import typer
from rich.console import Console
from rich.panel import Panel

from .client.endpoints import StudioJobsClient, StudioJobsError
from .commands import config, publish, render
from .utils.config_manager import config as config_manager
from .utils.formatting import print_error, print_info

console = Console()

# Create main Typer app
app = typer.Typer(
    name="studio-jobs",
    help="🎬 Studio Jobs - render jobs and scheduled publishing",
    rich_markup_mode="rich",
)

# Add command subapps
app.add_typer(render.app, name="render")
app.add_typer(publish.app, name="publish")
app.add_typer(config.app, name="config")


@app.command()
def status():
    """📊 Check API status and queue depth"""
    base_url = config_manager.get("api.base_url")
    print_info(f"Checking connection to: {base_url}")

    try:
        with StudioJobsClient(base_url) as client:
            health = client.health_check()
    except StudioJobsError as e:
        print_error(f"Failed to connect: {e}")
        console.print(Panel(
            f"🚫 [red]Connection Failed[/red]\n\n"
            f"Make sure the Studio Jobs API is running at:\n"
            f"[blue]{base_url}[/blue]\n\n"
            f"You can update the API URL with:\n"
            f"[cyan]studio-jobs config set api.base_url <url>[/cyan]",
            title="Connection Error",
            border_style="red"
        ))
        raise typer.Exit(1) from None

    queues = health.get("queues") or {}
    console.print(Panel(
        f"🚀 [green]Connected Successfully![/green]\n\n"
        f"• Version: [cyan]{health.get('version', 'unknown')}[/cyan]\n"
        f"• Environment: [yellow]{health.get('environment', 'unknown')}[/yellow]\n"
        f"• Active renders: [cyan]{queues.get('render_active', 0)}[/cyan]\n"
        f"• Publishes due: [cyan]{queues.get('publish_due', 0)}[/cyan]\n"
        f"• API URL: [blue]{base_url}[/blue]",
        title="System Status",
        border_style="green"
    ))


@app.command()
def version():
    """📎 Show CLI version information"""
    from . import __version__

    console.print(Panel(
        f"🎬 [bold cyan]Studio Jobs CLI[/bold cyan]\n\n"
        f"• Version: [green]{__version__}[/green]",
        title="Version Info",
        border_style="cyan"
    ))


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    show_version: bool | None = typer.Option(
        None, "--version", "-v", help="Show version and exit", is_eager=True
    ),
):
    """
    🎬 Studio Jobs CLI

    Start and follow render jobs, and trigger scheduled publishing passes.
    """
    if show_version:
        from . import __version__
        console.print(f"Studio Jobs CLI v{__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


if __name__ == "__main__":
    app()
