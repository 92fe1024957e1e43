"""Rich Formatting Utilities for CLI Output"""

from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

STATUS_STYLES = {
    "queued": "yellow",
    "processing": "cyan",
    "succeeded": "green",
    "failed": "red",
    "canceled": "magenta",
    "scheduled": "yellow",
    "running": "cyan",
    "done": "green",
}


def print_success(message: str):
    """Print success message with green styling"""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    """Print error message with red styling"""
    console.print(f"[red]✗ {message}[/red]")


def print_warning(message: str):
    """Print warning message with yellow styling"""
    console.print(f"[yellow]⚠ {message}[/yellow]")


def print_info(message: str):
    """Print info message with blue styling"""
    console.print(f"[blue]ℹ {message}[/blue]")


def format_status(status: str | None) -> str:
    """Colour known statuses; unknown values are shown verbatim"""
    if not status:
        return "[dim]-[/dim]"
    style = STATUS_STYLES.get(status)
    return f"[{style}]{status}[/{style}]" if style else status


def create_render_job_table(job: dict[str, Any]) -> Table:
    """Key/value table for a single render job row"""
    table = Table(title="Render Job", box=box.ROUNDED, show_header=False)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")

    table.add_row("ID", str(job.get("id") or job.get("job_id", "")))
    table.add_row("Status", format_status(job.get("status")))
    table.add_row("Progress", f"{job.get('progress', 0)}%")
    table.add_row("Provider", job.get("provider") or "-")
    table.add_row("Provider job", job.get("provider_job_id") or "-")
    table.add_row("Output", job.get("output_url") or "-")
    if job.get("error_message"):
        table.add_row("Error", f"[red]{job['error_message']}[/red]")
    table.add_row("Updated", job.get("updated_at") or "-")

    return table


def create_publish_result_panel(result: dict[str, Any]) -> Panel:
    """Summary panel for a scheduled publish pass"""
    if result.get("mode") == "dry":
        return Panel(
            f"🔎 [bold]Dry run[/bold]\n\n"
            f"• Due entries: [cyan]{result.get('due', 0)}[/cyan]",
            title="Scheduled Publishing",
            border_style="blue",
        )

    processed = result.get("processed", 0)
    failed = result.get("failed", 0)
    border = "red" if failed else "green"
    return Panel(
        f"• Processed: [green]{processed}[/green]\n"
        f"• Failed: [red]{failed}[/red]",
        title="Scheduled Publishing",
        border_style=border,
    )
