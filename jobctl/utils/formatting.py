"""Rich Formatting Utilities for CLI Output"""

from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

STATUS_STYLES = {
    "pending": "yellow",
    "processing": "blue",
    "retrying": "magenta",
    "completed": "green",
    "failed": "red",
    "cancelled": "dim",
}


def print_success(message: str):
    """Print success message with green styling"""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    """Print error message with red styling"""
    console.print(f"[red]✗ {message}[/red]")


def print_info(message: str):
    """Print info message with blue styling"""
    console.print(f"[blue]ℹ {message}[/blue]")


def format_status(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def create_jobs_table(jobs: list[dict[str, Any]], queue: str) -> Table:
    """Create a formatted table for a jobs list"""
    table = Table(title=f"Jobs in '{queue}'", box=box.ROUNDED)

    table.add_column("ID", justify="left", style="cyan", no_wrap=True)
    table.add_column("Type", justify="left", style="magenta")
    table.add_column("Status", justify="center")
    table.add_column("Priority", justify="right", style="yellow")
    table.add_column("Attempts", justify="center")
    table.add_column("Created", justify="left", style="white")

    for job in jobs:
        table.add_row(
            str(job.get("id", ""))[:8],  # Short ID
            job.get("type", ""),
            format_status(job.get("status", "")),
            str(job.get("priority", "")),
            f"{job.get('attempts', 0)}/{job.get('max_attempts', 0)}",
            job.get("created_at", "—"),
        )

    return table


def create_job_panel(job: dict[str, Any]) -> Panel:
    """Create formatted panel for a single job"""
    lines = [
        f"• ID: [cyan]{job.get('id')}[/cyan]",
        f"• Queue: [blue]{job.get('queue')}[/blue]",
        f"• Type: [magenta]{job.get('type')}[/magenta]",
        f"• Status: {format_status(job.get('status', ''))}",
        f"• Priority: [yellow]{job.get('priority')}[/yellow]",
        f"• Attempts: {job.get('attempts', 0)}/{job.get('max_attempts', 0)}",
        f"• Created: {job.get('created_at')}",
    ]
    if job.get("next_retry_at"):
        lines.append(f"• Next retry: [magenta]{job['next_retry_at']}[/magenta]")
    if job.get("completed_at"):
        lines.append(f"• Completed: {job['completed_at']}")
    if job.get("error"):
        lines.append(f"• Error: [red]{job['error']}[/red] ({job.get('error_code')})")
    if job.get("result") is not None:
        lines.append(f"• Result: [green]{job['result']}[/green]")

    return Panel("\n".join(lines), title="Job", border_style="cyan")


def create_stats_panel(queue: str, stats: dict[str, Any]) -> Panel:
    """Create formatted panel for queue statistics"""
    content = f"""
📊 [bold blue]Queue '{queue}'[/bold blue]

• Pending: [yellow]{stats.get("pending", 0)}[/yellow]
• Processing: [blue]{stats.get("processing", 0)}[/blue]
• Completed: [green]{stats.get("completed", 0)}[/green]
• Failed: [red]{stats.get("failed", 0)}[/red]
• Cancelled: [dim]{stats.get("cancelled", 0)}[/dim]
• Total Processed: [cyan]{stats.get("total_processed", 0)}[/cyan]
• Avg Processing Time: [yellow]{stats.get("average_processing_time", 0):.1f}ms[/yellow]
"""

    return Panel(content, title="Queue Stats", border_style="green")
