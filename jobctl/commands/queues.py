"""Queue Commands - statistics and maintenance"""

import typer
from rich.console import Console
from rich.prompt import Confirm

from ..client.endpoints import JobQueueClient, JobQueueError
from ..utils.formatting import create_stats_panel, print_error, print_info, print_success

console = Console()
app = typer.Typer(name="queues", help="Queue statistics and maintenance")


@app.command("stats")
def show_stats(queue: str = typer.Argument(..., help="Queue name")):
    """📊 Show queue statistics"""
    try:
        with JobQueueClient() as client:
            stats = client.get_queue_stats(queue)
            console.print(create_stats_panel(queue, stats))

            if stats.get("failed", 0) > 0:
                print_info(f"Inspect failures with: jobctl jobs list -q {queue} -s failed")

    except JobQueueError as e:
        print_error(f"Failed to get queue stats: {e}")
        raise typer.Exit(1) from None


@app.command("cleanup")
def cleanup(
    queue: str = typer.Argument(..., help="Queue name"),
    older_than_days: int = typer.Option(7, "--older-than-days", "-d", min=0),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """🧹 Delete finished jobs older than the retention window"""
    if not yes and not Confirm.ask(
        f"Delete finished jobs in '{queue}' older than {older_than_days} days?"
    ):
        console.print("Cleanup cancelled.")
        return

    try:
        with JobQueueClient() as client:
            result = client.cleanup_queue(queue, older_than_days)
            print_success(f"Deleted {result.get('deleted_count', 0)} jobs from '{queue}'")

    except JobQueueError as e:
        print_error(f"Failed to clean up queue: {e}")
        raise typer.Exit(1) from None
