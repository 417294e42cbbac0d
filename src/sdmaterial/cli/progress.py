"""
Rich progress displays for CLI operations.

All output goes to stderr to preserve stdout for machine-readable output.
"""

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from sdmaterial.core.models import ModelDescriptor, ProgressSample
from sdmaterial.core.orchestrator import JobState

# Console for stderr output (preserves stdout for machine output)
console = Console(stderr=True)

_STATE_LABELS = {
    JobState.MODEL_SELECTING: "Selecting model",
    JobState.SUBMITTING: "Submitting",
    JobState.POLLING: "Generating image",
    JobState.DECODING: "Decoding",
}


class GenerationDisplay:
    """Callbacks for the orchestrator that drive a rich progress bar."""

    def __init__(self, progress: Progress, task_id: int, model: str | None) -> None:
        self._progress = progress
        self._task_id = task_id
        self._model = model

    def _describe(self, label: str) -> str:
        if not self._model:
            return label
        # Truncate long model names
        model_display = self._model if len(self._model) <= 40 else f"{self._model[:37]}..."
        return f"{label} [dim]({model_display})[/dim]"

    def on_state_change(self, state: JobState) -> None:
        label = _STATE_LABELS.get(state)
        if label is not None:
            self._progress.update(self._task_id, description=self._describe(label))

    def on_progress(self, sample: ProgressSample) -> None:
        self._progress.update(self._task_id, completed=sample.percent)


@contextmanager
def generation_progress(model: str | None = None) -> Iterator[GenerationDisplay]:
    """
    Display a progress bar while a generation job runs.

    Args:
        model: The checkpoint being used (display only)

    Yields:
        GenerationDisplay whose methods are passed to the orchestrator
    """
    progress = Progress(
        SpinnerColumn(spinner_name="dots"),
        TextColumn("[green]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )
    with progress:
        task = progress.add_task("Starting", total=100)
        yield GenerationDisplay(progress, task, model)
        progress.update(task, completed=100)


@contextmanager
def spinner(description: str) -> Iterator[None]:
    """Display a transient spinner around a short operation."""
    progress = Progress(
        SpinnerColumn(spinner_name="dots"),
        TextColumn("[cyan]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )
    with progress:
        task = progress.add_task(description, total=None)
        yield
        progress.update(task, completed=True)


def print_success_result(
    output_path: Path,
    generation_time: float,
    prompt_used: str,
    seed: int | None,
    normal_map_path: Path | None,
    warnings: Sequence[str] = (),
) -> None:
    """
    Print a rich formatted success message with generation details.

    Args:
        output_path: Path where the color image was saved
        generation_time: Time taken to generate (seconds)
        prompt_used: The prompt that was sent
        seed: Seed reported by the server (None if unknown)
        normal_map_path: Path of the normal map, if one was written
        warnings: Non-fatal warnings collected by the job
    """
    table = Table.grid(padding=(0, 2))
    table.add_column(style="cyan", justify="right", vertical="top")
    table.add_column(style="white")

    table.add_row("Saved to", f"[bold green]{output_path}[/bold green]")
    if normal_map_path is not None:
        table.add_row("Normal map", str(normal_map_path))
    table.add_row("Seed", str(seed) if seed is not None else "[yellow]unknown[/yellow]")
    table.add_row("Time", f"{generation_time:.1f}s")
    table.add_row("Prompt", f"[dim]{prompt_used}[/dim]")
    for warning in warnings:
        table.add_row("Warning", f"[yellow]{warning}[/yellow]")

    panel = Panel(
        table,
        title="[bold green]✓ Material Generated[/bold green]",
        border_style="green",
        padding=(1, 2),
    )

    console.print()
    console.print(panel)


def print_models_table(models: Sequence[ModelDescriptor]) -> None:
    """Print the server's model catalog."""
    table = Table(title="Models", title_style="bold cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name", style="white")
    table.add_column("Hash", style="dim")
    table.add_column("Title", style="dim")
    for index, model in enumerate(models):
        table.add_row(str(index), model.model_name, model.hash or "", model.title)
    console.print(table)


def print_progress_sample(sample: ProgressSample) -> None:
    """Print one progress reading."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="cyan", justify="right")
    table.add_column(style="white")
    table.add_row("Progress", f"{sample.percent:.0f}%")
    table.add_row("Status", sample.status_text)
    table.add_row("Job", sample.job_state or "[dim]idle[/dim]")
    table.add_row("ETA (relative)", f"{sample.eta_relative:.2f}")
    console.print(table)


def print_error(message: str) -> None:
    """Print an error message in red."""
    console.print(f"[red]✗[/red] {message}")


def print_success(message: str) -> None:
    """Print a success message in green."""
    console.print(f"[green]✓[/green] {message}")
