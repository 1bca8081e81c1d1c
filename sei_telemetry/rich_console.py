"""
Rich console configuration for the SEI telemetry CLI.

Provides styled logging, progress bars and summary tables.
"""

import logging
from typing import Optional, Sequence, Tuple

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

from sei_telemetry.data_models import ExtractionResult, TelemetryRecord

# Custom theme for Tesla-inspired styling
TESLA_THEME = Theme({
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "bold green",
    "highlight": "bold magenta",
    "muted": "dim",
    "speed": "bold cyan",
    "gps": "green",
})

# Global console instance
console = Console(theme=TESLA_THEME)


def setup_rich_logging(verbose: bool = False) -> None:
    """
    Configure logging to use Rich handler for beautiful output.

    Args:
        verbose: Enable DEBUG level logging with full details
    """
    level = logging.DEBUG if verbose else logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                show_time=verbose,
                show_path=verbose,
                rich_tracebacks=True,
                tracebacks_show_locals=verbose,
                markup=False,
            )
        ],
        force=True,  # Override any existing configuration
    )


def print_extraction_summary(results: Sequence[Tuple[str, ExtractionResult]]) -> None:
    """
    Print one row per extracted file.

    Args:
        results: (file name, result) pairs in processing order
    """
    table = Table(title="SEI Telemetry", header_style="bold cyan")
    table.add_column("File", style="bold")
    table.add_column("Frames", justify="right")
    table.add_column("FPS", justify="right")
    table.add_column("Base Seq", justify="right")
    table.add_column("Duration", justify="right")

    for name, result in results:
        frames = f"[success]{len(result.frames):,}[/]" if result.has_telemetry else "[muted]0[/]"
        base = str(result.base_frame_seq_no) if result.base_frame_seq_no is not None else "[muted]-[/]"
        table.add_row(
            name,
            frames,
            f"{result.fps:.2f}",
            base,
            f"{result.duration_seconds:.1f}s",
        )

    console.print(table)


def print_record(record: Optional[TelemetryRecord], time_seconds: float) -> None:
    """Print a single telemetry record as a panel."""
    if record is None:
        console.print(f"[warning]No telemetry at {time_seconds:.2f}s[/]")
        return

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Field", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Frame", f"{record.frame_index} (seq {record.frame_seq_no})")
    table.add_row("Speed", f"[speed]{record.speed_mph:.1f} mph[/] / {record.speed_kph:.1f} km/h")
    table.add_row("Gear", record.gear_name)
    table.add_row("Autopilot", record.autopilot_name)
    table.add_row("Steering", f"{record.steering_wheel_angle:+.1f}°")
    table.add_row("Throttle", f"{record.accelerator_pedal_position * 100:.0f}%")
    table.add_row("Brake", "on" if record.brake_applied else "off")
    blinkers = [side for side, on in (("left", record.blinker_on_left), ("right", record.blinker_on_right)) if on]
    table.add_row("Blinkers", ", ".join(blinkers) or "[muted]none[/]")
    table.add_row("GPS", f"[gps]{record.latitude_deg:.6f}, {record.longitude_deg:.6f}[/] @ {record.heading_deg:.1f}°")
    table.add_row("G-Force", f"x {record.g_force_x:+.2f}  y {record.g_force_y:+.2f}  z {record.g_force_z:+.2f}")

    console.print(Panel(
        table,
        title=f"[bold]t = {time_seconds:.2f}s[/]",
        border_style="cyan",
        padding=(1, 2),
    ))


def print_error(message: str, hint: Optional[str] = None) -> None:
    """
    Print a styled error message.

    Args:
        message: Error message
        hint: Optional hint for resolution
    """
    console.print(f"\n[error]Error:[/] {message}")
    if hint:
        console.print(f"[muted]Hint: {hint}[/]")
