"""Rich-based display for tasklane-sim.

This module provides visual output for the simulator using Rich library.
It's decoupled from the simulation logic - it just renders data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text


@dataclass
class EventRecord:
    """A recent event for display."""

    timestamp: datetime
    event_type: str
    label: str
    mode: str | None = None
    details: str = ""


@dataclass
class SimulationState:
    """Current state of the simulation for display.

    This is the data contract between the runner and display.
    The runner and scenario callbacks update this; the display renders it.
    """

    # Lane stats
    submitted: int = 0
    queued: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0
    dropped: int = 0
    epoch: int = 0

    # Timing
    start_time: float = 0.0
    elapsed: float = 0.0

    # Ordering records (scenario indices, not lane ids)
    started_order: list[int] = field(default_factory=list)
    finished: list[int] = field(default_factory=list)
    wait_finished_order: list[int] = field(default_factory=list)
    cancelled_indices: set[int] = field(default_factory=set)
    stale_indices: set[int] = field(default_factory=set)
    violations: list[str] = field(default_factory=list)

    # Recent events (most recent first)
    events: list[EventRecord] = field(default_factory=list)
    max_events: int = 10

    # Config display
    target_count: int = 0
    latency_ms: int = 0
    latency_jitter: float = 0.2
    error_rate: float = 0.0
    scenario_name: str = "ordered"

    @property
    def throughput(self) -> float:
        """Items finished per second."""
        if self.elapsed > 0:
            return (self.completed + self.failed) / self.elapsed
        return 0.0

    @property
    def progress(self) -> float:
        """Fraction settled (0.0 to 1.0), counting cancelled and dropped items."""
        if self.submitted > 0:
            settled = self.completed + self.failed + self.cancelled + self.dropped
            return min(1.0, settled / self.submitted)
        return 0.0

    def record_finished(self, index: int, fire_and_forget: bool) -> None:
        """Note that an item delivered its outcome."""
        self.finished.append(index)
        if not fire_and_forget:
            self.wait_finished_order.append(index)

    def add_event(self, event_type: str, label: str, mode: str | None = None, details: str = "") -> None:
        """Add an event to the display log."""
        self.events.insert(0, EventRecord(
            timestamp=datetime.now(),
            event_type=event_type,
            label=label,
            mode=mode,
            details=details,
        ))
        # Trim to max
        if len(self.events) > self.max_events:
            self.events = self.events[:self.max_events]


class SimulatorDisplay:
    """Rich-based TUI display for the simulator.

    Shows:
    - Lane stats panel
    - Ordering check panel
    - Recent events log
    - Config footer
    """

    def __init__(self, state: SimulationState, console: Console | None = None):
        self.state = state
        self.console = console or Console()
        self._live: Live | None = None

    def __enter__(self) -> SimulatorDisplay:
        self._live = Live(
            self._build_layout(),
            console=self.console,
            refresh_per_second=10,
            screen=False,
        )
        self._live.__enter__()
        return self

    def __exit__(self, *args) -> None:
        if self._live:
            self._live.__exit__(*args)
            self._live = None

    def refresh(self) -> None:
        """Update the display with current state."""
        if self._live:
            self._live.update(self._build_layout())

    def _build_layout(self) -> Panel:
        layout = Layout()
        layout.split_column(
            Layout(name="lane", size=4),
            Layout(name="order", size=3),
            Layout(name="events", size=7),
            Layout(name="config", size=3),
        )
        layout["lane"].update(self._build_lane_section())
        layout["order"].update(self._build_order_section())
        layout["events"].update(self._build_events_section())
        layout["config"].update(self._build_config_section())

        return Panel(
            layout,
            title=f"[bold cyan]tasklane-sim[/bold cyan] [dim]{self.state.scenario_name}[/dim]",
            border_style="cyan",
        )

    def _build_lane_section(self) -> Panel:
        """Build lane stats panel."""
        s = self.state

        stats = Table.grid(expand=True, padding=(0, 2))
        for _ in range(4):
            stats.add_column(justify="left")
        stats.add_row(
            f"[dim]Queued:[/dim] [bold]{s.queued:,}[/bold]",
            f"[dim]In flight:[/dim] [bold yellow]{s.running}[/bold yellow]",
            f"[dim]Completed:[/dim] [bold green]{s.completed:,}[/bold green]",
            f"[dim]Failed:[/dim] [bold red]{s.failed}[/bold red]",
        )

        stats2 = Table.grid(expand=True, padding=(0, 2))
        for _ in range(4):
            stats2.add_column(justify="left")
        stats2.add_row(
            f"[dim]Cancelled:[/dim] [bold magenta]{s.cancelled}[/bold magenta]",
            f"[dim]Dropped:[/dim] [bold]{s.dropped}[/bold]",
            f"[dim]Progress:[/dim] [bold]{s.progress * 100:.0f}%[/bold]",
            f"[dim]Throughput:[/dim] [bold]{s.throughput:.1f}/s[/bold]",
        )

        content = Table.grid(expand=True)
        content.add_row(stats)
        content.add_row(stats2)

        return Panel(content, title=f"[bold]Lane[/bold] [dim]epoch {s.epoch}[/dim]", border_style="blue")

    def _build_order_section(self) -> Panel:
        """Build the live ordering check."""
        s = self.state
        order = s.wait_finished_order
        in_order = all(a < b for a, b in zip(order, order[1:]))
        if in_order:
            status = f"[green]● in order[/green] [dim]({len(order)} wait-mode items finished)[/dim]"
        else:
            status = "[red]● out of order[/red]"
        return Panel(status, title="[bold]Ordering[/bold]", border_style="blue")

    def _build_events_section(self) -> Panel:
        """Build recent events panel."""
        s = self.state

        table = Table(box=None, expand=True, padding=(0, 1), show_header=False)
        table.add_column("Time", width=10, style="dim")
        table.add_column("Event", width=12)
        table.add_column("Item", width=12)
        table.add_column("Mode", width=6)
        table.add_column("Details")

        event_styles = {
            "completed": "green",
            "failed": "red",
            "started": "yellow",
            "cancelled": "magenta",
            "cleared": "cyan",
            "queued": "dim",
        }

        for event in s.events[:5]:
            style = event_styles.get(event.event_type, "white")
            table.add_row(
                event.timestamp.strftime("%H:%M:%S"),
                f"[{style}]{event.event_type}[/{style}]",
                event.label,
                event.mode or "",
                event.details[:25] if event.details else "",
            )

        if not s.events:
            table.add_row("[dim]No events yet[/dim]", "", "", "", "")

        return Panel(table, title="[bold]Recent Events[/bold]", border_style="blue")

    def _build_config_section(self) -> Panel:
        """Build config footer."""
        s = self.state

        text = Text()
        text.append("Latency: ", style="dim")
        text.append(f"{s.latency_ms}ms", style="bold")
        if s.latency_jitter > 0:
            text.append(f" ±{s.latency_jitter*100:.0f}%", style="dim")
        text.append("  Error: ", style="dim")
        text.append(f"{s.error_rate*100:.0f}%", style="bold red" if s.error_rate > 0 else "bold")
        text.append("  Target: ", style="dim")
        text.append(f"{s.target_count:,}", style="bold")
        text.append("    Ctrl+C to stop", style="dim")

        return Panel(text, title="[bold]Config[/bold]", border_style="dim")


def print_simple_stats(state: SimulationState) -> None:
    """Print a one-line progress update."""
    s = state
    print(
        f"\r[{s.completed + s.failed}/{s.submitted}] "
        f"Q:{s.queued} R:{s.running} ✓:{s.completed} ✗:{s.failed} "
        f"⊘:{s.cancelled} ↺:{s.dropped} ({s.progress * 100:.0f}%) {s.throughput:.1f}/s",
        end="",
        flush=True,
    )
