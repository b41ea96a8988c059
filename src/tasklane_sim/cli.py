#!/usr/bin/env python3
"""
tasklane-sim: Interactive simulator for exercising tasklane.

Usage:
    tasklane-sim --count 100 --latency 20
    tasklane-sim --scenario cancellation --cancel-rate 0.3
    tasklane-sim --scenario clear --count 40 --verbose
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import signal
import sys
from datetime import datetime

from rich.console import Console
from rich.table import Table

from tasklane_sim.display import SimulationState, SimulatorDisplay, print_simple_stats
from tasklane_sim.runner import SimConfig, SimulationRunner
from tasklane_sim.scenarios import list_scenarios


def configure_logging(verbose: bool = False) -> None:
    """Configure logging for the simulator."""
    lane_logger = logging.getLogger("tasklane")
    if verbose:
        lane_logger.setLevel(logging.DEBUG)
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        lane_logger.addHandler(handler)
    else:
        # Silence library logs - simulator handles its own display
        lane_logger.setLevel(logging.CRITICAL)


async def run_with_display(config: SimConfig, use_tui: bool = True, verbose: bool = False) -> SimulationState:
    """Run simulation with visual display.

    Args:
        config: Simulation configuration
        use_tui: Use Rich TUI display (default True)
        verbose: Print event log instead of status updates (implies no-tui)
    """
    state = SimulationState()

    # Verbose mode: print each event as it happens
    if verbose:
        original_add_event = state.add_event

        def logging_add_event(event_type: str, label: str, mode: str | None = None, details: str = "") -> None:
            ts = datetime.now().strftime("%H:%M:%S.%f")[:-3]
            mode_str = f"[{mode}]" if mode else ""
            print(f"{ts} {event_type:<10} {mode_str:<7} {label:<12} {details}")
            original_add_event(event_type, label, mode, details)

        state.add_event = logging_add_event  # type: ignore

    runner = SimulationRunner(config, state)
    stall_ticks = 0
    last_finished = 0

    def stalled(tick_seconds: float) -> bool:
        """True once nothing has finished for config.stall_timeout seconds."""
        nonlocal stall_ticks, last_finished
        finished = len(state.finished)
        if finished == last_finished and (state.queued > 0 or state.running > 0):
            stall_ticks += 1
        else:
            stall_ticks = 0
        last_finished = finished
        return bool(config.stall_timeout) and stall_ticks * tick_seconds >= config.stall_timeout

    async def run_runner() -> None:
        try:
            await runner.run()
        except (KeyboardInterrupt, asyncio.CancelledError):
            runner.stop()
        finally:
            runner.cleanup()

    if verbose:
        print(f"\ntasklane-sim [verbose] scenario={config.scenario} count={config.count}")
        print(f"   Latency: {config.latency_ms}ms ±{int(config.latency_jitter*100)}%, Error: {config.error_rate * 100:.0f}%")
        print()
        print(f"{'TIME':<12} {'EVENT':<10} {'MODE':<7} {'ITEM':<12} DETAILS")
        print("-" * 72)
        await run_runner()
        print("-" * 72)

    elif use_tui:
        display = SimulatorDisplay(state)

        async def update_loop():
            """Background task to refresh display and detect stalls."""
            while True:
                if stalled(0.1):
                    state.add_event("timeout", "lane", None, f"Stalled for {config.stall_timeout}s")
                    runner.stop()
                    return
                display.refresh()
                await asyncio.sleep(0.1)

        with display:
            update_task = asyncio.create_task(update_loop())
            try:
                await run_runner()
            finally:
                update_task.cancel()
                try:
                    await update_task
                except asyncio.CancelledError:
                    pass
                display.refresh()
    else:
        print(f"\ntasklane-sim scenario={config.scenario}")
        print(f"   Count: {config.count}, Latency: {config.latency_ms}ms, Error: {config.error_rate * 100:.0f}%")
        print()

        async def update_loop():
            """Print progress periodically and detect stalls."""
            while True:
                print_simple_stats(state)
                if stalled(0.5):
                    print(f"\nTimeout: Stalled for {config.stall_timeout}s. Stopping.")
                    runner.stop()
                    return
                await asyncio.sleep(0.5)

        update_task = asyncio.create_task(update_loop())
        try:
            await run_runner()
        finally:
            update_task.cancel()
            try:
                await update_task
            except asyncio.CancelledError:
                pass
        print()  # Newline after progress

    print_final_summary(state)
    return state


def print_final_summary(state: SimulationState) -> None:
    """Print final summary after simulation."""
    console = Console()
    console.print()

    table = Table(title="Simulation Results", show_header=False, border_style="green")
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Scenario", state.scenario_name)
    table.add_row("Submitted", str(state.submitted))
    table.add_row("Completed", f"[green]{state.completed}[/green]")
    table.add_row("Failed", f"[red]{state.failed}[/red]" if state.failed else "0")
    table.add_row("Cancelled", str(state.cancelled))
    table.add_row("Dropped by clear", str(state.dropped))
    table.add_row("Duration", f"{state.elapsed:.2f}s")
    table.add_row("Throughput", f"{state.throughput:.2f}/s")
    if state.violations:
        table.add_row("Ordering", f"[red]{len(state.violations)} violations[/red]")
    else:
        table.add_row("Ordering", "[green]OK[/green]")

    console.print(table)
    for violation in state.violations[:10]:
        console.print(f"  [red]✗[/red] {violation}")


def main():
    parser = argparse.ArgumentParser(
        description="tasklane simulator - exercise ordering, cancellation and clear",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tasklane-sim --count 100 --latency 20
  tasklane-sim --scenario fire_and_forget --fire-and-forget 0.5
  tasklane-sim --scenario cancellation --cancel-rate 0.3
  tasklane-sim --scenario clear --clear-after 10
  tasklane-sim --list-scenarios
        """,
    )

    parser.add_argument(
        "--scenario",
        type=str,
        default="ordered",
        help="Scenario to run (default: ordered)",
    )
    parser.add_argument(
        "--list-scenarios",
        action="store_true",
        help="List available scenarios and exit",
    )
    parser.add_argument(
        "--count", "-n",
        type=int,
        default=50,
        help="Number of work items to submit (default: 50)",
    )
    parser.add_argument(
        "--latency", "-l",
        type=int,
        default=50,
        help="Base item latency in ms (default: 50)",
    )
    parser.add_argument(
        "--jitter", "-j",
        type=float,
        default=0.5,
        help="Latency variance as fraction, e.g. 0.5 = ±50%% (default: 0.5)",
    )
    parser.add_argument(
        "--error-rate", "-e",
        type=float,
        default=0.0,
        help="Fraction of work that fails, 0.0-1.0 (default: 0.0)",
    )
    parser.add_argument(
        "--fire-and-forget", "-f",
        type=float,
        default=0.3,
        help="Fraction of items launched fire-and-forget (default: 0.3)",
    )
    parser.add_argument(
        "--cancel-rate",
        type=float,
        default=0.2,
        help="Fraction of items cancelled in the cancellation scenario (default: 0.2)",
    )
    parser.add_argument(
        "--clear-after",
        type=int,
        default=None,
        help="Finished items before clear() in the clear scenario (default: half)",
    )
    parser.add_argument(
        "--duration", "-d",
        type=float,
        default=None,
        help="Maximum duration in seconds (default: run until complete)",
    )
    parser.add_argument(
        "--submit-rate", "-s",
        type=float,
        default=None,
        help="Submit rate (work/second), None = batch (default: batch)",
    )
    parser.add_argument(
        "--no-tui",
        action="store_true",
        help="Disable TUI, use simple text output",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Print event log instead of status updates (no-tui)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducible behavior (default: random)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Auto-stop if nothing finishes for N seconds (default: none)",
    )

    args = parser.parse_args()

    if args.list_scenarios:
        print("\nAvailable scenarios:\n")
        for info in list_scenarios():
            print(f"  {info.name:<16} {info.description}")
        print()
        sys.exit(0)

    if args.seed is not None:
        random.seed(args.seed)
        if args.verbose:
            print(f"Random seed: {args.seed}")

    for name in ("error_rate", "fire_and_forget", "cancel_rate"):
        value = getattr(args, name)
        if not 0.0 <= value <= 1.0:
            parser.error(f"--{name.replace('_', '-')} must be between 0.0 and 1.0")

    config = SimConfig(
        count=args.count,
        latency_ms=args.latency,
        latency_jitter=args.jitter,
        error_rate=args.error_rate,
        fire_and_forget=args.fire_and_forget,
        cancel_rate=args.cancel_rate,
        clear_after=args.clear_after,
        duration=args.duration,
        submit_rate=args.submit_rate,
        scenario=args.scenario,
        stall_timeout=args.timeout,
    )

    try:
        # Validate the scenario name before taking over the terminal
        SimulationRunner(config, SimulationState())
    except ValueError as e:
        parser.error(str(e))

    configure_logging(verbose=args.verbose)

    async def run_main():
        """Wrapper to handle signals properly."""
        loop = asyncio.get_running_loop()
        stop_event = asyncio.Event()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)

        main_task = asyncio.create_task(run_with_display(config, use_tui=not args.no_tui, verbose=args.verbose))
        stop_task = asyncio.create_task(stop_event.wait())

        done, pending = await asyncio.wait(
            [main_task, stop_task],
            return_when=asyncio.FIRST_COMPLETED,
        )

        for task in pending:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if stop_task in done:
            print("\nInterrupted.")
            sys.exit(130)

        state = main_task.result()
        if state.violations:
            sys.exit(1)

    try:
        asyncio.run(run_main())
    except KeyboardInterrupt:
        print("\nInterrupted.")
        sys.exit(130)


if __name__ == "__main__":
    main()
