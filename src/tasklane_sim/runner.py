"""Simulation runner for tasklane-sim.

This module handles the actual simulation logic, decoupled from display.
It updates a SimulationState object that can be rendered by any display.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import tasklane
from tasklane_sim.scenarios import get_scenario

if TYPE_CHECKING:
    from tasklane_sim.display import SimulationState

logger = logging.getLogger(__name__)


@dataclass
class SimConfig:
    """Configuration for a simulation run."""

    count: int = 50
    latency_ms: int = 50
    latency_jitter: float = 0.5  # ±50% variance
    error_rate: float = 0.0
    fire_and_forget: float = 0.3  # Fraction of items launched without waiting
    cancel_rate: float = 0.2  # Fraction of items the cancellation scenario cancels
    clear_after: int | None = None  # Finished items before clear(); None = half
    duration: float | None = None
    submit_rate: float | None = None  # work/second, None = batch
    scenario: str = "ordered"
    stall_timeout: float | None = None


class SimulationRunner:
    """Runs simulations and updates state for display.

    This class is decoupled from display - it just updates state.
    The display polls state to render.

    Usage:
        config = SimConfig(count=100, latency_ms=50)
        state = SimulationState()
        runner = SimulationRunner(config, state)

        # In your event loop:
        await runner.run()
    """

    def __init__(self, config: SimConfig, state: "SimulationState"):
        self.config = config
        self.state = state
        self.scenario = get_scenario(config.scenario)

        self._lane: tasklane.TaskLane | None = None
        self._running = False

    async def run(self) -> list[str]:
        """Run the simulation to completion and return ordering violations."""
        self._running = True
        self.state.start_time = time.time()
        self.state.target_count = self.config.count
        self.state.latency_ms = self.config.latency_ms
        self.state.latency_jitter = self.config.latency_jitter
        self.state.error_rate = self.config.error_rate
        self.state.scenario_name = self.scenario.info.name

        self._lane = tasklane.TaskLane.create(name=f"sim-{self.scenario.info.name}")
        logger.debug("Running scenario %s with %d items", self.scenario.info.name, self.config.count)

        submit_task = asyncio.create_task(
            self.scenario.submit_workload(self._lane, self.config, self.state)
        )
        try:
            await self._monitor(submit_task)
        finally:
            if not submit_task.done():
                submit_task.cancel()
                try:
                    await submit_task
                except asyncio.CancelledError:
                    pass

        self._update_state()
        self.state.violations = self.scenario.verify(self.state)
        for violation in self.state.violations:
            logger.warning("Ordering violation: %s", violation)

        self._running = False
        return self.state.violations

    async def _monitor(self, submit_task: asyncio.Task) -> None:
        """Monitor until the workload is submitted and the lane drains."""
        while self._running:
            self._update_state()

            if submit_task.done():
                # Surface errors raised by the scenario itself
                submit_task.result()
                if self._lane is not None and self._lane.idle:
                    break

            # Check duration limit
            if self.config.duration and self._elapsed >= self.config.duration:
                logger.info("Duration limit of %.1fs reached", self.config.duration)
                break

            await asyncio.sleep(0.05)

    def _update_state(self) -> None:
        """Update simulation state from the lane."""
        if not self._lane:
            return

        self.state.elapsed = self._elapsed
        self.state.queued = self._lane.pending_count
        self.state.running = self._lane.in_flight_count
        self.state.epoch = self._lane.epoch

    @property
    def _elapsed(self) -> float:
        """Elapsed time since start."""
        return time.time() - self.state.start_time

    def stop(self) -> None:
        """Request simulation stop."""
        self._running = False

    def cleanup(self) -> None:
        """Drop whatever is still queued. Call after interrupt or completion."""
        if self._lane:
            self._lane.clear()
            self._lane = None
        self._running = False
