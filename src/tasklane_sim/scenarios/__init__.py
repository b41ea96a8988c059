"""Built-in scenarios for tasklane-sim.

Scenarios define workload patterns: what gets submitted, in which mode,
what gets cancelled or cleared, and which ordering rule must hold.
"""

from __future__ import annotations

import asyncio
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from tasklane import WorkItem

if TYPE_CHECKING:
    import tasklane
    from tasklane_sim.display import SimulationState
    from tasklane_sim.runner import SimConfig


class SimulatedError(RuntimeError):
    """Raised by simulated work to exercise the failure path."""


@dataclass
class ScenarioInfo:
    """Metadata about a scenario."""
    name: str
    description: str


class Scenario(ABC):
    """Base class for simulation scenarios.
    
    A scenario defines:
    - The workload (what to submit, wait mode or fire-and-forget)
    - Interference (cancellations, clears)
    - The ordering rule checked once the lane drains
    """
    
    @property
    @abstractmethod
    def info(self) -> ScenarioInfo:
        """Return scenario metadata."""
        ...
    
    @abstractmethod
    async def submit_workload(self, lane: "tasklane.TaskLane", config: "SimConfig", state: "SimulationState") -> None:
        """Submit the workload to the lane.
        
        Args:
            lane: The TaskLane to submit to
            config: Simulation configuration (latency, error_rate, etc.)
            state: State object to update for display
        """
        ...
    
    def verify(self, state: "SimulationState") -> list[str]:
        """Return ordering violations found after the run (empty = OK)."""
        return check_wait_order(state)
    
    # --- Workload helpers ---
    
    def make_item(
        self,
        index: int,
        config: "SimConfig",
        state: "SimulationState",
        *,
        fire_and_forget: bool = False,
    ) -> WorkItem:
        """Build a simulated work item whose callbacks report into state."""
        mode = "ff" if fire_and_forget else "wait"
        label = f"item_{index:04d}"
        
        def on_complete(result: dict) -> None:
            state.record_finished(index, fire_and_forget)
            state.completed += 1
            state.add_event("completed", label, mode, f"{result['latency_ms']}ms")
        
        def on_failure(error: BaseException) -> None:
            state.record_finished(index, fire_and_forget)
            state.failed += 1
            state.add_event("failed", label, mode, str(error))
        
        return WorkItem(
            task=simulated_work(index, config, state, label, mode),
            description=f"sim {mode} {label}",
            on_complete=on_complete,
            on_failure=on_failure,
            fire_and_forget=fire_and_forget,
        )


def simulated_work(
    index: int,
    config: "SimConfig",
    state: "SimulationState",
    label: str,
    mode: str,
) -> Callable[[], Coroutine[Any, Any, dict]]:
    """Return a zero-argument callable producing a coroutine with simulated latency."""
    
    async def run() -> dict:
        started = time.time()
        state.started_order.append(index)
        state.add_event("started", label, mode)
        
        base_latency = config.latency_ms / 1000.0
        if base_latency > 0:
            jitter = config.latency_jitter
            await asyncio.sleep(base_latency * random.uniform(1 - jitter, 1 + jitter))
        
        # Simulate errors
        if random.random() < config.error_rate:
            raise SimulatedError("Simulated error")
        
        return {"latency_ms": int((time.time() - started) * 1000)}
    
    return run


def check_wait_order(state: "SimulationState") -> list[str]:
    """Wait-mode items must finish in the order they were submitted."""
    violations = []
    finished = state.wait_finished_order
    for prev, cur in zip(finished, finished[1:]):
        if cur < prev:
            violations.append(f"item_{cur:04d} finished after item_{prev:04d}")
    return violations


# Import built-in scenarios
from tasklane_sim.scenarios.ordered import OrderedScenario
from tasklane_sim.scenarios.fire_and_forget import FireAndForgetScenario
from tasklane_sim.scenarios.cancellation import CancellationScenario
from tasklane_sim.scenarios.clear import ClearScenario

# Registry of built-in scenarios
SCENARIOS: dict[str, type[Scenario]] = {
    "ordered": OrderedScenario,
    "fire_and_forget": FireAndForgetScenario,
    "cancellation": CancellationScenario,
    "clear": ClearScenario,
}


def get_scenario(name: str) -> Scenario:
    """Get a scenario instance by name."""
    if name not in SCENARIOS:
        available = ", ".join(SCENARIOS.keys())
        raise ValueError(f"Unknown scenario: {name}. Available: {available}")
    return SCENARIOS[name]()


def list_scenarios() -> list[ScenarioInfo]:
    """List all available scenarios."""
    return [cls().info for cls in SCENARIOS.values()]
