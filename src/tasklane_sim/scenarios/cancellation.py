"""Cancellation scenario - cancel items while queued and while in flight.

Cancelled items must never report, whether they were still queued or
already waiting on their coroutine.
"""

from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING

from tasklane_sim.scenarios import Scenario, ScenarioInfo

if TYPE_CHECKING:
    import tasklane
    from tasklane_sim.display import SimulationState
    from tasklane_sim.runner import SimConfig


class CancellationScenario(Scenario):
    """Random cancellations against a wait-mode workload."""
    
    @property
    def info(self) -> ScenarioInfo:
        return ScenarioInfo(
            name="cancellation",
            description="Cancel queued and in-flight items at random",
        )
    
    async def submit_workload(self, lane: tasklane.TaskLane, config: SimConfig, state: SimulationState) -> None:
        loop = asyncio.get_running_loop()
        work_ids: dict[int, int] = {}
        
        for i in range(config.count):
            work_ids[i] = lane.submit(self.make_item(i, config, state))
            state.submitted += 1
            state.add_event("queued", f"item_{i:04d}", "wait")
        
        def cancel(index: int) -> None:
            work_id = work_ids[index]
            # Only cancellations that land before delivery are expected to stick
            if lane.is_alive(work_id):
                lane.cancel(work_id)
                state.cancelled_indices.add(index)
                state.cancelled += 1
                state.add_event("cancelled", f"item_{index:04d}", "wait")
        
        for i in range(config.count):
            if random.random() < config.cancel_rate:
                # Spread cancellations across the expected run time
                delay = random.uniform(0, config.count * config.latency_ms / 1000.0)
                loop.call_later(delay, cancel, i)
    
    def verify(self, state: SimulationState) -> list[str]:
        violations = super().verify(state)
        reported = state.cancelled_indices.intersection(state.finished)
        for index in sorted(reported):
            violations.append(f"cancelled item_{index:04d} still reported")
        return violations
