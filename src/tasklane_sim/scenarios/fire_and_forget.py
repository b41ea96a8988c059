"""Fire-and-forget scenario - launches that do not hold the lane.

A fraction of items is submitted fire-and-forget. They overlap freely with
everything after them, while wait-mode items stay strictly sequential.
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


class FireAndForgetScenario(Scenario):
    """Mix of wait-mode and fire-and-forget items."""
    
    @property
    def info(self) -> ScenarioInfo:
        return ScenarioInfo(
            name="fire_and_forget",
            description="Wait-mode items mixed with fire-and-forget launches",
        )
    
    async def submit_workload(self, lane: tasklane.TaskLane, config: SimConfig, state: SimulationState) -> None:
        for i in range(config.count):
            ff = random.random() < config.fire_and_forget
            lane.submit(self.make_item(i, config, state, fire_and_forget=ff))
            state.submitted += 1
            state.add_event("queued", f"item_{i:04d}", "ff" if ff else "wait")
            
            if config.submit_rate:
                await asyncio.sleep(1.0 / config.submit_rate)
    
    def verify(self, state: SimulationState) -> list[str]:
        violations = super().verify(state)
        # Launches are ordered even when completions are not
        if state.started_order != sorted(state.started_order):
            violations.append("items launched out of submission order")
        return violations
