"""Ordered scenario - the default workload pattern.

Every item runs in wait mode with jittered latency. Slow early items must
still finish before fast later items start.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from tasklane_sim.scenarios import Scenario, ScenarioInfo

if TYPE_CHECKING:
    import tasklane
    from tasklane_sim.display import SimulationState
    from tasklane_sim.runner import SimConfig


class OrderedScenario(Scenario):
    """Wait-mode items only.
    
    The simplest scenario: the lane must finish items in exactly the
    order they were submitted, whatever their latency.
    """
    
    @property
    def info(self) -> ScenarioInfo:
        return ScenarioInfo(
            name="ordered",
            description="Wait-mode items with jittered latency (default)",
        )
    
    async def submit_workload(self, lane: tasklane.TaskLane, config: SimConfig, state: SimulationState) -> None:
        for i in range(config.count):
            lane.submit(self.make_item(i, config, state))
            state.submitted += 1
            state.add_event("queued", f"item_{i:04d}", "wait")
            
            # Rate-limited submission
            if config.submit_rate:
                await asyncio.sleep(1.0 / config.submit_rate)
    
    def verify(self, state: SimulationState) -> list[str]:
        violations = super().verify(state)
        if state.started_order != sorted(state.started_order):
            violations.append("items started out of submission order")
        return violations
