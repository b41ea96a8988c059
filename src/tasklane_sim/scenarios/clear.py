"""Clear scenario - drop the whole queue mid-run and start again.

After ``clear()`` nothing from the old epoch may report, even items whose
coroutine was still running. A second batch submitted afterwards must run
normally and in order.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from tasklane_sim.scenarios import Scenario, ScenarioInfo

if TYPE_CHECKING:
    import tasklane
    from tasklane_sim.display import SimulationState
    from tasklane_sim.runner import SimConfig


class ClearScenario(Scenario):
    """Clear the lane partway through, then resubmit."""
    
    @property
    def info(self) -> ScenarioInfo:
        return ScenarioInfo(
            name="clear",
            description="Clear the lane mid-run, then submit a second batch",
        )
    
    async def submit_workload(self, lane: tasklane.TaskLane, config: SimConfig, state: SimulationState) -> None:
        first_batch = config.count
        clear_after = config.clear_after if config.clear_after is not None else first_batch // 2
        clear_after = max(0, min(clear_after, first_batch - 1))
        
        for i in range(first_batch):
            lane.submit(self.make_item(i, config, state))
            state.submitted += 1
            state.add_event("queued", f"item_{i:04d}", "wait")
        
        while len(state.finished) < clear_after:
            await asyncio.sleep(0.01)
        
        stale = set(range(first_batch)) - set(state.finished)
        state.stale_indices.update(stale)
        lane.clear()
        state.dropped += len(stale)
        state.add_event("cleared", "lane", None, f"{len(stale)} dropped")
        
        # Second batch gets fresh indices so it can be told apart
        for i in range(first_batch, first_batch + first_batch // 2):
            lane.submit(self.make_item(i, config, state))
            state.submitted += 1
            state.add_event("queued", f"item_{i:04d}", "wait")
    
    def verify(self, state: SimulationState) -> list[str]:
        violations = super().verify(state)
        reported = state.stale_indices.intersection(state.finished)
        for index in sorted(reported):
            violations.append(f"item_{index:04d} reported after clear")
        return violations
