from gtu_sim.backends.base_backend import SimulationBackend
from gtu_sim.config import SimulationConfig
from gtu_sim.metrics.types import SimulationResult
from gtu_sim.metrics.timers import Timer


class SequentialBackend(SimulationBackend):
    """
    Event-driven implementation of the simulation.
    Every GTU is re-evaluated exactly when its acceleration step expires,
    or earlier when a neighbour changes lanes.
    Used as the reference for the other backends.
    """

    name = "sequential"

    def __init__(self, config: SimulationConfig):
        super().__init__(config)
        self.world = self.build_world()

    def run(self) -> SimulationResult:
        cfg: SimulationConfig = self.config

        with Timer() as t:
            self.world.start()
            self.world.run_until(cfg.total_time)

        return self.collect_result(self.world, t.elapsed)
