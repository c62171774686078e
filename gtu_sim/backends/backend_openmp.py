import numpy as np
from numba import set_num_threads

from gtu_sim.backends.base_backend import SimulationBackend
from gtu_sim.config import SimulationConfig
from gtu_sim.io.logging_utils import logger
from gtu_sim.metrics.types import SimulationResult
from gtu_sim.metrics.timers import Timer
from gtu_sim.model.vehicles import TIME_EPSILON
from gtu_sim.model.world_state import advance_kernel


class OpenMPBackend(SimulationBackend):
    """
    OpenMP-like backend using Numba's parallel CPU execution.
    All GTUs are re-evaluated on one snapshot every dt (or earlier when a
    step expires sooner), and positions are advanced by a Numba
    @njit(parallel=True) kernel.
    """

    name = "openmp"

    def __init__(self, config: SimulationConfig):
        super().__init__(config)

        # Configure the number of threads used by Numba
        if self.config.num_threads > 0:
            set_num_threads(self.config.num_threads)

        self.world = self.build_world()

    def run(self) -> SimulationResult:
        cfg: SimulationConfig = self.config
        total_time = cfg.total_time
        steps = 0

        self.world.start(synchronous=True)

        # Warm-up call to trigger Numba JIT compilation (not measured)
        advance_kernel(np.zeros(1), np.zeros(1), np.zeros(1), cfg.dt)

        with Timer() as t:
            while total_time - self.world.time > TIME_EPSILON:
                self.world.step_synchronous(min(cfg.dt, total_time - self.world.time))
                steps += 1

        logger.debug(f"openmp: {steps} synchronous steps")
        return self.collect_result(self.world, t.elapsed)
