from mpi4py import MPI

from gtu_sim.backends.base_backend import SimulationBackend
from gtu_sim.config import SimulationConfig
from gtu_sim.metrics.types import SimulationResult
from gtu_sim.metrics.timers import Timer


class MPIBackend(SimulationBackend):
    """
    MPI backend running independent replications.

    Every rank simulates the whole road with its own seed
    (random_seed + rank), event-driven as in the sequential backend.
    Ranks compute local metrics, which are then reduced (summed) to rank 0.
    Averages over all replications are computed on rank 0 and broadcast
    back to all ranks.
    """

    name = "mpi"

    def __init__(self, config: SimulationConfig):
        super().__init__(config)

        self.comm = MPI.COMM_WORLD
        self.rank = self.comm.Get_rank()
        self.size = self.comm.Get_size()

        # different seed per rank
        self.world = self.build_world(random_seed=self.config.random_seed + self.rank)

    def run(self) -> SimulationResult:
        cfg: SimulationConfig = self.config
        total_time = cfg.total_time

        with Timer() as t:
            self.world.start()
            self.world.run_until(total_time)

        # Local metrics (per rank)
        raw = self.world.metrics_raw
        local_finished = raw.finished_count
        local_sum_travel = float(sum(raw.finished_travel_times))
        local_sum_speed = float(sum(raw.finished_mean_speeds))
        local_counts = [
            raw.total_spawned,
            raw.lane_changes_left,
            raw.lane_changes_right,
            raw.evaluations,
        ]
        local_wall = t.elapsed

        # Reduce metrics to rank 0
        comm = self.comm
        global_finished = comm.reduce(local_finished, op=MPI.SUM, root=0)
        global_sum_travel = comm.reduce(local_sum_travel, op=MPI.SUM, root=0)
        global_sum_speed = comm.reduce(local_sum_speed, op=MPI.SUM, root=0)
        global_counts = [comm.reduce(c, op=MPI.SUM, root=0) for c in local_counts]
        global_wall = comm.reduce(local_wall, op=MPI.MAX, root=0)  # max wall time across ranks

        if self.rank == 0 and global_finished > 0:
            avg_travel = global_sum_travel / global_finished
            avg_speed = global_sum_speed / global_finished
            # throughput per replication
            throughput = global_finished / self.size / (total_time / 60.0)
        else:
            avg_travel = 0.0
            avg_speed = 0.0
            throughput = 0.0

        # Broadcast global metrics and wall time to all ranks
        global_data = (global_finished, avg_travel, avg_speed, throughput, global_counts, global_wall)
        global_data = comm.bcast(global_data, root=0)

        vehicles_completed, avg_travel, avg_speed, throughput, counts, wall_time = global_data
        spawned, changes_left, changes_right, evaluations = counts

        debug_stats = {
            "num_ranks": self.size,
            "rank": self.rank,
            "local_spawned": raw.total_spawned,
            "local_finished": local_finished,
            "global_spawned": spawned,
        }

        return SimulationResult(
            backend=self.name,
            config=cfg.to_dict(),
            wall_time_seconds=wall_time,
            total_simulated_time=total_time,
            vehicles_completed=vehicles_completed,
            avg_travel_time=avg_travel,
            avg_speed=avg_speed,
            throughput_veh_per_min=throughput,
            lane_changes_left=changes_left,
            lane_changes_right=changes_right,
            evaluations=evaluations,
            extra_stats=debug_stats,
        )
