from __future__ import annotations

from mpi4py import MPI

from gtu_sim.config import SimulationConfig
from gtu_sim.io.logging_utils import setup_logging, logger
from gtu_sim.io.results_writer import save_result_as_json
from gtu_sim.backends.backend_mpi import MPIBackend


def main() -> None:
    # Initialize logging (each rank gets the same config; we will log only on rank 0)
    setup_logging()

    comm = MPI.COMM_WORLD
    rank = comm.Get_rank()

    # Hard-coded config for MPI experiments: a lane drop on a three-lane road
    cfg = SimulationConfig(
        backend="mpi",
        total_time=1800.0,      # total simulated time [s]
        num_lanes=3,
        road_length=3000.0,
        lane_drop_length=2000.0,
        arrival_rate=0.4,       # vehicles per second per lane
        truck_fraction=0.1,
        truck_lanes=2,
        max_vehicles=2000,      # max vehicles on the road per rank
        random_seed=42,
        label="lane_drop",
    )

    # Create MPI backend directly, do NOT use run_single / get_backend
    backend = MPIBackend(cfg)
    result = backend.run()

    # Only rank 0 prints and saves results
    if rank == 0:
        logger.info("=== MPI run finished ===")
        logger.info(f"Backend: {result.backend}")
        logger.info(f"Config: {cfg.to_dict()}")
        logger.info(f"Replications: {result.extra_stats['num_ranks']}")
        logger.info(f"Wall time: {result.wall_time_seconds:.4f} s")
        logger.info(f"Vehicles completed: {result.vehicles_completed}")
        logger.info(f"Avg travel time: {result.avg_travel_time:.2f} s")
        logger.info(f"Avg speed: {result.avg_speed:.2f} m/s")
        logger.info(f"Lane changes left/right: {result.lane_changes_left}/{result.lane_changes_right}")
        logger.info(f"Throughput: {result.throughput_veh_per_min:.2f} veh/min")

        path = save_result_as_json(result, cfg.output_dir)
        logger.info(f"Results saved to {path}")


if __name__ == "__main__":
    main()
