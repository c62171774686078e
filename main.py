from gtu_sim.config import SimulationConfig
from gtu_sim.experiments.runner import run_single
from gtu_sim.io.logging_utils import setup_logging, logger
from gtu_sim.io.results_writer import save_result_as_json
from gtu_sim.backends import BACKENDS
from gtu_sim.model.lane_change import PERSONALITIES


def choose_backend() -> str:
    print("=== Choose backend ===")
    for i, name in enumerate(BACKENDS.keys(), start=1):
        print(f"{i}. {name}")
    choice = input("Enter number: ").strip()

    try:
        idx = int(choice) - 1
        name = list(BACKENDS.keys())[idx]
    except (ValueError, IndexError):
        print("Invalid choice, falling back to 'sequential'")
        name = "sequential"
    return name


def choose_personality() -> str:
    names = list(PERSONALITIES.keys())
    choice = input(f"Driver personality {names} (default egoistic): ").strip().lower()
    if choice and choice not in PERSONALITIES:
        print("Unknown personality, falling back to 'egoistic'")
        return "egoistic"
    return choice or "egoistic"


def main():
    setup_logging()

    print("=== Multi-lane GTU Simulation ===")

    backend_name = choose_backend()
    personality = choose_personality()

    try:
        total_time = float(input("Total simulation time [s] (default 300): ") or "300")
        dt = float(input("Re-evaluation step dt for openmp [s] (default 0.5): ") or "0.5")
        num_lanes = int(input("Number of lanes (default 2): ") or "2")
        arrival_rate = float(input("Arrival rate [veh/s/lane] (default 0.3): ") or "0.3")
        max_veh = int(input("Max vehicles on the road (default 500): ") or "500")
    except ValueError:
        print("Invalid input, using defaults.")
        total_time, dt, num_lanes, arrival_rate, max_veh = 300.0, 0.5, 2, 0.3, 500

    cfg = SimulationConfig(
        backend=backend_name,
        total_time=total_time,
        dt=dt,
        num_lanes=num_lanes,
        arrival_rate=arrival_rate,
        max_vehicles=max_veh,
        personality=personality,
    )

    logger.info(f"Running simulation with backend='{backend_name}', personality='{personality}'")
    result = run_single(cfg)

    logger.info("Simulation finished.")
    logger.info(f"Wall time: {result.wall_time_seconds:.4f} s")
    logger.info(f"Vehicles completed: {result.vehicles_completed}")
    logger.info(f"Avg travel time: {result.avg_travel_time:.2f} s")
    logger.info(f"Avg speed: {result.avg_speed:.2f} m/s")
    logger.info(f"Lane changes left/right: {result.lane_changes_left}/{result.lane_changes_right}")
    logger.info(f"Evaluations: {result.evaluations}")
    logger.info(f"Throughput: {result.throughput_veh_per_min:.2f} veh/min")

    path = save_result_as_json(result, cfg.output_dir)
    logger.info(f"Results saved to {path}")


if __name__ == "__main__":
    main()
