from dataclasses import dataclass, asdict
from typing import Literal, Optional


BackendName = Literal["sequential", "openmp", "mpi"]
PersonalityName = Literal["egoistic", "altruistic"]
SideName = Literal["left", "right"]
FollowingModelName = Literal["IDM", "IDM+"]


@dataclass
class SimulationConfig:
    # total time of simulation (seconds)
    total_time: float = 300.0
    # re-evaluation step of the synchronous (openmp) backend (seconds)
    dt: float = 0.5
    random_seed: int = 42

    backend: BackendName = "sequential"

    # openMP
    num_threads: int = 1
    # mpi
    num_processes: int = 1

    # road
    num_lanes: int = 2
    road_length: float = 2000.0           # [m]
    speed_limit: float = 33.3             # [m/s] ~120 km/h
    lane_drop_length: Optional[float] = None  # rightmost lane ends here [m]
    truck_lanes: Optional[int] = None     # trucks only on lanes with index < truck_lanes

    # demand
    arrival_rate: float = 0.3             # veh/s/lane
    max_vehicles: int = 500

    # vehicles
    vehicle_length: float = 4.0           # [m]
    vehicle_width: float = 2.0            # [m]
    max_speed: float = 41.7               # [m/s] ~150 km/h
    truck_fraction: float = 0.0
    truck_length: float = 12.0            # [m]
    truck_max_speed: float = 25.0         # [m/s] ~90 km/h

    # drivers
    following_model: FollowingModelName = "IDM+"
    personality: PersonalityName = "egoistic"
    preferred_side: SideName = "right"
    preferred_lane_incentive: float = 0.3      # [m/s^2]
    lane_change_threshold: float = 0.1         # [m/s^2]
    non_preferred_lane_incentive: float = -0.3  # [m/s^2]
    lane_change_cooldown: float = 3.0     # [s] no new lane change within this time
    look_ahead: float = 250.0             # [m]
    look_back: float = 100.0              # [m]
    route_horizon: float = 90.0           # [s] lane ends further away are ignored

    output_dir: str = "results"
    # scenario desc
    label: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)
