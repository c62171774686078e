from dataclasses import dataclass, field
from typing import Dict, Any


@dataclass
class SimulationResult:
    backend: str
    config: Dict[str, Any]

    # total time
    wall_time_seconds: float
    total_simulated_time: float

    # traffic stats
    vehicles_completed: int
    avg_travel_time: float
    # [m/s] road length over travel time, averaged over completed vehicles
    avg_speed: float
    # [veh/min]
    throughput_veh_per_min: float

    lane_changes_left: int = 0
    lane_changes_right: int = 0
    evaluations: int = 0

    # anything else (rejected insertions, per-rank counts, ...)
    extra_stats: Dict[str, Any] = field(default_factory=dict)
