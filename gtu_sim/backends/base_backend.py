from abc import ABC, abstractmethod
from typing import Optional

from gtu_sim.config import SimulationConfig
from gtu_sim.metrics.types import SimulationResult
from gtu_sim.model.road_network import MultiLaneRoad
from gtu_sim.model.world_state import TrafficWorld


class SimulationBackend(ABC):
    """
    Abstract base for all backends (Sequential, OpenMP, MPI).
    """

    name: str = "base"

    def __init__(self, config: SimulationConfig):
        self.config = config

    @abstractmethod
    def run(self) -> SimulationResult:
        """
        Runs simulation and returns results.

        :return: metrics of the run, wall time excludes set-up
        :rtype: SimulationResult
        """
        raise NotImplementedError

    def build_world(self, random_seed: Optional[int] = None) -> TrafficWorld:
        cfg = self.config
        road = MultiLaneRoad(
            num_lanes=cfg.num_lanes,
            length=cfg.road_length,
            speed_limit=cfg.speed_limit,
            lane_drop_length=cfg.lane_drop_length,
            truck_lanes=cfg.truck_lanes,
        )
        return TrafficWorld(road, cfg, random_seed=random_seed)

    def collect_result(self, world: TrafficWorld, wall_time: float) -> SimulationResult:
        cfg = self.config
        vehicles_completed, avg_travel, avg_speed, throughput = world.get_metrics_summary(
            cfg.total_time
        )
        raw = world.metrics_raw

        return SimulationResult(
            backend=self.name,
            config=cfg.to_dict(),
            wall_time_seconds=wall_time,
            total_simulated_time=cfg.total_time,
            vehicles_completed=vehicles_completed,
            avg_travel_time=avg_travel,
            avg_speed=avg_speed,
            throughput_veh_per_min=throughput,
            lane_changes_left=raw.lane_changes_left,
            lane_changes_right=raw.lane_changes_right,
            evaluations=raw.evaluations,
            extra_stats=world.get_debug_stats(),
        )
