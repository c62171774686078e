from __future__ import annotations

import random
from dataclasses import dataclass, field
from functools import partial
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
from numba import njit, prange

from ..config import SimulationConfig
from ..io.logging_utils import logger

from .car_following import GtuFollowingModel, get_following_model
from .errors import NetworkInconsistencyError
from .headway import Headway, LaneMovementStep
from .lane_change import STAY_IN_LANE, LaneChangeModel, MobilLaneChangeModel, get_personality
from .road_network import Lane, MultiLaneRoad
from .safety import merge_is_safe
from .scheduler import EventScheduler
from .vehicles import Gtu, KinematicState, LateralDirection, VehicleClass


@dataclass
class SimulationMetricsRaw:
    finished_travel_times: List[float] = field(default_factory=list)
    finished_mean_speeds: List[float] = field(default_factory=list)
    finished_count: int = 0

    total_spawned: int = 0      # number of vehicles spawned in total
    rejected_insertions: int = 0
    lane_changes_left: int = 0
    lane_changes_right: int = 0
    evaluations: int = 0

    def record_spawned(self, n: int = 1) -> None:
        """Increment the count of spawned vehicles."""
        self.total_spawned += n

    def record_lane_change(self, direction: LateralDirection) -> None:
        if direction is LateralDirection.LEFT:
            self.lane_changes_left += 1
        elif direction is LateralDirection.RIGHT:
            self.lane_changes_right += 1

    def record_finished(self, gtu: Gtu, road_length: float) -> None:
        """Store metrics for a GTU that left the road."""
        if gtu.finish_time is None:
            return
        travel_time = gtu.finish_time - gtu.spawn_time
        self.finished_count += 1
        self.finished_travel_times.append(travel_time)
        if travel_time > 0.0:
            self.finished_mean_speeds.append((road_length - gtu.spawn_position) / travel_time)

    def compute_summary(self, total_sim_time: float) -> Tuple[int, float, float, float]:
        """
        Compute derived statistics:
        - total completed vehicles
        - average travel time
        - average speed over the trip
        - throughput (vehicles per minute)
        """
        if self.finished_count == 0:
            return 0, 0.0, 0.0, 0.0

        avg_travel = sum(self.finished_travel_times) / self.finished_count
        avg_speed = (
            sum(self.finished_mean_speeds) / len(self.finished_mean_speeds)
            if self.finished_mean_speeds
            else 0.0
        )
        throughput_per_min = self.finished_count / (total_sim_time / 60.0)

        return self.finished_count, avg_travel, avg_speed, throughput_per_min


@njit(parallel=True)
def advance_kernel(
    positions: np.ndarray,
    speeds: np.ndarray,
    accelerations: np.ndarray,
    dt: float,
) -> None:
    """
    Numba-parallel constant-acceleration integration, in place.
    Vehicles stop at zero speed instead of reversing.
    """
    n = positions.shape[0]

    for i in prange(n):
        v = speeds[i]
        a = accelerations[i]
        if a < 0.0:
            t_stop = v / -a if v > 0.0 else 0.0
            if dt >= t_stop:
                positions[i] = positions[i] + 0.5 * v * t_stop
                speeds[i] = 0.0
                continue
        positions[i] = positions[i] + v * dt + 0.5 * a * dt * dt
        speeds[i] = v + a * dt


class TrafficWorld:
    """
    Manages the full state of the simulation:
    - GTUs on a multi-lane road
    - arrivals at the start of the road
    - perception (headways in the own and adjacent lanes)
    - decisions through each GTU's lane-change model
    - re-evaluation, either event-driven (one pending event per GTU)
      or synchronous with a Numba integration kernel
    """

    def __init__(
        self,
        road: MultiLaneRoad,
        config: SimulationConfig,
        random_seed: Optional[int] = None,
    ) -> None:
        self.road = road
        self.config = config
        self.rng = random.Random(config.random_seed if random_seed is None else random_seed)

        self.preferred = (
            LateralDirection.RIGHT if config.preferred_side == "right" else LateralDirection.LEFT
        )
        self.following_model: GtuFollowingModel = get_following_model(config.following_model)
        self.lane_change_model: LaneChangeModel = MobilLaneChangeModel(
            get_personality(config.personality), self.preferred
        )

        self.scheduler = EventScheduler()
        self.gtus: Dict[int, Gtu] = {}
        self._next_gtu_id: int = 0
        # synchronous worlds re-evaluate every GTU themselves
        self.synchronous = False

        self.metrics_raw = SimulationMetricsRaw()

    @property
    def time(self) -> float:
        return self.scheduler.time

    # ------------------------ PUBLIC API ------------------------

    def start(self, synchronous: bool = False) -> None:
        """Schedule the first arrival on every lane."""
        self.synchronous = synchronous
        if self.config.arrival_rate <= 0.0:
            return
        for lane in self.road.lanes:
            self._schedule_arrival(lane.id, self.time)

    def run_until(self, end_time: float) -> None:
        """Event-driven run: every GTU is re-evaluated when its step expires."""
        self.scheduler.run_until(end_time)

    def step_synchronous(self, dt: float) -> float:
        """
        Synchronous step:
        1) process arrivals due now
        2) evaluate every GTU on the same snapshot
        3) apply decisions front to back, re-checking merges; a GTU in a
           lane that a vehicle ahead merged into is decided again
        4) integrate all GTUs with the Numba kernel

        The step is shortened to the earliest validity interval.
        Returns the step actually taken.
        """
        t = self.time
        self.scheduler.run_until(t)

        for gtu in list(self.gtus.values()):
            if gtu.position_at(t) >= self.road.length:
                self._destroy(gtu, t)

        active = list(self.gtus.values())
        decisions = [(gtu, self.evaluate(gtu, t)) for gtu in active]
        decisions.sort(key=lambda item: item[0].position_at(t), reverse=True)

        step = dt
        merged_into = set()
        for gtu, decision in decisions:
            if gtu.reference_lane() in merged_into:
                # a vehicle ahead just merged into this lane
                decision = self.evaluate(gtu, t)
            if decision.direction is not LateralDirection.NONE and not self._merge_still_safe(
                gtu, decision, t
            ):
                logger.debug(f"GTU {gtu.id} t={t:.3f}: merge {decision.direction.name} withdrawn")
                decision = self._decide(gtu, t, STAY_IN_LANE)
            self.apply(gtu, decision, t)
            if decision.direction is not LateralDirection.NONE:
                merged_into.add(gtu.reference_lane())
            step = min(step, decision.valid_until - t)

        # arrivals inside the step observe the plans that start at t
        self.scheduler.run_until(t + step)

        if active:
            positions = np.array([g.lane_positions[g.reference_lane()] for g in active], dtype=np.float64)
            speeds = np.array([g.speed for g in active], dtype=np.float64)
            accelerations = np.array([g.acceleration for g in active], dtype=np.float64)

            advance_kernel(positions, speeds, accelerations, step)

            for i, gtu in enumerate(active):
                gtu.reset_kinematics(t + step, float(positions[i]), float(speeds[i]))

        return step

    def add_gtu(
        self,
        lane_id: str,
        position: float,
        speed: float,
        vehicle_class: VehicleClass = "car",
        length: Optional[float] = None,
        max_speed: Optional[float] = None,
        lane_change_model: Optional[LaneChangeModel] = None,
        following_model: Optional[GtuFollowingModel] = None,
    ) -> Gtu:
        """Place a GTU on the road now, without an insertion check."""
        lane = self.road.get_lane(lane_id)
        cfg = self.config
        is_truck = vehicle_class == "truck"

        gtu = Gtu(
            id=self._next_gtu_id,
            length=length if length is not None else (cfg.truck_length if is_truck else cfg.vehicle_length),
            width=cfg.vehicle_width,
            max_speed=max_speed if max_speed is not None else (cfg.truck_max_speed if is_truck else cfg.max_speed),
            spawn_time=self.time,
            spawn_position=position,
            following_model=following_model or self.following_model,
            lane_change_model=lane_change_model or self.lane_change_model,
            vehicle_class=vehicle_class,
            lane_positions={lane.id: position},
            plan_start_time=self.time,
            speed=speed,
            valid_until=self.time,
        )
        self._next_gtu_id += 1
        self.gtus[gtu.id] = gtu
        self.metrics_raw.record_spawned()

        if not self.synchronous:
            self._schedule_evaluation(gtu, self.time)
        self._notify_neighbours(gtu, [lane], self.time)
        return gtu

    def evaluate(self, gtu: Gtu, t: float) -> LaneMovementStep:
        """Decide for one GTU on the snapshot at time t. Does not mutate anything."""
        model = gtu.lane_change_model
        if (
            gtu.last_lane_change_time is not None
            and t - gtu.last_lane_change_time < self.config.lane_change_cooldown
        ):
            model = STAY_IN_LANE
        return self._decide(gtu, t, model)

    def apply(self, gtu: Gtu, decision: LaneMovementStep, t: float) -> None:
        """Carry out a decision: optional lane change, then the new plan."""
        gtu.evaluations += 1
        self.metrics_raw.evaluations += 1

        if decision.direction is not LateralDirection.NONE:
            lane_id, position = gtu.reference_position(t)
            target = self.road.best_accessible_adjacent_lane(
                self.road.get_lane(lane_id), decision.direction, position, gtu.vehicle_class
            )
            if target is None:
                raise NetworkInconsistencyError(
                    f"GTU {gtu.id} decided {decision.direction.name} from {lane_id} but there is no such lane"
                )
            gtu.change_lane(decision.direction, target.id, t)
            self.metrics_raw.record_lane_change(decision.direction)
            logger.debug(f"GTU {gtu.id} t={t:.3f}: {lane_id} -> {target.id} at x={position:.1f}")

        gtu.set_plan(t, decision.acceleration, decision.valid_until)

    def perceive(self, gtu: Gtu, own: KinematicState, lane: Lane, t: float) -> List[Headway]:
        """
        Headways of every GTU on the lane within the look-back/look-ahead
        range, plus the lane end as a standing obstacle.
        """
        cfg = self.config
        headways: List[Headway] = []
        for other in self._occupants(lane.id):
            if other.id == gtu.id:
                continue
            h = Headway.between(own, other.state_at(t))
            if -cfg.look_back <= h.distance <= cfg.look_ahead:
                headways.append(h)

        # a GTU that overshot the end keeps it directly ahead
        if lane.length < self.road.length and lane.length - own.position <= cfg.look_ahead:
            headways.append(Headway.between(own, self._lane_end(lane, max(lane.length, own.position))))
        return headways

    def lane_incentives(
        self,
        own: KinematicState,
        lane: Lane,
        preferred_lane: Optional[Lane],
        non_preferred_lane: Optional[Lane],
    ) -> Tuple[float, float, float]:
        """
        (preferred incentive, lane change threshold, non-preferred incentive).
        A lane that ends within the route horizon is worth -v^2 / (2 * distance),
        the deceleration needed to stop at its end.
        """
        cfg = self.config
        preferred = cfg.preferred_lane_incentive
        threshold = cfg.lane_change_threshold
        non_preferred = cfg.non_preferred_lane_incentive

        current_end = self._lane_end_incentive(own, lane)
        if current_end is not None:
            threshold = current_end
        if preferred_lane is not None:
            end = self._lane_end_incentive(own, preferred_lane)
            if end is not None:
                preferred = min(preferred, end)
        if non_preferred_lane is not None:
            end = self._lane_end_incentive(own, non_preferred_lane)
            if end is not None:
                non_preferred = min(non_preferred, end)
        return preferred, threshold, non_preferred

    def get_metrics_summary(self, total_sim_time: float) -> Tuple[int, float, float, float]:
        """Return the aggregated simulation metrics."""
        return self.metrics_raw.compute_summary(total_sim_time)

    def get_debug_stats(self) -> Dict[str, int]:
        """
        Return simple debug stats:
        - total spawned vehicles
        - how many vehicles are still on the road
        - lane changes and evaluations
        """
        raw = self.metrics_raw
        return {
            "total_spawned": raw.total_spawned,
            "rejected_insertions": raw.rejected_insertions,
            "vehicles_in_world_end": len(self.gtus),
            "lane_changes_left": raw.lane_changes_left,
            "lane_changes_right": raw.lane_changes_right,
            "evaluations": raw.evaluations,
        }

    # ------------------------ INTERNAL LOGIC ------------------------

    def _decide(self, gtu: Gtu, t: float, model: LaneChangeModel) -> LaneMovementStep:
        lane_id, position = gtu.reference_position(t)
        lane = self.road.get_lane(lane_id)
        own = gtu.state_at(t)

        preferred_lane = self.road.best_accessible_adjacent_lane(
            lane, self.preferred, position, gtu.vehicle_class
        )
        non_preferred_lane = self.road.best_accessible_adjacent_lane(
            lane, self.preferred.flip(), position, gtu.vehicle_class
        )

        same_lane = self.perceive(gtu, own, lane, t)
        preferred_traffic = self.perceive(gtu, own, preferred_lane, t) if preferred_lane else []
        non_preferred_traffic = (
            self.perceive(gtu, own, non_preferred_lane, t) if non_preferred_lane else []
        )
        preferred_incentive, threshold, non_preferred_incentive = self.lane_incentives(
            own, lane, preferred_lane, non_preferred_lane
        )

        return model.compute_lane_change_and_acceleration(
            gtu,
            self.road,
            same_lane,
            preferred_traffic,
            non_preferred_traffic,
            lane.speed_limit,
            preferred_incentive,
            threshold,
            non_preferred_incentive,
            t,
        )

    def _merge_still_safe(self, gtu: Gtu, decision: LaneMovementStep, t: float) -> bool:
        lane_id, position = gtu.reference_position(t)
        target = self.road.best_accessible_adjacent_lane(
            self.road.get_lane(lane_id), decision.direction, position, gtu.vehicle_class
        )
        if target is None:
            return False
        own = gtu.state_at(t)
        model = gtu.following_model
        traffic = self.perceive(gtu, own, target, t)
        return merge_is_safe(own, traffic, model.maximum_safe_deceleration, target.speed_limit, model)

    def _occupants(self, lane_id: str) -> Iterable[Gtu]:
        return [g for g in self.gtus.values() if lane_id in g.lane_positions]

    def _lane_end(self, lane: Lane, position: float) -> KinematicState:
        # negative ids never collide with GTU ids
        return KinematicState(
            id=-(lane.index + 1),
            position=position,
            speed=0.0,
            acceleration=0.0,
            length=0.0,
            width=0.0,
            max_speed=0.0,
        )

    def _lane_end_incentive(self, own: KinematicState, lane: Lane) -> Optional[float]:
        if lane.length >= self.road.length:
            return None
        remaining = max(lane.length - own.position, self.following_model.too_close_gap)
        if own.speed > 0.0 and remaining / own.speed > self.config.route_horizon:
            return None
        return -own.speed * own.speed / (2.0 * remaining)

    # ---------- Event-driven re-evaluation ----------

    def _schedule_evaluation(self, gtu: Gtu, t: float) -> None:
        self.scheduler.schedule(t, partial(self._on_evaluate, gtu.id), gtu_id=gtu.id)

    def _on_evaluate(self, gtu_id: int, t: float) -> None:
        gtu = self.gtus[gtu_id]
        if gtu.position_at(t) >= self.road.length:
            self._destroy(gtu, t)
            return

        old_lane = self.road.get_lane(gtu.reference_lane())
        decision = self.evaluate(gtu, t)
        self.apply(gtu, decision, t)
        self._schedule_evaluation(gtu, decision.valid_until)

        if decision.direction is not LateralDirection.NONE:
            new_lane = self.road.get_lane(gtu.reference_lane())
            self._notify_neighbours(gtu, [old_lane, new_lane], t)

    def _notify_neighbours(self, gtu: Gtu, lanes: List[Lane], t: float) -> None:
        """
        Re-evaluate now every GTU that can perceive gtu in one of the lanes
        (the lanes themselves and their neighbours).
        """
        if self.synchronous:
            return
        indices = set()
        for lane in lanes:
            indices.update((lane.index - 1, lane.index, lane.index + 1))
        lane_ids = {lane.id for lane in self.road.lanes if lane.index in indices}
        position = gtu.position_at(t)
        cfg = self.config

        for other in list(self.gtus.values()):
            if other.id == gtu.id or not lane_ids.intersection(other.lane_positions):
                continue
            offset = position - other.position_at(t)
            if not -cfg.look_back <= offset <= cfg.look_ahead:
                continue
            pending = self.scheduler.pending(other.id)
            if pending is None or pending.time > t:
                self._schedule_evaluation(other, t)

    def _destroy(self, gtu: Gtu, t: float) -> None:
        lane_id, position = gtu.reference_position(t)
        speed = gtu.speed_at(t)
        overshoot = position - self.road.length
        finish = t - overshoot / speed if speed > 0.0 else t
        self.scheduler.cancel(gtu.id)
        gtu.mark_finished(max(finish, gtu.spawn_time))
        self.metrics_raw.record_finished(gtu, self.road.length)
        del self.gtus[gtu.id]
        logger.debug(f"GTU {gtu.id} left the road from {lane_id} at t={t:.3f}")

    # ---------- Arrivals ----------

    def _schedule_arrival(self, lane_id: str, t: float) -> None:
        headway = self.rng.expovariate(self.config.arrival_rate)
        self.scheduler.schedule(t + headway, partial(self._on_arrival, lane_id))

    def _on_arrival(self, lane_id: str, t: float) -> None:
        self._try_insert(lane_id, t)
        self._schedule_arrival(lane_id, t)

    def _try_insert(self, lane_id: str, t: float) -> Optional[Gtu]:
        """
        Insert a new GTU at the start of the lane when there is room:
        no overlap, a gap of at least the minimum headway, and no need
        to brake at the entrance.
        """
        cfg = self.config
        if len(self.gtus) >= cfg.max_vehicles:
            self.metrics_raw.rejected_insertions += 1
            return None

        lane = self.road.get_lane(lane_id)
        vehicle_class: VehicleClass = "car"
        if cfg.truck_fraction > 0.0 and self.rng.random() < cfg.truck_fraction:
            vehicle_class = "truck"
        if lane not in self.road.entry_lanes(vehicle_class):
            vehicle_class = "car"

        is_truck = vehicle_class == "truck"
        length = cfg.truck_length if is_truck else cfg.vehicle_length
        max_speed = cfg.truck_max_speed if is_truck else cfg.max_speed
        speed = min(max_speed, lane.speed_limit)
        model = self.following_model

        leader: Optional[KinematicState] = None
        for other in self._occupants(lane.id):
            state = other.state_at(t)
            if state.rear < length:
                self.metrics_raw.rejected_insertions += 1
                return None
            if leader is None or state.position < leader.position:
                leader = state

        if leader is not None:
            gap = leader.rear - length
            minimum = model.minimum_headway(
                speed, leader.speed, 0.01, cfg.look_ahead, lane.speed_limit, max_speed
            )
            a = model.compute_acceleration(speed, max_speed, leader.speed, gap, lane.speed_limit)
            if gap < minimum or a < 0.0:
                self.metrics_raw.rejected_insertions += 1
                return None

        return self.add_gtu(
            lane.id, length, speed, vehicle_class=vehicle_class, length=length, max_speed=max_speed
        )
