from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Dict, Literal, Optional, Tuple

from .errors import NetworkInconsistencyError, ProgrammingError

if TYPE_CHECKING:
    from .car_following import GtuFollowingModel
    from .lane_change import LaneChangeModel


class LateralDirection(IntEnum):
    NONE = 0
    LEFT = 1
    RIGHT = 2

    def flip(self) -> "LateralDirection":
        if self is LateralDirection.LEFT:
            return LateralDirection.RIGHT
        if self is LateralDirection.RIGHT:
            return LateralDirection.LEFT
        return LateralDirection.NONE


VehicleClass = Literal["car", "truck"]

# time slack for comparing event times
TIME_EPSILON = 1e-9


def integrate(position: float, speed: float, acceleration: float, dt: float) -> Tuple[float, float]:
    """
    Constant-acceleration motion over dt that stops at zero speed
    instead of driving backwards.
    """
    if dt <= 0.0:
        return position, speed
    if acceleration < 0.0:
        t_stop = speed / -acceleration if speed > 0.0 else 0.0
        if dt >= t_stop:
            return position + 0.5 * speed * t_stop, 0.0
    return (
        position + speed * dt + 0.5 * acceleration * dt * dt,
        speed + acceleration * dt,
    )


@dataclass(frozen=True)
class KinematicState:
    """Snapshot of one GTU at one simulated instant."""

    id: int
    position: float              # [m] front of the vehicle along the road
    speed: float                 # [m/s]
    acceleration: float          # [m/s^2]
    length: float                # [m]
    width: float                 # [m]
    max_speed: float             # [m/s]
    vehicle_class: VehicleClass = "car"

    @property
    def rear(self) -> float:
        return self.position - self.length


@dataclass
class Gtu:
    id: int
    length: float                # [m]
    width: float                 # [m]
    max_speed: float             # [m/s]
    spawn_time: float            # time when the GTU entered the road
    following_model: "GtuFollowingModel"
    lane_change_model: "LaneChangeModel"
    vehicle_class: VehicleClass = "car"
    spawn_position: float = 0.0  # front position when the GTU entered the road

    # lane id -> position of the front on that lane, at plan_start_time.
    lane_positions: Dict[str, float] = field(default_factory=dict)

    # current operational plan
    plan_start_time: float = 0.0
    speed: float = 0.0
    acceleration: float = 0.0
    valid_until: float = 0.0

    lane_changes_left: int = 0
    lane_changes_right: int = 0
    last_lane_change_time: Optional[float] = None
    evaluations: int = 0

    finished: bool = False
    finish_time: float | None = None

    def reference_lane(self) -> str:
        """Lane that carries the reference (front) point."""
        if not self.lane_positions:
            raise NetworkInconsistencyError(f"GTU {self.id} is not registered on any lane")
        return next(iter(self.lane_positions))

    def reference_position(self, t: float) -> Tuple[str, float]:
        lane = self.reference_lane()
        position, _ = self._advance(self.lane_positions[lane], t)
        return lane, position

    def position_at(self, t: float) -> float:
        return self.reference_position(t)[1]

    def speed_at(self, t: float) -> float:
        return self._advance(0.0, t)[1]

    def state_at(self, t: float) -> KinematicState:
        position, speed = self._advance(self.lane_positions[self.reference_lane()], t)
        return KinematicState(
            id=self.id,
            position=position,
            speed=speed,
            acceleration=self.acceleration if speed > 0.0 or self.acceleration > 0.0 else 0.0,
            length=self.length,
            width=self.width,
            max_speed=self.max_speed,
            vehicle_class=self.vehicle_class,
        )

    def set_plan(self, t: float, acceleration: float, valid_until: float) -> None:
        """
        Start a new constant-acceleration plan at time t.
        Called only after the decision for this instant has been made.
        """
        lane = self.reference_lane()
        position, speed = self._advance(self.lane_positions[lane], t)
        shift = position - self.lane_positions[lane]
        for lane_id in self.lane_positions:
            self.lane_positions[lane_id] += shift
        self.plan_start_time = t
        self.speed = speed
        self.acceleration = acceleration
        self.valid_until = valid_until

    def reset_kinematics(self, t: float, position: float, speed: float) -> None:
        """Overwrite the plan base, used when positions are integrated externally."""
        for lane_id in self.lane_positions:
            self.lane_positions[lane_id] = position
        self.plan_start_time = t
        self.speed = speed

    def change_lane(self, direction: LateralDirection, new_lane: str, t: float) -> None:
        """Instantaneous lane change, the front keeps its longitudinal position."""
        if direction is LateralDirection.NONE:
            raise ProgrammingError("change_lane called without a lateral direction")
        old_lane = self.reference_lane()
        position = self.lane_positions[old_lane]
        self.lane_positions = {new_lane: position}
        if direction is LateralDirection.LEFT:
            self.lane_changes_left += 1
        else:
            self.lane_changes_right += 1
        self.last_lane_change_time = t

    def mark_finished(self, t: float) -> None:
        self.finished = True
        self.finish_time = t
        self.lane_positions = {}

    def _advance(self, position: float, t: float) -> Tuple[float, float]:
        if t < self.plan_start_time - TIME_EPSILON:
            raise ProgrammingError(
                f"GTU {self.id} observed at t={t} before its plan start {self.plan_start_time}"
            )
        return integrate(position, self.speed, self.acceleration, t - self.plan_start_time)
