from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from .errors import ProgrammingError
from .vehicles import KinematicState, LateralDirection


@dataclass(frozen=True)
class Headway:
    """
    A perceived neighbour.

    distance is the signed offset of the neighbour's front relative to the
    observer's front: positive ahead, negative behind. None or NaN means
    there is no relevant neighbour.
    """

    other: KinematicState
    distance: Optional[float]

    @classmethod
    def between(cls, own: KinematicState, other: KinematicState) -> "Headway":
        return cls(other=other, distance=other.position - own.position)

    @property
    def is_absent(self) -> bool:
        return self.distance is None or math.isnan(self.distance)

    @property
    def is_ahead(self) -> bool:
        return not self.is_absent and self.distance >= 0.0

    def gap(self, own_length: float) -> float:
        """Net bumper-to-bumper gap; negative when the two vehicles overlap."""
        if self.is_absent:
            return math.inf
        if self.is_ahead:
            return self.distance - self.other.length
        return -self.distance - own_length


@dataclass(frozen=True)
class AccelerationStep:
    acceleration: float          # [m/s^2]
    valid_until: float           # [s] absolute simulated time
    duration: float              # [s] valid_until - evaluation time

    def __post_init__(self) -> None:
        if not self.duration > 0.0:
            raise ProgrammingError(
                f"AccelerationStep must stay valid beyond its evaluation time (duration={self.duration})"
            )


@dataclass(frozen=True)
class DualAccelerationStep:
    """Ego as leader of the impacted neighbour, and that neighbour as follower."""

    leader_step: AccelerationStep
    follower_step: AccelerationStep

    @property
    def leader_acceleration(self) -> float:
        return self.leader_step.acceleration

    @property
    def follower_acceleration(self) -> float:
        return self.follower_step.acceleration


@dataclass(frozen=True)
class LaneMovementStep:
    step: AccelerationStep
    direction: LateralDirection = LateralDirection.NONE

    @property
    def acceleration(self) -> float:
        return self.step.acceleration

    @property
    def valid_until(self) -> float:
        return self.step.valid_until


def split_traffic(
    headways: Iterable[Headway] | None,
) -> Tuple[Optional[Headway], Optional[Headway]]:
    """
    Return the nearest leader and the nearest follower in a collection of
    headways. Absent headways are skipped.
    """
    leader: Optional[Headway] = None
    follower: Optional[Headway] = None
    seen = set()

    for h in headways or ():
        if h.is_absent:
            continue
        if h.other.id in seen:
            raise ProgrammingError(f"Neighbour {h.other.id} perceived twice in one lane")
        seen.add(h.other.id)

        if h.is_ahead:
            if leader is None or h.distance < leader.distance:
                leader = h
        elif follower is None or h.distance > follower.distance:
            follower = h

    return leader, follower
