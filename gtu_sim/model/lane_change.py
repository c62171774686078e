from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Tuple

from ..io.logging_utils import logger

from .car_following import GtuFollowingModel
from .errors import ProgrammingError
from .headway import DualAccelerationStep, Headway, LaneMovementStep
from .road_network import Lane
from .safety import TOO_DANGEROUS, merge_is_safe
from .vehicles import Gtu, KinematicState, LateralDirection


@dataclass(frozen=True)
class Personality:
    """Reduces a DualAccelerationStep to the single value a driver cares about."""

    name: str
    weight: Callable[[DualAccelerationStep], float]


def _egoistic(steps: DualAccelerationStep) -> float:
    return steps.leader_acceleration


def _altruistic(steps: DualAccelerationStep) -> float:
    return steps.leader_acceleration + steps.follower_acceleration


EGOISTIC = Personality("egoistic", _egoistic)
ALTRUISTIC = Personality("altruistic", _altruistic)

PERSONALITIES: Dict[str, Personality] = {p.name: p for p in (EGOISTIC, ALTRUISTIC)}


def get_personality(name: str) -> Personality:
    try:
        return PERSONALITIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown personality '{name}'. Available: {', '.join(PERSONALITIES.keys())}"
        )


class LaneChangeModel(ABC):
    """
    Abstract base for lane-change models.

    preferred is the default driving side (right where traffic keeps right);
    the opposite side is the overtaking, non-preferred side.
    """

    name: str = "base"

    def __init__(self, preferred: LateralDirection = LateralDirection.RIGHT):
        if preferred is LateralDirection.NONE:
            raise ProgrammingError("The preferred side must be LEFT or RIGHT")
        self.preferred = preferred

    @property
    def non_preferred(self) -> LateralDirection:
        return self.preferred.flip()

    @abstractmethod
    def compute_lane_change_and_acceleration(
        self,
        gtu: Gtu,
        network,
        same_lane_traffic: Iterable[Headway] | None,
        preferred_lane_traffic: Iterable[Headway] | None,
        non_preferred_lane_traffic: Iterable[Headway] | None,
        speed_limit: float,
        preferred_lane_route_incentive: float,
        lane_change_threshold: float,
        non_preferred_lane_route_incentive: float,
        now: float,
    ) -> LaneMovementStep:
        """
        Decide the lateral direction and the acceleration for the GTU.

        :param network: lane adjacency collaborator, exposes get_lane() and
            best_accessible_adjacent_lane()
        :param lane_change_threshold: added to the value of staying; a higher
            threshold makes lane changes less likely
        :raises NetworkInconsistencyError: when the GTU's lane cannot be resolved
        """
        raise NotImplementedError

    @staticmethod
    def _reference(gtu: Gtu, network, now: float) -> Tuple[Lane, float, KinematicState]:
        lane_id, position = gtu.reference_position(now)
        lane = network.get_lane(lane_id)
        return lane, position, gtu.state_at(now)


class MobilLaneChangeModel(LaneChangeModel):
    """
    MOBIL-style lane changing: compare staying with merging to either
    adjacent lane, each candidate weighed by the driver's personality.
    """

    name = "mobil"

    def __init__(
        self,
        personality: Personality = EGOISTIC,
        preferred: LateralDirection = LateralDirection.RIGHT,
    ):
        super().__init__(preferred)
        self.personality = personality

    def compute_lane_change_and_acceleration(
        self,
        gtu,
        network,
        same_lane_traffic,
        preferred_lane_traffic,
        non_preferred_lane_traffic,
        speed_limit,
        preferred_lane_route_incentive,
        lane_change_threshold,
        non_preferred_lane_route_incentive,
        now,
    ) -> LaneMovementStep:
        lane, position, own = self._reference(gtu, network, now)
        model: GtuFollowingModel = gtu.following_model
        weight = self.personality.weight

        preferred_lane = network.best_accessible_adjacent_lane(
            lane, self.preferred, position, gtu.vehicle_class
        )
        non_preferred_lane = network.best_accessible_adjacent_lane(
            lane, self.non_preferred, position, gtu.vehicle_class
        )

        stay_steps = model.compute_dual_acceleration_step(own, same_lane_traffic, speed_limit, now)
        straight = weight(stay_steps) + lane_change_threshold

        preferred_steps = self._candidate(model, own, preferred_lane, preferred_lane_traffic, now)
        non_preferred_steps = self._candidate(
            model, own, non_preferred_lane, non_preferred_lane_traffic, now
        )

        if preferred_steps is None:
            if non_preferred_steps is None:
                return self._result(gtu, now, LateralDirection.NONE, stay_steps)
            if weight(non_preferred_steps) + non_preferred_lane_route_incentive > straight:
                return self._result(gtu, now, self.non_preferred, non_preferred_steps)
            return self._result(gtu, now, LateralDirection.NONE, stay_steps)

        if non_preferred_steps is None:
            if weight(preferred_steps) + preferred_lane_route_incentive > straight:
                return self._result(gtu, now, self.preferred, preferred_steps)
            return self._result(gtu, now, LateralDirection.NONE, stay_steps)

        preferred_attractiveness = weight(preferred_steps) + preferred_lane_route_incentive - straight
        non_preferred_attractiveness = (
            weight(non_preferred_steps) + non_preferred_lane_route_incentive - straight
        )
        if preferred_attractiveness <= 0.0 and non_preferred_attractiveness < 0.0:
            return self._result(gtu, now, LateralDirection.NONE, stay_steps)
        # the preferred lane has to win strictly; ties go to the overtaking lane
        if preferred_attractiveness > 0.0 and preferred_attractiveness > non_preferred_attractiveness:
            return self._result(gtu, now, self.preferred, preferred_steps)
        return self._result(gtu, now, self.non_preferred, non_preferred_steps)

    @staticmethod
    def _candidate(
        model: GtuFollowingModel,
        own: KinematicState,
        lane: Optional[Lane],
        traffic: Iterable[Headway] | None,
        now: float,
    ) -> Optional[DualAccelerationStep]:
        if lane is None:
            return None
        traffic = list(traffic or ())
        if not merge_is_safe(own, traffic, model.maximum_safe_deceleration, lane.speed_limit, model):
            return TOO_DANGEROUS
        return model.compute_dual_acceleration_step(own, traffic, lane.speed_limit, now)

    def _result(
        self,
        gtu: Gtu,
        now: float,
        direction: LateralDirection,
        steps: Optional[DualAccelerationStep],
    ) -> LaneMovementStep:
        if steps is None or steps is TOO_DANGEROUS:
            raise ProgrammingError(
                f"GTU {gtu.id}: decision {direction.name} selected a lane that is missing or unsafe"
            )
        logger.debug(
            f"GTU {gtu.id} t={now:.3f}: {self.personality.name} decision {direction.name}, "
            f"a={steps.leader_acceleration:.3f}"
        )
        return LaneMovementStep(steps.leader_step, direction)

    def __repr__(self) -> str:
        return f"MobilLaneChangeModel(personality={self.personality.name}, preferred={self.preferred.name})"


class FixedLaneChangeModel(LaneChangeModel):
    """
    Always tries the same direction (or none) and returns the plain
    car-following acceleration in the resulting lane. Used to make runs
    and tests reproducible, and to keep a GTU in its lane.
    """

    name = "fixed"

    def __init__(
        self,
        direction: LateralDirection = LateralDirection.NONE,
        preferred: LateralDirection = LateralDirection.RIGHT,
    ):
        super().__init__(preferred)
        self.direction = direction

    def compute_lane_change_and_acceleration(
        self,
        gtu,
        network,
        same_lane_traffic,
        preferred_lane_traffic,
        non_preferred_lane_traffic,
        speed_limit,
        preferred_lane_route_incentive,
        lane_change_threshold,
        non_preferred_lane_route_incentive,
        now,
    ) -> LaneMovementStep:
        lane, position, own = self._reference(gtu, network, now)
        model: GtuFollowingModel = gtu.following_model

        if self.direction is not LateralDirection.NONE:
            target = network.best_accessible_adjacent_lane(
                lane, self.direction, position, gtu.vehicle_class
            )
            if target is not None:
                traffic = (
                    preferred_lane_traffic
                    if self.direction is self.preferred
                    else non_preferred_lane_traffic
                )
                step = model.compute_acceleration_step(own, traffic, target.speed_limit, now)
                return LaneMovementStep(step, self.direction)

        step = model.compute_acceleration_step(own, same_lane_traffic, speed_limit, now)
        return LaneMovementStep(step, LateralDirection.NONE)

    def __repr__(self) -> str:
        return f"FixedLaneChangeModel(direction={self.direction.name})"


STAY_IN_LANE = FixedLaneChangeModel(LateralDirection.NONE)
