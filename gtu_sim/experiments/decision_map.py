"""
Where does a driver change its mind?

For a reference car on a two-lane road and one other car in the lane that
matters, find the headway at which the lane-change decision flips, as a
function of the speed difference between the two. Merging right the other
car drives in the right lane; merging left it drives ahead of or behind
the reference car in its own lane.
"""

from __future__ import annotations

import math
from typing import Dict, Optional, Tuple

import numpy as np

from gtu_sim.model.car_following import IDM, GtuFollowingModel
from gtu_sim.model.headway import Headway, LaneMovementStep
from gtu_sim.model.lane_change import LaneChangeModel
from gtu_sim.model.road_network import MultiLaneRoad
from gtu_sim.model.vehicles import Gtu, KinematicState, LateralDirection

# [km/h] reference speeds of the usual set of maps
STANDARD_SPEEDS = (30.0, 50.0, 80.0, 100.0, 120.0)

LOWER_BOUND = -500.0   # [m]
MIDPOINT = 0.0         # [m]
UPPER_BOUND = 500.0    # [m]

SPEED_LIMIT = 120.0 / 3.6

PREFERRED_INCENTIVE = 0.3
LANE_CHANGE_THRESHOLD = 0.1
NON_PREFERRED_INCENTIVE = -0.3


def default_following_model() -> GtuFollowingModel:
    return IDM(a=1.0, b=1.5, s0=2.0, t_safe=1.0, delta=1.0)


def _road() -> MultiLaneRoad:
    return MultiLaneRoad(
        num_lanes=2,
        length=UPPER_BOUND - LOWER_BOUND,
        speed_limit=SPEED_LIMIT,
    )


def compute_decision(
    headway: float,
    reference_speed: float,
    speed_difference: float,
    lane_change_model: LaneChangeModel,
    merge_right: bool,
    following_model: Optional[GtuFollowingModel] = None,
) -> LaneMovementStep:
    """
    Decision of the reference car with the other car `headway` metres ahead
    (negative: behind), front to front, driving `speed_difference` faster.
    Speeds in m/s.
    """
    model = following_model or default_following_model()
    road = _road()
    origin = -LOWER_BOUND
    reference_lane = "L1" if merge_right else "L0"

    reference = Gtu(
        id=0,
        length=4.0,
        width=2.0,
        max_speed=150.0 / 3.6,
        spawn_time=0.0,
        following_model=model,
        lane_change_model=lane_change_model,
        lane_positions={reference_lane: origin},
        speed=reference_speed,
        valid_until=0.0,
    )
    other = KinematicState(
        id=1,
        position=origin + headway,
        speed=max(0.0, reference_speed + speed_difference),
        acceleration=0.0,
        length=4.0,
        width=2.0,
        max_speed=150.0 / 3.6,
    )
    other_headway = Headway.between(reference.state_at(0.0), other)

    if merge_right:
        same_lane, preferred_lane = [], [other_headway]
    else:
        same_lane, preferred_lane = [other_headway], []

    return lane_change_model.compute_lane_change_and_acceleration(
        reference,
        road,
        same_lane,
        preferred_lane,
        [],
        SPEED_LIMIT,
        PREFERRED_INCENTIVE,
        LANE_CHANGE_THRESHOLD,
        NON_PREFERRED_INCENTIVE,
        0.0,
    )


def find_decision_point(
    min_headway: float,
    max_headway: float,
    reference_speed: float,
    speed_difference: float,
    lane_change_model: LaneChangeModel,
    merge_right: bool,
    following_model: Optional[GtuFollowingModel] = None,
    delta: float = 0.1,
) -> Optional[float]:
    """
    Bisect [min_headway, max_headway] for the headway at which the lateral
    direction changes.

    :param delta: width of the final interval [m]
    :return: headway [m], or None when both ends give the same direction
    """
    if max_headway <= min_headway:
        raise ValueError(f"Empty headway interval [{min_headway}, {max_headway}]")

    def direction(headway: float) -> LateralDirection:
        return compute_decision(
            headway, reference_speed, speed_difference, lane_change_model, merge_right, following_model
        ).direction

    low, high = min_headway, max_headway
    low_direction = direction(low)
    if low_direction == direction(high):
        return None

    mid = None
    steps = int(math.ceil(math.log((high - low) / delta, 2)))
    for _ in range(steps):
        mid = 0.5 * (low + high)
        if direction(mid) != low_direction:
            high = mid
        else:
            low = mid
    return mid


def decision_map(
    reference_speed: float,
    speed_differences: np.ndarray,
    lane_change_model: LaneChangeModel,
    merge_right: bool,
    following_model: Optional[GtuFollowingModel] = None,
    bounds: Tuple[float, float, float] = (LOWER_BOUND, MIDPOINT, UPPER_BOUND),
) -> np.ndarray:
    """
    Critical headways over a grid of speed differences.

    :return: array of shape (n, 2); column 0 is where the no-change zone
        begins (other car behind), column 1 where it ends (other car
        ahead); NaN where the decision does not flip
    """
    lower, middle, upper = bounds
    speed_differences = np.asarray(speed_differences, dtype=np.float64)
    result = np.full((speed_differences.shape[0], 2), np.nan)

    for i, dv in enumerate(speed_differences):
        for column, (low, high) in enumerate(((lower, middle), (middle, upper))):
            point = find_decision_point(
                low, high, reference_speed, float(dv), lane_change_model, merge_right, following_model
            )
            if point is not None:
                result[i, column] = point
    return result


def standard_decision_maps(
    speed_differences: np.ndarray,
    lane_change_model: LaneChangeModel,
    merge_right: bool,
    following_model: Optional[GtuFollowingModel] = None,
) -> Dict[float, np.ndarray]:
    """One decision map per reference speed in STANDARD_SPEEDS, keyed by km/h."""
    return {
        speed: decision_map(
            speed / 3.6, speed_differences, lane_change_model, merge_right, following_model
        )
        for speed in STANDARD_SPEEDS
    }
