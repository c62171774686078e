"""
Safety criterion for merges.

A merge is safe when the vehicle that ends up behind does not have to brake
harder than a given maximum deceleration, and nobody overlaps physically.
"""

from __future__ import annotations

import math
from typing import Iterable

from .car_following import GtuFollowingModel
from .headway import AccelerationStep, DualAccelerationStep, Headway, split_traffic
from .vehicles import KinematicState

# Substituted for a candidate lane that must not be entered. Both sides
# weigh -inf, so no personality can prefer it over staying.
TOO_DANGEROUS = DualAccelerationStep(
    AccelerationStep(-math.inf, math.inf, math.inf),
    AccelerationStep(-math.inf, math.inf, math.inf),
)


def _follower_copes(
    follower: KinematicState,
    leader_speed: float,
    gap: float,
    maximum_deceleration: float,
    speed_limit: float,
    model: GtuFollowingModel,
) -> bool:
    a = model.compute_acceleration(follower.speed, follower.max_speed, leader_speed, gap, speed_limit)
    return a >= -maximum_deceleration


def is_safe(
    reference: KinematicState,
    other: KinematicState,
    maximum_deceleration: float,
    speed_limit: float,
    model: GtuFollowingModel,
) -> bool:
    """
    Whichever of the two is behind follows the other; safe when its required
    acceleration is >= -maximum_deceleration.
    """
    if reference.position >= other.position:
        front, rear = reference, other
    else:
        front, rear = other, reference
    gap = front.rear - rear.position
    return _follower_copes(rear, front.speed, gap, maximum_deceleration, speed_limit, model)


def merge_is_safe(
    own: KinematicState,
    target_lane_traffic: Iterable[Headway] | None,
    maximum_deceleration: float,
    speed_limit: float,
    model: GtuFollowingModel,
) -> bool:
    """
    Headway-based gate for a merge of own into the lane described by
    target_lane_traffic.
    """
    headways = [h for h in (target_lane_traffic or ()) if not h.is_absent]

    for h in headways:
        if h.gap(own.length) < model.too_close_gap:
            return False

    _, follower = split_traffic(headways)
    if follower is None:
        return True
    return _follower_copes(
        follower.other,
        own.speed,
        follower.gap(own.length),
        maximum_deceleration,
        speed_limit,
        model,
    )
