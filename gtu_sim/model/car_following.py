from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from .errors import ProgrammingError
from .headway import AccelerationStep, DualAccelerationStep, Headway, split_traffic
from .vehicles import KinematicState

# shortest validity interval handed out, keeps valid_until strictly in the future
MINIMUM_STEP = 0.01


def _absent(gap: Optional[float]) -> bool:
    return gap is None or math.isnan(gap)


class GtuFollowingModel(ABC):
    """
    Abstract base for car-following models.

    Subclasses implement compute_acceleration(); the base class turns it into
    AccelerationSteps with a validity interval and handles the too-close
    sentinel, the lower bound and the dual (leader/follower) evaluation.
    """

    name: str = "base"

    def __init__(self, step_size: float = 0.5, too_close_gap: float = 0.01):
        if step_size <= 0.0:
            raise ProgrammingError(f"step_size must be > 0 (got {step_size})")
        if too_close_gap < 0.0:
            raise ProgrammingError(f"too_close_gap must be >= 0 (got {too_close_gap})")
        self.step_size = step_size
        self.too_close_gap = too_close_gap

    @property
    @abstractmethod
    def maximum_safe_deceleration(self) -> float:
        """Deceleration [m/s^2, positive] a follower can be asked for without danger."""
        raise NotImplementedError

    @abstractmethod
    def compute_acceleration(
        self,
        own_speed: float,
        max_speed: float,
        leader_speed: Optional[float],
        gap: Optional[float],
        speed_limit: float,
    ) -> float:
        """
        Unbounded model acceleration.

        :param gap: net gap to the leader, None when there is no leader
        :return: acceleration [m/s^2]; -inf when the gap is below too_close_gap
        """
        raise NotImplementedError

    # ------------------------ PUBLIC API ------------------------

    def accelerate(
        self,
        own_speed: float,
        leader_speed: Optional[float],
        gap: Optional[float],
        speed_limit: float,
        max_speed: float,
        now: float = 0.0,
    ) -> AccelerationStep:
        """
        Acceleration and validity interval for a follower behind an optional leader.

        A gap below too_close_gap yields the fixed -maximum_safe_deceleration
        sentinel. Otherwise the result is bounded below by the same value.
        """
        duration = self.step_size

        if _absent(gap):
            raw = self.compute_acceleration(own_speed, max_speed, None, None, speed_limit)
        elif gap < self.too_close_gap:
            return AccelerationStep(-self.maximum_safe_deceleration, now + duration, duration)
        else:
            raw = self.compute_acceleration(own_speed, max_speed, leader_speed, gap, speed_limit)
            closing_speed = own_speed - leader_speed
            if closing_speed > 0.0:
                time_to_threshold = (gap - self.too_close_gap) / closing_speed
                duration = max(MINIMUM_STEP, min(duration, time_to_threshold))

        acceleration = max(raw, -self.maximum_safe_deceleration)
        return AccelerationStep(acceleration, now + duration, duration)

    def compute_acceleration_step(
        self,
        own: KinematicState,
        headways: Iterable[Headway] | None,
        speed_limit: float,
        now: float = 0.0,
    ) -> AccelerationStep:
        """Acceleration of own with respect to the nearest leader among headways."""
        leader, _ = split_traffic(headways)
        if leader is None:
            return self.accelerate(own.speed, None, None, speed_limit, own.max_speed, now)
        return self.accelerate(
            own.speed, leader.other.speed, leader.gap(own.length), speed_limit, own.max_speed, now
        )

    def compute_dual_acceleration_step(
        self,
        own: KinematicState,
        headways: Iterable[Headway] | None,
        speed_limit: float,
        now: float = 0.0,
    ) -> DualAccelerationStep:
        """
        Evaluate own as follower of the nearest leader and the nearest follower
        as follower of own. Without a follower the follower side is zero.
        """
        headways = list(headways or ())
        _, follower = split_traffic(headways)
        leader_step = self.compute_acceleration_step(own, headways, speed_limit, now)

        if follower is None:
            follower_step = AccelerationStep(0.0, now + self.step_size, self.step_size)
        else:
            # the follower is assumed to drive with the same model
            follower_step = self.accelerate(
                follower.other.speed,
                own.speed,
                follower.gap(own.length),
                speed_limit,
                follower.other.max_speed,
                now,
            )
        return DualAccelerationStep(leader_step, follower_step)

    def minimum_headway(
        self,
        follower_speed: float,
        leader_speed: float,
        precision: float,
        max_distance: float,
        speed_limit: float,
        follower_max_speed: float,
    ) -> float:
        """
        Smallest net gap at which the follower does not need to brake harder
        than maximum_safe_deceleration, found by bisection.

        :param precision: width of the final bisection interval [m], must be > 0
        :param max_distance: upper end of the search interval [m]
        :return: gap [m]; max_distance when even that is not enough
        """
        if precision <= 0.0:
            raise ProgrammingError(f"Precision has bad value (must be > 0; got {precision})")
        if max_distance <= 0.0:
            raise ProgrammingError(f"max_distance has bad value (must be > 0; got {max_distance})")

        limit = -self.maximum_safe_deceleration

        def acceptable(gap: float) -> bool:
            a = self.compute_acceleration(
                follower_speed, follower_max_speed, leader_speed, gap, speed_limit
            )
            return a >= limit

        if not acceptable(max_distance):
            return max_distance

        low, high = 0.0, max_distance
        while high - low > precision:
            mid = 0.5 * (low + high)
            if acceptable(mid):
                high = mid
            else:
                low = mid
        return high


class IDM(GtuFollowingModel):
    """
    Intelligent Driver Model (Treiber, Hennecke, Helbing 2000).

    a      maximum acceleration [m/s^2]
    b      comfortable deceleration [m/s^2]
    s0     standstill distance [m]
    t_safe desired time headway [s]
    delta  speed limit adherence factor (1.0 = drive at the limit)
    """

    name = "IDM"

    def __init__(
        self,
        a: float = 1.56,
        b: float = 2.09,
        s0: float = 3.0,
        t_safe: float = 1.2,
        delta: float = 1.0,
        step_size: float = 0.5,
        too_close_gap: float = 0.01,
    ):
        super().__init__(step_size=step_size, too_close_gap=too_close_gap)
        if a <= 0.0 or b <= 0.0:
            raise ProgrammingError(f"a and b must be > 0 (got a={a}, b={b})")
        self.a = a
        self.b = b
        self.s0 = s0
        self.t_safe = t_safe
        self.delta = delta

    @property
    def maximum_safe_deceleration(self) -> float:
        return 1.25 * self.b

    def desired_speed(self, speed_limit: float, max_speed: float) -> float:
        return max(min(self.delta * speed_limit, max_speed), MINIMUM_STEP)

    def desired_gap(self, own_speed: float, leader_speed: float) -> float:
        dynamic = own_speed * self.t_safe + own_speed * (own_speed - leader_speed) / (
            2.0 * math.sqrt(self.a * self.b)
        )
        return self.s0 + max(0.0, dynamic)

    def compute_acceleration(self, own_speed, max_speed, leader_speed, gap, speed_limit) -> float:
        free = 1.0 - (own_speed / self.desired_speed(speed_limit, max_speed)) ** 4
        if _absent(gap):
            return self.a * free
        if gap < self.too_close_gap:
            return -math.inf
        interaction = (self.desired_gap(own_speed, leader_speed) / gap) ** 2
        return self._combine(free, interaction)

    def _combine(self, free: float, interaction: float) -> float:
        return self.a * (free - interaction)

    def __repr__(self) -> str:
        return (
            f"{self.name}(a={self.a}, b={self.b}, s0={self.s0}, "
            f"t_safe={self.t_safe}, delta={self.delta})"
        )


class IDMPlus(IDM):
    """
    IDM+ (Schakel, Knoop, van Arem 2012): the minimum of the free-road and
    the interaction term instead of their sum.
    """

    name = "IDM+"

    def _combine(self, free: float, interaction: float) -> float:
        return self.a * min(free, 1.0 - interaction)


class FixedAccelerationModel(GtuFollowingModel):
    """Constant acceleration regardless of the leader. Test double."""

    name = "fixed"

    def __init__(
        self,
        acceleration: float,
        step_size: float = 0.5,
        maximum_safe_deceleration: float = 2.0,
        too_close_gap: float = 0.01,
    ):
        super().__init__(step_size=step_size, too_close_gap=too_close_gap)
        self.acceleration = acceleration
        self._maximum_safe_deceleration = maximum_safe_deceleration

    @property
    def maximum_safe_deceleration(self) -> float:
        return self._maximum_safe_deceleration

    def compute_acceleration(self, own_speed, max_speed, leader_speed, gap, speed_limit) -> float:
        if not _absent(gap) and gap < self.too_close_gap:
            return -math.inf
        return self.acceleration

    def __repr__(self) -> str:
        return f"FixedAccelerationModel(acceleration={self.acceleration}, step_size={self.step_size})"


FOLLOWING_MODELS = {
    IDM.name: IDM,
    IDMPlus.name: IDMPlus,
}


def get_following_model(name: str) -> GtuFollowingModel:
    try:
        return FOLLOWING_MODELS[name]()
    except KeyError:
        raise ValueError(
            f"Unknown following model '{name}'. Available: {', '.join(FOLLOWING_MODELS.keys())}"
        )
