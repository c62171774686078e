from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .errors import NetworkInconsistencyError, ProgrammingError
from .vehicles import LateralDirection, VehicleClass


@dataclass(frozen=True)
class Lane:
    id: str
    index: int                   # 0 is the rightmost lane
    length: float                # lane ends here [m]
    speed_limit: float           # [m/s]
    allowed_classes: Tuple[str, ...] = ("car", "truck")

    def allows(self, vehicle_class: VehicleClass) -> bool:
        return vehicle_class in self.allowed_classes


class MultiLaneRoad:
    """
    Straight road with parallel lanes, all starting at position 0.
    Lane 0 is the rightmost lane. The rightmost lane can end early
    (lane drop), and trucks can be kept out of the leftmost lanes.
    """

    def __init__(
        self,
        num_lanes: int = 2,
        length: float = 1000.0,
        speed_limit: float = 33.3,
        lane_drop_length: Optional[float] = None,
        truck_lanes: Optional[int] = None,
    ) -> None:
        if num_lanes < 1:
            raise ProgrammingError(f"A road needs at least one lane (got {num_lanes})")
        if lane_drop_length is not None and num_lanes < 2:
            raise ProgrammingError("A lane drop needs at least two lanes")

        self.length = length
        self.lanes: List[Lane] = []
        for index in range(num_lanes):
            lane_length = length
            if index == 0 and lane_drop_length is not None:
                lane_length = min(lane_drop_length, length)
            classes: Tuple[str, ...] = ("car", "truck")
            if truck_lanes is not None and index >= truck_lanes:
                classes = ("car",)
            self.lanes.append(
                Lane(
                    id=f"L{index}",
                    index=index,
                    length=lane_length,
                    speed_limit=speed_limit,
                    allowed_classes=classes,
                )
            )
        self._by_id: Dict[str, Lane] = {lane.id: lane for lane in self.lanes}

    def get_lane(self, lane_id: str) -> Lane:
        """Return the lane with the given id."""
        try:
            return self._by_id[lane_id]
        except KeyError:
            raise NetworkInconsistencyError(f"Lane '{lane_id}' is not part of this road")

    def best_accessible_adjacent_lane(
        self,
        lane: Lane,
        direction: LateralDirection,
        position: float,
        vehicle_class: VehicleClass,
    ) -> Optional[Lane]:
        """
        Adjacent lane in the given direction that exists at this position and
        admits the vehicle class, or None.
        """
        if direction is LateralDirection.NONE:
            raise ProgrammingError("An adjacent lane needs a lateral direction")

        index = lane.index + (1 if direction is LateralDirection.LEFT else -1)
        if index < 0 or index >= len(self.lanes):
            return None

        candidate = self.lanes[index]
        if position >= candidate.length or not candidate.allows(vehicle_class):
            return None
        return candidate

    def entry_lanes(self, vehicle_class: VehicleClass) -> List[Lane]:
        return [lane for lane in self.lanes if lane.allows(vehicle_class)]
