import unittest

import numpy as np

from gtu_sim.experiments.decision_map import (
    LOWER_BOUND,
    MIDPOINT,
    STANDARD_SPEEDS,
    UPPER_BOUND,
    compute_decision,
    decision_map,
    find_decision_point,
    standard_decision_maps,
)
from gtu_sim.model.lane_change import ALTRUISTIC, EGOISTIC, MobilLaneChangeModel
from gtu_sim.model.vehicles import LateralDirection

REFERENCE_SPEED = 80.0 / 3.6


class TestDecisionPoint(unittest.TestCase):
    def setUp(self):
        self.model = MobilLaneChangeModel(EGOISTIC)

    def test_merge_right_blocked_alongside(self):
        result = compute_decision(0.0, REFERENCE_SPEED, 0.0, self.model, merge_right=True)
        self.assertEqual(result.direction, LateralDirection.NONE)

    def test_merge_right_free_far_away(self):
        for headway in (LOWER_BOUND, UPPER_BOUND):
            result = compute_decision(headway, REFERENCE_SPEED, 0.0, self.model, merge_right=True)
            self.assertEqual(result.direction, LateralDirection.RIGHT)

    def test_begin_and_end_of_no_change_zone(self):
        begin = find_decision_point(LOWER_BOUND, MIDPOINT, REFERENCE_SPEED, 0.0, self.model, True)
        end = find_decision_point(MIDPOINT, UPPER_BOUND, REFERENCE_SPEED, 0.0, self.model, True)
        self.assertIsNotNone(begin)
        self.assertIsNotNone(end)
        self.assertTrue(LOWER_BOUND < begin < MIDPOINT)
        self.assertTrue(MIDPOINT < end < UPPER_BOUND)

        # the flip lies within the bisection tolerance of the returned point
        self.assertNotEqual(
            compute_decision(begin - 0.2, REFERENCE_SPEED, 0.0, self.model, True).direction,
            compute_decision(begin + 0.2, REFERENCE_SPEED, 0.0, self.model, True).direction,
        )

    def test_no_flip_returns_none(self):
        # both ends far ahead, merging right is attractive everywhere
        point = find_decision_point(400.0, UPPER_BOUND, REFERENCE_SPEED, 0.0, self.model, True)
        self.assertIsNone(point)

    def test_empty_interval(self):
        with self.assertRaises(ValueError):
            find_decision_point(10.0, 10.0, REFERENCE_SPEED, 0.0, self.model, True)


class TestDecisionMap(unittest.TestCase):
    def test_map_shape_and_values(self):
        speed_differences = np.array([-5.0, 0.0, 5.0])
        result = decision_map(REFERENCE_SPEED, speed_differences, MobilLaneChangeModel(EGOISTIC), True)
        self.assertEqual(result.shape, (3, 2))
        self.assertTrue(np.all(result[:, 0] < MIDPOINT))
        self.assertTrue(np.all(result[:, 1] > MIDPOINT))

    def test_altruistic_zone_is_not_narrower_behind(self):
        ego = find_decision_point(
            LOWER_BOUND, MIDPOINT, REFERENCE_SPEED, 0.0, MobilLaneChangeModel(EGOISTIC), True
        )
        alt = find_decision_point(
            LOWER_BOUND, MIDPOINT, REFERENCE_SPEED, 0.0, MobilLaneChangeModel(ALTRUISTIC), True
        )
        self.assertIsNotNone(alt)
        self.assertLessEqual(alt, ego + 0.2)

    def test_standard_maps_cover_the_usual_speeds(self):
        model = MobilLaneChangeModel(EGOISTIC)
        maps = standard_decision_maps(np.array([0.0]), model, True)
        self.assertEqual(tuple(maps), STANDARD_SPEEDS)
        for result in maps.values():
            self.assertEqual(result.shape, (1, 2))
        expected = decision_map(REFERENCE_SPEED, np.array([0.0]), model, True)
        np.testing.assert_array_equal(maps[80.0], expected)


if __name__ == "__main__":
    unittest.main()
