import unittest

from gtu_sim.config import SimulationConfig
from gtu_sim.io.logging_utils import logger
from gtu_sim.model import lane_change, world_state
from gtu_sim.model.lane_change import FixedLaneChangeModel
from gtu_sim.model.road_network import MultiLaneRoad
from gtu_sim.model.vehicles import LateralDirection
from gtu_sim.model.world_state import TrafficWorld


def make_world(
    road_length=1000.0,
    num_lanes=2,
    lane_drop_length=None,
    seed=None,
    arrival_rate=0.0,
    **overrides,
):
    cfg = SimulationConfig(
        num_lanes=num_lanes,
        road_length=road_length,
        speed_limit=30.0,
        lane_drop_length=lane_drop_length,
        arrival_rate=arrival_rate,
        **overrides,
    )
    road = MultiLaneRoad(
        num_lanes=num_lanes,
        length=road_length,
        speed_limit=30.0,
        lane_drop_length=lane_drop_length,
    )
    return TrafficWorld(road, cfg, random_seed=seed)


class TestEventDrivenWorld(unittest.TestCase):
    def test_single_car_crosses_the_road(self):
        world = make_world(road_length=500.0)
        world.add_gtu("L0", 10.0, 20.0)
        world.run_until(100.0)

        self.assertEqual(world.metrics_raw.finished_count, 1)
        self.assertEqual(len(world.gtus), 0)
        travel_time = world.metrics_raw.finished_travel_times[0]
        self.assertGreater(travel_time, 0.0)
        self.assertLess(travel_time, 40.0)

    def test_pending_event_at_validity_end(self):
        world = make_world()
        gtu = world.add_gtu("L0", 10.0, 20.0)
        world.run_until(3.3)

        pending = world.scheduler.pending(gtu.id)
        self.assertIsNotNone(pending)
        self.assertAlmostEqual(pending.time, gtu.valid_until)
        self.assertGreater(pending.time, 3.3)
        self.assertGreaterEqual(gtu.evaluations, 6)

    def test_fast_car_overtakes_slow_car(self):
        world = make_world()
        world.add_gtu("L0", 150.0, 10.0, max_speed=10.0)
        world.add_gtu("L0", 30.0, 25.0)
        world.run_until(40.0)

        self.assertGreaterEqual(world.metrics_raw.lane_changes_left, 1)

    def test_lane_drop_forces_merge(self):
        world = make_world(road_length=600.0, lane_drop_length=300.0)
        world.add_gtu("L0", 100.0, 20.0)
        world.run_until(60.0)

        self.assertEqual(world.metrics_raw.lane_changes_left, 1)
        self.assertEqual(world.metrics_raw.lane_changes_right, 0)
        self.assertEqual(world.metrics_raw.finished_count, 1)

    def test_cooldown_blocks_new_lane_change(self):
        world = make_world(road_length=600.0, lane_drop_length=300.0)
        gtu = world.add_gtu("L0", 100.0, 20.0)

        self.assertEqual(world.evaluate(gtu, 1.0).direction, LateralDirection.LEFT)
        gtu.last_lane_change_time = 0.0
        self.assertEqual(world.evaluate(gtu, 1.0).direction, LateralDirection.NONE)

    def test_evaluate_does_not_mutate(self):
        world = make_world()
        gtu = world.add_gtu("L0", 100.0, 20.0)
        before = (dict(gtu.lane_positions), gtu.speed, gtu.acceleration, gtu.plan_start_time)
        world.evaluate(gtu, 0.0)
        after = (dict(gtu.lane_positions), gtu.speed, gtu.acceleration, gtu.plan_start_time)
        self.assertEqual(before, after)

    def test_model_modules_share_the_package_logger(self):
        self.assertIs(world_state.logger, logger)
        self.assertIs(lane_change.logger, logger)
        self.assertEqual(logger.name, "gtu_sim")


class TestPerception(unittest.TestCase):
    def test_perceive_excludes_self_and_far_vehicles(self):
        world = make_world()
        own = world.add_gtu("L0", 500.0, 20.0)
        near = world.add_gtu("L0", 550.0, 20.0)
        world.add_gtu("L0", 900.0, 20.0)
        behind = world.add_gtu("L0", 450.0, 20.0)

        headways = world.perceive(own, own.state_at(0.0), world.road.get_lane("L0"), 0.0)
        self.assertEqual(sorted(h.other.id for h in headways), sorted([near.id, behind.id]))

    def test_lane_end_is_a_standing_obstacle(self):
        world = make_world(road_length=600.0, lane_drop_length=300.0)
        gtu = world.add_gtu("L0", 200.0, 20.0)

        headways = world.perceive(gtu, gtu.state_at(0.0), world.road.get_lane("L0"), 0.0)
        self.assertEqual(len(headways), 1)
        self.assertLess(headways[0].other.id, 0)
        self.assertEqual(headways[0].other.speed, 0.0)
        self.assertAlmostEqual(headways[0].distance, 100.0)

    def test_lane_end_incentive(self):
        world = make_world(road_length=600.0, lane_drop_length=300.0)
        gtu = world.add_gtu("L0", 200.0, 20.0)
        lane = world.road.get_lane("L0")
        left = world.road.get_lane("L1")

        preferred, threshold, non_preferred = world.lane_incentives(gtu.state_at(0.0), lane, None, left)
        self.assertAlmostEqual(preferred, 0.3)
        self.assertAlmostEqual(threshold, -20.0 * 20.0 / (2.0 * 100.0))
        self.assertAlmostEqual(non_preferred, -0.3)

    def test_far_lane_end_is_ignored(self):
        world = make_world(road_length=6000.0, lane_drop_length=5000.0)
        gtu = world.add_gtu("L0", 100.0, 20.0)
        lane = world.road.get_lane("L0")

        _, threshold, _ = world.lane_incentives(gtu.state_at(0.0), lane, None, None)
        self.assertAlmostEqual(threshold, 0.1)

    def test_lane_end_stays_ahead_after_overshoot(self):
        world = make_world(road_length=600.0, lane_drop_length=300.0)
        gtu = world.add_gtu("L0", 305.0, 20.0)

        headways = world.perceive(gtu, gtu.state_at(0.0), world.road.get_lane("L0"), 0.0)
        self.assertEqual([h.other.id for h in headways], [-1])
        self.assertAlmostEqual(headways[0].distance, 0.0)

        gtu.last_lane_change_time = 0.0
        self.assertEqual(
            world.evaluate(gtu, 0.0).acceleration, -world.following_model.maximum_safe_deceleration
        )

    def test_overshooting_gtu_leaves_the_dropped_lane(self):
        world = make_world(road_length=600.0, lane_drop_length=300.0)
        gtu = world.add_gtu("L0", 305.0, 20.0)
        self.assertEqual(world.evaluate(gtu, 0.0).direction, LateralDirection.LEFT)


class TestArrivals(unittest.TestCase):
    def test_same_seed_same_run(self):
        runs = []
        for _ in range(2):
            world = make_world(seed=7, arrival_rate=0.2)
            world.start()
            world.run_until(60.0)
            runs.append(world.get_debug_stats())
        self.assertEqual(runs[0], runs[1])
        self.assertGreater(runs[0]["total_spawned"], 0)

    def test_max_vehicles_rejects_insertions(self):
        world = make_world(road_length=2000.0, arrival_rate=1.0, max_vehicles=1)
        world.start()
        world.run_until(20.0)

        self.assertEqual(world.metrics_raw.total_spawned, 1)
        self.assertGreater(world.metrics_raw.rejected_insertions, 0)

    def test_light_traffic_never_overlaps(self):
        world = make_world(seed=3, arrival_rate=0.1)
        world.start()
        for checkpoint in (20.0, 40.0, 60.0, 80.0, 100.0):
            world.run_until(checkpoint)
            for lane in world.road.lanes:
                states = sorted(
                    (g.state_at(checkpoint) for g in world.gtus.values() if lane.id in g.lane_positions),
                    key=lambda s: s.position,
                )
                for back, front in zip(states, states[1:]):
                    self.assertGreaterEqual(front.rear - back.position, -1e-6)

    def test_trucks_enter_only_on_truck_lanes(self):
        cfg = SimulationConfig(
            num_lanes=2, road_length=1000.0, speed_limit=30.0, truck_fraction=1.0, truck_lanes=1
        )
        road = MultiLaneRoad(num_lanes=2, length=1000.0, speed_limit=30.0, truck_lanes=1)
        world = TrafficWorld(road, cfg, random_seed=1)

        self.assertEqual(world._try_insert("L0", 0.0).vehicle_class, "truck")
        self.assertEqual(world._try_insert("L1", 0.0).vehicle_class, "car")

    def test_unknown_following_model(self):
        with self.assertRaises(ValueError):
            make_world(following_model="Krauss")


class TestSynchronousWorld(unittest.TestCase):
    def test_steps_advance_time_and_position(self):
        world = make_world()
        world.start(synchronous=True)
        gtu = world.add_gtu("L0", 10.0, 20.0)

        for _ in range(10):
            step = world.step_synchronous(0.5)
            self.assertGreater(step, 0.0)
            self.assertLessEqual(step, 0.5)

        self.assertAlmostEqual(world.time, 5.0)
        self.assertGreater(gtu.position_at(world.time), 100.0)
        self.assertEqual(gtu.evaluations, 10)

    def test_lane_drop_in_synchronous_mode(self):
        world = make_world(road_length=600.0, lane_drop_length=300.0)
        world.start(synchronous=True)
        world.add_gtu("L0", 100.0, 20.0)
        for _ in range(120):
            world.step_synchronous(0.5)

        self.assertEqual(world.metrics_raw.lane_changes_left, 1)
        self.assertEqual(world.metrics_raw.finished_count, 1)

    def test_follower_reacts_to_merge_in_the_same_step(self):
        world = make_world()
        world.start(synchronous=True)
        follower = world.add_gtu("L0", 100.0, 20.0, lane_change_model=FixedLaneChangeModel())
        merging = world.add_gtu(
            "L1", 130.0, 20.0, lane_change_model=FixedLaneChangeModel(LateralDirection.RIGHT)
        )
        world.step_synchronous(0.5)

        self.assertEqual(merging.reference_lane(), "L0")
        expected = world.following_model.accelerate(20.0, 20.0, 26.0, 30.0, follower.max_speed)
        self.assertAlmostEqual(follower.acceleration, expected.acceleration)
        free_flow = world.following_model.accelerate(20.0, None, None, 30.0, follower.max_speed)
        self.assertLess(follower.acceleration, free_flow.acceleration)


if __name__ == "__main__":
    unittest.main()
