import json
import os
import tempfile
import unittest

from gtu_sim.backends import BACKENDS, get_backend
from gtu_sim.config import SimulationConfig
from gtu_sim.experiments.runner import run_scaling_experiment, run_single
from gtu_sim.io.results_writer import save_result_as_json, save_results_as_json


def small_config(**overrides):
    params = dict(
        total_time=60.0,
        road_length=800.0,
        arrival_rate=0.2,
        random_seed=11,
    )
    params.update(overrides)
    return SimulationConfig(**params)


class TestBackendRegistry(unittest.TestCase):
    def test_registry(self):
        self.assertEqual(set(BACKENDS), {"sequential", "openmp"})
        self.assertIs(get_backend("sequential"), BACKENDS["sequential"])

    def test_unknown_backend(self):
        with self.assertRaises(ValueError):
            get_backend("cuda")


class TestRuns(unittest.TestCase):
    def test_sequential_run(self):
        result = run_single(small_config(backend="sequential"))
        self.assertEqual(result.backend, "sequential")
        self.assertGreater(result.evaluations, 0)
        self.assertGreater(result.extra_stats["total_spawned"], 0)
        self.assertEqual(result.total_simulated_time, 60.0)
        self.assertGreaterEqual(result.wall_time_seconds, 0.0)

    def test_openmp_run(self):
        result = run_single(small_config(backend="openmp", num_threads=1))
        self.assertEqual(result.backend, "openmp")
        self.assertGreater(result.evaluations, 0)
        self.assertGreater(result.extra_stats["total_spawned"], 0)

    def test_completed_vehicles_have_plausible_speed(self):
        result = run_single(small_config(total_time=120.0))
        self.assertGreater(result.vehicles_completed, 0)
        self.assertGreater(result.avg_speed, 0.0)
        self.assertLessEqual(result.avg_speed, 33.3 + 1e-6)

    def test_scaling_experiment(self):
        results = run_scaling_experiment(
            small_config(total_time=30.0), "sequential", "personality", ["egoistic", "altruistic"]
        )
        self.assertEqual([r.config["personality"] for r in results], ["egoistic", "altruistic"])

    def test_scaling_experiment_unknown_parameter(self):
        with self.assertRaises(ValueError):
            run_scaling_experiment(small_config(), "sequential", "spawn_rate", [0.1])


class TestResultsWriter(unittest.TestCase):
    def test_save_result(self):
        result = run_single(small_config(total_time=10.0, label="smoke"))
        with tempfile.TemporaryDirectory() as tmp:
            path = save_result_as_json(result, os.path.join(tmp, "out"))
            self.assertTrue(os.path.basename(path).startswith("sequential_smoke_"))
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        self.assertEqual(data["backend"], "sequential")
        self.assertEqual(data["config"]["label"], "smoke")

    def test_save_results(self):
        results = run_scaling_experiment(small_config(total_time=10.0), "sequential", "num_lanes", [1, 2])
        with tempfile.TemporaryDirectory() as tmp:
            path = save_results_as_json(results, tmp, "lanes")
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        self.assertEqual([d["config"]["num_lanes"] for d in data], [1, 2])


if __name__ == "__main__":
    unittest.main()
