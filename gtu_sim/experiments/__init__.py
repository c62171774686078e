from gtu_sim.config import SimulationConfig
from gtu_sim.backends import get_backend, BACKENDS
from gtu_sim.experiments.decision_map import decision_map, find_decision_point, standard_decision_maps


__all__ = [
    "SimulationConfig",
    "get_backend",
    "BACKENDS",
    "decision_map",
    "find_decision_point",
    "standard_decision_maps",
]
