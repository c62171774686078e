from typing import Iterable, List

from gtu_sim.backends import get_backend
from gtu_sim.config import SimulationConfig
from gtu_sim.io.logging_utils import logger
from gtu_sim.metrics.types import SimulationResult


def run_single(config: SimulationConfig) -> SimulationResult:
    BackendCls = get_backend(config.backend)
    backend = BackendCls(config)
    return backend.run()


def run_scaling_experiment(
    base_config: SimulationConfig,
    backend_name: str,
    param_name: str,
    values: Iterable[int | float | str]
) -> List[SimulationResult]:
    """
    Helper: changes one parameter (e.g. num_threads, arrival_rate or
    personality) and runs the backend once per value.

    :param base_config: configuration shared by all runs
    :param backend_name: registered backend name
    :param param_name: SimulationConfig field to vary
    :param values: values for that field
    :raises ValueError: for a field SimulationConfig does not have
    """
    if param_name not in base_config.to_dict():
        raise ValueError(f"SimulationConfig has no parameter '{param_name}'")

    results: List[SimulationResult] = []
    for v in values:
        cfg_dict = base_config.to_dict()
        cfg_dict["backend"] = backend_name
        cfg_dict[param_name] = v
        cfg = SimulationConfig(**cfg_dict)  # type: ignore[arg-type]
        logger.info(f"Scaling run: {backend_name} {param_name}={v}")
        res = run_single(cfg)
        results.append(res)
    return results
