import json
import os
from dataclasses import asdict
from datetime import datetime
from typing import Iterable

from gtu_sim.metrics.types import SimulationResult


def _ensure_dir(path: str):
    os.makedirs(path, exist_ok=True)


def _timestamp() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def save_result_as_json(result: SimulationResult, output_dir: str) -> str:
    _ensure_dir(output_dir)
    label = result.config.get("label")
    prefix = f"{result.backend}_{label}" if label else result.backend
    path = os.path.join(output_dir, f"{prefix}_{_timestamp()}.json")

    with open(path, "w", encoding="utf-8") as f:
        json.dump(asdict(result), f, indent=2, ensure_ascii=False)

    return path


def save_results_as_json(results: Iterable[SimulationResult], output_dir: str, name: str) -> str:
    """Write a series of results (e.g. a scaling experiment) into one file."""
    _ensure_dir(output_dir)
    path = os.path.join(output_dir, f"{name}_{_timestamp()}.json")

    with open(path, "w", encoding="utf-8") as f:
        json.dump([asdict(r) for r in results], f, indent=2, ensure_ascii=False)

    return path
