"""
Configuration loading
YAML settings with environment overrides for the backend location
"""

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import yaml

logger = structlog.get_logger()

BACKEND_URL_ENV = "FLASK_API_URL"

DEFAULT_CONFIG: Dict[str, Any] = {
    "backend": {"base_url": "http://localhost:5000", "timeout_seconds": 5.0},
    "dashboard": {"latency_budget_ms": 250},
    "experiments": {"baseline_rate": 0.22, "default_desired_lift": 3},
    "monitoring": {"stream_window": 50, "error_window": 100},
}


@dataclass(frozen=True)
class Settings:
    backend_url: str
    timeout_seconds: float
    latency_budget_ms: float
    baseline_rate: float
    default_desired_lift: float
    stream_window: int
    error_window: int

    def __post_init__(self):
        # Page views divide by the budget
        if not self.latency_budget_ms > 0:
            raise ValueError(
                f"dashboard.latency_budget_ms must be positive, got {self.latency_budget_ms}"
            )


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = "config/config.yaml") -> Settings:
    """Load settings from YAML, falling back to built-in defaults for anything missing"""
    config = DEFAULT_CONFIG

    if config_path and Path(config_path).exists():
        with open(config_path, "r") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file {config_path} must contain a mapping")
        config = _merge(DEFAULT_CONFIG, loaded)
    elif config_path:
        logger.info("Config file not found, using defaults", config_path=config_path)

    backend_url = os.environ.get(BACKEND_URL_ENV) or config["backend"]["base_url"]

    return Settings(
        backend_url=backend_url.rstrip("/"),
        timeout_seconds=float(config["backend"]["timeout_seconds"]),
        latency_budget_ms=float(config["dashboard"]["latency_budget_ms"]),
        baseline_rate=float(config["experiments"]["baseline_rate"]),
        default_desired_lift=float(config["experiments"]["default_desired_lift"]),
        stream_window=int(config["monitoring"]["stream_window"]),
        error_window=int(config["monitoring"]["error_window"]),
    )
