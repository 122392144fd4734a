"""
Utility modules for configuration and serving metrics
"""

from .config import Settings, load_config
from .metrics import LatencyMonitor

__all__ = ["Settings", "load_config", "LatencyMonitor"]
