"""
HTTP layer: upstream proxy client and the dashboard API
"""

from .proxy import UpstreamClient, UpstreamUnavailable

__all__ = ["UpstreamClient", "UpstreamUnavailable"]
