"""
Dashboard payload decoding, page load state and view building
"""

from .schemas import Decoded, Envelope, decode
from .state import FetchOutcome, Live, Loading, Offline, resolve, transition

__all__ = [
    "Envelope",
    "Decoded",
    "decode",
    "FetchOutcome",
    "Loading",
    "Live",
    "Offline",
    "transition",
    "resolve",
]
