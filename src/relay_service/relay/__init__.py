"""
Relay core: payload normalization, correlation, colors, composition,
fan-out and republish.
"""
from .broadcaster import Broadcaster, ViewerConnection
from .colors import NEUTRAL_COLOR, color_for
from .composer import EventIdFactory, compose
from .correlation import DEFAULT_MAX_DEPTH, resolve
from .payload import PayloadDecodeError, normalize
from .pipeline import RelayPipeline
from .republish import RepublishBridge

__all__ = [
    "Broadcaster",
    "ViewerConnection",
    "NEUTRAL_COLOR",
    "color_for",
    "EventIdFactory",
    "compose",
    "DEFAULT_MAX_DEPTH",
    "resolve",
    "PayloadDecodeError",
    "normalize",
    "RelayPipeline",
    "RepublishBridge",
]
