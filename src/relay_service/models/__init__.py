from .base import BaseDTO
from .relay import ColorKey, DecodedPayload, RawMessage, RelayEvent, RepublishRequest, RepublishResult

__all__ = [
    "BaseDTO",
    "ColorKey",
    "DecodedPayload",
    "RawMessage",
    "RelayEvent",
    "RepublishRequest",
    "RepublishResult",
]
