"""
Relay DTOs.

These models describe a message on its way from the broker to the viewers
(RawMessage -> DecodedPayload -> RelayEvent) and the viewer-initiated
republish round trip (RepublishRequest -> RepublishResult).
"""
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ConfigDict, Field

from .base import BaseDTO


class RawMessage(BaseDTO):
    """A message exactly as the broker delivered it."""
    model_config = ConfigDict(frozen=True)

    topic: str = Field(..., description="Topic the message was received on")
    data: bytes = Field(..., description="Opaque payload bytes")
    received_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Receipt timestamp (UTC)"
    )


class DecodedPayload(BaseDTO):
    """Successful result of payload normalization."""
    model_config = ConfigDict(frozen=True)

    is_compressed: bool = Field(..., description="Whether the payload was gzip-framed")
    text: str = Field(..., description="Decoded text, before JSON parsing")
    structured: Any = Field(default=None, description="Parsed JSON value")


class ColorKey(BaseDTO):
    """Display color assigned to a correlation id."""
    model_config = ConfigDict(frozen=True)

    hue: float = Field(..., description="Hue in degrees, [0, 360)")
    saturation: int = Field(..., description="Saturation percentage")
    lightness: int = Field(..., description="Lightness percentage")
    css: str = Field(..., description="CSS color string")
    neutral: bool = Field(default=False, description="True for the 'no ticket' color")


class RelayEvent(BaseDTO):
    """
    Normalized event broadcast to every viewer.

    Serialized with camelCase aliases (isCompressed, correlationId, colorKey).
    """
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Strictly increasing event identifier")
    topic: str = Field(..., description="Source topic")
    size: int = Field(..., description="Byte length of the message on the wire")
    is_compressed: bool = Field(..., description="Whether the payload was gzip-framed")
    time: str = Field(..., description="ISO 8601 receipt time")
    raw: str = Field(..., description="Decoded payload text")
    parsed: Any = Field(default=None, description="Parsed payload value")
    correlation_id: Optional[int] = Field(default=None, description="Ticket id, if one was found")
    color_key: ColorKey = Field(..., description="Display color for the correlation id")

    def to_wire(self) -> dict:
        """Return the JSON-compatible dict sent to viewers."""
        return self.model_dump(mode="json", by_alias=True)


class RepublishRequest(BaseDTO):
    """Viewer request to publish a message back onto the broker."""
    topic: Optional[str] = Field(default=None, description="Destination topic")
    payload: Any = Field(default=None, description="Text or JSON value to publish")


class RepublishResult(BaseDTO):
    """Outcome of a single republish request, returned to its originator only."""
    success: bool = Field(..., description="Whether the broker accepted the publish")
    topic: Optional[str] = Field(default=None, description="Topic published to")
    error: Optional[str] = Field(default=None, description="Failure reason")

    def to_wire(self) -> dict:
        """Return the `{success, topic?, error?}` dict sent to the viewer."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
