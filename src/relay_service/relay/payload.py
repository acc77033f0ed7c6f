"""
Payload normalization.

Broker messages carry no content type, so compression is sniffed from the
gzip magic prefix and the result is parsed as strict JSON.
"""
import gzip
import json
import zlib

from ..models.relay import DecodedPayload

GZIP_MAGIC = b"\x1f\x8b"


class PayloadDecodeError(ValueError):
    """Raised when a payload cannot be decompressed, decoded or parsed."""

    def __init__(self, stage: str, message: str):
        super().__init__(f"{stage}: {message}")
        self.stage = stage


def _reject_constant(name: str):
    raise ValueError(f"Invalid JSON constant {name!r}")


def is_gzip(data: bytes) -> bool:
    """Return True if the bytes start with the gzip magic prefix."""
    return len(data) >= 2 and data[:2] == GZIP_MAGIC


def normalize(data: bytes) -> DecodedPayload:
    """
    Decode raw message bytes into a structured value.

    Raises:
        PayloadDecodeError: If the gzip stream is corrupt, the bytes are not
            UTF-8, or the text is not valid JSON.
    """
    compressed = is_gzip(data)

    if compressed:
        try:
            data = gzip.decompress(data)
        except (OSError, EOFError, zlib.error) as e:
            raise PayloadDecodeError("gzip", str(e) or "truncated stream") from e

    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise PayloadDecodeError("utf-8", str(e)) from e

    try:
        structured = json.loads(text, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as e:
        raise PayloadDecodeError("json", str(e)) from e

    return DecodedPayload(is_compressed=compressed, text=text, structured=structured)
