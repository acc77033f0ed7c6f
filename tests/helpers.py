"""
Shared helpers for Relay Service tests.
"""
import gzip
import json


def encode(value, compress=False) -> bytes:
    """Serialize a value the way producers put it on the broker."""
    data = json.dumps(value).encode("utf-8")
    return gzip.compress(data) if compress else data
