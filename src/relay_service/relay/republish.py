"""
Republish bridge: viewer-initiated writes back onto the broker.

Every request gets exactly one RepublishResult, and no failure escapes this
module: validation errors, broker errors and unexpected exceptions all come
back as ``success=False`` results.
"""
import json
import logging
from typing import Any

from ..adapters.base import BrokerAdapter, PublishError
from ..models.relay import RepublishRequest, RepublishResult

logger = logging.getLogger(__name__)

INVALID_REQUEST_ERROR = "Invalid topic or payload"


def _missing_topic(topic: Any) -> bool:
    """A topic made only of whitespace is as unusable as an empty one."""
    return topic is None or not str(topic).strip()


def _missing_payload(payload: Any) -> bool:
    """Only None and "" are empty; falsy JSON values such as 0, false or {} are real payloads."""
    return payload is None or (isinstance(payload, str) and payload == "")


def serialize_payload(payload: Any) -> bytes:
    """Pass text through; serialize anything else as compact JSON."""
    if isinstance(payload, str):
        text = payload
    else:
        text = json.dumps(payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    return text.encode("utf-8")


class RepublishBridge:
    """Forwards republish requests to the broker's publish capability."""

    def __init__(self, adapter: BrokerAdapter):
        self.adapter = adapter

    async def republish(self, request: RepublishRequest) -> RepublishResult:
        """Publish the request's payload and report the outcome."""
        if _missing_topic(request.topic) or _missing_payload(request.payload):
            logger.warning("Rejected republish request with missing topic or payload")
            return RepublishResult(success=False, error=INVALID_REQUEST_ERROR)

        topic = request.topic

        try:
            data = serialize_payload(request.payload)
            await self.adapter.publish(topic, data)
        except (PublishError, ConnectionError) as e:
            logger.error(f"Republish to {topic} failed: {e}")
            return RepublishResult(success=False, error=str(e))
        except Exception as e:
            logger.exception(f"Unexpected error republishing to {topic}")
            return RepublishResult(success=False, error=str(e) or e.__class__.__name__)

        logger.info(f"Republished {len(data)} bytes to topic: {topic}")
        return RepublishResult(success=True, topic=topic)
