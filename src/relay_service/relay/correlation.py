"""
Correlation id resolution.

Producers do not agree on where a ticket id lives in their payloads, so the
resolver runs a bounded, deterministic search over the parsed JSON value:

1. At each object, look at its own keys (case-insensitively), in priority
   order, for ``ticketId``/``ticket_id``, then ``ticket.id``, then
   ``ticketData[0].id``. A hit at this level returns immediately.
2. Otherwise descend into nested objects and arrays depth-first, in document
   order, at most ``max_depth`` levels below the root.

Not finding an id is a normal outcome and yields ``None``.
"""
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10

# Python's default int <-> str conversion limit
_MAX_DIGITS = 4300

_NUMERIC_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


def as_ticket_id(value: Any) -> Optional[int]:
    """
    Interpret a JSON value as a ticket id.

    Accepts integers, integral floats and strings holding an integral
    decimal number (surrounding whitespace allowed). Booleans, empty strings
    and fractional numbers are not ticket ids.
    """
    if isinstance(value, bool):
        return None

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        return int(value) if value.is_integer() else None

    if isinstance(value, str):
        text = value.strip()
        if not _NUMERIC_RE.fullmatch(text):
            return None
        try:
            decimal = Decimal(text)
        except InvalidOperation:
            return None
        if decimal.adjusted() >= _MAX_DIGITS or decimal != decimal.to_integral_value():
            return None
        return int(decimal)

    return None


def _match_ticket_id_key(key: str, value: Any) -> Optional[int]:
    if key in ("ticketid", "ticket_id"):
        return as_ticket_id(value)
    return None


def _match_ticket_object(key: str, value: Any) -> Optional[int]:
    if key == "ticket" and isinstance(value, dict):
        return as_ticket_id(value.get("id"))
    return None


def _match_ticket_data(key: str, value: Any) -> Optional[int]:
    # An empty list is a non-match; the search goes on
    if key == "ticketdata" and isinstance(value, list) and value and isinstance(value[0], dict):
        return as_ticket_id(value[0].get("id"))
    return None


# Priority order: a direct id beats ticket.id, which beats ticketData[0].id
_DIRECT_MATCHERS: Tuple[Callable[[str, Any], Optional[int]], ...] = (
    _match_ticket_id_key,
    _match_ticket_object,
    _match_ticket_data,
)


def _match_direct(node: dict) -> Optional[int]:
    """Check the object's own keys against each pattern in priority order."""
    entries = [(str(key).lower(), value) for key, value in node.items()]
    for matcher in _DIRECT_MATCHERS:
        for key, value in entries:
            found = matcher(key, value)
            if found is not None:
                return found
    return None


def resolve(structured: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> Optional[int]:
    """
    Find the ticket id in a parsed JSON value.

    Args:
        structured: Parsed JSON value (dict, list or scalar)
        max_depth: Deepest level inspected; the root is level 0

    Returns:
        The ticket id, or None when no candidate exists within max_depth
    """
    if max_depth < 0 or not isinstance(structured, (dict, list)):
        return None

    # Explicit worklist instead of recursion; popping from the end with
    # children pushed in reverse gives depth-first, document-order traversal.
    stack: List[Tuple[Any, int]] = [(structured, 0)]

    while stack:
        node, depth = stack.pop()

        if isinstance(node, dict):
            found = _match_direct(node)
            if found is not None:
                return found
            children = list(node.values())
        else:
            children = node

        if depth >= max_depth:
            continue

        nested = [(child, depth + 1) for child in children if isinstance(child, (dict, list))]
        stack.extend(reversed(nested))

    logger.debug(f"No ticket id found within depth {max_depth}")
    return None
