"""
Deterministic display colors for correlation ids.

Hues are spread with the golden ratio conjugate so that consecutive ticket
ids, which tend to show up side by side in the stream, land far apart on the
color wheel.
"""
from typing import Optional

from cachetools import LRUCache, cached

from ..models.relay import ColorKey

GOLDEN_RATIO_CONJUGATE = 0.618033988749895

NEUTRAL_COLOR = ColorKey(hue=220.0, saturation=9, lightness=46, css="#6b7280", neutral=True)


def hue_for(correlation_id: int) -> float:
    """Golden-ratio hue in degrees, in [0, 360)."""
    return (correlation_id * GOLDEN_RATIO_CONJUGATE * 360) % 360


@cached(cache=LRUCache(maxsize=4096))
def _color_for_id(correlation_id: int) -> ColorKey:
    hue = hue_for(correlation_id)
    saturation = 65 + correlation_id % 20  # 65-84%
    lightness = 45 + correlation_id % 15   # 45-59%
    return ColorKey(
        hue=hue,
        saturation=saturation,
        lightness=lightness,
        css=f"hsl({hue:.2f}, {saturation}%, {lightness}%)",
    )


def color_for(correlation_id: Optional[int]) -> ColorKey:
    """
    Return the display color for a correlation id.

    A pure function of its input; results are memoized only to save work.
    ``None`` always maps to the neutral gray.
    """
    if correlation_id is None:
        return NEUTRAL_COLOR
    return _color_for_id(correlation_id)
