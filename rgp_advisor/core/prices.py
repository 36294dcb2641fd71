"""
Daily price map helpers.

Converts already-fetched price history into the date -> USD price mapping
used to value epoch costs.
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Sequence


def price_map_from_series(prices: Iterable[Sequence[Any]]) -> Dict[str, float]:
    """Build {"YYYY-MM-DD": price} from [[timestamp_ms, price], ...] points.

    Dates are taken in UTC. When several points fall on the same date the
    last one wins.

    Raises:
        ValueError: If a point is not a (timestamp, price) pair of numbers
    """
    price_map: Dict[str, float] = {}
    for point in prices:
        if len(point) != 2:
            raise ValueError(f"Price point must be [timestamp_ms, price], got {point!r}")
        timestamp_ms, price = float(point[0]), float(point[1])
        if not math.isfinite(timestamp_ms) or not math.isfinite(price):
            raise ValueError(f"Price point must be finite, got {point!r}")
        day = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).date()
        price_map[day.isoformat()] = price
    return price_map


def load_price_map(payload: Any) -> Dict[str, float]:
    """Accept either a plain date -> price mapping or a market chart payload.

    A market chart payload is a mapping with a ``prices`` list of
    [timestamp_ms, price] points.

    Raises:
        ValueError: If the payload has neither shape
    """
    if isinstance(payload, Mapping) and isinstance(payload.get("prices"), list):
        return price_map_from_series(payload["prices"])
    if isinstance(payload, Mapping):
        return {str(day): float(price) for day, price in payload.items()}
    raise ValueError("Price payload must be a date -> price mapping or contain a 'prices' list")
