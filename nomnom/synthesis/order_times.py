"""Synthetic order timestamps with a lunch-rush shaped distribution."""

from __future__ import annotations

import random
from datetime import date, datetime, time, timedelta

DAY_START_HOUR = 8
PEAK_HOURS = (9, 12, 15)
PEAK_SHARE = 0.6
PEAK_SPREAD_MINUTES = 30


def generate_order_times(
    count: int,
    order_date: date,
    hours: float,
    rng: random.Random | None = None,
) -> list[datetime]:
    """Generate sorted local timestamps for `count` orders on `order_date`.

    60% of orders land within ±30 minutes of a peak hour (9:00, 12:00 or
    15:00, picked uniformly); the rest are uniform over the `hours` window
    that starts at 08:00.
    """
    rng = rng or random.Random()
    base = datetime.combine(order_date, time(hour=DAY_START_HOUR))
    window_seconds = hours * 3600
    spread_seconds = PEAK_SPREAD_MINUTES * 60

    times: list[datetime] = []
    for _ in range(count):
        if rng.random() < PEAK_SHARE:
            peak = rng.choice(PEAK_HOURS)
            peak_offset = (peak - DAY_START_HOUR) * 3600
            offset = peak_offset + rng.uniform(-spread_seconds, spread_seconds)
        else:
            offset = rng.random() * window_seconds
        times.append(base + timedelta(seconds=offset))

    times.sort()
    return times
