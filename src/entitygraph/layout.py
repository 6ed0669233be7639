"""Initial positions for newly created nodes.

A layout is any callable that takes the ids of a batch of new nodes and
returns one ``(x, y)`` per id, in order. Aggregation never moves a node once
it has a position; only these callbacks assign one, and only at creation.
"""

from __future__ import annotations

import math
import random
from typing import Callable, Sequence

import numpy as np

from .config import Settings


Position = tuple[float, float]
Layout = Callable[[Sequence[str]], list[Position]]


def random_layout(*, seed: int | None = None, spread: float = 400.0) -> Layout:
    rng = random.Random(seed)

    def place(ids: Sequence[str]) -> list[Position]:
        return [(rng.uniform(-spread, spread), rng.uniform(-spread, spread)) for _ in ids]

    return place


def circular_layout(*, radius: float = 300.0, center: Position = (0.0, 0.0)) -> Layout:
    """Spread each batch evenly around a ring; later batches use wider rings."""
    batches = 0

    def place(ids: Sequence[str]) -> list[Position]:
        nonlocal batches
        n = len(ids)
        if n == 0:
            return []
        r = radius * (1.0 + 0.5 * batches)
        batches += 1
        angles = np.linspace(0.0, 2.0 * math.pi, num=n, endpoint=False)
        xs = center[0] + r * np.cos(angles)
        ys = center[1] + r * np.sin(angles)
        return [(float(x), float(y)) for x, y in zip(xs, ys)]

    return place


def fixed_layout(x: float = 0.0, y: float = 0.0) -> Layout:
    def place(ids: Sequence[str]) -> list[Position]:
        return [(float(x), float(y)) for _ in ids]

    return place


def layout_from_settings(settings: Settings) -> Layout:
    name = settings.layout.strip().lower()
    if name == "circular":
        return circular_layout()
    if name == "random":
        return random_layout(seed=settings.layout_seed)
    raise ValueError(f"Unknown layout: {settings.layout!r} (expected 'random' or 'circular')")
