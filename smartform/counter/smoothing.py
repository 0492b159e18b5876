from __future__ import annotations
from typing import Optional

DEFAULT_ALPHA = 0.35  # higher = more reactive, lower = steadier


def smooth(previous: Optional[float], raw: float, alpha: float = DEFAULT_ALPHA) -> float:
    if previous is None:
        return float(raw)
    return alpha * raw + (1 - alpha) * previous


class Ema:
    """Exponential moving average over one scalar stream.

    The first sample seeds the filter directly. Callers skip ``update`` on
    frames without a measurement, so ``value`` keeps the last real estimate
    but is never refreshed by a gap.
    """

    def __init__(self, alpha: float = DEFAULT_ALPHA):
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        self.alpha = alpha
        self._value: Optional[float] = None

    @property
    def initialized(self) -> bool:
        return self._value is not None

    @property
    def value(self) -> Optional[float]:
        return self._value

    def update(self, raw: float) -> float:
        self._value = smooth(self._value, float(raw), self.alpha)
        return self._value

    def reset(self) -> None:
        self._value = None
