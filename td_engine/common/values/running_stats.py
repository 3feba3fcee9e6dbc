from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from ..utils.common_utils import _ema_update


class RunningAverages:
    """
    Exponentially-decayed averages of reward, TD target and TD error.

    Diagnostics only: nothing in the backward pass reads them back. They live
    as long as their value function and change only through `update` and
    `reset`.

    Parameters
    ----------
    beta : float, default=0.99
        Keep ratio of the moving averages (``avg <- beta*avg + (1-beta)*x``).
    """

    KEYS = ("reward", "td_target", "td_error")

    def __init__(self, beta: float = 0.99) -> None:
        self.beta = float(beta)
        if not (0.0 <= self.beta < 1.0):
            raise ValueError(f"beta must be in [0, 1), got: {self.beta}")
        self._avg: Dict[str, Optional[float]] = {k: None for k in self.KEYS}
        self.count = 0

    def update(self, *, reward: float, td_target: float, td_error: float) -> None:
        self._avg["reward"] = _ema_update(self._avg["reward"], reward, self.beta)
        self._avg["td_target"] = _ema_update(self._avg["td_target"], td_target, self.beta)
        self._avg["td_error"] = _ema_update(self._avg["td_error"], td_error, self.beta)
        self.count += 1

    def get(self, key: str) -> Optional[float]:
        return self._avg[key]

    def as_dict(self) -> Dict[str, float]:
        """Initialized averages only."""
        return {k: float(v) for k, v in self._avg.items() if v is not None}

    def reset(self) -> None:
        self._avg = {k: None for k in self.KEYS}
        self.count = 0

    def state_dict(self) -> Dict[str, Any]:
        return {"avg": dict(self._avg), "count": self.count}

    def load_state_dict(self, state: Mapping[str, Any]) -> None:
        avg = state.get("avg", {})
        self._avg = {k: (None if avg.get(k) is None else float(avg[k])) for k in self.KEYS}
        self.count = int(state.get("count", 0))
