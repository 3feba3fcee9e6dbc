from __future__ import annotations

import math
from typing import Any, Dict, Mapping, Optional, Sequence

from ..buffers.trajectory import Transition
from ..utils.common_utils import _ema_update, _mean, _std
from ..utils.config_utils import require_in_range


class BaselineNormalizer:
    """
    Batch-level TD-target normalization against running statistics.

    For each processed batch (n >= 2):

    1. batch mean ``m_b`` and unbiased sample std ``s_b`` of ``td_target``
    2. running stats ``m <- tau*m + (1-tau)*m_b``, ``s <- tau*s + (1-tau)*s_b``
       (the first batch initializes them directly)
    3. every ``td_target`` becomes ``(td_target - m) / s``, and ``td_error`` /
       ``advantage`` are recomputed from the rewritten target

    Normalization is skipped (returns False, nothing rewritten) when disabled,
    when the batch has fewer than 2 transitions, or when the running std is
    not finite and positive.

    Parameters
    ----------
    tau : float, default=0.9
        Keep ratio of the running statistics, in [0, 1).
    enabled : bool, default=True
        Master switch.
    """

    def __init__(self, tau: float = 0.9, enabled: bool = True) -> None:
        self.tau = require_in_range("tau", tau, low=0.0, high=1.0, high_inclusive=False)
        self.enabled = bool(enabled)
        self.running_mean: Optional[float] = None
        self.running_std: Optional[float] = None
        self.last_batch_mean: Optional[float] = None
        self.last_batch_std: Optional[float] = None

    def apply(self, transitions: Sequence[Transition]) -> bool:
        if not self.enabled or len(transitions) < 2:
            return False

        targets = [float(t.td_target) for t in transitions]
        batch_mean = _mean(targets)
        batch_std = _std(targets)
        if batch_std is None or not math.isfinite(batch_std) or not math.isfinite(batch_mean):
            return False

        self.last_batch_mean = batch_mean
        self.last_batch_std = batch_std
        self.running_mean = _ema_update(self.running_mean, batch_mean, self.tau)
        self.running_std = _ema_update(self.running_std, batch_std, self.tau)

        rm, rs = self.running_mean, self.running_std
        if not (math.isfinite(rs) and rs > 0.0):
            return False

        for t in transitions:
            t.td_target = (float(t.td_target) - rm) / rs
            t.td_error = t.td_target - float(t.value)
            t.advantage = t.td_error
        return True

    def reset(self) -> None:
        self.running_mean = None
        self.running_std = None
        self.last_batch_mean = None
        self.last_batch_std = None

    def state_dict(self) -> Dict[str, Any]:
        return {"tau": self.tau, "enabled": self.enabled, "running_mean": self.running_mean, "running_std": self.running_std}

    def load_state_dict(self, state: Mapping[str, Any]) -> None:
        self.running_mean = state.get("running_mean")
        self.running_std = state.get("running_std")
