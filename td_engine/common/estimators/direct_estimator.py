from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .base_estimator import FunctionEstimator
from ..buffers.trajectory import Transition
from ..utils.common_utils import _mean


class DirectFunctionEstimator(FunctionEstimator):
    """
    Pass-through estimator with no learned parameters.

    Predicts zeros, so a value function built on it turns TD targets into
    plain discounted (Monte-Carlo) returns. `train()` hands the stored targets
    to `returns` (most recent batch) instead of fitting anything; a policy
    that consumes returns directly reads them from there.

    Parameters
    ----------
    num_outputs : int, default=1
        Vector length (1 for a state-value style return collector).
    logger, log_every
        See :class:`FunctionEstimator`.
    """

    def __init__(self, num_outputs: int = 1, *, logger: Optional[Any] = None, log_every: int = 1) -> None:
        super().__init__(num_outputs=num_outputs, logger=logger, log_every=log_every)
        self.returns: List[Tuple[Transition, np.ndarray]] = []
        self._finalize_init()

    def _predict_raw(self, state: Any, transition: Optional[Transition] = None) -> np.ndarray:
        return np.zeros(self.num_outputs, dtype=np.float64)

    def _fit(self, batch: Sequence[Tuple[Transition, np.ndarray]]) -> Dict[str, float]:
        self.returns = list(batch)
        return {"return_mean": _mean([float(tv[0]) for _, tv in batch])}

    def assign_from(self, other: FunctionEstimator) -> None:
        return None

    def blend_from(self, other: FunctionEstimator, tau: float) -> None:
        return None

    def _fresh(self, *, use_target: bool) -> "DirectFunctionEstimator":
        return DirectFunctionEstimator(self.num_outputs, logger=self.logger, log_every=self.log_every)

    def _params_state_dict(self) -> Dict[str, Any]:
        return {}

    def _load_params_state_dict(self, state: Mapping[str, Any]) -> None:
        return None
