from __future__ import annotations

from typing import Any, Optional

from .core import PlainValueFunction
from td_engine.common.estimators.direct_estimator import DirectFunctionEstimator


def plain_value(
    *,
    gamma: float = 0.99,
    use_baseline: bool = True,
    tau: float = 0.9,
    logger: Optional[Any] = None,
    log_every: int = 1,
) -> PlainValueFunction:
    """
    Build a Monte-Carlo :class:`PlainValueFunction` (lambda fixed at 1).

    Returns
    -------
    value_function : PlainValueFunction
        Value function whose trained targets are (optionally normalized)
        discounted returns, readable through ``value_function.returns``.
    """
    estimator = DirectFunctionEstimator(1, logger=logger, log_every=log_every)
    return PlainValueFunction(
        estimator,
        gamma=float(gamma),
        lam=1.0,
        use_baseline=bool(use_baseline),
        tau=float(tau),
        logger=logger,
        log_every=log_every,
    )
