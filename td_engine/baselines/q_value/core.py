from __future__ import annotations

from typing import Any, Mapping, Optional, Union

import numpy as np

from td_engine.common.estimators.base_estimator import FunctionEstimator
from td_engine.common.utils.errors import ConfigError
from td_engine.common.values.base_value import BaseValueFunction
from td_engine.common.values.target_strategies import (
    DoubleQTarget,
    GreedyQTarget,
    TargetActionQTarget,
    TargetStrategy,
)


class QValueFunction(BaseValueFunction):
    """
    Off-policy Q-learning value function.

    Bootstrap forms
    ---------------
    - single estimator: ``max_a Q(s', a)`` over the successor's available
      actions (:class:`GreedyQTarget`)
    - ``dual_estimation=True``: clipped double-Q (:class:`DoubleQTarget`),
      action by argmax of the online first estimator, value by min (or max,
      see `min_max_balance`) of both estimators at that action
    - ``target_action=True``: ``Q(s', a')`` at the successor's recorded
      target action (:class:`TargetActionQTarget`)

    Parameters
    ----------
    estimator : FunctionEstimator
        First Q estimator.
    use_target : bool, default=False
        Evaluate bootstrap values with the target sub-estimator(s).
    dual_estimation : bool, default=False
        Keep a second independently trained estimator.
    estimator2 : FunctionEstimator, optional
        Explicit second estimator (implies dual estimation).
    min_max_balance : float, default=1.0
        Probability of the min combination under dual estimation.
    target_action : bool, default=False
        Bootstrap from the recorded target action instead of the greedy max.
    rng : np.random.Generator, optional
        Random source of the min/max draw.
    **kwargs
        Forwarded to :class:`BaseValueFunction`.
    """

    PARAMS = dict(BaseValueFunction.PARAMS, use_target=bool, min_max_balance=float, target_action=bool)

    def __init__(
        self,
        estimator: FunctionEstimator,
        *,
        use_target: bool = False,
        dual_estimation: bool = False,
        estimator2: Optional[FunctionEstimator] = None,
        min_max_balance: float = 1.0,
        target_action: bool = False,
        rng: Optional[np.random.Generator] = None,
        **kwargs: Any,
    ) -> None:
        dual = bool(dual_estimation) or estimator2 is not None
        if dual and target_action:
            raise ConfigError("target_action bootstrap does not combine with dual estimation")

        strategy: TargetStrategy
        if dual:
            strategy = DoubleQTarget(use_target=use_target, min_max_balance=min_max_balance, rng=rng)
        elif target_action:
            strategy = TargetActionQTarget(use_target=use_target)
        else:
            strategy = GreedyQTarget(use_target=use_target)

        self.use_target = bool(use_target)
        self.min_max_balance = float(min_max_balance)
        self.target_action = bool(target_action)

        super().__init__(
            estimator,
            strategy,
            action_value=True,
            dual_estimation=dual,
            estimator2=estimator2,
            **kwargs,
        )

    @classmethod
    def from_params(
        cls,
        estimator: FunctionEstimator,
        params: Optional[Union[str, Mapping[str, Any]]] = None,
        **kwargs: Any,
    ) -> "QValueFunction":
        """Build from ``"gamma = 0.9, dual_estimation = true, use_target = true"`` style parameters."""
        return cls(estimator, **cls._from_params_kwargs(params), **kwargs)

    def reference(self, shared: bool = True) -> "QValueFunction":
        kwargs = self._reference_kwargs(shared)
        return QValueFunction(
            kwargs.pop("estimator"),
            use_target=self.use_target,
            dual_estimation=self.dual_estimation,
            min_max_balance=self.min_max_balance,
            target_action=self.target_action,
            **kwargs,
        )
