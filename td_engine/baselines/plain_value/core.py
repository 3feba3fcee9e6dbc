from __future__ import annotations

from typing import Any, Mapping, Optional, Union

from td_engine.common.estimators.direct_estimator import DirectFunctionEstimator
from td_engine.common.utils.errors import ConfigError
from td_engine.common.values.base_value import BaseValueFunction
from td_engine.common.values.target_strategies import PlainTarget


class PlainValueFunction(BaseValueFunction):
    """
    Monte-Carlo return collector on a :class:`DirectFunctionEstimator`.

    The direct estimator predicts zero everywhere, so with ``lambda=1`` every
    TD target is the discounted return from that transition onward. Baseline
    normalization is on by default (``tau=0.9``), which turns the returns into
    standardized advantages for a policy-gradient consumer.

    Parameters
    ----------
    estimator : DirectFunctionEstimator, optional
        Return sink; a fresh one is created if omitted.
    gamma : float, default=0.99
    lam : float, default=1.0
    use_baseline : bool, default=True
    tau : float, default=0.9
    logger, log_every
        See :class:`BaseValueFunction`.
    """

    def __init__(
        self,
        estimator: Optional[DirectFunctionEstimator] = None,
        *,
        gamma: float = 0.99,
        lam: float = 1.0,
        use_baseline: bool = True,
        tau: float = 0.9,
        **kwargs: Any,
    ) -> None:
        if estimator is None:
            estimator = DirectFunctionEstimator()
        if not isinstance(estimator, DirectFunctionEstimator):
            raise ConfigError(f"PlainValueFunction needs a DirectFunctionEstimator, got {type(estimator).__name__}")
        if kwargs.get("dual_estimation"):
            raise ConfigError("PlainValueFunction does not support dual estimation")
        kwargs.pop("dual_estimation", None)
        super().__init__(
            estimator,
            PlainTarget(),
            action_value=False,
            gamma=gamma,
            lam=lam,
            use_baseline=use_baseline,
            tau=tau,
            **kwargs,
        )

    @classmethod
    def from_params(
        cls,
        estimator: Optional[DirectFunctionEstimator] = None,
        params: Optional[Union[str, Mapping[str, Any]]] = None,
        **kwargs: Any,
    ) -> "PlainValueFunction":
        return cls(estimator, **cls._from_params_kwargs(params), **kwargs)

    @property
    def returns(self):
        """(transition, target vector) pairs of the last trained batch."""
        return self.estimator.returns

    def reference(self, shared: bool = True) -> "PlainValueFunction":
        kwargs = self._reference_kwargs(shared)
        kwargs.pop("estimator2")
        return PlainValueFunction(kwargs.pop("estimator"), **kwargs)
