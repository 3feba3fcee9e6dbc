from __future__ import annotations

from typing import Any, Mapping, Optional, Union

from td_engine.common.estimators.base_estimator import FunctionEstimator
from td_engine.common.values.base_value import BaseValueFunction
from td_engine.common.values.target_strategies import OnPolicyTarget, TargetStrategy


class StateValueFunction(BaseValueFunction):
    """
    State value function V(s).

    Reads and writes slot 0 of the predicted vector, which is either the
    whole output of a single-output estimator or the leading state-value slot
    of an estimator that also predicts action values. The successor's own TD
    target is the bootstrap term (on-policy, no max over actions), so with
    ``lambda=1`` the targets are lambda-returns of the collected episode.

    Parameters
    ----------
    estimator : FunctionEstimator
        Estimator predicting V(s) at slot 0.
    strategy : TargetStrategy, optional
        Overrides the default :class:`OnPolicyTarget`.
    **kwargs
        Forwarded to :class:`BaseValueFunction` (gamma, lam, use_baseline,
        tau, logger, log_every, diagnostics_beta).
    """

    def __init__(
        self,
        estimator: FunctionEstimator,
        *,
        strategy: Optional[TargetStrategy] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            estimator,
            strategy if strategy is not None else OnPolicyTarget(),
            action_value=False,
            **kwargs,
        )

    @classmethod
    def from_params(
        cls,
        estimator: FunctionEstimator,
        params: Optional[Union[str, Mapping[str, Any]]] = None,
        **kwargs: Any,
    ) -> "StateValueFunction":
        """Build from ``"gamma = 0.9, lambda = 1"`` style parameters."""
        return cls(estimator, **cls._from_params_kwargs(params), **kwargs)

    def reference(self, shared: bool = True) -> "StateValueFunction":
        kwargs = self._reference_kwargs(shared)
        kwargs.pop("estimator2")
        return StateValueFunction(kwargs.pop("estimator"), strategy=self.strategy, **kwargs)
