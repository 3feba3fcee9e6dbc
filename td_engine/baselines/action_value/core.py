from __future__ import annotations

from typing import Any, Mapping, Optional, Union

from td_engine.common.estimators.base_estimator import FunctionEstimator
from td_engine.common.values.base_value import BaseValueFunction
from td_engine.common.values.target_strategies import OnPolicyTarget, TargetStrategy


class ActionValueFunction(BaseValueFunction):
    """
    On-policy action value function Q(s, a) (SARSA-style).

    Reads and writes slot ``offset + action``; the offset is 1 when the
    estimator reserves a leading state-value slot. The bootstrap term is the
    successor's TD target for the action actually taken there.
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
            action_value=True,
            **kwargs,
        )

    @classmethod
    def from_params(
        cls,
        estimator: FunctionEstimator,
        params: Optional[Union[str, Mapping[str, Any]]] = None,
        **kwargs: Any,
    ) -> "ActionValueFunction":
        return cls(estimator, **cls._from_params_kwargs(params), **kwargs)

    def reference(self, shared: bool = True) -> "ActionValueFunction":
        kwargs = self._reference_kwargs(shared)
        kwargs.pop("estimator2")
        return ActionValueFunction(kwargs.pop("estimator"), strategy=self.strategy, **kwargs)
