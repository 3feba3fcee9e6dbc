from __future__ import annotations

from typing import Any, Mapping, Optional, Union

import numpy as np
import torch as th

from td_engine.common.estimators.base_estimator import FunctionEstimator
from td_engine.common.values.base_value import BaseValueFunction
from td_engine.common.values.target_strategies import SoftQTarget


class SoftQValueFunction(BaseValueFunction):
    """
    Entropy-regularized (soft) Q value function.

    Bootstrap value of a successor ``s'``::

        sum_a pi(a|s') * (Q(s', a) - alpha * log pi(a|s'))

    over the successor's available actions, where ``Q`` is the clipped
    combination of both estimators under dual estimation. ``pi`` comes from
    a separate policy estimator whose prediction is an action-probability
    vector.

    The temperature may be a float or a one-element tensor. A tensor is read
    at every target computation, so a temperature learned elsewhere (for
    example ``log_alpha.exp()`` kept in place) is picked up without rebuilding
    the value function.

    Parameters
    ----------
    estimator : FunctionEstimator
        First Q estimator.
    policy_estimator : FunctionEstimator
        Action-probability estimator.
    alpha : float or torch.Tensor, default=0.2
        Temperature.
    q_source, policy_source : {"online", "target"}
        Parameters used for ``Q(s', .)`` and ``pi(.|s')`` respectively.
    expectation : bool, default=True
        Full expectation; False evaluates only the successor's target action.
    dual_estimation : bool, default=True
        Clipped double estimation.
    min_max_balance : float, default=1.0
        Probability of the min combination.
    prob_floor : float, default=1e-8
        Lower bound inside the log.
    """

    PARAMS = dict(
        BaseValueFunction.PARAMS,
        alpha=float,
        q_source=str,
        policy_source=str,
        expectation=bool,
        min_max_balance=float,
        prob_floor=float,
    )

    def __init__(
        self,
        estimator: FunctionEstimator,
        policy_estimator: FunctionEstimator,
        *,
        alpha: Union[float, th.Tensor] = 0.2,
        q_source: str = "target",
        policy_source: str = "online",
        expectation: bool = True,
        dual_estimation: bool = True,
        estimator2: Optional[FunctionEstimator] = None,
        min_max_balance: float = 1.0,
        prob_floor: float = 1e-8,
        rng: Optional[np.random.Generator] = None,
        **kwargs: Any,
    ) -> None:
        strategy = SoftQTarget(
            policy_estimator,
            alpha=alpha,
            q_source=q_source,
            policy_source=policy_source,
            expectation=expectation,
            min_max_balance=min_max_balance,
            prob_floor=prob_floor,
            rng=rng,
        )
        super().__init__(
            estimator,
            strategy,
            action_value=True,
            dual_estimation=dual_estimation,
            estimator2=estimator2,
            **kwargs,
        )
        self.soft_target: SoftQTarget = strategy

    @classmethod
    def from_params(
        cls,
        estimator: FunctionEstimator,
        policy_estimator: FunctionEstimator,
        params: Optional[Union[str, Mapping[str, Any]]] = None,
        **kwargs: Any,
    ) -> "SoftQValueFunction":
        return cls(estimator, policy_estimator, **cls._from_params_kwargs(params), **kwargs)

    # ---------------------------------------------------------------------
    # Temperature / policy
    # ---------------------------------------------------------------------
    @property
    def policy_estimator(self) -> FunctionEstimator:
        return self.soft_target.policy_estimator

    @property
    def alpha(self) -> float:
        return self.soft_target.alpha

    def set_alpha(self, alpha: Union[float, th.Tensor]) -> None:
        self.soft_target.set_alpha(alpha)

    def reference(self, shared: bool = True) -> "SoftQValueFunction":
        """
        Shared references reuse the estimators, the policy estimator and the
        temperature object; independent ones get fresh estimators and a
        detached copy of the current temperature.
        """
        st = self.soft_target
        kwargs = self._reference_kwargs(shared)
        if shared:
            policy = st.policy_estimator
            alpha = st.alpha_source
        else:
            policy = st.policy_estimator.reference(shared=False)
            src = st.alpha_source
            alpha = src.detach().clone() if th.is_tensor(src) else float(src)
        return SoftQValueFunction(
            kwargs.pop("estimator"),
            policy,
            alpha=alpha,
            q_source=st.q_source,
            policy_source=st.policy_source,
            expectation=st.expectation,
            dual_estimation=self.dual_estimation,
            min_max_balance=st.min_max_balance,
            prob_floor=st.prob_floor,
            **kwargs,
        )
