from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Sequence, Union

import numpy as np
import torch as th

from ..buffers.trajectory import NO_ACTION, Transition
from ..estimators.base_estimator import FunctionEstimator
from ..utils.config_utils import require_in_range
from ..utils.errors import ConfigError

if TYPE_CHECKING:
    from .base_value import BaseValueFunction


SOURCES = ("online", "target")


def _check_source(name: str, source: str) -> str:
    s = str(source).lower().strip()
    if s not in SOURCES:
        raise ConfigError(f"{name} must be one of {SOURCES}, got: {source!r}")
    return s


def _predict(estimator: FunctionEstimator, transition: Transition, source: str) -> np.ndarray:
    if source == "target":
        return estimator.predict_target(transition)
    return estimator.predict(transition)


def _value_estimators(value_function: "BaseValueFunction") -> List[FunctionEstimator]:
    ests = [value_function.estimator]
    if value_function.estimator2 is not None:
        ests.append(value_function.estimator2)
    return ests


# =============================================================================
# Strategy base
# =============================================================================
class TargetStrategy(ABC):
    """
    Turns a successor transition into the scalar bootstrap target.

    A strategy is attached to exactly one value function, which calls
    `bind()` once at construction and `target_value()` for every non-terminal
    transition of a batch. `bind()` validates the setup and allocates a
    target estimator on every estimator the strategy reads in target mode.
    """

    requires_dual: bool = False

    def bind(self, value_function: "BaseValueFunction") -> None:
        if self.requires_dual and value_function.estimator2 is None:
            raise ConfigError(f"{type(self).__name__} requires dual_estimation=True")
        for est in self.target_readers(value_function):
            if est.target is None:
                est.set_target_estimator()

    def target_readers(self, value_function: "BaseValueFunction") -> List[FunctionEstimator]:
        """Estimators whose target sub-estimator this strategy evaluates."""
        return []

    @abstractmethod
    def target_value(self, value_function: "BaseValueFunction", next_transition: Transition) -> float:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


# =============================================================================
# Pass-through targets
# =============================================================================
class PlainTarget(TargetStrategy):
    """
    Successor's already computed TD target (Monte-Carlo return collection).

    Whatever `td_target` the successor carries is returned, including one left
    by an earlier pass when the successor lies outside the current batch. Only
    a successor that was never processed falls back to its on-demand value.
    Call `Transition.reset_estimates()` on reused samples to force the
    fallback.
    """

    def target_value(self, value_function: "BaseValueFunction", next_transition: Transition) -> float:
        if next_transition.td_target is not None:
            return float(next_transition.td_target)
        return value_function.value_of(next_transition)


class OnPolicyTarget(PlainTarget):
    """Successor's TD target for the action actually taken there (no max over actions)."""


# =============================================================================
# Q-learning targets
# =============================================================================
class GreedyQTarget(TargetStrategy):
    """
    ``max_a Q(s', a)`` over the successor's available actions.

    Parameters
    ----------
    use_target : bool, default=False
        Read the target estimator instead of the online one.
    """

    def __init__(self, use_target: bool = False) -> None:
        self.source = "target" if use_target else "online"

    def target_readers(self, value_function: "BaseValueFunction") -> List[FunctionEstimator]:
        return [value_function.estimator] if self.source == "target" else []

    def target_value(self, value_function: "BaseValueFunction", next_transition: Transition) -> float:
        est = value_function.estimator
        values = _predict(est, next_transition, self.source)
        return est.max(values, next_transition.available_actions)

    def __repr__(self) -> str:
        return f"GreedyQTarget(source={self.source!r})"


class TargetActionQTarget(TargetStrategy):
    """
    ``Q(s', a')`` at the successor's recorded target action.

    Falls back to the successor's taken action when no target action was
    recorded.
    """

    def __init__(self, use_target: bool = True) -> None:
        self.source = "target" if use_target else "online"

    def target_readers(self, value_function: "BaseValueFunction") -> List[FunctionEstimator]:
        return [value_function.estimator] if self.source == "target" else []

    def target_value(self, value_function: "BaseValueFunction", next_transition: Transition) -> float:
        est = value_function.estimator
        action = next_transition.target_action
        if action == NO_ACTION:
            action = next_transition.action
        if action == NO_ACTION:
            raise ValueError("successor has neither a target action nor an action")
        values = _predict(est, next_transition, self.source)
        return float(values[est.index_offset + int(action)])


class DoubleQTarget(TargetStrategy):
    """
    Clipped double-estimator target.

    The action is chosen by argmax of the *online* first estimator; the value
    is ``min`` (with probability `min_max_balance`) or ``max`` of both
    estimators' predictions at that action.

    Parameters
    ----------
    use_target : bool, default=False
        Evaluate each estimator's target sub-estimator.
    min_max_balance : float, default=1.0
        Probability of combining with min; 1 means always min.
    rng : np.random.Generator, optional
        Random source for the min/max draw.
    """

    requires_dual = True

    def __init__(
        self,
        use_target: bool = False,
        min_max_balance: float = 1.0,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.source = "target" if use_target else "online"
        self.min_max_balance = require_in_range("min_max_balance", min_max_balance, low=0.0, high=1.0)
        self.rng = rng if rng is not None else np.random.default_rng()

    def use_min(self) -> bool:
        if self.min_max_balance >= 1.0:
            return True
        return bool(self.rng.random() < self.min_max_balance)

    def target_readers(self, value_function: "BaseValueFunction") -> List[FunctionEstimator]:
        return _value_estimators(value_function) if self.source == "target" else []

    def target_value(self, value_function: "BaseValueFunction", next_transition: Transition) -> float:
        est1 = value_function.estimator
        est2 = value_function.estimator2
        assert est2 is not None
        avail = next_transition.available_actions

        action = est1.argmax(est1.predict(next_transition), avail)
        v1 = float(_predict(est1, next_transition, self.source)[est1.index_offset + action])
        v2 = float(_predict(est2, next_transition, self.source)[est2.index_offset + action])
        return min(v1, v2) if self.use_min() else max(v1, v2)

    def __repr__(self) -> str:
        return f"DoubleQTarget(source={self.source!r}, min_max_balance={self.min_max_balance})"


# =============================================================================
# Soft (entropy-regularized) target
# =============================================================================
class SoftQTarget(TargetStrategy):
    """
    Entropy-regularized target over the successor's available actions::

        sum_a pi(a|s') * (Q(s', a) - alpha * log(max(pi(a|s'), prob_floor)))

    Under dual estimation ``Q`` is the element-wise min (or, with probability
    ``1 - min_max_balance``, max) of both estimators.

    Parameters
    ----------
    policy_estimator : FunctionEstimator
        Estimator whose prediction is the action-probability vector.
    alpha : float or torch.Tensor, default=0.2
        Temperature. A one-element tensor is read at every call, so a learned
        temperature can be shared and updated in place.
    q_source : {"online", "target"}, default="target"
        Which Q parameters evaluate ``Q(s', a)``.
    policy_source : {"online", "target"}, default="online"
        Which policy parameters evaluate ``pi(a|s')``.
    expectation : bool, default=True
        Full expectation over available actions. With False only the term of
        the successor's target action (or the policy's argmax when unset) is
        returned.
    min_max_balance : float, default=1.0
        Probability of clipping with min under dual estimation.
    prob_floor : float, default=1e-8
        Lower bound applied to probabilities inside the log.
    rng : np.random.Generator, optional
        Random source for the min/max draw.

    Raises
    ------
    ConfigError
        On unknown sources, a non-positive floor, or a non-scalar temperature.
    """

    def __init__(
        self,
        policy_estimator: FunctionEstimator,
        *,
        alpha: Union[float, th.Tensor] = 0.2,
        q_source: str = "target",
        policy_source: str = "online",
        expectation: bool = True,
        min_max_balance: float = 1.0,
        prob_floor: float = 1e-8,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        if policy_estimator is None:
            raise ConfigError("SoftQTarget requires a policy estimator")
        self.policy_estimator = policy_estimator
        self.q_source = _check_source("q_source", q_source)
        self.policy_source = _check_source("policy_source", policy_source)
        self.expectation = bool(expectation)
        self.min_max_balance = require_in_range("min_max_balance", min_max_balance, low=0.0, high=1.0)
        self.prob_floor = require_in_range("prob_floor", prob_floor, low=0.0, high=1.0, low_inclusive=False)
        self.rng = rng if rng is not None else np.random.default_rng()
        self._alpha: Union[float, th.Tensor] = 0.0
        self.set_alpha(alpha)

    # ---------------------------------------------------------------------
    # Temperature
    # ---------------------------------------------------------------------
    def set_alpha(self, alpha: Union[float, th.Tensor]) -> None:
        """Attach a fixed float or a one-element tensor as temperature."""
        if th.is_tensor(alpha):
            if alpha.numel() != 1:
                raise ConfigError(f"alpha must be a single scalar, got tensor of shape {tuple(alpha.shape)}")
            self._alpha = alpha
            return
        if isinstance(alpha, (np.ndarray, list, tuple)):
            if np.size(alpha) != 1:
                raise ConfigError(f"alpha must be a single scalar, got {np.size(alpha)} elements")
            alpha = np.asarray(alpha).reshape(-1)[0]
        if isinstance(alpha, bool):
            raise ConfigError("alpha must be numeric, got bool")
        self._alpha = require_in_range("alpha", alpha, low=0.0)

    @property
    def alpha(self) -> float:
        if th.is_tensor(self._alpha):
            return float(self._alpha.detach().reshape(-1)[0].cpu().item())
        return float(self._alpha)

    @property
    def alpha_source(self) -> Union[float, th.Tensor]:
        """The temperature object itself (shared tensor or float)."""
        return self._alpha

    # ---------------------------------------------------------------------
    # Target
    # ---------------------------------------------------------------------
    def target_readers(self, value_function: "BaseValueFunction") -> List[FunctionEstimator]:
        ests = _value_estimators(value_function) if self.q_source == "target" else []
        if self.policy_source == "target":
            ests.append(self.policy_estimator)
        return ests

    def _q_values(self, value_function: "BaseValueFunction", next_transition: Transition) -> np.ndarray:
        est1 = value_function.estimator
        q = _predict(est1, next_transition, self.q_source)
        est2 = value_function.estimator2
        if est2 is None:
            return q
        q2 = _predict(est2, next_transition, self.q_source)
        if self.min_max_balance >= 1.0 or self.rng.random() < self.min_max_balance:
            return np.minimum(q, q2)
        return np.maximum(q, q2)

    def _term(self, p: float, q: float, alpha: float) -> float:
        return p * (q - alpha * math.log(max(p, self.prob_floor)))

    def target_value(self, value_function: "BaseValueFunction", next_transition: Transition) -> float:
        policy = self.policy_estimator
        probs = _predict(policy, next_transition, self.policy_source)
        q = self._q_values(value_function, next_transition)
        q_off = value_function.estimator.index_offset
        p_off = policy.index_offset
        alpha = self.alpha
        avail = next_transition.available_actions

        if not self.expectation:
            action = next_transition.target_action
            if action == NO_ACTION:
                action = policy.argmax(probs, avail)
            return self._term(float(probs[p_off + action]), float(q[q_off + action]), alpha)

        actions: Sequence[int] = policy.actions_of(avail)
        return float(sum(self._term(float(probs[p_off + a]), float(q[q_off + a]), alpha) for a in actions))

    def __repr__(self) -> str:
        return (
            f"SoftQTarget(q_source={self.q_source!r}, policy_source={self.policy_source!r}, "
            f"expectation={self.expectation}, alpha={self.alpha:.4g})"
        )


# =============================================================================
# Custom hook
# =============================================================================
class CustomTarget(TargetStrategy):
    """Wraps ``fn(value_function, next_transition) -> float``."""

    def __init__(self, fn: Callable[[Any, Transition], float], *, requires_dual: bool = False) -> None:
        if not callable(fn):
            raise ConfigError("CustomTarget needs a callable")
        self.fn = fn
        self.requires_dual = bool(requires_dual)

    def target_value(self, value_function: "BaseValueFunction", next_transition: Transition) -> float:
        return float(self.fn(value_function, next_transition))

    def __repr__(self) -> str:
        return f"CustomTarget({getattr(self.fn, '__name__', self.fn)!r})"
