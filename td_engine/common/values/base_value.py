from __future__ import annotations

from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np

from .baseline import BaselineNormalizer
from .index_resolver import ActionValueIndex, IndexResolver, StateValueIndex
from .running_stats import RunningAverages
from .target_strategies import TargetStrategy
from ..buffers.trajectory import Trajectory, Transition
from ..estimators.base_estimator import FunctionEstimator
from ..utils.config_utils import parse_params, require_in_range
from ..utils.errors import ConfigError


Batch = Union[Trajectory, Transition, Iterable[Transition], None]


class BaseValueFunction:
    """
    Temporal-difference value function: turns transitions into training targets.

    The value function owns the backward pass. For each transition, from the
    last one to the first:

    1. predict the value vector and record ``value`` at the resolved index
       (and ``value2`` from the second estimator under dual estimation)
    2. bootstrap: 0 for a terminal transition, otherwise
       ``(1 - lambda) * value(next) + lambda * strategy.target_value(next)``
    3. ``td_target = reward + gamma * bootstrap``
    4. ``td_error = td_target - value``; ``advantage = td_error``
    5. update the running diagnostics

    After the batch the optional baseline normalization runs once, then one
    target vector per transition (its predicted vector with the resolved slot
    replaced by ``td_target``) is stored into the estimator, and into the
    second estimator against that estimator's own prediction.

    Training is a separate step (`update_function_estimator`) so that several
    agents sharing an estimator can each store their batch before exactly one
    of them trains it, once the readiness barrier opens.

    Parameters
    ----------
    estimator : FunctionEstimator
        Primary function estimator.
    strategy : TargetStrategy
        Bootstrap target computation for successor transitions.
    action_value : bool, default=False
        Resolve ``offset + action`` instead of the state-value slot.
    gamma : float, default=0.99
        Discount factor in [0, 1].
    lam : float, default=1.0
        Bootstrap blend (lambda) in [0, 1].
    dual_estimation : bool, default=False
        Keep a second, independently trained estimator.
    estimator2 : FunctionEstimator, optional
        Second estimator; created from ``estimator.reference(shared=False)``
        when dual estimation is on and none is given.
    use_baseline : bool, default=False
        Enable batch TD-target normalization.
    tau : float, default=0.9
        Keep ratio of the baseline running statistics.
    logger : Any, optional
        Metrics sink with ``log(metrics, step=..., prefix=...)``.
    log_every : int, default=1
        Emit diagnostics every N processed batches.
    diagnostics_beta : float, default=0.99
        Keep ratio of the running diagnostics.

    Raises
    ------
    ConfigError
        On out-of-range scalars or a strategy incompatible with the setup.
    """

    PARAMS = {
        "gamma": float,
        "lambda": float,
        "tau": float,
        "use_baseline": bool,
        "dual_estimation": bool,
        "log_every": int,
    }

    def __init__(
        self,
        estimator: FunctionEstimator,
        strategy: TargetStrategy,
        *,
        action_value: bool = False,
        gamma: float = 0.99,
        lam: float = 1.0,
        dual_estimation: bool = False,
        estimator2: Optional[FunctionEstimator] = None,
        use_baseline: bool = False,
        tau: float = 0.9,
        logger: Optional[Any] = None,
        log_every: int = 1,
        diagnostics_beta: float = 0.99,
    ) -> None:
        if not isinstance(estimator, FunctionEstimator):
            raise ConfigError(f"estimator must be a FunctionEstimator, got {type(estimator).__name__}")
        if not isinstance(strategy, TargetStrategy):
            raise ConfigError(f"strategy must be a TargetStrategy, got {type(strategy).__name__}")

        self.gamma = require_in_range("gamma", gamma, low=0.0, high=1.0)
        self.lam = require_in_range("lambda", lam, low=0.0, high=1.0)
        self.action_value = bool(action_value)
        self.log_every = max(1, int(log_every))
        self.logger = logger

        self.estimator = estimator
        self.dual_estimation = bool(dual_estimation) or estimator2 is not None
        self.estimator2: Optional[FunctionEstimator] = None
        if self.dual_estimation:
            self.estimator2 = estimator2 if estimator2 is not None else estimator.reference(shared=False)
            if (
                self.estimator2.num_outputs != estimator.num_outputs
                or self.estimator2.index_offset != estimator.index_offset
            ):
                raise ConfigError("estimator2 must have the same output layout as estimator")

        self.resolver: IndexResolver = (
            ActionValueIndex(estimator.index_offset) if self.action_value else StateValueIndex()
        )
        self.baseline = BaselineNormalizer(tau=tau, enabled=use_baseline)
        self.diagnostics = RunningAverages(beta=diagnostics_beta)

        self.strategy = strategy
        self.strategy.bind(self)

        self._batches = 0

    @classmethod
    def _from_params_kwargs(cls, params: Optional[Union[str, Mapping[str, Any]]]) -> Dict[str, Any]:
        kwargs = parse_params(params, cls.PARAMS)
        if "lambda" in kwargs:
            kwargs["lam"] = kwargs.pop("lambda")
        return kwargs

    # ---------------------------------------------------------------------
    # Values
    # ---------------------------------------------------------------------
    @property
    def tau(self) -> float:
        return self.baseline.tau

    @property
    def use_baseline(self) -> bool:
        return self.baseline.enabled

    @property
    def batches(self) -> int:
        """Number of non-empty batches processed by `update`."""
        return int(self._batches)

    def value_of(self, transition: Transition) -> float:
        """Online estimate at the transition's resolved slot, without caching it."""
        return float(self.estimator.predict(transition)[self.resolver.index(transition)])

    def target_value(self, next_transition: Transition) -> float:
        """Bootstrap target the strategy assigns to a successor transition."""
        return float(self.strategy.target_value(self, next_transition))

    # ---------------------------------------------------------------------
    # Backward pass
    # ---------------------------------------------------------------------
    def _order(self, batch: Batch) -> Optional[List[Transition]]:
        if batch is None:
            return None
        if isinstance(batch, Trajectory):
            return list(batch.reversed())
        if isinstance(batch, Transition):
            if batch.trajectory is None:
                return [batch]
            # terminal (or latest) transition of a chain: walk back to its start
            chain = [batch]
            prev = batch.previous
            while prev is not None:
                chain.append(prev)
                prev = prev.previous
            return chain

        items = list(batch)
        for t in items:
            if not isinstance(t, Transition):
                raise TypeError(f"sampled batch must contain Transition objects, got {type(t).__name__}")
        # successors first; stable for equal time steps across episodes
        return sorted(items, key=lambda t: t.time_step, reverse=True)

    def _successor_value(self, nxt: Transition, seen: Dict[int, Transition]) -> float:
        if id(nxt) in seen and nxt.value is not None:
            return float(nxt.value)
        return self.value_of(nxt)

    def _process(self, t: Transition, seen: Dict[int, Transition]) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        idx = self.resolver.index(t)

        values = self.estimator.predict(t)
        t.value = float(values[idx])
        values2: Optional[np.ndarray] = None
        if self.estimator2 is not None:
            values2 = self.estimator2.predict(t)
            t.value2 = float(values2[idx])

        if t.terminal:
            bootstrap = 0.0
        else:
            nxt = t.next
            if nxt is None:
                raise ValueError(
                    f"non-terminal transition at time_step={t.time_step} has no successor; "
                    "close the trajectory or mark the transition terminal"
                )
            bootstrap = 0.0
            if self.lam < 1.0:
                bootstrap += (1.0 - self.lam) * self._successor_value(nxt, seen)
            if self.lam > 0.0:
                bootstrap += self.lam * self.target_value(nxt)

        t.td_target = float(t.reward) + self.gamma * bootstrap
        t.td_error = t.td_target - t.value
        t.advantage = t.td_error

        self.diagnostics.update(reward=float(t.reward), td_target=t.td_target, td_error=t.td_error)
        seen[id(t)] = t
        return values, values2

    def update(self, batch: Batch) -> Optional[List[Transition]]:
        """
        Compute TD targets for a trajectory or a sampled set and store them.

        Parameters
        ----------
        batch : Trajectory, Transition, Iterable[Transition] or None
            - ``Trajectory``: chain mode, processed last to first
            - ``Transition`` attached to a trajectory: the chain ending there
            - iterable of transitions: sampled mode, processed independently in
              descending time-step order; a successor outside the set is
              evaluated on demand
            - ``None`` / empty: no-op

        Returns
        -------
        processed : List[Transition] or None
            Transitions in processing order, or None when the batch was empty
            (nothing was computed or stored).
        """
        order = self._order(batch)
        if not order:
            return None

        seen: Dict[int, Transition] = {}
        predicted = [self._process(t, seen) for t in order]

        self.baseline.apply(order)

        for t, (values, values2) in zip(order, predicted):
            idx = self.resolver.index(t)
            target = values.copy()
            target[idx] = t.td_target
            self.estimator.store(t, target)
            if self.estimator2 is not None and values2 is not None:
                target2 = values2.copy()
                target2[idx] = t.td_target
                self.estimator2.store(t, target2)

        self._batches += 1
        self._emit_diagnostics()
        return order

    def _emit_diagnostics(self) -> None:
        if self.logger is None or (self._batches % self.log_every) != 0:
            return
        metrics: Dict[str, float] = dict(self.diagnostics.as_dict())
        if self.baseline.running_mean is not None:
            metrics["baseline_mean"] = float(self.baseline.running_mean)
        if self.baseline.running_std is not None:
            metrics["baseline_std"] = float(self.baseline.running_std)
        self.logger.log(metrics, step=self._batches, prefix="value")

    # ---------------------------------------------------------------------
    # Training
    # ---------------------------------------------------------------------
    def update_function_estimator(self, batch: Batch = None) -> Optional[Dict[str, float]]:
        """
        Train the estimator(s) on everything stored so far.

        Parameters
        ----------
        batch : optional
            If given, `update(batch)` runs first; an empty batch aborts the
            whole call before any training.

        Returns
        -------
        metrics : Dict[str, float] or None
            Training metrics (second-estimator metrics prefixed ``estimator2/``),
            or None when nothing was trained.
        """
        if batch is not None and self.update(batch) is None:
            return None

        metrics = self.estimator.train()
        metrics2 = self.estimator2.train() if self.estimator2 is not None else None
        if metrics is None and metrics2 is None:
            return None

        out: Dict[str, float] = dict(metrics or {})
        for k, v in (metrics2 or {}).items():
            out[f"estimator2/{k}"] = v
        return out

    # ---------------------------------------------------------------------
    # Multi-agent coordination
    # ---------------------------------------------------------------------
    def register_agent(self, agent: Hashable) -> None:
        self.estimator.register_agent(agent)
        if self.estimator2 is not None:
            self.estimator2.register_agent(agent)

    def ready_to_update(self, agent: Hashable) -> bool:
        """Signal readiness on every estimator; True once all registered agents are ready."""
        ready = self.estimator.ready_to_update(agent)
        if self.estimator2 is not None:
            ready = self.estimator2.ready_to_update(agent) and ready
        return ready

    # ---------------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------------
    def _reference_kwargs(self, shared: bool) -> Dict[str, Any]:
        return {
            "estimator": self.estimator.reference(shared),
            "estimator2": None if self.estimator2 is None else self.estimator2.reference(shared),
            "gamma": self.gamma,
            "lam": self.lam,
            "use_baseline": self.baseline.enabled,
            "tau": self.baseline.tau,
            "logger": self.logger,
            "log_every": self.log_every,
            "diagnostics_beta": self.diagnostics.beta,
        }

    def reference(self, shared: bool = True) -> "BaseValueFunction":
        """
        New value function of the same kind for another agent.

        ``shared=True`` reuses the same estimator objects; ``shared=False``
        gives it independent, freshly initialized estimators.
        Diagnostics and baseline statistics always start fresh.
        """
        kwargs = self._reference_kwargs(shared)
        return BaseValueFunction(
            kwargs.pop("estimator"),
            self.strategy,
            action_value=self.action_value,
            dual_estimation=self.dual_estimation,
            **kwargs,
        )

    def reset(self) -> None:
        """Clear diagnostics, baseline statistics and estimator queues/flags."""
        self.diagnostics.reset()
        self.baseline.reset()
        self.estimator.reset()
        if self.estimator2 is not None:
            self.estimator2.reset()
        self._batches = 0

    def state_dict(self) -> Dict[str, Any]:
        return {
            "config": {
                "gamma": self.gamma,
                "lambda": self.lam,
                "tau": self.baseline.tau,
                "use_baseline": self.baseline.enabled,
                "dual_estimation": self.dual_estimation,
            },
            "batches": self._batches,
            "diagnostics": self.diagnostics.state_dict(),
            "baseline": self.baseline.state_dict(),
            "estimator": self.estimator.state_dict(),
            "estimator2": None if self.estimator2 is None else self.estimator2.state_dict(),
        }

    def load_state_dict(self, state: Mapping[str, Any]) -> None:
        self._batches = int(state.get("batches", 0))
        self.diagnostics.load_state_dict(state.get("diagnostics", {}))
        self.baseline.load_state_dict(state.get("baseline", {}))
        self.estimator.load_state_dict(state["estimator"])
        if self.estimator2 is not None and state.get("estimator2") is not None:
            self.estimator2.load_state_dict(state["estimator2"])

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(gamma={self.gamma}, lambda={self.lam}, strategy={self.strategy!r}, "
            f"resolver={self.resolver!r}, dual={self.dual_estimation}, baseline={self.baseline.enabled})"
        )
