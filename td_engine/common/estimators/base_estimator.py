from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Hashable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .barrier import UpdateBarrier
from .target_sync import TargetSynchronizer
from ..buffers.trajectory import Transition
from ..utils.common_utils import _to_vector


class FunctionEstimator(ABC):
    """
    Base class for function estimators consumed by value functions.

    A function estimator maps a transition's state to a vector of values
    (one per action, optionally preceded by a state-value slot), accepts
    target vectors through :meth:`store`, and applies them in :meth:`train`.
    This base owns everything that is independent of the parameterization:

    - a re-entrant parameter lock (``lock``) taken by predict/store/train and
      by target synchronization, so parameter mutation is a critical section
    - the multi-agent :class:`UpdateBarrier`
    - the optional target estimator and its :class:`TargetSynchronizer`
    - the pending (transition, target vector) queue
    - action selection over a restricted set of available actions

    Subclasses implement the parameter primitives (`_predict_raw`, `_fit`,
    `assign_from`, `blend_from`, `_fresh`, `_params_state_dict`,
    `_load_params_state_dict`) and must call `_finalize_init()` at the end of
    their constructor so that a target estimator is allocated up front.

    Parameters
    ----------
    num_outputs : int
        Length of the predicted value vector.
    state_value_slot : bool, default=False
        True if element 0 of the vector is reserved for the state value and
        action values start at index 1.
    use_target : bool, default=False
        Own a target estimator (allocated at construction).
    update_cycle : int, default=0
        Target full-copy period; 0 selects smooth (Polyak) synchronization.
    tau : float, default=0.005
        Smooth synchronization rate in (0, 1].
    logger : Any, optional
        Metrics sink exposing ``log(metrics, step=..., prefix=...)``.
    log_every : int, default=1
        Emit training metrics every N successful `train()` calls.
    """

    def __init__(
        self,
        *,
        num_outputs: int,
        state_value_slot: bool = False,
        use_target: bool = False,
        update_cycle: int = 0,
        tau: float = 0.005,
        logger: Optional[Any] = None,
        log_every: int = 1,
    ) -> None:
        self.num_outputs = int(num_outputs)
        if self.num_outputs <= 0:
            raise ValueError(f"num_outputs must be positive, got: {self.num_outputs}")
        self.state_value_slot = bool(state_value_slot)
        if self.state_value_slot and self.num_outputs < 2:
            raise ValueError("state_value_slot requires at least one action output after the state slot.")

        self.use_target = bool(use_target)
        self.synchronizer = TargetSynchronizer(update_cycle=update_cycle, tau=tau)
        self.logger = logger
        self.log_every = max(1, int(log_every))

        self.lock = threading.RLock()
        self.barrier = UpdateBarrier()
        self.target: Optional["FunctionEstimator"] = None

        self._pending: List[Tuple[Transition, np.ndarray]] = []
        self._train_calls = 0

    def _finalize_init(self) -> None:
        if self.use_target and self.target is None:
            self.set_target_estimator()

    # ---------------------------------------------------------------------
    # Parameter primitives (subclass contract)
    # ---------------------------------------------------------------------
    @abstractmethod
    def _predict_raw(self, state: Any, transition: Optional[Transition] = None) -> Any:
        """Return the raw value vector for `state` (any array-like)."""
        raise NotImplementedError

    @abstractmethod
    def _fit(self, batch: Sequence[Tuple[Transition, np.ndarray]]) -> Dict[str, float]:
        """Apply one parameter update from (transition, target vector) pairs."""
        raise NotImplementedError

    @abstractmethod
    def assign_from(self, other: "FunctionEstimator") -> None:
        """Overwrite this estimator's parameters with `other`'s (full copy)."""
        raise NotImplementedError

    @abstractmethod
    def blend_from(self, other: "FunctionEstimator", tau: float) -> None:
        """In-place ``self <- tau * other + (1 - tau) * self``."""
        raise NotImplementedError

    @abstractmethod
    def _fresh(self, *, use_target: bool) -> "FunctionEstimator":
        """New estimator with the same configuration and freshly initialized parameters."""
        raise NotImplementedError

    @abstractmethod
    def _params_state_dict(self) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def _load_params_state_dict(self, state: Mapping[str, Any]) -> None:
        raise NotImplementedError

    # ---------------------------------------------------------------------
    # Layout
    # ---------------------------------------------------------------------
    @property
    def index_offset(self) -> int:
        """1 if a leading state-value slot is reserved, else 0. Fixed per instance."""
        return 1 if self.state_value_slot else 0

    @property
    def num_actions(self) -> int:
        return self.num_outputs - self.index_offset

    def actions_of(self, available_actions: Optional[Sequence[int]]) -> List[int]:
        if available_actions:
            acts = [int(a) for a in available_actions]
        else:
            acts = list(range(self.num_actions))
        for a in acts:
            if not (0 <= a < self.num_actions):
                raise ValueError(f"action {a} out of range for {self.num_actions} actions")
        return acts

    # ---------------------------------------------------------------------
    # Prediction
    # ---------------------------------------------------------------------
    def predict(self, transition: Transition) -> np.ndarray:
        """Value vector from the online parameters (float64, shape (num_outputs,))."""
        with self.lock:
            values = _to_vector(self._predict_raw(transition.state, transition))
        if values.shape[0] != self.num_outputs:
            raise ValueError(f"estimator produced {values.shape[0]} values, expected {self.num_outputs}")
        return values

    def predict_target(self, transition: Transition) -> np.ndarray:
        """Value vector from the target estimator, or the online one if none is kept."""
        if self.target is None:
            return self.predict(transition)
        return self.target.predict(transition)

    # ---------------------------------------------------------------------
    # Action selection over available actions
    # ---------------------------------------------------------------------
    def argmax(self, values: Any, available_actions: Optional[Sequence[int]] = None) -> int:
        """Action with the highest value; ties resolve to the first listed action."""
        v = _to_vector(values)
        acts = self.actions_of(available_actions)
        best = acts[0]
        for a in acts[1:]:
            if v[self.index_offset + a] > v[self.index_offset + best]:
                best = a
        return int(best)

    def max(self, values: Any, available_actions: Optional[Sequence[int]] = None) -> float:
        v = _to_vector(values)
        return float(max(v[self.index_offset + a] for a in self.actions_of(available_actions)))

    def sample(
        self,
        values: Any,
        available_actions: Optional[Sequence[int]] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> int:
        """
        Draw an action with probability proportional to its (non-negative) value.

        Negative entries are treated as zero weight; if every weight is zero the
        draw is uniform over the available actions.
        """
        v = _to_vector(values)
        acts = self.actions_of(available_actions)
        w = np.clip(np.array([v[self.index_offset + a] for a in acts], dtype=np.float64), 0.0, None)
        total = float(w.sum())
        p = w / total if total > 0 and np.isfinite(total) else None
        gen = rng if rng is not None else np.random.default_rng()
        return int(acts[int(gen.choice(len(acts), p=p))])

    # ---------------------------------------------------------------------
    # Store / train
    # ---------------------------------------------------------------------
    def store(self, transition: Transition, target_values: Any) -> None:
        """Queue a target vector for `transition`; applied by the next `train()`."""
        tv = _to_vector(target_values)
        if tv.shape[0] != self.num_outputs:
            raise ValueError(f"target vector has {tv.shape[0]} values, expected {self.num_outputs}")
        with self.lock:
            self._pending.append((transition, tv))

    @property
    def pending(self) -> int:
        with self.lock:
            return len(self._pending)

    @property
    def train_calls(self) -> int:
        return int(self._train_calls)

    def train(self) -> Optional[Dict[str, float]]:
        """
        Apply every queued target vector, then synchronize the target estimator.

        Returns
        -------
        metrics : Dict[str, float] or None
            Training metrics, or None when nothing was queued (no update ran).

        Notes
        -----
        The readiness barrier is consumed when it opens (see `UpdateBarrier.ready`),
        so signals for the next cycle that arrive while training runs are kept.
        Exceptions from `_fit` propagate unchanged and leave the queue intact.
        """
        with self.lock:
            if not self._pending:
                return None
            batch = list(self._pending)
            metrics = dict(self._fit(batch))
            self._pending.clear()
            self._train_calls += 1

            synced = self.synchronizer.step(self, self.target)
            metrics["samples"] = float(len(batch))
            metrics["target_synced"] = float(synced)

        if self.logger is not None and (self._train_calls % self.log_every == 0):
            self.logger.log(metrics, step=self._train_calls, prefix="estimator")
        return metrics

    # ---------------------------------------------------------------------
    # Multi-agent barrier
    # ---------------------------------------------------------------------
    def register_agent(self, agent: Hashable) -> None:
        self.barrier.register(agent)

    def ready_to_update(self, agent: Hashable) -> bool:
        return self.barrier.ready(agent)

    # ---------------------------------------------------------------------
    # Target estimator / references
    # ---------------------------------------------------------------------
    def set_target_estimator(self, target: Optional["FunctionEstimator"] = None) -> "FunctionEstimator":
        """
        Attach a target estimator (a parameter copy of this one by default).

        Returns
        -------
        target : FunctionEstimator
            The attached target estimator.
        """
        if target is None:
            target = self.copy()
        elif target.num_outputs != self.num_outputs or target.index_offset != self.index_offset:
            raise ValueError("target estimator must have the same output layout as the online estimator")
        self.target = target
        self.use_target = True
        return target

    def copy(self) -> "FunctionEstimator":
        """Independent estimator holding an exact copy of the current parameters (no target)."""
        with self.lock:
            clone = self._fresh(use_target=False)
            clone.assign_from(self)
        return clone

    def reference(self, shared: bool = True) -> "FunctionEstimator":
        """
        Handle for another value function / agent.

        ``shared=True`` returns this very estimator (same parameters, same
        barrier). ``shared=False`` returns a new estimator with the same
        configuration and freshly initialized parameters.
        """
        if shared:
            return self
        return self._fresh(use_target=self.use_target)

    def reset(self) -> None:
        """Drop queued targets and readiness flags; parameters are kept."""
        with self.lock:
            self._pending.clear()
        self.barrier.reset()
        self.synchronizer.reset()

    # ---------------------------------------------------------------------
    # Checkpointing
    # ---------------------------------------------------------------------
    def state_dict(self) -> Dict[str, Any]:
        with self.lock:
            return {
                "params": self._params_state_dict(),
                "target": None if self.target is None else self.target._params_state_dict(),
                "synchronizer": self.synchronizer.state_dict(),
                "train_calls": int(self._train_calls),
            }

    def load_state_dict(self, state: Mapping[str, Any]) -> None:
        with self.lock:
            self._load_params_state_dict(state["params"])
            target_state = state.get("target")
            if target_state is not None:
                if self.target is None:
                    self.set_target_estimator()
                assert self.target is not None
                with self.target.lock:
                    self.target._load_params_state_dict(target_state)
            self.synchronizer.load_state_dict(state.get("synchronizer", {}))
            self._train_calls = int(state.get("train_calls", 0))

    def _config_dict(self) -> Dict[str, Any]:
        return {
            "use_target": self.use_target,
            "update_cycle": self.synchronizer.update_cycle,
            "tau": self.synchronizer.tau,
            "logger": self.logger,
            "log_every": self.log_every,
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(num_outputs={self.num_outputs}, "
            f"index_offset={self.index_offset}, use_target={self.use_target}, sync={self.synchronizer!r})"
        )
