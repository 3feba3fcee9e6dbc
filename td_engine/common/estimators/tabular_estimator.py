from __future__ import annotations

from typing import Any, Callable, Dict, Hashable, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .base_estimator import FunctionEstimator
from ..buffers.trajectory import Transition
from ..utils.common_utils import _to_numpy, _to_vector
from ..utils.config_utils import parse_params, require_in_range


def default_state_key(state: Any) -> Hashable:
    """Hashable key for a state: arrays/tensors become tuples of their flat values."""
    if isinstance(state, (str, bytes, int, np.integer)):
        return state
    if isinstance(state, tuple):
        return state
    arr = _to_numpy(state)
    if arr.shape == ():
        return arr.item()
    return tuple(arr.reshape(-1).tolist())


class TabularFunctionEstimator(FunctionEstimator):
    """
    Lookup-table function estimator: one value vector per distinct state.

    Unseen states predict ``initial_value`` everywhere. `train()` moves every
    stored row toward its target: ``row <- row + lr * (target - row)``; with
    ``lr=1`` the table adopts the targets exactly.

    Parameters
    ----------
    num_outputs : int
        Vector length per state.
    lr : float, default=0.1
        Step size in (0, 1].
    initial_value : float, default=0.0
        Value of unseen entries.
    state_key : callable, optional
        Maps a state to a hashable key (default: `default_state_key`).
    state_value_slot, use_target, update_cycle, tau, logger, log_every
        See :class:`FunctionEstimator`.
    """

    PARAMS = {
        "lr": float,
        "initial_value": float,
        "use_target": bool,
        "update_cycle": int,
        "tau": float,
        "log_every": int,
    }

    def __init__(
        self,
        num_outputs: int,
        *,
        lr: float = 0.1,
        initial_value: float = 0.0,
        state_key: Optional[Callable[[Any], Hashable]] = None,
        state_value_slot: bool = False,
        use_target: bool = False,
        update_cycle: int = 0,
        tau: float = 0.005,
        logger: Optional[Any] = None,
        log_every: int = 1,
    ) -> None:
        super().__init__(
            num_outputs=num_outputs,
            state_value_slot=state_value_slot,
            use_target=use_target,
            update_cycle=update_cycle,
            tau=tau,
            logger=logger,
            log_every=log_every,
        )
        self.lr = require_in_range("lr", lr, low=0.0, high=1.0, low_inclusive=False)
        self.initial_value = float(initial_value)
        self.state_key = state_key or default_state_key
        self.table: Dict[Hashable, np.ndarray] = {}

        self._finalize_init()

    @classmethod
    def from_params(
        cls,
        num_outputs: int,
        params: Optional[Union[str, Mapping[str, Any]]] = None,
        **kwargs: Any,
    ) -> "TabularFunctionEstimator":
        return cls(num_outputs, **parse_params(params, cls.PARAMS), **kwargs)

    def _default_row(self) -> np.ndarray:
        return np.full(self.num_outputs, self.initial_value, dtype=np.float64)

    def set_values(self, state: Any, values: Any) -> None:
        """Write a full value vector for `state` directly."""
        v = _to_vector(values)
        if v.shape[0] != self.num_outputs:
            raise ValueError(f"expected {self.num_outputs} values, got {v.shape[0]}")
        with self.lock:
            self.table[self.state_key(state)] = v.copy()

    # ---------------------------------------------------------------------
    # Parameter primitives
    # ---------------------------------------------------------------------
    def _predict_raw(self, state: Any, transition: Optional[Transition] = None) -> np.ndarray:
        row = self.table.get(self.state_key(state))
        return self._default_row() if row is None else row.copy()

    def _fit(self, batch: Sequence[Tuple[Transition, np.ndarray]]) -> Dict[str, float]:
        sq_err = []
        for t, target in batch:
            key = self.state_key(t.state)
            row = self.table.get(key)
            if row is None:
                row = self._default_row()
                self.table[key] = row
            diff = target - row
            sq_err.append(float(np.mean(diff * diff)))
            row += self.lr * diff
        return {"loss": float(np.mean(sq_err)), "table_size": float(len(self.table))}

    def assign_from(self, other: FunctionEstimator) -> None:
        if not isinstance(other, TabularFunctionEstimator):
            raise TypeError(f"cannot copy parameters from {type(other).__name__}")
        self.table = {k: v.copy() for k, v in other.table.items()}

    def blend_from(self, other: FunctionEstimator, tau: float) -> None:
        if not isinstance(other, TabularFunctionEstimator):
            raise TypeError(f"cannot blend parameters from {type(other).__name__}")
        tau = float(tau)
        for key in set(self.table) | set(other.table):
            mine = self.table.get(key)
            if mine is None:
                mine = self._default_row()
                self.table[key] = mine
            theirs = other.table.get(key)
            src = other._default_row() if theirs is None else theirs
            mine *= 1.0 - tau
            mine += tau * src

    def _fresh(self, *, use_target: bool) -> "TabularFunctionEstimator":
        cfg = self._config_dict()
        cfg["use_target"] = bool(use_target)
        return TabularFunctionEstimator(
            self.num_outputs,
            lr=self.lr,
            initial_value=self.initial_value,
            state_key=self.state_key,
            state_value_slot=self.state_value_slot,
            **cfg,
        )

    def _params_state_dict(self) -> Dict[str, Any]:
        return {"table": {k: v.copy() for k, v in self.table.items()}}

    def _load_params_state_dict(self, state: Mapping[str, Any]) -> None:
        self.table = {k: _to_vector(v) for k, v in state["table"].items()}
