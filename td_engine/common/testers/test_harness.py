from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np

from td_engine.common.buffers.trajectory import NO_ACTION, Trajectory
from td_engine.common.estimators.tabular_estimator import TabularFunctionEstimator


# =============================================================================
# Logging stub
# =============================================================================
@dataclass
class LoggedRecord:
    step: int
    prefix: str
    metrics: Dict[str, Any]


class FakeLogger:
    """Minimal logger capturing ``log(metrics, step=..., prefix=...)`` payloads."""

    def __init__(self) -> None:
        self.records: List[LoggedRecord] = []

    def log(self, metrics: Mapping[str, Any], step: int = 0, prefix: str = "") -> None:
        self.records.append(LoggedRecord(step=int(step), prefix=str(prefix), metrics=dict(metrics)))

    def with_prefix(self, prefix: str) -> List[LoggedRecord]:
        return [r for r in self.records if r.prefix == prefix]


# =============================================================================
# Episode builders
# =============================================================================
def make_chain(
    rewards: Sequence[float],
    *,
    states: Optional[Sequence[Any]] = None,
    actions: Optional[Sequence[int]] = None,
    available_actions: Sequence[int] = (),
    terminal: bool = True,
) -> Trajectory:
    """
    Episode with one transition per reward.

    States default to ``0, 1, 2, ...`` (tabular keys) and actions to
    ``NO_ACTION``. The last transition is terminal unless ``terminal=False``.
    """
    n = len(rewards)
    states = list(range(n)) if states is None else list(states)
    actions = [NO_ACTION] * n if actions is None else list(actions)
    traj = Trajectory()
    for i, r in enumerate(rewards):
        traj.append(
            states[i],
            actions[i],
            float(r),
            available_actions=available_actions,
            terminal=bool(terminal and i == n - 1),
        )
    return traj


def tabular(
    num_outputs: int,
    values: Optional[Mapping[Any, Sequence[float]]] = None,
    **kwargs: Any,
) -> TabularFunctionEstimator:
    """Tabular estimator (lr=1 unless given) preloaded with ``{state: vector}`` rows."""
    kwargs.setdefault("lr", 1.0)
    est = TabularFunctionEstimator(num_outputs, **kwargs)
    for s, v in (values or {}).items():
        est.set_values(s, v)
    return est


def random_states(n: int, dim: int, seed: int = 0) -> List[np.ndarray]:
    rng = np.random.default_rng(seed)
    return [rng.standard_normal(dim).astype(np.float32) for _ in range(n)]
