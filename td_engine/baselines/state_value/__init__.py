"""
State value
=======

- :func:`state_value`
    Builder wiring a :class:`~td_engine.common.networks.StateValueNetwork`
    into a :class:`~td_engine.common.estimators.TorchFunctionEstimator` and a
    :class:`StateValueFunction`.

- :class:`StateValueFunction`
    V(s) with on-policy bootstrapping (successor's own TD target).

Examples
--------
>>> from td_engine.baselines.state_value import state_value
>>> vf = state_value(state_dim=4, gamma=0.99, lam=0.95)
"""

from __future__ import annotations

from .core import StateValueFunction
from .state_value import state_value

__all__ = [
    "state_value",
    "StateValueFunction",
]
