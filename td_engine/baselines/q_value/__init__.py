"""
Q value
=======

This subpackage provides the Q-learning value function:

- :func:`q_value`
    High-level builder that wires together:
      * :class:`~td_engine.common.networks.QValueNetwork` (optionally dueling,
        optionally with a leading state-value slot)
      * :class:`~td_engine.common.estimators.TorchFunctionEstimator` with a
        target copy (periodic full copy or Polyak blending)
      * :class:`QValueFunction`

- :class:`QValueFunction`
    Greedy, clipped double-Q, or target-action bootstrapping.

Examples
--------
>>> from td_engine.baselines.q_value import q_value
>>> vf = q_value(state_dim=8, n_actions=4, dual_estimation=True)
"""

from __future__ import annotations

from .core import QValueFunction
from .q_value import q_value

__all__ = [
    "q_value",
    "QValueFunction",
]
