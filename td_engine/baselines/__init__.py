"""
baselines
=========

One subpackage per value-function variant, each exposing a builder function
and the value-function class (``core.py``):

- state_value   : V(s), on-policy
- action_value  : Q(s, a), on-policy
- plain_value   : Monte-Carlo returns with baseline normalization
- q_value       : greedy / clipped double-Q / target-action Q-learning
- soft_q_value  : entropy-regularized soft Q
"""

from __future__ import annotations

from .action_value import ActionValueFunction, action_value
from .plain_value import PlainValueFunction, plain_value
from .q_value import QValueFunction, q_value
from .soft_q_value import SoftQValueFunction, soft_q_value
from .state_value import StateValueFunction, state_value

__all__ = [
    "state_value",
    "action_value",
    "plain_value",
    "q_value",
    "soft_q_value",
    "StateValueFunction",
    "ActionValueFunction",
    "PlainValueFunction",
    "QValueFunction",
    "SoftQValueFunction",
]
