"""
Values
====================

Temporal-difference value functions and their building blocks:

- :class:`BaseValueFunction` : backward pass (TD target / error / advantage),
  target storage, training and multi-agent gating
- index resolvers : which slot of the predicted vector a value function owns
- target strategies : bootstrap target of a successor transition
- :class:`BaselineNormalizer` : batch TD-target normalization
- :class:`RunningAverages` : diagnostics
"""

from __future__ import annotations

from .base_value import BaseValueFunction
from .baseline import BaselineNormalizer
from .index_resolver import ActionValueIndex, IndexResolver, StateValueIndex
from .running_stats import RunningAverages
from .target_strategies import (
    CustomTarget,
    DoubleQTarget,
    GreedyQTarget,
    OnPolicyTarget,
    PlainTarget,
    SoftQTarget,
    TargetActionQTarget,
    TargetStrategy,
)

__all__ = [
    "BaseValueFunction",
    "BaselineNormalizer",
    "RunningAverages",
    "IndexResolver",
    "StateValueIndex",
    "ActionValueIndex",
    "TargetStrategy",
    "PlainTarget",
    "OnPolicyTarget",
    "GreedyQTarget",
    "TargetActionQTarget",
    "DoubleQTarget",
    "SoftQTarget",
    "CustomTarget",
]
