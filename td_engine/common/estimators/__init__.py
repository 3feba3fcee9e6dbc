"""
Estimators
====================

Function estimators consumed by value functions, plus the two pieces of
shared-estimator coordination they own:

- :class:`FunctionEstimator` : abstract contract (predict/store/train, target
  estimator, parameter lock, agent barrier)
- :class:`TorchFunctionEstimator` : torch module + optimizer
- :class:`TabularFunctionEstimator` : lookup table keyed by state
- :class:`DirectFunctionEstimator` : pass-through (Monte-Carlo returns)
- :class:`TargetSynchronizer` : periodic full copy or Polyak blending
- :class:`UpdateBarrier` : multi-agent readiness gate
"""

from __future__ import annotations

from .barrier import UpdateBarrier
from .base_estimator import FunctionEstimator
from .direct_estimator import DirectFunctionEstimator
from .nn_estimator import TorchFunctionEstimator
from .tabular_estimator import TabularFunctionEstimator, default_state_key
from .target_sync import TargetSynchronizer

__all__ = [
    "FunctionEstimator",
    "TorchFunctionEstimator",
    "TabularFunctionEstimator",
    "DirectFunctionEstimator",
    "TargetSynchronizer",
    "UpdateBarrier",
    "default_state_key",
]
