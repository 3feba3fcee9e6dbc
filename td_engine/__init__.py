"""
td_engine

Top-level package initializer.

Exposes the value functions, their builders, and the collaborators a caller
needs to wire them up (trajectories, estimators, errors).

Usage
-----
from td_engine import Trajectory, q_value

vf = q_value(state_dim=4, n_actions=2)
"""

from __future__ import annotations

from .baselines import *  # noqa: F401,F403
from .baselines import __all__ as _baselines_all
from .common.buffers import NO_ACTION, Trajectory, Transition
from .common.estimators import (
    DirectFunctionEstimator,
    FunctionEstimator,
    TabularFunctionEstimator,
    TorchFunctionEstimator,
)
from .common.utils.errors import AgentError, ConfigError
from .common.values import BaseValueFunction

__all__ = list(_baselines_all) + [
    "NO_ACTION",
    "Transition",
    "Trajectory",
    "FunctionEstimator",
    "TorchFunctionEstimator",
    "TabularFunctionEstimator",
    "DirectFunctionEstimator",
    "BaseValueFunction",
    "ConfigError",
    "AgentError",
]
