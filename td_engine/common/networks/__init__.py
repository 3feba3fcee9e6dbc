from __future__ import annotations

from .base_networks import BaseValueNetwork, MLPFeaturesExtractor
from .value_networks import CategoricalPolicyNetwork, QValueNetwork, StateValueNetwork

__all__ = [
    "MLPFeaturesExtractor",
    "BaseValueNetwork",
    "StateValueNetwork",
    "QValueNetwork",
    "CategoricalPolicyNetwork",
]
