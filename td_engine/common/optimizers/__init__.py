"""
Optimizers
====================

Factory and small utilities around ``torch.optim`` used by the torch-backed
function estimator: build an optimizer from a string identifier, clip
gradients, and (de)serialize optimizer state for checkpoints.
"""

from __future__ import annotations

from .optimizer_builder import (
    build_optimizer,
    clip_grad_norm,
    load_optimizer_state_dict,
    normalize_optimizer_name,
    optimizer_state_dict,
)

__all__ = [
    "build_optimizer",
    "clip_grad_norm",
    "normalize_optimizer_name",
    "optimizer_state_dict",
    "load_optimizer_state_dict",
]
