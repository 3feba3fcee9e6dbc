"""
Soft Q value
=======

- :func:`soft_q_value` : builder (two Q networks with Polyak targets and a
  categorical policy network)
- :class:`SoftQValueFunction` : entropy-regularized bootstrapping with a
  float or shared-tensor temperature
"""

from __future__ import annotations

from .core import SoftQValueFunction
from .soft_q_value import soft_q_value

__all__ = [
    "soft_q_value",
    "SoftQValueFunction",
]
