"""
Action value
=======

- :func:`action_value` : builder on a torch Q network
- :class:`ActionValueFunction` : on-policy Q(s, a), bootstrapping from the
  successor's taken action
"""

from __future__ import annotations

from .action_value import action_value
from .core import ActionValueFunction

__all__ = [
    "action_value",
    "ActionValueFunction",
]
