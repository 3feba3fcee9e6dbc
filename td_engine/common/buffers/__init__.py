from __future__ import annotations

from .trajectory import NO_ACTION, Trajectory, Transition

__all__ = ["NO_ACTION", "Transition", "Trajectory"]
