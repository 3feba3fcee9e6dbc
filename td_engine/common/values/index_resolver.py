from __future__ import annotations

from abc import ABC, abstractmethod

from ..buffers.trajectory import Transition


class IndexResolver(ABC):
    """Maps a transition to the slot of the predicted vector a value function reads and writes."""

    @abstractmethod
    def index(self, transition: Transition) -> int:
        raise NotImplementedError

    @property
    @abstractmethod
    def offset(self) -> int:
        raise NotImplementedError


class StateValueIndex(IndexResolver):
    """State value: always slot 0 (the leading state-value slot when one is reserved)."""

    def index(self, transition: Transition) -> int:
        return 0

    @property
    def offset(self) -> int:
        return 0

    def __repr__(self) -> str:
        return "StateValueIndex()"


class ActionValueIndex(IndexResolver):
    """
    Action value: slot ``offset + action``.

    The offset is captured once from the estimator (1 when it reserves a
    leading state-value slot) and cannot change afterwards.
    """

    __slots__ = ("_offset",)

    def __init__(self, offset: int = 0) -> None:
        offset = int(offset)
        if offset not in (0, 1):
            raise ValueError(f"offset must be 0 or 1, got: {offset}")
        self._offset = offset

    @property
    def offset(self) -> int:
        return self._offset

    def index(self, transition: Transition) -> int:
        if not transition.has_action:
            raise ValueError(
                f"transition at time_step={transition.time_step} has no action; "
                "an action-value function needs one"
            )
        return self._offset + int(transition.action)

    def __repr__(self) -> str:
        return f"ActionValueIndex(offset={self._offset})"
