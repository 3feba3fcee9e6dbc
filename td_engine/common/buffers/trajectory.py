from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Tuple


NO_ACTION = -1
"""Action sentinel meaning "state value only" (no action selected)."""


# =============================================================================
# Transition record
# =============================================================================
@dataclass(eq=False)
class Transition:
    """
    One environment step inside an episode.

    Estimates (`value`, `value2`, `td_target`, `td_error`, `advantage`) start
    as None and are filled in exactly once by the backward pass. Neighbours are
    not stored as object references: a transition knows its owning
    :class:`Trajectory` and its `index` in it, and resolves `next` / `previous`
    through the arena.

    Attributes
    ----------
    state : Any
        Opaque state features handed to the function estimator.
    action : int
        Selected discrete action, or ``NO_ACTION``.
    reward : float
        Reward received when entering this transition.
    available_actions : Tuple[int, ...]
        Legal actions in this state; empty means "all actions".
    terminal : bool
        True for the last transition of an episode.
    time_step : int
        Monotonically increasing key within the episode.
    target_action : int
        Action the (soft) policy selects at this state, used by single-action
        soft targets. ``NO_ACTION`` when unset.
    """

    state: Any
    action: int = NO_ACTION
    reward: float = 0.0
    available_actions: Tuple[int, ...] = ()
    terminal: bool = False
    time_step: int = 0
    target_action: int = NO_ACTION

    value: Optional[float] = None
    value2: Optional[float] = None
    td_target: Optional[float] = None
    td_error: Optional[float] = None
    advantage: Optional[float] = None

    index: int = -1
    trajectory: Optional["Trajectory"] = field(default=None, repr=False)

    @property
    def has_action(self) -> bool:
        return int(self.action) != NO_ACTION

    @property
    def next(self) -> Optional["Transition"]:
        if self.trajectory is None:
            return None
        return self.trajectory.next_of(self)

    @property
    def previous(self) -> Optional["Transition"]:
        if self.trajectory is None:
            return None
        return self.trajectory.previous_of(self)

    def reset_estimates(self) -> None:
        """Forget every value computed by a previous backward pass."""
        self.value = None
        self.value2 = None
        self.td_target = None
        self.td_error = None
        self.advantage = None


# =============================================================================
# Episode arena
# =============================================================================
class Trajectory:
    """
    Contiguous arena of :class:`Transition` records for one episode.

    ``previous`` / ``next`` are plain index arithmetic, so backward traversal
    is reverse iteration over a list. A terminal transition has no successor
    even if more records follow it.

    Parameters
    ----------
    transitions : Iterable[Transition], optional
        Records to adopt, in chronological order.
    """

    def __init__(self, transitions: Optional[Iterable[Transition]] = None) -> None:
        self._items: List[Transition] = []
        if transitions is not None:
            for t in transitions:
                self.adopt(t)

    # ---------------------------------------------------------------------
    # Construction
    # ---------------------------------------------------------------------
    def append(
        self,
        state: Any,
        action: int = NO_ACTION,
        reward: float = 0.0,
        *,
        available_actions: Sequence[int] = (),
        terminal: bool = False,
        target_action: int = NO_ACTION,
        time_step: Optional[int] = None,
    ) -> Transition:
        """
        Record a new step at the end of the episode.

        `time_step` defaults to one past the last record's time step.

        Raises
        ------
        ValueError
            If the episode is already closed or `time_step` is not increasing.
        """
        t = Transition(
            state=state,
            action=int(action),
            reward=float(reward),
            available_actions=tuple(int(a) for a in available_actions),
            terminal=bool(terminal),
            target_action=int(target_action),
            time_step=0 if time_step is None else int(time_step),
        )
        if time_step is None and self._items:
            t.time_step = self._items[-1].time_step + 1
        return self.adopt(t)

    def adopt(self, t: Transition) -> Transition:
        """Attach an existing record at the end of this arena."""
        if self._items:
            last = self._items[-1]
            if last.terminal:
                raise ValueError("Cannot append to a trajectory whose last transition is terminal.")
            if t.time_step <= last.time_step:
                raise ValueError(f"time_step must increase: {t.time_step} after {last.time_step}")
        t.index = len(self._items)
        t.trajectory = self
        self._items.append(t)
        return t

    def close(self) -> Optional[Transition]:
        """Mark the last record terminal; returns it (None for an empty episode)."""
        if not self._items:
            return None
        self._items[-1].terminal = True
        return self._items[-1]

    def clear(self) -> None:
        """Tear the episode down once an update has consumed it."""
        for t in self._items:
            t.trajectory = None
            t.index = -1
        self._items.clear()

    # ---------------------------------------------------------------------
    # Navigation
    # ---------------------------------------------------------------------
    def _owns(self, t: Transition) -> bool:
        return t.trajectory is self and 0 <= t.index < len(self._items) and self._items[t.index] is t

    def next_of(self, t: Transition) -> Optional[Transition]:
        if not self._owns(t):
            raise ValueError("Transition does not belong to this trajectory.")
        if t.terminal or t.index + 1 >= len(self._items):
            return None
        return self._items[t.index + 1]

    def previous_of(self, t: Transition) -> Optional[Transition]:
        if not self._owns(t):
            raise ValueError("Transition does not belong to this trajectory.")
        if t.index == 0:
            return None
        return self._items[t.index - 1]

    def reversed(self) -> Iterator[Transition]:
        """Iterate from the last record back to the first."""
        return reversed(self._items)

    @property
    def last(self) -> Optional[Transition]:
        return self._items[-1] if self._items else None

    @property
    def is_closed(self) -> bool:
        return bool(self._items) and self._items[-1].terminal

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Transition]:
        return iter(self._items)

    def __getitem__(self, i: int) -> Transition:
        return self._items[i]

    def __repr__(self) -> str:
        return f"Trajectory(len={len(self._items)}, closed={self.is_closed})"
