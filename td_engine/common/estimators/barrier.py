from __future__ import annotations

import threading
from typing import Any, Dict, Hashable, List

from ..utils.errors import AgentError


class UpdateBarrier:
    """
    Readiness gate for a function estimator shared by several agents.

    Every participating agent registers once. `ready(agent)` marks that agent
    ready and reports whether every registered agent has signalled in the
    current cycle. The call that completes a cycle opens the gate and clears
    all flags in the same critical section, so exactly one caller sees True
    per cycle and a signal for the next cycle is never lost.

    Notes
    -----
    - Agents are identified by equality/hash; any hashable object works.
    - All operations are guarded by an internal lock, so agents may signal
      from separate threads.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ready: Dict[Hashable, bool] = {}

    def register(self, agent: Hashable) -> None:
        """Register `agent`; registering twice is a no-op."""
        with self._lock:
            self._ready.setdefault(agent, False)

    def unregister(self, agent: Hashable) -> None:
        with self._lock:
            if agent not in self._ready:
                raise AgentError(f"Agent {agent!r} is not registered.")
            del self._ready[agent]

    def ready(self, agent: Hashable) -> bool:
        """
        Mark `agent` ready and return True once every registered agent is.

        Returning True consumes the cycle: every flag is cleared before the
        lock is released.

        Raises
        ------
        AgentError
            If `agent` was never registered.
        """
        with self._lock:
            if agent not in self._ready:
                raise AgentError(f"Agent {agent!r} is not registered to the function estimator.")
            self._ready[agent] = True
            if not all(self._ready.values()):
                return False
            for k in self._ready:
                self._ready[k] = False
            return True

    def reset(self) -> None:
        """Clear every readiness flag (registrations are kept)."""
        with self._lock:
            for k in self._ready:
                self._ready[k] = False

    def is_registered(self, agent: Any) -> bool:
        with self._lock:
            return agent in self._ready

    @property
    def agents(self) -> List[Hashable]:
        with self._lock:
            return list(self._ready)

    @property
    def pending(self) -> List[Hashable]:
        """Registered agents that have not signalled yet in this cycle."""
        with self._lock:
            return [a for a, ok in self._ready.items() if not ok]

    def __len__(self) -> int:
        with self._lock:
            return len(self._ready)
