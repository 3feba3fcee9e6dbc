from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Union
import numbers

from ..utils.config_utils import parse_params, require_in_range
from ..utils.errors import ConfigError

if TYPE_CHECKING:
    from .base_estimator import FunctionEstimator


class TargetSynchronizer:
    """
    Keeps a target estimator aligned with its online estimator.

    Two mutually exclusive policies, fixed at construction:

    - ``update_cycle > 0`` (periodic full copy):
        every ``update_cycle``-th call to :meth:`step` overwrites the target
        parameters with the online parameters.
    - ``update_cycle == 0`` (smooth / Polyak):
        every call blends ``target <- tau * online + (1 - tau) * target``.
        No cycle counter is involved.

    The copy/blend runs while holding both the online and the target
    estimator's parameter locks (online first), so a concurrent
    ``predict`` on the target never observes a half-written parameter set.

    Parameters
    ----------
    update_cycle : int, default=0
        Full-copy period; 0 selects smooth mode.
    tau : float, default=0.005
        Smooth blend rate in (0, 1]. Ignored in full-copy mode.

    Raises
    ------
    ConfigError
        If ``update_cycle < 0`` or ``tau`` is outside (0, 1] in smooth mode.
    """

    PARAMS = {"update_cycle": int, "tau": float}

    def __init__(self, update_cycle: int = 0, tau: float = 0.005) -> None:
        if isinstance(update_cycle, bool) or not isinstance(update_cycle, numbers.Integral):
            raise ConfigError(f"update_cycle must be an int, got: {update_cycle!r}")
        self.update_cycle = int(update_cycle)
        if self.update_cycle < 0:
            raise ConfigError(f"update_cycle must be >= 0, got: {self.update_cycle}")

        self.tau = float(tau)
        if self.update_cycle == 0:
            require_in_range("tau", self.tau, low=0.0, high=1.0, low_inclusive=False)

        self._cycles = 0

    @classmethod
    def from_params(cls, params: Optional[Union[str, Mapping[str, Any]]]) -> "TargetSynchronizer":
        return cls(**parse_params(params, cls.PARAMS))

    @property
    def mode(self) -> str:
        return "smooth" if self.update_cycle == 0 else "copy"

    @property
    def cycles(self) -> int:
        """Update cycles counted since the last copy (always 0 in smooth mode)."""
        return self._cycles

    def step(self, online: "FunctionEstimator", target: Optional["FunctionEstimator"]) -> bool:
        """
        Run one synchronization cycle.

        Returns
        -------
        synced : bool
            True if target parameters were written in this cycle.
        """
        if target is None:
            return False

        if self.update_cycle == 0:
            with online.lock, target.lock:
                target.blend_from(online, self.tau)
            return True

        self._cycles += 1
        if self._cycles < self.update_cycle:
            return False

        self._cycles = 0
        with online.lock, target.lock:
            target.assign_from(online)
        return True

    def reset(self) -> None:
        self._cycles = 0

    def state_dict(self) -> Dict[str, Any]:
        return {"update_cycle": self.update_cycle, "tau": self.tau, "cycles": self._cycles}

    def load_state_dict(self, state: Mapping[str, Any]) -> None:
        if int(state.get("update_cycle", self.update_cycle)) != self.update_cycle:
            raise ConfigError("Cannot load synchronizer state recorded with a different update_cycle.")
        self._cycles = int(state.get("cycles", 0))

    def __repr__(self) -> str:
        if self.update_cycle == 0:
            return f"TargetSynchronizer(mode='smooth', tau={self.tau})"
        return f"TargetSynchronizer(mode='copy', update_cycle={self.update_cycle})"
