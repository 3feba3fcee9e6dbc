from __future__ import annotations

import torch as th
import torch.nn as nn

from .common_utils import _polyak_update


# =============================================================================
# Target network utilities
# =============================================================================
@th.no_grad()
def freeze_target(module: nn.Module) -> None:
    """
    Freeze a module for use as a target network.

    This function:
      - disables gradients (requires_grad=False)
      - sets module to eval() mode

    Parameters
    ----------
    module : nn.Module
        Module to freeze.
    """
    for p in module.parameters():
        p.requires_grad_(False)
    module.eval()


@th.no_grad()
def hard_update(target: nn.Module, source: nn.Module) -> None:
    """
    Hard update target parameters: target <- source.

    Parameters
    ----------
    target : nn.Module
        Target network to be updated.
    source : nn.Module
        Source network to copy from.
    """
    target.load_state_dict(source.state_dict())


@th.no_grad()
def soft_update(target: nn.Module, source: nn.Module, tau: float) -> None:
    """
    Soft update target module parameters:
        target <- (1 - tau) * target + tau * source

    Parameters
    ----------
    target : nn.Module
        Target network (updated in-place).
    source : nn.Module
        Source/online network.
    tau : float
        Source interpolation factor in (0, 1].
    """
    tau = float(tau)
    if not (0.0 < tau <= 1.0):
        raise ValueError(f"tau must be in (0, 1], got: {tau}")

    for p_t, p_s in zip(target.parameters(), source.parameters()):
        _polyak_update(p_t.data, p_s.data, tau)

    # Buffers (e.g., running stats) follow the source directly.
    for b_t, b_s in zip(target.buffers(), source.buffers()):
        b_t.copy_(b_s)
