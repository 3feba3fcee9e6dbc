from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Tuple, Union

import torch as th
import torch.nn as nn
import torch.optim as optim
from torch.optim import Optimizer


_ALIASES = {
    "adam": "adam",
    "adamw": "adamw",
    "adamweightdecay": "adamw",
    "sgd": "sgd",
    "rmsprop": "rmsprop",
    "radam": "radam",
}


def normalize_optimizer_name(name: str) -> str:
    """
    Map user spellings (``"AdamW"``, ``"rms_prop"``, ...) to a canonical name.

    Raises
    ------
    ValueError
        If the name is not a supported optimizer.
    """
    key = str(name).lower().strip().replace("-", "").replace("_", "")
    if key not in _ALIASES:
        raise ValueError(f"Unknown optimizer name: {name!r}. Supported: {sorted(set(_ALIASES.values()))}")
    return _ALIASES[key]


# =============================================================================
# Optimizer factory
# =============================================================================
def build_optimizer(
    params: Union[Iterable[nn.Parameter], Iterable[Dict[str, Any]]],
    *,
    name: str = "adam",
    lr: float = 1e-3,
    weight_decay: float = 0.0,
    betas: Tuple[float, float] = (0.9, 0.999),
    eps: float = 1e-8,
    momentum: float = 0.0,
    nesterov: bool = False,
    alpha: float = 0.99,
    centered: bool = False,
) -> Optimizer:
    """
    Build a torch optimizer from a string identifier.

    Parameters
    ----------
    params : Iterable[nn.Parameter] or Iterable[dict]
        Parameters (or parameter groups) to optimize.
    name : {"adam", "adamw", "sgd", "rmsprop", "radam"}, default="adam"
        Optimizer identifier; case, ``-`` and ``_`` are ignored.
    lr : float, default=1e-3
        Learning rate (> 0).
    weight_decay : float, default=0.0
        Weight decay (>= 0).
    betas : Tuple[float, float], default=(0.9, 0.999)
        Adam-family beta coefficients, each in [0, 1).
    eps : float, default=1e-8
        Numerical stability term (> 0).
    momentum : float, default=0.0
        Momentum for SGD / RMSprop (>= 0).
    nesterov : bool, default=False
        Nesterov momentum for SGD.
    alpha : float, default=0.99
        RMSprop smoothing constant.
    centered : bool, default=False
        Centered RMSprop.

    Returns
    -------
    optimizer : torch.optim.Optimizer

    Raises
    ------
    ValueError
        If the name is unknown or a hyperparameter is invalid.
    """
    if lr <= 0:
        raise ValueError(f"lr must be > 0, got: {lr}")
    if weight_decay < 0:
        raise ValueError(f"weight_decay must be >= 0, got: {weight_decay}")
    if eps <= 0:
        raise ValueError(f"eps must be > 0, got: {eps}")
    if momentum < 0:
        raise ValueError(f"momentum must be >= 0, got: {momentum}")

    b1, b2 = float(betas[0]), float(betas[1])
    if not (0.0 <= b1 < 1.0 and 0.0 <= b2 < 1.0):
        raise ValueError(f"betas must be in [0, 1), got: {betas}")

    opt = normalize_optimizer_name(name)

    if opt == "adam":
        return optim.Adam(params, lr=lr, betas=(b1, b2), eps=eps, weight_decay=weight_decay)

    if opt == "adamw":
        return optim.AdamW(params, lr=lr, betas=(b1, b2), eps=eps, weight_decay=weight_decay)

    if opt == "sgd":
        return optim.SGD(params, lr=lr, momentum=momentum, weight_decay=weight_decay, nesterov=bool(nesterov))

    if opt == "rmsprop":
        return optim.RMSprop(
            params,
            lr=lr,
            alpha=float(alpha),
            eps=eps,
            weight_decay=weight_decay,
            momentum=momentum,
            centered=bool(centered),
        )

    return optim.RAdam(params, lr=lr, betas=(b1, b2), eps=eps, weight_decay=weight_decay)


def clip_grad_norm(parameters: Iterable[nn.Parameter], max_norm: float, norm_type: float = 2.0) -> float:
    """
    Clip gradient norm in-place.

    Parameters
    ----------
    parameters : Iterable[nn.Parameter]
        Parameters whose gradients will be clipped (materialized into a list).
    max_norm : float
        Maximum allowed norm. If <= 0, no-op and returns 0.0.
    norm_type : float, default=2.0
        p-norm type.

    Returns
    -------
    total_norm : float
        Pre-clip total norm as reported by PyTorch.
    """
    if max_norm <= 0:
        return 0.0

    total_norm = nn.utils.clip_grad_norm_(list(parameters), max_norm, norm_type=float(norm_type))
    if th.is_tensor(total_norm):
        return float(total_norm.detach().cpu().item())
    return float(total_norm)


def optimizer_state_dict(optimizer: Optimizer) -> Dict[str, Any]:
    """Checkpoint-ready optimizer state dict."""
    return optimizer.state_dict()


def load_optimizer_state_dict(optimizer: Optimizer, state: Mapping[str, Any]) -> None:
    optimizer.load_state_dict(dict(state))
