from __future__ import annotations

from typing import Any, Callable, Sequence, Tuple, Union
import math

import torch as th
import torch.nn as nn


# =============================================================================
# Network utilities
# =============================================================================
def validate_hidden_sizes(hidden_sizes: Sequence[int]) -> Tuple[int, ...]:
    """
    Validate an MLP hidden layer size specification.

    Parameters
    ----------
    hidden_sizes : Sequence[int]
        Hidden layer sizes (e.g., (64, 64) or [256, 256]).

    Returns
    -------
    hs : Tuple[int, ...]
        Validated sizes as a tuple of positive integers.

    Raises
    ------
    ValueError
        If empty or contains non-positive entries.
    """
    hs = tuple(int(h) for h in hidden_sizes)
    if len(hs) == 0:
        raise ValueError("hidden_sizes must have at least one layer (e.g., (64, 64)).")
    if any(h <= 0 for h in hs):
        raise ValueError(f"hidden_sizes must be positive integers, got: {hs}")
    return hs


def make_weights_init(
    init_type: str = "xavier_uniform",
    gain: float = 1.0,
    bias: float = 0.0,
    kaiming_a: float = math.sqrt(5.0),
) -> Callable[[nn.Module], None]:
    """
    Create an initializer function compatible with `nn.Module.apply()`.

    Parameters
    ----------
    init_type : str, default="xavier_uniform"
        Initialization scheme identifier (case-insensitive). Supported for
        `nn.Linear`: "xavier_uniform", "xavier_normal", "kaiming_uniform",
        "kaiming_normal", "orthogonal", "normal" (std = gain),
        "uniform" (range = [-gain, +gain]).
    gain : float, default=1.0
        Gain used by Xavier/Orthogonal initializers.
    bias : float, default=0.0
        Constant value for initializing linear biases (if present).
    kaiming_a : float, default=sqrt(5.0)
        Negative slope parameter `a` for Kaiming initialization.

    Returns
    -------
    init_fn : Callable[[nn.Module], None]
        Function intended to be used as ``model.apply(init_fn)``.

    Raises
    ------
    ValueError
        If `init_type` is unknown (raised on first application).
    """
    name = str(init_type).lower().strip()
    gain = float(gain)
    bias = float(bias)
    kaiming_a = float(kaiming_a)

    def init_fn(module: nn.Module) -> None:
        if not isinstance(module, nn.Linear):
            return

        if name == "xavier_uniform":
            nn.init.xavier_uniform_(module.weight, gain=gain)
        elif name == "xavier_normal":
            nn.init.xavier_normal_(module.weight, gain=gain)
        elif name == "kaiming_uniform":
            nn.init.kaiming_uniform_(module.weight, a=kaiming_a)
        elif name == "kaiming_normal":
            nn.init.kaiming_normal_(module.weight, a=kaiming_a)
        elif name == "orthogonal":
            nn.init.orthogonal_(module.weight, gain=gain)
        elif name == "normal":
            nn.init.normal_(module.weight, mean=0.0, std=gain)
        elif name == "uniform":
            nn.init.uniform_(module.weight, -gain, gain)
        else:
            raise ValueError(f"Unknown init_type: {init_type!r}")

        if module.bias is not None:
            nn.init.constant_(module.bias, bias)

    return init_fn


def combine_dueling(v: th.Tensor, a: th.Tensor, *, mean_dim: int = -1) -> th.Tensor:
    """
    Combine dueling value and advantage streams: ``Q = V + (A - mean(A))``.

    Parameters
    ----------
    v : torch.Tensor
        Value stream, shape (B, 1).
    a : torch.Tensor
        Advantage stream, shape (B, A).
    mean_dim : int, default=-1
        Dimension over which advantages are mean-reduced (the action dim).
    """
    return v + (a - a.mean(dim=mean_dim, keepdim=True))


# =============================================================================
# Input shape/device normalization
# =============================================================================
def ensure_batch(x: Any, device: Union[th.device, str]) -> th.Tensor:
    """
    Convert input to a floating-point tensor on `device` with a batch dimension.

    Parameters
    ----------
    x : Any
        torch.Tensor, numpy array, Python list/tuple or scalar.
    device : torch.device or str
        Target device.

    Returns
    -------
    x_t : torch.Tensor
        Floating-point tensor on `device` with shape:
        - (1, D) if input is 1D
        - (B, ...) if input already has batch dimension
        - (1, 1) if input is scalar
    """
    x_t = x if isinstance(x, th.Tensor) else th.as_tensor(x)

    if not x_t.is_floating_point():
        x_t = x_t.float()

    x_t = x_t.to(device)

    if x_t.dim() == 0:
        x_t = x_t.view(1, 1)
    elif x_t.dim() == 1:
        x_t = x_t.unsqueeze(0)

    return x_t
