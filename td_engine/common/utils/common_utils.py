from __future__ import annotations

from typing import Any, Optional, Sequence
import math

import numpy as np
import torch as th


# =============================================================================
# NumPy / Torch conversion utilities
# =============================================================================
def _to_numpy(x: Any, *, ensure_1d: bool = False) -> np.ndarray:
    """
    Convert an input to a NumPy array on CPU.

    Parameters
    ----------
    x : Any
        Input object. Common cases include:
        - ``np.ndarray``
        - ``torch.Tensor``
        - Python scalars, lists, tuples
    ensure_1d : bool, default=False
        If True and the resulting array is a scalar (0-d), it is converted to a
        1D array of shape (1,).

    Returns
    -------
    arr : np.ndarray
        NumPy array on CPU. Dtype is not forced.

    Notes
    -----
    If ``x`` is a ``torch.Tensor``, it is detached and moved to CPU before
    converting via ``.numpy()``.
    """
    if isinstance(x, np.ndarray):
        arr = x
    elif th.is_tensor(x):
        arr = x.detach().cpu().numpy()
    else:
        arr = np.asarray(x)

    if ensure_1d and arr.shape == ():
        arr = np.asarray([arr])

    return arr


def _to_vector(x: Any) -> np.ndarray:
    """
    Convert an estimator output to a flat float64 vector.

    Value vectors are always handled as float64 on the NumPy side so that TD
    targets computed from them do not accumulate float32 rounding.
    """
    return np.array(_to_numpy(x), dtype=np.float64).reshape(-1)


def _to_scalar(x: Any) -> Optional[float]:
    """
    Convert a scalar-like input to a Python float.

    Parameters
    ----------
    x : Any
        Input value.

    Returns
    -------
    s : float or None
        Python float if convertible, else None.

    Accepted inputs
    ---------------
    - Python scalars: int/float/bool
    - NumPy scalars (np.number)
    - 0-d NumPy arrays or 1-element arrays
    - 0-d torch tensors or 1-element tensors

    Notes
    -----
    Tensors/arrays with more than one element return None to avoid silently
    discarding data.
    """
    if th.is_tensor(x):
        if x.numel() == 1:
            return float(x.detach().cpu().item())
        return None

    if isinstance(x, (bool, int, float, np.number)):
        return float(x)

    try:
        arr = np.asarray(x)
        if arr.shape == () or arr.size == 1:
            return float(arr.reshape(-1)[0])
    except Exception:
        return None

    return None


# =============================================================================
# Target network / EMA utilities
# =============================================================================
@th.no_grad()
def _polyak_update(target: th.Tensor, source: th.Tensor, tau: float) -> None:
    """
    In-place Polyak update (source-weight convention).

    Performs:
        ``target <- (1 - tau) * target + tau * source``

    Parameters
    ----------
    target : torch.Tensor
        Tensor updated in-place (e.g., target network parameter).
    source : torch.Tensor
        Tensor providing new values (e.g., online network parameter).
    tau : float
        Interpolation factor in [0, 1].

    Raises
    ------
    ValueError
        If ``tau`` is outside [0, 1].
    """
    tau = float(tau)
    if not (0.0 <= tau <= 1.0):
        raise ValueError(f"tau must be in [0, 1], got: {tau}")

    target.mul_(1.0 - tau).add_(source, alpha=tau)


def _ema_update(old: Optional[float], new: float, beta: float) -> float:
    """
    Scalar exponential moving average (keep-ratio convention).

    Performs:
        ``old <- beta * old + (1 - beta) * new``

    Parameters
    ----------
    old : float or None
        Current running value. None means "uninitialized", in which case the
        new sample is adopted as-is.
    new : float
        Freshly observed value.
    beta : float
        Keep ratio in [0, 1].

    Returns
    -------
    updated : float
        New running value.
    """
    beta = float(beta)
    if not (0.0 <= beta <= 1.0):
        raise ValueError(f"beta must be in [0, 1], got: {beta}")
    if old is None:
        return float(new)
    return float(beta * old + (1.0 - beta) * new)


# =============================================================================
# Simple stats helpers (pure Python)
# =============================================================================
def _mean(xs: Sequence[float]) -> float:
    """Mean of a sequence, 0.0 for empty sequences."""
    if not xs:
        return 0.0
    return float(sum(xs) / len(xs))


def _std(xs: Sequence[float]) -> Optional[float]:
    """
    Unbiased sample standard deviation (ddof=1).

    Returns
    -------
    s : float or None
        None when fewer than 2 samples are available (undefined).
    """
    n = len(xs)
    if n < 2:
        return None
    m = sum(xs) / n
    var = sum((x - m) * (x - m) for x in xs) / (n - 1)
    return float(math.sqrt(var))
