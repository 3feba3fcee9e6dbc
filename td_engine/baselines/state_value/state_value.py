from __future__ import annotations

from typing import Any, Optional, Tuple, Type, Union

import torch as th
import torch.nn as nn

from .core import StateValueFunction
from td_engine.common.estimators.nn_estimator import TorchFunctionEstimator
from td_engine.common.networks.value_networks import StateValueNetwork


def state_value(
    *,
    state_dim: int,
    device: Union[str, th.device] = "cpu",
    # -----------------------------
    # Network hyperparams
    # -----------------------------
    hidden_sizes: Tuple[int, ...] = (64, 64),
    activation_fn: Type[nn.Module] = nn.ReLU,
    init_type: str = "orthogonal",
    gain: float = 1.0,
    bias: float = 0.0,
    # -----------------------------
    # Estimator hyperparams
    # -----------------------------
    optim_name: str = "adam",
    lr: float = 1e-3,
    weight_decay: float = 0.0,
    huber: bool = False,
    max_grad_norm: float = 0.0,
    # -----------------------------
    # TD hyperparams
    # -----------------------------
    gamma: float = 0.99,
    lam: float = 1.0,
    use_baseline: bool = False,
    tau: float = 0.9,
    # -----------------------------
    # Logging
    # -----------------------------
    logger: Optional[Any] = None,
    log_every: int = 1,
) -> StateValueFunction:
    """
    Build a :class:`StateValueFunction` on a torch V(s) network.

    Parameters
    ----------
    state_dim : int
        State (observation) dimension.
    device : str or torch.device, default="cpu"
        Device for the network.
    hidden_sizes, activation_fn, init_type, gain, bias
        :class:`StateValueNetwork` configuration.
    optim_name, lr, weight_decay, huber, max_grad_norm
        :class:`TorchFunctionEstimator` configuration.
    gamma : float, default=0.99
        Discount factor.
    lam : float, default=1.0
        Bootstrap blend.
    use_baseline : bool, default=False
        Normalize TD targets per batch.
    tau : float, default=0.9
        Baseline running-statistics keep ratio.
    logger : Any, optional
        Metrics sink shared by the estimator and the value function.
    log_every : int, default=1
        Logging cadence (batches / train calls).

    Returns
    -------
    value_function : StateValueFunction
    """
    network = StateValueNetwork(
        state_dim=int(state_dim),
        hidden_sizes=tuple(hidden_sizes),
        activation_fn=activation_fn,
        init_type=str(init_type),
        gain=float(gain),
        bias=float(bias),
    )
    estimator = TorchFunctionEstimator(
        network,
        optim_name=optim_name,
        lr=float(lr),
        weight_decay=float(weight_decay),
        huber=bool(huber),
        max_grad_norm=float(max_grad_norm),
        device=device,
        logger=logger,
        log_every=log_every,
    )
    return StateValueFunction(
        estimator,
        gamma=float(gamma),
        lam=float(lam),
        use_baseline=bool(use_baseline),
        tau=float(tau),
        logger=logger,
        log_every=log_every,
    )
