from __future__ import annotations

from typing import Any, Optional, Tuple, Type, Union

import torch as th
import torch.nn as nn

from .core import ActionValueFunction
from td_engine.common.estimators.nn_estimator import TorchFunctionEstimator
from td_engine.common.networks.value_networks import QValueNetwork


def action_value(
    *,
    state_dim: int,
    n_actions: int,
    device: Union[str, th.device] = "cpu",
    # -----------------------------
    # Network hyperparams
    # -----------------------------
    hidden_sizes: Tuple[int, ...] = (64, 64),
    activation_fn: Type[nn.Module] = nn.ReLU,
    state_value_slot: bool = False,
    dueling_mode: bool = False,
    init_type: str = "orthogonal",
    gain: float = 1.0,
    bias: float = 0.0,
    # -----------------------------
    # Estimator hyperparams
    # -----------------------------
    optim_name: str = "adam",
    lr: float = 1e-3,
    weight_decay: float = 0.0,
    huber: bool = True,
    max_grad_norm: float = 0.0,
    # -----------------------------
    # TD hyperparams
    # -----------------------------
    gamma: float = 0.99,
    lam: float = 1.0,
    use_baseline: bool = False,
    tau: float = 0.9,
    logger: Optional[Any] = None,
    log_every: int = 1,
) -> ActionValueFunction:
    """
    Build an on-policy :class:`ActionValueFunction` on a torch Q network.

    ``state_value_slot=True`` makes the network output ``[V(s), Q(s, .)]`` and
    the value function shifts its action index by one.
    """
    network = QValueNetwork(
        state_dim=int(state_dim),
        action_dim=int(n_actions),
        hidden_sizes=tuple(hidden_sizes),
        activation_fn=activation_fn,
        state_value_slot=bool(state_value_slot),
        dueling_mode=bool(dueling_mode),
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
    return ActionValueFunction(
        estimator,
        gamma=float(gamma),
        lam=float(lam),
        use_baseline=bool(use_baseline),
        tau=float(tau),
        logger=logger,
        log_every=log_every,
    )
