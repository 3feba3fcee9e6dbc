from __future__ import annotations

from typing import Any, Optional, Tuple, Type, Union

import torch as th
import torch.nn as nn

from .core import QValueFunction
from td_engine.common.estimators.nn_estimator import TorchFunctionEstimator
from td_engine.common.networks.value_networks import QValueNetwork


def q_value(
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
    optim_name: str = "adamw",
    lr: float = 3e-4,
    weight_decay: float = 0.0,
    huber: bool = True,
    max_grad_norm: float = 0.0,
    # target estimator
    use_target: bool = True,
    update_cycle: int = 0,      # full copy every N train() calls, 0 = Polyak
    target_tau: float = 0.005,  # Polyak rate when update_cycle == 0
    # -----------------------------
    # TD hyperparams
    # -----------------------------
    gamma: float = 0.99,
    lam: float = 1.0,
    dual_estimation: bool = False,
    min_max_balance: float = 1.0,
    use_baseline: bool = False,
    tau: float = 0.9,
    logger: Optional[Any] = None,
    log_every: int = 1,
) -> QValueFunction:
    """
    Build a :class:`QValueFunction` on a torch Q network with a target copy.

    Parameters
    ----------
    state_dim : int
        State (observation) dimension.
    n_actions : int
        Number of discrete actions.
    device : str or torch.device, default="cpu"
        Device for parameters.

    Network hyperparams
    -------------------
    hidden_sizes, activation_fn, init_type, gain, bias
        MLP configuration.
    state_value_slot : bool
        Reserve a leading V(s) entry (action index offset becomes 1).
    dueling_mode : bool
        Dueling value/advantage decomposition.

    Estimator hyperparams
    ---------------------
    optim_name, lr, weight_decay, huber, max_grad_norm
        Optimizer and loss configuration.
    use_target : bool
        Keep a target estimator and bootstrap from it.
    update_cycle : int
        Target full-copy period in training steps; 0 selects Polyak blending.
    target_tau : float
        Polyak blending rate.

    TD hyperparams
    --------------
    gamma, lam : float
        Discount and bootstrap blend.
    dual_estimation : bool
        Clipped double-Q with a second, independently initialized estimator.
    min_max_balance : float
        Probability of taking the min of both estimators.
    use_baseline, tau
        Batch TD-target normalization and its keep ratio.

    Returns
    -------
    value_function : QValueFunction
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
        use_target=bool(use_target),
        update_cycle=int(update_cycle),
        tau=float(target_tau),
        logger=logger,
        log_every=log_every,
    )
    return QValueFunction(
        estimator,
        use_target=bool(use_target),
        dual_estimation=bool(dual_estimation),
        min_max_balance=float(min_max_balance),
        gamma=float(gamma),
        lam=float(lam),
        use_baseline=bool(use_baseline),
        tau=float(tau),
        logger=logger,
        log_every=log_every,
    )
