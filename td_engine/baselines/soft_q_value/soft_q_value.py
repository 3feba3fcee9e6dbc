from __future__ import annotations

from typing import Any, Optional, Tuple, Type, Union

import torch as th
import torch.nn as nn

from .core import SoftQValueFunction
from td_engine.common.estimators.nn_estimator import TorchFunctionEstimator
from td_engine.common.networks.value_networks import CategoricalPolicyNetwork, QValueNetwork


def soft_q_value(
    *,
    state_dim: int,
    n_actions: int,
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
    lr: float = 3e-4,
    policy_lr: float = 3e-4,
    weight_decay: float = 0.0,
    huber: bool = False,
    max_grad_norm: float = 0.0,
    update_cycle: int = 0,
    target_tau: float = 0.005,
    # -----------------------------
    # Soft target hyperparams
    # -----------------------------
    alpha: Union[float, th.Tensor] = 0.2,
    q_source: str = "target",
    policy_source: str = "online",
    expectation: bool = True,
    dual_estimation: bool = True,
    min_max_balance: float = 1.0,
    prob_floor: float = 1e-8,
    # -----------------------------
    # TD hyperparams
    # -----------------------------
    gamma: float = 0.99,
    lam: float = 1.0,
    use_baseline: bool = False,
    tau: float = 0.9,
    logger: Optional[Any] = None,
    log_every: int = 1,
) -> SoftQValueFunction:
    """
    Build a discrete :class:`SoftQValueFunction` (SAC-discrete style critic).

    Two Q networks (each with a Polyak target) and a categorical policy
    network are created. The policy estimator only serves ``pi(a|s')`` here;
    training it is the policy's business.

    Returns
    -------
    value_function : SoftQValueFunction
    """
    q_network = QValueNetwork(
        state_dim=int(state_dim),
        action_dim=int(n_actions),
        hidden_sizes=tuple(hidden_sizes),
        activation_fn=activation_fn,
        init_type=str(init_type),
        gain=float(gain),
        bias=float(bias),
    )
    estimator = TorchFunctionEstimator(
        q_network,
        optim_name=optim_name,
        lr=float(lr),
        weight_decay=float(weight_decay),
        huber=bool(huber),
        max_grad_norm=float(max_grad_norm),
        device=device,
        use_target=True,
        update_cycle=int(update_cycle),
        tau=float(target_tau),
        logger=logger,
        log_every=log_every,
    )

    policy_network = CategoricalPolicyNetwork(
        state_dim=int(state_dim),
        action_dim=int(n_actions),
        hidden_sizes=tuple(hidden_sizes),
        activation_fn=activation_fn,
        init_type=str(init_type),
    )
    policy_estimator = TorchFunctionEstimator(
        policy_network,
        optim_name=optim_name,
        lr=float(policy_lr),
        device=device,
        use_target=(policy_source == "target"),
        update_cycle=int(update_cycle),
        tau=float(target_tau),
    )

    return SoftQValueFunction(
        estimator,
        policy_estimator,
        alpha=alpha,
        q_source=q_source,
        policy_source=policy_source,
        expectation=bool(expectation),
        dual_estimation=bool(dual_estimation),
        min_max_balance=float(min_max_balance),
        prob_floor=float(prob_floor),
        gamma=float(gamma),
        lam=float(lam),
        use_baseline=bool(use_baseline),
        tau=float(tau),
        logger=logger,
        log_every=log_every,
    )
