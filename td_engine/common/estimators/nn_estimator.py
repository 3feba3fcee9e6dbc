from __future__ import annotations

import copy
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import torch as th
import torch.nn as nn
import torch.nn.functional as F

from .base_estimator import FunctionEstimator
from ..buffers.trajectory import Transition
from ..optimizers.optimizer_builder import (
    build_optimizer,
    clip_grad_norm,
    load_optimizer_state_dict,
    normalize_optimizer_name,
    optimizer_state_dict,
)
from ..utils.config_utils import parse_params
from ..utils.errors import ConfigError
from ..utils.network_utils import ensure_batch
from ..utils.policy_utils import freeze_target, hard_update, soft_update


class TorchFunctionEstimator(FunctionEstimator):
    """
    Function estimator backed by a torch module.

    The module maps a batch of states ``(B, state_dim)`` to value vectors
    ``(B, num_outputs)``. Target vectors queued through `store()` are fitted by
    a single optimizer step per `train()` call (MSE or Huber loss over the
    whole vector; untouched entries equal the prediction, so only the
    resolved index carries gradient signal in practice).

    Parameters
    ----------
    network : nn.Module
        Value network. Its ``output_dim`` (if present) defines the vector
        length; ``state_value_slot`` (if present) defines the index offset.
    num_outputs : int, optional
        Required when the network exposes no ``output_dim``.
    state_value_slot : bool, optional
        Overrides ``network.state_value_slot``.
    optim_name : str, default="adam"
        Optimizer identifier for `build_optimizer`.
    lr : float, default=1e-3
        Learning rate.
    weight_decay : float, default=0.0
        Optimizer weight decay.
    huber : bool, default=False
        Use smooth L1 (Huber) loss instead of MSE.
    max_grad_norm : float, default=0.0
        Gradient clipping threshold; 0 disables clipping.
    device : str or torch.device, default="cpu"
        Device for parameters and inputs.
    use_target, update_cycle, tau, logger, log_every
        See :class:`FunctionEstimator`.
    """

    PARAMS = {
        "optim_name": str,
        "lr": float,
        "weight_decay": float,
        "huber": bool,
        "max_grad_norm": float,
        "use_target": bool,
        "update_cycle": int,
        "tau": float,
        "log_every": int,
    }

    def __init__(
        self,
        network: nn.Module,
        *,
        num_outputs: Optional[int] = None,
        state_value_slot: Optional[bool] = None,
        optim_name: str = "adam",
        lr: float = 1e-3,
        weight_decay: float = 0.0,
        huber: bool = False,
        max_grad_norm: float = 0.0,
        device: Union[str, th.device] = "cpu",
        use_target: bool = False,
        update_cycle: int = 0,
        tau: float = 0.005,
        logger: Optional[Any] = None,
        log_every: int = 1,
    ) -> None:
        if num_outputs is None:
            num_outputs = getattr(network, "output_dim", None)
            if num_outputs is None:
                raise ConfigError("num_outputs is required when the network exposes no output_dim")
        if state_value_slot is None:
            state_value_slot = bool(getattr(network, "state_value_slot", False))

        super().__init__(
            num_outputs=int(num_outputs),
            state_value_slot=bool(state_value_slot),
            use_target=use_target,
            update_cycle=update_cycle,
            tau=tau,
            logger=logger,
            log_every=log_every,
        )

        try:
            self.optim_name = normalize_optimizer_name(optim_name)
        except ValueError as e:
            raise ConfigError(str(e)) from None
        self.lr = float(lr)
        self.weight_decay = float(weight_decay)
        self.huber = bool(huber)
        self.max_grad_norm = float(max_grad_norm)
        self.device = th.device(device)

        self.network = network.to(self.device)
        self.optimizer = build_optimizer(
            self.network.parameters(),
            name=self.optim_name,
            lr=self.lr,
            weight_decay=self.weight_decay,
        )

        self._finalize_init()

    @classmethod
    def from_params(
        cls,
        network: nn.Module,
        params: Optional[Union[str, Mapping[str, Any]]] = None,
        **kwargs: Any,
    ) -> "TorchFunctionEstimator":
        """Build from ``"lr = 0.001, update_cycle = 10"`` style parameters."""
        return cls(network, **parse_params(params, cls.PARAMS), **kwargs)

    # ---------------------------------------------------------------------
    # Parameter primitives
    # ---------------------------------------------------------------------
    @th.no_grad()
    def _predict_raw(self, state: Any, transition: Optional[Transition] = None) -> th.Tensor:
        x = ensure_batch(state, self.device)
        return self.network(x)[0]

    def _fit(self, batch: Sequence[Tuple[Transition, np.ndarray]]) -> Dict[str, float]:
        self.network.train()
        states = th.cat([ensure_batch(t.state, self.device) for t, _ in batch], dim=0)
        targets = th.as_tensor(np.stack([tv for _, tv in batch]), dtype=th.float32, device=self.device)

        pred = self.network(states)
        if self.huber:
            loss = F.smooth_l1_loss(pred, targets)
        else:
            loss = F.mse_loss(pred, targets)

        self.optimizer.zero_grad(set_to_none=True)
        loss.backward()
        grad_norm = clip_grad_norm(self.network.parameters(), self.max_grad_norm)
        self.optimizer.step()

        return {
            "loss": float(loss.detach().cpu().item()),
            "grad_norm": float(grad_norm),
            "lr": float(self.optimizer.param_groups[0]["lr"]),
        }

    def assign_from(self, other: FunctionEstimator) -> None:
        if not isinstance(other, TorchFunctionEstimator):
            raise TypeError(f"cannot copy parameters from {type(other).__name__}")
        hard_update(self.network, other.network)

    def blend_from(self, other: FunctionEstimator, tau: float) -> None:
        if not isinstance(other, TorchFunctionEstimator):
            raise TypeError(f"cannot blend parameters from {type(other).__name__}")
        soft_update(self.network, other.network, tau)

    def _fresh(self, *, use_target: bool) -> "TorchFunctionEstimator":
        network = copy.deepcopy(self.network)
        _reinitialize(network)
        cfg = self._config_dict()
        cfg["use_target"] = bool(use_target)
        return TorchFunctionEstimator(
            network,
            num_outputs=self.num_outputs,
            state_value_slot=self.state_value_slot,
            optim_name=self.optim_name,
            lr=self.lr,
            weight_decay=self.weight_decay,
            huber=self.huber,
            max_grad_norm=self.max_grad_norm,
            device=self.device,
            **cfg,
        )

    def set_target_estimator(self, target: Optional[FunctionEstimator] = None) -> FunctionEstimator:
        target = super().set_target_estimator(target)
        if isinstance(target, TorchFunctionEstimator):
            freeze_target(target.network)
        return target

    def _params_state_dict(self) -> Dict[str, Any]:
        return {
            "network": {k: v.detach().cpu().clone() for k, v in self.network.state_dict().items()},
            "optimizer": optimizer_state_dict(self.optimizer),
        }

    def _load_params_state_dict(self, state: Mapping[str, Any]) -> None:
        self.network.load_state_dict(state["network"])
        if "optimizer" in state:
            load_optimizer_state_dict(self.optimizer, state["optimizer"])


def _reinitialize(module: nn.Module) -> None:
    """Fresh parameters for a deep-copied module (its own init scheme when it has one)."""
    for m in module.modules():
        reset = getattr(m, "reset_parameters", None)
        if callable(reset):
            reset()
    finalize = getattr(module, "_finalize_init", None)
    if callable(finalize):
        finalize()
