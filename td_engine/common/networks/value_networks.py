from __future__ import annotations

from typing import Tuple, Type

import torch as th
import torch.nn as nn

from .base_networks import BaseValueNetwork
from ..utils.network_utils import combine_dueling


# =============================================================================
# V(s)
# =============================================================================
class StateValueNetwork(BaseValueNetwork):
    """
    State-value network V(s).

    Returns
    -------
    v : torch.Tensor
        Value estimates, shape (B, 1).
    """

    def __init__(
        self,
        state_dim: int,
        hidden_sizes: Tuple[int, ...] = (64, 64),
        activation_fn: Type[nn.Module] = nn.ReLU,
        init_type: str = "orthogonal",
        gain: float = 1.0,
        bias: float = 0.0,
    ) -> None:
        super().__init__(
            state_dim=int(state_dim),
            hidden_sizes=hidden_sizes,
            activation_fn=activation_fn,
            init_type=init_type,
            gain=gain,
            bias=bias,
        )
        self.head = nn.Linear(self.trunk_dim, 1)
        self._finalize_init()

    @property
    def output_dim(self) -> int:
        return 1

    def forward(self, state: th.Tensor) -> th.Tensor:
        state = self._ensure_batch(state)
        return self.head(self.trunk(state))


# =============================================================================
# Q(s, .)
# =============================================================================
class QValueNetwork(BaseValueNetwork):
    """
    Discrete-action value network producing one value per action.

    With ``state_value_slot=True`` the output vector reserves one leading
    entry for the state value, i.e. ``[V(s), Q(s, 0), ..., Q(s, A-1)]``, and
    action entries are shifted by one. The dueling decomposition
    ``Q = V + (A - mean(A))`` provides that slot naturally; without dueling a
    separate linear value head is used.

    Parameters
    ----------
    state_dim : int
        State dimension.
    action_dim : int
        Number of discrete actions (A).
    hidden_sizes : Tuple[int, ...], default=(64, 64)
        Trunk hidden sizes.
    state_value_slot : bool, default=False
        Prepend V(s) to the output vector.
    dueling_mode : bool, default=False
        Use dueling value/advantage heads.

    Returns
    -------
    q : torch.Tensor
        Shape (B, A) or (B, 1 + A) with a leading state-value slot.
    """

    def __init__(
        self,
        state_dim: int,
        action_dim: int,
        hidden_sizes: Tuple[int, ...] = (64, 64),
        activation_fn: Type[nn.Module] = nn.ReLU,
        state_value_slot: bool = False,
        dueling_mode: bool = False,
        init_type: str = "orthogonal",
        gain: float = 1.0,
        bias: float = 0.0,
    ) -> None:
        super().__init__(
            state_dim=int(state_dim),
            hidden_sizes=hidden_sizes,
            activation_fn=activation_fn,
            init_type=init_type,
            gain=gain,
            bias=bias,
        )
        self.action_dim = int(action_dim)
        if self.action_dim <= 0:
            raise ValueError(f"action_dim must be positive, got: {self.action_dim}")
        self.state_value_slot = bool(state_value_slot)
        self.dueling_mode = bool(dueling_mode)

        if self.dueling_mode or self.state_value_slot:
            self.value_head = nn.Linear(self.trunk_dim, 1)             # (B, 1)
        if self.dueling_mode:
            self.adv_head = nn.Linear(self.trunk_dim, self.action_dim)  # (B, A)
        else:
            self.q_head = nn.Linear(self.trunk_dim, self.action_dim)    # (B, A)

        self._finalize_init()

    @property
    def output_dim(self) -> int:
        return self.action_dim + (1 if self.state_value_slot else 0)

    def forward(self, state: th.Tensor) -> th.Tensor:
        state = self._ensure_batch(state)
        feat = self.trunk(state)

        if self.dueling_mode:
            v = self.value_head(feat)
            q = combine_dueling(v, self.adv_head(feat), mean_dim=-1)
        else:
            q = self.q_head(feat)
            v = self.value_head(feat) if self.state_value_slot else None

        if self.state_value_slot:
            return th.cat([v, q], dim=-1)
        return q


# =============================================================================
# pi(. | s)
# =============================================================================
class CategoricalPolicyNetwork(BaseValueNetwork):
    """
    Discrete policy network returning action probabilities (softmax over logits).

    Used as the policy collaborator of soft (entropy-regularized) targets,
    which only need ``pi(a|s')`` for the successor state.

    Returns
    -------
    probs : torch.Tensor
        Shape (B, A), rows sum to one.
    """

    def __init__(
        self,
        state_dim: int,
        action_dim: int,
        hidden_sizes: Tuple[int, ...] = (64, 64),
        activation_fn: Type[nn.Module] = nn.ReLU,
        init_type: str = "orthogonal",
        gain: float = 0.01,
        bias: float = 0.0,
    ) -> None:
        super().__init__(
            state_dim=int(state_dim),
            hidden_sizes=hidden_sizes,
            activation_fn=activation_fn,
            init_type=init_type,
            gain=gain,
            bias=bias,
        )
        self.action_dim = int(action_dim)
        self.logits_head = nn.Linear(self.trunk_dim, self.action_dim)
        self._finalize_init()

    @property
    def output_dim(self) -> int:
        return self.action_dim

    def forward(self, state: th.Tensor) -> th.Tensor:
        state = self._ensure_batch(state)
        return th.softmax(self.logits_head(self.trunk(state)), dim=-1)
