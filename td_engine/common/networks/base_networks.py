from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Tuple, Type

import torch as th
import torch.nn as nn

from ..utils.network_utils import ensure_batch, make_weights_init, validate_hidden_sizes


# =============================================================================
# Feature Extractors
# =============================================================================
class MLPFeaturesExtractor(nn.Module):
    """
    Standard MLP feature extractor (shared trunk).

    Architecture: (Linear -> Activation) x N. The output feature dimension is
    ``hidden_sizes[-1]``.

    Parameters
    ----------
    input_dim : int
        Input dimensionality (state feature dimension).
    hidden_sizes : Tuple[int, ...]
        Hidden layer widths; must contain at least one element.
    activation_fn : type[nn.Module], default=nn.ReLU
        Activation module class inserted after each ``nn.Linear`` layer.
    """

    def __init__(
        self,
        input_dim: int,
        hidden_sizes: Tuple[int, ...],
        activation_fn: Type[nn.Module] = nn.ReLU,
    ) -> None:
        super().__init__()
        hs = validate_hidden_sizes(hidden_sizes)

        layers: list[nn.Module] = []
        prev_dim = int(input_dim)
        for h in hs:
            layers.append(nn.Linear(prev_dim, h))
            layers.append(activation_fn())
            prev_dim = h

        self.net = nn.Sequential(*layers)
        self.out_dim = int(hs[-1])

    def forward(self, x: th.Tensor) -> th.Tensor:
        return self.net(x)


# =============================================================================
# Value-vector network base
# =============================================================================
class BaseValueNetwork(nn.Module, ABC):
    """
    Base class for networks that map a state to a vector of values.

    Subclasses create their head(s) after calling ``super().__init__()`` and
    then call ``self._finalize_init()`` so that initialization covers the
    trunk and every head.

    Parameters
    ----------
    state_dim : int
        State (observation) dimension.
    hidden_sizes : Tuple[int, ...]
        Trunk hidden layer sizes.
    activation_fn : type[nn.Module], default=nn.ReLU
        Activation class used in the trunk.
    init_type : str, default="orthogonal"
        Initializer scheme name (see `make_weights_init`).
    gain : float, default=1.0
        Init gain.
    bias : float, default=0.0
        Bias init constant.
    """

    def __init__(
        self,
        *,
        state_dim: int,
        hidden_sizes: Tuple[int, ...],
        activation_fn: Type[nn.Module] = nn.ReLU,
        init_type: str = "orthogonal",
        gain: float = 1.0,
        bias: float = 0.0,
    ) -> None:
        super().__init__()
        self.state_dim = int(state_dim)
        self.hidden_sizes = validate_hidden_sizes(hidden_sizes)

        self.trunk = MLPFeaturesExtractor(self.state_dim, self.hidden_sizes, activation_fn)
        self.trunk_dim = int(self.trunk.out_dim)
        self._init_fn = make_weights_init(init_type=init_type, gain=gain, bias=bias)

    @property
    @abstractmethod
    def output_dim(self) -> int:
        """Length of the value vector produced per state."""
        raise NotImplementedError

    def _finalize_init(self) -> None:
        self.apply(self._init_fn)

    def _ensure_batch(self, x: Any) -> th.Tensor:
        """Return ``x`` as a float tensor of shape ``(B, state_dim)`` on the module device."""
        device = next(self.parameters()).device
        return ensure_batch(x, device=device)
