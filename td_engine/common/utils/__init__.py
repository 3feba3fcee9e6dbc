"""
Utils
====================

Small, reusable helpers used across the codebase.

Modules included
----------------
- common_utils
    NumPy/Torch conversion helpers, scalar coercion, EMA / Polyak updates and
    batch statistics.
- config_utils
    Parameter parsing (mapping or ``"name = value, ..."`` string) and range
    validation.
- errors
    ``ConfigError`` and ``AgentError``.
- logger_utils
    Run-directory management and lightweight CSV/JSON serialization helpers.
- network_utils
    Hidden-size validation, weight init, dueling combine, batch shaping.
- policy_utils
    Target-network helpers (freeze, hard and soft update).
"""

from __future__ import annotations

# =============================================================================
# Errors
# =============================================================================
from .errors import AgentError, ConfigError

# =============================================================================
# Common NumPy/Torch utilities
# =============================================================================
from .common_utils import (
    _ema_update,
    _mean,
    _polyak_update,
    _std,
    _to_numpy,
    _to_scalar,
    _to_vector,
)

# =============================================================================
# Configuration
# =============================================================================
from .config_utils import parse_params, require_in_range, split_param_string

# =============================================================================
# Logger utilities
# =============================================================================
from .logger_utils import (
    file_is_empty,
    generate_run_id,
    json_dumps,
    make_run_dir,
    open_append,
    safe_call,
    split_meta,
)

# =============================================================================
# Network / target-network utilities
# =============================================================================
from .network_utils import combine_dueling, ensure_batch, make_weights_init, validate_hidden_sizes
from .policy_utils import freeze_target, hard_update, soft_update


__all__ = [
    # errors
    "ConfigError",
    "AgentError",
    # common
    "_to_numpy",
    "_to_vector",
    "_to_scalar",
    "_polyak_update",
    "_ema_update",
    "_mean",
    "_std",
    # config
    "parse_params",
    "split_param_string",
    "require_in_range",
    # logger
    "generate_run_id",
    "make_run_dir",
    "split_meta",
    "json_dumps",
    "open_append",
    "safe_call",
    "file_is_empty",
    # network / target
    "validate_hidden_sizes",
    "make_weights_init",
    "combine_dueling",
    "ensure_batch",
    "freeze_target",
    "hard_update",
    "soft_update",
]
