from __future__ import annotations


class ConfigError(ValueError):
    """
    Invalid configuration supplied to a value function or function estimator.

    Raised at construction / attachment time for:
    - unknown parameter names
    - values of the wrong type (e.g., a string where a float is expected)
    - out-of-range values (e.g., ``gamma`` outside [0, 1])
    - non-scalar values where a single scalar is required (e.g., temperature)
    """


class AgentError(RuntimeError):
    """
    Agent-coordination failure around a shared function estimator.

    Typical cause is an agent signalling update readiness without having been
    registered first. This indicates a caller bug and is never retried.
    """
