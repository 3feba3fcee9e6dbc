from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Union

import numpy as np

from .errors import ConfigError


ParamSpec = Mapping[str, type]


# =============================================================================
# Scalar coercion
# =============================================================================
def _coerce(name: str, value: Any, kind: type) -> Any:
    """
    Coerce a single parameter value to the declared type.

    Parameters
    ----------
    name : str
        Parameter name (used in error messages).
    value : Any
        Raw value. Strings are parsed; Python/NumPy scalars are checked.
    kind : type
        One of ``bool``, ``int``, ``float``, ``str``.

    Returns
    -------
    value : Any
        Coerced value.

    Raises
    ------
    ConfigError
        If the value cannot be interpreted as ``kind`` without loss.
    """
    if isinstance(value, str) and kind is not str:
        return _parse_string(name, value.strip(), kind)

    if kind is bool:
        if isinstance(value, (bool, np.bool_)):
            return bool(value)
        raise ConfigError(f"{name} must be a bool, got {type(value).__name__}: {value!r}")

    if kind is int:
        if isinstance(value, (bool, np.bool_)):
            raise ConfigError(f"{name} must be an int, got bool: {value!r}")
        if isinstance(value, (int, np.integer)):
            return int(value)
        raise ConfigError(f"{name} must be an int, got {type(value).__name__}: {value!r}")

    if kind is float:
        if isinstance(value, (bool, np.bool_)):
            raise ConfigError(f"{name} must be a float, got bool: {value!r}")
        if isinstance(value, (int, float, np.integer, np.floating)):
            return float(value)
        raise ConfigError(f"{name} must be a float, got {type(value).__name__}: {value!r}")

    if kind is str:
        if isinstance(value, str):
            return value
        raise ConfigError(f"{name} must be a str, got {type(value).__name__}: {value!r}")

    raise ConfigError(f"Unsupported parameter type for {name}: {kind!r}")


def _parse_string(name: str, text: str, kind: type) -> Any:
    if kind is bool:
        low = text.lower()
        if low in ("true", "1", "yes"):
            return True
        if low in ("false", "0", "no"):
            return False
        raise ConfigError(f"{name} must be a bool, got {text!r}")
    try:
        if kind is int:
            return int(text)
        if kind is float:
            return float(text)
    except ValueError:
        raise ConfigError(f"{name} must be {kind.__name__}, got {text!r}") from None
    raise ConfigError(f"Unsupported parameter type for {name}: {kind!r}")


# =============================================================================
# Public API
# =============================================================================
def split_param_string(params: str) -> Dict[str, str]:
    """
    Split a ``"name = value, name2 = value2"`` string into raw string pairs.

    Parameters
    ----------
    params : str
        Comma-separated assignments. Whitespace around names and values is
        ignored. An empty string yields an empty dict.

    Returns
    -------
    pairs : Dict[str, str]
        Raw (unparsed) values keyed by parameter name.

    Raises
    ------
    ConfigError
        If an entry is not of the form ``name = value`` or a name repeats.
    """
    pairs: Dict[str, str] = {}
    for chunk in params.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        if "=" not in chunk:
            raise ConfigError(f"Malformed parameter entry (expected 'name = value'): {chunk!r}")
        key, raw = chunk.split("=", 1)
        key = key.strip()
        if not key:
            raise ConfigError(f"Malformed parameter entry (empty name): {chunk!r}")
        if key in pairs:
            raise ConfigError(f"Duplicate parameter: {key!r}")
        pairs[key] = raw.strip()
    return pairs


def parse_params(
    params: Optional[Union[str, Mapping[str, Any]]],
    spec: ParamSpec,
) -> Dict[str, Any]:
    """
    Validate a parameter set against a name -> type specification.

    Parameters
    ----------
    params : str, Mapping[str, Any], or None
        Either a mapping of parameter values or the compact string form
        ``"gamma = 0.9, lambda = 1"``. None yields an empty dict.
    spec : Mapping[str, type]
        Accepted parameter names and their types.

    Returns
    -------
    parsed : Dict[str, Any]
        Only the parameters actually present, coerced to their declared types.

    Raises
    ------
    ConfigError
        On unknown names or values that do not match the declared type.
    """
    if params is None:
        return {}

    raw: Mapping[str, Any]
    if isinstance(params, str):
        raw = split_param_string(params)
    elif isinstance(params, Mapping):
        raw = params
    else:
        raise ConfigError(f"params must be a mapping or a string, got {type(params).__name__}")

    unknown = sorted(str(k) for k in raw if k not in spec)
    if unknown:
        raise ConfigError(f"Unknown parameter(s): {unknown}. Accepted: {sorted(spec)}")

    return {str(k): _coerce(str(k), v, spec[k]) for k, v in raw.items()}


def require_in_range(
    name: str,
    value: float,
    *,
    low: Optional[float] = None,
    high: Optional[float] = None,
    low_inclusive: bool = True,
    high_inclusive: bool = True,
) -> float:
    """
    Range check that raises :class:`ConfigError` instead of returning False.
    """
    v = float(value)
    if not np.isfinite(v):
        raise ConfigError(f"{name} must be finite, got {v}")
    if low is not None and (v < low or (v == low and not low_inclusive)):
        raise ConfigError(f"{name} out of range: {v} (low={low}, inclusive={low_inclusive})")
    if high is not None and (v > high or (v == high and not high_inclusive)):
        raise ConfigError(f"{name} out of range: {v} (high={high}, inclusive={high_inclusive})")
    return v
