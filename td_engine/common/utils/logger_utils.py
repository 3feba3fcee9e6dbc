from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Mapping, Optional, TextIO, Tuple
import json
import os
import uuid


# =============================================================================
# Metadata convention
# =============================================================================
# These keys are treated as "meta" fields (not plotted as typical metrics).
META_KEYS: Tuple[str, str, str] = ("step", "wall_time", "timestamp")


# =============================================================================
# Run directory utilities
# =============================================================================
def generate_run_id() -> str:
    """
    Generate a unique run identifier suitable for filesystem paths.

    Returns
    -------
    run_id : str
        Run id in the form ``"{YYYY-mm-dd_HH-MM-SS}_{8-hex}"``.
    """
    ts = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    return f"{ts}_{uuid.uuid4().hex[:8]}"


def make_run_dir(
    log_dir: str,
    exp_name: str,
    *,
    run_id: Optional[str] = None,
    overwrite: bool = False,
) -> str:
    """
    Resolve a run directory path ``{log_dir}/{exp_name}/{rid}``.

    Parameters
    ----------
    log_dir : str
        Root logging directory (e.g., ``"./runs"``).
    exp_name : str
        Experiment name (subdirectory under ``log_dir``).
    run_id : Optional[str], default=None
        Explicit run identifier. Auto-generated when omitted.
    overwrite : bool, default=False
        If True, reuse the computed directory even if it exists.
        If False, the first free ``"{path}_{k}"`` is returned on collision.

    Returns
    -------
    run_dir : str
        Resolved run directory path (not created).
    """
    base = os.path.join(str(log_dir), str(exp_name))
    rid = run_id or generate_run_id()
    path = os.path.join(base, str(rid))

    if overwrite or (not os.path.exists(path)):
        return path

    i = 1
    while True:
        cand = f"{path}_{i}"
        if not os.path.exists(cand):
            return cand
        i += 1


# =============================================================================
# Metric row helpers
# =============================================================================
def split_meta(row: Mapping[str, Any]) -> Tuple[Dict[str, float], Dict[str, float]]:
    """
    Split a row into (meta, metrics) based on META_KEYS.

    Parameters
    ----------
    row : Mapping[str, Any]
        Input row that may contain both meta fields and metric fields.

    Returns
    -------
    meta : Dict[str, float]
        Meta fields converted to float. Missing keys are omitted.
    metrics : Dict[str, float]
        All non-meta keys converted to float.
    """
    meta = {k: float(row[k]) for k in META_KEYS if k in row}
    metrics = {str(k): float(v) for k, v in row.items() if k not in META_KEYS}
    return meta, metrics


# =============================================================================
# Serialization helpers
# =============================================================================
def json_dumps(obj: Any) -> str:
    """
    Serialize an object to JSON with practical defaults for logging.

    ``ensure_ascii=False`` keeps Unicode readable and ``default=str`` gives a
    best-effort rendering of non-JSON objects.
    """
    return json.dumps(obj, ensure_ascii=False, default=str)


# =============================================================================
# Filesystem helpers for writers
# =============================================================================
def open_append(
    path: str,
    *,
    newline: Optional[str] = None,
    encoding: str = "utf-8",
) -> TextIO:
    """
    Open a file in append mode, ensuring the parent directory exists.

    Parameters
    ----------
    path : str
        File path.
    newline : str or None, default=None
        Newline handling. For CSV, prefer ``newline=""``.
    encoding : str, default="utf-8"
        Text encoding.

    Returns
    -------
    f : TextIO
        Opened file handle in append mode. Caller owns it.
    """
    dirpath = os.path.dirname(path)
    if dirpath:
        os.makedirs(dirpath, exist_ok=True)
    return open(path, "a", newline=newline, encoding=encoding)


def safe_call(obj: Optional[Any], method: str) -> None:
    """
    Best-effort method call; never raises.

    Used for "flush"/"close" on writer file handles where a failure must not
    interrupt training.
    """
    if obj is None:
        return
    try:
        fn = getattr(obj, method, None)
        if callable(fn):
            fn()
    except Exception:
        pass


def file_is_empty(f: TextIO) -> bool:
    """Return True if the open file handle currently points at an empty file."""
    try:
        f.seek(0, os.SEEK_END)
        return int(f.tell()) == 0
    except Exception:
        return True
