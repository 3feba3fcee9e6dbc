from __future__ import annotations

import json
import os
import sys
import time
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

import numpy as np
import torch as th

from ..utils.common_utils import _to_scalar
from ..utils.logger_utils import META_KEYS, make_run_dir


class Logger:
    """
    Scalar-first metrics logger (frontend).

    The `Logger` is the observability sink injected into value functions and
    function estimators. It is responsible for **frontend concerns**:
    - Resolving and owning a per-run directory (`run_dir`)
    - Normalizing metric keys (prefixing and path normalization)
    - Per-key throttling (log a key every N steps)
    - Optional dropping of non-finite values (NaN/Inf)
    - In-memory aggregation buffer (`record` -> `dump`)
    - Console printing at a configured cadence

    Writer backends are responsible for **I/O concerns** (serialization,
    buffering, flush/close semantics).

    Parameters
    ----------
    log_dir : str, default="./runs"
        Root directory for runs.
    exp_name : str, default="exp"
        Experiment name used as a subdirectory under `log_dir`.
    run_id : str, optional
        Explicit run identifier. Auto-generated when omitted.
    overwrite : bool, default=False
        If True, reuse an existing run directory.
    writers : Iterable, optional
        Writer backend instances (e.g., CSV/JSONL). None attaches nothing.
    console_every : int, default=0
        Print to stdout every N calls to `log()`. Set <= 0 to disable.
    flush_every : int, default=200
        Flush writers every N calls to `log()`. Set <= 0 to disable.
    drop_non_finite : bool, default=False
        If True, discard NaN/Inf scalars rather than writing them.
    strict : bool, default=False
        If True, re-raise exceptions from writer operations. Otherwise errors
        are recorded in `errors` and execution continues.
    """

    def __init__(
        self,
        *,
        log_dir: str = "./runs",
        exp_name: str = "exp",
        run_id: Optional[str] = None,
        overwrite: bool = False,
        writers: Optional[Iterable[Any]] = None,
        console_every: int = 0,
        flush_every: int = 200,
        drop_non_finite: bool = False,
        strict: bool = False,
    ) -> None:
        self.strict = bool(strict)
        self.errors: List[str] = []

        self.run_dir = make_run_dir(log_dir, exp_name, run_id=run_id, overwrite=bool(overwrite))
        os.makedirs(self.run_dir, exist_ok=True)

        self.console_every = int(console_every)
        self.flush_every = int(flush_every)
        self.drop_non_finite = bool(drop_non_finite)

        self._start_time = time.time()
        self._log_calls = 0

        # full_key -> every_n_steps
        self._key_every: Dict[str, int] = {}
        self._buffer: Dict[str, List[float]] = defaultdict(list)
        self._writers: List[Any] = list(writers) if writers is not None else []

    # ---------------------------------------------------------------------
    # Context manager
    # ---------------------------------------------------------------------
    def __enter__(self) -> "Logger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---------------------------------------------------------------------
    # Step inference
    # ---------------------------------------------------------------------
    def _infer_step(self, step: Optional[int]) -> int:
        if step is not None:
            return int(step)
        return int(self._log_calls)

    # ---------------------------------------------------------------------
    # Error handling
    # ---------------------------------------------------------------------
    def _handle_exception(self, err: Exception, context: str) -> None:
        self.errors.append(f"[{self.__class__.__name__}] {context}: {type(err).__name__}: {err}")
        if self.strict:
            raise err

    # ---------------------------------------------------------------------
    # Key normalization and throttling
    # ---------------------------------------------------------------------
    @staticmethod
    def _norm_prefix(prefix: str) -> str:
        """Normalize a prefix to ``"a/b/"`` form (or ``""``)."""
        p = str(prefix).strip()
        if not p:
            return ""
        return p.replace("\\", "/").strip("/") + "/"

    @staticmethod
    def _norm_key(key: Any) -> str:
        return str(key).strip().replace("\\", "/").lstrip("/")

    def _join_name(self, prefix: str, key: Any) -> str:
        p = self._norm_prefix(prefix)
        k = self._norm_key(key)
        return f"{p}{k}" if p else k

    def set_key_every(self, mapping: Mapping[str, int]) -> None:
        """
        Set per-key throttling: log a key only when ``step % N == 0``.

        Parameters
        ----------
        mapping : Mapping[str, int]
            Full metric key -> N. ``N <= 0`` removes throttling for that key.
        """
        for k, v in mapping.items():
            kk = self._norm_key(k)
            vv = int(v)
            if vv <= 0:
                self._key_every.pop(kk, None)
            else:
                self._key_every[kk] = vv

    def _should_log_key(self, full_key: str, step: int) -> bool:
        every = self._key_every.get(full_key)
        if every is None:
            return True
        return (int(step) % int(every)) == 0

    def _scalar_or_none(self, value: Any) -> Optional[float]:
        val = _to_scalar(value)
        if val is None:
            return None
        if self.drop_non_finite and not np.isfinite(val):
            return None
        return float(val)

    # ---------------------------------------------------------------------
    # Public logging APIs
    # ---------------------------------------------------------------------
    def log(
        self,
        metrics: Mapping[str, Any],
        step: Optional[int] = None,
        *,
        prefix: str = "",
    ) -> Dict[str, float]:
        """
        Immediately write metrics to writer backends (and optionally console).

        Parameters
        ----------
        metrics : Mapping[str, Any]
            Metric mapping. Values are converted with `_to_scalar`;
            non-convertible values are skipped.
        step : int, optional
            Explicit step. If omitted, the number of previous `log()` calls is used.
        prefix : str, default=""
            Optional prefix applied to all keys (e.g., "value", "estimator").

        Returns
        -------
        row : Dict[str, float]
            The emitted row, including the meta keys
            ``step``, ``wall_time`` and ``timestamp``.
        """
        s = self._infer_step(step)
        self._log_calls += 1

        row: Dict[str, float] = {}
        for k, v in metrics.items():
            name = self._join_name(prefix, k)
            fval = self._scalar_or_none(v)
            if fval is None or not self._should_log_key(name, s):
                continue
            row[name] = fval

        now = time.time()
        row["step"] = float(s)
        row["wall_time"] = float(now - self._start_time)
        row["timestamp"] = float(now)

        for w in self._writers:
            try:
                w.write(row)
            except Exception as e:
                self._handle_exception(e, f"writer.write({w.__class__.__name__})")

        if self.console_every > 0 and (self._log_calls % self.console_every == 0):
            self._print_console(row)

        if self.flush_every > 0 and (self._log_calls % self.flush_every == 0):
            self.flush()

        return row

    def record(self, metrics: Mapping[str, Any], *, prefix: str = "") -> None:
        """Buffer metrics in memory; emitted later by `dump()`."""
        for k, v in metrics.items():
            fval = self._scalar_or_none(v)
            if fval is not None:
                self._buffer[self._join_name(prefix, k)].append(fval)

    def dump(
        self,
        step: Optional[int] = None,
        *,
        prefix: str = "",
        agg: str = "mean",
        clear: bool = True,
    ) -> Optional[Dict[str, float]]:
        """
        Aggregate buffered scalars and emit them via `log()`.

        Parameters
        ----------
        step : int, optional
            Explicit step override.
        prefix : str, default=""
            Prefix applied to output keys after aggregation.
        agg : {"mean", "min", "max", "std"}, default="mean"
            Aggregation operator.
        clear : bool, default=True
            Clear the buffer after dumping.

        Returns
        -------
        row : Dict[str, float] or None
            Emitted row, or None when the buffer was empty.

        Raises
        ------
        ValueError
            If `agg` is not supported.
        """
        op = str(agg).lower().strip()
        reducers = {"mean": np.mean, "min": np.min, "max": np.max, "std": np.std}
        if op not in reducers:
            raise ValueError(f"Unknown agg={agg!r}. Use mean|min|max|std.")

        out: Dict[str, float] = {}
        for k, vals in self._buffer.items():
            if vals:
                out[k] = float(reducers[op](np.asarray(vals, dtype=np.float64)))

        if clear:
            self._buffer.clear()
        if not out:
            return None

        if prefix:
            out = {self._join_name(prefix, k): v for k, v in out.items()}
        return self.log(out, step=step, prefix="")

    # ---------------------------------------------------------------------
    # Config / metadata
    # ---------------------------------------------------------------------
    def dump_config(self, config: Mapping[str, Any], filename: str = "config.json") -> str:
        """Write a configuration mapping as JSON into `run_dir` and return the path."""
        path = os.path.join(self.run_dir, filename)
        payload = {str(k): v for k, v in config.items()}
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False, default=str)
        return path

    def dump_metadata(self, filename: str = "metadata.json") -> str:
        """Write runtime metadata (python/torch versions, start time) into `run_dir`."""
        meta: Dict[str, Any] = {
            "run_dir": self.run_dir,
            "start_time_unix": float(self._start_time),
            "start_time_iso": datetime.fromtimestamp(self._start_time).isoformat(),
            "pid": os.getpid(),
            "python": sys.version.replace("\n", " "),
            "platform": sys.platform,
            "torch": str(getattr(th, "__version__", "unknown")),
            "cuda_available": bool(th.cuda.is_available()),
        }
        return self.dump_config(meta, filename=filename)

    # ---------------------------------------------------------------------
    # Writer lifecycle
    # ---------------------------------------------------------------------
    def add_writer(self, writer: Any) -> None:
        self._writers.append(writer)

    def add_writers(self, writers: Iterable[Any]) -> None:
        for w in writers:
            self.add_writer(w)

    @property
    def writers(self) -> List[Any]:
        return list(self._writers)

    def flush(self) -> None:
        for w in self._writers:
            try:
                w.flush()
            except Exception as e:
                self._handle_exception(e, f"writer.flush({w.__class__.__name__})")

    def close(self) -> None:
        """Flush and close all writers; closing continues even if flushing fails."""
        try:
            self.flush()
        finally:
            for w in self._writers:
                try:
                    w.close()
                except Exception as e:
                    self._handle_exception(e, f"writer.close({w.__class__.__name__})")

    # ---------------------------------------------------------------------
    # Console output
    # ---------------------------------------------------------------------
    @staticmethod
    def _print_console(row: Mapping[str, float]) -> None:
        step = int(row.get("step", 0.0))
        wall = float(row.get("wall_time", 0.0))

        preferred = (
            "value/reward",
            "value/td_target",
            "value/td_error",
            "estimator/loss",
        )
        shown = [f"{k}={float(row[k]):.4g}" for k in preferred if k in row]
        if not shown:
            for k, v in row.items():
                if k in META_KEYS:
                    continue
                shown.append(f"{k}={float(v):.4g}")
                if len(shown) >= 6:
                    break

        print(f"[step={step} | t={wall:.1f}s] " + " ".join(shown))
