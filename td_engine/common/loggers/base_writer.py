from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Mapping, Optional


class Writer(ABC):
    """
    Abstract base class for metric writer backends.

    A writer is a side-effecting sink for scalar metrics produced by value
    functions and their estimators. It consumes rows of key-value pairs and
    manages its own buffering, serialization, and persistence strategy.

    Contract
    --------
    - `write(row)` must accept a mapping of metric names to scalar floats.
    - Writers MAY support special meta-keys (e.g., "step", "wall_time").
    - `flush()` and `close()` should be best-effort and idempotent.
    - Implementations SHOULD raise on failure; suppression is handled by
      wrappers such as `SafeWriter`.
    """

    @abstractmethod
    def write(self, row: Mapping[str, float]) -> None:
        """Consume a single row of scalar metrics."""
        raise NotImplementedError

    @abstractmethod
    def flush(self) -> None:
        """Flush any internal buffers to the underlying sink."""
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Release any resources held by the writer."""
        raise NotImplementedError


class SafeWriter(Writer):
    """
    Exception-recording wrapper for a :class:`Writer`.

    Failures in the underlying writer do not propagate to the caller. The last
    error messages are kept in ``errors`` so that a broken sink can still be
    diagnosed after the fact.

    Parameters
    ----------
    inner : Writer
        The concrete writer instance to wrap.
    name : str, optional
        Human-readable identifier. Defaults to ``inner.__class__.__name__``.
    max_errors : int, default=100
        Cap on the number of stored error messages.
    """

    def __init__(self, inner: Writer, *, name: Optional[str] = None, max_errors: int = 100) -> None:
        self._inner = inner
        self._name = name or inner.__class__.__name__
        self._max_errors = int(max_errors)
        self.errors: List[str] = []

    def _record(self, op: str, err: Exception) -> None:
        if len(self.errors) < self._max_errors:
            self.errors.append(f"[{self._name}] {op}: {type(err).__name__}: {err}")

    def write(self, row: Mapping[str, float]) -> None:
        try:
            self._inner.write(row)
        except Exception as e:
            self._record("write", e)

    def flush(self) -> None:
        try:
            self._inner.flush()
        except Exception as e:
            self._record("flush", e)

    def close(self) -> None:
        try:
            self._inner.close()
        except Exception as e:
            self._record("close", e)
