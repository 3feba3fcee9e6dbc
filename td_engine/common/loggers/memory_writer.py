from __future__ import annotations

from typing import Dict, List, Mapping

from .base_writer import Writer
from ..utils.logger_utils import split_meta


class MemoryWriter(Writer):
    """
    In-process writer that keeps every row in memory.

    Useful for short runs, notebooks and tests where the metrics stream should
    be inspected directly instead of parsed back from disk.
    """

    def __init__(self) -> None:
        self.rows: List[Dict[str, float]] = []
        self.closed = False

    def write(self, row: Mapping[str, float]) -> None:
        if self.closed:
            raise RuntimeError("MemoryWriter is closed")
        self.rows.append(dict(row))

    def series(self, key: str) -> List[float]:
        """All values logged for ``key``, in emission order (meta keys excluded)."""
        out: List[float] = []
        for row in self.rows:
            _, metrics = split_meta(row)
            if key in metrics:
                out.append(metrics[key])
        return out

    def steps(self) -> List[int]:
        return [int(split_meta(row)[0].get("step", 0.0)) for row in self.rows]

    def flush(self) -> None:
        return None

    def close(self) -> None:
        self.closed = True
