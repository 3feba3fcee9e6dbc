from __future__ import annotations

import os
from typing import Mapping, Optional, TextIO

from .base_writer import Writer
from ..utils.logger_utils import json_dumps, open_append, safe_call


class JSONLWriter(Writer):
    """
    JSON Lines (JSONL) writer for scalar metric logging.

    Appends exactly one JSON object per `write()` call, serialized onto a
    single line: ``{"key": value, ...}\\n``. Append-friendly and robust to new
    keys appearing over time (e.g., when dual estimation is switched on).

    Parameters
    ----------
    run_dir : str
        Directory where the JSONL file will be created/appended.
    filename : str, default="metrics.jsonl"
        JSONL filename inside ``run_dir``.
    """

    def __init__(self, run_dir: str, filename: str = "metrics.jsonl") -> None:
        self._path = os.path.join(run_dir, filename)
        self._f: Optional[TextIO] = open_append(self._path)

    @property
    def path(self) -> str:
        return self._path

    def write(self, row: Mapping[str, float]) -> None:
        if self._f is None:
            raise RuntimeError(f"JSONLWriter is closed: {self._path}")
        self._f.write(json_dumps(dict(row)) + "\n")

    def flush(self) -> None:
        safe_call(self._f, "flush")

    def close(self) -> None:
        safe_call(self._f, "close")
        self._f = None
