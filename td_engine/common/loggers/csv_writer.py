from __future__ import annotations

import csv
import os
from typing import Any, List, Mapping, Optional, TextIO

from .base_writer import Writer
from ..utils.logger_utils import file_is_empty, open_append, safe_call


class CSVWriter(Writer):
    """
    Wide CSV backend: one row per logging call with a frozen column schema.

    Schema negotiation
    ------------------
    - New/empty file: the schema is taken from the first emitted row and the
      header is written immediately.
    - Existing file: the schema is read back from the header row so that
      appending after a restart keeps the same columns.
    Keys not present in the frozen schema are ignored; missing keys are
    emitted as empty cells.

    Parameters
    ----------
    run_dir : str
        Directory where the CSV file will be created/appended.
    filename : str, default="metrics.csv"
        CSV filename inside ``run_dir``.
    """

    def __init__(self, run_dir: str, filename: str = "metrics.csv") -> None:
        self._path = os.path.join(run_dir, filename)
        self._file: Optional[TextIO] = open_append(self._path, newline="")
        self._writer: Optional[csv.DictWriter] = None
        self._fieldnames: List[str] = []

    @property
    def path(self) -> str:
        return self._path

    @property
    def fieldnames(self) -> List[str]:
        return list(self._fieldnames)

    def write(self, row: Mapping[str, float]) -> None:
        if self._file is None:
            raise RuntimeError(f"CSVWriter is closed: {self._path}")
        if self._writer is None:
            self._prepare_schema(row)
        assert self._writer is not None
        self._writer.writerow({k: row.get(k, "") for k in self._fieldnames})

    def _prepare_schema(self, first_row: Mapping[str, Any]) -> None:
        assert self._file is not None
        if file_is_empty(self._file):
            self._fieldnames = [str(k) for k in first_row.keys()]
            self._writer = csv.DictWriter(self._file, fieldnames=self._fieldnames, extrasaction="ignore")
            self._writer.writeheader()
            return

        with open(self._path, "r", newline="", encoding="utf-8") as f:
            header = next(csv.reader(f), None)
        self._fieldnames = list(header) if header else [str(k) for k in first_row.keys()]
        self._writer = csv.DictWriter(self._file, fieldnames=self._fieldnames, extrasaction="ignore")

    def flush(self) -> None:
        safe_call(self._file, "flush")

    def close(self) -> None:
        try:
            self.flush()
        finally:
            safe_call(self._file, "close")
            self._file = None
            self._writer = None
