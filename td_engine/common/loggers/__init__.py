"""
Loggers
====================

This package provides:
- Logger frontend (key normalization, buffering, console printing)
- Writer backends (CSV, JSONL, in-memory)
- A builder utility to construct a Logger with selected backends

Typical usage
-------------
from td_engine.common.loggers import build_logger

logger = build_logger(log_dir="./runs", exp_name="q_value")
value_function = q_value(estimator, logger=logger, log_every=10)
...
logger.close()
"""

from __future__ import annotations

# -----------------------------------------------------------------------------
# Core logger
# -----------------------------------------------------------------------------
from .logger import Logger

# -----------------------------------------------------------------------------
# Writer base + concrete writers
# -----------------------------------------------------------------------------
from .base_writer import Writer, SafeWriter
from .csv_writer import CSVWriter
from .jsonl_writer import JSONLWriter
from .memory_writer import MemoryWriter

# -----------------------------------------------------------------------------
# Builder utility
# -----------------------------------------------------------------------------
from .logger_builder import build_logger

__all__ = [
    "Logger",
    "Writer",
    "SafeWriter",
    "CSVWriter",
    "JSONLWriter",
    "MemoryWriter",
    "build_logger",
]
