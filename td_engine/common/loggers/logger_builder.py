from __future__ import annotations

from typing import Any, Dict, List, Optional

from .base_writer import SafeWriter, Writer
from .csv_writer import CSVWriter
from .jsonl_writer import JSONLWriter
from .logger import Logger
from .memory_writer import MemoryWriter


def build_logger(
    *,
    log_dir: str = "./runs",
    exp_name: str = "exp",
    run_id: Optional[str] = None,
    overwrite: bool = False,
    # backend enable flags
    use_csv: bool = True,
    use_jsonl: bool = True,
    use_memory: bool = False,
    safe_writers: bool = False,
    # backend kwargs
    csv_kwargs: Optional[Dict[str, Any]] = None,
    jsonl_kwargs: Optional[Dict[str, Any]] = None,
    # logger behavior
    console_every: int = 0,
    flush_every: int = 200,
    drop_non_finite: bool = False,
    strict: bool = False,
    dump_metadata: bool = True,
) -> Logger:
    """
    Construct a :class:`Logger` and attach the selected writer backends.

    The logger is instantiated first because it owns the resolution of
    ``run_dir``; writers are then built against that directory.

    Parameters
    ----------
    log_dir, exp_name, run_id, overwrite
        Forwarded to :class:`Logger` for run directory resolution.
    use_csv : bool, default=True
        Attach :class:`CSVWriter`.
    use_jsonl : bool, default=True
        Attach :class:`JSONLWriter`.
    use_memory : bool, default=False
        Attach :class:`MemoryWriter` (rows kept in memory).
    safe_writers : bool, default=False
        Wrap each writer in :class:`SafeWriter` so that backend failures are
        recorded on the wrapper instead of reaching the logger.
    csv_kwargs, jsonl_kwargs : dict, optional
        Extra keyword arguments for the corresponding writer constructors.
    console_every, flush_every, drop_non_finite, strict
        Forwarded to :class:`Logger`.
    dump_metadata : bool, default=True
        Write ``metadata.json`` into the run directory on creation.

    Returns
    -------
    Logger
        Configured logger with the requested writers attached.
    """
    logger = Logger(
        log_dir=str(log_dir),
        exp_name=str(exp_name),
        run_id=run_id,
        overwrite=bool(overwrite),
        writers=None,
        console_every=int(console_every),
        flush_every=int(flush_every),
        drop_non_finite=bool(drop_non_finite),
        strict=bool(strict),
    )

    writers: List[Writer] = []
    if use_csv:
        writers.append(CSVWriter(logger.run_dir, **dict(csv_kwargs or {})))
    if use_jsonl:
        writers.append(JSONLWriter(logger.run_dir, **dict(jsonl_kwargs or {})))
    if use_memory:
        writers.append(MemoryWriter())

    if safe_writers:
        writers = [SafeWriter(w) for w in writers]

    logger.add_writers(writers)

    if dump_metadata:
        try:
            logger.dump_metadata()
        except OSError as e:
            logger._handle_exception(e, "dump_metadata")

    return logger
