from __future__ import annotations

import json
import math
import os
from typing import Any, Callable, List, Mapping, Tuple

from td_engine.common.testers.test_utils import (
    run_tests,
    assert_eq,
    assert_true,
    assert_in,
    assert_close,
    assert_raises,
    TempDir,
    read_lines,
)
from td_engine.common.testers.test_harness import make_chain, tabular

from td_engine.baselines.state_value import StateValueFunction
from td_engine.common.loggers import (
    CSVWriter,
    JSONLWriter,
    Logger,
    MemoryWriter,
    SafeWriter,
    Writer,
    build_logger,
)


class _BrokenWriter(Writer):
    def write(self, row: Mapping[str, float]) -> None:
        raise IOError("disk full")

    def flush(self) -> None:
        return None

    def close(self) -> None:
        return None


def _memory_logger(tmp: str, **kwargs: Any) -> Tuple[Logger, MemoryWriter]:
    mem = MemoryWriter()
    logger = Logger(log_dir=tmp, exp_name="t", run_id="r", writers=[mem], **kwargs)
    return logger, mem


# =============================================================================
# Tests
# =============================================================================
def test_log_applies_prefix_and_meta_keys() -> None:
    with TempDir() as tmp:
        logger, mem = _memory_logger(tmp)
        row = logger.log({"loss": 0.5, "bad": "text"}, step=3, prefix="estimator/")
        assert_eq(row["estimator/loss"], 0.5)
        assert_true("estimator/bad" not in row)
        assert_eq(row["step"], 3.0)
        assert_in("wall_time", row)
        assert_eq(mem.series("estimator/loss"), [0.5])
        assert_eq(mem.steps(), [3])
        logger.close()


def test_step_defaults_to_log_call_count() -> None:
    with TempDir() as tmp:
        logger, mem = _memory_logger(tmp)
        logger.log({"a": 1.0})
        logger.log({"a": 2.0}, step=10)
        logger.log({"a": 3.0})
        assert_eq(mem.steps(), [0, 10, 2])


def test_drop_non_finite() -> None:
    with TempDir() as tmp:
        logger, mem = _memory_logger(tmp, drop_non_finite=True)
        logger.log({"a": float("nan"), "b": 1.0}, step=0)
        assert_eq(mem.series("a"), [])
        assert_eq(mem.series("b"), [1.0])

        keep, mem2 = _memory_logger(tmp, drop_non_finite=False)
        keep.log({"a": float("inf")}, step=0)
        assert_true(math.isinf(mem2.series("a")[0]))


def test_key_throttling() -> None:
    with TempDir() as tmp:
        logger, mem = _memory_logger(tmp)
        logger.set_key_every({"value/td_error": 2})
        for s in range(4):
            logger.log({"td_error": float(s), "reward": 1.0}, step=s, prefix="value")
        assert_eq(mem.series("value/td_error"), [0.0, 2.0])
        assert_eq(len(mem.series("value/reward")), 4)


def test_record_and_dump_aggregate() -> None:
    with TempDir() as tmp:
        logger, mem = _memory_logger(tmp)
        for v in (1.0, 2.0, 3.0):
            logger.record({"loss": v}, prefix="estimator")
        row = logger.dump(step=10)
        assert_close(row["estimator/loss"], 2.0)
        assert_true(logger.dump(step=11) is None)

        logger.record({"x": 1.0})
        logger.record({"x": 5.0})
        assert_close(logger.dump(agg="max")["x"], 5.0)
        assert_raises(ValueError, lambda: logger.dump(agg="median"))


def test_writer_errors_are_recorded_unless_strict() -> None:
    with TempDir() as tmp:
        logger = Logger(log_dir=tmp, exp_name="t", writers=[_BrokenWriter()])
        logger.log({"a": 1.0}, step=0)
        assert_eq(len(logger.errors), 1)

        strict = Logger(log_dir=tmp, exp_name="t", writers=[_BrokenWriter()], strict=True)
        assert_raises(IOError, lambda: strict.log({"a": 1.0}, step=0))

        safe = SafeWriter(_BrokenWriter())
        safe.write({"a": 1.0})
        assert_eq(len(safe.errors), 1)


def test_csv_and_jsonl_writers() -> None:
    with TempDir() as tmp:
        csv_w = CSVWriter(tmp)
        jsonl_w = JSONLWriter(tmp, filename="m.jsonl")
        logger = Logger(log_dir=tmp, exp_name="t", writers=[csv_w, jsonl_w])
        logger.log({"loss": 1.0}, step=1)
        logger.log({"loss": 2.0, "extra": 5.0}, step=2)
        logger.close()

        lines = read_lines(os.path.join(tmp, "metrics.csv"))
        assert_eq(len(lines), 3)
        assert_true(lines[0].startswith("loss,"))
        assert_true("extra" not in lines[0])

        rows = [json.loads(ln) for ln in read_lines(os.path.join(tmp, "m.jsonl"))]
        assert_eq([r["loss"] for r in rows], [1.0, 2.0])
        assert_eq(rows[1]["extra"], 5.0)


def test_build_logger_creates_run_files() -> None:
    with TempDir() as tmp:
        logger = build_logger(log_dir=tmp, exp_name="exp", run_id="run", use_memory=True)
        assert_eq(logger.run_dir, os.path.join(tmp, "exp", "run"))
        assert_eq(len(logger.writers), 3)
        logger.log({"x": 1.0}, step=0)
        logger.close()
        for name in ("metrics.csv", "metrics.jsonl", "metadata.json"):
            assert_true(os.path.exists(os.path.join(logger.run_dir, name)), name)

        again = build_logger(log_dir=tmp, exp_name="exp", run_id="run", use_csv=False, use_jsonl=False)
        assert_eq(again.run_dir, os.path.join(tmp, "exp", "run_1"))


def test_value_function_diagnostics_reach_writers() -> None:
    with TempDir() as tmp:
        logger, mem = _memory_logger(tmp)
        vf = StateValueFunction(tabular(1, logger=logger), gamma=1.0, logger=logger, log_every=2)
        for _ in range(4):
            vf.update_function_estimator(make_chain([1.0, 1.0]))

        value_rows = [r for r in mem.rows if "value/td_target" in r]
        assert_eq(len(value_rows), 2)
        assert_eq(len(mem.series("estimator/loss")), 4)
        logger.close()


# =============================================================================
# Runner
# =============================================================================
TESTS: List[Tuple[str, Callable[[], Any]]] = [
    ("log_applies_prefix_and_meta_keys", test_log_applies_prefix_and_meta_keys),
    ("step_defaults_to_log_call_count", test_step_defaults_to_log_call_count),
    ("drop_non_finite", test_drop_non_finite),
    ("key_throttling", test_key_throttling),
    ("record_and_dump_aggregate", test_record_and_dump_aggregate),
    ("writer_errors_are_recorded_unless_strict", test_writer_errors_are_recorded_unless_strict),
    ("csv_and_jsonl_writers", test_csv_and_jsonl_writers),
    ("build_logger_creates_run_files", test_build_logger_creates_run_files),
    ("value_function_diagnostics_reach_writers", test_value_function_diagnostics_reach_writers),
]


def main(argv=None) -> int:
    return run_tests(TESTS, argv=argv, suite_name="logger")


if __name__ == "__main__":
    raise SystemExit(main())
