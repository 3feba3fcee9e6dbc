from __future__ import annotations

from typing import Any, Callable, List, Tuple

import numpy as np

from td_engine.common.testers.test_utils import (
    run_tests,
    assert_eq,
    assert_true,
    assert_close,
    assert_raises,
)

from td_engine.common.utils import _ema_update, _mean, _std, _to_scalar
from td_engine.common.utils.config_utils import parse_params, require_in_range, split_param_string
from td_engine.common.utils.errors import ConfigError


SPEC = {"gamma": float, "lambda": float, "update_cycle": int, "use_baseline": bool, "q_source": str}


# =============================================================================
# Tests
# =============================================================================
def test_split_param_string() -> None:
    pairs = split_param_string(" gamma = 0.9 ,lambda=1, q_source = target ")
    assert_eq(pairs, {"gamma": "0.9", "lambda": "1", "q_source": "target"})
    assert_eq(split_param_string(""), {})
    assert_eq(split_param_string(" , "), {})


def test_split_rejects_malformed_entries() -> None:
    assert_raises(ConfigError, lambda: split_param_string("gamma"))
    assert_raises(ConfigError, lambda: split_param_string("= 0.9"))
    assert_raises(ConfigError, lambda: split_param_string("gamma = 0.9, gamma = 0.8"))


def test_parse_string_form() -> None:
    out = parse_params("gamma = 0.95, update_cycle = 10, use_baseline = yes", SPEC)
    assert_close(out["gamma"], 0.95)
    assert_eq(out["update_cycle"], 10)
    assert_true(out["use_baseline"] is True)
    assert_eq(set(out), {"gamma", "update_cycle", "use_baseline"})


def test_parse_mapping_form() -> None:
    out = parse_params({"gamma": 1, "update_cycle": np.int64(3), "use_baseline": np.bool_(False)}, SPEC)
    assert_true(isinstance(out["gamma"], float))
    assert_eq(out["update_cycle"], 3)
    assert_true(out["use_baseline"] is False)


def test_parse_none_is_empty() -> None:
    assert_eq(parse_params(None, SPEC), {})


def test_parse_rejects_unknown_and_mistyped() -> None:
    assert_raises(ConfigError, lambda: parse_params("epsilon = 0.1", SPEC))
    assert_raises(ConfigError, lambda: parse_params("update_cycle = 2.5", SPEC))
    assert_raises(ConfigError, lambda: parse_params("use_baseline = maybe", SPEC))
    assert_raises(ConfigError, lambda: parse_params({"update_cycle": True}, SPEC))
    assert_raises(ConfigError, lambda: parse_params({"q_source": 3}, SPEC))
    assert_raises(ConfigError, lambda: parse_params([("gamma", 0.9)], SPEC))


def test_config_error_is_value_error() -> None:
    assert_true(issubclass(ConfigError, ValueError))


def test_require_in_range() -> None:
    assert_close(require_in_range("gamma", 1.0, low=0.0, high=1.0), 1.0)
    assert_raises(ConfigError, lambda: require_in_range("gamma", 1.01, low=0.0, high=1.0))
    assert_raises(ConfigError, lambda: require_in_range("tau", 0.0, low=0.0, low_inclusive=False))
    assert_raises(ConfigError, lambda: require_in_range("x", float("nan")))


def test_statistics_helpers() -> None:
    assert_close(_mean([1.0, 2.0, 6.0]), 3.0)
    assert_eq(_mean([]), 0.0)
    assert_close(_std([1.0, 3.0]), float(np.std([1.0, 3.0], ddof=1)))
    assert_true(_std([1.0]) is None)

    assert_eq(_ema_update(None, 4.0, 0.5), 4.0)
    assert_close(_ema_update(2.0, 4.0, 0.75), 2.5)
    assert_raises(ValueError, lambda: _ema_update(1.0, 2.0, 1.5))

    assert_eq(_to_scalar(np.array([2.5])), 2.5)
    assert_true(_to_scalar("text") is None)


# =============================================================================
# Runner
# =============================================================================
TESTS: List[Tuple[str, Callable[[], Any]]] = [
    ("split_param_string", test_split_param_string),
    ("split_rejects_malformed_entries", test_split_rejects_malformed_entries),
    ("parse_string_form", test_parse_string_form),
    ("parse_mapping_form", test_parse_mapping_form),
    ("parse_none_is_empty", test_parse_none_is_empty),
    ("parse_rejects_unknown_and_mistyped", test_parse_rejects_unknown_and_mistyped),
    ("config_error_is_value_error", test_config_error_is_value_error),
    ("require_in_range", test_require_in_range),
    ("statistics_helpers", test_statistics_helpers),
]


def main(argv=None) -> int:
    return run_tests(TESTS, argv=argv, suite_name="config")


if __name__ == "__main__":
    raise SystemExit(main())
