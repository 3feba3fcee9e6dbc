from __future__ import annotations

import math
from typing import Any, Callable, List, Tuple

import torch as th

from td_engine.common.testers.test_utils import (
    run_tests,
    assert_eq,
    assert_true,
    assert_close,
    assert_finite,
    assert_raises,
)
from td_engine.common.testers.test_harness import make_chain, tabular

from td_engine.baselines.soft_q_value import SoftQValueFunction
from td_engine.common.utils.errors import ConfigError


Q_ROW = [1.0, 2.0]
PI_ROW = [0.25, 0.75]


def _soft_vf(*, pi=PI_ROW, q=Q_ROW, **kwargs: Any) -> SoftQValueFunction:
    kwargs.setdefault("dual_estimation", False)
    kwargs.setdefault("q_source", "online")
    return SoftQValueFunction(tabular(2, {1: q}), tabular(2, {1: pi}), gamma=1.0, **kwargs)


def _successor_target(vf: SoftQValueFunction, **chain_kwargs: Any) -> float:
    traj = make_chain([0.0, 0.0], actions=[0, 0], **chain_kwargs)
    vf.update(traj)
    return float(traj[0].td_target)


def _expected(alpha: float, pi=PI_ROW, q=Q_ROW) -> float:
    return sum(p * (qa - alpha * math.log(max(p, 1e-8))) for p, qa in zip(pi, q))


# =============================================================================
# Tests
# =============================================================================
def test_soft_target_is_entropy_regularized_expectation() -> None:
    vf = _soft_vf(alpha=0.5)
    assert_close(_successor_target(vf), _expected(0.5), rtol=1e-9)


def test_alpha_zero_reduces_to_policy_expectation() -> None:
    vf = _soft_vf(alpha=0.0)
    assert_close(_successor_target(vf), 0.25 * 1.0 + 0.75 * 2.0, rtol=1e-9)


def test_zero_probability_action_stays_finite() -> None:
    vf = _soft_vf(pi=[0.0, 1.0], alpha=0.5)
    got = _successor_target(vf)
    assert_finite(got)
    assert_close(got, 2.0, rtol=1e-9)


def test_expectation_limited_to_available_actions() -> None:
    vf = _soft_vf(alpha=0.5)
    got = _successor_target(vf, available_actions=[1])
    assert_close(got, 0.75 * (2.0 - 0.5 * math.log(0.75)), rtol=1e-9)


def test_single_action_form_uses_target_action() -> None:
    vf = _soft_vf(alpha=0.5, expectation=False)
    traj = make_chain([0.0, 0.0], actions=[0, 0])
    traj[1].target_action = 0
    vf.update(traj)
    assert_close(traj[0].td_target, 0.25 * (1.0 - 0.5 * math.log(0.25)), rtol=1e-9)


def test_single_action_form_falls_back_to_policy_argmax() -> None:
    vf = _soft_vf(alpha=0.5, expectation=False)
    got = _successor_target(vf)
    assert_close(got, 0.75 * (2.0 - 0.5 * math.log(0.75)), rtol=1e-9)


def test_dual_estimation_clips_with_elementwise_min() -> None:
    est2 = tabular(2, {1: [0.5, 3.0]})
    vf = _soft_vf(alpha=0.0, dual_estimation=True, estimator2=est2)
    assert_close(_successor_target(vf), 0.25 * 0.5 + 0.75 * 2.0, rtol=1e-9)


def test_tensor_alpha_is_read_at_every_call() -> None:
    alpha = th.tensor([0.5])
    vf = _soft_vf(alpha=alpha)
    assert_close(vf.alpha, 0.5)
    assert_close(_successor_target(vf), _expected(0.5), rtol=1e-6)

    alpha.fill_(0.0)
    assert_close(_successor_target(vf), 1.75, rtol=1e-9)


def test_multi_element_alpha_is_rejected() -> None:
    assert_raises(ConfigError, lambda: _soft_vf(alpha=th.tensor([0.1, 0.2])))
    assert_raises(ConfigError, lambda: _soft_vf(alpha=[0.1, 0.2]))
    assert_raises(ConfigError, lambda: _soft_vf(alpha=-1.0))

    vf = _soft_vf()
    assert_raises(ConfigError, lambda: vf.set_alpha(th.zeros(2)))


def test_invalid_sources_are_rejected() -> None:
    assert_raises(ConfigError, lambda: _soft_vf(q_source="both"))
    assert_raises(ConfigError, lambda: _soft_vf(policy_source="behaviour"))


def test_target_sources_read_target_estimators() -> None:
    q = tabular(2, {1: Q_ROW}, use_target=True)
    pi = tabular(2, {1: PI_ROW}, use_target=True)
    vf = SoftQValueFunction(
        q,
        pi,
        alpha=0.5,
        q_source="target",
        policy_source="online",
        dual_estimation=False,
        gamma=1.0,
    )
    # target Q was copied before the rows were written, so it predicts zeros
    assert_close(_successor_target(vf), 0.25 * (0.0 - 0.5 * math.log(0.25)) + 0.75 * (0.0 - 0.5 * math.log(0.75)), rtol=1e-9)


def test_target_sources_allocate_missing_target_estimators() -> None:
    q = tabular(2, {1: Q_ROW})
    pi = tabular(2, {1: PI_ROW})
    vf = SoftQValueFunction(
        q,
        pi,
        alpha=0.5,
        q_source="target",
        policy_source="target",
        dual_estimation=False,
        gamma=1.0,
    )
    assert_true(q.target is not None and pi.target is not None)
    # copies taken after the rows were written
    assert_close(_successor_target(vf), _expected(0.5), rtol=1e-9)

    online = tabular(2)
    _ = SoftQValueFunction(online, tabular(2), q_source="online", dual_estimation=False)
    assert_true(online.target is None)


def test_shared_reference_shares_temperature() -> None:
    alpha = th.tensor([0.3])
    vf = _soft_vf(alpha=alpha)

    shared = vf.reference(shared=True)
    assert_true(shared.soft_target.alpha_source is alpha)
    assert_true(shared.policy_estimator is vf.policy_estimator)

    independent = vf.reference(shared=False)
    assert_true(independent.soft_target.alpha_source is not alpha)
    alpha.fill_(0.9)
    assert_close(shared.alpha, 0.9, rtol=1e-6)
    assert_close(independent.alpha, 0.3, rtol=1e-6)


def test_from_params() -> None:
    vf = SoftQValueFunction.from_params(
        tabular(2),
        tabular(2),
        "gamma = 0.95, alpha = 0.1, q_source = online, dual_estimation = false",
    )
    assert_close(vf.gamma, 0.95)
    assert_close(vf.alpha, 0.1)
    assert_eq(vf.soft_target.q_source, "online")
    assert_true(vf.estimator2 is None)


# =============================================================================
# Runner
# =============================================================================
TESTS: List[Tuple[str, Callable[[], Any]]] = [
    ("soft_target_is_entropy_regularized_expectation", test_soft_target_is_entropy_regularized_expectation),
    ("alpha_zero_reduces_to_policy_expectation", test_alpha_zero_reduces_to_policy_expectation),
    ("zero_probability_action_stays_finite", test_zero_probability_action_stays_finite),
    ("expectation_limited_to_available_actions", test_expectation_limited_to_available_actions),
    ("single_action_form_uses_target_action", test_single_action_form_uses_target_action),
    ("single_action_form_falls_back_to_policy_argmax", test_single_action_form_falls_back_to_policy_argmax),
    ("dual_estimation_clips_with_elementwise_min", test_dual_estimation_clips_with_elementwise_min),
    ("tensor_alpha_is_read_at_every_call", test_tensor_alpha_is_read_at_every_call),
    ("multi_element_alpha_is_rejected", test_multi_element_alpha_is_rejected),
    ("invalid_sources_are_rejected", test_invalid_sources_are_rejected),
    ("target_sources_read_target_estimators", test_target_sources_read_target_estimators),
    ("target_sources_allocate_missing_target_estimators", test_target_sources_allocate_missing_target_estimators),
    ("shared_reference_shares_temperature", test_shared_reference_shares_temperature),
    ("from_params", test_from_params),
]


def main(argv=None) -> int:
    return run_tests(TESTS, argv=argv, suite_name="soft_q_value")


if __name__ == "__main__":
    raise SystemExit(main())
