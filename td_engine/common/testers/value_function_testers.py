from __future__ import annotations

from typing import Any, Callable, List, Tuple

import numpy as np

from td_engine.common.testers.test_utils import (
    run_tests,
    assert_eq,
    assert_true,
    assert_close,
    assert_allclose,
    assert_raises,
)
from td_engine.common.testers.test_harness import FakeLogger, make_chain, tabular

from td_engine.baselines.action_value import ActionValueFunction
from td_engine.baselines.plain_value import PlainValueFunction
from td_engine.baselines.q_value import QValueFunction
from td_engine.baselines.state_value import StateValueFunction
from td_engine.common.utils.errors import AgentError, ConfigError
from td_engine.common.values.base_value import BaseValueFunction
from td_engine.common.buffers.trajectory import Transition
from td_engine.common.values.target_strategies import (
    CustomTarget,
    DoubleQTarget,
    GreedyQTarget,
    TargetActionQTarget,
)


# =============================================================================
# Backward pass
# =============================================================================
def test_terminal_transition_target_is_its_reward() -> None:
    est = tabular(1, {0: [10.0], 1: [7.0]})
    vf = StateValueFunction(est, gamma=0.9, lam=0.5)
    traj = make_chain([1.0, 2.5])

    vf.update(traj)

    last = traj[1]
    assert_close(last.td_target, 2.5)
    assert_close(last.value, 7.0)
    assert_close(last.td_error, 2.5 - 7.0)
    assert_close(last.advantage, last.td_error)

    # 0.5 * V(s1) + 0.5 * td_target(s1)
    assert_close(traj[0].td_target, 1.0 + 0.9 * (0.5 * 7.0 + 0.5 * 2.5))


def test_lambda_zero_bootstraps_from_successor_value() -> None:
    est = tabular(2, {1: [1.0, 3.0]})
    vf = QValueFunction(est, gamma=0.5, lam=0.0)
    traj = make_chain([1.0, 2.0], actions=[0, 0])

    vf.update(traj)
    # Q(s1, a=0) where a=0 is the successor's taken action
    assert_close(traj[0].td_target, 1.0 + 0.5 * 1.0)


def test_lambda_one_bootstraps_from_strategy_only() -> None:
    est = tabular(2, {1: [1.0, 3.0]})
    vf = QValueFunction(est, gamma=0.5, lam=1.0)
    traj = make_chain([1.0, 2.0], actions=[0, 0])

    vf.update(traj)
    assert_close(traj[0].td_target, 1.0 + 0.5 * 3.0)


def test_lambda_zero_forward_single_updates_match_backward_pass() -> None:
    values = {0: [0.5], 1: [1.5], 2: [-2.0], 3: [4.0]}
    vf = StateValueFunction(tabular(1, values), gamma=0.9, lam=0.0)

    backward = make_chain([1.0, 2.0, 3.0, 4.0])
    vf.update(backward)

    forward = make_chain([1.0, 2.0, 3.0, 4.0])
    for t in forward:
        vf.update([t])

    assert_allclose([t.td_target for t in forward], [t.td_target for t in backward])
    assert_allclose([t.td_error for t in forward], [t.td_error for t in backward])


def test_end_to_end_on_policy_returns_and_training() -> None:
    est = tabular(1)
    vf = StateValueFunction(est, gamma=0.9)
    traj = make_chain([1.0, 2.0, 3.0])

    processed = vf.update(traj)
    assert_eq([t.time_step for t in processed], [2, 1, 0], "chain must be processed last to first")
    assert_allclose([t.td_target for t in traj], [5.23, 4.7, 3.0], rtol=1e-9)

    metrics = vf.update_function_estimator()
    assert_true(metrics is not None and metrics["samples"] == 3.0)

    for i, expected in enumerate([5.23, 4.7, 3.0]):
        assert_close(est.predict(traj[i])[0], expected, rtol=1e-9)


def test_update_accepts_terminal_transition_of_a_chain() -> None:
    vf = StateValueFunction(tabular(1), gamma=0.9)
    traj = make_chain([1.0, 2.0, 3.0])

    processed = vf.update(traj.last)
    assert_eq(len(processed), 3)
    assert_close(traj[0].td_target, 5.23, rtol=1e-9)


def test_sampled_set_evaluates_missing_successor_on_demand() -> None:
    est = tabular(1, {0: [0.0], 1: [10.0], 2: [0.0]})
    vf = StateValueFunction(est, gamma=0.5, lam=0.0)
    traj = make_chain([1.0, 1.0, 1.0])

    vf.update([traj[0]])
    assert_close(traj[0].td_target, 1.0 + 0.5 * 10.0)
    assert_true(traj[1].value is None, "successor outside the set must not be written")


def test_sampled_set_processes_descending_time_steps() -> None:
    vf = StateValueFunction(tabular(1), gamma=1.0)
    traj = make_chain([1.0, 1.0, 1.0])

    processed = vf.update([traj[0], traj[2], traj[1]])
    assert_eq([t.time_step for t in processed], [2, 1, 0])
    assert_allclose([t.td_target for t in traj], [3.0, 2.0, 1.0])


def test_empty_batch_is_a_no_op() -> None:
    est = tabular(1)
    vf = StateValueFunction(est)

    assert_true(vf.update(None) is None)
    assert_true(vf.update([]) is None)
    assert_true(vf.update_function_estimator([]) is None)
    assert_eq(est.pending, 0)
    assert_eq(vf.batches, 0)


def test_non_terminal_transition_without_successor_raises() -> None:
    vf = StateValueFunction(tabular(1))
    traj = make_chain([1.0, 2.0], terminal=False)
    assert_raises(ValueError, lambda: vf.update(traj))


def test_stored_target_replaces_only_resolved_slot() -> None:
    est = tabular(3, {0: [7.0, 8.0, 9.0], 1: [100.0, 1.0, 2.0]}, state_value_slot=True)
    vf = ActionValueFunction(est, gamma=0.5, lam=0.0)
    traj = make_chain([1.0, 4.0], actions=[1, 1])

    assert_eq(vf.resolver.offset, 1)
    vf.update(traj)

    # slot = offset + action = 2
    assert_close(traj[0].value, 9.0)
    assert_close(traj[0].td_target, 1.0 + 0.5 * 2.0)

    vf.update_function_estimator()
    assert_allclose(est.predict(traj[0]), [7.0, 8.0, 2.0])
    assert_allclose(est.predict(traj[1]), [100.0, 1.0, 4.0])


def test_action_value_requires_an_action() -> None:
    vf = ActionValueFunction(tabular(2))
    traj = make_chain([1.0])
    assert_raises(ValueError, lambda: vf.update(traj))


# =============================================================================
# Double estimation
# =============================================================================
def _double_q_chain():
    return make_chain([0.0, 0.0], actions=[0, 0])


def test_double_q_takes_min_at_online_argmax() -> None:
    est1 = tabular(2, {1: [1.0, 5.0]})
    est2 = tabular(2, {1: [4.0, 2.0]})
    vf = QValueFunction(est1, estimator2=est2, gamma=1.0)
    assert_true(isinstance(vf.strategy, DoubleQTarget))

    traj = _double_q_chain()
    vf.update(traj)
    # argmax of est1 is action 1 -> min(5, 2)
    assert_close(traj[0].td_target, 2.0)
    assert_eq(est1.pending, 2)
    assert_eq(est2.pending, 2)


def test_double_q_balance_zero_takes_max() -> None:
    est1 = tabular(2, {1: [1.0, 5.0]})
    est2 = tabular(2, {1: [4.0, 2.0]})
    vf = QValueFunction(est1, estimator2=est2, gamma=1.0, min_max_balance=0.0)

    traj = _double_q_chain()
    vf.update(traj)
    assert_close(traj[0].td_target, 5.0)


def test_double_q_respects_available_actions() -> None:
    est1 = tabular(2, {1: [1.0, 5.0]})
    est2 = tabular(2, {1: [4.0, 2.0]})
    vf = QValueFunction(est1, estimator2=est2, gamma=1.0)

    traj = make_chain([0.0, 0.0], actions=[0, 0], available_actions=[0])
    vf.update(traj)
    assert_close(traj[0].td_target, 1.0)


def test_double_strategy_without_second_estimator_is_rejected() -> None:
    assert_raises(ConfigError, lambda: BaseValueFunction(tabular(2), DoubleQTarget(), action_value=True))


def test_dual_estimation_creates_independent_second_estimator() -> None:
    est = tabular(2, {0: [1.0, 1.0]})
    vf = QValueFunction(est, dual_estimation=True)
    assert_true(vf.estimator2 is not None and vf.estimator2 is not est)
    assert_eq(vf.estimator2.num_outputs, 2)
    assert_allclose(vf.estimator2.predict(make_chain([0.0])[0]), [0.0, 0.0])


# =============================================================================
# Target-estimator bootstrap
# =============================================================================
def test_use_target_allocates_missing_target_estimator() -> None:
    est = tabular(2, {1: [1.0, 3.0]})
    assert_true(est.target is None)

    QValueFunction(est, use_target=True)
    assert_true(est.target is not None)
    assert_allclose(est.predict_target(make_chain([0.0, 0.0])[1]), [1.0, 3.0])

    est1, est2 = tabular(2), tabular(2)
    QValueFunction(est1, estimator2=est2, use_target=True)
    assert_true(est1.target is not None and est2.target is not None)

    online = tabular(2)
    QValueFunction(online, use_target=False)
    assert_true(online.target is None)


def test_greedy_bootstrap_reads_target_estimator() -> None:
    est = tabular(2, {1: [1.0, 3.0]}, use_target=True)
    est.target.set_values(1, [7.0, 2.0])
    vf = QValueFunction(est, use_target=True, gamma=1.0)
    assert_true(isinstance(vf.strategy, GreedyQTarget))

    traj = make_chain([0.0, 0.0], actions=[0, 0])
    vf.update(traj)
    assert_close(traj[0].td_target, 7.0)
    assert_allclose(est.predict(traj[1]), [1.0, 3.0])


def test_double_q_reads_each_target_estimator() -> None:
    est1 = tabular(2, {1: [1.0, 5.0]}, use_target=True)
    est2 = tabular(2, {1: [4.0, 2.0]}, use_target=True)
    est1.target.set_values(1, [0.0, 6.0])
    est2.target.set_values(1, [9.0, 4.0])
    vf = QValueFunction(est1, estimator2=est2, use_target=True, gamma=1.0)

    traj = _double_q_chain()
    vf.update(traj)
    # online est1 picks action 1 -> min(target1 = 6, target2 = 4)
    assert_close(traj[0].td_target, 4.0)


def test_target_action_bootstrap() -> None:
    est = tabular(2, {1: [1.0, 3.0]})
    vf = QValueFunction(est, target_action=True, gamma=1.0)
    assert_true(isinstance(vf.strategy, TargetActionQTarget))

    traj = make_chain([0.0, 0.0], actions=[0, 1])
    traj[1].target_action = 0
    vf.update(traj)
    assert_close(traj[0].td_target, 1.0)

    # no recorded target action: the successor's taken action is used
    traj = make_chain([0.0, 0.0], actions=[0, 1])
    vf.update(traj)
    assert_close(traj[0].td_target, 3.0)

    assert_raises(ValueError, lambda: vf.strategy.target_value(vf, Transition(state=1)))


def test_target_action_bootstrap_reads_target_estimator() -> None:
    est = tabular(2, {1: [1.0, 3.0]}, use_target=True)
    est.target.set_values(1, [5.0, 8.0])
    vf = QValueFunction(est, target_action=True, use_target=True, gamma=1.0)

    traj = make_chain([0.0, 0.0], actions=[0, 1])
    traj[1].target_action = 0
    vf.update(traj)
    assert_close(traj[0].td_target, 5.0)

    assert_raises(ConfigError, lambda: QValueFunction(tabular(2), target_action=True, dual_estimation=True))


# =============================================================================
# Multi-agent gating
# =============================================================================
def test_barrier_opens_only_when_every_agent_is_ready() -> None:
    vf = StateValueFunction(tabular(1))
    vf.register_agent("a")
    vf.register_agent("b")

    assert_true(not vf.ready_to_update("a"))
    assert_true(vf.ready_to_update("b"))
    assert_raises(AgentError, lambda: vf.ready_to_update("stranger"))

    vf.update_function_estimator(make_chain([1.0, 1.0]))
    assert_true(not vf.ready_to_update("a"), "flags must reset after a training step")


def test_barrier_covers_both_estimators_under_dual_estimation() -> None:
    vf = QValueFunction(tabular(2), dual_estimation=True)
    vf.register_agent(1)
    assert_true(vf.ready_to_update(1))
    assert_true(vf.estimator.barrier.is_registered(1))
    assert_true(vf.estimator2.barrier.is_registered(1))


def test_shared_reference_reuses_estimator_and_barrier() -> None:
    vf = StateValueFunction(tabular(1))
    other = vf.reference(shared=True)
    assert_true(other.estimator is vf.estimator)

    vf.register_agent("a")
    other.register_agent("b")
    assert_true(not vf.ready_to_update("a"))
    assert_true(other.ready_to_update("b"))


def test_independent_reference_gets_fresh_estimators() -> None:
    vf = QValueFunction(tabular(2, {0: [3.0, 3.0]}), dual_estimation=True, gamma=0.7)
    other = vf.reference(shared=False)

    assert_true(isinstance(other, QValueFunction))
    assert_true(other.estimator is not vf.estimator)
    assert_true(other.estimator2 is not vf.estimator2)
    assert_close(other.gamma, 0.7)
    assert_allclose(other.estimator.predict(make_chain([0.0])[0]), [0.0, 0.0])


# =============================================================================
# Baseline normalization
# =============================================================================
def test_first_batch_normalizes_to_zero_mean_unit_std() -> None:
    vf = PlainValueFunction(gamma=1.0, tau=0.5)
    traj = make_chain([1.0, 1.0, 1.0])
    vf.update(traj)

    targets = [t.td_target for t in traj]
    assert_allclose(targets, [1.0, 0.0, -1.0])
    assert_allclose([t.td_error for t in traj], targets)
    assert_allclose([t.advantage for t in traj], targets)


def test_normalized_mean_matches_running_statistics() -> None:
    vf = PlainValueFunction(gamma=1.0, tau=0.5)
    vf.update(make_chain([1.0, 1.0, 1.0]))  # returns 3, 2, 1

    traj = make_chain([2.0, 2.0])  # returns 4, 2
    vf.update(traj)

    running_mean = 0.5 * 2.0 + 0.5 * 3.0
    running_std = 0.5 * 1.0 + 0.5 * np.sqrt(2.0)
    assert_close(vf.baseline.running_mean, running_mean)
    assert_close(vf.baseline.running_std, running_std)

    got = float(np.mean([t.td_target for t in traj]))
    assert_close(got, (3.0 - running_mean) / running_std)


def test_normalization_skipped_for_single_transition() -> None:
    vf = PlainValueFunction(gamma=1.0)
    traj = make_chain([5.0])
    vf.update(traj)
    assert_close(traj[0].td_target, 5.0)
    assert_true(vf.baseline.running_mean is None)


def test_plain_target_reuses_successor_return_until_reset() -> None:
    vf = PlainValueFunction(gamma=1.0, use_baseline=False)
    traj = make_chain([1.0, 1.0, 1.0])
    vf.update(traj)
    assert_close(traj[1].td_target, 2.0)

    # successor outside the batch keeps the return from the previous pass
    vf.update([traj[0]])
    assert_close(traj[0].td_target, 3.0)

    traj[1].reset_estimates()
    vf.update([traj[0]])
    assert_close(traj[0].td_target, 1.0)


def test_plain_value_returns_are_trained_into_direct_estimator() -> None:
    vf = PlainValueFunction(gamma=0.9, use_baseline=False)
    vf.update_function_estimator(make_chain([1.0, 2.0, 3.0]))
    got = sorted(float(tv[0]) for _, tv in vf.returns)
    assert_allclose(got, [3.0, 4.7, 5.23], rtol=1e-9)


# =============================================================================
# Configuration / diagnostics
# =============================================================================
def test_from_params_string_and_mapping() -> None:
    vf = StateValueFunction.from_params(tabular(1), "gamma = 0.9, lambda = 0.5, use_baseline = true")
    assert_close(vf.gamma, 0.9)
    assert_close(vf.lam, 0.5)
    assert_true(vf.use_baseline)

    q = QValueFunction.from_params(tabular(2), {"dual_estimation": True, "min_max_balance": 0.25})
    assert_true(q.dual_estimation)
    assert_close(q.strategy.min_max_balance, 0.25)


def test_invalid_configuration_raises_config_error() -> None:
    assert_raises(ConfigError, lambda: StateValueFunction.from_params(tabular(1), "gamma = 0.9, nope = 1"))
    assert_raises(ConfigError, lambda: StateValueFunction.from_params(tabular(1), "gamma = fast"))
    assert_raises(ConfigError, lambda: StateValueFunction(tabular(1), gamma=1.5))
    assert_raises(ConfigError, lambda: StateValueFunction(tabular(1), lam=-0.1))
    assert_raises(ConfigError, lambda: StateValueFunction(tabular(1), tau=1.0))
    assert_raises(ConfigError, lambda: QValueFunction(tabular(2), dual_estimation=True, target_action=True))


def test_custom_target_hook() -> None:
    seen: List[int] = []

    def constant(value_function: Any, nxt: Any) -> float:
        seen.append(nxt.time_step)
        return 10.0

    vf = BaseValueFunction(tabular(1), CustomTarget(constant), gamma=0.5)
    traj = make_chain([1.0, 1.0])
    vf.update(traj)
    assert_close(traj[0].td_target, 1.0 + 0.5 * 10.0)
    assert_eq(seen, [1])


def test_diagnostics_logged_every_n_batches() -> None:
    logger = FakeLogger()
    vf = StateValueFunction(tabular(1), gamma=0.9, logger=logger, log_every=2)

    vf.update(make_chain([1.0, 2.0, 3.0]))
    assert_eq(len(logger.records), 0)
    vf.update(make_chain([1.0]))

    recs = logger.with_prefix("value")
    assert_eq(len(recs), 1)
    assert_eq(recs[0].step, 2)
    for k in ("reward", "td_target", "td_error"):
        assert_true(k in recs[0].metrics, f"missing diagnostic {k}")


def test_reset_clears_statistics_and_queues() -> None:
    vf = PlainValueFunction(gamma=1.0)
    vf.update(make_chain([1.0, 2.0]))
    assert_true(vf.diagnostics.count > 0)
    assert_eq(vf.estimator.pending, 2)

    vf.reset()
    assert_eq(vf.diagnostics.count, 0)
    assert_true(vf.baseline.running_mean is None)
    assert_eq(vf.estimator.pending, 0)


def test_state_dict_restores_statistics() -> None:
    vf = StateValueFunction(tabular(1), gamma=0.9, use_baseline=True)
    vf.update_function_estimator(make_chain([1.0, 2.0, 3.0]))
    state = vf.state_dict()

    clone = StateValueFunction(tabular(1), gamma=0.9, use_baseline=True)
    clone.load_state_dict(state)
    assert_eq(clone.batches, 1)
    assert_close(clone.baseline.running_mean, vf.baseline.running_mean)
    sample = make_chain([0.0, 0.0, 0.0])
    assert_allclose(clone.estimator.predict(sample[0]), vf.estimator.predict(sample[0]))


# =============================================================================
# Runner
# =============================================================================
TESTS: List[Tuple[str, Callable[[], Any]]] = [
    ("terminal_transition_target_is_its_reward", test_terminal_transition_target_is_its_reward),
    ("lambda_zero_bootstraps_from_successor_value", test_lambda_zero_bootstraps_from_successor_value),
    ("lambda_one_bootstraps_from_strategy_only", test_lambda_one_bootstraps_from_strategy_only),
    ("lambda_zero_forward_single_updates_match_backward_pass", test_lambda_zero_forward_single_updates_match_backward_pass),
    ("end_to_end_on_policy_returns_and_training", test_end_to_end_on_policy_returns_and_training),
    ("update_accepts_terminal_transition_of_a_chain", test_update_accepts_terminal_transition_of_a_chain),
    ("sampled_set_evaluates_missing_successor_on_demand", test_sampled_set_evaluates_missing_successor_on_demand),
    ("sampled_set_processes_descending_time_steps", test_sampled_set_processes_descending_time_steps),
    ("empty_batch_is_a_no_op", test_empty_batch_is_a_no_op),
    ("non_terminal_transition_without_successor_raises", test_non_terminal_transition_without_successor_raises),
    ("stored_target_replaces_only_resolved_slot", test_stored_target_replaces_only_resolved_slot),
    ("action_value_requires_an_action", test_action_value_requires_an_action),
    ("double_q_takes_min_at_online_argmax", test_double_q_takes_min_at_online_argmax),
    ("double_q_balance_zero_takes_max", test_double_q_balance_zero_takes_max),
    ("double_q_respects_available_actions", test_double_q_respects_available_actions),
    ("double_strategy_without_second_estimator_is_rejected", test_double_strategy_without_second_estimator_is_rejected),
    ("dual_estimation_creates_independent_second_estimator", test_dual_estimation_creates_independent_second_estimator),
    ("use_target_allocates_missing_target_estimator", test_use_target_allocates_missing_target_estimator),
    ("greedy_bootstrap_reads_target_estimator", test_greedy_bootstrap_reads_target_estimator),
    ("double_q_reads_each_target_estimator", test_double_q_reads_each_target_estimator),
    ("target_action_bootstrap", test_target_action_bootstrap),
    ("target_action_bootstrap_reads_target_estimator", test_target_action_bootstrap_reads_target_estimator),
    ("barrier_opens_only_when_every_agent_is_ready", test_barrier_opens_only_when_every_agent_is_ready),
    ("barrier_covers_both_estimators_under_dual_estimation", test_barrier_covers_both_estimators_under_dual_estimation),
    ("shared_reference_reuses_estimator_and_barrier", test_shared_reference_reuses_estimator_and_barrier),
    ("independent_reference_gets_fresh_estimators", test_independent_reference_gets_fresh_estimators),
    ("first_batch_normalizes_to_zero_mean_unit_std", test_first_batch_normalizes_to_zero_mean_unit_std),
    ("normalized_mean_matches_running_statistics", test_normalized_mean_matches_running_statistics),
    ("normalization_skipped_for_single_transition", test_normalization_skipped_for_single_transition),
    ("plain_target_reuses_successor_return_until_reset", test_plain_target_reuses_successor_return_until_reset),
    ("plain_value_returns_are_trained_into_direct_estimator", test_plain_value_returns_are_trained_into_direct_estimator),
    ("from_params_string_and_mapping", test_from_params_string_and_mapping),
    ("invalid_configuration_raises_config_error", test_invalid_configuration_raises_config_error),
    ("custom_target_hook", test_custom_target_hook),
    ("diagnostics_logged_every_n_batches", test_diagnostics_logged_every_n_batches),
    ("reset_clears_statistics_and_queues", test_reset_clears_statistics_and_queues),
    ("state_dict_restores_statistics", test_state_dict_restores_statistics),
]


def main(argv=None) -> int:
    return run_tests(TESTS, argv=argv, suite_name="value_function")


if __name__ == "__main__":
    raise SystemExit(main())
