from __future__ import annotations

import threading
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
from td_engine.common.testers.test_harness import FakeLogger, tabular

from td_engine.common.buffers.trajectory import Transition
from td_engine.common.estimators import (
    DirectFunctionEstimator,
    TargetSynchronizer,
    UpdateBarrier,
)
from td_engine.common.utils.errors import AgentError, ConfigError


def _at(state: Any) -> Transition:
    return Transition(state=state)


# =============================================================================
# Action selection
# =============================================================================
def test_argmax_and_max_over_available_actions() -> None:
    est = tabular(3)
    v = [1.0, 7.0, 3.0]
    assert_eq(est.argmax(v), 1)
    assert_close(est.max(v), 7.0)
    assert_eq(est.argmax(v, [0, 2]), 2)
    assert_close(est.max(v, [0, 2]), 3.0)


def test_argmax_ties_resolve_to_first_listed_action() -> None:
    est = tabular(3)
    assert_eq(est.argmax([2.0, 2.0, 1.0]), 0)
    assert_eq(est.argmax([2.0, 2.0, 1.0], [1, 0]), 1)


def test_action_selection_skips_state_value_slot() -> None:
    est = tabular(3, state_value_slot=True)
    assert_eq(est.index_offset, 1)
    assert_eq(est.num_actions, 2)
    # slot 0 is V(s) and never selectable
    assert_eq(est.argmax([100.0, 1.0, 2.0]), 1)
    assert_close(est.max([100.0, 1.0, 2.0]), 2.0)


def test_out_of_range_action_raises() -> None:
    est = tabular(2)
    assert_raises(ValueError, lambda: est.argmax([1.0, 2.0], [5]))


def test_sample_follows_weights() -> None:
    est = tabular(3)
    rng = np.random.default_rng(0)
    draws = [est.sample([0.0, 1.0, 3.0], rng=rng) for _ in range(2000)]
    counts = np.bincount(draws, minlength=3)
    assert_eq(int(counts[0]), 0, "zero-weight action must never be drawn")
    assert_close(counts[2] / counts.sum(), 0.75, atol=0.05, rtol=0.0)


def test_sample_uniform_when_all_weights_zero() -> None:
    est = tabular(2)
    rng = np.random.default_rng(1)
    draws = [est.sample([0.0, -1.0], rng=rng) for _ in range(400)]
    assert_true(set(draws) == {0, 1})


# =============================================================================
# Store / train
# =============================================================================
def test_train_without_pending_targets_returns_none() -> None:
    est = tabular(1)
    assert_true(est.train() is None)
    assert_eq(est.train_calls, 0)


def test_store_rejects_wrong_vector_length() -> None:
    est = tabular(2)
    assert_raises(ValueError, lambda: est.store(_at(0), [1.0]))


def test_tabular_step_moves_rows_toward_targets() -> None:
    est = tabular(1, lr=0.5)
    est.store(_at("s"), [4.0])
    metrics = est.train()
    assert_close(est.predict(_at("s"))[0], 2.0)
    assert_close(metrics["loss"], 16.0)
    assert_eq(est.pending, 0)


def test_train_logs_metrics_through_logger() -> None:
    logger = FakeLogger()
    est = tabular(1, logger=logger)
    est.store(_at(0), [1.0])
    est.train()
    recs = logger.with_prefix("estimator")
    assert_eq(len(recs), 1)
    assert_true("loss" in recs[0].metrics and "samples" in recs[0].metrics)


def test_failed_fit_leaves_queue_intact() -> None:
    est = tabular(1)

    def boom(batch):
        raise RuntimeError("fit failed")

    est._fit = boom  # type: ignore[assignment]
    est.store(_at(0), [1.0])
    assert_raises(RuntimeError, est.train)
    assert_eq(est.pending, 1)


def test_direct_estimator_predicts_zero_and_keeps_returns() -> None:
    est = DirectFunctionEstimator()
    assert_allclose(est.predict(_at(np.ones(3))), [0.0])
    est.store(_at(0), [2.5])
    est.train()
    assert_eq(len(est.returns), 1)
    assert_close(float(est.returns[0][1][0]), 2.5)


# =============================================================================
# Target estimator / synchronization
# =============================================================================
def test_target_allocated_at_construction() -> None:
    est = tabular(1, use_target=True)
    assert_true(est.target is not None)
    assert_true(tabular(1).target is None)


def test_full_copy_every_update_cycle() -> None:
    est = tabular(1, use_target=True, update_cycle=3)
    sample = _at(0)

    synced = []
    for _ in range(3):
        est.store(sample, [5.0])
        synced.append(est.train()["target_synced"])
        if len(synced) < 3:
            assert_close(est.predict_target(sample)[0], 0.0)

    assert_eq(synced, [0.0, 0.0, 1.0])
    assert_allclose(est.predict_target(sample), est.predict(sample))


def test_smooth_sync_residual_decays_geometrically() -> None:
    tau = 0.2
    est = tabular(1, use_target=True, update_cycle=0, tau=tau)
    est.set_values(0, [1.0])
    sample = _at(0)

    for k in range(1, 6):
        assert_true(est.synchronizer.step(est, est.target))
        residual = 1.0 - est.predict_target(sample)[0]
        assert_close(residual, (1.0 - tau) ** k, rtol=1e-9)


def test_predict_target_falls_back_to_online() -> None:
    est = tabular(1, {0: [3.0]})
    assert_allclose(est.predict_target(_at(0)), [3.0])


def test_synchronizer_configuration_errors() -> None:
    assert_raises(ConfigError, lambda: TargetSynchronizer(update_cycle=-1))
    assert_raises(ConfigError, lambda: TargetSynchronizer(update_cycle=0, tau=0.0))
    assert_raises(ConfigError, lambda: TargetSynchronizer(update_cycle=0, tau=1.5))
    assert_raises(ConfigError, lambda: TargetSynchronizer(update_cycle=True))
    assert_raises(ConfigError, lambda: TargetSynchronizer(update_cycle=2.5))

    sync = TargetSynchronizer.from_params("update_cycle = 10")
    assert_eq(sync.mode, "copy")
    assert_eq(TargetSynchronizer.from_params({"tau": 0.01}).mode, "smooth")


def test_copy_is_independent() -> None:
    est = tabular(2, {0: [1.0, 2.0]})
    clone = est.copy()
    assert_allclose(clone.predict(_at(0)), [1.0, 2.0])
    est.set_values(0, [9.0, 9.0])
    assert_allclose(clone.predict(_at(0)), [1.0, 2.0])


def test_state_dict_round_trip_with_target() -> None:
    est = tabular(1, {0: [1.5]}, use_target=True, update_cycle=2)
    est.store(_at(0), [3.0])
    est.train()

    other = tabular(1, use_target=True, update_cycle=2)
    other.load_state_dict(est.state_dict())
    assert_allclose(other.predict(_at(0)), est.predict(_at(0)))
    assert_allclose(other.predict_target(_at(0)), est.predict_target(_at(0)))
    assert_eq(other.synchronizer.cycles, 1)
    assert_eq(other.train_calls, 1)


# =============================================================================
# Barrier
# =============================================================================
def test_barrier_register_ready_reset() -> None:
    b = UpdateBarrier()
    b.register("a")
    b.register("b")
    b.register("a")
    assert_eq(len(b), 2)

    assert_true(not b.ready("a"))
    assert_eq(b.pending, ["b"])
    assert_true(b.ready("b"))

    b.reset()
    assert_eq(sorted(b.pending), ["a", "b"])
    assert_raises(AgentError, lambda: b.ready("c"))
    assert_raises(AgentError, lambda: b.unregister("c"))


def test_barrier_exactly_one_agent_sees_open_gate_across_threads() -> None:
    b = UpdateBarrier()
    agents = list(range(8))
    for a in agents:
        b.register(a)

    results: List[bool] = []
    lock = threading.Lock()

    def signal(agent: int) -> None:
        ok = b.ready(agent)
        with lock:
            results.append(ok)

    threads = [threading.Thread(target=signal, args=(a,)) for a in agents]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert_eq(len(results), 8)
    assert_eq(sum(results), 1)


def test_opening_the_gate_consumes_the_cycle() -> None:
    est = tabular(1)
    est.register_agent("x")
    assert_true(est.ready_to_update("x"))
    assert_eq(est.barrier.pending, ["x"])
    est.store(_at(0), [1.0])
    est.train()
    assert_eq(est.barrier.pending, ["x"])


def test_signal_for_next_cycle_survives_training() -> None:
    est = tabular(1)
    est.register_agent("a")
    est.register_agent("b")
    assert_true(not est.ready_to_update("a"))
    assert_true(est.ready_to_update("b"))

    # "a" signals for the next cycle while the current update is still running
    fit = est._fit

    def fit_while_agent_signals(batch):
        assert_true(not est.ready_to_update("a"))
        return fit(batch)

    est._fit = fit_while_agent_signals  # type: ignore[assignment]
    est.store(_at(0), [1.0])
    est.train()

    assert_eq(est.barrier.pending, ["b"])
    assert_true(est.ready_to_update("b"))


# =============================================================================
# Runner
# =============================================================================
TESTS: List[Tuple[str, Callable[[], Any]]] = [
    ("argmax_and_max_over_available_actions", test_argmax_and_max_over_available_actions),
    ("argmax_ties_resolve_to_first_listed_action", test_argmax_ties_resolve_to_first_listed_action),
    ("action_selection_skips_state_value_slot", test_action_selection_skips_state_value_slot),
    ("out_of_range_action_raises", test_out_of_range_action_raises),
    ("sample_follows_weights", test_sample_follows_weights),
    ("sample_uniform_when_all_weights_zero", test_sample_uniform_when_all_weights_zero),
    ("train_without_pending_targets_returns_none", test_train_without_pending_targets_returns_none),
    ("store_rejects_wrong_vector_length", test_store_rejects_wrong_vector_length),
    ("tabular_step_moves_rows_toward_targets", test_tabular_step_moves_rows_toward_targets),
    ("train_logs_metrics_through_logger", test_train_logs_metrics_through_logger),
    ("failed_fit_leaves_queue_intact", test_failed_fit_leaves_queue_intact),
    ("direct_estimator_predicts_zero_and_keeps_returns", test_direct_estimator_predicts_zero_and_keeps_returns),
    ("target_allocated_at_construction", test_target_allocated_at_construction),
    ("full_copy_every_update_cycle", test_full_copy_every_update_cycle),
    ("smooth_sync_residual_decays_geometrically", test_smooth_sync_residual_decays_geometrically),
    ("predict_target_falls_back_to_online", test_predict_target_falls_back_to_online),
    ("synchronizer_configuration_errors", test_synchronizer_configuration_errors),
    ("copy_is_independent", test_copy_is_independent),
    ("state_dict_round_trip_with_target", test_state_dict_round_trip_with_target),
    ("barrier_register_ready_reset", test_barrier_register_ready_reset),
    ("barrier_exactly_one_agent_sees_open_gate_across_threads", test_barrier_exactly_one_agent_sees_open_gate_across_threads),
    ("opening_the_gate_consumes_the_cycle", test_opening_the_gate_consumes_the_cycle),
    ("signal_for_next_cycle_survives_training", test_signal_for_next_cycle_survives_training),
]


def main(argv=None) -> int:
    return run_tests(TESTS, argv=argv, suite_name="estimator")


if __name__ == "__main__":
    raise SystemExit(main())
