from __future__ import annotations

from typing import Any, Callable, Dict, List, Tuple

import numpy as np
import torch as th
import torch.nn as nn

from td_engine.common.testers.test_utils import (
    run_tests,
    assert_eq,
    assert_true,
    assert_in,
    assert_allclose,
    assert_finite,
    assert_raises,
    seed_all,
)
from td_engine.common.testers.test_harness import FakeLogger, make_chain, random_states

from td_engine.baselines.q_value import q_value
from td_engine.baselines.soft_q_value import soft_q_value
from td_engine.baselines.state_value import state_value
from td_engine.common.buffers.trajectory import Transition
from td_engine.common.estimators import TorchFunctionEstimator
from td_engine.common.networks.value_networks import QValueNetwork
from td_engine.common.utils.errors import ConfigError


STATE_DIM = 4
N_ACTIONS = 3


def _episode(n: int = 5, seed: int = 0):
    states = random_states(n, STATE_DIM, seed=seed)
    actions = [i % N_ACTIONS for i in range(n)]
    rewards = [1.0 if i == n - 1 else 0.0 for i in range(n)]
    return make_chain(rewards, states=states, actions=actions)


def _params_snapshot(module: nn.Module) -> Dict[str, th.Tensor]:
    return {k: v.detach().clone() for k, v in module.state_dict().items()}


def _changed(before: Dict[str, th.Tensor], module: nn.Module) -> bool:
    after = module.state_dict()
    return any(not th.equal(before[k], after[k]) for k in before)


# =============================================================================
# Tests
# =============================================================================
def test_q_value_update_and_train() -> None:
    seed_all(0)
    logger = FakeLogger()
    vf = q_value(state_dim=STATE_DIM, n_actions=N_ACTIONS, hidden_sizes=(16, 16), lr=1e-2, logger=logger)
    traj = _episode()

    before = _params_snapshot(vf.estimator.network)
    metrics = vf.update_function_estimator(traj)

    assert_true(metrics is not None)
    assert_in("loss", metrics)
    assert_finite([t.td_target for t in traj])
    assert_true(_changed(before, vf.estimator.network), "optimizer step must move parameters")
    assert_eq(len(logger.with_prefix("value")), 1)
    assert_eq(len(logger.with_prefix("estimator")), 1)


def test_full_copy_target_matches_online_after_sync() -> None:
    seed_all(1)
    vf = q_value(state_dim=STATE_DIM, n_actions=N_ACTIONS, hidden_sizes=(16,), lr=1e-2, update_cycle=1)
    traj = _episode(seed=1)
    vf.update_function_estimator(traj)

    est = vf.estimator
    for t in traj:
        assert_allclose(est.predict_target(t), est.predict(t), atol=1e-6)


def test_polyak_target_lags_online() -> None:
    seed_all(2)
    vf = q_value(state_dim=STATE_DIM, n_actions=N_ACTIONS, hidden_sizes=(16,), lr=5e-2, target_tau=0.01)
    traj = _episode(seed=2)
    vf.update_function_estimator(traj)

    est = vf.estimator
    gaps = [float(np.abs(est.predict_target(t) - est.predict(t)).max()) for t in traj]
    assert_true(max(gaps) > 0.0, "Polyak target must not equal the online estimator after one step")


def test_target_parameters_are_frozen() -> None:
    vf = q_value(state_dim=STATE_DIM, n_actions=N_ACTIONS, hidden_sizes=(8,))
    target = vf.estimator.target
    assert_true(target is not None)
    assert_true(all(not p.requires_grad for p in target.network.parameters()))


def test_state_value_slot_layout() -> None:
    seed_all(3)
    vf = q_value(
        state_dim=STATE_DIM,
        n_actions=N_ACTIONS,
        hidden_sizes=(16,),
        state_value_slot=True,
        dueling_mode=True,
    )
    est = vf.estimator
    assert_eq(est.num_outputs, N_ACTIONS + 1)
    assert_eq(est.index_offset, 1)

    traj = _episode(seed=3)
    vf.update(traj)
    for t in traj:
        assert_eq(est.predict(t).shape, (N_ACTIONS + 1,))
    assert_eq(est.pending, len(traj))


def test_state_value_builder() -> None:
    seed_all(4)
    vf = state_value(state_dim=STATE_DIM, hidden_sizes=(16,), lam=0.5)
    states = random_states(4, STATE_DIM, seed=4)
    traj = make_chain([0.0, 0.0, 0.0, 1.0], states=states)
    metrics = vf.update_function_estimator(traj)
    assert_true(metrics is not None)
    assert_eq(vf.estimator.num_outputs, 1)
    assert_eq(traj[-1].td_target, 1.0)


def test_copy_predicts_identically() -> None:
    seed_all(5)
    vf = q_value(state_dim=STATE_DIM, n_actions=N_ACTIONS, hidden_sizes=(16,))
    est = vf.estimator
    clone = est.copy()
    sample = Transition(state=random_states(1, STATE_DIM, seed=5)[0])
    assert_allclose(clone.predict(sample), est.predict(sample))
    assert_true(clone.target is None)


def test_independent_reference_has_fresh_parameters() -> None:
    seed_all(6)
    vf = q_value(state_dim=STATE_DIM, n_actions=N_ACTIONS, hidden_sizes=(16,))
    other = vf.reference(shared=False)
    assert_true(other.estimator is not vf.estimator)
    assert_true(other.estimator.target is not None)

    sample = Transition(state=random_states(1, STATE_DIM, seed=6)[0])
    diff = np.abs(other.estimator.predict(sample) - vf.estimator.predict(sample)).max()
    assert_true(diff > 0.0, "fresh parameters expected")


def test_dual_estimation_trains_both_networks() -> None:
    seed_all(7)
    vf = q_value(state_dim=STATE_DIM, n_actions=N_ACTIONS, hidden_sizes=(16,), dual_estimation=True)
    assert_true(vf.estimator2 is not None)
    metrics = vf.update_function_estimator(_episode(seed=7))
    assert_in("loss", metrics)
    assert_in("estimator2/loss", metrics)


def test_state_dict_round_trip() -> None:
    seed_all(8)
    kwargs = dict(state_dim=STATE_DIM, n_actions=N_ACTIONS, hidden_sizes=(16,), lr=1e-2)
    vf = q_value(**kwargs)
    vf.update_function_estimator(_episode(seed=8))

    other = q_value(**kwargs)
    other.load_state_dict(vf.state_dict())

    sample = Transition(state=random_states(1, STATE_DIM, seed=9)[0])
    assert_allclose(other.estimator.predict(sample), vf.estimator.predict(sample), atol=1e-6)
    assert_allclose(other.estimator.predict_target(sample), vf.estimator.predict_target(sample), atol=1e-6)
    assert_eq(other.batches, vf.batches)


def test_estimator_requires_output_dim() -> None:
    net = nn.Linear(STATE_DIM, 2)
    assert_raises(ConfigError, lambda: TorchFunctionEstimator(net))
    est = TorchFunctionEstimator(net, num_outputs=2)
    assert_eq(est.num_outputs, 2)
    assert_raises(ConfigError, lambda: TorchFunctionEstimator(net, num_outputs=2, optim_name="nope"))


def test_estimator_from_params() -> None:
    net = QValueNetwork(state_dim=STATE_DIM, action_dim=2, hidden_sizes=(8,))
    est = TorchFunctionEstimator.from_params(net, "lr = 0.01, use_target = true, update_cycle = 5")
    assert_true(est.target is not None)
    assert_eq(est.synchronizer.update_cycle, 5)
    assert_eq(est.synchronizer.mode, "copy")


def test_soft_q_value_builder_smoke() -> None:
    seed_all(9)
    vf = soft_q_value(state_dim=STATE_DIM, n_actions=N_ACTIONS, hidden_sizes=(16,), alpha=0.1)
    traj = _episode(seed=9)
    metrics = vf.update_function_estimator(traj)

    assert_true(metrics is not None)
    assert_in("estimator2/loss", metrics)
    assert_finite([t.td_target for t in traj])

    probs = vf.policy_estimator.predict(traj[0])
    assert_allclose(probs.sum(), 1.0, atol=1e-5)


# =============================================================================
# Runner
# =============================================================================
TESTS: List[Tuple[str, Callable[[], Any]]] = [
    ("q_value_update_and_train", test_q_value_update_and_train),
    ("full_copy_target_matches_online_after_sync", test_full_copy_target_matches_online_after_sync),
    ("polyak_target_lags_online", test_polyak_target_lags_online),
    ("target_parameters_are_frozen", test_target_parameters_are_frozen),
    ("state_value_slot_layout", test_state_value_slot_layout),
    ("state_value_builder", test_state_value_builder),
    ("copy_predicts_identically", test_copy_predicts_identically),
    ("independent_reference_has_fresh_parameters", test_independent_reference_has_fresh_parameters),
    ("dual_estimation_trains_both_networks", test_dual_estimation_trains_both_networks),
    ("state_dict_round_trip", test_state_dict_round_trip),
    ("estimator_requires_output_dim", test_estimator_requires_output_dim),
    ("estimator_from_params", test_estimator_from_params),
    ("soft_q_value_builder_smoke", test_soft_q_value_builder_smoke),
]


def main(argv=None) -> int:
    return run_tests(TESTS, argv=argv, suite_name="torch_estimator")


if __name__ == "__main__":
    raise SystemExit(main())
