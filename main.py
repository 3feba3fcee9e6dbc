import numpy as np

from td_engine.common.buffers.trajectory import Trajectory
from td_engine.common.loggers import build_logger
from td_engine.baselines.q_value.q_value import q_value
from td_engine.baselines.state_value.state_value import state_value


# -----------------------------
# Synthetic episodes
# -----------------------------
N_STATES = 7       # random walk positions 0..6, both ends terminal
N_ACTIONS = 2      # 0 = left, 1 = right


def one_hot(pos: int) -> np.ndarray:
    x = np.zeros(N_STATES, dtype=np.float32)
    x[pos] = 1.0
    return x


def random_walk_episode(rng: np.random.Generator, policy=None) -> Trajectory:
    """
    One episode of the classic random walk: start in the middle, reward 1 on
    reaching the right end, 0 elsewhere.
    """
    traj = Trajectory()
    pos = N_STATES // 2
    reward = 0.0
    while True:
        terminal = pos in (0, N_STATES - 1)
        action = int(rng.integers(N_ACTIONS)) if policy is None else policy(pos)
        traj.append(one_hot(pos), action, reward, terminal=terminal)
        if terminal:
            return traj
        pos += 1 if action == 1 else -1
        reward = 1.0 if pos == N_STATES - 1 else 0.0


rng = np.random.default_rng(0)
device = "cpu"  # or "cuda"

logger = build_logger(log_dir="./runs", exp_name="td_engine_demo", console_every=50)

# -----------------------------
# TD(lambda) state values
# -----------------------------
v_fn = state_value(state_dim=N_STATES, device=device, lr=1e-2, gamma=1.0, lam=0.8, logger=logger, log_every=25)

for _ in range(300):
    v_fn.update_function_estimator(random_walk_episode(rng))

# -----------------------------
# Q-learning with a target network
# -----------------------------
q_fn = q_value(
    state_dim=N_STATES,
    n_actions=N_ACTIONS,
    device=device,
    lr=1e-2,
    gamma=0.9,
    lam=0.0,
    update_cycle=20,
    dual_estimation=True,
    logger=logger,
    log_every=25,
)

for _ in range(300):
    q_fn.update_function_estimator(random_walk_episode(rng))

greedy_run = random_walk_episode(rng, policy=lambda pos: 1)
for t in greedy_run:
    v = float(v_fn.value_of(t))
    q = q_fn.estimator.predict(t)
    print(f"state {int(np.argmax(t.state))}: V={v:.3f} Q={np.round(q, 3)}")

logger.close()
