from __future__ import annotations

from typing import Any, Callable, List, Tuple

from td_engine.common.testers.test_utils import (
    run_tests,
    assert_eq,
    assert_true,
    assert_raises,
)

from td_engine.common.buffers.trajectory import NO_ACTION, Trajectory, Transition


# =============================================================================
# Tests
# =============================================================================
def test_append_assigns_increasing_time_steps() -> None:
    traj = Trajectory()
    a = traj.append("s0", 1, 0.5)
    b = traj.append("s1", NO_ACTION, 1.0)
    assert_eq((a.time_step, b.time_step), (0, 1))
    assert_eq((a.index, b.index), (0, 1))
    assert_true(a.has_action and not b.has_action)


def test_navigation_through_arena() -> None:
    traj = Trajectory()
    a = traj.append("s0")
    b = traj.append("s1")
    c = traj.append("s2", terminal=True)

    assert_true(a.next is b and b.next is c)
    assert_true(c.next is None)
    assert_true(c.previous is b and a.previous is None)
    assert_eq([t.state for t in traj.reversed()], ["s2", "s1", "s0"])
    assert_true(traj.last is c and traj.is_closed)


def test_terminal_blocks_further_appends() -> None:
    traj = Trajectory()
    traj.append("s0", terminal=True)
    assert_raises(ValueError, lambda: traj.append("s1"))


def test_time_step_must_increase() -> None:
    traj = Trajectory()
    traj.append("s0", time_step=5)
    assert_raises(ValueError, lambda: traj.append("s1", time_step=5))
    assert_eq(traj.append("s1").time_step, 6)


def test_close_marks_last_terminal() -> None:
    traj = Trajectory()
    assert_true(traj.close() is None)
    traj.append("s0")
    last = traj.append("s1")
    assert_true(not traj.is_closed)
    assert_true(traj.close() is last)
    assert_true(last.terminal)


def test_clear_detaches_records() -> None:
    traj = Trajectory()
    a = traj.append("s0")
    traj.append("s1")
    traj.clear()
    assert_eq(len(traj), 0)
    assert_true(a.trajectory is None and a.next is None and a.previous is None)


def test_foreign_transition_is_rejected() -> None:
    t1, t2 = Trajectory(), Trajectory()
    a = t1.append("s0")
    assert_raises(ValueError, lambda: t2.next_of(a))


def test_adopt_existing_records() -> None:
    recs = [Transition(state=i, time_step=i) for i in range(3)]
    traj = Trajectory(recs)
    assert_eq(len(traj), 3)
    assert_true(recs[1].next is recs[2])


def test_reset_estimates() -> None:
    t = Transition(state=0)
    t.value, t.td_target, t.td_error, t.advantage = 1.0, 2.0, 1.0, 1.0
    t.reset_estimates()
    assert_true(t.value is None and t.td_target is None and t.advantage is None)


# =============================================================================
# Runner
# =============================================================================
TESTS: List[Tuple[str, Callable[[], Any]]] = [
    ("append_assigns_increasing_time_steps", test_append_assigns_increasing_time_steps),
    ("navigation_through_arena", test_navigation_through_arena),
    ("terminal_blocks_further_appends", test_terminal_blocks_further_appends),
    ("time_step_must_increase", test_time_step_must_increase),
    ("close_marks_last_terminal", test_close_marks_last_terminal),
    ("clear_detaches_records", test_clear_detaches_records),
    ("foreign_transition_is_rejected", test_foreign_transition_is_rejected),
    ("adopt_existing_records", test_adopt_existing_records),
    ("reset_estimates", test_reset_estimates),
]


def main(argv=None) -> int:
    return run_tests(TESTS, argv=argv, suite_name="trajectory")


if __name__ == "__main__":
    raise SystemExit(main())
