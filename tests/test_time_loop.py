from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest
from numpy.testing import assert_allclose

from pisoflow.constructor.inlet import parabolic_profile
from pisoflow.solver.time_loop import CancellationToken, TimeLoopDriver, is_cancelled
from tests.helpers import make_config, make_stepper


def make_driver(config, obstacles=(), inlet=None):
    inlet = inlet or parabolic_profile(0.2, config.height)
    return TimeLoopDriver(config, make_stepper(config, obstacles, inlet=inlet))


def test_snapshot_schedule(config):
    result = make_driver(config).run()
    # 5 steps, one snapshot every 2 steps plus the rest state
    assert result.n_snapshots == 3
    assert result.steps == [0, 2, 4]
    assert_allclose(result.times, [0.0, 0.02, 0.04])
    assert result.steps_completed == 5
    assert not result.cancelled
    assert result.solve_time > 0.0
    assert_allclose(result.u_all[0], 0.0)
    assert result.final_state is not None


def test_snapshots_are_copies(config):
    result = make_driver(config).run()
    assert result.u_all[1] is not result.u_all[2]
    assert not np.allclose(result.u_all[1], result.u_all[2])


def test_progress_callback(config):
    calls = []
    make_driver(config).run(progress=lambda step, t, elapsed: calls.append((step, t, elapsed)))
    assert [c[0] for c in calls] == [2, 4]
    assert_allclose([c[1] for c in calls], [0.02, 0.04])
    assert all(c[2] >= 0.0 for c in calls)


def test_cancel_from_progress_callback(config):
    token = CancellationToken()
    result = make_driver(config).run(cancel=token, progress=lambda *args: token.cancel())
    assert result.cancelled
    assert result.steps_completed == 2
    assert result.n_snapshots == 2


def test_cancel_before_start(config):
    token = CancellationToken()
    token.cancel()
    result = make_driver(config).run(cancel=token)
    assert result.cancelled
    assert result.steps_completed == 0
    assert result.n_snapshots == 1


def test_callable_cancel_signal(config):
    polls = []

    def stop_after_three():
        polls.append(1)
        return len(polls) > 3

    result = make_driver(config).run(cancel=stop_after_three)
    assert result.cancelled
    assert result.steps_completed == 3


@pytest.mark.parametrize("signal, expected", [
    (None, False),
    (lambda: False, False),
    (lambda: True, True),
])
def test_is_cancelled(signal, expected):
    assert is_cancelled(signal) is expected


def test_parallel_predict_run(block):
    config = make_config(parallel_predict=True)
    driver = make_driver(config, block)
    result = driver.run()
    assert result.steps_completed == config.total_steps
    assert driver.stepper.executor is None

    sequential = make_driver(make_config(), block).run()
    assert_allclose(result.u_all[-1], sequential.u_all[-1], rtol=1e-12, atol=1e-14)


def test_caller_executor_survives_sequential_run(block):
    config = make_config()
    driver = make_driver(config, block)
    with ThreadPoolExecutor(max_workers=2) as executor:
        driver.stepper.executor = executor
        result = driver.run()
        assert driver.stepper.executor is executor
        # still accepting work after the run
        assert executor.submit(sum, [1, 2]).result() == 3
    assert result.steps_completed == config.total_steps


def test_record_cadence_not_multiple_of_dt():
    config = make_config(t_simu=0.1, t_record=0.025)
    result = make_driver(config).run()
    # round(0.025 / 0.01) = 2 steps between snapshots, at most 10 // 2 + 1 snapshots
    assert result.steps == [0, 2, 4, 6, 8, 10]


def test_channel_flow_develops_parabolic_profile():
    u_max = 0.1
    config = make_config(mu=0.1, dt=0.05, t_simu=5.0, t_record=1.0)
    result = make_driver(config, inlet=parabolic_profile(u_max, config.height)).run()
    assert result.steps_completed == 100

    _, u, v, _ = result.snapshot()
    grid_u = make_stepper(config).grid_u
    y = grid_u.yy[1:-1]
    mid = config.nx // 2
    expected = 4.0 * u_max * y * (config.height - y) / config.height**2
    assert np.abs(u[1:-1, mid] - expected).max() < 0.05 * u_max
    assert np.abs(v).max() < 0.05 * u_max

    assert_allclose(u[1:-1, -1], u[1:-1, -2])
    inflow = config.h * u[1:-1, 0].sum()
    outflow = config.h * u[1:-1, -2].sum()
    assert outflow == pytest.approx(inflow, rel=1e-2)
