import h5py
import numpy as np
import pytest
from numpy.testing import assert_allclose

from pisoflow.constructor.inlet import parabolic_profile
from pisoflow.postprocessing.simulation_result import (
    SimulationResult,
    pressure_at_nodes,
    velocity_at_nodes,
)
from pisoflow.solver.time_loop import TimeLoopDriver
from tests.helpers import make_config, make_stepper


@pytest.fixture
def result(block):
    config = make_config(t_simu=0.04)
    stepper = make_stepper(config, block, inlet=parabolic_profile(0.2, config.height))
    return TimeLoopDriver(config, stepper).run()


def test_velocity_at_nodes_shapes():
    u = np.ones((12, 21))
    v = np.zeros((11, 22))
    u_n, v_n = velocity_at_nodes(u, v)
    assert u_n.shape == v_n.shape == (11, 21)
    assert_allclose(u_n, 1.0)


def test_pressure_at_nodes():
    p = np.arange(12, dtype=float).reshape(3, 4)
    nodes = pressure_at_nodes(p)
    assert nodes.shape == (4, 5)
    assert nodes[1, 1] == pytest.approx(np.mean(p[:2, :2]))
    assert_allclose(nodes[:, -1], 0.0)
    assert_allclose(nodes[0, 1:4], nodes[1, 1:4])
    assert_allclose(nodes[1:3, 0], nodes[1:3, 1])


def test_snapshot_access(result):
    t, u, v, p = result.snapshot()
    assert t == pytest.approx(0.04)
    assert u.shape == (12, 21) and v.shape == (11, 22) and p.shape == (10, 20)
    assert result.snapshot(0)[0] == 0.0


def test_save_and_load(result, tmp_path):
    path = result.save(tmp_path / "out" / "run.h5")
    assert path.exists()

    with h5py.File(path, "r") as f:
        assert f["staggered/u"].shape == (3, 12, 21)
        assert f["nodes/u"].shape == (3, 11, 21)
        assert f["nodes/p"].dtype == np.float32
        assert set(f["tags"].keys()) == {"u", "v", "p"}

    loaded = SimulationResult.load(path)
    assert loaded.config == result.config
    assert loaded.times == pytest.approx(result.times)
    assert loaded.steps == result.steps
    assert loaded.steps_completed == result.steps_completed
    assert not loaded.cancelled
    assert_allclose(loaded.u_all[-1], result.u_all[-1])
    assert_allclose(loaded.p_all[-1], result.p_all[-1])


def test_plot_velocity_magnitude(result, tmp_path, block):
    import matplotlib
    matplotlib.use("Agg")
    target = tmp_path / "speed.png"
    result.plot_velocity_magnitude(filename=str(target), obstacles=block)
    assert target.exists()
