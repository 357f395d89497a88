"""Shared builders for the test suite."""

import numpy as np

from pisoflow.constructor.config import SimulationConfig
from pisoflow.preprocessing.geometry import Obstacle
from pisoflow.preprocessing.grid import build_p_grid, build_u_grid, build_v_grid
from pisoflow.solver.linear_solvers import LinearSolverManager
from pisoflow.solver.piso import PisoStepper


def make_config(**overrides):
    params = dict(
        height=1.0,
        length=2.0,
        h=0.1,
        rho=1.0,
        mu=0.01,
        dt=0.01,
        t_simu=0.05,
        t_record=0.02,
        wall_mode="no-slip",
    )
    params.update(overrides)
    return SimulationConfig(**params)


def zero_inlet(t, y):
    return np.zeros_like(np.asarray(y, dtype=float))


def make_stepper(config, obstacles=(), inlet=zero_inlet):
    obstacles = list(obstacles)
    grid_u = build_u_grid(config, obstacles)
    grid_v = build_v_grid(config, obstacles)
    grid_p = build_p_grid(config, obstacles)
    solvers = LinearSolverManager(config.solver, grid_p.n_nodes, grid_p.poisson_matrix)
    return PisoStepper(config, grid_u, grid_v, grid_p, inlet, solvers)


OBSTACLE_SETS = {
    "none": [],
    "one": [Obstacle.rectangle(0.62, 0.32, 0.98, 0.68)],
    "overlapping": [
        Obstacle.rectangle(0.52, 0.22, 0.88, 0.58),
        Obstacle.rectangle(0.72, 0.42, 1.08, 0.78),
    ],
    "adjacent": [
        Obstacle.rectangle(0.52, 0.22, 0.78, 0.48),
        Obstacle.rectangle(0.78, 0.48, 1.08, 0.78),
    ],
    "circle": [Obstacle.circle(1.0, 0.5, 0.21)],
}


