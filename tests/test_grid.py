import numpy as np
import pytest

from pisoflow.errors import GridClassificationError
from pisoflow.preprocessing.geometry import Obstacle
from pisoflow.preprocessing.grid import (
    OUTSIDE,
    PressureNode,
    VelocityNode,
    build_p_grid,
    build_u_grid,
    build_v_grid,
    classify,
)
from pisoflow.preprocessing.grid.base import shifted_index
from tests.helpers import make_config


@pytest.mark.parametrize("builder", [build_u_grid, build_v_grid, build_p_grid],
                         ids=["u", "v", "p"])
def test_every_node_has_exactly_one_category(builder, obstacles):
    grid = builder(make_config(), obstacles)
    counts = sum((grid.tags == t).astype(int) for t in grid.node_types)
    assert np.all(counts == 1)


def test_grid_shapes(config):
    nx, ny = config.nx, config.ny
    assert build_u_grid(config, []).shape == (ny + 2, nx + 1)
    assert build_v_grid(config, []).shape == (ny + 1, nx + 2)
    assert build_p_grid(config, []).shape == (ny, nx)


def test_node_coordinates(config):
    u = build_u_grid(config, [])
    v = build_v_grid(config, [])
    p = build_p_grid(config, [])
    np.testing.assert_allclose(u.xx[[0, -1]], [0.0, config.length])
    np.testing.assert_allclose(u.yy[[0, -1]], [-0.05, config.height + 0.05])
    np.testing.assert_allclose(v.xx[[0, -1]], [-0.05, config.length + 0.05])
    np.testing.assert_allclose(v.yy[[0, -1]], [0.0, config.height])
    np.testing.assert_allclose(p.xx[[0, -1]], [0.05, config.length - 0.05])


def test_u_grid_boundary_layout(config):
    grid = build_u_grid(config, [])
    assert np.all(grid.tags[0, :] == VelocityNode.GHOST_BOTTOM)
    assert np.all(grid.tags[-1, :] == VelocityNode.GHOST_TOP)
    assert np.all(grid.tags[1:-1, 0] == VelocityNode.INLET)
    assert np.all(grid.tags[1:-1, -1] == VelocityNode.OUTLET)
    assert np.all(grid.tags[1, 1:-1] == VelocityNode.PDE_FIRST_ORDER)
    assert np.all(grid.tags[1:-1, 1] == VelocityNode.PDE_FIRST_ORDER)
    assert np.all(grid.tags[2:-2, 2:-2] == VelocityNode.PDE_SECOND_ORDER)


def test_v_grid_boundary_layout(config):
    grid = build_v_grid(config, [])
    assert np.all(grid.tags[0, :] == VelocityNode.WALL_BOTTOM)
    assert np.all(grid.tags[-1, :] == VelocityNode.WALL_TOP)
    assert np.all(grid.tags[1:-1, 0] == VelocityNode.GHOST_INLET)
    assert np.all(grid.tags[1:-1, -1] == VelocityNode.GHOST_OUTLET)
    assert np.all(grid.tags[2:-2, 2:-2] == VelocityNode.PDE_SECOND_ORDER)


def test_obstacle_creates_solid_and_immersed_nodes(config, block):
    obstacle = block[0]
    for builder in (build_u_grid, build_v_grid):
        grid = builder(config, block)
        solid = grid.tags == VelocityNode.SOLID
        immersed = grid.tags == VelocityNode.IMMERSED
        assert solid.any() and immersed.any()
        X, Y = grid.coordinates()
        assert np.all(obstacle.contains(X[solid], Y[solid]))
        assert not np.any(obstacle.contains(X[immersed], Y[immersed]))


def test_pde_stencils_never_reach_outside(obstacles):
    config = make_config()
    for builder in (build_u_grid, build_v_grid):
        grid = builder(config, obstacles)
        first = grid.tags == VelocityNode.PDE_FIRST_ORDER
        second = grid.tags == VelocityNode.PDE_SECOND_ORDER
        for d in ("s", "n", "w", "e"):
            assert np.all(grid.neighbours[d][first] != OUTSIDE)
        for d in ("ss", "s", "ww", "w", "e", "ee", "n", "nn"):
            assert np.all(grid.neighbours[d][second] != OUTSIDE)


def test_shifted_index_uses_sentinel_at_edges():
    index = np.arange(12).reshape(3, 4)
    south = shifted_index(index, -1, 0)
    east = shifted_index(index, 0, 1)
    assert np.all(south[0, :] == OUTSIDE)
    np.testing.assert_array_equal(south[1:, :], index[:-1, :])
    assert np.all(east[:, -1] == OUTSIDE)
    np.testing.assert_array_equal(east[:, :-1], index[:, 1:])


def test_classify_reports_uncovered_and_overlapping_nodes():
    a = np.array([[True, False], [True, False]])
    b = np.array([[True, False], [False, True]])
    with pytest.raises(GridClassificationError) as excinfo:
        classify("p", {PressureNode.SOLID: a, PressureNode.INTERIOR: b})
    # overlap at (0, 0), nothing at (0, 1)
    assert excinfo.value.n_offending == 2
    assert excinfo.value.grid_name == "p"


def test_single_cell_channel_is_rejected(config):
    # one-cell-high horizontal gap between two slabs
    obstacles = [
        Obstacle.rectangle(0.6, 0.0, 1.4, 0.4),
        Obstacle.rectangle(0.6, 0.5, 1.4, 1.0),
    ]
    with pytest.raises(GridClassificationError):
        build_p_grid(config, obstacles)


def test_constant_rows_cover_all_boundary_nodes(config, block):
    for builder in (build_u_grid, build_v_grid):
        grid = builder(config, block)
        pde = grid.mask(VelocityNode.PDE_FIRST_ORDER, VelocityNode.PDE_SECOND_ORDER)
        np.testing.assert_array_equal(np.unique(grid.const_rows), np.sort(grid.index[~pde]))


def test_slip_walls_use_zero_gradient_ghost_rows():
    grid = build_u_grid(make_config(wall_mode="slip"), [])
    ghost = grid.index[0, 3]
    vals = dict(zip(grid.const_cols[grid.const_rows == ghost],
                    grid.const_vals[grid.const_rows == ghost]))
    assert vals == {ghost: 1.0, grid.index[1, 3]: -1.0}
