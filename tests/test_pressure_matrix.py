"""
Tests for the constant pressure-correction Poisson matrix.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from pisoflow.preprocessing.geometry import Obstacle
from pisoflow.preprocessing.grid import PressureNode, build_p_grid
from pisoflow.preprocessing.grid.pressure_grid import POISSON_STENCILS
from tests.helpers import make_config


def unscaled(grid):
    """Matrix back in stencil units (before the -1/h**2 scaling)."""
    return (-grid.h**2 * grid.poisson_matrix).toarray()


def test_interior_rows_sum_to_zero(obstacles):
    grid = build_p_grid(make_config(), obstacles)
    A = unscaled(grid)
    interior = grid.index[grid.tags == PressureNode.INTERIOR]
    assert interior.size > 0
    assert_allclose(A[interior].sum(axis=1), 0.0, atol=1e-12)


def test_neumann_rows_sum_to_zero(obstacles):
    grid = build_p_grid(make_config(), obstacles)
    A = unscaled(grid)
    neumann_only = [t for t in PressureNode
                    if t not in (PressureNode.SOLID, PressureNode.DIRICHLET_E,
                                 PressureNode.CORNER_S_DIRICHLET_E,
                                 PressureNode.CORNER_N_DIRICHLET_E)]
    rows = grid.index[grid.mask(*neumann_only)]
    assert_allclose(A[rows].sum(axis=1), 0.0, atol=1e-12)


def test_solid_rows_are_identity(block):
    grid = build_p_grid(make_config(), block)
    A = unscaled(grid)
    solid = grid.index[grid.tags == PressureNode.SOLID]
    assert solid.size > 0
    for row in solid:
        expected = np.zeros(grid.n_nodes)
        expected[row] = -1.0
        assert_allclose(A[row], expected)


def test_outlet_rows_have_augmented_diagonal(config):
    grid = build_p_grid(config, [])
    A = unscaled(grid)
    row = grid.index[config.ny // 2, -1]
    assert grid.tags.flat[row] == PressureNode.DIRICHLET_E
    assert A[row, row] == pytest.approx(-5.0)
    assert A[row].sum() == pytest.approx(-2.0)


def test_domain_corners(config):
    grid = build_p_grid(config, [])
    assert grid.tags[0, 0] == PressureNode.CORNER_SW
    assert grid.tags[-1, 0] == PressureNode.CORNER_NW
    assert grid.tags[0, -1] == PressureNode.CORNER_S_DIRICHLET_E
    assert grid.tags[-1, -1] == PressureNode.CORNER_N_DIRICHLET_E


def test_obstacle_faces_get_neumann_stencils(config, block):
    grid = build_p_grid(config, block)
    # cells touching the block on one side only
    for tag in (PressureNode.NEUMANN_S, PressureNode.NEUMANN_N,
                PressureNode.NEUMANN_W, PressureNode.NEUMANN_E):
        assert grid.count(tag) > 0


def test_concave_pocket_uses_two_point_stencil(config):
    # C-shaped block whose one-cell pocket opens to the east
    obstacles = [Obstacle([(0.6, 0.3), (1.0, 0.3), (1.0, 0.4), (0.9, 0.4),
                           (0.9, 0.5), (1.0, 0.5), (1.0, 0.6), (0.6, 0.6)])]
    grid = build_p_grid(config, obstacles)
    assert grid.count(PressureNode.CONCAVE_NWS) == 1
    row = grid.index[grid.tags == PressureNode.CONCAVE_NWS][0]
    A = unscaled(grid)
    assert_allclose(A[row, [row, row + 1]], [-1.0, 1.0])
    assert np.count_nonzero(A[row]) == 2


def test_matrix_is_symmetric_positive_definite(obstacles):
    grid = build_p_grid(make_config(), obstacles)
    A = grid.poisson_matrix.toarray()
    assert_allclose(A, A.T)
    assert np.linalg.eigvalsh(A).min() > 0


def test_every_category_has_a_stencil():
    assert set(POISSON_STENCILS) == set(PressureNode)
