"""
Pressure grid and the constant pressure-correction Poisson matrix.

Pressure sits at cell centres. Domain walls, the inlet and obstacle faces are
zero-gradient (Neumann) faces; the outlet face carries p = 0 (Dirichlet).
Each fluid cell's stencil follows from which of its four faces are Neumann
or Dirichlet.
"""

import logging
from enum import IntEnum

import numpy as np
from scipy.sparse import csr_matrix

from ..geometry import blocked_mask
from .base import StaggeredGrid, classify, shift_mask

log = logging.getLogger(__name__)


class PressureNode(IntEnum):
    SOLID = 0
    INTERIOR = 1
    NEUMANN_S = 2
    NEUMANN_N = 3
    NEUMANN_W = 4
    NEUMANN_E = 5
    DIRICHLET_E = 6
    CORNER_SW = 7
    CORNER_NW = 8
    CORNER_SE = 9
    CORNER_NE = 10
    CORNER_S_DIRICHLET_E = 11
    CORNER_N_DIRICHLET_E = 12
    CONCAVE_NWS = 13
    CONCAVE_NES = 14
    CONCAVE_WNE = 15
    CONCAVE_WSE = 16


# Unscaled stencils; the matrix stores -coeff / h**2
POISSON_STENCILS = {
    PressureNode.SOLID: (("p",), (-1.0,)),
    PressureNode.INTERIOR: (("s", "w", "p", "e", "n"), (1.0, 1.0, -4.0, 1.0, 1.0)),
    PressureNode.NEUMANN_S: (("w", "p", "e", "n"), (1.0, -3.0, 1.0, 1.0)),
    PressureNode.NEUMANN_N: (("s", "w", "p", "e"), (1.0, 1.0, -3.0, 1.0)),
    PressureNode.NEUMANN_W: (("s", "p", "e", "n"), (1.0, -3.0, 1.0, 1.0)),
    PressureNode.NEUMANN_E: (("s", "w", "p", "n"), (1.0, 1.0, -3.0, 1.0)),
    PressureNode.DIRICHLET_E: (("s", "w", "p", "n"), (1.0, 1.0, -5.0, 1.0)),
    PressureNode.CORNER_SW: (("p", "e", "n"), (-2.0, 1.0, 1.0)),
    PressureNode.CORNER_NW: (("s", "p", "e"), (1.0, -2.0, 1.0)),
    PressureNode.CORNER_SE: (("w", "p", "n"), (1.0, -2.0, 1.0)),
    PressureNode.CORNER_NE: (("s", "w", "p"), (1.0, 1.0, -2.0)),
    PressureNode.CORNER_S_DIRICHLET_E: (("w", "p", "n"), (1.0, -4.0, 1.0)),
    PressureNode.CORNER_N_DIRICHLET_E: (("s", "w", "p"), (1.0, 1.0, -4.0)),
    PressureNode.CONCAVE_NWS: (("p", "e"), (-1.0, 1.0)),
    PressureNode.CONCAVE_NES: (("p", "w"), (-1.0, 1.0)),
    PressureNode.CONCAVE_WNE: (("p", "s"), (-1.0, 1.0)),
    PressureNode.CONCAVE_WSE: (("p", "n"), (-1.0, 1.0)),
}


def boundary_faces(solid):
    """
    Neumann/Dirichlet face flags of every pressure cell.

    Returns:
    --------
    dict
        'neumann_s', 'neumann_n', 'neumann_w', 'neumann_e', 'dirichlet_e'
    """
    fluid = ~solid
    shape = solid.shape
    bottom = np.zeros(shape, dtype=bool)
    bottom[0, :] = True
    top = np.zeros(shape, dtype=bool)
    top[-1, :] = True
    left = np.zeros(shape, dtype=bool)
    left[:, 0] = True
    right = np.zeros(shape, dtype=bool)
    right[:, -1] = True

    neumann_s = (bottom | (fluid & shift_mask(solid, -1, 0))) & fluid
    neumann_n = (top | (fluid & shift_mask(solid, 1, 0))) & fluid
    neumann_w = (left | (fluid & shift_mask(solid, 0, -1))) & fluid
    neumann_e = (fluid & shift_mask(solid, 0, 1)) & fluid
    dirichlet_e = right & ~neumann_e & fluid
    return {
        "neumann_s": neumann_s,
        "neumann_n": neumann_n,
        "neumann_w": neumann_w,
        "neumann_e": neumann_e,
        "dirichlet_e": dirichlet_e,
    }


def pressure_categories(solid):
    """One mask per ``PressureNode`` selected by the face signature."""
    faces = boundary_faces(solid)
    ns, nn = faces["neumann_s"], faces["neumann_n"]
    nw, ne = faces["neumann_w"], faces["neumann_e"]
    de = faces["dirichlet_e"]
    fluid = ~solid

    n_neumann = ns.astype(int) + nn + nw + ne
    n_dirichlet = de.astype(int)

    def signature(k_neumann, k_dirichlet):
        return fluid & (n_neumann == k_neumann) & (n_dirichlet == k_dirichlet)

    one, two, three = signature(1, 0), signature(2, 0), signature(3, 0)
    mixed = signature(1, 1)
    return {
        PressureNode.SOLID: solid,
        PressureNode.INTERIOR: signature(0, 0),
        PressureNode.NEUMANN_S: one & ns,
        PressureNode.NEUMANN_N: one & nn,
        PressureNode.NEUMANN_W: one & nw,
        PressureNode.NEUMANN_E: one & ne,
        PressureNode.DIRICHLET_E: signature(0, 1),
        PressureNode.CORNER_SW: two & ns & nw,
        PressureNode.CORNER_NW: two & nn & nw,
        PressureNode.CORNER_SE: two & ns & ne,
        PressureNode.CORNER_NE: two & nn & ne,
        PressureNode.CORNER_S_DIRICHLET_E: mixed & ns,
        PressureNode.CORNER_N_DIRICHLET_E: mixed & nn,
        PressureNode.CONCAVE_NWS: three & nn & nw & ns,
        PressureNode.CONCAVE_NES: three & nn & ne & ns,
        PressureNode.CONCAVE_WNE: three & nw & nn & ne,
        PressureNode.CONCAVE_WSE: three & nw & ns & ne,
    }


def build_p_grid(config, obstacles):
    """
    Build the pressure grid, shape (ny, nx), and its Poisson matrix.

    The matrix is stored on the grid as ``poisson_matrix`` (CSR). Rows hold
    -(stencil)/h**2, so the operator is symmetric positive definite on the
    fluid cells; solid cells get an identity-like row.

    Parameters:
    -----------
    config : SimulationConfig
    obstacles : list of Obstacle

    Returns:
    --------
    StaggeredGrid
    """
    h, nx, ny = config.h, config.nx, config.ny
    xx = h * (np.arange(nx) + 0.5)
    yy = h * (np.arange(ny) + 0.5)
    X, Y = np.meshgrid(xx, yy)

    solid = blocked_mask(obstacles, X, Y)
    tags = classify("p", pressure_categories(solid))
    grid = StaggeredGrid("p", xx, yy, h, tags, PressureNode)

    rows, cols, vals = [], [], []
    for node_type, (directions, coeffs) in POISSON_STENCILS.items():
        r, c, v = grid.stencil(tags == node_type, directions, coeffs)
        rows.append(r)
        cols.append(c)
        vals.append(v)
    rows = np.concatenate(rows)
    cols = np.concatenate(cols)
    vals = -np.concatenate(vals) / h**2

    grid.const_rows, grid.const_cols, grid.const_vals = rows, cols, vals
    grid.poisson_matrix = csr_matrix((vals, (rows, cols)), shape=(grid.n_nodes, grid.n_nodes))

    log.debug("p-grid %s: %s", grid.shape, grid.summary())
    return grid
