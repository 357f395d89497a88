"""
Momentum equation assembly on the staggered grids.

Implicit Euler in time, central differences for diffusion, and hybrid upwind
convection: near-boundary rows use a 5-point first-order upwind stencil,
far-interior rows a 9-point stencil with second-order upwind terms. The
convecting velocities are frozen at the previous time level.
"""

import numpy as np
from scipy.sparse import coo_matrix

from ..preprocessing.grid.velocity_grid import VelocityNode, DIRICHLET_ZERO_NODES

FIRST_ORDER_POINTS = ("s", "w", "p", "e", "n")
SECOND_ORDER_POINTS = ("ss", "s", "ww", "w", "p", "e", "ee", "n", "nn")


def interpolate_v_to_u(v, no_slip=True):
    """
    v values at u-node positions.

    Four-point average inside the domain; the ghost rows reflect the first
    interior row, with a sign flip under no-slip walls.
    """
    interior = 0.25 * (v[:-1, :-1] + v[:-1, 1:] + v[1:, :-1] + v[1:, 1:])
    sign = -1.0 if no_slip else 1.0
    return np.vstack((sign * interior[:1, :], interior, sign * interior[-1:, :]))


def interpolate_u_to_v(u):
    """
    u values at v-node positions.

    Four-point average inside the domain; the inlet ghost column extrapolates
    linearly through the prescribed inlet face value, the outlet ghost column
    repeats its neighbour.
    """
    interior = 0.25 * (u[:-1, :-1] + u[:-1, 1:] + u[1:, :-1] + u[1:, 1:])
    inlet_face = 0.5 * (u[1:, 0] + u[:-1, 0])
    ghost_inlet = 2.0 * inlet_face - interior[:, 0]
    ghost_outlet = interior[:, -1]
    return np.column_stack((ghost_inlet, interior, ghost_outlet))


def upwind_coefficients(vel_x, vel_y, dt, mu, h):
    """
    Stencil coefficients of one implicit momentum step.

    Parameters:
    -----------
    vel_x, vel_y : ndarray
        Convecting velocity components at the nodes of the target grid
    dt, mu, h : float
        Time step, dynamic viscosity, grid spacing

    Returns:
    --------
    tuple of dict
        (first_order, second_order), each mapping a stencil point name to a
        full-grid coefficient array
    """
    x_pos, x_neg, x_abs = np.maximum(vel_x, 0.0), np.minimum(vel_x, 0.0), np.abs(vel_x)
    y_pos, y_neg, y_abs = np.maximum(vel_y, 0.0), np.minimum(vel_y, 0.0), np.abs(vel_y)
    mu_h2 = mu / h**2
    inv_h = 1.0 / h
    inv_2h = 0.5 / h

    first = {
        "s": -mu_h2 - y_pos * inv_h,
        "w": -mu_h2 - x_pos * inv_h,
        "p": 1.0 / dt + x_abs * inv_h + y_abs * inv_h + 4.0 * mu_h2,
        "e": -mu_h2 + x_neg * inv_h,
        "n": -mu_h2 + y_neg * inv_h,
    }
    second = {
        "ss": y_pos * inv_2h,
        "s": -mu_h2 - 2.0 * y_pos * inv_h,
        "ww": x_pos * inv_2h,
        "w": -mu_h2 - 2.0 * x_pos * inv_h,
        "p": 1.0 / dt + 3.0 * x_abs * inv_2h + 3.0 * y_abs * inv_2h + 4.0 * mu_h2,
        "e": -mu_h2 + 2.0 * x_neg * inv_h,
        "ee": -x_neg * inv_2h,
        "n": -mu_h2 + 2.0 * y_neg * inv_h,
        "nn": -y_neg * inv_2h,
    }
    return first, second


def momentum_matrix(grid, vel_x, vel_y, dt, mu):
    """
    Sparse matrix of one momentum component: constant boundary rows from the
    grid plus the velocity-dependent PDE rows.
    """
    first, second = upwind_coefficients(vel_x, vel_y, dt, mu, grid.h)
    r1, c1, v1 = grid.stencil(grid.tags == VelocityNode.PDE_FIRST_ORDER,
                              FIRST_ORDER_POINTS, [first[k] for k in FIRST_ORDER_POINTS])
    r2, c2, v2 = grid.stencil(grid.tags == VelocityNode.PDE_SECOND_ORDER,
                              SECOND_ORDER_POINTS, [second[k] for k in SECOND_ORDER_POINTS])

    rows = np.concatenate((grid.const_rows, r1, r2))
    cols = np.concatenate((grid.const_cols, c1, c2))
    vals = np.concatenate((grid.const_vals, v1, v2))
    n = grid.n_nodes
    return coo_matrix((vals, (rows, cols)), shape=(n, n)).tocsr()


def assemble_u_momentum(t, u, v, p, inlet, grid_u, config):
    """
    Linear system for the predicted u velocity.

    Parameters:
    -----------
    t : float
        Time level being solved for
    u, v, p : ndarray
        Fields of the previous time step
    inlet : callable
        ``inlet(t, y)`` prescribed inlet velocity
    grid_u : StaggeredGrid
    config : SimulationConfig

    Returns:
    --------
    tuple
        (A, b) with A in CSR format and b flattened row-major
    """
    h, dt = config.h, config.dt
    v_on_u = interpolate_v_to_u(v, config.no_slip)
    A = momentum_matrix(grid_u, u, v_on_u, dt, config.mu)

    b = np.zeros(grid_u.shape)
    inlet_nodes = grid_u.tags == VelocityNode.INLET
    rows, _ = np.nonzero(inlet_nodes)
    b[inlet_nodes] = np.broadcast_to(inlet(t, grid_u.yy[rows]), rows.shape)

    grad_p_x = (p[:, 1:] - p[:, :-1]) / h
    b[1:-1, 1:-1] = u[1:-1, 1:-1] / dt - grad_p_x / config.rho
    b[grid_u.mask(*DIRICHLET_ZERO_NODES)] = 0.0
    return A, b.ravel()


def assemble_v_momentum(u, v, p, grid_v, config):
    """
    Linear system for the predicted v velocity.

    Parameters:
    -----------
    u, v, p : ndarray
        Fields of the previous time step
    grid_v : StaggeredGrid
    config : SimulationConfig

    Returns:
    --------
    tuple
        (A, b) with A in CSR format and b flattened row-major
    """
    h, dt = config.h, config.dt
    u_on_v = interpolate_u_to_v(u)
    A = momentum_matrix(grid_v, u_on_v, v, dt, config.mu)

    b = np.zeros(grid_v.shape)
    grad_p_y = (p[1:, :] - p[:-1, :]) / h
    b[1:-1, 1:-1] = v[1:-1, 1:-1] / dt - grad_p_y / config.rho
    b[grid_v.mask(*DIRICHLET_ZERO_NODES)] = 0.0
    return A, b.ravel()
