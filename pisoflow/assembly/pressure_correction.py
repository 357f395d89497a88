"""
Right-hand sides of the two PISO pressure corrections and the velocity
update that applies a correction.

Both right-hand sides follow the sign convention of the stored Poisson
matrix, which holds the negated Laplacian.
"""

import numpy as np

from ..preprocessing.grid.pressure_grid import PressureNode
from ..preprocessing.grid.velocity_grid import VelocityNode, DIRICHLET_ZERO_NODES


def divergence(u, v, h):
    """Face-flux divergence of (u, v) at every pressure cell."""
    return ((u[1:-1, 1:] - u[1:-1, :-1]) + (v[1:, 1:-1] - v[:-1, 1:-1])) / h


def first_correction_rhs(u_star, v_star, grid_p, config):
    """
    b = -(rho/dt) div(u*, v*), zero in solid cells.

    Returns:
    --------
    ndarray
        Flattened right-hand side for the first correction
    """
    b = -(config.rho / config.dt) * divergence(u_star, v_star, config.h)
    b[grid_p.tags == PressureNode.SOLID] = 0.0
    return b.ravel()


def velocities_at_centres(u, v):
    u_c = 0.5 * (u[1:-1, 1:] + u[1:-1, :-1])
    v_c = 0.5 * (v[1:, 1:-1] + v[:-1, 1:-1])
    return u_c, v_c


def convection(u, v, h):
    """(u.grad) u evaluated at pressure cell centres."""
    u_c, v_c = velocities_at_centres(u, v)

    du_dx = (u[1:-1, 1:] - u[1:-1, :-1]) / h
    du_dy = (u[2:, :] - u[:-2, :]) / (2 * h)
    du_dy = 0.5 * (du_dy[:, :-1] + du_dy[:, 1:])

    dv_dy = (v[1:, 1:-1] - v[:-1, 1:-1]) / h
    dv_dx = (v[:, 2:] - v[:, :-2]) / (2 * h)
    dv_dx = 0.5 * (dv_dx[:-1, :] + dv_dx[1:, :])

    return u_c * du_dx + v_c * du_dy, u_c * dv_dx + v_c * dv_dy


def _laplacian(f, h):
    return (f[1:-1, :-2] + f[1:-1, 2:] + f[:-2, 1:-1] + f[2:, 1:-1] - 4.0 * f[1:-1, 1:-1]) / h**2


def diffusion(u, v, mu, h, no_slip=True):
    """
    mu * Laplacian of the cell-centred velocities.

    The centred fields are padded with one ghost layer: linear extrapolation
    through the inlet value and zero gradient at the outlet for u; wall
    reflection (sign-flipped under no-slip) for u; sign-flipped reflection at
    the walls and the inlet, zero gradient at the outlet for v.
    """
    u_c, v_c = velocities_at_centres(u, v)

    u_pad = np.column_stack((2.0 * u[1:-1, 0] - u_c[:, 0], u_c, u_c[:, -1]))
    wall = -1.0 if no_slip else 1.0
    u_pad = np.vstack((wall * u_pad[:1, :], u_pad, wall * u_pad[-1:, :]))

    v_pad = np.vstack((-v_c[:1, :], v_c, -v_c[-1:, :]))
    v_pad = np.column_stack((-v_pad[:, 0], v_pad, v_pad[:, -1]))

    return mu * _laplacian(u_pad, h), mu * _laplacian(v_pad, h)


def momentum_operator(u, v, mu, h, no_slip=True):
    """L(u, v) = diffusion - convection at the pressure cell centres."""
    conv_u, conv_v = convection(u, v, h)
    diff_u, diff_v = diffusion(u, v, mu, h, no_slip)
    return diff_u - conv_u, diff_v - conv_v


def cell_divergence(f_x, f_y, h):
    """
    Divergence of a cell-centred vector field.

    Central differences inside, second-order one-sided differences on the
    first and last row/column.
    """
    dfx = np.empty_like(f_x)
    dfy = np.empty_like(f_y)

    dfx[:, 1:-1] = (f_x[:, 2:] - f_x[:, :-2]) / (2 * h)
    dfx[:, 0] = (-3.0 * f_x[:, 0] + 4.0 * f_x[:, 1] - f_x[:, 2]) / (2 * h)
    dfx[:, -1] = (3.0 * f_x[:, -1] - 4.0 * f_x[:, -2] + f_x[:, -3]) / (2 * h)

    dfy[1:-1, :] = (f_y[2:, :] - f_y[:-2, :]) / (2 * h)
    dfy[0, :] = (-3.0 * f_y[0, :] + 4.0 * f_y[1, :] - f_y[2, :]) / (2 * h)
    dfy[-1, :] = (3.0 * f_y[-1, :] - 4.0 * f_y[-2, :] + f_y[-3, :]) / (2 * h)
    return dfx + dfy


def second_correction_rhs(u_star, v_star, u_2star, v_2star, grid_p, config):
    """
    b = -rho div(L(u**, v**) - L(u*, v*)), zero in solid cells.

    Returns:
    --------
    ndarray
        Flattened right-hand side for the second correction
    """
    h, mu, no_slip = config.h, config.mu, config.no_slip
    lu_1, lv_1 = momentum_operator(u_star, v_star, mu, h, no_slip)
    lu_2, lv_2 = momentum_operator(u_2star, v_2star, mu, h, no_slip)

    b = -config.rho * cell_divergence(lu_2 - lu_1, lv_2 - lv_1, h)
    b[grid_p.tags == PressureNode.SOLID] = 0.0
    return b.ravel()


def enforce_velocity_boundaries(u, v, grid_u, grid_v, no_slip=True):
    """
    Re-impose the boundary relations that the interior correction ignores.

    Modifies ``u`` and ``v`` in place.
    """
    u[grid_u.mask(*DIRICHLET_ZERO_NODES)] = 0.0
    v[grid_v.mask(*DIRICHLET_ZERO_NODES)] = 0.0

    # du/dx = 0 at the outlet
    outlet = grid_u.tags[:, -1] == VelocityNode.OUTLET
    u[outlet, -1] = u[outlet, -2]

    wall = -1.0 if no_slip else 1.0
    u[0, :] = wall * u[1, :]
    u[-1, :] = wall * u[-2, :]

    v[1:-1, 0] = -v[1:-1, 1]
    v[1:-1, -1] = v[1:-1, -2]


def correct_velocity(u, v, dp, grid_u, grid_v, config):
    """
    Apply a pressure correction: u <- u - (dt/rho) grad(dp).

    Only interior faces are corrected; every boundary relation is then
    re-imposed from the corrected interior values.

    Returns:
    --------
    tuple of ndarray
        Corrected copies (u, v)
    """
    h = config.h
    scale = config.dt / config.rho
    u_new = u.copy()
    v_new = v.copy()

    u_new[1:-1, 1:-1] -= scale * (dp[:, 1:] - dp[:, :-1]) / h
    v_new[1:-1, 1:-1] -= scale * (dp[1:, :] - dp[:-1, :]) / h

    enforce_velocity_boundaries(u_new, v_new, grid_u, grid_v, config.no_slip)
    return u_new, v_new
