"""
u- and v-grid construction.

u lives on vertical cell faces with one ghost row below and above the domain;
v lives on horizontal faces with one ghost column left and right. Every node
gets exactly one ``VelocityNode`` tag:

u-grid precedence: wall ghost rows > solid > immersed > inlet > outlet > PDE
v-grid precedence: wall rows > inlet/outlet ghost columns > solid > immersed > PDE
"""

import logging
from enum import IntEnum

import numpy as np

from ..geometry import blocked_mask
from .base import StaggeredGrid, any_neighbour, classify

log = logging.getLogger(__name__)


class VelocityNode(IntEnum):
    SOLID = 0
    IMMERSED = 1
    INLET = 2
    OUTLET = 3
    GHOST_BOTTOM = 4
    GHOST_TOP = 5
    WALL_BOTTOM = 6
    WALL_TOP = 7
    GHOST_INLET = 8
    GHOST_OUTLET = 9
    PDE_FIRST_ORDER = 10
    PDE_SECOND_ORDER = 11


PDE_NODES = (VelocityNode.PDE_FIRST_ORDER, VelocityNode.PDE_SECOND_ORDER)
DIRICHLET_ZERO_NODES = (VelocityNode.SOLID, VelocityNode.IMMERSED)


def split_pde_order(pde):
    """
    Split solvable nodes into near-boundary (first order) and far-interior
    (second order) sets.
    """
    near_boundary = any_neighbour(~pde)
    return pde & near_boundary, pde & ~near_boundary


def _solid_and_immersed(solid, reserved):
    """Geometric solid nodes and fluid nodes touching them, minus reserved rows."""
    immersed = ~solid & any_neighbour(solid)
    return solid & ~reserved, immersed & ~reserved


def build_u_grid(config, obstacles):
    """
    Build the u-velocity grid, shape (ny + 2, nx + 1).

    Parameters:
    -----------
    config : SimulationConfig
    obstacles : list of Obstacle

    Returns:
    --------
    StaggeredGrid
    """
    h, nx, ny = config.h, config.nx, config.ny
    xx = h * np.arange(nx + 1)
    yy = h * (np.arange(ny + 2) - 0.5)
    X, Y = np.meshgrid(xx, yy)
    shape = X.shape

    ghost_bottom = np.zeros(shape, dtype=bool)
    ghost_bottom[0, :] = True
    ghost_top = np.zeros(shape, dtype=bool)
    ghost_top[-1, :] = True
    ghost = ghost_bottom | ghost_top

    solid, immersed = _solid_and_immersed(blocked_mask(obstacles, X, Y), ghost)
    taken = ghost | solid | immersed

    inlet = np.zeros(shape, dtype=bool)
    inlet[1:-1, 0] = True
    inlet &= ~taken
    outlet = np.zeros(shape, dtype=bool)
    outlet[1:-1, -1] = True
    outlet &= ~taken

    pde = ~(taken | inlet | outlet)
    first, second = split_pde_order(pde)

    tags = classify("u", {
        VelocityNode.GHOST_BOTTOM: ghost_bottom,
        VelocityNode.GHOST_TOP: ghost_top,
        VelocityNode.SOLID: solid,
        VelocityNode.IMMERSED: immersed,
        VelocityNode.INLET: inlet,
        VelocityNode.OUTLET: outlet,
        VelocityNode.PDE_FIRST_ORDER: first,
        VelocityNode.PDE_SECOND_ORDER: second,
    })
    grid = StaggeredGrid("u", xx, yy, h, tags, VelocityNode)

    grid.add_constant_rows(solid | immersed | inlet, ["p"], [1.0])
    if config.no_slip:
        # (u_ghost + u_interior) / 2 = 0
        wall = [0.5, 0.5]
    else:
        # u_ghost = u_interior
        wall = [1.0, -1.0]
    grid.add_constant_rows(ghost_bottom, ["p", "n"], wall)
    grid.add_constant_rows(ghost_top, ["p", "s"], wall)
    # du/dx = 0 at the outlet
    grid.add_constant_rows(outlet, ["p", "w"], [1.0, -1.0])

    log.debug("u-grid %s: %s", grid.shape, grid.summary())
    return grid


def build_v_grid(config, obstacles):
    """
    Build the v-velocity grid, shape (ny + 1, nx + 2).

    Parameters:
    -----------
    config : SimulationConfig
    obstacles : list of Obstacle

    Returns:
    --------
    StaggeredGrid
    """
    h, nx, ny = config.h, config.nx, config.ny
    xx = h * (np.arange(nx + 2) - 0.5)
    yy = h * np.arange(ny + 1)
    X, Y = np.meshgrid(xx, yy)
    shape = X.shape

    wall_bottom = np.zeros(shape, dtype=bool)
    wall_bottom[0, :] = True
    wall_top = np.zeros(shape, dtype=bool)
    wall_top[-1, :] = True
    ghost_inlet = np.zeros(shape, dtype=bool)
    ghost_inlet[1:-1, 0] = True
    ghost_outlet = np.zeros(shape, dtype=bool)
    ghost_outlet[1:-1, -1] = True
    reserved = wall_bottom | wall_top | ghost_inlet | ghost_outlet

    solid, immersed = _solid_and_immersed(blocked_mask(obstacles, X, Y), reserved)
    pde = ~(reserved | solid | immersed)
    first, second = split_pde_order(pde)

    tags = classify("v", {
        VelocityNode.WALL_BOTTOM: wall_bottom,
        VelocityNode.WALL_TOP: wall_top,
        VelocityNode.GHOST_INLET: ghost_inlet,
        VelocityNode.GHOST_OUTLET: ghost_outlet,
        VelocityNode.SOLID: solid,
        VelocityNode.IMMERSED: immersed,
        VelocityNode.PDE_FIRST_ORDER: first,
        VelocityNode.PDE_SECOND_ORDER: second,
    })
    grid = StaggeredGrid("v", xx, yy, h, tags, VelocityNode)

    grid.add_constant_rows(solid | immersed | wall_bottom | wall_top, ["p"], [1.0])
    # no transverse velocity on the inlet face
    grid.add_constant_rows(ghost_inlet, ["p", "e"], [0.5, 0.5])
    grid.add_constant_rows(ghost_outlet, ["p", "w"], [1.0, -1.0])

    log.debug("v-grid %s: %s", grid.shape, grid.summary())
    return grid
