from .base import StaggeredGrid, classify, OUTSIDE
from .velocity_grid import VelocityNode, build_u_grid, build_v_grid
from .pressure_grid import PressureNode, build_p_grid
