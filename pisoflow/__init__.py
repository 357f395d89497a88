"""
pisoflow: transient 2D incompressible flow past immersed obstacles.

PISO time stepping on a uniform staggered grid, with obstacles given as
closed polygons.
"""

from .errors import (
    PisoflowError,
    ConfigurationError,
    GridClassificationError,
    ReynoldsLimitError,
)
from .constructor.config import SimulationConfig, SolverSettings
from .constructor.case import SimulationCase
from .preprocessing.geometry import Obstacle
from .solver.time_loop import TimeLoopDriver, CancellationToken
from .postprocessing.simulation_result import SimulationResult

__version__ = "0.1.0"
