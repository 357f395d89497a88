"""
Run configuration.

A single immutable value carries every physical and numerical parameter into
the grid builders, assemblers and solvers.
"""

import math
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from ..errors import ConfigurationError

WALL_MODES = ("no-slip", "slip")
REQUIRED_SECTIONS = ("domain", "fluid", "inlet", "time")


@dataclass(frozen=True)
class SolverSettings:
    """
    Iterative solver and preconditioner-renewal settings.

    Parameters:
    -----------
    max_iter : int
        Iteration cap for every linear solve
    tol : float
        Relative residual tolerance
    increase_ratio : float
        Renew the ILU factors when last/previous iteration count exceeds this
    maxmin_ratio : float
        Renew when last/smallest recorded iteration count exceeds this
    usage_cap : int
        Forced renewal once this many solves reused the same factors
    failure_trigger : int
        Renew when the last solve took at least this many iterations
    ic_diag_shift : float
        Relative diagonal shift for the incomplete Cholesky factorization
    """
    max_iter: int = 200
    tol: float = 5e-4
    increase_ratio: float = 1.6
    maxmin_ratio: float = 2.5
    usage_cap: int = 20
    failure_trigger: int = 200
    ic_diag_shift: float = 1e-6

    def __post_init__(self):
        if self.max_iter <= 0 or self.usage_cap <= 0 or self.failure_trigger <= 0:
            raise ConfigurationError("max_iter, usage_cap and failure_trigger must be positive")
        if not 0 < self.tol < 1:
            raise ConfigurationError(f"Solver tolerance must lie in (0, 1), got {self.tol}")
        if self.increase_ratio <= 1 or self.maxmin_ratio <= 1:
            raise ConfigurationError("Renewal ratios must be greater than 1")
        if self.ic_diag_shift < 0:
            raise ConfigurationError("ic_diag_shift must be non-negative")


@dataclass(frozen=True)
class SimulationConfig:
    """
    Physical and numerical parameters of one run.

    Parameters:
    -----------
    height, length : float
        Domain extents [m]
    h : float
        Uniform grid spacing [m]
    rho, mu : float
        Density [kg/m^3] and dynamic viscosity [Pa s]
    dt : float
        Time step [s]
    t_simu : float
        Simulated time [s]
    t_record : float
        Snapshot cadence [s]
    wall_mode : str
        'no-slip' or 'slip' for the top and bottom walls
    parallel_predict : bool
        Solve the u and v predictor systems on two worker threads
    solver : SolverSettings
        Linear solver settings
    """
    height: float
    length: float
    h: float
    rho: float
    mu: float
    dt: float
    t_simu: float
    t_record: float
    wall_mode: str = "no-slip"
    parallel_predict: bool = False
    solver: SolverSettings = field(default_factory=SolverSettings)

    def __post_init__(self):
        if self.wall_mode not in WALL_MODES:
            raise ConfigurationError(
                f"Unknown wall condition '{self.wall_mode}'. Choose one of {WALL_MODES}."
            )
        for name in ("height", "length", "h", "rho", "dt", "t_simu", "t_record"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")
        if self.mu < 0:
            raise ConfigurationError(f"mu must be non-negative, got {self.mu}")
        if self.nx < 3 or self.ny < 3:
            raise ConfigurationError(
                f"Grid too coarse ({self.nx}x{self.ny} cells); at least 3 cells per direction are needed"
            )

    @property
    def nx(self):
        """Number of pressure cells along x."""
        return int(round(self.length / self.h))

    @property
    def ny(self):
        """Number of pressure cells along y."""
        return int(round(self.height / self.h))

    @property
    def no_slip(self):
        return self.wall_mode == "no-slip"

    @property
    def total_steps(self):
        return int(math.ceil(round(self.t_simu / self.dt, 9)))

    @property
    def record_interval(self):
        return max(1, int(round(self.t_record / self.dt)))


def load_case_file(path):
    """
    Read a YAML case description.

    Parameters:
    -----------
    path : str or Path
        YAML file with ``domain``, ``fluid``, ``inlet`` and ``time`` sections
        and optional ``solver`` and ``obstacles`` sections

    Returns:
    --------
    dict
        The parsed case description
    """
    path = Path(path)
    with path.open("r") as f:
        case = yaml.safe_load(f)

    if not isinstance(case, dict):
        raise ConfigurationError(f"{path}: expected a mapping at the top level")
    missing = [s for s in REQUIRED_SECTIONS if s not in case]
    if missing:
        raise ConfigurationError(f"{path}: missing section(s) {', '.join(missing)}")
    return case
