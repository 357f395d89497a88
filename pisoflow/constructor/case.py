"""
Case definition and setup.

Turns a case description (dict or YAML file) into a configured run: inlet
function, grid spacing, time step, Reynolds check, grids, solvers and the
time-loop driver.
"""

import logging
import math

from ..errors import ConfigurationError, ReynoldsLimitError
from ..preprocessing.geometry import as_obstacles
from ..preprocessing.grid import build_p_grid, build_u_grid, build_v_grid
from ..solver.linear_solvers import LinearSolverManager
from ..solver.piso import PisoStepper
from ..solver.time_loop import TimeLoopDriver
from .config import SimulationConfig, SolverSettings, load_case_file
from .inlet import build_inlet_function, inlet_velocity_bounds, parabolic_profile, uniform_profile

log = logging.getLogger(__name__)

CFL_NUMBERS = {"fast": 1.5, "medium": 0.75}
REYNOLDS_LIMIT = 300.0


def grid_spacing(length, height, node_scale):
    """Uniform spacing giving roughly ``node_scale`` pressure cells."""
    return math.sqrt(length * height / node_scale)


def select_time_step(h, u_max, speed="medium"):
    """
    CFL-limited time step rounded down to 1, 2 or 5 times a power of ten.

    Parameters:
    -----------
    h : float
        Grid spacing
    u_max : float
        Velocity bound for the whole domain
    speed : str
        'fast' (CFL 1.5) or 'medium' (CFL 0.75)
    """
    if u_max <= 0:
        raise ConfigurationError("Cannot pick a time step for a zero inlet velocity; set dt explicitly")
    if speed not in CFL_NUMBERS:
        log.warning("Unknown speed option '%s', using 'medium' (CFL=%.2f)", speed, CFL_NUMBERS["medium"])
        speed = "medium"

    dt_max = CFL_NUMBERS[speed] * h / u_max
    power = 10.0 ** math.floor(math.log10(dt_max))
    first_digit = math.floor(dt_max / power + 1e-9)
    if first_digit >= 5:
        return 5 * power
    if first_digit >= 2:
        return 2 * power
    return power


def check_reynolds(rho, u_char, mu, height, obstacles, limit=REYNOLDS_LIMIT):
    """
    Reject flows above the laminar limit.

    The length scale is the tallest obstacle, or the channel height when
    there are none.

    Returns:
    --------
    float
        The Reynolds number
    """
    length_scale = max((o.height for o in obstacles), default=0.0)
    if length_scale <= 1e-9:
        length_scale = height
    reynolds = rho * u_char * length_scale / mu if mu > 0 else math.inf
    if reynolds > limit:
        raise ReynoldsLimitError(reynolds, limit)
    return reynolds


def make_profile(inlet):
    """Inlet profile from the ``inlet`` section of a case description."""
    kind = inlet.get("profile", "parabolic")
    if kind == "parabolic":
        return lambda height: parabolic_profile(float(inlet["u_max"]), height)
    if kind == "uniform":
        return lambda height: uniform_profile(float(inlet["value"]))
    raise ConfigurationError(f"Unknown inlet profile '{kind}'. Choose 'parabolic' or 'uniform'.")


class SimulationCase:
    """
    A fully configured run.

    Parameters:
    -----------
    config : SimulationConfig
    obstacles : list of Obstacle
    inlet : callable
        ``inlet(t, y)`` prescribed inlet velocity
    """

    def __init__(self, config, obstacles, inlet):
        self.config = config
        self.obstacles = as_obstacles(obstacles)
        self.inlet = inlet

        self.grid_u = build_u_grid(config, self.obstacles)
        self.grid_v = build_v_grid(config, self.obstacles)
        self.grid_p = build_p_grid(config, self.obstacles)
        self.solvers = LinearSolverManager(config.solver, self.grid_p.n_nodes,
                                           self.grid_p.poisson_matrix)
        self.stepper = PisoStepper(config, self.grid_u, self.grid_v, self.grid_p,
                                   inlet, self.solvers)
        self.driver = TimeLoopDriver(config, self.stepper)
        log.info("Grid %dx%d cells, h=%.4g m, dt=%.3g s, %d obstacle(s)",
                 config.nx, config.ny, config.h, config.dt, len(self.obstacles))

    @classmethod
    def from_dict(cls, case):
        """
        Resolve a case description into a run.

        Expected sections: ``domain`` (height, length, node_scale or h),
        ``fluid`` (rho, mu), ``inlet`` (profile, u_max/value, ramp, t_ramp),
        ``time`` (t_simu, t_record, dt or speed), optional ``walls``
        ('no-slip' or 'slip'), ``parallel``, ``solver`` and ``obstacles``
        (list of vertex lists).
        """
        domain, fluid, inlet_cfg, timing = case["domain"], case["fluid"], case["inlet"], case["time"]
        height = float(domain["height"])
        length = float(domain["length"])
        wall_mode = case.get("walls", "no-slip")
        obstacles = as_obstacles(case.get("obstacles"))

        t_ramp = float(inlet_cfg.get("t_ramp", 0.0))
        inlet = build_inlet_function(
            make_profile(inlet_cfg)(height),
            inlet_cfg.get("ramp", "none"), t_ramp, height, wall_mode,
        )
        t_simu = float(timing["t_simu"])
        u_inlet_max, u_all_max = inlet_velocity_bounds(inlet, height, t_simu, t_ramp)

        if "h" in domain:
            h = float(domain["h"])
        else:
            h = grid_spacing(length, height, float(domain["node_scale"]))

        rho, mu = float(fluid["rho"]), float(fluid["mu"])
        reynolds = check_reynolds(rho, u_inlet_max, mu, height, obstacles)
        log.info("Reynolds number %.1f", reynolds)

        if "dt" in timing:
            dt = float(timing["dt"])
        else:
            dt = select_time_step(h, u_all_max, timing.get("speed", "medium"))

        config = SimulationConfig(
            height=height,
            length=length,
            h=h,
            rho=rho,
            mu=mu,
            dt=dt,
            t_simu=t_simu,
            t_record=float(timing["t_record"]),
            wall_mode=wall_mode,
            parallel_predict=bool(case.get("parallel", False)),
            solver=SolverSettings(**case.get("solver", {})),
        )
        return cls(config, obstacles, inlet)

    @classmethod
    def from_yaml(cls, path):
        return cls.from_dict(load_case_file(path))

    def run(self, cancel=None, progress=None):
        """Run the time loop; see ``TimeLoopDriver.run``."""
        return self.driver.run(cancel=cancel, progress=progress)
