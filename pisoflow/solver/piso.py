"""
PISO (Pressure Implicit with Splitting of Operators) time step.

One step runs Predict -> Correct1 -> Correct2 -> Commit in strict order.
Only the two predictor solves are independent of each other; they may run on
an executor and are joined before the first correction.
"""

import logging
from dataclasses import dataclass

import numpy as np

from ..assembly.momentum import assemble_u_momentum, assemble_v_momentum
from ..assembly.pressure_correction import (
    correct_velocity,
    first_correction_rhs,
    second_correction_rhs,
)

log = logging.getLogger(__name__)


@dataclass
class FlowState:
    """
    Committed fields after a time step.

    dp1 and dp2 keep the last pressure corrections; they seed the next step's
    pressure solves.
    """
    u: np.ndarray
    v: np.ndarray
    p: np.ndarray
    dp1: np.ndarray
    dp2: np.ndarray

    @classmethod
    def at_rest(cls, config):
        nx, ny = config.nx, config.ny
        return cls(
            u=np.zeros((ny + 2, nx + 1)),
            v=np.zeros((ny + 1, nx + 2)),
            p=np.zeros((ny, nx)),
            dp1=np.zeros((ny, nx)),
            dp2=np.zeros((ny, nx)),
        )


class PisoStepper:
    """
    Advances the flow by one PISO step.

    Parameters:
    -----------
    config : SimulationConfig
    grid_u, grid_v, grid_p : StaggeredGrid
        Grids of the run; the pressure grid carries ``poisson_matrix``
    inlet : callable
        ``inlet(t, y)`` prescribed inlet velocity
    solvers : LinearSolverManager
    executor : concurrent.futures.Executor, optional
        When given, the u and v predictor solves run as two tasks on it
    """

    def __init__(self, config, grid_u, grid_v, grid_p, inlet, solvers, executor=None):
        self.config = config
        self.grid_u = grid_u
        self.grid_v = grid_v
        self.grid_p = grid_p
        self.inlet = inlet
        self.solvers = solvers
        self.executor = executor

    def _solve_u(self, t, u, v, p):
        A, b = assemble_u_momentum(t, u, v, p, self.inlet, self.grid_u, self.config)
        u_star, _ = self.solvers.solve(A, b, u, self.solvers["u"])
        return u_star

    def _solve_v(self, u, v, p):
        A, b = assemble_v_momentum(u, v, p, self.grid_v, self.config)
        v_star, _ = self.solvers.solve(A, b, v, self.solvers["v"])
        return v_star

    def predict(self, t, state):
        """Momentum predictor with the previous pressure frozen as a source."""
        if self.executor is None:
            u_star = self._solve_u(t, state.u, state.v, state.p)
            v_star = self._solve_v(state.u, state.v, state.p)
            return u_star, v_star

        future_u = self.executor.submit(self._solve_u, t, state.u, state.v, state.p)
        future_v = self.executor.submit(self._solve_v, state.u, state.v, state.p)
        return future_u.result(), future_v.result()

    def _pressure_solve(self, b, dp_prev):
        A = self.grid_p.poisson_matrix
        dp, _ = self.solvers.solve(A, b, dp_prev, self.solvers["dp"])
        return dp

    def correct1(self, u_star, v_star, dp1_prev):
        b = first_correction_rhs(u_star, v_star, self.grid_p, self.config)
        dp1 = self._pressure_solve(b, dp1_prev)
        u_2star, v_2star = correct_velocity(u_star, v_star, dp1, self.grid_u, self.grid_v, self.config)
        return u_2star, v_2star, dp1

    def correct2(self, u_star, v_star, u_2star, v_2star, dp2_prev):
        b = second_correction_rhs(u_star, v_star, u_2star, v_2star, self.grid_p, self.config)
        dp2 = self._pressure_solve(b, dp2_prev)
        u_3star, v_3star = correct_velocity(u_2star, v_2star, dp2, self.grid_u, self.grid_v, self.config)
        return u_3star, v_3star, dp2

    def step(self, t, state):
        """
        Advance ``state`` to time ``t``.

        Parameters:
        -----------
        t : float
            Time level of the new state
        state : FlowState
            Committed state of the previous step

        Returns:
        --------
        FlowState
            The new committed state; ``state`` itself is not modified
        """
        u_star, v_star = self.predict(t, state)
        u_2star, v_2star, dp1 = self.correct1(u_star, v_star, state.dp1)
        u_new, v_new, dp2 = self.correct2(u_star, v_star, u_2star, v_2star, state.dp2)
        return FlowState(u=u_new, v=v_new, p=state.p + dp1 + dp2, dp1=dp1, dp2=dp2)
