"""
Preconditioned Krylov solves for the momentum and pressure systems.

Momentum systems (u, v) change every step and use BiCGSTAB with an ILUTP
preconditioner whose factors are reused until the iteration history says
they have gone stale. The pressure matrix never changes, so its incomplete
Cholesky factor is computed once and used with CG for the whole run.
"""

import logging
from dataclasses import dataclass, field

import numpy as np
from scipy.sparse.linalg import LinearOperator, bicgstab, cg, spilu

from ..errors import ConfigurationError
from .incomplete_cholesky import IncompleteCholesky

log = logging.getLogger(__name__)

MOMENTUM_TAGS = ("u", "v")
PRESSURE_TAG = "dp"
WARN_ITERATION_FRACTION = 0.8


def ilu_drop_tolerance(n_cells):
    """ILU drop tolerance by grid size; stricter for larger grids."""
    if n_cells >= 1e5:
        return 5e-6
    if n_cells >= 1e4:
        return 5e-5
    return 5e-4


@dataclass
class PreconditionerState:
    """
    Factors and reuse bookkeeping of one preconditioner.

    Attributes:
    -----------
    tag : str
        'u', 'v' or 'dp'
    factors : object
        Factorization exposing ``solve(r)``; None until first computed
    history : list of int
        Iteration counts of the solves since the last renewal
    drop_tol : float
        ILU drop tolerance (momentum only)
    increase_ratio, maxmin_ratio : float
        Renewal thresholds on last/previous and last/minimum iterations
    usage_cap : int
        Renew once the history reaches this length
    failure_trigger : int
        Renew when the last solve took at least this many iterations
    """
    tag: str
    factors: object = None
    history: list = field(default_factory=list)
    drop_tol: float = 5e-4
    increase_ratio: float = 1.6
    maxmin_ratio: float = 2.5
    usage_cap: int = 20
    failure_trigger: int = 200

    def should_renew(self):
        if self.factors is None:
            return True
        if len(self.history) >= self.usage_cap:
            return True
        if len(self.history) >= 2:
            last, prev = self.history[-1], self.history[-2]
            lowest = min(self.history)
            if last >= self.failure_trigger:
                return True
            if prev > 0 and last / prev > self.increase_ratio:
                return True
            if lowest > 0 and last / lowest > self.maxmin_ratio:
                return True
        return False

    def record(self, iterations, renewed):
        if renewed:
            self.history = [iterations]
        else:
            self.history.append(iterations)


class _IterationCounter:
    def __init__(self):
        self.count = 0

    def __call__(self, xk):
        self.count += 1


class LinearSolverManager:
    """
    Owns the three preconditioners and performs all linear solves of a run.

    Parameters:
    -----------
    settings : SolverSettings
        Tolerance, iteration cap and renewal thresholds
    n_cells : int
        Number of pressure cells, selects the ILU drop tolerance
    poisson_matrix : sparse matrix
        Constant pressure-correction matrix, factorized here once
    """

    def __init__(self, settings, n_cells, poisson_matrix):
        self.settings = settings
        drop_tol = ilu_drop_tolerance(n_cells)
        self.preconditioners = {
            tag: PreconditionerState(
                tag=tag,
                drop_tol=drop_tol,
                increase_ratio=settings.increase_ratio,
                maxmin_ratio=settings.maxmin_ratio,
                usage_cap=settings.usage_cap,
                failure_trigger=settings.failure_trigger,
            )
            for tag in MOMENTUM_TAGS
        }
        self.preconditioners[PRESSURE_TAG] = PreconditionerState(
            tag=PRESSURE_TAG,
            factors=IncompleteCholesky(poisson_matrix, settings.ic_diag_shift),
        )
        log.debug("ILU drop tolerance %.0e for %d cells", drop_tol, n_cells)

    def __getitem__(self, tag):
        return self.preconditioners[tag]

    def solve(self, A, b, x0, state):
        """
        Solve A x = b starting from the field x0.

        Parameters:
        -----------
        A : sparse matrix
        b : ndarray
            Flattened right-hand side
        x0 : ndarray
            Initial guess shaped like the target grid
        state : PreconditionerState
            Preconditioner of the system; updated in place for momentum solves

        Returns:
        --------
        tuple
            (solution reshaped like x0, state)
        """
        shape = x0.shape
        guess = np.ravel(x0).astype(float)
        max_iter, tol = self.settings.max_iter, self.settings.tol
        counter = _IterationCounter()

        if state.tag in MOMENTUM_TAGS:
            renew = state.should_renew()
            if renew:
                state.factors = spilu(A.tocsc(), drop_tol=state.drop_tol)
            M = LinearOperator(A.shape, matvec=state.factors.solve, dtype=np.float64)
            x, info = bicgstab(A, b, x0=guess, rtol=tol, atol=0.0, maxiter=max_iter,
                               M=M, callback=counter)
            state.record(counter.count, renew)
        elif state.tag == PRESSURE_TAG:
            M = state.factors.as_linear_operator()
            x, info = cg(A, b, x0=guess, rtol=tol, atol=0.0, maxiter=max_iter,
                         M=M, callback=counter)
        else:
            raise ConfigurationError(
                f"Unknown solver type '{state.tag}'. Must be 'u', 'v' or 'dp'."
            )

        iterations = counter.count
        if info != 0 or iterations > WARN_ITERATION_FRACTION * max_iter:
            log.warning("%s solver - flag: %d, iterations: %d/%d (%.1f%%)",
                        state.tag, info, iterations, max_iter, 100.0 * iterations / max_iter)
        return x.reshape(shape), state
