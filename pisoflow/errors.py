"""
Exception types raised by pisoflow.

Only pre-run problems are raised. Iterative solver trouble during the time
loop is logged and the run continues.
"""


class PisoflowError(Exception):
    """Base class for all pisoflow errors."""


class ConfigurationError(PisoflowError, ValueError):
    """Invalid or unrecognized configuration value."""


class GridClassificationError(PisoflowError):
    """
    A grid node ended up with zero or several categories.

    Attributes:
    -----------
    grid_name : str
        Which staggered grid failed ('u', 'v' or 'p')
    n_offending : int
        Number of nodes violating the one-category-per-node rule
    """

    def __init__(self, grid_name, n_offending, detail=""):
        self.grid_name = grid_name
        self.n_offending = int(n_offending)
        message = (f"{grid_name}-grid classification failed: "
                   f"{self.n_offending} node(s) without exactly one category")
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class ReynoldsLimitError(PisoflowError):
    """Reynolds number above the supported laminar limit."""

    def __init__(self, reynolds, limit):
        self.reynolds = reynolds
        self.limit = limit
        super().__init__(
            f"Reynolds number {reynolds:.0f} exceeds the allowed maximum of {limit:.0f}. "
            "Lower the inlet velocity or density, or increase the viscosity."
        )
