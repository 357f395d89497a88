"""
Class to store, export and inspect the recorded trajectory of a run.
"""

import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path

import h5py
import numpy as np

log = logging.getLogger(__name__)


def velocity_at_nodes(u, v):
    """
    Average the staggered velocities onto the cell-corner nodes.

    Parameters:
    -----------
    u : ndarray, shape (ny + 2, nx + 1)
    v : ndarray, shape (ny + 1, nx + 2)

    Returns:
    --------
    tuple of ndarray
        (u_nodes, v_nodes), both shaped (ny + 1, nx + 1)
    """
    return 0.5 * (u[:-1, :] + u[1:, :]), 0.5 * (v[:, :-1] + v[:, 1:])


def pressure_at_nodes(p):
    """
    Corner-node pressure from cell-centred pressure.

    Interior corners average their four cells; edges copy the nearest interior
    value and the outlet column is held at zero.
    """
    ny, nx = p.shape
    nodes = np.zeros((ny + 1, nx + 1), dtype=p.dtype)
    nodes[1:ny, 1:nx] = 0.25 * (p[:-1, :-1] + p[:-1, 1:] + p[1:, :-1] + p[1:, 1:])
    nodes[0, 1:nx] = nodes[1, 1:nx]
    nodes[ny, 1:nx] = nodes[ny - 1, 1:nx]
    nodes[1:ny, 0] = nodes[1:ny, 1]
    nodes[0, 0] = nodes[1, 1]
    nodes[ny, 0] = nodes[ny - 1, 1]
    nodes[:, nx] = 0.0
    return nodes


class SimulationResult:
    """
    Recorded snapshots of a run plus the metadata needed to interpret them.

    Attributes:
    -----------
    config : SimulationConfig
    grid_u, grid_v, grid_p : StaggeredGrid or None
        Grids of the run (None after ``load``)
    u_all, v_all, p_all : list of ndarray
        One staggered field per recorded instant, the rest state first
    times, steps : list
        Simulated time and step index of every snapshot
    steps_completed, total_steps : int
    cancelled : bool
        True if the run was stopped before ``total_steps``
    solve_time : float
        Wall-clock seconds spent in the time loop
    """

    def __init__(self, config, grid_u=None, grid_v=None, grid_p=None, total_steps=0):
        self.config = config
        self.grid_u = grid_u
        self.grid_v = grid_v
        self.grid_p = grid_p
        self.u_all = []
        self.v_all = []
        self.p_all = []
        self.times = []
        self.steps = []
        self.total_steps = total_steps
        self.steps_completed = 0
        self.cancelled = False
        self.solve_time = 0.0
        self.final_state = None

    def record(self, step, t, u, v, p):
        self.steps.append(step)
        self.times.append(t)
        self.u_all.append(u.copy())
        self.v_all.append(v.copy())
        self.p_all.append(p.copy())

    @property
    def n_snapshots(self):
        return len(self.times)

    def snapshot(self, index=-1):
        """(t, u, v, p) of one recorded instant."""
        return self.times[index], self.u_all[index], self.v_all[index], self.p_all[index]

    def node_coordinates(self):
        """Meshgrid of the cell-corner nodes used by the exported fields."""
        h = self.config.h
        xx = h * np.arange(self.config.nx + 1)
        yy = h * np.arange(self.config.ny + 1)
        return np.meshgrid(xx, yy)

    def save(self, filename):
        """
        Write the trajectory to an HDF5 file.

        Staggered fields are stored as written by the solver; node-averaged
        float32 copies are stored alongside for plotting tools.

        Parameters:
        -----------
        filename : str or Path
            Target file; parent directories are created

        Returns:
        --------
        Path
            The written file
        """
        path = Path(filename)
        path.parent.mkdir(parents=True, exist_ok=True)

        u_all = np.stack(self.u_all)
        v_all = np.stack(self.v_all)
        p_all = np.stack(self.p_all)
        nodes = [velocity_at_nodes(u, v) for u, v in zip(self.u_all, self.v_all)]

        with h5py.File(path, "w") as f:
            f.attrs["save_time"] = datetime.now().isoformat()
            f.attrs["steps_completed"] = self.steps_completed
            f.attrs["total_steps"] = self.total_steps
            f.attrs["cancelled"] = self.cancelled
            f.attrs["solve_time"] = self.solve_time

            cfg = f.create_group("config")
            for key, value in asdict(self.config).items():
                if isinstance(value, dict):
                    sub = cfg.create_group(key)
                    for k, val in value.items():
                        sub.attrs[k] = val
                else:
                    cfg.attrs[key] = value

            f.create_dataset("times", data=np.asarray(self.times))
            f.create_dataset("steps", data=np.asarray(self.steps))

            raw = f.create_group("staggered")
            raw.create_dataset("u", data=u_all, compression="gzip")
            raw.create_dataset("v", data=v_all, compression="gzip")
            raw.create_dataset("p", data=p_all, compression="gzip")

            node = f.create_group("nodes")
            X, Y = self.node_coordinates()
            node.create_dataset("x", data=X)
            node.create_dataset("y", data=Y)
            node.create_dataset("u", data=np.stack([n[0] for n in nodes]).astype(np.float32),
                                compression="gzip")
            node.create_dataset("v", data=np.stack([n[1] for n in nodes]).astype(np.float32),
                                compression="gzip")
            node.create_dataset("p", data=np.stack([pressure_at_nodes(p) for p in self.p_all])
                                .astype(np.float32), compression="gzip")

            if self.grid_p is not None:
                tags = f.create_group("tags")
                for grid in (self.grid_u, self.grid_v, self.grid_p):
                    tags.create_dataset(grid.name, data=grid.tags)

        log.info("Results saved to %s", path)
        return path

    @classmethod
    def load(cls, filename):
        """Read a file written by ``save``; grids are not restored."""
        from ..constructor.config import SimulationConfig, SolverSettings

        with h5py.File(filename, "r") as f:
            cfg = {k: _python_scalar(v) for k, v in f["config"].attrs.items()}
            solver = {k: _python_scalar(v) for k, v in f["config"]["solver"].attrs.items()}
            config = SimulationConfig(solver=SolverSettings(**solver), **cfg)

            result = cls(config, total_steps=int(f.attrs["total_steps"]))
            result.steps_completed = int(f.attrs["steps_completed"])
            result.cancelled = bool(f.attrs["cancelled"])
            result.solve_time = float(f.attrs["solve_time"])
            result.times = [float(t) for t in f["times"][()]]
            result.steps = [int(s) for s in f["steps"][()]]
            result.u_all = list(f["staggered"]["u"][()])
            result.v_all = list(f["staggered"]["v"][()])
            result.p_all = list(f["staggered"]["p"][()])
        return result

    def plot_velocity_magnitude(self, index=-1, filename=None, show=False, obstacles=None):
        """
        Contour plot of |u| at one snapshot.

        Parameters:
        -----------
        index : int
            Snapshot index
        filename : str, optional
            If provided, saves the figure to this filename
        show : bool
            Whether to display the plot
        obstacles : list of Obstacle, optional
            Outlines drawn on top of the field
        """
        import matplotlib.pyplot as plt

        t, u, v, _ = self.snapshot(index)
        u_n, v_n = velocity_at_nodes(u, v)
        X, Y = self.node_coordinates()

        fig, ax = plt.subplots(figsize=(10, 10 * self.config.height / self.config.length + 1))
        cf = ax.contourf(X, Y, np.hypot(u_n, v_n), levels=50, cmap="viridis")
        fig.colorbar(cf, ax=ax, label="|u| [m/s]")
        for obstacle in obstacles or []:
            ax.fill(obstacle.points[:, 0], obstacle.points[:, 1], color="0.3")
        ax.set_aspect("equal")
        ax.set_xlabel("x [m]")
        ax.set_ylabel("y [m]")
        ax.set_title(f"Velocity magnitude, t = {t:.3f} s")

        if filename:
            fig.savefig(filename, dpi=150, bbox_inches="tight")
        if show:
            plt.show()
        else:
            plt.close(fig)
        return fig


def _python_scalar(value):
    if isinstance(value, bytes):
        return value.decode()
    if isinstance(value, np.generic):
        return value.item()
    return value
