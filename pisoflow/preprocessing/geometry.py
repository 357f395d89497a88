"""
Obstacle geometry.

Obstacles are closed polygons in physical coordinates. The grid builders only
need an inside/outside test at node positions.
"""

import numpy as np
from matplotlib.path import Path


class Obstacle:
    """
    A solid obstacle bounded by a closed polygon.

    Parameters:
    -----------
    points : array_like, shape (n, 2)
        Polygon vertices (x, y) in metres. Closing the loop is optional.
    """

    def __init__(self, points):
        points = np.asarray(points, dtype=float)
        if points.ndim != 2 or points.shape[1] != 2 or points.shape[0] < 3:
            raise ValueError("An obstacle needs at least three (x, y) vertices")
        self.points = points
        self._path = Path(points, closed=False)

    @classmethod
    def rectangle(cls, x0, y0, x1, y1):
        return cls([(x0, y0), (x1, y0), (x1, y1), (x0, y1)])

    @classmethod
    def circle(cls, xc, yc, radius, n_points=64):
        theta = np.linspace(0.0, 2.0 * np.pi, n_points, endpoint=False)
        return cls(np.column_stack((xc + radius * np.cos(theta), yc + radius * np.sin(theta))))

    @property
    def x_extent(self):
        return float(self.points[:, 0].min()), float(self.points[:, 0].max())

    @property
    def y_extent(self):
        return float(self.points[:, 1].min()), float(self.points[:, 1].max())

    @property
    def height(self):
        y0, y1 = self.y_extent
        return y1 - y0

    def contains(self, x, y):
        """Inside test at arbitrary query points; returns a mask shaped like x."""
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        query = np.column_stack((x.ravel(), y.ravel()))
        return self._path.contains_points(query).reshape(x.shape)

    def __repr__(self):
        return f"Obstacle({len(self.points)} vertices, x={self.x_extent}, y={self.y_extent})"


def as_obstacles(items):
    """Accept Obstacle instances or raw vertex lists."""
    if items is None:
        return []
    return [item if isinstance(item, Obstacle) else Obstacle(item) for item in items]


def blocked_mask(obstacles, X, Y):
    """
    Union of the inside tests of all obstacles at the nodes (X, Y).

    Parameters:
    -----------
    obstacles : list of Obstacle
    X, Y : ndarray
        Node coordinates from ``np.meshgrid``

    Returns:
    --------
    ndarray of bool
        True where a node lies inside any obstacle
    """
    mask = np.zeros(np.shape(X), dtype=bool)
    for obstacle in obstacles:
        mask |= obstacle.contains(X, Y)
    return mask
