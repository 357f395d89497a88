"""
Shared staggered-grid machinery.

Every grid stores one integer tag per node, a row-major linear index, and
neighbour index maps that hold -1 where the neighbour would fall outside the
array.
"""

import numpy as np

from ...errors import GridClassificationError

# (row offset, column offset); row 0 is the bottom of the domain
NEIGHBOUR_OFFSETS = {
    "p": (0, 0),
    "s": (-1, 0),
    "n": (1, 0),
    "w": (0, -1),
    "e": (0, 1),
    "ss": (-2, 0),
    "nn": (2, 0),
    "ww": (0, -2),
    "ee": (0, 2),
}
OUTSIDE = -1


def shifted_index(index, di, dj):
    """
    Index of the node at offset (di, dj) from every node, -1 off the grid.
    """
    ny, nx = index.shape
    out = np.full_like(index, OUTSIDE)
    dst_r = slice(max(-di, 0), ny + min(-di, 0))
    src_r = slice(max(di, 0), ny + min(di, 0))
    dst_c = slice(max(-dj, 0), nx + min(-dj, 0))
    src_c = slice(max(dj, 0), nx + min(dj, 0))
    out[dst_r, dst_c] = index[src_r, src_c]
    return out


def shift_mask(mask, di, dj):
    """True where the node at offset (di, dj) exists and is True."""
    ny, nx = mask.shape
    out = np.zeros_like(mask, dtype=bool)
    dst_r = slice(max(-di, 0), ny + min(-di, 0))
    src_r = slice(max(di, 0), ny + min(di, 0))
    dst_c = slice(max(-dj, 0), nx + min(-dj, 0))
    src_c = slice(max(dj, 0), nx + min(dj, 0))
    out[dst_r, dst_c] = mask[src_r, src_c]
    return out


def any_neighbour(mask):
    """True where at least one of the four direct neighbours is True."""
    return (shift_mask(mask, -1, 0) | shift_mask(mask, 1, 0)
            | shift_mask(mask, 0, -1) | shift_mask(mask, 0, 1))


def classify(grid_name, category_masks, dtype=np.int8):
    """
    Turn one boolean mask per category into a single tag array.

    Parameters:
    -----------
    grid_name : str
        Used in the error message
    category_masks : dict
        Maps an IntEnum member to a boolean array; all arrays share a shape

    Returns:
    --------
    ndarray
        Tag value per node

    Raises:
    -------
    GridClassificationError
        If any node is covered by zero or several masks
    """
    masks = list(category_masks.items())
    shape = masks[0][1].shape
    counts = np.zeros(shape, dtype=np.int16)
    for _, mask in masks:
        counts += mask

    n_uncovered = int(np.count_nonzero(counts == 0))
    n_overlap = int(np.count_nonzero(counts > 1))
    if n_uncovered or n_overlap:
        raise GridClassificationError(
            grid_name, n_uncovered + n_overlap,
            f"{n_uncovered} uncovered, {n_overlap} with several categories",
        )

    tags = np.empty(shape, dtype=dtype)
    for tag, mask in masks:
        tags[mask] = tag
    return tags


class StaggeredGrid:
    """
    One of the three staggered grids (u, v or p).

    Attributes:
    -----------
    name : str
        'u', 'v' or 'p'
    h : float
        Uniform spacing
    xx, yy : ndarray
        Node coordinates along x (columns) and y (rows)
    tags : ndarray
        Category per node, values of ``node_types``
    index : ndarray
        Row-major linear index per node
    neighbours : dict
        Direction name -> index map with -1 outside the grid
    const_rows, const_cols, const_vals : ndarray
        Sparse triplets for the rows whose coefficients never change
    """

    def __init__(self, name, xx, yy, h, tags, node_types):
        self.name = name
        self.xx = np.asarray(xx, dtype=float)
        self.yy = np.asarray(yy, dtype=float)
        self.h = h
        self.tags = tags
        self.node_types = node_types

        ny, nx = tags.shape
        if (ny, nx) != (self.yy.size, self.xx.size):
            raise ValueError(f"{name}-grid tags {tags.shape} do not match coordinates "
                             f"({self.yy.size}, {self.xx.size})")
        self.index = np.arange(ny * nx, dtype=np.int64).reshape(ny, nx)
        self.neighbours = {d: shifted_index(self.index, di, dj)
                           for d, (di, dj) in NEIGHBOUR_OFFSETS.items()}

        self.const_rows = np.empty(0, dtype=np.int64)
        self.const_cols = np.empty(0, dtype=np.int64)
        self.const_vals = np.empty(0, dtype=float)

    @property
    def shape(self):
        return self.tags.shape

    @property
    def n_nodes(self):
        return self.tags.size

    def mask(self, *node_types):
        """Boolean mask of the nodes carrying any of the given tags."""
        return np.isin(self.tags, [int(t) for t in node_types])

    def count(self, node_type):
        return int(np.count_nonzero(self.tags == node_type))

    def coordinates(self):
        """Meshgrid of node positions, each shaped like the grid."""
        return np.meshgrid(self.xx, self.yy)

    def stencil(self, mask, directions, coeffs):
        """
        Sparse triplets for a stencil applied at every node in ``mask``.

        Parameters:
        -----------
        mask : ndarray of bool
            Rows to assemble
        directions : sequence of str
            Keys of ``neighbours``, one per stencil point
        coeffs : sequence
            One coefficient per stencil point, either a scalar or a full-grid
            array sampled at the masked nodes

        Returns:
        --------
        tuple of ndarray
            (rows, cols, vals)
        """
        rows = self.index[mask]
        n = rows.size
        all_rows, all_cols, all_vals = [], [], []
        for direction, coeff in zip(directions, coeffs):
            cols = self.neighbours[direction][mask]
            if np.any(cols == OUTSIDE):
                raise GridClassificationError(
                    self.name, np.count_nonzero(cols == OUTSIDE),
                    f"stencil point '{direction}' falls outside the grid",
                )
            if np.ndim(coeff) == 0:
                vals = np.full(n, float(coeff))
            else:
                vals = np.asarray(coeff, dtype=float)[mask]
            all_rows.append(rows)
            all_cols.append(cols)
            all_vals.append(vals)

        if not all_rows:
            return (np.empty(0, dtype=np.int64), np.empty(0, dtype=np.int64),
                    np.empty(0, dtype=float))
        return np.concatenate(all_rows), np.concatenate(all_cols), np.concatenate(all_vals)

    def add_constant_rows(self, mask, directions, coeffs):
        """Append fixed-coefficient rows to the precomputed triplets."""
        rows, cols, vals = self.stencil(mask, directions, coeffs)
        self.const_rows = np.concatenate((self.const_rows, rows))
        self.const_cols = np.concatenate((self.const_cols, cols))
        self.const_vals = np.concatenate((self.const_vals, vals))

    def summary(self):
        """Node count per category."""
        return {t.name.lower(): self.count(t) for t in self.node_types if self.count(t)}

    def __repr__(self):
        ny, nx = self.shape
        return f"StaggeredGrid('{self.name}', {ny}x{nx}, h={self.h:g})"
