"""
Zero fill-in incomplete Cholesky preconditioner.

scipy ships incomplete LU but no incomplete Cholesky, so the factorization
and the two triangular solves are small numba kernels working on the CSR
arrays of the lower triangle.
"""

import numpy as np
from numba import njit
from scipy.sparse import tril
from scipy.sparse.linalg import LinearOperator


@njit(cache=True)
def ic0_factor(indptr, indices, data, diag_shift):
    """
    In-place IC(0) of a lower-triangular CSR matrix with sorted indices and
    the diagonal stored last in every row.

    The diagonal is scaled by (1 + diag_shift) before factorizing.

    Returns:
    --------
    int
        -1 on success, otherwise the row where a non-positive pivot appeared
    """
    n = indptr.shape[0] - 1
    for i in range(n):
        row_start = indptr[i]
        diag_pos = indptr[i + 1] - 1
        for pk in range(row_start, diag_pos):
            k = indices[pk]
            s = data[pk]
            a = row_start
            b = indptr[k]
            b_end = indptr[k + 1] - 1
            while a < pk and b < b_end:
                ca = indices[a]
                cb = indices[b]
                if ca == cb:
                    s -= data[a] * data[b]
                    a += 1
                    b += 1
                elif ca < cb:
                    a += 1
                else:
                    b += 1
            data[pk] = s / data[indptr[k + 1] - 1]

        d = data[diag_pos] * (1.0 + diag_shift)
        for pj in range(row_start, diag_pos):
            d -= data[pj] * data[pj]
        if d <= 0.0:
            return i
        data[diag_pos] = np.sqrt(d)
    return -1


@njit(cache=True)
def forward_substitution(indptr, indices, data, rhs):
    """Solve L x = rhs."""
    n = indptr.shape[0] - 1
    x = np.empty(n)
    for i in range(n):
        s = rhs[i]
        diag_pos = indptr[i + 1] - 1
        for p in range(indptr[i], diag_pos):
            s -= data[p] * x[indices[p]]
        x[i] = s / data[diag_pos]
    return x


@njit(cache=True)
def backward_substitution_transposed(indptr, indices, data, rhs):
    """Solve L^T x = rhs using the row storage of L."""
    n = indptr.shape[0] - 1
    x = rhs.copy()
    for i in range(n - 1, -1, -1):
        diag_pos = indptr[i + 1] - 1
        x[i] = x[i] / data[diag_pos]
        for p in range(indptr[i], diag_pos):
            x[indices[p]] -= data[p] * x[i]
    return x


class IncompleteCholesky:
    """
    Incomplete Cholesky factor L with A ~ L L^T.

    Parameters:
    -----------
    A : sparse matrix
        Symmetric positive definite matrix with a full diagonal
    diag_shift : float
        Relative diagonal compensation, A + diag_shift * diag(A)

    Raises:
    -------
    numpy.linalg.LinAlgError
        If a non-positive pivot appears
    """

    def __init__(self, A, diag_shift=0.0):
        lower = tril(A, format="csr")
        lower.sum_duplicates()
        lower.sort_indices()
        n = lower.shape[0]
        diag_pos = lower.indptr[1:] - 1
        if np.any(lower.indptr[1:] == lower.indptr[:-1]) or np.any(lower.indices[diag_pos] != np.arange(n)):
            raise np.linalg.LinAlgError("Incomplete Cholesky needs a stored diagonal in every row")

        self.indptr = lower.indptr.astype(np.int64)
        self.indices = lower.indices.astype(np.int64)
        self.data = lower.data.astype(np.float64)
        self.shape = lower.shape
        self.diag_shift = diag_shift

        failed_row = ic0_factor(self.indptr, self.indices, self.data, float(diag_shift))
        if failed_row >= 0:
            raise np.linalg.LinAlgError(
                f"Incomplete Cholesky breakdown at row {failed_row} (diag_shift={diag_shift})"
            )

    def solve(self, r):
        """Apply (L L^T)^-1 to a vector."""
        r = np.ascontiguousarray(np.ravel(r), dtype=np.float64)
        y = forward_substitution(self.indptr, self.indices, self.data, r)
        return backward_substitution_transposed(self.indptr, self.indices, self.data, y)

    def as_linear_operator(self):
        return LinearOperator(self.shape, matvec=self.solve, dtype=np.float64)
