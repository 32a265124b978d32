# runtime/linear_solver.py
"""Direct solvers used to factor the fairing system once and solve it per axis."""

from __future__ import annotations

import logging
import warnings
from abc import ABC, abstractmethod

import numpy as np
import scipy.linalg as sla
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from core.exceptions import InvalidParameterError

logger = logging.getLogger("mesh_fairing")


class BaseLinearSolver(ABC):
    """Factor a square matrix once and reuse the factorization for many solves."""

    def __init__(self, pivot_tolerance: float = 1e-14) -> None:
        self.pivot_tolerance = float(pivot_tolerance)

    @abstractmethod
    def factor(self, matrix) -> tuple[bool, float]:
        """Factor ``matrix``.

        Returns
        -------
        tuple[bool, float]
            Success flag and the smallest absolute pivot of the factorization
            (0.0 when the factorization itself failed).
        """

    @abstractmethod
    def solve(self, rhs: np.ndarray) -> tuple[bool, np.ndarray | None]:
        """Solve ``A x = rhs`` with the stored factorization.

        Returns the success flag and the solution (``None`` on failure).
        """

    def _pivots_ok(self, pivots: np.ndarray) -> tuple[bool, float]:
        abs_piv = np.abs(np.asarray(pivots, dtype=float))
        if abs_piv.size == 0:
            return False, 0.0
        smallest = float(abs_piv.min())
        largest = float(abs_piv.max())
        if not np.isfinite(smallest) or not np.isfinite(largest):
            return False, smallest
        if smallest == 0.0 or smallest <= self.pivot_tolerance * largest:
            return False, smallest
        return True, smallest

    def __repr__(self) -> str:  # pragma: no cover - simple utility
        return f"{self.__class__.__name__}(pivot_tolerance={self.pivot_tolerance!r})"


class SparseLUSolver(BaseLinearSolver):
    """SuperLU factorization of a CSC matrix (``scipy.sparse.linalg.splu``)."""

    def __init__(self, pivot_tolerance: float = 1e-14) -> None:
        super().__init__(pivot_tolerance)
        self._lu = None

    def factor(self, matrix) -> tuple[bool, float]:
        self._lu = None
        A = sp.csc_matrix(matrix, dtype=float)
        if A.shape[0] != A.shape[1]:
            raise InvalidParameterError(
                f"Matrix must be square, got shape {A.shape}.", parameter="matrix"
            )
        try:
            lu = spla.splu(A)
        except RuntimeError as exc:
            # SuperLU raises on exactly singular input.
            logger.debug("SuperLU factorization failed: %s", exc)
            return False, 0.0

        ok, smallest = self._pivots_ok(lu.U.diagonal())
        if not ok:
            logger.debug("SuperLU factorization rejected: smallest pivot %.3e", smallest)
            return False, smallest
        self._lu = lu
        return True, smallest

    def solve(self, rhs: np.ndarray) -> tuple[bool, np.ndarray | None]:
        if self._lu is None:
            return False, None
        x = self._lu.solve(np.asarray(rhs, dtype=float))
        if not np.all(np.isfinite(x)):
            return False, None
        return True, x


class DenseLUSolver(BaseLinearSolver):
    """LAPACK LU factorization of the densified matrix (small systems)."""

    def __init__(self, pivot_tolerance: float = 1e-14) -> None:
        super().__init__(pivot_tolerance)
        self._lu_piv = None

    def factor(self, matrix) -> tuple[bool, float]:
        self._lu_piv = None
        A = matrix.toarray() if sp.issparse(matrix) else np.asarray(matrix, dtype=float)
        if A.ndim != 2 or A.shape[0] != A.shape[1]:
            raise InvalidParameterError(
                f"Matrix must be square, got shape {A.shape}.", parameter="matrix"
            )
        with warnings.catch_warnings():
            # Singular input is reported through the pivot check below.
            warnings.simplefilter("ignore", sla.LinAlgWarning)
            try:
                lu, piv = sla.lu_factor(A)
            except (ValueError, np.linalg.LinAlgError) as exc:
                logger.debug("Dense LU factorization failed: %s", exc)
                return False, 0.0

        ok, smallest = self._pivots_ok(np.diag(lu))
        if not ok:
            logger.debug("Dense LU factorization rejected: smallest pivot %.3e", smallest)
            return False, smallest
        self._lu_piv = (lu, piv)
        return True, smallest

    def solve(self, rhs: np.ndarray) -> tuple[bool, np.ndarray | None]:
        if self._lu_piv is None:
            return False, None
        x = sla.lu_solve(self._lu_piv, np.asarray(rhs, dtype=float))
        if not np.all(np.isfinite(x)):
            return False, None
        return True, x


LINEAR_SOLVERS = {
    "sparse_lu": SparseLUSolver,
    "dense_lu": DenseLUSolver,
}


def get_linear_solver(name: str, pivot_tolerance: float = 1e-14) -> BaseLinearSolver:
    """Instantiate the solver registered under ``name``."""
    key = str(name).strip().lower()
    cls = LINEAR_SOLVERS.get(key)
    if cls is None:
        raise InvalidParameterError(
            f"Unknown linear solver '{name}'. Choose from: {', '.join(sorted(LINEAR_SOLVERS))}.",
            parameter="linear_solver",
            value=name,
        )
    return cls(pivot_tolerance=pivot_tolerance)


__all__ = [
    "BaseLinearSolver",
    "SparseLUSolver",
    "DenseLUSolver",
    "LINEAR_SOLVERS",
    "get_linear_solver",
]
