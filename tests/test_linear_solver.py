import numpy as np
import pytest
import scipy.sparse as sp

from core.exceptions import InvalidParameterError
from runtime.linear_solver import (
    DenseLUSolver,
    SparseLUSolver,
    get_linear_solver,
)

SOLVERS = [SparseLUSolver, DenseLUSolver]


def _spd_matrix():
    return sp.csc_matrix(
        np.array(
            [
                [4.0, -1.0, 0.0],
                [-1.0, 4.0, -1.0],
                [0.0, -1.0, 4.0],
            ]
        )
    )


@pytest.mark.parametrize("cls", SOLVERS)
def test_factor_once_solve_three_times(cls):
    A = _spd_matrix()
    solver = cls()
    ok, pivot = solver.factor(A)
    assert ok
    assert pivot > 0.0
    for b in np.eye(3):
        ok, x = solver.solve(b)
        assert ok
        assert np.allclose(A @ x, b)


@pytest.mark.parametrize("cls", SOLVERS)
def test_singular_matrix_is_rejected(cls):
    A = sp.csc_matrix(np.array([[1.0, 2.0], [2.0, 4.0]]))
    solver = cls()
    ok, pivot = solver.factor(A)
    assert not ok
    assert pivot == pytest.approx(0.0, abs=1e-12)
    assert solver.solve(np.ones(2)) == (False, None)


@pytest.mark.parametrize("cls", SOLVERS)
def test_zero_matrix_is_rejected(cls):
    A = sp.csc_matrix((2, 2), dtype=float)
    ok, _ = cls().factor(A)
    assert not ok


@pytest.mark.parametrize("cls", SOLVERS)
def test_pivot_tolerance_is_relative(cls):
    A = sp.csc_matrix(np.diag([1.0, 1e-10]))
    assert cls(pivot_tolerance=1e-14).factor(A)[0]
    assert not cls(pivot_tolerance=1e-8).factor(A)[0]


@pytest.mark.parametrize("cls", SOLVERS)
def test_solve_before_factor(cls):
    assert cls().solve(np.ones(3)) == (False, None)


@pytest.mark.parametrize("cls", SOLVERS)
def test_non_square_matrix(cls):
    with pytest.raises(InvalidParameterError):
        cls().factor(sp.csc_matrix(np.ones((2, 3))))


def test_get_linear_solver():
    solver = get_linear_solver("dense_lu", pivot_tolerance=1e-9)
    assert isinstance(solver, DenseLUSolver)
    assert solver.pivot_tolerance == 1e-9
    assert isinstance(get_linear_solver("SPARSE_LU"), SparseLUSolver)
    with pytest.raises(InvalidParameterError):
        get_linear_solver("cholmod")
