import numpy as np
import pytest

from core.exceptions import UndefinedWeightError
from geometry.weights import BaseWeights, CotangentWeights, UniformWeights
from runtime.assembly import SparseSystemBuilder, assemble_system, sum_weight
from runtime.selection import build_vertex_id_map
from sample_meshes import disk_mesh


def _dense_operator(mesh, weights):
    """Dense ``diag(w_i) (diag(sum w_ij) - W)`` over all mesh vertices."""
    ids = sorted(mesh.vertices)
    n = len(ids)
    M = np.zeros((n, n))
    for v in ids:
        w_i = weights.weight_vertex(v)
        for h in mesh.incident_halfedges(v):
            w_ij = weights.weight_edge(h)
            M[v, v] += w_i * w_ij
            M[v, mesh.opposite_vertex(h)] -= w_i * w_ij
    return M


@pytest.mark.parametrize(
    "weights_cls, depth",
    [(UniformWeights, 1), (UniformWeights, 3), (CotangentWeights, 2)],
)
def test_rows_match_matrix_power(weights_cls, depth):
    mesh = disk_mesh(inner_z=0.3, outer_z=-0.2)
    weights = weights_cls(mesh)
    free = list(range(7))
    fixed = list(range(7, 19))
    vertex_id_map = build_vertex_id_map(free)

    builder = assemble_system(mesh, weights, free, vertex_id_map, depth)

    Md = np.linalg.matrix_power(_dense_operator(mesh, weights), depth)
    P = mesh.positions_array()
    assert np.allclose(builder.to_csc().toarray(), Md[np.ix_(free, free)])
    assert np.allclose(builder.rhs, -Md[np.ix_(free, fixed)] @ P[fixed])


def test_row_sums_vanish_with_all_neighbours_free():
    mesh = disk_mesh()
    free = list(range(19))
    builder = assemble_system(
        mesh, UniformWeights(mesh), free, build_vertex_id_map(free), 2
    )
    assert np.allclose(builder.to_csc().sum(axis=1), 0.0)
    assert np.allclose(builder.rhs, 0.0)


def test_single_center_coefficient():
    mesh = disk_mesh()
    builder = assemble_system(mesh, UniformWeights(mesh), [0], {0: 0}, 1)
    # Valence six umbrella: 6 on the diagonal, ring positions on the rhs.
    assert builder.coefficient(0, 0) == pytest.approx(6.0)
    assert np.allclose(builder.rhs[0], mesh.positions_array(range(1, 7)).sum(axis=0))


def test_coefficients_accumulate():
    builder = SparseSystemBuilder(2)
    builder.add_coef(0, 1, 1.5)
    builder.add_coef(0, 1, -0.5)
    builder.add_constant(1, np.array([1.0, 2.0, 3.0]))
    builder.add_constant(1, np.array([1.0, 0.0, 0.0]))
    assert builder.coefficient(0, 1) == pytest.approx(1.0)
    assert builder.coefficient(1, 1) == 0.0
    assert builder.nnz == 1
    assert np.allclose(builder.rhs[1], [2.0, 2.0, 3.0])
    assert builder.to_csc().shape == (2, 2)


def test_sum_weight():
    mesh = disk_mesh()
    assert sum_weight(mesh, UniformWeights(mesh), 0) == pytest.approx(6.0)
    assert sum_weight(mesh, UniformWeights(mesh), 7) == pytest.approx(3.0)


class _NanWeights(BaseWeights):
    def weight_vertex(self, v_id):
        return 1.0

    def weight_edge(self, halfedge):
        return float("nan")


def test_non_finite_weight_raises():
    mesh = disk_mesh()
    with pytest.raises(UndefinedWeightError):
        assemble_system(mesh, _NanWeights(mesh), [0], {0: 0}, 1)
