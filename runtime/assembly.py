# runtime/assembly.py
"""Assembly of the fairing system ``A X = B``.

Each free vertex contributes one row: the expansion of ``(L_w)^d`` at that
vertex, where ``L_w`` is the weighted Laplacian

    (L_w f)(v) = w_i(v) * sum_h w_ij(h) * (f(v) - f(target(h)))

over the outgoing halfedges ``h`` of ``v``. Terms that land on free vertices
are matrix coefficients; terms that land on fixed vertices are known values
and move to the right-hand side.

The expansion revisits vertices (a neighbour's neighbour is often the vertex
itself), so coefficients are accumulated, never overwritten. The stencil has
roughly ``valence**d`` paths; ``d`` stays at 3 or below.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from typing import Dict, Iterable

import numpy as np
import scipy.sparse as sp

from core.exceptions import UndefinedWeightError
from geometry.entities import Mesh
from geometry.weights import BaseWeights

logger = logging.getLogger("mesh_fairing")


class SparseSystemBuilder:
    """Accumulates the sparse matrix and the three right-hand sides."""

    def __init__(self, n: int) -> None:
        self.n = n
        self._coefs: Dict[tuple[int, int], float] = defaultdict(float)
        # Columns are the x, y, z right-hand sides.
        self.rhs = np.zeros((n, 3), dtype=float)

    def add_coef(self, row: int, col: int, value: float) -> None:
        self._coefs[(row, col)] += value

    def add_constant(self, row: int, value: np.ndarray) -> None:
        self.rhs[row] += value

    def coefficient(self, row: int, col: int) -> float:
        return self._coefs.get((row, col), 0.0)

    @property
    def nnz(self) -> int:
        return len(self._coefs)

    def to_csc(self) -> sp.csc_matrix:
        if not self._coefs:
            return sp.csc_matrix((self.n, self.n), dtype=float)
        keys = list(self._coefs.keys())
        rows = np.fromiter((k[0] for k in keys), dtype=int, count=len(keys))
        cols = np.fromiter((k[1] for k in keys), dtype=int, count=len(keys))
        vals = np.fromiter((self._coefs[k] for k in keys), dtype=float, count=len(keys))
        return sp.coo_matrix((vals, (rows, cols)), shape=(self.n, self.n)).tocsc()


def _checked(value: float, *, vertex_index=None, halfedge=None) -> float:
    value = float(value)
    if not math.isfinite(value):
        where = f"vertex {vertex_index}" if halfedge is None else f"halfedge {halfedge}"
        raise UndefinedWeightError(
            f"Weight at {where} is not finite ({value}).",
            vertex_index=vertex_index,
            halfedge=halfedge,
        )
    return value


def sum_weight(mesh: Mesh, weights: BaseWeights, v_id: int) -> float:
    """Sum of the coupling weights over the outgoing halfedges of ``v_id``."""
    return sum(
        _checked(weights.weight_edge(h), halfedge=h)
        for h in mesh.incident_halfedges(v_id)
    )


def compute_row(
    mesh: Mesh,
    weights: BaseWeights,
    v_id: int,
    row: int,
    builder: SparseSystemBuilder,
    multiplier: float,
    vertex_id_map: Dict[int, int],
    depth: int,
) -> None:
    """Add ``multiplier * (L_w^depth)`` evaluated at ``v_id`` to ``row``."""
    if depth == 0:
        col = vertex_id_map.get(v_id)
        if col is not None:
            builder.add_coef(row, col, multiplier)
        else:
            builder.add_constant(row, -multiplier * mesh.position(v_id))
        return

    w_i = _checked(weights.weight_vertex(v_id), vertex_index=v_id)

    for h in mesh.incident_halfedges(v_id):
        w_ij = _checked(weights.weight_edge(h), halfedge=h)
        compute_row(
            mesh,
            weights,
            mesh.opposite_vertex(h),
            row,
            builder,
            -w_i * w_ij * multiplier,
            vertex_id_map,
            depth - 1,
        )

    # Self term of the Laplacian.
    w_sum = sum_weight(mesh, weights, v_id)
    compute_row(
        mesh, weights, v_id, row, builder, w_i * w_sum * multiplier, vertex_id_map, depth - 1
    )


def assemble_system(
    mesh: Mesh,
    weights: BaseWeights,
    free: Iterable[int],
    vertex_id_map: Dict[int, int],
    depth: int,
) -> SparseSystemBuilder:
    """Build every row of the fairing system for the free vertices."""
    builder = SparseSystemBuilder(len(vertex_id_map))
    for vid in free:
        compute_row(
            mesh, weights, vid, vertex_id_map[vid], builder, 1.0, vertex_id_map, depth
        )
    logger.debug(
        "Assembled %d x %d fairing system with %d non-zeros (depth %d).",
        builder.n,
        builder.n,
        builder.nnz,
        depth,
    )
    return builder


__all__ = ["SparseSystemBuilder", "sum_weight", "compute_row", "assemble_system"]
