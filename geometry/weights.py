# geometry/weights.py
"""Weight providers for the weighted Laplacian used by fairing.

A provider is bound to one mesh and answers two questions:

* ``weight_vertex(v)`` – the per-vertex normalisation ``w_i``;
* ``weight_edge(h)`` – the coupling ``w_ij`` of the signed halfedge ``h``.

The fairing operator at a vertex is then
``w_i * sum_h w_ij(h) * (x_v - x_target(h))``.

References: Meyer et al. (2003) 'Discrete Differential-Geometry Operators'
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict

import numpy as np

from core.exceptions import InvalidParameterError, UndefinedWeightError
from geometry.entities import Mesh, _fast_cross

logger = logging.getLogger("mesh_fairing")

_DEGENERATE_AREA = 1e-14


class BaseWeights(ABC):
    """Per-vertex and per-halfedge weights of a discrete Laplacian."""

    def __init__(self, mesh: Mesh) -> None:
        self.mesh = mesh

    @abstractmethod
    def weight_vertex(self, v_id: int) -> float:
        """Return ``w_i`` for vertex ``v_id``."""

    @abstractmethod
    def weight_edge(self, halfedge: int) -> float:
        """Return ``w_ij`` for the signed ``halfedge``."""

    def __repr__(self) -> str:  # pragma: no cover - simple utility
        return f"{self.__class__.__name__}(mesh={self.mesh})"


class UniformWeights(BaseWeights):
    """Combinatorial (umbrella) Laplacian: every weight is one."""

    def weight_vertex(self, v_id: int) -> float:
        return 1.0

    def weight_edge(self, halfedge: int) -> float:
        return 1.0


class ScaleDependentWeights(BaseWeights):
    """Inverse edge length coupling (Fujiwara / scale-dependent umbrella)."""

    def weight_vertex(self, v_id: int) -> float:
        return 1.0

    def weight_edge(self, halfedge: int) -> float:
        length = self.mesh.get_edge(halfedge).compute_length(self.mesh)
        if length <= 0.0:
            raise UndefinedWeightError(
                f"Edge {abs(halfedge)} has zero length.", halfedge=halfedge
            )
        return 1.0 / length


def _cotangent(u: np.ndarray, v: np.ndarray) -> float | None:
    """Cotangent of the angle between ``u`` and ``v``; None if degenerate."""
    cross_norm = float(np.linalg.norm(_fast_cross(u, v)))
    if cross_norm < _DEGENERATE_AREA:
        return None
    return float(np.dot(u, v)) / cross_norm


class CotangentWeights(BaseWeights):
    """Cotangent coupling with mixed Voronoi area normalisation.

    ``w_ij = (cot alpha + cot beta) / 2`` over the triangles adjacent to the
    edge (one on the boundary) and ``w_i = 1 / (2 A_mixed)``.

    Values are cached until the mesh positions or topology change.
    """

    def __init__(self, mesh: Mesh) -> None:
        super().__init__(mesh)
        self._edge_cache: Dict[int, float] = {}
        self._area_cache: Dict[int, float] = {}
        self._cache_key = None

    def _sync_cache(self) -> None:
        key = (self.mesh._version, self.mesh._topology_version)
        if key != self._cache_key:
            self._edge_cache.clear()
            self._area_cache.clear()
            self._cache_key = key

    def _triangle(self, fid: int):
        loop = self.mesh.facets[fid].vertex_loop(self.mesh)
        if len(loop) != 3:
            raise UndefinedWeightError(
                f"Cotangent weights need triangles; facet {fid} has {len(loop)} vertices."
            )
        return loop

    def weight_edge(self, halfedge: int) -> float:
        self._sync_cache()
        eid = abs(halfedge)
        if eid in self._edge_cache:
            return self._edge_cache[eid]

        edge = self.mesh.edges[eid]
        a, b = edge.tail_index, edge.head_index
        pa = self.mesh.position(a)
        pb = self.mesh.position(b)

        facets = self.mesh.halfedge_facets(eid)
        if not facets:
            raise UndefinedWeightError(
                f"Edge {eid} is not part of any facet.", halfedge=halfedge
            )

        total = 0.0
        for fid in facets:
            opposite = [v for v in self._triangle(fid) if v not in (a, b)][0]
            po = self.mesh.position(opposite)
            cot = _cotangent(pa - po, pb - po)
            if cot is None:
                raise UndefinedWeightError(
                    f"Facet {fid} is degenerate; cotangent weight of edge {eid} is undefined.",
                    halfedge=halfedge,
                )
            total += cot

        weight = 0.5 * total
        self._edge_cache[eid] = weight
        return weight

    def mixed_area(self, v_id: int) -> float:
        """Mixed Voronoi area of ``v_id`` over its incident triangles."""
        self._sync_cache()
        if v_id in self._area_cache:
            return self._area_cache[v_id]

        self.mesh.build_connectivity_maps()
        area = 0.0
        for fid in sorted(self.mesh.vertex_to_facets.get(v_id, ())):
            loop = self._triangle(fid)
            k = loop.index(v_id)
            p0 = self.mesh.position(loop[k])
            p1 = self.mesh.position(loop[(k + 1) % 3])
            p2 = self.mesh.position(loop[(k + 2) % 3])

            tri_area = 0.5 * float(np.linalg.norm(_fast_cross(p1 - p0, p2 - p0)))
            c0 = _cotangent(p1 - p0, p2 - p0)
            c1 = _cotangent(p2 - p1, p0 - p1)
            c2 = _cotangent(p0 - p2, p1 - p2)
            if c0 is None or c1 is None or c2 is None:
                raise UndefinedWeightError(
                    f"Facet {fid} is degenerate; mixed area of vertex {v_id} is undefined.",
                    vertex_index=v_id,
                )

            if c0 < 0:
                # Obtuse at v: half the triangle.
                area += tri_area / 2.0
            elif c1 < 0 or c2 < 0:
                area += tri_area / 4.0
            else:
                # Voronoi region: 1/8 (|p0-p2|^2 cot(p1) + |p0-p1|^2 cot(p2))
                l02_sq = float(np.dot(p0 - p2, p0 - p2))
                l01_sq = float(np.dot(p0 - p1, p0 - p1))
                area += (l02_sq * c1 + l01_sq * c2) / 8.0

        self._area_cache[v_id] = area
        return area

    def weight_vertex(self, v_id: int) -> float:
        area = self.mixed_area(v_id)
        if area <= 0.0:
            raise UndefinedWeightError(
                f"Vertex {v_id} has zero mixed area.", vertex_index=v_id
            )
        return 0.5 / area


WEIGHT_PROVIDERS = {
    "uniform": UniformWeights,
    "cotangent": CotangentWeights,
    "scale_dependent": ScaleDependentWeights,
}


def get_weight_provider(name: str, mesh: Mesh) -> BaseWeights:
    """Instantiate the weight provider registered under ``name`` for ``mesh``."""
    key = str(name).strip().lower()
    cls = WEIGHT_PROVIDERS.get(key)
    if cls is None:
        raise InvalidParameterError(
            f"Unknown weighting '{name}'. Choose from: {', '.join(sorted(WEIGHT_PROVIDERS))}.",
            parameter="weighting",
            value=name,
        )
    logger.debug("Using %s weights.", key)
    return cls(mesh)


__all__ = [
    "BaseWeights",
    "UniformWeights",
    "ScaleDependentWeights",
    "CotangentWeights",
    "WEIGHT_PROVIDERS",
    "get_weight_provider",
]
