# entities.py

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from core.exceptions import InvalidEdgeIndexError
from parameters.global_parameters import GlobalParameters

logger = logging.getLogger("mesh_fairing")


def _fast_cross(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Compute cross product of two arrays of 3D vectors along the last axis.
    Optimized to avoid np.cross overhead for small arrays or simple cases.
    Inputs must be shape (..., 3) or (3,).
    """
    x = a[..., 1] * b[..., 2] - a[..., 2] * b[..., 1]
    y = a[..., 2] * b[..., 0] - a[..., 0] * b[..., 2]
    z = a[..., 0] * b[..., 1] - a[..., 1] * b[..., 0]

    out = np.empty(x.shape + (3,), dtype=x.dtype)
    out[..., 0] = x
    out[..., 1] = y
    out[..., 2] = z
    return out


class MeshError(Exception):
    """Custom exception for invalid mesh topology or geometry."""


@dataclass
class Vertex:
    index: int
    position: np.ndarray
    fixed: bool = False
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Edge:
    index: int
    tail_index: int
    head_index: int
    fixed: bool = False
    options: Dict[str, Any] = field(default_factory=dict)

    def reversed(self) -> "Edge":
        return Edge(
            index=self.index,  # convention: reversed edge gets negative index
            tail_index=self.head_index,
            head_index=self.tail_index,
            fixed=self.fixed,
            options=self.options,
        )

    def compute_length(self, mesh):
        tail = mesh.vertices[self.tail_index]
        head = mesh.vertices[self.head_index]
        return float(np.linalg.norm(head.position - tail.position))


@dataclass
class Facet:
    index: int
    edge_indices: List[
        int
    ]  # Signed indices: +n = forward, -n = reversed (including -1 for "r0")
    fixed: bool = False
    options: Dict[str, Any] = field(default_factory=dict)

    def vertex_loop(self, mesh: "Mesh") -> List[int]:
        """Return the ordered vertex IDs around the facet (tail of each edge)."""
        v_ids: List[int] = []
        for signed_ei in self.edge_indices:
            edge = mesh.get_edge(signed_ei)
            if not v_ids or v_ids[-1] != edge.tail_index:
                v_ids.append(edge.tail_index)
        return v_ids


@dataclass
class Mesh:
    vertices: Dict[int, "Vertex"] = field(default_factory=dict)
    edges: Dict[int, "Edge"] = field(default_factory=dict)
    facets: Dict[int, "Facet"] = field(default_factory=dict)
    global_parameters: "GlobalParameters" = None
    fair_vertices: Optional[List[int]] = None

    vertex_to_facets: Dict[int, set] = field(default_factory=dict)
    vertex_to_edges: Dict[int, set] = field(default_factory=dict)
    edge_to_facets: Dict[int, set] = field(default_factory=dict)
    facet_vertex_loops: Dict[int, "np.ndarray"] = field(default_factory=dict)

    # Halfedge lookups keyed by (tail, head) vertex pairs.
    _halfedge_index: Dict[Tuple[int, int], int] = field(default_factory=dict)
    _halfedge_facet: Dict[Tuple[int, int], int] = field(default_factory=dict)
    _rings: Dict[int, Optional[List[int]]] = field(default_factory=dict)

    # Topology-only versioning for caches that depend on edges/facets adjacency.
    # Incremented when connectivity changes, not when positions move.
    _topology_version: int = 0
    _connectivity_cache_version: int = -1
    _connectivity_cache_counts: tuple[int, int, int] = (0, 0, 0)
    _halfedge_cache_version: int = -1

    _version: int = 0

    def increment_version(self):
        self._version += 1

    def increment_topology_version(self) -> None:
        """Invalidate caches that depend on mesh connectivity."""
        self._topology_version += 1
        self._connectivity_cache_version = -1
        self._halfedge_cache_version = -1

    def get_edge(self, index: int) -> "Edge":
        if index > 0:
            return self.edges[index]
        if index < 0:
            return self.edges[-index].reversed()
        raise InvalidEdgeIndexError(index)

    def validate_edge_indices(self):
        for facet_idx in self.facets.keys():
            for signed_index in self.facets[facet_idx].edge_indices:
                edge_index = abs(signed_index)
                if edge_index not in self.edges:
                    raise ValueError(
                        f"Facet {facet_idx} uses invalid edge index {signed_index} (not found in edge list)."
                    )
        return True

    def validate_facet_loops(self):
        """Check that every facet's signed edges chain head-to-tail into a closed loop."""
        for fid, facet in self.facets.items():
            chain = [self.get_edge(ei) for ei in facet.edge_indices]
            for k, edge in enumerate(chain):
                nxt = chain[(k + 1) % len(chain)]
                if edge.head_index != nxt.tail_index:
                    raise MeshError(
                        f"Facet {fid} is not a closed loop: edge {facet.edge_indices[k]} "
                        f"ends at {edge.head_index}, next edge starts at {nxt.tail_index}."
                    )
        return True

    def build_connectivity_maps(self):
        counts = (len(self.vertices), len(self.edges), len(self.facets))
        if (
            self._connectivity_cache_version == self._topology_version
            and self._connectivity_cache_counts == counts
        ):
            return

        self.vertex_to_facets.clear()
        self.vertex_to_edges.clear()
        self.edge_to_facets.clear()

        for edge in self.edges.values():
            for v in (edge.tail_index, edge.head_index):
                self.vertex_to_edges.setdefault(v, set()).add(edge.index)

        for facet in self.facets.values():
            v_ids = set()
            for signed_ei in facet.edge_indices:
                ei = abs(signed_ei)
                self.edge_to_facets.setdefault(ei, set()).add(facet.index)

                edge = self.get_edge(signed_ei)
                v_ids.add(edge.tail_index)
                v_ids.add(edge.head_index)

            for v in v_ids:
                self.vertex_to_facets.setdefault(v, set()).add(facet.index)

        self._connectivity_cache_version = self._topology_version
        self._connectivity_cache_counts = counts

    def build_facet_vertex_loops(self):
        """Precompute ordered vertex loops for all facets."""
        self.facet_vertex_loops.clear()
        for fid in sorted(self.facets):
            v_ids = self.facets[fid].vertex_loop(self)
            if v_ids:
                self.facet_vertex_loops[fid] = np.array(v_ids, dtype=int)

    def build_halfedge_maps(self):
        """Build (tail, head) -> signed edge and (tail, head) -> facet lookups.

        Rings around vertices are computed lazily and cached until the next
        topology change.
        """
        if self._halfedge_cache_version == self._topology_version:
            return

        self.build_connectivity_maps()
        self.build_facet_vertex_loops()

        self._halfedge_index.clear()
        self._halfedge_facet.clear()
        self._rings.clear()

        for eid, edge in self.edges.items():
            self._halfedge_index[(edge.tail_index, edge.head_index)] = eid
            self._halfedge_index[(edge.head_index, edge.tail_index)] = -eid

        for fid, loop in self.facet_vertex_loops.items():
            n = len(loop)
            for k in range(n):
                key = (int(loop[k]), int(loop[(k + 1) % n]))
                if key in self._halfedge_facet:
                    logger.debug(
                        "Halfedge %s is used by facets %d and %d; facet orientation is inconsistent.",
                        key,
                        self._halfedge_facet[key],
                        fid,
                    )
                self._halfedge_facet[key] = fid

        self._halfedge_cache_version = self._topology_version

    def _walk_ring(self, v_id: int) -> Optional[List[int]]:
        """Return the neighbors of ``v_id`` in rotational order, or None.

        Rotation steps from the outgoing halfedge (v, w) to (v, b), where b
        precedes v in the facet that owns (v, w). On an open fan the walk
        starts at the outgoing halfedge whose twin has no facet.
        """
        neighbors = set()
        for eid in self.vertex_to_edges.get(v_id, ()):
            edge = self.edges[eid]
            neighbors.add(edge.head_index if edge.tail_index == v_id else edge.tail_index)
        if not neighbors:
            return None

        starts = sorted(w for w in neighbors if (w, v_id) not in self._halfedge_facet)
        if len(starts) > 1:
            return None
        start = starts[0] if starts else min(neighbors)

        ring: List[int] = []
        w = start
        while True:
            ring.append(w)
            fid = self._halfedge_facet.get((v_id, w))
            if fid is None:
                break
            loop = self.facet_vertex_loops[fid].tolist()
            b = loop[loop.index(v_id) - 1]
            if b == start:
                break
            if b in ring:
                return None
            w = b

        if len(ring) != len(neighbors):
            return None
        return ring

    def vertex_ring(self, v_id: int) -> Optional[List[int]]:
        """Cached rotational neighbor order of ``v_id`` (None when undefined)."""
        self.build_halfedge_maps()
        if v_id not in self._rings:
            self._rings[v_id] = self._walk_ring(v_id)
        return self._rings[v_id]

    def has_circulation(self, v_id: int) -> bool:
        """True when the outgoing halfedges of ``v_id`` form a single manifold fan."""
        return self.vertex_ring(v_id) is not None

    def incident_halfedges(self, v_id: int) -> List[int]:
        """Signed indices of the halfedges leaving ``v_id``, in circular order.

        Falls back to edge-index order when the vertex has no well-defined
        rotation; the sum over halfedges does not depend on the order.
        """
        ring = self.vertex_ring(v_id)
        if ring is None:
            ring = sorted(
                self.edges[eid].head_index
                if self.edges[eid].tail_index == v_id
                else self.edges[eid].tail_index
                for eid in self.vertex_to_edges.get(v_id, ())
            )
        return [self._halfedge_index[(v_id, w)] for w in ring]

    def opposite_vertex(self, halfedge: int) -> int:
        """Vertex the signed ``halfedge`` points to."""
        return self.get_edge(halfedge).head_index

    def halfedge_facets(self, halfedge: int) -> List[int]:
        """Facets on either side of the edge underlying ``halfedge``."""
        self.build_connectivity_maps()
        return sorted(self.edge_to_facets.get(abs(halfedge), ()))

    def position(self, v_id: int) -> np.ndarray:
        return self.vertices[v_id].position

    def set_position(self, v_id: int, pos) -> None:
        self.vertices[v_id].position = np.asarray(pos, dtype=float).copy()
        self.increment_version()

    def vertex_count(self) -> int:
        return len(self.vertices)

    def positions_array(self, vertex_ids=None) -> np.ndarray:
        """Return a dense ``(N, 3)`` array of positions in ``vertex_ids`` order."""
        if vertex_ids is None:
            vertex_ids = sorted(self.vertices)
        return np.array([self.vertices[vid].position for vid in vertex_ids], dtype=float)

    def __post_init__(self):
        if self.global_parameters is None:
            self.global_parameters = GlobalParameters()

    def __str__(self):
        return f"Mesh with {len(self.vertices)} vertices, {len(self.edges)} edges, and {len(self.facets)} facets."

    def __repr__(self):
        return f"Mesh(vertices={self.vertices}, edges={self.edges}, facets={self.facets})"
