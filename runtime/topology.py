"""Topology checks used before building a fairing system."""

import logging
from typing import Iterable, List, Set

from geometry.entities import Mesh

logger = logging.getLogger("mesh_fairing")


def vertices_without_circulation(mesh: Mesh, vertex_ids: Iterable[int]) -> List[int]:
    """
    Return the vertices whose outgoing halfedges do not form a single fan.

    Isolated vertices, vertices joining several fans (bow-ties) and vertices
    whose incident facets are inconsistently oriented are reported.
    """
    bad = [vid for vid in sorted(vertex_ids) if not mesh.has_circulation(vid)]
    if bad:
        logger.debug("Vertices without a halfedge circulation: %s", bad)
    return bad


def collect_stencil(mesh: Mesh, vertex_ids: Iterable[int], depth: int) -> Set[int]:
    """Vertices reachable within ``depth`` edge hops of ``vertex_ids``."""
    mesh.build_connectivity_maps()
    reached = set(vertex_ids)
    frontier = set(reached)
    for _ in range(depth):
        nxt = set()
        for vid in frontier:
            for h in mesh.incident_halfedges(vid):
                nv = mesh.opposite_vertex(h)
                if nv not in reached:
                    nxt.add(nv)
        reached |= nxt
        frontier = nxt
        if not frontier:
            break
    return reached
