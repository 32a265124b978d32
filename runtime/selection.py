# runtime/selection.py
"""Validation and pruning of the vertex region handed to the fairing solver."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

import numpy as np

from core.exceptions import DuplicateVertexError, InvalidParameterError
from geometry.entities import Mesh
from runtime.topology import vertices_without_circulation

logger = logging.getLogger("mesh_fairing")

WHOLE_MESH_POLICIES = ("decimate", "extremal")


@dataclass
class SelectionResult:
    """Outcome of the selection stage."""

    free: List[int]
    requested: int
    whole_mesh: bool = False
    pruned: List[int] = field(default_factory=list)


def _coerce_region(mesh: Mesh, vertices: Iterable[int]) -> List[int]:
    try:
        vertices = list(vertices)
    except TypeError as exc:
        raise InvalidParameterError(
            f"Vertex IDs must be an iterable of integers: {exc}", parameter="vertices"
        ) from exc
    # bool is an int subclass; floats are never truncated to an id.
    bad = [
        v for v in vertices if isinstance(v, bool) or not isinstance(v, (int, np.integer))
    ]
    if bad:
        raise InvalidParameterError(
            f"Vertex IDs must be integers, got {bad!r}", parameter="vertices", value=bad
        )
    region = {int(v) for v in vertices}

    missing = sorted(v for v in region if v not in mesh.vertices)
    if missing:
        raise InvalidParameterError(
            f"Vertices not in mesh: {missing}", parameter="vertices", value=missing
        )
    return sorted(region)


def is_whole_mesh(mesh: Mesh, region: List[int]) -> bool:
    """Size equality with the mesh vertex count stands in for containment."""
    return len(region) == mesh.vertex_count()


def remove_vertices(
    region: List[int], percent: float = 10.0
) -> Tuple[List[int], List[int]]:
    """Drop every n-th vertex of the sorted ``region``.

    The removal frequency is ``round(100 / percent)``, so ``percent`` of the
    region is released to the boundary. If the region is shorter than one
    period its last vertex is dropped instead.
    """
    if not (0.1 <= percent < 100.0):
        raise InvalidParameterError(
            f"removal_percent must lie in [0.1, 100), got {percent}",
            parameter="removal_percent",
            value=percent,
        )
    freq = max(1, int(round(100.0 / percent)))

    kept: List[int] = []
    removed: List[int] = []
    for i, vid in enumerate(region, start=1):
        if i % freq == 0:
            removed.append(vid)
        else:
            kept.append(vid)

    if not removed and kept:
        removed.append(kept.pop())
    return kept, removed


def remove_extremal_vertices(
    mesh: Mesh, region: List[int]
) -> Tuple[List[int], List[int]]:
    """Drop the vertices holding the min and max x, y and z coordinates."""
    if not region:
        return [], []
    pos = mesh.positions_array(region)
    extremal = set()
    for axis in range(3):
        extremal.add(region[int(np.argmin(pos[:, axis]))])
        extremal.add(region[int(np.argmax(pos[:, axis]))])
    kept = [vid for vid in region if vid not in extremal]
    return kept, sorted(extremal)


def select_free_vertices(
    mesh: Mesh,
    vertices: Iterable[int],
    *,
    policy: str = "decimate",
    removal_percent: float = 10.0,
) -> SelectionResult:
    """Validate ``vertices`` and return the set the solver will move.

    When the region covers the whole mesh nothing would anchor the energy
    minimum, so part of it is released to the boundary according to
    ``policy``. This lowers the chance of a singular system but does not
    rule it out.
    """
    if policy not in WHOLE_MESH_POLICIES:
        raise InvalidParameterError(
            f"Unknown whole_mesh_policy '{policy}'. Choose from: {', '.join(WHOLE_MESH_POLICIES)}.",
            parameter="whole_mesh_policy",
            value=policy,
        )

    region = _coerce_region(mesh, vertices)
    result = SelectionResult(free=region, requested=len(region))
    if not region:
        return result

    if is_whole_mesh(mesh, region):
        result.whole_mesh = True
        if policy == "decimate":
            kept, removed = remove_vertices(region, removal_percent)
        else:
            kept, removed = remove_extremal_vertices(mesh, region)
        logger.info(
            "Whole mesh selected; %d of %d vertices kept fixed (%s policy).",
            len(removed),
            len(region),
            policy,
        )
        result.free = kept
        result.pruned = removed

    bad = vertices_without_circulation(mesh, result.free)
    if bad:
        raise InvalidParameterError(
            f"Vertices {bad} have no manifold neighbourhood to fair over.",
            parameter="vertices",
            value=bad,
        )
    return result


def build_vertex_id_map(free: Iterable[int]) -> Dict[int, int]:
    """Number the free vertices ``0..n-1`` in iteration order."""
    vertex_id_map: Dict[int, int] = {}
    for vid in free:
        if vid in vertex_id_map:
            raise DuplicateVertexError(vid)
        vertex_id_map[vid] = len(vertex_id_map)
    return vertex_id_map


__all__ = [
    "SelectionResult",
    "WHOLE_MESH_POLICIES",
    "is_whole_mesh",
    "remove_vertices",
    "remove_extremal_vertices",
    "select_free_vertices",
    "build_vertex_id_map",
]
