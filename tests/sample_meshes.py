import copy
import json
import math

import numpy as np

from geometry.geom_io import mesh_from_triangles, parse_geometry

CUBE_POSITIONS = [
    [0.0, 0.0, 0.0],
    [1.0, 0.0, 0.0],
    [1.0, 1.0, 0.0],
    [0.0, 1.0, 0.0],
    [0.0, 0.0, 1.0],
    [1.0, 0.0, 1.0],
    [1.0, 1.0, 1.0],
    [0.0, 1.0, 1.0],
]

# Outward-facing quads, each split along its (a, c) diagonal.
CUBE_QUADS = [
    (0, 3, 2, 1),
    (4, 5, 6, 7),
    (0, 1, 5, 4),
    (2, 3, 7, 6),
    (0, 4, 7, 3),
    (1, 2, 6, 5),
]

CUBE_TRIANGLES = [
    tri for a, b, c, d in CUBE_QUADS for tri in ((a, b, c), (a, c, d))
]

# Unit cube given with explicit edges and quad faces ("rN" = edge N reversed).
SAMPLE_GEOMETRY = {
    "vertices": [
        [0, 0, 0],
        [1, 0, 0],
        [1, 0, 1],
        [0, 0, 1],
        [0, 1, 1],
        [0, 1, 0],
        [1, 1, 0],
        [1, 1, 1, {"fair": True}],
    ],
    "edges": [
        [0, 1],
        [1, 2],
        [2, 3],
        [3, 0],
        [4, 5],
        [5, 6],
        [6, 7],
        [7, 4],
        [0, 5],
        [1, 6],
        [2, 7],
        [3, 4],
    ],
    "faces": [
        [0, 1, 2, 3],
        ["r0", 8, 5, "r9"],
        [9, 6, -10, -1],
        [-2, 10, 7, -11],
        [11, 4, -8, -3],
        [-5, -4, -7, -6],
    ],
    "global_parameters": {
        "weighting": "uniform",
    },
}


def write_sample_geometry(tmp_path, name="sample_geometry.json", data=None):
    """Write SAMPLE_GEOMETRY (or provided data) to tmp_path/name."""
    path = tmp_path / name
    with open(path, "w") as f:
        json.dump(data or SAMPLE_GEOMETRY, f)
    return str(path)


def sample_geometry_input() -> dict:
    return copy.deepcopy(SAMPLE_GEOMETRY)


def cube_mesh():
    """Closed unit cube made of 12 triangles."""
    return mesh_from_triangles(CUBE_POSITIONS, CUBE_TRIANGLES)


def icosahedron_positions() -> np.ndarray:
    t = (1.0 + math.sqrt(5.0)) / 2.0
    return np.array(
        [
            [-1, t, 0],
            [1, t, 0],
            [-1, -t, 0],
            [1, -t, 0],
            [0, -1, t],
            [0, 1, t],
            [0, -1, -t],
            [0, 1, -t],
            [t, 0, -1],
            [t, 0, 1],
            [-t, 0, -1],
            [-t, 0, 1],
        ],
        dtype=float,
    )


ICOSAHEDRON_TRIANGLES = [
    (0, 11, 5),
    (0, 5, 1),
    (0, 1, 7),
    (0, 7, 10),
    (0, 10, 11),
    (1, 5, 9),
    (5, 11, 4),
    (11, 10, 2),
    (10, 7, 6),
    (7, 1, 8),
    (3, 9, 4),
    (3, 4, 2),
    (3, 2, 6),
    (3, 6, 8),
    (3, 8, 9),
    (4, 9, 5),
    (2, 4, 11),
    (6, 2, 10),
    (8, 6, 7),
    (9, 8, 1),
]


def icosahedron_mesh():
    """Closed regular icosahedron (12 vertices of valence 5)."""
    return mesh_from_triangles(icosahedron_positions(), ICOSAHEDRON_TRIANGLES)


def grid_triangles(n: int):
    """Triangles of an ``n x n`` vertex grid, every quad cut along the same diagonal."""
    tris = []
    for j in range(n - 1):
        for i in range(n - 1):
            a = j * n + i
            b = a + 1
            c = a + n + 1
            d = a + n
            tris.append((a, b, c))
            tris.append((a, c, d))
    return tris


def grid_mesh(n: int, spacing: float = 1.0):
    """Flat ``n x n`` grid in the z = 0 plane; vertex id is ``j * n + i``."""
    positions = [
        [i * spacing, j * spacing, 0.0] for j in range(n) for i in range(n)
    ]
    return mesh_from_triangles(positions, grid_triangles(n))


def grid_vertex(n: int, i: int, j: int) -> int:
    return j * n + i


def disk_triangles():
    """Center 0, inner ring 1..6, outer ring 7..18, all counter-clockwise."""
    r1 = [1 + i for i in range(6)]
    r2 = [7 + j for j in range(12)]
    tris = []
    for i in range(6):
        a, b = r1[i], r1[(i + 1) % 6]
        o0, o1, o2 = r2[2 * i], r2[2 * i + 1], r2[(2 * i + 2) % 12]
        tris.append((0, a, b))
        tris.append((a, o0, o1))
        tris.append((a, o1, b))
        tris.append((b, o1, o2))
    return tris


def disk_positions(inner_z: float = 0.0, outer_z: float = 0.0) -> np.ndarray:
    pts = [[0.0, 0.0, 0.0]]
    for i in range(6):
        theta = 2.0 * math.pi * i / 6
        pts.append([math.cos(theta), math.sin(theta), inner_z])
    for j in range(12):
        theta = 2.0 * math.pi * j / 12
        pts.append([2.0 * math.cos(theta), 2.0 * math.sin(theta), outer_z])
    return np.array(pts, dtype=float)


def disk_mesh(inner_z: float = 0.0, outer_z: float = 0.0):
    """Two-ring triangulated disk; the outer ring forms the open boundary."""
    return mesh_from_triangles(disk_positions(inner_z, outer_z), disk_triangles())


def disk_input(inner_z: float = 0.0, outer_z: float = 1.0) -> dict:
    """Geometry file contents for the two-ring disk with the center to fair."""
    return {
        "vertices": disk_positions(inner_z, outer_z).tolist(),
        "triangles": [list(t) for t in disk_triangles()],
        "fair_vertices": [0],
        "global_parameters": {"weighting": "uniform"},
    }


def bowtie_mesh():
    """Two triangles sharing only vertex 0."""
    return parse_geometry(
        {
            "vertices": [
                [0, 0, 0],
                [1, 0, 0],
                [1, 1, 0],
                [-1, 0, 0],
                [-1, -1, 0],
            ],
            "triangles": [[0, 1, 2], [0, 3, 4]],
        }
    )
