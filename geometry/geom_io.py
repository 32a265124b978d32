# geometry_io.py
import json
import logging

import numpy as np
import yaml

from geometry.entities import Edge, Facet, Mesh, MeshError, Vertex
from parameters.global_parameters import GlobalParameters

logger = logging.getLogger("mesh_fairing")

_NUMERIC_PARAMS = ("removal_percent", "pivot_tolerance")


def load_data(filename):
    """Load geometry from a JSON or YAML file.

    Expected format:
    {
        "vertices": [[x, y, z], [x, y, z, {"fixed": true}], ...],
        "edges": [[tail, head], ...],
        "faces": [[e0, e1, "r2"], ...],
        "fair_vertices": [i, j, ...]
    }
    ``"triangles": [[i, j, k], ...]`` may replace ``edges``/``faces``."""
    filename_str = str(filename)
    with open(filename_str, "r") as f:
        if filename_str.endswith((".yaml", ".yml")):
            data = yaml.safe_load(f)
        elif filename_str.endswith(".json"):
            data = json.load(f)
        else:
            logger.error(f"Unsupported file format for: {filename_str}")
            raise ValueError(f"Unsupported file format for: {filename_str}")

    return data


def _parse_id(value, *, label: str) -> int:
    if isinstance(value, bool):
        raise TypeError(f"{label} IDs must be integers; got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return int(text)
    raise TypeError(f"{label} IDs must be integers (or integer strings); got {value!r}")


def _sorted_items(section, *, label: str):
    if isinstance(section, dict):
        items = [(_parse_id(raw, label=label), entry) for raw, entry in section.items()]
        items.sort(key=lambda item: item[0])
        return items, True
    return list(enumerate(section)), False


def _add_triangles(mesh: Mesh, triangles) -> None:
    """Create edges and facets from vertex-id triples.

    Each undirected edge is created once, oriented like the first triangle
    that uses it; later triangles reference it reversed when needed.
    """
    edge_lookup: dict[tuple[int, int], int] = {}
    for fid, tri in enumerate(triangles):
        if len(tri) != 3:
            raise ValueError(f"Triangle {fid} must list 3 vertices, got {len(tri)}.")
        loop = [_parse_id(v, label="vertex") for v in tri]
        if len(set(loop)) != 3:
            raise MeshError(f"Triangle {fid} repeats a vertex: {loop}")
        for vid in loop:
            if vid not in mesh.vertices:
                raise ValueError(f"Triangle {fid} references missing vertex {vid}")

        edge_indices = []
        for k in range(3):
            tail, head = loop[k], loop[(k + 1) % 3]
            if (tail, head) in edge_lookup:
                edge_indices.append(edge_lookup[(tail, head)])
                continue
            eid = len(mesh.edges) + 1
            mesh.edges[eid] = Edge(index=eid, tail_index=tail, head_index=head)
            edge_lookup[(tail, head)] = eid
            edge_lookup[(head, tail)] = -eid
            edge_indices.append(eid)
        mesh.facets[fid] = Facet(index=fid, edge_indices=edge_indices)


def parse_geometry(data: dict) -> Mesh:
    mesh = Mesh()

    # Initialize global parameters
    mesh.global_parameters = GlobalParameters()

    # Override global parameters with values from the input file
    input_global_params = data.get("global_parameters") or {}
    mesh.global_parameters.update(input_global_params)

    for key in _NUMERIC_PARAMS:
        # YAML reads values such as ``1e-14`` as strings.
        val = mesh.global_parameters.get(key)
        if isinstance(val, str):
            try:
                mesh.global_parameters.set(key, float(val))
            except ValueError:
                logger.warning("global_parameters.%s should be numeric; got %r", key, val)

    # Vertices
    vertices = data.get("vertices") or data.get("Vertices")
    if vertices is None:
        raise ValueError("Geometry file must contain 'vertices'")

    vertex_items, _ = _sorted_items(vertices, label="vertex")
    for vid, entry in vertex_items:
        *position, raw_opts = entry if isinstance(entry[-1], dict) else (*entry, {})
        options = dict(raw_opts)

        pos_array = np.asarray(position, dtype=float)
        if pos_array.shape != (3,):
            raise ValueError(f"Vertex {vid} must have 3 coordinates, got {len(position)}.")
        if np.any(np.isnan(pos_array)):
            raise ValueError(f"Vertex {vid} has NaN coordinates.")
        if np.any(np.isinf(pos_array)):
            raise ValueError(f"Vertex {vid} has infinite coordinates.")

        mesh.vertices[vid] = Vertex(
            index=vid,
            position=pos_array,
            fixed=bool(options.pop("fixed", False)),
            options=options,
        )

    triangles = data.get("triangles")
    if triangles is not None:
        if data.get("edges") or data.get("faces"):
            raise ValueError("Give either 'triangles' or 'edges'/'faces', not both.")
        _add_triangles(mesh, triangles)
    else:
        # Edges
        edges = data.get("edges") or data.get("Edges")
        if edges is None:
            err_msg = "Input geometry is missing required 'edges' section."
            logger.error(err_msg)
            raise KeyError(err_msg)

        edge_items, edges_are_explicit = _sorted_items(edges, label="edge")
        if not edges_are_explicit:
            edge_items = [(i + 1, entry) for i, entry in edge_items]

        for eid, entry in edge_items:
            tail_index, head_index, *opts = entry
            tail_index = _parse_id(tail_index, label="vertex")
            head_index = _parse_id(head_index, label="vertex")

            if tail_index not in mesh.vertices:
                raise ValueError(f"Edge {eid} references missing tail vertex {tail_index}")
            if head_index not in mesh.vertices:
                raise ValueError(f"Edge {eid} references missing head vertex {head_index}")

            options = dict(opts[0]) if opts else {}
            mesh.edges[eid] = Edge(
                index=eid,
                tail_index=tail_index,
                head_index=head_index,
                fixed=bool(options.pop("fixed", False)),
                options=options,
            )
            if mesh.edges[eid].fixed:
                mesh.vertices[tail_index].fixed = True
                mesh.vertices[head_index].fixed = True

        def parse_edge_ref(e):
            if edges_are_explicit:
                if isinstance(e, str) and e.startswith("r"):
                    return -_parse_id(e[1:], label="edge")
                return _parse_id(e, label="edge")
            if isinstance(e, str) and e.startswith("r"):
                return -(int(e[1:]) + 1)  # "r0" -> -1
            i = int(e)
            if i >= 0:
                return i + 1  # 0 -> 1, 1 -> 2, etc.
            return i - 1  # -11 -> -12

        faces_section = data.get("faces") or data.get("Faces") or data.get("Facets") or []
        face_items, _ = _sorted_items(faces_section, label="face")
        for fid, entry in face_items:
            *raw_edges, raw_opts = entry if isinstance(entry[-1], dict) else (*entry, {})
            options = dict(raw_opts)
            edge_indices = [parse_edge_ref(e) for e in raw_edges]
            mesh.facets[fid] = Facet(
                index=fid,
                edge_indices=edge_indices,
                fixed=bool(options.pop("fixed", False)),
                options=options,
            )

    mesh.validate_edge_indices()
    mesh.validate_facet_loops()

    fair_vertices = data.get("fair_vertices")
    if fair_vertices is not None:
        mesh.fair_vertices = [_parse_id(v, label="vertex") for v in fair_vertices]
        missing = [v for v in mesh.fair_vertices if v not in mesh.vertices]
        if missing:
            raise ValueError(f"fair_vertices references missing vertices {missing}")

    mesh.increment_topology_version()
    mesh.build_connectivity_maps()
    mesh.build_halfedge_maps()
    logger.debug("Parsed %s", mesh)
    return mesh


def mesh_from_triangles(positions, triangles, global_parameters=None) -> Mesh:
    """Build a mesh from an ``(N, 3)`` position array and vertex-id triples."""
    data = {
        "vertices": [list(map(float, p)) for p in np.asarray(positions, dtype=float)],
        "triangles": [list(map(int, t)) for t in triangles],
    }
    if global_parameters:
        data["global_parameters"] = dict(global_parameters)
    return parse_geometry(data)


def fairing_region(mesh: Mesh) -> list[int]:
    """Vertices the geometry file asks to fair.

    ``fair_vertices`` wins; otherwise vertices tagged ``fair``; otherwise
    every vertex that is not fixed.
    """
    if mesh.fair_vertices is not None:
        return sorted(set(mesh.fair_vertices))
    tagged = [vid for vid, v in mesh.vertices.items() if v.options.get("fair")]
    if tagged:
        return sorted(tagged)
    return sorted(vid for vid, v in mesh.vertices.items() if not v.fixed)


def save_geometry(
    mesh: Mesh,
    path: str = "outputs/temp_output_file.json",
    *,
    compact: bool = False,
):
    def _sorted_keys(dct):
        return sorted(dct.keys())

    # The on-disk format encodes indices by list order: vertices and faces
    # are 0-based, edges are 1-based internally with 0-based references in
    # faces. Reindex so sparse in-memory IDs survive a save/load roundtrip.
    vertex_ids = _sorted_keys(mesh.vertices)
    vertex_id_map = {old: new for new, old in enumerate(vertex_ids)}

    edge_ids = _sorted_keys(mesh.edges)
    edge_id_map = {old: new + 1 for new, old in enumerate(edge_ids)}  # 1-based

    facet_ids = _sorted_keys(mesh.facets)

    def export_edge_index(old_signed_edge_index: int):
        sign = -1 if old_signed_edge_index < 0 else 1
        old_abs = abs(int(old_signed_edge_index))
        if old_abs not in edge_id_map:
            raise KeyError(
                f"Cannot save geometry: facet references missing edge {old_signed_edge_index}."
            )
        new_abs = edge_id_map[old_abs]
        if sign < 0:
            return f"r{new_abs - 1}"  # -1 → "r0"
        return new_abs - 1  # 1 → 0

    def prepare_options(entity):
        opts = entity.options.copy() if entity.options else {}
        if entity.fixed:
            opts["fixed"] = True
        return opts if opts else None

    def with_options(values, entity):
        opts = prepare_options(entity)
        return [*values, opts] if opts else list(values)

    data = {
        "vertices": [
            with_options(mesh.vertices[vid].position.tolist(), mesh.vertices[vid])
            for vid in vertex_ids
        ],
        "edges": [
            with_options(
                (
                    vertex_id_map[int(mesh.edges[eid].tail_index)],
                    vertex_id_map[int(mesh.edges[eid].head_index)],
                ),
                mesh.edges[eid],
            )
            for eid in edge_ids
        ],
        "faces": [
            with_options(
                map(export_edge_index, mesh.facets[fid].edge_indices),
                mesh.facets[fid],
            )
            for fid in facet_ids
        ],
        "global_parameters": mesh.global_parameters.to_dict(),
    }
    if mesh.fair_vertices is not None:
        data["fair_vertices"] = [vertex_id_map[v] for v in mesh.fair_vertices]

    with open(path, "w") as f:
        if compact:
            json.dump(data, f, separators=(",", ":"), ensure_ascii=False)
        else:
            json.dump(data, f, indent=4, ensure_ascii=False)
    logger.info("Saved geometry to %s", path)
