import numpy as np
import pytest

from core.exceptions import InvalidEdgeIndexError
from geometry.entities import Edge, Facet, Mesh, MeshError, Vertex
from sample_meshes import bowtie_mesh, cube_mesh, disk_mesh, grid_mesh


def _neighbors(mesh, vid):
    return {mesh.opposite_vertex(h) for h in mesh.incident_halfedges(vid)}


def test_get_edge_negative_index_is_reversed():
    mesh = disk_mesh()
    edge = mesh.edges[1]
    rev = mesh.get_edge(-1)
    assert rev.tail_index == edge.head_index
    assert rev.head_index == edge.tail_index


def test_get_edge_zero_raises():
    mesh = disk_mesh()
    with pytest.raises(InvalidEdgeIndexError):
        mesh.get_edge(0)


def test_incident_halfedges_leave_the_vertex():
    mesh = cube_mesh()
    for vid in mesh.vertices:
        for h in mesh.incident_halfedges(vid):
            assert mesh.get_edge(h).tail_index == vid


def test_disk_center_ring_is_rotational():
    mesh = disk_mesh()
    ring = mesh.vertex_ring(0)
    assert sorted(ring) == [1, 2, 3, 4, 5, 6]
    # Consecutive ring vertices are joined by an edge of the fan.
    for a, b in zip(ring, ring[1:] + ring[:1]):
        assert b in _neighbors(mesh, a)


def test_boundary_vertex_has_open_circulation():
    mesh = disk_mesh()
    assert mesh.has_circulation(7)
    assert len(mesh.vertex_ring(7)) == len(mesh.vertex_to_edges[7])


def test_every_closed_mesh_vertex_has_circulation():
    mesh = cube_mesh()
    assert all(mesh.has_circulation(v) for v in mesh.vertices)
    assert all(len(f) == 2 for f in mesh.edge_to_facets.values())


def test_bowtie_vertex_has_no_circulation():
    mesh = bowtie_mesh()
    assert not mesh.has_circulation(0)
    assert mesh.has_circulation(1)
    # Neighbours are still reachable for the sums over halfedges.
    assert _neighbors(mesh, 0) == {1, 2, 3, 4}


def test_isolated_vertex_has_no_circulation():
    mesh = disk_mesh()
    mesh.vertices[99] = Vertex(99, np.zeros(3))
    mesh.increment_topology_version()
    assert not mesh.has_circulation(99)
    assert mesh.incident_halfedges(99) == []


def test_grid_interior_valence():
    mesh = grid_mesh(4)
    # Interior vertex of a consistently split grid has six neighbours.
    assert len(mesh.incident_halfedges(5)) == 6


def test_validate_facet_loops_detects_open_chain():
    mesh = Mesh()
    for i, p in enumerate([[0, 0, 0], [1, 0, 0], [0, 1, 0]]):
        mesh.vertices[i] = Vertex(i, np.asarray(p, dtype=float))
    mesh.edges[1] = Edge(1, 0, 1)
    mesh.edges[2] = Edge(2, 1, 2)
    mesh.edges[3] = Edge(3, 0, 2)
    mesh.facets[0] = Facet(0, [1, 2, 3])
    with pytest.raises(MeshError):
        mesh.validate_facet_loops()
    mesh.facets[0] = Facet(0, [1, 2, -3])
    assert mesh.validate_facet_loops()


def test_set_position_copies_input():
    mesh = disk_mesh()
    new = np.array([0.1, 0.2, 0.3])
    mesh.set_position(0, new)
    new[0] = 5.0
    assert np.allclose(mesh.position(0), [0.1, 0.2, 0.3])


def test_set_position_bumps_version():
    mesh = disk_mesh()
    topology = mesh._topology_version
    version = mesh._version
    mesh.set_position(3, [1.0, 0.0, 0.5])
    assert mesh._version == version + 1
    assert mesh._topology_version == topology
