import math
import random

import pytest

from pprlayout.algorithms import (
    add_radii_to_distances,
    backward_push,
    build_backward_push_index,
    build_dnpr,
    compute_radii,
    compute_rmax,
    compute_stress,
    compute_super_ppr,
    forward_push,
    generate_coordinates,
    leaf_nodes,
    perform_mds,
    ppr_by_random_walks,
    ppr_to_distance,
    random_walk,
    supernode_children,
)
from pprlayout.models import Config, Graph, GraphProcessorError, SupernodeHierarchy


def make_graph(n, pairs):
    edges = [[] for _ in range(n)]
    for u, v in pairs:
        edges[u].append(v)
        edges[v].append(u)
    return Graph(
        n=n,
        m=len(pairs),
        edges=edges,
        degrees=[len(e) for e in edges],
        d_bar=2 * len(pairs) / n,
    )


def triangle():
    return make_graph(3, [(0, 1), (1, 2), (2, 0)])


def path4():
    return make_graph(4, [(0, 1), (1, 2), (2, 3)])


def dist(xs, ys, i, j):
    return math.hypot(xs[i] - xs[j], ys[i] - ys[j])


def level1_hierarchy(leaves):
    return SupernodeHierarchy(
        super2leaf={"c0_l1_0": list(leaves)},
        super2super={"c0_l2_0": [0]},
        level1_cluster=[list(leaves)],
        root=["c0_l2_0"],
    )


# ---- DNPR ----

def test_dnpr_triangle_is_uniform_and_sums_near_one():
    pr = build_dnpr(triangle(), 0.2, 20)
    assert len(pr) == 3
    assert pr[0] == pytest.approx(pr[1]) == pytest.approx(pr[2])
    assert abs(sum(pr) - 1.0) <= 0.1


def test_dnpr_star_center_proportional_to_degree():
    graph = make_graph(5, [(0, 1), (0, 2), (0, 3), (0, 4)])
    pr = build_dnpr(graph, 0.2, 20)
    assert pr[1] == pytest.approx(pr[2]) == pytest.approx(pr[4])
    assert pr[0] == pytest.approx(4 * pr[1])


def test_dnpr_path_is_symmetric():
    graph = make_graph(5, [(0, 1), (1, 2), (2, 3), (3, 4)])
    pr = build_dnpr(graph, 0.2, 20)
    assert pr[0] == pytest.approx(pr[4])
    assert pr[1] == pytest.approx(pr[3])


def test_dnpr_single_node_without_edges():
    graph = Graph(n=1, m=0, edges=[[]], degrees=[0], d_bar=0.0)
    assert build_dnpr(graph, 0.2, 20) == [0.0]


def test_dnpr_zero_degree_node_gets_nothing():
    pr = build_dnpr(make_graph(3, [(0, 1)]), 0.2, 20)
    assert pr[2] == 0.0
    assert pr[0] > 0


# ---- push ----

def test_forward_push_conserves_mass():
    graph = triangle()
    result = forward_push(graph, [0], 0.2, 1e-6)
    total = sum(result.reserve.values()) + sum(result.residual.values())
    assert total == pytest.approx(2.0)
    assert set(result.reserve) == {0, 1, 2}


def test_backward_push_target_keeps_alpha():
    result = backward_push(triangle(), 0, 0.2, 1e-4)
    assert result.reserve[0] >= 0.2
    assert set(result.reserve) == {0, 1, 2}


def test_compute_rmax_positive_for_triangle():
    assert compute_rmax(triangle(), Config(), 1) > 0


def test_compute_rmax_nan_without_edges():
    graph = Graph(n=1, m=0, edges=[[]], degrees=[0], d_bar=0.0)
    value = compute_rmax(graph, Config(), 1)
    assert repr(value) == "nan"


# ---- backward index ----

def test_backward_index_requires_dnpr():
    with pytest.raises(GraphProcessorError):
        build_backward_push_index(triangle(), level1_hierarchy([0, 1, 2]), [], Config())


def test_backward_index_layout():
    graph = triangle()
    dnpr = build_dnpr(graph, 0.2, 20)
    index = build_backward_push_index(graph, level1_hierarchy([0, 1, 2]), dnpr, Config(tau=0.01))
    assert index.backward_idx_target == [0, 1, 2]
    assert index.backward_idx_info == {0: (0, 3), 1: (3, 3), 2: (6, 3)}
    assert len(index.backward_idx_in_cluster) == 9
    assert all(v > 0 for v in index.backward_idx_in_cluster)
    assert index.degree_page_rank == dnpr


def test_backward_index_no_targets():
    graph = triangle()
    dnpr = build_dnpr(graph, 0.2, 20)
    index = build_backward_push_index(graph, level1_hierarchy([0, 1, 2]), dnpr, Config(tau=10.0))
    assert index.backward_idx_target == []
    assert index.backward_idx_in_cluster == []


def test_backward_index_without_clusters_raises():
    graph = triangle()
    dnpr = build_dnpr(graph, 0.2, 20)
    hierarchy = SupernodeHierarchy()
    with pytest.raises(GraphProcessorError):
        build_backward_push_index(graph, hierarchy, dnpr, Config(tau=0.01))


# ---- hierarchy helpers ----

def test_supernode_children_level1_and_level2():
    hierarchy = SupernodeHierarchy(
        super2leaf={"c0_l1_0": [0, 1], "c0_l1_1": [2]},
        super2super={"c0_l2_0": [0, 1]},
    )
    assert supernode_children(hierarchy, "c0_l1_0") == ["node_0", "node_1"]
    assert supernode_children(hierarchy, "c0_l2_0") == ["c0_l1_0", "c0_l1_1"]
    with pytest.raises(GraphProcessorError):
        supernode_children(hierarchy, "nonexistent")


def test_leaf_nodes():
    hierarchy = level1_hierarchy([0, 1, 2])
    assert leaf_nodes(hierarchy, "c0_l1_0") == [0, 1, 2]
    with pytest.raises(GraphProcessorError):
        leaf_nodes(hierarchy, "c0_l1_9")


# ---- super PPR ----

def test_super_ppr_level1():
    matrix, children = compute_super_ppr(path4(), level1_hierarchy([0, 1, 2, 3]), Config(), "c0_l1_0")
    assert children == ["node_0", "node_1", "node_2", "node_3"]
    assert len(matrix) == 4 and all(len(row) == 4 for row in matrix)
    assert all(matrix[i][i] > 0 for i in range(4))


def test_super_ppr_level2():
    graph = path4()
    hierarchy = SupernodeHierarchy(
        super2leaf={"c0_l1_0": [0, 1], "c0_l1_1": [2, 3]},
        super2super={"c0_l2_0": [0, 1]},
        level1_cluster=[[0, 1], [2, 3]],
    )
    matrix, children = compute_super_ppr(graph, hierarchy, Config(), "c0_l2_0")
    assert children == ["c0_l1_0", "c0_l1_1"]
    assert matrix[0][0] > 0 and matrix[1][1] > 0


def test_super_ppr_invalid_supernode():
    with pytest.raises(GraphProcessorError):
        compute_super_ppr(path4(), level1_hierarchy([0, 1, 2, 3]), Config(), "nonexistent")


def test_super_ppr_node_outside_graph():
    hierarchy = level1_hierarchy([2, 999])
    with pytest.raises(GraphProcessorError):
        compute_super_ppr(triangle(), hierarchy, Config(), "c0_l1_0")


# ---- distances and radii ----

def test_ppr_to_distance_clamps():
    assert ppr_to_distance([[0.5, 0.0], [0.0, 0.5]], 16) == [[2.0, 8.0], [8.0, 2.0]]


def test_ppr_to_distance_single_node():
    assert ppr_to_distance([[0.0]], 1) == [[0.0]]


def test_compute_radii_scale_with_sqrt_weight():
    radii = compute_radii([1, 4], [[2.0, 2.0], [2.0, 2.0]])
    assert radii[1] == pytest.approx(2 * radii[0])
    assert radii[0] > 0


def test_add_radii_to_distances():
    assert add_radii_to_distances([[0.0, 1.0], [1.0, 0.0]], [0.5, 1.0]) == [
        [1.0, 2.5],
        [2.5, 2.0],
    ]


def test_compute_stress():
    ones = [[1.0, 1.0], [1.0, 1.0]]
    assert compute_stress(ones, [[0, 1], [1, 0]], [[0, 3], [3, 0]]) == pytest.approx(4.0)
    zeros = [[0.0, 0.0], [0.0, 0.0]]
    assert compute_stress(zeros, [[0, 1], [1, 0]], [[0, 3], [3, 0]]) == 0.0


# ---- MDS ----

def test_mds_empty_raises():
    with pytest.raises(GraphProcessorError):
        perform_mds([])


def test_mds_identical_points_keeps_start():
    xs, ys = perform_mds([[0.0, 0.0], [0.0, 0.0]])
    assert xs == pytest.approx([50.0, -50.0])
    assert ys == pytest.approx([0.0, 0.0], abs=1e-9)


def test_mds_triangle_stays_equilateral():
    xs, ys = perform_mds([[0, 1, 1], [1, 0, 1], [1, 1, 0]])
    assert len(xs) == 3 and len(ys) == 3
    d01, d12, d02 = dist(xs, ys, 0, 1), dist(xs, ys, 1, 2), dist(xs, ys, 0, 2)
    assert d01 == pytest.approx(d12, rel=1e-6)
    assert d01 == pytest.approx(d02, rel=1e-6)


def test_mds_square_keeps_symmetry():
    r2 = math.sqrt(2)
    xs, ys = perform_mds([[0, 1, r2, 1], [1, 0, 1, r2], [r2, 1, 0, 1], [1, r2, 1, 0]])
    assert len(xs) == 4
    side = dist(xs, ys, 0, 1)
    for i, j in [(1, 2), (2, 3), (3, 0)]:
        assert dist(xs, ys, i, j) == pytest.approx(side, rel=1e-6)
    assert dist(xs, ys, 0, 2) == pytest.approx(dist(xs, ys, 1, 3), rel=1e-6)


def test_mds_extreme_values():
    xs, ys = perform_mds([[0, 1e-10, 1e10], [1e-10, 0, 1e10], [1e10, 1e10, 0]])
    assert len(xs) == 3 and len(ys) == 3


def test_mds_nan_and_inf():
    xs, ys = perform_mds([[0, 1, math.nan], [1, 0, math.inf], [math.nan, math.inf, 0]])
    assert len(xs) == 3 and len(ys) == 3


# ---- coordinates ----

def test_generate_coordinates_level1():
    graph = path4()
    hierarchy = level1_hierarchy([0, 1, 2, 3])
    dnpr = build_dnpr(graph, 0.2, 20)
    result = generate_coordinates(graph, hierarchy, dnpr, Config(), "c0_l1_0")
    assert len(result.x) == 4 and len(result.y) == 4 and len(result.radii) == 4
    assert result.metadata.level == 1
    assert result.metadata.children == ["node_0", "node_1", "node_2", "node_3"]
    assert result.metadata.leaf_nodes == [0, 1, 2, 3]
    assert result.metadata.degrees == [1.0, 2.0, 2.0, 1.0]
    assert result.metadata.dpr_values == dnpr


def test_generate_coordinates_is_deterministic():
    graph = make_graph(4, [(0, 1), (1, 2), (2, 3), (3, 0), (0, 2)])
    hierarchy = level1_hierarchy([0, 1, 2, 3])
    dnpr = build_dnpr(graph, 0.2, 20)
    runs = [generate_coordinates(graph, hierarchy, dnpr, Config(), "c0_l1_0") for _ in range(3)]
    for run in runs[1:]:
        assert run.x == runs[0].x
        assert run.y == runs[0].y


def test_generate_coordinates_single_point():
    graph = Graph(n=1, m=0, edges=[[]], degrees=[0], d_bar=0.0)
    result = generate_coordinates(graph, level1_hierarchy([0]), [0.0], Config(), "c0_l1_0")
    assert result.x == [50.0]
    assert result.y == [0.0]
    assert result.radii == [0.0]


def test_generate_coordinates_level2_weights():
    graph = path4()
    hierarchy = SupernodeHierarchy(
        super2leaf={"c0_l1_0": [0, 1], "c0_l1_1": [2, 3]},
        super2super={"c0_l2_0": [0, 1]},
        level1_cluster=[[0, 1], [2, 3]],
    )
    dnpr = build_dnpr(graph, 0.2, 20)
    result = generate_coordinates(graph, hierarchy, dnpr, Config(), "c0_l2_0")
    assert result.metadata.level == 2
    assert result.metadata.node_weights == [2, 2]
    assert result.metadata.degrees == [1.5, 1.5]
    assert result.metadata.leaf_nodes == []


# ---- random walks ----

def test_random_walk_isolated_start():
    graph = make_graph(3, [(0, 1)])
    assert random_walk(graph, 2, 0.2, random.Random(1)) == 2


def test_random_walk_alpha_one_stops_at_start():
    assert random_walk(triangle(), 1, 1.0, random.Random(1)) == 1


def test_random_walk_stays_in_graph():
    rng = random.Random(7)
    ends = {random_walk(triangle(), 0, 0.2, rng) for _ in range(50)}
    assert ends <= {0, 1, 2}


def test_ppr_by_random_walks_too_few_walks():
    assert ppr_by_random_walks(triangle(), [0], {0, 1, 2}, 0.2, 0.5, 1.0, random.Random(1)) == {}


def test_ppr_by_random_walks_total_mass():
    result = ppr_by_random_walks(
        triangle(), [0, 1], {0, 1, 2}, 0.2, 10.0, 1.0, random.Random(3)
    )
    assert set(result) <= {0, 1, 2}
    assert sum(result.values()) == pytest.approx(1.0)


def test_ppr_by_random_walks_only_inside_nodes():
    result = ppr_by_random_walks(
        triangle(), [0], {2}, 0.2, 20.0, 1.0, random.Random(5)
    )
    assert set(result) <= {2}
    assert sum(result.values()) <= 1.0 + 1e-9