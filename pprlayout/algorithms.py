"""Personalised PageRank computations and the SMACOF layout of supernodes."""

from __future__ import annotations

import math
import random
from collections import deque
from collections.abc import Container, Sequence
from itertools import combinations

from .models import (
    Config,
    CoordinateResult,
    ForwardIndex,
    Graph,
    GraphProcessorError,
    PPRIndex,
    SupernodeHierarchy,
    SupernodeMetadata,
    parse_supernode_name,
    supernode_name,
)

Matrix = list[list[float]]

_MDS_MAX_ITER = 300
_MDS_TOLERANCE = 1e-3
_MDS_START_RADIUS = 50.0


def _div(a: float, b: float) -> float:
    """Divide with IEEE semantics instead of raising on a zero divisor."""
    try:
        return a / b
    except ZeroDivisionError:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a)


def _pow(x: float, y: float) -> float:
    try:
        return math.pow(x, y)
    except OverflowError:
        return math.inf
    except ValueError:
        return math.inf if x == 0 else math.nan


def _fmin(a: float, b: float) -> float:
    return math.nan if math.isnan(a) or math.isnan(b) else min(a, b)


def _fmax(a: float, b: float) -> float:
    return math.nan if math.isnan(a) or math.isnan(b) else max(a, b)


def build_dnpr(graph: Graph, alpha: float, iterations: int) -> list[float]:
    """Degree-normalised PageRank by synchronous power iteration."""
    two_m = 2.0 * graph.m
    residuals = [_div(float(degree), two_m) for degree in graph.degrees]
    pending = [0.0] * graph.n
    pr = [0.0] * graph.n
    r_sum = 1.0

    for _ in range(iterations):
        if not r_sum > 1e-9:
            break
        for node, degree in enumerate(graph.degrees):
            if degree == 0:
                continue
            kept = alpha * residuals[node]
            pr[node] += kept
            r_sum -= kept
            increment = (residuals[node] - kept) / degree
            residuals[node] = 0.0
            for neighbour in graph.edges[node]:
                pending[neighbour] += increment
        residuals, pending = pending, residuals
    return pr


def backward_push(graph: Graph, target: int, alpha: float, rmax: float) -> ForwardIndex:
    """Backward push from ``target`` with threshold ``rmax``."""
    reserve: dict[int, float] = {}
    residual: dict[int, float] = {target: 1.0}
    queue = deque([target])

    while queue:
        v = queue.popleft()
        v_residue = residual.get(v, 0.0)
        if v_residue == 0:
            continue
        residual[v] = 0.0
        reserve[v] = reserve.get(v, 0.0) + v_residue * alpha
        remaining = (1.0 - alpha) * v_residue

        for nxt in graph.edges[v]:
            degree = graph.degrees[nxt]
            if degree == 0:
                continue
            old = residual.get(nxt, 0.0)
            residual[nxt] = old + remaining / degree
            if old / degree <= rmax and residual[nxt] / degree > rmax:
                queue.append(nxt)
    return ForwardIndex(reserve=reserve, residual=residual)


def forward_push(graph: Graph, sources: Sequence[int], alpha: float, rmax: float) -> ForwardIndex:
    """Forward push from ``sources``, each seeded with its degree."""
    reserve: dict[int, float] = {}
    residual: dict[int, float] = {source: float(graph.degrees[source]) for source in sources}
    queue = deque(sources)

    while queue:
        v = queue.popleft()
        v_residue = residual.get(v, 0.0)
        degree = graph.degrees[v]
        if v_residue == 0 or degree == 0:
            continue
        if v_residue / degree < rmax:
            continue
        residual[v] = 0.0
        reserve[v] = reserve.get(v, 0.0) + v_residue * alpha

        neighbours = graph.edges[v]
        if not neighbours:
            residual[sources[0]] = residual.get(sources[0], 0.0) + v_residue * (1 - alpha)
            continue

        share = ((1.0 - alpha) * v_residue) / len(neighbours)
        for nxt in neighbours:
            old = residual.get(nxt, 0.0)
            residual[nxt] = old + share
            nxt_degree = graph.degrees[nxt]
            if nxt_degree > 0 and old / nxt_degree <= rmax and residual[nxt] / nxt_degree > rmax:
                queue.append(nxt)
    return ForwardIndex(reserve=reserve, residual=residual)


def compute_rmax(graph: Graph, config: Config, source_size: int) -> float:
    """Residual threshold for forward push; ``source_size`` does not affect it."""
    deltap = graph.d_bar * config.delta
    max_val = 1.0 - _pow(float(graph.n), -2 * config.ep_r)
    min_val = 1.0 - math.exp(-2 * config.ep_r)
    epsilon_p = _fmin(max_val, _fmax(1.0 - _pow(2 * deltap / math.e, config.ep_r), min_val))
    return _div(_div(_div(epsilon_p * deltap, config.tau), float(graph.m)), 2.0)


def build_backward_push_index(
    graph: Graph, hierarchy: SupernodeHierarchy, dnpr: Sequence[float], config: Config
) -> PPRIndex:
    """Backward push index for every node whose DNPR exceeds ``config.tau``."""
    if not dnpr:
        raise GraphProcessorError("DNPR not loaded")
    if len(dnpr) < graph.n:
        raise GraphProcessorError(f"DNPR has {len(dnpr)} values for {graph.n} nodes")

    leaf2cluster = [0] * graph.n
    for cluster_id, cluster in enumerate(hierarchy.level1_cluster):
        for leaf in cluster:
            if 0 <= leaf < graph.n:
                leaf2cluster[leaf] = cluster_id

    tau = config.tau
    targets = [node for node, value in enumerate(dnpr[: graph.n]) if value > tau]
    index = PPRIndex(degree_page_rank=list(dnpr))
    if not targets:
        if config.verbose:
            print("No targets found for backward push")
        return index
    if not hierarchy.level1_cluster:
        raise GraphProcessorError("no level-1 clusters for backward push targets")

    values: list[float] = []
    info: dict[int, tuple[int, int]] = {}
    for target in targets:
        cluster_nodes = hierarchy.level1_cluster[leaf2cluster[target]]
        pushed = backward_push(graph, target, config.alpha, tau)
        info[target] = (len(values), len(cluster_nodes))
        values.extend(
            graph.degrees[node] * pushed.reserve[node] if node in pushed.reserve else 0.0
            for node in cluster_nodes
        )

    index.backward_idx_target = targets
    index.backward_idx_in_cluster = values
    index.backward_idx_info = info
    if config.verbose:
        print(f"Built backward push index for {len(targets)} targets")
    return index


def supernode_children(hierarchy: SupernodeHierarchy, supernode: str) -> list[str]:
    """Names of a supernode's children: ``node_<id>`` at level 1, supernodes above."""
    component, level = parse_supernode_name(supernode)
    if level == 1:
        if supernode in hierarchy.super2leaf:
            return [f"node_{leaf}" for leaf in hierarchy.super2leaf[supernode]]
    elif supernode in hierarchy.super2super:
        return [
            supernode_name(component, level - 1, child)
            for child in hierarchy.super2super[supernode]
        ]
    raise GraphProcessorError(f"supernode {supernode} not found")


def leaf_nodes(hierarchy: SupernodeHierarchy, supernode: str) -> list[int]:
    """All leaf nodes of a supernode."""
    try:
        return hierarchy.super2leaf[supernode]
    except KeyError:
        raise GraphProcessorError(f"supernode {supernode} not found") from None


def _child_members(
    hierarchy: SupernodeHierarchy, supernode: str
) -> tuple[list[str], list[list[int]], int]:
    component, level = parse_supernode_name(supernode)
    if level == 1:
        leaves = hierarchy.super2leaf.get(supernode, [])
        return [f"node_{leaf}" for leaf in leaves], [[leaf] for leaf in leaves], level
    names = [
        supernode_name(component, level - 1, child)
        for child in hierarchy.super2super.get(supernode, [])
    ]
    return names, [hierarchy.super2leaf.get(name, []) for name in names], level


def compute_super_ppr(
    graph: Graph, hierarchy: SupernodeHierarchy, config: Config, supernode: str
) -> tuple[Matrix, list[str]]:
    """PPR matrix between the children of ``supernode`` and the children's names."""
    children, members, _ = _child_members(hierarchy, supernode)
    if not children:
        raise GraphProcessorError(f"no children found for supernode {supernode}")
    for nodes in members:
        for node in nodes:
            if not 0 <= node < graph.n:
                raise GraphProcessorError(
                    f"supernode {supernode} refers to node {node} outside the graph"
                )

    matrix = [[0.0] * len(children) for _ in children]
    for row, sources in zip(matrix, members):
        if not sources:
            continue
        rmax = compute_rmax(graph, config, len(sources))
        pushed = forward_push(graph, sources, config.alpha, rmax)
        for j, targets in enumerate(members):
            if targets:
                total = sum(pushed.reserve.get(target, 0.0) for target in targets)
                row[j] = total / len(targets)
    return matrix, children


def ppr_to_distance(ppr_matrix: Matrix, n: int) -> Matrix:
    """Turn a PPR matrix into distances clamped to ``[2, 2*log2(n)]``."""
    max_val = 2 * math.log2(n)
    min_val = 2.0
    result = []
    for i, row in enumerate(ppr_matrix):
        out = []
        for j, value in enumerate(row):
            total = value + ppr_matrix[j][i]
            dist = max_val if total == 0 else 1 - math.log2(total)
            out.append(_fmin(_fmax(min_val, dist), max_val))
        result.append(out)
    return result


def compute_radii(node_weights: Sequence[int], dist_matrix: Matrix) -> list[float]:
    """Radius of each node, proportional to the square root of its weight."""
    n = len(node_weights)
    avg_size = sum(node_weights) / n
    avg_dist = sum(sum(row) for row in dist_matrix) / (n * n)
    scale = _div(0.03 * avg_dist, math.sqrt(avg_size))
    return [scale * math.sqrt(weight) for weight in node_weights]


def add_radii_to_distances(dist_matrix: Matrix, radii: Sequence[float]) -> Matrix:
    """Add both endpoints' radii to every distance."""
    return [
        [dist + r_i + r_j for dist, r_j in zip(row, radii)]
        for row, r_i in zip(dist_matrix, radii)
    ]


def _mds_weights(dist_matrix: Matrix) -> Matrix:
    return [[_div(1.0, d * d) if d > 0 else 0.0 for d in row] for row in dist_matrix]


def _current_distances(xs: list[float], ys: list[float]) -> Matrix:
    return [
        [math.hypot(x_i - x_j, y_i - y_j) for x_j, y_j in zip(xs, ys)]
        for x_i, y_i in zip(xs, ys)
    ]


def compute_stress(weights: Matrix, target_dists: Matrix, current_dists: Matrix) -> float:
    """Weighted mean squared difference between target and current distances."""
    stress = 0.0
    total_weight = 0.0
    for i, j in combinations(range(len(weights)), 2):
        diff = target_dists[i][j] - current_dists[i][j]
        stress += weights[i][j] * diff * diff
        total_weight += weights[i][j]
    if total_weight > 0:
        stress /= total_weight
    return stress


def _smacof_step(
    coords: tuple[list[float], list[float]],
    weights: Matrix,
    target_dists: Matrix,
    current_dists: Matrix,
) -> tuple[list[float], list[float]]:
    updated_axes = []
    for axis in coords:
        updated = []
        for i, (w_row, t_row, c_row) in enumerate(zip(weights, target_dists, current_dists)):
            numerator = 0.0
            denominator = 0.0
            for j, (w, t, c, pos) in enumerate(zip(w_row, t_row, c_row, axis)):
                if i == j or not c > 0:
                    continue
                numerator += w * t / c * pos
                denominator += w
            updated.append(numerator / denominator if denominator > 0 else axis[i])
        updated_axes.append(updated)
    return updated_axes[0], updated_axes[1]


def perform_mds(dist_matrix: Matrix) -> tuple[list[float], list[float]]:
    """Lay points out in 2D so their distances approximate ``dist_matrix``."""
    n = len(dist_matrix)
    if n == 0:
        raise GraphProcessorError("empty distance matrix")

    angles = [2.0 * math.pi * i / n for i in range(n)]
    coords = (
        [_MDS_START_RADIUS * math.cos(a) for a in angles],
        [_MDS_START_RADIUS * math.sin(a) for a in angles],
    )
    weights = _mds_weights(dist_matrix)

    for _ in range(_MDS_MAX_ITER):
        current = _current_distances(*coords)
        stress = compute_stress(weights, dist_matrix, current)
        candidate = _smacof_step(coords, weights, dist_matrix, current)
        new_stress = compute_stress(weights, dist_matrix, _current_distances(*candidate))
        if abs(stress - new_stress) < _MDS_TOLERANCE:
            break
        coords = candidate
    return coords


def generate_coordinates(
    graph: Graph,
    hierarchy: SupernodeHierarchy,
    dnpr: Sequence[float],
    config: Config,
    supernode: str,
) -> CoordinateResult:
    """Compute the 2D layout of the children of ``supernode``."""
    ppr_matrix, children = compute_super_ppr(graph, hierarchy, config, supernode)
    _, members, level = _child_members(hierarchy, supernode)
    dist_matrix = ppr_to_distance(ppr_matrix, graph.n)

    node_weights: list[int] = []
    degrees: list[float] = []
    dpr_values: list[float] = []
    leaves: list[int] = []

    if level == 1:
        for i, (leaf,) in enumerate(members):
            node_weights.append(1)
            degrees.append(float(graph.degrees[leaf]))
            dpr_values.append(dnpr[leaf] if i < len(dnpr) and leaf < len(dnpr) else 0.0)
            leaves.append(leaf)
    else:
        for child in children:
            child_leaves = hierarchy.super2leaf.get(child)
            if child_leaves is None:
                node_weights.append(1)
                degrees.append(1.0)
                dpr_values.append(0.0)
                continue
            node_weights.append(len(child_leaves))
            total_degree = float(sum(graph.degrees[leaf] for leaf in child_leaves))
            total_dpr = sum(dnpr[leaf] for leaf in child_leaves if leaf < len(dnpr))
            degrees.append(_div(total_degree, float(len(child_leaves))))
            dpr_values.append(_div(total_dpr, float(len(child_leaves))))

    radii = compute_radii(node_weights, dist_matrix)
    xs, ys = perform_mds(add_radii_to_distances(dist_matrix, radii))

    metadata = SupernodeMetadata(
        supernode_name=supernode,
        level=level,
        children=children,
        node_weights=node_weights,
        degrees=degrees,
        dpr_values=dpr_values,
        leaf_nodes=leaves,
        ppr_matrix=ppr_matrix,
        pdist_matrix=dist_matrix,
    )
    return CoordinateResult(x=xs, y=ys, radii=radii, metadata=metadata)


def random_walk(graph: Graph, start: int, alpha: float, rng: random.Random) -> int:
    """End node of an alpha-terminated random walk from ``start``."""
    if not graph.edges[start]:
        return start
    current = start
    while True:
        if rng.random() < alpha:
            return current
        neighbours = graph.edges[current]
        current = rng.choice(neighbours) if neighbours else start


def ppr_by_random_walks(
    graph: Graph,
    sources: Sequence[int],
    inside_nodes: Container[int],
    alpha: float,
    omega: float,
    rsum: float,
    rng: random.Random,
) -> dict[int, float]:
    """Estimate PPR mass landing in ``inside_nodes`` by Monte Carlo walks."""
    result: dict[int, float] = {}
    ideal = omega * rsum
    if ideal < 1:
        return result
    increment = rsum / ideal
    for _ in range(math.ceil(ideal)):
        destination = random_walk(graph, rng.choice(sources), alpha, rng)
        if destination in inside_nodes:
            result[destination] = result.get(destination, 0.0) + increment
    return result