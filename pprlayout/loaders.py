"""Readers for graph, attribute and hierarchy text files."""

from __future__ import annotations

import os
import re
from collections.abc import Iterator

from .models import Graph, GraphProcessorError, SupernodeHierarchy, parse_supernode_name

_INT_RE = re.compile(r"[+-]?[0-9]+")

PathLike = str | os.PathLike


def _to_int(text: str) -> int | None:
    return int(text) if _INT_RE.fullmatch(text) else None


def _stripped_lines(path: PathLike) -> Iterator[str]:
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            yield line.strip()


def read_attributes(path: PathLike) -> tuple[int, int]:
    """Read the node count ``n`` and edge count ``m`` from a ``key=value`` file."""
    n = 0
    m = 0
    for line in _stripped_lines(path):
        if "=" not in line:
            continue
        parts = line.split("=")
        if len(parts) != 2:
            continue
        key, value = parts[0].strip(), parts[1].strip()
        if key not in ("n", "m"):
            continue
        parsed = _to_int(value)
        if parsed is None:
            raise GraphProcessorError(f"invalid value for {key}: {value!r}")
        if key == "n":
            n = parsed
        else:
            m = parsed
    return n, m


def read_edges(path: PathLike, n: int) -> list[list[int]]:
    """Read an undirected edge list into adjacency lists for ``n`` nodes.

    Malformed lines, self-loops and out-of-range endpoints are skipped.
    """
    edges: list[list[int]] = [[] for _ in range(n)]
    for line in _stripped_lines(path):
        parts = line.split()
        if len(parts) != 2:
            continue
        u, v = _to_int(parts[0]), _to_int(parts[1])
        if u is None or v is None:
            continue
        if not (0 <= u < n and 0 <= v < n) or u == v:
            continue
        edges[u].append(v)
        edges[v].append(u)
    return edges


def read_graph(graph_path: PathLike, attribute_path: PathLike) -> Graph:
    """Load a graph from its edge file and attribute file."""
    n, m = read_attributes(attribute_path)
    if n <= 0:
        raise GraphProcessorError(f"graph has no nodes (n={n})")
    edges = read_edges(graph_path, n)
    degrees = [len(neighbours) for neighbours in edges]
    return Graph(n=n, m=m, edges=edges, degrees=degrees, d_bar=2 * m / n)


def _sized_records(path: PathLike) -> Iterator[tuple[str, list[int]]]:
    for line in _stripped_lines(path):
        parts = line.split()
        if len(parts) < 2:
            continue
        size = _to_int(parts[1])
        if size is None or size < 0 or len(parts) < 2 + size:
            continue
        values = []
        for token in parts[2:2 + size]:
            value = _to_int(token)
            if value is None:
                raise GraphProcessorError(f"invalid integer {token!r} in {os.fspath(path)}")
            values.append(value)
        yield parts[0], values


def load_mapping(path: PathLike) -> tuple[dict[str, list[int]], list[list[int]]]:
    """Read supernode-to-leaf mapping; return it with the level-1 clusters in file order."""
    super2leaf: dict[str, list[int]] = {}
    level1_cluster: list[list[int]] = []
    for name, nodes in _sized_records(path):
        super2leaf[name] = nodes
        if parse_supernode_name(name)[1] == 1:
            level1_cluster.append(nodes)
    return super2leaf, level1_cluster


def load_hierarchy_file(path: PathLike) -> tuple[dict[str, list[int]], int]:
    """Read supernode-to-child mapping; return it with the highest level seen."""
    super2super: dict[str, list[int]] = {}
    max_level = 0
    for name, children in _sized_records(path):
        super2super[name] = children
        max_level = max(max_level, parse_supernode_name(name)[1])
    return super2super, max_level


def load_root(path: PathLike) -> list[str]:
    """Read the root supernode names, one per non-empty line."""
    return [line for line in _stripped_lines(path) if line]


def read_hierarchy(
    mapping_path: PathLike, hierarchy_path: PathLike, root_path: PathLike
) -> tuple[SupernodeHierarchy, int]:
    """Load a full supernode hierarchy and its maximum level."""
    super2leaf, level1_cluster = load_mapping(mapping_path)
    super2super, max_level = load_hierarchy_file(hierarchy_path)
    root = load_root(root_path)
    hierarchy = SupernodeHierarchy(
        super2leaf=super2leaf,
        super2super=super2super,
        level1_cluster=level1_cluster,
        root=root,
    )
    return hierarchy, max_level