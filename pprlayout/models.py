"""Core data structures shared by the graph layout pipeline."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any

_INT_RE = re.compile(r"[+-]?[0-9]+")


class GraphProcessorError(Exception):
    """Raised when a dataset, index or supernode cannot be processed."""


@dataclass
class Config:
    """Tuning parameters for the PPR computations and layout."""

    alpha: float = 0.2
    delta: float = 1.0 / (250.0 * math.log(1000))
    p_fail: float = 0.001
    ep_r: float = 0.5
    tau: float = 1.0 / math.sqrt(25 * 1000)
    k: int = 25
    thread_num: int = 1
    verbose: bool = False


def default_config() -> Config:
    """Return a fresh configuration holding the default parameters."""
    return Config()


@dataclass
class Graph:
    """An undirected graph stored as adjacency lists."""

    n: int
    m: int
    edges: list[list[int]]
    degrees: list[int]
    d_bar: float
    max_level: int = 0

    @property
    def nodes(self) -> list[int]:
        return list(range(self.n))


@dataclass
class SupernodeHierarchy:
    """Hierarchical clustering of the graph into supernodes."""

    super2leaf: dict[str, list[int]] = field(default_factory=dict)
    super2super: dict[str, list[int]] = field(default_factory=dict)
    level1_cluster: list[list[int]] = field(default_factory=list)
    root: list[str] = field(default_factory=list)
    hub_cluster: list[str] = field(default_factory=list)


@dataclass
class PPRIndex:
    """Precomputed personalised PageRank indices."""

    random_walk_idx: list[int] = field(default_factory=list)
    rw_idx_info_offset: list[int] = field(default_factory=list)
    rw_idx_info_size: list[int] = field(default_factory=list)
    backward_idx_target: list[int] = field(default_factory=list)
    backward_idx_in_cluster: list[float] = field(default_factory=list)
    backward_idx_info: dict[int, tuple[int, int]] = field(default_factory=dict)
    degree_page_rank: list[float] = field(default_factory=list)


@dataclass
class ForwardIndex:
    """Reserve and residual values produced by a push computation."""

    reserve: dict[int, float] = field(default_factory=dict)
    residual: dict[int, float] = field(default_factory=dict)


@dataclass
class SupernodeMetadata:
    """Description of the supernode whose children were laid out."""

    supernode_name: str
    level: int
    children: list[str] = field(default_factory=list)
    node_weights: list[int] = field(default_factory=list)
    degrees: list[float] = field(default_factory=list)
    dpr_values: list[float] = field(default_factory=list)
    leaf_nodes: list[int] = field(default_factory=list)
    ppr_matrix: list[list[float]] = field(default_factory=list)
    pdist_matrix: list[list[float]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "supernode_name": self.supernode_name,
            "level": self.level,
            "children": list(self.children),
            "node_weights": list(self.node_weights),
            "degrees": list(self.degrees),
            "dpr_values": list(self.dpr_values),
        }
        if self.leaf_nodes:
            data["leaf_nodes"] = list(self.leaf_nodes)
        data["ppr_matrix"] = [list(row) for row in self.ppr_matrix]
        data["pdist_matrix"] = [list(row) for row in self.pdist_matrix]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SupernodeMetadata:
        return cls(
            supernode_name=data.get("supernode_name") or "",
            level=int(data.get("level") or 0),
            children=list(data.get("children") or []),
            node_weights=[int(w) for w in data.get("node_weights") or []],
            degrees=[float(d) for d in data.get("degrees") or []],
            dpr_values=[float(d) for d in data.get("dpr_values") or []],
            leaf_nodes=[int(v) for v in data.get("leaf_nodes") or []],
            ppr_matrix=[[float(v) for v in row] for row in data.get("ppr_matrix") or []],
            pdist_matrix=[[float(v) for v in row] for row in data.get("pdist_matrix") or []],
        )


@dataclass
class CoordinateResult:
    """2D positions and radii for the children of a supernode."""

    x: list[float] = field(default_factory=list)
    y: list[float] = field(default_factory=list)
    radii: list[float] = field(default_factory=list)
    metadata: SupernodeMetadata | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "x": list(self.x),
            "y": list(self.y),
            "radii": list(self.radii),
            "metadata": self.metadata.to_dict() if self.metadata is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CoordinateResult:
        metadata = data.get("metadata")
        return cls(
            x=[float(v) for v in data.get("x") or []],
            y=[float(v) for v in data.get("y") or []],
            radii=[float(v) for v in data.get("radii") or []],
            metadata=SupernodeMetadata.from_dict(metadata) if metadata is not None else None,
        )


def _prefixed_int(part: str, prefix: str) -> int:
    if part.startswith(prefix):
        digits = part[len(prefix):]
        if _INT_RE.fullmatch(digits):
            return int(digits)
    return 0


def parse_supernode_name(name: str) -> tuple[int, int]:
    """Return (component, level) from a name like ``c0_l2_5``; (0, 0) if malformed."""
    parts = name.split("_")
    if len(parts) != 3:
        return 0, 0
    return _prefixed_int(parts[0], "c"), _prefixed_int(parts[1], "l")


def supernode_name(component: int, level: int, index: int) -> str:
    """Build a supernode name of the form ``c{component}_l{level}_{index}``."""
    return f"c{component}_l{level}_{index}"