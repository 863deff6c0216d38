"""High-level processor tying together loading, index building and layout."""

from __future__ import annotations

import math
import os
import threading
import time
from pathlib import Path

from .algorithms import (
    build_backward_push_index,
    build_dnpr,
    generate_coordinates,
    perform_mds,
)
from .loaders import load_hierarchy_file, load_mapping, load_root, read_graph
from .models import (
    Config,
    CoordinateResult,
    Graph,
    GraphProcessorError,
    PPRIndex,
    SupernodeHierarchy,
    default_config,
)
from .storage import (
    load_backward_index,
    load_coordinates,
    load_dnpr,
    missing_dataset_files,
    save_backward_index,
    save_coordinates,
    save_dnpr,
)

PathLike = str | os.PathLike

_DNPR_ITERATIONS = 20


def _safe_reciprocal(value: float) -> float:
    return 1.0 / value if value else math.inf


class GraphProcessor:
    """Loads a dataset and its hierarchy, builds PPR indices and lays out supernodes."""

    def __init__(self, base_path: PathLike, config: Config | None = None) -> None:
        self.base_path = Path(base_path)
        self.config = config if config is not None else default_config()
        self.graph: Graph | None = None
        self.hierarchy: SupernodeHierarchy | None = None
        self.ppr_index: PPRIndex | None = None
        self._lock = threading.RLock()

    def _log(self, message: str) -> None:
        if self.config.verbose:
            print(message)

    def _dnpr_path(self, dataset_id: str) -> Path:
        return self.base_path / "pr_idx" / f"{dataset_id}.dnpr"

    def _backward_path(self, dataset_id: str) -> Path:
        return self.base_path / "bwd_idx" / dataset_id

    def _hierarchy_paths(self, dataset_id: str, k: int) -> tuple[Path, Path, Path]:
        louvain = self.base_path / "louvain"
        return (
            louvain / "mapping-output" / f"{dataset_id}_{k}.dat",
            louvain / "hierachy-output" / f"{dataset_id}_{k}.dat",
            louvain / "hierachy-output" / f"{dataset_id}_{k}.root",
        )

    def _dnpr_loaded(self) -> bool:
        return self.ppr_index is not None and bool(self.ppr_index.degree_page_rank)

    def _ensure_index(self) -> PPRIndex:
        if self.ppr_index is None:
            self.ppr_index = PPRIndex()
        return self.ppr_index

    def load_graph(self, dataset_id: str) -> None:
        """Load the dataset's graph and adapt the size-dependent parameters."""
        dataset_dir = self.base_path / "dataset"
        graph_path = dataset_dir / f"{dataset_id}.txt"
        attr_path = dataset_dir / f"{dataset_id}_attribute.txt"
        with self._lock:
            try:
                graph = read_graph(graph_path, attr_path)
            except (OSError, GraphProcessorError) as exc:
                raise GraphProcessorError(f"failed to load graph {dataset_id}: {exc}") from exc

            cfg = self.config
            cfg.delta = _safe_reciprocal(250.0 * math.log(graph.n))
            cfg.p_fail = 1.0 / graph.n
            cfg.tau = _safe_reciprocal(math.sqrt(max(cfg.k * graph.n, 0)))
            self.graph = graph
            self._log(
                f"Loaded graph: {graph.n} nodes, {graph.m} edges, "
                f"avg degree: {graph.d_bar:.2f}"
            )

    def load_hierarchy(self, dataset_id: str, k: int) -> None:
        """Load the supernode mapping, hierarchy and roots for clustering size ``k``."""
        map_path, hier_path, root_path = self._hierarchy_paths(dataset_id, k)
        with self._lock:
            try:
                super2leaf, level1_cluster = load_mapping(map_path)
            except (OSError, GraphProcessorError) as exc:
                raise GraphProcessorError(f"failed to load mapping: {exc}") from exc
            try:
                super2super, max_level = load_hierarchy_file(hier_path)
            except (OSError, GraphProcessorError) as exc:
                raise GraphProcessorError(f"failed to load hierarchy: {exc}") from exc
            try:
                root = load_root(root_path)
            except OSError as exc:
                raise GraphProcessorError(f"failed to load root: {exc}") from exc

            hierarchy = SupernodeHierarchy(
                super2leaf=super2leaf,
                super2super=super2super,
                level1_cluster=level1_cluster,
                root=root,
            )
            self.hierarchy = hierarchy
            if self.graph is not None:
                self.graph.max_level = max_level
            self._log(
                f"Loaded hierarchy: {len(super2leaf)} supernodes, "
                f"{len(level1_cluster)} level1 clusters, max level: {max_level}"
            )

    def build_dnpr_indices(self, dataset_id: str) -> None:
        """Compute degree-normalised PageRank and save it under ``pr_idx``."""
        with self._lock:
            if self.graph is None:
                self.load_graph(dataset_id)
            self._log("Building DNPR indices...")
            start = time.perf_counter()
            dnpr = build_dnpr(self.graph, self.config.alpha, _DNPR_ITERATIONS)
            try:
                save_dnpr(self._dnpr_path(dataset_id), dnpr)
            except OSError as exc:
                raise GraphProcessorError(f"failed to save DNPR: {exc}") from exc
            self._log(f"DNPR indices built in {time.perf_counter() - start:.6f}s")

    def build_pdist_indices(self, dataset_id: str, k: int) -> None:
        """Build the backward push index from saved DNPR and save it under ``bwd_idx``."""
        with self._lock:
            if self.graph is None:
                self.load_graph(dataset_id)
            if self.hierarchy is None:
                self.load_hierarchy(dataset_id, k)
            self._log("Building PDist indices...")
            start = time.perf_counter()

            if not self._dnpr_loaded():
                try:
                    dnpr = load_dnpr(self._dnpr_path(dataset_id))
                except (OSError, GraphProcessorError) as exc:
                    raise GraphProcessorError(f"failed to load DNPR: {exc}") from exc
                self._ensure_index().degree_page_rank = dnpr

            index = self._ensure_index()
            try:
                built = build_backward_push_index(
                    self.graph, self.hierarchy, index.degree_page_rank, self.config
                )
            except GraphProcessorError as exc:
                raise GraphProcessorError(
                    f"failed to build backward push index: {exc}"
                ) from exc
            if built.backward_idx_target:
                index.backward_idx_target = built.backward_idx_target
                index.backward_idx_in_cluster = built.backward_idx_in_cluster
                index.backward_idx_info = built.backward_idx_info

            try:
                save_backward_index(self._backward_path(dataset_id), index)
            except (OSError, GraphProcessorError) as exc:
                raise GraphProcessorError(f"failed to save backward index: {exc}") from exc
            self._log(f"PDist indices built in {time.perf_counter() - start:.6f}s")

    def _load_indices_if_needed(self, dataset_id: str) -> None:
        with self._lock:
            if not self._dnpr_loaded():
                try:
                    dnpr = load_dnpr(self._dnpr_path(dataset_id))
                except (OSError, GraphProcessorError) as exc:
                    self._log(f"Could not load DNPR: {exc}")
                else:
                    self._ensure_index().degree_page_rank = dnpr

            if self.ppr_index is None or not self.ppr_index.backward_idx_target:
                index = self._ensure_index()
                try:
                    loaded = load_backward_index(self._backward_path(dataset_id))
                except GraphProcessorError as exc:
                    self._log(f"Could not load backward index: {exc}")
                else:
                    index.backward_idx_target = loaded.backward_idx_target
                    index.backward_idx_in_cluster = loaded.backward_idx_in_cluster
                    index.backward_idx_info = loaded.backward_idx_info

    def get_supernode_coordinates(
        self, dataset_id: str, supernode_id: str, k: int
    ) -> CoordinateResult:
        """Lay out the children of ``supernode_id``, loading whatever is missing."""
        with self._lock:
            if self.graph is None:
                self.load_graph(dataset_id)
            if self.hierarchy is None:
                self.load_hierarchy(dataset_id, k)
            self._load_indices_if_needed(dataset_id)
            self._log(f"Generating coordinates for supernode: {supernode_id}")
            start = time.perf_counter()
            dnpr = self.ppr_index.degree_page_rank if self.ppr_index is not None else []
            try:
                result = generate_coordinates(
                    self.graph, self.hierarchy, dnpr, self.config, supernode_id
                )
            except GraphProcessorError as exc:
                raise GraphProcessorError(f"failed to generate coordinates: {exc}") from exc
            self._log(f"Coordinates generated in {time.perf_counter() - start:.6f}s")
            return result

    def graph_stats(self) -> dict[str, object]:
        """Summary of what is currently loaded."""
        with self._lock:
            stats: dict[str, object] = {}
            if self.graph is not None:
                stats["nodes"] = self.graph.n
                stats["edges"] = self.graph.m
                stats["avg_degree"] = self.graph.d_bar
                stats["max_level"] = self.graph.max_level
            if self.hierarchy is not None:
                stats["supernodes"] = len(self.hierarchy.super2leaf)
                stats["level1_clusters"] = len(self.hierarchy.level1_cluster)
                stats["root_supernodes"] = len(self.hierarchy.root)
            if self.ppr_index is not None:
                stats["dnpr_loaded"] = bool(self.ppr_index.degree_page_rank)
                stats["backward_index_loaded"] = bool(self.ppr_index.backward_idx_target)
            return stats

    def validate_dataset(self, dataset_id: str, k: int) -> list[str]:
        """Descriptions of the dataset's required files that are missing."""
        return missing_dataset_files(self.base_path, dataset_id, k)

    def update_config(self, config: Config) -> None:
        """Replace the configuration."""
        with self._lock:
            self.config = config

    def save_coordinates(self, result: CoordinateResult, path: PathLike) -> None:
        """Write a coordinate result as JSON."""
        save_coordinates(result, path)

    def load_coordinates(self, path: PathLike) -> CoordinateResult:
        """Read a coordinate result from JSON."""
        return load_coordinates(path)

    def load_dnpr(self, path: PathLike) -> list[float]:
        """Read saved degree-normalised PageRank values."""
        return load_dnpr(path)

    def perform_mds(self, dist_matrix: list[list[float]]) -> tuple[list[float], list[float]]:
        """Lay points out in 2D approximating ``dist_matrix``."""
        return perform_mds(dist_matrix)