# pprlayout

Compute degree-normalized PageRank (DNPR) and backward-push personalized
PageRank indices for a graph that has a hierarchical (Louvain-style)
clustering, then lay out the children of any supernode in two dimensions
with weighted MDS (SMACOF).

The package is pure Python and has no runtime dependencies.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Data layout

A `GraphProcessor` works against a base directory with this structure:

```
<base>/dataset/<id>.txt                          edge list, one "u v" pair per line
<base>/dataset/<id>_attribute.txt                "n=<nodes>" and "m=<edges>" lines
<base>/louvain/mapping-output/<id>_<k>.dat       "<supernode> <size> <leaf> ..." lines
<base>/louvain/hierachy-output/<id>_<k>.dat      "<supernode> <size> <child-id> ..." lines
<base>/louvain/hierachy-output/<id>_<k>.root     one root supernode name per line
```

Supernodes are named `c<component>_l<level>_<index>`, for example `c0_l1_0`.
Edges are undirected; malformed lines, self-loops and endpoints outside
`0..n-1` are skipped. A graph whose attribute file gives no positive `n`
is rejected.

Built indices are written to:

```
<base>/pr_idx/<id>.dnpr
<base>/bwd_idx/<id>.target
<base>/bwd_idx/<id>.bwdidx
<base>/bwd_idx/<id>.bwdidx.info
```

These index files use a small little-endian binary format of the package's
own (a `PPRL` header followed by packed integers or doubles). Coordinate
results are saved as indented JSON.

## Usage

```python
from pprlayout.models import default_config
from pprlayout.processor import GraphProcessor

config = default_config()
config.verbose = True
processor = GraphProcessor("/path/to/data", config)

missing = processor.validate_dataset("amazon", 25)
if missing:
    print("missing:", missing)

processor.load_graph("amazon")
processor.load_hierarchy("amazon", 25)
processor.build_dnpr_indices("amazon")
processor.build_pdist_indices("amazon", 25)

result = processor.get_supernode_coordinates("amazon", "c0_l1_0", 25)
print(result.x, result.y, result.radii)
print(result.metadata.children)
processor.save_coordinates(result, "coordinates_c0_l1_0.json")

print(processor.graph_stats())
```

`load_graph` also adapts the size-dependent parameters of the configuration
(`delta`, `p_fail` and `tau`) to the number of nodes. `build_pdist_indices`
needs the DNPR file written by `build_dnpr_indices`; `get_supernode_coordinates`
loads the graph, hierarchy and any saved indices it does not have yet.

For a level-1 supernode the laid-out children are its leaf nodes (named
`node_<id>`); for higher levels they are its child supernodes. The result's
`metadata` holds the children, their weights, degrees, DNPR values, the PPR
matrix and the distance matrix used for the layout.

`graph_stats()` returns a dictionary with `nodes`, `edges`, `avg_degree` and
`max_level` once a graph is loaded, `supernodes`, `level1_clusters` and
`root_supernodes` once a hierarchy is loaded, and `dnpr_loaded` and
`backward_index_loaded` once any index is present.

Failures such as missing input files, a missing DNPR index or an unknown
supernode raise `pprlayout.models.GraphProcessorError`.

## Modules

- `pprlayout.models` – `Config`, `default_config`, `Graph`,
  `SupernodeHierarchy`, `PPRIndex`, `ForwardIndex`, `SupernodeMetadata`,
  `CoordinateResult` (with `to_dict` / `from_dict`), `parse_supernode_name`,
  `supernode_name` and `GraphProcessorError`.
- `pprlayout.loaders` – `read_attributes`, `read_edges`, `read_graph`,
  `load_mapping`, `load_hierarchy_file`, `load_root`, `read_hierarchy`.
- `pprlayout.storage` – `save_dnpr` / `load_dnpr`, `save_backward_index` /
  `load_backward_index`, `save_coordinates` / `load_coordinates` and
  `missing_dataset_files`.
- `pprlayout.algorithms` – `build_dnpr` (power iteration), `forward_push`,
  `backward_push`, `compute_rmax`, `build_backward_push_index`,
  `compute_super_ppr`, `ppr_to_distance`, `compute_radii`,
  `add_radii_to_distances`, `compute_stress`, `perform_mds`,
  `generate_coordinates`, `supernode_children`, `leaf_nodes`, and the
  Monte Carlo helpers `random_walk` and `ppr_by_random_walks`.
- `pprlayout.processor` – `GraphProcessor`, which ties these together.

`perform_mds` can be used on any distance matrix; it starts from points on a
circle, so the result is deterministic:

```python
from pprlayout.algorithms import perform_mds

x, y = perform_mds([[0, 1, 1], [1, 0, 1], [1, 1, 0]])
```

## What the package does not do

- It does not compute the hierarchical clustering. The mapping, hierarchy and
  root files must be produced beforehand by a community-detection tool.
- It has no command-line interface; it is used as a library.
- It does not draw anything: it returns coordinates and radii for a renderer
  of your choice.