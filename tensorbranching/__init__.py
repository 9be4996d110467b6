from .anneal import treesa
from .assemble import (
    IncidenceList,
    assemble,
    build_balanced_tree,
    expression_to_tree,
    group_leaves_by_order,
    map_tree_leaves,
    order_to_expression,
    reassemble,
    tree_leaves,
    tree_to_expression,
)
from .contract import contract_expression
from .elimination import extract_order, inverse_vmap, remap_order
from .expression import (
    ContractionComplexity,
    ContractionTree,
    EinLeaf,
    NestedEinsum,
    contraction_complexity,
    describe,
    expression_from_path,
    flatten,
    optimize_expression,
    same_network,
)
from .graphs import (
    build_index_graph,
    estimate_structure,
    graph_density,
    index_graph_from_inputs,
    induced_subgraph,
)
from .mis import (
    independent_set_expression,
    independent_set_network,
    independent_set_tensors,
    update_code,
)
from .refine import (
    RankSARefiner,
    RefinerConfig,
    TreeSARefiner,
    preset_for_graph,
    refine,
)
from .treedecomp import (
    DecompositionTreeNode,
    decompose,
    decompose_expression,
    decompose_forest,
    decomposition_complexity,
    decomposition_to_order,
    max_bag,
    treewidth,
    update_tree,
)
from .utils import StructuralError

from . import utils


__all__ = (
    "assemble",
    "build_balanced_tree",
    "build_index_graph",
    "contract_expression",
    "contraction_complexity",
    "ContractionComplexity",
    "ContractionTree",
    "decompose",
    "decompose_expression",
    "decompose_forest",
    "decomposition_complexity",
    "decomposition_to_order",
    "DecompositionTreeNode",
    "describe",
    "EinLeaf",
    "estimate_structure",
    "expression_from_path",
    "expression_to_tree",
    "extract_order",
    "flatten",
    "graph_density",
    "group_leaves_by_order",
    "IncidenceList",
    "independent_set_expression",
    "independent_set_network",
    "independent_set_tensors",
    "index_graph_from_inputs",
    "induced_subgraph",
    "inverse_vmap",
    "map_tree_leaves",
    "max_bag",
    "NestedEinsum",
    "optimize_expression",
    "order_to_expression",
    "preset_for_graph",
    "RankSARefiner",
    "reassemble",
    "refine",
    "RefinerConfig",
    "remap_order",
    "same_network",
    "StructuralError",
    "tree_leaves",
    "tree_to_expression",
    "treesa",
    "TreeSARefiner",
    "treewidth",
    "update_code",
    "update_tree",
    "utils",
)
