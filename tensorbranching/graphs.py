"""Index adjacency graphs of contraction expressions, and simple structural
measures of graphs.
"""

import itertools

import networkx as nx

from .expression import flatten, isleaf
from .utils import sorted_labels


DENSE_THRESHOLD = 0.3
SPARSE_THRESHOLD = 0.1


def index_graph_from_inputs(inputs, output=()):
    """Build the index adjacency graph of a flat contraction.

    Parameters
    ----------
    inputs : sequence of sequence of hashable
        The indices of each tensor.
    output : sequence of hashable, optional
        The output indices.

    Returns
    -------
    graph : nx.Graph
        One vertex per unique index, numbered ``0..n-1``, with an edge between
        every pair of indices appearing together on any tensor or on the
        output.
    id_dict : dict[hashable, int]
        Mapping of each index label to its vertex.
    """
    terms = [*inputs, output]
    labels = sorted_labels(ix for term in terms for ix in term)
    id_dict = {ix: i for i, ix in enumerate(labels)}

    g = nx.Graph()
    g.add_nodes_from(range(len(labels)))
    for term in terms:
        vs = sorted({id_dict[ix] for ix in term})
        g.add_edges_from(itertools.combinations(vs, 2))

    return g, id_dict


def build_index_graph(code):
    """Build the index adjacency graph of the nested einsum ``code``, see
    :func:`index_graph_from_inputs`.
    """
    if isleaf(code):
        return index_graph_from_inputs(())
    inputs, output = flatten(code)
    return index_graph_from_inputs(inputs, output)


def graph_density(g):
    """The fraction of all possible edges present in ``g``."""
    n = g.number_of_nodes()
    if n < 2:
        return 0.0
    return 2 * g.number_of_edges() / (n * (n - 1))


def estimate_structure(g, dense=DENSE_THRESHOLD, sparse=SPARSE_THRESHOLD):
    """Roughly classify ``g`` by its density, as a hint for how aggressive a
    contraction order search should be. This is advisory only.

    Parameters
    ----------
    g : nx.Graph
        The graph to classify.
    dense : float, optional
        Densities strictly above this are ``'rank_preferred'``.
    sparse : float, optional
        Densities strictly below this are ``'tree_preferred'``.

    Returns
    -------
    {'rank_preferred', 'context_dependent', 'tree_preferred'}
    """
    density = graph_density(g)
    if density > dense:
        return "rank_preferred"
    if density < sparse:
        return "tree_preferred"
    return "context_dependent"


def induced_subgraph(g, vertices):
    """Take the subgraph of ``g`` induced by ``vertices``, relabelled to
    ``0..k-1`` in sorted order.

    Returns
    -------
    g_new : nx.Graph
    vmap : list
        ``vmap[new] = old`` for each kept vertex.
    """
    vmap = sorted(set(vertices))
    missing = [v for v in vmap if v not in g]
    if missing:
        raise ValueError(f"Vertices {missing} are not in the graph.")

    ivmap = {old: new for new, old in enumerate(vmap)}
    g_new = nx.Graph()
    g_new.add_nodes_from(range(len(vmap)))
    g_new.add_edges_from(
        (ivmap[u], ivmap[v]) for u, v in g.subgraph(vmap).edges
    )
    return g_new, vmap
