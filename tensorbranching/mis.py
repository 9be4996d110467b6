"""Tensor networks of maximum independent set problems.

Each vertex ``v`` of a graph becomes an index of size two (out of or in the
set) carried by a vertex tensor ``(v,)`` and every edge ``(u, v)`` a tensor
forbidding both endpoints from being in the set together.
"""

import warnings

from .assemble import order_to_expression
from .elimination import extract_order, remap_order
from .expression import optimize_expression
from .utils import Contraction, sorted_labels


def independent_set_network(g):
    """Encode the independent sets of ``g`` as a contraction.

    Parameters
    ----------
    g : nx.Graph
        The graph, with sortable vertex labels.

    Returns
    -------
    inputs : list[tuple]
        Vertex tensors ``(v,)`` in sorted vertex order, then edge tensors
        ``(u, v)`` with ``u < v`` in sorted order.
    output : tuple
        Empty, the network contracts to a scalar.
    shapes : list[tuple[int]]
    size_dict : dict
        Every index has size 2.
    """
    vertices = sorted_labels(g.nodes)
    edges = sorted(tuple(sorted((u, v))) for u, v in g.edges if u != v)

    inputs = [(v,) for v in vertices] + edges
    size_dict = {v: 2 for v in vertices}
    shapes = [tuple(size_dict[ix] for ix in term) for term in inputs]

    return Contraction(inputs, (), shapes, size_dict)


def independent_set_tensors(g, semiring="tropical", weights=None):
    """Generate the arrays of :func:`independent_set_network`.

    Parameters
    ----------
    g : nx.Graph
        The graph.
    semiring : {'tropical', 'standard'}, optional
        With ``'tropical'`` the contraction gives the maximum (weighted)
        independent set size, with ``'standard'`` the number of independent
        sets.
    weights : dict, optional
        Weight of each vertex for the tropical semiring, default 1.

    Returns
    -------
    list[numpy.ndarray]
    """
    import numpy as np

    vertices = sorted_labels(g.nodes)
    n_edges = sum(1 for u, v in g.edges if u != v)

    if semiring == "tropical":
        if weights is None:
            weights = {}
        vertex_arrays = [
            np.array([0.0, float(weights.get(v, 1.0))]) for v in vertices
        ]
        edge_array = np.array([[0.0, 0.0], [0.0, -np.inf]])
    elif semiring == "standard":
        vertex_arrays = [np.array([1, 1], dtype="int64") for _ in vertices]
        edge_array = np.array([[1, 1], [1, 0]], dtype="int64")
    else:
        raise ValueError(f"Unknown semiring {semiring!r}.")

    return vertex_arrays + [edge_array.copy() for _ in range(n_edges)]


def independent_set_expression(g, optimize="greedy"):
    """Build an initial contraction expression for the independent set
    network of ``g``, using the ``opt_einsum`` path function ``optimize``.

    Returns
    -------
    code : NestedEinsum
    size_dict : dict
    """
    inputs, output, _, size_dict = independent_set_network(g)
    code = optimize_expression(inputs, output, size_dict, optimize=optimize)
    return code, size_dict


def order_to_network_expression(g, order, use_tree=False):
    """Build the independent set network expression of ``g`` contracted
    following the elimination ``order`` of its vertices.
    """
    inputs, output, _, _ = independent_set_network(g)
    return order_to_expression(inputs, output, order, use_tree=use_tree)


def update_code(g_new, code_old, vmap, use_tree=False):
    """Reuse the contraction order of ``code_old``, the expression of a graph
    that ``g_new`` was reduced from, to build the expression of ``g_new``.

    Parameters
    ----------
    g_new : nx.Graph
        The reduced graph, with vertices ``0..k-1``.
    code_old : NestedEinsum
        The independent set expression of the original graph.
    vmap : sequence or mapping
        ``vmap[new] = old`` as a sequence, or ``old -> new`` as a mapping.
    use_tree : bool, optional
        Whether to pass the order through a tree decomposition first.

    Returns
    -------
    NestedEinsum
    """
    order_new = remap_order(extract_order(code_old), vmap)
    missing = g_new.number_of_nodes() - len(order_new)
    if missing > 0:
        warnings.warn(
            f"{missing} vertices of the new graph are not in the old order, "
            "their tensors will be contracted last."
        )
    return order_to_network_expression(g_new, order_new, use_tree=use_tree)
