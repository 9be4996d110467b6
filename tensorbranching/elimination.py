"""Elimination orders: extracting them from expressions and carrying them
over to reduced graphs.

Orders are stored root first, i.e. the first entry is the index eliminated
last, matching the order in which a decomposition tree is built from its root.
"""

from collections.abc import Mapping

from .expression import isleaf, iter_internal
from .utils import unique


def extract_order(code):
    """Compute the elimination order of the nested einsum ``code``.

    Each contraction eliminates the indices of its operands that do not
    appear on its own output. Contractions are visited children first and
    the resulting sequence is reversed, so the index eliminated last comes
    first.

    Parameters
    ----------
    code : NestedEinsum or EinLeaf
        The contraction expression.

    Returns
    -------
    list
    """
    order = []
    if isleaf(code):
        return order

    for node in iter_internal(code):
        iy = set(node.iy)
        order.extend(
            ix for ix in unique(ix for term in node.ixs for ix in term)
            if ix not in iy
        )

    order.reverse()
    return order


def inverse_vmap(vmap):
    """Invert ``vmap``, given as ``vmap[new] = old``, into a mapping of
    ``old -> new``.
    """
    return {old: new for new, old in enumerate(vmap)}


def remap_order(order, vertex_map):
    """Carry an elimination order over to a graph with some vertices removed
    or renumbered, keeping the relative order of surviving vertices.

    Parameters
    ----------
    order : sequence
        The elimination order on the old graph.
    vertex_map : mapping or sequence
        Either a mapping of ``old -> new`` vertex ids, with removed vertices
        absent, or a sequence ``vmap`` with ``vmap[new] = old`` as returned
        by :func:`~tensorbranching.graphs.induced_subgraph`.

    Returns
    -------
    list
    """
    if not isinstance(vertex_map, Mapping):
        vertex_map = inverse_vmap(vertex_map)
    return [vertex_map[v] for v in order if v in vertex_map]
