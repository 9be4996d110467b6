"""Assembling binary contraction trees from grouped elimination orders, and
converting between contraction trees and nested einsum expressions.
"""

import functools

from .elimination import extract_order
from .expression import (
    ContractionTree,
    build_expression,
    is_tree_leaf,
    isleaf,
    postorder,
    tensor_terms,
)
from .graphs import index_graph_from_inputs
from .treedecomp import decompose_forest, decomposition_to_order
from .utils import StructuralError, group_leaves_by_label


class IncidenceList:
    """Incidence structure between leaf tensors and index labels.

    Parameters
    ----------
    v2e : dict[int, sequence] or sequence of sequence
        The index labels of each leaf tensor. If a sequence, leaves are
        enumerated from zero.
    openedges : sequence, optional
        The output labels.

    Attributes
    ----------
    v2e : dict[int, tuple]
        Mapping of leaf to the labels touching it.
    e2v : dict[hashable, tuple[int]]
        Mapping of label to the leaves it touches, in ascending order.
    openedges : tuple
        The output labels.
    """

    __slots__ = ("v2e", "e2v", "openedges")

    def __init__(self, v2e, openedges=()):
        if isinstance(v2e, dict):
            self.v2e = {int(k): tuple(v) for k, v in v2e.items()}
        else:
            self.v2e = dict(enumerate(map(tuple, v2e)))
        self.e2v = group_leaves_by_label(self.v2e)
        self.openedges = tuple(openedges)

    @classmethod
    def from_inputs(cls, inputs, output=()):
        return cls(inputs, output)

    @classmethod
    def from_expression(cls, code):
        """Get the incidence structure of the tensors of ``code``, keyed by
        their tensor index.
        """
        return cls(tensor_terms(code), code.iy)

    @property
    def leaves(self):
        return sorted(self.v2e)

    @property
    def num_leaves(self):
        return len(self.v2e)

    @property
    def num_edges(self):
        return len(self.e2v)

    def __contains__(self, leaf):
        return leaf in self.v2e

    def __repr__(self):
        return (
            f"<{self.__class__.__name__}(leaves={self.num_leaves}, "
            f"edges={self.num_edges})>"
        )


def build_balanced_tree(leaves):
    """Build a balanced binary tree over ``leaves`` by repeatedly merging
    adjacent pairs, carrying an odd one out up to the next level.

    Raises
    ------
    StructuralError
        If ``leaves`` is empty.
    """
    nodes = list(leaves)
    if not nodes:
        raise StructuralError("Empty leaf set for contraction tree.")

    while len(nodes) > 1:
        merged = [
            ContractionTree(nodes[i], nodes[i + 1])
            for i in range(0, len(nodes) - 1, 2)
        ]
        if len(nodes) % 2:
            merged.append(nodes[-1])
        nodes = merged

    return nodes[0]


def assemble(grouped_order, incidence=None):
    """Construct a contraction tree from a grouped elimination order. Each
    group of leaves is combined into a balanced tree and the group trees are
    then combined from left to right.

    Parameters
    ----------
    grouped_order : sequence of sequence of int
        The leaf tensor ids of each group, in order.
    incidence : IncidenceList, optional
        If given, every leaf must be one of its leaves.

    Returns
    -------
    ContractionTree or int
        A single leaf if only one leaf was given in total.

    Raises
    ------
    StructuralError
        If there are no groups, a group is empty, a leaf appears twice, or a
        leaf is unknown to ``incidence``.
    """
    groups = [list(group) for group in grouped_order]
    if not groups:
        raise StructuralError("Empty grouped elimination order.")

    seen = set()
    for i, group in enumerate(groups):
        if not group:
            raise StructuralError(f"Group {i} of the elimination is empty.")
        for leaf in group:
            if leaf in seen:
                raise StructuralError(f"Leaf {leaf} appears more than once.")
            if (incidence is not None) and (leaf not in incidence):
                raise StructuralError(f"Leaf {leaf} is not in the network.")
            seen.add(leaf)

    trees = map(build_balanced_tree, groups)
    return functools.reduce(ContractionTree, trees)


def tree_leaves(tree):
    """The leaves of ``tree`` from left to right."""
    leaves = []
    stack = [tree]
    while stack:
        node = stack.pop()
        if is_tree_leaf(node):
            leaves.append(node)
        else:
            stack.append(node.right)
            stack.append(node.left)
    return leaves


def map_tree_leaves(tree, mapping):
    """Relabel the leaves of ``tree`` with ``mapping[leaf]``."""
    if is_tree_leaf(tree):
        return mapping[tree]
    return ContractionTree(
        map_tree_leaves(tree.left, mapping),
        map_tree_leaves(tree.right, mapping),
    )


def tree_to_expression(incidence, tree):
    """Materialize the contraction ``tree`` over the leaves of ``incidence``
    into a ``NestedEinsum``, whose leaves keep the same tensor ids.
    """
    return build_expression(incidence.v2e, incidence.openedges, tree)


def expression_to_tree(code):
    """Convert the nested einsum ``code`` into a binary ``ContractionTree``,
    folding contractions of three or more operands from left to right.
    Leaves are renumbered ``0..N-1`` following sorted tensor index.
    """
    if isleaf(code):
        return 0
    tids = sorted(tensor_terms(code))
    pos = {tid: i for i, tid in enumerate(tids)}

    values = []
    for node in postorder(code):
        if isleaf(node):
            values.append(pos[node.tensorindex])
        else:
            n = len(node.args)
            args = values[-n:]
            del values[-n:]
            values.append(functools.reduce(ContractionTree, args))
    return values.pop()


def group_leaves_by_order(order, incidence):
    """Group leaves by the step of ``order`` that first eliminates one of
    their indices. Leaves touched by no index of ``order`` form a final group.

    Parameters
    ----------
    order : sequence
        Elimination order, root first, so the group of the last entry comes
        first.
    incidence : IncidenceList
        The incidence structure of the network.

    Returns
    -------
    list[list[int]]
    """
    assigned = set()
    groups = []
    for ix in reversed(order):
        group = [
            leaf for leaf in incidence.e2v.get(ix, ())
            if leaf not in assigned
        ]
        if group:
            assigned.update(group)
            groups.append(group)

    rest = [leaf for leaf in incidence.leaves if leaf not in assigned]
    if rest:
        groups.append(rest)

    return groups


def order_to_expression(inputs, output, order, use_tree=False):
    """Reconstruct a contraction expression from an elimination order.

    Parameters
    ----------
    inputs : sequence of sequence or dict[int, sequence]
        The indices of each tensor, keyed by tensor id if a dict.
    output : sequence
        The output indices.
    order : sequence
        Elimination order of index labels, root first.
    use_tree : bool, optional
        If ``True``, first build the tree decomposition of ``order`` and use
        the perfect elimination order derived from it instead. Each
        connected component is decomposed separately.

    Returns
    -------
    NestedEinsum

    Raises
    ------
    StructuralError
        If ``order`` holds an index that no tensor has.
    """
    incidence = IncidenceList.from_inputs(inputs, output)

    unknown = [ix for ix in order if ix not in incidence.e2v]
    if unknown:
        raise StructuralError(f"Indices {unknown} are not in the network.")

    if use_tree:
        g, id_dict = index_graph_from_inputs(
            incidence.v2e.values(), incidence.openedges
        )
        labels = list(id_dict)
        roots = decompose_forest(
            g, [id_dict[ix] for ix in order], labels=labels
        )
        order = [ix for td in roots for ix in decomposition_to_order(td)]

    groups = group_leaves_by_order(order, incidence)
    return tree_to_expression(incidence, assemble(groups, incidence))


def reassemble(code, order=None, use_tree=False):
    """Rebuild ``code`` from its own elimination order (or ``order``),
    keeping its tensor ids.
    """
    if order is None:
        order = extract_order(code)
    return order_to_expression(
        tensor_terms(code), code.iy, order, use_tree=use_tree
    )
