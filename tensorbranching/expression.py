"""Tree data structures: nested einsum expressions and binary contraction
trees, plus building one from the other and scoring them.
"""

import collections
import itertools
import math
from collections.abc import Mapping

from .utils import (
    StructuralError,
    compute_size_by_dict,
    linear_to_ssa,
    unique,
)


EinLeaf = collections.namedtuple("EinLeaf", ("tensorindex",))
EinLeaf.__doc__ = """A leaf of a nested einsum, naming one input tensor."""

NestedEinsum = collections.namedtuple("NestedEinsum", ("args", "ixs", "iy"))
NestedEinsum.__doc__ = """An internal contraction of a nested einsum.

Parameters
----------
args : tuple[EinLeaf | NestedEinsum]
    The child expressions.
ixs : tuple[tuple[hashable]]
    The indices of each child, ``ixs[i]`` belonging to ``args[i]``.
iy : tuple[hashable]
    The indices of the result of this contraction.
"""

ContractionTree = collections.namedtuple("ContractionTree", ("left", "right"))
ContractionTree.__doc__ = """A pairwise contraction of two subtrees. Leaves
are plain integer tensor ids.
"""

ContractionComplexity = collections.namedtuple(
    "ContractionComplexity", ("tc", "sc", "rwc")
)
ContractionComplexity.__doc__ = """Time, space and read-write complexity of
a contraction, all in log2 units.
"""


def isleaf(code):
    return isinstance(code, EinLeaf)


def is_tree_leaf(tree):
    return not isinstance(tree, tuple)


def postorder(code):
    """Generate every node of ``code``, children before their parent and
    siblings from left to right.
    """
    stack = [(code, False)]
    while stack:
        node, expanded = stack.pop()
        if expanded or isleaf(node):
            yield node
        else:
            stack.append((node, True))
            stack.extend((arg, False) for arg in reversed(node.args))


def iter_internal(code):
    """Generate the internal (contraction) nodes of ``code`` in post-order."""
    return (node for node in postorder(code) if not isleaf(node))


def get_leaves(code):
    """The tensor indices of ``code`` in left to right order."""
    return [node.tensorindex for node in postorder(code) if isleaf(node)]


def tensor_terms(code):
    """Map each tensor index of ``code`` to its index labels.

    Raises
    ------
    StructuralError
        If ``code`` is a bare leaf or a tensor appears more than once.
    """
    if isleaf(code):
        raise StructuralError("A bare leaf carries no index information.")

    terms = {}
    for node in iter_internal(code):
        for arg, ix in zip(node.args, node.ixs):
            if isleaf(arg):
                if arg.tensorindex in terms:
                    raise StructuralError(
                        f"Tensor {arg.tensorindex} appears more than once."
                    )
                terms[arg.tensorindex] = tuple(ix)
    return terms


def flatten(code):
    """Flatten ``code`` into ``(inputs, output)``, with ``inputs`` ordered
    by tensor index.
    """
    terms = tensor_terms(code)
    return [terms[i] for i in sorted(terms)], tuple(code.iy)


def same_network(code_a, code_b):
    """Whether two expressions contract exactly the same tensors, with the
    same indices, into the same output - i.e. only their order differs.
    """
    if isleaf(code_a) or isleaf(code_b):
        return code_a == code_b
    return (
        tuple(code_a.iy) == tuple(code_b.iy)
        and tensor_terms(code_a) == tensor_terms(code_b)
    )


def _iter_terms(inputs):
    if isinstance(inputs, Mapping):
        return inputs.values()
    return inputs


def compute_appearances(inputs, output):
    """Count how many times each index appears across ``inputs`` and
    ``output``. An index appearing on the output can never be contracted away.
    """
    appearances = {}
    for term in itertools.chain(_iter_terms(inputs), (output,)):
        for ix in term:
            appearances[ix] = appearances.get(ix, 0) + 1
    return appearances


def legs_from_term(term):
    legs = {}
    for ix in term:
        legs[ix] = legs.get(ix, 0) + 1
    return legs


def compute_contracted_legs(legsa, legsb, appearances):
    """Compute the legs of the tensor formed by contracting two subtrees,
    given each subtree's legs as a mapping of index to the number of times
    it appears inside that subtree.
    """
    legsab = {}
    for ix, ix_count in legsa.items():
        ix_count += legsb.get(ix, 0)
        if ix_count < appearances[ix]:
            legsab[ix] = ix_count
    for ix, ix_count in legsb.items():
        if (ix not in legsa) and (ix_count < appearances[ix]):
            legsab[ix] = ix_count
    return legsab


def build_expression(inputs, output, tree, tensorindices=None):
    """Materialize a binary contraction ``tree`` into a ``NestedEinsum``.

    Parameters
    ----------
    inputs : sequence or mapping of tuple
        The indices of each tensor, indexed by the leaves of ``tree``.
    output : tuple
        The output indices.
    tree : ContractionTree or int
        The contraction tree, leaves are keys into ``inputs``.
    tensorindices : sequence or mapping, optional
        Map each leaf of ``tree`` to the ``tensorindex`` to use for its
        ``EinLeaf``. Defaults to the leaf itself.

    Returns
    -------
    NestedEinsum
    """
    output = tuple(output)

    def leaf_of(leaf):
        if tensorindices is None:
            return EinLeaf(leaf)
        return EinLeaf(tensorindices[leaf])

    if is_tree_leaf(tree):
        return NestedEinsum((leaf_of(tree),), (tuple(inputs[tree]),), output)

    appearances = compute_appearances(inputs, output)

    values = []
    stack = [(tree, False)]
    while stack:
        node, expanded = stack.pop()
        if is_tree_leaf(node):
            term = tuple(inputs[node])
            values.append((leaf_of(node), legs_from_term(term), term))
        elif not expanded:
            stack.append((node, True))
            stack.append((node[1], False))
            stack.append((node[0], False))
        else:
            (ea, la, ia), (eb, lb, ib) = values[-2:]
            del values[-2:]
            legs = compute_contracted_legs(la, lb, appearances)
            iy = tuple(legs)
            values.append((NestedEinsum((ea, eb), (ia, ib), iy), legs, iy))

    root, _, _ = values.pop()
    return root._replace(iy=output)


def ssa_path_to_tree(ssa_path, N):
    """Convert a single static assignment path into a ``ContractionTree``,
    folding any contractions of three or more tensors, and any tensors left
    uncontracted, from left to right.
    """
    if N == 0:
        raise StructuralError("Empty leaf set for contraction tree.")

    nodes = dict(enumerate(range(N)))
    ssa = N
    for con in ssa_path:
        merged = nodes.pop(con[0])
        for i in con[1:]:
            merged = ContractionTree(merged, nodes.pop(i))
        nodes[ssa] = merged
        ssa += 1

    remaining = iter(nodes.values())
    tree = next(remaining)
    for node in remaining:
        tree = ContractionTree(tree, node)
    return tree


def expression_from_path(inputs, output, path=None, ssa_path=None):
    """Create a binary ``NestedEinsum`` from a linear or ssa contraction path.
    """
    if (path is None) == (ssa_path is None):
        raise ValueError("Exactly one of ``path`` or ``ssa_path`` required.")

    if ssa_path is None:
        ssa_path = linear_to_ssa(path, N=len(inputs))

    tree = ssa_path_to_tree(ssa_path, len(inputs))
    return build_expression(inputs, output, tree)


def optimize_expression(inputs, output, size_dict, optimize="greedy"):
    """Find an initial contraction expression using an ``opt_einsum`` path
    function.

    Parameters
    ----------
    inputs : sequence of tuple
        The indices of each tensor.
    output : tuple
        The output indices.
    size_dict : dict
        The size of each index.
    optimize : str or callable, optional
        The name of an ``opt_einsum`` path function such as ``'greedy'`` or
        ``'optimal'``, or any function with the same signature.

    Returns
    -------
    NestedEinsum
    """
    from opt_einsum.paths import get_path_fn

    if callable(optimize):
        path_fn = optimize
    else:
        path_fn = get_path_fn(optimize)

    if len(inputs) == 1:
        path = [(0,)]
    else:
        path = path_fn(list(map(set, inputs)), set(output), dict(size_dict))

    return expression_from_path(inputs, output, path=path)


def contraction_complexity(code, size_dict):
    """Compute the time, space and read-write complexity of ``code``.

    Parameters
    ----------
    code : NestedEinsum
        The contraction expression.
    size_dict : dict
        The size of each index.

    Returns
    -------
    ContractionComplexity
        ``tc`` is the log2 of the total number of operations, ``sc`` the log2
        of the largest tensor (inputs included) and ``rwc`` the log2 of the
        total number of elements read and written.
    """
    if isleaf(code):
        raise StructuralError("Can't score a bare leaf.")

    flops = 0
    rw = 0
    sc = 0.0
    for node in iter_internal(code):
        involved = unique(itertools.chain(*node.ixs, node.iy))
        flops += compute_size_by_dict(involved, size_dict)
        for term in (*node.ixs, node.iy):
            size = compute_size_by_dict(term, size_dict)
            rw += size
            sc = max(sc, math.log2(size))

    return ContractionComplexity(
        tc=math.log2(flops), sc=sc, rwc=math.log2(rw)
    )


def describe(code, size_dict, join=" "):
    """Return a string describing the complexity of ``code``."""
    cc = contraction_complexity(code, size_dict)
    return join.join(
        (
            f"tc={cc.tc:.2f}",
            f"sc={cc.sc:.2f}",
            f"rwc={cc.rwc:.2f}",
        )
    )
