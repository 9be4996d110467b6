"""Tree decompositions built from elimination orders.

The function ``decomposition_to_order`` is adapted from the repository:

    https://github.com/TheoryInPractice/ConSequences

associated with the paper:

    https://arxiv.org/abs/1807.04599

under the following license:


BSD 3-Clause License

Copyright (c) 2018,  Allison L. Fisher, Timothy D. Goodrich, Blair D. Sullivan,
Andrew L. Wright
All rights reserved.

Redistribution and use in source and binary forms, with or without
modification, are permitted provided that the following conditions are met:

* Redistributions of source code must retain the above copyright notice, this
  list of conditions and the following disclaimer.

* Redistributions in binary form must reproduce the above copyright notice,
  this list of conditions and the following disclaimer in the documentation
  and/or other materials provided with the distribution.

* Neither the name of the copyright holder nor the names of its
  contributors may be used to endorse or promote products derived from
  this software without specific prior written permission.

THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE
DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE LIABLE
FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL
DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS OR
SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER
CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY,
OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE
OF THIS SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
"""

import math

import networkx as nx

from .elimination import extract_order, remap_order
from .graphs import build_index_graph
from .utils import StructuralError, compute_size_by_dict, sorted_labels


class DecompositionTreeNode:
    """A node of a tree decomposition, owning its children.

    Parameters
    ----------
    bag : iterable
        The indices alive at this node.
    children : sequence of DecompositionTreeNode, optional
        The child nodes.
    """

    __slots__ = ("bag", "children")

    def __init__(self, bag, children=None):
        self.bag = frozenset(bag)
        self.children = [] if children is None else list(children)

    def postorder(self):
        """Generate every node of this tree, children before parents."""
        stack = [(self, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded:
                yield node
            else:
                stack.append((node, True))
                stack.extend((c, False) for c in reversed(node.children))

    @property
    def num_nodes(self):
        return sum(1 for _ in self.postorder())

    def __repr__(self):
        return (
            f"<{self.__class__.__name__}(bag_size={len(self.bag)}, "
            f"children={len(self.children)})>"
        )


def _check_order(graph, order):
    seen = set()
    for v in order:
        if v not in graph:
            raise StructuralError(f"Vertex {v!r} is not in the graph.")
        if v in seen:
            raise StructuralError(f"Vertex {v!r} appears twice in the order.")
        seen.add(v)


def decompose_forest(graph, order, labels=None):
    """Build a tree decomposition of each connected component of ``graph``
    from the elimination ``order``.

    Vertices are eliminated from the back of ``order`` forwards. Eliminating
    a vertex creates the bag of itself plus its current neighbors, which are
    then joined pairwise by fill edges. Its node is hung under the node of
    whichever of those neighbors is eliminated next. Vertices missing from
    ``order``, such as output indices, are never eliminated and form one root
    bag per connected component.

    Parameters
    ----------
    graph : nx.Graph
        The graph to decompose.
    order : sequence
        Elimination order, root first.
    labels : sequence or mapping, optional
        If given, bags hold ``labels[v]`` rather than vertex ``v``.

    Returns
    -------
    list[DecompositionTreeNode]
        One root per connected component.
    """
    _check_order(graph, order)

    adj = {v: set(graph[v]) - {v} for v in graph}
    eliminated = list(reversed(order))
    position = {v: i for i, v in enumerate(eliminated)}

    def make_node(bag):
        if labels is not None:
            bag = (labels[v] for v in bag)
        return DecompositionTreeNode(bag)

    nodes = {}
    parents = {}
    residual_parents = {}
    for v in eliminated:
        nbrs = adj.pop(v)
        for u in nbrs:
            adj[u].discard(v)
            adj[u].update(w for w in nbrs if w != u)

        nodes[v] = make_node((v, *nbrs))
        later = [u for u in nbrs if u in position]
        if later:
            parents[v] = min(later, key=position.__getitem__)
        elif nbrs:
            # only never-eliminated neighbors left
            residual_parents[v] = next(iter(nbrs))

    # fill edges keep each component of the remaining vertices connected
    remaining = nx.Graph()
    remaining.add_nodes_from(adj)
    remaining.add_edges_from((u, w) for u, ws in adj.items() for w in ws)
    residuals = {}
    residual_roots = []
    for component in nx.connected_components(remaining):
        node = make_node(component)
        residual_roots.append(node)
        residuals.update(dict.fromkeys(component, node))

    roots = []
    for v in eliminated:
        if v in parents:
            nodes[parents[v]].children.append(nodes[v])
        elif v in residual_parents:
            residuals[residual_parents[v]].children.append(nodes[v])
        else:
            roots.append(nodes[v])

    roots.extend(residual_roots)
    return roots


def decompose(graph, order, labels=None):
    """Build a tree decomposition of the connected ``graph`` from the
    elimination ``order``, see :func:`decompose_forest`.

    Returns
    -------
    DecompositionTreeNode
        The root, whose bag holds the indices eliminated last (or the output
        indices if there are any).

    Raises
    ------
    StructuralError
        If ``graph`` is empty or disconnected.
    """
    roots = decompose_forest(graph, order, labels=labels)
    if not roots:
        raise StructuralError("Can't decompose an empty graph.")
    if len(roots) > 1:
        raise StructuralError(
            f"Graph has {len(roots)} connected components, use "
            "``decompose_forest`` to get one tree per component."
        )
    return roots[0]


def decompose_expression(code):
    """Build the tree decomposition implied by the contraction order of
    ``code``, with bags of index labels.
    """
    g, id_dict = build_index_graph(code)
    labels = list(id_dict)
    order = [id_dict[ix] for ix in extract_order(code)]
    return decompose(g, order, labels=labels)


def update_tree(g_new, order_old, vmap):
    """Decompose ``g_new`` reusing an elimination order computed for the
    graph it was reduced from.
    """
    return decompose(g_new, remap_order(order_old, vmap))


def max_bag(tree):
    """Find the largest bag of ``tree``, ties going to the bag met first in
    post-order.
    """
    best = None
    for node in tree.postorder():
        if (best is None) or (len(node.bag) > len(best)):
            best = node.bag
    return best


def treewidth(tree):
    """The width of the decomposition ``tree``: largest bag size minus one."""
    return len(max_bag(tree)) - 1


def decomposition_complexity(tree, size_dict=None):
    """The log2 size of the largest tensor any bag of ``tree`` implies. With
    no ``size_dict`` every index is taken to have size 2, so this is simply
    the largest bag size.
    """
    if size_dict is None:
        return float(len(max_bag(tree)))
    return max(
        math.log2(compute_size_by_dict(node.bag, size_dict))
        for node in tree.postorder()
    )


def _increment_eo(td_tree, bags, eo):
    while True:
        # Base case: If one node left, add its vertices to the eo
        if td_tree.order() == 1:
            (only_vertex,) = td_tree.nodes()
            eo.extend(sorted_labels(bags[only_vertex]))
            return eo

        # Otherwise we can identify a leaf and its parent
        leaf = next(
            node for node in td_tree.nodes() if td_tree.degree[node] == 1
        )
        (parent,) = td_tree.neighbors(leaf)

        # vertices only in the leaf can be eliminated straight away
        vertex_diff = bags[leaf] - bags[parent]

        if vertex_diff:
            next_vertex = sorted_labels(vertex_diff)[0]
            eo.append(next_vertex)
            for key in bags:
                bags[key].discard(next_vertex)
        else:
            td_tree.remove_node(leaf)
            bags.pop(leaf)


def decomposition_to_order(tree):
    """Generate a perfect elimination order from the decomposition ``tree``.
    The algorithm is taken from Markov and Shi Proof of Prop 4.2
    (https://arxiv.org/pdf/quant-ph/0511069.pdf).

    Returns
    -------
    list
        Elimination order, root first, whose induced width is no more than
        the width of ``tree``.
    """
    td_tree = nx.Graph()
    bags = {}
    ids = {}
    for i, node in enumerate(tree.postorder()):
        ids[id(node)] = i
        bags[i] = set(node.bag)
        td_tree.add_node(i)
        for child in node.children:
            td_tree.add_edge(i, ids[id(child)])

    eo = _increment_eo(td_tree, bags, [])
    eo.reverse()
    return eo
