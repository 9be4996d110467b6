"""Stochastic reordering of contraction expressions by tree simulated
annealing, based on "Multi-Tensor Contraction for XEB Verification of
Quantum Circuits" by Gleb Kalachev, Pavel Panteleev, Man-Hong Yung
(arXiv:2108.05665), and the "treesa" implementation in
OMEinsumContractionOrders.jl by Jin-Guo Liu and Pan Zhang.
"""

import collections
import math

from .assemble import expression_to_tree
from .expression import (
    ContractionComplexity,
    ContractionTree,
    build_expression,
    compute_appearances,
    compute_contracted_legs,
    contraction_complexity,
    isleaf,
    legs_from_term,
    tensor_terms,
)
from .parallel import parse_parallel_arg, submit
from .utils import compute_size_by_dict, get_rng


def compute_contracted_info(legsa, legsb, appearances, size_dict):
    """Compute the contracted legs, cost and size of a pair of legs.

    Parameters
    ----------
    legsa : dict[str, int]
        The legs of the first tensor.
    legsb : dict[str, int]
        The legs of the second tensor.
    appearances : dict[str, int]
        The total number of appearances of each index in the contraction.
    size_dict : dict[str, int]
        The size of each index.

    Returns
    -------
    legsab : dict[str, int]
        The contracted legs.
    cost : int
        The cost of the contraction.
    size : int
        The size of the resulting tensor.
    """
    legsab = compute_contracted_legs(legsa, legsb, appearances)
    # all involved indices contribute to cost, kept ones to size
    cost = compute_size_by_dict(legsa.keys() | legsb.keys(), size_dict)
    size = compute_size_by_dict(legsab, size_dict)
    return legsab, cost, size


def complexity_score(cc, sc_target=None, sc_weight=1.0, rw_weight=0.2):
    """Score a ``ContractionComplexity``, penalizing space complexity only
    above ``sc_target``.
    """
    if sc_target is None:
        sc_target = math.inf
    return (
        cc.tc
        + sc_weight * max(cc.sc - sc_target, 0.0)
        + rw_weight * cc.rwc
    )


class AnnealingTree:
    """Mutable binary contraction tree that the annealing moves act on.
    Nodes are frozensets of the leaves below them.

    Parameters
    ----------
    inputs : sequence of tuple
        The indices of each leaf tensor.
    output : tuple
        The output indices.
    size_dict : dict
        The size of each index.
    tree : ContractionTree or int
        The starting tree, leaves are positions into ``inputs``.
    """

    def __init__(self, inputs, output, size_dict, tree):
        self.inputs = inputs
        self.output = output
        self.size_dict = size_dict
        self.appearances = compute_appearances(inputs, output)

        self.children = {}
        self.legs = {}
        self.cost = {}
        self.size = {}

        for i, term in enumerate(inputs):
            leaf = frozenset((i,))
            self.legs[leaf] = legs_from_term(term)
            self.cost[leaf] = 0
            self.size[leaf] = compute_size_by_dict(term, size_dict)

        self.root = self._add_tree(tree)

    def _add_tree(self, tree):
        values = []
        stack = [(tree, False)]
        while stack:
            node, expanded = stack.pop()
            if not isinstance(node, tuple):
                values.append(frozenset((node,)))
            elif not expanded:
                stack.append((node, True))
                stack.append((node[1], False))
                stack.append((node[0], False))
            else:
                b = values.pop()
                a = values.pop()
                values.append(self.contract_pair(a, b))
        return values.pop()

    def contract_pair(self, a, b, legs=None, cost=None, size=None):
        """Contract nodes ``a`` and ``b``, returning the new node."""
        if legs is None:
            legs, cost, size = compute_contracted_info(
                self.legs[a], self.legs[b], self.appearances, self.size_dict
            )
        node = a | b
        self.children[node] = (a, b)
        self.legs[node] = legs
        self.cost[node] = cost
        self.size[node] = size
        return node

    def remove_node(self, node):
        del self.children[node]
        del self.legs[node]
        del self.cost[node]
        del self.size[node]

    def complexity(self):
        flops = 0
        rw = 0
        for node, (a, b) in self.children.items():
            flops += self.cost[node]
            rw += self.size[a] + self.size[b] + self.size[node]
        return ContractionComplexity(
            tc=math.log2(max(flops, 1)),
            sc=math.log2(max(self.size.values())),
            rwc=math.log2(max(rw, 1)),
        )

    def to_tree(self):
        """Export the current tree as a ``ContractionTree``."""
        values = []
        stack = [(self.root, False)]
        while stack:
            node, expanded = stack.pop()
            if len(node) == 1:
                (leaf,) = node
                values.append(leaf)
            elif not expanded:
                a, b = self.children[node]
                stack.append((node, True))
                stack.append((b, False))
                stack.append((a, False))
            else:
                b = values.pop()
                a = values.pop()
                values.append(ContractionTree(a, b))
        return values.pop()


def _score_local(costs, sizes, sc_target, sc_weight, rw_weight):
    tc = math.log2(sum(costs))
    sc = math.log2(max(sizes))
    rw = math.log2(sum(sizes))
    return tc + sc_weight * max(sc - sc_target, 0.0) + rw_weight * rw


def anneal_tree(
    tree,
    betas,
    niters,
    sc_target=None,
    sc_weight=1.0,
    rw_weight=0.2,
    seed=None,
):
    """Anneal ``tree`` inplace. For every inverse temperature in ``betas``,
    sweep ``niters`` times top-down over the tree proposing local rotations
    of each node and its children.

    Parameters
    ----------
    tree : AnnealingTree
        The tree to modify.
    betas : sequence of float
        The inverse temperature schedule.
    niters : int
        The number of sweeps at each inverse temperature.
    sc_target : float, optional
        Space complexity above which intermediates are penalized.
    sc_weight : float, optional
        Weight of the space complexity penalty.
    rw_weight : float, optional
        Weight of the read-write complexity.
    seed : None, int or random.Random, optional
        A random seed.

    Returns
    -------
    AnnealingTree
    """
    rng = get_rng(seed)
    if sc_target is None:
        sc_target = math.inf

    for beta in betas:
        for _ in range(niters):
            candidates = collections.deque([tree.root])

            while candidates:
                p = candidates.popleft()
                l, r = tree.children[p]

                # check which local moves are possible
                if len(l) == 1:
                    if len(r) == 1:
                        # both are leaves
                        continue
                    else:
                        # left is leaf
                        rule = rng.randint(2, 3)
                elif len(r) == 1:
                    # right is leaf
                    rule = rng.randint(0, 1)
                else:
                    # neither are leaves
                    rule = rng.randint(0, 3)

                if rule < 2:
                    # ((AB)C)
                    x, c = l, r
                    a, b = tree.children[x]
                    if rule == 0:
                        # -> ((AC)B)
                        new_order = [a, c, b]
                    else:
                        # -> (A(BC))
                        new_order = [b, c, a]
                else:
                    # (A(BC))
                    a, x = l, r
                    b, c = tree.children[x]
                    if rule == 2:
                        # -> (B(AC))
                        new_order = [a, c, b]
                    else:
                        # -> (C(AB))
                        new_order = [a, b, c]

                current_score = _score_local(
                    [tree.cost[p], tree.cost[x]],
                    [tree.size[p], tree.size[x]],
                    sc_target,
                    sc_weight,
                    rw_weight,
                )

                new_legs0, new_cost0, new_size0 = compute_contracted_info(
                    tree.legs[new_order[0]],
                    tree.legs[new_order[1]],
                    tree.appearances,
                    tree.size_dict,
                )
                new_legs1, new_cost1, new_size1 = compute_contracted_info(
                    new_legs0,
                    tree.legs[new_order[2]],
                    tree.appearances,
                    tree.size_dict,
                )
                proposed_score = _score_local(
                    [new_cost0, new_cost1],
                    [new_size0, new_size1],
                    sc_target,
                    sc_weight,
                    rw_weight,
                )

                dE = proposed_score - current_score
                accept = (dE <= 0) or (rng.random() < math.exp(-beta * dE))

                if accept:
                    tree.remove_node(p)
                    tree.remove_node(x)
                    tree.contract_pair(
                        tree.contract_pair(
                            new_order[0],
                            new_order[1],
                            legs=new_legs0,
                            cost=new_cost0,
                            size=new_size0,
                        ),
                        new_order[2],
                        legs=new_legs1,
                        cost=new_cost1,
                        size=new_size1,
                    )

                # check which children to recurse into
                l, r = tree.children[p]
                if len(l) > 2:
                    candidates.append(l)
                if len(r) > 2:
                    candidates.append(r)

    return tree


def _anneal_trial(
    inputs,
    output,
    size_dict,
    tree,
    betas,
    niters,
    sc_target,
    sc_weight,
    rw_weight,
    seed,
):
    atree = AnnealingTree(inputs, output, size_dict, tree)
    anneal_tree(
        atree,
        betas,
        niters,
        sc_target=sc_target,
        sc_weight=sc_weight,
        rw_weight=rw_weight,
        seed=seed,
    )
    return atree.to_tree()


def treesa(
    code,
    size_dict,
    betas,
    ntrials,
    niters,
    sc_target=None,
    sc_weight=1.0,
    rw_weight=0.2,
    seed=None,
    parallel=False,
    progbar=False,
):
    """Reorder the contraction ``code`` by tree simulated annealing, keeping
    the best of ``ntrials`` independent trials that all start from ``code``.

    Parameters
    ----------
    code : NestedEinsum
        The starting contraction expression.
    size_dict : dict
        The size of each index.
    betas : sequence of float
        The inverse temperature schedule.
    ntrials : int
        The number of independent trials.
    niters : int
        The number of sweeps at each inverse temperature.
    sc_target : float, optional
        Space complexity above which intermediates are penalized.
    sc_weight : float, optional
        Weight of the space complexity penalty.
    rw_weight : float, optional
        Weight of the read-write complexity.
    seed : None, int or random.Random, optional
        A random seed, from which each trial gets its own.
    parallel : bool, int, str or executor, optional
        Whether to run the trials in parallel, see
        :func:`~tensorbranching.parallel.parse_parallel_arg`.
    progbar : bool, optional
        Whether to show progress over the trials.

    Returns
    -------
    NestedEinsum
        The best expression found, contracting the same tensors as ``code``.
    """
    if isleaf(code):
        return code

    terms = tensor_terms(code)
    tids = sorted(terms)
    if len(tids) < 3:
        # no local moves possible
        return code

    inputs = [terms[tid] for tid in tids]
    output = tuple(code.iy)
    tree = expression_to_tree(code)
    betas = tuple(betas)

    rng = get_rng(seed)
    seeds = [rng.randrange(0, 2**32) for _ in range(ntrials)]

    args = (
        inputs,
        output,
        size_dict,
        tree,
        betas,
        niters,
        sc_target,
        sc_weight,
        rw_weight,
    )

    pool = parse_parallel_arg(parallel)
    if pool is None:
        trees = (_anneal_trial(*args, s) for s in seeds)
    else:
        futures = [submit(pool, _anneal_trial, *args, s) for s in seeds]
        trees = (f.result() for f in futures)

    if progbar:
        import tqdm

        trees = tqdm.tqdm(trees, total=ntrials)

    best_code = code
    best_score = math.inf
    for t in trees:
        candidate = build_expression(inputs, output, t, tensorindices=tids)
        cc = contraction_complexity(candidate, size_dict)
        score = complexity_score(cc, sc_target, sc_weight, rw_weight)
        if score < best_score:
            best_code = candidate
            best_score = score
            if progbar:
                trees.set_description(
                    f"tc={cc.tc:.2f} sc={cc.sc:.2f}", refresh=False
                )

    return best_code
