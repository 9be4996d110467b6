import math

import networkx as nx
import pytest

import tensorbranching as tb
from tensorbranching.anneal import (
    AnnealingTree,
    anneal_tree,
    complexity_score,
    compute_contracted_info,
)
from tensorbranching.expression import get_leaves
from tensorbranching.refine import inverse_temperatures


def grid(m, n):
    return nx.convert_node_labels_to_integers(nx.grid_2d_graph(m, n))


def test_compute_contracted_info():
    legsa = {"a": 1, "b": 1}
    legsb = {"b": 1, "c": 1}
    appearances = {"a": 2, "b": 2, "c": 1}
    size_dict = {"a": 2, "b": 3, "c": 5}
    legsab, cost, size = compute_contracted_info(
        legsa, legsb, appearances, size_dict
    )
    assert legsab == {"a": 1}
    assert cost == 30
    assert size == 2


def test_complexity_score():
    cc = tb.ContractionComplexity(tc=10.0, sc=8.0, rwc=5.0)
    assert complexity_score(cc) == pytest.approx(11.0)
    assert complexity_score(cc, sc_target=6.0) == pytest.approx(13.0)
    assert complexity_score(cc, sc_target=9.0, rw_weight=0.0) == 10.0


def test_annealing_tree_complexity_matches():
    g = grid(5, 5)
    code, size_dict = tb.independent_set_expression(g)
    inputs, output = tb.flatten(code)
    tree = tb.expression_to_tree(code)
    atree = AnnealingTree(inputs, output, size_dict, tree)
    expected = tb.contraction_complexity(code, size_dict)
    cc = atree.complexity()
    assert cc.tc == pytest.approx(expected.tc)
    assert cc.sc == pytest.approx(expected.sc)
    assert cc.rwc == pytest.approx(expected.rwc)
    assert atree.to_tree() == tb.expression_to_tree(code)


def test_anneal_tree_keeps_leaves():
    g = grid(4, 4)
    code, size_dict = tb.independent_set_expression(g)
    inputs, output = tb.flatten(code)
    tree = tb.expression_to_tree(code)
    atree = AnnealingTree(inputs, output, size_dict, tree)
    anneal_tree(atree, betas=[1.0, 5.0, 10.0], niters=5, seed=7)
    assert sorted(tb.tree_leaves(atree.to_tree())) == list(range(len(inputs)))
    assert len(atree.children) == len(inputs) - 1


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_treesa_preserves_network(seed):
    g = grid(6, 6)
    code, size_dict = tb.independent_set_expression(g)
    new = tb.treesa(code, size_dict, [1.0, 2.0, 5.0, 10.0], 2, 5, seed=seed)
    assert tb.same_network(code, new)
    assert sorted(get_leaves(new)) == sorted(get_leaves(code))


def test_treesa_improves_bad_order():
    g = grid(5, 5)
    inputs, output, _, size_dict = tb.independent_set_network(g)
    # contracting all vertex tensors first builds a huge outer product
    n = len(inputs)
    ssa_path = [(0, 1)] + [(n + i, i + 2) for i in range(n - 2)]
    code = tb.expression_from_path(inputs, output, ssa_path=ssa_path)
    cc0 = tb.contraction_complexity(code, size_dict)
    new = tb.treesa(
        code,
        size_dict,
        inverse_temperatures(1.0, 15.0),
        ntrials=2,
        niters=10,
        sc_target=8,
        seed=42,
    )
    cc = tb.contraction_complexity(new, size_dict)
    assert cc.sc < cc0.sc
    assert complexity_score(cc, 8) < complexity_score(cc0, 8)


def test_treesa_deterministic_with_seed():
    g = grid(4, 4)
    code, size_dict = tb.independent_set_expression(g)
    betas = [1.0, 4.0, 8.0]
    a = tb.treesa(code, size_dict, betas, 2, 5, sc_target=4, seed=3)
    b = tb.treesa(code, size_dict, betas, 2, 5, sc_target=4, seed=3)
    assert a == b


def test_treesa_too_small_to_move():
    inputs = [("a", "b"), ("b", "c")]
    code = tb.expression_from_path(inputs, (), path=[(0, 1)])
    size_dict = {"a": 2, "b": 2, "c": 2}
    assert tb.treesa(code, size_dict, [1.0], 3, 3) is code
    leaf = tb.EinLeaf(0)
    assert tb.treesa(leaf, size_dict, [1.0], 3, 3) is leaf


def test_treesa_keeps_tensor_ids():
    inputs = {4: ("a", "b"), 9: ("b", "c"), 2: ("c", "d"), 7: ("d", "a")}
    incidence = tb.IncidenceList(inputs)
    tree = tb.ContractionTree(
        tb.ContractionTree(tb.ContractionTree(4, 2), 9), 7
    )
    code = tb.tree_to_expression(incidence, tree)
    size_dict = dict.fromkeys("abcd", 4)
    new = tb.treesa(code, size_dict, [1.0, 10.0], 3, 5, seed=0)
    assert tb.same_network(code, new)


@pytest.mark.parametrize("parallel", ["threads", 2])
def test_treesa_parallel(parallel):
    g = grid(4, 4)
    code, size_dict = tb.independent_set_expression(g)
    new = tb.treesa(
        code, size_dict, [1.0, 5.0], 3, 3, seed=1, parallel=parallel
    )
    assert tb.same_network(code, new)
    cc = tb.contraction_complexity(new, size_dict)
    assert math.isfinite(cc.tc)


def test_treesa_progbar():
    g = grid(3, 3)
    code, size_dict = tb.independent_set_expression(g)
    new = tb.treesa(code, size_dict, [1.0], 2, 2, seed=1, progbar=True)
    assert tb.same_network(code, new)
