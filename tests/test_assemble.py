import random
from collections import Counter

import networkx as nx
import pytest

import tensorbranching as tb
from tensorbranching.assemble import tree_leaves


CT = tb.ContractionTree


def grid(m, n):
    return nx.convert_node_labels_to_integers(nx.grid_2d_graph(m, n))


def random_groups(n, seed):
    rng = random.Random(seed)
    leaves = list(range(n))
    rng.shuffle(leaves)
    groups = []
    while leaves:
        k = rng.randint(1, len(leaves))
        groups.append(leaves[:k])
        leaves = leaves[k:]
    return groups


def test_build_balanced_tree():
    assert tb.build_balanced_tree([7]) == 7
    assert tb.build_balanced_tree([0, 1]) == CT(0, 1)
    assert tb.build_balanced_tree(range(5)) == CT(
        CT(CT(0, 1), CT(2, 3)), 4
    )


def test_build_balanced_tree_empty():
    with pytest.raises(tb.StructuralError):
        tb.build_balanced_tree([])


def test_assemble_folds_groups_left_to_right():
    tree = tb.assemble([[0, 1], [2], [3, 4, 5]])
    assert tree == CT(CT(CT(0, 1), 2), CT(CT(3, 4), 5))


def test_assemble_single_leaf():
    assert tb.assemble([[3]]) == 3


@pytest.mark.parametrize("n", [1, 2, 7, 30])
@pytest.mark.parametrize("seed", range(3))
def test_assemble_conserves_leaves(n, seed):
    groups = random_groups(n, seed)
    tree = tb.assemble(groups)
    leaves = tree_leaves(tree)
    assert sorted(leaves) == list(range(n))
    # groups stay contiguous and in order
    assert leaves == [leaf for group in groups for leaf in group]


@pytest.mark.parametrize(
    "grouped_order", [[], [[0, 1], []], [[0, 1], [1, 2]], [[0], [0]]]
)
def test_assemble_bad_groups(grouped_order):
    with pytest.raises(tb.StructuralError):
        tb.assemble(grouped_order)


def test_assemble_unknown_leaf():
    incidence = tb.IncidenceList([("a",), ("a", "b")])
    assert tb.assemble([[0, 1]], incidence) == CT(0, 1)
    with pytest.raises(tb.StructuralError):
        tb.assemble([[0, 1, 2]], incidence)


def test_incidence_list():
    incidence = tb.IncidenceList([("a", "b"), ("b", "c")], ("a",))
    assert incidence.v2e == {0: ("a", "b"), 1: ("b", "c")}
    assert incidence.e2v == {"a": (0,), "b": (0, 1), "c": (1,)}
    assert incidence.openedges == ("a",)
    assert incidence.leaves == [0, 1]
    assert incidence.num_edges == 3
    assert 1 in incidence
    assert 2 not in incidence


def test_incidence_list_from_expression_keeps_tensor_ids():
    inputs = {3: ("a", "b"), 5: ("b",)}
    code = tb.tree_to_expression(tb.IncidenceList(inputs), CT(5, 3))
    incidence = tb.IncidenceList.from_expression(code)
    assert incidence.v2e == inputs
    assert incidence.e2v == {"a": (3,), "b": (3, 5)}


def test_tree_to_expression_and_back():
    incidence = tb.IncidenceList([("a", "b"), ("b", "c"), ("c",)], ("a",))
    tree = CT(CT(0, 1), 2)
    code = tb.tree_to_expression(incidence, tree)
    assert code.iy == ("a",)
    assert code.args[0].iy == ("a", "c")
    assert code.args[1] == tb.EinLeaf(2)
    assert tb.flatten(code) == ([("a", "b"), ("b", "c"), ("c",)], ("a",))
    assert tb.expression_to_tree(code) == tree


def test_expression_to_tree_multi_operand_contraction():
    leaf = tb.EinLeaf
    code = tb.NestedEinsum(
        (leaf(2), leaf(0), leaf(1)), (("a",), ("a", "b"), ("b",)), ()
    )
    assert tb.expression_to_tree(code) == CT(CT(2, 0), 1)


def test_map_tree_leaves():
    tree = CT(CT(0, 1), 2)
    assert tb.map_tree_leaves(tree, {0: 5, 1: 6, 2: 7}) == CT(CT(5, 6), 7)
    assert tb.map_tree_leaves(1, [4, 3]) == 3


def test_group_leaves_by_order():
    incidence = tb.IncidenceList(
        [("a",), ("a", "b"), ("b",), ("b", "c"), ("c",), ("d",)]
    )
    groups = tb.group_leaves_by_order(["c", "b", "a"], incidence)
    assert groups == [[0, 1], [2, 3], [4], [5]]


@pytest.mark.parametrize("use_tree", [False, True])
def test_reassemble_preserves_order_multiset(use_tree):
    g = grid(6, 6)
    code, _ = tb.independent_set_expression(g)
    new = tb.reassemble(code, use_tree=use_tree)
    assert tb.same_network(code, new)
    assert Counter(tb.extract_order(new)) == Counter(tb.extract_order(code))


def test_order_to_expression_dict_inputs():
    inputs = {10: ("a", "b"), 20: ("b", "c"), 30: ("c",)}
    # 'b' is eliminated first, pulling in tensors 10 and 20
    code = tb.order_to_expression(inputs, (), ["a", "c", "b"])
    assert tb.IncidenceList.from_expression(code).v2e == inputs
    assert code.args[0].args == (tb.EinLeaf(10), tb.EinLeaf(20))
    assert code.args[1] == tb.EinLeaf(30)
    assert tb.expression_to_tree(code) == CT(CT(0, 1), 2)


def test_order_to_expression_use_tree_dict_inputs():
    inputs = {10: ("a", "b"), 20: ("b", "c"), 30: ("c",)}
    code = tb.order_to_expression(inputs, (), ["a", "c", "b"], use_tree=True)
    assert tb.IncidenceList.from_expression(code).v2e == inputs
    assert sorted(tb.extract_order(code)) == ["a", "b", "c"]


def test_order_to_expression_use_tree_disconnected():
    inputs = [("a", "b"), ("b",), ("c", "d"), ("d",)]
    code = tb.order_to_expression(inputs, (), ["a", "b", "c", "d"])
    new = tb.order_to_expression(
        inputs, (), ["a", "b", "c", "d"], use_tree=True
    )
    assert tb.same_network(code, new)
    assert sorted(tb.extract_order(new)) == ["a", "b", "c", "d"]


@pytest.mark.parametrize("use_tree", [False, True])
def test_order_to_expression_unknown_index(use_tree):
    inputs = [("a", "b"), ("b", "c")]
    with pytest.raises(tb.StructuralError):
        tb.order_to_expression(inputs, (), ["a", "z"], use_tree=use_tree)
