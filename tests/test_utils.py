import concurrent.futures
import random

import pytest

from tensorbranching import parallel, utils


def test_get_symbol_map():
    symbols = utils.get_symbol_map([(10, "x"), ("x", 3.5)])
    assert symbols == {10: "a", "x": "b", 3.5: "c"}
    assert utils.get_symbol(52) == chr(192)


def test_sorted_labels():
    assert utils.sorted_labels([3, 1, 2, 1]) == [1, 2, 3]
    assert utils.sorted_labels(["b", 1, "a"]) == ["b", 1, "a"]


def test_group_leaves_by_label():
    v2e = {2: ("a", "b"), 0: ("b",), 1: ("c", "a")}
    assert utils.group_leaves_by_label(v2e) == {
        "b": (0, 2),
        "c": (1,),
        "a": (1, 2),
    }


def test_linear_to_ssa():
    assert utils.linear_to_ssa([(0, 3), (1, 2), (0, 1)]) == [
        (0, 3),
        (2, 4),
        (1, 5),
    ]


def test_get_rng():
    rng = random.Random(7)
    assert utils.get_rng(rng) is rng
    assert utils.get_rng(None) is random
    assert utils.get_rng(3).random() == random.Random(3).random()


def test_compute_size_by_dict():
    size_dict = {"a": 2, "b": 3, "c": 5}
    assert utils.compute_size_by_dict("abbc", size_dict) == 90
    assert utils.log2_size("aa", size_dict) == pytest.approx(2.0)


def test_structural_error_is_value_error():
    assert issubclass(utils.StructuralError, ValueError)


def test_parse_parallel_arg():
    assert parallel.parse_parallel_arg(False) is None
    assert parallel.parse_parallel_arg(None) is None
    pool = parallel.parse_parallel_arg("threads")
    assert isinstance(pool, concurrent.futures.ThreadPoolExecutor)
    assert parallel.parse_parallel_arg(pool) is pool
    with pytest.raises(ValueError):
        parallel.parse_parallel_arg("dask")


def test_submit():
    pool = parallel.get_pool(2, backend="threads")
    assert isinstance(pool, concurrent.futures.ThreadPoolExecutor)
    assert parallel.get_pool(2, backend="threads") is pool
    assert parallel.submit(pool, max, 1, 3).result() == 3


def test_num_workers_env(monkeypatch):
    parallel.choose_default_num_workers.cache_clear()
    monkeypatch.setenv("TENSORBRANCHING_NUM_WORKERS", "3")
    try:
        assert parallel.choose_default_num_workers() == 3
    finally:
        parallel.choose_default_num_workers.cache_clear()
