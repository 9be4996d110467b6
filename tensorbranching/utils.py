"""Various utilities for tensorbranching."""

import collections
import functools
import math
import operator
import random

from cytoolz import groupby, unique


class StructuralError(ValueError):
    """Raised when an expression, graph, order or tree is structurally
    invalid, for example an empty group of leaves or a disconnected graph
    where a single decomposition tree was required.
    """


def get_rng(seed=None):
    """Get a source of random numbers.

    Parameters
    ----------
    seed : None or int or random.Random, optional
        The seed for the random number generator. If None, use the default
        random number generator. If an integer, use a new random number
        generator with the given seed. If a random.Random instance, use that
        instance.
    """
    if seed is None:
        return random
    elif isinstance(seed, random.Random) or (seed is random):
        return seed
    else:
        return random.Random(seed)


def compute_size_by_dict(indices, size_dict):
    """Computes the product of sizes of ``indices`` based on ``size_dict``.

    Examples
    --------

        >>> compute_size_by_dict('abbc', {'a': 2, 'b':3, 'c':5})
        90

    """
    d = 1
    for i in indices:
        d *= size_dict[i]
    return d


def log2_size(indices, size_dict):
    """The log2 of the size of a tensor with ``indices``."""
    return math.log2(compute_size_by_dict(indices, size_dict))


_einsum_symbols_base = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"


@functools.lru_cache(2**14)
def get_symbol(i):
    """Get the symbol corresponding to int ``i`` - runs through the usual 52
    letters before resorting to unicode characters, starting at ``chr(192)``
    and skipping surrogates.
    """
    if i < 52:
        return _einsum_symbols_base[i]

    i += 140
    if i >= 55296:
        # skip surrogates
        i += 2048

    return chr(i)


def get_symbol_map(terms):
    """Map arbitrary hashable indices appearing in ``terms`` to single
    unicode symbols, in order of first appearance.
    """
    symbols = map(get_symbol, range(2**31))
    return {ix: next(symbols) for ix in unique(ix for t in terms for ix in t)}


def sorted_labels(labels):
    """Sort ``labels`` if they are naturally ordered, else keep the order in
    which they are first seen.
    """
    labels = list(unique(labels))
    try:
        return sorted(labels)
    except TypeError:
        return labels


def group_leaves_by_label(v2e):
    """Invert a mapping of leaf -> labels into label -> tuple of leaves,
    with the leaves of each label in ascending order.
    """
    pairs = ((ix, leaf) for leaf in sorted(v2e) for ix in v2e[leaf])
    return {
        ix: tuple(leaf for _, leaf in ps)
        for ix, ps in groupby(operator.itemgetter(0), pairs).items()
    }


def linear_to_ssa(path, N=None):
    """Convert a path with recycled linear ids to a path with static single
    assignment ids. For example::

        >>> linear_to_ssa([(0, 3), (1, 2), (0, 1)])
        [(0, 3), (2, 4), (1, 5)]

    """
    if N is None:
        N = sum(map(len, path)) - len(path) + 1

    ids = list(range(N))
    ssa = N
    ssa_path = []
    for con in path:
        scon = tuple(sorted(ids.pop(c) for c in sorted(con, reverse=True)))
        ssa_path.append(scon)
        ids.append(ssa)
        ssa += 1
    return ssa_path


Contraction = collections.namedtuple(
    "Contraction", ("inputs", "output", "shapes", "size_dict")
)
