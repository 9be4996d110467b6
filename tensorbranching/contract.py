"""Functionality relating to actually contracting expressions, used to check
that reordered expressions give the same result.
"""

import functools

from autoray import do, shape

from .expression import isleaf, postorder
from .utils import get_symbol_map


@functools.lru_cache(2**12)
def _einsum_equation(ixs, iy):
    symbols = get_symbol_map((*ixs, iy))
    lhs = ",".join("".join(map(symbols.__getitem__, ix)) for ix in ixs)
    rhs = "".join(map(symbols.__getitem__, iy))
    return f"{lhs}->{rhs}"


def einsum_standard(ixs, iy, arrays):
    """Contract ``arrays`` with the usual sum-product semiring."""
    return do("einsum", _einsum_equation(ixs, iy), *arrays)


def _broadcast_to(array, ix, all_ix):
    """Permute and expand ``array``, with indices ``ix``, so that it
    broadcasts against the full index list ``all_ix``.
    """
    if len(set(ix)) != len(ix):
        raise ValueError(f"Repeated indices {ix} are not supported.")
    present = [i for i in all_ix if i in ix]
    perm = tuple(ix.index(i) for i in present)
    if perm != tuple(range(len(perm))):
        array = do("transpose", array, perm)
    dims = iter(shape(array))
    new_shape = tuple(next(dims) if i in ix else 1 for i in all_ix)
    return do("reshape", array, new_shape)


def einsum_tropical(ixs, iy, arrays):
    """Contract ``arrays`` in the max-plus (tropical) semiring: elements are
    added where the usual einsum multiplies, and maximized where it sums.
    """
    all_ix = []
    for ix in (*ixs, iy):
        for i in ix:
            if i not in all_ix:
                all_ix.append(i)

    result = None
    for ix, array in zip(ixs, arrays):
        x = _broadcast_to(array, tuple(ix), all_ix)
        result = x if result is None else result + x

    eliminated = tuple(k for k, i in enumerate(all_ix) if i not in iy)
    if eliminated:
        result = do("max", result, axis=eliminated)

    kept = [i for i in all_ix if i in iy]
    perm = tuple(kept.index(i) for i in iy)
    if perm != tuple(range(len(perm))):
        result = do("transpose", result, perm)
    return result


_SEMIRINGS = {
    "standard": einsum_standard,
    "tropical": einsum_tropical,
}


def contract_expression(code, arrays, semiring="standard"):
    """Contract ``arrays`` following the nested einsum ``code``.

    Parameters
    ----------
    code : NestedEinsum or EinLeaf
        The contraction expression, ``arrays[tensorindex]`` being the array
        of each leaf.
    arrays : sequence or mapping of array_like
        The input arrays, any ``autoray`` supported backend.
    semiring : {'standard', 'tropical'}, optional
        Whether to contract with sum-product or max-plus arithmetic.

    Returns
    -------
    array_like
    """
    try:
        einsum = _SEMIRINGS[semiring]
    except KeyError:
        raise ValueError(
            f"Unknown semiring {semiring!r}, "
            f"should be one of {tuple(_SEMIRINGS)}."
        )

    if isleaf(code):
        return arrays[code.tensorindex]

    values = []
    for node in postorder(code):
        if isleaf(node):
            values.append(arrays[node.tensorindex])
        else:
            n = len(node.args)
            operands = values[-n:]
            del values[-n:]
            ixs = tuple(map(tuple, node.ixs))
            values.append(einsum(ixs, tuple(node.iy), operands))
    return values.pop()
