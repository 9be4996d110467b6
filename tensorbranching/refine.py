"""Iterative refinement of contraction orders under a space budget."""

import dataclasses
import functools
from typing import Tuple

from .anneal import treesa
from .expression import contraction_complexity, same_network
from .graphs import estimate_structure
from .utils import StructuralError, get_rng


def inverse_temperatures(start, stop, step=1.0):
    """An inclusive, evenly stepped schedule of inverse temperatures, like
    ``start:step:stop`` - e.g. ``inverse_temperatures(1, 3, 0.5)`` gives
    ``(1.0, 1.5, 2.0, 2.5, 3.0)``.
    """
    if step <= 0:
        raise ValueError("``step`` must be positive.")
    n = int(round((stop - start) / step))
    return tuple(start + i * step for i in range(n + 1))


def subdivide_schedule(betas, density):
    """Make ``betas`` finer by inserting ``density - 1`` evenly spaced points
    between each consecutive pair.
    """
    if len(betas) < 2 or density <= 1:
        return tuple(betas)
    finer = []
    for b0, b1 in zip(betas[:-1], betas[1:]):
        step = (b1 - b0) / density
        finer.extend(b0 + i * step for i in range(density))
    finer.append(betas[-1])
    return tuple(finer)


@dataclasses.dataclass(frozen=True)
class RefinerConfig:
    """Parameters of the contraction order refinement search.

    Parameters
    ----------
    betas : sequence of float, optional
        The inverse temperature schedule of each annealing run.
    ntrials : int, optional
        The number of independent annealing trials per round.
    niters : int, optional
        The number of sweeps at each inverse temperature.
    max_rounds : int, optional
        The number of refinement rounds.
    reoptimize : bool, optional
        Whether to run one escalated round if the space target was never
        met by the regular rounds.
    bipartite_optimization : bool, optional
        Reserved for bipartition aware search, currently has no effect.
    escalate_beta_density : int, optional
        The escalated round divides the schedule step by this.
    escalate_ntrials : int, optional
        The escalated round runs this many more trials.
    escalate_niters : int, optional
        The escalated round runs this many more sweeps per temperature.
    sc_weight : float, optional
        Weight of the penalty on space complexity above the target.
    rw_weight : float, optional
        Weight of the read-write complexity in the annealing score.
    """

    betas: Tuple[float, ...] = inverse_temperatures(1.0, 20.0)
    ntrials: int = 5
    niters: int = 50
    max_rounds: int = 3
    reoptimize: bool = True
    bipartite_optimization: bool = False
    escalate_beta_density: int = 2
    escalate_ntrials: int = 2
    escalate_niters: int = 10
    sc_weight: float = 1.0
    rw_weight: float = 0.2

    def __post_init__(self):
        object.__setattr__(self, "betas", tuple(map(float, self.betas)))
        if not self.betas:
            raise ValueError("``betas`` must not be empty.")
        for name in ("ntrials", "niters", "escalate_beta_density"):
            if getattr(self, name) < 1:
                raise ValueError(f"``{name}`` must be at least 1.")
        for name in ("max_rounds", "escalate_ntrials", "escalate_niters"):
            if getattr(self, name) < 0:
                raise ValueError(f"``{name}`` must not be negative.")

    def replace(self, **kwargs):
        """Copy this configuration with some parameters overridden."""
        return dataclasses.replace(self, **kwargs)

    def escalated(self):
        """The wider search configuration used for the escalated round."""
        return self.replace(
            betas=subdivide_schedule(self.betas, self.escalate_beta_density),
            ntrials=self.ntrials + self.escalate_ntrials,
            niters=self.niters + self.escalate_niters,
            reoptimize=False,
        )


TreeSARefiner = functools.partial(
    RefinerConfig,
    betas=inverse_temperatures(1.0, 15.0),
    ntrials=10,
    niters=50,
    max_rounds=2,
)
"""Refinement preset suited to sparse, low tree-width graphs."""

RankSARefiner = functools.partial(
    RefinerConfig,
    betas=inverse_temperatures(1.0, 20.0),
    ntrials=5,
    niters=50,
    max_rounds=3,
    bipartite_optimization=True,
)
"""Refinement preset suited to dense graphs, searching with a longer
schedule and more rounds.
"""


def preset_for_graph(g, **kwargs):
    """Pick a refinement preset from the density of ``g``, see
    :func:`~tensorbranching.graphs.estimate_structure`.
    """
    structure = estimate_structure(g)
    if structure == "rank_preferred":
        return RankSARefiner(**kwargs)
    if structure == "tree_preferred":
        return TreeSARefiner(**kwargs)
    return RefinerConfig(**kwargs)


def _key(cc):
    return (cc.sc, cc.tc)


def refine(
    code,
    size_dict,
    config,
    sc_target,
    current_sc,
    *,
    reorder=None,
    seed=None,
    parallel=False,
    check=False,
    info=None,
    progbar=False,
):
    """Refine the contraction order of ``code``, looking for an order whose
    space complexity is at most ``sc_target`` and otherwise has the lowest
    space then time complexity. The result is never worse than ``code``.

    Parameters
    ----------
    code : NestedEinsum
        The contraction expression to refine.
    size_dict : dict
        The size of each index.
    config : RefinerConfig
        The search parameters.
    sc_target : float
        The log2 space budget.
    current_sc : float
        The space complexity to beat.
    reorder : callable, optional
        The stochastic reordering primitive, called as
        ``reorder(code, size_dict, betas, ntrials, niters, sc_target=...,
        sc_weight=..., rw_weight=..., seed=..., parallel=...)``. Defaults to
        :func:`~tensorbranching.anneal.treesa`.
    seed : None, int or random.Random, optional
        A random seed.
    parallel : bool, int, str or executor, optional
        Passed on to ``reorder`` for its trials.
    check : bool, optional
        Whether to check each candidate contracts exactly the same network
        as ``code``.
    info : dict, optional
        If given, filled with ``'rounds'`` (a record per round),
        ``'escalated'``, ``'budget_met'`` and the final ``'complexity'``.
    progbar : bool, optional
        Whether to show live progress over the rounds.

    Returns
    -------
    NestedEinsum
        The best expression found, or ``code`` itself if nothing improved.
    """
    if reorder is None:
        reorder = treesa

    rng = get_rng(seed)

    cc0 = contraction_complexity(code, size_dict)
    best_code, best_cc = code, cc0
    best_key = (min(current_sc, cc0.sc), cc0.tc)
    rounds = []

    def run_round(cfg, escalated):
        candidate = reorder(
            best_code,
            size_dict,
            cfg.betas,
            cfg.ntrials,
            cfg.niters,
            sc_target=sc_target,
            sc_weight=cfg.sc_weight,
            rw_weight=cfg.rw_weight,
            seed=rng.randrange(0, 2**32),
            parallel=parallel,
        )
        if check and not same_network(candidate, code):
            raise StructuralError(
                "Reordering changed the tensors being contracted."
            )
        cc = contraction_complexity(candidate, size_dict)
        rounds.append(
            {
                "round": len(rounds),
                "escalated": escalated,
                "tc": cc.tc,
                "sc": cc.sc,
                "rwc": cc.rwc,
                "adopted": False,
            }
        )
        return candidate, cc

    if progbar:
        import tqdm

        pbar = tqdm.tqdm(total=config.max_rounds)
        pbar.set_description(f"sc={cc0.sc:.2f} tc={cc0.tc:.2f}")

    for _ in range(config.max_rounds):
        candidate, cc = run_round(config, escalated=False)
        if (cc.sc <= sc_target) and (_key(cc) < best_key):
            best_code, best_cc, best_key = candidate, cc, _key(cc)
            rounds[-1]["adopted"] = True
            if progbar:
                pbar.set_description(
                    f"sc={cc.sc:.2f} tc={cc.tc:.2f}", refresh=False
                )
        if progbar:
            pbar.update()

    if progbar:
        pbar.close()

    escalated = False
    if (best_cc.sc > sc_target) and config.reoptimize:
        escalated = True
        candidate, cc = run_round(config.escalated(), escalated=True)
        if _key(cc) < best_key:
            best_code, best_cc, best_key = candidate, cc, _key(cc)
            rounds[-1]["adopted"] = True

    if info is not None:
        info["rounds"] = rounds
        info["escalated"] = escalated
        info["budget_met"] = best_cc.sc <= sc_target
        info["complexity"] = best_cc

    return best_code
