"""Interface for running independent annealing trials in parallel."""

import atexit
import functools
import numbers
import os

_DEFAULT_BACKEND = "concurrent.futures"


@functools.lru_cache(None)
def choose_default_num_workers():
    if "TENSORBRANCHING_NUM_WORKERS" in os.environ:
        return int(os.environ["TENSORBRANCHING_NUM_WORKERS"])

    if "OMP_NUM_THREADS" in os.environ:
        return int(os.environ["OMP_NUM_THREADS"])

    return os.cpu_count()


class CachedPoolExecutor:
    """Lazily create, and keep alive, a single pool of type ``pool_cls``,
    recreating it only if a different number of workers is requested.
    """

    def __init__(self, pool_cls_name):
        self.pool_cls_name = pool_cls_name
        self._pool = None
        self._n_workers = -1
        atexit.register(self.shutdown)

    def __call__(self, n_workers=None):
        if n_workers != self._n_workers:
            import concurrent.futures

            self.shutdown()
            pool_cls = getattr(concurrent.futures, self.pool_cls_name)
            self._pool = pool_cls(n_workers)
            self._n_workers = n_workers
        return self._pool

    def shutdown(self):
        if self._pool is not None:
            self._pool.shutdown()
            self._pool = None

    def __del__(self):
        self.shutdown()


ProcessPoolHandler = CachedPoolExecutor("ProcessPoolExecutor")
ThreadPoolHandler = CachedPoolExecutor("ThreadPoolExecutor")


def get_pool(n_workers=None, backend=None):
    """Get a parallel pool."""
    if backend is None:
        backend = _DEFAULT_BACKEND

    if n_workers is None:
        n_workers = choose_default_num_workers()

    if backend == "concurrent.futures":
        return ProcessPoolHandler(n_workers)

    if backend == "threads":
        return ThreadPoolHandler(n_workers)

    raise ValueError(f"Unknown parallel backend {backend!r}.")


def parse_parallel_arg(parallel):
    """Turn the ``parallel`` option into a pool, or ``None`` for serial.

    Parameters
    ----------
    parallel : bool, int, str or executor
        ``False`` for serial, ``True`` for the default process pool, an int
        for a process pool with that many workers, ``'threads'`` or
        ``'concurrent.futures'`` for a default pool of that kind, or any
        object with a ``submit`` method.
    """
    if parallel is False or parallel is None:
        return None

    if parallel is True:
        return get_pool()

    if isinstance(parallel, numbers.Integral):
        return get_pool(n_workers=parallel)

    if isinstance(parallel, str):
        return get_pool(backend=parallel)

    return parallel


def submit(pool, fn, *args, **kwargs):
    """Interface for submitting ``fn(*args, **kwargs)`` to ``pool``."""
    return pool.submit(fn, *args, **kwargs)
