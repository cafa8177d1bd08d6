"""
Double Pendulum Ensemble Simulation
Advance many independent pendulums one fixed time step at a time
"""

from __future__ import annotations

import logging
import math
import multiprocessing as mp
import time
from typing import Callable, Iterable, Tuple

import dill
import numpy as np

from equations import derivative
from integrator import RightHandSide, step
from pendulum_state import PendulumState, SimulationParameters

logger = logging.getLogger(__name__)

_worker_rhs = None


def _worker_init(rhs_blob: bytes) -> None:
    """Initializer for worker processes; restores the right-hand side."""
    global _worker_rhs
    _worker_rhs = dill.loads(rhs_blob)


def _worker_advance_block(
    task: Tuple[int, np.ndarray, SimulationParameters, float],
) -> Tuple[int, np.ndarray]:
    """Advance one contiguous range of the ensemble inside a worker process."""
    if _worker_rhs is None:
        raise RuntimeError("Worker derivative not initialized")

    start, block, params, dt = task
    _advance_block(block, params, dt, _worker_rhs)
    return start, block


def _advance_block(block: np.ndarray, params: SimulationParameters, dt: float, rhs: RightHandSide) -> None:
    """Replace every row of `block` with its state one step later."""
    for row in range(block.shape[0]):
        block[row] = step(PendulumState._make(block[row].tolist()), params, dt, rhs)


def _advance_copy(arena: np.ndarray, params: SimulationParameters, dt: float, rhs: RightHandSide) -> None:
    """Advance `arena` through a scratch copy so a failure leaves it untouched."""
    scratch = arena.copy()
    _advance_block(scratch, params, dt, rhs)
    arena[...] = scratch


def partition(size: int, parts: int) -> list[tuple[int, int]]:
    """Split range(size) into at most `parts` contiguous, non-empty, near-equal ranges."""
    if parts < 1:
        raise ValueError(f"parts must be >= 1, got {parts}")

    parts = min(parts, size)
    ranges = []
    start = 0
    for k in range(parts):
        stop = start + size // parts + (1 if k < size % parts else 0)
        ranges.append((start, stop))
        start = stop
    return ranges


class WorkerPool:
    """
    Fixed-size pool of worker processes reused for every tick.

    The right-hand side is shipped to the workers once, serialized with dill,
    so closures and locally defined models work as well as module functions.
    With processes=1 no worker is spawned and ticks run in-process.
    """

    def __init__(self, processes: int | None = None, rhs: RightHandSide = derivative) -> None:
        cpu_total = mp.cpu_count() or 1
        if processes is None:
            processes = cpu_total
        if processes < 1:
            raise ValueError(f"processes must be >= 1, got {processes}")

        self.processes = processes
        self.rhs = rhs
        self._pool = None

        if processes > 1:
            rhs_blob = dill.dumps(rhs)
            ctx = mp.get_context("spawn")
            self._pool = ctx.Pool(
                processes=processes,
                initializer=_worker_init,
                initargs=(rhs_blob,),
            )
            logger.info(f"Started {processes} worker processes")

    def advance(self, arena: np.ndarray, params: SimulationParameters, dt: float) -> None:
        """Advance every row of `arena`, one contiguous range per worker."""
        if self._pool is None:
            _advance_copy(arena, params, dt, self.rhs)
            return

        tasks = [
            (start, arena[start:stop].copy(), params, dt)
            for start, stop in partition(arena.shape[0], self.processes)
        ]
        chunk_iter: Iterable[Tuple[int, np.ndarray]] = self._pool.imap_unordered(_worker_advance_block, tasks)
        # Install only once every range has come back
        updated = list(chunk_iter)
        for start, block in updated:
            arena[start:start + block.shape[0]] = block

    def close(self) -> None:
        if self._pool is not None:
            self._pool.terminate()
            self._pool.join()
            self._pool = None
            logger.info(f"Stopped {self.processes} worker processes")

    def __enter__(self) -> WorkerPool:
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class Ensemble:
    """
    Fixed-size collection of pendulum states stored as one (size, 4) float64 arena.

    Only advance_all writes to the arena. Readers use state_of() or snapshot()
    between ticks; reading while a tick is in flight raises RuntimeError.
    """

    def __init__(self, states: np.ndarray) -> None:
        states = np.ascontiguousarray(states, dtype=np.float64)
        if states.ndim != 2 or states.shape[1] != 4 or states.shape[0] < 1:
            raise ValueError(f"states must have shape (size, 4) with size >= 1, got {states.shape}")
        self._states = states
        self._advancing = False
        self.tick_count = 0
        self.last_tick_ms = 0.0

    def __len__(self) -> int:
        return self._states.shape[0]

    def _check_idle(self) -> None:
        if self._advancing:
            raise RuntimeError("Ensemble is being advanced; read it between ticks")

    def state_of(self, index: int) -> PendulumState:
        self._check_idle()
        size = len(self)
        if not -size <= index < size:
            raise IndexError(f"index {index} out of range for ensemble of size {size}")
        return PendulumState._make(self._states[index].tolist())

    def snapshot(self) -> np.ndarray:
        """Read-only copy of all states, one row per member."""
        self._check_idle()
        frozen = self._states.copy()
        frozen.flags.writeable = False
        return frozen

    def nonfinite_indices(self) -> np.ndarray:
        """Indices of members holding at least one NaN or infinite component."""
        self._check_idle()
        return np.flatnonzero(~np.isfinite(self._states).all(axis=1))


def create_ensemble(
    size: int,
    initial_condition_fn: Callable[[int], PendulumState],
    params: SimulationParameters,
) -> Ensemble:
    """
    Build an ensemble of `size` members, member i starting at initial_condition_fn(i).

    Raises ValueError for a non-integer or non-positive size, invalid
    parameters, or an initial condition that is not four components.
    """
    if isinstance(size, bool) or not isinstance(size, (int, np.integer)):
        raise ValueError(f"size must be an integer, got {size!r}")
    if size < 1:
        raise ValueError(f"size must be >= 1, got {size}")
    params.validate()

    states = np.empty((size, 4), dtype=np.float64)
    for ii in range(size):
        initial = tuple(initial_condition_fn(ii))
        if len(initial) != 4:
            raise ValueError(f"Initial condition for member {ii} has {len(initial)} components, expected 4")
        states[ii] = initial

    logger.debug(f"Created ensemble of {size} pendulums")
    return Ensemble(states)


def advance_all(
    ensemble: Ensemble,
    params: SimulationParameters,
    dt: float | None = None,
    pool: WorkerPool | None = None,
    rhs: RightHandSide | None = None,
    check_finite: bool = False,
) -> None:
    """
    Advance every member of `ensemble` by one step of `dt` (default params.time_step).

    Each member's new state depends only on its own previous state, so the
    result is the same whether the tick runs in-process or across `pool`.
    Members that diverge to NaN/Inf are left as they are; with check_finite
    they are reported through a logged warning.
    """
    if dt is None:
        dt = params.time_step
    if not math.isfinite(dt) or dt <= 0:
        raise ValueError(f"dt must be positive and finite, got {dt!r}")
    if pool is not None and rhs is not None and rhs is not pool.rhs:
        raise ValueError("rhs differs from the one installed in the worker pool")
    if ensemble._advancing:
        raise RuntimeError("Ensemble is already being advanced")

    tic = time.perf_counter()
    ensemble._advancing = True
    try:
        if pool is None:
            _advance_copy(ensemble._states, params, dt, rhs or derivative)
        else:
            pool.advance(ensemble._states, params, dt)
    finally:
        ensemble._advancing = False
    toc = time.perf_counter()

    ensemble.tick_count += 1
    ensemble.last_tick_ms = (toc - tic) * 1000.0
    logger.debug(f"Tick {ensemble.tick_count} computed in {ensemble.last_tick_ms:.1f} ms")

    if check_finite:
        diverged = ensemble.nonfinite_indices()
        if diverged.size:
            logger.warning(
                f"{diverged.size} of {len(ensemble)} pendulums hold non-finite state "
                f"after tick {ensemble.tick_count} (first: {diverged[:5].tolist()})"
            )


def state_of(ensemble: Ensemble, index: int) -> PendulumState:
    """Read-only snapshot of member `index`."""
    return ensemble.state_of(index)
