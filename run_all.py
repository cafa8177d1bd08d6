"""
Run the double pendulum ensemble simulation
"""

from __future__ import annotations

import argparse
import logging
import time

import numpy as np

from pendulum_state import (
    NUM_PENDULUMS,
    NUM_TICKS,
    SimulationParameters,
    reference_initial_conditions,
)
from simulator import Ensemble, WorkerPool, advance_all, create_ensemble


def run_simulation(
    M: int = NUM_PENDULUMS,
    ticks: int = NUM_TICKS,
    params: SimulationParameters | None = None,
    dt: float | None = None,
    processes: int | None = None,
    check_finite: bool = False,
) -> Ensemble:
    """
    Simulate M double pendulums with slightly different initial conditions

    Parameters:
    -----------
    M : int
        Number of pendulum instances
    ticks : int
        Number of fixed time steps to advance the whole ensemble
    params : SimulationParameters | None
        Physical constants (default: reference configuration)
    dt : float | None
        Time step (default: params.time_step)
    processes : int | None
        Number of worker processes (default: cpu_count, runs in-process when 1)
    check_finite : bool
        Warn after each tick about members that diverged to NaN/Inf

    Returns:
    --------
    ensemble : Ensemble
        Ensemble after the last tick
    """

    if ticks < 0:
        raise ValueError(f"ticks must be >= 0, got {ticks}")
    params = params or SimulationParameters()
    ensemble = create_ensemble(M, reference_initial_conditions(M), params)

    print(f"Simulating {M} pendulum instances for {ticks} ticks...")
    tic = time.time()
    report_every = max(1, ticks // 10)

    with WorkerPool(processes=processes) as pool:
        if pool.processes > 1:
            print(f"Using {pool.processes} parallel workers...")
        for tick in range(1, ticks + 1):
            advance_all(ensemble, params, dt, pool=pool, check_finite=check_finite)
            if tick % report_every == 0 or tick == ticks:
                print(f"Progress: {tick}/{ticks} (last tick {ensemble.last_tick_ms:.1f} ms)")

    toc = time.time()
    print(f"Simulation completed in {toc-tic:.1f} seconds")
    return ensemble


def save_snapshot(ensemble: Ensemble, params: SimulationParameters, filename: str) -> None:
    """Write the current ensemble state and its parameters to an .npz file."""
    np.savez(
        filename,
        states=ensemble.snapshot(),
        tick_count=ensemble.tick_count,
        arm1_length=params.arm1_length,
        arm2_length=params.arm2_length,
        mass1=params.mass1,
        mass2=params.mass2,
        gravity=params.gravity,
        time_step=params.time_step,
    )
    print(f"Final state saved to {filename}")


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Double pendulum ensemble simulation")
    p.add_argument("--size", type=int, default=NUM_PENDULUMS, help="Number of pendulum instances")
    p.add_argument("--ticks", type=int, default=NUM_TICKS, help="Number of time steps to simulate")
    p.add_argument("--dt", type=float, default=None, help="Time step (default: reference time step)")
    p.add_argument("--processes", type=int, default=None, help="Worker processes (default: cpu count)")
    p.add_argument("--check-finite", action="store_true", help="Warn when pendulums diverge to NaN/Inf")
    p.add_argument("--output", default=None, help="Save the final state to this .npz file")
    return p.parse_args(argv)


def main(argv=None):
    """
    Complete run:
    1. Build the ensemble from the reference initial conditions
    2. Advance it tick by tick
    3. Report divergence and optionally save the final state
    """

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    parser_args = parse_args(argv)
    params = SimulationParameters(time_step=parser_args.dt) if parser_args.dt is not None else SimulationParameters()

    print("=" * 60)
    print("DOUBLE PENDULUM ENSEMBLE SIMULATION")
    print("=" * 60)
    print()

    print(f"Configuration:")
    print(f"  Number of instances: {parser_args.size}")
    print(f"  Ticks: {parser_args.ticks}")
    print(f"  Time step: {params.time_step}")
    print(f"  Arm lengths: {params.arm1_length}, {params.arm2_length}")
    print(f"  Masses: {params.mass1}, {params.mass2}")
    print(f"  Gravity: {params.gravity}")
    print()

    try:
        ensemble = run_simulation(
            M=parser_args.size,
            ticks=parser_args.ticks,
            params=params,
            processes=parser_args.processes,
            check_finite=parser_args.check_finite,
        )
    except ValueError as err:
        logging.getLogger(__name__).error(f"Invalid configuration: {err}")
        raise SystemExit(2)

    diverged = ensemble.nonfinite_indices()
    print()
    print(f"Non-finite pendulums: {diverged.size}/{len(ensemble)}")

    if parser_args.output:
        save_snapshot(ensemble, params, parser_args.output)

    print("=" * 60)
    print("COMPLETE!")
    print("=" * 60)


if __name__ == '__main__':
    main()
