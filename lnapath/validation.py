"""Precondition checks run at the entry of the path kernels.

Every check here runs before the first ODE integration so that a shape or
schedule problem never surfaces halfway through a path.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
import jax

from .errors import DimensionMismatch, InvalidSchedule
from .schedule.runtime import ParameterSchedule


def validate_schedule(schedule: ParameterSchedule) -> None:
    """Check the time grid and update mask of a schedule.

    Raises:
        InvalidSchedule: Fewer than two time points, non-increasing times,
            or an update mask of the wrong length
        DimensionMismatch: Parameter matrix rows disagree with the grid
    """
    times = np.asarray(schedule.times)
    if times.ndim != 1 or times.shape[0] < 2:
        raise InvalidSchedule(f"Time grid needs at least two points, got shape {times.shape}")
    if np.any(np.diff(times) <= 0):
        raise InvalidSchedule("Time grid must be strictly increasing")

    n_times = times.shape[0]
    update_at = np.asarray(schedule.update_at)
    if update_at.shape != (n_times,):
        raise InvalidSchedule(
            f"Update mask must have one entry per time point ({n_times}), "
            f"got shape {update_at.shape}"
        )

    pars = np.asarray(schedule.pars)
    if pars.ndim != 2 or pars.shape[0] != n_times:
        raise DimensionMismatch(
            f"Parameter matrix must have one row per time point ({n_times}), "
            f"got shape {pars.shape}"
        )


def validate_sampler_inputs(
    schedule: ParameterSchedule,
    init_state_offset: int,
    stoichiometry: jax.Array,
    n_odes: int,
    draws: Optional[jax.Array] = None,
) -> None:
    """Check the inputs of a path proposal.

    Args:
        schedule: Time grid and parameter rows
        init_state_offset: Column where initial volumes start
        stoichiometry: (C, E) matrix
        n_odes: State size of the moment integrator
        draws: Optional (E, n-1) perturbations

    Raises:
        InvalidSchedule: See validate_schedule
        DimensionMismatch: Any size disagreement
    """
    validate_schedule(schedule)

    stoich_shape = np.shape(stoichiometry)
    if len(stoich_shape) != 2:
        raise DimensionMismatch(f"Stoichiometry must be 2-D, got shape {stoich_shape}")
    n_comps, n_events = stoich_shape

    row_length = schedule.pars.shape[1]
    if init_state_offset < 0 or row_length < init_state_offset + n_comps:
        raise DimensionMismatch(
            f"Parameter rows of length {row_length} cannot hold {n_comps} initial "
            f"volumes starting at column {init_state_offset}"
        )

    expected_odes = n_events + n_events * n_events
    if n_odes != expected_odes:
        raise DimensionMismatch(
            f"Moment integrator has {n_odes} ODEs, expected {expected_odes} "
            f"for {n_events} events"
        )

    if draws is not None:
        expected = (n_events, schedule.n_intervals)
        if np.shape(draws) != expected:
            raise DimensionMismatch(
                f"Perturbations must have shape {expected}, got {np.shape(draws)}"
            )


def validate_density_inputs(
    path,
    schedule: ParameterSchedule,
    flow_matrix: jax.Array,
    n_odes: int,
) -> int:
    """Check the inputs of a density reintegration.

    Args:
        path: LNAPathRecord to score
        schedule: Time grid and parameter rows
        flow_matrix: Matrix whose rows index the rate processes
        n_odes: State size of the residual integrator

    Returns:
        Number of rate processes R

    Raises:
        InvalidSchedule: See validate_schedule
        DimensionMismatch: Any size disagreement
    """
    validate_schedule(schedule)

    flow_shape = np.shape(flow_matrix)
    if len(flow_shape) != 2:
        raise DimensionMismatch(f"Flow matrix must be 2-D, got shape {flow_shape}")
    n_rates = flow_shape[0]
    n_times = schedule.n_times

    if n_odes != 2 * n_rates:
        raise DimensionMismatch(
            f"Residual integrator has {n_odes} ODEs, expected {2 * n_rates} "
            f"for {n_rates} rates"
        )

    expected = {
        'res_path': (n_times, n_rates + 1),
        'residual': (n_times, n_rates),
        'drift': (n_times, n_rates),
        'diffusion': (n_times, n_rates, n_rates),
    }
    for name, shape in expected.items():
        actual = np.shape(getattr(path, name))
        if actual != shape:
            raise DimensionMismatch(f"{name} must have shape {shape}, got {actual}")

    if np.shape(path.lna_path)[0] != n_times:
        raise DimensionMismatch(
            f"lna_path must have one row per time point ({n_times}), "
            f"got shape {np.shape(path.lna_path)}"
        )

    return n_rates
