"""Ready-made compartmental models.

Parameter row layout for the SIR model::

    [beta, gamma, S0, I0, R0, <covariates...>]

so ``init_state_offset`` is 2.
"""

from __future__ import annotations

from typing import Optional, Sequence

import jax
import jax.numpy as jnp

from ..fields import quantity_field
from ..units import QuantityInput, UnitManager
from .config import LNAModelConfig


SIR_PARAMETERS = ("beta", "gamma", "S0", "I0", "R0")


def _sir_density_dependent(volumes: jax.Array, params: jax.Array) -> jax.Array:
    s, i = volumes[0], volumes[1]
    return jnp.stack([params[0] * s * i, params[1] * i])


def _sir_frequency_dependent(volumes: jax.Array, params: jax.Array) -> jax.Array:
    s, i = volumes[0], volumes[1]
    population = jnp.sum(volumes)
    return jnp.stack([params[0] * s * i / population, params[1] * i])


def mass_action_sir(frequency_dependent: bool = False, **overrides) -> LNAModelConfig:
    """SIR model with events S2I (infection) and I2R (recovery).

    Args:
        frequency_dependent: Use ``beta * S * I / N`` instead of ``beta * S * I``
        **overrides: Extra LNAModelConfig fields (solver, sample_step, ...)

    Returns:
        LNAModelConfig for the SIR model
    """
    rate_fn = _sir_frequency_dependent if frequency_dependent else _sir_density_dependent
    return LNAModelConfig(
        compartments=("S", "I", "R"),
        events=("S2I", "I2R"),
        stoichiometry=[[-1.0, 0.0], [1.0, -1.0], [0.0, 1.0]],
        rate_fn=rate_fn,
        init_state_offset=2,
        parameter_names=SIR_PARAMETERS,
        **overrides,
    )


def sir_parameter_row(
    beta: QuantityInput,
    gamma: QuantityInput,
    volumes: Sequence[float],
    covariates: Optional[Sequence[float]] = None,
    time_unit: str = "day",
) -> jax.Array:
    """Assemble one SIR parameter row with rates converted to grid units.

    Bare numbers are taken as rates per ``time_unit``; strings such as
    ``"0.5 / week"`` are converted.

    Example:
        >>> row = sir_parameter_row("1 / week", 0.1, [990, 10, 0])
        >>> round(float(row[0]), 4)
        0.1429
    """
    manager = UnitManager.instance()
    days_per_unit, _ = manager.to_canonical(manager.ensure_quantity(f"1 {time_unit}"), "time")
    to_rate = quantity_field("1/time", f"1/{time_unit}", min_value=0.0)

    beta_per_day, _ = to_rate(beta)
    gamma_per_day, _ = to_rate(gamma)

    row = [beta_per_day * days_per_unit, gamma_per_day * days_per_unit, *volumes]
    if covariates is not None:
        row.extend(covariates)
    return jnp.asarray(row, dtype=float)
