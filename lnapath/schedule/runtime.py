"""Runtime structures for parameter schedules.

This module provides the Penzai struct consumed by the path kernels.
"""

from __future__ import annotations

import dataclasses
import jax
import jax.numpy as jnp
from penzai.core import struct


@struct.pytree_dataclass
class ParameterSchedule(struct.Struct):
    """Time grid plus one parameter row per time point.

    Attributes:
        times: Strictly increasing time grid, shape (n,)
        pars: Parameters, constants and covariates per time point, shape (n, P)
        update_at: Boolean mask, shape (n,); ``update_at[j]`` means row j must be
            bound to the parameter context before the interval that uses it
    """
    times: jax.Array
    pars: jax.Array
    update_at: jax.Array

    @property
    def n_times(self) -> int:
        return int(self.times.shape[0])

    @property
    def n_intervals(self) -> int:
        return self.n_times - 1

    def row(self, j: int) -> jax.Array:
        """Parameter row for time index j."""
        return self.pars[j]

    def flagged(self, j: int) -> bool:
        """Whether row j is a parameter change point."""
        return bool(self.update_at[j])

    def with_pars(self, pars: jax.Array) -> ParameterSchedule:
        """Copy of the schedule with a new parameter matrix."""
        return dataclasses.replace(self, pars=jnp.asarray(pars))
