"""Runtime structures for proposed LNA paths."""

from __future__ import annotations

import jax
import jax.numpy as jnp
from penzai.core import struct


@struct.pytree_dataclass
class LNAPath(struct.Struct):
    """A path proposal together with the perturbations that determine it.

    Attributes:
        path: (E+1, n) matrix; row 0 is the time grid, rows 1..E are the
            cumulative incidence of each event at each time point
        draws: (E, n-1) standard-normal perturbations, one column per interval
    """
    path: jax.Array
    draws: jax.Array

    @property
    def times(self) -> jax.Array:
        return self.path[0]

    @property
    def incidence(self) -> jax.Array:
        """(E, n) cumulative incidence."""
        return self.path[1:]

    @property
    def n_events(self) -> int:
        return int(self.path.shape[0]) - 1

    def increments(self) -> jax.Array:
        """(E, n-1) incidence per interval."""
        return jnp.diff(self.incidence, axis=1)

    def time_major(self) -> jax.Array:
        """(n, E+1) view with one row per time point and time in column 0."""
        return self.path.T
