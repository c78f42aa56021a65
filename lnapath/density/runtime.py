"""Runtime structures for scoring existing LNA paths."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import jax
import jax.numpy as jnp
from penzai.core import struct


_RECORD_FIELDS = (
    'lna_path', 'res_path', 'drift', 'residual', 'diffusion',
    'data_log_lik', 'lna_log_lik',
)


@struct.pytree_dataclass
class LNAPathRecord(struct.Struct):
    """An LNA path decomposed into drift and residual components.

    All per-time arrays are time-major with one row (or slice) per time
    point; R is the number of rate processes.

    Attributes:
        lna_path: (n, E+1) path with time in column 0
        res_path: (n, R+1) residual path with time in column 0
        drift: (n, R) drift process
        residual: (n, R) conditional residual means, rewritten by scoring
        diffusion: (n, R, R) diffusion process
        data_log_lik: Observation log-likelihood, passed through unchanged
        lna_log_lik: LNA log-density of the residual path, set by scoring
    """
    lna_path: jax.Array
    res_path: jax.Array
    drift: jax.Array
    residual: jax.Array
    diffusion: jax.Array
    data_log_lik: jax.Array
    lna_log_lik: Optional[jax.Array] = None

    @classmethod
    def from_dict(cls, mapping: Mapping[str, Any]) -> LNAPathRecord:
        """Build a record from a mapping with the same keys as the fields."""
        missing = [k for k in _RECORD_FIELDS[:-1] if k not in mapping]
        if missing:
            raise KeyError(f"Path record is missing {missing}")
        arrays = {k: jnp.asarray(mapping[k]) for k in _RECORD_FIELDS[:-1]}
        lna_log_lik = mapping.get('lna_log_lik')
        if lna_log_lik is not None:
            lna_log_lik = jnp.asarray(lna_log_lik)
        return cls(**arrays, lna_log_lik=lna_log_lik)

    def to_dict(self) -> Dict[str, Any]:
        return {k: getattr(self, k) for k in _RECORD_FIELDS}

    @property
    def total_log_lik(self) -> jax.Array:
        """Sum of the data and LNA log-likelihoods.

        Raises:
            ValueError: If the path has not been scored yet
        """
        if self.lna_log_lik is None:
            raise ValueError("Path has not been scored; lna_log_lik is unset")
        return self.data_log_lik + self.lna_log_lik
