"""Configuration for parameter schedules.

This module provides the Pydantic configuration class describing the time
grid and the per-time-point parameter matrix.
"""

from __future__ import annotations

from typing import Any, Optional

import numpy as np
import jax.numpy as jnp
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..units import UnitManager
from .kernel import detect_update_points, update_mask


class ScheduleConfig(BaseModel):
    """Time grid and parameter schedule for LNA path computations.

    Example:
        >>> config = ScheduleConfig(
        ...     times=[0.0, 7.0, 14.0],
        ...     parameters=[[0.3, 0.1, 990.0, 10.0, 0.0]] * 3,
        ... )
        >>> schedule = config.to_runtime()

    Attributes:
        times: Strictly increasing time points, in ``time_unit``
        parameters: Matrix with one row per time point (parameters, constants,
            initial volumes, covariates)
        update_at: Boolean mask or list of row indices flagging change points.
            Detected from the parameter matrix when omitted.
        time_unit: Unit the time grid is expressed in
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    times: jnp.ndarray = Field(description="Strictly increasing time grid")

    parameters: jnp.ndarray = Field(description="Parameter matrix, one row per time point")

    update_at: Optional[Any] = Field(
        default=None,
        description="Rows at which the parameter context is refreshed",
    )

    time_unit: str = Field(default="day", description="Unit of the time grid")

    @field_validator("times", mode="before")
    @classmethod
    def validate_times(cls, v):
        """Validate the grid has at least two strictly increasing points."""
        times = np.asarray(v, dtype=float)
        if times.ndim != 1 or times.shape[0] < 2:
            raise ValueError(f"Time grid needs at least two points, got shape {times.shape}")
        if np.any(np.diff(times) <= 0):
            raise ValueError("Time grid must be strictly increasing")
        return jnp.asarray(times)

    @field_validator("parameters", mode="before")
    @classmethod
    def validate_parameters(cls, v):
        """Coerce to a 2-D float matrix."""
        pars = np.asarray(v, dtype=float)
        if pars.ndim == 1:
            pars = pars[None, :]
        if pars.ndim != 2:
            raise ValueError(f"Parameter matrix must be 2-D, got shape {pars.shape}")
        return jnp.asarray(pars)

    @field_validator("time_unit")
    @classmethod
    def validate_time_unit(cls, v: str) -> str:
        """Validate the grid unit is a time unit."""
        manager = UnitManager.instance()
        manager.to_canonical(manager.ensure_quantity(f"1 {v}"), "time")
        return v

    @model_validator(mode="after")
    def _check_rows(self):
        """Broadcast a single row across the grid and check row count."""
        n_times = self.times.shape[0]
        if self.parameters.shape[0] == 1 and n_times > 1:
            self.parameters = jnp.tile(self.parameters, (n_times, 1))
        if self.parameters.shape[0] != n_times:
            raise ValueError(
                f"Parameter matrix has {self.parameters.shape[0]} rows "
                f"but the time grid has {n_times} points"
            )
        return self

    def to_runtime(self) -> 'ParameterSchedule':
        """Convert config to JAX-ready runtime structure."""
        from .runtime import ParameterSchedule

        n_times = self.times.shape[0]
        if self.update_at is None:
            mask = detect_update_points(self.parameters)
        else:
            mask = update_mask(self.update_at, n_times)

        return ParameterSchedule(
            times=self.times,
            pars=self.parameters,
            update_at=mask,
        )
