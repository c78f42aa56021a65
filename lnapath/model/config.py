"""Configuration for compartmental LNA models.

This module provides the Pydantic configuration class describing a model's
compartments, events, hazards and integration settings.
"""

from __future__ import annotations

from typing import Callable, Literal, Optional, Tuple

import numpy as np
import jax
import jax.numpy as jnp
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..units import UnitManager, UnitSpec
from ..fields import quantity_field


class LNAModelConfig(BaseModel):
    """Configuration for a compartmental model under the LNA.

    Example:
        >>> def sir_rates(volumes, params):
        ...     s, i, _ = volumes
        ...     return jnp.stack([params[0] * s * i, params[1] * i])
        >>> config = LNAModelConfig(
        ...     compartments=("S", "I", "R"),
        ...     events=("S2I", "I2R"),
        ...     stoichiometry=[[-1, 0], [1, -1], [0, 1]],
        ...     rate_fn=sir_rates,
        ...     init_state_offset=2,
        ...     sample_step="0.01 day",
        ... )

    Attributes:
        compartments: Compartment names (C)
        events: Event (transition) names (E)
        stoichiometry: (C, E) matrix of compartment changes per event
        rate_fn: Hazard function ``(volumes, params) -> hazards``, JAX-traceable
        init_state_offset: Column where initial volumes start in a parameter row
        parameter_names: Optional names for the parameter row columns
        solver: ODE integration method
        sample_step: Internal ODE step for proposals
        density_step: Internal ODE step for density reintegration
        time_unit: Unit of the time grid the model is run on
        rtol: Relative tolerance for adaptive solvers
        atol: Absolute tolerance for adaptive solvers
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    compartments: Tuple[str, ...] = Field(description="Compartment names")

    events: Tuple[str, ...] = Field(description="Event names")

    stoichiometry: jnp.ndarray = Field(
        description="(compartments x events) stoichiometry matrix"
    )

    rate_fn: Callable[[jax.Array, jax.Array], jax.Array] = Field(
        description="Function: (volumes, params) -> hazards"
    )

    init_state_offset: int = Field(
        ge=0,
        description="Index in the parameter row where initial volumes start"
    )

    parameter_names: Optional[Tuple[str, ...]] = Field(
        default=None,
        description="Names of the parameter row columns"
    )

    solver: Literal['euler', 'heun', 'tsit5', 'dopri5', 'dopri8'] = Field(
        default='tsit5',
        description="ODE integration method"
    )

    sample_step: Tuple[float, UnitSpec] = Field(
        default="0.001 day",
        validate_default=True,
        description="Internal step bound when proposing paths"
    )

    density_step: Tuple[float, UnitSpec] = Field(
        default="1 day",
        validate_default=True,
        description="Internal step bound when reintegrating for densities"
    )

    time_unit: str = Field(default="day", description="Unit of the time grid")

    rtol: float = Field(default=1e-6, gt=0, description="Relative tolerance")

    atol: float = Field(default=1e-9, gt=0, description="Absolute tolerance")

    _validate_sample_step = field_validator("sample_step", mode="before")(
        quantity_field("time", "day", min_value=0.0, strict_min=True)
    )

    _validate_density_step = field_validator("density_step", mode="before")(
        quantity_field("time", "day", min_value=0.0, strict_min=True)
    )

    @field_validator("stoichiometry", mode="before")
    @classmethod
    def validate_stoichiometry(cls, v):
        """Coerce to a 2-D float matrix."""
        matrix = np.asarray(v, dtype=float)
        if matrix.ndim != 2:
            raise ValueError(f"Stoichiometry must be 2-D, got shape {matrix.shape}")
        return jnp.asarray(matrix)

    @field_validator("time_unit")
    @classmethod
    def validate_time_unit(cls, v: str) -> str:
        """Validate the grid unit is a time unit."""
        manager = UnitManager.instance()
        manager.to_canonical(manager.ensure_quantity(f"1 {v}"), "time")
        return v

    @model_validator(mode="after")
    def _check_dimensions(self):
        """Check names agree with the stoichiometry shape."""
        n_comps, n_events = self.stoichiometry.shape

        if len(self.compartments) != n_comps:
            raise ValueError(
                f"{len(self.compartments)} compartment names for a stoichiometry "
                f"with {n_comps} rows"
            )
        if len(self.events) != n_events:
            raise ValueError(
                f"{len(self.events)} event names for a stoichiometry with {n_events} columns"
            )
        for label, names in (("compartment", self.compartments), ("event", self.events)):
            if len(set(names)) != len(names):
                raise ValueError(f"Duplicate {label} names: {names}")

        if self.parameter_names is not None:
            needed = self.init_state_offset + n_comps
            if len(self.parameter_names) < needed:
                raise ValueError(
                    f"Parameter rows need at least {needed} columns "
                    f"(init_state_offset={self.init_state_offset} + {n_comps} volumes), "
                    f"got {len(self.parameter_names)} names"
                )

        return self

    def to_runtime(self) -> 'LNAModelRuntime':
        """Convert config to JAX-ready runtime structure."""
        from ..runtime import QuantityNode
        from .runtime import LNAModelRuntime

        manager = UnitManager.instance()
        days_per_unit, _ = manager.to_canonical(
            manager.ensure_quantity(f"1 {self.time_unit}"), "time"
        )

        return LNAModelRuntime(
            stoichiometry=self.stoichiometry,
            rate_fn=self.rate_fn,
            init_state_offset=self.init_state_offset,
            solver_type=self.solver,
            sample_step=QuantityNode.from_float(*self.sample_step),
            density_step=QuantityNode.from_float(*self.density_step),
            days_per_unit=days_per_unit,
            rtol=self.rtol,
            atol=self.atol,
            compartments=self.compartments,
            events=self.events,
        )

    def parameter_index(self, name: str) -> int:
        """Column of a named parameter in the parameter row.

        Raises:
            KeyError: If no parameter names were configured or the name is unknown
        """
        if self.parameter_names is None or name not in self.parameter_names:
            raise KeyError(f"Unknown parameter {name!r}")
        return self.parameter_names.index(name)
