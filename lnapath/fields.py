"""Pydantic field validators for unit-aware configurations.

Provides field validators that parse user-friendly unit inputs
and convert them to canonical floats with metadata.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from .units import UnitManager, UnitSpec


def quantity_field(
    dimension: str,
    default_unit: Optional[str] = None,
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
    strict_min: bool = False,
) -> Callable:
    """Create a Pydantic field validator for quantity inputs.

    This validator accepts strings, numbers, or pint Quantities and
    converts them to canonical floats with metadata. Tuples that already
    hold ``(float, UnitSpec)`` pass through unchanged, so configs can be
    copied with ``model_copy``/re-validated without double conversion.

    Args:
        dimension: Expected physical dimension (e.g., "time", "1/time")
        default_unit: Unit to apply to bare numbers
        min_value: Optional minimum value in canonical units
        max_value: Optional maximum value in canonical units
        strict_min: Reject values equal to ``min_value`` as well

    Returns:
        Field validator function for Pydantic models

    Example:
        class StepConfig(BaseModel):
            step: Tuple[float, UnitSpec]

            _validate_step = field_validator("step", mode="before")(
                quantity_field("time", "day", min_value=0.0, strict_min=True)
            )
    """
    def validator(value: Any, info: Optional[Any] = None) -> tuple[float, UnitSpec]:
        if isinstance(value, tuple) and len(value) == 2 and isinstance(value[1], UnitSpec):
            return value

        manager = UnitManager.instance()

        try:
            quantity = manager.ensure_quantity(value, default_unit)
        except Exception as e:
            raise ValueError(f"Cannot parse quantity: {e}")

        try:
            canonical_value, spec = manager.to_canonical(quantity, dimension)
        except ValueError as e:
            raise ValueError(f"Dimension mismatch: {e}")

        if min_value is not None:
            too_small = canonical_value <= min_value if strict_min else canonical_value < min_value
            if too_small:
                bound = "greater than" if strict_min else "at least"
                raise ValueError(
                    f"Value {canonical_value} must be {bound} {min_value} "
                    f"(in canonical {dimension} units)"
                )
        if max_value is not None and canonical_value > max_value:
            raise ValueError(
                f"Value {canonical_value} above maximum {max_value} "
                f"(in canonical {dimension} units)"
            )

        return canonical_value, spec

    return validator
