"""Unit management for lnapath using pint.

Epidemic time grids are usually expressed in days or weeks, and model step
sizes are easy to get wrong by a factor of 7 or 24. This module provides:
- UnitManager: Singleton registry management and unit conversions
- UnitSpec: Metadata for units that survives JAX transformations
- Conversion utilities between pint quantities and canonical floats

Canonical units are epidemiological rather than SI: time is measured in days
and rates in events per day.
"""

from __future__ import annotations

import pint
from dataclasses import dataclass
from typing import Union, Optional, ClassVar

# Type alias for inputs that can be converted to quantities
QuantityInput = Union[str, float, int, pint.Quantity]


@dataclass(frozen=True)
class UnitSpec:
    """Immutable metadata for units that can be attached to JAX arrays.

    Attributes:
        dimension: Physical dimension string (e.g., "time", "1/time")
        symbol: Unit symbol string as the user wrote it (e.g., "hour")
        to_canonical: Factor to convert from this unit to canonical
    """
    dimension: str
    symbol: str
    to_canonical: float = 1.0

    def __hash__(self):
        return hash((self.dimension, self.symbol, self.to_canonical))


class UnitManager:
    """Manages unit registry and conversions.

    Provides:
    - Singleton pint.UnitRegistry access
    - Canonical unit definitions per dimension
    - Conversion utilities to/from canonical floats
    """

    _instance: ClassVar[Optional[UnitManager]] = None

    def __init__(self, registry: Optional[pint.UnitRegistry] = None):
        """Initialize with optional custom registry.

        Args:
            registry: Custom pint registry. If None, creates default.
        """
        self.registry = registry or pint.UnitRegistry()

        self._setup_aliases()

        self.canonical_units = {
            "time": self.registry.day,
            "1/time": self.registry.day ** -1,
            "frequency": self.registry.day ** -1,
            "population": self.registry.individual,
            "dimensionless": self.registry.dimensionless,
        }

    @classmethod
    def instance(cls) -> UnitManager:
        """Get or create the singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def _setup_aliases(self) -> None:
        """Set up epidemiological units missing from the default registry."""
        try:
            _ = self.registry.individual
        except (AttributeError, pint.UndefinedUnitError):
            self.registry.define('individual = [population] = ind')

        if not hasattr(self.registry, 'week'):
            self.registry.define('week = 7 * day')

    def ensure_quantity(
        self,
        value: QuantityInput,
        default_unit: Optional[str] = None
    ) -> pint.Quantity:
        """Convert input to a pint Quantity.

        Args:
            value: String, number, or Quantity to convert
            default_unit: Unit to use if value carries no unit

        Returns:
            pint.Quantity object

        Raises:
            ValueError: If string cannot be parsed as quantity
        """
        if isinstance(value, pint.Quantity):
            return value
        elif isinstance(value, str):
            try:
                q = self.registry(value)
            except Exception as e:
                raise ValueError(f"Cannot parse '{value}' as quantity: {e}")
            # A bare numeric string parses to a plain number
            if not isinstance(q, pint.Quantity):
                q = self.registry.Quantity(q, default_unit or 'dimensionless')
            return q
        else:
            return self.registry.Quantity(value, default_unit or 'dimensionless')

    def to_canonical(
        self,
        quantity: pint.Quantity,
        dimension: str
    ) -> tuple[float, UnitSpec]:
        """Convert quantity to canonical units for dimension.

        Args:
            quantity: pint Quantity to convert
            dimension: Target dimension name

        Returns:
            Tuple of (canonical_value, unit_spec)

        Raises:
            ValueError: If quantity dimension doesn't match target
        """
        if dimension not in self.canonical_units:
            return (
                float(quantity.magnitude),
                UnitSpec(dimension=dimension, symbol=str(quantity.units), to_canonical=1.0)
            )

        canonical_unit = self.canonical_units[dimension]

        try:
            canonical_quantity = quantity.to(canonical_unit)
        except pint.DimensionalityError as e:
            raise ValueError(
                f"Cannot convert {quantity} to dimension '{dimension}': {e}"
            )

        # Factor from units rather than magnitudes so zero values work
        one_original = self.registry.Quantity(1.0, quantity.units)
        conversion_factor = float(one_original.to(canonical_unit).magnitude)

        return (
            float(canonical_quantity.magnitude),
            UnitSpec(
                dimension=dimension,
                symbol=str(quantity.units),
                to_canonical=conversion_factor
            )
        )

    def from_canonical(self, value: float, spec: UnitSpec) -> pint.Quantity:
        """Reconstruct pint Quantity from canonical value and spec."""
        original_value = value / spec.to_canonical if spec.to_canonical != 0 else value
        return self.registry.Quantity(original_value, spec.symbol)

    def convert(self, value: float, dimension: str, unit: str) -> float:
        """Express a canonical value in another unit of the same dimension.

        Example:
            >>> UnitManager.instance().convert(14.0, "time", "week")
            2.0
        """
        canonical = self.registry.Quantity(value, self.canonical_units[dimension])
        try:
            return float(canonical.to(unit).magnitude)
        except pint.DimensionalityError as e:
            raise ValueError(f"Unit '{unit}' is not a {dimension} unit: {e}")
