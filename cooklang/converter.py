"""The unit converter: lookups, best-unit selection and value conversion."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Union

from cooklang.units import (
    BestUnitNotFoundError,
    FractionsConfig,
    MixedQuantitiesError,
    PhysicalQuantity,
    System,
    Unit,
    UnitIndex,
    convert_f64,
)


@dataclass(frozen=True)
class ValueRange:
    """An inclusive range of values, converted as two independent numbers."""

    start: float
    end: float


ConvertValue = Union[float, ValueRange]
ConvertUnit = Union[Unit, str]
ConvertTo = Union[System, Unit, str, None]


def _start(value: ConvertValue) -> float:
    if isinstance(value, ValueRange):
        return value.start
    if isinstance(value, (int, float)):
        return float(value)
    raise TypeError(f"cannot convert value of type {type(value).__name__}")


@dataclass
class BestConversions:
    """Candidate units for a quantity, as ``(threshold, unit_id)`` pairs.

    The threshold is the value, in the first (base) unit, from which a unit
    becomes the best fit. Pairs are ordered by increasing threshold.
    """

    conversions: list[tuple[float, int]] = field(default_factory=list)

    def base(self) -> int | None:
        """Id of the base unit, if there are any conversions."""
        return self.conversions[0][1] if self.conversions else None

    def best_unit(self, converter: Converter, value: ConvertValue, unit: Unit) -> Unit | None:
        """The best fitting unit for ``value`` given in ``unit``."""
        base_id = self.base()
        if base_id is None:
            return None
        magnitude = abs(_start(value))
        norm = converter._convert_f64(magnitude, unit, converter._units[base_id])
        best_id = next(
            (uid for threshold, uid in reversed(self.conversions) if norm >= threshold - 0.001),
            self.conversions[0][1],
        )
        return converter._units[best_id]

    def all_units(self, converter: Converter) -> Iterator[Unit]:
        return (converter._units[uid] for _, uid in self.conversions)


@dataclass
class BestConversionsStore:
    """Best conversions for a quantity: one list for all systems, or one per system."""

    unified: BestConversions = field(default_factory=BestConversions)
    by_system: dict[System, BestConversions] | None = None

    def conversions(self, system: System) -> BestConversions:
        if self.by_system is None:
            return self.unified
        return self.by_system[system]


@dataclass
class FractionsTable:
    """Layered fraction configuration, from most to least specific: unit,
    quantity, system and all."""

    all: FractionsConfig | None = None
    metric: FractionsConfig | None = None
    imperial: FractionsConfig | None = None
    quantity: dict[PhysicalQuantity, FractionsConfig] = field(default_factory=dict)
    unit: dict[int, FractionsConfig] = field(default_factory=dict)

    def config(
        self, system: System | None, quantity: PhysicalQuantity, unit_id: int
    ) -> FractionsConfig:
        by_system = {System.METRIC: self.metric, System.IMPERIAL: self.imperial}
        for candidate in (
            self.unit.get(unit_id),
            self.quantity.get(quantity),
            by_system.get(system) if system is not None else None,
            self.all,
        ):
            if candidate is not None:
                return candidate
        return FractionsConfig()


class Converter:
    """Holds every known unit and knows how to convert between them."""

    def __init__(
        self,
        units: Iterable[Unit] = (),
        unit_index: UnitIndex | None = None,
        quantity_index: dict[PhysicalQuantity, list[int]] | None = None,
        best: dict[PhysicalQuantity, BestConversionsStore] | None = None,
        fractions: FractionsTable | None = None,
        default_system: System = System.METRIC,
    ) -> None:
        self._units: list[Unit] = list(units)
        self.unit_index = unit_index if unit_index is not None else UnitIndex()
        self.quantity_index = {q: [] for q in PhysicalQuantity}
        if quantity_index:
            self.quantity_index.update(quantity_index)
        self.best = {q: BestConversionsStore() for q in PhysicalQuantity}
        if best:
            self.best.update(best)
        self.fractions = fractions if fractions is not None else FractionsTable()
        self.default_system = default_system

    @classmethod
    def empty(cls) -> Converter:
        """A converter that knows no units and fails every conversion."""
        return cls()

    def unit_count(self) -> int:
        """Number of different units (not of unit names)."""
        return len(self._units)

    def all_units(self) -> Iterator[Unit]:
        return iter(self._units)

    def is_best_unit(self, unit: Unit) -> bool:
        """Whether ``unit`` is a candidate for best-fit conversion in its system.

        Raises UnknownUnit if the unit is not known.
        """
        unit_id = self.unit_index.get_unit_id(unit.symbol())
        if unit.system is None:
            return False
        conversions = self.best[unit.physical_quantity].conversions(unit.system)
        return any(uid == unit_id for _, uid in conversions.conversions)

    def best_units(self, quantity: PhysicalQuantity, system: System | None = None) -> list[Unit]:
        """The best units for a quantity and system; all systems when ``system`` is None."""
        store = self.best[quantity]
        if store.by_system is None:
            return list(store.unified.all_units(self))
        if system is not None:
            return list(store.by_system[system].all_units(self))
        return [
            *store.by_system[System.METRIC].all_units(self),
            *store.by_system[System.IMPERIAL].all_units(self),
        ]

    def find_unit(self, unit: str) -> Unit | None:
        """Find a unit by any of its names, symbols or aliases."""
        uid = self.unit_index.keys.get(unit)
        return None if uid is None else self._units[uid]

    def fractions_config(self, unit: Unit) -> FractionsConfig:
        """Fraction settings for a known unit. Raises UnknownUnit otherwise."""
        unit_id = self.unit_index.get_unit_id(unit.symbol())
        return self.fractions.config(unit.system, unit.physical_quantity, unit_id)

    def should_fit_fraction(self, unit: Unit) -> bool:
        return self.fractions_config(unit).enabled

    def convert(
        self, value: ConvertValue, unit: ConvertUnit, to: ConvertTo = None
    ) -> tuple[ConvertValue, Unit]:
        """Convert ``value`` given in ``unit``.

        ``to`` is a target unit (or unit key), a System to pick the best unit
        in, or None to pick the best unit in the unit's own system.
        """
        source = self.get_unit(unit)
        if isinstance(to, System):
            return self._convert_to_best(value, source, to)
        if to is None:
            return self._convert_to_best(value, source, source.system or self.default_system)
        target = self.get_unit(to)
        if source.physical_quantity is not target.physical_quantity:
            raise MixedQuantitiesError(source.physical_quantity, target.physical_quantity)
        return self._convert_value(value, source, target), target

    def get_unit(self, unit: ConvertUnit) -> Unit:
        """Resolve a unit or unit key. Raises UnknownUnit for unknown keys."""
        if isinstance(unit, Unit):
            return unit
        return self._units[self.unit_index.get_unit_id(unit)]

    def _convert_to_best(
        self, value: ConvertValue, unit: Unit, system: System
    ) -> tuple[ConvertValue, Unit]:
        conversions = self.best[unit.physical_quantity].conversions(system)
        best = conversions.best_unit(self, value, unit)
        if best is None:
            raise BestUnitNotFoundError(unit.physical_quantity, unit.system)
        return self._convert_value(value, unit, best), best

    def _convert_value(self, value: ConvertValue, from_unit: Unit, to_unit: Unit) -> ConvertValue:
        if isinstance(value, ValueRange):
            return ValueRange(
                self._convert_f64(value.start, from_unit, to_unit),
                self._convert_f64(value.end, from_unit, to_unit),
            )
        return self._convert_f64(_start(value), from_unit, to_unit)

    def _convert_f64(self, value: float, from_unit: Unit, to_unit: Unit) -> float:
        if from_unit is to_unit:
            return value
        return convert_f64(value, from_unit, to_unit)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Converter):
            return NotImplemented
        return (
            self._units == other._units
            and self.unit_index == other.unit_index
            and self.quantity_index == other.quantity_index
            and self.best == other.best
            and self.default_system is other.default_system
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Converter(units={len(self._units)}, default_system={self.default_system})"