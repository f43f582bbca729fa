"""Units, physical quantities, the unit lookup index and conversion errors."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterator


class PhysicalQuantity(enum.Enum):
    """The physical quantity a unit measures."""

    VOLUME = "volume"
    MASS = "mass"
    LENGTH = "length"
    TEMPERATURE = "temperature"
    TIME = "time"

    def __str__(self) -> str:
        return self.value


class System(enum.Enum):
    """A unit system. Metric is the default."""

    METRIC = "metric"
    IMPERIAL = "imperial"

    def __str__(self) -> str:
        return self.value


@dataclass(kw_only=True)
class Unit:
    """A unit of measure.

    Converting a value to the base of its quantity is
    ``(value + difference) * ratio``.
    """

    names: list[str] = field(default_factory=list)
    symbols: list[str] = field(default_factory=list)
    aliases: list[str] = field(default_factory=list)
    ratio: float = 1.0
    difference: float = 0.0
    physical_quantity: PhysicalQuantity
    system: System | None = None

    def all_keys(self) -> Iterator[str]:
        """Every name, symbol and alias, in that order."""
        yield from self.names
        yield from self.symbols
        yield from self.aliases

    def symbol(self) -> str:
        """The first symbol, or else the first name, or else the first alias."""
        for group in (self.symbols, self.names, self.aliases):
            if group:
                return group[0]
        raise ValueError("unit has no symbol, name or alias")

    def format(self, alternate: bool = False) -> str:
        """The symbol, or the first name when ``alternate`` and one exists."""
        if alternate and self.names:
            return self.names[0]
        return self.symbol()

    def __str__(self) -> str:
        return self.symbol()


@dataclass(frozen=True)
class FractionsConfig:
    """How values of a unit are approximated as fractions."""

    enabled: bool = False
    accuracy: float = 0.05
    max_denominator: int = 4
    max_whole: int = 2**32 - 1


class ConvertError(Exception):
    """Base error for failed conversions."""


class UnknownUnit(ConvertError):
    """A unit name, symbol or alias is not known."""

    def __init__(self, unit: str) -> None:
        super().__init__(f"Unknown unit: '{unit}'")
        self.unit = unit


class TextValueError(ConvertError):
    """A text value cannot be converted."""

    def __init__(self, text: str) -> None:
        super().__init__(f"Tried to convert a text value: {text}")
        self.text = text


class MixedQuantitiesError(ConvertError):
    """Source and target units measure different physical quantities."""

    def __init__(self, from_quantity: PhysicalQuantity, to_quantity: PhysicalQuantity) -> None:
        super().__init__(f"Mixed physical quantities: {from_quantity} {to_quantity}")
        self.from_quantity = from_quantity
        self.to_quantity = to_quantity


class BestUnitNotFoundError(ConvertError):
    """No best unit is configured for a quantity and system."""

    def __init__(self, physical_quantity: PhysicalQuantity, system: System | None) -> None:
        super().__init__(
            f"Could not find best unit for a {physical_quantity} unit. System: {system}"
        )
        self.physical_quantity = physical_quantity
        self.system = system


@dataclass
class UnitIndex:
    """Maps every unit key (name, symbol, alias) to a unit id."""

    keys: dict[str, int] = field(default_factory=dict)

    def get_unit_id(self, key: str) -> int:
        try:
            return self.keys[key]
        except KeyError:
            raise UnknownUnit(key) from None

    def add_unit(self, unit: Unit, unit_id: int) -> int:
        """Index every key of ``unit``; return how many were added.

        Raises ValueError for an empty key, a key already in use, or a unit
        without any key.
        """
        added = 0
        for key in unit.all_keys():
            if not key.strip():
                first = next(
                    (g[0] for g in (unit.names, unit.symbols, unit.aliases) if g), "-"
                )
                raise ValueError(
                    "Unit where a name, symbol or alias is empty in "
                    f"{unit.physical_quantity}: {first}"
                )
            previous = self.keys.get(key)
            self.keys[key] = unit_id
            if previous is not None:
                raise ValueError(f"Duplicate unit: {key}")
            added += 1
        if added == 0:
            raise ValueError(f"Unit without names or symbols in {unit.physical_quantity}")
        return added

    def remove_unit(self, unit: Unit) -> None:
        for key in unit.all_keys():
            self.keys.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self.keys

    def __len__(self) -> int:
        return len(self.keys)


def convert_f64(value: float, from_unit: Unit, to_unit: Unit) -> float:
    """Convert a number between two units of the same physical quantity."""
    if from_unit.physical_quantity is not to_unit.physical_quantity:
        raise MixedQuantitiesError(from_unit.physical_quantity, to_unit.physical_quantity)
    norm = (value + from_unit.difference) * from_unit.ratio
    return norm / to_unit.ratio - to_unit.difference