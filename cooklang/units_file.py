"""Layered units configuration: the data read from a units file."""

from __future__ import annotations

import enum
import tomllib
from dataclasses import dataclass, field
from typing import Any

from cooklang.units import FractionsConfig, PhysicalQuantity, System

_MISSING = object()
_U8_MAX = 2**8 - 1
_U32_MAX = 2**32 - 1


class UnitsFileError(ValueError):
    """The units configuration is malformed."""


class SIPrefix(enum.Enum):
    """Supported SI prefixes."""

    KILO = "kilo"
    HECTO = "hecto"
    DECA = "deca"
    DECI = "deci"
    CENTI = "centi"
    MILLI = "milli"

    def ratio(self) -> float:
        """The multiplier the prefix stands for."""
        return _SI_RATIOS[self]

    def __str__(self) -> str:
        return self.value


_SI_RATIOS = {
    SIPrefix.KILO: 1e3,
    SIPrefix.HECTO: 1e2,
    SIPrefix.DECA: 1e1,
    SIPrefix.DECI: 1e-1,
    SIPrefix.CENTI: 1e-2,
    SIPrefix.MILLI: 1e-3,
}


class Precedence(enum.Enum):
    """How a list is joined with the same list from earlier layers."""

    BEFORE = "before"
    AFTER = "after"
    OVERRIDE = "override"


def _table(value: Any, where: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise UnitsFileError(f"{where}: expected a table")
    return value


def _check_keys(table: dict[str, Any], allowed: set[str], where: str) -> None:
    for key in table:
        if key not in allowed:
            expected = ", ".join(f"`{k}`" for k in sorted(allowed))
            raise UnitsFileError(f"{where}: unknown field `{key}`, expected one of {expected}")


def _aliased(table: dict[str, Any], name: str, alias: str, where: str) -> Any:
    if name in table and alias in table:
        raise UnitsFileError(f"{where}: duplicate field `{name}`")
    return table.get(name, table.get(alias, _MISSING))


def _required(table: dict[str, Any], key: str, where: str) -> Any:
    try:
        return table[key]
    except KeyError:
        raise UnitsFileError(f"{where}: missing field `{key}`") from None


def _float(value: Any, where: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise UnitsFileError(f"{where}: expected a number")
    return float(value)


def _int(value: Any, where: str, high: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise UnitsFileError(f"{where}: expected an integer")
    if not 0 <= value <= high:
        raise UnitsFileError(f"{where}: integer {value} out of range 0 to {high}")
    return value


def _bool(value: Any, where: str) -> bool:
    if not isinstance(value, bool):
        raise UnitsFileError(f"{where}: expected a boolean")
    return value


def _str_list(value: Any, where: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise UnitsFileError(f"{where}: expected a list of strings")
    return list(value)


def _enum(kind: type[enum.Enum], value: Any, where: str) -> Any:
    try:
        return kind(value)
    except ValueError:
        variants = ", ".join(f"`{m.value}`" for m in kind)
        raise UnitsFileError(
            f"{where}: unknown variant `{value}`, expected one of {variants}"
        ) from None


def _prefix_map(value: Any, where: str) -> dict[SIPrefix, list[str]]:
    table = _table(value, where)
    _check_keys(table, {p.value for p in SIPrefix}, where)
    result = {}
    for prefix in SIPrefix:
        raw = _required(table, prefix.value, where)
        result[prefix] = _str_list(raw, f"{where}.{prefix.value}")
    return result


@dataclass
class SI:
    """SI expansion settings: prefixes for names and for symbols."""

    prefixes: dict[SIPrefix, list[str]] | None = None
    symbol_prefixes: dict[SIPrefix, list[str]] | None = None
    precedence: Precedence = Precedence.BEFORE

    @classmethod
    def _parse(cls, value: Any, where: str) -> SI:
        table = _table(value, where)
        _check_keys(table, {"prefixes", "symbol_prefixes", "precedence"}, where)
        si = cls()
        if "prefixes" in table:
            si.prefixes = _prefix_map(table["prefixes"], f"{where}.prefixes")
        if "symbol_prefixes" in table:
            si.symbol_prefixes = _prefix_map(
                table["symbol_prefixes"], f"{where}.symbol_prefixes"
            )
        if "precedence" in table:
            si.precedence = _enum(Precedence, table["precedence"], f"{where}.precedence")
        return si


@dataclass(frozen=True)
class FractionsConfigHelper:
    """One layer of fraction settings; unset values fall back to other layers."""

    enabled: bool | None = None
    accuracy: float | None = None
    max_denominator: int | None = None
    max_whole: int | None = None

    @classmethod
    def from_value(cls, value: Any) -> FractionsConfigHelper:
        """Read a layer from a boolean toggle or a table of settings."""
        return cls._parse(value, "fractions")

    @classmethod
    def _parse(cls, value: Any, where: str) -> FractionsConfigHelper:
        if isinstance(value, bool):
            return cls(enabled=value)
        if not isinstance(value, dict):
            raise UnitsFileError(f"{where}: expected a boolean or a table")
        _check_keys(value, {"enabled", "accuracy", "max_denominator", "max_whole"}, where)
        enabled = value.get("enabled")
        accuracy = value.get("accuracy")
        max_den = value.get("max_denominator")
        max_whole = value.get("max_whole")
        return cls(
            enabled=None if enabled is None else _bool(enabled, f"{where}.enabled"),
            accuracy=None if accuracy is None else _float(accuracy, f"{where}.accuracy"),
            max_denominator=(
                None if max_den is None else _int(max_den, f"{where}.max_denominator", _U8_MAX)
            ),
            max_whole=(
                None if max_whole is None else _int(max_whole, f"{where}.max_whole", _U32_MAX)
            ),
        )

    def merge(self, other: FractionsConfigHelper) -> FractionsConfigHelper:
        """Keep the values set here and take the rest from ``other``."""

        def pick(mine: Any, theirs: Any) -> Any:
            return theirs if mine is None else mine

        return FractionsConfigHelper(
            enabled=pick(self.enabled, other.enabled),
            accuracy=pick(self.accuracy, other.accuracy),
            max_denominator=pick(self.max_denominator, other.max_denominator),
            max_whole=pick(self.max_whole, other.max_whole),
        )

    def define(self) -> FractionsConfig:
        """A full configuration, with defaults for unset values and clamped ranges."""
        d = FractionsConfig()
        accuracy = d.accuracy if self.accuracy is None else self.accuracy
        max_den = d.max_denominator if self.max_denominator is None else self.max_denominator
        return FractionsConfig(
            enabled=d.enabled if self.enabled is None else self.enabled,
            accuracy=min(max(accuracy, 0.0), 1.0),
            max_denominator=min(max(max_den, 1), 16),
            max_whole=d.max_whole if self.max_whole is None else self.max_whole,
        )


@dataclass
class Fractions:
    """Fraction settings per layer: all, metric, imperial, quantity and unit."""

    all: FractionsConfigHelper | None = None
    metric: FractionsConfigHelper | None = None
    imperial: FractionsConfigHelper | None = None
    quantity: dict[PhysicalQuantity, FractionsConfigHelper] = field(default_factory=dict)
    unit: dict[str, FractionsConfigHelper] = field(default_factory=dict)

    @classmethod
    def _parse(cls, value: Any, where: str) -> Fractions:
        table = _table(value, where)
        _check_keys(table, {"all", "metric", "imperial", "quantity", "unit"}, where)
        fractions = cls()
        for key in ("all", "metric", "imperial"):
            if key in table:
                setattr(
                    fractions, key, FractionsConfigHelper._parse(table[key], f"{where}.{key}")
                )
        for key, raw in _table(table.get("quantity", {}), f"{where}.quantity").items():
            q = _enum(PhysicalQuantity, key, f"{where}.quantity")
            fractions.quantity[q] = FractionsConfigHelper._parse(
                raw, f"{where}.quantity.{key}"
            )
        for key, raw in _table(table.get("unit", {}), f"{where}.unit").items():
            fractions.unit[key] = FractionsConfigHelper._parse(raw, f"{where}.unit.{key}")
        return fractions


@dataclass
class ExtendUnitEntry:
    """Edits to an existing unit. Expanded units only accept aliases."""

    ratio: float | None = None
    difference: float | None = None
    names: list[str] | None = None
    symbols: list[str] | None = None
    aliases: list[str] | None = None

    @classmethod
    def _parse(cls, value: Any, where: str) -> ExtendUnitEntry:
        table = _table(value, where)
        entry = cls()
        if table.get("ratio") is not None:
            entry.ratio = _float(table["ratio"], f"{where}.ratio")
        if table.get("difference") is not None:
            entry.difference = _float(table["difference"], f"{where}.difference")
        for name, alias in (("names", "name"), ("symbols", "symbol"), ("aliases", "alias")):
            raw = _aliased(table, name, alias, where)
            if raw is not _MISSING and raw is not None:
                setattr(entry, name, _str_list(raw, f"{where}.{name}"))
        return entry


@dataclass
class Extend:
    """Edits to units of earlier layers, keyed by any name, symbol or alias."""

    precedence: Precedence = Precedence.BEFORE
    units: dict[str, ExtendUnitEntry] = field(default_factory=dict)

    @classmethod
    def _parse(cls, value: Any, where: str) -> Extend:
        table = _table(value, where)
        _check_keys(table, {"precedence", "units"}, where)
        extend = cls()
        if "precedence" in table:
            extend.precedence = _enum(Precedence, table["precedence"], f"{where}.precedence")
        for key, raw in _table(table.get("units", {}), f"{where}.units").items():
            extend.units[key] = ExtendUnitEntry._parse(raw, f"{where}.units.{key}")
        return extend


@dataclass
class UnitEntry:
    """A new unit. Names and symbols expand with SI prefixes; aliases do not."""

    names: list[str]
    symbols: list[str]
    ratio: float
    aliases: list[str] = field(default_factory=list)
    difference: float = 0.0
    expand_si: bool = False

    @classmethod
    def _parse(cls, value: Any, where: str) -> UnitEntry:
        table = _table(value, where)
        _check_keys(
            table,
            {
                "names", "name", "symbols", "symbol", "aliases", "alias",
                "ratio", "difference", "expand_si",
            },
            where,
        )
        names = _aliased(table, "names", "name", where)
        symbols = _aliased(table, "symbols", "symbol", where)
        aliases = _aliased(table, "aliases", "alias", where)
        if names is _MISSING:
            raise UnitsFileError(f"{where}: missing field `names`")
        if symbols is _MISSING:
            raise UnitsFileError(f"{where}: missing field `symbols`")
        return cls(
            names=_str_list(names, f"{where}.names"),
            symbols=_str_list(symbols, f"{where}.symbols"),
            ratio=_float(_required(table, "ratio", where), f"{where}.ratio"),
            aliases=[] if aliases is _MISSING else _str_list(aliases, f"{where}.aliases"),
            difference=_float(table.get("difference", 0.0), f"{where}.difference"),
            expand_si=_bool(table.get("expand_si", False), f"{where}.expand_si"),
        )


@dataclass
class Units:
    """New units, either as one list or split by system."""

    unified: list[UnitEntry] | None = None
    metric: list[UnitEntry] = field(default_factory=list)
    imperial: list[UnitEntry] = field(default_factory=list)
    unspecified: list[UnitEntry] = field(default_factory=list)

    @property
    def by_system(self) -> bool:
        return self.unified is None

    @classmethod
    def _parse(cls, value: Any, where: str) -> Units:
        if isinstance(value, list):
            return cls(unified=[UnitEntry._parse(v, f"{where}[]") for v in value])
        if isinstance(value, dict):
            _check_keys(value, {"metric", "imperial", "unspecified"}, where)
            lists = {}
            for key in ("metric", "imperial", "unspecified"):
                raw = value.get(key, [])
                if not isinstance(raw, list):
                    raise UnitsFileError(f"{where}.{key}: expected a list of units")
                lists[key] = [UnitEntry._parse(v, f"{where}.{key}[]") for v in raw]
            return cls(**lists)
        raise UnitsFileError(f"{where}: data did not match any variant of Units")


@dataclass
class BestUnits:
    """Units eligible for best-fit conversion, as one list or one per system."""

    unified: list[str] | None = None
    metric: list[str] | None = None
    imperial: list[str] | None = None

    def __post_init__(self) -> None:
        if self.unified is None and (self.metric is None or self.imperial is None):
            raise UnitsFileError("best units need one list or both metric and imperial")
        if self.unified is not None and (self.metric is not None or self.imperial is not None):
            raise UnitsFileError("best units cannot be both unified and by system")

    @property
    def by_system(self) -> bool:
        return self.unified is None

    @classmethod
    def _parse(cls, value: Any, where: str) -> BestUnits:
        if isinstance(value, list):
            return cls(unified=_str_list(value, where))
        if isinstance(value, dict):
            _check_keys(value, {"metric", "imperial"}, where)
            return cls(
                metric=_str_list(_required(value, "metric", where), f"{where}.metric"),
                imperial=_str_list(_required(value, "imperial", where), f"{where}.imperial"),
            )
        raise UnitsFileError(f"{where}: data did not match any variant of BestUnits")


@dataclass
class QuantityGroup:
    """Units and best units belonging to one physical quantity."""

    quantity: PhysicalQuantity
    best: BestUnits | None = None
    units: Units | None = None

    @classmethod
    def _parse(cls, value: Any, where: str) -> QuantityGroup:
        table = _table(value, where)
        _check_keys(table, {"quantity", "best", "units"}, where)
        quantity = _enum(PhysicalQuantity, _required(table, "quantity", where), f"{where}.quantity")
        best = table.get("best")
        units = table.get("units")
        return cls(
            quantity=quantity,
            best=None if best is None else BestUnits._parse(best, f"{where}.best"),
            units=None if units is None else Units._parse(units, f"{where}.units"),
        )


@dataclass
class UnitsFile:
    """One layer of units configuration."""

    default_system: System | None = None
    si: SI | None = None
    fractions: Fractions | None = None
    extend: Extend | None = None
    quantity: list[QuantityGroup] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> UnitsFile:
        """Build from plain data as read from a TOML document."""
        table = _table(data, "units file")
        _check_keys(table, {"default_system", "si", "fractions", "extend", "quantity"}, "units file")
        uf = cls()
        if table.get("default_system") is not None:
            uf.default_system = _enum(System, table["default_system"], "default_system")
        if table.get("si") is not None:
            uf.si = SI._parse(table["si"], "si")
        if table.get("fractions") is not None:
            uf.fractions = Fractions._parse(table["fractions"], "fractions")
        if table.get("extend") is not None:
            uf.extend = Extend._parse(table["extend"], "extend")
        groups = table.get("quantity", [])
        if not isinstance(groups, list):
            raise UnitsFileError("quantity: expected a list of quantity groups")
        uf.quantity = [QuantityGroup._parse(g, f"quantity[{n}]") for n, g in enumerate(groups)]
        return uf

    @classmethod
    def from_toml(cls, text: str) -> UnitsFile:
        """Parse a TOML document."""
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise UnitsFileError(f"invalid TOML: {exc}") from exc
        return cls.from_dict(data)