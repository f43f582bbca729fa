"""Layered construction of a Converter from units files."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import reduce

from cooklang.converter import (
    BestConversions,
    BestConversionsStore,
    Converter,
    FractionsTable,
)
from cooklang.units import PhysicalQuantity, System, Unit, UnitIndex, convert_f64
from cooklang.units_file import (
    SI,
    BestUnits,
    Extend,
    Fractions,
    FractionsConfigHelper,
    Precedence,
    SIPrefix,
    UnitEntry,
    UnitsFile,
)


class ConverterBuilderError(Exception):
    """Base error for an invalid units configuration."""


class DuplicateUnitError(ConverterBuilderError):
    """Two units share a name, symbol or alias."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Duplicate unit: {name}")
        self.name = name


class DuplicateExtendUnitError(ConverterBuilderError):
    """Two keys of one extend group point to the same unit."""

    def __init__(self, key: str) -> None:
        super().__init__(
            f"Duplicate unit in extend, another key points to the same unit: {key}"
        )
        self.key = key


class InvalidExtendExpandedError(ConverterBuilderError):
    """An extend group edits more than the aliases of an SI expanded unit."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Can only edit aliases in auto expanded unit: {key}")
        self.key = key


class EmptyUnitError(ConverterBuilderError):
    """A unit has no names, symbols or aliases."""

    def __init__(self, unit: Unit) -> None:
        super().__init__(f"Unit without names or symbols in {unit.physical_quantity}")
        self.unit = unit


class EmptyUnitKeyError(ConverterBuilderError):
    """A name, symbol or alias of a unit is blank."""

    def __init__(self, unit: Unit) -> None:
        first = next((g[0] for g in (unit.names, unit.symbols, unit.aliases) if g), "-")
        super().__init__(
            "Unit where a name, symbol or alias is empty in "
            f"{unit.physical_quantity}: {first}"
        )
        self.unit = unit


class EmptyBestError(ConverterBuilderError):
    """A physical quantity has no best units."""

    def __init__(self, reason: str, quantity: PhysicalQuantity) -> None:
        super().__init__(f"Best units for '{quantity}' empty: {reason}")
        self.reason = reason
        self.quantity = quantity


class EmptySIPrefixesError(ConverterBuilderError):
    """A unit asks for SI expansion but no layer defines the prefixes."""

    def __init__(self) -> None:
        super().__init__("No SI prefixes found when expanding SI on a unit")


@dataclass
class _UnitBuilder:
    unit: Unit
    expand_si: bool = False
    is_expanded: bool = False
    expanded_units: dict[SIPrefix, int] | None = None


PrefixMap = dict[SIPrefix, list[str]]


def _join_prefixes(
    a: PrefixMap | None, b: PrefixMap | None, b_precedence: Precedence
) -> PrefixMap | None:
    if a is None:
        return b
    if b is None:
        return a
    if b_precedence is Precedence.BEFORE:
        return {p: [*b[p], *a[p]] for p in SIPrefix}
    if b_precedence is Precedence.AFTER:
        return {p: [*a[p], *b[p]] for p in SIPrefix}
    return b


def _join_aliases(target: list[str], src: list[str], precedence: Precedence) -> list[str]:
    if precedence is Precedence.BEFORE:
        return [*src, *target]
    if precedence is Precedence.AFTER:
        return [*target, *src]
    return list(src)


def _expand_si(builder: _UnitBuilder, si: SI) -> dict[SIPrefix, _UnitBuilder]:
    if si.prefixes is None or si.symbol_prefixes is None:
        raise EmptySIPrefixesError()
    unit = builder.unit
    return {
        prefix: _UnitBuilder(
            unit=Unit(
                names=[f"{p}{n}" for p in si.prefixes[prefix] for n in unit.names],
                symbols=[f"{p}{s}" for p in si.symbol_prefixes[prefix] for s in unit.symbols],
                aliases=[],
                ratio=unit.ratio * prefix.ratio(),
                difference=unit.difference,
                physical_quantity=unit.physical_quantity,
                system=unit.system,
            ),
            is_expanded=True,
        )
        for prefix in SIPrefix
    }


@dataclass
class ConverterBuilder:
    """Builds a Converter from one or more layered units files.

    Order matters: a layer can extend the units of layers added before it,
    and later layers override earlier settings. Unknown unit keys raise
    UnknownUnit.
    """

    _units: list[_UnitBuilder] = field(default_factory=list)
    _index: UnitIndex = field(default_factory=UnitIndex)
    _extend: list[Extend] = field(default_factory=list)
    _si: SI = field(default_factory=SI)
    _fractions: list[Fractions] = field(default_factory=list)
    _best: dict[PhysicalQuantity, BestUnits] = field(default_factory=dict)
    _default_system: System = System.METRIC

    def with_units_file(self, units: UnitsFile) -> ConverterBuilder:
        """Add a units file and return the builder."""
        return self.add_units_file(units)

    def add_units_file(self, units: UnitsFile) -> ConverterBuilder:
        """Add a units file layer."""
        for group in units.quantity:
            if group.units is not None:
                if group.units.unified is not None:
                    self._add_entries(group.units.unified, group.quantity, None)
                else:
                    self._add_entries(group.units.metric, group.quantity, System.METRIC)
                    self._add_entries(group.units.imperial, group.quantity, System.IMPERIAL)
                    self._add_entries(group.units.unspecified, group.quantity, None)

            best = group.best
            if best is not None:
                if best.unified is not None:
                    empty = not best.unified
                else:
                    empty = not best.metric or not best.imperial
                if empty:
                    raise EmptyBestError("empty list of units", group.quantity)
                self._best[group.quantity] = best

        if units.extend is not None:
            self._extend.append(units.extend)

        if units.si is not None:
            si = units.si
            self._si.prefixes = _join_prefixes(self._si.prefixes, si.prefixes, si.precedence)
            self._si.symbol_prefixes = _join_prefixes(
                self._si.symbol_prefixes, si.symbol_prefixes, si.precedence
            )
            self._si.precedence = si.precedence

        if units.default_system is not None:
            self._default_system = units.default_system

        if units.fractions is not None:
            self._fractions.append(units.fractions)

        return self

    def finish(self) -> Converter:
        """Build the Converter. The builder should not be used afterwards."""
        for unit_id, builder in enumerate(list(self._units)):
            if builder.expand_si:
                expanded = _expand_si(builder, self._si)
                builder.expanded_units = {
                    prefix: self._add_unit(new) for prefix, new in expanded.items()
                }

        for group in self._extend:
            self._apply_extend(group)

        best: dict[PhysicalQuantity, BestConversionsStore] = {}
        for quantity in PhysicalQuantity:
            best_units = self._best.get(quantity)
            if best_units is None:
                raise EmptyBestError("no best units given", quantity)
            best[quantity] = self._best_store(best_units)

        quantity_index: dict[PhysicalQuantity, list[int]] = {q: [] for q in PhysicalQuantity}
        for unit_id, builder in enumerate(self._units):
            quantity_index[builder.unit.physical_quantity].append(unit_id)

        fractions = self._fractions_table()

        return Converter(
            units=[b.unit for b in self._units],
            unit_index=self._index,
            quantity_index=quantity_index,
            best=best,
            fractions=fractions,
            default_system=self._default_system,
        )

    def _add_entries(
        self, entries: list[UnitEntry], quantity: PhysicalQuantity, system: System | None
    ) -> None:
        for entry in entries:
            unit = Unit(
                names=list(entry.names),
                symbols=list(entry.symbols),
                aliases=list(entry.aliases),
                ratio=entry.ratio,
                difference=entry.difference,
                physical_quantity=quantity,
                system=system,
            )
            self._add_unit(_UnitBuilder(unit=unit, expand_si=entry.expand_si))

    def _add_unit(self, builder: _UnitBuilder) -> int:
        unit_id = len(self._units)
        self._index_unit(builder.unit, unit_id)
        self._units.append(builder)
        return unit_id

    def _index_unit(self, unit: Unit, unit_id: int) -> None:
        added = 0
        for key in unit.all_keys():
            if not key.strip():
                raise EmptyUnitKeyError(unit)
            duplicate = key in self._index.keys
            self._index.keys[key] = unit_id
            if duplicate:
                raise DuplicateUnitError(key)
            added += 1
        if added == 0:
            raise EmptyUnitError(unit)

    def _remove_unit_rec(self, builder: _UnitBuilder) -> None:
        if builder.expanded_units:
            for expanded_id in builder.expanded_units.values():
                self._remove_unit_rec(self._units[expanded_id])
        self._index.remove_unit(builder.unit)

    def _apply_extend(self, group: Extend) -> None:
        to_update: list[tuple[int, object]] = []
        for key, entry in group.units.items():
            unit_id = self._index.get_unit_id(key)
            if any(existing == unit_id for existing, _ in to_update):
                raise DuplicateExtendUnitError(key)
            if self._units[unit_id].is_expanded and (
                entry.ratio is not None
                or entry.difference is not None
                or entry.names is not None
                or entry.symbols is not None
            ):
                raise InvalidExtendExpandedError(key)
            to_update.append((unit_id, entry))

        for unit_id, entry in to_update:
            builder = self._units[unit_id]
            self._remove_unit_rec(builder)
            unit = builder.unit
            if entry.ratio is not None:
                unit.ratio = entry.ratio
            if entry.difference is not None:
                unit.difference = entry.difference
            if entry.names is not None:
                unit.names = _join_aliases(unit.names, entry.names, group.precedence)
            if entry.symbols is not None:
                unit.symbols = _join_aliases(unit.symbols, entry.symbols, group.precedence)
            if entry.aliases is not None:
                unit.aliases = _join_aliases(unit.aliases, entry.aliases, group.precedence)

            if builder.expand_si:
                self._update_expanded(unit_id)
            self._index_unit(unit, unit_id)

    def _update_expanded(self, unit_id: int) -> None:
        builder = self._units[unit_id]
        assert builder.expanded_units is not None
        for prefix, expanded in _expand_si(builder, self._si).items():
            expanded_id = builder.expanded_units[prefix]
            expanded.unit.aliases = list(self._units[expanded_id].unit.aliases)
            self._units[expanded_id] = expanded
            self._index_unit(expanded.unit, expanded_id)

    def _best_store(self, best_units: BestUnits) -> BestConversionsStore:
        if best_units.unified is not None:
            return BestConversionsStore(unified=self._best_conversions(best_units.unified))
        assert best_units.metric is not None and best_units.imperial is not None
        return BestConversionsStore(
            by_system={
                System.METRIC: self._best_conversions(best_units.metric),
                System.IMPERIAL: self._best_conversions(best_units.imperial),
            }
        )

    def _best_conversions(self, names: list[str]) -> BestConversions:
        ids = [self._index.get_unit_id(name) for name in names]
        ids.sort(key=lambda uid: self._units[uid].unit.ratio)
        base_id, *rest = ids
        base = self._units[base_id].unit
        conversions = [(1.0, base_id)]
        conversions.extend(
            (convert_f64(1.0, self._units[uid].unit, base), uid) for uid in rest
        )
        return BestConversions(conversions)

    def _fractions_table(self) -> FractionsTable:
        all_layer: FractionsConfigHelper | None = None
        metric: FractionsConfigHelper | None = None
        imperial: FractionsConfigHelper | None = None
        quantity: dict[PhysicalQuantity, FractionsConfigHelper] = {}
        for cfg in self._fractions:
            if cfg.all is not None:
                all_layer = cfg.all
            if cfg.metric is not None:
                metric = cfg.metric
            if cfg.imperial is not None:
                imperial = cfg.imperial
            quantity.update(cfg.quantity)

        by_system = {System.METRIC: metric, System.IMPERIAL: imperial}
        unit_table = {}
        for cfg in self._fractions:
            for key, helper in cfg.unit.items():
                unit_id = self._index.get_unit_id(key)
                unit = self._units[unit_id].unit
                layers = [
                    quantity.get(unit.physical_quantity),
                    by_system.get(unit.system) if unit.system is not None else None,
                    all_layer,
                ]
                inherited = [layer for layer in layers if layer is not None]
                if inherited:
                    helper = helper.merge(reduce(lambda acc, e: acc.merge(e), inherited))
                unit_table[unit_id] = helper.define()

        return FractionsTable(
            all=None if all_layer is None else all_layer.define(),
            metric=None if metric is None else metric.define(),
            imperial=None if imperial is None else imperial.define(),
            quantity={q: c.define() for q, c in quantity.items()},
            unit=unit_table,
        )