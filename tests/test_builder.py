import pytest

from cooklang.builder import (
    ConverterBuilder,
    DuplicateExtendUnitError,
    DuplicateUnitError,
    EmptyBestError,
    EmptySIPrefixesError,
    EmptyUnitError,
    EmptyUnitKeyError,
    InvalidExtendExpandedError,
)
from cooklang.units import FractionsConfig, PhysicalQuantity, System, UnknownUnit
from cooklang.units_file import SIPrefix, UnitsFile


def _unit(names, symbols, ratio, **extra):
    return {"names": names, "symbols": symbols, "ratio": ratio, **extra}


def _others():
    return [
        {
            "quantity": "volume",
            "best": ["ml", "l"],
            "units": [_unit(["millilitre"], ["ml"], 1), _unit(["litre"], ["l"], 1000)],
        },
        {"quantity": "length", "best": ["cm"], "units": [_unit(["centimetre"], ["cm"], 1)]},
        {
            "quantity": "temperature",
            "best": {"metric": ["C"], "imperial": ["F"]},
            "units": {
                "metric": [_unit(["celsius"], ["C"], 1)],
                "imperial": [_unit(["fahrenheit"], ["F"], 5 / 9, difference=-32)],
            },
        },
        {
            "quantity": "time",
            "best": ["s", "min"],
            "units": [_unit(["second"], ["s"], 1), _unit(["minute"], ["min"], 60)],
        },
    ]


def _mass(best=("g", "kg")):
    return {
        "quantity": "mass",
        "best": list(best),
        "units": [_unit(["gram"], ["g"], 1), _unit(["kilogram"], ["kg"], 1000)],
    }


PREFIXES = {p.value: [p.value] for p in SIPrefix}
SYMBOLS = {"kilo": ["k"], "hecto": ["h"], "deca": ["da"], "deci": ["d"], "centi": ["c"], "milli": ["m"]}
SI_MASS = {
    "quantity": "mass",
    "best": ["g", "kg"],
    "units": [_unit(["gram"], ["g"], 1, expand_si=True)],
}


def _file(*groups, **top):
    return UnitsFile.from_dict({"quantity": [*groups, *_others()], **top})


def _layer(**top):
    return UnitsFile.from_dict(top)


def _build(*files):
    builder = ConverterBuilder()
    for f in files:
        builder.add_units_file(f)
    return builder.finish()


def _si_converter(*extra):
    return _build(
        _file(SI_MASS, si={"prefixes": PREFIXES, "symbol_prefixes": SYMBOLS}), *extra
    )


def test_with_units_file_returns_builder():
    builder = ConverterBuilder()
    assert builder.with_units_file(_file(_mass())) is builder


def test_basic_lookup():
    conv = _build(_file(_mass()))
    gram = conv.find_unit("gram")
    assert gram is conv.find_unit("g")
    assert gram.physical_quantity is PhysicalQuantity.MASS
    assert conv.find_unit("stone") is None


def test_quantity_index_covers_every_unit():
    conv = _build(_file(_mass()))
    total = sum(len(ids) for ids in conv.quantity_index.values())
    assert total == conv.unit_count()


def test_si_expansion_creates_prefixed_units():
    conv = _si_converter()
    kg = conv.find_unit("kilogram")
    assert kg is conv.find_unit("kg")
    assert kg.ratio == SIPrefix.KILO.ratio()
    assert conv.find_unit("mg").ratio == pytest.approx(SIPrefix.MILLI.ratio())
    mass_units = [u for u in conv.all_units() if u.physical_quantity is PhysicalQuantity.MASS]
    assert len(mass_units) == 1 + len(SIPrefix)


def test_expand_si_without_prefixes():
    builder = ConverterBuilder().with_units_file(_file(SI_MASS))
    with pytest.raises(EmptySIPrefixesError):
        builder.finish()


def test_missing_best_units():
    builder = ConverterBuilder().with_units_file(UnitsFile.from_dict({"quantity": _others()}))
    with pytest.raises(EmptyBestError) as info:
        builder.finish()
    assert info.value.quantity is PhysicalQuantity.MASS
    assert info.value.reason == "no best units given"


def test_empty_best_list():
    with pytest.raises(EmptyBestError) as info:
        ConverterBuilder().add_units_file(_file(_mass(best=())))
    assert info.value.reason == "empty list of units"
    assert info.value.quantity is PhysicalQuantity.MASS


def test_empty_best_by_system():
    group = dict(_mass(), best={"metric": ["g"], "imperial": []})
    with pytest.raises(EmptyBestError):
        ConverterBuilder().add_units_file(_file(group))


def test_duplicate_unit():
    group = {"quantity": "mass", "best": ["g"], "units": [_unit(["gram"], ["g", "ml"], 1)]}
    with pytest.raises(DuplicateUnitError) as info:
        ConverterBuilder().add_units_file(_file(group))
    assert info.value.name == "ml"


def test_empty_unit_key():
    group = {"quantity": "mass", "best": ["g"], "units": [_unit([" "], ["g"], 1)]}
    with pytest.raises(EmptyUnitKeyError):
        ConverterBuilder().add_units_file(_file(group))


def test_empty_unit():
    group = {"quantity": "mass", "best": ["g"], "units": [_unit([], [], 1)]}
    with pytest.raises(EmptyUnitError):
        ConverterBuilder().add_units_file(_file(group))


def test_unknown_best_unit():
    builder = ConverterBuilder().with_units_file(_file(_mass(best=("g", "stone"))))
    with pytest.raises(UnknownUnit):
        builder.finish()


def test_best_units_sorted_by_ratio():
    conv = _build(_file(_mass(best=("kg", "g"))))
    assert [u.symbol() for u in conv.best_units(PhysicalQuantity.MASS)] == ["g", "kg"]
    assert conv.is_best_unit(conv.find_unit("ml")) is False  # no system


def test_convert_to_best_round_trip():
    conv = _build(_file(_mass()))
    value, unit = conv.convert(2500.0, "g", System.METRIC)
    assert unit is conv.find_unit("kg")
    back, back_unit = conv.convert(value, unit, "g")
    assert back_unit is conv.find_unit("g")
    assert back == pytest.approx(2500.0)


def test_temperature_by_system():
    conv = _build(_file(_mass()))
    value, unit = conv.convert(212.0, "F", System.METRIC)
    assert unit.symbol() == "C"
    assert value == pytest.approx(100.0)
    assert conv.is_best_unit(conv.find_unit("F"))
    assert [u.symbol() for u in conv.best_units(PhysicalQuantity.TEMPERATURE)] == ["C", "F"]


def test_extend_aliases():
    conv = _build(_file(_mass()), _layer(extend={"units": {"g": {"aliases": ["grammy"]}}}))
    assert conv.find_unit("grammy") is conv.find_unit("gram")


def test_extend_symbols_before():
    conv = _build(_file(_mass()), _layer(extend={"units": {"g": {"symbols": ["gr"]}}}))
    gram = conv.find_unit("gram")
    assert gram.symbols == ["gr", "g"]
    assert conv.find_unit("g") is gram


def test_extend_ratio():
    conv = _build(_file(_mass()), _layer(extend={"units": {"kg": {"ratio": 2.0}}}))
    assert conv.find_unit("kilogram").ratio == 2.0


def test_extend_unknown_key():
    builder = ConverterBuilder().with_units_file(_file(_mass()))
    builder.add_units_file(_layer(extend={"units": {"stone": {"aliases": ["st"]}}}))
    with pytest.raises(UnknownUnit):
        builder.finish()


def test_extend_duplicate_unit():
    builder = ConverterBuilder().with_units_file(_file(_mass()))
    builder.add_units_file(
        _layer(extend={"units": {"g": {"aliases": ["a"]}, "gram": {"aliases": ["b"]}}})
    )
    with pytest.raises(DuplicateExtendUnitError):
        builder.finish()


def test_extend_expanded_ratio_rejected():
    builder = ConverterBuilder().with_units_file(
        _file(SI_MASS, si={"prefixes": PREFIXES, "symbol_prefixes": SYMBOLS})
    )
    builder.add_units_file(_layer(extend={"units": {"kg": {"ratio": 5.0}}}))
    with pytest.raises(InvalidExtendExpandedError) as info:
        builder.finish()
    assert info.value.key == "kg"


def test_extend_expanded_aliases_allowed():
    conv = _si_converter(_layer(extend={"units": {"kg": {"aliases": ["kilo"]}}}))
    assert conv.find_unit("kilo") is conv.find_unit("kilogram")


def test_extend_base_updates_expanded_and_keeps_aliases():
    conv = _si_converter(
        _layer(extend={"units": {"kg": {"aliases": ["kilo"]}}}),
        _layer(extend={"precedence": "after", "units": {"gram": {"names": ["grams"]}}}),
    )
    kg = conv.find_unit("kilograms")
    assert kg is conv.find_unit("kilogram")
    assert conv.find_unit("kilo") is kg
    assert kg.ratio == SIPrefix.KILO.ratio()


@pytest.mark.parametrize(
    "precedence, expected",
    [
        ("before", ["KILOgram", "kilogram"]),
        ("after", ["kilogram", "KILOgram"]),
        ("override", ["KILOgram"]),
    ],
)
def test_si_prefix_layers(precedence, expected):
    upper = {p.value: [p.value.upper()] for p in SIPrefix}
    conv = _si_converter(_layer(si={"precedence": precedence, "prefixes": upper}))
    kg = conv.find_unit("KILOgram")
    assert kg.names == expected
    assert conv.find_unit("kg") is kg


def test_fractions_layers():
    conv = _build(
        _file(
            _mass(),
            fractions={"all": True, "unit": {"g": False, "kg": {"max_denominator": 8}}},
        )
    )
    assert conv.fractions_config(conv.find_unit("g")).enabled is False
    assert conv.fractions_config(conv.find_unit("kg")) == FractionsConfig(
        enabled=True, max_denominator=8
    )
    assert conv.should_fit_fraction(conv.find_unit("ml"))


def test_fractions_later_layer_overrides():
    conv = _build(
        _file(_mass(), fractions={"all": True}),
        _layer(fractions={"all": False, "quantity": {"time": True}}),
    )
    assert conv.should_fit_fraction(conv.find_unit("ml")) is False
    assert conv.should_fit_fraction(conv.find_unit("min")) is True


def test_default_system():
    assert _build(_file(_mass())).default_system is System.METRIC
    conv = _build(_file(_mass()), _layer(default_system="imperial"))
    assert conv.default_system is System.IMPERIAL