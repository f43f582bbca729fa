import pytest

from cooklang.units import FractionsConfig, PhysicalQuantity, System
from cooklang.units_file import (
    SI,
    BestUnits,
    Extend,
    FractionsConfigHelper,
    Precedence,
    SIPrefix,
    UnitsFile,
    UnitsFileError,
)

SAMPLE = """
default_system = "imperial"

[si.prefixes]
kilo = ["kilo"]
hecto = ["hecto"]
deca = ["deca"]
deci = ["deci"]
centi = ["centi"]
milli = ["milli"]

[si.symbol_prefixes]
kilo = ["k"]
hecto = ["h"]
deca = ["da"]
deci = ["d"]
centi = ["c"]
milli = ["m"]

[fractions]
all = false
metric = { enabled = true, max_denominator = 8 }

[fractions.quantity]
time = true

[fractions.unit]
cup = { accuracy = 0.1 }

[extend]
precedence = "after"

[extend.units]
g = { alias = ["gr"] }

[[quantity]]
quantity = "mass"
best = ["g", "kg"]

[[quantity.units]]
name = ["gram", "grams"]
symbol = ["g"]
ratio = 1
expand_si = true

[[quantity]]
quantity = "volume"

[quantity.best]
metric = ["ml", "l"]
imperial = ["cup"]

[[quantity.units.metric]]
names = ["liter"]
symbols = ["l"]
ratio = 1

[[quantity.units.imperial]]
names = ["cup"]
symbols = ["c"]
aliases = ["cups"]
ratio = 0.25
"""


def test_si_prefix_ratios():
    assert SIPrefix.KILO.ratio() == 1000.0
    assert SIPrefix.MILLI.ratio() == 1e-3
    assert SIPrefix.DECA.ratio() == 1e1


def test_parse_sample_top_level():
    uf = UnitsFile.from_toml(SAMPLE)
    assert uf.default_system is System.IMPERIAL
    assert uf.si.prefixes[SIPrefix.KILO] == ["kilo"]
    assert uf.si.symbol_prefixes[SIPrefix.DECA] == ["da"]
    assert uf.si.precedence is Precedence.BEFORE
    assert len(uf.quantity) == 2


def test_parse_sample_units_and_best():
    uf = UnitsFile.from_toml(SAMPLE)
    mass, volume = uf.quantity
    assert mass.quantity is PhysicalQuantity.MASS
    assert mass.best == BestUnits(unified=["g", "kg"])
    assert not mass.units.by_system
    gram = mass.units.unified[0]
    assert gram.names == ["gram", "grams"]
    assert gram.symbols == ["g"]
    assert gram.ratio == 1.0
    assert gram.expand_si is True
    assert gram.aliases == []
    assert gram.difference == 0.0

    assert volume.best.by_system
    assert volume.best.metric == ["ml", "l"]
    assert volume.best.imperial == ["cup"]
    assert volume.units.by_system
    assert volume.units.imperial[0].aliases == ["cups"]
    assert volume.units.unspecified == []


def test_parse_sample_fractions_and_extend():
    uf = UnitsFile.from_toml(SAMPLE)
    assert uf.fractions.all == FractionsConfigHelper(enabled=False)
    assert uf.fractions.metric == FractionsConfigHelper(enabled=True, max_denominator=8)
    assert uf.fractions.quantity[PhysicalQuantity.TIME] == FractionsConfigHelper(enabled=True)
    assert uf.fractions.unit["cup"].accuracy == 0.1
    assert uf.fractions.imperial is None
    assert uf.extend.precedence is Precedence.AFTER
    assert uf.extend.units["g"].aliases == ["gr"]
    assert uf.extend.units["g"].ratio is None


def test_empty_document_defaults():
    uf = UnitsFile.from_toml("")
    assert uf == UnitsFile()
    assert uf.quantity == []


def test_from_dict_matches_from_toml():
    data = {"quantity": [{"quantity": "time", "best": ["s"]}]}
    assert UnitsFile.from_dict(data) == UnitsFile.from_toml(
        '[[quantity]]\nquantity = "time"\nbest = ["s"]\n'
    )


def test_unknown_top_level_field():
    with pytest.raises(UnitsFileError):
        UnitsFile.from_dict({"unknown": 1})


def test_unknown_field_in_unit_entry():
    data = {"quantity": [{"quantity": "mass", "units": [
        {"names": ["gram"], "symbols": ["g"], "ratio": 1, "bogus": True}
    ]}]}
    with pytest.raises(UnitsFileError):
        UnitsFile.from_dict(data)


def test_unit_entry_name_and_names_conflict():
    data = {"quantity": [{"quantity": "mass", "units": [
        {"names": ["gram"], "name": ["g2"], "symbols": ["g"], "ratio": 1}
    ]}]}
    with pytest.raises(UnitsFileError):
        UnitsFile.from_dict(data)


def test_unit_entry_missing_ratio():
    data = {"quantity": [{"quantity": "mass", "units": [{"names": ["gram"], "symbols": ["g"]}]}]}
    with pytest.raises(UnitsFileError):
        UnitsFile.from_dict(data)


def test_unknown_quantity():
    with pytest.raises(UnitsFileError):
        UnitsFile.from_dict({"quantity": [{"quantity": "energy"}]})


def test_si_prefixes_must_be_complete():
    with pytest.raises(UnitsFileError):
        UnitsFile.from_dict({"si": {"prefixes": {"kilo": ["k"]}}})


def test_best_units_by_system_needs_both():
    with pytest.raises(UnitsFileError):
        UnitsFile.from_dict({"quantity": [{"quantity": "mass", "best": {"metric": ["g"]}}]})


def test_invalid_toml():
    with pytest.raises(UnitsFileError):
        UnitsFile.from_toml("this is = = not toml")


def test_extend_ignores_unknown_entry_fields():
    ext = UnitsFile.from_dict({"extend": {"units": {"g": {"ratio": 2, "other": 1}}}}).extend
    assert ext == Extend(units={"g": ext.units["g"]})
    assert ext.units["g"].ratio == 2.0


def test_helper_from_toggle():
    assert FractionsConfigHelper.from_value(True) == FractionsConfigHelper(enabled=True)


def test_helper_rejects_unknown_field_and_bad_range():
    with pytest.raises(UnitsFileError):
        FractionsConfigHelper.from_value({"bogus": 1})
    with pytest.raises(UnitsFileError):
        FractionsConfigHelper.from_value({"max_denominator": 300})


def test_merge_prefers_self():
    a = FractionsConfigHelper(enabled=True, accuracy=None, max_denominator=2)
    b = FractionsConfigHelper(enabled=False, accuracy=0.2, max_whole=7)
    merged = a.merge(b)
    assert merged == FractionsConfigHelper(
        enabled=True, accuracy=0.2, max_denominator=2, max_whole=7
    )


def test_define_defaults_and_clamp():
    assert FractionsConfigHelper().define() == FractionsConfig()
    cfg = FractionsConfigHelper(accuracy=2.0, max_denominator=0).define()
    assert cfg.accuracy == 1.0
    assert cfg.max_denominator == 1
    assert FractionsConfigHelper(max_denominator=100).define().max_denominator == 16


def test_si_default():
    assert SI() == SI(None, None, Precedence.BEFORE)
    assert UnitsFile.from_dict({"si": {}}).si == SI()
    assert UnitsFile.from_dict({"si": {"precedence": "override"}}).si.precedence is Precedence.OVERRIDE