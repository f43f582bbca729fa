# cooklang

Building blocks for working with Cooklang recipes in Python:

- **Diagnostics** (`cooklang.error`): `SourceDiag`, `SourceReport`,
  `PassResult` and `ReportError` collect errors and warnings with source
  locations and print them as annotated reports.
- **Analysis options** (`cooklang.checks`): `ParseOptions`, `CheckResult`,
  `CheckOptions`, `DefineMode` and `DuplicateMode` describe how recipe
  references and metadata entries are checked.
- **Units** (`cooklang.units`): `Unit`, `PhysicalQuantity`, `System`,
  `UnitIndex`, `convert_f64` and the conversion errors (`ConvertError`,
  `UnknownUnit`, `TextValueError`, `MixedQuantitiesError`,
  `BestUnitNotFoundError`).
- **Converter** (`cooklang.converter`): `Converter` looks units up by any
  name, symbol or alias, converts numbers and `ValueRange`s between units,
  and picks the best fitting unit in a system.
- **Units files** (`cooklang.units_file`): `UnitsFile` reads a layered units
  configuration from TOML or plain data; malformed input raises
  `UnitsFileError`.
- **Builder** (`cooklang.builder`): `ConverterBuilder` layers units files,
  expands SI prefixes, applies `extend` edits and produces a `Converter`.

## Installation

```
pip install .
```

The package has no runtime dependencies. Python 3.11 or newer is required.

## Diagnostics

```python
import sys

from cooklang.error import Label, SourceDiag, SourceReport, Stage

source = "salt and pepper"
report = SourceReport()
report.warn(
    SourceDiag.warning("Unused ingredient", Label(0, 4, "here"), Stage.ANALYSIS)
    .with_hint("Remove it or use it in a step")
)
report.write("recipe.cook", source, False, sys.stdout)
```

`write` prints warnings first and then errors; `print` and `eprint` write to
standard output and standard error. Pass `color=True` for ANSI colours.

`PassResult.into_result()` returns the output and a warnings-only report, or
raises `ReportError` (which carries the report) when there are errors or no
output.

## Custom checks

```python
from cooklang.checks import CheckResult, ParseOptions

def check_recipe(name: str) -> CheckResult:
    return CheckResult.ok() if name == "pesto" else CheckResult.error(["Unknown recipe"])

options = ParseOptions(recipe_ref_check=check_recipe)
diag = check_recipe("ragu").into_source_diag("Referenced recipe not found")
```

A metadata validator receives the key, the value and a `CheckOptions`, on
which it can call `include(False)` or `run_std_checks(False)`.

## Building a converter

Units are described by one or more units files. Every physical quantity
(volume, mass, length, temperature, time) needs best units in some layer, or
`finish()` raises `EmptyBestError`.

```python
from cooklang.builder import ConverterBuilder
from cooklang.units_file import UnitsFile

text = """
default_system = "metric"

[[quantity]]
quantity = "mass"
best = ["g", "kg"]
units = [
  { names = ["gram", "grams"], symbols = ["g"], ratio = 1 },
  { names = ["kilogram", "kilograms"], symbols = ["kg"], ratio = 1000 },
]

[[quantity]]
quantity = "volume"
best = ["ml"]
units = [{ names = ["millilitre"], symbols = ["ml"], ratio = 1 }]

[[quantity]]
quantity = "length"
best = ["cm"]
units = [{ names = ["centimetre"], symbols = ["cm"], ratio = 1 }]

[[quantity]]
quantity = "temperature"
best = ["C"]
units = [{ names = ["celsius"], symbols = ["C"], ratio = 1 }]

[[quantity]]
quantity = "time"
best = ["min"]
units = [{ names = ["minute", "minutes"], symbols = ["min"], ratio = 1 }]
"""

converter = ConverterBuilder().with_units_file(UnitsFile.from_toml(text)).finish()

value, unit = converter.convert(1500, "g")        # best unit: (1.5, kilogram)
value, unit = converter.convert(2, "kg", "g")     # explicit target: (2000.0, gram)
converter.find_unit("grams")                      # the gram unit, or None if unknown
```

`Converter.convert` takes a target unit (or unit key), a `System` to pick the
best unit in, or `None` to stay in the unit's own system. Unknown keys raise
`UnknownUnit`; units of different quantities raise `MixedQuantitiesError`.

Other configuration mistakes raise subclasses of `ConverterBuilderError`:
`DuplicateUnitError`, `DuplicateExtendUnitError`,
`InvalidExtendExpandedError`, `EmptyUnitError`, `EmptyUnitKeyError` and
`EmptySIPrefixesError`.

## What this package does not do

- It does not parse `.cook` recipe text and has no recipe model; the
  diagnostics and check options are meant for an analysis step that lives
  elsewhere.
- It ships no units file. A converter knows only the units you give it;
  `Converter.empty()` knows none and fails every conversion.
- It has no command-line tool.

## Testing

```
pip install .[test]
pytest
```