[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cooklang"
version = "0.17.11"
description = "Cooklang recipe diagnostics, analysis options and configurable unit conversion"
requires-python = ">=3.11"
keywords = ["cooklang", "cooking", "recipes", "units", "conversion"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["cooklang"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
