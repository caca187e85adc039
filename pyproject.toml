[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "casa"
version = "0.1.0"
description = "Compiler for the Casa stack-based language, emitting x86-64 GNU assembly"
requires-python = ">=3.10"
dependencies = []
keywords = ["compiler", "stack-based", "concatenative", "assembly", "x86-64"]
classifiers = [
    "Development Status :: 2 - Pre-Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Compilers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
casa = "casa.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["casa"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
