[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "iplflow"
version = "1.1.1"
description = "Handshaking pipeline dataflow components: pipes, arbiters, forks and invocations"
requires-python = ">=3.10"
dependencies = []
keywords = ["dataflow", "pipeline", "handshake", "simulation", "eda"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Electronic Design Automation (EDA)",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["iplflow"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
