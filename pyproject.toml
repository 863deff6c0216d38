[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pprlayout"
version = "0.1.0"
description = "Personalized PageRank indices and MDS layouts for hierarchically clustered graphs"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "graph",
    "pagerank",
    "personalized-pagerank",
    "layout",
    "mds",
    "smacof",
    "visualization",
    "clustering",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Visualization",
    "Topic :: Scientific/Engineering :: Mathematics",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["pprlayout"]

[tool.pytest.ini_options]
addopts = "-ra"
