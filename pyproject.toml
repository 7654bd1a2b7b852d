[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "v2xnode"
version = "0.1.0"
description = "Vehicle-to-everything accident warning node: broadcast, relay and evaluate accident packets between cars"
requires-python = ">=3.10"
keywords = ["v2x", "vehicle", "accident", "udp", "broadcast", "relay"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications",
]
dependencies = [
    "pyserial",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
v2xnode = "v2xnode.app:main"

[tool.hatch.build.targets.wheel]
packages = ["v2xnode"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
