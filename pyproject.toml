[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rubble"
version = "0.1.0"
description = "Bluetooth Low Energy advertising, link-layer and L2CAP packet encoding and decoding"
requires-python = ">=3.10"
dependencies = []
keywords = ["bluetooth", "ble", "advertising", "l2cap", "link-layer", "channel-map"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Communications",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["rubble"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
