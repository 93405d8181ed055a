[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "linkseq"
version = "0.1.0"
description = "Step-driven Wi-Fi connection sequencer with clock and real-time-clock synchronisation"
requires-python = ">=3.10"
dependencies = []
keywords = ["wifi", "state-machine", "sntp", "rtc", "connection-manager"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["linkseq"]

[tool.pytest.ini_options]
addopts = "-ra"
