[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rescuebot"
version = "0.1.0"
description = "Control logic for a line-following rescue robot: chassis, two-link arm, servos, sensors and a mission queue, with a simulated run."
requires-python = ">=3.10"
dependencies = []
keywords = ["robot", "mecanum", "pid", "inverse-kinematics", "line-following", "servo", "simulation"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Human Machine Interfaces",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
rescuebot = "rescuebot.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["rescuebot"]

[tool.pytest.ini_options]
addopts = "-ra"
