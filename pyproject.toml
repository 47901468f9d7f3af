[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nodecollect"
version = "0.1.0"
description = "Collectors that read Linux /proc and /sys and turn them into node metrics"
requires-python = ">=3.10"
dependencies = []
keywords = ["metrics", "monitoring", "procfs", "sysfs", "linux", "node"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["nodecollect"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
