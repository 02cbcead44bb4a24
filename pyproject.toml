[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sing"
version = "0.1.0"
description = "Building blocks for proxy and networking tools: ranges, ordered collections, stream helpers, task groups, dialers and an SNTP client."
requires-python = ">=3.10"
dependencies = [
    "psutil",
]
keywords = [
    "networking",
    "dialer",
    "happy-eyeballs",
    "ntp",
    "sntp",
    "ranges",
    "linked-hash-map",
    "varint",
    "replay-filter",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Topic :: System :: Networking",
    "Topic :: System :: Networking :: Time Synchronization",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["sing"]

[tool.hatch.build.targets.sdist]
include = [
    "sing",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
