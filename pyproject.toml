[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "goldpinger"
version = "3.4.20"
description = "Building blocks for peer-to-peer connectivity checks and metrics between Kubernetes pods"
requires-python = ">=3.10"
keywords = [
    "kubernetes",
    "connectivity",
    "monitoring",
    "health-check",
    "prometheus",
    "rendezvous-hashing",
    "xxhash",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
]
dependencies = [
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["goldpinger"]

[tool.hatch.build.targets.sdist]
include = ["goldpinger", "tests"]

[tool.pytest.ini_options]
testpaths = ["tests"]
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
