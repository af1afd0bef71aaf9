[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "appscaler"
version = "0.0.1"
description = "A controller that keeps a set of deployments at the replica count declared by an AppScaler resource"
requires-python = ">=3.10"
dependencies = []
keywords = ["kubernetes", "operator", "controller", "reconcile", "scaling", "deployments"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Clustering",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
appscaler-manager = "appscaler.manager:main"

[tool.hatch.build.targets.wheel]
packages = ["appscaler"]

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
