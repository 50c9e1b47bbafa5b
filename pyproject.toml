[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pommitlint"
version = "0.1.0"
description = "Offline commit message linter with the conventional commit rules built in"
requires-python = ">=3.10"
dependencies = []
keywords = ["git", "commit", "lint", "conventional-commits", "commit-msg", "hook"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Version Control :: Git",
    "Topic :: Software Development :: Quality Assurance",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
pommitlint = "pommitlint.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["pommitlint"]

[tool.hatch.build.targets.sdist]
include = ["pommitlint", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
