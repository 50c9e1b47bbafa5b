"""Offline linter for conventional commit messages, with a git commit-msg hook installer."""

__version__ = "0.1.0"

__all__ = ["__version__"]