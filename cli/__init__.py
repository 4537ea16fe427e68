"""CLI package for running and exercising the collector."""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("cli.app")
    raise AttributeError(name)

# The Typer application lives in ``cli.app`` and is not re-exported here so
# that tests can keep patching attributes on the ``cli.app`` module path.

__all__ = []
