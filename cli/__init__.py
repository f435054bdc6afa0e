"""CLI package for the device payload mapper."""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("cli.app")
    raise AttributeError(name)

# ``cli.app`` must keep resolving to the module rather than the Typer instance,
# since tests patch ``cli.app.ApiClient`` and ``cli.app.build_default_mapper``.

__all__ = []
