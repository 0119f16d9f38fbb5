"""Mediashelf user library service package."""

from __future__ import annotations

from importlib import import_module
from typing import Any

__all__ = ["app", "create_app"]


def __getattr__(name: str) -> Any:
    if name in __all__:
        module = import_module("mediashelf.main")
        return getattr(module, name)
    raise AttributeError(f"module 'mediashelf' has no attribute {name}")
