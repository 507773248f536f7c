"""Wallet HTTP routers.

Every public module here exposes a ``router`` mounted under :data:`API_PREFIX`.
Modules starting with ``_`` hold shared helpers and are never mounted.
"""

from __future__ import annotations

import importlib
import pkgutil
from collections.abc import Iterator

from fastapi import APIRouter

from wallet_service.core.constants import API_PREFIX

__all__ = ["load_routers"]


def _route_modules() -> list[str]:
    return sorted(
        info.name
        for info in pkgutil.iter_modules(__path__)
        if not info.name.startswith("_")
    )


def load_routers() -> Iterator[APIRouter]:
    """Yield each route module's router in module-name order."""

    for name in _route_modules():
        module = importlib.import_module(f"{__name__}.{name}")
        router = getattr(module, "router", None)
        if not isinstance(router, APIRouter):
            raise RuntimeError(f"Route module {name!r} does not define a router")
        if not router.prefix.startswith(API_PREFIX):
            raise RuntimeError(
                f"Router in {name!r} must be mounted under {API_PREFIX}, "
                f"got {router.prefix!r}"
            )
        yield router
