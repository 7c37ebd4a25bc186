"""Shared application context for externally supplied collaborators."""
from __future__ import annotations

from typing import Any, Callable, Dict, Optional

_collaborators: Dict[str, Any] = {}


def configure(
    *,
    entitlement_store: Any,
    level_catalog: Any,
    get_conn: Optional[Callable[[], Any]] = None,
) -> None:
    """Register the collaborators the grace service depends on."""

    _collaborators.clear()
    _collaborators.update(
        entitlement_store=entitlement_store,
        level_catalog=level_catalog,
    )
    if get_conn is not None:
        _collaborators["get_conn"] = get_conn


def reset() -> None:
    _collaborators.clear()


def _lookup(name: str) -> Any:
    try:
        return _collaborators[name]
    except KeyError:
        raise RuntimeError(
            f"Grace collaborator {name!r} is not registered; call app_context.configure() first"
        ) from None


def get_conn() -> Any:
    return _lookup("get_conn")()


def has_connection_factory() -> bool:
    return "get_conn" in _collaborators


def get_entitlement_store() -> Any:
    return _lookup("entitlement_store")


def get_level_catalog() -> Any:
    return _lookup("level_catalog")
