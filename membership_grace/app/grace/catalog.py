"""Static membership level catalog for local development and tests."""
from __future__ import annotations

from typing import Dict, Iterable, Optional

from .models import MembershipLevel


class StaticLevelCatalog:
    """Dictionary backed level lookup."""

    def __init__(self, levels: Iterable[MembershipLevel] = ()) -> None:
        self._levels: Dict[str, MembershipLevel] = {}
        for level in levels:
            self.add(level)

    def add(self, level: MembershipLevel) -> None:
        self._levels[level.level_id] = level

    def get_level(self, level_id: str) -> Optional[MembershipLevel]:
        return self._levels.get(level_id)


__all__ = ["StaticLevelCatalog"]
