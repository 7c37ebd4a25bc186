"""Configuration helpers for the grace period service."""
from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .app.grace.schedule import DEFAULT_WARNING_TEMPLATES


@dataclass(frozen=True)
class GraceConfig:
    """Runtime configuration for persistence and reminder templates."""

    db_host: str
    db_port: int
    db_name: str
    db_user: str
    db_password: str
    db_connect_timeout: int
    warning_templates: Mapping[int, str] = field(default_factory=lambda: dict(DEFAULT_WARNING_TEMPLATES))

    def db_params(self) -> Dict[str, Any]:
        """Keyword arguments accepted by ``psycopg2.connect``."""

        return {
            "host": self.db_host,
            "port": self.db_port,
            "dbname": self.db_name,
            "user": self.db_user,
            "password": self.db_password,
            "connect_timeout": self.db_connect_timeout,
        }


def _to_int(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected integer value, got {value!r}") from exc


def _parse_connect_timeout(raw_value: Optional[str]) -> int:
    if raw_value is None or raw_value == "":
        return 5
    try:
        timeout = float(raw_value)
    except ValueError as exc:
        raise ValueError("GRACE_DB_CONNECT_TIMEOUT must be a number") from exc
    if timeout < 0:
        raise ValueError("GRACE_DB_CONNECT_TIMEOUT must be non-negative")
    return int(math.ceil(timeout))


def parse_warning_templates(raw_value: Optional[str]) -> Dict[int, str]:
    """Parse ``"28:expiring_28,10:expiring_10"`` into a days-to-template table."""

    if raw_value is None or not raw_value.strip():
        return dict(DEFAULT_WARNING_TEMPLATES)

    templates: Dict[int, str] = {}
    for chunk in raw_value.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        days, separator, template = chunk.partition(":")
        if not separator or not template.strip():
            raise ValueError(f"Invalid warning template entry {chunk!r}")
        day_count = _to_int(days.strip(), default=-1)
        if day_count < 0:
            raise ValueError(f"Invalid warning day count in {chunk!r}")
        templates[day_count] = template.strip()
    return templates


def load_grace_config(env: Optional[Mapping[str, str]] = None) -> GraceConfig:
    """Load :class:`GraceConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    return GraceConfig(
        db_host=env_mapping.get("GRACE_DB_HOST", "127.0.0.1"),
        db_port=_to_int(env_mapping.get("GRACE_DB_PORT"), default=5432),
        db_name=env_mapping.get("GRACE_DB_NAME", "membership_db"),
        db_user=env_mapping.get("GRACE_DB_USER", "membership_user"),
        db_password=env_mapping.get("GRACE_DB_PASSWORD", "membership_pass"),
        db_connect_timeout=_parse_connect_timeout(env_mapping.get("GRACE_DB_CONNECT_TIMEOUT")),
        warning_templates=parse_warning_templates(env_mapping.get("GRACE_WARNING_TEMPLATES")),
    )


__all__ = ["GraceConfig", "load_grace_config", "parse_warning_templates"]
