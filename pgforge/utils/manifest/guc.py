"""
GUC name translation and value formatting.

Setting keys are authored in camelCase (``pgStatStatementsMax``) and are
emitted under their canonical server names (``pg_stat_statements.max``).
"""

from __future__ import annotations

import re
from typing import List, Optional

from ..system.errors import GucNameError
from .schema import SettingValue

PRELOAD_SETTING_KEY = "sharedPreloadLibraries"
PRELOAD_GUC = "shared_preload_libraries"

# snake_case prefix -> GUC namespace
EXTENSION_NAMESPACES = {
    "pg_stat_statements": "pg_stat_statements",
    "auto_explain": "auto_explain",
    "pg_audit": "pgaudit",
    "cron": "cron",
    "timescaledb": "timescaledb",
}

GUC_NAME_PATTERN = re.compile(r"^[a-z_][a-z0-9_.]*$")

_LOWER_UPPER = re.compile(r"([a-z0-9])([A-Z])")
_ACRONYM_BOUNDARY = re.compile(r"([A-Z])([A-Z][a-z])")


def camel_to_snake(key: str) -> str:
    """listenAddresses -> listen_addresses, maxWALSize -> max_wal_size"""
    snake = _LOWER_UPPER.sub(r"\1_\2", key)
    snake = _ACRONYM_BOUNDARY.sub(r"\1_\2", snake)
    return snake.lower()


def to_guc_name(key: str) -> str:
    """
    Translate a camelCase setting key into a GUC name.

    Known extension prefixes become dotted namespaces. The result must
    satisfy the server's identifier grammar, otherwise GucNameError is raised.
    """
    snake = camel_to_snake(key)
    guc = snake

    for prefix, namespace in EXTENSION_NAMESPACES.items():
        if snake.startswith(prefix + "_"):
            guc = f"{namespace}.{snake[len(prefix) + 1:]}"
            break

    if not GUC_NAME_PATTERN.match(guc):
        raise GucNameError(key, guc)
    return guc


def quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def format_value(value: SettingValue) -> str:
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "on" if value else "off"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list):
        return quote(",".join(str(item) for item in value))
    return quote(str(value))


def format_preload_libraries(libraries: List[str]) -> Optional[str]:
    """Empty list -> None (line omitted, the entrypoint detects it at runtime)."""
    if not libraries:
        return None
    return f"{PRELOAD_GUC} = {quote(','.join(libraries))}"


def format_setting(key: str, value: SettingValue) -> Optional[str]:
    """Render one ``name = value`` line, or None when the line is suppressed."""
    if key == PRELOAD_SETTING_KEY:
        libraries = value if isinstance(value, list) else [str(value)] if value else []
        return format_preload_libraries(libraries)
    return f"{to_guc_name(key)} = {format_value(value)}"
