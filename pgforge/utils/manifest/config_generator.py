"""
Server configuration generator.

Renders postgresql.conf and pg_hba.conf text for one role. Output depends
only on the settings, the manifest and the role, so identical inputs give
byte-identical files.
"""

from __future__ import annotations

from typing import List, Optional

from .guc import PRELOAD_SETTING_KEY, format_setting
from .schema import HbaType, Manifest, PgHbaRule, Role, ServerSettings

CONF_HEADER = "# AUTO-GENERATED from extensions manifest - DO NOT EDIT DIRECTLY"


def role_settings(settings: ServerSettings, role: Role, manifest: Optional[Manifest] = None) -> dict:
    """
    Effective settings for a role.

    When no explicit preload list is configured, the manifest's default
    preload libraries are used.
    """
    merged = settings.for_role(role)
    if PRELOAD_SETTING_KEY not in merged and manifest is not None:
        merged[PRELOAD_SETTING_KEY] = manifest.default_preload_libraries()
    return merged


def generate_postgresql_conf(
    settings: ServerSettings, role: Role, manifest: Optional[Manifest] = None
) -> str:
    """Render postgresql.conf for a role. Raises GucNameError on malformed keys."""
    lines = [
        CONF_HEADER,
        f"# Role: {role.value}",
        "",
    ]

    for key, value in role_settings(settings, role, manifest).items():
        line = format_setting(key, value)
        if line is not None:
            lines.append(line)

    lines.append("")
    return "\n".join(lines)


def format_hba_rule(rule: PgHbaRule) -> str:
    address = "" if rule.type == HbaType.LOCAL else rule.address
    return (
        f"{rule.type.value:<9} {rule.database:<15} {rule.user:<15} "
        f"{address:<23} {rule.method.value}"
    )


def generate_pg_hba(settings: ServerSettings, role: Role) -> str:
    """Render pg_hba.conf keeping only rules that apply to the role."""
    lines = [
        CONF_HEADER,
        f"# Role: {role.value}",
        "",
        f"{'# TYPE':<9} {'DATABASE':<15} {'USER':<15} {'ADDRESS':<23} METHOD",
    ]

    rules: List[PgHbaRule] = settings.hba_rules_for(role)
    for rule in rules:
        if rule.comment:
            lines.append("")
            lines.append(f"# {rule.comment}")
        lines.append(format_hba_rule(rule))

    lines.append("")
    return "\n".join(lines)
