"""
Extensions Manifest
===================

Single source of truth for every bundled extension, and the generators that
derive runtime artifacts from it.

Components:
- schema: Pydantic models for the manifest and pgforge.yaml
- validator: Structural and cross-entry checks
- loader: Load manifest/config, resolve environment variables
- guc / config_generator: postgresql.conf and pg_hba.conf
- sql_generator: Bootstrap SQL with status tracking
- healthcheck: Tiered healthcheck script
- converter: Write the complete artifact set
"""

from .schema import (
    BuildSpec,
    BuildType,
    EntryKind,
    ForgeConfig,
    GitRefSource,
    GitSource,
    InstallVia,
    Manifest,
    ManifestEntry,
    PatchSpec,
    PgHbaRule,
    Role,
    RuntimeLoading,
    RuntimeSpec,
    ServerSettings,
)
from .validator import ManifestValidator, ValidationReport
from .loader import ManifestLoader, load_config, resolve_env_vars
from .converter import ConfigConverter

__all__ = [
    "BuildSpec",
    "BuildType",
    "EntryKind",
    "ForgeConfig",
    "GitRefSource",
    "GitSource",
    "InstallVia",
    "Manifest",
    "ManifestEntry",
    "PatchSpec",
    "PgHbaRule",
    "Role",
    "RuntimeLoading",
    "RuntimeSpec",
    "ServerSettings",
    "ManifestValidator",
    "ValidationReport",
    "ManifestLoader",
    "load_config",
    "resolve_env_vars",
    "ConfigConverter",
]
