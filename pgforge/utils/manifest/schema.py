"""
Extensions Manifest Schema Definition
=====================================

Pydantic models for the extensions manifest (JSON) and for the pgforge
configuration file (pgforge.yaml).

The manifest uses camelCase keys on disk; every model accepts both the
camelCase alias and the snake_case attribute name.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# =============================================================================
# Enums
# =============================================================================


class EntryKind(str, Enum):
    """What a manifest entry bundles."""
    EXTENSION = "extension"
    TOOL = "tool"
    BUILTIN = "builtin"


class BuildType(str, Enum):
    """
    Closed set of build flows known to the orchestrator.

    SCRIPT is reserved and always rejected at build time.
    """
    PGXS = "pgxs"
    CARGO_PGRX = "cargo-pgrx"
    TIMESCALEDB = "timescaledb"
    AUTOTOOLS = "autotools"
    CMAKE = "cmake"
    MESON = "meson"
    MAKE = "make"
    SCRIPT = "script"


class InstallVia(str, Enum):
    """Where the installed artifact comes from."""
    PGDG = "pgdg"
    SOURCE = "source"


class RuntimeLoading(str, Enum):
    """
    How an entry becomes usable inside a database.

    SHARED_LIBRARY_PRELOAD    - library loaded via shared_preload_libraries, no CREATE EXTENSION
    SQL_ONLY_SCHEMA_BOOTSTRAP - schema installed by a dedicated init script, no shared library
    STANDARD_CREATE_EXTENSION - regular CREATE EXTENSION (may additionally need preloading)
    """
    SHARED_LIBRARY_PRELOAD = "shared_library_preload"
    SQL_ONLY_SCHEMA_BOOTSTRAP = "sql_only_schema_bootstrap"
    STANDARD_CREATE_EXTENSION = "standard_create_extension"


class Role(str, Enum):
    """Deployment position of a node."""
    PRIMARY = "primary"
    REPLICA = "replica"
    SINGLE = "single"


class HbaType(str, Enum):
    """pg_hba connection type."""
    LOCAL = "local"
    HOST = "host"
    HOSTSSL = "hostssl"
    HOSTNOSSL = "hostnossl"


class HbaMethod(str, Enum):
    """pg_hba authentication method."""
    TRUST = "trust"
    REJECT = "reject"
    SCRAM_SHA_256 = "scram-sha-256"
    MD5 = "md5"
    PEER = "peer"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


# =============================================================================
# Manifest: Sources
# =============================================================================


ENTRY_NAME_PATTERN = r"^[a-z0-9_][a-z0-9_-]*$"
COMMIT_PATTERN = r"^[0-9a-f]{40}$"


class ManifestModel(BaseModel):
    """Base for manifest models: camelCase aliases, unknown keys rejected."""
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class BuiltinSource(ManifestModel):
    """Ships with the server itself."""
    type: Literal["builtin"] = "builtin"


class GitSource(ManifestModel):
    """Git repository pinned to a tag and/or an exact commit."""
    type: Literal["git"] = "git"
    repository: str
    tag: Optional[str] = None
    commit: Optional[str] = Field(default=None, pattern=COMMIT_PATTERN)

    @model_validator(mode="after")
    def require_pin(self) -> "GitSource":
        if not self.tag and not self.commit:
            raise ValueError("git source requires 'tag' or 'commit'")
        return self


class GitRefSource(ManifestModel):
    """Git repository at a named ref, optionally pinned to a commit."""
    type: Literal["git-ref"] = "git-ref"
    repository: str
    ref: str
    commit: Optional[str] = Field(default=None, pattern=COMMIT_PATTERN)


Source = Annotated[
    Union[BuiltinSource, GitSource, GitRefSource],
    Field(discriminator="type"),
]


# =============================================================================
# Manifest: Build & Runtime
# =============================================================================


SED_EXPRESSION_PATTERN = r"^s/(.+?)/(.*?)(?:/([gi]*))?$"


class PatchSpec(ManifestModel):
    """
    A sed-style line edit applied to the checkout before building.

    `target` is a path or glob relative to the checkout. When omitted the
    target files are inferred from the expression.
    """
    expression: str = Field(pattern=SED_EXPRESSION_PATTERN)
    target: Optional[str] = None


class BuildSpec(ManifestModel):
    """How a compiled entry is built."""
    type: BuildType
    subdir: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    no_default_features: bool = Field(default=False, alias="noDefaultFeatures")
    script: Optional[str] = None
    patches: List[PatchSpec] = Field(default_factory=list)

    @field_validator("patches", mode="before")
    @classmethod
    def normalize_patches(cls, value):
        """Accept bare expression strings next to {expression, target} objects."""
        if not isinstance(value, list):
            return value
        return [{"expression": item} if isinstance(item, str) else item for item in value]

    @field_validator("subdir")
    @classmethod
    def relative_subdir(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and (value.startswith("/") or ".." in value.split("/")):
            raise ValueError(f"subdir must stay inside the checkout: {value}")
        return value


class RuntimeSpec(ManifestModel):
    """
    Runtime loading behaviour.

    `loading` is authoritative. Manifests written with only the legacy
    booleans get it derived; manifests that set it get the booleans derived.
    """
    shared_preload: bool = Field(default=False, alias="sharedPreload")
    default_enable: bool = Field(default=False, alias="defaultEnable")
    preload_only: bool = Field(default=False, alias="preloadOnly")
    preload_library_name: Optional[str] = Field(default=None, alias="preloadLibraryName")
    loading: Optional[RuntimeLoading] = None
    notes: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def reconcile_loading(self) -> "RuntimeSpec":
        if self.loading is None:
            if not self.preload_only:
                self.loading = RuntimeLoading.STANDARD_CREATE_EXTENSION
            elif self.shared_preload:
                self.loading = RuntimeLoading.SHARED_LIBRARY_PRELOAD
            else:
                self.loading = RuntimeLoading.SQL_ONLY_SCHEMA_BOOTSTRAP
            return self

        if self.loading == RuntimeLoading.SQL_ONLY_SCHEMA_BOOTSTRAP and self.shared_preload:
            raise ValueError("loading 'sql_only_schema_bootstrap' cannot set sharedPreload")
        if "preload_only" in self.model_fields_set and self.preload_only != (
            self.loading != RuntimeLoading.STANDARD_CREATE_EXTENSION
        ):
            raise ValueError(f"preloadOnly contradicts loading '{self.loading.value}'")

        self.preload_only = self.loading != RuntimeLoading.STANDARD_CREATE_EXTENSION
        if self.loading == RuntimeLoading.SHARED_LIBRARY_PRELOAD:
            self.shared_preload = True
        return self


# =============================================================================
# Manifest: Entries
# =============================================================================


class ManifestEntry(ManifestModel):
    """One bundled extension, tool or builtin module."""
    name: str = Field(pattern=ENTRY_NAME_PATTERN)
    display_name: Optional[str] = Field(default=None, alias="displayName")
    kind: EntryKind
    category: str
    description: str = ""
    source: Source
    build: Optional[BuildSpec] = None
    runtime: Optional[RuntimeSpec] = None
    dependencies: List[str] = Field(default_factory=list)
    provides: List[str] = Field(default_factory=list)
    apt_packages: List[str] = Field(default_factory=list, alias="aptPackages")
    notes: List[str] = Field(default_factory=list)
    install_via: Optional[InstallVia] = None
    enabled: bool = True
    disabled_reason: Optional[str] = Field(default=None, alias="disabledReason")
    pgdg_version: Optional[str] = Field(default=None, alias="pgdgVersion")

    @property
    def is_pgdg(self) -> bool:
        return self.install_via == InstallVia.PGDG

    @property
    def is_compiled(self) -> bool:
        """Built from source by the orchestrator."""
        return self.kind != EntryKind.BUILTIN and not self.is_pgdg

    @property
    def is_default_enabled(self) -> bool:
        return self.enabled and self.runtime is not None and self.runtime.default_enable

    @property
    def creates_extension(self) -> bool:
        """Whether the bootstrap script issues CREATE EXTENSION for this entry."""
        return (
            self.is_default_enabled
            and self.kind != EntryKind.TOOL
            and self.runtime.loading == RuntimeLoading.STANDARD_CREATE_EXTENSION
        )

    @property
    def preload_library(self) -> Optional[str]:
        """Library name in shared_preload_libraries when preloaded by default."""
        if self.is_default_enabled and self.runtime.shared_preload:
            return self.runtime.preload_library_name or self.name
        return None

    @property
    def label(self) -> str:
        return self.display_name or self.name


class Manifest(ManifestModel):
    """The validated manifest document."""
    generated_at: Optional[str] = Field(default=None, alias="generatedAt")
    entries: List[ManifestEntry] = Field(default_factory=list)

    def get(self, name: str) -> Optional[ManifestEntry]:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None

    def names(self) -> List[str]:
        return [entry.name for entry in self.entries]

    def enabled_entries(self) -> List[ManifestEntry]:
        return [entry for entry in self.entries if entry.enabled]

    def compiled_entries(self) -> List[ManifestEntry]:
        return [entry for entry in self.entries if entry.is_compiled]

    def pgdg_entries(self) -> List[ManifestEntry]:
        return [entry for entry in self.entries if entry.is_pgdg]

    def builtin_entries(self) -> List[ManifestEntry]:
        return [entry for entry in self.entries if entry.kind == EntryKind.BUILTIN]

    def default_enabled_extensions(self) -> List[ManifestEntry]:
        """Entries the bootstrap script creates, in manifest order."""
        return [entry for entry in self.entries if entry.creates_extension]

    def default_preload_libraries(self) -> List[str]:
        """Sorted, de-duplicated shared_preload_libraries tokens."""
        return sorted({
            entry.preload_library for entry in self.entries if entry.preload_library
        })


# =============================================================================
# Server Settings & Access Rules
# =============================================================================


SettingValue = Union[bool, int, float, str, List[str]]


class PgHbaRule(ManifestModel):
    """A pg_hba.conf line, optionally restricted to some roles."""
    type: HbaType
    database: str
    user: str
    address: Optional[str] = None
    method: HbaMethod
    comment: Optional[str] = None
    roles: Optional[List[Role]] = Field(default=None, alias="stackSpecific")

    @model_validator(mode="after")
    def address_matches_type(self) -> "PgHbaRule":
        if self.type == HbaType.LOCAL and self.address:
            raise ValueError("local pg_hba rules take no address")
        if self.type != HbaType.LOCAL and not self.address:
            raise ValueError(f"{self.type.value} pg_hba rules require an address")
        return self

    def applies_to(self, role: Role) -> bool:
        return self.roles is None or role in self.roles


class ServerSettings(ManifestModel):
    """
    Common settings plus per-role overrides and access rules.

    Setting keys use camelCase and are translated to GUC names on output.
    """
    common: Dict[str, SettingValue] = Field(default_factory=dict)
    roles: Dict[Role, Dict[str, SettingValue]] = Field(default_factory=dict, alias="stacks")
    pg_hba_rules: List[PgHbaRule] = Field(default_factory=list, alias="pgHbaRules")

    def for_role(self, role: Role) -> Dict[str, SettingValue]:
        """Common settings merged with the role override; override wins."""
        merged = dict(self.common)
        merged.update(self.roles.get(role, {}))
        return merged

    def hba_rules_for(self, role: Role) -> List[PgHbaRule]:
        return [rule for rule in self.pg_hba_rules if rule.applies_to(role)]


# =============================================================================
# pgforge.yaml Configuration
# =============================================================================


class BuildSettings(BaseModel):
    """Build orchestrator configuration."""
    pg_major: str = Field(default="18", pattern=r"^\d+$")
    pg_config: str = Field(default="", description="Empty -> /usr/lib/postgresql/<major>/bin/pg_config")
    build_root: str = Field(default="/tmp/extensions-build")
    toolchain_root: str = Field(default="/root/.cargo-pgrx")
    default_pgrx_version: str = Field(default="0.16.1")
    allowed_git_hosts: List[str] = Field(default_factory=lambda: ["github.com", "gitlab.com"])
    jobs: int = Field(default=0, ge=0, description="0 -> CPU count")
    keep_sources: bool = Field(default=False)

    @field_validator("pg_major", mode="before")
    @classmethod
    def major_as_string(cls, value):
        return str(value) if isinstance(value, int) else value

    @property
    def pg_config_path(self) -> str:
        return self.pg_config or f"/usr/lib/postgresql/{self.pg_major}/bin/pg_config"


class ExpectedCounts(BaseModel):
    """Regression guard against silently dropped entries."""
    total: Optional[int] = None
    builtin: Optional[int] = None
    pgdg: Optional[int] = None
    compiled: Optional[int] = None


class ValidationSettings(BaseModel):
    expected_counts: Optional[ExpectedCounts] = None


class OutputSettings(BaseModel):
    """Generated artifact configuration."""
    directory: str = Field(default="generated")
    roles: List[Role] = Field(default_factory=lambda: list(Role))
    status_table: str = Field(default="pgforge_status", pattern=r"^[a-z_][a-z0-9_]*$")


class LoggingSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    level: LogLevel = Field(default=LogLevel.INFO)
    json_format: bool = Field(default=False, alias="json")
    directory: Optional[str] = None


class ForgeConfig(BaseModel):
    """Root model of pgforge.yaml."""
    version: str = Field(default="0.1.0")
    build: BuildSettings = Field(default_factory=BuildSettings)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
