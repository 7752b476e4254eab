"""
ConfigConverter - Generate runtime artifacts from the extensions manifest
=========================================================================

Generates:
- postgresql-<role>.conf / pg_hba-<role>.conf (one pair per role)
- 01-extensions.sql (bootstrap script)
- healthcheck.sh
- pgdg-packages.txt (vendor packages for the image build)
- apt-build-deps.txt (build dependencies of compiled entries)
- preload-libraries.txt (default shared_preload_libraries)

Every run regenerates every file from scratch.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from ..system.forge_logger import get_logger
from .base_config import default_server_settings
from .config_generator import generate_pg_hba, generate_postgresql_conf
from .healthcheck import generate_healthcheck
from .schema import ForgeConfig, Manifest, Role, ServerSettings
from .sql_generator import generate_init_sql

logger = get_logger("manifest")

TXT_HEADER = "# AUTO-GENERATED from extensions manifest - DO NOT EDIT DIRECTLY"

# manifest name -> PGDG apt package suffix (postgresql-<major>-<suffix>)
PGDG_PACKAGE_NAMES = {
    "pg_repack": "repack",
    "hll": "hll",
    "postgis": "postgis-3",
    "vector": "pgvector",
    "rum": "rum",
    "hypopg": "hypopg",
    "http": "http",
    "pg_cron": "cron",
    "set_user": "set-user",
    "pgrouting": "pgrouting",
    "pgaudit": "pgaudit",
    "pg_partman": "partman",
    "plpgsql_check": "plpgsql-check",
}


def pgdg_package_name(entry_name: str) -> str:
    return PGDG_PACKAGE_NAMES.get(entry_name, entry_name.replace("_", "-"))


class ConfigConverter:
    """
    Write every manifest-derived artifact into one output directory.

    The three generators share no state; the converter only sequences the
    writes and records which files were produced.
    """

    def __init__(
        self,
        manifest: Manifest,
        config: Optional[ForgeConfig] = None,
        settings: Optional[ServerSettings] = None,
        output_dir: Optional[Path] = None,
    ):
        """
        Initialize converter.

        Args:
            manifest: The validated manifest
            config: pgforge configuration (roles, status table)
            settings: Server settings, defaults to the built-in base settings
            output_dir: Directory for generated files
        """
        self.manifest = manifest
        self.config = config or ForgeConfig()
        self.settings = settings or default_server_settings()
        self.output_dir = Path(output_dir or self.config.output.directory)
        self._generated_files: List[Path] = []

    @property
    def generated_files(self) -> List[Path]:
        """List of files generated in last apply_all() call."""
        return self._generated_files

    def apply_all(self, roles: Optional[List[Role]] = None) -> List[Path]:
        """
        Generate all artifacts.

        Returns:
            List of generated file paths
        """
        self._generated_files = []
        self.output_dir.mkdir(parents=True, exist_ok=True)

        for role in roles or self.config.output.roles:
            self._generate_server_config(role)
        self._generate_init_sql()
        self._generate_healthcheck()
        self._generate_package_lists()

        logger.info(f"Generated {len(self._generated_files)} files in {self.output_dir}")
        return self._generated_files

    def _write(self, filename: str, content: str, mode: Optional[int] = None) -> Path:
        path = self.output_dir / filename
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
        if mode is not None:
            os.chmod(path, mode)
        self._generated_files.append(path)
        logger.debug(f"Wrote {path}")
        return path

    def _generate_server_config(self, role: Role) -> None:
        self._write(
            f"postgresql-{role.value}.conf",
            generate_postgresql_conf(self.settings, role, self.manifest),
        )
        self._write(f"pg_hba-{role.value}.conf", generate_pg_hba(self.settings, role))

    def _generate_init_sql(self) -> Path:
        return self._write(
            "01-extensions.sql",
            generate_init_sql(
                self.manifest.default_enabled_extensions(),
                status_table=self.config.output.status_table,
            ),
        )

    def _generate_healthcheck(self) -> Path:
        return self._write(
            "healthcheck.sh",
            generate_healthcheck(
                self.manifest.default_enabled_extensions(),
                self.manifest.default_preload_libraries(),
                status_table=self.config.output.status_table,
            ),
            mode=0o755,
        )

    def _generate_package_lists(self) -> None:
        pgdg_lines = [
            f"postgresql-${{PG_MAJOR}}-{pgdg_package_name(entry.name)}={entry.pgdg_version}"
            for entry in self.manifest.pgdg_entries()
            if entry.enabled
        ]
        self._write("pgdg-packages.txt", "\n".join([TXT_HEADER] + pgdg_lines) + "\n")

        apt_packages = sorted({
            package
            for entry in self.manifest.compiled_entries()
            if entry.enabled
            for package in entry.apt_packages
        })
        self._write("apt-build-deps.txt", "\n".join([TXT_HEADER] + apt_packages) + "\n")

        preload = self.manifest.default_preload_libraries()
        self._write("preload-libraries.txt", "\n".join([TXT_HEADER, ",".join(preload)]) + "\n")
