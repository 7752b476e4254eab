"""
Per-version cargo-pgrx provisioning.

Each cargo-pgrx version gets its own install root. ``cargo pgrx init`` runs
once per (tool, version, pg_major); the ToolchainRegistry passed in by the
orchestrator remembers which triples are done.
"""

import os
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..manifest.schema import BuildSettings, BuildSpec
from ..system.forge_logger import get_logger
from .runner import CommandRunner

logger = get_logger("build")

ToolchainKey = Tuple[str, str, str]

PGRX_DEPENDENCY_PATTERNS = (
    re.compile(r'^pgrx\s*=\s*"=?([^"]+)"'),
    re.compile(r'^pgrx\s*=\s*\{[^}]*\bversion\s*=\s*"=?([^"]+)"'),
)


class ToolchainRegistry:
    """
    Toolchains already initialized in this process.

    Not thread-safe; entries are built one at a time.
    """

    def __init__(self):
        self._roots: Dict[ToolchainKey, Path] = {}

    def __contains__(self, key: ToolchainKey) -> bool:
        return key in self._roots

    def __len__(self) -> int:
        return len(self._roots)

    def get(self, key: ToolchainKey) -> Optional[Path]:
        return self._roots.get(key)

    def mark(self, key: ToolchainKey, root: Path) -> None:
        self._roots[key] = root

    def keys(self) -> List[ToolchainKey]:
        return list(self._roots)


def read_pgrx_version(cargo_toml: Path) -> Optional[str]:
    """pgrx version pinned in the [dependencies] table of a Cargo.toml, if any."""
    if not cargo_toml.exists():
        return None

    in_dependencies = False
    for raw in cargo_toml.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if line.startswith("["):
            in_dependencies = line == "[dependencies]"
            continue
        if not in_dependencies:
            continue
        for pattern in PGRX_DEPENDENCY_PATTERNS:
            match = pattern.match(line)
            if match:
                return match.group(1).strip()
    return None


class CargoPgrxToolchain:
    """Provision cargo-pgrx and run ``cargo pgrx install`` for an entry."""

    TOOL = "cargo-pgrx"

    def __init__(self, runner: CommandRunner, registry: ToolchainRegistry, settings: BuildSettings):
        self.runner = runner
        self.registry = registry
        self.settings = settings

    def install_root(self, version: str) -> Path:
        return Path(self.settings.toolchain_root) / version

    def path_env(self, root: Path) -> Dict[str, str]:
        return {"PATH": f"{root / 'bin'}{os.pathsep}{os.environ.get('PATH', '')}"}

    def ensure_installed(self, version: str) -> Path:
        root = self.install_root(version)
        if (root / "bin" / "cargo-pgrx").exists():
            logger.info(f"cargo-pgrx {version} already installed at {root}", extra={"tag": "ext-build"})
            return root

        root.mkdir(parents=True, exist_ok=True)
        # RUSTFLAGS meant for extension builds breaks building cargo-pgrx itself
        self.runner.run(
            ["cargo", "install", "--locked", "cargo-pgrx", "--version", version, "--root", str(root)],
            unset=["RUSTFLAGS"],
        )
        return root

    def ensure_initialized(self, version: str) -> Path:
        key = (self.TOOL, version, self.settings.pg_major)
        if key in self.registry:
            return self.registry.get(key)

        root = self.ensure_installed(version)
        self.runner.run(
            ["cargo", "pgrx", "init", f"--pg{self.settings.pg_major}", self.settings.pg_config_path],
            env=self.path_env(root),
        )
        self.registry.mark(key, root)
        return root

    def install(self, workdir: Path, build: BuildSpec) -> None:
        version = read_pgrx_version(workdir / "Cargo.toml") or self.settings.default_pgrx_version
        root = self.ensure_initialized(version)

        lock_file = workdir / "Cargo.lock"
        if lock_file.exists():
            lock_file.unlink()

        args = ["cargo", "pgrx", "install", "--release", "--pg-config", self.settings.pg_config_path]
        if build.features:
            args += ["--features", ",".join(build.features)]
        if build.no_default_features:
            args.append("--no-default-features")

        logger.info(
            f"cargo pgrx {version} install ({','.join(build.features) or 'default'}) in {workdir}",
            extra={"tag": "ext-build"},
        )
        self.runner.run(args, cwd=workdir, env=self.path_env(root))
