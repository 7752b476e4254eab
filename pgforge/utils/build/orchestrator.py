"""
BuildOrchestrator - compile and install every non-packaged entry
================================================================

Entries are processed strictly in manifest order, one at a time:

1. skip builtin, PGDG-packaged and disabled entries
2. fetch the source (host allow-list first, commit-exact checkout)
3. apply manifest patches
4. dispatch on build.type
5. run the entry's post-install hook, if it has one

The first failure aborts the run. Nothing is retried.
"""

import os
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from tqdm import tqdm

from ..manifest.schema import BuildSettings, EntryKind, Manifest, ManifestEntry
from ..system.errors import ForgeError
from ..system.forge_logger import get_logger
from .handlers import BuildHandlers
from .patches import PatchReport, apply_patches
from .runner import CommandRunner
from .sources import SourceFetcher
from .toolchain import CargoPgrxToolchain, ToolchainRegistry

logger = get_logger("build")

LOG_TAG = {"tag": "ext-build"}


@dataclass
class BuildResult:
    """What one orchestrator run did."""
    built: List[str] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)
    commits: Dict[str, str] = field(default_factory=dict)
    patches: PatchReport = field(default_factory=PatchReport)


def toolkit_post_install(orchestrator: "BuildOrchestrator", entry: ManifestEntry, checkout: Path) -> None:
    """timescaledb_toolkit ships a helper crate that finishes the install."""
    orchestrator.runner.run(
        [
            "cargo", "run", "--manifest-path", "tools/post-install/Cargo.toml",
            "--", orchestrator.settings.pg_config_path,
        ],
        cwd=checkout,
    )


POST_INSTALL_HOOKS: Dict[str, Callable[["BuildOrchestrator", ManifestEntry, Path], None]] = {
    "timescaledb_toolkit": toolkit_post_install,
}


class BuildOrchestrator:
    """
    Build every compiled entry of a validated manifest.

    Usage:
        orchestrator = BuildOrchestrator(config.build)
        result = orchestrator.run(manifest)
    """

    def __init__(
        self,
        settings: Optional[BuildSettings] = None,
        build_root: Optional[str] = None,
        runner: Optional[CommandRunner] = None,
        fetcher: Optional[SourceFetcher] = None,
        registry: Optional[ToolchainRegistry] = None,
    ):
        self.settings = settings or BuildSettings()
        self.build_root = Path(build_root or self.settings.build_root)
        self.runner = runner or CommandRunner()
        self.fetcher = fetcher or SourceFetcher(self.settings.allowed_git_hosts)
        self.registry = registry if registry is not None else ToolchainRegistry()
        self.jobs = self.settings.jobs or os.cpu_count() or 1
        self.handlers = BuildHandlers(
            self.runner,
            self.settings,
            CargoPgrxToolchain(self.runner, self.registry, self.settings),
            self.jobs,
        )

    @staticmethod
    def skip_reason(entry: ManifestEntry) -> Optional[str]:
        if entry.kind == EntryKind.BUILTIN:
            return "builtin"
        if entry.is_pgdg:
            return "installed from PGDG package"
        if not entry.enabled:
            return f"disabled: {entry.disabled_reason}"
        return None

    def run(self, manifest: Manifest) -> BuildResult:
        result = BuildResult()
        self.build_root.mkdir(parents=True, exist_ok=True)
        logger.info(
            f"Build root {self.build_root}, PG {self.settings.pg_major}, "
            f"pg_config {self.settings.pg_config_path}, jobs {self.jobs}",
            extra=LOG_TAG,
        )

        checkouts: List[Path] = []
        try:
            entries = tqdm(
                manifest.entries, desc="Building extensions", unit="entry",
                disable=not sys.stderr.isatty(),
            )
            for entry in entries:
                reason = self.skip_reason(entry)
                if reason:
                    logger.info(f"Skipping {entry.name} ({reason})", extra=LOG_TAG)
                    result.skipped[entry.name] = reason
                    continue

                checkout = self.build_root / entry.name
                checkouts.append(checkout)
                self.build_entry(entry, checkout, result)
        finally:
            if not self.settings.keep_sources:
                for checkout in checkouts:
                    shutil.rmtree(checkout, ignore_errors=True)

        logger.info(
            f"Built {len(result.built)} entries, skipped {len(result.skipped)}, "
            f"stale patches {result.patches.stale_count}",
            extra=LOG_TAG,
        )
        return result

    def build_entry(self, entry: ManifestEntry, checkout: Path, result: BuildResult) -> None:
        result.commits[entry.name] = self.fetcher.fetch(entry.source, checkout)
        result.patches.merge(apply_patches(entry, checkout))

        workdir = checkout / entry.build.subdir if entry.build.subdir else checkout
        if not workdir.is_dir():
            raise ForgeError(f"{entry.name}: build subdir not found: {entry.build.subdir}")

        self.handlers.dispatch(entry, workdir)

        hook = POST_INSTALL_HOOKS.get(entry.name)
        if hook is not None:
            logger.info(f"Running post-install hook for {entry.name}", extra=LOG_TAG)
            hook(self, entry, checkout)

        result.built.append(entry.name)
