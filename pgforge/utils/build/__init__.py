"""
Extension build orchestration.

Components:
- orchestrator: Sequential per-entry build driver
- sources: Allow-listed, commit-exact git checkout
- patches: sed-style patch application with stale-patch reporting
- toolchain: Per-version cargo-pgrx provisioning
- handlers: One build flow per build type
- runner: subprocess wrapper
"""

from .handlers import BuildHandlers
from .orchestrator import BuildOrchestrator, BuildResult
from .patches import PatchReport, apply_patches
from .runner import CommandRunner
from .sources import SourceFetcher, validate_repository
from .toolchain import CargoPgrxToolchain, ToolchainRegistry

__all__ = [
    "BuildHandlers",
    "BuildOrchestrator",
    "BuildResult",
    "PatchReport",
    "apply_patches",
    "CommandRunner",
    "SourceFetcher",
    "validate_repository",
    "CargoPgrxToolchain",
    "ToolchainRegistry",
]
