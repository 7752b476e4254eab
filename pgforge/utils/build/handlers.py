"""
Build handlers, one per BuildType.

The dispatch table must cover every BuildType member; a missing handler
is detected when BuildHandlers is constructed, not when an entry hits it.
"""

from pathlib import Path
from typing import Callable, Dict, List

from ..manifest.schema import BuildSettings, BuildType, ManifestEntry
from ..system.errors import UnsupportedBuildTypeError
from ..system.forge_logger import get_logger
from .runner import CommandRunner
from .toolchain import CargoPgrxToolchain

logger = get_logger("build")

# Extra ./configure flags required upstream
CONFIGURE_FLAGS: Dict[str, List[str]] = {
    "postgis": ["--with-protobuf=yes", "--with-pcre=yes"],
}

# Make-typed entries that are not C projects
PERL_MAKE_ENTRIES = {"pgbadger"}


class BuildHandlers:
    """
    Dispatch an entry to the build flow named by its build type.

    Usage:
        handlers = BuildHandlers(runner, settings, toolchain, jobs=8)
        handlers.dispatch(entry, workdir)
    """

    def __init__(
        self,
        runner: CommandRunner,
        settings: BuildSettings,
        toolchain: CargoPgrxToolchain,
        jobs: int,
    ):
        self.runner = runner
        self.settings = settings
        self.toolchain = toolchain
        self.jobs = jobs

        self._handlers: Dict[BuildType, Callable[[ManifestEntry, Path], None]] = {
            BuildType.PGXS: self.build_pgxs,
            BuildType.CARGO_PGRX: self.build_cargo_pgrx,
            BuildType.TIMESCALEDB: self.build_timescaledb,
            BuildType.AUTOTOOLS: self.build_autotools,
            BuildType.CMAKE: self.build_cmake,
            BuildType.MESON: self.build_meson,
            BuildType.MAKE: self.build_make,
            BuildType.SCRIPT: self.build_script,
        }
        missing = set(BuildType) - set(self._handlers)
        if missing:
            raise UnsupportedBuildTypeError(
                f"No build handler for: {', '.join(sorted(t.value for t in missing))}"
            )

    @property
    def pg_config(self) -> str:
        return self.settings.pg_config_path

    def dispatch(self, entry: ManifestEntry, workdir: Path) -> None:
        if entry.build is None:
            raise UnsupportedBuildTypeError(f"{entry.name}: no build spec")
        try:
            handler = self._handlers[BuildType(entry.build.type)]
        except (KeyError, ValueError):
            raise UnsupportedBuildTypeError(f"{entry.name}: unknown build type {entry.build.type!r}")

        logger.info(f"Building {entry.name} ({entry.build.type.value})", extra={"tag": "ext-build"})
        handler(entry, workdir)

    # -------------------------------------------------------------------------
    # Flows
    # -------------------------------------------------------------------------

    def build_pgxs(self, entry: ManifestEntry, workdir: Path) -> None:
        make = ["make", "-C", str(workdir), "USE_PGXS=1", f"PG_CONFIG={self.pg_config}"]
        self.runner.run(make + [f"-j{self.jobs}"])
        self.runner.run(make + ["install"])

    def build_cargo_pgrx(self, entry: ManifestEntry, workdir: Path) -> None:
        self.toolchain.install(workdir, entry.build)

    def build_timescaledb(self, entry: ManifestEntry, workdir: Path) -> None:
        self.runner.run(
            ["./bootstrap", "-DAPACHE_ONLY=OFF", "-DREGRESS_CHECKS=OFF", f"-DPG_CONFIG={self.pg_config}"],
            cwd=workdir,
        )
        build_dir = workdir / "build"
        if (build_dir / "build.ninja").exists():
            self.runner.run(["ninja", f"-j{self.jobs}"], cwd=build_dir)
            self.runner.run(["ninja", "install"], cwd=build_dir)
        else:
            self.runner.run(["make", f"-j{self.jobs}"], cwd=build_dir)
            self.runner.run(["make", "install"], cwd=build_dir)

    def build_autotools(self, entry: ManifestEntry, workdir: Path) -> None:
        if (workdir / "autogen.sh").exists():
            self.runner.run(["./autogen.sh"], cwd=workdir)
        self.runner.run(
            ["./configure", f"--with-pgconfig={self.pg_config}"] + CONFIGURE_FLAGS.get(entry.name, []),
            cwd=workdir,
        )
        self.runner.run(["make", f"-j{self.jobs}"], cwd=workdir)
        self.runner.run(["make", "install"], cwd=workdir)

    def build_cmake(self, entry: ManifestEntry, workdir: Path) -> None:
        build_dir = workdir / ".cmake-build"
        self.runner.run(["cmake", "-S", str(workdir), "-B", str(build_dir), "-DCMAKE_BUILD_TYPE=Release"])
        self.runner.run(["cmake", "--build", str(build_dir), "--parallel", str(self.jobs)])
        self.runner.run(["cmake", "--install", str(build_dir)])

    def build_meson(self, entry: ManifestEntry, workdir: Path) -> None:
        build_dir = workdir / ".meson-build"
        self.runner.run(["meson", "setup", str(build_dir), str(workdir), "--prefix=/usr/local"])
        self.runner.run(["ninja", "-C", str(build_dir), f"-j{self.jobs}"])
        self.runner.run(["ninja", "-C", str(build_dir), "install"])

    def build_make(self, entry: ManifestEntry, workdir: Path) -> None:
        if entry.name in PERL_MAKE_ENTRIES:
            self.runner.run(["perl", "Makefile.PL"], cwd=workdir)
            self.runner.run(["make"], cwd=workdir)
            self.runner.run(["make", "install"], cwd=workdir)
            return
        self.runner.run(["make", "-C", str(workdir), f"-j{self.jobs}"])
        self.runner.run(["make", "-C", str(workdir), "install"])

    def build_script(self, entry: ManifestEntry, workdir: Path) -> None:
        raise UnsupportedBuildTypeError(
            f"{entry.name}: build type 'script' is reserved and not implemented"
        )
