"""
Tests for pgforge.utils.build.toolchain and handlers
=====================================================
"""

from unittest.mock import MagicMock

import pytest

from pgforge.utils.build.handlers import BuildHandlers
from pgforge.utils.build.toolchain import CargoPgrxToolchain, ToolchainRegistry, read_pgrx_version
from pgforge.utils.manifest.schema import BuildSettings, BuildSpec, BuildType, ManifestEntry
from pgforge.utils.system.errors import UnsupportedBuildTypeError


def _settings(tmp_path, **overrides):
    values = {"pg_major": "18", "toolchain_root": str(tmp_path / "toolchains")}
    values.update(overrides)
    return BuildSettings(**values)


def _entry(build_type, name="demo", **build):
    return ManifestEntry.model_validate({
        "name": name,
        "kind": "extension",
        "category": "test",
        "source": {"type": "git", "repository": "https://github.com/example/demo.git", "tag": "v1.0.0"},
        "build": dict(type=build_type, **build),
    })


def _commands(runner):
    return [call.args[0] for call in runner.run.call_args_list]


class TestReadPgrxVersion:
    """Tests for Cargo.toml parsing."""

    def test_plain_version(self, tmp_path):
        """Test pgrx = "=x.y.z"."""
        cargo = tmp_path / "Cargo.toml"
        cargo.write_text('[package]\nname = "demo"\n\n[dependencies]\npgrx = "=0.12.9"\n')
        assert read_pgrx_version(cargo) == "0.12.9"

    def test_table_version(self, tmp_path):
        """Test inline table form."""
        cargo = tmp_path / "Cargo.toml"
        cargo.write_text('[dependencies]\npgrx = { version = "0.16.1", default-features = false }\n')
        assert read_pgrx_version(cargo) == "0.16.1"

    def test_dev_dependency_ignored(self, tmp_path):
        """Test pgrx outside [dependencies] does not count."""
        cargo = tmp_path / "Cargo.toml"
        cargo.write_text('[dev-dependencies]\npgrx = "=0.11.0"\n')
        assert read_pgrx_version(cargo) is None

    def test_missing_file(self, tmp_path):
        """Test missing Cargo.toml."""
        assert read_pgrx_version(tmp_path / "Cargo.toml") is None


class TestCargoPgrxToolchain:
    """Tests for toolchain provisioning."""

    def test_init_once_per_version_and_major(self, tmp_path):
        """Test cargo pgrx init runs once per (version, major)."""
        runner = MagicMock()
        registry = ToolchainRegistry()
        toolchain = CargoPgrxToolchain(runner, registry, _settings(tmp_path))

        toolchain.ensure_initialized("0.16.1")
        toolchain.ensure_initialized("0.16.1")
        toolchain.ensure_initialized("0.12.9")

        init_calls = [cmd for cmd in _commands(runner) if cmd[:3] == ["cargo", "pgrx", "init"]]
        assert len(init_calls) == 2
        assert registry.keys() == [("cargo-pgrx", "0.16.1", "18"), ("cargo-pgrx", "0.12.9", "18")]

    def test_registry_shared_between_toolchains(self, tmp_path):
        """Test a shared registry avoids re-initialization."""
        runner = MagicMock()
        registry = ToolchainRegistry()
        CargoPgrxToolchain(runner, registry, _settings(tmp_path)).ensure_initialized("0.16.1")
        CargoPgrxToolchain(runner, registry, _settings(tmp_path)).ensure_initialized("0.16.1")
        assert len(registry) == 1
        assert sum(1 for cmd in _commands(runner) if cmd[:3] == ["cargo", "pgrx", "init"]) == 1

    def test_install_skipped_when_present(self, tmp_path):
        """Test existing cargo-pgrx binary is reused."""
        runner = MagicMock()
        settings = _settings(tmp_path)
        binary = tmp_path / "toolchains" / "0.16.1" / "bin" / "cargo-pgrx"
        binary.parent.mkdir(parents=True)
        binary.write_text("")
        CargoPgrxToolchain(runner, ToolchainRegistry(), settings).ensure_installed("0.16.1")
        runner.run.assert_not_called()

    def test_install_unsets_rustflags(self, tmp_path):
        """Test cargo install runs without RUSTFLAGS."""
        runner = MagicMock()
        CargoPgrxToolchain(runner, ToolchainRegistry(), _settings(tmp_path)).ensure_installed("0.16.1")
        args, kwargs = runner.run.call_args
        assert args[0][:4] == ["cargo", "install", "--locked", "cargo-pgrx"]
        assert "RUSTFLAGS" in kwargs["unset"]

    def test_install_command(self, tmp_path):
        """Test cargo pgrx install flags and Cargo.lock removal."""
        runner = MagicMock()
        workdir = tmp_path / "src"
        workdir.mkdir()
        (workdir / "Cargo.toml").write_text('[dependencies]\npgrx = "=0.12.9"\n')
        (workdir / "Cargo.lock").write_text("")
        build = BuildSpec(type="cargo-pgrx", features=["pg18", "extra"], no_default_features=True)

        CargoPgrxToolchain(runner, ToolchainRegistry(), _settings(tmp_path)).install(workdir, build)

        last = _commands(runner)[-1]
        assert last[:4] == ["cargo", "pgrx", "install", "--release"]
        assert "--features" in last and "pg18,extra" in last
        assert last[-1] == "--no-default-features"
        assert not (workdir / "Cargo.lock").exists()
        assert any(cmd[-4:-2] == ["--version", "0.12.9"] for cmd in _commands(runner))

    def test_default_version(self, tmp_path):
        """Test the configured default version without a pin."""
        runner = MagicMock()
        workdir = tmp_path / "src"
        workdir.mkdir()
        registry = ToolchainRegistry()
        CargoPgrxToolchain(runner, registry, _settings(tmp_path)).install(workdir, BuildSpec(type="cargo-pgrx"))
        assert registry.keys() == [("cargo-pgrx", "0.16.1", "18")]


class TestBuildHandlers:
    """Tests for build type dispatch."""

    def _handlers(self, tmp_path, runner=None):
        runner = runner or MagicMock()
        settings = _settings(tmp_path)
        toolchain = MagicMock()
        return BuildHandlers(runner, settings, toolchain, jobs=4), runner, toolchain

    def test_every_build_type_has_handler(self, tmp_path):
        """Test the dispatch table is complete."""
        handlers, _, _ = self._handlers(tmp_path)
        assert set(handlers._handlers) == set(BuildType)

    def test_pgxs(self, tmp_path):
        """Test pgxs make and install."""
        handlers, runner, _ = self._handlers(tmp_path)
        handlers.dispatch(_entry("pgxs"), tmp_path)
        build, install = _commands(runner)
        assert build[:4] == ["make", "-C", str(tmp_path), "USE_PGXS=1"]
        assert build[-1] == "-j4"
        assert install[-1] == "install"
        assert "PG_CONFIG=/usr/lib/postgresql/18/bin/pg_config" in build

    def test_cargo_pgrx_delegates(self, tmp_path):
        """Test cargo-pgrx goes through the toolchain."""
        handlers, runner, toolchain = self._handlers(tmp_path)
        entry = _entry("cargo-pgrx", features=["pg18"])
        handlers.dispatch(entry, tmp_path)
        toolchain.install.assert_called_once_with(tmp_path, entry.build)

    def test_autotools_flags(self, tmp_path):
        """Test per-entry configure flags."""
        handlers, runner, _ = self._handlers(tmp_path)
        (tmp_path / "autogen.sh").write_text("")
        handlers.dispatch(_entry("autotools", name="postgis"), tmp_path)
        commands = _commands(runner)
        assert commands[0] == ["./autogen.sh"]
        assert "--with-protobuf=yes" in commands[1]

    def test_make_perl(self, tmp_path):
        """Test pgbadger is built via Makefile.PL."""
        handlers, runner, _ = self._handlers(tmp_path)
        handlers.dispatch(_entry("make", name="pgbadger"), tmp_path)
        assert _commands(runner)[0] == ["perl", "Makefile.PL"]

    def test_timescaledb_make_fallback(self, tmp_path):
        """Test make is used when bootstrap produced no ninja files."""
        handlers, runner, _ = self._handlers(tmp_path)
        handlers.dispatch(_entry("timescaledb", name="timescaledb"), tmp_path)
        commands = _commands(runner)
        assert commands[0][0] == "./bootstrap"
        assert commands[1] == ["make", "-j4"]

    @pytest.mark.parametrize("build_type, install", [
        ("cmake", ["cmake", "--install", ".cmake-build"]),
        ("meson", ["ninja", "-C", ".meson-build", "install"]),
    ])
    def test_generators(self, tmp_path, build_type, install):
        """Test cmake and meson flows end with an install from their build dir."""
        handlers, runner, _ = self._handlers(tmp_path)
        handlers.dispatch(_entry(build_type), tmp_path)
        expected = [str(tmp_path / arg) if arg.startswith(".") else arg for arg in install]
        assert _commands(runner)[-1] == expected

    def test_script_rejected(self, tmp_path):
        """Test the reserved script type always fails."""
        handlers, runner, _ = self._handlers(tmp_path)
        with pytest.raises(UnsupportedBuildTypeError):
            handlers.dispatch(_entry("script", script="build.sh"), tmp_path)
        runner.run.assert_not_called()
