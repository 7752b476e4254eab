"""
Tests for pgforge.utils.manifest.loader
========================================
"""

import json
import os
import tempfile
from pathlib import Path

import pytest
import yaml

from pgforge.utils.manifest.loader import (
    BUNDLED_CONFIG,
    ManifestLoader,
    load_config,
    resolve_env_vars,
)
from pgforge.utils.manifest.schema import ExpectedCounts, ForgeConfig
from pgforge.utils.system.errors import DependencyGraphError, ManifestSchemaError


class TestResolveEnvVars:
    """Tests for environment variable resolution."""

    def test_simple_env_var(self, monkeypatch):
        """Test simple environment variable resolution."""
        monkeypatch.setenv("PGFORGE_TEST_VAR", "test_value")
        assert resolve_env_vars("${PGFORGE_TEST_VAR}") == "test_value"

    def test_env_var_with_default(self):
        """Test environment variable with default value."""
        os.environ.pop("PGFORGE_NONEXISTENT", None)
        assert resolve_env_vars("${PGFORGE_NONEXISTENT:fallback}") == "fallback"

    def test_empty_default(self):
        """Test empty default resolves to empty string."""
        os.environ.pop("PGFORGE_NONEXISTENT", None)
        assert resolve_env_vars("${PGFORGE_NONEXISTENT:}") == ""

    def test_unresolved_kept(self):
        """Test unresolved variable without default is kept verbatim."""
        os.environ.pop("PGFORGE_NONEXISTENT", None)
        assert resolve_env_vars("${PGFORGE_NONEXISTENT}") == "${PGFORGE_NONEXISTENT}"

    def test_nested_resolution(self, monkeypatch):
        """Test resolution in nested dicts and lists."""
        monkeypatch.setenv("PG_MAJOR", "17")
        data = {"build": {"pg_major": "${PG_MAJOR:18}", "hosts": ["${PGFORGE_NONEXISTENT:github.com}"]}}
        os.environ.pop("PGFORGE_NONEXISTENT", None)
        result = resolve_env_vars(data)
        assert result == {"build": {"pg_major": "17", "hosts": ["github.com"]}}

    def test_non_string_untouched(self):
        """Test ints and bools pass through."""
        assert resolve_env_vars({"jobs": 4, "keep": False}) == {"jobs": 4, "keep": False}


class TestLoadConfig:
    """Tests for pgforge.yaml loading."""

    def test_bundled_defaults(self, monkeypatch):
        """Test the bundled config is used when nothing else exists."""
        monkeypatch.delenv("PG_MAJOR", raising=False)
        monkeypatch.delenv("PG_CONFIG", raising=False)
        assert BUNDLED_CONFIG.exists()
        with tempfile.TemporaryDirectory() as tmpdir:
            config = load_config(base_dir=tmpdir)
        assert isinstance(config, ForgeConfig)
        assert config.build.pg_major == "18"
        assert config.build.pg_config_path == "/usr/lib/postgresql/18/bin/pg_config"
        assert "github.com" in config.build.allowed_git_hosts

    def test_local_config_wins(self, monkeypatch):
        """Test ./pgforge.yaml overrides the bundled file."""
        monkeypatch.setenv("PG_MAJOR", "17")
        with tempfile.TemporaryDirectory() as tmpdir:
            with open(Path(tmpdir) / "pgforge.yaml", "w") as f:
                yaml.dump({
                    "build": {"pg_major": "${PG_MAJOR:18}", "allowed_git_hosts": ["git.internal"]},
                    "validation": {"expected_counts": {"total": 3}},
                }, f)
            config = load_config(base_dir=tmpdir)
        assert config.build.pg_major == "17"
        assert config.build.allowed_git_hosts == ["git.internal"]
        assert config.validation.expected_counts.total == 3

    def test_explicit_path_missing(self):
        """Test missing explicit config raises."""
        with pytest.raises(FileNotFoundError):
            load_config("/nonexistent/pgforge.yaml")

    def test_empty_file(self):
        """Test empty config file yields defaults."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "custom.yaml"
            path.write_text("")
            config = load_config(str(path))
        assert config == ForgeConfig()


class TestManifestLoader:
    """Tests for ManifestLoader."""

    def _write(self, tmpdir, data):
        path = Path(tmpdir) / ManifestLoader.DEFAULT_FILENAME
        with open(path, "w") as f:
            json.dump(data, f)
        return path

    def test_load_valid(self, raw_manifest):
        """Test loading a valid manifest."""
        with tempfile.TemporaryDirectory() as tmpdir:
            self._write(tmpdir, raw_manifest)
            loader = ManifestLoader(base_dir=tmpdir)
            assert loader.exists()
            manifest = loader.load()
        assert loader.manifest is manifest
        assert manifest.get("vector") is not None

    def test_missing_file(self):
        """Test missing manifest raises FileNotFoundError."""
        with tempfile.TemporaryDirectory() as tmpdir:
            loader = ManifestLoader(base_dir=tmpdir)
            assert not loader.exists()
            with pytest.raises(FileNotFoundError):
                loader.load()

    def test_validate_returns_errors(self, raw_manifest):
        """Test validate() reports instead of raising."""
        raw_manifest["entries"][3]["dependencies"] = ["missing"]
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self._write(tmpdir, raw_manifest)
            ok, errors = ManifestLoader().validate(str(path))
        assert ok is False
        assert errors == ["vector: dependency 'missing' does not exist"]

    def test_load_raises_dependency_error(self, raw_manifest):
        """Test load() raises the dependency subclass."""
        raw_manifest["entries"][3]["dependencies"] = ["missing"]
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self._write(tmpdir, raw_manifest)
            with pytest.raises(DependencyGraphError):
                ManifestLoader().load(str(path))

    def test_config_counts_applied(self, raw_manifest):
        """Test expected counts come from the config."""
        config = ForgeConfig()
        config.validation.expected_counts = ExpectedCounts(total=99)
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self._write(tmpdir, raw_manifest)
            loader = ManifestLoader(config)
            with pytest.raises(ManifestSchemaError):
                loader.load(str(path))
        assert loader.report.errors == ["Total entry count mismatch: got 7, expected 99"]
