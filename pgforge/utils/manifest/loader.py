"""
ManifestLoader - Load and validate the extensions manifest
===========================================================

Responsibilities:
- Load the manifest JSON document
- Gate it through the validator (all violations at once)
- Load pgforge.yaml configuration
- Resolve environment variables in configuration values
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .schema import ForgeConfig, Manifest
from .validator import ManifestValidator, ValidationReport


# =============================================================================
# Environment Variable Resolution
# =============================================================================


ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")


def resolve_env_vars(value: Any) -> Any:
    """
    Resolve environment variables in a value.

    Supports:
    - ${VAR_NAME} - Required variable
    - ${VAR_NAME:default} - Variable with default
    """
    if isinstance(value, str):
        def replacer(match):
            var_name = match.group(1)
            default = match.group(2)
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default is not None:
                return default
            return match.group(0)  # Keep original if no value and no default

        return ENV_VAR_PATTERN.sub(replacer, value)

    elif isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    return value


# =============================================================================
# Configuration
# =============================================================================


CONFIG_FILENAME = "pgforge.yaml"
BUNDLED_CONFIG = Path(__file__).resolve().parents[2] / CONFIG_FILENAME


def load_config(path: Optional[str] = None, base_dir: Optional[str] = None) -> ForgeConfig:
    """
    Load pgforge.yaml.

    Lookup order: explicit path, <base_dir>/pgforge.yaml, bundled defaults.
    """
    if path:
        config_file = Path(path)
        if not config_file.exists():
            raise FileNotFoundError(f"Config not found: {config_file}")
    else:
        local = (Path(base_dir) if base_dir else Path.cwd()) / CONFIG_FILENAME
        config_file = local if local.exists() else BUNDLED_CONFIG

    with open(config_file, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return ForgeConfig.model_validate(resolve_env_vars(data))


# =============================================================================
# ManifestLoader
# =============================================================================


class ManifestLoader:
    """
    Load the extensions manifest and gate it through validation.

    Usage:
        loader = ManifestLoader(config)
        manifest = loader.load("extensions.manifest.json")   # raises on violations

        ok, errors = loader.validate("extensions.manifest.json")
    """

    DEFAULT_FILENAME = "extensions.manifest.json"

    def __init__(self, config: Optional[ForgeConfig] = None, base_dir: Optional[str] = None):
        self.config = config or ForgeConfig()
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()
        self._manifest: Optional[Manifest] = None
        self._manifest_path: Optional[Path] = None
        self._report: Optional[ValidationReport] = None

    @property
    def manifest_path(self) -> Path:
        """Get the manifest file path."""
        if self._manifest_path:
            return self._manifest_path
        return self.base_dir / self.DEFAULT_FILENAME

    @property
    def manifest(self) -> Optional[Manifest]:
        """Get the loaded manifest."""
        return self._manifest

    @property
    def report(self) -> Optional[ValidationReport]:
        """Report of the last validation run."""
        return self._report

    def exists(self) -> bool:
        """Check if manifest file exists."""
        return self.manifest_path.exists()

    def read_raw(self, path: Optional[str] = None) -> Dict[str, Any]:
        """Read the manifest JSON without any validation."""
        if path:
            self._manifest_path = Path(path)

        manifest_file = self.manifest_path
        if not manifest_file.exists():
            raise FileNotFoundError(f"Manifest not found: {manifest_file}")

        with open(manifest_file, "r", encoding="utf-8") as f:
            return json.load(f)

    def check(self, path: Optional[str] = None) -> ValidationReport:
        """Run the validator and keep its report."""
        validator = ManifestValidator(expected_counts=self.config.validation.expected_counts)
        self._report = validator.validate(self.read_raw(path))
        return self._report

    def validate(self, path: Optional[str] = None) -> Tuple[bool, List[str]]:
        """
        Validate the manifest.

        Returns:
            Tuple of (is_valid, list of errors)
        """
        report = self.check(path)
        return report.ok, list(report.errors)

    def load(self, path: Optional[str] = None) -> Manifest:
        """
        Load and validate the manifest.

        Raises:
            FileNotFoundError: If manifest file doesn't exist
            ManifestSchemaError: If any violation was found
        """
        report = self.check(path)
        report.raise_for_errors()
        self._manifest = report.manifest
        return self._manifest
