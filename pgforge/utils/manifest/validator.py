"""
ManifestValidator - structural and cross-entry checks
=====================================================

Collects every violation in one pass. Nothing downstream runs on a
manifest with errors; warnings are reported but never block.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..system.errors import DependencyGraphError, ManifestSchemaError
from ..system.forge_logger import get_logger
from .schema import EntryKind, ExpectedCounts, GitSource, Manifest, ManifestEntry

logger = get_logger("manifest")

PGDG_VERSION_PATTERN = re.compile(r"^[\d.]+(\+\w+)?-\d+\.pgdg\d+\+\d+$")


# =============================================================================
# Version Extraction
# =============================================================================


def semantic_version_from_tag(tag: str) -> str:
    """
    Extract the upstream version from a git tag.

        v1.2.3        -> 1.2.3
        REL4_2_0      -> 4.2.0
        ver_1.5.3     -> 1.5.3
        release/2.57  -> 2.57
        wal2json_2_6  -> 2.6
        pgflow@0.7.2  -> 0.7.2
    """
    if re.fullmatch(r"v[\d.]+", tag):
        return tag[1:]

    if tag.startswith("REL"):
        match = re.match(r"REL(\d+)_(\d+)_(\d+)", tag)
        if match:
            return ".".join(match.groups())

    if tag.startswith("ver_"):
        return tag[len("ver_"):]

    if tag.startswith("release/"):
        return tag[len("release/"):]

    match = re.search(r"\w+_(\d+)_(\d+)", tag)
    if match:
        return f"{match.group(1)}.{match.group(2)}"

    match = re.search(r"@([\d.]+)$", tag)
    if match:
        return match.group(1)

    if re.fullmatch(r"[\d.]+", tag):
        return tag

    match = re.search(r"v?([\d.]+)", tag)
    if match:
        return match.group(1)

    return tag


def semantic_version_from_pgdg(pgdg_version: str) -> str:
    """2.8.4-1.pgdg13+1 -> 2.8.4"""
    match = re.match(r"[\d.]+", pgdg_version)
    return match.group(0) if match else pgdg_version


# =============================================================================
# Report
# =============================================================================


@dataclass
class ValidationReport:
    """Outcome of one validation pass."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    dependency_errors: List[str] = field(default_factory=list)
    manifest: Optional[Manifest] = None

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        """Raise the taxonomy error matching the collected violations."""
        if self.ok:
            return
        if len(self.dependency_errors) == len(self.errors):
            raise DependencyGraphError(self.errors)
        raise ManifestSchemaError(self.errors)


# =============================================================================
# ManifestValidator
# =============================================================================


class ManifestValidator:
    """
    Validate a raw manifest document.

    Usage:
        report = ManifestValidator().validate(json.load(f))
        report.raise_for_errors()
        manifest = report.manifest
    """

    def __init__(self, expected_counts: Optional[ExpectedCounts] = None):
        self.expected_counts = expected_counts

    def validate(self, raw: Any) -> ValidationReport:
        report = ValidationReport()

        if not isinstance(raw, dict) or not isinstance(raw.get("entries"), list):
            report.errors.append("Manifest must be an object with an 'entries' array")
            return report

        raw_entries: List[Any] = raw["entries"]
        entries = self._parse_entries(raw_entries, report)
        known_names = {
            item.get("name") for item in raw_entries if isinstance(item, dict) and item.get("name")
        }

        self._check_unique_names(raw_entries, report)
        for entry in entries:
            self._check_entry(entry, report)
        self._check_dependencies(entries, known_names, report)
        self._check_pgdg_versions(entries, report)
        if self.expected_counts is not None and len(entries) == len(raw_entries):
            self._check_counts(entries, report)

        for message in report.warnings:
            logger.warning(message)

        if report.ok:
            report.manifest = Manifest(generated_at=raw.get("generatedAt"), entries=entries)
            logger.debug(f"Manifest valid: {len(entries)} entries")
        else:
            logger.debug(f"Manifest invalid: {len(report.errors)} violation(s)")

        return report

    # -------------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------------

    @staticmethod
    def _parse_entries(raw_entries: List[Any], report: ValidationReport) -> List[ManifestEntry]:
        entries = []
        for index, item in enumerate(raw_entries):
            label = item.get("name") if isinstance(item, dict) and item.get("name") else f"entries[{index}]"
            try:
                entries.append(ManifestEntry.model_validate(item))
            except ValidationError as e:
                for err in e.errors():
                    loc = ".".join(str(part) for part in err["loc"]) or "<entry>"
                    report.errors.append(f"{label}: {loc}: {err['msg']}")
        return entries

    @staticmethod
    def _check_unique_names(raw_entries: List[Any], report: ValidationReport) -> None:
        names = Counter(
            item.get("name") for item in raw_entries if isinstance(item, dict) and item.get("name")
        )
        for name, count in names.items():
            if count > 1:
                report.errors.append(f"Duplicate entry name '{name}' ({count} occurrences)")

    @staticmethod
    def _check_entry(entry: ManifestEntry, report: ValidationReport) -> None:
        name = entry.name

        if entry.kind == EntryKind.BUILTIN:
            if entry.source.type != "builtin":
                report.errors.append(f"{name}: kind 'builtin' requires source type 'builtin'")
            if entry.build is not None:
                report.errors.append(f"{name}: kind 'builtin' must not declare a build")
        elif entry.source.type == "builtin":
            report.errors.append(f"{name}: source type 'builtin' requires kind 'builtin'")

        if entry.is_compiled and entry.build is None:
            report.errors.append(f"{name}: compiled entries require a build spec")

        if not entry.enabled and not entry.disabled_reason:
            report.errors.append(f"{name}: disabled entries require disabledReason")

        if entry.kind == EntryKind.TOOL and entry.runtime is None:
            report.warnings.append(f"{name}: tool entry has no runtime spec")

    @staticmethod
    def _check_dependencies(
        entries: List[ManifestEntry], known_names: set, report: ValidationReport
    ) -> None:
        by_name: Dict[str, ManifestEntry] = {entry.name: entry for entry in entries}

        for entry in entries:
            for dep in entry.dependencies:
                if dep not in known_names:
                    message = f"{entry.name}: dependency '{dep}' does not exist"
                elif dep == entry.name:
                    message = f"{entry.name}: entry depends on itself"
                else:
                    target = by_name.get(dep)
                    if (
                        entry.enabled
                        and target is not None
                        and not target.enabled
                        and target.kind != EntryKind.BUILTIN
                    ):
                        message = f"{entry.name}: enabled entry depends on disabled entry '{dep}'"
                    else:
                        continue
                report.errors.append(message)
                report.dependency_errors.append(message)

    @staticmethod
    def _check_pgdg_versions(entries: List[ManifestEntry], report: ValidationReport) -> None:
        for entry in entries:
            if not entry.is_pgdg:
                continue

            if not entry.pgdg_version:
                report.errors.append(f"{entry.name}: install_via 'pgdg' requires pgdgVersion")
                continue

            if not PGDG_VERSION_PATTERN.match(entry.pgdg_version):
                report.errors.append(
                    f"{entry.name}: invalid pgdgVersion '{entry.pgdg_version}' "
                    f"(expected format like '1.6.7-2.pgdg13+1')"
                )
                continue

            if not isinstance(entry.source, GitSource) or not entry.source.tag:
                report.warnings.append(
                    f"{entry.name}: pgdgVersion '{entry.pgdg_version}' has no source tag to verify against"
                )
                continue

            tag_version = semantic_version_from_tag(entry.source.tag)
            pgdg_semantic = semantic_version_from_pgdg(entry.pgdg_version)
            if tag_version != pgdg_semantic:
                report.errors.append(
                    f"{entry.name}: version mismatch, source tag '{entry.source.tag}' "
                    f"(semantic: {tag_version}) != pgdgVersion '{entry.pgdg_version}' "
                    f"(semantic: {pgdg_semantic})"
                )

    def _check_counts(self, entries: List[ManifestEntry], report: ValidationReport) -> None:
        actual = {
            "total": len(entries),
            "builtin": sum(1 for entry in entries if entry.kind == EntryKind.BUILTIN),
            "pgdg": sum(1 for entry in entries if entry.is_pgdg),
            "compiled": sum(1 for entry in entries if entry.is_compiled),
        }
        expected = self.expected_counts.model_dump()
        for key, got in actual.items():
            want = expected.get(key)
            if want is not None and got != want:
                report.errors.append(
                    f"{key.capitalize()} entry count mismatch: got {got}, expected {want}"
                )
