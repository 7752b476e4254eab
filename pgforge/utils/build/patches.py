"""
sed-style patch application.

Expressions use sed's basic regular expression syntax and are applied line
by line, like ``sed -i``. A patch that changes nothing is reported as stale
with a PatchApplicationWarning; it never fails the build.
"""

import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Pattern, Tuple

from ..manifest.schema import SED_EXPRESSION_PATTERN, BuildType, ManifestEntry, PatchSpec
from ..system.errors import PatchApplicationWarning
from ..system.forge_logger import get_logger

logger = get_logger("build")

POSIX_CLASSES = {
    "[:space:]": r"\s",
    "[:blank:]": r" \t",
    "[:digit:]": r"\d",
    "[:alpha:]": "a-zA-Z",
    "[:alnum:]": "a-zA-Z0-9",
    "[:upper:]": "A-Z",
    "[:lower:]": "a-z",
    "[:punct:]": re.escape("!\"#$%&'()*+,-./:;<=>?@[\\]^_`{|}~"),
}

# Characters that are literal in BRE and special only when escaped
BRE_SWAPPED = set("(){}+?|")

# Symbols that identify a fix for one known source file
KNOWN_SOURCE_FIXES = {
    "log_skipped_evtrigs": "supautils.c",
}

SKIP_DIRS = {".git", "target", ".cmake-build", ".meson-build"}


@dataclass
class PatchReport:
    """Which files each patch changed, and which patches were stale."""
    applied: Dict[str, List[str]] = field(default_factory=dict)
    stale: List[str] = field(default_factory=list)

    @property
    def stale_count(self) -> int:
        return len(self.stale)

    def merge(self, other: "PatchReport") -> None:
        self.applied.update(other.applied)
        self.stale.extend(other.stale)


def bre_to_python(pattern: str) -> str:
    """Translate a sed BRE into Python regex syntax."""
    for posix, python in POSIX_CLASSES.items():
        pattern = pattern.replace(posix, python)

    out = []
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if char == "\\" and i + 1 < len(pattern):
            nxt = pattern[i + 1]
            out.append(nxt if nxt in BRE_SWAPPED else char + nxt)
            i += 2
            continue
        out.append("\\" + char if char in BRE_SWAPPED else char)
        i += 1
    return "".join(out)


def sed_replacement_to_python(replacement: str) -> str:
    """``&`` -> whole match, ``\\N`` -> group N, ``\\&`` -> literal ``&``."""
    out = []
    i = 0
    while i < len(replacement):
        char = replacement[i]
        if char == "\\" and i + 1 < len(replacement):
            nxt = replacement[i + 1]
            if nxt.isdigit():
                out.append(f"\\g<{nxt}>")
            elif nxt == "n":
                out.append("\n")
            else:
                out.append(nxt.replace("\\", "\\\\"))
            i += 2
            continue
        if char == "&":
            out.append("\\g<0>")
        elif char == "\\":
            out.append("\\\\")
        else:
            out.append(char)
        i += 1
    return "".join(out)


def parse_sed_expression(expression: str) -> Tuple[Pattern, str, int]:
    """Return (compiled pattern, python replacement, count per line)."""
    match = re.match(SED_EXPRESSION_PATTERN, expression)
    if not match:
        raise ValueError(f"Not a sed substitution: {expression}")

    pattern, replacement, flags = match.group(1), match.group(2), match.group(3) or ""
    regex_flags = re.IGNORECASE if "i" in flags else 0
    count = 0 if "g" in flags else 1
    return re.compile(bre_to_python(pattern), regex_flags), sed_replacement_to_python(replacement), count


def apply_to_file(path: Path, regex: Pattern, replacement: str, count: int) -> bool:
    """Apply the substitution line by line. Returns True if the file changed."""
    try:
        with open(path, encoding="utf-8", newline="") as f:
            original = f.read()
    except UnicodeDecodeError:
        return False

    lines = original.splitlines(keepends=True)
    patched = []
    for line in lines:
        body = line.rstrip("\r\n")
        ending = line[len(body):]
        patched.append(regex.sub(replacement, body, count=count) + ending)

    updated = "".join(patched)
    if updated == original:
        return False
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(updated)
    return True


def _walk(root: Path, pattern: str) -> List[Path]:
    return sorted(
        p for p in root.rglob(pattern)
        if p.is_file() and not SKIP_DIRS.intersection(p.relative_to(root).parts)
    )


def infer_targets(patch: PatchSpec, entry: ManifestEntry, root: Path) -> List[Path]:
    """
    Pick target files for a patch without an explicit target.

    Cargo manifests for toolchain-version patches, a named source file for
    known fixes, C sources for C-looking patches, otherwise every file.
    """
    expression = patch.expression
    build_type = entry.build.type if entry.build else None

    if "Cargo.toml" in expression or build_type == BuildType.CARGO_PGRX:
        return _walk(root, "Cargo.toml")

    for symbol, filename in KNOWN_SOURCE_FIXES.items():
        if symbol in expression:
            return _walk(root, filename)

    if ".c" in expression:
        return _walk(root, "*.c")

    return _walk(root, "*")


def resolve_targets(patch: PatchSpec, entry: ManifestEntry, root: Path) -> List[Path]:
    if patch.target is None:
        return infer_targets(patch, entry, root)
    return sorted(p for p in root.glob(patch.target) if p.is_file())


def apply_patches(entry: ManifestEntry, root: Path) -> PatchReport:
    """Apply every patch declared by the entry to the checkout at root."""
    report = PatchReport()
    patches = entry.build.patches if entry.build else []
    if not patches:
        return report

    logger.info(f"Applying {len(patches)} patch(es) for {entry.name}", extra={"tag": "ext-build"})

    for patch in patches:
        regex, replacement, count = parse_sed_expression(patch.expression)
        changed = [
            str(path.relative_to(root))
            for path in resolve_targets(patch, entry, root)
            if apply_to_file(path, regex, replacement, count)
        ]

        if changed:
            report.applied[patch.expression] = changed
            logger.info(f"  {patch.expression} -> {', '.join(changed)}", extra={"tag": "ext-build"})
        else:
            report.stale.append(f"{entry.name}: {patch.expression}")
            logger.warning(f"  patch did not match: {patch.expression}", extra={"tag": "ext-build"})
            warnings.warn(
                f"Patch for {entry.name} matched no file: {patch.expression}",
                PatchApplicationWarning,
                stacklevel=2,
            )

    return report
