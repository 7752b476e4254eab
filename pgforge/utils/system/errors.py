"""
Error taxonomy for pgforge.

Every fatal condition raised by the manifest, build and generator layers
derives from ForgeError so the CLIs can report it as a single tagged line.
"""

from typing import List, Optional, Sequence


class ForgeError(Exception):
    """Base class for all fatal pgforge errors."""


class ManifestSchemaError(ForgeError):
    """Structural manifest violation. Carries the complete violation list."""

    def __init__(self, violations: Sequence[str], message: Optional[str] = None):
        self.violations: List[str] = list(violations)
        if message is None:
            message = f"Manifest has {len(self.violations)} violation(s)"
            if self.violations:
                message += ":\n  - " + "\n  - ".join(self.violations)
        super().__init__(message)


class DependencyGraphError(ManifestSchemaError):
    """Dangling or disabled dependency reference."""


class UntrustedSourceError(ForgeError):
    """Git repository host is not on the allow-list."""

    def __init__(self, repository: str, host: str, allowed: Sequence[str]):
        self.repository = repository
        self.host = host
        self.allowed = list(allowed)
        super().__init__(
            f"Untrusted git host '{host}' for {repository} "
            f"(allowed: {', '.join(self.allowed)})"
        )


class UnsupportedSourceError(ForgeError):
    """Source type the orchestrator cannot fetch."""


class UnsupportedBuildTypeError(ForgeError):
    """Build type unknown to, or not implemented by, this orchestrator."""


class BuildCommandError(ForgeError):
    """A clone, build or install command exited non-zero."""

    def __init__(self, command: Sequence[str], returncode: int, cwd: Optional[str] = None):
        self.command = list(command)
        self.returncode = returncode
        self.cwd = cwd
        where = f" (in {cwd})" if cwd else ""
        super().__init__(
            f"Command failed with exit code {returncode}{where}: {' '.join(self.command)}"
        )


class GucNameError(ForgeError, ValueError):
    """Setting key translated to a name the server would reject."""

    def __init__(self, key: str, translated: str):
        self.key = key
        self.translated = translated
        super().__init__(
            f"Invalid GUC name: '{key}' translated to '{translated}', "
            f"which is not a valid configuration parameter name"
        )


class PatchApplicationWarning(UserWarning):
    """A manifest patch matched no file. Non-fatal."""


class SourceCheckoutError(ForgeError):
    """Checked-out commit differs from the pinned commit."""

    def __init__(self, repository: str, expected: str, actual: str):
        self.repository = repository
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Checkout of {repository} resolved to {actual}, expected pinned commit {expected}"
        )


class GitFetchError(ForgeError):
    """A git clone, fetch or checkout command failed."""

    def __init__(self, repository: str, command, status, stderr: str = ""):
        self.repository = repository
        self.command = command if isinstance(command, str) else " ".join(str(c) for c in command)
        self.status = status
        self.stderr = " ".join((stderr or "").split())
        message = f"Fetching {repository} failed: '{self.command}' exited with status {status}"
        if self.stderr:
            message += f" ({self.stderr})"
        super().__init__(message)
