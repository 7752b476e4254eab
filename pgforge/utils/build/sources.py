"""
Source checkout with supply-chain controls.

Repository hosts are checked against the allow-list before GitPython is
touched at all. Checkouts are commit-exact: tags are resolved to a commit
first and the resulting HEAD is compared against it.
"""

import re
import shutil
from pathlib import Path
from typing import Optional, Sequence

import git

from ..manifest.schema import BuiltinSource, GitRefSource, GitSource
from ..system.errors import (
    GitFetchError,
    SourceCheckoutError,
    UnsupportedSourceError,
    UntrustedSourceError,
)
from ..system.forge_logger import get_logger

logger = get_logger("build")

HTTPS_URL_PATTERN = re.compile(r"^https?://([^/]+)")
SSH_URL_PATTERN = re.compile(r"^git@([^:/]+):")
COMMIT_SHA_PATTERN = re.compile(r"^[0-9a-f]{40}$")


def repository_host(repository: str) -> Optional[str]:
    """Host part of an https or scp-style git URL, or None if unparseable."""
    match = HTTPS_URL_PATTERN.match(repository) or SSH_URL_PATTERN.match(repository)
    if not match:
        return None
    netloc = match.group(1).rsplit("@", 1)[-1]
    return netloc.split(":", 1)[0].lower()


def validate_repository(repository: str, allowed_hosts: Sequence[str]) -> str:
    """Return the host, or raise UntrustedSourceError. Never touches the network."""
    host = repository_host(repository)
    allowed = [h.lower() for h in allowed_hosts]
    if host is None or host not in allowed:
        raise UntrustedSourceError(repository, host or "<unparseable>", allowed)
    return host


class SourceFetcher:
    """
    Fetch manifest sources into build directories.

    Usage:
        fetcher = SourceFetcher(["github.com", "gitlab.com"])
        commit = fetcher.fetch(entry.source, Path("/tmp/extensions-build/pg_cron"))
    """

    def __init__(self, allowed_hosts: Sequence[str]):
        self.allowed_hosts = list(allowed_hosts)

    def fetch(self, source, dest: Path) -> str:
        """
        Check out a git source into dest and return the checked-out commit.

        git command failures surface as GitFetchError.
        """
        if isinstance(source, BuiltinSource):
            raise UnsupportedSourceError("builtin sources have nothing to fetch")
        if not isinstance(source, (GitSource, GitRefSource)):
            raise UnsupportedSourceError(f"Unsupported source type: {getattr(source, 'type', source)!r}")

        validate_repository(source.repository, self.allowed_hosts)

        try:
            if isinstance(source, GitSource):
                commit = source.commit or self.resolve_tag(source.repository, source.tag)
                return self.checkout(source.repository, commit, dest, expected_commit=commit)

            return self.checkout(
                source.repository, source.commit or source.ref, dest, expected_commit=source.commit
            )
        except git.exc.GitCommandError as e:
            raise GitFetchError(source.repository, e.command, e.status, e.stderr) from e

    @staticmethod
    def resolve_tag(repository: str, tag: str) -> str:
        """Resolve a tag to the commit it points at (peeled for annotated tags)."""
        output = git.cmd.Git().ls_remote(repository, f"refs/tags/{tag}", f"refs/tags/{tag}^{{}}")
        refs = {}
        for line in output.splitlines():
            if "\t" in line:
                sha, name = line.split("\t", 1)
                refs[name.strip()] = sha.strip()
        commit = refs.get(f"refs/tags/{tag}^{{}}") or refs.get(f"refs/tags/{tag}")
        if not commit:
            raise SourceCheckoutError(repository, f"tag {tag}", "<no such tag>")
        logger.info(f"Resolved {tag} -> {commit}", extra={"tag": "ext-build"})
        return commit

    @staticmethod
    def checkout(
        repository: str, ref: str, dest: Path, expected_commit: Optional[str] = None
    ) -> str:
        """
        Shallow-fetch ref into a fresh repository at dest and check it out.

        Falls back to a full fetch when the remote refuses a shallow fetch
        by commit. Submodules are initialized when present.
        """
        dest = Path(dest)
        if dest.exists():
            shutil.rmtree(dest)
        dest.mkdir(parents=True)

        logger.info(f"Cloning {repository} @ {ref}", extra={"tag": "ext-build"})
        repo = git.Repo.init(dest)
        repo.create_remote("origin", repository)

        try:
            repo.git.fetch("--depth", "1", "origin", ref)
            target = "FETCH_HEAD"
        except git.exc.GitCommandError:
            logger.warning(f"Shallow fetch of {ref} failed, fetching full history", extra={"tag": "ext-build"})
            repo.git.fetch("--tags", "origin")
            target = ref if COMMIT_SHA_PATTERN.match(ref) else f"origin/{ref}"
            try:
                repo.git.rev_parse("--verify", f"{target}^{{commit}}")
            except git.exc.GitCommandError:
                target = ref

        repo.git.checkout("--detach", target)
        actual = repo.head.commit.hexsha

        if expected_commit and actual != expected_commit:
            raise SourceCheckoutError(repository, expected_commit, actual)

        if (dest / ".gitmodules").exists():
            repo.git.submodule("update", "--init", "--recursive")

        return actual
