"""
Thin wrapper around subprocess for build commands.

Commands inherit stdout/stderr so compiler output streams straight into
the build log. A non-zero exit is always fatal.
"""

import os
import shlex
import subprocess
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

from ..system.errors import BuildCommandError
from ..system.forge_logger import get_logger

logger = get_logger("build")

PathLike = Union[str, Path]


class CommandRunner:
    """Run build commands, raising BuildCommandError on failure."""

    def __init__(self, env: Optional[Dict[str, str]] = None):
        self.env = dict(env or {})
        self.history: List[List[str]] = []

    def _environment(self, env: Optional[Dict[str, str]], unset: Iterable[str]) -> Dict[str, str]:
        merged = dict(os.environ)
        merged.update(self.env)
        if env:
            merged.update(env)
        for name in unset:
            merged.pop(name, None)
        return merged

    def run(
        self,
        args: Sequence[PathLike],
        cwd: Optional[PathLike] = None,
        env: Optional[Dict[str, str]] = None,
        unset: Iterable[str] = (),
    ) -> None:
        command = [str(arg) for arg in args]
        self.history.append(command)
        logger.info(f"$ {shlex.join(command)}", extra={"tag": "ext-build", "cwd": str(cwd or "")})

        try:
            result = subprocess.run(command, cwd=cwd, env=self._environment(env, unset))
        except FileNotFoundError:
            raise BuildCommandError(command, 127, str(cwd) if cwd else None)

        if result.returncode != 0:
            raise BuildCommandError(command, result.returncode, str(cwd) if cwd else None)
