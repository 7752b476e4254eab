"""Top-level package for pgforge."""
import os

from yaml import safe_load

from .utils.system.forge_logger import get_logger, setup_logging

__author__ = """pgforge maintainers"""

with open(os.path.join(os.path.dirname(__file__), "pgforge.yaml"), encoding="utf-8") as _f:
    __version__ = str(safe_load(_f).get("version", "0.0.0"))

__all__ = [
    "setup_logging",
    "get_logger",
]
