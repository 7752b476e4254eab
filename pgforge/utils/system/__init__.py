from .errors import (
    BuildCommandError,
    DependencyGraphError,
    ForgeError,
    GitFetchError,
    GucNameError,
    ManifestSchemaError,
    PatchApplicationWarning,
    SourceCheckoutError,
    UnsupportedBuildTypeError,
    UnsupportedSourceError,
    UntrustedSourceError,
)
from .forge_logger import JsonLogFormatter, get_logger, setup_logging

__all__ = [
    "BuildCommandError",
    "DependencyGraphError",
    "ForgeError",
    "GitFetchError",
    "GucNameError",
    "ManifestSchemaError",
    "PatchApplicationWarning",
    "SourceCheckoutError",
    "UnsupportedBuildTypeError",
    "UnsupportedSourceError",
    "UntrustedSourceError",
    "JsonLogFormatter",
    "get_logger",
    "setup_logging",
]
