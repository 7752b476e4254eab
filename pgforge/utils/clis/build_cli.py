"""
Build CLI - compile and install every non-packaged manifest entry

Usage:
    pgforge-build MANIFEST [BUILD_ROOT]

Environment:
    PG_MAJOR    Target PostgreSQL major version (default 18)
    PG_CONFIG   Path to pg_config (default /usr/lib/postgresql/$PG_MAJOR/bin/pg_config)

Exit code 0 on full success, 1 on the first fatal error.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

TAG = "[ext-build]"


def run_build(config, manifest_path: str, build_root: Optional[str] = None) -> int:
    """Validate the manifest and run the orchestrator. Returns an exit code."""
    from pgforge.utils.build import BuildOrchestrator
    from pgforge.utils.manifest import ManifestLoader
    from pgforge.utils.system.errors import ForgeError

    try:
        manifest = ManifestLoader(config).load(manifest_path)
        result = BuildOrchestrator(config.build, build_root=build_root).run(manifest)
    except (FileNotFoundError, json.JSONDecodeError, ForgeError) as e:
        print(f"{TAG} ERROR: {e}", file=sys.stderr)
        return 1

    print(f"{TAG} Built {len(result.built)} entries ({', '.join(result.built) or 'none'})", file=sys.stderr)
    if result.patches.stale_count:
        print(f"{TAG} {result.patches.stale_count} stale patch(es):", file=sys.stderr)
        for stale in result.patches.stale:
            print(f"{TAG}   {stale}", file=sys.stderr)
    return 0


def cli_build_main(argv: Optional[List[str]] = None) -> int:
    """Entry point for pgforge-build."""
    from pgforge.utils.manifest import load_config
    from pgforge.utils.system.forge_logger import setup_logging

    parser = argparse.ArgumentParser(prog="pgforge-build", description="Build manifest extensions")
    parser.add_argument("manifest", help="Path to extensions manifest JSON")
    parser.add_argument("build_root", nargs="?", help="Build output root")
    parser.add_argument("--config", type=str, help="Path to pgforge.yaml")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"{TAG} ERROR: {e}", file=sys.stderr)
        return 1

    setup_logging(
        level=getattr(logging, config.logging.level.value),
        json_console=config.logging.json_format,
        logs_directory=config.logging.directory,
    )
    return run_build(config, args.manifest, args.build_root)


if __name__ == "__main__":
    sys.exit(cli_build_main())
