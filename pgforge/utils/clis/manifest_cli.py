"""
Manifest CLI - Command line interface for the extensions manifest

Commands:
    pgforge validate MANIFEST   - Validate manifest structure and cross-entry rules
    pgforge show MANIFEST       - Summarize manifest entries
    pgforge generate MANIFEST   - Generate config, SQL, healthcheck and package lists
    pgforge build MANIFEST      - Compile and install non-packaged entries
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

import yaml

from .cli_printing import (
    print_box_content,
    print_box_footer,
    print_box_header,
    print_code_block,
    print_status,
    print_table_header,
    print_table_row,
)


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for manifest CLI."""
    parser = argparse.ArgumentParser(
        prog="pgforge",
        description="PostgreSQL extension manifest toolkit",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
╔════════════════════════════════════════════════════════════════════════════╗
║                            pgforge Commands                                ║
╠════════════════════════════════════════════════════════════════════════════╣
║                                                                            ║
║  pgforge validate MANIFEST       Validate manifest                         ║
║  pgforge show MANIFEST           Summarize entries                         ║
║  pgforge generate MANIFEST       Generate runtime artifacts                ║
║  pgforge build MANIFEST [ROOT]   Build non-packaged entries                ║
║                                                                            ║
╚════════════════════════════════════════════════════════════════════════════╝
        """
    )
    parser.add_argument("--config", type=str, help="Path to pgforge.yaml")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # validate
    p_validate = subparsers.add_parser("validate", help="Validate manifest")
    p_validate.add_argument("manifest", help="Path to extensions manifest JSON")

    # show
    p_show = subparsers.add_parser("show", help="Summarize manifest entries")
    p_show.add_argument("manifest", help="Path to extensions manifest JSON")
    p_show.add_argument("--json", action="store_true", help="Output as JSON")
    p_show.add_argument("--name", type=str, help="Show a single entry")

    # generate
    p_generate = subparsers.add_parser("generate", help="Generate runtime artifacts")
    p_generate.add_argument("manifest", help="Path to extensions manifest JSON")
    p_generate.add_argument("--output", type=str, help="Output directory")
    p_generate.add_argument("--settings", type=str, help="Server settings YAML (defaults to built-in)")
    p_generate.add_argument("--role", action="append", choices=["primary", "replica", "single"],
                            help="Role to render (repeatable, default: all configured roles)")

    # build
    p_build = subparsers.add_parser("build", help="Build non-packaged entries")
    p_build.add_argument("manifest", help="Path to extensions manifest JSON")
    p_build.add_argument("build_root", nargs="?", help="Build output root")

    return parser


def _load_config(args):
    from pgforge.utils.manifest import load_config
    from pgforge.utils.system.forge_logger import setup_logging

    config = load_config(args.config)
    setup_logging(
        level=getattr(logging, config.logging.level.value),
        json_console=config.logging.json_format,
        logs_directory=config.logging.directory,
    )
    return config


def cmd_validate(args) -> int:
    """Validate manifest."""
    from pgforge.utils.manifest import ManifestLoader

    config = _load_config(args)
    loader = ManifestLoader(config)

    print_box_header("Manifest Validation", "✓")

    try:
        report = loader.check(args.manifest)
    except (FileNotFoundError, json.JSONDecodeError) as e:
        print_status(f"Cannot read manifest: {e}", "error")
        print_box_footer()
        return 1

    for warning in report.warnings:
        print_box_content(warning, "warning")

    if report.ok:
        print_status(f"Validation: PASSED ({len(report.manifest.entries)} entries)", "success")
    else:
        print_status(f"Validation: FAILED ({len(report.errors)} violations)", "error")
        for err in report.errors:
            print(f"  • {err}")

    print_box_footer()
    return 0 if report.ok else 1


def cmd_show(args) -> int:
    """Summarize manifest content."""
    from pgforge.utils.manifest import ManifestLoader
    from pgforge.utils.system.errors import ForgeError

    config = _load_config(args)
    loader = ManifestLoader(config)

    try:
        manifest = loader.load(args.manifest)
    except (FileNotFoundError, json.JSONDecodeError, ForgeError) as e:
        print_status(f"Error reading manifest: {e}", "error")
        return 1

    if args.name:
        entry = manifest.get(args.name)
        if entry is None:
            print_status(f"Unknown entry: {args.name}", "error")
            return 1
        data = entry.model_dump(mode="json", by_alias=True, exclude_none=True)
        if args.json:
            print(json.dumps(data, indent=2))
        else:
            print_box_header(entry.label, "ℹ")
            print_code_block(yaml.safe_dump(data, sort_keys=False), "yaml")
            print_box_footer()
        return 0

    if args.json:
        print(json.dumps(manifest.model_dump(mode="json", by_alias=True, exclude_none=True), indent=2))
        return 0

    print_box_header(f"Manifest ({len(manifest.entries)} entries)", "ℹ")
    widths = [24, 10, 14, 10, 8]
    print_table_header(["Name", "Kind", "Category", "Install", "Enabled"], widths)
    for entry in manifest.entries:
        if entry.is_pgdg:
            install = "pgdg"
        elif entry.is_compiled:
            install = entry.build.type.value
        else:
            install = "builtin"
        print_table_row(
            [entry.name, entry.kind.value, entry.category, install, "yes" if entry.enabled else "no"],
            widths,
            ["cyan", "", "", "", "green" if entry.enabled else "grey"],
        )
    print()
    print_status(f"Default extensions: {', '.join(e.name for e in manifest.default_enabled_extensions()) or 'none'}")
    print_status(f"Preload libraries: {', '.join(manifest.default_preload_libraries()) or 'none'}")
    print_box_footer()
    return 0


def cmd_generate(args) -> int:
    """Generate runtime artifacts from the manifest."""
    from pgforge.utils.manifest import ConfigConverter, ManifestLoader, Role
    from pgforge.utils.manifest.base_config import load_server_settings
    from pgforge.utils.system.errors import ForgeError

    config = _load_config(args)
    loader = ManifestLoader(config)

    print_box_header("Generate Artifacts", "⟳")

    try:
        manifest = loader.load(args.manifest)
        converter = ConfigConverter(
            manifest,
            config=config,
            settings=load_server_settings(args.settings),
            output_dir=args.output,
        )
        roles = [Role(role) for role in args.role] if args.role else None
        generated = converter.apply_all(roles=roles)
    except (FileNotFoundError, ValueError, ForgeError) as e:
        print_status(f"Generation failed: {e}", "error")
        print_box_footer()
        return 1

    print_status("Generated files:", "success")
    for path in generated:
        print(f"  ✓ {path}")
    print_box_footer()
    return 0


def cmd_build(args) -> int:
    """Build every compiled entry."""
    from .build_cli import run_build

    config = _load_config(args)
    return run_build(config, args.manifest, args.build_root)


def cli_manifest_main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the pgforge CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    commands = {
        "validate": cmd_validate,
        "show": cmd_show,
        "generate": cmd_generate,
        "build": cmd_build,
    }

    handler = commands.get(args.command)
    if handler:
        return handler(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(cli_manifest_main())
