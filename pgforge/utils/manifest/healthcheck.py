"""
Healthcheck script generator.

Expected extension names and preload libraries are baked into the script
as literals, so an image always checks for exactly what it was built with.
Tier 3 reads pg_extension directly; the status table is only consulted for
diagnostics.
"""

from __future__ import annotations

from typing import List

from .schema import ManifestEntry
from .sql_generator import DEFAULT_STATUS_TABLE

MIN_CATALOG_TABLES = 60

PSQL = "psql -U postgres -d postgres -tAc"


def _status_table_exists(table: str, indent: str) -> List[str]:
    return [
        f"{indent}if {PSQL} \\",
        f"{indent}    \"SELECT EXISTS(SELECT 1 FROM information_schema.tables WHERE table_name = '{table}')\" \\",
        f"{indent}    2>/dev/null | grep -q \"^t$\"; then",
    ]


def generate_healthcheck(
    extensions: List[ManifestEntry],
    preload_libraries: List[str],
    status_table: str = DEFAULT_STATUS_TABLE,
) -> str:
    names = [entry.name for entry in extensions]
    expected_preload = ",".join(preload_libraries)
    latest = f"FROM {status_table} ORDER BY init_timestamp DESC LIMIT 1"

    lines = [
        "#!/bin/bash",
        "# PostgreSQL healthcheck with functional validation",
        "# AUTO-GENERATED from extensions manifest - DO NOT EDIT DIRECTLY",
        "#",
        "# Design: verifies the live database matches THIS image's expectations",
        "# - correct after restores (checks actual extensions)",
        "# - correct on replicas (inherited state is validated)",
        "# - uses the status table for diagnostic context when available",
        "",
        "set -euo pipefail",
        "",
        "# Expected state for this image (from manifest)",
        "EXPECTED_EXTENSIONS=(" + " ".join(f'"{name}"' for name in names) + ")",
        f"EXPECTED_COUNT={len(names)}",
        f'EXPECTED_PRELOAD="{expected_preload}"',
        "",

        "# Tier 1: Connection Test",
        "if ! pg_isready -U postgres --timeout=3 >/dev/null 2>&1; then",
        '    echo "FAIL: PostgreSQL not accepting connections" >&2',
        "    exit 1",
        "fi",
        "",

        "# Tier 2: Query Execution Test",
        f"if ! {PSQL} 'SELECT 1' 2>/dev/null | grep -q '^1$'; then",
        '    echo "FAIL: Database query execution failed" >&2',
        "    exit 1",
        "fi",
        "",

        "# Tier 3: Extension State Verification (Ground Truth)",
        "MISSING_EXTENSIONS=()",
        'for ext in ${EXPECTED_EXTENSIONS[@]+"${EXPECTED_EXTENSIONS[@]}"}; do',
        f"    if ! {PSQL} \\",
        "        \"SELECT EXISTS(SELECT 1 FROM pg_extension WHERE extname = '$ext')\" \\",
        '        2>/dev/null | grep -q "^t$"; then',
        '        MISSING_EXTENSIONS+=("$ext")',
        "    fi",
        "done",
        "",
        "if [ ${#MISSING_EXTENSIONS[@]} -gt 0 ]; then",
        '    STATUS_INFO=""',
    ]
    lines.extend(_status_table_exists(status_table, "    "))
    lines.extend([
        f"        STATUS_INFO=$({PSQL} \\",
        "            \"SELECT 'Init status: ' || status || ', Failed: ' || "
        f"COALESCE(NULLIF(array_to_string(failed_extensions, ', '), ''), 'none') {latest}\" \\",
        '            2>/dev/null || echo "unknown")',
        "    fi",
        "",
        '    echo "FAIL: Missing ${#MISSING_EXTENSIONS[@]}/$EXPECTED_COUNT expected extensions: ${MISSING_EXTENSIONS[*]}" >&2',
        '    if [ -n "$STATUS_INFO" ]; then',
        '        echo "Diagnostic: $STATUS_INFO" >&2',
        "    fi",
        "    exit 1",
        "fi",
        "",

        "# Tier 4: Initialization Status Check (Diagnostic Context)",
    ])
    lines.extend(_status_table_exists(status_table, ""))
    lines.extend([
        f"    INIT_STATUS=$({PSQL} \\",
        f'        "SELECT status {latest}" \\',
        '        2>/dev/null || echo "unknown")',
        "",
        '    if [ "$INIT_STATUS" = "in_progress" ]; then',
        '        echo "FAIL: Initialization still in progress (not yet complete)" >&2',
        "        exit 1",
        '    elif [ "$INIT_STATUS" = "failed" ]; then',
        f"        FAILED_EXTS=$({PSQL} \\",
        f"            \"SELECT array_to_string(failed_extensions, ', ') {latest}\" \\",
        '            2>/dev/null || echo "unknown")',
        '        echo "FAIL: Initialization failed. Failed extensions: $FAILED_EXTS" >&2',
        "        exit 1",
        '    elif [ "$INIT_STATUS" = "partial" ]; then',
        f"        FAILED_EXTS=$({PSQL} \\",
        f"            \"SELECT array_to_string(failed_extensions, ', ') {latest}\" \\",
        '            2>/dev/null || echo "unknown")',
        '        echo "WARNING: Initialization partially failed: $FAILED_EXTS" >&2',
        "    fi",
        "fi",
        "",

        "# Tier 5: Shared Preload Libraries Verification",
        f"ACTUAL_PRELOAD=$({PSQL} \\",
        "    \"SELECT setting FROM pg_settings WHERE name = 'shared_preload_libraries'\" \\",
        '    2>/dev/null || echo "")',
        'ACTUAL_PRELOAD_LIST=",$(echo "$ACTUAL_PRELOAD" | tr -d \' \'),"',
        "",
        "IFS=',' read -ra PRELOAD_LIBS <<< \"$EXPECTED_PRELOAD\"",
        'for lib in ${PRELOAD_LIBS[@]+"${PRELOAD_LIBS[@]}"}; do',
        '    case "$ACTUAL_PRELOAD_LIST" in',
        '        *",$lib,"*) ;;',
        "        *)",
        '            echo "FAIL: shared_preload_libraries missing expected library: $lib" >&2',
        '            echo "Expected preload: $EXPECTED_PRELOAD" >&2',
        '            echo "Actual preload: $ACTUAL_PRELOAD" >&2',
        "            exit 1",
        "            ;;",
        "    esac",
        "done",
        "",

        "# Tier 6: System Catalog Integrity",
        f"CATALOG_TABLES=$({PSQL} \\",
        "    \"SELECT count(*) FROM information_schema.tables WHERE table_schema = 'pg_catalog' AND table_type = 'BASE TABLE'\" \\",
        '    2>/dev/null || echo "0")',
        "",
        f'if [ "$CATALOG_TABLES" -lt {MIN_CATALOG_TABLES} ]; then',
        f'    echo "FAIL: pg_catalog appears corrupted (only $CATALOG_TABLES tables, expected {MIN_CATALOG_TABLES}+)" >&2',
        "    exit 1",
        "fi",
        "",

        "# Tier 7: Database Role Verification",
        'POSTGRES_ROLE="${POSTGRES_ROLE:-primary}"',
        'if [ "$POSTGRES_ROLE" != "replica" ]; then',
        f"    IN_RECOVERY=$({PSQL} \\",
        '        "SELECT pg_is_in_recovery()" \\',
        '        2>/dev/null || echo "t")',
        "",
        '    if [ "$IN_RECOVERY" = "t" ]; then',
        '        echo "FAIL: Database in recovery mode but configured as $POSTGRES_ROLE" >&2',
        "        exit 1",
        "    fi",
        "fi",
        "",
        "# All checks passed",
        "exit 0",
        "",
    ])
    return "\n".join(lines)
