"""
Bootstrap SQL generator.

The generated script runs once at first cluster start. Every CREATE
EXTENSION sits in its own exception block, so one failure is recorded and
the remaining extensions are still attempted. Each run inserts its own
status row.

Final status per run:
    completed   - every attempted extension was created
    partial     - some created, some failed
    failed      - every attempted extension failed
    skipped     - nothing to create
"""

from __future__ import annotations

from typing import List

from .schema import ManifestEntry

DEFAULT_STATUS_TABLE = "pgforge_status"

STATUS_VALUES = ("in_progress", "completed", "partial", "failed", "skipped")


def _sql_array(names: List[str]) -> str:
    if not names:
        return "'{}'::TEXT[]"
    return "ARRAY[" + ", ".join(f"'{name}'" for name in names) + "]::TEXT[]"


def _comment(text: str) -> str:
    return " ".join(text.split())


def _status_table_ddl(table: str) -> List[str]:
    statuses = ", ".join(f"'{status}'" for status in STATUS_VALUES)
    return [
        f"CREATE TABLE IF NOT EXISTS {table} (",
        "    id BIGSERIAL PRIMARY KEY,",
        "    init_timestamp TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp(),",
        "    expected_extensions TEXT[] NOT NULL,",
        "    created_extensions TEXT[] NOT NULL DEFAULT '{}',",
        "    failed_extensions TEXT[] NOT NULL DEFAULT '{}',",
        f"    status TEXT NOT NULL CHECK (status IN ({statuses})),",
        "    message TEXT",
        ");",
        "",
        f"CREATE INDEX IF NOT EXISTS idx_{table}_timestamp ON {table} (init_timestamp DESC);",
        "",
    ]


def _extension_block(entry: ManifestEntry) -> List[str]:
    name = entry.name
    return [
        f"    -- {_comment(entry.label)} [{_comment(entry.category)}]",
        "    BEGIN",
        f"        CREATE EXTENSION IF NOT EXISTS \"{name}\";",
        f"        v_created_exts := array_append(v_created_exts, '{name}');",
        "    EXCEPTION WHEN OTHERS THEN",
        "        GET STACKED DIAGNOSTICS v_error_msg = MESSAGE_TEXT;",
        f"        v_failed_exts := array_append(v_failed_exts, '{name}');",
        f"        RAISE WARNING 'Failed to create extension %: %', '{name}', v_error_msg;",
        "    END;",
        "",
    ]


def generate_init_sql(extensions: List[ManifestEntry], status_table: str = DEFAULT_STATUS_TABLE) -> str:
    """
    Render the bootstrap script for the given default-enabled extensions.

    Extensions are attempted in the order given.
    """
    names = [entry.name for entry in extensions]
    table = status_table

    lines = [
        "-- PostgreSQL initialization: enable baseline extensions",
        "-- AUTO-GENERATED from extensions manifest - DO NOT EDIT DIRECTLY",
        "-- Runs on first cluster start. Safe to re-run: creation is existence-guarded",
        f"-- and every run records its own row in {table}.",
        "",
    ]
    lines.extend(_status_table_ddl(table))

    if not names:
        lines.extend([
            "DO $$",
            "BEGIN",
            f"    INSERT INTO {table} (expected_extensions, status, message)",
            "    VALUES ('{}'::TEXT[], 'skipped', 'No baseline extensions enabled');",
            "    RAISE NOTICE 'No baseline extensions enabled';",
            "END;",
            "$$;",
            "",
        ])
        return "\n".join(lines)

    lines.extend([
        "DO $$",
        "DECLARE",
        f"    v_expected_exts TEXT[] := {_sql_array(names)};",
        "    v_created_exts TEXT[] := '{}';",
        "    v_failed_exts TEXT[] := '{}';",
        "    v_error_msg TEXT;",
        "    v_status TEXT;",
        "    v_status_id BIGINT;",
        "BEGIN",
        f"    INSERT INTO {table} (expected_extensions, status)",
        "    VALUES (v_expected_exts, 'in_progress')",
        "    RETURNING id INTO v_status_id;",
        "",
    ])

    for entry in extensions:
        lines.extend(_extension_block(entry))

    lines.extend([
        "    IF cardinality(v_failed_exts) = 0 THEN",
        "        v_status := 'completed';",
        "    ELSIF cardinality(v_created_exts) > 0 THEN",
        "        v_status := 'partial';",
        "    ELSE",
        "        v_status := 'failed';",
        "    END IF;",
        "",
        f"    UPDATE {table}",
        "    SET created_extensions = v_created_exts,",
        "        failed_extensions = v_failed_exts,",
        "        status = v_status,",
        "        message = format('%s of %s extensions created', cardinality(v_created_exts), cardinality(v_expected_exts))",
        "    WHERE id = v_status_id;",
        "",
        "    IF v_status = 'completed' THEN",
        f"        RAISE NOTICE 'All {len(names)} baseline extensions enabled: %', array_to_string(v_created_exts, ', ');",
        "    ELSE",
        "        RAISE WARNING 'Extension initialization %: failed extensions: %', v_status, array_to_string(v_failed_exts, ', ');",
        "    END IF;",
        "END;",
        "$$;",
        "",
    ])
    return "\n".join(lines)
