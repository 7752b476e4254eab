"""
Pytest configuration and fixtures for the pgforge test suite.

Markers:
    git: test drives a real git binary against a local repository
"""

import copy
import shutil

import pytest

PG_CRON_COMMIT = "a" * 40

SAMPLE_MANIFEST = {
    "generatedAt": "2025-11-01T00:00:00Z",
    "entries": [
        {
            "name": "plpgsql",
            "kind": "builtin",
            "category": "language",
            "source": {"type": "builtin"},
            "runtime": {"defaultEnable": False},
        },
        {
            "name": "pg_stat_statements",
            "kind": "builtin",
            "category": "observability",
            "source": {"type": "builtin"},
            "runtime": {"sharedPreload": True, "defaultEnable": True},
        },
        {
            "name": "pg_cron",
            "displayName": "pg_cron",
            "kind": "extension",
            "category": "operations",
            "source": {"type": "git", "repository": "https://github.com/citusdata/pg_cron.git", "tag": "v1.6.7"},
            "install_via": "pgdg",
            "pgdgVersion": "1.6.7-2.pgdg13+1",
            "runtime": {"sharedPreload": True, "defaultEnable": True},
        },
        {
            "name": "vector",
            "displayName": "pgvector",
            "kind": "extension",
            "category": "search",
            "source": {"type": "git", "repository": "https://github.com/pgvector/pgvector.git", "tag": "v0.8.1"},
            "build": {"type": "pgxs"},
            "aptPackages": ["libpq-dev"],
            "runtime": {"defaultEnable": True},
        },
        {
            "name": "pgbadger",
            "kind": "tool",
            "category": "observability",
            "source": {"type": "git", "repository": "https://github.com/darold/pgbadger.git", "tag": "v13.1"},
            "build": {"type": "make"},
            "aptPackages": ["perl"],
            "runtime": {"defaultEnable": False},
        },
        {
            "name": "supautils",
            "kind": "extension",
            "category": "security",
            "source": {"type": "git", "repository": "https://github.com/supabase/supautils.git", "tag": "v3.0.2"},
            "build": {"type": "pgxs"},
            "runtime": {"sharedPreload": True, "defaultEnable": True, "preloadOnly": True},
        },
        {
            "name": "pgq",
            "kind": "extension",
            "category": "queueing",
            "source": {"type": "git", "repository": "https://github.com/pgq/pgq.git", "tag": "v3.5.1"},
            "build": {"type": "pgxs"},
            "enabled": False,
            "disabledReason": "Not compatible with this server version",
            "runtime": {"defaultEnable": False},
        },
    ],
}


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "git: test requires a git executable")


def pytest_collection_modifyitems(config, items):
    if shutil.which("git"):
        return
    skip_git = pytest.mark.skip(reason="git executable not available")
    for item in items:
        if "git" in item.keywords:
            item.add_marker(skip_git)


@pytest.fixture
def raw_manifest():
    """A fresh copy of the sample manifest document."""
    return copy.deepcopy(SAMPLE_MANIFEST)


@pytest.fixture
def manifest(raw_manifest):
    """The sample manifest, validated."""
    from pgforge.utils.manifest.validator import ManifestValidator

    report = ManifestValidator().validate(raw_manifest)
    report.raise_for_errors()
    return report.manifest


@pytest.fixture
def demo_manifest():
    """Single default-enabled extension named 'demo'."""
    from pgforge.utils.manifest.schema import Manifest

    return Manifest.model_validate({
        "entries": [{
            "name": "demo",
            "kind": "extension",
            "category": "test",
            "source": {"type": "git", "repository": "https://github.com/example/demo.git", "tag": "v1.0.0"},
            "build": {"type": "pgxs"},
            "runtime": {"defaultEnable": True},
        }]
    })
