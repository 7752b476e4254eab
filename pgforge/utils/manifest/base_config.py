"""
Base server settings shared by every generated profile.

Keys are camelCase and translated by :mod:`pgforge.utils.manifest.guc`.
``sharedPreloadLibraries`` is deliberately absent: the config generator
derives it from the manifest unless a settings file sets it explicitly.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml

from .loader import resolve_env_vars
from .schema import ServerSettings

BASE_SETTINGS = {
    "common": {
        # Connection Settings
        "listenAddresses": "*",
        "port": 5432,
        "idleSessionTimeout": "0",

        # Async I/O
        "ioMethod": "worker",
        "ioCombineLimit": 128,

        # Logging
        "logDestination": "stderr",
        "loggingCollector": "off",
        "logMinDurationStatement": 1000,
        "logLinePrefix": "%t [%p]: [%l-1] user=%u,db=%d,app=%a,client=%h ",
        "logLockWaits": "on",
        "logTempFiles": 0,
        "logTimezone": "UTC",
        "logCheckpoints": "on",
        "logConnections": "on",
        "logDisconnections": "on",
        "logAutovacuumMinDuration": 0,

        # Locale and Timezone
        "timezone": "UTC",
        "lcMessages": "en_US.utf8",
        "lcMonetary": "en_US.utf8",
        "lcNumeric": "en_US.utf8",
        "lcTime": "en_US.utf8",
        "defaultTextSearchConfig": "pg_catalog.english",

        # pg_stat_statements
        "pgStatStatementsMax": 10000,
        "pgStatStatementsTrack": "all",

        # auto_explain
        "autoExplainLogMinDuration": "3s",
        "autoExplainLogAnalyze": "on",
        "autoExplainLogBuffers": "on",
        "autoExplainLogNestedStatements": "on",

        # Autovacuum
        "autovacuum": "on",
        "autovacuumNaptime": "1min",
        "autovacuumVacuumCostDelay": "2ms",
        "autovacuumVacuumCostLimit": 2000,
        "autovacuumVacuumScaleFactor": 0.1,
        "autovacuumAnalyzeScaleFactor": 0.05,
        "autovacuumFreezeMaxAge": 200000000,

        # Checkpoints
        "checkpointCompletionTarget": 0.9,

        # WAL
        "walLevel": "replica",
    },
    "stacks": {
        "primary": {
            "walCompression": "lz4",
            "maxWalSenders": 10,
            "maxReplicationSlots": 10,
            "walKeepSize": "1GB",
            "synchronousCommit": "on",
            "synchronousStandbyNames": "",
            "idleReplicationSlotTimeout": "48h",
            "walSenderTimeout": "60s",
            "archiveMode": "off",
            "archiveCommand": "",
            "cronDatabaseName": "postgres",
            "cronLogRun": "on",
            "cronLogStatement": "on",
            "pgAuditLog": "ddl,write,role",
            "pgAuditLogStatementOnce": "on",
            "pgAuditLogLevel": "log",
            "pgAuditLogRelation": "on",
        },
        "replica": {
            "walCompression": "lz4",
            "hotStandby": "on",
            "maxStandbyArchiveDelay": "300s",
            "maxStandbyStreamingDelay": "300s",
            "hotStandbyFeedback": "on",
            "walReceiverStatusInterval": "10s",
            "maxWalSenders": 5,
            "maxReplicationSlots": 5,
            "logReplicationCommands": "on",
            "pgAuditLog": "none",
            "autoExplainLogTiming": "off",
        },
        "single": {
            "walLevel": "minimal",
            "maxWalSenders": 0,
            "pgAuditLog": "none",
            "autoExplainLogTiming": "off",
        },
    },
    "pgHbaRules": [
        {"type": "local", "database": "all", "user": "postgres", "method": "peer",
         "comment": "Local postgres user via Unix socket"},
        {"type": "host", "database": "all", "user": "all", "address": "127.0.0.1/32",
         "method": "scram-sha-256", "comment": "IPv4 local connections"},
        {"type": "host", "database": "all", "user": "all", "address": "::1/128",
         "method": "scram-sha-256", "comment": "IPv6 local connections"},
        {"type": "host", "database": "all", "user": "all", "address": "10.0.0.0/8",
         "method": "scram-sha-256", "comment": "Private network (Class A)"},
        {"type": "host", "database": "all", "user": "all", "address": "172.16.0.0/12",
         "method": "scram-sha-256", "comment": "Private network (Class B)"},
        {"type": "host", "database": "all", "user": "all", "address": "192.168.0.0/16",
         "method": "scram-sha-256", "comment": "Private network (Class C)"},
        {"type": "host", "database": "postgres", "user": "pgbouncer_auth", "address": "10.0.0.0/8",
         "method": "scram-sha-256", "comment": "PgBouncer auth query user", "stackSpecific": ["primary"]},
        {"type": "host", "database": "postgres", "user": "pgbouncer_auth", "address": "172.16.0.0/12",
         "method": "scram-sha-256", "stackSpecific": ["primary"]},
        {"type": "host", "database": "postgres", "user": "pgbouncer_auth", "address": "192.168.0.0/16",
         "method": "scram-sha-256", "stackSpecific": ["primary"]},
        {"type": "host", "database": "replication", "user": "replicator", "address": "10.0.0.0/8",
         "method": "scram-sha-256", "comment": "Replication connections", "stackSpecific": ["primary"]},
        {"type": "host", "database": "replication", "user": "replicator", "address": "172.16.0.0/12",
         "method": "scram-sha-256", "stackSpecific": ["primary"]},
        {"type": "host", "database": "replication", "user": "replicator", "address": "192.168.0.0/16",
         "method": "scram-sha-256", "stackSpecific": ["primary"]},
    ],
}


def default_server_settings() -> ServerSettings:
    return ServerSettings.model_validate(BASE_SETTINGS)


def load_server_settings(path: Optional[str] = None) -> ServerSettings:
    """Load a settings YAML file, or the built-in defaults when no path is given."""
    if not path:
        return default_server_settings()

    settings_file = Path(path)
    if not settings_file.exists():
        raise FileNotFoundError(f"Server settings not found: {settings_file}")

    with open(settings_file, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return ServerSettings.model_validate(resolve_env_vars(data))
