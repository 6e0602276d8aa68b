# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file,
see tasklines.config). Every variable has a default; set only what you need.

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKLINES_APP_NAME": "App display name (default: tasklines).",
    "TASKLINES_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Paths
    "TASKLINES_DATA_DIR": "Local data directory for tasklines.log (default: .local/tasklines).",
    "TASKLINES_VAULT_DIR": "Directory scanned for **/*.md task lines (default: current directory).",
    # New tasks
    "TASKLINES_DEFAULT_PATH": "Vault-relative file new tasks are written to (default: Tasks.md).",
    "TASKLINES_DEFAULT_HEADING": "Heading new tasks are inserted under (default: '# Tasks').",
    # Sync
    "TASKLINES_FETCH_INTERVAL_SECONDS": "Seconds between full vault scans (default: 5.0).",
    "TASKLINES_MAX_SYNC_RETRIES": "Failed writes before a task is flagged sync_failed (default: 3).",
    "TASKLINES_RETRY_DELAY_SECONDS": "Base delay before a retry; multiplied by the retry count (default: 1.0).",
}
