# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "GLANCE_APP_NAME": "App display name (default: glance).",
    "GLANCE_APP_VERSION": "Version recorded in app_meta at startup (default: 0.1.0).",
    "GLANCE_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Console
    "GLANCE_CONSOLE_ENABLED": "Run the interactive console (true/false, default: true).",
    # Paths (gitignored)
    "GLANCE_DATA_DIR": "Local data directory (default: .local/glance).",
    "GLANCE_DB_PATH": "SQLite database path (default: <data_dir>/glance.sqlite3).",
    "GLANCE_LOG_DIR": "Directory for glance.log (default: <data_dir>).",
    # Tuning
    "GLANCE_HISTORY_WINDOW_DAYS": "Days covered by /history stats (default: 180).",
    "GLANCE_MAINTENANCE_INTERVAL_SECONDS": "How often the daily maintenance loop polls the clock (default: 60).",
}
