# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets (the Matrix password in particular). Use:
- .env (local, gitignored)

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "TASKFENCE_APP_NAME": "App display name (default: taskfence).",
    "TASKFENCE_LOG_LEVEL": "Console logging level (default: INFO).",
    # Connectors
    "TASKFENCE_CONSOLE_ENABLED": "Enable the console REPL (true/false, default: true).",
    # Paths (gitignored)
    "TASKFENCE_DATA_DIR": "Local data directory (default: .local/taskfence).",
    "TASKFENCE_TASKS_DB_PATH": "TaskStore SQLite path (default: <data_dir>/tasks.sqlite3).",
    "TASKFENCE_LOCATIONS_PATH": "Saved locations JSON path (default: <data_dir>/locations.json).",
    # Positioning
    "TASKFENCE_POSITION_HIGH_ACCURACY": "Ask the position source for a precise fix (default: true).",
    "TASKFENCE_POSITION_TIMEOUT_SECONDS": "Give up on a single fix after this long (default: 10).",
    "TASKFENCE_POSITION_MAXIMUM_AGE_SECONDS": "Reject fixes older than this (default: 60).",
    "TASKFENCE_POSITION_POLL_INTERVAL_SECONDS": "Delay between polled fixes (default: 5).",
    "TASKFENCE_POSITION_REPLAY_CSV": (
        "Optional CSV track (latitude,longitude[,accuracy]) replayed as the position source. "
        "Empty => positions are entered with /pos."
    ),
    "TASKFENCE_DEFAULT_RADIUS_M": "Radius for /loc add when none is given (default: 100).",
    # Notifications
    "TASKFENCE_NOTIFIER": "console | matrix | none (default: matrix when configured, else console).",
    "TASKFENCE_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "TASKFENCE_MATRIX_USER_ID": "Matrix user ID that posts reminders.",
    "TASKFENCE_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    "TASKFENCE_MATRIX_STORE_PATH": "Matrix session/E2EE store path (default: <data_dir>/matrix_store).",
    "TASKFENCE_MATRIX_NOTIFY_ROOM": "Room ID reminders are posted to (empty => first joined room).",
}
