"""
taskfence: a task list whose tasks can remind you when you arrive at (or leave) a place.

Components:
- geofence/: coordinates, distance, saved locations, position sources, notification sinks, the monitor
- tasks/: task models, SQLite storage, list/statistics helpers
- connectors/: console REPL, Matrix notification sink, background asyncio loop
- cli/: composition root, slash commands, entrypoint
"""
