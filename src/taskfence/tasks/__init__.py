"""
Task subsystem.

Components:
- task_models.py: data structures (Task, LocationReminder, TaskStats)
- task_store.py: SQLite-backed storage + query/update helpers
- task_api.py: filters and statistics over task lists
"""
