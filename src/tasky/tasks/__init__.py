"""
Task subsystem.

Components:
- models.py: data structures (Task, TaskList, Subtask, Tag, Goal, FocusSession)
- recurrence.py: recurrence patterns and next-occurrence dates
- store.py: SQLite-backed storage + query/update helpers
- scoring.py, goals.py, progress.py, focus.py: derived statistics
- reminders.py: polling loop that announces due tasks
"""
