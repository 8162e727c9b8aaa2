"""
Task subsystem.

Components:
- task_models.py: data structures (Task, RiceParameters, SyncStatus, ...)
- scoring.py: completeness, missing parameters, RICE score, priority order
- task_store.py: in-memory session store with JSON snapshots
- focus_queue.py: focus pointer + backlog
- snapshot.py: snapshot file format
- task_api.py: prompt digest and progress helpers used by the rest of the app
"""
