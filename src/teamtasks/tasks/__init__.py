"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Employee, Attachment, TaskStatus) + record codec
- local_store.py: key-value backed directory/repository (attachments embedded)
- remote_store.py: document-store backed directory/repository (attachments in blob store)
- task_filter.py: filter composition and default orderings
- attachments.py: upload/link validation, staging and commit of the working set
- edit_session.py: add/edit session value object with save/cancel
- csv_export.py: CSV export and re-parse
- task_api.py: small high-level helpers used by the rest of the app
"""
