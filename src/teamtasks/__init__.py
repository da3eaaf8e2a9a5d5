"""
teamtasks: a small team task tracker.

Subpackages:
- core: ports (Protocols), app state and snapshot fan-out
- storage: SQLite key-value / document stores and a filesystem blob store
- tasks: models, repositories, filtering, attachments, edit sessions, CSV export
- cli / connectors: console entry point and slash commands
"""

__version__ = "0.1.0"
