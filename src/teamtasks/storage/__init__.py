"""
Concrete storage backends.

- kv_store.py: SQLite key-value store (local mode)
- document_store.py: SQLite document store with ordered live queries (remote mode)
- blob_store.py: filesystem blob store addressed by path (remote mode)
"""
