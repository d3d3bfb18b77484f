"""uploadgate object storage package.

Layout:
    protocol.py     — ObjectStore Protocol
    minio_store.py  — MinioObjectStore (S3-compatible, minio SDK)
    memory_store.py — MemoryObjectStore (development / tests)
    factory.py      — create_object_store()
"""

from uploadgate.storage.memory_store import MemoryObjectStore, StoredObject
from uploadgate.storage.protocol import ObjectStore

__all__ = [
    "MemoryObjectStore",
    "ObjectStore",
    "StoredObject",
]
