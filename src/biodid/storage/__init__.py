"""Storage backends for biodid.

- Content stores hold serialized identity documents by content address.
- The database pool backs the pointer and token tables.
"""

from .content import (
    ContentStore,
    IPFSContentStore,
    LocalFileContentStore,
    MemoryContentStore,
    content_address,
    create_content_store,
)
from .db import DatabasePool, check_connection, init_schema, load_schema_sql, table_exists

__all__ = [
    "ContentStore",
    "MemoryContentStore",
    "LocalFileContentStore",
    "IPFSContentStore",
    "content_address",
    "create_content_store",
    "DatabasePool",
    "init_schema",
    "load_schema_sql",
    "check_connection",
    "table_exists",
]
