"""
Vector database adapters.

Supported databases:
    - Qdrant (qdrant-client)
    - Elasticsearch (REST)
    - Vespa (REST)
    - Brute force (in-process reference oracle)
"""

from vdbbench.databases.factory import get_database, list_available_databases, register_database

__all__ = [
    "get_database",
    "list_available_databases",
    "register_database",
]
