"""
Factory pattern for creating vector database adapters.

This module provides a centralized way to instantiate database adapters
by name, so the benchmark code never depends on a concrete backend.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Type

from vdbbench.core.base import VectorDatabase

logger = logging.getLogger(__name__)

# Registry of available database adapters
_DATABASE_REGISTRY: Dict[str, Type[VectorDatabase]] = {}

_ADAPTER_MODULES = {
    "qdrant": "vdbbench.databases.qdrant_adapter",
    "elasticsearch": "vdbbench.databases.elasticsearch_adapter",
    "vespa": "vdbbench.databases.vespa_adapter",
    "bruteforce": "vdbbench.databases.bruteforce_adapter",
}


def register_database(name: str) -> Callable:
    """
    Decorator to register a database adapter class.

    Args:
        name: Name to register the database under

    Returns:
        Decorator function

    Example:
        @register_database("qdrant")
        class QdrantAdapter:
            ...
    """

    def decorator(cls: Type[VectorDatabase]) -> Type[VectorDatabase]:
        _DATABASE_REGISTRY[name.lower()] = cls
        return cls

    return decorator


def get_database(
    name: str,
    config: Optional[Dict[str, Any]] = None,
) -> VectorDatabase:
    """
    Get a database adapter instance.

    Args:
        name: Name of the database (qdrant, elasticsearch, vespa, bruteforce)
        config: Optional connection settings for the adapter

    Returns:
        Instance of the database adapter

    Raises:
        ValueError: If database is not registered
    """
    name_lower = name.lower()

    if name_lower not in _DATABASE_REGISTRY:
        _import_adapter(name_lower)

    if name_lower not in _DATABASE_REGISTRY:
        available = ", ".join(list_available_databases())
        raise ValueError(
            f"Unknown database: {name}. Available databases: {available}"
        )

    adapter_class = _DATABASE_REGISTRY[name_lower]
    return adapter_class(config or {})


def list_available_databases() -> List[str]:
    """
    List all registered database adapters.

    Returns:
        List of database names
    """
    for name in _ADAPTER_MODULES:
        _import_adapter(name)
    return sorted(_DATABASE_REGISTRY.keys())


def _import_adapter(name: str) -> None:
    """
    Import a database adapter module by name.

    Args:
        name: Name of the database
    """
    module_name = _ADAPTER_MODULES.get(name.lower())
    if module_name:
        try:
            __import__(module_name)
        except ImportError as e:
            # The client library may not be installed
            logger.warning("Could not import %s adapter: %s", name, e)
