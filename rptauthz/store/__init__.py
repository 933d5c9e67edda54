"""
Storage for the authorization object graph.

Provides:
- ResourceServerStore: abstract interface for resource servers, scopes,
  resources, policies and permission definitions
- ResourceServerSnapshot: copy-on-read view used by one authorization call
- MemoryResourceServerStore: in-memory implementation
"""

from .types import ResourceServerSnapshot, ResourceServerStore
from .memory import MemoryResourceServerStore


def create_store(store_type: str = "memory", **kwargs) -> ResourceServerStore:
    """
    Factory function to create resource server stores

    Args:
        store_type: Type of store (only "memory" ships with the library)
        **kwargs: Additional arguments for the store

    Returns:
        ResourceServerStore instance
    """
    if store_type == "memory":
        return MemoryResourceServerStore()
    raise ValueError(f"Unknown store type: {store_type}")


__all__ = [
    "ResourceServerSnapshot",
    "ResourceServerStore",
    "MemoryResourceServerStore",
    "create_store",
]
