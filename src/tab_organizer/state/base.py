"""
Abstract base class for durable key-value storage backends.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class KeyValueStore(ABC):
    """Abstract interface for the process-wide key-value store.

    Values are JSON-compatible (dicts, lists, strings, numbers, booleans).
    There are no transactional guarantees across keys; callers that need a
    consistent read-modify-write must serialize it themselves.
    """

    @abstractmethod
    async def get(self, key: str, default: Any = None) -> Any:
        """
        Read a single value.

        Args:
            key: Storage key
            default: Value returned when the key is absent

        Returns:
            Stored value or default
        """
        pass

    @abstractmethod
    async def get_many(self, keys: list[str]) -> dict[str, Any]:
        """
        Read several keys in one call.

        Args:
            keys: Storage keys

        Returns:
            Mapping of the keys that exist to their values
        """
        pass

    @abstractmethod
    async def set_many(self, items: dict[str, Any]) -> None:
        """
        Write several keys in one call.

        Args:
            items: Mapping of key to value
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Remove a key.

        Args:
            key: Storage key

        Returns:
            True if the key existed
        """
        pass

    @abstractmethod
    async def keys(self, prefix: Optional[str] = None) -> list[str]:
        """
        List stored keys, optionally restricted to a prefix.

        Args:
            prefix: Optional key prefix

        Returns:
            Sorted list of keys
        """
        pass

    async def set(self, key: str, value: Any) -> None:
        """Write a single key."""
        await self.set_many({key: value})

    @abstractmethod
    def close(self):
        """Close the underlying storage."""
        pass

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
