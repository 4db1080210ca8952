"""Abstract base classes for dependency injection."""

from abc import ABC, abstractmethod


class ContextStore(ABC):
    """Abstract base class for durable key/value storage of navigation state."""

    @abstractmethod
    def load_config(self) -> dict:
        """Load configuration. Returns config dict."""
        pass

    @abstractmethod
    def load_value(self, key: str, user_id: str = "default") -> dict | None:
        """Load a stored value for a user. Returns None if not found."""
        pass

    @abstractmethod
    def save_value(self, key: str, value: dict, user_id: str = "default") -> None:
        """Store a value for a user, replacing any previous one."""
        pass

    @abstractmethod
    def delete_value(self, key: str, user_id: str = "default") -> bool:
        """Remove a stored value. Returns True if something was deleted."""
        pass
