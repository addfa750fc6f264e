"""Base class for engine plugins."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aibitat.engine import AIbitat


class Plugin(ABC):
    """A collaborator hooking into an engine's events.

    Plugins are installed with ``AIbitat.use``, which calls ``setup`` once.
    """

    # Class attributes - must be set by subclasses
    name: str

    @abstractmethod
    def setup(self, aibitat: "AIbitat") -> None:
        """Register the plugin's callbacks on the engine."""
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
