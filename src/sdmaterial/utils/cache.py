"""
In-memory caching for sdmaterial.

Holds the model catalog fetched from the server. The cached list is only ever
replaced wholesale, so concurrent readers see either the old list or the new
one, never a partial update.
"""

import threading

from sdmaterial.core.models import ModelDescriptor


class ModelCache:
    """Process-scoped snapshot of the server's model catalog."""

    def __init__(self) -> None:
        """Initialize an empty cache."""
        self._models: tuple[ModelDescriptor, ...] = ()
        self._write_lock = threading.Lock()

    def replace(self, models: list[ModelDescriptor]) -> None:
        """
        Swap in a new catalog.

        Args:
            models: Descriptors in server order; duplicates are kept
        """
        snapshot = tuple(models)
        with self._write_lock:
            self._models = snapshot

    def models(self) -> tuple[ModelDescriptor, ...]:
        """Return the current catalog snapshot."""
        return self._models

    def names(self) -> tuple[str, ...]:
        """Return the model names of the current snapshot, in server order."""
        return tuple(m.model_name for m in self._models)

    def clear(self) -> None:
        """Forget the cached catalog."""
        with self._write_lock:
            self._models = ()

    def size(self) -> int:
        """
        Get the number of cached models.

        Returns:
            Number of descriptors in the snapshot
        """
        return len(self._models)
