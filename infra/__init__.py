"""Infrastructure adapters for JSON document storage."""
from __future__ import annotations

from typing import Any, Callable, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")


@runtime_checkable
class DocumentStore(Protocol):
    """Common interface for document backends (JSON file / Redis)."""

    def load(self, default: Any = None) -> Any:
        """Return the decoded document, or *default* when it does not exist."""
        ...

    def save(self, data: Any) -> None:
        """Replace the document with *data*."""
        ...

    def with_lock(self, operation: Callable[[], T]) -> T:
        """Run *operation* while holding the document's exclusive lock."""
        ...
