from __future__ import annotations

import uuid
from typing import Any, Callable, Generic, Optional, Protocol, TypeVar

from partyledger.logging import get_logger

T = TypeVar("T")


class DocumentNotFound(LookupError):
    pass


class DocumentHandle(Protocol[T]):
    @property
    def id(self) -> str: ...

    def doc(self) -> Optional[T]: ...

    def change(self, mutator: Callable[[T], None]) -> None: ...


class DocumentStore(Protocol):
    def create(self, doc: T) -> DocumentHandle[T]: ...

    def find(self, doc_id: str) -> DocumentHandle[Any]: ...


class MemoryHandle(Generic[T]):
    def __init__(self, store: MemoryDocumentStore, doc_id: str) -> None:
        self._store = store
        self._id = doc_id

    @property
    def id(self) -> str:
        return self._id

    def doc(self) -> Optional[T]:
        return self._store._docs.get(self._id)

    def require(self) -> T:
        doc = self.doc()
        if doc is None:
            raise DocumentNotFound(self._id)
        return doc

    def change(self, mutator: Callable[[T], None]) -> None:
        mutator(self.require())
        self._store._dirty.add(self._id)


class MemoryDocumentStore:
    """In-process document store; ids are assigned on create."""

    def __init__(self) -> None:
        self._docs: dict[str, Any] = {}
        self._dirty: set[str] = set()
        self._log = get_logger(__name__)

    def create(self, doc: T) -> MemoryHandle[T]:
        doc_id = getattr(doc, "id", "") or uuid.uuid4().hex
        doc.id = doc_id  # type: ignore[attr-defined]
        self._docs[doc_id] = doc
        self._dirty.add(doc_id)
        self._log.debug("document.created", doc_id=doc_id, doc_type=type(doc).__name__)
        return MemoryHandle(self, doc_id)

    def find(self, doc_id: str) -> MemoryHandle[Any]:
        return MemoryHandle(self, doc_id)

    def load(self, doc: Any) -> None:
        self._docs[doc.id] = doc

    def dirty(self) -> list[Any]:
        return [self._docs[doc_id] for doc_id in sorted(self._dirty) if doc_id in self._docs]

    def mark_clean(self) -> None:
        self._dirty.clear()

    def __contains__(self, doc_id: str) -> bool:
        return doc_id in self._docs
