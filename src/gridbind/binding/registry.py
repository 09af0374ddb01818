from __future__ import annotations

from collections.abc import Collection, Iterator
import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field

from ..host.base import GridDocument
from ..query import ConnectionCatalog
from .descriptor import BindingDescriptor, BindingRecord

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


def _key(document_id: str) -> str:
    return document_id.casefold()


class RegistrySnapshot(BaseModel):
    """On-disk form of a registry."""

    version: int = SNAPSHOT_VERSION
    bindings: list[BindingRecord] = Field(default_factory=list)


class BindingRegistry:
    """Per-document store of binding descriptors."""

    def __init__(self) -> None:
        self._by_document: dict[str, list[BindingDescriptor]] = {}

    def __len__(self) -> int:
        return sum(len(items) for items in self._by_document.values())

    def __iter__(self) -> Iterator[BindingDescriptor]:
        for items in list(self._by_document.values()):
            yield from list(items)

    def __contains__(self, descriptor: object) -> bool:
        if not isinstance(descriptor, BindingDescriptor):
            return False
        return descriptor in self.find_all(descriptor.record.document_id)

    def add(self, descriptor: BindingDescriptor) -> bool:
        """Register a descriptor.

        An equal descriptor is never added twice. A different descriptor with
        the same ``binding_id`` replaces the registered one.
        """
        if descriptor in self:
            return False
        stale = self.get(descriptor.binding_id)
        if stale is not None:
            logger.info("Binding %s replaced by a new import.", stale.binding_id)
            self.remove(stale)
        descriptor.registry = self
        key = _key(descriptor.record.document_id)
        self._by_document.setdefault(key, []).append(descriptor)
        return True

    def get(self, binding_id: str) -> BindingDescriptor | None:
        wanted = binding_id.casefold()
        for descriptor in self:
            if descriptor.binding_id.casefold() == wanted:
                return descriptor
        return None

    def remove(self, descriptor: BindingDescriptor) -> bool:
        """Remove a descriptor; returns False when it was not registered."""
        items = self._by_document.get(_key(descriptor.record.document_id), [])
        if descriptor not in items:
            return False
        items.remove(descriptor)
        if not items:
            del self._by_document[_key(descriptor.record.document_id)]
        descriptor.registry = None
        logger.debug("Removed binding %s", descriptor.binding_id)
        return True

    def find_all(self, document_id: str) -> list[BindingDescriptor]:
        return list(self._by_document.get(_key(document_id), []))

    def restore_all(
        self, document: GridDocument, catalog: ConnectionCatalog | None = None
    ) -> list[BindingDescriptor]:
        """Restore every descriptor of ``document``; returns those resolved."""
        document_id = document.get_or_create_document_id()
        restored = [
            descriptor
            for descriptor in self.find_all(document_id)
            if descriptor.restore(document, catalog)
        ]
        logger.info(
            "Restored %d of %d bindings in %s",
            len(restored),
            len(self.find_all(document_id)),
            document.name,
        )
        return restored

    def refresh_all(
        self, document: GridDocument, *, connection_ids: Collection[str] | None = None
    ) -> dict[str, bool]:
        """Refresh every resolved descriptor of ``document``.

        Args:
            document: Open host document.
            connection_ids: Connections available to this run. Bindings on any
                other connection are skipped and kept, not treated as deleted.

        Returns:
            Mapping of binding id to whether its table was rebound.
        """
        outcome: dict[str, bool] = {}
        for descriptor in self.find_all(document.get_or_create_document_id()):
            if descriptor.document is not document:
                continue
            connection_id = descriptor.record.connection_id
            if connection_ids is not None and connection_id not in connection_ids:
                logger.warning(
                    "Connection %s is not configured; %s was skipped.",
                    connection_id,
                    descriptor.binding_id,
                )
                outcome[descriptor.binding_id] = False
                continue
            outcome[descriptor.binding_id] = descriptor.refresh()
        return outcome

    def snapshot(self) -> RegistrySnapshot:
        return RegistrySnapshot(bindings=[descriptor.record for descriptor in self])

    def save(self, path: Path | str) -> Path:
        """Write the registry as JSON."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.snapshot().model_dump_json(indent=2), encoding="utf-8")
        logger.debug("Saved %d bindings to %s", len(self), target)
        return target

    @classmethod
    def load(
        cls, path: Path | str, catalog: ConnectionCatalog | None = None
    ) -> BindingRegistry:
        """Read a registry written by ``save``; a missing file yields an empty one."""
        registry = cls()
        source = Path(path)
        if not source.exists():
            return registry
        data = json.loads(source.read_text(encoding="utf-8"))
        snapshot = RegistrySnapshot.model_validate(data)
        if snapshot.version != SNAPSHOT_VERSION:
            raise ValueError(f"Unsupported registry version: {snapshot.version}")
        for record in snapshot.bindings:
            connection = catalog.get(record.connection_id) if catalog is not None else None
            registry.add(BindingDescriptor(record, connection=connection))
        return registry


__all__ = ["BindingRegistry", "RegistrySnapshot"]
