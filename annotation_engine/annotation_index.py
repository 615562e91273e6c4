from __future__ import annotations

import logging
from typing import Iterable

from .config import EngineConfig
from .peer_data import PeerDataStore
from .scene import SceneNode
from .types import AnnotationListEntry

logger = logging.getLogger(__name__)


class AnnotationIndex:
    """Per-container ordered list of annotated node ids, one list per kind.

    Lists are stored as JSON arrays of `{"id", "position"}` on the container
    itself. Reads never fail: a missing or malformed list reads as empty.
    Reading and compacting are separate steps; `resolve_live_nodes` skips
    stale ids without touching the stored list, `prune` removes them.
    """

    def __init__(self, store: PeerDataStore | None = None, config: EngineConfig | None = None):
        self.store = store or PeerDataStore(config)
        self.config = config or self.store.config

    def _key(self, kind: str) -> str:
        return self.config.list_key(kind)

    def load(self, container: SceneNode, kind: str) -> list[AnnotationListEntry]:
        raw = self.store.get_record(container, self._key(kind))
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.debug("%s list on %s is not an array; ignoring", kind, container.id)
            return []

        entries: list[AnnotationListEntry] = []
        seen: set[str] = set()
        for item in raw:
            entry = AnnotationListEntry.from_dict(item)
            if entry is None or entry.id in seen:
                continue
            seen.add(entry.id)
            entries.append(entry)
        return entries

    def save(self, container: SceneNode, kind: str, entries: Iterable[AnnotationListEntry]) -> None:
        self.store.set_record(container, self._key(kind), [e.to_dict() for e in entries])

    def reset(self, container: SceneNode, kind: str) -> None:
        self.save(container, kind, [])

    def _live_ids(self, container: SceneNode, wanted: set[str]) -> dict[str, SceneNode]:
        found: dict[str, SceneNode] = {}
        if not wanted:
            return found
        for node in container.iter_descendants():
            if node.id in wanted:
                found[node.id] = node
                if len(found) == len(wanted):
                    break
        return found

    def resolve_live_nodes(self, container: SceneNode, kind: str) -> list[SceneNode]:
        entries = self.load(container, kind)
        live = self._live_ids(container, {e.id for e in entries})
        nodes: list[SceneNode] = []
        for entry in entries:
            node = live.get(entry.id)
            if node is None:
                logger.debug("stale %s entry %s in %s", kind, entry.id, container.id)
                continue
            nodes.append(node)
        return nodes

    def stale_ids(self, container: SceneNode, kind: str) -> list[str]:
        entries = self.load(container, kind)
        live = self._live_ids(container, {e.id for e in entries})
        return [e.id for e in entries if e.id not in live]

    def prune(self, container: SceneNode, kind: str) -> list[str]:
        stale = self.stale_ids(container, kind)
        if stale:
            kept = [e for e in self.load(container, kind) if e.id not in stale]
            self.save(container, kind, kept)
        return stale

    def position_of(self, container: SceneNode, kind: str, node_id: str) -> int | None:
        for entry in self.load(container, kind):
            if entry.id == node_id:
                return entry.position
        return None

    def append(self, container: SceneNode, kind: str, node: SceneNode) -> AnnotationListEntry:
        entries = self.load(container, kind)
        for entry in entries:
            if entry.id == node.id:
                return entry
        position = max((e.position for e in entries), default=0) + 1
        entry = AnnotationListEntry(id=node.id, position=position)
        entries.append(entry)
        self.save(container, kind, entries)
        return entry

    def remove(self, container: SceneNode, kind: str, node_ids: Iterable[str]) -> list[str]:
        ids = set(node_ids)
        entries = self.load(container, kind)
        removed = [e.id for e in entries if e.id in ids]
        if removed:
            self.save(container, kind, [e for e in entries if e.id not in ids])
        return removed

    def reposition(
        self,
        container: SceneNode,
        kind: str,
        node_id: str,
        new_position: int,
    ) -> list[AnnotationListEntry]:
        """Move one entry to `new_position`, shifting the entries in between by one."""
        entries = self.load(container, kind)
        selected = next((e for e in entries if e.id == node_id), None)
        if selected is None:
            logger.debug("cannot reposition %s: %s not in %s list", node_id, kind, container.id)
            return entries

        new_position = max(1, min(int(new_position), len(entries)))
        old_position = selected.position
        if new_position == old_position:
            return entries

        def _shifted(entry: AnnotationListEntry) -> int:
            if entry.id == node_id:
                return new_position
            current = entry.position
            if current > old_position:
                if current <= new_position:
                    return current - 1
            elif current >= new_position:
                return current + 1
            return current

        updated = [AnnotationListEntry(id=e.id, position=_shifted(e)) for e in entries]
        updated.sort(key=lambda e: e.position)
        self.save(container, kind, updated)
        return updated
