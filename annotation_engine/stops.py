"""Resolution of the authoritative annotation order for a selection.

Previously annotated nodes keep their recorded order; newly qualifying nodes
are appended in visual-hierarchy order. Re-running a resolution therefore
never reshuffles existing annotation numbers.
"""
from __future__ import annotations

import logging
from typing import Iterable, Sequence

from .annotation_index import AnnotationIndex
from .config import EngineConfig
from .crawler import NodeCrawler, find_top_frame
from .peer_data import PeerDataStore, PeerMetadata
from .scene import SceneNode

logger = logging.getLogger(__name__)


class StopResolver:
    def __init__(
        self,
        config: EngineConfig | None = None,
        store: PeerDataStore | None = None,
        index: AnnotationIndex | None = None,
    ):
        self.config = config or EngineConfig()
        self.store = store or PeerDataStore(self.config)
        self.index = index or AnnotationIndex(self.store, self.config)

    def crawler(self, nodes: Iterable[SceneNode]) -> NodeCrawler:
        return NodeCrawler(nodes, self.config)

    def get_frame_annotated_nodes(
        self,
        kind: str,
        frame: SceneNode,
        reset_data: bool = False,
    ) -> list[SceneNode]:
        """Live nodes recorded in the frame's list, in recorded order.

        With `reset_data`, the stored list is cleared afterwards; callers pass it
        when every annotation of `kind` in the frame is about to be repainted.
        """
        nodes = self.index.resolve_live_nodes(frame, kind)
        if reset_data:
            self.index.reset(frame, kind)
        return nodes

    def get_assigned_child_nodes(
        self,
        children: Iterable[SceneNode],
        exclusion_list: Iterable[SceneNode],
        kind: str,
    ) -> list[SceneNode]:
        """Scan `children` and their descendants for nodes assignable to `kind`.

        Nodes without `kind` metadata are transparent and always scanned
        through. Below an assignable node, the scan continues only when its
        metadata allows pass-through.
        """
        excluded = {node.id for node in exclusion_list}
        metadata: dict[str, PeerMetadata | None] = {}

        def _metadata(node: SceneNode) -> PeerMetadata | None:
            if node.id not in metadata:
                metadata[node.id] = self.store.get_metadata(node, kind)
            return metadata[node.id]

        def _descend(node: SceneNode) -> bool:
            data = _metadata(node)
            if data is None or not data.is_assignable:
                return True
            return data.allows_passthrough

        assigned: list[SceneNode] = []
        for node in self.crawler(children).all(descend=_descend):
            data = _metadata(node)
            if data is not None and data.is_assignable and node.id not in excluded:
                assigned.append(node)
        return assigned

    def get_ordered_stop_nodes(
        self,
        kind: str,
        selection: Sequence[SceneNode],
        new_only: bool = False,
        explicit_nodes: Sequence[SceneNode] | None = None,
        reset_data: bool = False,
    ) -> list[SceneNode]:
        """Return the nodes to annotate for `kind`, in annotation order.

        `explicit_nodes`, when non-empty, replaces the selection as the set of
        nodes to annotate; top frames (where the lists live) always come from
        `selection`. Stored lists are cleared only for selection-based
        resolution with `reset_data`. With `new_only`, previously annotated
        nodes are left out of the result.
        """
        selection = list(selection or [])
        explicit = list(explicit_nodes or [])
        from_selection = not explicit
        working = explicit if explicit else list(selection)

        top_frames = self.crawler(selection).top_frames()
        if not top_frames:
            logger.debug("no top frame for %d selected node(s); nothing to order", len(selection))
            return []

        ordered: list[SceneNode] = []
        ordered_ids: set[str] = set()
        for frame in top_frames:
            annotated = self.get_frame_annotated_nodes(
                kind,
                frame,
                reset_data=reset_data and from_selection,
            )
            for node in annotated:
                if node.id not in ordered_ids:
                    ordered_ids.add(node.id)
                    ordered.append(node)

            if from_selection and frame.children:
                exclusion_list = [*ordered, *working, *top_frames]
                working.extend(self.get_assigned_child_nodes(frame.children, exclusion_list, kind))

        frame_ids = {frame.id for frame in top_frames}
        remainder: list[SceneNode] = []
        remainder_ids: set[str] = set()
        for node in working:
            if node.id in ordered_ids or node.id in frame_ids or node.id in remainder_ids:
                continue
            remainder_ids.add(node.id)
            remainder.append(node)

        # New nodes follow frame encounter order; visual order applies within a frame.
        buckets: dict[str, list[SceneNode]] = {frame.id: [] for frame in top_frames}
        unscoped: list[SceneNode] = []
        for node in remainder:
            frame = find_top_frame(node, self.config.top_frame_types)
            if frame is not None and frame.id in buckets:
                buckets[frame.id].append(node)
            else:
                unscoped.append(node)

        sorted_remainder: list[SceneNode] = []
        for frame in top_frames:
            sorted_remainder.extend(self.crawler(buckets[frame.id]).sorted())
        sorted_remainder.extend(self.crawler(unscoped).sorted())
        if new_only:
            return sorted_remainder
        return ordered + sorted_remainder

    def repaint(
        self,
        kind: str,
        selection: Sequence[SceneNode],
        explicit_nodes: Sequence[SceneNode] | None = None,
    ) -> list[SceneNode]:
        """Resolve the order and record it as the frames' new lists."""
        nodes = self.get_ordered_stop_nodes(
            kind,
            selection,
            explicit_nodes=explicit_nodes,
            reset_data=True,
        )
        for node in nodes:
            frame = find_top_frame(node, self.config.top_frame_types)
            if frame is None:
                continue
            self.index.append(frame, kind, node)
        logger.info("recorded %d %s stop(s)", len(nodes), kind)
        return nodes

    def remove_stops(self, kind: str, nodes: Sequence[SceneNode]) -> list[str]:
        ids = [node.id for node in nodes]
        removed: list[str] = []
        for frame in self.crawler(nodes).top_frames():
            removed.extend(self.index.remove(frame, kind, ids))
        return removed

    def get_stop_position(self, kind: str, node: SceneNode) -> int | None:
        frame = find_top_frame(node, self.config.top_frame_types)
        if frame is None:
            return None
        return self.index.position_of(frame, kind, node.id)


# Module-level conveniences over a default-configured resolver.

def get_ordered_stop_nodes(
    kind: str,
    selection: Sequence[SceneNode],
    new_only: bool = False,
    explicit_nodes: Sequence[SceneNode] | None = None,
    *,
    config: EngineConfig | None = None,
) -> list[SceneNode]:
    return StopResolver(config).get_ordered_stop_nodes(kind, selection, new_only, explicit_nodes)


def get_frame_annotated_nodes(
    kind: str,
    frame: SceneNode,
    reset_data: bool = False,
    *,
    config: EngineConfig | None = None,
) -> list[SceneNode]:
    return StopResolver(config).get_frame_annotated_nodes(kind, frame, reset_data)


def get_assigned_child_nodes(
    children: Iterable[SceneNode],
    exclusion_list: Iterable[SceneNode],
    kind: str,
    *,
    config: EngineConfig | None = None,
) -> list[SceneNode]:
    return StopResolver(config).get_assigned_child_nodes(children, exclusion_list, kind)
