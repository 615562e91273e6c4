"""Lookups between design nodes, their annotation markers and legend frames."""
from __future__ import annotations

import logging
from typing import Iterable

from .config import EngineConfig
from .peer_data import PeerDataStore
from .scene import SceneNode
from .types import (
    COMPONENT,
    DOCUMENT,
    INSTANCE,
    PAGE,
    LegendTrackingEntry,
    NodeTrackingEntry,
)

logger = logging.getLogger(__name__)

_BOUNDARY_TYPES = (PAGE, DOCUMENT)


class LinkResolver:
    def __init__(self, config: EngineConfig | None = None, store: PeerDataStore | None = None):
        self.config = config or EngineConfig()
        self.store = store or PeerDataStore(self.config)

    # --- ancestry

    def find_parent_instance(self, node: SceneNode) -> SceneNode | None:
        """Nearest enclosing component instance, widened to the outermost of a nested run."""
        if node.type == INSTANCE:
            return node

        current = node.parent
        while current is not None and current.type != INSTANCE:
            if current.type in _BOUNDARY_TYPES:
                return None
            current = current.parent
        if current is None:
            return None

        while current.parent is not None and current.parent.type == INSTANCE:
            current = current.parent
        return current

    def find_top_component(self, node: SceneNode) -> SceneNode | None:
        # Components cannot nest, so the first one found going up is final.
        if node.type == COMPONENT:
            return node
        current = node.parent
        while current is not None and current.type not in _BOUNDARY_TYPES:
            if current.type == COMPONENT:
                return current
            current = current.parent
        return None

    # --- legend frames

    def load_legend_tracking(self, page: SceneNode) -> list[LegendTrackingEntry]:
        raw = self.store.get_record(page, self.config.legend_frames_key(), [])
        if not isinstance(raw, list):
            return []
        entries = [LegendTrackingEntry.from_dict(item) for item in raw]
        return [e for e in entries if e is not None]

    def save_legend_tracking(self, page: SceneNode, entries: Iterable[LegendTrackingEntry]) -> None:
        self.store.set_record(page, self.config.legend_frames_key(), [e.to_dict() for e in entries])

    def find_legend_frame(self, frame_id: str, page: SceneNode) -> SceneNode | None:
        entry = next((e for e in self.load_legend_tracking(page) if e.id == frame_id), None)
        if entry is None or not entry.legend_id:
            return None
        legend = page.graph.get_node_by_id(entry.legend_id)
        if legend is None:
            logger.debug("legend %s for frame %s no longer exists", entry.legend_id, frame_id)
        return legend

    def find_orphaned_legend_frame(
        self,
        page: SceneNode,
        tracking_data: Iterable[LegendTrackingEntry],
        frame_link_id: str,
    ) -> SceneNode | None:
        """Find an untracked page child carrying the legend half of `frame_link_id`."""
        tracked = {e.legend_id for e in tracking_data if e.legend_id}
        key = self.config.legend_link_key()
        for child in page.children:
            token = self.store.get_link(child, key)
            if (
                token is not None
                and token.role == "legend"
                and token.id == frame_link_id
                and child.id not in tracked
            ):
                return child
        return None

    def recover_legend_frame(self, frame: SceneNode, page: SceneNode) -> SceneNode | None:
        """Tracked legend for `frame`, or a re-tracked orphan when tracking data was lost."""
        legend = self.find_legend_frame(frame.id, page)
        if legend is not None:
            return legend

        token = self.store.get_link(frame, self.config.legend_link_key())
        if token is None or token.role != "frame":
            return None

        tracking = self.load_legend_tracking(page)
        orphan = self.find_orphaned_legend_frame(page, tracking, token.id)
        if orphan is None:
            return None

        tracking = [e for e in tracking if e.id != frame.id]
        tracking.append(LegendTrackingEntry(id=frame.id, legend_id=orphan.id, link_id=token.id))
        self.save_legend_tracking(page, tracking)
        logger.info("re-tracked orphaned legend %s for frame %s", orphan.id, frame.id)
        return orphan

    # --- annotation markers

    def load_node_tracking(self, page: SceneNode, kind: str) -> list[NodeTrackingEntry]:
        raw = self.store.get_record(page, self.config.annotations_key(kind), [])
        if not isinstance(raw, list):
            return []
        entries = [NodeTrackingEntry.from_dict(item) for item in raw]
        return [e for e in entries if e is not None]

    def infer_kind(self, annotation: SceneNode) -> str | None:
        name = (annotation.name or "").lower()
        return next((kind for kind in self.config.stop_kinds if kind in name), None)

    def get_design_node_from_annotation(self, page: SceneNode, annotation: SceneNode) -> SceneNode | None:
        kind = self.infer_kind(annotation)
        design_node_id: str | None = None
        if kind:
            tracking = self.load_node_tracking(page, kind)
            design_node_id = next((e.id for e in tracking if e.annotation_id == annotation.id), None)
        else:
            token = self.store.get_link(annotation, self.config.general_link_key())
            design_node_id = token.id if token else None

        if not design_node_id:
            return None
        return page.graph.get_node_by_id(design_node_id)

    def get_selected_annotation_items(
        self,
        page: SceneNode,
        kind: str,
        selection: Iterable[SceneNode],
    ) -> list[SceneNode]:
        """Design nodes whose `kind` annotation markers are in `selection`."""
        key = self.config.link_key(kind)
        tracking = self.load_node_tracking(page, kind)
        by_annotation = {e.annotation_id: e.id for e in tracking if e.annotation_id}

        nodes: list[SceneNode] = []
        for marker in selection:
            token = self.store.get_link(marker, key)
            if token is None or token.role != "annotation":
                continue
            node = page.graph.get_node_by_id(by_annotation.get(marker.id))
            if node is not None:
                nodes.append(node)
        return nodes


def find_parent_instance(node: SceneNode, *, config: EngineConfig | None = None) -> SceneNode | None:
    return LinkResolver(config).find_parent_instance(node)


def find_top_component(node: SceneNode, *, config: EngineConfig | None = None) -> SceneNode | None:
    return LinkResolver(config).find_top_component(node)


def find_legend_frame(frame_id: str, page: SceneNode, *, config: EngineConfig | None = None) -> SceneNode | None:
    return LinkResolver(config).find_legend_frame(frame_id, page)


def find_orphaned_legend_frame(
    page: SceneNode,
    tracking_data: Iterable[LegendTrackingEntry],
    frame_link_id: str,
    *,
    config: EngineConfig | None = None,
) -> SceneNode | None:
    return LinkResolver(config).find_orphaned_legend_frame(page, tracking_data, frame_link_id)


def get_design_node_from_annotation(
    page: SceneNode,
    annotation: SceneNode,
    *,
    config: EngineConfig | None = None,
) -> SceneNode | None:
    return LinkResolver(config).get_design_node_from_annotation(page, annotation)
