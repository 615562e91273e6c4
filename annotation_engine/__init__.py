"""Annotation ordering engine for design-document scene graphs.

This package keeps persisted annotation metadata (keyboard stops, labels,
headings) consistent with a mutable, externally edited node tree:
- crawler: walks selections, finds top frames, orders nodes visually
- annotation_index: per-frame ordered annotation lists
- stops: resolves the authoritative annotation order
- links: finds design nodes, markers and legend frames from each other

Drawing annotations and any UI are out of scope.
"""

from __future__ import annotations

from .annotation_index import AnnotationIndex
from .config import EngineConfig, load_config
from .crawler import NodeCrawler
from .links import (
    LinkResolver,
    find_legend_frame,
    find_orphaned_legend_frame,
    find_parent_instance,
    find_top_component,
    get_design_node_from_annotation,
)
from .pages import get_annotation_groups, get_spec_page_list
from .peer_data import PeerDataStore
from .scene import NodeRemovedError, SceneGraph, SceneNode
from .stops import (
    StopResolver,
    get_assigned_child_nodes,
    get_frame_annotated_nodes,
    get_ordered_stop_nodes,
)

__all__ = [
    "__version__",
    "AnnotationIndex",
    "EngineConfig",
    "LinkResolver",
    "NodeCrawler",
    "NodeRemovedError",
    "PeerDataStore",
    "SceneGraph",
    "SceneNode",
    "StopResolver",
    "find_legend_frame",
    "find_orphaned_legend_frame",
    "find_parent_instance",
    "find_top_component",
    "get_annotation_groups",
    "get_assigned_child_nodes",
    "get_design_node_from_annotation",
    "get_frame_annotated_nodes",
    "get_ordered_stop_nodes",
    "get_spec_page_list",
    "load_config",
]

__version__ = "0.1.0"
