from __future__ import annotations

from typing import Any

from .config import EngineConfig
from .scene import SceneGraph, SceneNode
from .types import FRAME, GROUP


def get_spec_page_list(graph: SceneGraph, config: EngineConfig | None = None) -> list[dict[str, Any]]:
    """Pages generated as spec pages, recognised by the marker in their name."""
    marker = (config or EngineConfig()).spec_page_marker
    return [{"name": page.name, "id": page.id} for page in graph.pages if marker in page.name]


def get_annotation_groups(page: SceneNode, config: EngineConfig | None = None) -> list[SceneNode]:
    marker = (config or EngineConfig()).annotation_group_marker
    groups = []
    for frame in page.children:
        if frame.type != FRAME:
            continue
        group = frame.find_child(lambda child: child.type == GROUP and marker in child.name)
        if group is not None:
            groups.append(group)
    return groups
