from __future__ import annotations

from typing import Any

import pytest

from annotation_engine.config import EngineConfig
from annotation_engine.peer_data import KeystopData, LabelData, PeerDataStore
from annotation_engine.scene import SceneGraph, SceneNode
from annotation_engine.types import FRAME, PAGE, Bounds, LinkToken


class DocBuilder:
    """Small helper for building documents in tests."""

    def __init__(self) -> None:
        self.graph = SceneGraph()
        self.config = EngineConfig()
        self.store = PeerDataStore(self.config)
        self.page = self.graph.create_node(PAGE, "Page 1", parent=self.graph.document, node_id="0:1")

    def node(
        self,
        node_id: str,
        parent: SceneNode | None = None,
        node_type: str = "RECTANGLE",
        x: float = 0,
        y: float = 0,
        width: float = 10,
        height: float = 10,
        name: str | None = None,
    ) -> SceneNode:
        return self.graph.create_node(
            node_type,
            name or node_id,
            Bounds(x, y, width, height),
            parent=parent or self.page,
            node_id=node_id,
        )

    def frame(self, node_id: str, parent: SceneNode | None = None, **kw: Any) -> SceneNode:
        return self.node(node_id, parent, FRAME, **kw)

    def keystop(self, node: SceneNode, passthrough: bool = False) -> SceneNode:
        self.store.set_metadata(node, KeystopData(has_keystop=True, allow_keystop_passthrough=passthrough))
        return node

    def label(self, node: SceneNode, role: str = "button") -> SceneNode:
        self.store.set_metadata(node, LabelData(role=role))
        return node

    def record(self, frame: SceneNode, kind: str, *ids: str) -> None:
        entries = [{"id": node_id, "position": n} for n, node_id in enumerate(ids, start=1)]
        self.store.set_record(frame, self.config.list_key(kind), entries)

    def stored(self, frame: SceneNode, kind: str) -> list[dict[str, Any]]:
        return self.store.get_record(frame, self.config.list_key(kind), [])

    def link(self, node: SceneNode, key: str, link_id: str, role: str) -> None:
        self.store.set_link(node, key, LinkToken(id=link_id, role=role))


@pytest.fixture
def doc() -> DocBuilder:
    return DocBuilder()
