"""In-memory host scene graph.

Nodes live in an arena keyed by id. `parent` and `children` are lookups into
that arena, so a removed node never leaves a dangling structural pointer:
its former parent simply stops listing it and anything still holding the
removed object sees `parent is None` and `removed is True`.

Document JSON format (one object per node):

    {"id": "1:2", "type": "FRAME", "name": "Login",
     "x": 0, "y": 0, "width": 400, "height": 400,
     "pluginData": {"keystopList": "[...]"},
     "children": [...]}
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Iterator

from .types import DOCUMENT, PAGE, Bounds
from .utils import dump_json, load_json, write_json

logger = logging.getLogger(__name__)

NodePredicate = Callable[["SceneNode"], bool]


class NodeRemovedError(RuntimeError):
    """Raised when writing to a node that is no longer part of the document."""


class SceneNode:
    def __init__(
        self,
        graph: "SceneGraph",
        node_id: str,
        node_type: str,
        name: str = "",
        bounds: Bounds | None = None,
    ):
        self._graph = graph
        self.id = node_id
        self.type = node_type
        self.name = name
        self.bounds = bounds or Bounds()
        self.parent_id: str | None = None
        self.child_ids: list[str] = []
        self.plugin_data: dict[str, str] = {}
        self.removed = False

    def __repr__(self) -> str:
        return f"SceneNode(id={self.id!r}, type={self.type!r}, name={self.name!r})"

    @property
    def graph(self) -> "SceneGraph":
        return self._graph

    @property
    def parent(self) -> "SceneNode | None":
        if self.removed or self.parent_id is None:
            return None
        return self._graph.get_node_by_id(self.parent_id)

    @property
    def children(self) -> list["SceneNode"]:
        if self.removed:
            return []
        nodes = []
        for child_id in self.child_ids:
            child = self._graph.get_node_by_id(child_id)
            if child is not None:
                nodes.append(child)
        return nodes

    @property
    def x(self) -> float:
        return self.bounds.x

    @property
    def y(self) -> float:
        return self.bounds.y

    @property
    def width(self) -> float:
        return self.bounds.width

    @property
    def height(self) -> float:
        return self.bounds.height

    # --- plugin data

    def get_plugin_data(self, key: str) -> str:
        return self.plugin_data.get(key, "")

    def set_plugin_data(self, key: str, value: str) -> None:
        if self.removed:
            raise NodeRemovedError(f"cannot write {key!r}: node {self.id} was removed")
        if not isinstance(value, str):
            raise TypeError(f"plugin data must be a string, got {type(value).__name__}")
        if value:
            self.plugin_data[key] = value
        else:
            self.plugin_data.pop(key, None)

    # --- subtree lookups

    def iter_descendants(self) -> Iterator["SceneNode"]:
        """Depth-first pre-order walk of the subtree, excluding this node."""
        stack = list(reversed(self.children))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def find_one(self, predicate: NodePredicate) -> "SceneNode | None":
        for node in self.iter_descendants():
            if predicate(node):
                return node
        return None

    def find_all(self, predicate: NodePredicate) -> list["SceneNode"]:
        return [node for node in self.iter_descendants() if predicate(node)]

    def find_child(self, predicate: NodePredicate) -> "SceneNode | None":
        for child in self.children:
            if predicate(child):
                return child
        return None

    # --- mutation

    def append_child(self, node: "SceneNode") -> None:
        self._graph.move(node, self)

    def remove(self) -> None:
        self._graph.remove(self)


class SceneGraph:
    def __init__(self, document_id: str = "0:0", name: str = "Document"):
        self._nodes: dict[str, SceneNode] = {}
        self._next_id = 1
        self.document = SceneNode(self, document_id, DOCUMENT, name)
        self._nodes[document_id] = self.document

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def pages(self) -> list[SceneNode]:
        return [child for child in self.document.children if child.type == PAGE]

    def get_node_by_id(self, node_id: str | None) -> SceneNode | None:
        if not node_id:
            return None
        return self._nodes.get(node_id)

    def _new_id(self) -> str:
        while f"1:{self._next_id}" in self._nodes:
            self._next_id += 1
        node_id = f"1:{self._next_id}"
        self._next_id += 1
        return node_id

    def create_node(
        self,
        node_type: str,
        name: str = "",
        bounds: Bounds | None = None,
        parent: SceneNode | None = None,
        index: int | None = None,
        node_id: str | None = None,
    ) -> SceneNode:
        if node_id is None:
            node_id = self._new_id()
        elif node_id in self._nodes:
            raise ValueError(f"duplicate node id: {node_id}")
        node = SceneNode(self, node_id, node_type, name, bounds)
        self._nodes[node_id] = node
        if parent is not None:
            self._attach(node, parent, index)
        return node

    def _attach(self, node: SceneNode, parent: SceneNode, index: int | None) -> None:
        if parent.removed:
            raise NodeRemovedError(f"cannot attach to removed node {parent.id}")
        node.parent_id = parent.id
        if index is None:
            parent.child_ids.append(node.id)
        else:
            parent.child_ids.insert(index, node.id)

    def detach(self, node: SceneNode) -> None:
        """Unlink a node from its parent while keeping it registered."""
        old_parent = self.get_node_by_id(node.parent_id)
        if old_parent is not None and node.id in old_parent.child_ids:
            old_parent.child_ids.remove(node.id)
        node.parent_id = None

    def move(self, node: SceneNode, new_parent: SceneNode, index: int | None = None) -> None:
        if node.removed:
            raise NodeRemovedError(f"cannot move removed node {node.id}")
        ancestor: SceneNode | None = new_parent
        while ancestor is not None:
            if ancestor is node:
                raise ValueError(f"cannot move node {node.id} into its own subtree")
            ancestor = ancestor.parent
        self.detach(node)
        self._attach(node, new_parent, index)

    def remove(self, node: SceneNode) -> None:
        """Remove a node and its whole subtree from the document."""
        if node.removed:
            return
        self.detach(node)
        stack = [node]
        while stack:
            current = stack.pop()
            stack.extend(current.children)
            self._nodes.pop(current.id, None)
            current.removed = True
        logger.debug("removed node %s", node.id)

    # --- JSON document I/O

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SceneGraph":
        if not isinstance(data, dict):
            raise ValueError("document must be a JSON object")
        root_id = data.get("id")
        if not root_id:
            raise ValueError("document root: missing field id")

        graph = cls(document_id=str(root_id), name=str(data.get("name") or ""))
        root = graph.document
        root.type = str(data.get("type") or DOCUMENT)
        root.bounds = Bounds.from_dict(data)
        root.plugin_data = _plugin_data_from(data, "root")

        stack: list[tuple[Any, SceneNode, str]] = []
        for i, child in reversed(list(enumerate(data.get("children") or []))):
            stack.append((child, root, f"root.children[{i}]"))

        while stack:
            item, parent, path = stack.pop()
            if not isinstance(item, dict):
                raise ValueError(f"{path}: not an object")
            for k in ("id", "type"):
                if not item.get(k):
                    raise ValueError(f"{path}: missing field {k}")
            node = graph.create_node(
                str(item["type"]),
                name=str(item.get("name") or ""),
                bounds=Bounds.from_dict(item),
                parent=parent,
                node_id=str(item["id"]),
            )
            node.plugin_data = _plugin_data_from(item, path)
            children = item.get("children") or []
            for i, child in reversed(list(enumerate(children))):
                stack.append((child, node, f"{path}.children[{i}]"))

        return graph

    def to_dict(self) -> dict[str, Any]:
        def _node_dict(node: SceneNode) -> dict[str, Any]:
            out: dict[str, Any] = {"id": node.id, "type": node.type, "name": node.name}
            out.update(node.bounds.to_dict())
            if node.plugin_data:
                out["pluginData"] = dict(node.plugin_data)
            out["children"] = []
            return out

        root = _node_dict(self.document)
        stack = [(self.document, root)]
        while stack:
            node, out = stack.pop()
            for child in node.children:
                child_out = _node_dict(child)
                out["children"].append(child_out)
                stack.append((child, child_out))
        return root


def _plugin_data_from(item: dict[str, Any], path: str) -> dict[str, str]:
    raw = item.get("pluginData") or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: pluginData must be an object")
    # Non-string values are re-encoded so hand-written documents can embed JSON directly.
    return {str(k): v if isinstance(v, str) else dump_json(v) for k, v in raw.items()}


def load_document(path: str | Path) -> SceneGraph:
    return SceneGraph.from_dict(load_json(path))


def write_document(graph: SceneGraph, path: str | Path) -> None:
    write_json(path, graph.to_dict())
