"""Walks a selection of scene nodes and answers structural questions about it.

All operations read the live tree at call time; nothing is cached between
calls, so a crawler can be reused across host edits.
"""
from __future__ import annotations

import logging
from typing import Callable, Iterable, Iterator

import numpy as np

from .config import EngineConfig
from .scene import SceneNode
from .types import DOCUMENT, PAGE

logger = logging.getLogger(__name__)


def find_top_frame(node: SceneNode, top_frame_types: Iterable[str]) -> SceneNode | None:
    """Return the outermost ancestor (or the node itself) of a top-frame type.

    The walk stops at the page boundary. A broken parent chain ends the walk
    early and the outermost qualifying node seen so far is used.
    """
    frame_types = set(top_frame_types)
    top: SceneNode | None = None
    current: SceneNode | None = node
    while current is not None and current.type not in (PAGE, DOCUMENT):
        if current.type in frame_types:
            top = current
        current = current.parent
    if current is None:
        logger.debug("ancestry of %s ends without a page; treating as parentless", node.id)
    return top


def ancestry(node: SceneNode) -> list[SceneNode]:
    """Root-first chain of ancestors, ending with the node itself."""
    chain = []
    current: SceneNode | None = node
    while current is not None:
        chain.append(current)
        current = current.parent
    chain.reverse()
    return chain


class NodeCrawler:
    def __init__(self, nodes: Iterable[SceneNode], config: EngineConfig | None = None):
        self.nodes = list(nodes)
        self.config = config or EngineConfig()

    def first(self) -> SceneNode | None:
        return self.nodes[0] if self.nodes else None

    def all(self, descend: Callable[[SceneNode], bool] | None = None) -> Iterator[SceneNode]:
        """Depth-first pre-order walk of the initial nodes and their descendants.

        Each call starts a fresh walk. `descend` can veto walking below a node;
        the node itself is still yielded.
        """
        seen: set[str] = set()
        stack = list(reversed(self.nodes))
        while stack:
            node = stack.pop()
            if node.id in seen:
                continue
            seen.add(node.id)
            yield node
            if descend is None or descend(node):
                stack.extend(reversed(node.children))

    def top_frame(self) -> SceneNode | None:
        first = self.first()
        if first is None:
            return None
        return find_top_frame(first, self.config.top_frame_types)

    def top_frames(self) -> list[SceneNode]:
        frames: list[SceneNode] = []
        seen: set[str] = set()
        for node in self.nodes:
            frame = find_top_frame(node, self.config.top_frame_types)
            if frame is None or frame.id in seen:
                continue
            seen.add(frame.id)
            frames.append(frame)
        return frames

    def sorted(self) -> list[SceneNode]:
        """Order the initial nodes by on-canvas visual hierarchy.

        Every node is keyed by its ancestor chain. At each level, siblings are
        ranked top-to-bottom, then left-to-right, then by first appearance in
        the input. Ancestors therefore precede their descendants, and a
        descendant comes before its ancestor's next sibling.
        """
        if not self.nodes:
            return []

        chains = [ancestry(node) for node in self.nodes]

        # Group every chain element with its siblings, in first-encounter order.
        groups: dict[str | None, list[SceneNode]] = {}
        grouped: set[str] = set()
        for chain in chains:
            parent_key: str | None = None
            for element in chain:
                if element.id not in grouped:
                    grouped.add(element.id)
                    groups.setdefault(parent_key, []).append(element)
                parent_key = element.id

        ranks: dict[str, int] = {}
        for siblings in groups.values():
            ys = np.array([n.bounds.y for n in siblings], dtype=float)
            xs = np.array([n.bounds.x for n in siblings], dtype=float)
            encounter = np.arange(len(siblings))
            # lexsort: last key is primary
            for rank, idx in enumerate(np.lexsort((encounter, xs, ys))):
                ranks[siblings[int(idx)].id] = rank

        keys = [tuple(ranks[element.id] for element in chain) for chain in chains]
        order = sorted(range(len(self.nodes)), key=lambda i: keys[i])
        return [self.nodes[i] for i in order]
