from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any

from .annotation_index import AnnotationIndex
from .config import EngineConfig, load_config, setup_logging
from .crawler import NodeCrawler
from .links import LinkResolver
from .scene import SceneGraph, SceneNode, load_document, write_document
from .stops import StopResolver
from .types import LIST_KINDS, PAGE
from .utils import parse_json_or

_MALFORMED = object()


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="annotation_engine")
    p.add_argument("--config", default=None, help="Engine config JSON (optional)")
    p.add_argument("--log-level", default="WARNING", help="Logging level (e.g. DEBUG, INFO)")
    sub = p.add_subparsers(dest="command", required=True)

    order = sub.add_parser("order", help="Resolve the annotation order for a selection")
    order.add_argument("--document", required=True, help="Document JSON path")
    order.add_argument("--kind", required=True, choices=list(LIST_KINDS), help="Annotation kind")
    order.add_argument("--select", required=True, nargs="+", help="Selected node ids")
    order.add_argument("--explicit", nargs="+", default=None, help="Explicit node ids (override the selection)")
    order.add_argument("--new-only", action="store_true", help="Only print nodes without a recorded annotation")
    order.add_argument("--persist", action="store_true", help="Record the resolved order as the frames' new lists")
    order.add_argument("--out", default=None, help="Output document path (default: overwrite --document)")

    frames = sub.add_parser("frames", help="List the top frames of a selection")
    frames.add_argument("--document", required=True, help="Document JSON path")
    frames.add_argument("--select", required=True, nargs="+", help="Selected node ids")

    link = sub.add_parser("link", help="Find the design node an annotation marker belongs to")
    link.add_argument("--document", required=True, help="Document JSON path")
    link.add_argument("--marker", required=True, help="Annotation marker node id")

    legend = sub.add_parser("legend", help="Find (or recover) the legend frame of a top frame")
    legend.add_argument("--document", required=True, help="Document JSON path")
    legend.add_argument("--frame", required=True, help="Top frame node id")
    legend.add_argument("--out", default=None, help="Output document path (default: overwrite --document)")

    validate = sub.add_parser("validate", help="Check stored annotation lists against the tree")
    validate.add_argument("--document", required=True, help="Document JSON path")

    prune = sub.add_parser("prune", help="Drop stale entries from stored annotation lists")
    prune.add_argument("--document", required=True, help="Document JSON path")
    prune.add_argument("--kind", default=None, choices=list(LIST_KINDS), help="Only prune this kind")
    prune.add_argument("--out", default=None, help="Output document path (default: overwrite --document)")

    return p


def _nodes_by_id(graph: SceneGraph, ids: list[str] | None) -> list[SceneNode]:
    nodes = []
    for node_id in ids or []:
        node = graph.get_node_by_id(node_id)
        if node is None:
            raise ValueError(f"unknown node id: {node_id}")
        nodes.append(node)
    return nodes


def _page_of(node: SceneNode) -> SceneNode | None:
    current: SceneNode | None = node
    while current is not None and current.type != PAGE:
        current = current.parent
    return current


def _out_path(args: argparse.Namespace) -> Path:
    return Path(args.out or args.document)


def cmd_order(args: argparse.Namespace, cfg: EngineConfig) -> int:
    try:
        graph = load_document(args.document)
        selection = _nodes_by_id(graph, args.select)
        explicit = _nodes_by_id(graph, args.explicit)
        resolver = StopResolver(cfg)

        if args.persist:
            nodes = resolver.repaint(args.kind, selection, explicit_nodes=explicit)
            write_document(graph, _out_path(args))
        else:
            nodes = resolver.get_ordered_stop_nodes(
                args.kind,
                selection,
                new_only=bool(args.new_only),
                explicit_nodes=explicit,
            )
    except Exception as e:
        print(f"order_failed: {e}")
        return 1

    for position, node in enumerate(nodes, start=1):
        print(f"{position}\t{node.id}\t{node.name}")
    return 0


def cmd_frames(args: argparse.Namespace, cfg: EngineConfig) -> int:
    try:
        graph = load_document(args.document)
        selection = _nodes_by_id(graph, args.select)
    except Exception as e:
        print(f"frames_failed: {e}")
        return 1

    for frame in NodeCrawler(selection, cfg).top_frames():
        print(f"{frame.id}\t{frame.name}")
    return 0


def cmd_link(args: argparse.Namespace, cfg: EngineConfig) -> int:
    try:
        graph = load_document(args.document)
        marker = _nodes_by_id(graph, [args.marker])[0]
    except Exception as e:
        print(f"link_failed: {e}")
        return 1

    page = _page_of(marker)
    node = LinkResolver(cfg).get_design_node_from_annotation(page, marker) if page else None
    if node is None:
        print("not_found")
        return 1
    print(f"{node.id}\t{node.name}")
    return 0


def cmd_legend(args: argparse.Namespace, cfg: EngineConfig) -> int:
    try:
        graph = load_document(args.document)
        frame = _nodes_by_id(graph, [args.frame])[0]
        page = _page_of(frame)
        if page is None:
            raise ValueError(f"frame {frame.id} is not on a page")

        key = cfg.legend_frames_key()
        before = page.get_plugin_data(key)
        legend = LinkResolver(cfg).recover_legend_frame(frame, page)
        if page.get_plugin_data(key) != before:
            write_document(graph, _out_path(args))
    except Exception as e:
        print(f"legend_failed: {e}")
        return 1

    if legend is None:
        print("not_found")
        return 1
    print(f"{legend.id}\t{legend.name}")
    return 0


def _list_holders(graph: SceneGraph, cfg: EngineConfig, kinds: tuple[str, ...]) -> list[tuple[SceneNode, str]]:
    holders = []
    for node in graph.document.iter_descendants():
        for kind in kinds:
            if node.get_plugin_data(cfg.list_key(kind)):
                holders.append((node, kind))
    return holders


def _raw_list(node: SceneNode, key: str) -> Any:
    return parse_json_or(node.get_plugin_data(key), _MALFORMED)


def cmd_validate(args: argparse.Namespace, cfg: EngineConfig) -> int:
    try:
        graph = load_document(args.document)
    except Exception as e:
        print(f"validate_failed: {e}")
        return 1

    index = AnnotationIndex(config=cfg)
    errors: list[str] = []
    lists = 0
    entries = 0
    stale_entries = 0
    duplicate_entries = 0
    malformed_lists = 0

    for node, kind in _list_holders(graph, cfg, LIST_KINDS):
        lists += 1
        raw = _raw_list(node, cfg.list_key(kind))
        if not isinstance(raw, list):
            malformed_lists += 1
            errors.append(f"malformed {kind} list on {node.id}")
            continue

        ids = [str(item.get("id")) for item in raw if isinstance(item, dict) and item.get("id")]
        entries += len(ids)
        duplicates = len(ids) - len(set(ids))
        if duplicates:
            duplicate_entries += duplicates
            errors.append(f"duplicate ids in {kind} list on {node.id}")

        for stale_id in index.stale_ids(node, kind):
            stale_entries += 1
            errors.append(f"stale {kind} entry {stale_id} on {node.id}")

    print(f"lists={lists}")
    print(f"entries={entries}")
    print(f"stale_entries={stale_entries}")
    print(f"duplicate_entries={duplicate_entries}")
    print(f"malformed_lists={malformed_lists}")

    if errors:
        for m in errors:
            print(m)
        return 1

    print("OK")
    return 0


def cmd_prune(args: argparse.Namespace, cfg: EngineConfig) -> int:
    kinds = (args.kind,) if args.kind else LIST_KINDS
    try:
        graph = load_document(args.document)
        index = AnnotationIndex(config=cfg)
        pruned = 0
        for node, kind in _list_holders(graph, cfg, kinds):
            pruned += len(index.prune(node, kind))
        if pruned:
            write_document(graph, _out_path(args))
    except Exception as e:
        print(f"prune_failed: {e}")
        return 1

    print(f"pruned={pruned}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    try:
        cfg = load_config(args.config)
    except Exception as e:
        print(f"config_failed: {e}")
        return 1

    if args.command == "order":
        return cmd_order(args, cfg)

    if args.command == "frames":
        return cmd_frames(args, cfg)

    if args.command == "link":
        return cmd_link(args, cfg)

    if args.command == "legend":
        return cmd_legend(args, cfg)

    if args.command == "validate":
        return cmd_validate(args, cfg)

    if args.command == "prune":
        return cmd_prune(args, cfg)

    raise SystemExit(2)


if __name__ == "__main__":
    raise SystemExit(main())
