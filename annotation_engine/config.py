from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .types import COMPONENT, COMPONENT_SET, FRAME, STOP_KINDS
from .utils import load_json


@dataclass(frozen=True)
class EngineConfig:
    key_prefix: str = ""
    top_frame_types: tuple[str, ...] = (FRAME, COMPONENT, COMPONENT_SET)
    stop_kinds: tuple[str, ...] = STOP_KINDS
    spec_page_marker: str = "SPEC "
    annotation_group_marker: str = "Annotations"

    def _key(self, name: str) -> str:
        return f"{self.key_prefix}{name}"

    # top-frame level
    def list_key(self, kind: str) -> str:
        return self._key(f"{kind}List")

    # page level
    def annotations_key(self, kind: str) -> str:
        return self._key(f"{kind}Annotations")

    def legend_frames_key(self) -> str:
        return self._key("legendFrames")

    # node level
    def node_data_key(self, kind: str) -> str:
        return self._key(f"{kind}NodeData")

    def link_key(self, kind: str) -> str:
        return self._key(f"{kind}LinkId")

    def legend_link_key(self) -> str:
        return self.link_key("legend")

    def general_link_key(self) -> str:
        return self._key("generalLinkId")


def _str_tuple(data: dict, key: str, default: tuple[str, ...], config_path: str | Path) -> tuple[str, ...]:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, list):
        raise ValueError(f"config field {key} must be a JSON array: {config_path}")
    return tuple(str(v) for v in value)


def load_config(config_path: str | Path | None = None) -> EngineConfig:
    if config_path is None:
        return EngineConfig()
    data = load_json(config_path)
    if not isinstance(data, dict):
        raise ValueError(f"config must be a JSON object: {config_path}")
    defaults = EngineConfig()
    return EngineConfig(
        key_prefix=str(data.get("key_prefix", defaults.key_prefix)),
        top_frame_types=_str_tuple(data, "top_frame_types", defaults.top_frame_types, config_path),
        stop_kinds=_str_tuple(data, "stop_kinds", defaults.stop_kinds, config_path),
        spec_page_marker=str(data.get("spec_page_marker", defaults.spec_page_marker)),
        annotation_group_marker=str(data.get("annotation_group_marker", defaults.annotation_group_marker)),
    )


def setup_logging(level: str | int = "WARNING") -> None:
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
