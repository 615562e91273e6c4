from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Union

from .config import EngineConfig
from .scene import SceneNode
from .types import HEADING, KEYSTOP, LABEL, LinkToken
from .utils import dump_json, parse_json_or

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeystopData:
    has_keystop: bool = False
    allow_keystop_passthrough: bool = False
    keys: tuple[str, ...] = ()

    kind = KEYSTOP

    @property
    def is_assignable(self) -> bool:
        return self.has_keystop

    @property
    def allows_passthrough(self) -> bool:
        return self.allow_keystop_passthrough

    def to_dict(self) -> dict[str, Any]:
        return {
            "hasKeystop": self.has_keystop,
            "allowKeystopPassthrough": self.allow_keystop_passthrough,
            "keys": list(self.keys),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KeystopData":
        keys = data.get("keys") or []
        if not isinstance(keys, list):
            raise ValueError("keys must be a list")
        return cls(
            has_keystop=bool(data.get("hasKeystop")),
            allow_keystop_passthrough=bool(data.get("allowKeystopPassthrough")),
            keys=tuple(str(k) for k in keys),
        )


@dataclass(frozen=True)
class Labels:
    a11y_text: str | None = None
    visible_text: str | None = None
    alt_text: str | None = None


@dataclass(frozen=True)
class LabelData:
    role: str | None = None
    labels: Labels = field(default_factory=Labels)

    kind = LABEL

    @property
    def is_assignable(self) -> bool:
        return self.role is not None

    @property
    def allows_passthrough(self) -> bool:
        # Any node can carry a label, so labeled containers never hide their children.
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "labels": {
                "a11y": self.labels.a11y_text,
                "visible": self.labels.visible_text,
                "alt": self.labels.alt_text,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LabelData":
        role = data.get("role")
        raw_labels = data.get("labels") or {}
        if not isinstance(raw_labels, dict):
            raise ValueError("labels must be an object")
        return cls(
            role=str(role) if role else None,
            labels=Labels(
                a11y_text=raw_labels.get("a11y"),
                visible_text=raw_labels.get("visible"),
                alt_text=raw_labels.get("alt"),
            ),
        )


@dataclass(frozen=True)
class HeadingData:
    level: int | None = None
    visible: bool = True
    text: str | None = None

    kind = HEADING

    @property
    def is_assignable(self) -> bool:
        return self.level is not None

    @property
    def allows_passthrough(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {"level": self.level, "visible": self.visible, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HeadingData":
        level = data.get("level")
        return cls(
            level=int(level) if level not in (None, "", "no_level") else None,
            visible=bool(data.get("visible", True)),
            text=data.get("text"),
        )


PeerMetadata = Union[KeystopData, LabelData, HeadingData]

_RECORD_TYPES: dict[str, type] = {
    KEYSTOP: KeystopData,
    LABEL: LabelData,
    HEADING: HeadingData,
}


class PeerDataStore:
    """Typed reads/writes of the JSON metadata attached to scene nodes."""

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig()

    # --- raw JSON records

    def get_record(self, node: SceneNode, key: str, default: Any = None) -> Any:
        return parse_json_or(node.get_plugin_data(key), default)

    def set_record(self, node: SceneNode, key: str, value: Any) -> None:
        node.set_plugin_data(key, dump_json(value))

    # --- per-kind peer metadata

    def get_metadata(self, node: SceneNode, kind: str) -> PeerMetadata | None:
        record_type = _RECORD_TYPES.get(kind)
        if record_type is None:
            return None
        data = self.get_record(node, self.config.node_data_key(kind))
        if not isinstance(data, dict):
            return None
        try:
            return record_type.from_dict(data)
        except (TypeError, ValueError) as e:
            logger.debug("malformed %s metadata on %s: %s", kind, node.id, e)
            return None

    def set_metadata(self, node: SceneNode, record: PeerMetadata) -> None:
        self.set_record(node, self.config.node_data_key(record.kind), record.to_dict())

    def is_assignable(self, node: SceneNode, kind: str) -> bool:
        data = self.get_metadata(node, kind)
        return data is not None and data.is_assignable

    # --- link tokens

    def get_link(self, node: SceneNode, key: str) -> LinkToken | None:
        return LinkToken.from_dict(self.get_record(node, key))

    def set_link(self, node: SceneNode, key: str, token: LinkToken) -> None:
        self.set_record(node, key, token.to_dict())
