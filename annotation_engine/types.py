from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal


# Host node type tags.
DOCUMENT = "DOCUMENT"
PAGE = "PAGE"
FRAME = "FRAME"
GROUP = "GROUP"
COMPONENT = "COMPONENT"
COMPONENT_SET = "COMPONENT_SET"
INSTANCE = "INSTANCE"

# Annotation kinds. Only the first three own a per-frame list.
KEYSTOP = "keystop"
LABEL = "label"
HEADING = "heading"
MISC = "misc"

LIST_KINDS = (KEYSTOP, LABEL, HEADING)
STOP_KINDS = (KEYSTOP, LABEL, HEADING, MISC)

LinkRole = Literal["node", "annotation", "legend", "legendItem", "frame"]


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned rectangle in XYWH format."""
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Bounds":
        return cls(
            float(data.get("x", 0) or 0),
            float(data.get("y", 0) or 0),
            float(data.get("width", 0) or 0),
            float(data.get("height", 0) or 0),
        )


@dataclass(frozen=True)
class AnnotationListEntry:
    id: str
    position: int  # 1-based

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "position": self.position}

    @classmethod
    def from_dict(cls, data: Any) -> "AnnotationListEntry | None":
        if not isinstance(data, dict) or not data.get("id"):
            return None
        try:
            position = int(data.get("position") or 0)
        except (TypeError, ValueError):
            position = 0
        return cls(id=str(data["id"]), position=position)


@dataclass(frozen=True)
class LegendTrackingEntry:
    id: str  # top frame id
    legend_id: str | None = None
    link_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "legendId": self.legend_id}
        if self.link_id:
            out["linkId"] = self.link_id
        return out

    @classmethod
    def from_dict(cls, data: Any) -> "LegendTrackingEntry | None":
        if not isinstance(data, dict) or not data.get("id"):
            return None
        legend_id = data.get("legendId")
        link_id = data.get("linkId")
        return cls(
            id=str(data["id"]),
            legend_id=str(legend_id) if legend_id else None,
            link_id=str(link_id) if link_id else None,
        )


@dataclass(frozen=True)
class NodeTrackingEntry:
    """Page-level record tying a design node to its annotation marker."""
    id: str  # design node id
    annotation_id: str | None = None
    link_id: str | None = None
    top_frame_id: str | None = None
    legend_item_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "annotationId": self.annotation_id,
            "linkId": self.link_id,
            "topFrameId": self.top_frame_id,
            "legendItemId": self.legend_item_id,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "NodeTrackingEntry | None":
        if not isinstance(data, dict) or not data.get("id"):
            return None

        def _opt(key: str) -> str | None:
            v = data.get(key)
            return str(v) if v else None

        return cls(
            id=str(data["id"]),
            annotation_id=_opt("annotationId"),
            link_id=_opt("linkId"),
            top_frame_id=_opt("topFrameId"),
            legend_item_id=_opt("legendItemId"),
        )


@dataclass(frozen=True)
class LinkToken:
    id: str
    role: LinkRole

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "role": self.role}

    @classmethod
    def from_dict(cls, data: Any) -> "LinkToken | None":
        if not isinstance(data, dict) or not data.get("id") or not data.get("role"):
            return None
        return cls(id=str(data["id"]), role=str(data["role"]))
