"""
Shared primitives for the scene-graph compiler.

Node kinds, kind groupings used by the style/layout/flatten dispatch,
color values and numeric formatting helpers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

# Recursion guard for pathological trees
MAX_DEPTH = 100

# Upper bound for sibling-index stacking order
Z_INDEX_CAP = 1000


class NodeKind(str, Enum):
    """Closed set of design node types. Anything else parses as UNKNOWN."""
    DOCUMENT = "DOCUMENT"
    CANVAS = "CANVAS"
    PAGE = "PAGE"
    SECTION = "SECTION"
    FRAME = "FRAME"
    GROUP = "GROUP"
    COMPONENT = "COMPONENT"
    COMPONENT_SET = "COMPONENT_SET"
    INSTANCE = "INSTANCE"
    TEXT = "TEXT"
    RECTANGLE = "RECTANGLE"
    ELLIPSE = "ELLIPSE"
    VECTOR = "VECTOR"
    LINE = "LINE"
    REGULAR_POLYGON = "REGULAR_POLYGON"
    STAR = "STAR"
    BOOLEAN_OPERATION = "BOOLEAN_OPERATION"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Any) -> "NodeKind":
        if isinstance(value, NodeKind):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.UNKNOWN


CONTAINER_KINDS = frozenset({
    NodeKind.DOCUMENT, NodeKind.CANVAS, NodeKind.PAGE, NodeKind.SECTION,
    NodeKind.FRAME, NodeKind.GROUP, NodeKind.COMPONENT, NodeKind.COMPONENT_SET,
    NodeKind.INSTANCE,
})

SHAPE_KINDS = frozenset({
    NodeKind.RECTANGLE, NodeKind.ELLIPSE, NodeKind.VECTOR, NodeKind.LINE,
    NodeKind.REGULAR_POLYGON, NodeKind.STAR, NodeKind.BOOLEAN_OPERATION,
})

# Mask types that need real alpha/geometry compositing
CONCRETE_MASK_TYPES = frozenset({"ALPHA", "VECTOR", "LUMINANCE"})


def fmt_number(value: float) -> str:
    """Format a number for CSS: integers without a decimal point, else up to 2dp."""
    value = round(float(value), 2)
    if value == int(value):
        return str(int(value))
    return f"{value:.2f}".rstrip('0').rstrip('.')


def px(value: float) -> str:
    return f"{fmt_number(value)}px"


@dataclass(frozen=True)
class ColorValue:
    """RGBA color with 0-1 channels."""
    r: float = 0.0
    g: float = 0.0
    b: float = 0.0
    a: float = 1.0

    @classmethod
    def from_figma(cls, color: Optional[Dict[str, float]], opacity: float = 1.0) -> "ColorValue":
        """Build from a Figma color dict, folding paint opacity into alpha."""
        color = color or {}
        return cls(
            r=float(color.get('r', 0)),
            g=float(color.get('g', 0)),
            b=float(color.get('b', 0)),
            a=float(color.get('a', 1)) * float(opacity),
        )

    @property
    def rgb255(self) -> tuple[int, int, int]:
        return (
            int(round(self.r * 255)),
            int(round(self.g * 255)),
            int(round(self.b * 255)),
        )

    @property
    def hex(self) -> str:
        r, g, b = self.rgb255
        return f"#{r:02x}{g:02x}{b:02x}"

    @property
    def rgba(self) -> str:
        r, g, b = self.rgb255
        return f"rgba({r}, {g}, {b}, {fmt_number(round(self.a, 3))})"

    @property
    def css(self) -> str:
        """Hex when opaque, rgba() otherwise."""
        if self.a >= 1:
            return self.hex
        return self.rgba
