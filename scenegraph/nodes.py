"""
Immutable node model for design documents.

Raw Figma JSON (REST API or plugin export) is validated once into frozen
pydantic models. Parsing is lenient: fields with invalid values are dropped
and validation retried, so a partially broken node degrades to missing
attributes instead of aborting the whole document.
"""

import copy
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from scenegraph.base import NodeKind
from scenegraph.errors import ParseError

logger = logging.getLogger("scenegraph.nodes")

_MODEL_CONFIG = ConfigDict(frozen=True, extra='ignore', populate_by_name=True)

# Upper bound on strip-and-revalidate passes
_MAX_REPAIR_PASSES = 20


# ============================================================================
# Paint, effect and text style models
# ============================================================================

class Box(BaseModel):
    """Axis-aligned rectangle in document space."""
    model_config = _MODEL_CONFIG

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height


class GradientStop(BaseModel):
    model_config = _MODEL_CONFIG

    position: float = 0.0
    color: Optional[Dict[str, float]] = None


class Paint(BaseModel):
    """A fill or stroke paint."""
    model_config = _MODEL_CONFIG

    type: str = ''
    visible: bool = True
    opacity: float = 1.0
    color: Optional[Dict[str, float]] = None
    blend_mode: Optional[str] = Field(default=None, alias='blendMode')
    image_ref: Optional[str] = Field(default=None, alias='imageRef')
    image_url: Optional[str] = Field(default=None, alias='imageUrl')
    scale_mode: Optional[str] = Field(default=None, alias='scaleMode')
    gradient_stops: Tuple[GradientStop, ...] = Field(default=(), alias='gradientStops')
    gradient_handle_positions: Tuple[Dict[str, float], ...] = Field(default=(), alias='gradientHandlePositions')
    gradient_transform: Optional[Tuple[Tuple[float, ...], ...]] = Field(default=None, alias='gradientTransform')


class Effect(BaseModel):
    model_config = _MODEL_CONFIG

    type: str = ''
    visible: bool = True
    radius: float = 0.0
    spread: float = 0.0
    color: Optional[Dict[str, float]] = None
    offset: Optional[Dict[str, float]] = None
    blend_mode: Optional[str] = Field(default=None, alias='blendMode')


class Hyperlink(BaseModel):
    model_config = _MODEL_CONFIG

    type: Optional[str] = None
    url: Optional[str] = None
    node_id: Optional[str] = Field(default=None, validation_alias=AliasChoices('nodeID', 'nodeId'))

    @property
    def target(self) -> Optional[str]:
        """Link target: the URL, or an in-document anchor for node links."""
        if self.url:
            return self.url
        if self.node_id:
            return f"#{self.node_id}"
        return None


class TypeStyle(BaseModel):
    """Text style. Entries in a style override table are partial TypeStyles."""
    model_config = _MODEL_CONFIG

    font_family: Optional[str] = Field(default=None, alias='fontFamily')
    font_size: Optional[float] = Field(default=None, alias='fontSize')
    font_weight: Optional[float] = Field(default=None, alias='fontWeight')
    italic: Optional[bool] = None
    text_decoration: Optional[str] = Field(default=None, alias='textDecoration')
    text_case: Optional[str] = Field(default=None, alias='textCase')
    letter_spacing: Optional[float] = Field(default=None, alias='letterSpacing')
    line_height_px: Optional[float] = Field(default=None, alias='lineHeightPx')
    line_height_percent: Optional[float] = Field(default=None, alias='lineHeightPercent')
    line_height_percent_font_size: Optional[float] = Field(default=None, alias='lineHeightPercentFontSize')
    line_height_unit: Optional[str] = Field(default=None, alias='lineHeightUnit')
    text_align_horizontal: Optional[str] = Field(default=None, alias='textAlignHorizontal')
    text_align_vertical: Optional[str] = Field(default=None, alias='textAlignVertical')
    paragraph_spacing: Optional[float] = Field(default=None, alias='paragraphSpacing')
    paragraph_indent: Optional[float] = Field(default=None, alias='paragraphIndent')
    fills: Optional[Tuple[Paint, ...]] = None
    hyperlink: Optional[Hyperlink] = None

    def merged(self, override: Optional["TypeStyle"]) -> "TypeStyle":
        """Return this style with every field the override explicitly sets."""
        if override is None:
            return self
        update = {name: getattr(override, name) for name in override.model_fields_set}
        if not update:
            return self
        return self.model_copy(update=update)


# ============================================================================
# Node model
# ============================================================================

class NodeModel(BaseModel):
    """One design node. Frozen for the lifetime of a compile session."""
    model_config = _MODEL_CONFIG

    id: str = ''
    name: str = ''
    kind: NodeKind = Field(default=NodeKind.UNKNOWN, alias='type')
    children: Tuple["NodeModel", ...] = ()

    absolute_bounding_box: Optional[Box] = Field(default=None, alias='absoluteBoundingBox')
    absolute_render_bounds: Optional[Box] = Field(
        default=None,
        validation_alias=AliasChoices('absoluteRenderBounds', 'renderBounds')
    )

    fills: Tuple[Paint, ...] = ()
    strokes: Tuple[Paint, ...] = ()
    effects: Tuple[Effect, ...] = ()

    # Corner radius
    corner_radius: Optional[float] = Field(default=None, alias='cornerRadius')
    corner_radius_top_left: Optional[float] = Field(default=None, alias='cornerRadiusTopLeft')
    corner_radius_top_right: Optional[float] = Field(default=None, alias='cornerRadiusTopRight')
    corner_radius_bottom_right: Optional[float] = Field(default=None, alias='cornerRadiusBottomRight')
    corner_radius_bottom_left: Optional[float] = Field(default=None, alias='cornerRadiusBottomLeft')
    rectangle_corner_radii: Optional[Tuple[float, ...]] = Field(default=None, alias='rectangleCornerRadii')

    # Appearance
    opacity: float = 1.0
    visible: bool = True
    blend_mode: Optional[str] = Field(default=None, alias='blendMode')
    is_mask: bool = Field(default=False, alias='isMask')
    mask_type: Optional[str] = Field(default=None, alias='maskType')
    clips_content: bool = Field(default=False, alias='clipsContent')
    z_index: Optional[int] = Field(default=None, alias='zIndex')
    export_settings: Tuple[Dict[str, Any], ...] = Field(default=(), alias='exportSettings')

    # Strokes
    stroke_weight: Optional[float] = Field(default=None, alias='strokeWeight')
    stroke_top_weight: Optional[float] = Field(default=None, alias='strokeTopWeight')
    stroke_right_weight: Optional[float] = Field(default=None, alias='strokeRightWeight')
    stroke_bottom_weight: Optional[float] = Field(default=None, alias='strokeBottomWeight')
    stroke_left_weight: Optional[float] = Field(default=None, alias='strokeLeftWeight')
    individual_stroke_weights: Optional[Dict[str, float]] = Field(default=None, alias='individualStrokeWeights')
    stroke_align: Optional[str] = Field(default=None, alias='strokeAlign')
    stroke_dashes: Tuple[float, ...] = Field(default=(), alias='strokeDashes')

    # Transform
    rotation: Optional[float] = None
    scale: Optional[Dict[str, float]] = None
    skew: Optional[float] = None
    mirror: Optional[str] = None
    transform: Optional[Tuple[float, ...]] = None

    # Auto-layout (container side)
    layout_mode: Optional[str] = Field(default=None, alias='layoutMode')
    layout_wrap: Optional[str] = Field(default=None, alias='layoutWrap')
    item_spacing: float = Field(default=0.0, alias='itemSpacing')
    padding_top: float = Field(default=0.0, alias='paddingTop')
    padding_right: float = Field(default=0.0, alias='paddingRight')
    padding_bottom: float = Field(default=0.0, alias='paddingBottom')
    padding_left: float = Field(default=0.0, alias='paddingLeft')
    primary_axis_align_items: Optional[str] = Field(default=None, alias='primaryAxisAlignItems')
    counter_axis_align_items: Optional[str] = Field(default=None, alias='counterAxisAlignItems')

    # Auto-layout (child side)
    layout_align: Optional[str] = Field(default=None, alias='layoutAlign')
    layout_grow: float = Field(default=0.0, alias='layoutGrow')
    layout_positioning: Optional[str] = Field(default=None, alias='layoutPositioning')

    # Text
    characters: str = ''
    style: Optional[TypeStyle] = None
    character_style_overrides: Tuple[int, ...] = Field(default=(), alias='characterStyleOverrides')
    style_override_table: Dict[str, TypeStyle] = Field(default_factory=dict, alias='styleOverrideTable')

    @field_validator('kind', mode='before')
    @classmethod
    def parse_kind(cls, v: Any) -> NodeKind:
        return NodeKind.parse(v)

    @field_validator('style_override_table', mode='before')
    @classmethod
    def stringify_table_keys(cls, v: Any) -> Any:
        # Plugin exports use integer keys, the REST API uses strings
        if isinstance(v, dict):
            return {str(k): val for k, val in v.items()}
        return v

    @property
    def is_visible(self) -> bool:
        return self.visible and self.opacity != 0

    @property
    def visible_fills(self) -> List[Paint]:
        return [f for f in self.fills if f.visible]

    @property
    def visible_strokes(self) -> List[Paint]:
        return [s for s in self.strokes if s.visible]

    @property
    def visible_effects(self) -> List[Effect]:
        return [e for e in self.effects if e.visible]

    def iter_descendants(self, visible_only: bool = True) -> Iterator["NodeModel"]:
        """Depth-first, pre-order walk of all descendants (not self)."""
        for child in self.children:
            if visible_only and not child.is_visible:
                continue
            yield child
            yield from child.iter_descendants(visible_only)


NodeModel.model_rebuild()


# ============================================================================
# Lenient parsing
# ============================================================================

_DROP = object()

# Lists whose indices carry meaning; a bad item is reset in place
_POSITIONAL_DEFAULTS = {'characterStyleOverrides': 0}


def _strip_invalid(raw: Any, errors: List[Dict[str, Any]]) -> bool:
    """Remove every value a validation error points at. Returns True if anything changed."""
    changed = False
    for err in errors:
        loc = err.get('loc', ())
        if not loc:
            continue
        parent = raw
        for part in loc[:-1]:
            if isinstance(parent, dict) and part in parent:
                parent = parent[part]
            elif isinstance(parent, list) and isinstance(part, int) and 0 <= part < len(parent):
                parent = parent[part]
            else:
                parent = None
                break
        last = loc[-1]
        if isinstance(parent, dict) and last in parent:
            del parent[last]
            changed = True
        elif isinstance(parent, list) and isinstance(last, int) and 0 <= last < len(parent):
            parent[last] = _POSITIONAL_DEFAULTS.get(loc[-2], _DROP) if len(loc) > 1 else _DROP
            changed = True
    return changed


def _compact(value: Any) -> Any:
    if isinstance(value, list):
        return [_compact(v) for v in value if v is not _DROP]
    if isinstance(value, dict):
        return {k: _compact(v) for k, v in value.items()}
    return value


def parse_node(raw: Any) -> NodeModel:
    """Validate a raw node dict into a NodeModel, dropping invalid fields.

    Raises:
        ParseError: raw is not a node object or cannot be repaired
    """
    if isinstance(raw, NodeModel):
        return raw
    if not isinstance(raw, dict):
        raise ParseError(f"Expected a node object, got {type(raw).__name__}")

    data = copy.deepcopy(raw)
    for _ in range(_MAX_REPAIR_PASSES):
        try:
            return NodeModel.model_validate(data)
        except ValidationError as e:
            errors = e.errors()
            if not _strip_invalid(data, errors):
                raise ParseError(f"Invalid node '{raw.get('id', '?')}': {e}") from e
            logger.debug(f"parse_node: dropped {len(errors)} invalid field(s) under node {raw.get('id', '?')}")
            data = _compact(data)
    raise ParseError(f"Invalid node '{raw.get('id', '?')}': too many malformed fields")
