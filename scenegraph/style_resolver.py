"""
StyleResolver - pure mapping from one design node to computed visual style.

Every resolver returns a *fragment*: a dict keyed by ComputedStyle field
names. The compiler merges the style fragment with the layout fragment into
one ComputedStyle. Unrecognized paint/effect variants emit a
StyleComputeWarning and contribute nothing.
"""

import logging
import math
import re
import warnings
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from scenegraph.base import (
    CONTAINER_KINDS, SHAPE_KINDS, ColorValue, NodeKind, fmt_number, px,
)
from scenegraph.config import CompilerConfig, PlaceholderFillHeuristic
from scenegraph.errors import StyleComputeWarning
from scenegraph.nodes import Effect, NodeModel, Paint, TypeStyle

if TYPE_CHECKING:
    from scenegraph.assets import AssetMap

logger = logging.getLogger("scenegraph.style")

DEFAULT_CONFIG = CompilerConfig()

DIAMOND_CLIP_PATH = "polygon(50% 0%, 100% 50%, 50% 100%, 0% 50%)"
DEFAULT_SHADOW_COLOR = "rgba(0, 0, 0, 0.5)"

SCALE_MODE_SIZE = {
    'FILL': 'cover',
    'CROP': 'cover',
    'FIT': 'contain',
    'TILE': 'auto',
    'STRETCH': '100% 100%',
}

BLEND_MODE_CSS = {
    'PASS_THROUGH': None,
    'NORMAL': None,
    'DARKEN': 'darken',
    'MULTIPLY': 'multiply',
    'LINEAR_BURN': 'color-burn',
    'COLOR_BURN': 'color-burn',
    'LIGHTEN': 'lighten',
    'SCREEN': 'screen',
    'LINEAR_DODGE': 'color-dodge',
    'COLOR_DODGE': 'color-dodge',
    'OVERLAY': 'overlay',
    'SOFT_LIGHT': 'soft-light',
    'HARD_LIGHT': 'hard-light',
    'DIFFERENCE': 'difference',
    'EXCLUSION': 'exclusion',
    'HUE': 'hue',
    'SATURATION': 'saturation',
    'COLOR': 'color',
    'LUMINOSITY': 'luminosity',
}

_SYSTEM_STACK = 'system-ui, -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif'

FONT_FALLBACKS = {
    'Times New Roman': '"Times New Roman", Times, serif',
    'Georgia': 'Georgia, serif',
    'Courier New': '"Courier New", Courier, monospace',
}

TEXT_ALIGN_CSS = {'LEFT': 'left', 'CENTER': 'center', 'RIGHT': 'right', 'JUSTIFIED': 'justify'}
TEXT_VERTICAL_CSS = {'TOP': 'flex-start', 'CENTER': 'center', 'BOTTOM': 'flex-end'}
TEXT_DECORATION_CSS = {'UNDERLINE': 'underline', 'STRIKETHROUGH': 'line-through'}
TEXT_CASE_CSS = {'UPPER': 'uppercase', 'LOWER': 'lowercase', 'TITLE': 'capitalize'}


# ============================================================================
# ComputedStyle
# ============================================================================

# Fields rendered with a px unit
_PX_FIELDS = frozenset({
    'left', 'top', 'width', 'height', 'gap',
    'padding_top', 'padding_right', 'padding_bottom', 'padding_left',
    'font_size', 'letter_spacing', 'text_indent', 'margin_bottom',
})


@dataclass(frozen=True)
class ComputedStyle:
    """Resolved visual attributes of one box. None means "not set"."""
    # Position / size
    position: Optional[str] = None
    left: Optional[float] = None
    top: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    z_index: Optional[int] = None

    # Flex container / flex item
    display: Optional[str] = None
    flex_direction: Optional[str] = None
    flex_wrap: Optional[str] = None
    justify_content: Optional[str] = None
    align_items: Optional[str] = None
    align_self: Optional[str] = None
    flex_grow: Optional[float] = None
    gap: Optional[float] = None
    padding_top: Optional[float] = None
    padding_right: Optional[float] = None
    padding_bottom: Optional[float] = None
    padding_left: Optional[float] = None

    # Background
    background_color: Optional[str] = None
    background_image: Optional[str] = None
    background_size: Optional[str] = None
    background_position: Optional[str] = None
    background_repeat: Optional[str] = None
    clip_path: Optional[str] = None

    # Border / outline
    border_width: Optional[str] = None
    border_style: Optional[str] = None
    border_color: Optional[str] = None
    outline: Optional[str] = None
    border_radius: Optional[str] = None

    # Effects / compositing
    box_shadow: Optional[str] = None
    text_shadow: Optional[str] = None
    filter: Optional[str] = None
    backdrop_filter: Optional[str] = None
    transform: Optional[str] = None
    mix_blend_mode: Optional[str] = None
    opacity: Optional[float] = None
    overflow: Optional[str] = None

    # Typography
    color: Optional[str] = None
    font_family: Optional[str] = None
    font_size: Optional[float] = None
    font_weight: Optional[int] = None
    font_style: Optional[str] = None
    line_height: Optional[str] = None
    letter_spacing: Optional[float] = None
    text_align: Optional[str] = None
    text_decoration: Optional[str] = None
    text_transform: Optional[str] = None
    text_indent: Optional[float] = None
    margin_bottom: Optional[float] = None
    white_space: Optional[str] = None

    @classmethod
    def from_fragments(cls, *fragments: Dict[str, Any]) -> "ComputedStyle":
        """Merge fragments left to right; later fragments win."""
        merged: Dict[str, Any] = {}
        for fragment in fragments:
            merged.update(fragment)
        return cls(**merged)

    def as_css(self) -> Dict[str, str]:
        """Non-empty attributes as kebab-case CSS declarations."""
        return {name.replace('_', '-'): value for name, value in _declarations(self)}

    def as_react(self) -> Dict[str, str]:
        """Non-empty attributes as camelCase (React inline style) declarations."""
        return {_camel(name): value for name, value in _declarations(self)}


def _declarations(style: ComputedStyle) -> List[Tuple[str, str]]:
    out = []
    for f in fields(style):
        value = getattr(style, f.name)
        if value is None:
            continue
        if f.name in _PX_FIELDS:
            out.append((f.name, px(value)))
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            out.append((f.name, fmt_number(value)))
        else:
            out.append((f.name, str(value)))
    return out


def _camel(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.capitalize() for part in rest)


def _warn(message: str) -> None:
    warnings.warn(message, StyleComputeWarning, stacklevel=3)


# ============================================================================
# Fills
# ============================================================================

def is_placeholder_fill(color: ColorValue, heuristic: PlaceholderFillHeuristic) -> bool:
    """True for container fills that look like placeholders, not backgrounds."""
    if not heuristic.enabled:
        return False
    if color.a <= heuristic.min_alpha:
        return True
    channels = (color.r, color.g, color.b)
    if heuristic.suppress_white and min(channels) >= heuristic.white_min_channel:
        return True
    if heuristic.suppress_near_black and max(channels) <= heuristic.black_max_channel:
        return True
    return False


def _gradient_raw_angle(fill: Paint) -> float:
    """Direction of the gradient axis in degrees, 0 = left to right, y down."""
    matrix = fill.gradient_transform
    if matrix and len(matrix[0]) >= 2:
        return math.degrees(math.atan2(matrix[0][1], matrix[0][0]))

    handles = fill.gradient_handle_positions
    if len(handles) >= 2:
        dx = handles[1].get('x', 0) - handles[0].get('x', 0)
        dy = handles[1].get('y', 0) - handles[0].get('y', 0)
        if dx or dy:
            return math.degrees(math.atan2(dy, dx))

    # Top to bottom
    return 90.0


def gradient_angle(fill: Paint) -> float:
    """CSS gradient angle (0deg = up, clockwise)."""
    return round((_gradient_raw_angle(fill) + 90) % 360, 2)


def _gradient_center(fill: Paint) -> Tuple[float, float]:
    handles = fill.gradient_handle_positions
    if handles:
        return handles[0].get('x', 0.5) * 100, handles[0].get('y', 0.5) * 100
    return 50.0, 50.0


def gradient_stops_css(fill: Paint) -> str:
    stops = []
    for stop in fill.gradient_stops:
        color = ColorValue.from_figma(stop.color, fill.opacity)
        stops.append(f"{color.css} {fmt_number(stop.position * 100)}%")
    return ', '.join(stops)


def gradient_to_css(fill: Paint) -> Optional[str]:
    """Convert a GRADIENT_* paint to a CSS gradient image."""
    if not fill.gradient_stops:
        return None

    stops_str = gradient_stops_css(fill)

    if fill.type == 'GRADIENT_LINEAR':
        return f"linear-gradient({fmt_number(gradient_angle(fill))}deg, {stops_str})"

    cx, cy = _gradient_center(fill)
    at = f"at {fmt_number(cx)}% {fmt_number(cy)}%"

    if fill.type in ('GRADIENT_RADIAL', 'GRADIENT_DIAMOND'):
        return f"radial-gradient(ellipse {at}, {stops_str})"

    if fill.type == 'GRADIENT_ANGULAR':
        return f"conic-gradient(from {fmt_number(gradient_angle(fill))}deg {at}, {stops_str})"

    return None


def image_fill_source(node: NodeModel, assets: Optional["AssetMap"]) -> Tuple[Optional[str], Optional[str]]:
    """(asset key, url) for the node's first visible IMAGE fill.

    Lookup order: image ref, node id, inline imageUrl.
    """
    for fill in node.visible_fills:
        if fill.type != 'IMAGE':
            continue
        key = fill.image_ref or node.id
        url = assets.lookup(fill.image_ref, node.id) if assets is not None else None
        return key, url or fill.image_url
    return None, None


def resolve_fill(node: NodeModel, assets: Optional["AssetMap"] = None,
                 config: CompilerConfig = DEFAULT_CONFIG) -> Dict[str, Any]:
    """Background from the first visible fill."""
    fills = node.visible_fills
    if not fills:
        return {}

    fill = fills[0]
    fill_type = fill.type

    if fill_type == 'SOLID':
        if fill.color is None:
            return {}
        color = ColorValue.from_figma(fill.color, fill.opacity)
        if node.kind in CONTAINER_KINDS and is_placeholder_fill(color, config.placeholder_fill):
            logger.debug(f"resolve_fill: dropped placeholder fill {color.css} on {node.id}")
            return {}
        return {'background_color': color.css}

    if fill_type == 'IMAGE':
        _, url = image_fill_source(node, assets)
        if not url:
            return {'background_color': config.image_placeholder_color}
        scale_mode = fill.scale_mode or 'FILL'
        return {
            'background_image': f"url('{url}')",
            'background_size': SCALE_MODE_SIZE.get(scale_mode, 'cover'),
            'background_position': 'center',
            'background_repeat': 'repeat' if scale_mode == 'TILE' else 'no-repeat',
        }

    if fill_type.startswith('GRADIENT_'):
        css = gradient_to_css(fill)
        if css is None:
            if fill_type not in ('GRADIENT_LINEAR', 'GRADIENT_RADIAL', 'GRADIENT_ANGULAR', 'GRADIENT_DIAMOND'):
                _warn(f"Unrecognized gradient type '{fill_type}' on node {node.id}")
            return {}
        fragment = {'background_image': css}
        if fill_type == 'GRADIENT_DIAMOND':
            fragment['clip_path'] = DIAMOND_CLIP_PATH
        return fragment

    _warn(f"Unrecognized fill type '{fill_type}' on node {node.id}")
    return {}


# ============================================================================
# Strokes
# ============================================================================

def _stroke_color(node: NodeModel, stroke: Paint) -> Optional[ColorValue]:
    if stroke.type == 'SOLID':
        if stroke.color is None:
            return None
        return ColorValue.from_figma(stroke.color, stroke.opacity)
    if stroke.type.startswith('GRADIENT_') and stroke.gradient_stops:
        # Borders cannot take gradients; use the first stop
        return ColorValue.from_figma(stroke.gradient_stops[0].color, stroke.opacity)
    _warn(f"Unrecognized stroke type '{stroke.type}' on node {node.id}")
    return None


def _side_weights(node: NodeModel, weight: float) -> Optional[Tuple[float, float, float, float]]:
    """Per-side stroke weights (top, right, bottom, left) when they differ."""
    individual = node.individual_stroke_weights or {}
    sides = (
        individual.get('top', node.stroke_top_weight),
        individual.get('right', node.stroke_right_weight),
        individual.get('bottom', node.stroke_bottom_weight),
        individual.get('left', node.stroke_left_weight),
    )
    if all(s is None for s in sides):
        return None
    resolved = tuple(weight if s is None else s for s in sides)
    if len(set(resolved)) == 1:
        return None
    return resolved


def resolve_stroke(node: NodeModel) -> Dict[str, Any]:
    """Border or outline for shape-like nodes. Containers never get strokes."""
    if node.kind not in SHAPE_KINDS:
        return {}
    strokes = node.visible_strokes
    if not strokes:
        return {}

    color = _stroke_color(node, strokes[0])
    if color is None:
        return {}

    weight = node.stroke_weight if node.stroke_weight is not None else 1
    sides = _side_weights(node, weight)
    if weight <= 0 and not sides:
        return {}

    line_style = 'dashed' if node.stroke_dashes else 'solid'

    if node.stroke_align == 'OUTSIDE':
        # Outline does not take part in box sizing
        return {'outline': f"{px(weight)} {line_style} {color.css}"}

    width = ' '.join(px(w) for w in sides) if sides else px(weight)
    return {'border_width': width, 'border_style': line_style, 'border_color': color.css}


# ============================================================================
# Corner radius
# ============================================================================

def corner_radii(node: NodeModel) -> Optional[Tuple[float, float, float, float]]:
    """(top-left, top-right, bottom-right, bottom-left), or None when all zero."""
    uniform = node.corner_radius or 0
    corners: Sequence[Optional[float]] = (
        node.corner_radius_top_left,
        node.corner_radius_top_right,
        node.corner_radius_bottom_right,
        node.corner_radius_bottom_left,
    )
    if all(c is None for c in corners) and node.rectangle_corner_radii:
        radii = list(node.rectangle_corner_radii) + [None] * 4
        corners = radii[:4]

    values = tuple(uniform if c is None else c for c in corners)
    if not any(values):
        return None
    return values


def resolve_corner_radius(node: NodeModel) -> Dict[str, Any]:
    if node.kind is NodeKind.ELLIPSE:
        return {'border_radius': '50%'}

    radii = corner_radii(node)
    if radii is None:
        return {}
    if len(set(radii)) == 1:
        return {'border_radius': px(radii[0])}
    return {'border_radius': ' '.join(px(r) for r in radii)}


# ============================================================================
# Effects
# ============================================================================

def _shadow_parts(effect: Effect) -> Tuple[str, str, str, str]:
    offset = effect.offset or {}
    color = ColorValue.from_figma(effect.color).css if effect.color else DEFAULT_SHADOW_COLOR
    return px(offset.get('x', 0)), px(offset.get('y', 0)), px(effect.radius), color


def resolve_effects(node: NodeModel) -> Dict[str, Any]:
    """Shadows and blurs.

    A drop shadow on a non-text box becomes a drop-shadow() filter so that
    transparent edges do not show an opaque rectangle underneath.
    """
    text_shadows: List[str] = []
    inset_shadows: List[str] = []
    filters: List[str] = []
    backdrop: List[str] = []
    is_text = node.kind is NodeKind.TEXT

    for effect in node.visible_effects:
        if effect.type == 'DROP_SHADOW':
            x, y, blur, color = _shadow_parts(effect)
            if is_text:
                text_shadows.append(f"{x} {y} {blur} {color}")
            else:
                filters.append(f"drop-shadow({x} {y} {blur} {color})")
        elif effect.type == 'INNER_SHADOW':
            if is_text:
                continue
            x, y, blur, color = _shadow_parts(effect)
            inset_shadows.append(f"inset {x} {y} {blur} {px(effect.spread)} {color}")
        elif effect.type == 'LAYER_BLUR':
            filters.append(f"blur({px(effect.radius)})")
        elif effect.type == 'BACKGROUND_BLUR':
            backdrop.append(f"blur({px(effect.radius)})")
        else:
            _warn(f"Unrecognized effect type '{effect.type}' on node {node.id}")

    fragment: Dict[str, Any] = {}
    if text_shadows:
        fragment['text_shadow'] = ', '.join(text_shadows)
    if inset_shadows:
        fragment['box_shadow'] = ', '.join(inset_shadows)
    if filters:
        fragment['filter'] = ' '.join(filters)
    if backdrop:
        fragment['backdrop_filter'] = ' '.join(backdrop)
    return fragment


# ============================================================================
# Transform, blend, opacity
# ============================================================================

def resolve_transform(node: NodeModel) -> Dict[str, Any]:
    """Compose scale, skew, mirror and matrix, in that order.

    Rotation is left out: bounding boxes already describe rotated geometry.
    """
    parts = []

    if node.scale:
        sx = node.scale.get('x', 1)
        sy = node.scale.get('y', 1)
        if (sx, sy) != (1, 1):
            parts.append(f"scale({fmt_number(sx)}, {fmt_number(sy)})")

    if node.skew:
        parts.append(f"skew({fmt_number(node.skew)}deg)")

    mirror = (node.mirror or '').upper()
    if mirror == 'HORIZONTAL':
        parts.append("scaleX(-1)")
    elif mirror == 'VERTICAL':
        parts.append("scaleY(-1)")
    elif mirror == 'BOTH':
        parts.append("scale(-1, -1)")

    if node.transform and len(node.transform) == 6:
        parts.append(f"matrix({', '.join(fmt_number(v) for v in node.transform)})")

    return {'transform': ' '.join(parts)} if parts else {}


def resolve_blend_mode(node: NodeModel) -> Dict[str, Any]:
    css = BLEND_MODE_CSS.get(node.blend_mode or 'NORMAL')
    return {'mix_blend_mode': css} if css else {}


def resolve_opacity(node: NodeModel) -> Dict[str, Any]:
    if node.opacity < 1:
        return {'opacity': round(node.opacity, 3)}
    return {}


# ============================================================================
# Typography
# ============================================================================

def font_stack(family: str) -> str:
    """CSS font-family with a system fallback stack."""
    if family in FONT_FALLBACKS:
        return FONT_FALLBACKS[family]
    name = f'"{family}"' if re.search(r'\s', family) else family
    return f"{name}, {_SYSTEM_STACK}"


def text_color(fills: Sequence[Paint]) -> Optional[str]:
    for fill in fills:
        if fill.visible and fill.type == 'SOLID' and fill.color is not None:
            return ColorValue.from_figma(fill.color, fill.opacity).css
    return None


def text_declarations(style: TypeStyle, fills: Sequence[Paint] = ()) -> Dict[str, Any]:
    """Typography fragment for a text style.

    The style's own fills (set by an override) take precedence over the
    node's fills.
    """
    fragment: Dict[str, Any] = {}

    color = text_color(style.fills if style.fills is not None else fills)
    if color:
        fragment['color'] = color
    if style.font_family:
        fragment['font_family'] = font_stack(style.font_family)
    if style.font_size:
        fragment['font_size'] = style.font_size
    if style.font_weight:
        fragment['font_weight'] = int(style.font_weight)
    if style.italic:
        fragment['font_style'] = 'italic'

    # Line height: absolute px first, then percentages
    if style.line_height_px:
        fragment['line_height'] = px(style.line_height_px)
    elif style.line_height_percent_font_size:
        fragment['line_height'] = f"{fmt_number(style.line_height_percent_font_size)}%"
    elif style.line_height_percent:
        fragment['line_height'] = f"{fmt_number(style.line_height_percent)}%"

    if style.letter_spacing:
        fragment['letter_spacing'] = style.letter_spacing
    if style.text_align_horizontal in TEXT_ALIGN_CSS:
        fragment['text_align'] = TEXT_ALIGN_CSS[style.text_align_horizontal]
    if style.text_decoration in TEXT_DECORATION_CSS:
        fragment['text_decoration'] = TEXT_DECORATION_CSS[style.text_decoration]
    if style.text_case in TEXT_CASE_CSS:
        fragment['text_transform'] = TEXT_CASE_CSS[style.text_case]
    if style.paragraph_indent:
        fragment['text_indent'] = style.paragraph_indent
    if style.paragraph_spacing:
        fragment['margin_bottom'] = style.paragraph_spacing

    return fragment


def resolve_text(node: NodeModel) -> Dict[str, Any]:
    """Base typography for a TEXT node; its fills are the text color."""
    style = node.style or TypeStyle()
    fragment = text_declarations(style, node.fills)
    fragment['white_space'] = 'pre-wrap'

    vertical = TEXT_VERTICAL_CSS.get(style.text_align_vertical or '')
    if vertical:
        fragment['display'] = 'flex'
        fragment['flex_direction'] = 'column'
        fragment['justify_content'] = vertical
    return fragment


# ============================================================================
# Entry point
# ============================================================================

def resolve_style(node: NodeModel, assets: Optional["AssetMap"] = None,
                  config: Optional[CompilerConfig] = None) -> Dict[str, Any]:
    """Full style fragment for one node (no position/size)."""
    config = config or DEFAULT_CONFIG
    fragment: Dict[str, Any] = {}

    if node.kind is NodeKind.TEXT:
        fragment.update(resolve_text(node))
    else:
        fragment.update(resolve_fill(node, assets, config))
        fragment.update(resolve_corner_radius(node))

    fragment.update(resolve_stroke(node))
    fragment.update(resolve_effects(node))
    fragment.update(resolve_transform(node))
    fragment.update(resolve_blend_mode(node))
    fragment.update(resolve_opacity(node))

    if node.clips_content:
        fragment['overflow'] = 'hidden'

    return fragment


def compute_style(node: NodeModel, assets: Optional["AssetMap"] = None,
                  config: Optional[CompilerConfig] = None) -> ComputedStyle:
    """resolve_style() wrapped into a ComputedStyle."""
    return ComputedStyle.from_fragments(resolve_style(node, assets, config))
