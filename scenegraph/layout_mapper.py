"""
LayoutMapper - node geometry to box position/size and flex container fields.
"""

from typing import Any, Dict, Optional

from scenegraph.base import NodeKind
from scenegraph.nodes import Box, NodeModel

# Width/height at or below this is treated as collapsed
DEGENERATE_SIZE = 0.01

# Relative size difference between bounding box and render bounds that
# makes the render bounds authoritative
DIVERGENCE_RATIO = 0.5

FLOW_MODES = ('HORIZONTAL', 'VERTICAL')

JUSTIFY_CONTENT = {
    'MIN': 'flex-start',
    'START': 'flex-start',
    'CENTER': 'center',
    'MAX': 'flex-end',
    'SPACE_BETWEEN': 'space-between',
}

ALIGN_ITEMS = {
    'MIN': 'flex-start',
    'START': 'flex-start',
    'CENTER': 'center',
    'MAX': 'flex-end',
    'BASELINE': 'baseline',
    'STRETCH': 'stretch',
}


def _degenerate(box: Box) -> bool:
    return box.width <= DEGENERATE_SIZE or box.height <= DEGENERATE_SIZE


def _diverges(primary: Box, render: Box) -> bool:
    return (abs(primary.width - render.width) / render.width > DIVERGENCE_RATIO
            or abs(primary.height - render.height) / render.height > DIVERGENCE_RATIO)


def effective_box(node: NodeModel) -> Optional[Box]:
    """The box used for layout, rounded to 2dp. None when the node has no geometry."""
    box = node.absolute_bounding_box
    render = node.absolute_render_bounds

    if render is not None and not _degenerate(render):
        if box is None or _degenerate(box) or _diverges(box, render):
            box = render

    if box is None:
        return None

    width, height = box.width, box.height
    if node.kind is NodeKind.LINE or node.visible_strokes:
        # Hairlines still need a paintable box
        width = max(width, 1.0)
        height = max(height, 1.0)

    return Box(x=round(box.x, 2), y=round(box.y, 2), width=round(width, 2), height=round(height, 2))


def is_flow_container(layout_mode: Optional[str]) -> bool:
    return layout_mode in FLOW_MODES


def container_layout(node: NodeModel) -> Dict[str, Any]:
    """Flex container fields for an auto-layout node, else nothing."""
    if not is_flow_container(node.layout_mode):
        return {}

    fragment: Dict[str, Any] = {
        'display': 'flex',
        'flex_direction': 'row' if node.layout_mode == 'HORIZONTAL' else 'column',
        'justify_content': JUSTIFY_CONTENT.get(node.primary_axis_align_items or '', 'flex-start'),
        'align_items': ALIGN_ITEMS.get(node.counter_axis_align_items or '', 'flex-start'),
        'padding_top': node.padding_top,
        'padding_right': node.padding_right,
        'padding_bottom': node.padding_bottom,
        'padding_left': node.padding_left,
    }
    if node.item_spacing:
        fragment['gap'] = node.item_spacing
    if node.layout_wrap == 'WRAP':
        fragment['flex_wrap'] = 'wrap'
    return fragment


def map_layout(
    node: NodeModel,
    parent_box: Optional[Box] = None,
    parent_layout_mode: Optional[str] = None,
) -> Dict[str, Any]:
    """Position, size and flex fields for one node.

    Args:
        node: The node to place
        parent_box: Effective box of the parent; None for the root
        parent_layout_mode: Parent's layoutMode; flow children are left to
            the flex container unless they opt out with ABSOLUTE positioning

    Returns:
        ComputedStyle fragment
    """
    fragment: Dict[str, Any] = {}
    box = effective_box(node)

    if box is not None:
        fragment['width'] = box.width
        fragment['height'] = box.height

        if parent_box is None:
            fragment['position'] = 'relative'
        elif is_flow_container(parent_layout_mode) and node.layout_positioning != 'ABSOLUTE':
            fragment['position'] = 'relative'
            if node.layout_grow > 0:
                fragment['flex_grow'] = node.layout_grow
            if node.layout_align == 'STRETCH':
                fragment['align_self'] = 'stretch'
        else:
            fragment['position'] = 'absolute'
            fragment['left'] = round(box.x - parent_box.x, 2)
            fragment['top'] = round(box.y - parent_box.y, 2)

    fragment.update(container_layout(node))
    return fragment
