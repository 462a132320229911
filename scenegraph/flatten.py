"""
FlattenDecision - when a composite is replaced by a pre-rendered bitmap.

Pure function of the subtree: the same node always yields the same decision,
whether or not its asset has been resolved yet.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from scenegraph.base import CONCRETE_MASK_TYPES, SHAPE_KINDS, NodeKind
from scenegraph.nodes import NodeModel

logger = logging.getLogger("scenegraph.flatten")


@dataclass(frozen=True)
class FlattenDecision:
    flatten: bool
    asset_key: Optional[str] = None
    fallback_key: Optional[str] = None
    reason: str = ''


NO_FLATTEN = FlattenDecision(flatten=False)


def has_concrete_mask(node: NodeModel) -> bool:
    return any(
        d.is_mask and (d.mask_type or '').upper() in CONCRETE_MASK_TYPES
        for d in node.iter_descendants()
    )


def has_text(node: NodeModel) -> bool:
    return any(d.kind is NodeKind.TEXT for d in node.iter_descendants())


def first_image_ref(node: NodeModel) -> Optional[str]:
    """Image ref of the first visible descendant image fill, depth-first."""
    for d in node.iter_descendants():
        for fill in d.visible_fills:
            if fill.type == 'IMAGE' and fill.image_ref:
                return fill.image_ref
    return None


def decide_flatten(node: NodeModel) -> FlattenDecision:
    """Only GROUPs flatten: on export settings, or on a mask with no text to keep live."""
    if node.kind is not NodeKind.GROUP:
        return NO_FLATTEN

    if node.export_settings:
        reason = 'export-settings'
    elif has_concrete_mask(node) and not has_text(node):
        reason = 'mask'
    else:
        return NO_FLATTEN

    decision = FlattenDecision(
        flatten=True,
        asset_key=node.id,
        fallback_key=first_image_ref(node),
        reason=reason,
    )
    logger.debug(f"decide_flatten: {node.id} ({node.name}) flattens by {reason}")
    return decision


def is_asset_candidate(node: NodeModel) -> bool:
    """Shape kinds are always offered a bitmap; they only use it when it resolves."""
    return node.kind in SHAPE_KINDS
