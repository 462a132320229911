"""Figma scene-graph compiler: design-node trees to styled box trees."""

from scenegraph.assets import AssetKey, AssetMap, AssetResolver, CancellationToken, collect_asset_keys, resolve_assets
from scenegraph.base import NodeKind
from scenegraph.compiler import CompiledScene, SceneCompiler, SceneDocument, StyledNode, compile_document, parse_document
from scenegraph.config import CompilerConfig, PlaceholderFillHeuristic
from scenegraph.errors import (
    AssetFetchError, AuthError, CancellationError, ParseError, SceneGraphError, StyleComputeWarning,
)
from scenegraph.nodes import NodeModel, parse_node
from scenegraph.style_resolver import ComputedStyle
from scenegraph.text_segmenter import TextRun, segment_text

__all__ = [
    'AssetFetchError', 'AssetKey', 'AssetMap', 'AssetResolver', 'AuthError',
    'CancellationError', 'CancellationToken', 'CompiledScene', 'CompilerConfig',
    'ComputedStyle', 'NodeKind', 'NodeModel', 'ParseError', 'PlaceholderFillHeuristic',
    'SceneCompiler', 'SceneDocument', 'SceneGraphError', 'StyleComputeWarning',
    'StyledNode', 'TextRun', 'collect_asset_keys', 'compile_document', 'parse_document',
    'parse_node', 'resolve_assets', 'segment_text',
]
