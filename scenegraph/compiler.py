"""
SceneCompiler - raw design document to a styled box tree.

The compiler is pure: it reads an immutable NodeModel tree plus an AssetMap
and never performs I/O. Asset resolution happens out-of-band (see assets.py).
"""

import json
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from scenegraph.assets import EMPTY_ASSET_MAP, AssetMap
from scenegraph.base import MAX_DEPTH, Z_INDEX_CAP, NodeKind
from scenegraph.config import CompilerConfig
from scenegraph.errors import ParseError
from scenegraph.flatten import decide_flatten, is_asset_candidate
from scenegraph.layout_mapper import effective_box, map_layout
from scenegraph.nodes import Box, NodeModel, parse_node
from scenegraph.style_resolver import ComputedStyle, image_fill_source, resolve_style
from scenegraph.text_segmenter import TextRun, segment_node

logger = logging.getLogger("scenegraph.compiler")

_ROOT_KINDS = ('PAGE', 'CANVAS')


# ============================================================================
# Input
# ============================================================================

@dataclass(frozen=True)
class SceneDocument:
    root: NodeModel
    image_map: Mapping[str, str]


def _load_json(data: Union[str, bytes, bytearray]) -> Any:
    if isinstance(data, (bytes, bytearray)):
        try:
            data = data.decode('utf-8')
        except UnicodeDecodeError as e:
            raise ParseError(f"Document is not UTF-8: {e}") from e
    try:
        return json.loads(data)
    except ValueError as e:
        raise ParseError(f"Document is not valid JSON: {e}") from e


def parse_document(data: Union[Dict[str, Any], str, bytes, bytearray]) -> SceneDocument:
    """Normalize any supported export shape into a SceneDocument.

    Accepted shapes:
        {"nodes": {id: {"document": {...}}}}   full export; the first PAGE or
                                              CANVAS document wins, else the
                                              first document present
        {"document": {...}, "imageMap": {...}} direct export
        {...}                                  bare node object

    Raises:
        ParseError: no recognizable document root
    """
    if isinstance(data, (str, bytes, bytearray)):
        data = _load_json(data)
    if not isinstance(data, dict):
        raise ParseError(f"Expected a JSON object, got {type(data).__name__}")

    raw_map = data.get('imageMap')

    if isinstance(data.get('nodes'), dict):
        documents = [
            entry['document'] for entry in data['nodes'].values()
            if isinstance(entry, dict) and isinstance(entry.get('document'), dict)
        ]
        if not documents:
            raise ParseError("Export contains no node documents")
        raw_root = next(
            (d for d in documents if str(d.get('type', '')).upper() in _ROOT_KINDS),
            documents[0]
        )
    elif isinstance(data.get('document'), dict):
        raw_root = data['document']
    elif 'type' in data or 'children' in data:
        raw_root = data
    else:
        raise ParseError("No document root found (expected 'nodes', 'document' or a node object)")

    image_map = {}
    if isinstance(raw_map, dict):
        image_map = {str(k): v for k, v in raw_map.items() if isinstance(v, str) and v}

    return SceneDocument(root=parse_node(raw_root), image_map=MappingProxyType(image_map))


# ============================================================================
# Output
# ============================================================================

@dataclass(frozen=True)
class StyledNode:
    id: str
    name: str
    kind: NodeKind
    style: ComputedStyle
    children: Tuple["StyledNode", ...] = ()
    text_runs: Tuple[TextRun, ...] = ()
    asset_key: Optional[str] = None
    asset_url: Optional[str] = None
    flattened: bool = False
    bitmap: bool = False
    sibling_index: int = 0
    box: Optional[Box] = None

    def iter_tree(self):
        yield self
        for child in self.children:
            yield from child.iter_tree()

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            'id': self.id,
            'name': self.name,
            'type': self.kind.value,
            'style': self.style.as_react(),
            'siblingIndex': self.sibling_index,
        }
        if self.text_runs:
            out['runs'] = [run.to_dict() for run in self.text_runs]
        if self.asset_url:
            out['asset'] = {'key': self.asset_key, 'url': self.asset_url}
        if self.bitmap:
            out['bitmap'] = True
        if self.flattened:
            out['flattened'] = True
        out['children'] = [child.to_dict() for child in self.children]
        return out


@dataclass(frozen=True)
class CompiledScene:
    root: Optional[StyledNode]
    asset_version: int = 0
    max_scale: float = 2.0
    debug_overlay: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'root': self.root.to_dict() if self.root else None,
            'assetVersion': self.asset_version,
            'maxScale': self.max_scale,
            'debugOverlay': self.debug_overlay,
        }


# ============================================================================
# Compiler
# ============================================================================

def _bitmap_fragment(url: str) -> Dict[str, Any]:
    return {
        'background_image': f"url('{url}')",
        'background_size': '100% 100%',
        'background_position': 'center',
        'background_repeat': 'no-repeat',
    }


def _has_image_fill(node: NodeModel) -> bool:
    return any(fill.type == 'IMAGE' for fill in node.visible_fills)


class SceneCompiler:
    """Compile NodeModel trees against one AssetMap and config."""

    def __init__(self, assets: Optional[AssetMap] = None, config: Optional[CompilerConfig] = None):
        self.assets = assets if assets is not None else EMPTY_ASSET_MAP
        self.config = config or CompilerConfig()

    def compile(self, root: NodeModel) -> CompiledScene:
        styled = self.compile_node(root) if root.is_visible else None
        return CompiledScene(
            root=styled,
            asset_version=self.assets.version,
            max_scale=self.config.max_scale,
            debug_overlay=self.config.debug_overlay,
        )

    def compile_node(
        self,
        node: NodeModel,
        parent_box: Optional[Box] = None,
        parent_layout_mode: Optional[str] = None,
        index: int = 0,
        depth: int = 0,
    ) -> Optional[StyledNode]:
        if not node.is_visible:
            return None
        if depth > MAX_DEPTH:
            logger.warning(f"compile_node: depth limit {MAX_DEPTH} reached at {node.id}, subtree skipped")
            return None

        layout = map_layout(node, parent_box, parent_layout_mode)
        if parent_box is not None:
            layout['z_index'] = node.z_index if node.z_index is not None else min(index, Z_INDEX_CAP)
        box = effective_box(node)

        bitmap = self._bitmap_for(node)
        if bitmap is not None:
            key, url, flattened = bitmap
            return StyledNode(
                id=node.id,
                name=node.name,
                kind=node.kind,
                style=ComputedStyle.from_fragments(_bitmap_fragment(url), layout),
                asset_key=key,
                asset_url=url,
                flattened=flattened,
                bitmap=True,
                sibling_index=index,
                box=box,
            )

        style = ComputedStyle.from_fragments(resolve_style(node, self.assets, self.config), layout)

        text_runs: Tuple[TextRun, ...] = ()
        asset_key = asset_url = None
        if node.kind is NodeKind.TEXT:
            text_runs = tuple(segment_node(node))
        else:
            asset_key, asset_url = image_fill_source(node, self.assets)

        children: List[StyledNode] = []
        child_parent_box = box or parent_box
        visible_children = [c for c in node.children if c.is_visible]
        for i, child in enumerate(visible_children):
            styled = self.compile_node(child, child_parent_box, node.layout_mode, i, depth + 1)
            if styled is not None:
                children.append(styled)

        return StyledNode(
            id=node.id,
            name=node.name,
            kind=node.kind,
            style=style,
            children=tuple(children),
            text_runs=text_runs,
            asset_key=asset_key,
            asset_url=asset_url,
            sibling_index=index,
            box=box,
        )

    def _bitmap_for(self, node: NodeModel) -> Optional[Tuple[str, str, bool]]:
        """(key, url, flattened) when the node renders as a pre-rendered image."""
        decision = decide_flatten(node)
        if decision.flatten:
            for key in (decision.asset_key, decision.fallback_key):
                url = self.assets.get(key)
                if url:
                    return key, url, True
            logger.debug(f"compile_node: {node.id} flattens but has no bitmap, compiling children")
            return None

        if is_asset_candidate(node) and not _has_image_fill(node):
            url = self.assets.get(node.id)
            if url:
                return node.id, url, False
        return None


def compile_document(
    data: Union[SceneDocument, Dict[str, Any], str, bytes],
    assets: Optional[AssetMap] = None,
    config: Optional[CompilerConfig] = None,
) -> CompiledScene:
    """Parse (if needed) and compile a document.

    The document's own imageMap backs any key the AssetMap does not resolve.
    """
    document = data if isinstance(data, SceneDocument) else parse_document(data)
    assets = assets if assets is not None else EMPTY_ASSET_MAP
    if document.image_map:
        assets = AssetMap(version=assets.version, urls={**document.image_map, **assets.urls})
    return SceneCompiler(assets, config).compile(document.root)
