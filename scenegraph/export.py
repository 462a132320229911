"""
Export pipeline - StyledNode tree to component source plus bundled assets.

Runs its own asset-resolution job (independent of any preview resolver),
downloads every resolved image into the bundle, compiles the document and
emits a React component that points at the bundled files. Assets that fail
to download keep their remote URL.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx

from generators.react_generator import component_name_for, generate_react_code
from scenegraph.assets import (
    AssetMap, AssetResolver, ProgressCallback, collect_asset_keys, download_asset,
)
from scenegraph.base import NodeKind
from scenegraph.compiler import SceneCompiler, SceneDocument, parse_document
from scenegraph.config import CompilerConfig
from scenegraph.errors import AssetFetchError, CancellationError
from scenegraph.nodes import NodeModel
from scenegraph.text_segmenter import font_families

logger = logging.getLogger("scenegraph.export")

ASSET_DIR = "public/assets"
COMPONENT_DIR = "src/components"


@dataclass
class ExportManifest:
    """Files of an export bundle, keyed by relative path."""
    source_files: Dict[str, str] = field(default_factory=dict)
    asset_files: Dict[str, bytes] = field(default_factory=dict)
    remote_assets: Dict[str, str] = field(default_factory=dict)
    fonts: List[str] = field(default_factory=list)

    def summary(self) -> Dict[str, Any]:
        """Manifest without file contents."""
        return {
            'source_files': sorted(self.source_files),
            'asset_files': {path: len(data) for path, data in sorted(self.asset_files.items())},
            'remote_assets': dict(self.remote_assets),
            'fonts': list(self.fonts),
        }

    def write(self, output_dir: Union[str, Path]) -> List[Path]:
        """Write every file under output_dir. Returns the written paths."""
        root = Path(output_dir)
        written = []
        for rel, text in self.source_files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding='utf-8')
            written.append(path)
        for rel, data in self.asset_files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            written.append(path)
        return written


def sanitize_key(key: str) -> str:
    """File-system safe name for an asset key ("12:34" -> "12_34")."""
    return re.sub(r'[^A-Za-z0-9_-]+', '_', key).strip('_') or 'asset'


def asset_path(key: str, ext: str) -> str:
    return f"{ASSET_DIR}/{sanitize_key(key)}.{ext}"


def public_url(path: str) -> str:
    """URL a bundled asset is served from (public/ is the web root)."""
    return '/' + path[len('public/'):] if path.startswith('public/') else '/' + path


def collect_fonts(root: NodeModel) -> List[str]:
    families = set()
    for node in [root, *root.iter_descendants()]:
        if node.kind is NodeKind.TEXT:
            families |= font_families(node)
    return sorted(families)


async def export_scene(
    data: Union[SceneDocument, Dict[str, Any], str, bytes],
    file_key: str = "",
    token: str = "",
    *,
    component_name: Optional[str] = None,
    config: Optional[CompilerConfig] = None,
    client: Optional[httpx.AsyncClient] = None,
    resolver: Optional[AssetResolver] = None,
    use_tailwind: bool = False,
    oauth: bool = False,
    on_progress: Optional[ProgressCallback] = None,
) -> ExportManifest:
    """Build an export bundle for one document.

    Args:
        data: SceneDocument or any shape parse_document() accepts
        file_key: Figma file key; without it only the document's imageMap is used
        token: Figma access token
        resolver: Resolver owning this export's job lineage; cancel it to
            abort the export

    Raises:
        AuthError: the token was rejected
        CancellationError: the export's resolution job was cancelled
    """
    document = data if isinstance(data, SceneDocument) else parse_document(data)
    keys = collect_asset_keys(document.root)

    if file_key:
        resolver = resolver or AssetResolver(file_key, token, client=client, oauth=oauth)
        asset_map = await resolver.resolve(keys, document.image_map, on_progress)
        if asset_map is None:
            raise CancellationError("Export asset resolution was superseded")
    else:
        urls = {}
        for entry in keys:
            url = document.image_map.get(entry.key)
            if url:
                for name in [entry.key, *sorted(entry.aliases)]:
                    urls.setdefault(name, url)
        asset_map = AssetMap(version=0, urls=urls)

    manifest = ExportManifest(fonts=collect_fonts(document.root))
    local_urls: Dict[str, str] = {}

    for entry in keys:
        url = asset_map.get(entry.key)
        if not url or url in local_urls or entry.key in manifest.remote_assets:
            continue
        try:
            content, ext = await download_asset(url, client)
        except AssetFetchError as e:
            logger.warning(f"export_scene: keeping remote URL for {entry.key}: {e}")
            manifest.remote_assets[entry.key] = url
            continue
        path = asset_path(entry.key, ext)
        manifest.asset_files[path] = content
        local_urls[url] = public_url(path)

    logger.info(
        f"export_scene: assets bundled={len(manifest.asset_files)}, "
        f"remote={len(manifest.remote_assets)}"
    )

    compiled = SceneCompiler(asset_map, config).compile(document.root)
    if compiled.root is None:
        logger.warning("export_scene: document root is hidden, nothing to emit")
        return manifest

    name = component_name_for(component_name or compiled.root.name)
    manifest.source_files[f"{COMPONENT_DIR}/{name}.tsx"] = generate_react_code(
        compiled.root, name, use_tailwind=use_tailwind, asset_urls=local_urls
    )
    manifest.source_files[f"{COMPONENT_DIR}/index.ts"] = f"export {{ {name} }} from './{name}';\n"
    return manifest
