#!/usr/bin/env python3
"""
Figma Scene MCP Server - Model Context Protocol server for the scene-graph compiler.

This server exposes the compiler pipeline as tools:
- Scene compilation (design nodes -> styled box tree for previews)
- Asset collection and resolution (image fills, flattened groups, shapes)
- Component export (React source + bundled image assets)
- Offline compilation of plugin / REST export files
"""

import os
import json
import re
from pathlib import Path
from typing import Optional, Dict, Any, Tuple
from enum import Enum

import httpx
from pydantic import BaseModel, Field, field_validator, ConfigDict
from mcp.server.fastmcp import FastMCP

from scenegraph import settings
from scenegraph.assets import AssetResolver, auth_headers, collect_asset_keys
from scenegraph.compiler import CompiledScene, StyledNode, compile_document, parse_document
from scenegraph.config import CompilerConfig
from scenegraph.errors import AssetFetchError, AuthError, CancellationError, ParseError
from scenegraph.export import export_scene
from scenegraph.logging_config import setup_logger

# ============================================================================
# Constants
# ============================================================================

FIGMA_API_BASE = settings.FIGMA_API_BASE
CHARACTER_LIMIT = 25000
DEFAULT_TIMEOUT = settings.FIGMA_HTTP_TIMEOUT

# ============================================================================
# Initialize MCP Server
# ============================================================================

mcp = FastMCP("figma_scene_mcp")

# One preview resolver per file: a newer compile supersedes an older one
_preview_resolvers: Dict[str, AssetResolver] = {}

# ============================================================================
# Enums and Types
# ============================================================================

class ResponseFormat(str, Enum):
    """Output format for tool responses."""
    MARKDOWN = "markdown"
    JSON = "json"


class ImageFormat(str, Enum):
    """Image export format for resolved assets."""
    PNG = "png"
    SVG = "svg"
    JPG = "jpg"


# ============================================================================
# Pydantic Input Models
# ============================================================================

def _extract_file_key(v: str) -> str:
    # Extract file key from URL if full URL provided
    if 'figma.com' in v:
        match = re.search(r'figma\.com/(?:design|file)/([a-zA-Z0-9]+)', v)
        if match:
            return match.group(1)
        raise ValueError("Could not extract file key from Figma URL")
    return v


class FigmaSceneInput(BaseModel):
    """Input model for scene compilation."""
    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    file_key: str = Field(
        ...,
        description="Figma file key (from URL: figma.com/design/FILE_KEY/...)",
        min_length=10,
        max_length=50
    )
    node_id: str = Field(..., description="Root node ID to compile (e.g., '1:2')")
    resolve_assets: bool = Field(
        default=True,
        description="Resolve image fills and flattened groups to image URLs"
    )
    max_scale: float = Field(
        default=2.0,
        description="Maximum bitmap scale factor (0.01 to 4.0)",
        ge=0.01,
        le=4.0
    )
    debug_overlay: bool = Field(default=False, description="Ask the renderer to outline every box")
    response_format: ResponseFormat = Field(
        default=ResponseFormat.MARKDOWN,
        description="Output format: 'markdown' or 'json'"
    )

    @field_validator('file_key')
    @classmethod
    def validate_file_key(cls, v: str) -> str:
        return _extract_file_key(v)

    @field_validator('node_id')
    @classmethod
    def normalize_node_id(cls, v: str) -> str:
        return v.replace('-', ':')


class FigmaAssetsInput(BaseModel):
    """Input model for asset collection."""
    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    file_key: str = Field(..., description="Figma file key", min_length=10, max_length=50)
    node_id: str = Field(..., description="Root node ID to scan for assets")
    resolve: bool = Field(default=False, description="Also resolve every key to an image URL")
    format: ImageFormat = Field(
        default=ImageFormat.PNG,
        description="Image format: 'png', 'svg', 'jpg'"
    )
    scale: float = Field(
        default=2.0,
        description="Scale factor (0.01 to 4.0)",
        ge=0.01,
        le=4.0
    )

    @field_validator('file_key')
    @classmethod
    def validate_file_key(cls, v: str) -> str:
        return _extract_file_key(v)

    @field_validator('node_id')
    @classmethod
    def normalize_node_id(cls, v: str) -> str:
        return v.replace('-', ':')


class FigmaExportInput(BaseModel):
    """Input model for component export."""
    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    file_key: str = Field(..., description="Figma file key", min_length=10, max_length=50)
    node_id: str = Field(..., description="Node ID to export as a component")
    component_name: Optional[str] = Field(
        default=None,
        description="Component name (auto-generated from node name if not provided)"
    )
    use_tailwind: bool = Field(default=False, description="Emit Tailwind classes instead of inline styles")
    output_dir: Optional[str] = Field(
        default=None,
        description="Directory to write the bundle into; omit to return the source inline"
    )

    @field_validator('file_key')
    @classmethod
    def validate_file_key(cls, v: str) -> str:
        return _extract_file_key(v)

    @field_validator('node_id')
    @classmethod
    def normalize_node_id(cls, v: str) -> str:
        return v.replace('-', ':')


class FigmaExportFileInput(BaseModel):
    """Input model for compiling a saved export file."""
    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    path: str = Field(..., description="Path to a plugin or REST export JSON file", min_length=1)
    response_format: ResponseFormat = Field(
        default=ResponseFormat.MARKDOWN,
        description="Output format: 'markdown' or 'json'"
    )


# ============================================================================
# Helper Functions
# ============================================================================

def _get_figma_token() -> Tuple[str, bool]:
    """Get Figma API token from environment. Returns (token, is_oauth)."""
    oauth_token = os.environ.get("FIGMA_OAUTH_TOKEN")
    if oauth_token:
        return oauth_token, True
    token = os.environ.get("FIGMA_ACCESS_TOKEN") or os.environ.get("FIGMA_TOKEN")
    if not token:
        raise ValueError(
            "Figma API token not found. Set FIGMA_ACCESS_TOKEN or FIGMA_TOKEN environment variable. "
            "Get your token from: https://www.figma.com/developers/api#access-tokens"
        )
    return token, False


async def _make_figma_request(
    endpoint: str,
    method: str = "GET",
    params: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Make authenticated request to Figma API."""
    token, oauth = _get_figma_token()

    async with httpx.AsyncClient() as client:
        response = await client.request(
            method=method,
            url=f"{FIGMA_API_BASE}/{endpoint}",
            headers=auth_headers(token, oauth),
            params=params,
            timeout=DEFAULT_TIMEOUT
        )
        response.raise_for_status()
        return response.json()


def _handle_api_error(e: Exception) -> str:
    """Format API errors for user-friendly messages."""
    if isinstance(e, AuthError):
        return (
            f"Error: Figma rejected the token (status {e.status}). "
            "Re-authenticate or check your FIGMA_ACCESS_TOKEN environment variable."
        )
    elif isinstance(e, ParseError):
        return f"Error: Could not read the design document: {str(e)}"
    elif isinstance(e, CancellationError):
        return "Error: Asset resolution was superseded by a newer request."
    elif isinstance(e, AssetFetchError):
        return f"Error: Asset request failed: {str(e)}"
    elif isinstance(e, httpx.HTTPStatusError):
        status = e.response.status_code
        if status == 401:
            return "Error: Invalid Figma API token. Check your FIGMA_ACCESS_TOKEN environment variable."
        elif status == 403:
            return "Error: Access denied. You don't have permission to view this file."
        elif status == 404:
            return "Error: File or node not found. Check the file key and node ID."
        elif status == 429:
            return "Error: Rate limit exceeded. Please wait before making more requests."
        return f"Error: Figma API returned status {status}"
    elif isinstance(e, httpx.TimeoutException):
        return "Error: Request timed out. The file might be too large."
    elif isinstance(e, (ValueError, OSError)):
        return f"Error: {str(e)}"
    return f"Error: {type(e).__name__}: {str(e)}"


def _get_preview_resolver(file_key: str) -> AssetResolver:
    token, oauth = _get_figma_token()
    resolver = _preview_resolvers.get(file_key)
    if resolver is None:
        resolver = AssetResolver(file_key, token, oauth=oauth)
        _preview_resolvers[file_key] = resolver
    return resolver


async def _fetch_document(file_key: str, node_id: str) -> Dict[str, Any]:
    data = await _make_figma_request(f"files/{file_key}/nodes", params={"ids": node_id})
    node_data = data.get('nodes', {}).get(node_id)
    if not node_data or not node_data.get('document'):
        raise ParseError(f"Node '{node_id}' not found in file.")
    return data


def _format_scene_markdown(scene: CompiledScene, title: str) -> str:
    """Outline of a compiled scene."""
    lines = [
        f"# Compiled Scene: {title}",
        f"**Asset Version:** {scene.asset_version}",
        f"**Max Scale:** {scene.max_scale}x",
        "",
        "## Box Tree",
        ""
    ]

    def format_node(node: StyledNode, indent: int = 0) -> None:
        prefix = "  " * indent
        css = node.style.as_css()
        size = f" ({css['width']}×{css['height']})" if 'width' in css and 'height' in css else ""
        flags = " [bitmap]" if node.bitmap else ""
        lines.append(f"{prefix}- **{node.name}** `{node.id}` {node.kind.value}{size}{flags}")
        if node.text_runs:
            text = ''.join(run.text for run in node.text_runs if not run.is_break)
            lines.append(f"{prefix}  > {text[:80]}{'…' if len(text) > 80 else ''} ({len(node.text_runs)} runs)")
        for child in node.children:
            format_node(child, indent + 1)

    if scene.root is None:
        lines.append("_Root node is hidden; nothing to render._")
    else:
        format_node(scene.root)

    return "\n".join(lines)


def _truncate(result: str) -> str:
    if len(result) > CHARACTER_LIMIT:
        return result[:CHARACTER_LIMIT] + "\n\n... (truncated)"
    return result


# ============================================================================
# MCP Tools
# ============================================================================

@mcp.tool(
    name="figma_compile_scene",
    annotations={
        "title": "Compile Figma Scene",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True
    }
)
async def figma_compile_scene(params: FigmaSceneInput) -> str:
    """
    Compile a Figma node into a styled box tree for previewing.

    Every visible node becomes a box with its computed CSS, text is split into
    style runs, auto-layout frames become flex containers, and masked groups or
    shapes are replaced by rendered bitmaps when their image resolves.

    Args:
        params: FigmaSceneInput containing:
            - file_key (str): Figma file key or full URL
            - node_id (str): Root node ID
            - resolve_assets (bool): Resolve image URLs before compiling
            - max_scale, debug_overlay: Passed through to the renderer
            - response_format: 'markdown' or 'json'

    Returns:
        str: Box tree outline, or the full scene as JSON
    """
    try:
        data = await _fetch_document(params.file_key, params.node_id)
        document = parse_document(data)

        asset_map = None
        if params.resolve_assets:
            resolver = _get_preview_resolver(params.file_key)
            asset_map = await resolver.resolve(collect_asset_keys(document.root), document.image_map)
            if asset_map is None:
                raise CancellationError("superseded")

        config = CompilerConfig(max_scale=params.max_scale, debug_overlay=params.debug_overlay)
        scene = compile_document(document, asset_map, config)

        if params.response_format == ResponseFormat.JSON:
            return _truncate(json.dumps(scene.to_dict(), indent=2))

        return _truncate(_format_scene_markdown(scene, document.root.name or params.node_id))

    except Exception as e:
        return _handle_api_error(e)


@mcp.tool(
    name="figma_collect_assets",
    annotations={
        "title": "Collect Figma Scene Assets",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True
    }
)
async def figma_collect_assets(params: FigmaAssetsInput) -> str:
    """
    List the image assets a Figma node needs, optionally resolving their URLs.

    Args:
        params: FigmaAssetsInput containing:
            - file_key (str): Figma file key
            - node_id (str): Root node ID
            - resolve (bool): Fetch image URLs in chunks
            - format, scale: Image export options

    Returns:
        str: Asset keys with request ids, aliases and (if resolved) URLs
    """
    try:
        data = await _fetch_document(params.file_key, params.node_id)
        document = parse_document(data)
        keys = collect_asset_keys(document.root)

        urls: Dict[str, str] = {}
        if params.resolve and keys:
            token, oauth = _get_figma_token()
            resolver = AssetResolver(
                params.file_key, token, oauth=oauth, fmt=params.format.value, scale=params.scale
            )
            asset_map = await resolver.resolve(keys, document.image_map)
            urls = dict(asset_map.urls) if asset_map else {}

        lines = [
            "# Scene Assets",
            f"**Root:** `{params.node_id}`",
            f"**Keys:** {len(keys)}",
            ""
        ]
        if not keys:
            lines.append("_No image fills, flattened groups or shapes found._")
        for entry in keys:
            aliases = ', '.join(f"`{a}`" for a in sorted(entry.aliases))
            line = f"- **{entry.key}** via `{entry.request_id}` (nodes: {aliases})"
            if params.resolve:
                url = urls.get(entry.key)
                line += f": [Download]({url})" if url else ": unresolved"
            lines.append(line)

        if params.resolve:
            lines.extend(["", "> Note: These URLs expire in 30 days."])

        return _truncate("\n".join(lines))

    except Exception as e:
        return _handle_api_error(e)


@mcp.tool(
    name="figma_export_components",
    annotations={
        "title": "Export Figma Node as Component",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True
    }
)
async def figma_export_components(params: FigmaExportInput) -> str:
    """
    Export a Figma node as a React component with its image assets.

    Resolves and downloads every image the node needs into public/assets/,
    then emits src/components/<Name>.tsx referencing the bundled files.
    Images that fail to download keep their remote URL.

    Args:
        params: FigmaExportInput containing:
            - file_key (str): Figma file key
            - node_id (str): Node ID to export
            - component_name (Optional[str]): Custom component name
            - use_tailwind (bool): Tailwind classes instead of inline styles
            - output_dir (Optional[str]): Where to write the bundle

    Returns:
        str: Manifest summary, plus the generated source when not written to disk
    """
    try:
        token, oauth = _get_figma_token()
        data = await _fetch_document(params.file_key, params.node_id)
        manifest = await export_scene(
            data,
            params.file_key,
            token,
            component_name=params.component_name,
            use_tailwind=params.use_tailwind,
            oauth=oauth,
        )

        lines = ["# Component Export", f"**Source Node:** `{params.node_id}`", ""]

        if params.output_dir:
            written = manifest.write(params.output_dir)
            lines.append(f"**Written:** {len(written)} files to `{params.output_dir}`")
            lines.append("")
            lines.extend(f"- `{path}`" for path in written)
        else:
            for path, code in manifest.source_files.items():
                lines.extend([f"## {path}", "", "```tsx", code, "```", ""])
            for path, content in manifest.asset_files.items():
                lines.append(f"- `{path}` ({len(content)} bytes, not written)")

        if manifest.remote_assets:
            lines.extend(["", "## Remote Assets (download failed)", ""])
            lines.extend(f"- **{key}**: {url}" for key, url in manifest.remote_assets.items())
        if manifest.fonts:
            lines.extend(["", f"**Fonts:** {', '.join(manifest.fonts)}"])

        return _truncate("\n".join(lines))

    except Exception as e:
        return _handle_api_error(e)


@mcp.tool(
    name="figma_compile_export_file",
    annotations={
        "title": "Compile Saved Figma Export",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False
    }
)
async def figma_compile_export_file(params: FigmaExportFileInput) -> str:
    """
    Compile a saved Figma export (plugin or REST JSON) without network access.

    Image fills resolve through the file's own imageMap when present.

    Args:
        params: FigmaExportFileInput containing:
            - path (str): Path to the export JSON file
            - response_format: 'markdown' or 'json'

    Returns:
        str: Box tree outline, or the full scene as JSON
    """
    try:
        raw = Path(params.path).expanduser().read_bytes()
        document = parse_document(raw)
        scene = compile_document(document)

        if params.response_format == ResponseFormat.JSON:
            return _truncate(json.dumps(scene.to_dict(), indent=2))
        return _truncate(_format_scene_markdown(scene, document.root.name or Path(params.path).name))

    except Exception as e:
        return _handle_api_error(e)


# ============================================================================
# Entry Point
# ============================================================================

def main() -> None:
    setup_logger("scenegraph")
    mcp.run()


if __name__ == "__main__":
    main()
