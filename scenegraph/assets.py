"""
AssetResolver - collect the images a scene needs and resolve them to URLs.

Collection is a pure walk over the node tree. Resolution calls the Figma
image-export endpoint in chunks:

    GET {FIGMA_API_BASE}/images/{file_key}?ids=a,b,c&format=png&scale=2

A failed chunk is logged and skipped; a rejected token aborts the whole job.
The stateful AssetResolver runs one job at a time: starting a new job cancels
the previous one, and a superseded job never touches the published AssetMap.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

import httpx

from scenegraph import settings
from scenegraph.base import MAX_DEPTH, fmt_number
from scenegraph.errors import AssetFetchError, AuthError, CancellationError
from scenegraph.flatten import decide_flatten, is_asset_candidate
from scenegraph.nodes import NodeModel

logger = logging.getLogger("scenegraph.assets")

ProgressCallback = Callable[[int, int], None]

# Hosts Figma serves rendered images from
ALLOWED_ASSET_HOSTS = frozenset({
    'figma-alpha-api.s3.us-west-2.amazonaws.com',
    's3.us-west-2.amazonaws.com',
    'images.figma.com',
    'static.figma.com',
})

CONTENT_TYPE_EXTENSIONS = {
    'image/svg+xml': 'svg',
    'image/png': 'png',
    'image/jpeg': 'jpg',
    'image/jpg': 'jpg',
}


# ============================================================================
# Types
# ============================================================================

@dataclass
class AssetKey:
    """One asset to resolve.

    `key` is an image ref when the asset comes from an image fill, else a
    node id. `request_id` is the node id sent to the image endpoint; every
    node id in `aliases` maps to the same URL once resolved.
    """
    key: str
    request_id: str
    aliases: Set[str] = field(default_factory=set)


class CancellationToken:
    """Cooperative cancellation flag, checked between chunks."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise CancellationError("Asset resolution cancelled")


@dataclass(frozen=True)
class AssetMap:
    """Immutable key -> URL mapping, versioned by the job that produced it."""
    version: int = 0
    urls: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'urls', MappingProxyType(dict(self.urls)))

    def __contains__(self, key: object) -> bool:
        return key in self.urls

    def __len__(self) -> int:
        return len(self.urls)

    def get(self, key: Optional[str]) -> Optional[str]:
        if not key:
            return None
        return self.urls.get(key)

    def lookup(self, image_ref: Optional[str], node_id: Optional[str]) -> Optional[str]:
        """Resolve an image fill: by image ref first, then by node id."""
        return self.get(image_ref) or self.get(node_id)


EMPTY_ASSET_MAP = AssetMap()


# ============================================================================
# Collection
# ============================================================================

def collect_asset_keys(root: NodeModel) -> List[AssetKey]:
    """Walk visible nodes pre-order and list every asset the compiler may ask for.

    Keys are unique; a key reached from several nodes accumulates aliases and
    keeps the request id of the first node that registered it.
    """
    keys: Dict[str, AssetKey] = {}

    def add(key: str, node_id: str) -> None:
        entry = keys.get(key)
        if entry is None:
            keys[key] = AssetKey(key=key, request_id=node_id, aliases={node_id})
        else:
            entry.aliases.add(node_id)

    def walk(node: NodeModel, depth: int) -> None:
        if not node.is_visible:
            return
        if depth > MAX_DEPTH:
            logger.warning(f"collect_asset_keys: depth limit {MAX_DEPTH} reached at {node.id}")
            return

        for fill in node.visible_fills:
            if fill.type == 'IMAGE':
                add(fill.image_ref or node.id, node.id)

        # A flattened group's fallback image ref is registered by the
        # descendant that owns the fill, so its request id renders that node
        if decide_flatten(node).flatten or is_asset_candidate(node):
            add(node.id, node.id)

        for child in node.children:
            walk(child, depth + 1)

    walk(root, 0)
    return list(keys.values())


# ============================================================================
# Resolution
# ============================================================================

def auth_headers(token: str, oauth: bool = False) -> Dict[str, str]:
    """Personal access tokens use X-Figma-Token, OAuth tokens a Bearer header."""
    if oauth:
        return {"Authorization": f"Bearer {token}"}
    return {"X-Figma-Token": token}


async def _fetch_chunk(
    client: httpx.AsyncClient,
    file_key: str,
    ids: List[str],
    headers: Dict[str, str],
    fmt: str,
    scale: float,
    base_url: str,
) -> Dict[str, Optional[str]]:
    try:
        response = await client.get(
            f"{base_url}/images/{file_key}",
            params={"ids": ",".join(ids), "format": fmt, "scale": fmt_number(scale)},
            headers=headers,
        )
    except httpx.HTTPError as e:
        raise AssetFetchError(f"Image request failed: {type(e).__name__}: {e}", ids=ids) from e

    if response.status_code in (401, 403):
        raise AuthError(
            f"Figma API rejected the token (status {response.status_code}). "
            "Check FIGMA_ACCESS_TOKEN or re-authenticate.",
            status=response.status_code,
        )
    if response.status_code != 200:
        raise AssetFetchError(
            f"Figma API returned status {response.status_code}", ids=ids, status=response.status_code
        )

    try:
        data = response.json()
    except ValueError as e:
        raise AssetFetchError("Image response is not JSON", ids=ids) from e

    if data.get("err"):
        raise AssetFetchError(f"Figma image render error: {data['err']}", ids=ids)
    return data.get("images") or {}


async def resolve_assets(
    keys: Iterable[AssetKey],
    source_map: Optional[Mapping[str, str]] = None,
    file_key: str = "",
    token: str = "",
    cancel_token: Optional[CancellationToken] = None,
    on_progress: Optional[ProgressCallback] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
    chunk_size: int = settings.ASSET_CHUNK_SIZE,
    max_concurrency: int = settings.ASSET_MAX_CONCURRENCY,
    fmt: str = settings.ASSET_IMAGE_FORMAT,
    scale: float = settings.ASSET_IMAGE_SCALE,
    chunk_delay: float = settings.ASSET_CHUNK_DELAY,
    oauth: bool = False,
    base_url: str = settings.FIGMA_API_BASE,
) -> Dict[str, str]:
    """Resolve asset keys to URLs.

    Args:
        keys: Output of collect_asset_keys()
        source_map: URLs already known (e.g. the export's imageMap); these
            keys are never fetched
        file_key: Figma file key
        token: Figma access token
        cancel_token: Checked before and after each chunk
        on_progress: Called with (processed, total) request ids after each chunk
        client: Shared httpx client; one is created (and closed) when omitted
        max_concurrency: 1 runs chunks sequentially with `chunk_delay` between them

    Returns:
        Mapping from every key and alias to its URL. The first URL seen for a
        name wins.

    Raises:
        AuthError: the token was rejected
        CancellationError: cancel_token was cancelled mid-job
    """
    source_map = source_map or {}
    result: Dict[str, str] = {}

    def record(entry: AssetKey, url: str) -> None:
        for name in [entry.key, *sorted(entry.aliases)]:
            result.setdefault(name, url)

    pending: Dict[str, List[AssetKey]] = {}
    for entry in keys:
        known = source_map.get(entry.key)
        if known:
            record(entry, known)
        else:
            pending.setdefault(entry.request_id, []).append(entry)

    request_ids = list(pending)
    total = len(request_ids)
    if not total:
        return result
    if not file_key:
        raise ValueError("file_key is required to resolve assets")

    chunk_size = max(1, chunk_size)
    chunks = [request_ids[i:i + chunk_size] for i in range(0, total, chunk_size)]
    headers = auth_headers(token, oauth)
    semaphore = asyncio.Semaphore(max(1, max_concurrency))
    processed = 0

    logger.info(f"resolve_assets: file={file_key}, requests={total}, chunks={len(chunks)}")

    async def run_chunk(index: int, ids: List[str]) -> None:
        nonlocal processed
        async with semaphore:
            if cancel_token:
                cancel_token.raise_if_cancelled()
            if index and chunk_delay > 0 and max_concurrency <= 1:
                await asyncio.sleep(chunk_delay)

            try:
                images = await _fetch_chunk(http, file_key, ids, headers, fmt, scale, base_url)
            except AssetFetchError as e:
                logger.warning(f"resolve_assets: chunk {index + 1}/{len(chunks)} failed: {e}")
                images = {}

            if cancel_token:
                cancel_token.raise_if_cancelled()

            for rid in ids:
                url = images.get(rid)
                if url:
                    for entry in pending[rid]:
                        record(entry, url)

            processed += len(ids)
            logger.info(f"resolve_assets: {processed}/{total} processed")
            if on_progress:
                on_progress(processed, total)

    http = client or httpx.AsyncClient(timeout=settings.FIGMA_HTTP_TIMEOUT)
    try:
        if max_concurrency <= 1:
            for index, ids in enumerate(chunks):
                await run_chunk(index, ids)
        else:
            tasks = [asyncio.ensure_future(run_chunk(i, ids)) for i, ids in enumerate(chunks)]
            done, still_running = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            # A failed chunk stops its siblings before they record or report progress
            for task in still_running:
                task.cancel()
            if still_running:
                await asyncio.gather(*still_running, return_exceptions=True)
            for task in tasks:
                if task in done and not task.cancelled() and task.exception() is not None:
                    raise task.exception()
    finally:
        if client is None:
            await http.aclose()

    return result


class AssetResolver:
    """Last-job-wins asset resolution for one file.

    Each resolve() call is a job with a monotonically increasing id. Starting
    a job cancels the previous job's token; a superseded job returns None and
    leaves `asset_map` untouched.
    """

    def __init__(
        self,
        file_key: str,
        token: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        oauth: bool = False,
        chunk_size: int = settings.ASSET_CHUNK_SIZE,
        max_concurrency: int = settings.ASSET_MAX_CONCURRENCY,
        fmt: str = settings.ASSET_IMAGE_FORMAT,
        scale: float = settings.ASSET_IMAGE_SCALE,
        chunk_delay: float = settings.ASSET_CHUNK_DELAY,
    ):
        self.file_key = file_key
        self._token = token
        self._client = client
        self._oauth = oauth
        self._options = dict(
            chunk_size=chunk_size,
            max_concurrency=max_concurrency,
            fmt=fmt,
            scale=scale,
            chunk_delay=chunk_delay,
        )
        self._job_id = 0
        self._active: Optional[CancellationToken] = None
        self.asset_map: AssetMap = EMPTY_ASSET_MAP

    @property
    def job_id(self) -> int:
        """Id of the most recently started job."""
        return self._job_id

    def start_job(self) -> Tuple[int, CancellationToken]:
        if self._active is not None:
            self._active.cancel()
        self._job_id += 1
        self._active = CancellationToken()
        return self._job_id, self._active

    def cancel(self) -> None:
        if self._active is not None:
            self._active.cancel()

    async def resolve(
        self,
        keys: Iterable[AssetKey],
        source_map: Optional[Mapping[str, str]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[AssetMap]:
        """Run one job and publish its AssetMap, or return None if superseded."""
        job_id, cancel_token = self.start_job()
        try:
            urls = await resolve_assets(
                keys,
                source_map,
                self.file_key,
                self._token,
                cancel_token,
                on_progress,
                client=self._client,
                oauth=self._oauth,
                **self._options,
            )
        except CancellationError:
            logger.info(f"AssetResolver: job {job_id} discarded")
            return None
        except AuthError as e:
            if cancel_token.cancelled or job_id != self._job_id:
                logger.info(f"AssetResolver: job {job_id} superseded, dropping {e}")
                return None
            raise

        if cancel_token.cancelled or job_id != self._job_id:
            logger.info(f"AssetResolver: job {job_id} superseded by {self._job_id}")
            return None

        self.asset_map = AssetMap(version=job_id, urls=urls)
        return self.asset_map


# ============================================================================
# Download
# ============================================================================

def is_allowed_asset_url(url: str) -> bool:
    """Only fetch from Figma's image hosts."""
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError):
        return False
    if parsed.scheme not in ('http', 'https'):
        return False
    host = parsed.host
    if host in ALLOWED_ASSET_HOSTS:
        return True
    if host.endswith('amazonaws.com'):
        return bool(re.search(r'/(figma-alpha-api|images)/', parsed.path))
    return False


def detect_extension(content_type: Optional[str], url: str = "") -> str:
    """File extension from the content type, else the URL suffix, else png."""
    if content_type:
        mime = content_type.split(';')[0].strip().lower()
        if mime in CONTENT_TYPE_EXTENSIONS:
            return CONTENT_TYPE_EXTENSIONS[mime]

    match = re.search(r'\.(svg|png|jpe?g)$', url.split('?')[0].lower())
    if match:
        return 'jpg' if match.group(1) == 'jpeg' else match.group(1)
    return 'png'


async def download_asset(url: str, client: Optional[httpx.AsyncClient] = None) -> Tuple[bytes, str]:
    """Fetch a resolved asset URL.

    Returns:
        (content, extension)

    Raises:
        AssetFetchError: disallowed host, HTTP error or transport failure
    """
    if not is_allowed_asset_url(url):
        raise AssetFetchError(f"Asset host not allowed: {url}")

    http = client or httpx.AsyncClient(timeout=settings.FIGMA_HTTP_TIMEOUT)
    try:
        response = await http.get(url, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise AssetFetchError(
            f"Asset download returned status {e.response.status_code}", status=e.response.status_code
        ) from e
    except httpx.HTTPError as e:
        raise AssetFetchError(f"Asset download failed: {type(e).__name__}: {e}") from e
    finally:
        if client is None:
            await http.aclose()

    return response.content, detect_extension(response.headers.get('content-type'), url)
