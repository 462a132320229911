"""Runtime tunables for asset resolution and the Figma HTTP client.

All values read from environment variables with defaults. Import from here
instead of hardcoding.
"""

import os


def _int(key: str, default: int) -> int:
    return int(os.getenv(key, str(default)))


def _float(key: str, default: float) -> float:
    return float(os.getenv(key, str(default)))


def _str(key: str, default: str) -> str:
    return os.getenv(key, default)


# =====================================================================
# Figma REST API
# =====================================================================

FIGMA_API_BASE = _str("FIGMA_API_BASE", "https://api.figma.com/v1")
FIGMA_HTTP_TIMEOUT = _float("FIGMA_HTTP_TIMEOUT", 30.0)


# =====================================================================
# Asset resolution
# =====================================================================

# Ids per /images request; larger chunks hit URL length limits
ASSET_CHUNK_SIZE = _int("ASSET_CHUNK_SIZE", 20)

# Pause between sequential chunks (seconds) to stay under rate limits
ASSET_CHUNK_DELAY = _float("ASSET_CHUNK_DELAY", 0.1)

# 1 = sequential chunks
ASSET_MAX_CONCURRENCY = _int("ASSET_MAX_CONCURRENCY", 1)

ASSET_IMAGE_FORMAT = _str("ASSET_IMAGE_FORMAT", "png")
ASSET_IMAGE_SCALE = _float("ASSET_IMAGE_SCALE", 2.0)
