"""Asset resolution."""

from networth.resolution.resolver import (
    AssetResolution,
    finalize_endpoints,
    resolve_assets,
)

__all__ = ["AssetResolution", "finalize_endpoints", "resolve_assets"]
