"""
Asset Resolution

Given a preset and a snapshot of the user's assets, work out which
assets may fill each endpoint, which endpoint can be filled
automatically, and which endpoint has nothing to offer.

DESIGN DECISION: resolve_assets() is a pure function of
(preset, assets, chosen_from_id). The asset snapshot is passed in, never
read from ambient state, so the result can be recomputed whenever the
snapshot changes.
"""

from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from networth.models.portfolio import Asset
from networth.presets.registry import Endpoint, EndpointKind, Preset


class AssetResolution(BaseModel):
    """Candidates and defaults for both endpoints of a preset."""

    model_config = ConfigDict(frozen=True)

    from_candidates: list[Asset] = Field(default_factory=list)
    to_candidates: list[Asset] = Field(default_factory=list)
    auto_from: Optional[str] = None
    auto_to: Optional[str] = None
    show_from: bool = True
    show_to: bool = True
    from_needs_creation: bool = False
    to_needs_creation: bool = False

    def from_ids(self) -> set[str]:
        return {a.id for a in self.from_candidates}

    def to_ids(self) -> set[str]:
        return {a.id for a in self.to_candidates}


def _candidates(endpoint: Endpoint, assets: list[Asset], exclude: Optional[str]) -> list[Asset]:
    if not endpoint.is_asset_typed:
        return []
    return [a for a in assets if endpoint.accepts(a) and a.id != exclude]


def _auto_select(endpoint: Endpoint, candidates: list[Asset]) -> Optional[str]:
    # user_select endpoints always wait for the user
    if endpoint.kind == EndpointKind.ASSET and len(candidates) == 1:
        return candidates[0].id
    return None


def _is_shown(endpoint: Endpoint, candidates: list[Asset]) -> bool:
    if endpoint.kind == EndpointKind.EXTERNAL:
        return endpoint.editable
    if endpoint.kind == EndpointKind.SAME_AS_FROM:
        return False
    if endpoint.kind == EndpointKind.ASSET and len(candidates) == 1:
        return endpoint.always_visible
    return True


def _needs_creation(endpoint: Endpoint, candidates: list[Asset]) -> bool:
    return endpoint.kind == EndpointKind.ASSET and endpoint.required and not candidates


def resolve_assets(
    preset: Preset,
    assets: Iterable[Asset],
    chosen_from_id: Optional[str] = None,
) -> AssetResolution:
    """
    Resolve both endpoints of a preset against an asset snapshot.

    - Candidates are the assets admitted by each endpoint's filter
      (no filter admits every asset); external endpoints have none.
    - The to side never offers the asset chosen (or auto-selected) on
      the from side, except for same_as_from presets where it mirrors it.
    - Exactly one candidate on an asset endpoint auto-selects it and hides
      the endpoint unless the endpoint is always_visible.
    - Zero candidates on a required asset endpoint sets *_needs_creation.
    """
    snapshot = list(assets)
    from_ep = preset.from_endpoint
    to_ep = preset.to_endpoint

    from_candidates = _candidates(from_ep, snapshot, exclude=None)
    auto_from = _auto_select(from_ep, from_candidates)

    effective_from = chosen_from_id or auto_from

    if to_ep.kind == EndpointKind.SAME_AS_FROM:
        mirrored = [a for a in from_candidates if a.id == effective_from]
        return AssetResolution(
            from_candidates=from_candidates,
            to_candidates=mirrored,
            auto_from=auto_from,
            auto_to=effective_from,
            show_from=_is_shown(from_ep, from_candidates),
            show_to=False,
            from_needs_creation=_needs_creation(from_ep, from_candidates),
            to_needs_creation=False,
        )

    to_candidates = _candidates(to_ep, snapshot, exclude=effective_from)

    return AssetResolution(
        from_candidates=from_candidates,
        to_candidates=to_candidates,
        auto_from=auto_from,
        auto_to=_auto_select(to_ep, to_candidates),
        show_from=_is_shown(from_ep, from_candidates),
        show_to=_is_shown(to_ep, to_candidates),
        from_needs_creation=_needs_creation(from_ep, from_candidates),
        to_needs_creation=_needs_creation(to_ep, to_candidates),
    )


def finalize_endpoints(
    preset: Preset,
    assets: Iterable[Asset],
    from_asset_id: Optional[str],
    to_asset_id: Optional[str],
    from_explicit: bool = False,
    to_explicit: bool = False,
) -> tuple[Optional[str], Optional[str]]:
    """
    Settle the asset ids a submission will use.

    Explicit choices are kept as long as the asset still exists. Anything
    else is re-resolved against the current snapshot, so an auto-selection
    made against stale data never leaks into a write.
    """
    snapshot = list(assets)
    known = {a.id for a in snapshot}

    if from_explicit and from_asset_id in known:
        from_id = from_asset_id
    else:
        from_id = resolve_assets(preset, snapshot).auto_from

    resolution = resolve_assets(preset, snapshot, chosen_from_id=from_id)
    if preset.to_endpoint.kind == EndpointKind.SAME_AS_FROM:
        return from_id, from_id

    if to_explicit and to_asset_id in known:
        to_id = to_asset_id
    else:
        to_id = resolution.auto_to
    return from_id, to_id
