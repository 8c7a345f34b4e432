from typing import List, Optional, Sequence
from vpp.config.models import DEFAULT_RENDITIONS
from vpp.domain.errors import InvalidInputError
from vpp.domain.models import RenditionProfile


def plan(source_height: Optional[int], profiles: Sequence[RenditionProfile] = DEFAULT_RENDITIONS) -> List[RenditionProfile]:
    """Select the renditions to produce for a source of the given height.

    Every tier whose height fits within the source is kept, in table order.
    Sources shorter than the smallest tier still get that tier, so an asset
    always has at least one playable rendition.
    """
    if source_height is None or source_height < 0:
        raise InvalidInputError(f"Invalid source height: {source_height}")
    if not profiles:
        raise InvalidInputError("Rendition table is empty")

    ladder = [profile for profile in profiles if profile.height <= source_height]
    if not ladder:
        ladder = [profiles[0]]
    return ladder


def get_profile(name: str, profiles: Sequence[RenditionProfile] = DEFAULT_RENDITIONS) -> RenditionProfile:
    for profile in profiles:
        if profile.name == name:
            return profile
    raise InvalidInputError(f"Unsupported resolution: {name}")
