"""Area naming policy for enriched clusters."""

from __future__ import annotations

from collections.abc import Sequence

from clustergeo._constants import UNKNOWN_AREA_NAME

_SHOWN_NEIGHBORHOODS = 2


def compute_area_name(neighborhoods: Sequence[str], cities: Sequence[str]) -> str:
    """Build a short display name from the known place names.

    >>> compute_area_name(["Downtown", "Midtown", "Uptown"], ["Dallas"])
    'Downtown, Midtown +1 more (Dallas)'
    >>> compute_area_name([], ["Dallas", "Plano"])
    'Dallas, Plano'
    >>> compute_area_name([], [])
    'Unknown Area'
    """
    if neighborhoods:
        name = ", ".join(neighborhoods[:_SHOWN_NEIGHBORHOODS])
        more = len(neighborhoods) - _SHOWN_NEIGHBORHOODS
        if more > 0:
            name = f"{name} +{more} more"
        if cities:
            name = f"{name} ({cities[0]})"
        return name
    if cities:
        return ", ".join(cities)
    return UNKNOWN_AREA_NAME
