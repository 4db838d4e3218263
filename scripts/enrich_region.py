#!/usr/bin/env python3
"""Run one refresh for a bounding box and print what the map would show.

Usage
-----
Set environment variables and run::

    export CLUSTERGEO_BACKEND_URL="https://xyz.supabase.co"
    export CLUSTERGEO_BACKEND_ANON_KEY="..."
    python scripts/enrich_region.py 32.70 -96.90 32.90 -96.70

Options::

    --mode {clusters,locations}   Data source to query (default: clusters)
    --job-type TYPE               Job type filter for locations (default: all)
    --progress                    Print every partial update while enriching
    --verbose                     Enable debug logging
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from clustergeo import (  # noqa: E402
    BoundingBox,
    ClusterGeo,
    ClusterGeoConfig,
    ClusterGeoError,
    FetchFilters,
    MapState,
    ViewMode,
)


def _summary(state: MapState) -> dict[str, Any]:
    if state.mode == ViewMode.LOCATIONS:
        return {
            "generation": state.generation.value,
            "error": state.error,
            "locations": [location.model_dump(mode="json") for location in state.locations],
        }
    return {
        "generation": state.generation.value,
        "error": state.error,
        "clusters": [
            {
                "job_type": cluster.job_type,
                "cluster_id": cluster.cluster_id,
                "total_points": cluster.total_points,
                "area_name": cluster.area_name,
                "neighborhoods": cluster.neighborhoods,
                "cities": cluster.cities,
                "counties": cluster.counties,
                "state": cluster.state,
                "postal_codes": cluster.postal_codes,
            }
            for cluster in state.clusters
        ],
    }


def _print_progress(state: MapState) -> None:
    pending = sum(1 for cluster in state.clusters if cluster.is_pending)
    print(
        f"[{state.generation}] loading={state.loading} enriching={state.enriching} "
        f"clusters={len(state.clusters)} pending={pending} locations={len(state.locations)}",
        file=sys.stderr,
    )


async def main() -> int:
    parser = argparse.ArgumentParser(description="Fetch and enrich map clusters for a bounding box.")
    parser.add_argument("min_lat", type=float)
    parser.add_argument("min_lng", type=float)
    parser.add_argument("max_lat", type=float)
    parser.add_argument("max_lng", type=float)
    parser.add_argument("--mode", choices=[mode.value for mode in ViewMode], default=ViewMode.CLUSTERS.value)
    parser.add_argument("--job-type", default="all", help="Job type filter (locations mode)")
    parser.add_argument("--progress", action="store_true", help="Print every partial update")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    try:
        region = BoundingBox.from_params(vars(args))
        config = ClusterGeoConfig.from_env()
        config.require_backend()
    except ClusterGeoError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    filters = FetchFilters(mode=ViewMode(args.mode), job_type=args.job_type)
    async with ClusterGeo(config) as geo:
        if args.progress:
            geo.subscribe(_print_progress)
        state = await geo.refresh(region, filters)

    print(json.dumps(_summary(state), indent=2, ensure_ascii=False))
    return 1 if state.error else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
