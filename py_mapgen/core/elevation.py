"""
Elevation assignment.

Evaluates the height field at every triangle center, picks the drainage
seeds, and aggregates triangle elevations to regions.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import structlog

from .dual_mesh import DualMesh
from .heightfield import HeightField

logger = structlog.get_logger()


@dataclass
class ElevationOptions:
    """Tunable constants for region aggregation."""
    coast_epsilon: float = -0.001  # Elevation forced on regions touching water
    moisture_base: float = 0.8  # Moisture at sea level


def assign_elevation(mesh: DualMesh, height_field: HeightField,
                     t_elevation: np.ndarray, r_elevation: np.ndarray,
                     r_moisture: np.ndarray, r_water: np.ndarray,
                     r_ocean: np.ndarray,
                     options: Optional[ElevationOptions] = None) -> np.ndarray:
    """
    Fill the per-triangle and per-region arrays in place.

    A triangle is a drainage seed when it is a ghost triangle below sea
    level. A region averages its triangles, except that a region touching
    any underwater triangle is never dry: a non-negative average is replaced
    by ``coast_epsilon``.

    Args:
        mesh: Dual mesh
        height_field: Elevation function
        t_elevation: Output, one float per triangle
        r_elevation: Output, one float per region
        r_moisture: Output, one float per region
        r_water: Output, one bool per region
        r_ocean: Output, one bool per region
        options: Aggregation constants

    Returns:
        int32 array of seed triangle ids, ascending
    """
    options = options or ElevationOptions()

    t_elevation[:] = height_field.evaluate(mesh.t_xy)

    seeds_t = np.nonzero((t_elevation < 0) & mesh.ghost_triangle_mask())[0].astype(np.int32)

    for r in range(mesh.num_regions):
        out_t = mesh.region_triangles(r)
        if not out_t:
            raise ValueError(f"Region {r} has no triangles")
        elevations = t_elevation[out_t]
        e = float(elevations.mean())
        if e >= 0 and bool((elevations < 0).any()):
            e = options.coast_epsilon
        r_elevation[r] = e

    r_moisture[:] = options.moisture_base - np.sqrt(np.abs(r_elevation))
    r_water[:] = r_elevation < 0
    # Lakes are not told apart from the sea here
    r_ocean[:] = r_water

    if len(seeds_t) == 0:
        logger.warning("No ghost triangle is below sea level; drainage has no roots")

    logger.info("Elevation assigned",
                seeds=len(seeds_t),
                land_triangles=int(np.sum(t_elevation > 0)),
                water_regions=int(np.sum(r_water)))
    return seeds_t
