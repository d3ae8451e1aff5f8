"""
Terrain map: elevation and drainage arrays for one mesh.

Arrays are allocated once per mesh and overwritten on every regeneration.
Everything a run depends on (seed, peaks, noise, constraints) lives in a
``GenerationContext`` built for that run.
"""

import time
from dataclasses import dataclass
from typing import Optional

import numpy as np
import structlog
from opensimplex import OpenSimplex
from pydantic import BaseModel, ConfigDict, Field

from ..config import Settings, settings as default_settings
from .alea_prng import AleaPRNG
from .drainage import DownslopeField, DrainageOptions, assign_flow, biased_search
from .dual_mesh import DualMesh
from .elevation import ElevationOptions, assign_elevation
from .heightfield import HeightField, generate_peaks

logger = structlog.get_logger()


class GenerationParams(BaseModel):
    """Parameters for one world generation."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    seed: int = Field(default_factory=lambda: default_settings.default_seed,
                      description="Seed for noise and peak placement")
    constraints: Optional[np.ndarray] = Field(
        None, description="Grid of elevation hints in [-1, 1], NaN where unconstrained"
    )


@dataclass
class GenerationContext:
    """Inputs of a single generation run."""
    mesh: DualMesh
    seed: int
    height_field: HeightField

    @classmethod
    def create(cls, mesh: DualMesh, params: Optional[GenerationParams] = None,
               settings: Optional[Settings] = None) -> "GenerationContext":
        """
        Seed the random sources and build the height field for a run.

        Args:
            mesh: Dual mesh the run works on
            params: Generation parameters
            settings: Application settings for map size and peak spacing

        Returns:
            GenerationContext
        """
        params = params or GenerationParams()
        settings = settings or default_settings

        prng = AleaPRNG(params.seed)
        peaks = generate_peaks(prng, spacing=settings.peak_spacing)
        noise = OpenSimplex(seed=params.seed)
        height_field = HeightField(noise, peaks,
                                   width=settings.map_size, height=settings.map_size,
                                   constraints=params.constraints)
        return cls(mesh=mesh, seed=params.seed, height_field=height_field)


class TerrainMap:
    """Per-mesh elevation, water and drainage data."""

    def __init__(self, mesh: DualMesh,
                 elevation_options: Optional[ElevationOptions] = None,
                 drainage_options: Optional[DrainageOptions] = None):
        """
        Allocate every array for the mesh.

        Args:
            mesh: Dual mesh
            elevation_options: Region aggregation constants
            drainage_options: Drainage search options
        """
        self.mesh = mesh
        self.elevation_options = elevation_options or ElevationOptions()
        self.drainage_options = drainage_options or DrainageOptions()

        self.t_elevation = np.zeros(mesh.num_triangles, dtype=np.float32)
        self.r_elevation = np.zeros(mesh.num_regions, dtype=np.float32)
        self.r_moisture = np.zeros(mesh.num_regions, dtype=np.float32)
        self.r_water = np.zeros(mesh.num_regions, dtype=bool)
        self.r_ocean = np.zeros(mesh.num_regions, dtype=bool)
        self.t_downslope_s = DownslopeField(mesh.num_triangles)
        self.order_t = np.zeros(mesh.num_triangles, dtype=np.int32)
        self.t_flow = np.zeros(mesh.num_triangles, dtype=np.float32)
        self.s_flow = np.zeros(mesh.num_sides, dtype=np.float32)
        self.seeds_t = np.zeros(0, dtype=np.int32)

    def assign_elevation(self, context: GenerationContext):
        """Evaluate the height field and derive region data and seeds."""
        if context.mesh is not self.mesh:
            raise ValueError("Generation context was built for a different mesh")

        start = time.perf_counter()
        self.seeds_t = assign_elevation(
            self.mesh, context.height_field,
            self.t_elevation, self.r_elevation, self.r_moisture,
            self.r_water, self.r_ocean,
            options=self.elevation_options,
        )
        logger.debug("Elevation stage finished",
                     elapsed_ms=round((time.perf_counter() - start) * 1000, 2))

    def assign_rivers(self):
        """Route drainage from the seeds and accumulate flow."""
        start = time.perf_counter()
        biased_search(self.mesh, self.seeds_t, self.t_elevation,
                      downslope=self.t_downslope_s, order_t=self.order_t,
                      options=self.drainage_options)
        search_ms = (time.perf_counter() - start) * 1000

        start = time.perf_counter()
        assign_flow(self.mesh, self.order_t, self.t_elevation, self.t_downslope_s,
                    t_flow=self.t_flow, s_flow=self.s_flow)
        flow_ms = (time.perf_counter() - start) * 1000

        logger.info("Rivers assigned",
                    roots=len(self.seeds_t),
                    max_flow=float(self.t_flow.max()) if len(self.t_flow) else 0.0,
                    search_ms=round(search_ms, 2),
                    flow_ms=round(flow_ms, 2))

    def regenerate(self, context: GenerationContext):
        """
        Recompute everything from scratch for the given context.

        The stages run on scratch arrays and are copied in only when both
        succeed; a failed run leaves the previous map untouched.

        Raises:
            ValueError: If the context was built for another mesh
            DrainageError: If drainage cannot be routed
        """
        logger.info("Regenerating map", seed=context.seed,
                    triangles=self.mesh.num_triangles, regions=self.mesh.num_regions)
        staged = TerrainMap(self.mesh, self.elevation_options, self.drainage_options)
        staged.assign_elevation(context)
        staged.assign_rivers()
        self._commit(staged)

    def _commit(self, staged: "TerrainMap"):
        """Copy a finished run into this map, keeping array identity."""
        for name in ("t_elevation", "r_elevation", "r_moisture", "r_water", "r_ocean",
                     "order_t", "t_flow", "s_flow"):
            np.copyto(getattr(self, name), getattr(staged, name))
        np.copyto(self.t_downslope_s.status, staged.t_downslope_s.status)
        np.copyto(self.t_downslope_s.side, staged.t_downslope_s.side)
        self.seeds_t = staged.seeds_t
