"""
Core map generation functionality.
"""

from .dual_mesh import MeshConfig, DualMesh, generate_dual_mesh
from .heightfield import HeightField, PeakSet, generate_peaks
from .elevation import ElevationOptions, assign_elevation
from .drainage import (
    DownslopeField, DownslopeStatus, DrainageOptions, DrainageError,
    NoDrainageRootsError, DisconnectedMeshError, biased_search, assign_flow,
)
from .terrain_map import GenerationContext, GenerationParams, TerrainMap

__all__ = ['MeshConfig', 'DualMesh', 'generate_dual_mesh',
           'HeightField', 'PeakSet', 'generate_peaks',
           'ElevationOptions', 'assign_elevation',
           'DownslopeField', 'DownslopeStatus', 'DrainageOptions', 'DrainageError',
           'NoDrainageRootsError', 'DisconnectedMeshError', 'biased_search', 'assign_flow',
           'GenerationContext', 'GenerationParams', 'TerrainMap']
