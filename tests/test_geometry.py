"""Tests for drainage queries."""

import numpy as np
import pytest

from py_mapgen.core.drainage import DownslopeField
from py_mapgen.core.geometry import count_river_triangles, trace_downslope
from py_mapgen.core.terrain_map import GenerationContext, TerrainMap


@pytest.fixture
def routed_map(small_mesh, island_params):
    terrain = TerrainMap(small_mesh)
    terrain.regenerate(GenerationContext.create(small_mesh, island_params))
    return terrain


class TestTraceDownslope:

    def test_path_ends_at_a_root(self, routed_map):
        mesh = routed_map.mesh
        for t in range(0, mesh.num_solid_triangles, 7):
            path = trace_downslope(mesh, routed_map.t_downslope_s, t)

            assert path[0] == t
            assert routed_map.t_downslope_s.is_root(path[-1])
            assert len(set(path)) == len(path)

    def test_root_path_is_itself(self, routed_map):
        root = int(routed_map.seeds_t[0])

        assert trace_downslope(routed_map.mesh, routed_map.t_downslope_s, root) == [root]

    def test_cycle_detected(self, fan_mesh):
        downslope = DownslopeField(fan_mesh.num_triangles)
        # Triangles 0 and 1 share sides 2 and 3 and point at each other
        downslope.point_to(0, 2)
        downslope.point_to(1, 3)

        with pytest.raises(ValueError):
            trace_downslope(fan_mesh, downslope, 0)


class TestRiverCount:

    def test_threshold_bounds(self, routed_map):
        mesh = routed_map.mesh
        args = (mesh, routed_map.t_downslope_s, routed_map.s_flow)

        assert count_river_triangles(*args, min_flow=np.inf) == 0
        assert count_river_triangles(*args, min_flow=0.5) > 0
        assert count_river_triangles(*args, min_flow=0.5) <= mesh.num_solid_triangles

    def test_higher_threshold_fewer_rivers(self, routed_map):
        args = (routed_map.mesh, routed_map.t_downslope_s, routed_map.s_flow)

        assert count_river_triangles(*args, min_flow=10) <= count_river_triangles(*args, min_flow=2)
