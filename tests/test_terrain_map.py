"""Tests for the terrain map and its regenerate entry point."""

import numpy as np
import pytest

from py_mapgen.config import Settings
from py_mapgen.core.drainage import DrainageOptions, NoDrainageRootsError
from py_mapgen.core.dual_mesh import MeshConfig, generate_dual_mesh
from py_mapgen.core.terrain_map import GenerationContext, GenerationParams, TerrainMap


def snapshot(terrain):
    return {
        "t_elevation": terrain.t_elevation.copy(),
        "r_elevation": terrain.r_elevation.copy(),
        "order_t": terrain.order_t.copy(),
        "t_flow": terrain.t_flow.copy(),
        "s_flow": terrain.s_flow.copy(),
        "side": terrain.t_downslope_s.side.copy(),
        "status": terrain.t_downslope_s.status.copy(),
        "r_moisture": terrain.r_moisture.copy(),
        "r_water": terrain.r_water.copy(),
        "r_ocean": terrain.r_ocean.copy(),
        "seeds_t": terrain.seeds_t.copy(),
    }


def assert_same(a, b):
    for key in a:
        np.testing.assert_array_equal(a[key], b[key], err_msg=key)


class TestGenerationContext:

    def test_context_carries_seed(self, small_mesh):
        context = GenerationContext.create(small_mesh, GenerationParams(seed=42))

        assert context.seed == 42
        assert context.mesh is small_mesh

    def test_map_size_from_settings(self, small_mesh):
        context = GenerationContext.create(small_mesh, settings=Settings(map_size=500.0))

        assert context.height_field.width == 500.0
        assert context.height_field.height == 500.0

    def test_default_params(self, small_mesh):
        context = GenerationContext.create(small_mesh)

        assert context.seed == GenerationParams().seed


class TestRegenerate:
    """Regeneration is a pure function of mesh and parameters."""

    def test_regenerate_is_repeatable(self, small_mesh, island_params):
        terrain = TerrainMap(small_mesh)
        terrain.regenerate(GenerationContext.create(small_mesh, island_params))
        first = snapshot(terrain)

        terrain.regenerate(GenerationContext.create(small_mesh, island_params))

        assert_same(first, snapshot(terrain))

    def test_separate_maps_agree(self, small_mesh, island_params):
        terrain1 = TerrainMap(small_mesh)
        terrain2 = TerrainMap(small_mesh)
        terrain1.regenerate(GenerationContext.create(small_mesh, island_params))
        terrain2.regenerate(GenerationContext.create(small_mesh, island_params))

        assert_same(snapshot(terrain1), snapshot(terrain2))

    def test_previous_run_does_not_leak(self, small_mesh, island_constraints):
        fresh = TerrainMap(small_mesh)
        fresh.regenerate(GenerationContext.create(
            small_mesh, GenerationParams(seed=5, constraints=island_constraints)))

        reused = TerrainMap(small_mesh)
        reused.regenerate(GenerationContext.create(
            small_mesh, GenerationParams(seed=6, constraints=island_constraints)))
        reused.regenerate(GenerationContext.create(
            small_mesh, GenerationParams(seed=5, constraints=island_constraints)))

        assert_same(snapshot(fresh), snapshot(reused))

    def test_different_seeds_differ(self, small_mesh, island_constraints):
        terrain = TerrainMap(small_mesh)
        terrain.regenerate(GenerationContext.create(
            small_mesh, GenerationParams(seed=1, constraints=island_constraints)))
        first = terrain.t_elevation.copy()
        terrain.regenerate(GenerationContext.create(
            small_mesh, GenerationParams(seed=2, constraints=island_constraints)))

        assert not np.array_equal(first, terrain.t_elevation)

    def test_water_flags_follow_region_elevation(self, small_mesh, island_params):
        terrain = TerrainMap(small_mesh)
        terrain.regenerate(GenerationContext.create(small_mesh, island_params))

        np.testing.assert_array_equal(terrain.r_water, terrain.r_elevation < 0)
        np.testing.assert_array_equal(terrain.r_ocean, terrain.r_water)

    def test_pivot_divisor_changes_routing_only(self, small_mesh, island_params):
        narrow = TerrainMap(small_mesh, drainage_options=DrainageOptions(pivot_divisor=1))
        wide = TerrainMap(small_mesh, drainage_options=DrainageOptions(pivot_divisor=20))
        narrow.regenerate(GenerationContext.create(small_mesh, island_params))
        wide.regenerate(GenerationContext.create(small_mesh, island_params))

        np.testing.assert_array_equal(narrow.r_elevation, wide.r_elevation)
        np.testing.assert_array_equal(np.sort(narrow.order_t), np.sort(wide.order_t))


class TestErrors:

    def test_context_for_other_mesh_rejected(self, small_mesh):
        other_mesh = generate_dual_mesh(MeshConfig(spacing=120.0, seed=1))
        terrain = TerrainMap(small_mesh)

        with pytest.raises(ValueError):
            terrain.assign_elevation(GenerationContext.create(other_mesh))

    def test_dry_coast_has_no_roots(self, small_mesh):
        land_everywhere = np.full((4, 4), 0.5)
        terrain = TerrainMap(small_mesh)
        context = GenerationContext.create(
            small_mesh, GenerationParams(seed=187, constraints=land_everywhere))

        with pytest.raises(NoDrainageRootsError):
            terrain.regenerate(context)

    def test_failed_regenerate_keeps_previous_map(self, small_mesh, island_params):
        terrain = TerrainMap(small_mesh)
        terrain.regenerate(GenerationContext.create(small_mesh, island_params))
        before = snapshot(terrain)
        t_elevation = terrain.t_elevation
        land_everywhere = GenerationParams(seed=187, constraints=np.full((4, 4), 0.5))

        with pytest.raises(NoDrainageRootsError):
            terrain.regenerate(GenerationContext.create(small_mesh, land_everywhere))

        assert_same(before, snapshot(terrain))
        assert terrain.t_elevation is t_elevation

    def test_failed_regenerate_on_fresh_map_leaves_it_empty(self, small_mesh):
        terrain = TerrainMap(small_mesh)
        land_everywhere = GenerationParams(seed=187, constraints=np.full((4, 4), 0.5))

        with pytest.raises(NoDrainageRootsError):
            terrain.regenerate(GenerationContext.create(small_mesh, land_everywhere))

        assert np.all(terrain.t_elevation == 0)
        assert len(terrain.seeds_t) == 0
        assert len(terrain.t_downslope_s.unvisited()) == small_mesh.num_triangles
