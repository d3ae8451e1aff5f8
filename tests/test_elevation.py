"""Tests for elevation assignment."""

import numpy as np
import pytest

from conftest import FixedHeightField
from py_mapgen.core.elevation import ElevationOptions, assign_elevation
from py_mapgen.core.terrain_map import GenerationContext


def run_assignment(mesh, values, options=None):
    t_elevation = np.zeros(mesh.num_triangles, dtype=np.float32)
    r_elevation = np.zeros(mesh.num_regions, dtype=np.float32)
    r_moisture = np.zeros(mesh.num_regions, dtype=np.float32)
    r_water = np.zeros(mesh.num_regions, dtype=bool)
    r_ocean = np.zeros(mesh.num_regions, dtype=bool)
    seeds_t = assign_elevation(mesh, FixedHeightField(values), t_elevation, r_elevation,
                               r_moisture, r_water, r_ocean, options=options)
    return seeds_t, t_elevation, r_elevation, r_moisture, r_water, r_ocean


class TestSeeds:
    """Seeds are ghost triangles below sea level."""

    def test_only_negative_ghosts_are_seeds(self, fan_mesh):
        # Solid triangle 5 is under water but is not a ghost
        values = [0.3, 0.5, 0.1, 0.2, 0.4, -0.05] + [-0.2, -0.2, 0.7, 0.7, 0.7, 0.7]
        seeds_t, *_ = run_assignment(fan_mesh, values)

        assert list(seeds_t) == [6, 7]

    def test_seeds_follow_ghost_mask(self, fan_mesh):
        seeds_t, *_ = run_assignment(fan_mesh, [-0.1] * 12)

        np.testing.assert_array_equal(seeds_t, np.nonzero(fan_mesh.ghost_triangle_mask())[0])

    def test_no_seeds_when_coast_is_dry(self, fan_mesh):
        seeds_t, *_ = run_assignment(fan_mesh, [0.5] * 12)

        assert len(seeds_t) == 0

    def test_triangle_elevations_stored(self, fan_mesh):
        values = np.linspace(-0.5, 0.6, 12)
        _, t_elevation, *_ = run_assignment(fan_mesh, values)

        np.testing.assert_allclose(t_elevation, values, rtol=1e-6)


class TestRegionAggregation:
    """Region values derived from the surrounding triangles."""

    def test_region_is_mean_of_triangles(self, fan_mesh):
        values = [0.3, 0.5, 0.1, 0.2, 0.4, 0.6] + [0.7] * 6
        _, _, r_elevation, *_ = run_assignment(fan_mesh, values)

        assert r_elevation[0] == pytest.approx(np.mean([0.3, 0.5, 0.1, 0.2, 0.4, 0.6]), rel=1e-6)

    def test_region_touching_water_is_never_dry(self, fan_mesh):
        values = [0.3, 0.5, 0.1, 0.2, 0.4, -0.05] + [0.7] * 6
        _, _, r_elevation, _, r_water, _ = run_assignment(fan_mesh, values)

        assert r_elevation[0] == pytest.approx(-0.001)
        assert r_water[0]

    def test_coast_epsilon_is_tunable(self, fan_mesh):
        values = [0.3, 0.5, 0.1, 0.2, 0.4, -0.05] + [0.7] * 6
        options = ElevationOptions(coast_epsilon=-0.01)
        _, _, r_elevation, *_ = run_assignment(fan_mesh, values, options)

        assert r_elevation[0] == pytest.approx(-0.01)

    def test_negative_average_is_kept(self, fan_mesh):
        values = [-0.3, -0.5, 0.1, -0.2, -0.4, 0.05] + [0.7] * 6
        _, _, r_elevation, *_ = run_assignment(fan_mesh, values)

        assert r_elevation[0] == pytest.approx(np.mean(values[:6]), rel=1e-6)

    def test_moisture_water_and_ocean(self, fan_mesh):
        values = [0.3, 0.5, 0.1, 0.2, 0.4, 0.6] + [-0.2, -0.2, 0.7, 0.7, 0.7, 0.7]
        _, _, r_elevation, r_moisture, r_water, r_ocean = run_assignment(fan_mesh, values)

        np.testing.assert_allclose(r_moisture, 0.8 - np.sqrt(np.abs(r_elevation)), rtol=1e-6)
        np.testing.assert_array_equal(r_water, r_elevation < 0)
        np.testing.assert_array_equal(r_ocean, r_water)


class TestGeneratedElevation:
    """Elevation assignment with the real height field."""

    def test_seeds_on_generated_mesh(self, small_mesh, island_params):
        context = GenerationContext.create(small_mesh, island_params)
        t_elevation = np.zeros(small_mesh.num_triangles, dtype=np.float32)
        r_arrays = [np.zeros(small_mesh.num_regions, dtype=np.float32) for _ in range(2)]
        r_flags = [np.zeros(small_mesh.num_regions, dtype=bool) for _ in range(2)]

        seeds_t = assign_elevation(small_mesh, context.height_field, t_elevation,
                                   *r_arrays, *r_flags)

        assert len(seeds_t) > 0
        for t in seeds_t:
            assert small_mesh.is_ghost_triangle(int(t))
            assert t_elevation[t] < 0
        assert np.all(t_elevation >= -1) and np.all(t_elevation <= 1)
