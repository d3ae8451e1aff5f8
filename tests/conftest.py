"""Shared fixtures: small generated meshes and a hand-built hexagonal fan."""

import math

import numpy as np
import pytest

from py_mapgen.core.dual_mesh import DualMesh, MeshConfig, generate_dual_mesh
from py_mapgen.core.terrain_map import GenerationParams


def build_fan_mesh() -> DualMesh:
    """Six triangles around one interior region, closed with six ghosts.

    Region 0 is the center, regions 1-6 the rim (counter-clockwise), region 7
    the ghost region. Solid triangle k is (0, 1 + k, 1 + (k + 1) % 6); ghost
    triangles are 6-11.
    """
    points = [[0.0, 0.0]]
    for k in range(6):
        angle = math.pi / 3 * k
        points.append([100.0 * math.cos(angle), 100.0 * math.sin(angle)])

    triangles = []
    halfedges = [-1] * 18
    for k in range(6):
        triangles.extend([0, 1 + k, 1 + (k + 1) % 6])
    for k in range(6):
        following = (k + 1) % 6
        halfedges[3 * k + 2] = 3 * following
        halfedges[3 * following] = 3 * k + 2

    return DualMesh.from_triangulation(np.array(points), np.array(triangles), np.array(halfedges))


class FixedHeightField:
    """Height field returning preset per-triangle values in t_xy order."""

    def __init__(self, values):
        self.values = np.asarray(values, dtype=np.float64)

    def evaluate(self, points):
        assert len(points) == len(self.values)
        return self.values.copy()


@pytest.fixture
def fan_mesh():
    return build_fan_mesh()


@pytest.fixture(scope="session")
def small_mesh():
    """A few hundred regions over the default 1000x1000 area."""
    return generate_dual_mesh(MeshConfig(spacing=50.0, seed=4242))


@pytest.fixture(scope="session")
def island_constraints():
    """Water around the edges, free noise inside."""
    grid = np.full((8, 8), np.nan)
    grid[0, :] = -0.5
    grid[-1, :] = -0.5
    grid[:, 0] = -0.5
    grid[:, -1] = -0.5
    return grid


@pytest.fixture
def island_params(island_constraints):
    return GenerationParams(seed=187, constraints=island_constraints)


def subtree_sizes(mesh, downslope, order_t, counted):
    """Number of counted triangles in each triangle's drainage subtree."""
    sizes = np.where(counted, 1, 0).astype(np.int64)
    for t in reversed(list(order_t)):
        parent = downslope.parent_of(mesh, int(t))
        if parent is not None:
            sizes[parent] += sizes[t]
    return sizes
