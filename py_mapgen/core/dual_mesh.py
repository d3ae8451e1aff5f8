"""Dual mesh construction: Delaunay triangles paired with their regions.

Sides are half-edges stored three per triangle: triangle ``t`` owns sides
``3t``, ``3t + 1`` and ``3t + 2``. Side ``s`` runs from region
``triangles[s]`` to the begin region of the next side in the same triangle,
and ``halfedges[s]`` is the side running the other way in the neighbouring
triangle.

The hull is closed with one ghost region and a ghost triangle on every hull
side, so every side has an opposite and every triangle is reachable from the
outside of the map.
"""

import math
from dataclasses import dataclass
from typing import List, NamedTuple, Optional

import numpy as np
import structlog
from scipy.spatial import Delaunay

from .alea_prng import AleaPRNG

logger = structlog.get_logger()

# Distance of a ghost triangle center from the hull side it is paired with
GHOST_CENTER_OFFSET = 10.0


class MeshConfig(NamedTuple):
    """Configuration for mesh generation."""
    width: float = 1000.0
    height: float = 1000.0
    spacing: float = 5.0
    seed: int = 12345


def s_next_s(s: int) -> int:
    """Next side counter-clockwise within the same triangle."""
    return s - 2 if s % 3 == 2 else s + 1


def s_prev_s(s: int) -> int:
    """Previous side within the same triangle."""
    return s + 2 if s % 3 == 0 else s - 1


@dataclass
class DualMesh:
    """Immutable planar dual mesh with ghost closure.

    Region positions and triangle centers are plain ``(n, 2)`` arrays; the
    connectivity is the ``triangles``/``halfedges`` pair described in the
    module docstring.
    """
    r_xy: np.ndarray            # region positions, ghost region last
    t_xy: np.ndarray            # triangle centers, ghost triangles last
    triangles: np.ndarray       # side -> begin region
    halfedges: np.ndarray       # side -> opposite side
    num_solid_sides: int
    r_in_s: np.ndarray          # region -> one side ending at that region

    @property
    def num_sides(self) -> int:
        return len(self.triangles)

    @property
    def num_triangles(self) -> int:
        return len(self.triangles) // 3

    @property
    def num_solid_triangles(self) -> int:
        return self.num_solid_sides // 3

    @property
    def num_regions(self) -> int:
        return len(self.r_xy)

    @property
    def num_solid_regions(self) -> int:
        return len(self.r_xy) - 1

    @property
    def ghost_region(self) -> int:
        return len(self.r_xy) - 1

    def side_begin_region(self, s: int) -> int:
        return int(self.triangles[s])

    def side_end_region(self, s: int) -> int:
        return int(self.triangles[s_next_s(s)])

    def side_opposite(self, s: int) -> int:
        return int(self.halfedges[s])

    def side_inner_triangle(self, s: int) -> int:
        return s // 3

    def side_outer_triangle(self, s: int) -> int:
        return int(self.halfedges[s]) // 3

    def triangle_sides(self, t: int) -> range:
        return range(3 * t, 3 * t + 3)

    def region_triangles(self, r: int) -> List[int]:
        """Triangles around region ``r``, in circulation order."""
        s0 = int(self.r_in_s[r])
        if s0 < 0:
            return []
        out = []
        incoming = s0
        while True:
            out.append(incoming // 3)
            outgoing = s_next_s(incoming)
            incoming = int(self.halfedges[outgoing])
            if incoming == -1 or incoming == s0:
                break
        return out

    def is_ghost_side(self, s: int) -> bool:
        return s >= self.num_solid_sides

    def is_ghost_triangle(self, t: int) -> bool:
        return 3 * t >= self.num_solid_sides

    def ghost_triangle_mask(self) -> np.ndarray:
        """``is_ghost_triangle`` for every triangle at once."""
        return 3 * np.arange(self.num_triangles) >= self.num_solid_sides

    def is_ghost_region(self, r: int) -> bool:
        return r == self.ghost_region

    def is_boundary_side(self, s: int) -> bool:
        """Solid side whose opposite lies in a ghost triangle."""
        return s < self.num_solid_sides and self.halfedges[s] >= self.num_solid_sides

    @classmethod
    def from_triangulation(cls, points: np.ndarray, triangles: np.ndarray,
                           halfedges: np.ndarray) -> "DualMesh":
        """
        Build a mesh from solid triangles in half-edge form.

        Args:
            points: Region positions, shape (n, 2)
            triangles: Begin region of every solid side, three per triangle,
                counter-clockwise
            halfedges: Opposite side of every solid side, -1 on the hull

        Returns:
            DualMesh with ghost structure added
        """
        points = np.asarray(points, dtype=np.float64)
        triangles = np.asarray(triangles, dtype=np.int32)
        halfedges = np.asarray(halfedges, dtype=np.int32)
        if len(triangles) % 3 != 0 or len(triangles) != len(halfedges):
            raise ValueError("triangles and halfedges must hold three sides per triangle")

        num_solid_sides = len(triangles)
        r_xy, triangles, halfedges = add_ghost_structure(points, triangles, halfedges)
        t_xy = compute_triangle_centers(r_xy, triangles, num_solid_sides)
        r_in_s = compute_region_in_sides(len(r_xy), triangles, halfedges)
        return cls(r_xy=r_xy, t_xy=t_xy, triangles=triangles, halfedges=halfedges,
                   num_solid_sides=num_solid_sides, r_in_s=r_in_s)


def get_jittered_hexagon_grid(width: float, height: float, spacing: float,
                              discard_fraction: float, prng: AleaPRNG) -> np.ndarray:
    """
    Generate a jittered hexagonal grid of points.

    Rows are ``spacing * 3/4`` apart and every other row is shifted by half a
    spacing. Each site is dropped with probability ``discard_fraction`` and the
    survivors are moved by a random offset of at most ``spacing / 1.5``.

    Args:
        width: Area width
        height: Area height
        spacing: Distance between neighbouring sites in a row
        discard_fraction: Probability of dropping a site
        prng: Random source

    Returns:
        Array of [x, y] point coordinates
    """
    dr = spacing / 1.5
    points = []
    offset = 0.0
    y = spacing / 2
    while y < height - spacing / 2:
        offset = spacing / 2 if offset == 0 else 0.0
        x = offset + spacing / 2
        while x < width - spacing / 2:
            if prng.random() < discard_fraction:
                x += spacing
                continue
            r = dr * math.sqrt(abs(prng.random()))
            a = math.pi * prng.random()
            points.append([x + r * math.cos(a), y + r * math.sin(a)])
            x += spacing
        y += spacing * 3 / 4

    return np.array(points, dtype=np.float64).reshape(-1, 2)


def get_boundary_points(width: float, height: float, spacing: float) -> np.ndarray:
    """
    Generate points along the edges of the map.

    The edges are bowed very slightly outward so that no three boundary points
    are exactly collinear, which keeps the Delaunay hull well defined.

    Args:
        width: Map width
        height: Map height
        spacing: Distance between boundary points

    Returns:
        Array of boundary point coordinates
    """
    number_x = int(math.ceil(width / spacing))
    number_y = int(math.ceil(height / spacing))

    points = []
    for i in range(number_x + 1):
        t = (i + 0.5) / (number_x + 1)
        x = width * t
        bow = (t - 0.5) ** 2
        points.append([x, bow])
        points.append([x, height - bow])

    for i in range(number_y + 1):
        t = (i + 0.5) / (number_y + 1)
        y = height * t
        bow = (t - 0.5) ** 2
        points.append([bow, y])
        points.append([width - bow, y])

    return np.array(points, dtype=np.float64)


def triangulate(points: np.ndarray):
    """
    Delaunay-triangulate points into counter-clockwise half-edge form.

    Points that Qhull leaves out of every simplex (coplanar or duplicate) are
    dropped so that every region has at least one triangle.

    Args:
        points: Point coordinates, shape (n, 2)

    Returns:
        Tuple of (points, triangles, halfedges)
    """
    tri = Delaunay(points)
    simplices = tri.simplices.astype(np.int64)

    used = np.unique(simplices)
    if len(used) < len(points):
        logger.warning("Dropping points outside every triangle",
                       dropped=len(points) - len(used))
        remap = np.full(len(points), -1, dtype=np.int64)
        remap[used] = np.arange(len(used))
        points = points[used]
        simplices = remap[simplices]

    # Orient every triangle counter-clockwise
    a = points[simplices[:, 0]]
    b = points[simplices[:, 1]]
    c = points[simplices[:, 2]]
    cross = (b[:, 0] - a[:, 0]) * (c[:, 1] - a[:, 1]) - (b[:, 1] - a[:, 1]) * (c[:, 0] - a[:, 0])
    clockwise = cross < 0
    simplices[clockwise] = simplices[clockwise][:, [0, 2, 1]]

    triangles = simplices.reshape(-1)
    ends = simplices[:, [1, 2, 0]].reshape(-1)

    side_of_edge = {}
    for s, (begin, end) in enumerate(zip(triangles.tolist(), ends.tolist())):
        side_of_edge[(begin, end)] = s

    halfedges = np.array(
        [side_of_edge.get((end, begin), -1)
         for begin, end in zip(triangles.tolist(), ends.tolist())],
        dtype=np.int32,
    )

    return points, triangles.astype(np.int32), halfedges


def add_ghost_structure(points: np.ndarray, triangles: np.ndarray,
                        halfedges: np.ndarray):
    """
    Close the hull with a ghost region and one ghost triangle per hull side.

    Ghost triangle ``i`` pairs with hull side ``s``; its first side is the
    opposite of ``s`` and its other two sides connect to the ghost region and
    to the neighbouring ghost triangles.

    Args:
        points: Solid region positions
        triangles: Solid sides' begin regions
        halfedges: Solid sides' opposites, -1 on the hull

    Returns:
        Tuple of (region positions, triangles, halfedges) including ghosts
    """
    num_solid_sides = len(triangles)
    ghost_r = len(points)

    unpaired = np.nonzero(halfedges == -1)[0]
    num_unpaired = len(unpaired)
    if num_unpaired == 0:
        raise ValueError("Triangulation has no hull sides to attach ghosts to")

    r_unpaired_s = {}
    for s in unpaired.tolist():
        r_unpaired_s[int(triangles[s])] = s

    new_triangles = np.empty(num_solid_sides + 3 * num_unpaired, dtype=np.int32)
    new_triangles[:num_solid_sides] = triangles
    new_halfedges = np.empty(num_solid_sides + 3 * num_unpaired, dtype=np.int32)
    new_halfedges[:num_solid_sides] = halfedges

    s = int(unpaired[-1])
    for i in range(num_unpaired):
        ghost_s = num_solid_sides + 3 * i
        new_halfedges[s] = ghost_s
        new_halfedges[ghost_s] = s
        new_triangles[ghost_s] = new_triangles[s_next_s(s)]
        new_triangles[ghost_s + 1] = new_triangles[s]
        new_triangles[ghost_s + 2] = ghost_r
        k = num_solid_sides + (3 * i + 4) % (3 * num_unpaired)
        new_halfedges[ghost_s + 2] = k
        new_halfedges[k] = ghost_s + 2
        s = r_unpaired_s[int(new_triangles[s_next_s(s)])]

    # The ghost region sits at the middle of the hull; nothing reads its elevation
    ghost_xy = points[np.unique(triangles[unpaired])].mean(axis=0)
    r_xy = np.vstack([points, ghost_xy])

    return r_xy, new_triangles, new_halfedges


def compute_triangle_centers(r_xy: np.ndarray, triangles: np.ndarray,
                             num_solid_sides: int) -> np.ndarray:
    """Centroids for solid triangles; ghost centers just outside their hull side."""
    num_triangles = len(triangles) // 3
    corners = triangles.reshape(-1, 3)
    t_xy = np.empty((num_triangles, 2), dtype=np.float64)

    num_solid = num_solid_sides // 3
    t_xy[:num_solid] = r_xy[corners[:num_solid]].mean(axis=1)

    for t in range(num_solid, num_triangles):
        # Ghost side 3t runs from the hull side's end back to its begin
        a = r_xy[corners[t, 0]]
        b = r_xy[corners[t, 1]]
        dx, dy = b[0] - a[0], b[1] - a[1]
        length = math.hypot(dx, dy)
        scale = GHOST_CENTER_OFFSET / length if length > 0 else 0.0
        t_xy[t] = [0.5 * (a[0] + b[0]) - dy * scale, 0.5 * (a[1] + b[1]) + dx * scale]

    return t_xy


def compute_region_in_sides(num_regions: int, triangles: np.ndarray,
                            halfedges: np.ndarray) -> np.ndarray:
    """For each region, a side ending at it (a hull side when there is one)."""
    r_in_s = np.full(num_regions, -1, dtype=np.int32)
    for s in range(len(triangles)):
        endpoint = triangles[s_next_s(s)]
        if r_in_s[endpoint] == -1 or halfedges[s] == -1:
            r_in_s[endpoint] = s
    return r_in_s


def generate_dual_mesh(config: Optional[MeshConfig] = None) -> DualMesh:
    """
    Generate a complete dual mesh over a ``width`` x ``height`` area.

    Args:
        config: Mesh configuration

    Returns:
        DualMesh with ghost structure
    """
    config = config or MeshConfig()
    logger.info("Generating dual mesh",
                width=config.width, height=config.height,
                spacing=config.spacing, seed=config.seed)

    prng = AleaPRNG(config.seed)
    boundary_points = get_boundary_points(config.width, config.height, config.spacing * 1.5)
    interior_points = get_jittered_hexagon_grid(
        config.width, config.height,
        1.5 * config.spacing * math.sqrt(1 - 0.3), 0.3, prng,
    )
    all_points = np.vstack([boundary_points, interior_points])

    logger.info("Points generated",
                boundary_points=len(boundary_points),
                interior_points=len(interior_points))

    points, triangles, halfedges = triangulate(all_points)
    mesh = DualMesh.from_triangulation(points, triangles, halfedges)

    logger.info("Dual mesh built",
                regions=mesh.num_regions, triangles=mesh.num_triangles,
                ghost_triangles=mesh.num_triangles - mesh.num_solid_triangles,
                sides=mesh.num_sides)
    return mesh
