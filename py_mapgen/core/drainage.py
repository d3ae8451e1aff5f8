"""
Drainage routing.

This module implements:
- The per-triangle downslope state (unvisited, root, or pointing across a side)
- Biased search: a multi-source expansion from the sea that approximates
  lowest-elevation-first order without a priority queue
- Flow accumulation with elevation repair, walking the search order backwards
"""

import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Tuple, Union

import numpy as np
import structlog

logger = structlog.get_logger()


class DrainageError(RuntimeError):
    """Drainage could not be routed over the mesh."""


class NoDrainageRootsError(DrainageError):
    """The seed set is empty, so no triangle can drain anywhere."""


class DisconnectedMeshError(DrainageError):
    """Some triangles cannot be reached from any seed."""


class DownslopeStatus(IntEnum):
    UNVISITED = 0
    ROOT = 1
    POINTS_TO = 2


@dataclass(frozen=True)
class Unvisited:
    pass


@dataclass(frozen=True)
class Root:
    pass


@dataclass(frozen=True)
class PointsTo:
    side: int


DownslopeState = Union[Unvisited, Root, PointsTo]

_UNVISITED = Unvisited()
_ROOT = Root()


class DownslopeField:
    """Downslope pointer for every triangle.

    ``status`` holds a ``DownslopeStatus`` per triangle. ``side`` holds the
    side leading to the parent triangle and is only meaningful where the
    status is ``POINTS_TO``; use ``state`` or ``side_of`` rather than reading
    it directly.
    """

    def __init__(self, num_triangles: int):
        self.status = np.zeros(num_triangles, dtype=np.uint8)
        self.side = np.full(num_triangles, -1, dtype=np.int32)

    def __len__(self):
        return len(self.status)

    def reset(self):
        self.status.fill(DownslopeStatus.UNVISITED)
        self.side.fill(-1)

    def mark_root(self, t: int):
        self.status[t] = DownslopeStatus.ROOT
        self.side[t] = -1

    def point_to(self, t: int, s: int):
        self.status[t] = DownslopeStatus.POINTS_TO
        self.side[t] = s

    def state(self, t: int) -> DownslopeState:
        status = self.status[t]
        if status == DownslopeStatus.POINTS_TO:
            return PointsTo(int(self.side[t]))
        if status == DownslopeStatus.ROOT:
            return _ROOT
        return _UNVISITED

    def side_of(self, t: int) -> Optional[int]:
        """Side toward the parent, or None for a root."""
        status = self.status[t]
        if status == DownslopeStatus.POINTS_TO:
            return int(self.side[t])
        if status == DownslopeStatus.ROOT:
            return None
        raise DisconnectedMeshError(f"Triangle {t} was never reached by the drainage search")

    def is_root(self, t: int) -> bool:
        return self.status[t] == DownslopeStatus.ROOT

    def parent_of(self, mesh, t: int) -> Optional[int]:
        s = self.side_of(t)
        return None if s is None else mesh.side_outer_triangle(s)

    def roots(self) -> np.ndarray:
        return np.nonzero(self.status == DownslopeStatus.ROOT)[0]

    def unvisited(self) -> np.ndarray:
        return np.nonzero(self.status == DownslopeStatus.UNVISITED)[0]


@dataclass
class DrainageOptions:
    """Drainage search options."""
    # Larger values examine more queued triangles per step: rivers meander
    # less and follow the contours more closely
    pivot_divisor: int = 5


def biased_search(mesh, seeds_t, t_priority,
                  downslope: Optional[DownslopeField] = None,
                  order_t: Optional[np.ndarray] = None,
                  options: Optional[DrainageOptions] = None) -> Tuple[DownslopeField, np.ndarray]:
    """
    Grow a drainage forest from the seeds over every triangle.

    One array holds both the visit order and the pending queue. Before each
    expansion (after the seeds), a few queued triangles spaced
    ``ceil(pending / pivot_divisor)`` apart are compared with the front of
    the queue and swapped forward when their priority is lower.

    Args:
        mesh: Dual mesh (``num_triangles``, ``triangle_sides``,
            ``side_outer_triangle``, ``side_opposite``)
        seeds_t: Root triangles
        t_priority: Per-triangle priority, lower expands first
        downslope: Output field to reuse; allocated when None
        order_t: Output array to reuse; allocated when None
        options: Search options

    Returns:
        Tuple of (downslope field, visit order)

    Raises:
        NoDrainageRootsError: If ``seeds_t`` is empty
        DisconnectedMeshError: If the search cannot reach every triangle
        ValueError: If seeds repeat or lie outside the mesh
    """
    options = options or DrainageOptions()
    num_triangles = mesh.num_triangles
    seeds = [int(t) for t in seeds_t]

    if not seeds:
        raise NoDrainageRootsError("No drainage roots: no ghost triangle is below sea level")
    if len(set(seeds)) != len(seeds):
        raise ValueError("Drainage seeds must be unique")
    if min(seeds) < 0 or max(seeds) >= num_triangles:
        raise ValueError("Drainage seed outside the mesh")
    if options.pivot_divisor < 1:
        raise ValueError("pivot_divisor must be at least 1")

    if downslope is None:
        downslope = DownslopeField(num_triangles)
    if order_t is None:
        order_t = np.empty(num_triangles, dtype=np.int32)

    priority = np.asarray(t_priority).tolist()
    status = [DownslopeStatus.UNVISITED] * num_triangles
    side = [-1] * num_triangles
    order = [0] * num_triangles

    for i, t in enumerate(seeds):
        status[t] = DownslopeStatus.ROOT
        order[i] = t

    num_seeds = len(seeds)
    queue_in = num_seeds
    for queue_out in range(num_triangles):
        if queue_out >= queue_in:
            raise DisconnectedMeshError(
                f"Drainage search stalled with {num_triangles - queue_in} "
                f"triangles unreachable from the seeds"
            )

        if queue_out >= num_seeds:
            pivot_step = math.ceil((queue_in - queue_out) / options.pivot_divisor)
            pivot = queue_in - 1
            while pivot > queue_out:
                if priority[order[pivot]] < priority[order[queue_out]]:
                    order[pivot], order[queue_out] = order[queue_out], order[pivot]
                pivot -= pivot_step

        current_t = order[queue_out]
        for s in mesh.triangle_sides(current_t):
            # The neighbor is uphill from current_t
            neighbor_t = mesh.side_outer_triangle(s)
            if status[neighbor_t] == DownslopeStatus.UNVISITED:
                status[neighbor_t] = DownslopeStatus.POINTS_TO
                side[neighbor_t] = mesh.side_opposite(s)
                order[queue_in] = neighbor_t
                queue_in += 1

    downslope.status[:] = status
    downslope.side[:] = side
    order_t[:] = order

    # order_t is a pre-order: parents always come before their children
    return downslope, order_t


def assign_flow(mesh, order_t, t_elevation: np.ndarray,
                downslope: DownslopeField,
                t_flow: Optional[np.ndarray] = None,
                s_flow: Optional[np.ndarray] = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Accumulate flow from leaves to roots and repair elevation on the way.

    Every land triangle contributes one unit. Walking ``order_t`` backwards
    visits every tributary before its trunk. A tributary's flow is always
    recorded on its downslope side; it is added to the trunk only when the
    trunk is land, and then the trunk is lowered to the tributary's
    elevation if it stands higher. Water trunks absorb the flow.

    Args:
        mesh: Dual mesh
        order_t: Pre-order from ``biased_search``
        t_elevation: Per-triangle elevation, lowered in place
        downslope: Downslope field from ``biased_search``
        t_flow: Output array to reuse; allocated when None
        s_flow: Output array to reuse; allocated when None

    Returns:
        Tuple of (t_flow, s_flow)
    """
    if t_flow is None:
        t_flow = np.zeros(mesh.num_triangles, dtype=np.float32)
    if s_flow is None:
        s_flow = np.zeros(mesh.num_sides, dtype=np.float32)

    t_flow.fill(0)
    s_flow.fill(0)
    t_flow[t_elevation > 0] = 1

    for t1 in reversed(np.asarray(order_t).tolist()):
        # t1 is the tributary and t2 is the trunk
        s = downslope.side_of(t1)
        if s is None:
            continue
        t2 = mesh.side_outer_triangle(s)
        s_flow[s] += t_flow[t1]
        if t_elevation[t2] > 0:
            t_flow[t2] += t_flow[t1]
            if t_elevation[t2] > t_elevation[t1]:
                t_elevation[t2] = t_elevation[t1]

    return t_flow, s_flow
