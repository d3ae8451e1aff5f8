"""Read-only views over generated drainage for rendering code."""

from typing import List

import numpy as np

from .drainage import DownslopeField, DownslopeStatus


def count_river_triangles(mesh, downslope: DownslopeField, s_flow: np.ndarray,
                          min_flow: float) -> int:
    """
    Count solid triangles that carry a river.

    A triangle carries a river when the flow on its downslope side exceeds
    ``min_flow``.

    Args:
        mesh: Dual mesh
        downslope: Downslope field after routing
        s_flow: Per-side flow
        min_flow: Flow threshold

    Returns:
        Number of river triangles
    """
    num_solid = mesh.num_solid_triangles
    status = downslope.status[:num_solid]
    pointing = np.nonzero(status == DownslopeStatus.POINTS_TO)[0]
    outflow = s_flow[downslope.side[pointing]]
    return int(np.sum(outflow > min_flow))


def trace_downslope(mesh, downslope: DownslopeField, t: int) -> List[int]:
    """
    Follow downslope pointers from ``t`` to its root.

    Returns:
        Triangle ids, starting with ``t`` and ending with a root
    """
    path = [t]
    for _ in range(len(downslope)):
        parent = downslope.parent_of(mesh, path[-1])
        if parent is None:
            return path
        path.append(parent)
    raise ValueError(f"Downslope pointers from triangle {t} form a cycle")
