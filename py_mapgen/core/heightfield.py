"""
Procedural height function.

The height at a point is a four-octave simplex noise sum ("base"). Below sea
level the base is used as is. Above it, the base is blended with the tallest
mountain cone and the tallest hill bump among a fixed set of peaks, so that
hills show up around base 0.5 and mountains dominate as base approaches 1.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import structlog
from opensimplex import OpenSimplex

from .alea_prng import AleaPRNG

logger = structlog.get_logger()

# (weight, frequency, phase offset) for each octave of the base signal
OCTAVES = (
    (0.75, 1.0, 0.0),
    (0.5, 2.0, 5.0),
    (0.125, 4.0, 7.0),
    (0.0625, 8.0, 9.0),
)

HILL_SHARPNESS = 3000.0
HILL_CUTOFF = 0.3
MIN_LAND_ELEVATION = 1.0 / 256

# Points per chunk when evaluating peak maxima
_CHUNK = 1024


@dataclass
class PeakSet:
    """Peak generators stored as parallel arrays.

    ``zm``/``zh`` scale the mountain and hill contributions, ``wm``/``wh``
    are their falloff widths. Coordinates are in normalized [-1, 1] space.
    """
    x: np.ndarray
    y: np.ndarray
    zm: np.ndarray
    zh: np.ndarray
    wm: np.ndarray
    wh: np.ndarray

    def __len__(self):
        return len(self.x)


def generate_peaks(prng: AleaPRNG, spacing: float = 0.07) -> PeakSet:
    """
    Place peaks on a staggered grid over [-0.9, 0.9]² and jitter them.

    Args:
        prng: Random source; four draw pairs are consumed per peak
        spacing: Grid spacing in normalized coordinates

    Returns:
        PeakSet
    """
    xs, ys, zms, zhs, wms, whs = [], [], [], [], [], []
    offset = 0.0
    y = -0.9
    while y <= 0.9:
        offset = 0.0 if offset > 0 else spacing / 2
        x = -0.9 + offset
        while x <= 0.9:
            xs.append(x + prng.spread() * spacing)
            ys.append(y + prng.spread() * spacing)
            zms.append(1.0 + prng.spread() * 0.2)
            zhs.append(1.0 + prng.spread() * 0.2)
            wms.append(20 + 3 * y)
            whs.append(40 + 10 * y)
            x += spacing
        y += spacing

    logger.debug("Peaks generated", count=len(xs))
    return PeakSet(
        x=np.array(xs), y=np.array(ys),
        zm=np.array(zms), zh=np.array(zhs),
        wm=np.array(wms), wh=np.array(whs),
    )


class HeightField:
    """Deterministic elevation function over the map area."""

    def __init__(self, noise: OpenSimplex, peaks: PeakSet,
                 width: float = 1000.0, height: float = 1000.0,
                 constraints: Optional[np.ndarray] = None):
        """
        Args:
            noise: Seeded simplex noise source
            peaks: Peak generators
            width: Map width; x is normalized to [-1, 1] across it
            height: Map height
            constraints: Optional grid of elevation hints in [-1, 1], rows
                along y; NaN cells are unconstrained
        """
        self.noise = noise
        self.peaks = peaks
        self.width = width
        self.height = height
        if constraints is not None:
            constraints = np.asarray(constraints, dtype=np.float64)
            if constraints.ndim != 2 or constraints.size == 0:
                raise ValueError("constraints must be a non-empty 2-D array")
        self.constraints = constraints

    def elevation(self, x: float, y: float) -> float:
        """Elevation at map coordinates (x, y), in [-1, 1]."""
        return float(self.evaluate(np.array([[x, y]], dtype=np.float64))[0])

    def base(self, nx: float, ny: float) -> float:
        """Fractal noise at normalized coordinates."""
        return sum(weight * self.noise.noise2(nx * frequency + phase, ny * frequency + phase)
                   for weight, frequency, phase in OCTAVES)

    def evaluate(self, points: np.ndarray) -> np.ndarray:
        """
        Elevation at many points at once.

        Args:
            points: Map coordinates, shape (n, 2)

        Returns:
            float64 array of elevations in [-1, 1]
        """
        points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        half_w = self.width / 2
        half_h = self.height / 2
        nx = (points[:, 0] - half_w) / half_w
        ny = (points[:, 1] - half_h) / half_h

        base = np.array([self.base(x, y) for x, y in zip(nx.tolist(), ny.tolist())],
                        dtype=np.float64)

        constrained = np.zeros(len(points), dtype=bool)
        if self.constraints is not None:
            hints = self._sample_constraints(points)
            constrained = ~np.isnan(hints)
            base[constrained] = hints[constrained]

        e = base.copy()
        land = np.nonzero(base > 0)[0]
        for start in range(0, len(land), _CHUNK):
            idx = land[start:start + _CHUNK]
            em, eh = self._peak_maxima(nx[idx], ny[idx])
            b = base[idx]
            w0 = 2.0
            wm = 2.0 * b * b
            wh = 0.5 * (0.5 - np.abs(0.5 - b))
            e[idx] = (w0 * b + wh * eh + wm * em) / (w0 + wh + wm)

        constrained_land = constrained & (base > 0)
        e[constrained_land] = np.maximum(e[constrained_land], MIN_LAND_ELEVATION)

        return np.clip(e, -1.0, 1.0)

    def _peak_maxima(self, nx: np.ndarray, ny: np.ndarray):
        """Tallest mountain and hill contribution at each point, floored at 0."""
        if len(self.peaks) == 0:
            zeros = np.zeros(len(nx))
            return zeros, zeros

        p = self.peaks
        dx = nx[:, None] - p.x[None, :]
        dy = ny[:, None] - p.y[None, :]
        d2 = dx * dx + dy * dy

        mountain = p.zm[None, :] * (1.0 - p.wm[None, :] * np.sqrt(d2))
        hill = p.zh[None, :] * np.maximum(0.0, np.sqrt(np.exp(-d2 * HILL_SHARPNESS)) - HILL_CUTOFF)

        em = np.maximum(mountain.max(axis=1), 0.0)
        eh = np.maximum(hill.max(axis=1), 0.0)
        return em, eh

    def _sample_constraints(self, points: np.ndarray) -> np.ndarray:
        """Nearest constraint cell for each point, clamped to the grid edges."""
        rows, cols = self.constraints.shape
        ix = np.floor(points[:, 0] / self.width * cols).astype(np.int64)
        iy = np.floor(points[:, 1] / self.height * rows).astype(np.int64)
        ix = np.clip(ix, 0, cols - 1)
        iy = np.clip(iy, 0, rows - 1)
        return self.constraints[iy, ix]
