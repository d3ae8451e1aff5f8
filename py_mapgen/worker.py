"""
Background map generation.

The host hands a request and its output buffers to a worker thread and gets
the same buffers back, filled, in the response. While a request is in
flight the host holds no reference to the buffers and drops any new request;
the caller asks again after the result lands.
"""

import queue
import threading
import time
from dataclasses import dataclass
from typing import Optional

import numpy as np
import structlog

from .config import Settings, settings as default_settings
from .core.drainage import DrainageError, DrainageOptions
from .core.dual_mesh import DualMesh
from .core.geometry import count_river_triangles
from .core.terrain_map import GenerationContext, GenerationParams, TerrainMap

logger = structlog.get_logger()


@dataclass
class MapBuffers:
    """Output arrays handed between host and worker; sized by the mesh."""
    t_elevation: np.ndarray
    r_elevation: np.ndarray
    r_moisture: np.ndarray
    t_flow: np.ndarray
    s_flow: np.ndarray

    @classmethod
    def allocate(cls, mesh: DualMesh) -> "MapBuffers":
        return cls(
            t_elevation=np.zeros(mesh.num_triangles, dtype=np.float32),
            r_elevation=np.zeros(mesh.num_regions, dtype=np.float32),
            r_moisture=np.zeros(mesh.num_regions, dtype=np.float32),
            t_flow=np.zeros(mesh.num_triangles, dtype=np.float32),
            s_flow=np.zeros(mesh.num_sides, dtype=np.float32),
        )


@dataclass
class GenerationRequest:
    params: GenerationParams
    buffers: MapBuffers


@dataclass
class GenerationResponse:
    buffers: MapBuffers
    elapsed: float
    num_river_triangles: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class MapWorker(threading.Thread):
    """Thread that owns a TerrainMap and serves one request at a time."""

    def __init__(self, mesh: DualMesh, requests: queue.Queue, responses: queue.Queue,
                 quit_event: threading.Event, settings: Optional[Settings] = None):
        super().__init__(name="map-worker", daemon=True)
        self.settings = settings or default_settings
        self.mesh = mesh
        self._map = TerrainMap(
            mesh, drainage_options=DrainageOptions(pivot_divisor=self.settings.pivot_divisor)
        )
        self._requests = requests
        self._responses = responses
        self._quit_event = quit_event

    def run(self):
        while not self._quit_event.is_set():
            try:
                request = self._requests.get(timeout=0.2)
            except queue.Empty:
                continue
            self._responses.put(self.handle(request))

    def handle(self, request: GenerationRequest) -> GenerationResponse:
        """Regenerate the map and fill the request's buffers.

        On failure the buffers go back untouched, so the host keeps showing
        the previous map.
        """
        start = time.perf_counter()
        try:
            context = GenerationContext.create(self.mesh, request.params, self.settings)
            self._map.regenerate(context)
        except DrainageError as e:
            logger.error("Map generation failed", seed=request.params.seed, error=str(e))
            return GenerationResponse(buffers=request.buffers,
                                      elapsed=time.perf_counter() - start,
                                      error=str(e))
        except Exception as e:
            logger.exception("Unexpected error during map generation", seed=request.params.seed)
            return GenerationResponse(buffers=request.buffers,
                                      elapsed=time.perf_counter() - start,
                                      error=f"{type(e).__name__}: {e}")

        buffers = request.buffers
        np.copyto(buffers.t_elevation, self._map.t_elevation)
        np.copyto(buffers.r_elevation, self._map.r_elevation)
        np.copyto(buffers.r_moisture, self._map.r_moisture)
        np.copyto(buffers.t_flow, self._map.t_flow)
        np.copyto(buffers.s_flow, self._map.s_flow)

        num_river_triangles = count_river_triangles(
            self.mesh, self._map.t_downslope_s, self._map.s_flow, self.settings.min_river_flow
        )
        return GenerationResponse(buffers=buffers,
                                  elapsed=time.perf_counter() - start,
                                  num_river_triangles=num_river_triangles)


class MapHost:
    """Host side of the worker channel: at most one generation in flight."""

    def __init__(self, mesh: DualMesh, settings: Optional[Settings] = None):
        self._requests = queue.Queue(maxsize=1)
        self._responses = queue.Queue()
        self._quit_event = threading.Event()
        self._worker = MapWorker(mesh, self._requests, self._responses,
                                 self._quit_event, settings)
        self.buffers: Optional[MapBuffers] = MapBuffers.allocate(mesh)
        self.working = False

    def start(self):
        self._worker.start()

    def stop(self, timeout: Optional[float] = None):
        self._quit_event.set()
        if self._worker.is_alive():
            self._worker.join(timeout)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()

    def request_generation(self, params: GenerationParams) -> bool:
        """
        Send a generation request unless one is already in flight.

        Returns:
            True if the request was sent, False if it was dropped
        """
        if self.working:
            logger.debug("Generation in flight; request dropped", seed=params.seed)
            return False

        buffers, self.buffers = self.buffers, None
        self.working = True
        self._requests.put_nowait(GenerationRequest(params=params, buffers=buffers))
        return True

    def collect(self, timeout: Optional[float] = None) -> Optional[GenerationResponse]:
        """
        Take the response for the in-flight request.

        Args:
            timeout: Seconds to wait; None waits until the worker answers

        Returns:
            The response, or None if nothing is in flight or the wait timed out
        """
        if not self.working:
            return None
        try:
            response = self._responses.get(timeout=timeout)
        except queue.Empty:
            return None

        self.buffers = response.buffers
        self.working = False

        if response.ok:
            logger.info("Generation finished",
                        elapsed_ms=round(response.elapsed * 1000, 2),
                        river_triangles=response.num_river_triangles)
        else:
            logger.error("Generation abandoned; previous map kept", error=response.error)
        return response
