"""
Triangle area statistics computed in parallel.

The triangles are split into contiguous batches, one per worker. Each worker
reduces its batch to a partial (min, max, avg) record and the last worker to
finish combines the partials and resolves the job's future. Callers either
poll ``StatisticsJob.done()`` or wait on ``StatisticsJob.result()``.

The mesh arrays must not be replaced or edited while a job is running; no
locking is done here.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
import logging
import threading
import time
from typing import Callable, Optional

import numpy as np

from .logging_utils import log_once
from .mesh_data import MeshData, face_normals, validate_topology
from .runtime_defaults import DEFAULTS

_LOGGER = logging.getLogger(__name__)

AREA_SENTINEL = float(np.finfo(np.float64).max)


@dataclass(frozen=True)
class TriangleStatistics:
    """Minimum / maximum / mean triangle area of a mesh snapshot."""
    min_area: float = AREA_SENTINEL
    max_area: float = 0.0
    avg_area: float = 0.0

    def as_dict(self) -> dict[str, float]:
        return {
            "min_area": float(self.min_area),
            "max_area": float(self.max_area),
            "avg_area": float(self.avg_area),
        }

    def format_report(self) -> str:
        return (
            "Triangle Area Statistics:\n"
            f"Max: {self.max_area:f}\n"
            f"Min: {self.min_area:f}\n"
            f"Avg: {self.avg_area:f}"
        )


def resolve_worker_count(n_triangles: int, requested: Optional[int] = None) -> int:
    """
    Number of workers for ``n_triangles``: the requested count (or the
    configured default), clamped to [1, n_triangles]. Zero triangles -> 0.
    """
    n_triangles = int(n_triangles)
    if n_triangles <= 0:
        return 0
    workers = DEFAULTS.stats_workers if requested is None else int(requested)
    return max(1, min(workers, n_triangles))


def partition_batches(n_triangles: int, n_workers: int) -> list[tuple[int, int]]:
    """
    Balanced contiguous ranges: batch k covers
    ``[k * T // W, (k + 1) * T // W)``.
    """
    T = int(n_triangles)
    W = int(n_workers)
    if W <= 0:
        if T > 0:
            raise ValueError(f"cannot split {T} triangles across {W} workers")
        return []
    return [((k * T) // W, ((k + 1) * T) // W) for k in range(W)]


def batch_statistics(
    vertices: np.ndarray,
    indices: np.ndarray,
    start: int,
    end: int,
    n_total: int,
) -> TriangleStatistics:
    """
    Partial statistics for triangles ``[start, end)``.

    Each area contributes ``area / n_total`` to the average. Zero areas are
    skipped for the minimum only.
    """
    if end <= start:
        return TriangleStatistics()

    areas = 0.5 * np.linalg.norm(face_normals(vertices, indices[3 * start:3 * end]), axis=1)

    nonzero = areas[areas != 0]
    if len(nonzero) < len(areas):
        log_once(
            _LOGGER,
            "triangle-statistics-zero-area",
            logging.WARNING,
            "Zero-area triangles found; they are excluded from the minimum area",
        )

    min_area = float(nonzero.min()) if len(nonzero) else AREA_SENTINEL
    max_area = max(float(areas.max()), 0.0)
    avg_area = float(np.sum(areas / float(n_total)))
    return TriangleStatistics(
        min_area=min_area,
        max_area=max_area,
        avg_area=avg_area,
    )


def combine_statistics(parts) -> TriangleStatistics:
    """Reduce partial records: sum of averages, min of minima, max of maxima."""
    result = TriangleStatistics()
    for part in parts:
        result = TriangleStatistics(
            min_area=min(result.min_area, part.min_area),
            max_area=max(result.max_area, part.max_area),
            avg_area=result.avg_area + part.avg_area,
        )
    return result


class StatisticsJob:
    """Handle for a running statistics computation."""

    def __init__(self, future: Future, batches: list[tuple[int, int]]):
        self.future = future
        self.batches = list(batches)

    @property
    def n_workers(self) -> int:
        return len(self.batches)

    def done(self) -> bool:
        return self.future.done()

    def result(self, timeout: Optional[float] = None) -> TriangleStatistics:
        return self.future.result(timeout=timeout)

    def exception(self, timeout: Optional[float] = None) -> Optional[BaseException]:
        return self.future.exception(timeout=timeout)

    def add_done_callback(self, fn: Callable[['StatisticsJob'], None]) -> None:
        self.future.add_done_callback(lambda _f: fn(self))


class TriangleStatisticsCalculator:
    """
    Fork-join triangle area statistics.

    Args:
        max_workers: worker count before clamping to the triangle count
            (None -> configured default, normally the CPU count)
    """

    def __init__(self, max_workers: Optional[int] = None):
        if max_workers is not None and int(max_workers) < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.max_workers = None if max_workers is None else int(max_workers)

    def calculate_async(self, mesh: MeshData) -> StatisticsJob:
        """
        Start the computation and return immediately.

        The job's future resolves to a TriangleStatistics once every batch
        has been reduced, or to the first worker exception.
        """
        vertices = np.asarray(mesh.vertices, dtype=np.float64)
        indices = np.asarray(mesh.indices, dtype=np.int64)
        validate_topology(vertices, indices)

        n_triangles = int(indices.size // 3)
        n_workers = resolve_worker_count(n_triangles, self.max_workers)
        batches = partition_batches(n_triangles, n_workers)

        outer: Future = Future()
        outer.set_running_or_notify_cancel()
        job = StatisticsJob(outer, batches)

        if n_workers == 0:
            outer.set_result(TriangleStatistics())
            return job

        _LOGGER.debug(
            "Triangle statistics: %d triangles across %d workers %s",
            n_triangles,
            n_workers,
            batches,
        )

        t0 = time.perf_counter()
        lock = threading.Lock()
        pending = [n_workers]
        futures: list[Future] = []

        def _reduce() -> None:
            for f in futures:
                exc = f.exception()
                if exc is not None:
                    _LOGGER.error("Triangle statistics worker failed: %s", exc, exc_info=exc)
                    outer.set_exception(exc)
                    return
            # Runs inside a done-callback, where concurrent.futures would only
            # log an escaping error and leave the job unresolved.
            try:
                stats = combine_statistics(f.result() for f in futures)
                _LOGGER.info(
                    "Triangle statistics for %d triangles in %.3fs: min=%g max=%g avg=%g",
                    n_triangles,
                    time.perf_counter() - t0,
                    stats.min_area,
                    stats.max_area,
                    stats.avg_area,
                )
            except BaseException as exc:
                _LOGGER.error("Triangle statistics reduce failed: %s", exc, exc_info=exc)
                outer.set_exception(exc)
                return
            outer.set_result(stats)

        def _on_batch_done(_f: Future) -> None:
            with lock:
                pending[0] -= 1
                last = pending[0] == 0
            if last:
                _reduce()

        executor = ThreadPoolExecutor(max_workers=n_workers, thread_name_prefix="triangle-stats")
        try:
            for start, end in batches:
                futures.append(
                    executor.submit(batch_statistics, vertices, indices, start, end, n_triangles)
                )
            # Callbacks are attached after every batch is queued so the reduce
            # step always sees the complete future list.
            for f in futures:
                f.add_done_callback(_on_batch_done)
        finally:
            executor.shutdown(wait=False)

        return job

    def calculate(self, mesh: MeshData, timeout: Optional[float] = None) -> TriangleStatistics:
        """Blocking convenience wrapper around calculate_async()."""
        return self.calculate_async(mesh).result(timeout=timeout)


def calculate_statistics(
    mesh: MeshData,
    *,
    max_workers: Optional[int] = None,
    timeout: Optional[float] = None,
) -> TriangleStatistics:
    return TriangleStatisticsCalculator(max_workers=max_workers).calculate(mesh, timeout=timeout)
