"""
Core processing modules for MeshEngine
"""

from .mesh_data import MeshData, MeshTopologyError, TriangleView
from .mesh_loader import MeshLoader, MeshWriter, MeshFormatError
from .subdivision import MidpointSubdivider, subdivide
from .triangle_statistics import (
    StatisticsJob,
    TriangleStatistics,
    TriangleStatisticsCalculator,
    calculate_statistics,
)
from .containment import is_point_inside

__all__ = [
    # Geometry model
    'MeshData',
    'MeshTopologyError',
    'TriangleView',
    # Loading / saving
    'MeshLoader',
    'MeshWriter',
    'MeshFormatError',
    # Subdivision
    'MidpointSubdivider',
    'subdivide',
    # Statistics
    'StatisticsJob',
    'TriangleStatistics',
    'TriangleStatisticsCalculator',
    'calculate_statistics',
    # Containment
    'is_point_inside',
]
