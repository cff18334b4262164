"""
Mesh Loader Module

Reads mesh descriptions into MeshData and writes them back.

Supports:
    - JSON mesh description: {"geometry_object": {"vertices": [x, y, z, ...],
      "triangles": [i0, i1, i2, ...]}}
    - OBJ, PLY, STL, OFF through trimesh
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
import json
import logging
from numbers import Integral, Real
from pathlib import Path
from typing import Any, Union

import numpy as np

try:
    import trimesh
except ImportError:
    raise ImportError("trimesh is required. Install with: pip install trimesh")

from .mesh_data import MeshData, MeshTopologyError

_LOGGER = logging.getLogger(__name__)

GEOMETRY_KEY = "geometry_object"
VERTICES_KEY = "vertices"
TRIANGLES_KEY = "triangles"


class MeshFormatError(ValueError):
    """Malformed mesh description (bad JSON or wrong structure)."""


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _is_index(value: Any) -> bool:
    return isinstance(value, Integral) and not isinstance(value, bool)


def parse_mesh_description(doc: Any) -> tuple[np.ndarray, np.ndarray]:
    """
    Validate a decoded JSON mesh description.

    Returns:
        (vertices (N, 3) float64, indices (3M,) int64)

    Raises:
        MeshFormatError: structure or value types are wrong
    """
    if not isinstance(doc, dict) or GEOMETRY_KEY not in doc:
        raise MeshFormatError("Invalid JSON format: expected an object with 'geometry_object'")

    geometry = doc[GEOMETRY_KEY]
    if not isinstance(geometry, dict) or VERTICES_KEY not in geometry or TRIANGLES_KEY not in geometry:
        raise MeshFormatError("Invalid vertex object format: expected 'vertices' and 'triangles'")

    flat_vertices = geometry[VERTICES_KEY]
    flat_triangles = geometry[TRIANGLES_KEY]
    if not isinstance(flat_vertices, list) or not isinstance(flat_triangles, list):
        raise MeshFormatError("Invalid vertices or triangles array format")

    # Trailing components that do not complete an (x, y, z) triple are dropped.
    n_coords = (len(flat_vertices) // 3) * 3
    for i in range(n_coords):
        if not _is_number(flat_vertices[i]):
            raise MeshFormatError(f"Invalid vertex format at component {i}: {flat_vertices[i]!r}")
    if n_coords != len(flat_vertices):
        _LOGGER.warning(
            "Ignoring %d trailing vertex component(s)", len(flat_vertices) - n_coords
        )

    for i, value in enumerate(flat_triangles):
        if not _is_index(value):
            raise MeshFormatError(f"Invalid index format at position {i}: {value!r}")

    vertices = np.asarray(flat_vertices[:n_coords], dtype=np.float64).reshape(-1, 3)
    indices = np.asarray(flat_triangles, dtype=np.int64).reshape(-1)
    return vertices, indices


def mesh_to_description(mesh: MeshData) -> dict[str, Any]:
    return {
        GEOMETRY_KEY: {
            VERTICES_KEY: [float(x) for x in np.asarray(mesh.vertices).reshape(-1)],
            TRIANGLES_KEY: [int(i) for i in np.asarray(mesh.indices).reshape(-1)],
        }
    }


class MeshLoader:
    """
    Mesh file loader.

    Supported formats:
        - JSON mesh description
        - OBJ (Wavefront)
        - PLY (Polygon File Format)
        - STL (Stereolithography)
        - OFF (Object File Format)
    """

    SUPPORTED_FORMATS = {
        '.json': 'JSON Mesh Description',
        '.obj': 'Wavefront OBJ',
        '.ply': 'Polygon File Format',
        '.stl': 'Stereolithography',
        '.off': 'Object File Format',
    }

    @classmethod
    def get_supported_formats(cls) -> dict:
        return cls.SUPPORTED_FORMATS.copy()

    def _check_path(self, filepath: Union[str, Path]) -> Path:
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")

        ext = filepath.suffix.lower()
        if ext not in self.SUPPORTED_FORMATS:
            raise ValueError(
                f"Unsupported format: {ext}\n"
                f"Supported formats: {list(self.SUPPORTED_FORMATS.keys())}"
            )
        return filepath

    def load(self, filepath: Union[str, Path]) -> MeshData:
        """
        Load a mesh file.

        Returns:
            MeshData with vertex normals accumulated

        Raises:
            FileNotFoundError: file does not exist
            ValueError: unsupported extension
            MeshFormatError: malformed JSON description
            MeshTopologyError: indices do not fit the vertex set
        """
        filepath = self._check_path(filepath)

        if filepath.suffix.lower() == '.json':
            mesh = self.load_json(filepath)
        else:
            mesh = self._load_with_trimesh(filepath)

        _LOGGER.info(
            "Loaded %s: %d vertices, %d triangles",
            filepath,
            mesh.n_vertices,
            mesh.n_triangles,
        )
        return mesh

    def load_json(self, filepath: Union[str, Path]) -> MeshData:
        filepath = Path(filepath)
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                doc = json.load(f)
        except json.JSONDecodeError as e:
            raise MeshFormatError(f"Failed to parse JSON: {e}") from e

        vertices, indices = parse_mesh_description(doc)
        return MeshData(vertices=vertices, indices=indices, filepath=filepath)

    def load_description(self, doc: Any) -> MeshData:
        """Build a mesh from an already decoded JSON description."""
        vertices, indices = parse_mesh_description(doc)
        return MeshData(vertices=vertices, indices=indices)

    def _load_with_trimesh(self, filepath: Path) -> MeshData:
        # process=False keeps vertex order and duplicates as stored in the file;
        # scenes are concatenated into a single mesh.
        mesh = trimesh.load_mesh(str(filepath), process=False)

        if not isinstance(mesh, trimesh.Trimesh):
            raise MeshFormatError(f"Expected trimesh.Trimesh, got {type(mesh).__name__}")
        if len(mesh.faces) == 0:
            raise MeshFormatError(f"No valid mesh found in: {filepath}")

        return MeshData.from_trimesh(mesh, filepath=filepath)

    def load_async(self, filepath: Union[str, Path]) -> Future:
        """Load on a background thread; the future resolves to MeshData."""
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="mesh-loader")
        try:
            return executor.submit(self.load, filepath)
        finally:
            executor.shutdown(wait=False)

    def get_file_info(self, filepath: Union[str, Path]) -> dict:
        """
        Preview a mesh file.

        Load problems are reported under the 'error' key instead of raised.
        """
        filepath = Path(filepath)

        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")

        ext = filepath.suffix.lower()
        file_size = filepath.stat().st_size

        info: dict[str, Any] = {
            'filename': filepath.name,
            'format': self.SUPPORTED_FORMATS.get(ext, 'Unknown'),
            'extension': ext,
            'file_size_mb': round(file_size / (1024 * 1024), 2),
        }

        try:
            mesh = self.load(filepath)
        except (OSError, ValueError) as e:
            _LOGGER.warning("File info for %s incomplete: %s", filepath, e)
            info['error'] = str(e)
            return info

        info['n_vertices'] = mesh.n_vertices
        info['n_triangles'] = mesh.n_triangles
        info['bounds'] = mesh.bounds.tolist()
        return info


class MeshWriter:
    """Saves MeshData as a JSON description or any format trimesh exports."""

    def save(self, mesh: MeshData, filepath: Union[str, Path]) -> str:
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        if filepath.suffix.lower() == '.json':
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(mesh_to_description(mesh), f)
        else:
            mesh.to_trimesh().export(str(filepath))

        _LOGGER.info("Saved %s (%d triangles)", filepath, mesh.n_triangles)
        return str(filepath)


__all__ = [
    'MeshData',
    'MeshFormatError',
    'MeshLoader',
    'MeshTopologyError',
    'MeshWriter',
    'mesh_to_description',
    'parse_mesh_description',
]
