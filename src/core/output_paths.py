"""
Output path helpers for CLI exports.

Centralizes naming conventions so every command writes next to its input the
same way.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

PathLike = Union[str, Path]

SUBDIVIDED_SUFFIX = ".subdivided{levels}.json"
STATISTICS_SUFFIX = ".stats.json"


def _as_path(value: PathLike) -> Path:
    return value if isinstance(value, Path) else Path(value)


def _resolve_output_path(input_path: PathLike, output_path: Optional[PathLike], suffix: str) -> Path:
    if output_path:
        return _as_path(output_path)
    return _as_path(input_path).with_suffix(suffix)


def subdivided_output_path(
    input_path: PathLike,
    output_path: Optional[PathLike] = None,
    *,
    levels: int = 1,
) -> Path:
    return _resolve_output_path(input_path, output_path, SUBDIVIDED_SUFFIX.format(levels=int(levels)))


def statistics_output_path(input_path: PathLike, output_path: Optional[PathLike] = None) -> Path:
    return _resolve_output_path(input_path, output_path, STATISTICS_SUFFIX)
