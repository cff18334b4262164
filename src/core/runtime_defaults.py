"""
Runtime defaults for the CLI and the processing engines.

Values can be overridden via environment variables to avoid hardcoded tuning
in multiple entrypoints.
"""

from __future__ import annotations

from dataclasses import dataclass
import os


ENV_STATS_WORKERS = "MESHENGINE_STATS_WORKERS"
ENV_STATS_TIMEOUT = "MESHENGINE_STATS_TIMEOUT"
ENV_MAX_SUBDIVISION_LEVELS = "MESHENGINE_MAX_SUBDIVISION_LEVELS"


@dataclass(frozen=True)
class RuntimeDefaults:
    stats_workers: int
    stats_timeout: int
    max_subdivision_levels: int


def _read_int_env(
    env_name: str,
    default: int,
    *,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    raw = os.environ.get(env_name)
    if raw is None:
        return default
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default

    if min_value is not None and value < min_value:
        return default
    if max_value is not None and value > max_value:
        return default
    return value


def hardware_concurrency() -> int:
    return max(1, int(os.cpu_count() or 1))


def load_runtime_defaults() -> RuntimeDefaults:
    return RuntimeDefaults(
        stats_workers=_read_int_env(ENV_STATS_WORKERS, hardware_concurrency(), min_value=1, max_value=1024),
        stats_timeout=_read_int_env(ENV_STATS_TIMEOUT, 60, min_value=1, max_value=3600),
        max_subdivision_levels=_read_int_env(ENV_MAX_SUBDIVISION_LEVELS, 4, min_value=1, max_value=10),
    )


DEFAULTS = load_runtime_defaults()
