"""Runtime configuration normalization helpers.

These helpers keep CLI flag and persisted setting interpretation deterministic
across entrypoints.
"""

from __future__ import annotations

import math

VOLUME_MIN = 0.0
VOLUME_MAX = 1.0
DEFAULT_VOLUME = 1.0


def resolve_log_level(*, verbose: bool, quiet: bool) -> str:
    """Resolve effective log level from CLI flags.

    Precedence is deterministic: --quiet overrides --verbose.
    """
    if quiet:
        return "WARNING"
    if verbose:
        return "DEBUG"
    return "INFO"


def normalize_volume(value: float) -> float:
    """Clamp a volume value into ``[0.0, 1.0]``; non-finite input maps to default."""
    normalized = float(value)
    if not math.isfinite(normalized):
        return DEFAULT_VOLUME
    return max(VOLUME_MIN, min(normalized, VOLUME_MAX))
