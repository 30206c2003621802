"""Tests for runtime config normalization."""

from __future__ import annotations

import math

from trackloop.cli import build_parser
from trackloop.runtime_config import normalize_volume, resolve_log_level


def test_resolve_log_level_precedence_matrix() -> None:
    assert resolve_log_level(verbose=False, quiet=False) == "INFO"
    assert resolve_log_level(verbose=True, quiet=False) == "DEBUG"
    assert resolve_log_level(verbose=False, quiet=True) == "WARNING"
    assert resolve_log_level(verbose=True, quiet=True) == "WARNING"


def test_parser_flags_feed_log_resolution() -> None:
    args = build_parser().parse_args(["--verbose", "--quiet", "list"])
    assert resolve_log_level(verbose=args.verbose, quiet=args.quiet) == "WARNING"


def test_normalize_volume_clamps_and_rejects_non_finite() -> None:
    assert normalize_volume(0.5) == 0.5
    assert normalize_volume(2) == 1.0
    assert normalize_volume(-3.0) == 0.0
    assert normalize_volume(math.nan) == 1.0
    assert normalize_volume(math.inf) == 1.0
