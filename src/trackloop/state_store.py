"""JSON persistence for user-facing playback settings.

The store is tolerant of invalid/missing values so upgrades and partial/corrupt
writes degrade to safe defaults instead of aborting startup.
"""

from __future__ import annotations

import json
import logging
import math
import time
from contextlib import suppress
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any
from uuid import uuid4

from trackloop.runtime_config import DEFAULT_VOLUME, normalize_volume

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppState:
    """Persisted settings read at startup and rewritten on every change."""

    volume: float = DEFAULT_VOLUME
    playlist_loop: bool = False


def _coerce_state(data: dict[str, Any]) -> AppState:
    """Coerce an untyped JSON object into `AppState` with safe defaults."""
    volume = data.get("volume")
    # Older builds stored the slider value as a string.
    if isinstance(volume, str):
        with suppress(ValueError):
            volume = float(volume)
    if isinstance(volume, bool) or not isinstance(volume, (int, float)):
        volume = DEFAULT_VOLUME
    elif not math.isfinite(float(volume)):
        volume = DEFAULT_VOLUME

    playlist_loop = data.get("playlist_loop")
    return AppState(
        volume=normalize_volume(float(volume)),
        playlist_loop=playlist_loop if isinstance(playlist_loop, bool) else False,
    )


def load_state_with_notice(path: Path) -> tuple[AppState, str | None]:
    """Load state and return an optional user-facing notice."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("Settings file missing at %s; using defaults.", path)
        return AppState(), None
    except OSError as exc:
        logger.warning("Failed to read settings file %s: %s; using defaults.", path, exc)
        return (
            AppState(),
            "Settings were reset to defaults.\n"
            "Likely cause: settings file is unreadable due to permissions or IO issues.\n"
            f"Next step: verify access to '{path}' and restart.",
        )

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Settings file at %s is invalid JSON; using defaults.", path)
        return (
            AppState(),
            "Settings were reset to defaults.\n"
            "Likely cause: settings file is corrupt or partially written.\n"
            f"Next step: remove or repair '{path}' and restart.",
        )

    if not isinstance(data, dict):
        logger.warning("Settings file at %s is not a JSON object; using defaults.", path)
        return (
            AppState(),
            "Settings were reset to defaults.\n"
            "Likely cause: settings file format is invalid for this version.\n"
            f"Next step: remove '{path}' and restart.",
        )

    return _coerce_state(data), None


def load_state(path: Path) -> AppState:
    """Load settings from disk, falling back to defaults."""
    state, _notice = load_state_with_notice(path)
    return state


def save_state(path: Path, state: AppState) -> None:
    """Persist settings atomically to disk via write-then-replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.{uuid4().hex}.tmp")
    payload = json.dumps(asdict(state), indent=2, sort_keys=True)
    delay_s = 0.02
    try:
        for attempt in range(4):
            tmp_path.write_text(payload, encoding="utf-8")
            try:
                tmp_path.replace(path)
                return
            except OSError as exc:
                if not _is_retryable_windows_replace_error(exc) or attempt >= 3:
                    raise
                time.sleep(delay_s)
                delay_s = min(0.25, delay_s * 2.0)
    finally:
        with suppress(OSError):
            tmp_path.unlink()


def _is_retryable_windows_replace_error(exc: OSError) -> bool:
    """Return whether an atomic replace failure is likely transient on Windows."""
    winerror = getattr(exc, "winerror", None)
    if winerror in {32, 5, 2}:
        return True
    errno = getattr(exc, "errno", None)
    if errno in {13, 16}:
        return True
    text = str(exc).lower()
    return "used by another process" in text or "permission denied" in text
