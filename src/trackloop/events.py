"""Cross-module event models for playlist, playback and host communication.

Playlist events carry the full ordered snapshot after the change so a renderer
can redraw without querying the manager back. Playback events carry the
controller's state snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from trackloop.services.playback_controller import PlaybackState
    from trackloop.services.track_store import Track


@dataclass(frozen=True)
class PlaylistEvent:
    """Base type for playlist membership/order/flag changes."""

    tracks: tuple[Track, ...]


@dataclass(frozen=True)
class PlaylistLoaded(PlaylistEvent):
    """Playlist was restored from the store."""


@dataclass(frozen=True)
class TracksAdded(PlaylistEvent):
    """New tracks were appended to the tail."""

    added: tuple[Track, ...]


@dataclass(frozen=True)
class TrackRemoved(PlaylistEvent):
    """A single track was removed; `index` is its position before removal."""

    index: int
    removed: Track


@dataclass(frozen=True)
class PlaylistCleared(PlaylistEvent):
    """Every track was removed."""


@dataclass(frozen=True)
class TrackLoopToggled(PlaylistEvent):
    """Per-track loop flag flipped for the track at `index`."""

    index: int
    track: Track


@dataclass(frozen=True)
class PlaylistReordered(PlaylistEvent):
    """Track positions changed (adjacent move or relocate)."""

    src_index: int
    dest_index: int


@dataclass(frozen=True)
class PlayerStateChanged:
    """Service event emitted when the effective playback state changes."""

    state: PlaybackState


@dataclass(frozen=True)
class TrackChanged:
    """Service event emitted when playback advances to a track (or releases it)."""

    index: int
    track: Track | None


@dataclass(frozen=True)
class PlaybackFinished:
    """The last track ended and the playlist does not loop; `index` stays put."""

    index: int
