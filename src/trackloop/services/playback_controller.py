"""Playback sequencing between the playlist and the media resource.

`PlaybackController` owns the playback cursor. It resolves next/previous
requests against the playlist-level loop setting and the per-track loop flag,
reacts to the media resource's end-of-track notification and follows playlist
changes so the cursor always designates the loaded track (or none). It reads
the playlist but never mutates it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from contextlib import suppress
from dataclasses import dataclass, replace
from typing import Callable, Literal

from trackloop.events import (
    PlaybackFinished,
    PlayerStateChanged,
    PlaylistCleared,
    PlaylistEvent,
    TrackChanged,
    TrackLoopToggled,
    TrackRemoved,
)
from trackloop.runtime_config import normalize_volume
from trackloop.services.media_backend import (
    BackendError,
    Ended,
    MediaBackend,
    MediaEvent,
    Paused,
    Played,
    TimeUpdated,
)
from trackloop.services.playlist_service import PlaylistManager

logger = logging.getLogger(__name__)

STATUS = Literal["idle", "loaded", "playing", "paused", "ended", "error"]


def _format_user_error(
    *, what_failed: str, likely_cause: str, next_step: str, detail: str | None = None
) -> str:
    message = f"{what_failed}\nLikely cause: {likely_cause}\nNext step: {next_step}"
    if detail:
        message = f"{message}\nDetails: {detail}"
    return message


@dataclass(frozen=True)
class PlaybackState:
    """Snapshot of the cursor and transport state exposed to renderers."""

    status: STATUS = "idle"
    current_index: int = -1
    track_id: str | None = None
    track_name: str | None = None
    track_loop: bool = False
    position_ms: int = 0
    duration_ms: int = 0
    volume: float = 1.0
    playlist_loop: bool = False
    error: str | None = None


class PlaybackController:
    """Owns the playback cursor and emits state events to subscribers."""

    def __init__(
        self,
        *,
        playlist: PlaylistManager,
        backend: MediaBackend,
        emit_event: Callable[[object], Awaitable[None]] | None = None,
        initial_state: PlaybackState | None = None,
    ) -> None:
        self._playlist = playlist
        self._backend = backend
        self._emit_event = emit_event
        state = initial_state or PlaybackState()
        self._state = replace(state, volume=normalize_volume(state.volume))
        self._lock = asyncio.Lock()
        self._backend.set_event_handler(self._handle_media_event)
        self._playlist.add_listener(self._handle_playlist_event)

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def current_index(self) -> int:
        return self._state.current_index

    async def start(self) -> None:
        """Start the media resource with the persisted volume applied."""
        await self._backend.start()
        await self._backend.set_volume(self._state.volume)

    async def shutdown(self) -> None:
        """Detach from the playlist and perform best-effort backend shutdown."""
        self._playlist.remove_listener(self._handle_playlist_event)
        with suppress(Exception):
            await self._backend.shutdown()

    async def play_at(self, index: int) -> bool:
        """Load and start the track at `index`; out-of-range is a no-op."""
        track = self._playlist.get(index)
        if track is None:
            logger.debug("Ignoring play request for out-of-range index %s.", index)
            return False
        async with self._lock:
            self._state = replace(
                self._state,
                status="loaded",
                current_index=index,
                track_id=track.id,
                track_name=track.name,
                track_loop=track.loop,
                position_ms=0,
                duration_ms=0,
                error=None,
            )
        try:
            await self._backend.set_loop(track.loop)
            await self._backend.load(track.content, name=track.name)
            await self._backend.play()
        except Exception as exc:
            logger.warning("Failed to start playback of %s: %s", track.name, exc)
            async with self._lock:
                self._state = replace(
                    self._state,
                    status="error",
                    error=_format_user_error(
                        what_failed="Failed to start playback.",
                        likely_cause="Media resource could not open or decode the track.",
                        next_step="Remove and re-add the track, then retry.",
                        detail=str(exc),
                    ),
                )
            await self._emit_state()
            return False
        async with self._lock:
            self._state = replace(self._state, status="playing")
        logger.info(
            "Playing track %d/%d: %s", index + 1, len(self._playlist), track.name
        )
        await self._emit(TrackChanged(index, track))
        await self._emit_state()
        return True

    async def toggle_play_pause(self) -> None:
        if self._state.track_id is None:
            if len(self._playlist):
                await self.play_at(0)
            return
        if self._state.status == "error":
            # Nothing is loaded after a failed start; retry instead of resuming.
            await self.play_at(self._state.current_index)
            return
        async with self._lock:
            resume = self._state.status != "playing"
            self._state = replace(
                self._state, status="playing" if resume else "paused"
            )
        if resume:
            await self._backend.play()
        else:
            await self._backend.pause()
        await self._emit_state()

    async def next_track(self) -> bool:
        """Advance one track, wrapping to the head only with playlist loop on."""
        size = len(self._playlist)
        current = self._state.current_index
        if current == -1 and size:
            return await self.play_at(0)
        if current + 1 < size:
            return await self.play_at(current + 1)
        if self._state.playlist_loop and size:
            return await self.play_at(0)
        logger.debug("Reached playlist tail at index %d; not wrapping.", current)
        return False

    async def prev_track(self) -> bool:
        current = self._state.current_index
        if current > 0:
            return await self.play_at(current - 1)
        return False

    async def stop(self) -> None:
        """Unload the current track and release the cursor."""
        await self._release()

    async def set_playlist_loop(self, enabled: bool) -> None:
        async with self._lock:
            self._state = replace(self._state, playlist_loop=bool(enabled))
        await self._emit_state()

    async def set_volume(self, volume: float) -> float:
        async with self._lock:
            self._state = replace(self._state, volume=normalize_volume(volume))
            applied = self._state.volume
        await self._backend.set_volume(applied)
        await self._emit_state()
        return applied

    async def seek_ms(self, position_ms: int) -> None:
        if self._state.track_id is None:
            return
        async with self._lock:
            position = max(0, min(int(position_ms), self._state.duration_ms))
            self._state = replace(self._state, position_ms=position)
        await self._backend.seek_ms(position)
        await self._emit_state()

    async def seek_ratio(self, ratio: float) -> None:
        """Seek to a fraction of the track, as a progress slider does."""
        duration = self._state.duration_ms
        if self._state.track_id is None or duration <= 0:
            return
        await self.seek_ms(int(duration * max(0.0, min(float(ratio), 1.0))))

    async def _handle_media_event(self, event: MediaEvent) -> None:
        """Fold media notifications into state and decide track-end advance."""
        emit = False
        handle_end = False
        async with self._lock:
            loaded = self._state.track_id is not None
            if isinstance(event, TimeUpdated):
                position = max(0, event.position_ms)
                duration = max(0, event.duration_ms)
                if (position, duration) != (
                    self._state.position_ms,
                    self._state.duration_ms,
                ):
                    self._state = replace(
                        self._state, position_ms=position, duration_ms=duration
                    )
                    emit = True
            elif isinstance(event, Played):
                if loaded and self._state.status != "playing":
                    self._state = replace(self._state, status="playing")
                    emit = True
            elif isinstance(event, Paused):
                if self._state.status == "playing":
                    self._state = replace(self._state, status="paused")
                    emit = True
            elif isinstance(event, Ended):
                # A looping track is restarted by the resource itself.
                if loaded and not self._state.track_loop:
                    self._state = replace(self._state, status="ended")
                    emit = True
                    handle_end = True
            elif isinstance(event, BackendError):
                self._state = replace(
                    self._state,
                    status="error",
                    error=_format_user_error(
                        what_failed="Media resource reported an error.",
                        likely_cause="Codec or media payload failure.",
                        next_step="Skip or re-add the track, then retry playback.",
                        detail=event.message,
                    ),
                )
                emit = True
        if emit:
            await self._emit_state()
        if handle_end and not await self.next_track():
            if self._state.status == "ended":
                await self._emit(PlaybackFinished(self._state.current_index))

    async def _handle_playlist_event(self, event: PlaylistEvent) -> None:
        """Keep the cursor pointing at the loaded track across playlist edits."""
        track_id = self._state.track_id
        if isinstance(event, PlaylistCleared):
            if track_id is not None or self._state.current_index != -1:
                await self._release()
            return
        if track_id is None:
            return
        if isinstance(event, TrackRemoved) and event.removed.id == track_id:
            await self._release()
            return
        if isinstance(event, TrackLoopToggled) and event.track.id == track_id:
            await self._backend.set_loop(event.track.loop)
            async with self._lock:
                self._state = replace(self._state, track_loop=event.track.loop)
            await self._emit_state()
            return
        new_index = next(
            (
                position
                for position, track in enumerate(event.tracks)
                if track.id == track_id
            ),
            None,
        )
        if new_index is None:
            await self._release()
            return
        if new_index != self._state.current_index:
            async with self._lock:
                self._state = replace(self._state, current_index=new_index)
            await self._emit_state()

    async def _release(self) -> None:
        async with self._lock:
            self._state = replace(
                self._state,
                status="idle",
                current_index=-1,
                track_id=None,
                track_name=None,
                track_loop=False,
                position_ms=0,
                duration_ms=0,
            )
        await self._backend.stop()
        await self._emit(TrackChanged(-1, None))
        await self._emit_state()

    async def _emit(self, event: object) -> None:
        if self._emit_event is not None:
            await self._emit_event(event)

    async def _emit_state(self) -> None:
        await self._emit(PlayerStateChanged(self._state))
