"""In-memory playlist authority synchronized with the track store.

`PlaylistManager` owns the ordered track list. Every mutation runs under one
`asyncio.Lock`, applies the change in memory, renumbers `order` to match list
positions and awaits the store writes in list order. Listeners are notified
once the lock is released. Store failures propagate as `StorageError`; the
in-memory change that preceded a failed write is kept (the persisted snapshot
wins on next load) and its event is still delivered, so observers such as the
playback cursor never lag behind the list.

The reorder helpers at the bottom of the module are pure list functions and
never touch the store.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import replace
from uuid import uuid4

from trackloop.events import (
    PlaylistCleared,
    PlaylistEvent,
    PlaylistLoaded,
    PlaylistReordered,
    TrackLoopToggled,
    TrackRemoved,
    TracksAdded,
)
from trackloop.services.track_store import Track, TrackInput, TrackStore

logger = logging.getLogger(__name__)

PlaylistListener = Callable[[PlaylistEvent], Awaitable[None]]


class PlaylistManager:
    """Owns the ordered track list and keeps the store in step with it."""

    def __init__(self, store: TrackStore, *, resave_unchanged: bool = True) -> None:
        self._store = store
        # Full resave mirrors the long-standing behavior; False writes only
        # records whose order actually changed.
        self._resave_unchanged = resave_unchanged
        self._tracks: list[Track] = []
        self._lock = asyncio.Lock()
        self._listeners: list[PlaylistListener] = []

    @property
    def tracks(self) -> tuple[Track, ...]:
        return tuple(self._tracks)

    def __len__(self) -> int:
        return len(self._tracks)

    def get(self, index: int) -> Track | None:
        if not self._in_range(index):
            return None
        return self._tracks[index]

    def index_of(self, track_id: str) -> int | None:
        for index, track in enumerate(self._tracks):
            if track.id == track_id:
                return index
        return None

    def add_listener(self, listener: PlaylistListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: PlaylistListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def load(self) -> tuple[Track, ...]:
        """Restore the list from the store, repairing non-dense orders."""
        event: PlaylistEvent | None = None
        try:
            async with self._lock:
                records = await self._store.get_all()
                records.sort(key=lambda track: (track.order, track.id))
                stale = self._apply_order(records, resave_unchanged=False)
                snapshot = self.tracks
                event = PlaylistLoaded(snapshot)
                if stale:
                    logger.warning(
                        "Persisted track order was not dense; repairing %d record(s).",
                        len(stale),
                    )
                    await self._put_all(stale)
            logger.info("Loaded %d track(s) from store.", len(snapshot))
        finally:
            if event is not None:
                await self._emit(event)
        return snapshot

    async def add(self, items: Iterable[TrackInput]) -> list[Track]:
        """Append one track per input, persisting strictly in input order.

        When a write fails, listeners still hear about the tracks appended so
        far before the error propagates.
        """
        added: list[Track] = []
        try:
            async with self._lock:
                for item in items:
                    track = Track(
                        id=self._new_track_id(),
                        name=item.name,
                        loop=False,
                        content=item.content,
                        order=len(self._tracks),
                    )
                    self._tracks.append(track)
                    added.append(track)
                    await self._store.put(track)
            logger.debug(
                "Added %d track(s); playlist size %d.", len(added), len(self._tracks)
            )
        finally:
            if added:
                await self._emit(TracksAdded(self.tracks, added=tuple(added)))
        return added

    async def remove(self, index: int) -> Track | None:
        event: TrackRemoved | None = None
        try:
            async with self._lock:
                if not self._in_range(index):
                    logger.debug("Ignoring remove for out-of-range index %s.", index)
                    return None
                removed = self._tracks[index]
                await self._store.delete(removed.id)
                reordered = list(self._tracks)
                del reordered[index]
                writes = self._apply_order(reordered)
                event = TrackRemoved(self.tracks, index=index, removed=removed)
                await self._put_all(writes)
            logger.debug("Removed track %s from index %d.", removed.id, index)
        finally:
            if event is not None:
                await self._emit(event)
        return removed

    async def clear(self) -> int:
        async with self._lock:
            removed = len(self._tracks)
            for track in list(self._tracks):
                await self._store.delete(track.id)
            self._tracks = []
        logger.debug("Cleared playlist (%d track(s)).", removed)
        await self._emit(PlaylistCleared(()))
        return removed

    async def toggle_loop(self, index: int) -> Track | None:
        event: TrackLoopToggled | None = None
        try:
            async with self._lock:
                if not self._in_range(index):
                    logger.debug(
                        "Ignoring loop toggle for out-of-range index %s.", index
                    )
                    return None
                current = self._tracks[index]
                updated = replace(current, loop=not current.loop)
                self._tracks[index] = updated
                event = TrackLoopToggled(self.tracks, index=index, track=updated)
                await self._store.put(updated)
        finally:
            if event is not None:
                await self._emit(event)
        return updated

    async def move_up(self, index: int) -> bool:
        return await self._reorder(index, index - 1, swap_adjacent)

    async def move_down(self, index: int) -> bool:
        return await self._reorder(index, index + 1, swap_adjacent)

    async def relocate(self, src_index: int, dest_index: int) -> bool:
        """Drag-drop move: pop `src_index` and reinsert it at `dest_index`."""
        return await self._reorder(src_index, dest_index, splice_move)

    async def _reorder(
        self,
        src_index: int,
        dest_index: int,
        algorithm: Callable[[Sequence[Track], int, int], list[Track] | None],
    ) -> bool:
        event: PlaylistReordered | None = None
        try:
            async with self._lock:
                reordered = algorithm(self._tracks, src_index, dest_index)
                if reordered is None:
                    logger.debug(
                        "Ignoring reorder %s -> %s for playlist of %d.",
                        src_index,
                        dest_index,
                        len(self._tracks),
                    )
                    return False
                writes = self._apply_order(reordered)
                event = PlaylistReordered(
                    self.tracks, src_index=src_index, dest_index=dest_index
                )
                await self._put_all(writes)
        finally:
            if event is not None:
                await self._emit(event)
        return True

    def _apply_order(
        self, reordered: list[Track], *, resave_unchanged: bool | None = None
    ) -> list[Track]:
        """Install `reordered` renumbered in memory; return the records to write."""
        if resave_unchanged is None:
            resave_unchanged = self._resave_unchanged
        renumbered = renumber(reordered)
        self._tracks = renumbered
        return [
            after
            for before, after in zip(reordered, renumbered)
            if resave_unchanged or after is not before
        ]

    async def _put_all(self, tracks: Iterable[Track]) -> None:
        for track in tracks:
            await self._store.put(track)

    async def _emit(self, event: PlaylistEvent) -> None:
        for listener in list(self._listeners):
            await listener(event)

    def _in_range(self, index: int) -> bool:
        return 0 <= index < len(self._tracks)

    def _new_track_id(self) -> str:
        known = {track.id for track in self._tracks}
        while True:
            candidate = uuid4().hex
            if candidate not in known:
                return candidate


def renumber(tracks: Sequence[Track]) -> list[Track]:
    """Return tracks with `order` rewritten to list position.

    Tracks already in place are returned as the same objects so callers can
    detect which records changed by identity.
    """
    return [
        track if track.order == position else replace(track, order=position)
        for position, track in enumerate(tracks)
    ]


def swap_adjacent(
    tracks: Sequence[Track], index: int, target: int
) -> list[Track] | None:
    """Swap `index` with its direct neighbor `target`; `None` when not allowed."""
    size = len(tracks)
    if abs(index - target) != 1:
        return None
    if not (0 <= index < size and 0 <= target < size):
        return None
    reordered = list(tracks)
    reordered[index], reordered[target] = reordered[target], reordered[index]
    return reordered


def splice_move(tracks: Sequence[Track], src: int, dest: int) -> list[Track] | None:
    size = len(tracks)
    if src == dest or not (0 <= src < size and 0 <= dest < size):
        return None
    reordered = list(tracks)
    reordered.insert(dest, reordered.pop(src))
    return reordered
