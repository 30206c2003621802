"""Fake media backend for deterministic testing and headless playback."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import suppress
from dataclasses import dataclass
from typing import Literal

from .media_backend import Ended, MediaEvent, Paused, Played, TimeUpdated

FakeStatus = Literal["empty", "paused", "playing"]


@dataclass
class _MediaState:
    status: FakeStatus = "empty"
    name: str | None = None
    position_ms: int = 0
    duration_ms: int = 0
    volume: float = 1.0
    loop: bool = False


class FakeMediaBackend:
    """In-memory media slot that simulates playback progress.

    Duration is derived from payload size (`ms_per_byte`) unless a fixed
    `duration_ms` is supplied, so tests can build tracks of known length.
    """

    def __init__(
        self,
        *,
        tick_interval_ms: int = 250,
        duration_ms: int | None = None,
        ms_per_byte: float = 1.0,
    ) -> None:
        self._tick_interval_ms = tick_interval_ms
        self._fixed_duration_ms = duration_ms
        self._ms_per_byte = ms_per_byte
        self._state = _MediaState()
        self._handler: Callable[[MediaEvent], Awaitable[None]] | None = None
        self._lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self.loads: list[str] = []

    @property
    def status(self) -> FakeStatus:
        return self._state.status

    @property
    def loop(self) -> bool:
        return self._state.loop

    @property
    def volume(self) -> float:
        return self._state.volume

    @property
    def loaded_name(self) -> str | None:
        return self._state.name

    def set_event_handler(
        self, handler: Callable[[MediaEvent], Awaitable[None]]
    ) -> None:
        self._handler = handler

    async def start(self) -> None:
        if self._task is not None:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._ticker_loop())

    async def shutdown(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def load(self, content: bytes, *, name: str) -> None:
        if self._fixed_duration_ms is not None:
            duration = self._fixed_duration_ms
        else:
            duration = max(1, int(len(content) * self._ms_per_byte))
        async with self._lock:
            self._state.status = "paused"
            self._state.name = name
            self._state.position_ms = 0
            self._state.duration_ms = duration
            self.loads.append(name)
        await self._emit(TimeUpdated(0, duration))

    async def play(self) -> None:
        async with self._lock:
            if self._state.status != "paused":
                return
            if self._state.position_ms >= self._state.duration_ms:
                self._state.position_ms = 0
            self._state.status = "playing"
        await self._emit(Played())

    async def pause(self) -> None:
        async with self._lock:
            if self._state.status != "playing":
                return
            self._state.status = "paused"
        await self._emit(Paused())

    async def stop(self) -> None:
        async with self._lock:
            was_playing = self._state.status == "playing"
            self._state = _MediaState(
                volume=self._state.volume, loop=self._state.loop
            )
        if was_playing:
            await self._emit(Paused())

    async def set_loop(self, loop: bool) -> None:
        async with self._lock:
            self._state.loop = bool(loop)

    async def seek_ms(self, position_ms: int) -> None:
        async with self._lock:
            pos = _clamp(position_ms, 0, self._state.duration_ms)
            self._state.position_ms = pos
            duration = self._state.duration_ms
        await self._emit(TimeUpdated(pos, duration))

    async def set_volume(self, volume: float) -> None:
        async with self._lock:
            self._state.volume = max(0.0, min(float(volume), 1.0))

    async def get_position_ms(self) -> int:
        async with self._lock:
            return self._state.position_ms

    async def get_duration_ms(self) -> int:
        async with self._lock:
            return self._state.duration_ms

    async def advance(self, elapsed_ms: int) -> None:
        """Move the playhead forward as if `elapsed_ms` of audio played."""
        ended = False
        async with self._lock:
            if self._state.status != "playing" or self._state.duration_ms <= 0:
                return
            duration = self._state.duration_ms
            next_pos = self._state.position_ms + max(0, elapsed_ms)
            if next_pos >= duration:
                if self._state.loop:
                    next_pos = next_pos % duration
                else:
                    next_pos = duration
                    self._state.status = "paused"
                    ended = True
            self._state.position_ms = next_pos
        await self._emit(TimeUpdated(next_pos, duration))
        if ended:
            await self._emit(Ended())

    async def _ticker_loop(self) -> None:
        try:
            while not self._stop_event.is_set():
                await asyncio.sleep(self._tick_interval_ms / 1000)
                await self.advance(self._tick_interval_ms)
        except asyncio.CancelledError:
            pass

    async def _emit(self, event: MediaEvent) -> None:
        if self._handler is None:
            return
        await self._handler(event)


def _clamp(value: int, min_value: int, max_value: int) -> int:
    return max(min_value, min(value, max_value))
